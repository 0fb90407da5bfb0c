"""Ledger multicanal : produits, ventes, déposantes, commandes, webhooks traités"""

from alembic import op
import sqlalchemy as sa

revision = '0001_ledger_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'produits',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('sku', sa.String(64), unique=True),
        sa.Column('nom', sa.Text, nullable=False),
        sa.Column('prix', sa.Numeric(10, 2)),
        sa.Column('quantite', sa.Integer, nullable=False, server_default='1'),
        sa.Column('vendu', sa.Boolean, nullable=False, server_default=sa.sql.expression.false()),
        sa.Column('statut', sa.String(16), nullable=False, server_default='active'),
        sa.Column('categorie', sa.Text),
        sa.Column('marque', sa.Text),
        sa.Column('chineur', sa.Text),
        sa.Column('chineur_uid', sa.String(64)),
        sa.Column('trigramme', sa.String(8)),
        sa.Column('square_variation_id', sa.String(64)),
        sa.Column('square_item_id', sa.String(64)),
        sa.Column('ebay_offer_id', sa.String(64)),
        sa.Column('ebay_listing_id', sa.String(64)),
        sa.Column('date_vente', sa.DateTime),
        sa.Column('prix_vente_reel', sa.Numeric(10, 2)),
        sa.Column('date_rupture', sa.DateTime),
        sa.Column('channel_order_id', sa.String(64)),
        sa.Column('vendu_sur', sa.String(32)),
        sa.Column('recovery_status', sa.String(32)),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime, server_default=sa.text('now()')),
        sa.CheckConstraint('quantite >= 0', name='ck_produits_quantite_positive'),
    )
    op.create_index('ix_produits_square_variation_id', 'produits', ['square_variation_id'])
    op.create_index('ix_produits_square_item_id', 'produits', ['square_item_id'])

    op.create_table(
        'ventes',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('produit_id', sa.String(64)),
        sa.Column('sku', sa.String(64)),
        sa.Column('nom', sa.Text),
        sa.Column('categorie', sa.Text),
        sa.Column('marque', sa.Text),
        sa.Column('chineur', sa.Text),
        sa.Column('chineur_uid', sa.String(64)),
        sa.Column('trigramme', sa.String(8)),
        sa.Column('prix_initial', sa.Numeric(10, 2)),
        sa.Column('prix_vente_reel', sa.Numeric(10, 2)),
        sa.Column('date_vente', sa.DateTime),
        sa.Column('source', sa.String(32), nullable=False),
        sa.Column('attribue', sa.Boolean, nullable=False, server_default=sa.sql.expression.false()),
        sa.Column('attribue_at', sa.DateTime),
        sa.Column('order_id', sa.String(64)),
        sa.Column('transaction_id', sa.String(64)),
        sa.Column('nom_source', sa.Text),
        sa.Column('sku_source', sa.String(64)),
        sa.Column('remarque', sa.Text),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('now()')),
        sa.CheckConstraint('NOT attribue OR produit_id IS NOT NULL', name='ck_ventes_attribution'),
    )
    op.create_index('ix_ventes_produit_id', 'ventes', ['produit_id'])
    op.create_index('ix_ventes_date_vente', 'ventes', ['date_vente'])

    op.create_table(
        'deposantes',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('trigramme', sa.String(8), nullable=False, unique=True),
        sa.Column('nom', sa.Text),
        sa.Column('email', sa.Text),
        sa.Column('stock_type', sa.String(16), nullable=False, server_default='unique'),
    )

    op.create_table(
        'commandes',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('produit_id', sa.String(64)),
        sa.Column('client_email', sa.Text, nullable=False),
        sa.Column('client_nom', sa.Text),
        sa.Column('prix', sa.Numeric(10, 2), nullable=False),
        sa.Column('remise_appliquee', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('frais_livraison', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('prix_final', sa.Numeric(10, 2)),
        sa.Column('mode_livraison', sa.String(16)),
        sa.Column('date_commande', sa.DateTime, nullable=False),
        sa.Column('channel_order_id', sa.String(64)),
        sa.Column('statut', sa.String(16), nullable=False, server_default='en_attente'),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('now()')),
    )
    op.create_index('ix_commandes_client_email', 'commandes', ['client_email'])
    op.create_index('ix_commandes_date_commande', 'commandes', ['date_commande'])
    op.create_index('ix_commandes_channel_order_id', 'commandes', ['channel_order_id'], unique=True)

    op.create_table(
        'webhook_events',
        sa.Column('event_id', sa.String(128), primary_key=True),
        sa.Column('channel', sa.String(32), nullable=False),
        sa.Column('received_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_webhook_events_received_at', 'webhook_events', ['received_at'])


def downgrade():
    op.drop_index('ix_webhook_events_received_at', table_name='webhook_events')
    op.drop_table('webhook_events')
    op.drop_index('ix_commandes_channel_order_id', table_name='commandes')
    op.drop_index('ix_commandes_date_commande', table_name='commandes')
    op.drop_index('ix_commandes_client_email', table_name='commandes')
    op.drop_table('commandes')
    op.drop_table('deposantes')
    op.drop_index('ix_ventes_date_vente', table_name='ventes')
    op.drop_index('ix_ventes_produit_id', table_name='ventes')
    op.drop_table('ventes')
    op.drop_index('ix_produits_square_item_id', table_name='produits')
    op.drop_index('ix_produits_square_variation_id', table_name='produits')
    op.drop_table('produits')
