"""Définition des tables du ledger store (produits, ventes, commandes, registres)."""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
)

metadata = MetaData()


produits = Table(
    "produits",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("sku", String(64), unique=True, nullable=True),
    Column("nom", Text, nullable=False),
    Column("prix", Numeric(10, 2)),
    Column("quantite", Integer, nullable=False, server_default="1"),
    Column("vendu", Boolean, nullable=False, server_default="0"),
    Column("statut", String(16), nullable=False, server_default="active"),
    Column("categorie", Text),
    Column("marque", Text),
    Column("chineur", Text),
    Column("chineur_uid", String(64)),
    Column("trigramme", String(8)),
    # Identifiants de listing par canal
    Column("square_variation_id", String(64), index=True),
    Column("square_item_id", String(64), index=True),
    Column("ebay_offer_id", String(64)),
    Column("ebay_listing_id", String(64)),
    Column("date_vente", DateTime),
    Column("prix_vente_reel", Numeric(10, 2)),
    Column("date_rupture", DateTime),
    Column("channel_order_id", String(64)),
    Column("vendu_sur", String(32)),
    Column("recovery_status", String(32)),
    Column("version", Integer, nullable=False, server_default="1"),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)


ventes = Table(
    "ventes",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("produit_id", String(64), index=True),
    Column("sku", String(64)),
    Column("nom", Text),
    Column("categorie", Text),
    Column("marque", Text),
    Column("chineur", Text),
    Column("chineur_uid", String(64)),
    Column("trigramme", String(8)),
    Column("prix_initial", Numeric(10, 2)),
    Column("prix_vente_reel", Numeric(10, 2)),
    Column("date_vente", DateTime, index=True),
    Column("source", String(32), nullable=False),
    Column("attribue", Boolean, nullable=False, server_default="0"),
    Column("attribue_at", DateTime),
    Column("order_id", String(64)),
    Column("transaction_id", String(64)),
    Column("nom_source", Text),
    Column("sku_source", String(64)),
    Column("remarque", Text),
    Column("created_at", DateTime),
)


deposantes = Table(
    "deposantes",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("trigramme", String(8), unique=True, nullable=False),
    Column("nom", Text),
    Column("email", Text),
    Column("stock_type", String(16), nullable=False, server_default="unique"),
)


commandes = Table(
    "commandes",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("produit_id", String(64), index=True),
    Column("client_email", Text, nullable=False, index=True),
    Column("client_nom", Text),
    Column("prix", Numeric(10, 2), nullable=False),
    Column("remise_appliquee", Numeric(10, 2), nullable=False, server_default="0"),
    Column("frais_livraison", Numeric(10, 2), nullable=False, server_default="0"),
    Column("prix_final", Numeric(10, 2)),
    Column("mode_livraison", String(16)),
    Column("date_commande", DateTime, nullable=False, index=True),
    Column("channel_order_id", String(64), unique=True),
    Column("statut", String(16), nullable=False, server_default="en_attente"),
    Column("created_at", DateTime),
)


webhook_events = Table(
    "webhook_events",
    metadata,
    Column("event_id", String(128), primary_key=True),
    Column("channel", String(32), nullable=False),
    Column("received_at", DateTime, nullable=False, index=True),
)


__all__ = ["metadata", "produits", "ventes", "deposantes", "commandes", "webhook_events"]
