"""Entités du ledger : produits, ventes, commandes et déposantes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class ProductStatus(str, Enum):
    ACTIVE = "active"
    OUT_OF_STOCK = "outOfStock"
    RETURNED = "returned"
    DELETED = "deleted"


class Channel(str, Enum):
    """Surfaces de vente indépendantes, chacune avec ses identifiants de listing."""

    POS = "boutique"
    MARKETPLACE = "marketplace"
    STOREFRONT = "storefront"


class SaleOrigin(str, Enum):
    BOUTIQUE = "boutique"
    MARKETPLACE = "marketplace"
    STOREFRONT = "storefront"
    IMPORTED_SPREADSHEET = "importedSpreadsheet"
    MANUAL_ATTRIBUTION = "manualAttribution"

    @property
    def channel(self) -> Channel | None:
        return _ORIGIN_CHANNELS.get(self)


_ORIGIN_CHANNELS = {
    SaleOrigin.BOUTIQUE: Channel.POS,
    SaleOrigin.MARKETPLACE: Channel.MARKETPLACE,
    SaleOrigin.STOREFRONT: Channel.STOREFRONT,
    # L'export tableur provient de la caisse.
    SaleOrigin.IMPORTED_SPREADSHEET: Channel.POS,
}


class StockType(str, Enum):
    UNIQUE = "unique"
    SMALL_BATCH = "smallBatch"


class DeliveryMode(str, Enum):
    DELIVERY = "livraison"
    PICKUP = "retrait"


@dataclass
class Product:
    id: str
    nom: str
    sku: str | None = None
    prix: Decimal | None = None
    quantite: int = 1
    vendu: bool = False
    statut: ProductStatus = ProductStatus.ACTIVE
    categorie: str | None = None
    marque: str | None = None
    chineur: str | None = None
    chineur_uid: str | None = None
    trigramme: str | None = None
    square_variation_id: str | None = None
    square_item_id: str | None = None
    ebay_offer_id: str | None = None
    ebay_listing_id: str | None = None
    date_vente: datetime | None = None
    prix_vente_reel: Decimal | None = None
    date_rupture: datetime | None = None
    channel_order_id: str | None = None
    vendu_sur: str | None = None
    recovery_status: str | None = None
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def listing_ids(self, channel: Channel) -> dict[str, str]:
        """Identifiants de listing détenus sur ``channel`` (vide si non listé)."""
        if channel is Channel.POS:
            candidates = {"variation_id": self.square_variation_id, "item_id": self.square_item_id}
        elif channel is Channel.MARKETPLACE:
            candidates = {"offer_id": self.ebay_offer_id, "listing_id": self.ebay_listing_id}
        else:
            candidates = {}
        return {key: value for key, value in candidates.items() if value}

    @property
    def is_available(self) -> bool:
        return (
            not self.vendu
            and self.quantite > 0
            and self.statut not in (ProductStatus.RETURNED, ProductStatus.DELETED)
        )


@dataclass
class Sale:
    id: str
    source: SaleOrigin
    produit_id: str | None = None
    sku: str | None = None
    nom: str | None = None
    categorie: str | None = None
    marque: str | None = None
    chineur: str | None = None
    chineur_uid: str | None = None
    trigramme: str | None = None
    prix_initial: Decimal | None = None
    prix_vente_reel: Decimal | None = None
    date_vente: datetime | None = None
    attribue: bool = False
    attribue_at: datetime | None = None
    order_id: str | None = None
    transaction_id: str | None = None
    nom_source: str | None = None
    sku_source: str | None = None
    remarque: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class Depositor:
    trigramme: str
    stock_type: StockType = StockType.UNIQUE
    nom: str | None = None
    email: str | None = None


@dataclass
class Order:
    id: str
    client_email: str
    prix: Decimal
    date_commande: datetime
    produit_id: str | None = None
    client_nom: str | None = None
    remise_appliquee: Decimal = Decimal("0")
    frais_livraison: Decimal = Decimal("0")
    prix_final: Decimal | None = None
    mode_livraison: DeliveryMode | None = None
    channel_order_id: str | None = None
    statut: str = "en_attente"
    created_at: datetime | None = None


__all__ = [
    "Channel",
    "DeliveryMode",
    "Depositor",
    "Order",
    "Product",
    "ProductStatus",
    "Sale",
    "SaleOrigin",
    "StockType",
]
