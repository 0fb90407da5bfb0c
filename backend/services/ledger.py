"""Opérations manuelles sur le ledger des ventes : attribution, annulation,
vente manuelle, consultation et réassort."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from core.clock import Clock, month_bounds, parse_month, to_utc_naive, utcnow
from core.delisting import DelistRequest
from core.disposition import DispositionEngine, DispositionResult, conditional_update, product_descriptors
from core.errors import ConflictError, ProductNotFoundError, SaleNotFoundError, ValidationError
from core.models import Product, ProductStatus, Sale, SaleOrigin
from core.reference_snapshot import SnapshotProvider
from core.repositories.products import ProductRepository
from core.repositories.sales import SaleRepository

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerOperation:
    sale: Sale | None
    product: Product | None
    disposition: DispositionResult | None = None

    @property
    def delist(self) -> list[DelistRequest]:
        if self.disposition is None or not self.disposition.delist_required:
            return []
        origin = self.sale.source.channel if self.sale is not None else None
        return [DelistRequest(self.disposition.product, origin)]


class SalesLedgerService:
    def __init__(
        self,
        *,
        products: ProductRepository,
        sales: SaleRepository,
        disposition: DispositionEngine,
        snapshots: SnapshotProvider,
        timezone: str = "Europe/Paris",
        clock: Clock = utcnow,
    ) -> None:
        self.products = products
        self.sales = sales
        self.disposition = disposition
        self.snapshots = snapshots
        self.timezone = timezone
        self.clock = clock

    def _product(self, product_id: str) -> Product:
        product = self.products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def _sale(self, sale_id: str) -> Sale:
        sale = self.sales.get(sale_id)
        if sale is None:
            raise SaleNotFoundError(sale_id)
        return sale

    def attribute(self, sale_id: str, product_id: str, *, force: bool = False) -> LedgerOperation:
        """Rattache une vente à un produit puis applique la disposition d'une unité."""
        sale = self._sale(sale_id)
        product = self._product(product_id)
        if sale.attribue and sale.produit_id == product_id:
            LOGGER.info("Vente %s déjà attribuée à %s, rien à faire", sale_id, product_id)
            return LedgerOperation(sale, product)
        if sale.attribue and not force:
            raise ConflictError(
                f"Vente {sale_id} déjà attribuée au produit {sale.produit_id} ; utiliser force pour la réattribuer."
            )
        if sale.attribue:
            LOGGER.warning("Réattribution forcée de la vente %s : %s -> %s", sale_id, sale.produit_id, product_id)

        now = self.clock()
        changes = {**product_descriptors(product), "attribue": True, "attribue_at": now}
        if not self.sales.update_attribution(sale_id, changes):
            raise SaleNotFoundError(sale_id)
        result = self.disposition.apply(
            product,
            1,
            unit_price=sale.prix_vente_reel,
            origin=sale.source,
            snapshot=self.snapshots.current(),
            sale_date=sale.date_vente,
            record_sales=False,
        )
        attributed = Sale(**{**sale.__dict__, **changes})
        LOGGER.info("Vente %s attribuée au produit %s", sale_id, product_id)
        return LedgerOperation(attributed, result.product, result)

    def reverse(self, sale_id: str, *, restock: bool = False) -> LedgerOperation:
        """Supprime la vente ; remet une unité en stock si demandé."""
        sale = self._sale(sale_id)
        product: Product | None = None
        if restock and sale.produit_id:
            current = self.products.get(sale.produit_id)
            if current is None:
                LOGGER.warning("Produit %s absent, remise en stock ignorée", sale.produit_id)
            else:
                _, product, _ = conditional_update(
                    self.products,
                    current,
                    lambda p: {
                        "quantite": p.quantite + 1,
                        "vendu": False,
                        "date_vente": None,
                        "prix_vente_reel": None,
                        "statut": ProductStatus.ACTIVE if p.statut is ProductStatus.OUT_OF_STOCK else p.statut,
                    },
                    clock=self.clock,
                )
        self.sales.delete(sale_id)
        LOGGER.info("Vente %s supprimée (remise en stock: %s)", sale_id, bool(product))
        return LedgerOperation(sale, product)

    def record_manual_sale(
        self,
        product_id: str,
        price: Decimal,
        *,
        sale_date: datetime | None = None,
    ) -> LedgerOperation:
        product = self._product(product_id)
        if product.vendu or product.statut in (ProductStatus.RETURNED, ProductStatus.DELETED):
            raise ValidationError(f"Produit {product_id} non disponible à la vente ({product.statut.value}).")
        if price <= 0:
            raise ValidationError("Le prix de vente doit être positif")
        when = to_utc_naive(sale_date, self.timezone) if sale_date else None
        result = self.disposition.apply(
            product,
            1,
            unit_price=price,
            origin=SaleOrigin.MANUAL_ATTRIBUTION,
            snapshot=self.snapshots.current(),
            sale_date=when,
        )
        return LedgerOperation(result.sales[0] if result.sales else None, result.product, result)

    def list_sales(self, *, attribue: bool | None = None, month: str | None = None) -> list[Sale]:
        start = end = None
        if month:
            start, end = month_bounds(*parse_month(month), self.timezone)
        return list(self.sales.list_sales(start=start, end=end, attribue=attribue))

    def restock(self, product_id: str, quantity: int) -> Product:
        if quantity < 1:
            raise ValidationError("La quantité de réassort doit être >= 1")
        product = self._product(product_id)
        if product.statut is ProductStatus.DELETED:
            raise ValidationError(f"Produit {product_id} supprimé, réassort impossible.")
        _, updated, _ = conditional_update(
            self.products,
            product,
            lambda p: {
                "quantite": p.quantite + quantity,
                "vendu": False,
                "statut": ProductStatus.ACTIVE,
                "date_rupture": None,
            },
            clock=self.clock,
        )
        LOGGER.info("Réassort %s : +%d (stock %d)", product_id, quantity, updated.quantite)
        return updated


__all__ = ["LedgerOperation", "SalesLedgerService"]
