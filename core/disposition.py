"""Moteur de disposition du stock.

Applique une vente (N unités au prix unitaire P) à un produit :

- ``quantite = max(0, quantite - N)`` ;
- si le stock tombe à zéro, la politique de la déposante décide :
  ``smallBatch`` -> ``outOfStock`` (produit réapprovisionnable, ``vendu`` reste faux),
  sinon -> ``vendu = True`` ;
- chaque unité vendue ajoute une ligne ``ventes`` attribuée.

L'écriture produit est conditionnelle sur ``version`` ; en cas de conflit le
produit est relu et la décision recalculée.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Mapping

from core.clock import Clock, utcnow
from core.errors import ConflictError, ProductNotFoundError
from core.models import Product, ProductStatus, Sale, SaleOrigin, StockType
from core.reference_snapshot import ReferenceSnapshot
from core.repositories.products import ProductRepository
from core.repositories.sales import SaleRepository

LOGGER = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


def product_descriptors(product: Product) -> dict[str, Any]:
    """Champs descriptifs recopiés sur la vente pour rester lisibles après mutation du produit."""
    return {
        "produit_id": product.id,
        "nom": product.nom,
        "sku": product.sku,
        "categorie": product.categorie,
        "marque": product.marque,
        "chineur": product.chineur,
        "chineur_uid": product.chineur_uid,
        "trigramme": product.trigramme,
        "prix_initial": product.prix,
    }


def resolve_changes(
    product: Product,
    quantity_sold: int,
    *,
    stock_type: StockType,
    unit_price: Decimal | None,
    now: datetime,
    origin: SaleOrigin,
    channel_order_id: str | None = None,
) -> dict[str, Any]:
    """Calcule les champs produit à écrire pour ``quantity_sold`` unités vendues."""
    if quantity_sold < 1:
        raise ValueError("quantity_sold doit être >= 1")
    new_quantity = max(0, product.quantite - quantity_sold)
    changes: dict[str, Any] = {"quantite": new_quantity}
    if new_quantity > 0:
        return changes

    if channel_order_id:
        changes["channel_order_id"] = channel_order_id
    if unit_price is not None:
        changes["prix_vente_reel"] = unit_price
    changes["date_vente"] = now
    if stock_type is StockType.SMALL_BATCH:
        changes["statut"] = ProductStatus.OUT_OF_STOCK
        changes["date_rupture"] = now
    else:
        changes["vendu"] = True
        channel = origin.channel
        if channel is not None:
            changes["vendu_sur"] = channel.value
    return changes


def conditional_update(
    products: ProductRepository,
    product: Product,
    compute: Callable[[Product], Mapping[str, Any]],
    *,
    max_attempts: int = MAX_ATTEMPTS,
    clock: Clock = utcnow,
) -> tuple[Product, Product, int]:
    """Écrit ``compute(produit)`` sous condition de version, en relisant à chaque conflit.

    Retourne ``(produit lu, produit écrit, tentatives)`` ; lève ``ConflictError``
    une fois les tentatives épuisées.
    """
    current = product
    for attempt in range(1, max(1, max_attempts) + 1):
        if attempt > 1:
            reloaded = products.get(product.id)
            if reloaded is None:
                raise ProductNotFoundError(product.id)
            current = reloaded
        changes = dict(compute(current))
        if products.update(current.id, changes, expected_version=current.version):
            updated = Product(**{**current.__dict__, **changes, "version": current.version + 1, "updated_at": clock()})
            return current, updated, attempt
        LOGGER.info("Conflit de version sur %s (tentative %d/%d)", current.id, attempt, max_attempts)
    raise ConflictError(f"Produit {product.id} modifié en concurrence, abandon après {max_attempts} essais.")


@dataclass(frozen=True)
class DispositionResult:
    product: Product
    previous_quantity: int
    stock_type: StockType
    sales: tuple[Sale, ...] = field(default_factory=tuple)
    attempts: int = 1

    @property
    def new_quantity(self) -> int:
        return self.product.quantite

    @property
    def delist_required(self) -> bool:
        return self.product.quantite == 0 and self.product.vendu


class DispositionEngine:
    def __init__(
        self,
        products: ProductRepository,
        sales: SaleRepository,
        *,
        clock: Clock = utcnow,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        self.products = products
        self.sales = sales
        self.clock = clock
        self.max_attempts = max(1, max_attempts)

    def apply(
        self,
        product: Product,
        quantity_sold: int,
        *,
        unit_price: Decimal | None,
        origin: SaleOrigin,
        snapshot: ReferenceSnapshot,
        channel_order_id: str | None = None,
        sale_date: datetime | None = None,
        record_sales: bool = True,
    ) -> DispositionResult:
        """Écrit la disposition puis, si demandé, une vente attribuée par unité."""
        now = self.clock()
        stock_type = snapshot.stock_type_for(product.sku, product.trigramme)
        before, updated, attempts = conditional_update(
            self.products,
            product,
            lambda current: resolve_changes(
                current,
                quantity_sold,
                stock_type=stock_type,
                unit_price=unit_price,
                now=now,
                origin=origin,
                channel_order_id=channel_order_id,
            ),
            max_attempts=self.max_attempts,
            clock=self.clock,
        )
        previous_quantity = before.quantite
        LOGGER.info(
            "Disposition %s : quantité %d -> %d (%s, politique %s)",
            updated.id,
            previous_quantity,
            updated.quantite,
            origin.value,
            stock_type.value,
        )

        recorded: tuple[Sale, ...] = ()
        if record_sales:
            template = product_descriptors(updated)
            sale_day = sale_date or now
            recorded = tuple(
                self.sales.add_many(
                    [
                        Sale(
                            id="",
                            source=origin,
                            prix_vente_reel=unit_price,
                            date_vente=sale_day,
                            attribue=True,
                            attribue_at=now,
                            order_id=channel_order_id,
                            **template,
                        )
                        for _ in range(quantity_sold)
                    ]
                )
            )
        return DispositionResult(
            product=updated,
            previous_quantity=previous_quantity,
            stock_type=stock_type,
            sales=recorded,
            attempts=attempts,
        )


__all__ = [
    "DispositionEngine",
    "DispositionResult",
    "MAX_ATTEMPTS",
    "conditional_update",
    "product_descriptors",
    "resolve_changes",
]
