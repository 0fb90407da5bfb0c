"""Calcul des promotions du jour au passage en caisse du site.

Règles, dans l'ordre, d'après les commandes non annulées du client sur la
journée (fuseau de la boutique) :

1. frais de livraison forfaitaires sur la 1re commande livrée du jour, offerts ensuite ;
2. dès la 3e commande, remise de 15 % du plus petit prix parmi toutes les
   commandes du jour (courante incluse), une seule fois par jour.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from core.clock import Clock, day_bounds, local_day, utcnow
from core.models import DeliveryMode, Order
from core.repositories.orders import OrderRepository

LOGGER = logging.getLogger(__name__)

_CENT = Decimal("0.01")
ZERO = Decimal("0")


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, ROUND_HALF_UP)


@dataclass(frozen=True)
class PromotionQuote:
    base_price: Decimal
    discount: Decimal
    delivery_fee: Decimal
    final_price: Decimal
    order_rank: int


def compute_promotion(
    base_price: Decimal,
    prior_orders: Sequence[Order],
    delivery_mode: DeliveryMode,
    *,
    delivery_fee: Decimal = Decimal("15"),
    discount_rate: Decimal = Decimal("0.15"),
) -> PromotionQuote:
    """Calcul pur : aucune lecture ni écriture."""
    base = Decimal(base_price)
    if base < 0:
        raise ValueError("Le prix de base doit être positif")
    prior_count = len(prior_orders)

    fee = ZERO
    if delivery_mode is DeliveryMode.DELIVERY and prior_count == 0:
        fee = Decimal(delivery_fee)

    discount = ZERO
    if prior_count >= 2:
        already_discounted = any((order.remise_appliquee or ZERO) > 0 for order in prior_orders)
        if not already_discounted:
            prices = [Decimal(order.prix) for order in prior_orders] + [base]
            discount = min(prices) * Decimal(discount_rate)

    discount = _money(discount)
    fee = _money(fee)
    return PromotionQuote(
        base_price=_money(base),
        discount=discount,
        delivery_fee=fee,
        final_price=_money(base - discount + fee),
        order_rank=prior_count + 1,
    )


class PromotionCalculator:
    """Relit les commandes du jour à chaque appel ; aucun cache."""

    def __init__(
        self,
        orders: OrderRepository,
        *,
        timezone: str = "Europe/Paris",
        delivery_fee: Decimal = Decimal("15"),
        discount_rate: Decimal = Decimal("0.15"),
        clock: Clock = utcnow,
    ) -> None:
        self.orders = orders
        self.timezone = timezone
        self.delivery_fee = delivery_fee
        self.discount_rate = discount_rate
        self.clock = clock

    def todays_orders(self, email: str) -> list[Order]:
        start, end = day_bounds(local_day(self.clock(), self.timezone), self.timezone)
        return list(self.orders.list_for_buyer(email, start=start, end=end))

    def quote(self, email: str, base_price: Decimal, delivery_mode: DeliveryMode) -> PromotionQuote:
        prior: Iterable[Order] = self.todays_orders(email)
        quote = compute_promotion(
            base_price,
            list(prior),
            delivery_mode,
            delivery_fee=self.delivery_fee,
            discount_rate=self.discount_rate,
        )
        LOGGER.info(
            "Promotion %s : commande n°%d, remise %s, livraison %s, total %s",
            email,
            quote.order_rank,
            quote.discount,
            quote.delivery_fee,
            quote.final_price,
        )
        return quote


__all__ = ["PromotionCalculator", "PromotionQuote", "compute_promotion"]
