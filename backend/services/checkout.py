"""Passage en caisse du site : promotions du jour puis lien de paiement."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from core.channels.square import SquareClient
from core.errors import ProductNotFoundError, UpstreamChannelError, ValidationError
from core.models import Channel, DeliveryMode
from core.promotions import PromotionCalculator
from core.repositories.products import ProductRepository

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuyerInfo:
    email: str
    prenom: str | None = None
    nom: str | None = None
    telephone: str | None = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.prenom, self.nom) if part).strip()


class CheckoutService:
    def __init__(
        self,
        *,
        products: ProductRepository,
        promotions: PromotionCalculator,
        payments: SquareClient | None,
        public_base_url: str,
    ) -> None:
        self.products = products
        self.promotions = promotions
        self.payments = payments
        self.public_base_url = public_base_url.rstrip("/")

    def create_checkout(
        self,
        product_id: str,
        base_price: Decimal,
        buyer: BuyerInfo,
        delivery_mode: DeliveryMode,
    ) -> dict[str, Any]:
        product = self.products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if not product.is_available:
            raise ValidationError(f"Produit {product_id} indisponible.")
        if product.prix is not None and Decimal(product.prix) != base_price:
            LOGGER.warning("Prix transmis %s différent du prix catalogue %s pour %s", base_price, product.prix, product_id)

        quote = self.promotions.quote(buyer.email, base_price, delivery_mode)
        if self.payments is None:
            raise UpstreamChannelError(Channel.STOREFRONT.value, "Paiement en ligne non configuré")

        lines: list[tuple[str, Decimal]] = [(product.nom, quote.base_price)]
        if quote.discount > 0:
            lines.append(("Remise -15% (3e achat)", -quote.discount))
        if quote.delivery_fee > 0:
            lines.append(("Frais de livraison", quote.delivery_fee))
        elif delivery_mode is DeliveryMode.DELIVERY:
            lines.append(("Livraison offerte", Decimal("0")))

        metadata = {
            "productId": product.id,
            "clientEmail": buyer.email,
            "clientNom": buyer.full_name or buyer.email,
            "modeLivraison": delivery_mode.value,
            "nombreAchats": str(quote.order_rank),
            "prixOriginal": str(quote.base_price),
            "remiseAppliquee": str(quote.discount),
            "fraisLivraison": str(quote.delivery_fee),
        }
        if buyer.telephone:
            metadata["clientTelephone"] = buyer.telephone

        link = self.payments.create_payment_link(
            lines=lines,
            metadata=metadata,
            redirect_url=f"{self.public_base_url}/confirmation?produit={product.id}",
            buyer_email=buyer.email,
        )
        LOGGER.info("Lien de paiement créé pour %s (%s, total %s)", product.id, buyer.email, quote.final_price)
        return {
            "finalPrice": quote.final_price,
            "discount": quote.discount,
            "deliveryFee": quote.delivery_fee,
            "checkoutUrl": link["url"],
            "orderRank": quote.order_rank,
        }


__all__ = ["BuyerInfo", "CheckoutService"]
