"""Client Square : catalogue de la caisse, commandes et liens de paiement du site."""

from __future__ import annotations

import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Sequence

import requests

from core.channels.base import HttpChannelClient
from core.errors import UpstreamChannelError
from core.models import Channel, Product

LOGGER = logging.getLogger(__name__)

SQUARE_API_URLS = {
    "sandbox": "https://connect.squareupsandbox.com/v2",
    "production": "https://connect.squareup.com/v2",
}
SQUARE_VERSION = "2024-01-18"


def _minor(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value(ROUND_HALF_UP))


def variation_refs(catalog_object: Mapping[str, Any] | None) -> tuple[str | None, str | None]:
    """(item parent, SKU) d'une variation de catalogue."""
    variation = (catalog_object or {}).get("item_variation_data") or {}
    return variation.get("item_id"), variation.get("sku")


class SquareClient(HttpChannelClient):
    """Square Catalog / Orders / Checkout API."""

    channel = Channel.POS

    def __init__(
        self,
        access_token: str,
        *,
        environment: str = "sandbox",
        location_id: str = "",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(timeout=timeout, session=session)
        self.access_token = access_token
        self.location_id = location_id
        self.base_url = SQUARE_API_URLS.get(environment, SQUARE_API_URLS["sandbox"])

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Square-Version": SQUARE_VERSION,
        }

    # Catalogue -----------------------------------------------------------

    def retrieve_catalog_object(self, object_id: str) -> dict[str, Any] | None:
        data = self._request("GET", f"catalog/object/{object_id}", allow_not_found=True)
        return (data or {}).get("object")

    def delete_catalog_object(self, object_id: str) -> None:
        self._request("DELETE", f"catalog/object/{object_id}", allow_not_found=True)

    def archive_item(self, item_id: str) -> None:
        obj = self.retrieve_catalog_object(item_id)
        if not obj:
            return
        item_data = dict(obj.get("item_data") or {})
        item_data["is_archived"] = True
        self._request(
            "POST",
            "catalog/object",
            json={
                "idempotency_key": uuid.uuid4().hex,
                "object": {
                    "type": obj.get("type", "ITEM"),
                    "id": item_id,
                    "version": obj.get("version"),
                    "item_data": item_data,
                },
            },
        )

    def delist(self, product: Product) -> None:
        """Supprime variation puis item ; archive l'item si la suppression échoue."""
        if product.square_variation_id:
            self.delete_catalog_object(product.square_variation_id)
        item_id = product.square_item_id
        if not item_id:
            return
        try:
            self.delete_catalog_object(item_id)
        except UpstreamChannelError as exc:
            LOGGER.warning("[POS] Suppression item %s impossible (%s), archivage", item_id, exc.message)
            self.archive_item(item_id)

    # Commandes & paiement ------------------------------------------------

    def retrieve_order(self, order_id: str) -> dict[str, Any]:
        data = self._request("GET", f"orders/{order_id}")
        order = (data or {}).get("order")
        if not order:
            raise UpstreamChannelError(self.channel.value, f"Commande {order_id} introuvable")
        return order

    def create_payment_link(
        self,
        *,
        lines: Sequence[tuple[str, Decimal]],
        metadata: Mapping[str, str],
        redirect_url: str,
        buyer_email: str | None = None,
        currency: str = "EUR",
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "idempotency_key": uuid.uuid4().hex,
            "order": {
                "location_id": self.location_id,
                "line_items": [
                    {
                        "name": name,
                        "quantity": "1",
                        "base_price_money": {"amount": _minor(amount), "currency": currency},
                    }
                    for name, amount in lines
                ],
                "metadata": dict(metadata),
            },
            "checkout_options": {"redirect_url": redirect_url},
        }
        if buyer_email:
            payload["pre_populated_data"] = {"buyer_email": buyer_email}
        data = self._request("POST", "online-checkout/payment-links", json=payload) or {}
        link = data.get("payment_link") or {}
        if not link.get("url"):
            raise UpstreamChannelError(self.channel.value, "Lien de paiement absent de la réponse")
        return link


__all__ = ["SQUARE_API_URLS", "SquareClient", "variation_refs"]
