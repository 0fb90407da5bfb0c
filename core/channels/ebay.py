"""Client eBay Inventory API (retrait des offres vendues ailleurs)."""

from __future__ import annotations

import base64
import logging
import threading
import time
from typing import Callable
from urllib.parse import quote

import requests

from core.channels.base import HttpChannelClient
from core.errors import UpstreamChannelError
from core.models import Channel, Product

LOGGER = logging.getLogger(__name__)

EBAY_API_URLS = {
    "sandbox": {
        "auth": "https://api.sandbox.ebay.com/identity/v1/oauth2/token",
        "api": "https://api.sandbox.ebay.com",
    },
    "production": {
        "auth": "https://api.ebay.com/identity/v1/oauth2/token",
        "api": "https://api.ebay.com",
    },
}
EBAY_SCOPES = " ".join(
    [
        "https://api.ebay.com/oauth/api_scope",
        "https://api.ebay.com/oauth/api_scope/sell.inventory",
        "https://api.ebay.com/oauth/api_scope/sell.fulfillment",
    ]
)
# Marge avant expiration en deçà de laquelle le token est renouvelé.
TOKEN_REFRESH_MARGIN_SECONDS = 60


class EbayClient(HttpChannelClient):
    channel = Channel.MARKETPLACE

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        *,
        environment: str = "sandbox",
        timeout: float = 10.0,
        session: requests.Session | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(timeout=timeout, session=session)
        urls = EBAY_API_URLS.get(environment, EBAY_API_URLS["sandbox"])
        self.base_url = urls["api"]
        self.auth_url = urls["auth"]
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self._monotonic = monotonic
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    def access_token(self) -> str:
        with self._token_lock:
            if self._token and self._token_expires_at - TOKEN_REFRESH_MARGIN_SECONDS > self._monotonic():
                return self._token
            credentials = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode("ascii")
            try:
                response = self.session.post(
                    self.auth_url,
                    headers={
                        "Content-Type": "application/x-www-form-urlencoded",
                        "Authorization": f"Basic {credentials}",
                    },
                    data={
                        "grant_type": "refresh_token",
                        "refresh_token": self.refresh_token,
                        "scope": EBAY_SCOPES,
                    },
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                raise UpstreamChannelError(self.channel.value, f"authentification: {exc}") from exc
            if response.status_code >= 400:
                raise UpstreamChannelError(self.channel.value, f"authentification HTTP {response.status_code}")
            payload = response.json()
            self._token = payload["access_token"]
            self._token_expires_at = self._monotonic() + float(payload.get("expires_in", 7200))
            LOGGER.info("[MARKETPLACE] Token renouvelé (expire dans %ss)", payload.get("expires_in"))
            return self._token

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token()}",
            "Content-Type": "application/json",
            "Content-Language": "fr-FR",
        }

    def withdraw_offer(self, offer_id: str) -> None:
        self._request("POST", f"sell/inventory/v1/offer/{quote(offer_id, safe='')}/withdraw", allow_not_found=True)

    def delete_inventory_item(self, sku: str) -> None:
        self._request("DELETE", f"sell/inventory/v1/inventory_item/{quote(sku, safe='')}", allow_not_found=True)

    def delist(self, product: Product) -> None:
        """Retire l'offre active puis supprime l'inventory item du SKU."""
        if product.ebay_offer_id:
            self.withdraw_offer(product.ebay_offer_id)
        sku = product.sku or product.id
        self.delete_inventory_item(sku)


__all__ = ["EBAY_API_URLS", "EbayClient"]
