"""Socle des clients HTTP de canal : session requests, timeout, erreurs normalisées."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import requests

from core.errors import UpstreamChannelError
from core.models import Channel, Product

LOGGER = logging.getLogger(__name__)


class ChannelClient(Protocol):
    channel: Channel

    def delist(self, product: Product) -> None:
        """Retire ou archive le listing du produit sur ce canal."""
        ...


class HttpChannelClient:
    """Appels JSON authentifiés ; toute erreur réseau ou HTTP devient ``UpstreamChannelError``."""

    channel: Channel
    base_url: str = ""

    def __init__(self, *, timeout: float = 10.0, session: requests.Session | None = None) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "Accept": "application/json"}

    def _get_api_endpoint(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Any = None,
        allow_not_found: bool = False,
    ) -> dict[str, Any] | None:
        url = self._get_api_endpoint(endpoint)
        try:
            response = self.session.request(
                method,
                url,
                headers=self._get_headers(),
                json=json,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamChannelError(self.channel.value, f"{method} {endpoint}: {exc}") from exc

        if response.status_code == 404 and allow_not_found:
            LOGGER.info("[%s] %s %s : ressource absente", self.channel.value, method, endpoint)
            return None
        if response.status_code >= 400:
            raise UpstreamChannelError(
                self.channel.value,
                f"{method} {endpoint} -> HTTP {response.status_code}: {response.text[:300]}",
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}


__all__ = ["ChannelClient", "HttpChannelClient"]
