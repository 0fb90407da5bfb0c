"""Retrait multi-canal d'un produit épuisé.

Exécuté après l'écriture de stock : un échec de canal est journalisé, jamais
propagé, et n'annule rien. Pas de file de reprise, la correction passe par
une action manuelle ou une resynchronisation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from core.channels.base import ChannelClient
from core.errors import UpstreamChannelError
from core.models import Channel, Product

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DelistRequest:
    """Retrait à exécuter hors du chemin critique de l'écriture de stock."""

    product: Product
    origin: Channel | None


@dataclass
class DelistingReport:
    product_id: str
    delisted: list[Channel] = field(default_factory=list)
    failed: dict[Channel, str] = field(default_factory=dict)
    skipped: list[Channel] = field(default_factory=list)


class DelistingDispatcher:
    def __init__(self, clients: Mapping[Channel, ChannelClient] | None = None) -> None:
        self.clients = dict(clients or {})

    def dispatch(self, product: Product, origin: Channel | None) -> DelistingReport:
        """Retire ``product`` de tous les canaux sauf ``origin`` où il a un listing."""
        report = DelistingReport(product_id=product.id)
        if product.quantite != 0 or not product.vendu:
            LOGGER.debug("Produit %s encore disponible, pas de retrait", product.id)
            return report

        for channel in Channel:
            if channel is origin:
                continue
            if not product.listing_ids(channel):
                continue
            client = self.clients.get(channel)
            if client is None:
                LOGGER.warning("Canal %s non configuré, retrait de %s ignoré", channel.value, product.id)
                report.skipped.append(channel)
                continue
            try:
                client.delist(product)
            except UpstreamChannelError as exc:
                LOGGER.warning("Retrait %s de %s en échec: %s", channel.value, product.id, exc.message)
                report.failed[channel] = exc.message
            except Exception as exc:  # pragma: no cover - client tiers imprévisible
                LOGGER.exception("Erreur inattendue au retrait %s de %s", channel.value, product.id)
                report.failed[channel] = str(exc)
            else:
                LOGGER.info("Produit %s retiré de %s", product.id, channel.value)
                report.delisted.append(channel)
        return report

    def dispatch_all(self, requests: Iterable[DelistRequest]) -> list[DelistingReport]:
        return [self.dispatch(request.product, request.origin) for request in requests]


__all__ = ["DelistRequest", "DelistingDispatcher", "DelistingReport"]
