"""Ingestion des webhooks de vente (caisse, marketplace, site).

Chaîne : signature -> décodage -> réservation de l'event id -> résolution du
produit -> disposition -> demandes de retrait multi-canal. Une ligne en échec
n'interrompt jamais les lignes voisines de la même livraison.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from core.channels.square import SquareClient, variation_refs
from core.clock import Clock, utcnow
from core.delisting import DelistRequest
from core.disposition import DispositionEngine
from core.errors import ConflictError, ConsistencyWarning, ReconciliationError, UpstreamChannelError
from core.models import Channel, DeliveryMode, Order, Product, SaleOrigin
from core.reference_snapshot import SnapshotProvider
from core.repositories.orders import OrderRepository
from core.repositories.products import ProductRepository
from core.repositories.webhook_events import ProcessedEventRepository
from core.sale_intents import (
    DecodedDelivery,
    IgnoredDelivery,
    SaleIntent,
    SaleIntentBatch,
    StorefrontPayment,
    parse_marketplace_notification,
    parse_pos_event,
    parse_storefront_payment,
    verify_signature,
)
from core.settings import AppSettings

LOGGER = logging.getLogger(__name__)


@dataclass
class IngestionOutcome:
    channel: Channel
    event_id: str | None = None
    processed: int = 0
    skipped: int = 0
    duplicate: bool = False
    ignored_reason: str | None = None
    delist: list[DelistRequest] = field(default_factory=list)

    def as_response(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"received": True, "processed": self.processed}
        if self.duplicate:
            payload["duplicate"] = True
        return payload


def _origin(channel: Channel) -> SaleOrigin:
    return SaleOrigin(channel.value)


def _decimal(raw: Any, default: Decimal | None = None) -> Decimal | None:
    if raw in (None, ""):
        return default
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        return default


class SaleIngestionService:
    def __init__(
        self,
        *,
        products: ProductRepository,
        orders: OrderRepository,
        events: ProcessedEventRepository,
        disposition: DispositionEngine,
        snapshots: SnapshotProvider,
        settings: AppSettings,
        square: SquareClient | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.products = products
        self.orders = orders
        self.events = events
        self.disposition = disposition
        self.snapshots = snapshots
        self.settings = settings
        self.square = square
        self.clock = clock

    # Entrées par canal ----------------------------------------------------

    def handle_pos(self, raw_body: bytes, signature: str | None) -> IngestionOutcome:
        verify_signature(raw_body, signature, self.settings.pos_webhook_secret)
        return self._dispatch(Channel.POS, parse_pos_event(raw_body))

    def handle_marketplace(self, raw_body: bytes, signature: str | None) -> IngestionOutcome:
        verify_signature(raw_body, signature, self.settings.marketplace_webhook_secret)
        return self._dispatch(Channel.MARKETPLACE, parse_marketplace_notification(raw_body))

    def handle_storefront(self, raw_body: bytes, signature: str | None) -> IngestionOutcome:
        verify_signature(raw_body, signature, self.settings.storefront_webhook_secret)
        return self._dispatch(Channel.STOREFRONT, parse_storefront_payment(raw_body))

    # Aiguillage -----------------------------------------------------------

    def _dispatch(self, channel: Channel, decoded: DecodedDelivery) -> IngestionOutcome:
        if isinstance(decoded, IgnoredDelivery):
            LOGGER.warning("[%s] Livraison ignorée: %s %s", channel.value, decoded.reason, decoded.details)
            return IngestionOutcome(channel, decoded.event_id, ignored_reason=decoded.reason)
        if not self._claim(channel, decoded.event_id):
            LOGGER.info("[%s] Évènement %s déjà traité, ignoré", channel.value, decoded.event_id)
            return IngestionOutcome(channel, decoded.event_id, duplicate=True)
        if isinstance(decoded, StorefrontPayment):
            outcome = self._process_storefront(decoded)
        else:
            outcome = self._process_batch(decoded)
        LOGGER.info(
            "[%s] Livraison %s : %d ligne(s) traitée(s), %d ignorée(s), %d retrait(s) à planifier",
            channel.value,
            outcome.event_id,
            outcome.processed,
            outcome.skipped,
            len(outcome.delist),
        )
        return outcome

    def _claim(self, channel: Channel, event_id: str | None) -> bool:
        if not event_id:
            return True
        now = self.clock()
        self.events.purge_before(now - timedelta(hours=self.settings.processed_event_ttl_hours))
        return self.events.claim(event_id, channel.value, received_at=now)

    def _process_batch(self, batch: SaleIntentBatch) -> IngestionOutcome:
        outcome = IngestionOutcome(batch.channel, batch.event_id, skipped=batch.skipped_lines)
        snapshot = self.snapshots.current()
        for intent in batch.intents:
            try:
                product = self.resolve_product(intent)
                if product is None:
                    LOGGER.warning(
                        "[%s] Produit introuvable pour %s (%s), ligne ignorée",
                        batch.channel.value,
                        intent.channel_object_id,
                        intent.name,
                    )
                    outcome.skipped += 1
                    continue
                result = self.disposition.apply(
                    product,
                    intent.quantity_sold,
                    unit_price=intent.unit_price,
                    origin=_origin(intent.channel),
                    snapshot=snapshot,
                    channel_order_id=intent.channel_order_id,
                )
            except ReconciliationError as exc:
                LOGGER.warning("[%s] Ligne %s ignorée: %s", batch.channel.value, intent.external_line_item_ref, exc.message)
                outcome.skipped += 1
                continue
            except Exception:
                LOGGER.exception("[%s] Erreur sur la ligne %s", batch.channel.value, intent.external_line_item_ref)
                outcome.skipped += 1
                continue
            outcome.processed += 1
            if result.delist_required:
                outcome.delist.append(DelistRequest(result.product, intent.channel))
        return outcome

    # Résolution produit ----------------------------------------------------

    def resolve_product(self, intent: SaleIntent) -> Product | None:
        if intent.channel is Channel.POS:
            return self._resolve_pos(intent.channel_object_id)
        if intent.channel is Channel.MARKETPLACE:
            return self._resolve_by_sku(intent.sku or intent.channel_object_id, allow_id_fallback=True)
        return self.products.get(intent.channel_object_id)

    def _resolve_pos(self, object_id: str) -> Product | None:
        """Variation -> objet catalogue -> item parent (relu dans Square) -> SKU de la variation."""
        product = self.products.find_one_by("square_variation_id", object_id) or self.products.find_one_by(
            "square_item_id", object_id
        )
        if product is not None or self.square is None:
            return product
        try:
            catalog_object = self.square.retrieve_catalog_object(object_id) or {}
        except UpstreamChannelError as exc:
            LOGGER.warning("[POS] Lecture catalogue %s impossible: %s", object_id, exc.message)
            return None
        parent_id, sku = variation_refs(catalog_object)
        if parent_id:
            product = self.products.find_one_by("square_item_id", parent_id)
            if product is not None:
                return product
        if sku:
            return self._resolve_by_sku(sku)
        return None

    def _resolve_by_sku(self, sku: str, *, allow_id_fallback: bool = False) -> Product | None:
        matches = list(self.products.find_by_sku(sku))
        if len(matches) > 1:
            raise ConsistencyWarning(f"SKU {sku} ambigu ({len(matches)} produits)")
        if matches:
            return matches[0]
        if allow_id_fallback:
            return self.products.get(sku)
        return None

    # Site (paiement) -------------------------------------------------------

    def _process_storefront(self, payment: StorefrontPayment) -> IngestionOutcome:
        outcome = IngestionOutcome(Channel.STOREFRONT, payment.event_id)
        # payment.created puis payment.updated portent des event ids distincts pour une même commande.
        if self.orders.get_by_channel_order(payment.order_id) is not None:
            LOGGER.info("[SITE] Commande %s déjà enregistrée, paiement %s ignoré", payment.order_id, payment.payment_id)
            outcome.duplicate = True
            return outcome
        if self.square is None:
            LOGGER.warning("[SITE] Client de paiement non configuré, commande %s non relue", payment.order_id)
            outcome.skipped += 1
            return outcome
        try:
            order = self.square.retrieve_order(payment.order_id)
        except UpstreamChannelError as exc:
            LOGGER.warning("[SITE] Commande %s illisible: %s", payment.order_id, exc.message)
            outcome.skipped += 1
            return outcome

        metadata: Mapping[str, str] = order.get("metadata") or {}
        product_id = metadata.get("productId")
        email = (metadata.get("clientEmail") or "").strip()
        if not product_id or not email:
            LOGGER.warning("[SITE] Commande %s sans productId ou email client", payment.order_id)
            outcome.skipped += 1
            return outcome
        product = self.products.get(product_id)
        if product is None:
            LOGGER.warning("[SITE] Produit %s introuvable (commande %s)", product_id, payment.order_id)
            outcome.skipped += 1
            return outcome

        now = self.clock()
        prix = _decimal(metadata.get("prixOriginal"), product.prix) or Decimal("0")
        remise = _decimal(metadata.get("remiseAppliquee"), Decimal("0"))
        frais = _decimal(metadata.get("fraisLivraison"), Decimal("0"))
        try:
            mode = DeliveryMode(metadata.get("modeLivraison") or DeliveryMode.PICKUP.value)
        except ValueError:
            mode = DeliveryMode.PICKUP
        try:
            self.orders.add(
                Order(
                    id="",
                    client_email=email,
                    client_nom=metadata.get("clientNom"),
                    produit_id=product.id,
                    prix=prix,
                    remise_appliquee=remise,
                    frais_livraison=frais,
                    prix_final=prix - remise + frais,
                    mode_livraison=mode,
                    date_commande=now,
                    channel_order_id=payment.order_id,
                    statut="payee",
                )
            )
        except ConflictError:
            LOGGER.info("[SITE] Commande %s enregistrée par une livraison concurrente", payment.order_id)
            outcome.duplicate = True
            return outcome
        try:
            result = self.disposition.apply(
                product,
                1,
                unit_price=prix - remise,
                origin=SaleOrigin.STOREFRONT,
                snapshot=self.snapshots.current(),
                channel_order_id=payment.order_id,
            )
        except ReconciliationError as exc:
            LOGGER.warning("[SITE] Commande %s non appliquée: %s", payment.order_id, exc.message)
            outcome.skipped += 1
            return outcome

        outcome.processed += 1
        if result.delist_required:
            outcome.delist.append(DelistRequest(result.product, Channel.STOREFRONT))
        return outcome


__all__ = ["IngestionOutcome", "SaleIngestionService"]
