"""Décodage des webhooks entrants en intentions de vente canoniques.

Chaque canal livre son propre format JSON. Les payloads sont validés par des
modèles pydantic à la frontière puis réduits à une union fermée :

- ``SaleIntentBatch`` : lignes vendues à appliquer au stock ;
- ``StorefrontPayment`` : paiement du site, commande à relire chez le prestataire ;
- ``IgnoredDelivery`` : livraison acquittée sans effet (type inconnu, état non final...).

Tout payload non conforme lève ``PayloadError`` ; seul un défaut de signature
lève ``AuthError``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.errors import AuthError, PayloadError
from core.models import Channel

LOGGER = logging.getLogger(__name__)

POS_EVENT_TYPES = frozenset({"order.created", "order.updated"})
STOREFRONT_EVENT_TYPES = frozenset({"payment.created", "payment.updated"})
MARKETPLACE_SALE_TOPICS = frozenset({"MARKETPLACE.ORDER.PURCHASE", "ITEM_SOLD"})
SIGNATURE_HEADERS = ("x-signature", "x-square-hmacsha256-signature")

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class SaleIntent:
    """Ligne vendue, indépendante du canal d'origine."""

    channel: Channel
    external_line_item_ref: str
    channel_object_id: str
    quantity_sold: int
    total_price_minor: int
    channel_order_id: str | None = None
    sku: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if self.quantity_sold < 1:
            raise PayloadError(f"Quantité vendue invalide: {self.quantity_sold}")
        if self.total_price_minor < 0:
            raise PayloadError(f"Montant négatif: {self.total_price_minor}")

    @property
    def unit_price_minor(self) -> int:
        return int((Decimal(self.total_price_minor) / self.quantity_sold).to_integral_value(ROUND_HALF_UP))

    @property
    def unit_price(self) -> Decimal:
        """Prix réalisé par unité, en unité monétaire (totalPrice / quantitySold)."""
        return (Decimal(self.total_price_minor) / 100 / self.quantity_sold).quantize(_CENT, ROUND_HALF_UP)


@dataclass(frozen=True)
class SaleIntentBatch:
    channel: Channel
    event_id: str | None
    channel_order_id: str | None
    intents: tuple[SaleIntent, ...] = ()
    skipped_lines: int = 0


@dataclass(frozen=True)
class StorefrontPayment:
    event_id: str | None
    payment_id: str | None
    order_id: str


@dataclass(frozen=True)
class IgnoredDelivery:
    channel: Channel
    event_id: str | None
    reason: str
    details: dict[str, Any] = field(default_factory=dict)


DecodedDelivery = Union[SaleIntentBatch, StorefrontPayment, IgnoredDelivery]


# ---------------------------------------------------------------------------
# Signature & handshake
# ---------------------------------------------------------------------------


def compute_signature(raw_body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(raw_body: bytes, signature: str | None, secret: str | None) -> None:
    """HMAC-SHA256 base64 du corps brut ; ne vérifie rien sans secret configuré."""
    if not secret:
        return
    if not signature:
        raise AuthError("Signature webhook manquante")
    expected = compute_signature(raw_body, secret)
    if not hmac.compare_digest(expected, signature.strip()):
        raise AuthError("Signature webhook invalide")


def marketplace_challenge_response(challenge_code: str, verification_token: str, endpoint_url: str) -> str:
    return hashlib.sha256((challenge_code + verification_token + endpoint_url).encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Modèles de frontière
# ---------------------------------------------------------------------------


class _Loose(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Money(_Loose):
    amount: int = 0
    currency: str | None = None


class PosLineItem(_Loose):
    uid: str | None = None
    name: str | None = None
    quantity: int = 1
    catalog_object_id: str | None = None
    variation_name: str | None = None
    total_money: Money | None = None
    base_price_money: Money | None = None

    @field_validator("quantity", mode="before")
    @classmethod
    def _parse_quantity(cls, value: Any) -> int:
        if value in (None, ""):
            return 1
        try:
            return int(Decimal(str(value)))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"quantité illisible: {value!r}") from exc


class PosOrder(_Loose):
    id: str
    state: str | None = None
    metadata: dict[str, str] | None = None
    # Lignes validées une à une : une ligne illisible n'invalide pas la commande.
    line_items: list[Any] = Field(default_factory=list)


class StorefrontPaymentModel(_Loose):
    id: str | None = None
    status: str | None = None
    order_id: str | None = None


class PosEventObject(_Loose):
    order: PosOrder | None = None
    payment: StorefrontPaymentModel | None = None


class PosEventData(_Loose):
    id: str | None = None
    object: PosEventObject | None = None


class PosEvent(_Loose):
    event_id: str | None = None
    type: str
    data: PosEventData | None = None


class MarketplaceAmount(_Loose):
    value: str | float | None = None
    currency: str | None = None


class MarketplaceLineItem(_Loose):
    line_item_id: str | None = Field(default=None, alias="lineItemId")
    sku: str | None = None
    sku_upper: str | None = Field(default=None, alias="SKU")
    title: str | None = None
    quantity: int = 1
    total: MarketplaceAmount | None = None
    price: MarketplaceAmount | None = None

    @property
    def resolved_sku(self) -> str | None:
        return (self.sku or self.sku_upper or "").strip() or None


class MarketplaceResource(_Loose):
    order_id: str | None = Field(default=None, alias="orderId")
    line_items: list[Any] = Field(default_factory=list, alias="lineItems")


class MarketplaceMetadata(_Loose):
    topic: str | None = None


class MarketplaceNotificationModel(_Loose):
    notification_id: str | None = Field(default=None, alias="notificationId")
    topic: str | None = None
    metadata: MarketplaceMetadata | None = None
    resource: MarketplaceResource | None = None
    notification: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Décodeurs
# ---------------------------------------------------------------------------


def _load_json(raw_body: bytes | str) -> Any:
    try:
        return json.loads(raw_body)
    except (TypeError, ValueError) as exc:
        raise PayloadError(f"Corps JSON illisible: {exc}") from exc


def _validate(model: type[BaseModel], payload: Any) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise PayloadError(f"Payload non conforme ({model.__name__}): {exc.error_count()} erreur(s)") from exc


def _to_minor(value: str | float | None) -> int:
    if value in (None, ""):
        return 0
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise PayloadError(f"Montant illisible: {value!r}") from exc
    return int((amount * 100).to_integral_value(ROUND_HALF_UP))


def _line_item(model: type[BaseModel], raw: Any, tag: str) -> Any:
    """Valide une ligne isolée ; ``None`` (et un warning) si elle est illisible."""
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        LOGGER.warning("[%s] Ligne illisible ignorée (%s erreur(s)): %r", tag, exc.error_count(), raw)
        return None


def parse_pos_event(raw_body: bytes | str) -> DecodedDelivery:
    event = _validate(PosEvent, _load_json(raw_body))
    if event.type not in POS_EVENT_TYPES:
        return IgnoredDelivery(Channel.POS, event.event_id, "type d'évènement non géré", {"type": event.type})

    order = event.data.object.order if event.data and event.data.object else None
    if order is None:
        return IgnoredDelivery(Channel.POS, event.event_id, "pas de commande dans l'évènement")
    if order.state != "COMPLETED":
        return IgnoredDelivery(Channel.POS, event.event_id, "commande non complétée", {"state": order.state})
    if order.metadata and order.metadata.get("productId"):
        # Commande du site : traitée par le webhook de paiement.
        return IgnoredDelivery(Channel.POS, event.event_id, "commande en ligne", {"order_id": order.id})

    intents: list[SaleIntent] = []
    skipped = 0
    for index, raw_item in enumerate(order.line_items):
        item = _line_item(PosLineItem, raw_item, "POS")
        if item is None:
            skipped += 1
            continue
        if not item.catalog_object_id:
            LOGGER.warning("[POS] Article sans catalog_object_id ignoré: %s", item.name)
            skipped += 1
            continue
        if item.quantity < 1:
            LOGGER.warning("[POS] Quantité invalide (%s) pour %s", item.quantity, item.catalog_object_id)
            skipped += 1
            continue
        money = item.total_money or item.base_price_money
        try:
            intent = SaleIntent(
                channel=Channel.POS,
                external_line_item_ref=item.uid or f"{order.id}:{index}",
                channel_object_id=item.catalog_object_id,
                quantity_sold=item.quantity,
                total_price_minor=money.amount if money else 0,
                channel_order_id=order.id,
                name=item.name,
            )
        except PayloadError as exc:
            LOGGER.warning("[POS] Ligne %s ignorée: %s", item.catalog_object_id, exc)
            skipped += 1
            continue
        intents.append(intent)
    return SaleIntentBatch(Channel.POS, event.event_id, order.id, tuple(intents), skipped)


def parse_storefront_payment(raw_body: bytes | str) -> DecodedDelivery:
    event = _validate(PosEvent, _load_json(raw_body))
    if event.type not in STOREFRONT_EVENT_TYPES:
        return IgnoredDelivery(Channel.STOREFRONT, event.event_id, "type d'évènement non géré", {"type": event.type})

    payment = event.data.object.payment if event.data and event.data.object else None
    if payment is None or payment.status != "COMPLETED":
        status = payment.status if payment else None
        return IgnoredDelivery(Channel.STOREFRONT, event.event_id, "paiement non complété", {"status": status})
    if not payment.order_id:
        return IgnoredDelivery(Channel.STOREFRONT, event.event_id, "paiement sans order_id")
    return StorefrontPayment(event_id=event.event_id, payment_id=payment.id, order_id=payment.order_id)


def parse_marketplace_notification(payload: Any) -> DecodedDelivery:
    if isinstance(payload, (bytes, str)):
        payload = _load_json(payload)
    notification = _validate(MarketplaceNotificationModel, payload)
    event_id = notification.notification_id or (notification.notification or {}).get("notificationId")
    topic = (notification.metadata.topic if notification.metadata else None) or notification.topic
    if topic not in MARKETPLACE_SALE_TOPICS:
        return IgnoredDelivery(Channel.MARKETPLACE, event_id, "topic non géré", {"topic": topic})

    resource = notification.resource
    if resource is None:
        # Certaines notifications portent les lignes à la racine.
        resource = _validate(MarketplaceResource, payload)

    intents: list[SaleIntent] = []
    skipped = 0
    for index, raw_item in enumerate(resource.line_items):
        item = _line_item(MarketplaceLineItem, raw_item, "MARKETPLACE")
        if item is None:
            skipped += 1
            continue
        sku = item.resolved_sku
        if not sku:
            LOGGER.warning("[MARKETPLACE] Ligne sans SKU ignorée")
            skipped += 1
            continue
        if item.quantity < 1:
            LOGGER.warning("[MARKETPLACE] Quantité invalide (%s) pour %s", item.quantity, sku)
            skipped += 1
            continue
        amount = item.total.value if item.total and item.total.value not in (None, "") else None
        if amount is None and item.price is not None:
            amount = item.price.value
        try:
            intent = SaleIntent(
                channel=Channel.MARKETPLACE,
                external_line_item_ref=item.line_item_id or f"{resource.order_id or event_id}:{index}",
                channel_object_id=sku,
                quantity_sold=item.quantity,
                total_price_minor=_to_minor(amount),
                channel_order_id=resource.order_id,
                sku=sku,
                name=item.title,
            )
        except PayloadError as exc:
            LOGGER.warning("[MARKETPLACE] Ligne %s ignorée: %s", sku, exc)
            skipped += 1
            continue
        intents.append(intent)
    return SaleIntentBatch(Channel.MARKETPLACE, event_id, resource.order_id, tuple(intents), skipped)


__all__ = [
    "DecodedDelivery",
    "IgnoredDelivery",
    "SIGNATURE_HEADERS",
    "SaleIntent",
    "SaleIntentBatch",
    "StorefrontPayment",
    "compute_signature",
    "marketplace_challenge_response",
    "parse_marketplace_notification",
    "parse_pos_event",
    "parse_storefront_payment",
    "verify_signature",
]
