"""
Order Repository - Data access for storefront commandes.
"""

from __future__ import annotations

from dataclasses import asdict, fields
from datetime import datetime
from typing import Any, Mapping, Protocol, Sequence

from sqlalchemy import exc as sa_exc
from sqlalchemy import select

from core.clock import utcnow
from core.errors import ConflictError
from core.models import DeliveryMode, Order
from core.repositories.base import SqlRepository, enum_values, new_id
from core.schema import commandes

_ORDER_FIELDS = {f.name for f in fields(Order)}

CANCELLED_STATUSES = ("annulee", "remboursee")


class OrderRepository(Protocol):
    def add(self, order: Order) -> Order:
        ...

    def get_by_channel_order(self, channel_order_id: str) -> Order | None:
        ...

    def list_for_buyer(self, email: str, *, start: datetime, end: datetime) -> Sequence[Order]:
        ...


class SqlOrderRepository(SqlRepository):
    """SQLAlchemy implementation of OrderRepository."""

    def add(self, order: Order) -> Order:
        order.id = order.id or new_id()
        order.created_at = order.created_at or utcnow()
        order.client_email = order.client_email.strip().lower()
        try:
            with self.engine.begin() as conn:
                conn.execute(commandes.insert().values(**enum_values(asdict(order))))
        except sa_exc.IntegrityError as exc:
            raise ConflictError(f"Commande {order.channel_order_id} déjà enregistrée") from exc
        return order

    def get_by_channel_order(self, channel_order_id: str) -> Order | None:
        stmt = select(commandes).where(commandes.c.channel_order_id == channel_order_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return _row_to_order(row) if row is not None else None

    def list_for_buyer(self, email: str, *, start: datetime, end: datetime) -> list[Order]:
        """Commandes non annulées d'un client dont la date tombe dans ``[start, end)``."""
        stmt = (
            select(commandes)
            .where(
                commandes.c.client_email == email.strip().lower(),
                commandes.c.date_commande >= start,
                commandes.c.date_commande < end,
                commandes.c.statut.not_in(CANCELLED_STATUSES),
            )
            .order_by(commandes.c.date_commande)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [_row_to_order(row) for row in rows]


def _row_to_order(row: Mapping[str, Any]) -> Order:
    data = {key: row[key] for key in _ORDER_FIELDS if key in row}
    if data.get("mode_livraison"):
        data["mode_livraison"] = DeliveryMode(data["mode_livraison"])
    return Order(**data)


__all__ = ["CANCELLED_STATUSES", "OrderRepository", "SqlOrderRepository"]
