"""
Processed webhook events - claim ledger protecting the disposition engine
from at-least-once redeliveries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from sqlalchemy import exc as sa_exc

from core.repositories.base import SqlRepository
from core.schema import webhook_events


class ProcessedEventRepository(Protocol):
    def claim(self, event_id: str, channel: str, *, received_at: datetime) -> bool:
        ...

    def purge_before(self, cutoff: datetime) -> int:
        ...


class SqlProcessedEventRepository(SqlRepository):
    """SQLAlchemy implementation of ProcessedEventRepository."""

    def claim(self, event_id: str, channel: str, *, received_at: datetime) -> bool:
        """Enregistre l'évènement ; False s'il a déjà été traité."""
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    webhook_events.insert().values(event_id=event_id, channel=channel, received_at=received_at)
                )
        except sa_exc.IntegrityError:
            return False
        return True

    def purge_before(self, cutoff: datetime) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(webhook_events.delete().where(webhook_events.c.received_at < cutoff))
        return int(result.rowcount or 0)


__all__ = ["ProcessedEventRepository", "SqlProcessedEventRepository"]
