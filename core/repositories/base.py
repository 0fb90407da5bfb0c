"""
Base Repository - Generic repository interfaces using Protocol.

Implements the Repository pattern for clean separation between
business logic and the ledger store.
"""

from __future__ import annotations

import uuid
from abc import abstractmethod
from typing import Any, Mapping, Protocol, TypeVar

from sqlalchemy.engine import Engine

from core.data_repository import get_engine

T = TypeVar("T", covariant=True)


class ReadOnlyRepository(Protocol[T]):
    """Read-only repository interface (keyed get)."""

    @abstractmethod
    def get(self, entity_id: str) -> T | None:
        """Get entity by key."""
        ...


class SqlRepository:
    """Socle commun des implémentations SQLAlchemy : engine injecté ou partagé."""

    def __init__(self, engine: Engine | None = None):
        self._engine = engine or get_engine()

    @property
    def engine(self) -> Engine:
        return self._engine


def new_id() -> str:
    """Clé documentaire opaque pour les nouvelles lignes."""
    return uuid.uuid4().hex


def enum_values(values: Mapping[str, Any]) -> dict[str, Any]:
    """Remplace les membres d'Enum par leur valeur avant écriture."""
    return {key: getattr(value, "value", value) for key, value in values.items()}
