"""
Depositor Repository - Data access for the deposantes registry.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from sqlalchemy import select

from core.models import Depositor, StockType
from core.repositories.base import SqlRepository, new_id
from core.schema import deposantes


class DepositorRepository(Protocol):
    def list_all(self) -> Sequence[Depositor]:
        ...


class SqlDepositorRepository(SqlRepository):
    """SQLAlchemy implementation of DepositorRepository."""

    def list_all(self) -> list[Depositor]:
        stmt = select(deposantes).order_by(deposantes.c.trigramme)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [
            Depositor(
                trigramme=str(row["trigramme"]).upper(),
                stock_type=_stock_type(row["stock_type"]),
                nom=row["nom"],
                email=row["email"],
            )
            for row in rows
        ]

    def add(self, depositor: Depositor) -> Depositor:
        with self.engine.begin() as conn:
            conn.execute(
                deposantes.insert().values(
                    id=new_id(),
                    trigramme=depositor.trigramme.upper(),
                    nom=depositor.nom,
                    email=depositor.email,
                    stock_type=depositor.stock_type.value,
                )
            )
        return depositor


def _stock_type(raw: str | None) -> StockType:
    try:
        return StockType(raw or StockType.UNIQUE.value)
    except ValueError:
        # Valeur inconnue dans le registre : politique standard.
        return StockType.UNIQUE


__all__ = ["DepositorRepository", "SqlDepositorRepository"]
