"""
Sale Repository - Data access for the ventes ledger.

Sale rows are append-only: only attribution fields are rewritten, and
deletions go through explicit reversal or the dedupe sweep.
"""

from __future__ import annotations

from dataclasses import asdict, fields
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Protocol, Sequence

import pandas as pd
from sqlalchemy import select

from core.clock import utcnow
from core.data_repository import BATCH_SIZE, chunked, query_df
from core.models import Sale, SaleOrigin
from core.repositories.base import ReadOnlyRepository, SqlRepository, enum_values, new_id
from core.schema import ventes

_SALE_FIELDS = {f.name for f in fields(Sale)}
ATTRIBUTION_FIELDS = frozenset(
    {
        "produit_id",
        "sku",
        "nom",
        "categorie",
        "marque",
        "chineur",
        "chineur_uid",
        "trigramme",
        "prix_initial",
        "prix_vente_reel",
        "attribue",
        "attribue_at",
    }
)


def import_key(transaction_id: str, article: str, price: Decimal | float | None) -> str:
    """Clé d'unicité d'une ligne importée : transaction + article + prix."""
    amount = "" if price is None else f"{Decimal(str(price)).quantize(Decimal('0.01'))}"
    return f"{transaction_id}-{article}-{amount}"


class SaleRepository(ReadOnlyRepository[Sale], Protocol):
    def add_many(self, sales: Sequence[Sale]) -> list[Sale]:
        ...

    def update_attribution(self, sale_id: str, changes: Mapping[str, Any]) -> bool:
        ...

    def delete(self, sale_id: str) -> bool:
        ...

    def delete_many(self, sale_ids: Sequence[str]) -> int:
        ...

    def list_sales(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        attribue: bool | None = None,
    ) -> list[Sale]:
        ...

    def ledger_frame(self, *, start: datetime | None = None, end: datetime | None = None) -> pd.DataFrame:
        ...

    def import_keys(self) -> set[str]:
        ...


class SqlSaleRepository(SqlRepository):
    """SQLAlchemy implementation of SaleRepository."""

    def get(self, entity_id: str) -> Sale | None:
        stmt = select(ventes).where(ventes.c.id == entity_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return _row_to_sale(row) if row else None

    def add_many(self, sales: Sequence[Sale]) -> list[Sale]:
        now = utcnow()
        for sale in sales:
            sale.id = sale.id or new_id()
            sale.created_at = sale.created_at or now
        for batch in chunked(list(sales), BATCH_SIZE):
            with self.engine.begin() as conn:
                conn.execute(ventes.insert(), [enum_values(asdict(sale)) for sale in batch])
        return list(sales)

    def update_attribution(self, sale_id: str, changes: Mapping[str, Any]) -> bool:
        forbidden = set(changes) - ATTRIBUTION_FIELDS
        if forbidden:
            raise ValueError(f"Champs de vente immuables: {sorted(forbidden)}")
        stmt = ventes.update().where(ventes.c.id == sale_id).values(**enum_values(changes))
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount == 1

    def delete(self, sale_id: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(ventes.delete().where(ventes.c.id == sale_id))
        return result.rowcount == 1

    def delete_many(self, sale_ids: Sequence[str]) -> int:
        deleted = 0
        for batch in chunked(list(sale_ids), BATCH_SIZE):
            with self.engine.begin() as conn:
                result = conn.execute(ventes.delete().where(ventes.c.id.in_(list(batch))))
                deleted += int(result.rowcount or 0)
        return deleted

    def list_sales(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        attribue: bool | None = None,
    ) -> list[Sale]:
        stmt = select(ventes)
        if start is not None:
            stmt = stmt.where(ventes.c.date_vente >= start)
        if end is not None:
            stmt = stmt.where(ventes.c.date_vente < end)
        if attribue is not None:
            stmt = stmt.where(ventes.c.attribue == attribue)
        stmt = stmt.order_by(ventes.c.date_vente.desc(), ventes.c.created_at.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [_row_to_sale(row) for row in rows]

    def ledger_frame(self, *, start: datetime | None = None, end: datetime | None = None) -> pd.DataFrame:
        """Projection minimale du ledger pour les traitements tabulaires."""
        stmt = select(
            ventes.c.id,
            ventes.c.produit_id,
            ventes.c.nom,
            ventes.c.sku,
            ventes.c.prix_vente_reel,
            ventes.c.date_vente,
            ventes.c.attribue,
            ventes.c.created_at,
        )
        if start is not None:
            stmt = stmt.where(ventes.c.date_vente >= start)
        if end is not None:
            stmt = stmt.where(ventes.c.date_vente < end)
        return query_df(stmt, engine=self.engine)

    def import_keys(self) -> set[str]:
        """Clés des lignes déjà importées ; ``nom_source`` conserve l'article brut, vide compris."""
        stmt = select(ventes.c.transaction_id, ventes.c.nom_source, ventes.c.prix_vente_reel).where(
            ventes.c.transaction_id.is_not(None)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).all()
        return {import_key(row.transaction_id, row.nom_source or "", row.prix_vente_reel) for row in rows}


def _row_to_sale(row: Mapping[str, Any]) -> Sale:
    data = {key: row[key] for key in _SALE_FIELDS if key in row}
    data["source"] = SaleOrigin(data["source"])
    data["attribue"] = bool(data.get("attribue"))
    return Sale(**data)


__all__ = ["ATTRIBUTION_FIELDS", "SaleRepository", "SqlSaleRepository", "import_key"]
