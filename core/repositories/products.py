"""
Product Repository - Data access for the produits table.

Every write is a conditional update on ``version`` so that two concurrent
sale events cannot silently overwrite each other's quantity.
"""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import asdict, fields
from typing import Any, Mapping, Protocol, Sequence

from sqlalchemy import func, select

from core.clock import utcnow
from core.models import Product, ProductStatus
from core.repositories.base import ReadOnlyRepository, SqlRepository, enum_values, new_id
from core.schema import produits

_PRODUCT_FIELDS = {f.name for f in fields(Product)}

# Colonnes autorisées pour résoudre un produit depuis un identifiant de canal.
LOOKUP_COLUMNS = ("square_variation_id", "square_item_id", "sku", "id")


def normalize_sku(raw: str | None) -> str:
    return re.sub(r"\s+", "", raw or "").lower()


class ProductRepository(ReadOnlyRepository[Product], Protocol):
    def find_one_by(self, column: str, value: str) -> Product | None:
        ...

    def find_by_sku(self, sku: str) -> Sequence[Product]:
        ...

    def sku_index(self) -> dict[str, list[Product]]:
        ...

    def add(self, product: Product) -> Product:
        ...

    def update(self, product_id: str, changes: Mapping[str, Any], *, expected_version: int) -> bool:
        ...


class SqlProductRepository(SqlRepository):
    """SQLAlchemy implementation of ProductRepository."""

    def get(self, entity_id: str) -> Product | None:
        return self.find_one_by("id", entity_id)

    def find_one_by(self, column: str, value: str) -> Product | None:
        if column not in LOOKUP_COLUMNS:
            raise ValueError(f"Colonne de recherche non supportée: {column}")
        if not value:
            return None
        stmt = select(produits).where(produits.c[column] == value).limit(1)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return _row_to_product(row) if row else None

    def find_by_sku(self, sku: str) -> list[Product]:
        wanted = normalize_sku(sku)
        if not wanted:
            return []
        stmt = select(produits).where(func.lower(func.replace(produits.c.sku, " ", "")) == wanted)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [_row_to_product(row) for row in rows]

    def sku_index(self) -> dict[str, list[Product]]:
        """Index SKU normalisé -> produits (plusieurs entrées = ambiguïté)."""
        stmt = select(produits).where(produits.c.sku.is_not(None))
        index: dict[str, list[Product]] = defaultdict(list)
        with self.engine.connect() as conn:
            for row in conn.execute(stmt).mappings():
                product = _row_to_product(row)
                index[normalize_sku(product.sku)].append(product)
        return dict(index)

    def add(self, product: Product) -> Product:
        now = utcnow()
        product.id = product.id or new_id()
        product.created_at = product.created_at or now
        product.updated_at = product.updated_at or now
        with self.engine.begin() as conn:
            conn.execute(produits.insert().values(**enum_values(asdict(product))))
        return product

    def update(self, product_id: str, changes: Mapping[str, Any], *, expected_version: int) -> bool:
        """Écrit ``changes`` si la version lue est toujours courante ; False sinon."""
        forbidden = (set(changes) - _PRODUCT_FIELDS) | ({"id", "version"} & set(changes))
        if forbidden:
            raise ValueError(f"Champs produit non modifiables: {sorted(forbidden)}")
        stmt = (
            produits.update()
            .where(produits.c.id == product_id, produits.c.version == expected_version)
            .values(**enum_values(changes), version=produits.c.version + 1, updated_at=utcnow())
        )
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount == 1


def _row_to_product(row: Mapping[str, Any]) -> Product:
    data = {key: row[key] for key in _PRODUCT_FIELDS if key in row}
    data["statut"] = ProductStatus(data.get("statut") or ProductStatus.ACTIVE.value)
    data["vendu"] = bool(data.get("vendu"))
    data["quantite"] = int(data.get("quantite") or 0)
    data["version"] = int(data.get("version") or 1)
    return Product(**data)


__all__ = ["LOOKUP_COLUMNS", "ProductRepository", "SqlProductRepository", "normalize_sku"]
