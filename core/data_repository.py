"""Accès bas niveau au ledger store : engine partagé, lectures DataFrame, écritures."""

from __future__ import annotations

from functools import lru_cache
from typing import Iterator, Sequence, TypeVar

import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.sql.elements import ClauseElement, TextClause

from .database_url import get_database_url, normalize_database_url
from .settings import AppSettings

T = TypeVar("T")

# Taille maximale d'un lot d'écriture/suppression (limite historique du document store).
BATCH_SIZE = 500


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Retourne le moteur SQLAlchemy, mis en cache via functools."""
    settings = AppSettings.load()
    database_url = normalize_database_url(settings.database_url) if settings.database_url else get_database_url()
    # Certains dialectes (ex: sqlite memory) n'acceptent pas pool_size/max_overflow.
    kwargs: dict[str, object] = {"pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        kwargs.update(
            {
                "pool_size": max(1, settings.db_pool_size),
                "max_overflow": max(0, settings.db_pool_max_overflow),
            }
        )
    return create_engine(database_url, **kwargs)


def _normalize_statement(sql: str | ClauseElement) -> ClauseElement:
    if isinstance(sql, str):
        return text(sql)
    if isinstance(sql, ClauseElement):
        return sql
    raise TypeError("sql must be a string or SQLAlchemy ClauseElement")


def query_df(sql: str | ClauseElement, params=None, *, engine: Engine | None = None) -> pd.DataFrame:
    """Exécute une requête SELECT et retourne le résultat sous forme de DataFrame Pandas."""
    statement = _normalize_statement(sql)
    if params is not None and not isinstance(params, dict):
        raise TypeError("params must be a mapping when provided")

    if params is not None and isinstance(statement, TextClause):
        statement = statement.bindparams(**params)
        params = None

    eng = engine or get_engine()
    with eng.connect() as conn:
        result = conn.execute(statement, params or {})
        columns = list(result.keys())
        rows = result.fetchall()

    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([tuple(row) for row in rows], columns=columns)


def exec_sql(sql: str | ClauseElement, params=None, *, engine: Engine | None = None) -> int:
    """
    Exécute une requête d'écriture (INSERT, UPDATE, DELETE) et retourne le nombre de lignes touchées.
    Supporte l'exécution en lot si params est une liste.
    """
    statement = _normalize_statement(sql)
    eng = engine or get_engine()
    with eng.begin() as conn:
        if params is None:
            result = conn.execute(statement)
        else:
            result = conn.execute(statement, params)
        return int(result.rowcount or 0)


def chunked(items: Sequence[T], size: int = BATCH_SIZE) -> Iterator[Sequence[T]]:
    """Découpe une séquence en lots de ``size`` éléments au plus."""
    if size <= 0:
        raise ValueError("size must be positive")
    for start in range(0, len(items), size):
        yield items[start : start + size]


__all__ = ["BATCH_SIZE", "chunked", "exec_sql", "get_engine", "query_df"]
