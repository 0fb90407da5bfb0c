"""Construction de l'URL SQLAlchemy du ledger store à partir de l'environnement."""

from __future__ import annotations

import os
from urllib.parse import quote_plus

DEFAULT_DATABASE = "inventaire_multicanal"

# Schémas courts exposés par certains hébergeurs PostgreSQL.
_SCHEME_ALIASES = {
    "postgres://": "postgresql+psycopg2://",
    "postgresql://": "postgresql+psycopg2://",
}


def _first_env(*names: str) -> str | None:
    """Première variable non vide parmi ``names``."""
    for name in names:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


def normalize_database_url(url: str) -> str:
    for prefix, replacement in _SCHEME_ALIASES.items():
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


def get_database_url() -> str:
    """``DATABASE_URL`` s'il est défini, sinon URL psycopg2 assemblée depuis ``POSTGRES_*`` / ``DB_*``."""
    explicit_url = _first_env("DATABASE_URL")
    if explicit_url:
        return normalize_database_url(explicit_url)

    user = quote_plus(_first_env("POSTGRES_USER", "DB_USER") or "postgres")
    password = _first_env("POSTGRES_PASSWORD", "DB_PASSWORD")
    auth = f"{user}:{quote_plus(password)}" if password else user
    host = _first_env("DB_HOST", "POSTGRES_HOST") or "localhost"
    port = _first_env("DB_PORT", "POSTGRES_PORT") or "5432"
    database = _first_env("POSTGRES_DB", "DB_NAME") or DEFAULT_DATABASE
    return f"postgresql+psycopg2://{auth}@{host}:{port}/{database}"


__all__ = ["get_database_url", "normalize_database_url"]
