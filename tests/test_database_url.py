from core.database_url import get_database_url, normalize_database_url

_VARS = (
    "DATABASE_URL",
    "POSTGRES_USER",
    "DB_USER",
    "POSTGRES_PASSWORD",
    "DB_PASSWORD",
    "DB_HOST",
    "POSTGRES_HOST",
    "DB_PORT",
    "POSTGRES_PORT",
    "POSTGRES_DB",
    "DB_NAME",
)


def _clear(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_explicit_url_is_normalized(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db:5432/ledger")
    assert get_database_url() == "postgresql+psycopg2://u:p@db:5432/ledger"


def test_url_assembled_from_parts(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("POSTGRES_USER", "boutique")
    monkeypatch.setenv("POSTGRES_PASSWORD", "p@ss word")
    monkeypatch.setenv("DB_HOST", "pg")
    monkeypatch.setenv("POSTGRES_DB", "ventes")
    assert get_database_url() == "postgresql+psycopg2://boutique:p%40ss+word@pg:5432/ventes"


def test_defaults(monkeypatch):
    _clear(monkeypatch)
    assert get_database_url() == "postgresql+psycopg2://postgres@localhost:5432/inventaire_multicanal"


def test_sqlite_url_untouched():
    assert normalize_database_url("sqlite:///tmp/x.db") == "sqlite:///tmp/x.db"
