"""Shared pytest fixtures: ledger store SQLite, dépôts et faux clients de canal."""

from __future__ import annotations

import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.disposition import DispositionEngine  # noqa: E402
from core.models import Channel, Depositor, Product, StockType  # noqa: E402
from core.reference_snapshot import SnapshotProvider  # noqa: E402
from core.repositories import (  # noqa: E402
    SqlDepositorRepository,
    SqlOrderRepository,
    SqlProcessedEventRepository,
    SqlProductRepository,
    SqlSaleRepository,
)
from core.schema import metadata  # noqa: E402
from core.settings import AppSettings  # noqa: E402

# 2025-03-14 10:00 UTC = 11:00 à Paris
FIXED_NOW = datetime(2025, 3, 14, 10, 0, 0)


class FixedClock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeChannelClient:
    """Client de canal qui enregistre les retraits demandés."""

    def __init__(self, channel: Channel, error: Exception | None = None):
        self.channel = channel
        self.error = error
        self.delisted: list[str] = []

    def delist(self, product: Product) -> None:
        if self.error is not None:
            raise self.error
        self.delisted.append(product.id)


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def products(engine) -> SqlProductRepository:
    return SqlProductRepository(engine)


@pytest.fixture
def sales(engine) -> SqlSaleRepository:
    return SqlSaleRepository(engine)


@pytest.fixture
def orders(engine) -> SqlOrderRepository:
    return SqlOrderRepository(engine)


@pytest.fixture
def events(engine) -> SqlProcessedEventRepository:
    return SqlProcessedEventRepository(engine)


@pytest.fixture
def depositors(engine) -> SqlDepositorRepository:
    repo = SqlDepositorRepository(engine)
    repo.add(Depositor(trigramme="ABC", stock_type=StockType.UNIQUE, nom="Alice"))
    repo.add(Depositor(trigramme="SBT", stock_type=StockType.SMALL_BATCH, nom="Petite Série"))
    return repo


@pytest.fixture
def snapshots(depositors) -> SnapshotProvider:
    return SnapshotProvider(depositors.list_all, ttl_seconds=300)


@pytest.fixture
def disposition(products, sales, clock) -> DispositionEngine:
    return DispositionEngine(products, sales, clock=clock)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(database_url="sqlite://", pos_webhook_secret=None)


@pytest.fixture
def make_product(products):
    def _make(**overrides) -> Product:
        values = {
            "id": "",
            "nom": "Robe en soie",
            "sku": "ABC12",
            "prix": Decimal("120.00"),
            "quantite": 1,
            "trigramme": "ABC",
            "chineur": "Alice",
            "categorie": "Robes",
            "marque": "Sézane",
        }
        values.update(overrides)
        return products.add(Product(**values))

    return _make


@pytest.fixture
def fake_pos() -> FakeChannelClient:
    return FakeChannelClient(Channel.POS)


@pytest.fixture
def fake_marketplace() -> FakeChannelClient:
    return FakeChannelClient(Channel.MARKETPLACE)
