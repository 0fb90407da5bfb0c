import pytest

from core.models import Depositor, StockType
from core.reference_snapshot import ReferenceSnapshot, SnapshotProvider, extract_trigramme


class FakeMonotonic:
    def __init__(self):
        self.value = 1000.0

    def __call__(self):
        return self.value


@pytest.mark.parametrize(
    'sku, expected',
    [('ABC12', 'ABC'), ('abc 12', 'ABC'), ('  SBT3', 'SBT'), ('12ABC', None), (None, None), ('', None)],
)
def test_extract_trigramme(sku, expected):
    assert extract_trigramme(sku) == expected


def test_snapshot_stock_type_lookup():
    snapshot = ReferenceSnapshot.build(
        [Depositor('ABC'), Depositor('sbt', stock_type=StockType.SMALL_BATCH)],
        loaded_at=0,
    )

    assert snapshot.stock_type_for('SBT4') is StockType.SMALL_BATCH
    assert snapshot.stock_type_for('ABC4') is StockType.UNIQUE
    # Trigramme inconnu : politique standard.
    assert snapshot.stock_type_for('ZZZ1') is StockType.UNIQUE
    # Le trigramme explicite du produit l'emporte sur le préfixe du SKU.
    assert snapshot.stock_type_for('ABC4', trigramme='SBT') is StockType.SMALL_BATCH


def test_snapshot_is_read_only():
    snapshot = ReferenceSnapshot.build([Depositor('ABC')], loaded_at=0)
    with pytest.raises(TypeError):
        snapshot.depositors['XYZ'] = Depositor('XYZ')


def test_provider_reloads_after_ttl():
    calls = []
    clock = FakeMonotonic()

    def loader():
        calls.append(clock.value)
        return [Depositor('ABC')]

    provider = SnapshotProvider(loader, ttl_seconds=300, monotonic=clock)
    first = provider.current()
    clock.value += 299
    assert provider.current() is first
    clock.value += 2
    second = provider.current()

    assert second is not first
    assert len(calls) == 2


def test_provider_keeps_previous_snapshot_when_reload_fails():
    clock = FakeMonotonic()
    state = {'fail': False}

    def loader():
        if state['fail']:
            raise RuntimeError('registre indisponible')
        return [Depositor('SBT', stock_type=StockType.SMALL_BATCH)]

    provider = SnapshotProvider(loader, ttl_seconds=10, monotonic=clock)
    first = provider.current()
    state['fail'] = True
    clock.value += 60

    assert provider.current() is first


def test_provider_propagates_initial_load_failure():
    def loader():
        raise RuntimeError('boom')

    provider = SnapshotProvider(loader, ttl_seconds=10)
    with pytest.raises(RuntimeError):
        provider.current()
