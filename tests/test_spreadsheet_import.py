from datetime import date, datetime
from decimal import Decimal

import pytest

from backend.services.reconciliation_import import (
    SpreadsheetImportService,
    extract_sku,
    parse_price,
    parse_sale_date,
)
from core.errors import ConflictError
from core.models import SaleOrigin


@pytest.fixture
def importer(products, sales, disposition, snapshots, clock):
    return SpreadsheetImportService(
        products=products,
        sales=sales,
        disposition=disposition,
        snapshots=snapshots,
        timezone='Europe/Paris',
        clock=clock,
    )


@pytest.mark.parametrize(
    'raw, expected',
    [
        ('165,00 €', Decimal('165.00')),
        ('1\xa0250,50 €', Decimal('1250.50')),
        (42, Decimal('42')),
        ('', None),
        (None, None),
        ('n/a', None),
    ],
)
def test_parse_price(raw, expected):
    assert parse_price(raw) == expected


def test_parse_sale_date_formats():
    tz = 'Europe/Paris'
    assert parse_sale_date('14/03/2025', tz) == datetime(2025, 3, 13, 23, 0)
    assert parse_sale_date('14/03/2025 14:30', tz) == datetime(2025, 3, 14, 13, 30)
    assert parse_sale_date(45731, tz) == datetime(2025, 3, 15, 0, 0)
    assert parse_sale_date('2025-07-01T10:00:00Z', tz) == datetime(2025, 7, 1, 10, 0)
    assert parse_sale_date(date(2025, 7, 1), tz) == datetime(2025, 6, 30, 22, 0)
    assert parse_sale_date('pas une date', tz) is None
    assert parse_sale_date(None, tz) is None


def test_extract_sku_from_free_text():
    assert extract_sku('Robe ABC 12 bleue') == 'ABC12'
    assert extract_sku(None, 'vendu avec sbt3') == 'SBT3'
    assert extract_sku('Article sans référence') is None


def test_import_attributes_matching_rows(importer, make_product, products, sales):
    product = make_product(square_variation_id='VAR-1')
    rows = [
        {'Date': '14/03/2025', 'Article': 'Robe ABC 12', 'Ventes brutes': '110,00 €', 'Nº de transaction': 'T1'},
        {'Date': '14/03/2025', 'Article': 'Bougie', 'Ventes brutes': '18,00 €', 'Nº de transaction': 'T2'},
    ]

    report = importer.import_rows(rows)

    assert report.as_dict() == {'success': True, 'imported': 2, 'skipped': 0, 'errors': 0, 'attributed': 1}
    assert products.get(product.id).vendu is True
    assert [r.product.id for r in report.delist] == [product.id]

    ledger = {sale.nom_source: sale for sale in sales.list_sales()}
    assert ledger['Robe ABC 12'].attribue is True
    assert ledger['Robe ABC 12'].produit_id == product.id
    assert ledger['Robe ABC 12'].source is SaleOrigin.IMPORTED_SPREADSHEET
    assert ledger['Bougie'].attribue is False
    assert ledger['Bougie'].nom == 'Bougie'


def test_import_skips_zero_price_and_counts_bad_dates(importer):
    rows = [
        {'Date': '14/03/2025', 'Article': 'Remboursement', 'Ventes brutes': '0,00 €'},
        {'Date': 'hier', 'Article': 'Foulard', 'Ventes brutes': '20,00 €'},
        {'Date': 45731, 'Article': 'Foulard', 'Ventes brutes': '20,00 €'},
    ]

    report = importer.import_rows(rows)

    assert report.skipped == 1
    assert report.errors == 1
    assert report.imported == 1


def test_import_is_idempotent_per_transaction(importer, sales):
    rows = [
        {'Date': '14/03/2025', 'Article': 'Foulard', 'Ventes brutes': '20,00 €', 'Nº de transaction': 'T9'},
        {'Date': '14/03/2025', 'Article': 'Foulard', 'Ventes brutes': '20,00 €', 'Nº de transaction': 'T9'},
    ]

    first = importer.import_rows(rows)
    second = importer.import_rows(rows)

    assert first.imported == 1
    assert first.skipped == 1
    assert second.imported == 0
    assert second.skipped == 2
    assert len(sales.list_sales()) == 1


def test_row_without_article_is_recognised_on_reimport(importer, make_product, products, sales):
    product = make_product(sku='SBT5', trigramme='SBT', quantite=3)
    rows = [{'Date': '14/03/2025', 'Remarques': 'vendu SBT5', 'Ventes brutes': '25,00 €', 'Nº de transaction': 'TX-9'}]

    first = importer.import_rows(rows)
    second = importer.import_rows(rows)

    assert (first.imported, first.attributed) == (1, 1)
    assert (second.imported, second.skipped) == (0, 1)
    assert products.get(product.id).quantite == 2
    assert len(sales.list_sales()) == 1


def test_ambiguous_sku_is_left_unattributed(importer, make_product, products, sales):
    first = make_product(sku='ABC12')
    make_product(sku='abc 12')

    report = importer.import_rows(
        [{'Date': '14/03/2025', 'Article': 'Robe', 'SKU': 'ABC12', 'Ventes brutes': '50,00 €'}]
    )

    assert report.imported == 1
    assert report.attributed == 0
    assert products.get(first.id).quantite == 1
    assert sales.list_sales()[0].attribue is False


def test_repeated_small_batch_rows_decrement_from_written_state(importer, make_product, products):
    product = make_product(sku='SBT4', trigramme='SBT', quantite=2)
    rows = [
        {'Date': '14/03/2025', 'Article': 'Bracelet SBT4', 'Ventes brutes': '15,00 €', 'Nº de transaction': 'A'},
        {'Date': '14/03/2025', 'Article': 'Bracelet SBT4', 'Ventes brutes': '15,00 €', 'Nº de transaction': 'B'},
    ]

    report = importer.import_rows(rows)

    assert report.attributed == 2
    stored = products.get(product.id)
    assert stored.quantite == 0
    assert stored.vendu is False
    assert report.delist == []


class ConflictingDisposition:
    def apply(self, product, quantity_sold, **kwargs):
        raise ConflictError(f"Produit {product.id} modifié en parallèle")


def test_failed_disposition_keeps_unattributed_ledger_entry(products, sales, snapshots, clock, make_product):
    product = make_product(square_variation_id='VAR-1')
    importer = SpreadsheetImportService(
        products=products,
        sales=sales,
        disposition=ConflictingDisposition(),
        snapshots=snapshots,
        clock=clock,
    )

    report = importer.import_rows(
        [{'Date': '14/03/2025', 'Article': 'Robe ABC 12', 'Ventes brutes': '110,00 €', 'Nº de transaction': 'T1'}]
    )

    assert report.imported == 1
    assert report.attributed == 0
    assert report.delist == []
    assert products.get(product.id).quantite == 1
    recorded = sales.list_sales()
    assert len(recorded) == 1
    assert recorded[0].attribue is False
    assert recorded[0].produit_id is None
    assert recorded[0].sku_source == 'ABC12'
