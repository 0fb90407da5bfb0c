from datetime import datetime
from decimal import Decimal

import pytest

from backend.services.ledger import SalesLedgerService
from core.errors import ConflictError, ProductNotFoundError, SaleNotFoundError, ValidationError
from core.models import Channel, ProductStatus, Sale, SaleOrigin


@pytest.fixture
def ledger(products, sales, disposition, snapshots, clock):
    return SalesLedgerService(
        products=products,
        sales=sales,
        disposition=disposition,
        snapshots=snapshots,
        timezone='Europe/Paris',
        clock=clock,
    )


@pytest.fixture
def unattributed_sale(sales):
    sale = Sale(
        id='',
        source=SaleOrigin.IMPORTED_SPREADSHEET,
        nom='Robe soie ?',
        prix_vente_reel=Decimal('95.00'),
        date_vente=datetime(2025, 3, 10, 15, 0),
        nom_source='Robe soie ?',
    )
    sales.add_many([sale])
    return sale


def test_attribute_sale_updates_descriptors_and_stock(ledger, unattributed_sale, make_product, products, sales):
    product = make_product(square_variation_id='VAR-1')

    operation = ledger.attribute(unattributed_sale.id, product.id)

    stored_sale = sales.get(unattributed_sale.id)
    assert stored_sale.attribue is True
    assert stored_sale.produit_id == product.id
    assert stored_sale.marque == 'Sézane'
    assert stored_sale.prix_vente_reel == Decimal('95.00')
    assert products.get(product.id).vendu is True
    # Pas de nouvelle ligne : la vente existante porte l'attribution.
    assert len(sales.list_sales()) == 1
    assert [(r.product.id, r.origin) for r in operation.delist] == [(product.id, Channel.POS)]


def test_attribute_same_product_twice_is_noop(ledger, unattributed_sale, make_product, products):
    product = make_product(quantite=3)
    ledger.attribute(unattributed_sale.id, product.id)
    operation = ledger.attribute(unattributed_sale.id, product.id)

    assert operation.disposition is None
    assert products.get(product.id).quantite == 2


def test_reattribution_requires_force(ledger, unattributed_sale, make_product, products):
    first = make_product(sku='ABC1')
    second = make_product(sku='ABC2')
    ledger.attribute(unattributed_sale.id, first.id)

    with pytest.raises(ConflictError):
        ledger.attribute(unattributed_sale.id, second.id)

    ledger.attribute(unattributed_sale.id, second.id, force=True)
    assert products.get(second.id).vendu is True


def test_attribute_unknown_ids(ledger, unattributed_sale):
    with pytest.raises(SaleNotFoundError):
        ledger.attribute('missing', 'whatever')
    with pytest.raises(ProductNotFoundError) as excinfo:
        ledger.attribute(unattributed_sale.id, 'missing')
    assert excinfo.value.status_code == 404


def test_reverse_with_restock(ledger, make_product, products, sales):
    product = make_product(sku='SBT5', trigramme='SBT', quantite=1)
    operation = ledger.record_manual_sale(product.id, Decimal('30'))
    assert products.get(product.id).statut is ProductStatus.OUT_OF_STOCK

    ledger.reverse(operation.sale.id, restock=True)

    stored = products.get(product.id)
    assert stored.quantite == 1
    assert stored.statut is ProductStatus.ACTIVE
    assert stored.vendu is False
    assert sales.get(operation.sale.id) is None


def test_reverse_without_restock_keeps_stock(ledger, make_product, products, sales):
    product = make_product()
    operation = ledger.record_manual_sale(product.id, Decimal('80'))

    ledger.reverse(operation.sale.id)

    assert products.get(product.id).vendu is True
    assert sales.list_sales() == []


def test_manual_sale_creates_attributed_sale(ledger, make_product, products):
    product = make_product(quantite=2)

    operation = ledger.record_manual_sale(product.id, Decimal('55.5'), sale_date=datetime(2025, 3, 1, 12, 0))

    assert operation.sale.source is SaleOrigin.MANUAL_ATTRIBUTION
    assert operation.sale.attribue is True
    # 12:00 à Paris (UTC+1 en mars avant le changement d'heure).
    assert operation.sale.date_vente == datetime(2025, 3, 1, 11, 0)
    assert products.get(product.id).quantite == 1
    assert operation.delist == []


def test_manual_sale_rejects_unavailable_product(ledger, make_product):
    sold = make_product(vendu=True, quantite=0)
    with pytest.raises(ValidationError):
        ledger.record_manual_sale(sold.id, Decimal('10'))

    returned = make_product(sku='ABC99', statut=ProductStatus.RETURNED)
    with pytest.raises(ValidationError):
        ledger.record_manual_sale(returned.id, Decimal('10'))


def test_manual_sale_rejects_non_positive_price(ledger, make_product):
    product = make_product()
    with pytest.raises(ValidationError):
        ledger.record_manual_sale(product.id, Decimal('0'))


def test_list_sales_filters(ledger, unattributed_sale, make_product):
    product = make_product()
    ledger.record_manual_sale(product.id, Decimal('40'))

    assert [s.id for s in ledger.list_sales(attribue=False)] == [unattributed_sale.id]
    assert len(ledger.list_sales(month='03-2025')) == 2
    assert ledger.list_sales(month='04-2025') == []
    with pytest.raises(ValidationError):
        ledger.list_sales(month='2025-03')


def test_restock_reactivates_out_of_stock_product(ledger, make_product, products):
    product = make_product(sku='SBT8', trigramme='SBT')
    ledger.record_manual_sale(product.id, Decimal('12'))

    updated = ledger.restock(product.id, 4)

    assert updated.quantite == 4
    assert updated.statut is ProductStatus.ACTIVE
    assert products.get(product.id).date_rupture is None


def test_restock_rejects_deleted_product(ledger, make_product):
    product = make_product(statut=ProductStatus.DELETED)
    with pytest.raises(ValidationError):
        ledger.restock(product.id, 1)
