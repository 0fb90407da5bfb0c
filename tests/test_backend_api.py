import json
from datetime import datetime
from decimal import Decimal

import pytest

pytest.importorskip('fastapi')

from fastapi.testclient import TestClient

from backend.dependencies import services as deps
from backend.main import app
from backend.services.checkout import CheckoutService
from backend.services.dedupe import DedupeSweep
from backend.services.ingestion import SaleIngestionService
from backend.services.ledger import SalesLedgerService
from backend.services.reconciliation_import import SpreadsheetImportService
from backend.settings import Settings
from core.delisting import DelistingDispatcher
from core.models import Channel, Sale, SaleOrigin
from core.promotions import PromotionCalculator
from core.sale_intents import compute_signature

SECRET = 's3cret'


class FakePayments:
    def __init__(self):
        self.calls = []

    def create_payment_link(self, **kwargs):
        self.calls.append(kwargs)
        return {'url': 'https://pay.example/abc'}


@pytest.fixture
def api_settings():
    return Settings(
        database_url='sqlite://',
        pos_webhook_secret=SECRET,
        marketplace_verification_token='token',
        marketplace_endpoint_url='https://shop.example/webhooks/marketplace',
    )


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture
def api_client(api_settings, products, sales, orders, events, disposition, snapshots, clock, fake_pos,
               fake_marketplace, payments):
    ingestion = SaleIngestionService(
        products=products,
        orders=orders,
        events=events,
        disposition=disposition,
        snapshots=snapshots,
        settings=api_settings,
        clock=clock,
    )
    ledger = SalesLedgerService(products=products, sales=sales, disposition=disposition, snapshots=snapshots,
                                clock=clock)
    importer = SpreadsheetImportService(products=products, sales=sales, disposition=disposition,
                                        snapshots=snapshots, clock=clock)
    checkout = CheckoutService(
        products=products,
        promotions=PromotionCalculator(orders, clock=clock),
        payments=payments,
        public_base_url='https://shop.example',
    )
    dispatcher = DelistingDispatcher({Channel.POS: fake_pos, Channel.MARKETPLACE: fake_marketplace})

    app.dependency_overrides.update(
        {
            deps.get_settings: lambda: api_settings,
            deps.get_ingestion_service: lambda: ingestion,
            deps.get_ledger_service: lambda: ledger,
            deps.get_import_service: lambda: importer,
            deps.get_dedupe_sweep: lambda: DedupeSweep(sales),
            deps.get_checkout_service: lambda: checkout,
            deps.get_delisting_dispatcher: lambda: dispatcher,
        }
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def _pos_body(event_id='evt-1'):
    return json.dumps(
        {
            'event_id': event_id,
            'type': 'order.updated',
            'data': {
                'object': {
                    'order': {
                        'id': 'ORDER-1',
                        'state': 'COMPLETED',
                        'line_items': [
                            {'uid': 'L1', 'quantity': '1', 'catalog_object_id': 'VAR-1',
                             'total_money': {'amount': 12000, 'currency': 'EUR'}},
                        ],
                    }
                }
            },
        }
    ).encode()


def test_health_endpoint(api_client):
    response = api_client.get('/health')
    assert response.status_code == 200
    assert response.json() == {'status': 'ok'}


def test_pos_webhook_rejects_bad_signature(api_client):
    response = api_client.post('/webhooks/pos', content=_pos_body(), headers={'x-signature': 'nope'})
    assert response.status_code == 401
    assert response.json()['success'] is False


def test_pos_webhook_applies_sale_and_delists_elsewhere(api_client, make_product, products, fake_pos,
                                                       fake_marketplace):
    product = make_product(square_variation_id='VAR-1', ebay_offer_id='OFF-1')
    body = _pos_body()

    response = api_client.post(
        '/webhooks/pos',
        content=body,
        headers={'x-square-hmacsha256-signature': compute_signature(body, SECRET)},
    )

    assert response.status_code == 200
    assert response.json() == {'received': True, 'processed': 1}
    assert products.get(product.id).vendu is True
    assert fake_marketplace.delisted == [product.id]
    assert fake_pos.delisted == []


def test_malformed_webhook_is_acknowledged(api_client):
    body = b'{"event_id": 1'
    response = api_client.post('/webhooks/pos', content=body, headers={'x-signature': compute_signature(body, SECRET)})
    assert response.status_code == 200
    payload = response.json()
    assert payload['received'] is True
    assert payload['processed'] == 0
    assert 'error' in payload


def test_marketplace_challenge(api_client):
    response = api_client.get('/webhooks/marketplace', params={'challenge_code': 'abc'})
    assert response.status_code == 200
    assert len(response.json()['challengeResponse']) == 64

    assert api_client.get('/webhooks/marketplace').json() == {'status': 'ok'}


def test_attribute_unknown_sale_returns_error_shape(api_client):
    response = api_client.post('/sales/attribute', json={'saleId': 'missing', 'produitId': 'P1'})
    assert response.status_code == 404
    assert response.json() == {'success': False, 'error': 'Vente missing introuvable.'}


def test_attribute_and_delete_sale(api_client, sales, make_product, products):
    product = make_product()
    (sale,) = sales.add_many(
        [Sale(id='', source=SaleOrigin.IMPORTED_SPREADSHEET, nom='Robe ?', prix_vente_reel=Decimal('99'),
              date_vente=datetime(2025, 3, 14, 9, 0))]
    )

    response = api_client.post('/sales/attribute', json={'saleId': sale.id, 'produitId': product.id})
    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert body['vendu'] is True
    assert body['sale']['produitId'] == product.id

    other = make_product(sku='ABC99')
    conflict = api_client.post('/sales/attribute', json={'saleId': sale.id, 'produitId': other.id})
    assert conflict.status_code == 409

    deleted = api_client.delete(f'/sales/{sale.id}', params={'remettreEnStock': 'true'})
    assert deleted.status_code == 200
    assert deleted.json()['quantite'] == 1
    assert products.get(product.id).vendu is False


def test_invalid_request_body_returns_400(api_client):
    response = api_client.post('/sales/manual', json={'produitId': 'P1', 'prixVenteReel': 0})
    assert response.status_code == 400
    assert response.json()['success'] is False


def test_list_sales(api_client, make_product):
    product = make_product()
    api_client.post('/sales/manual', json={'produitId': product.id, 'prixVenteReel': 42})

    response = api_client.get('/sales', params={'attribue': 'true', 'month': '03-2025'})

    assert response.status_code == 200
    assert response.json()['total'] == 1
    assert response.json()['items'][0]['prixVenteReel'] == 42.0


def test_import_and_dedupe(api_client, make_product):
    make_product()
    rows = [
        {'Date': '14/03/2025', 'Article': 'Robe ABC12', 'Ventes brutes': '110,00 €', 'Nº de transaction': 'T1'},
        {'Date': '14/03/2025', 'Article': 'Robe inconnue', 'Ventes brutes': '110,00 €', 'Nº de transaction': 'T2'},
    ]
    imported = api_client.post('/sales-reconciliation/import', json={'rows': rows})
    assert imported.status_code == 200
    assert imported.json() == {'success': True, 'imported': 2, 'skipped': 0, 'errors': 0, 'attributed': 1}

    preview = api_client.post('/reconciliation/dedupe', json={})
    assert preview.status_code == 200
    assert preview.json()['dryRun'] is True
    assert preview.json()['doublonsIdentifies'] == 1

    applied = api_client.post('/reconciliation/dedupe', json={'dryRun': False})
    assert applied.json()['doublonsSupprimes'] == 1


def test_restock_endpoint(api_client, make_product):
    product = make_product(quantite=0, vendu=True)
    response = api_client.post(f'/products/{product.id}/restock', json={'quantity': 2})
    assert response.status_code == 200
    assert response.json()['quantite'] == 2
    assert response.json()['vendu'] is False


def test_checkout_first_order_with_delivery(api_client, make_product, payments):
    product = make_product()
    response = api_client.post(
        '/checkout',
        json={
            'produitId': product.id,
            'basePrice': 120,
            'buyerInfo': {'email': 'Cliente@Example.com', 'prenom': 'Jeanne', 'nom': 'Martin'},
            'deliveryMode': 'livraison',
        },
    )

    assert response.status_code == 200
    assert response.json() == {
        'finalPrice': 135.0,
        'discount': 0.0,
        'deliveryFee': 15.0,
        'checkoutUrl': 'https://pay.example/abc',
        'orderRank': 1,
    }
    metadata = payments.calls[0]['metadata']
    assert metadata['clientEmail'] == 'cliente@example.com'
    assert metadata['clientNom'] == 'Jeanne Martin'
    assert payments.calls[0]['redirect_url'] == f'https://shop.example/confirmation?produit={product.id}'


def test_checkout_unknown_product(api_client):
    response = api_client.post(
        '/checkout',
        json={'produitId': 'nope', 'basePrice': 10, 'buyerInfo': {'email': 'a@b.c'}},
    )
    assert response.status_code == 404


def test_operator_routes_require_api_key_when_configured(api_client, api_settings):
    from dataclasses import replace

    secured = replace(api_settings, admin_api_key='key')
    app.dependency_overrides[deps.get_settings] = lambda: secured

    assert api_client.get('/sales').status_code == 401
    assert api_client.get('/sales', headers={'X-API-KEY': 'key'}).status_code == 200
    # Les webhooks restent authentifiés par signature uniquement.
    assert api_client.get('/webhooks/marketplace').status_code == 200
