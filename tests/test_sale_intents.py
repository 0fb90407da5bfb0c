import hashlib
import json

import pytest

from core.errors import AuthError, PayloadError
from core.models import Channel
from core.sale_intents import (
    IgnoredDelivery,
    SaleIntent,
    SaleIntentBatch,
    StorefrontPayment,
    compute_signature,
    marketplace_challenge_response,
    parse_marketplace_notification,
    parse_pos_event,
    parse_storefront_payment,
    verify_signature,
)


def _pos_event(**order_overrides):
    order = {
        'id': 'ORDER-1',
        'state': 'COMPLETED',
        'line_items': [
            {
                'uid': 'line-1',
                'name': 'Robe en soie',
                'quantity': '2',
                'catalog_object_id': 'VAR-1',
                'total_money': {'amount': 24000, 'currency': 'EUR'},
            }
        ],
    }
    order.update(order_overrides)
    return {
        'event_id': 'evt-1',
        'type': 'order.updated',
        'data': {'id': 'ORDER-1', 'object': {'order': order}},
    }


def test_verify_signature_accepts_valid_hmac():
    body = b'{"hello": "world"}'
    signature = compute_signature(body, 'secret')
    verify_signature(body, signature, 'secret')


def test_verify_signature_rejects_tampered_body():
    signature = compute_signature(b'{"a": 1}', 'secret')
    with pytest.raises(AuthError):
        verify_signature(b'{"a": 2}', signature, 'secret')


def test_verify_signature_missing_header_with_secret():
    with pytest.raises(AuthError):
        verify_signature(b'{}', None, 'secret')


def test_verify_signature_without_secret_is_open():
    verify_signature(b'{}', None, None)


def test_parse_pos_event_builds_intents():
    decoded = parse_pos_event(json.dumps(_pos_event()).encode())

    assert isinstance(decoded, SaleIntentBatch)
    assert decoded.event_id == 'evt-1'
    assert decoded.channel_order_id == 'ORDER-1'
    intent = decoded.intents[0]
    assert intent.channel is Channel.POS
    assert intent.channel_object_id == 'VAR-1'
    assert intent.quantity_sold == 2
    assert str(intent.unit_price) == '120.00'


def test_parse_pos_event_skips_lines_without_catalog_object():
    payload = _pos_event(
        line_items=[
            {'name': 'Montant libre', 'quantity': '1', 'total_money': {'amount': 500}},
            {'uid': 'ok', 'quantity': '1', 'catalog_object_id': 'VAR-2', 'base_price_money': {'amount': 1000}},
        ]
    )
    decoded = parse_pos_event(json.dumps(payload))

    assert decoded.skipped_lines == 1
    assert [intent.channel_object_id for intent in decoded.intents] == ['VAR-2']
    assert decoded.intents[0].total_price_minor == 1000


def test_parse_pos_event_unreadable_line_does_not_drop_siblings():
    payload = _pos_event(
        line_items=[
            {'uid': 'ok', 'quantity': '1', 'catalog_object_id': 'VAR-1', 'total_money': {'amount': 12000}},
            {'uid': 'bad-qty', 'quantity': 'deux', 'catalog_object_id': 'VAR-2'},
            {'uid': 'negative', 'quantity': '1', 'catalog_object_id': 'VAR-3', 'total_money': {'amount': -500}},
            'pas une ligne',
        ]
    )
    decoded = parse_pos_event(json.dumps(payload))

    assert isinstance(decoded, SaleIntentBatch)
    assert [intent.channel_object_id for intent in decoded.intents] == ['VAR-1']
    assert decoded.skipped_lines == 3


def test_parse_marketplace_unreadable_line_does_not_drop_siblings():
    payload = {
        'notificationId': 'n-2',
        'metadata': {'topic': 'ITEM_SOLD'},
        'resource': {
            'orderId': 'EB-2',
            'lineItems': [
                {'lineItemId': 'l1', 'sku': 'ABC12', 'quantity': 1, 'total': {'value': '120.00'}},
                {'lineItemId': 'l2', 'sku': 'ABC13', 'quantity': 'beaucoup'},
                {'lineItemId': 'l3', 'sku': 'ABC14', 'quantity': 1, 'total': {'value': 'gratuit'}},
            ],
        },
    }
    decoded = parse_marketplace_notification(payload)

    assert [intent.sku for intent in decoded.intents] == ['ABC12']
    assert decoded.skipped_lines == 2


@pytest.mark.parametrize(
    'event, reason',
    [
        ({'event_id': 'e', 'type': 'inventory.count.updated'}, "type d'évènement non géré"),
        (_pos_event(state='OPEN'), 'commande non complétée'),
        (_pos_event(metadata={'productId': 'P1'}), 'commande en ligne'),
    ],
)
def test_parse_pos_event_ignored_deliveries(event, reason):
    decoded = parse_pos_event(json.dumps(event))
    assert isinstance(decoded, IgnoredDelivery)
    assert decoded.reason == reason


def test_parse_pos_event_malformed_payload():
    with pytest.raises(PayloadError):
        parse_pos_event(b'not json')
    with pytest.raises(PayloadError):
        parse_pos_event(json.dumps({'event_id': 'x'}))


def test_parse_marketplace_notification_with_resource():
    payload = {
        'metadata': {'topic': 'MARKETPLACE.ORDER.PURCHASE'},
        'notification': {'notificationId': 'notif-9'},
        'resource': {
            'orderId': '12-345',
            'lineItems': [
                {'lineItemId': 'L1', 'sku': 'abc12', 'quantity': 1, 'total': {'value': '89.90'}},
                {'lineItemId': 'L2', 'quantity': 1, 'total': {'value': '10.00'}},
            ],
        },
    }
    decoded = parse_marketplace_notification(payload)

    assert isinstance(decoded, SaleIntentBatch)
    assert decoded.event_id == 'notif-9'
    assert decoded.skipped_lines == 1
    intent = decoded.intents[0]
    assert intent.sku == 'abc12'
    assert intent.total_price_minor == 8990


def test_parse_marketplace_notification_root_line_items_and_price_fallback():
    payload = {
        'topic': 'ITEM_SOLD',
        'notificationId': 'n-1',
        'orderId': 'O-1',
        'lineItems': [{'SKU': 'SBT3', 'quantity': 2, 'price': {'value': 30}}],
    }
    decoded = parse_marketplace_notification(json.dumps(payload).encode())

    assert decoded.channel_order_id == 'O-1'
    assert decoded.intents[0].sku == 'SBT3'
    assert decoded.intents[0].unit_price_minor == 1500


def test_parse_marketplace_unknown_topic_is_ignored():
    decoded = parse_marketplace_notification({'metadata': {'topic': 'MARKETPLACE_ACCOUNT_DELETION'}})
    assert isinstance(decoded, IgnoredDelivery)


def test_marketplace_challenge_response_is_sha256_of_concatenation():
    expected = hashlib.sha256(b'codetokenhttps://example.test/webhooks/marketplace').hexdigest()
    assert marketplace_challenge_response('code', 'token', 'https://example.test/webhooks/marketplace') == expected


def test_parse_storefront_payment():
    event = {
        'event_id': 'pay-evt',
        'type': 'payment.updated',
        'data': {'object': {'payment': {'id': 'PAY', 'status': 'COMPLETED', 'order_id': 'SQ-ORDER'}}},
    }
    decoded = parse_storefront_payment(json.dumps(event))
    assert decoded == StorefrontPayment(event_id='pay-evt', payment_id='PAY', order_id='SQ-ORDER')


def test_parse_storefront_payment_pending_is_ignored():
    event = {
        'event_id': 'pay-evt',
        'type': 'payment.created',
        'data': {'object': {'payment': {'id': 'PAY', 'status': 'APPROVED', 'order_id': 'SQ-ORDER'}}},
    }
    assert isinstance(parse_storefront_payment(json.dumps(event)), IgnoredDelivery)


def test_sale_intent_rejects_zero_quantity():
    with pytest.raises(PayloadError):
        SaleIntent(Channel.POS, 'ref', 'VAR', 0, 100)
