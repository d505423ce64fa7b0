from decimal import Decimal

from conftest import fetch
from marketplace.models import (
    ListingStatus,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentStatus,
)
from marketplace.extensions import db


def _create(client, items, total):
    return client.post('/api/orders', json={
        'items': items,
        'totalAmount': total,
    })


def test_create_order_snapshots_prices(app, buyer, factory, vendor):
    first = factory.listing(vendor.vendor_id, price='49.99')
    second = factory.listing(vendor.vendor_id, price='5.00')

    response = _create(buyer.client, [
        {'listingId': first, 'quantity': 2, 'unitPrice': 49.99},
        {'listingId': second, 'quantity': 1, 'unitPrice': '5.00'},
    ], 104.98)

    assert response.status_code == 201
    body = response.get_json()
    assert body['status'] == 'CREATED'
    assert body['totalAmount'] == 104.98
    assert [i['unitPrice'] for i in body['items']] == [49.99, 5.0]

    with app.app_context():
        items = OrderItem.query.filter_by(order_id=body['id']).all()
        assert sorted(i.unit_price for i in items) == [
            Decimal('5.00'), Decimal('49.99')]


def test_create_order_rejects_wrong_total(app, buyer, listing_id):
    response = _create(buyer.client, [
        {'listingId': listing_id, 'quantity': 1, 'unitPrice': 49.99},
    ], 40)

    assert response.status_code == 400
    assert 'Amount mismatch' in response.get_json()['message']
    with app.app_context():
        assert Order.query.count() == 0


def test_create_order_rejects_changed_price(buyer, listing_id):
    response = _create(buyer.client, [
        {'listingId': listing_id, 'quantity': 1, 'unitPrice': 10},
    ], 10)
    assert response.status_code == 400


def test_create_order_validates_items(buyer, factory, vendor, listing_id):
    assert _create(buyer.client, [], 0).status_code == 400

    zero_quantity = _create(buyer.client, [
        {'listingId': listing_id, 'quantity': 0, 'unitPrice': 49.99},
    ], 0)
    assert zero_quantity.status_code == 400

    missing = _create(buyer.client, [
        {'listingId': 9999, 'quantity': 1, 'unitPrice': 1},
    ], 1)
    assert missing.status_code == 404

    pending = factory.listing(
        vendor.vendor_id, price='3.00', status=ListingStatus.PENDING)
    inactive = _create(buyer.client, [
        {'listingId': pending, 'quantity': 1, 'unitPrice': 3},
    ], 3)
    assert inactive.status_code == 400


def test_create_order_requires_login(client, listing_id):
    response = _create(client, [
        {'listingId': listing_id, 'quantity': 1, 'unitPrice': 49.99},
    ], 49.99)
    assert response.status_code == 401


def test_order_visibility(app, buyer, other_buyer, vendor, admin, factory,
                          listing_id):
    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])

    assert buyer.client.get(f'/api/orders/{order_id}').status_code == 200
    assert admin.client.get(f'/api/orders/{order_id}').status_code == 200
    assert vendor.client.get(f'/api/orders/{order_id}').status_code == 403
    assert other_buyer.client.get(
        f'/api/orders/{order_id}').status_code == 403

    body = buyer.client.get(f'/api/orders/{order_id}').get_json()
    assert body['items'][0]['listing']['id'] == listing_id
    assert body['payment'] is None


def test_vendor_without_items_cannot_view(app, factory, buyer, listing_id):
    from conftest import _actor
    from marketplace.models import UserRole, VendorVerificationStatus

    stranger = _actor(
        app, factory, 'stranger@example.com', UserRole.VENDOR,
        vendor_status=VendorVerificationStatus.APPROVED)
    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])

    response = stranger.client.get(f'/api/orders/{order_id}')
    assert response.status_code == 403


def test_user_orders_lists_only_own(buyer, other_buyer, factory, listing_id):
    factory.order(buyer.user_id, [(listing_id, 1, '49.99')])
    factory.order(other_buyer.user_id, [(listing_id, 2, '49.99')])

    body = buyer.client.get('/api/users/orders').get_json()
    assert len(body) == 1
    assert body[0]['userId'] == buyer.user_id


def test_confirm_checks_state_before_owner(buyer, other_buyer, factory,
                                           listing_id):
    order_id = factory.order(
        buyer.user_id, [(listing_id, 1, '49.99')], status=OrderStatus.PAID)

    # Not shipped yet: a state error even for a stranger
    response = other_buyer.client.patch(
        f'/api/orders/{order_id}/confirm', json={'status': 'DELIVERED'})
    assert response.status_code == 400

    response = buyer.client.patch(
        f'/api/orders/{order_id}/confirm', json={'status': 'DELIVERED'})
    assert response.status_code == 400


def test_confirm_receipt(app, buyer, other_buyer, factory, listing_id):
    order_id = factory.order(
        buyer.user_id, [(listing_id, 1, '49.99')],
        status=OrderStatus.SHIPPED)

    response = other_buyer.client.patch(
        f'/api/orders/{order_id}/confirm', json={'status': 'DELIVERED'})
    assert response.status_code == 403

    response = buyer.client.patch(
        f'/api/orders/{order_id}/confirm', json={'status': 'DELIVERED'})
    assert response.status_code == 200
    assert fetch(app, Order, order_id).status == OrderStatus.DELIVERED


def test_confirm_requires_a_receipt_status(app, buyer, factory, listing_id):
    order_id = factory.order(
        buyer.user_id, [(listing_id, 1, '49.99')],
        status=OrderStatus.SHIPPED)
    url = f'/api/orders/{order_id}/confirm'

    response = buyer.client.patch(url, json={})
    assert response.status_code == 400
    assert fetch(app, Order, order_id).status == OrderStatus.SHIPPED

    response = buyer.client.patch(url, json={'status': 'SHIPPED'})
    assert response.status_code == 400
    assert fetch(app, Order, order_id).status == OrderStatus.SHIPPED


def test_cancel_requires_reason(app, admin, buyer, factory, listing_id):
    order_id = factory.order(
        buyer.user_id, [(listing_id, 1, '49.99')], status=OrderStatus.PAID)

    response = admin.client.post(
        f'/api/orders/{order_id}/cancel', json={'reason': '   '})
    assert response.status_code == 400
    assert fetch(app, Order, order_id).status == OrderStatus.PAID

    response = admin.client.post(f'/api/orders/{order_id}/cancel', json={})
    assert response.status_code == 400
    assert fetch(app, Order, order_id).status == OrderStatus.PAID


def test_cancel_refunds_completed_payment(app, admin, buyer, factory,
                                          listing_id):
    order_id = factory.order(
        buyer.user_id, [(listing_id, 1, '49.99')], status=OrderStatus.PAID)
    payment_id = factory.payment(order_id)

    response = admin.client.post(
        f'/api/orders/{order_id}/cancel', json={'reason': 'Out of stock'})
    assert response.status_code == 200

    order = fetch(app, Order, order_id)
    assert order.status == OrderStatus.CANCELLED
    assert order.cancel_reason == 'Out of stock'
    assert fetch(app, Payment, payment_id).status == PaymentStatus.REFUNDED


def test_cancel_not_allowed_after_shipping(admin, buyer, factory, listing_id):
    order_id = factory.order(
        buyer.user_id, [(listing_id, 1, '49.99')],
        status=OrderStatus.SHIPPED)
    response = admin.client.post(
        f'/api/orders/{order_id}/cancel', json={'reason': 'Late'})
    assert response.status_code == 400


def test_cancel_is_admin_only(buyer, factory, listing_id):
    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])
    response = buyer.client.post(
        f'/api/orders/{order_id}/cancel', json={'reason': 'Changed mind'})
    assert response.status_code == 403


def test_vendor_moves_order_through_fulfilment(app, vendor, buyer, factory,
                                               listing_id):
    order_id = factory.order(
        buyer.user_id, [(listing_id, 1, '49.99')], status=OrderStatus.PAID)
    url = f'/api/vendors/{vendor.vendor_id}/orders/{order_id}'

    assert vendor.client.patch(
        url, json={'status': 'PROCESSING'}).status_code == 200
    assert fetch(app, Order, order_id).status == OrderStatus.PROCESSING

    assert vendor.client.patch(
        url, json={'status': 'SHIPPED'}).status_code == 200
    assert fetch(app, Order, order_id).status == OrderStatus.SHIPPED

    # Vendors cannot complete orders themselves
    assert vendor.client.patch(
        url, json={'status': 'COMPLETED'}).status_code == 400


def test_vendor_cannot_process_unpaid_order(vendor, buyer, factory,
                                            listing_id):
    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])
    response = vendor.client.patch(
        f'/api/vendors/{vendor.vendor_id}/orders/{order_id}',
        json={'status': 'PROCESSING'})
    assert response.status_code == 400


def test_ship_complete_and_refund(app, admin, buyer, factory, listing_id):
    order_id = factory.order(
        buyer.user_id, [(listing_id, 1, '49.99')], status=OrderStatus.PAID)
    payment_id = factory.payment(order_id)

    assert admin.client.post(
        f'/api/orders/{order_id}/complete').status_code == 400
    assert admin.client.post(
        f'/api/orders/{order_id}/ship').status_code == 200
    assert admin.client.post(
        f'/api/orders/{order_id}/complete').status_code == 200
    assert fetch(app, Order, order_id).status == OrderStatus.COMPLETED

    assert admin.client.post(
        f'/api/orders/{order_id}/refund').status_code == 200
    assert fetch(app, Order, order_id).status == OrderStatus.REFUNDED
    assert fetch(app, Payment, payment_id).status == PaymentStatus.REFUNDED

    # Terminal
    assert admin.client.post(
        f'/api/orders/{order_id}/refund').status_code == 400


def test_admin_status_override_follows_transitions(app, admin, buyer,
                                                  factory, listing_id):
    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])
    url = f'/api/admin/orders/{order_id}'

    assert admin.client.patch(
        url, json={'status': 'SHIPPED'}).status_code == 400
    assert admin.client.patch(
        url, json={'status': 'BOGUS'}).status_code == 400
    assert admin.client.patch(
        url, json={'status': 'CANCELLED'}).status_code == 400

    response = admin.client.patch(
        url, json={'status': 'CANCELLED', 'reason': 'Fraud check'})
    assert response.status_code == 200
    assert fetch(app, Order, order_id).status == OrderStatus.CANCELLED


def test_admin_delete_cascades(app, admin, buyer, factory, listing_id):
    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])
    factory.payment(order_id, status=PaymentStatus.PENDING)

    response = admin.client.delete(f'/api/orders/{order_id}')
    assert response.status_code == 204
    with app.app_context():
        assert db.session.get(Order, order_id) is None
        assert OrderItem.query.filter_by(order_id=order_id).count() == 0
        assert Payment.query.filter_by(order_id=order_id).count() == 0


def test_vendor_delete_requires_sole_ownership(app, factory, vendor, buyer,
                                              listing_id):
    other_vendor_user = factory.user(email='other-vendor@example.com')
    other_vendor = factory.vendor(other_vendor_user)
    foreign_listing = factory.listing(other_vendor, price='1.00')

    shared = factory.order(buyer.user_id, [
        (listing_id, 1, '49.99'),
        (foreign_listing, 1, '1.00'),
    ])
    own = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])
    base = f'/api/vendors/{vendor.vendor_id}/orders'

    assert vendor.client.delete(f'{base}/{shared}').status_code == 403
    assert vendor.client.delete(f'{base}/{own}').status_code == 204
    assert fetch(app, Order, own) is None


def test_vendor_orders_show_only_vendor_items(factory, vendor, buyer,
                                              listing_id):
    other_vendor_user = factory.user(email='second-vendor@example.com')
    other_vendor = factory.vendor(other_vendor_user)
    foreign_listing = factory.listing(other_vendor, price='1.00')
    factory.order(buyer.user_id, [
        (listing_id, 1, '49.99'),
        (foreign_listing, 1, '1.00'),
    ])

    body = vendor.client.get(
        f'/api/vendors/{vendor.vendor_id}/orders').get_json()
    assert len(body) == 1
    assert [i['listingId'] for i in body[0]['items']] == [listing_id]
    assert body[0]['user']['id'] == buyer.user_id


def test_vendor_cannot_read_shared_order_detail(factory, vendor, buyer,
                                                listing_id):
    other_vendor_user = factory.user(email='third-vendor@example.com')
    other_vendor = factory.vendor(other_vendor_user)
    foreign_listing = factory.listing(other_vendor, price='1.00')
    order_id = factory.order(buyer.user_id, [
        (listing_id, 1, '49.99'),
        (foreign_listing, 1, '1.00'),
    ])

    response = vendor.client.get(f'/api/orders/{order_id}')
    assert response.status_code == 403
