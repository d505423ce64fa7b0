from conftest import fetch
from marketplace.models import Order, OrderStatus, Payment, PaymentStatus


def _pay(client, order_id, amount, method='CARD'):
    return client.post('/api/payments', json={
        'orderId': order_id,
        'paymentMethod': method,
        'amount': amount,
    })


def test_successful_payment_marks_order_paid(app, buyer, factory,
                                             listing_id):
    order_id = factory.order(buyer.user_id, [(listing_id, 2, '49.99')])

    response = _pay(buyer.client, order_id, 99.98)

    assert response.status_code == 201
    body = response.get_json()
    assert body['order']['status'] == 'PAID'
    assert body['payment']['status'] == 'COMPLETED'
    assert len(body['payment']['transactionId']) == 32
    assert fetch(app, Order, order_id).status == OrderStatus.PAID


def test_second_payment_is_a_conflict(app, buyer, factory, listing_id):
    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])
    assert _pay(buyer.client, order_id, 49.99).status_code == 201

    response = _pay(buyer.client, order_id, 49.99)

    assert response.status_code == 400
    assert response.get_json()['message'] == 'Order already paid'
    assert fetch(app, Order, order_id).status == OrderStatus.PAID
    with app.app_context():
        assert Payment.query.filter_by(order_id=order_id).count() == 1


def test_amount_must_match_to_the_cent(app, buyer, factory, listing_id):
    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])

    response = _pay(buyer.client, order_id, 49.98)

    assert response.status_code == 400
    assert fetch(app, Order, order_id).status == OrderStatus.CREATED
    with app.app_context():
        assert Payment.query.count() == 0


def test_string_amount_is_accepted(buyer, factory, listing_id):
    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])
    assert _pay(buyer.client, order_id, '49.990').status_code == 201


def test_missing_fields(buyer, factory, listing_id):
    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])
    response = buyer.client.post('/api/payments', json={'orderId': order_id})
    assert response.status_code == 400


def test_unknown_order_and_foreign_order(buyer, other_buyer, factory,
                                         listing_id):
    assert _pay(buyer.client, 12345, 1).status_code == 404

    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])
    assert _pay(other_buyer.client, order_id, 49.99).status_code == 403


def test_cancelled_order_cannot_be_paid(buyer, factory, listing_id):
    order_id = factory.order(
        buyer.user_id, [(listing_id, 1, '49.99')],
        status=OrderStatus.CANCELLED)
    assert _pay(buyer.client, order_id, 49.99).status_code == 400


def test_failed_payment_row_is_reused(app, buyer, factory, listing_id):
    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])
    payment_id = factory.payment(order_id, status=PaymentStatus.FAILED)

    response = _pay(buyer.client, order_id, 49.99)

    assert response.status_code == 201
    assert response.get_json()['payment']['id'] == payment_id
    assert fetch(app, Payment, payment_id).status == PaymentStatus.COMPLETED


def test_get_payment_permissions(admin, buyer, other_buyer, factory,
                                 listing_id):
    order_id = factory.order(buyer.user_id, [(listing_id, 1, '49.99')])
    payment_id = _pay(buyer.client, order_id, 49.99).get_json()[
        'payment']['id']

    assert buyer.client.get(f'/api/payments/{payment_id}').status_code == 200
    assert admin.client.get(f'/api/payments/{payment_id}').status_code == 200
    assert other_buyer.client.get(
        f'/api/payments/{payment_id}').status_code == 403
    assert buyer.client.get('/api/payments/999').status_code == 404
