from flask import current_app
from marketplace import storage
from marketplace.extensions import db
from marketplace.exceptions import (
    AmountMismatchError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from marketplace.models import OrderStatus, PaymentStatus, UserRole
from marketplace.services.audit_service import log_user_action
from marketplace.utils import clean_text, to_money, to_positive_int
import logging
import uuid

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = (OrderStatus.CREATED, OrderStatus.PAID)


def _new_transaction_id():
    return uuid.uuid4().hex


def simulate_payment(user, order_id, payment_method, amount, currency=None):
    """Settle an order immediately; there is no external gateway."""
    if order_id is None or not clean_text(payment_method) or amount is None:
        raise ValidationError(
            'orderId, paymentMethod and amount are required')
    order_id = to_positive_int(order_id, 'orderId')
    amount = to_money(amount, 'amount')
    payment_method = clean_text(payment_method)

    order = storage.get_order(order_id)
    if not order:
        raise NotFoundError('Order not found')
    if order.user_id != user.id:
        raise ForbiddenError('Insufficient permissions')

    payment = storage.get_payment_by_order_id(order.id)
    if payment and payment.status == PaymentStatus.COMPLETED:
        raise ConflictError('Order already paid')
    if order.status not in PAYABLE_STATUSES:
        raise InvalidStateError(
            f'Order in status {order.status.value} cannot be paid')

    expected = to_money(order.total_amount)
    if amount != expected:
        raise AmountMismatchError(expected, amount)

    currency = clean_text(currency).upper() or order.currency or \
        current_app.config.get('DEFAULT_CURRENCY', 'CNY')

    try:
        if payment is None:
            payment = storage.create_payment(
                order_id=order.id,
                amount=amount,
                currency=currency,
                status=PaymentStatus.PENDING,
                payment_method=payment_method,
            )
        else:
            storage.update_payment_status(
                payment,
                PaymentStatus.PENDING,
            )
            payment.amount = amount
            payment.currency = currency
            payment.payment_method = payment_method

        storage.update_payment_status(
            payment,
            PaymentStatus.COMPLETED,
            transaction_id=_new_transaction_id(),
        )
        storage.update_order_status(order, OrderStatus.PAID)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.error("Payment for order %s failed", order.id, exc_info=True)
        raise

    log_user_action(
        user,
        'PAYMENT_SUCCESS',
        target_type='PAYMENT',
        target_id=payment.id,
        payload={
            'order_id': order.id,
            'amount': float(amount),
            'method': payment_method,
            'transaction_id': payment.transaction_id,
        },
    )
    return {'payment': payment.to_dict(), 'order': order.to_dict()}


def get_payment_for_user(user, payment_id):
    payment = storage.get_payment(payment_id)
    if not payment:
        raise NotFoundError('Payment not found')
    order = storage.get_order(payment.order_id)
    if user.role != UserRole.ADMIN and (
            not order or order.user_id != user.id):
        raise ForbiddenError('Insufficient permissions')
    return payment.to_dict()
