"""Order lifecycle: creation, status transitions and who may drive them.

Every multi-row change (order + items, cancel + refund) is staged with
flushes and committed once, so a failure leaves nothing half-written.
"""
from flask import current_app
from marketplace import storage
from marketplace.extensions import db
from marketplace.exceptions import (
    AmountMismatchError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from marketplace.models import (
    ListingStatus,
    OrderStatus,
    PaymentStatus,
    UserRole,
)
from marketplace.services.audit_service import log_user_action
from marketplace.services.vendor_service import resolve_vendor_for
from marketplace.utils import clean_text, to_money, to_positive_int
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    OrderStatus.CREATED: {
        OrderStatus.PAID,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PAID: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.SHIPPED: {
        OrderStatus.DELIVERED,
        OrderStatus.COMPLETED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.DELIVERED: {
        OrderStatus.COMPLETED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.COMPLETED: {
        OrderStatus.REFUNDED,
    },
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}

# Target statuses a buyer may pick when confirming receipt
CONFIRM_TARGETS = (OrderStatus.DELIVERED, OrderStatus.COMPLETED)
# Target statuses a vendor may set on its own orders
VENDOR_TARGETS = (OrderStatus.PROCESSING, OrderStatus.SHIPPED)


def parse_status(raw, allowed=None):
    value = clean_text(raw).upper()
    try:
        status = OrderStatus[value]
    except KeyError:
        raise ValidationError('Invalid order status')
    if allowed is not None and status not in allowed:
        names = ', '.join(s.value for s in allowed)
        raise ValidationError(f'Status must be one of: {names}')
    return status


def can_transition(current, target) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def ensure_transition(order, target):
    if not can_transition(order.status, target):
        raise InvalidStateError(
            f'Order cannot move from {order.status.value} to {target.value}'
        )


def get_order_or_404(order_id):
    order = storage.get_order(order_id)
    if not order:
        raise NotFoundError('Order not found')
    return order


# -------------------------------------------------------- authorization

def is_admin(user) -> bool:
    return user.role == UserRole.ADMIN


def order_listing_ids(order):
    return {item.listing_id for item in storage.get_order_items(order.id)}


def vendor_has_items_in(vendor_id, order) -> bool:
    vendor_listing_ids = storage.get_listing_ids_by_vendor_id(vendor_id)
    return bool(vendor_listing_ids & order_listing_ids(order))


def vendor_profile_for(user):
    if user.role != UserRole.VENDOR:
        return None
    return storage.get_vendor_profile_by_user_id(user.id)


def can_view_order(user, order) -> bool:
    # Vendors read their slice through list_vendor_orders
    return order.user_id == user.id or is_admin(user)


# -------------------------------------------------------------- reading

def order_details(orders, only_listing_ids=None):
    """Serialize orders with their items, listing summaries and payment."""
    order_ids = [o.id for o in orders]
    items_by_order = storage.get_order_items_for_orders(order_ids)
    listing_ids = {
        item.listing_id
        for items in items_by_order.values()
        for item in items
    }
    listings = storage.get_listings_by_ids(listing_ids)
    payments = storage.get_payments_by_order_ids(order_ids)

    result = []
    for order in orders:
        items_payload = []
        for item in items_by_order.get(order.id, []):
            if (only_listing_ids is not None
                    and item.listing_id not in only_listing_ids):
                continue
            listing = listings.get(item.listing_id)
            entry = item.to_dict()
            entry['listing'] = listing.to_summary() if listing else None
            items_payload.append(entry)

        payload = order.to_dict()
        payment = payments.get(order.id)
        payload['items'] = items_payload
        payload['payment'] = payment.to_dict() if payment else None
        payload['paymentStatus'] = payment.status.value if payment else None
        result.append(payload)
    return result


def get_order_for_user(user, order_id):
    order = get_order_or_404(order_id)
    if not can_view_order(user, order):
        raise ForbiddenError('Insufficient permissions')
    return order_details([order])[0]


def list_user_orders(user):
    return order_details(storage.get_orders_by_user_id(user.id))


def list_vendor_orders(user, vendor_id):
    vendor = resolve_vendor_for(user, vendor_id)
    orders = storage.get_orders_by_vendor_id(vendor.id)
    vendor_listing_ids = storage.get_listing_ids_by_vendor_id(vendor.id)
    payload = order_details(orders, only_listing_ids=vendor_listing_ids)

    buyers = storage.get_users_by_ids(o.user_id for o in orders)
    for entry in payload:
        buyer = buyers.get(entry['userId'])
        entry['user'] = buyer.to_summary() if buyer else None
    return payload


def list_all_orders():
    orders = storage.get_all_orders()
    order_ids = [o.id for o in orders]
    buyers = storage.get_users_by_ids(o.user_id for o in orders)
    payments = storage.get_payments_by_order_ids(order_ids)
    items_by_order = storage.get_order_items_for_orders(order_ids)

    result = []
    for order in orders:
        payload = order.to_dict()
        buyer = buyers.get(order.user_id)
        payment = payments.get(order.id)
        payload['user'] = buyer.to_summary() if buyer else None
        payload['payment'] = payment.to_dict() if payment else None
        payload['itemCount'] = len(items_by_order.get(order.id, []))
        result.append(payload)
    return result


# ------------------------------------------------------------- creation

def _parse_order_lines(items):
    if not isinstance(items, list) or not items:
        raise ValidationError('Order items cannot be empty')

    lines = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f'Order item {index} is malformed')
        if raw.get('listingId') is None:
            raise ValidationError(f'Order item {index} is missing listingId')
        listing_id = to_positive_int(raw.get('listingId'), 'listingId')
        quantity = to_positive_int(raw.get('quantity', 1), 'quantity')
        unit_price = to_money(raw.get('unitPrice'), 'unitPrice')
        lines.append((listing_id, quantity, unit_price))
    return lines


def _parse_currency(raw):
    currency = clean_text(raw).upper() or current_app.config.get(
        'DEFAULT_CURRENCY', 'CNY')
    if len(currency) != 3 or not currency.isalpha():
        raise ValidationError('currency must be a 3-letter code')
    return currency


def create_order(user, items, total_amount, currency=None):
    lines = _parse_order_lines(items)
    declared_total = to_money(total_amount, 'totalAmount')
    currency = _parse_currency(currency)

    listings = storage.get_listings_by_ids(line[0] for line in lines)
    computed_total = Decimal('0.00')
    for listing_id, quantity, unit_price in lines:
        listing = listings.get(listing_id)
        if not listing:
            raise NotFoundError(f'Listing {listing_id} not found')
        if listing.status != ListingStatus.ACTIVE:
            raise ValidationError(
                f'Listing {listing_id} is not available for purchase')
        if to_money(listing.price) != unit_price:
            raise ValidationError(
                f'Price of listing {listing_id} has changed')
        computed_total += unit_price * quantity

    if computed_total != declared_total:
        raise AmountMismatchError(computed_total, declared_total)

    try:
        order = storage.create_order(
            user_id=user.id,
            status=OrderStatus.CREATED,
            total_amount=computed_total,
            currency=currency,
        )
        for listing_id, quantity, unit_price in lines:
            storage.create_order_item(
                order_id=order.id,
                listing_id=listing_id,
                quantity=quantity,
                unit_price=unit_price,
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.error("Creating order for user %s failed", user.id,
                     exc_info=True)
        raise

    log_user_action(
        user,
        'ORDER_CREATE',
        target_type='ORDER',
        target_id=order.id,
        payload={
            'total_amount': float(computed_total),
            'currency': currency,
            'item_count': len(lines),
        },
    )
    return order_details([order])[0]


# ----------------------------------------------------------- transitions

def _set_status(actor, order, target, action, payload=None):
    old_status = order.status
    storage.update_order_status(order, target)
    db.session.commit()
    audit_payload = {'from': old_status.value, 'to': target.value}
    if payload:
        audit_payload.update(payload)
    log_user_action(
        actor,
        action,
        target_type='ORDER',
        target_id=order.id,
        payload=audit_payload,
    )
    return order


def _refund_completed_payment(order):
    payment = storage.get_payment_by_order_id(order.id)
    if payment and payment.status == PaymentStatus.COMPLETED:
        storage.update_payment_status(payment, PaymentStatus.REFUNDED)
        return True
    return False


def confirm_receipt(user, order_id, status):
    target = parse_status(status, allowed=CONFIRM_TARGETS)
    order = get_order_or_404(order_id)

    # State is checked before ownership: a non-shipped order is never
    # confirmable, whoever asks.
    if order.status != OrderStatus.SHIPPED:
        raise InvalidStateError('Only shipped orders can be confirmed')
    if order.user_id != user.id:
        raise ForbiddenError('Insufficient permissions')

    _set_status(user, order, target, 'ORDER_CONFIRM_RECEIPT')
    return order.to_dict()


def ship_order(user, order_id):
    order = get_order_or_404(order_id)
    if not is_admin(user):
        profile = vendor_profile_for(user)
        if not profile or not vendor_has_items_in(profile.id, order):
            raise ForbiddenError('Insufficient permissions')
    if order.status not in (OrderStatus.PAID, OrderStatus.PROCESSING):
        raise InvalidStateError('Only paid orders can be shipped')

    _set_status(user, order, OrderStatus.SHIPPED, 'ORDER_SHIP')
    return order.to_dict()


def complete_order(admin, order_id):
    order = get_order_or_404(order_id)
    if order.status not in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        raise InvalidStateError(
            'Only shipped or delivered orders can be completed')

    _set_status(admin, order, OrderStatus.COMPLETED, 'ORDER_COMPLETE')
    return order.to_dict()


def cancel_order(admin, order_id, reason):
    reason = clean_text(reason)
    if not reason:
        raise ValidationError('Cancellation reason is required')

    order = get_order_or_404(order_id)
    ensure_transition(order, OrderStatus.CANCELLED)

    old_status = order.status
    try:
        refunded = _refund_completed_payment(order)
        order.cancel_reason = reason
        storage.update_order_status(order, OrderStatus.CANCELLED)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.error("Cancelling order %s failed", order.id, exc_info=True)
        raise

    log_user_action(
        admin,
        'ORDER_CANCEL_ADMIN',
        target_type='ORDER',
        target_id=order.id,
        payload={
            'from': old_status.value,
            'reason': reason,
            'refunded': refunded,
        },
    )
    return order.to_dict()


def refund_order(admin, order_id):
    order = get_order_or_404(order_id)
    ensure_transition(order, OrderStatus.REFUNDED)

    old_status = order.status
    try:
        refunded = _refund_completed_payment(order)
        storage.update_order_status(order, OrderStatus.REFUNDED)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.error("Refunding order %s failed", order.id, exc_info=True)
        raise

    log_user_action(
        admin,
        'ORDER_REFUND',
        target_type='ORDER',
        target_id=order.id,
        payload={'from': old_status.value, 'payment_refunded': refunded},
    )
    return order.to_dict()


def admin_update_status(admin, order_id, status, reason=None):
    target = parse_status(status)
    if target == OrderStatus.CANCELLED:
        return cancel_order(admin, order_id, reason)
    if target == OrderStatus.REFUNDED:
        return refund_order(admin, order_id)

    order = get_order_or_404(order_id)
    if order.status == target:
        return order.to_dict()
    if target == OrderStatus.PAID:
        # Payment is the only path to PAID
        raise InvalidStateError('Orders become paid through a payment')
    ensure_transition(order, target)

    _set_status(admin, order, target, 'ORDER_ADMIN_STATUS_UPDATE')
    return order.to_dict()


def vendor_update_status(user, vendor_id, order_id, status):
    target = parse_status(status, allowed=VENDOR_TARGETS)
    vendor = resolve_vendor_for(user, vendor_id)
    order = get_order_or_404(order_id)
    if not vendor_has_items_in(vendor.id, order):
        raise ForbiddenError('Insufficient permissions')
    ensure_transition(order, target)

    _set_status(
        user,
        order,
        target,
        'ORDER_VENDOR_STATUS_UPDATE',
        payload={'vendor_id': vendor.id},
    )
    return order.to_dict()


# -------------------------------------------------------------- removal

def delete_order(admin, order_id):
    order = get_order_or_404(order_id)
    _delete(admin, order)


def vendor_delete_order(user, vendor_id, order_id):
    vendor = resolve_vendor_for(user, vendor_id)
    order = get_order_or_404(order_id)
    listing_ids = order_listing_ids(order)
    vendor_listing_ids = storage.get_listing_ids_by_vendor_id(vendor.id)
    # Orders shared with other vendors stay; only the admin may remove them
    if not listing_ids or not listing_ids <= vendor_listing_ids:
        raise ForbiddenError('Insufficient permissions')
    _delete(user, order, payload={'vendor_id': vendor.id})


def _delete(actor, order, payload=None):
    order_id = order.id
    status = order.status.value
    try:
        storage.delete_order(order)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.error("Deleting order %s failed", order_id, exc_info=True)
        raise

    audit_payload = {'status': status}
    if payload:
        audit_payload.update(payload)
    log_user_action(
        actor,
        'ORDER_DELETE',
        target_type='ORDER',
        target_id=order_id,
        payload=audit_payload,
    )
