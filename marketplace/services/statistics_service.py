"""Admin reporting over orders, users and vendors.

Each report loads the filtered orders once, then resolves related rows
(users, items, listings, vendors, payments) with one batch query per
entity rather than per order.
"""
from flask import current_app
from marketplace import storage
from marketplace.models import ListingStatus, User, VendorProfile
from datetime import datetime, timedelta
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)

TIME_RANGES = ('today', 'week', 'month', 'year', 'all')


def time_range_start(time_range, now=None):
    """Return the UTC window start for ``time_range``; None means all."""
    now = now or datetime.utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if time_range == 'today':
        return midnight
    if time_range == 'week':
        # Weeks start on Sunday; weekday() counts Monday as 0
        return midnight - timedelta(days=(midnight.weekday() + 1) % 7)
    if time_range == 'month':
        return midnight.replace(day=1)
    if time_range == 'year':
        return midnight.replace(month=1, day=1)
    return None


def normalize_time_range(raw):
    value = (raw or 'all').strip().lower()
    return value if value in TIME_RANGES else 'all'


def _counted_statuses():
    return set(current_app.config.get(
        'STATISTICS_ORDER_STATUSES', ('COMPLETED', 'PROCESSING')))


def _counted_orders(time_range, now=None):
    statuses = _counted_statuses()
    start = time_range_start(time_range, now)
    orders = storage.get_orders_created_since(start)
    return [o for o in orders if o.status.value in statuses]


def _iso(value):
    return value.isoformat() if value else None


def user_spending(time_range='all', now=None):
    orders = _counted_orders(time_range, now)
    users = storage.get_users_by_ids(o.user_id for o in orders)

    totals = {}
    for order in orders:
        user = users.get(order.user_id)
        if user is None:
            continue
        entry = totals.setdefault(user.id, {
            'user': user,
            'total': Decimal('0.00'),
            'count': 0,
            'last': None,
        })
        entry['total'] += order.total_amount
        entry['count'] += 1
        if entry['last'] is None or order.created_at > entry['last']:
            entry['last'] = order.created_at

    result = []
    for entry in totals.values():
        user = entry['user']
        result.append({
            'userId': user.id,
            'firstName': user.first_name,
            'lastName': user.last_name,
            'email': user.email,
            'totalSpent': float(entry['total']),
            'orderCount': entry['count'],
            'lastOrderDate': _iso(entry['last']),
        })
    result.sort(key=lambda r: r['totalSpent'], reverse=True)
    return result


def vendor_sales(time_range='all', now=None):
    orders = _counted_orders(time_range, now)
    orders_by_id = {o.id: o for o in orders}
    items_by_order = storage.get_order_items_for_orders(orders_by_id)
    listings = storage.get_listings_by_ids(
        item.listing_id
        for items in items_by_order.values()
        for item in items
    )
    vendors = storage.get_vendor_profiles_by_ids(
        listing.vendor_id for listing in listings.values())

    totals = {}
    for order_id, items in items_by_order.items():
        order = orders_by_id[order_id]
        for item in items:
            listing = listings.get(item.listing_id)
            vendor = vendors.get(listing.vendor_id) if listing else None
            if vendor is None:
                continue
            entry = totals.setdefault(vendor.id, {
                'vendor': vendor,
                'total': Decimal('0.00'),
                'listings': set(),
                'orders': set(),
                'last': None,
            })
            entry['total'] += item.unit_price * item.quantity
            entry['listings'].add(item.listing_id)
            entry['orders'].add(order_id)
            if entry['last'] is None or order.created_at > entry['last']:
                entry['last'] = order.created_at

    result = []
    for entry in totals.values():
        vendor = entry['vendor']
        result.append({
            'vendorId': vendor.id,
            'companyName': vendor.company_name,
            'totalSales': float(entry['total']),
            'productCount': len(entry['listings']),
            'orderCount': len(entry['orders']),
            'lastSaleDate': _iso(entry['last']),
        })
    result.sort(key=lambda r: r['totalSales'], reverse=True)
    return result


def order_records(time_range='all', now=None):
    start = time_range_start(time_range, now)
    orders = storage.get_orders_created_since(start)
    order_ids = [o.id for o in orders]
    users = storage.get_users_by_ids(o.user_id for o in orders)
    payments = storage.get_payments_by_order_ids(order_ids)
    items_by_order = storage.get_order_items_for_orders(order_ids)
    listings = storage.get_listings_by_ids(
        item.listing_id
        for items in items_by_order.values()
        for item in items
    )
    vendors = storage.get_vendor_profiles_by_ids(
        listing.vendor_id for listing in listings.values())

    result = []
    for order in orders:
        user = users.get(order.user_id)
        if user is None:
            continue

        items = []
        for item in items_by_order.get(order.id, []):
            listing = listings.get(item.listing_id)
            if listing is None:
                continue
            vendor = vendors.get(listing.vendor_id)
            items.append({
                'id': item.id,
                'listingId': listing.id,
                'listingTitle': listing.title,
                'vendorId': listing.vendor_id,
                'vendorName': vendor.company_name if vendor else None,
                'unitPrice': float(item.unit_price),
                'quantity': item.quantity,
            })

        payment = payments.get(order.id)
        result.append({
            'id': order.id,
            'userId': user.id,
            'userName': user.full_name,
            'userEmail': user.email,
            'totalAmount': float(order.total_amount),
            'status': order.status.value,
            'createdAt': _iso(order.created_at),
            'paymentStatus': payment.status.value if payment else None,
            'items': items,
        })
    return result


def overview():
    return {
        'totalUsers': storage.count_rows(User),
        'totalVendors': storage.count_rows(VendorProfile),
        'pendingVendors': len(storage.get_pending_vendors()),
        'totalListings': storage.count_listings(),
        'activeListings': storage.count_listings(ListingStatus.ACTIVE),
        'pendingListings': storage.count_listings(ListingStatus.PENDING),
        'ordersByStatus': storage.count_orders_by_status(),
        'totalSales': float(storage.sum_completed_payments()),
    }
