"""Typed accessors over the ORM models.

Writers add and flush but never commit: the caller owns the unit of work
and commits once every step of a multi-row change has been staged.
Batch ``*_by_ids`` helpers return ``{id: row}`` maps so aggregations can
resolve related rows with one query per entity.
"""
from marketplace.extensions import db
from marketplace.models import (
    User,
    VendorProfile,
    VendorVerificationStatus,
    Category,
    Listing,
    ListingStatus,
    Order,
    OrderItem,
    Payment,
    PaymentStatus,
    Comment,
    CommentStatus,
    UserSavedListing,
)
from sqlalchemy import or_
import logging

logger = logging.getLogger(__name__)


def _create(model_class, **fields):
    row = model_class(**fields)
    db.session.add(row)
    db.session.flush()
    return row


def _update(row, **fields):
    if row is None:
        return None
    for key, value in fields.items():
        setattr(row, key, value)
    db.session.flush()
    return row


def _by_ids(model_class, ids):
    ids = {i for i in ids if i is not None}
    if not ids:
        return {}
    rows = model_class.query.filter(model_class.id.in_(ids)).all()
    return {row.id: row for row in rows}


# ---------------------------------------------------------------- users

def get_user(user_id):
    return db.session.get(User, user_id)


def get_user_by_email(email):
    return User.query.filter_by(email=email).first()


def get_all_users():
    return User.query.order_by(User.created_at.desc()).all()


def get_users_by_ids(user_ids):
    return _by_ids(User, user_ids)


def create_user(password, **fields):
    user = User(**fields)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    return user


def update_user(user, **fields):
    return _update(user, **fields)


# -------------------------------------------------------------- vendors

def get_vendor_profile(vendor_id):
    return db.session.get(VendorProfile, vendor_id)


def get_vendor_profile_by_user_id(user_id):
    return VendorProfile.query.filter_by(user_id=user_id).first()


def get_vendor_profiles_by_ids(vendor_ids):
    return _by_ids(VendorProfile, vendor_ids)


def get_all_vendors():
    return VendorProfile.query.order_by(VendorProfile.created_at.desc()).all()


def get_pending_vendors():
    return VendorProfile.query.filter_by(
        verification_status=VendorVerificationStatus.PENDING
    ).order_by(VendorProfile.created_at).all()


def get_approved_vendors():
    return VendorProfile.query.filter_by(
        verification_status=VendorVerificationStatus.APPROVED
    ).order_by(VendorProfile.company_name).all()


def create_vendor_profile(**fields):
    return _create(VendorProfile, **fields)


def update_vendor_profile(profile, **fields):
    return _update(profile, **fields)


# ------------------------------------------------------------- listings

def get_listing(listing_id):
    return db.session.get(Listing, listing_id)


def get_listings_by_ids(listing_ids):
    return _by_ids(Listing, listing_ids)


def get_listings_by_vendor_id(vendor_id):
    return Listing.query.filter_by(vendor_id=vendor_id).order_by(
        Listing.created_at.desc()).all()


def get_listing_ids_by_vendor_id(vendor_id):
    rows = db.session.query(Listing.id).filter(
        Listing.vendor_id == vendor_id).all()
    return {row.id for row in rows}


def get_all_listings():
    return Listing.query.order_by(Listing.created_at.desc()).all()


def get_pending_listings():
    return Listing.query.filter_by(status=ListingStatus.PENDING).order_by(
        Listing.created_at).all()


def get_featured_listings(limit=4):
    return Listing.query.filter_by(status=ListingStatus.ACTIVE).order_by(
        Listing.created_at.desc(), Listing.id.desc()).limit(limit).all()


def search_active_listings(
        search=None,
        category_id=None,
        min_price=None,
        max_price=None,
        tags=None,
        limit=20,
        offset=0):
    query = Listing.query.filter(Listing.status == ListingStatus.ACTIVE)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Listing.title.ilike(pattern),
            Listing.description.ilike(pattern),
        ))
    if category_id is not None:
        query = query.filter(Listing.category_id == category_id)
    if min_price is not None:
        query = query.filter(Listing.price >= min_price)
    if max_price is not None:
        query = query.filter(Listing.price <= max_price)

    query = query.order_by(Listing.created_at.desc(), Listing.id.desc())
    if not tags:
        return query.offset(offset).limit(limit).all()

    # JSON tag arrays are matched in Python to stay portable across
    # SQLite and PostgreSQL.
    wanted = {t.strip().lower() for t in tags if t and t.strip()}
    matched = [
        listing for listing in query.all()
        if wanted & {str(t).lower() for t in (listing.tags or [])}
    ]
    return matched[offset:offset + limit]


def count_listings_by_category():
    rows = db.session.query(
        Listing.category_id,
        db.func.count(Listing.id)
    ).filter(
        Listing.status == ListingStatus.ACTIVE
    ).group_by(Listing.category_id).all()
    return {category_id: count for category_id, count in rows}


def count_active_listings_by_vendor():
    rows = db.session.query(
        Listing.vendor_id,
        db.func.count(Listing.id)
    ).filter(
        Listing.status == ListingStatus.ACTIVE
    ).group_by(Listing.vendor_id).all()
    return {vendor_id: count for vendor_id, count in rows}


def listing_has_orders(listing_id):
    return db.session.query(OrderItem.id).filter(
        OrderItem.listing_id == listing_id).first() is not None


def create_listing(**fields):
    return _create(Listing, **fields)


def update_listing(listing, **fields):
    return _update(listing, **fields)


def delete_listing(listing):
    Comment.query.filter_by(listing_id=listing.id).delete()
    UserSavedListing.query.filter_by(listing_id=listing.id).delete()
    db.session.delete(listing)
    db.session.flush()


# ----------------------------------------------------------- categories

def get_all_categories():
    return Category.query.order_by(Category.name).all()


def get_category(category_id):
    return db.session.get(Category, category_id)


def get_category_by_slug(slug):
    return Category.query.filter_by(slug=slug).first()


def get_category_by_name(name):
    return Category.query.filter(
        db.func.lower(Category.name) == name.lower()).first()


def category_in_use(category_id):
    return Listing.query.filter_by(category_id=category_id).first() is not None


def create_category(**fields):
    return _create(Category, **fields)


def update_category(category, **fields):
    return _update(category, **fields)


def delete_category(category):
    db.session.delete(category)
    db.session.flush()


# --------------------------------------------------------------- orders

def get_order(order_id):
    return db.session.get(Order, order_id)


def get_orders_by_user_id(user_id):
    return Order.query.filter_by(user_id=user_id).order_by(
        Order.created_at.desc(), Order.id.desc()).all()


def get_all_orders():
    return Order.query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_orders_created_since(start=None):
    query = Order.query
    if start is not None:
        query = query.filter(Order.created_at >= start)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_orders_by_vendor_id(vendor_id):
    listing_ids = get_listing_ids_by_vendor_id(vendor_id)
    if not listing_ids:
        return []
    order_ids = db.select(OrderItem.order_id).where(
        OrderItem.listing_id.in_(listing_ids)
    ).distinct()
    return Order.query.filter(Order.id.in_(order_ids)).order_by(
        Order.created_at.desc(), Order.id.desc()).all()


def create_order(**fields):
    return _create(Order, **fields)


def update_order_status(order, status):
    return _update(order, status=status)


def delete_order(order):
    OrderItem.query.filter_by(order_id=order.id).delete()
    Payment.query.filter_by(order_id=order.id).delete()
    db.session.delete(order)
    db.session.flush()


# ---------------------------------------------------------- order items

def get_order_items(order_id):
    return OrderItem.query.filter_by(order_id=order_id).order_by(
        OrderItem.id).all()


def get_order_items_for_orders(order_ids):
    order_ids = set(order_ids)
    if not order_ids:
        return {}
    grouped = {order_id: [] for order_id in order_ids}
    rows = OrderItem.query.filter(
        OrderItem.order_id.in_(order_ids)).order_by(OrderItem.id).all()
    for item in rows:
        grouped[item.order_id].append(item)
    return grouped


def create_order_item(**fields):
    return _create(OrderItem, **fields)


def user_ordered_listing(user_id, listing_id, statuses):
    return db.session.query(OrderItem.id).join(
        Order, Order.id == OrderItem.order_id
    ).filter(
        Order.user_id == user_id,
        Order.status.in_(statuses),
        OrderItem.listing_id == listing_id,
    ).first() is not None


# ------------------------------------------------------------- payments

def get_payment(payment_id):
    return db.session.get(Payment, payment_id)


def get_payment_by_order_id(order_id):
    return Payment.query.filter_by(order_id=order_id).order_by(
        Payment.id.desc()).first()


def get_payments_by_order_ids(order_ids):
    order_ids = set(order_ids)
    if not order_ids:
        return {}
    latest = {}
    rows = Payment.query.filter(
        Payment.order_id.in_(order_ids)).order_by(Payment.id).all()
    for payment in rows:
        latest[payment.order_id] = payment
    return latest


def get_all_payments():
    return Payment.query.all()


def create_payment(**fields):
    return _create(Payment, **fields)


def update_payment_status(payment, status, transaction_id=None):
    fields = {'status': status}
    if transaction_id:
        fields['transaction_id'] = transaction_id
    return _update(payment, **fields)


# ------------------------------------------------------------- comments

def get_comment(comment_id):
    return db.session.get(Comment, comment_id)


def get_comments_by_listing_id(listing_id, status=None):
    query = Comment.query.filter_by(listing_id=listing_id)
    if status is not None:
        query = query.filter_by(status=status)
    return query.order_by(Comment.created_at.desc()).all()


def get_pending_comments():
    return Comment.query.filter_by(status=CommentStatus.PENDING).order_by(
        Comment.created_at).all()


def get_open_comment(user_id, listing_id):
    return Comment.query.filter(
        Comment.user_id == user_id,
        Comment.listing_id == listing_id,
        Comment.status.in_([CommentStatus.PENDING, CommentStatus.APPROVED]),
    ).first()


def create_comment(**fields):
    return _create(Comment, **fields)


def update_comment_status(comment, status, reason=None):
    return _update(comment, status=status, rejection_reason=reason)


# ------------------------------------------------------- saved listings

def is_listing_saved_by_user(user_id, listing_id):
    return UserSavedListing.query.filter_by(
        user_id=user_id,
        listing_id=listing_id,
    ).first() is not None


def get_saved_listing_ids(user_id):
    rows = db.session.query(UserSavedListing.listing_id).filter(
        UserSavedListing.user_id == user_id).all()
    return {row.listing_id for row in rows}


def get_user_saved_listings(user_id):
    return Listing.query.join(
        UserSavedListing, UserSavedListing.listing_id == Listing.id
    ).filter(
        UserSavedListing.user_id == user_id
    ).order_by(UserSavedListing.saved_at.desc()).all()


def save_listing_for_user(user_id, listing_id):
    return _create(UserSavedListing, user_id=user_id, listing_id=listing_id)


def remove_saved_listing(user_id, listing_id):
    deleted = UserSavedListing.query.filter_by(
        user_id=user_id,
        listing_id=listing_id,
    ).delete()
    db.session.flush()
    return deleted > 0


# ------------------------------------------------------------ aggregates

def count_rows(model_class):
    return db.session.query(db.func.count(model_class.id)).scalar() or 0


def count_orders_by_status():
    rows = db.session.query(
        Order.status,
        db.func.count(Order.id)
    ).group_by(Order.status).all()
    return {status.value: count for status, count in rows}


def sum_completed_payments():
    total = db.session.query(db.func.sum(Payment.amount)).filter(
        Payment.status == PaymentStatus.COMPLETED).scalar()
    return total or 0


def count_listings(status=None):
    query = Listing.query
    if status is not None:
        query = query.filter_by(status=status)
    return query.count()
