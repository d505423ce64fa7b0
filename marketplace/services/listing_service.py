"""Listing catalogue: browsing, vendor editing and moderation.

Editing an ACTIVE listing's title, description, price, category or type
sends it back to PENDING review; any edit of a REJECTED listing does too.
"""
from marketplace import storage
from marketplace.extensions import db
from marketplace.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from marketplace.models import (
    CommentStatus,
    ListingStatus,
    ListingType,
    UserRole,
    VendorVerificationStatus,
)
from marketplace.services.audit_service import log_user_action
from marketplace.services.comment_service import serialize_comments
from marketplace.services.vendor_service import resolve_vendor_for
from marketplace.utils import clean_text, to_money, to_positive_int
import logging

logger = logging.getLogger(__name__)

SIGNIFICANT_FIELDS = ('title', 'description', 'price', 'category_id', 'type')


def resolve_category(category_id=None, category=None):
    """Resolve a category id, slug or legacy display name to an id."""
    if category_id not in (None, ''):
        found = storage.get_category(to_positive_int(category_id,
                                                     'categoryId'))
        if not found:
            raise ValidationError('Category not found')
        return found.id

    name = clean_text(category)
    if not name:
        return None
    found = (storage.get_category_by_slug(name.lower())
             or storage.get_category_by_name(name))
    if not found:
        raise ValidationError(f'Unknown category: {name}')
    return found.id


def _parse_type(raw):
    try:
        return ListingType[clean_text(raw).upper()]
    except KeyError:
        raise ValidationError('type must be one of DIGITAL, SERVICE, PRODUCT')


def _parse_tags(raw):
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = raw.split(',')
    if not isinstance(raw, list):
        raise ValidationError('tags must be a list')
    return [clean_text(t) for t in raw if clean_text(t)]


def _parse_images(raw):
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError('images must be a list')
    return [clean_text(i) for i in raw if clean_text(i)]


def _listing_fields(data, partial=False):
    fields = {}

    for key in ('title', 'description'):
        if key in data or not partial:
            value = clean_text(data.get(key))
            if not value:
                raise ValidationError(f'{key} is required')
            fields[key] = value

    if 'price' in data or not partial:
        fields['price'] = to_money(data.get('price'), 'price')

    if 'type' in data:
        fields['type'] = _parse_type(data.get('type'))
    elif not partial:
        fields['type'] = ListingType.DIGITAL

    if 'categoryId' in data or 'category' in data:
        fields['category_id'] = resolve_category(
            data.get('categoryId'), data.get('category'))

    if 'tags' in data or not partial:
        fields['tags'] = _parse_tags(data.get('tags'))
    if 'images' in data or not partial:
        fields['images'] = _parse_images(data.get('images'))
    if 'downloadUrl' in data:
        fields['download_url'] = clean_text(data.get('downloadUrl')) or None

    return fields


# -------------------------------------------------------------- reading

def serialize_listings(listings, viewer=None):
    vendors = storage.get_vendor_profiles_by_ids(
        listing.vendor_id for listing in listings)
    saved_ids = set()
    if viewer is not None:
        saved_ids = storage.get_saved_listing_ids(viewer.id)

    result = []
    for listing in listings:
        payload = listing.to_dict()
        vendor = vendors.get(listing.vendor_id)
        payload['vendor'] = vendor.to_summary() if vendor else None
        payload['isSaved'] = listing.id in saved_ids
        result.append(payload)
    return result


def search_listings(viewer=None, search=None, category=None,
                    category_id=None, min_price=None, max_price=None,
                    tags=None, limit=20, offset=0):
    resolved_category = None
    if category_id not in (None, '') or category:
        resolved_category = resolve_category(category_id, category)
    listings = storage.search_active_listings(
        search=clean_text(search) or None,
        category_id=resolved_category,
        min_price=min_price,
        max_price=max_price,
        tags=tags,
        limit=limit,
        offset=offset,
    )
    return serialize_listings(listings, viewer)


def featured_listings(viewer=None, limit=4):
    return serialize_listings(storage.get_featured_listings(limit), viewer)


def _can_manage(viewer, listing):
    if viewer is None:
        return False
    if viewer.role == UserRole.ADMIN:
        return True
    profile = storage.get_vendor_profile_by_user_id(viewer.id)
    return profile is not None and profile.id == listing.vendor_id


def get_listing_detail(listing_id, viewer=None):
    listing = storage.get_listing(listing_id)
    # Unpublished listings look absent to everyone but their vendor
    if not listing or (listing.status != ListingStatus.ACTIVE
                       and not _can_manage(viewer, listing)):
        raise NotFoundError('Listing not found')

    payload = serialize_listings([listing], viewer)[0]
    comments = storage.get_comments_by_listing_id(
        listing.id, status=CommentStatus.APPROVED)
    payload['comments'] = serialize_comments(comments)
    return payload


def list_vendor_listings(user, vendor_id):
    vendor = resolve_vendor_for(user, vendor_id)
    return serialize_listings(
        storage.get_listings_by_vendor_id(vendor.id), user)


def list_pending_listings():
    return serialize_listings(storage.get_pending_listings())


def list_all_listings():
    return serialize_listings(storage.get_all_listings())


# -------------------------------------------------------------- editing

def _get_vendor_listing(vendor, listing_id):
    listing = storage.get_listing(listing_id)
    if not listing or listing.vendor_id != vendor.id:
        raise NotFoundError('Listing not found')
    return listing


def create_listing(user, vendor_id, data):
    vendor = resolve_vendor_for(user, vendor_id)
    if vendor.verification_status != VendorVerificationStatus.APPROVED:
        raise ForbiddenError('Vendor is not approved')

    fields = _listing_fields(data)
    listing = storage.create_listing(
        vendor_id=vendor.id,
        status=ListingStatus.PENDING,
        **fields,
    )
    db.session.commit()

    log_user_action(
        user,
        'LISTING_CREATE',
        target_type='LISTING',
        target_id=listing.id,
        payload={'title': listing.title, 'price': float(listing.price)},
    )
    return listing.to_dict()


def update_listing(user, vendor_id, listing_id, data):
    vendor = resolve_vendor_for(user, vendor_id)
    listing = _get_vendor_listing(vendor, listing_id)
    fields = _listing_fields(data, partial=True)

    changed = {
        key for key, value in fields.items()
        if getattr(listing, key) != value
    }
    old_status = listing.status
    if (listing.status == ListingStatus.ACTIVE
            and changed.intersection(SIGNIFICANT_FIELDS)):
        fields['status'] = ListingStatus.PENDING
    elif listing.status == ListingStatus.REJECTED:
        fields['status'] = ListingStatus.PENDING
        fields['rejection_reason'] = None

    storage.update_listing(listing, **fields)
    db.session.commit()

    log_user_action(
        user,
        'LISTING_UPDATE',
        target_type='LISTING',
        target_id=listing.id,
        payload={
            'changed': sorted(changed),
            'from': old_status.value,
            'to': listing.status.value,
        },
    )
    return listing.to_dict()


def delete_listing(user, vendor_id, listing_id):
    vendor = resolve_vendor_for(user, vendor_id)
    listing = _get_vendor_listing(vendor, listing_id)

    # Order history keeps referencing the row, so it is only hidden
    if storage.listing_has_orders(listing.id):
        storage.update_listing(listing, status=ListingStatus.INACTIVE)
        action = 'LISTING_DEACTIVATE'
    else:
        storage.delete_listing(listing)
        action = 'LISTING_DELETE'
    db.session.commit()

    log_user_action(
        user,
        action,
        target_type='LISTING',
        target_id=listing_id,
    )


# ----------------------------------------------------------- moderation

def _get_listing_or_404(listing_id):
    listing = storage.get_listing(listing_id)
    if not listing:
        raise NotFoundError('Listing not found')
    return listing


def approve_listing(admin, listing_id):
    listing = _get_listing_or_404(listing_id)
    if listing.status == ListingStatus.ACTIVE:
        raise InvalidStateError('Listing is already active')

    storage.update_listing(
        listing,
        status=ListingStatus.ACTIVE,
        rejection_reason=None,
    )
    db.session.commit()

    log_user_action(
        admin,
        'LISTING_APPROVE',
        target_type='LISTING',
        target_id=listing.id,
    )
    return listing.to_dict()


def reject_listing(admin, listing_id, reason):
    reason = clean_text(reason)
    if not reason:
        raise ValidationError('Rejection reason is required')
    listing = _get_listing_or_404(listing_id)

    storage.update_listing(
        listing,
        status=ListingStatus.REJECTED,
        rejection_reason=reason,
    )
    db.session.commit()

    log_user_action(
        admin,
        'LISTING_REJECT',
        target_type='LISTING',
        target_id=listing.id,
        payload={'reason': reason},
    )
    return listing.to_dict()
