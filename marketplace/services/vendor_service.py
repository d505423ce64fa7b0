from marketplace import storage
from marketplace.extensions import db
from marketplace.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from marketplace.models import (
    ListingStatus,
    UserRole,
    VendorVerificationStatus,
)
from marketplace.services.audit_service import log_user_action
from marketplace.utils import clean_text
import logging

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    'companyName': 'company_name',
    'businessNumber': 'business_number',
    'website': 'website',
    'description': 'description',
}


def resolve_vendor_for(user, vendor_id):
    """Load a vendor profile the caller may act for (owner or admin)."""
    vendor = storage.get_vendor_profile(vendor_id)
    if not vendor:
        raise NotFoundError('Vendor not found')
    if vendor.user_id != user.id and user.role != UserRole.ADMIN:
        raise ForbiddenError('Insufficient permissions')
    return vendor


def _profile_fields(data, required=True):
    fields = {}
    for key, column in EDITABLE_FIELDS.items():
        if key in data:
            fields[column] = clean_text(data.get(key)) or None
    if required:
        for key in ('companyName', 'businessNumber'):
            if not fields.get(EDITABLE_FIELDS[key]):
                raise ValidationError(f'{key} is required')
    else:
        for key in ('companyName', 'businessNumber'):
            column = EDITABLE_FIELDS[key]
            if column in fields and not fields[column]:
                raise ValidationError(f'{key} cannot be empty')
    return fields


def create_pending_profile(user, data, strict=True):
    """Stage a PENDING profile for ``user``; the caller commits.

    Registration passes ``strict=False`` so a vendor may sign up first and
    fill in company details before moderation.
    """
    if storage.get_vendor_profile_by_user_id(user.id):
        raise ConflictError('Vendor profile already exists')
    if strict:
        fields = _profile_fields(data)
    else:
        fields = {
            column: clean_text(data.get(key))
            for key, column in EDITABLE_FIELDS.items()
        }
    return storage.create_vendor_profile(
        user_id=user.id,
        verification_status=VendorVerificationStatus.PENDING,
        **fields,
    )


def upgrade_to_vendor(user, data):
    if user.role == UserRole.ADMIN:
        raise ValidationError('Admins cannot become vendors')
    try:
        profile = create_pending_profile(user, data)
        storage.update_user(user, role=UserRole.VENDOR)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log_user_action(
        user,
        'VENDOR_APPLY',
        target_type='VENDOR',
        target_id=profile.id,
        payload={'company_name': profile.company_name},
    )
    return profile.to_dict()


def list_approved_vendors():
    vendors = storage.get_approved_vendors()
    counts = storage.count_active_listings_by_vendor()
    result = []
    for vendor in vendors:
        payload = vendor.to_dict()
        payload['listingCount'] = counts.get(vendor.id, 0)
        result.append(payload)
    return result


def get_vendor_detail(vendor_id, viewer=None):
    vendor = storage.get_vendor_profile(vendor_id)
    if not vendor:
        raise NotFoundError('Vendor not found')
    is_privileged = viewer is not None and (
        viewer.role == UserRole.ADMIN or viewer.id == vendor.user_id)
    if (vendor.verification_status != VendorVerificationStatus.APPROVED
            and not is_privileged):
        raise NotFoundError('Vendor not found')

    listings = vendor.listings.filter_by(status=ListingStatus.ACTIVE).all()
    payload = vendor.to_dict()
    payload['listings'] = [listing.to_dict() for listing in listings]
    return payload


def update_vendor(user, vendor_id, data):
    vendor = resolve_vendor_for(user, vendor_id)
    if 'verificationStatus' in data and user.role != UserRole.ADMIN:
        raise ForbiddenError('Verification status is set by moderation')

    fields = _profile_fields(data, required=False)
    storage.update_vendor_profile(vendor, **fields)
    db.session.commit()

    log_user_action(
        user,
        'VENDOR_UPDATE',
        target_type='VENDOR',
        target_id=vendor.id,
        payload={'fields': sorted(fields)},
    )
    return vendor.to_dict()


def approve_vendor(admin, vendor_id):
    vendor = storage.get_vendor_profile(vendor_id)
    if not vendor:
        raise NotFoundError('Vendor not found')
    if vendor.verification_status == VendorVerificationStatus.APPROVED:
        raise InvalidStateError('Vendor is already approved')

    storage.update_vendor_profile(
        vendor,
        verification_status=VendorVerificationStatus.APPROVED,
        rejection_reason=None,
    )
    db.session.commit()

    log_user_action(
        admin,
        'VENDOR_APPROVE',
        target_type='VENDOR',
        target_id=vendor.id,
    )
    return vendor.to_dict()


def reject_vendor(admin, vendor_id, reason):
    reason = clean_text(reason)
    if not reason:
        raise ValidationError('Rejection reason is required')
    vendor = storage.get_vendor_profile(vendor_id)
    if not vendor:
        raise NotFoundError('Vendor not found')

    storage.update_vendor_profile(
        vendor,
        verification_status=VendorVerificationStatus.REJECTED,
        rejection_reason=reason,
    )
    db.session.commit()

    log_user_action(
        admin,
        'VENDOR_REJECT',
        target_type='VENDOR',
        target_id=vendor.id,
        payload={'reason': reason},
    )
    return vendor.to_dict()
