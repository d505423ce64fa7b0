from flask import current_app
from marketplace import storage
from marketplace.extensions import db
from marketplace.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from marketplace.models import CommentStatus, OrderStatus
from marketplace.services.audit_service import log_user_action
from marketplace.utils import clean_text
import logging

logger = logging.getLogger(__name__)


def _eligible_statuses():
    names = current_app.config.get('COMMENT_ELIGIBLE_ORDER_STATUSES', ())
    return [OrderStatus[name] for name in names]


def _parse_rating(raw):
    if isinstance(raw, bool):
        raise ValidationError('rating must be an integer between 1 and 5')
    try:
        rating = int(raw)
    except (TypeError, ValueError):
        raise ValidationError('rating must be an integer between 1 and 5')
    if isinstance(raw, float) and raw != rating:
        raise ValidationError('rating must be an integer between 1 and 5')
    if rating < 1 or rating > 5:
        raise ValidationError('rating must be an integer between 1 and 5')
    return rating


def serialize_comments(comments):
    users = storage.get_users_by_ids(c.user_id for c in comments)
    listings = storage.get_listings_by_ids(c.listing_id for c in comments)
    result = []
    for comment in comments:
        payload = comment.to_dict()
        user = users.get(comment.user_id)
        listing = listings.get(comment.listing_id)
        payload['user'] = user.to_summary() if user else None
        payload['listing'] = listing.to_summary() if listing else None
        result.append(payload)
    return result


def create_comment(user, listing_id, content, rating):
    listing = storage.get_listing(listing_id)
    if not listing:
        raise NotFoundError('Listing not found')

    content = clean_text(content)
    if not content:
        raise ValidationError('Comment content cannot be empty')
    rating = _parse_rating(rating)

    if not storage.user_ordered_listing(
            user.id, listing.id, _eligible_statuses()):
        raise ForbiddenError(
            'Only buyers who purchased this listing can comment')
    if storage.get_open_comment(user.id, listing.id):
        raise ConflictError('You have already commented on this listing')

    comment = storage.create_comment(
        user_id=user.id,
        listing_id=listing.id,
        content=content,
        rating=rating,
        status=CommentStatus.PENDING,
    )
    db.session.commit()

    log_user_action(
        user,
        'COMMENT_CREATE',
        target_type='COMMENT',
        target_id=comment.id,
        payload={'listing_id': listing.id, 'rating': rating},
    )
    return comment.to_dict()


def moderate_comment(admin, comment_id, status, reason=None):
    try:
        target = CommentStatus[clean_text(status).upper()]
    except KeyError:
        target = None
    if target not in (CommentStatus.APPROVED, CommentStatus.REJECTED):
        raise ValidationError('status must be APPROVED or REJECTED')

    comment = storage.get_comment(comment_id)
    if not comment:
        raise NotFoundError('Comment not found')

    reason = clean_text(reason) or None
    if target == CommentStatus.APPROVED:
        reason = None
    storage.update_comment_status(comment, target, reason=reason)
    db.session.commit()

    log_user_action(
        admin,
        f'COMMENT_{target.value}',
        target_type='COMMENT',
        target_id=comment.id,
        payload={'reason': reason},
    )
    return comment.to_dict()
