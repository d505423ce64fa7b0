from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace import storage
from marketplace.extensions import db
from marketplace.exceptions import ConflictError, NotFoundError
from marketplace.services.audit_service import log_audit
from marketplace.services.listing_service import serialize_listings
from marketplace.utils import json_body, to_positive_int
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('favorites', __name__)


@bp.route('/api/users/favorites', methods=['GET'])
@login_required
def list_favorites():
    listings = storage.get_user_saved_listings(current_user.id)
    return jsonify(serialize_listings(listings, current_user))


@bp.route('/api/users/favorites', methods=['POST'])
@login_required
def add_favorite():
    data = json_body()
    listing_id = to_positive_int(data.get('listingId'), 'listingId')

    listing = storage.get_listing(listing_id)
    if not listing:
        raise NotFoundError('Listing not found')
    if storage.is_listing_saved_by_user(current_user.id, listing.id):
        raise ConflictError('Listing already saved')

    saved = storage.save_listing_for_user(current_user.id, listing.id)
    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='FAVORITE_ADD',
        target_type='LISTING',
        target_id=listing.id
    )
    return jsonify(saved.to_dict()), 201


@bp.route('/api/users/favorites/<int:listing_id>', methods=['DELETE'])
@login_required
def remove_favorite(listing_id):
    if not storage.remove_saved_listing(current_user.id, listing_id):
        raise NotFoundError('Saved listing not found')
    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='FAVORITE_REMOVE',
        target_type='LISTING',
        target_id=listing_id
    )
    return '', 204


@bp.route('/api/users/favorites/<int:listing_id>', methods=['GET'])
@login_required
def favorite_status(listing_id):
    saved = storage.is_listing_saved_by_user(current_user.id, listing_id)
    return jsonify({'saved': saved})
