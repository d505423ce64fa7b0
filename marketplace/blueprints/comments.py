from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace import storage
from marketplace.exceptions import NotFoundError
from marketplace.middleware import role_required
from marketplace.models import CommentStatus, ListingStatus
from marketplace.services import comment_service
from marketplace.utils import json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('comments', __name__)


@bp.route('/api/listings/<int:listing_id>/comments', methods=['GET'])
def list_listing_comments(listing_id):
    listing = storage.get_listing(listing_id)
    if not listing or listing.status != ListingStatus.ACTIVE:
        raise NotFoundError('Listing not found')
    comments = storage.get_comments_by_listing_id(
        listing.id, status=CommentStatus.APPROVED)
    return jsonify(comment_service.serialize_comments(comments))


@bp.route('/api/listings/<int:listing_id>/comments', methods=['POST'])
@login_required
def create_comment(listing_id):
    data = json_body()
    comment = comment_service.create_comment(
        current_user,
        listing_id,
        data.get('content'),
        data.get('rating'),
    )
    return jsonify(comment), 201


@bp.route('/api/admin/comments/pending', methods=['GET'])
@login_required
@role_required('ADMIN')
def pending_comments():
    comments = storage.get_pending_comments()
    return jsonify(comment_service.serialize_comments(comments))


@bp.route('/api/admin/comments/<int:comment_id>', methods=['PATCH'])
@login_required
@role_required('ADMIN')
def moderate_comment(comment_id):
    data = json_body()
    return jsonify(comment_service.moderate_comment(
        current_user,
        comment_id,
        data.get('status'),
        data.get('reason'),
    ))
