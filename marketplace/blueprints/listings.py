from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from marketplace.middleware import role_required
from marketplace.services import listing_service
from marketplace.utils import json_body, parse_float_arg
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('listings', __name__)


def _viewer():
    return current_user if current_user.is_authenticated else None


def _int_arg(name, default, minimum=0):
    raw = request.args.get(name)
    if raw in (None, ''):
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(value, minimum)


@bp.route('/api/listings', methods=['GET'])
def list_listings():
    tags = request.args.get('tags')
    per_page = current_app.config.get('ITEMS_PER_PAGE', 20)
    result = listing_service.search_listings(
        viewer=_viewer(),
        search=request.args.get('search'),
        category=request.args.get('category'),
        category_id=request.args.get('categoryId'),
        min_price=parse_float_arg('minPrice'),
        max_price=parse_float_arg('maxPrice'),
        tags=tags.split(',') if tags else None,
        limit=_int_arg('limit', per_page, minimum=1),
        offset=_int_arg('offset', 0),
    )
    return jsonify(result)


@bp.route('/api/listings/featured', methods=['GET'])
def featured_listings():
    limit = _int_arg('limit', 4, minimum=1)
    return jsonify(listing_service.featured_listings(_viewer(), limit))


@bp.route('/api/listings/all', methods=['GET'])
@login_required
@role_required('ADMIN')
def all_listings():
    return jsonify(listing_service.list_all_listings())


@bp.route('/api/listings/<int:listing_id>', methods=['GET'])
def get_listing(listing_id):
    return jsonify(listing_service.get_listing_detail(listing_id, _viewer()))


@bp.route('/api/listings/<int:listing_id>/approve', methods=['POST'])
@login_required
@role_required('ADMIN')
def approve_listing(listing_id):
    return jsonify(listing_service.approve_listing(current_user, listing_id))


@bp.route('/api/listings/<int:listing_id>/reject', methods=['POST'])
@login_required
@role_required('ADMIN')
def reject_listing(listing_id):
    data = json_body()
    return jsonify(listing_service.reject_listing(
        current_user, listing_id, data.get('reason')))


@bp.route('/api/vendors/<int:vendor_id>/listings', methods=['GET'])
@login_required
def vendor_listings(vendor_id):
    return jsonify(
        listing_service.list_vendor_listings(current_user, vendor_id))


@bp.route('/api/vendors/<int:vendor_id>/listings', methods=['POST'])
@login_required
@role_required('VENDOR', 'ADMIN')
def create_listing(vendor_id):
    listing = listing_service.create_listing(
        current_user, vendor_id, json_body())
    return jsonify(listing), 201


@bp.route('/api/vendors/<int:vendor_id>/listings/<int:listing_id>',
          methods=['PUT', 'PATCH'])
@login_required
@role_required('VENDOR', 'ADMIN')
def update_listing(vendor_id, listing_id):
    return jsonify(listing_service.update_listing(
        current_user, vendor_id, listing_id, json_body()))


@bp.route('/api/vendors/<int:vendor_id>/listings/<int:listing_id>',
          methods=['DELETE'])
@login_required
@role_required('VENDOR', 'ADMIN')
def delete_listing(vendor_id, listing_id):
    listing_service.delete_listing(current_user, vendor_id, listing_id)
    return '', 204
