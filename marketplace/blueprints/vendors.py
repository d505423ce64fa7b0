from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace import storage
from marketplace.exceptions import NotFoundError
from marketplace.middleware import role_required
from marketplace.services import order_service, vendor_service
from marketplace.utils import json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('vendors', __name__)


@bp.route('/api/vendors', methods=['GET'])
def list_vendors():
    return jsonify(vendor_service.list_approved_vendors())


@bp.route('/api/vendors', methods=['POST'])
@login_required
def become_vendor():
    profile = vendor_service.upgrade_to_vendor(current_user, json_body())
    return jsonify(profile), 201


@bp.route('/api/vendors/all', methods=['GET'])
@login_required
@role_required('ADMIN')
def all_vendors():
    return jsonify([v.to_dict() for v in storage.get_all_vendors()])


@bp.route('/api/vendors/<int:vendor_id>', methods=['GET'])
def get_vendor(vendor_id):
    viewer = current_user if current_user.is_authenticated else None
    return jsonify(vendor_service.get_vendor_detail(vendor_id, viewer))


@bp.route('/api/vendors/<int:vendor_id>', methods=['PUT', 'PATCH'])
@login_required
def update_vendor(vendor_id):
    return jsonify(
        vendor_service.update_vendor(current_user, vendor_id, json_body()))


@bp.route('/api/vendors/<int:vendor_id>/approve', methods=['POST'])
@login_required
@role_required('ADMIN')
def approve_vendor(vendor_id):
    return jsonify(vendor_service.approve_vendor(current_user, vendor_id))


@bp.route('/api/vendors/<int:vendor_id>/reject', methods=['POST'])
@login_required
@role_required('ADMIN')
def reject_vendor(vendor_id):
    data = json_body()
    return jsonify(vendor_service.reject_vendor(
        current_user, vendor_id, data.get('reason')))


@bp.route('/api/user/vendor-profile', methods=['GET'])
@login_required
def my_vendor_profile():
    profile = storage.get_vendor_profile_by_user_id(current_user.id)
    if not profile:
        raise NotFoundError('Vendor profile not found')
    return jsonify(profile.to_dict())


# Vendor order management

@bp.route('/api/vendors/<int:vendor_id>/orders', methods=['GET'])
@login_required
@role_required('VENDOR', 'ADMIN')
def vendor_orders(vendor_id):
    return jsonify(order_service.list_vendor_orders(current_user, vendor_id))


@bp.route('/api/vendors/<int:vendor_id>/orders/<int:order_id>',
          methods=['PATCH'])
@login_required
@role_required('VENDOR', 'ADMIN')
def vendor_update_order(vendor_id, order_id):
    data = json_body()
    return jsonify(order_service.vendor_update_status(
        current_user, vendor_id, order_id, data.get('status')))


@bp.route('/api/vendors/<int:vendor_id>/orders/<int:order_id>',
          methods=['DELETE'])
@login_required
@role_required('VENDOR', 'ADMIN')
def vendor_delete_order(vendor_id, order_id):
    order_service.vendor_delete_order(current_user, vendor_id, order_id)
    return '', 204
