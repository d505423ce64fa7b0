from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace.middleware import role_required
from marketplace.services import order_service
from marketplace.utils import json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('orders', __name__)


@bp.route('/api/orders', methods=['POST'])
@login_required
def create_order():
    data = json_body()
    order = order_service.create_order(
        current_user,
        data.get('items'),
        data.get('totalAmount'),
        data.get('currency'),
    )
    return jsonify(order), 201


@bp.route('/api/users/orders', methods=['GET'])
@login_required
def my_orders():
    return jsonify(order_service.list_user_orders(current_user))


@bp.route('/api/orders/all', methods=['GET'])
@login_required
@role_required('ADMIN')
def all_orders():
    return jsonify(order_service.list_all_orders())


@bp.route('/api/orders/<int:order_id>', methods=['GET'])
@login_required
def get_order(order_id):
    return jsonify(order_service.get_order_for_user(current_user, order_id))


@bp.route('/api/orders/<int:order_id>/confirm', methods=['PATCH', 'POST'])
@login_required
def confirm_receipt(order_id):
    data = json_body()
    return jsonify(order_service.confirm_receipt(
        current_user, order_id, data.get('status')))


@bp.route('/api/orders/<int:order_id>/ship', methods=['POST'])
@login_required
@role_required('VENDOR', 'ADMIN')
def ship_order(order_id):
    return jsonify(order_service.ship_order(current_user, order_id))


@bp.route('/api/orders/<int:order_id>/complete', methods=['POST'])
@login_required
@role_required('ADMIN')
def complete_order(order_id):
    return jsonify(order_service.complete_order(current_user, order_id))


@bp.route('/api/orders/<int:order_id>/cancel', methods=['POST'])
@login_required
@role_required('ADMIN')
def cancel_order(order_id):
    data = json_body()
    return jsonify(order_service.cancel_order(
        current_user, order_id, data.get('reason')))


@bp.route('/api/orders/<int:order_id>/refund', methods=['POST'])
@login_required
@role_required('ADMIN')
def refund_order(order_id):
    return jsonify(order_service.refund_order(current_user, order_id))


@bp.route('/api/orders/<int:order_id>', methods=['DELETE'])
@login_required
@role_required('ADMIN')
def delete_order(order_id):
    order_service.delete_order(current_user, order_id)
    return '', 204
