from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace.services import payment_service
from marketplace.utils import json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('payments', __name__)


@bp.route('/api/payments', methods=['POST'])
@login_required
def create_payment():
    data = json_body()
    result = payment_service.simulate_payment(
        current_user,
        data.get('orderId'),
        data.get('paymentMethod'),
        data.get('amount'),
        data.get('currency'),
    )
    return jsonify(result), 201


@bp.route('/api/payments/<int:payment_id>', methods=['GET'])
@login_required
def get_payment(payment_id):
    return jsonify(
        payment_service.get_payment_for_user(current_user, payment_id))
