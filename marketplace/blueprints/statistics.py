from flask import Blueprint, request, jsonify
from flask_login import login_required
from marketplace.middleware import role_required
from marketplace.services import statistics_service
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('statistics', __name__)


def _time_range():
    return statistics_service.normalize_time_range(
        request.args.get('timeRange'))


@bp.route('/api/admin/stats', methods=['GET'])
@login_required
@role_required('ADMIN')
def overview():
    return jsonify(statistics_service.overview())


@bp.route('/api/admin/statistics/users', methods=['GET'])
@login_required
@role_required('ADMIN')
def user_statistics():
    return jsonify(statistics_service.user_spending(_time_range()))


@bp.route('/api/admin/statistics/vendors', methods=['GET'])
@login_required
@role_required('ADMIN')
def vendor_statistics():
    return jsonify(statistics_service.vendor_sales(_time_range()))


@bp.route('/api/admin/statistics/orders', methods=['GET'])
@login_required
@role_required('ADMIN')
def order_statistics():
    time_range = _time_range()
    logger.info("Building order statistics for range %s", time_range)
    return jsonify(statistics_service.order_records(time_range))
