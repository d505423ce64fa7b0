from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from marketplace import storage
from marketplace.extensions import db
from marketplace.exceptions import NotFoundError, ValidationError
from marketplace.middleware import role_required
from marketplace.models import UserRole, UserStatus
from marketplace.services import listing_service, order_service
from marketplace.services.audit_service import log_audit
from marketplace.utils import clean_text, json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__)


@bp.route('/api/users/all', methods=['GET'])
@login_required
@role_required('ADMIN')
def list_users():
    users = storage.get_all_users()
    role_filter = request.args.get('role')
    if role_filter:
        try:
            role_enum = UserRole[role_filter.upper()]
            users = [u for u in users if u.role == role_enum]
        except KeyError:
            pass
    return jsonify([u.to_dict() for u in users])


@bp.route('/api/users/<int:user_id>', methods=['PATCH'])
@login_required
@role_required('ADMIN')
def update_user(user_id):
    if user_id == current_user.id:
        raise ValidationError('You cannot change your own account')

    user = storage.get_user(user_id)
    if not user:
        raise NotFoundError('User not found')

    data = json_body()
    fields = {}
    if 'role' in data:
        try:
            fields['role'] = UserRole[clean_text(data.get('role')).upper()]
        except KeyError:
            raise ValidationError('Invalid role')
    if 'status' in data:
        try:
            fields['status'] = UserStatus[
                clean_text(data.get('status')).upper()]
        except KeyError:
            raise ValidationError('Invalid status')
    if not fields:
        raise ValidationError('role or status is required')

    old = {'role': user.role.value, 'status': user.status.value}
    storage.update_user(user, **fields)
    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='USER_UPDATE',
        target_type='USER',
        target_id=user.id,
        payload={
            'from': old,
            'to': {'role': user.role.value, 'status': user.status.value},
        }
    )
    return jsonify(user.to_dict())


@bp.route('/api/admin/orders/<int:order_id>', methods=['PATCH'])
@login_required
@role_required('ADMIN')
def update_order_status(order_id):
    data = json_body()
    return jsonify(order_service.admin_update_status(
        current_user,
        order_id,
        data.get('status'),
        data.get('reason'),
    ))


@bp.route('/api/admin/vendors/pending', methods=['GET'])
@login_required
@role_required('ADMIN')
def pending_vendors():
    vendors = storage.get_pending_vendors()
    users = storage.get_users_by_ids(v.user_id for v in vendors)
    result = []
    for vendor in vendors:
        payload = vendor.to_dict()
        user = users.get(vendor.user_id)
        payload['user'] = user.to_summary() if user else None
        result.append(payload)
    return jsonify(result)


@bp.route('/api/admin/listings/pending', methods=['GET'])
@login_required
@role_required('ADMIN')
def pending_listings():
    return jsonify(listing_service.list_pending_listings())
