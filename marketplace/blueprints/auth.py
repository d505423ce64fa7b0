from flask import Blueprint, jsonify
from flask_login import (
    login_user,
    logout_user,
    login_required,
    current_user,
)
from marketplace import storage
from marketplace.extensions import db
from marketplace.exceptions import ConflictError, ValidationError
from marketplace.models import UserRole, UserStatus
from marketplace.services.audit_service import log_audit
from marketplace.services.tenancy import list_user_firms
from marketplace.services.vendor_service import create_pending_profile
from marketplace.utils import clean_text, json_body
import logging
import re

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
SELF_SERVICE_ROLES = ('USER', 'VENDOR')


@bp.route('/api/login', methods=['POST'])
def login():
    data = json_body()
    email = clean_text(data.get('email')).lower()
    password = data.get('password') or ''

    if not email or not password:
        raise ValidationError('Email and password cannot be empty')

    user = storage.get_user_by_email(email)

    if user and user.check_password(password) and user.is_active:
        login_user(user, remember=True)

        log_audit(
            actor_id=user.id,
            actor_role=user.role.value,
            action='LOGIN_SUCCESS',
            target_type='USER',
            target_id=user.id,
            payload={'event': 'login_success'}
        )
        return jsonify({'user': user.to_dict()})

    log_audit(
        actor_id=user.id if user else None,
        actor_role=user.role.value if user else 'ANONYMOUS',
        action='LOGIN_FAILED',
        target_type='USER',
        target_id=user.id if user else None,
        payload={'email': email}
    )
    return jsonify({'message': 'Invalid email or password'}), 401


@bp.route('/api/register', methods=['POST'])
def register():
    data = json_body()
    email = clean_text(data.get('email')).lower()
    password = data.get('password') or ''
    first_name = clean_text(data.get('firstName'))
    last_name = clean_text(data.get('lastName'))
    role_name = clean_text(data.get('role') or 'USER').upper()

    if not email or not password or not first_name or not last_name:
        raise ValidationError(
            'email, password, firstName and lastName are required')
    if not EMAIL_PATTERN.match(email):
        raise ValidationError('Invalid email address')
    if len(password) < 6:
        raise ValidationError('Password must be at least 6 characters')
    if role_name not in SELF_SERVICE_ROLES:
        raise ValidationError('role must be USER or VENDOR')
    if storage.get_user_by_email(email):
        raise ConflictError('Email already registered')

    try:
        user = storage.create_user(
            password,
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=UserRole[role_name],
            status=UserStatus.ACTIVE,
            phone=clean_text(data.get('phone')) or None,
        )
        profile = None
        if user.role == UserRole.VENDOR:
            profile = create_pending_profile(user, data, strict=False)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    login_user(user)

    log_audit(
        actor_id=user.id,
        actor_role=user.role.value,
        action='REGISTER',
        target_type='USER',
        target_id=user.id,
        payload={'email': email, 'role': role_name}
    )

    payload = {'user': user.to_dict()}
    if profile is not None:
        payload['vendorProfile'] = profile.to_dict()
    return jsonify(payload), 201


@bp.route('/api/logout', methods=['POST'])
def logout():
    if current_user.is_authenticated:
        log_audit(
            actor_id=current_user.id,
            actor_role=current_user.role.value,
            action='LOGOUT',
            target_type='USER',
            target_id=current_user.id
        )
        logout_user()
    return jsonify({'message': 'Logged out'})


@bp.route('/api/user', methods=['GET'])
@login_required
def get_current_user():
    payload = current_user.to_dict()
    profile = storage.get_vendor_profile_by_user_id(current_user.id)
    payload['vendorProfile'] = profile.to_dict() if profile else None
    payload['firms'] = list_user_firms(current_user)
    return jsonify(payload)
