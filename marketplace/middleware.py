from flask import request, jsonify, g, current_app
from flask_login import current_user
from functools import wraps
from werkzeug.exceptions import HTTPException
from marketplace.exceptions import MarketplaceError
import logging

logger = logging.getLogger(__name__)

# Exact paths that never require login
LOGIN_WHITELIST = [
    '/api/login',
    '/api/register',
    '/api/logout',
]


def is_public_browse_path(path: str) -> bool:
    if path.startswith('/api/listings'):
        return True
    if path.startswith('/api/categories'):
        return True
    if path == '/api/vendors':
        return True
    if path.startswith('/api/vendors/'):
        # Vendor profile pages are public; their orders are not
        return '/orders' not in path
    return False


def setup_auth_middleware(app):

    @app.before_request
    def require_login():
        path = request.path
        method = request.method.upper()

        if not path.startswith('/api/'):
            return None

        firm_error = _check_firm_header(path)
        if firm_error is not None:
            return firm_error

        # Allow whitelist paths
        if path in LOGIN_WHITELIST:
            return None

        # Allow anonymous browsing for safe methods
        if method in (
            'GET',
            'HEAD',
                'OPTIONS') and is_public_browse_path(path):
            return None

        # Check login status
        if not current_user.is_authenticated:
            return jsonify({'message': 'Not logged in'}), 401

        return None


def _check_firm_header(path):
    header = current_app.config.get('FIRM_HEADER', 'X-Firm-Id')
    firm_id = request.headers.get(header)
    if not firm_id:
        return None

    if not current_user.is_authenticated:
        return jsonify({'message': 'Not logged in'}), 401

    from marketplace.services.tenancy import has_firm_access
    if not has_firm_access(current_user, firm_id):
        logger.warning(
            "User %s sent firm id %s without access on %s",
            current_user.id,
            firm_id,
            path,
        )
        return jsonify({'message': 'Invalid firm id'}), 401

    g.firm_id = firm_id
    return None


def role_required(*allowed_roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'message': 'Not logged in'}), 401

            # allowed_roles is a list of role names.
            if current_user.role.value not in allowed_roles:
                logger.warning(
                    "User %s attempted to access roles %s, current role: %s",
                    current_user.id,
                    allowed_roles,
                    current_user.role.value,
                )
                return jsonify({'message': 'Insufficient permissions'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def setup_error_handlers(app):
    from marketplace.extensions import db

    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(error):
        db.session.rollback()
        return jsonify({'message': error.message}), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'message': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.error(
            "Unhandled error on %s %s: %s",
            request.method,
            request.path,
            error,
            exc_info=True,
        )
        db.session.rollback()
        return jsonify({'message': 'Internal server error'}), 500
