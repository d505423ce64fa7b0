"""Audit trail for state-changing marketplace actions.

Every call stores one ``AuditLog`` row and writes a one-line summary to the
application log. Order, payment, vendor and listing actions are also copied
to the ``major_events`` log so operators can follow money and moderation
without the request noise. When the request acted under a firm
(``X-Firm-Id``), the firm id travels with the payload.
"""
from marketplace.extensions import db
from marketplace.models import AuditLog
from flask import g, has_request_context, request
import logging
import json
import os

logger = logging.getLogger(__name__)

MAJOR_ACTION_PREFIXES = (
    'LOGIN',
    'LOGOUT',
    'REGISTER',
    'ORDER_',
    'PAYMENT_',
    'VENDOR_',
    'LISTING_',
)
PAYLOAD_BRIEF_LIMIT = 600


def _major_events_logger():
    major_logger = logging.getLogger('major_events')
    if major_logger.handlers:
        return major_logger

    log_file = os.environ.get('MAJOR_EVENTS_LOG', 'major_events.log')
    if log_file:
        handler = logging.FileHandler(log_file, delay=True)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'))
    else:
        handler = logging.NullHandler()
    major_logger.addHandler(handler)
    major_logger.setLevel(logging.INFO)
    major_logger.propagate = False
    return major_logger


def is_major_action(action: str) -> bool:
    return bool(action) and action.startswith(MAJOR_ACTION_PREFIXES)


def _request_context():
    """(ip, user_agent, method, path, firm_id) of the current request."""
    if not has_request_context():
        return None, None, None, None, None
    forwarded = request.headers.get('X-Forwarded-For', '')
    ip = forwarded.split(',')[0].strip() or request.remote_addr
    return (
        ip,
        request.headers.get('User-Agent'),
        request.method,
        request.path,
        g.get('firm_id'),
    )


def _brief(payload):
    if payload is None:
        return None
    text = json.dumps(
        payload, ensure_ascii=False, default=str, separators=(',', ':'))
    if len(text) > PAYLOAD_BRIEF_LIMIT:
        text = text[:PAYLOAD_BRIEF_LIMIT] + '...'
    return text


def log_audit(
        actor_id=None,
        actor_role='ANONYMOUS',
        action='',
        target_type=None,
        target_id=None,
        payload=None,
        ip=None,
        user_agent=None):
    try:
        req_ip, req_agent, method, path, firm_id = _request_context()
        if firm_id is not None:
            payload = dict(payload or {}, firm_id=firm_id)

        audit = AuditLog(
            actor_id=actor_id,
            actor_role=actor_role,
            action=action,
            target_type=target_type,
            target_id=target_id,
            ip=ip or req_ip,
            user_agent=(user_agent or req_agent or '')[:500] or None,
        )
        if payload:
            audit.set_payload(payload)

        db.session.add(audit)
        db.session.commit()

        line = (
            f"action={action} actor={actor_role}:{actor_id} "
            f"target={target_type}:{target_id} "
            f"request={method} {path} payload={_brief(payload)}"
        )
        logger.info("AUDIT %s", line)
        if is_major_action(action):
            _major_events_logger().info(line)

    except Exception as e:
        logger.error(f"Failed to log audit {action}: {e}", exc_info=True)
        db.session.rollback()


def log_user_action(user, action, target_type=None, target_id=None,
                    payload=None):
    """Audit shortcut for an authenticated actor."""
    log_audit(
        actor_id=user.id if user else None,
        actor_role=user.role.value if user else 'ANONYMOUS',
        action=action,
        target_type=target_type,
        target_id=target_id,
        payload=payload,
    )
