"""Tenant (firm) capability check.

Firm membership is owned by an external identity provider. Inside the
marketplace the only question asked is whether a caller may act for a
given firm id; the answer comes from ``FIRM_ACCESS_CHECKER`` when the app
configures one, otherwise from the local whitelist table.
"""
from flask import current_app
from marketplace.models import Firm, FirmWhitelistedUser


def whitelist_firm_access(user, firm_id) -> bool:
    firm = Firm.query.filter_by(external_id=str(firm_id)).first()
    if not firm:
        return False
    return FirmWhitelistedUser.query.filter_by(
        firm_id=firm.id,
        user_id=user.id,
    ).first() is not None


def has_firm_access(user, firm_id) -> bool:
    if not firm_id or user is None:
        return False
    checker = current_app.config.get('FIRM_ACCESS_CHECKER')
    if checker is None:
        checker = whitelist_firm_access
    return bool(checker(user, firm_id))


def list_user_firms(user):
    rows = Firm.query.join(
        FirmWhitelistedUser, FirmWhitelistedUser.firm_id == Firm.id
    ).filter(
        FirmWhitelistedUser.user_id == user.id
    ).order_by(Firm.name).all()
    return [{'id': f.external_id, 'name': f.name} for f in rows]
