from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from flask import request
from marketplace.exceptions import ValidationError
import logging

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def to_money(value, field='amount') -> Decimal:
    """Parse a JSON number or numeric string into cents-precision Decimal."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f'{field} is required')
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field} must be a number')
    if not amount.is_finite():
        raise ValidationError(f'{field} must be a number')
    if amount < 0:
        raise ValidationError(f'{field} cannot be negative')
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_positive_int(value, field):
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a positive integer')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a positive integer')
    if number < 1 or (isinstance(value, float) and value != number):
        raise ValidationError(f'{field} must be a positive integer')
    return number


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def clean_text(value):
    if value is None:
        return ''
    return str(value).strip()


def parse_float_arg(name):
    raw = request.args.get(name)
    if raw in (None, ''):
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f'{name} must be a number')
