import os
from dotenv import load_dotenv

load_dotenv()


def _csv_env(name, default):
    raw = os.environ.get(name, default)
    return tuple(x.strip().upper() for x in raw.split(',') if x.strip())


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or (
        'dev-secret-key-change-in-production'
    )
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or (
        'sqlite:///marketplace.db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Pagination configuration
    ITEMS_PER_PAGE = 20

    DEFAULT_CURRENCY = os.environ.get('DEFAULT_CURRENCY', 'CNY')

    # Order statuses counted by the spending/sales statistics.
    # PROCESSING is kept alongside COMPLETED until product decides otherwise.
    STATISTICS_ORDER_STATUSES = _csv_env(
        'STATISTICS_ORDER_STATUSES', 'COMPLETED,PROCESSING')

    # A buyer may comment on a listing once an order containing it
    # reached one of these statuses.
    COMMENT_ELIGIBLE_ORDER_STATUSES = (
        'PAID',
        'PROCESSING',
        'SHIPPED',
        'DELIVERED',
        'COMPLETED',
    )

    # Tenant scoping header, checked by the auth middleware
    FIRM_HEADER = 'X-Firm-Id'
    # Callable (user, firm_id) -> bool; None uses the whitelist table
    FIRM_ACCESS_CHECKER = None
