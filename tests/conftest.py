import os

# Keep test runs from writing app.log into the working tree
os.environ.setdefault('LOG_FILE', '')
os.environ.setdefault('MAJOR_EVENTS_LOG', '')

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402

from marketplace import create_app  # noqa: E402
from marketplace.config import Config  # noqa: E402
from marketplace.extensions import db  # noqa: E402
from marketplace.models import (  # noqa: E402
    Category,
    Listing,
    ListingStatus,
    ListingType,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentStatus,
    User,
    UserRole,
    UserStatus,
    VendorProfile,
    VendorVerificationStatus,
)

PASSWORD = 'secret123'


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    STATISTICS_ORDER_STATUSES = ('COMPLETED', 'PROCESSING')
    FIRM_ACCESS_CHECKER = None


class Actor:
    """A logged-in test client plus the ids behind it."""

    def __init__(self, client, user_id, email, vendor_id=None):
        self.client = client
        self.user_id = user_id
        self.email = email
        self.vendor_id = vendor_id


class Factory:
    """Creates rows directly in the database and returns their ids."""

    def __init__(self, app):
        self.app = app
        self._seq = 0

    def _next(self):
        self._seq += 1
        return self._seq

    def _save(self, row):
        with self.app.app_context():
            db.session.add(row)
            db.session.commit()
            return row.id

    def user(self, email=None, role=UserRole.USER,
             status=UserStatus.ACTIVE, password=PASSWORD):
        user = User(
            email=email or f'user{self._next()}@example.com',
            first_name='Test',
            last_name=f'User{self._seq}',
            role=role,
            status=status,
        )
        user.set_password(password)
        return self._save(user)

    def vendor(self, user_id, status=VendorVerificationStatus.APPROVED,
               company_name=None):
        return self._save(VendorProfile(
            user_id=user_id,
            company_name=company_name or f'Vendor {self._next()}',
            business_number=f'BN-{self._seq}',
            verification_status=status,
        ))

    def category(self, name=None, slug=None):
        name = name or f'Category {self._next()}'
        return self._save(Category(
            name=name,
            slug=slug or name.lower().replace(' ', '-'),
        ))

    def listing(self, vendor_id, price='49.99', status=ListingStatus.ACTIVE,
                title=None, category_id=None, tags=None):
        return self._save(Listing(
            vendor_id=vendor_id,
            category_id=category_id,
            title=title or f'Listing {self._next()}',
            description='A useful thing',
            price=Decimal(price),
            type=ListingType.DIGITAL,
            status=status,
            tags=tags or [],
            images=[],
        ))

    def order(self, user_id, lines, status=OrderStatus.CREATED,
              created_at=None):
        """``lines`` is a list of (listing_id, quantity, unit_price)."""
        with self.app.app_context():
            total = sum(
                (Decimal(price) * quantity for _, quantity, price in lines),
                Decimal('0.00'),
            )
            order = Order(
                user_id=user_id,
                status=status,
                total_amount=total,
                currency='CNY',
            )
            if created_at is not None:
                order.created_at = created_at
            db.session.add(order)
            db.session.flush()
            for listing_id, quantity, price in lines:
                db.session.add(OrderItem(
                    order_id=order.id,
                    listing_id=listing_id,
                    quantity=quantity,
                    unit_price=Decimal(price),
                ))
            db.session.commit()
            return order.id

    def payment(self, order_id, status=PaymentStatus.COMPLETED):
        with self.app.app_context():
            order = db.session.get(Order, order_id)
            amount = order.total_amount
        return self._save(Payment(
            order_id=order_id,
            amount=amount,
            currency='CNY',
            status=status,
            payment_method='CARD',
            transaction_id=f'tx-{order_id}-{self._next()}',
        ))


def login(client, email, password=PASSWORD):
    return client.post('/api/login', json={
        'email': email,
        'password': password,
    })


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def factory(app):
    return Factory(app)


def _actor(app, factory, email, role, vendor_status=None):
    user_id = factory.user(email=email, role=role)
    vendor_id = None
    if vendor_status is not None:
        vendor_id = factory.vendor(user_id, status=vendor_status)
    client = app.test_client()
    response = login(client, email)
    assert response.status_code == 200
    return Actor(client, user_id, email, vendor_id)


@pytest.fixture
def admin(app, factory):
    return _actor(app, factory, 'admin@example.com', UserRole.ADMIN)


@pytest.fixture
def buyer(app, factory):
    return _actor(app, factory, 'buyer@example.com', UserRole.USER)


@pytest.fixture
def other_buyer(app, factory):
    return _actor(app, factory, 'other@example.com', UserRole.USER)


@pytest.fixture
def vendor(app, factory):
    return _actor(
        app,
        factory,
        'vendor@example.com',
        UserRole.VENDOR,
        vendor_status=VendorVerificationStatus.APPROVED,
    )


@pytest.fixture
def listing_id(factory, vendor):
    return factory.listing(vendor.vendor_id, price='49.99')


def fetch(app, model, row_id):
    """Reload a row in a fresh context, for assertions."""
    with app.app_context():
        row = db.session.get(model, row_id)
        if row is not None:
            db.session.expunge(row)
        return row
