from marketplace.extensions import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
from sqlalchemy import CheckConstraint, UniqueConstraint
import enum
import json


class UserRole(enum.Enum):
    USER = 'USER'
    VENDOR = 'VENDOR'
    ADMIN = 'ADMIN'


class UserStatus(enum.Enum):
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'
    SUSPENDED = 'SUSPENDED'


class VendorVerificationStatus(enum.Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'


class ListingStatus(enum.Enum):
    DRAFT = 'DRAFT'
    PENDING = 'PENDING'
    ACTIVE = 'ACTIVE'
    REJECTED = 'REJECTED'
    INACTIVE = 'INACTIVE'


class ListingType(enum.Enum):
    PRODUCT = 'PRODUCT'
    SERVICE = 'SERVICE'
    DIGITAL = 'DIGITAL'


class OrderStatus(enum.Enum):
    CREATED = 'CREATED'
    PAID = 'PAID'
    PROCESSING = 'PROCESSING'
    SHIPPED = 'SHIPPED'
    DELIVERED = 'DELIVERED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    REFUNDED = 'REFUNDED'


class PaymentStatus(enum.Enum):
    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    REFUNDED = 'REFUNDED'


class CommentStatus(enum.Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'


def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return float(value) if value is not None else None


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    role = db.Column(
        db.Enum(UserRole),
        nullable=False,
        default=UserRole.USER)
    status = db.Column(
        db.Enum(UserStatus),
        nullable=False,
        default=UserStatus.ACTIVE)
    avatar = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    language = db.Column(db.String(10), nullable=True, default='en')
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    # Relationships
    vendor_profile = db.relationship(
        'VendorProfile',
        backref='user',
        uselist=False,
        cascade='all, delete-orphan')
    orders = db.relationship('Order', backref='user', lazy='dynamic')
    comments = db.relationship('Comment', backref='user', lazy='dynamic')
    saved_listings = db.relationship(
        'UserSavedListing',
        backref='user',
        lazy='dynamic',
        cascade='all, delete-orphan')

    @property
    def is_active(self):
        # Flask-Login refuses sessions for inactive users
        return self.status == UserStatus.ACTIVE

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_summary(self):
        return {
            'id': self.id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'email': self.email,
            'avatar': self.avatar,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'role': self.role.value,
            'status': self.status.value,
            'avatar': self.avatar,
            'phone': self.phone,
            'language': self.language,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<User {self.email}>'


class VendorProfile(db.Model):
    __tablename__ = 'vendor_profiles'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        unique=True,
        nullable=False)
    company_name = db.Column(db.String(200), nullable=False)
    business_number = db.Column(db.String(100), nullable=False)
    website = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)
    verification_status = db.Column(
        db.Enum(VendorVerificationStatus),
        default=VendorVerificationStatus.PENDING,
        nullable=False)
    rejection_reason = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    listings = db.relationship('Listing', backref='vendor', lazy='dynamic')

    def to_summary(self):
        return {
            'id': self.id,
            'companyName': self.company_name,
            'verificationStatus': self.verification_status.value,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'companyName': self.company_name,
            'businessNumber': self.business_number,
            'website': self.website,
            'description': self.description,
            'verificationStatus': self.verification_status.value,
            'rejectionReason': self.rejection_reason,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<VendorProfile {self.company_name}>'


class Category(db.Model):
    __tablename__ = 'categories'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    listings = db.relationship('Listing', backref='category', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Category {self.name}>'


class Listing(db.Model):
    __tablename__ = 'listings'

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(
        db.Integer,
        db.ForeignKey('vendor_profiles.id'),
        nullable=False,
        index=True)
    # Single canonical category reference; the display name is resolved
    # through the relationship when serialized.
    category_id = db.Column(
        db.Integer,
        db.ForeignKey('categories.id'),
        nullable=True,
        index=True)
    title = db.Column(db.String(200), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    type = db.Column(
        db.Enum(ListingType),
        default=ListingType.DIGITAL,
        nullable=False)
    status = db.Column(
        db.Enum(ListingStatus),
        default=ListingStatus.DRAFT,
        nullable=False)
    images = db.Column(db.JSON, nullable=False, default=list)
    tags = db.Column(db.JSON, nullable=False, default=list)
    rejection_reason = db.Column(db.Text, nullable=True)
    download_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    order_items = db.relationship(
        'OrderItem',
        backref='listing',
        lazy='dynamic')
    comments = db.relationship(
        'Comment',
        backref='listing',
        lazy='dynamic',
        cascade='all, delete-orphan')
    saved_by = db.relationship(
        'UserSavedListing',
        backref='listing',
        lazy='dynamic',
        cascade='all, delete-orphan')

    @property
    def category_name(self):
        return self.category.name if self.category else None

    def to_summary(self):
        return {
            'id': self.id,
            'title': self.title,
            'price': _money(self.price),
            'type': self.type.value,
            'images': list(self.images or []),
            'vendorId': self.vendor_id,
            'downloadUrl': self.download_url,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'vendorId': self.vendor_id,
            'categoryId': self.category_id,
            'category': self.category_name,
            'title': self.title,
            'description': self.description,
            'price': _money(self.price),
            'type': self.type.value,
            'status': self.status.value,
            'images': list(self.images or []),
            'tags': list(self.tags or []),
            'rejectionReason': self.rejection_reason,
            'downloadUrl': self.download_url,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Listing {self.title}>'


class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id'),
        nullable=False,
        index=True)
    status = db.Column(
        db.Enum(OrderStatus),
        default=OrderStatus.CREATED,
        nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default='CNY')
    cancel_reason = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    items = db.relationship(
        'OrderItem',
        backref='order',
        lazy='dynamic',
        cascade='all, delete-orphan')
    payments = db.relationship(
        'Payment',
        backref='order',
        lazy='dynamic',
        cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'status': self.status.value,
            'totalAmount': _money(self.total_amount),
            'currency': self.currency,
            'cancelReason': self.cancel_reason,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Order {self.id} status={self.status}>'


class OrderItem(db.Model):
    __tablename__ = 'order_items'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'orders.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    listing_id = db.Column(
        db.Integer,
        db.ForeignKey('listings.id'),
        nullable=False,
        index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    # Order snapshot price.
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_order_quantity_positive'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'orderId': self.order_id,
            'listingId': self.listing_id,
            'quantity': self.quantity,
            'unitPrice': _money(self.unit_price),
        }

    def __repr__(self):
        return (
            f"<OrderItem {self.id} order={self.order_id} "
            f"listing={self.listing_id}>"
        )


class Payment(db.Model):
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'orders.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default='CNY')
    status = db.Column(
        db.Enum(PaymentStatus),
        default=PaymentStatus.PENDING,
        nullable=False)
    payment_method = db.Column(db.String(50), nullable=False)
    transaction_id = db.Column(db.String(64), unique=True, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'orderId': self.order_id,
            'amount': _money(self.amount),
            'currency': self.currency,
            'status': self.status.value,
            'paymentMethod': self.payment_method,
            'transactionId': self.transaction_id,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Payment {self.id} status={self.status}>'


class Comment(db.Model):
    __tablename__ = 'comments'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id'),
        nullable=False,
        index=True)
    listing_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'listings.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    content = db.Column(db.Text, nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    status = db.Column(
        db.Enum(CommentStatus),
        default=CommentStatus.PENDING,
        nullable=False)
    rejection_reason = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        CheckConstraint(
            'rating >= 1 AND rating <= 5',
            name='check_rating_range'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'listingId': self.listing_id,
            'content': self.content,
            'rating': self.rating,
            'status': self.status.value,
            'rejectionReason': self.rejection_reason,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Comment {self.id} for listing {self.listing_id}>'


class UserSavedListing(db.Model):
    __tablename__ = 'user_saved_listings'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    listing_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'listings.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    saved_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        UniqueConstraint(
            'user_id',
            'listing_id',
            name='uq_user_saved_listing'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'listingId': self.listing_id,
            'savedAt': _iso(self.saved_at),
        }

    def __repr__(self):
        return (
            f"<UserSavedListing user={self.user_id} "
            f"listing={self.listing_id}>"
        )


class Firm(db.Model):
    __tablename__ = 'firms'

    id = db.Column(db.Integer, primary_key=True)
    # External tenant identifier sent in the firm header
    external_id = db.Column(
        db.String(64),
        unique=True,
        nullable=False,
        index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    whitelisted_users = db.relationship(
        'FirmWhitelistedUser',
        backref='firm',
        lazy='dynamic',
        cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Firm {self.external_id}>'


class FirmWhitelistedUser(db.Model):
    __tablename__ = 'firm_whitelisted_users'

    id = db.Column(db.Integer, primary_key=True)
    firm_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'firms.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        UniqueConstraint('firm_id', 'user_id', name='uq_firm_user'),
    )

    def __repr__(self):
        return f'<FirmWhitelistedUser firm={self.firm_id} user={self.user_id}>'


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='SET NULL'),
        nullable=True)
    actor_role = db.Column(db.String(20), nullable=False)
    # e.g., ORDER_CREATE, PAYMENT_SUCCESS
    action = db.Column(db.String(100), nullable=False)
    # ORDER, PAYMENT, LISTING, etc.
    target_type = db.Column(db.String(50), nullable=True)
    target_id = db.Column(db.Integer, nullable=True)
    ip = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    # JSON format key field snapshot
    payload_json = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    actor = db.relationship('User', foreign_keys=[actor_id])

    def set_payload(self, data):
        self.payload_json = json.dumps(data, ensure_ascii=False)

    def get_payload(self):
        if self.payload_json:
            return json.loads(self.payload_json)
        return {}

    def __repr__(self):
        return f'<AuditLog {self.id} action={self.action}>'
