"""
SQLAlchemy models for users, categories and transactions.
The same model classes back both repository implementations.
"""
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    Numeric,
    Integer,
    Float,
    ForeignKey,
    Index,
    JSON,
    Uuid,
)
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.orm import relationship

from app.database import Base
from app.recurrence import calculate_next_date

TRANSACTION_TYPES = ("income", "expense")
PAYMENT_METHODS = ("cash", "card", "bank_transfer", "upi", "wallet", "other")
CURRENCIES = ("INR", "USD", "EUR", "GBP", "JPY", "CAD", "AUD")
TRANSACTION_STATUSES = ("pending", "completed", "cancelled", "disputed")
TRANSACTION_SOURCES = ("manual", "import", "api", "recurring", "ai_categorized")

CENTS = Decimal("0.01")


class User(Base):
    """
    Application user: identity, preferences, gamification counters and
    login lockout state.
    """
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=False)
    avatar = Column(String(500), nullable=True)
    phone_number = Column(String(20), nullable=True)
    date_of_birth = Column(DateTime, nullable=True)

    # Preferences
    currency = Column(String(3), default="INR")  # Home currency for base amounts
    language = Column(String(5), default="en")  # en, hi
    theme = Column(String(10), default="system")  # light, dark, system
    notification_preferences = Column(JSON, default=dict)

    # Gamification
    level = Column(Integer, default=1)
    total_points = Column(Integer, default=0)
    streak = Column(Integer, default=0)
    last_activity_date = Column(DateTime, default=datetime.utcnow)
    badges = Column(JSON, default=list)

    # Security
    login_attempts = Column(Integer, default=0)
    lock_until = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)
    email_verified = Column(Boolean, default=False)

    is_active = Column(Boolean, default=True)
    last_active_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_users_email", "email"),
        Index("idx_users_created_at", "created_at"),
    )


class Category(Base):
    """
    Transaction category. ``user_id`` is NULL for system-wide defaults.
    """
    __tablename__ = "categories"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    name = Column(String(50), nullable=False)
    icon = Column(String(16), nullable=False, default="📦")
    color = Column(String(7), nullable=False, default="#6b7280")  # Hex color
    category_type = Column(String(10), nullable=False)  # income, expense
    description = Column(String(200), nullable=True)
    is_default = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    parent_id = Column(Uuid(as_uuid=True), ForeignKey("categories.id"), nullable=True)

    # Budget thresholds
    monthly_limit = Column(Numeric(15, 2), nullable=True)
    yearly_limit = Column(Numeric(15, 2), nullable=True)
    alert_threshold = Column(Integer, default=80)  # Percentage of the limit

    # Suggestion metadata
    keywords = Column(JSON, default=list)
    patterns = Column(JSON, default=list)
    aliases = Column(JSON, default=list)
    sort_order = Column(Integer, default=0)

    # Usage counters
    usage_transaction_count = Column(Integer, default=0)
    usage_total_amount = Column(Numeric(15, 2), default=Decimal("0"))
    usage_last_used = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_categories_user_type", "user_id", "category_type"),
        Index("idx_categories_default_type", "is_default", "category_type"),
        Index("idx_categories_active_type", "is_active", "category_type"),
    )

    def record_usage(self, amount: Decimal, used_at: Optional[datetime] = None) -> None:
        self.usage_transaction_count = (self.usage_transaction_count or 0) + 1
        self.usage_total_amount = Decimal(str(self.usage_total_amount or 0)) + Decimal(str(amount))
        self.usage_last_used = used_at or datetime.utcnow()


class TransactionTag(Base):
    __tablename__ = "transaction_tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(
        Uuid(as_uuid=True), ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(50), nullable=False, index=True)


class Transaction(Base):
    """
    Income or expense record.

    Rows are never physically removed: ``is_deleted``/``deleted_at`` mark a
    soft delete that ``restore()`` reverts.
    """
    __tablename__ = "transactions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(200), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    transaction_type = Column(String(10), nullable=False)  # income, expense
    category_id = Column(Uuid(as_uuid=True), ForeignKey("categories.id"), nullable=False)
    subcategory = Column(String(100), nullable=True)
    description = Column(String(500), nullable=True)
    date = Column(DateTime, nullable=False)
    location = Column(JSON, nullable=True)
    payment_method = Column(String(20), default="other")

    # Currency conversion
    currency = Column(String(3), default="INR")
    exchange_rate = Column(Numeric(18, 8), default=Decimal("1"))
    base_amount = Column(Numeric(15, 2), nullable=False)  # Amount in the owner's home currency

    # Recurring settings
    is_recurring = Column(Boolean, default=False)
    recurring_frequency = Column(String(10), nullable=True)  # daily, weekly, monthly, yearly
    recurring_interval = Column(Integer, default=1)
    recurring_end_date = Column(DateTime, nullable=True)
    recurring_next_date = Column(DateTime, nullable=True)
    parent_transaction_id = Column(Uuid(as_uuid=True), ForeignKey("transactions.id"), nullable=True)

    source = Column(String(20), default="manual")
    confidence = Column(Float, default=1.0)
    status = Column(String(20), default="completed")
    notes = Column(String(1000), nullable=True)

    is_deleted = Column(Boolean, default=False)
    deleted_at = Column(DateTime, nullable=True)
    version = Column(Integer, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category")
    tag_links = relationship("TransactionTag", cascade="all, delete-orphan", lazy="selectin")
    tags = association_proxy("tag_links", "name", creator=lambda name: TransactionTag(name=name))

    __table_args__ = (
        Index("idx_transactions_user_date", "user_id", "date"),
        Index("idx_transactions_user_type_date", "user_id", "transaction_type", "date"),
        Index("idx_transactions_user_category_date", "user_id", "category_id", "date"),
        Index("idx_transactions_user_recurring", "user_id", "is_recurring"),
        Index("idx_transactions_user_status", "user_id", "status"),
        Index("idx_transactions_created_at", "created_at"),
        Index("idx_transactions_next_date", "recurring_next_date"),
    )

    def recompute_base_amount(self, home_currency: str) -> None:
        if not self.currency:
            self.currency = home_currency
        amount = Decimal(str(self.amount))
        if self.currency != home_currency:
            rate = Decimal(str(self.exchange_rate if self.exchange_rate is not None else 1))
            amount = amount * rate
        self.base_amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)

    def calculate_next_recurring_date(self, after: Optional[datetime] = None) -> Optional[datetime]:
        if not self.is_recurring:
            return None
        return calculate_next_date(self.date, self.recurring_frequency, self.recurring_interval, after)

    def before_save(self, home_currency: str, is_new: bool) -> None:
        """Derived-field maintenance run by the repositories on every save."""
        self.recompute_base_amount(home_currency)
        if self.is_recurring and not self.recurring_next_date:
            self.recurring_next_date = self.calculate_next_recurring_date()
        if not is_new:
            self.version = (self.version or 1) + 1

    def soft_delete(self, deleted_at: Optional[datetime] = None) -> None:
        self.is_deleted = True
        self.deleted_at = deleted_at or datetime.utcnow()

    def restore(self) -> None:
        self.is_deleted = False
        self.deleted_at = None
