from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Literal
from uuid import UUID
import re

from app.models import Category, Transaction, User

TransactionType = Literal["income", "expense"]
PaymentMethod = Literal["cash", "card", "bank_transfer", "upi", "wallet", "other"]
Currency = Literal["INR", "USD", "EUR", "GBP", "JPY", "CAD", "AUD"]
TransactionStatus = Literal["pending", "completed", "cancelled", "disputed"]
Frequency = Literal["daily", "weekly", "monthly", "yearly"]

COLOR_RE = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _reject_null(value):
    if value is None:
        raise ValueError("Field cannot be null")
    return value


def _strip_text(value):
    return value.strip() if isinstance(value, str) else value


def _to_float(value) -> Optional[float]:
    return float(value) if value is not None else None


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def as_payload(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# Auth Schemas
class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=2, max_length=100)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return _strip_text(value)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("full_name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return _strip_text(value)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class ProfileUpdate(CamelModel):
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=20)
    date_of_birth: Optional[datetime] = None
    avatar: Optional[str] = Field(default=None, max_length=500)

    @field_validator("full_name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("full_name")
    @classmethod
    def full_name_required(cls, value):
        return _reject_null(value)

    @field_validator("date_of_birth")
    @classmethod
    def naive_date(cls, value):
        return to_naive_utc(value)


class PreferencesPayload(CamelModel):
    currency: Optional[Currency] = None
    language: Optional[Literal["en", "hi"]] = None
    theme: Optional[Literal["light", "dark", "system"]] = None
    notifications: Optional[dict] = None


class PreferencesUpdate(CamelModel):
    preferences: PreferencesPayload


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


# Category Schemas
class CategoryCreate(CamelModel):
    name: str = Field(min_length=1, max_length=50)
    type: TransactionType
    icon: str = Field(default="📦", max_length=16)
    color: str = "#6b7280"
    description: Optional[str] = Field(default=None, max_length=200)
    parent_id: Optional[UUID] = None
    monthly_limit: Optional[Decimal] = Field(default=None, ge=0)
    yearly_limit: Optional[Decimal] = Field(default=None, ge=0)
    alert_threshold: int = Field(default=80, ge=0, le=100)
    keywords: List[str] = Field(default_factory=list)
    aliases: List[str] = Field(default_factory=list)
    sort_order: int = 0

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("color")
    @classmethod
    def check_color(cls, value: str) -> str:
        if not COLOR_RE.match(value):
            raise ValueError("Color must be a valid hex color")
        return value


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    icon: Optional[str] = Field(default=None, max_length=16)
    color: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=200)
    parent_id: Optional[UUID] = None
    is_active: Optional[bool] = None
    monthly_limit: Optional[Decimal] = Field(default=None, ge=0)
    yearly_limit: Optional[Decimal] = Field(default=None, ge=0)
    alert_threshold: Optional[int] = Field(default=None, ge=0, le=100)
    keywords: Optional[List[str]] = None
    aliases: Optional[List[str]] = None
    sort_order: Optional[int] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator(
        "name", "icon", "color", "is_active", "alert_threshold", "keywords", "aliases", "sort_order"
    )
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)

    @field_validator("color")
    @classmethod
    def check_color(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not COLOR_RE.match(value):
            raise ValueError("Color must be a valid hex color")
        return value


class CategoryUsage(CamelModel):
    transaction_count: int = 0
    total_amount: float = 0.0
    last_used: Optional[datetime] = None


class CategorySummary(CamelModel):
    id: UUID
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None
    type: str

    @classmethod
    def from_model(cls, category: Category) -> "CategorySummary":
        return cls(
            id=category.id,
            name=category.name,
            icon=category.icon,
            color=category.color,
            type=category.category_type,
        )


class CategoryResponse(CategorySummary):
    user_id: Optional[UUID] = None
    description: Optional[str] = None
    is_default: bool
    is_active: bool
    parent_id: Optional[UUID] = None
    monthly_limit: Optional[float] = None
    yearly_limit: Optional[float] = None
    alert_threshold: int
    keywords: List[str]
    aliases: List[str]
    sort_order: int
    usage: CategoryUsage
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, category: Category) -> "CategoryResponse":
        return cls(
            id=category.id,
            name=category.name,
            icon=category.icon,
            color=category.color,
            type=category.category_type,
            user_id=category.user_id,
            description=category.description,
            is_default=bool(category.is_default),
            is_active=bool(category.is_active),
            parent_id=category.parent_id,
            monthly_limit=_to_float(category.monthly_limit),
            yearly_limit=_to_float(category.yearly_limit),
            alert_threshold=category.alert_threshold if category.alert_threshold is not None else 80,
            keywords=list(category.keywords or []),
            aliases=list(category.aliases or []),
            sort_order=category.sort_order or 0,
            usage=CategoryUsage(
                transaction_count=category.usage_transaction_count or 0,
                total_amount=float(category.usage_total_amount or 0),
                last_used=category.usage_last_used,
            ),
            created_at=category.created_at,
            updated_at=category.updated_at,
        )


# Transaction Schemas
def _clean_tags(value):
    if value is None:
        return value
    tags = []
    for tag in value:
        tag = str(tag).strip()
        if len(tag) > 50:
            raise ValueError("Tags must be 50 characters or fewer")
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _round_amount(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None:
        return value
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class RecurringSettings(CamelModel):
    is_recurring: bool = False
    frequency: Optional[Frequency] = None
    interval: int = Field(default=1, ge=1)
    end_date: Optional[datetime] = None

    @field_validator("end_date")
    @classmethod
    def naive_end_date(cls, value):
        return to_naive_utc(value)

    @model_validator(mode="after")
    def require_frequency(self):
        if self.is_recurring and not self.frequency:
            raise ValueError("Frequency is required for recurring transactions")
        return self


class TransactionCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    amount: Decimal = Field(ge=Decimal("0.01"))
    type: TransactionType
    category: UUID
    date: datetime
    subcategory: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    payment_method: PaymentMethod = "other"
    tags: List[str] = Field(default_factory=list)
    location: Optional[dict] = None
    currency: Optional[Currency] = None
    exchange_rate: Decimal = Field(default=Decimal("1"), ge=0)
    recurring: Optional[RecurringSettings] = None
    status: TransactionStatus = "completed"
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)

    @field_validator("amount")
    @classmethod
    def round_amount(cls, value):
        return _round_amount(value)

    @field_validator("date")
    @classmethod
    def naive_date(cls, value):
        return to_naive_utc(value)


class TransactionUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Decimal] = Field(default=None, ge=Decimal("0.01"))
    type: Optional[TransactionType] = None
    category: Optional[UUID] = None
    date: Optional[datetime] = None
    subcategory: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    payment_method: Optional[PaymentMethod] = None
    tags: Optional[List[str]] = None
    location: Optional[dict] = None
    currency: Optional[Currency] = None
    exchange_rate: Optional[Decimal] = Field(default=None, ge=0)
    recurring: Optional[RecurringSettings] = None
    status: Optional[TransactionStatus] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)

    @field_validator("amount")
    @classmethod
    def round_amount(cls, value):
        return _round_amount(value)

    @field_validator("date")
    @classmethod
    def naive_date(cls, value):
        return to_naive_utc(value)


class BulkImportItem(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    amount: Decimal = Field(ge=Decimal("0.01"))
    type: TransactionType
    category: Optional[UUID] = None
    date: Optional[datetime] = None
    description: Optional[str] = Field(default=None, max_length=500)
    payment_method: PaymentMethod = "other"
    tags: List[str] = Field(default_factory=list)
    currency: Optional[Currency] = None
    exchange_rate: Decimal = Field(default=Decimal("1"), ge=0)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)

    @field_validator("amount")
    @classmethod
    def round_amount(cls, value):
        return _round_amount(value)

    @field_validator("date")
    @classmethod
    def naive_date(cls, value):
        return to_naive_utc(value)


class BulkImportRequest(CamelModel):
    transactions: List[BulkImportItem] = Field(min_length=1, max_length=1000)


class RecurringResponse(CamelModel):
    is_recurring: bool
    frequency: Optional[str] = None
    interval: int = 1
    end_date: Optional[datetime] = None
    next_date: Optional[datetime] = None
    parent_transaction: Optional[UUID] = None


class TransactionResponse(CamelModel):
    id: UUID
    user_id: UUID
    title: str
    amount: float
    type: str
    category: Optional[CategorySummary] = None
    category_id: UUID
    subcategory: Optional[str] = None
    description: Optional[str] = None
    date: datetime
    location: Optional[dict] = None
    payment_method: str
    currency: str
    exchange_rate: float
    base_amount: float
    tags: List[str]
    recurring: RecurringResponse
    source: str
    confidence: float
    status: str
    notes: Optional[str] = None
    is_deleted: bool
    deleted_at: Optional[datetime] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, txn: Transaction) -> "TransactionResponse":
        return cls(
            id=txn.id,
            user_id=txn.user_id,
            title=txn.title,
            amount=float(txn.amount),
            type=txn.transaction_type,
            category=CategorySummary.from_model(txn.category) if txn.category is not None else None,
            category_id=txn.category_id,
            subcategory=txn.subcategory,
            description=txn.description,
            date=txn.date,
            location=txn.location,
            payment_method=txn.payment_method or "other",
            currency=txn.currency,
            exchange_rate=float(txn.exchange_rate if txn.exchange_rate is not None else 1),
            base_amount=float(txn.base_amount),
            tags=list(txn.tags),
            recurring=RecurringResponse(
                is_recurring=bool(txn.is_recurring),
                frequency=txn.recurring_frequency,
                interval=txn.recurring_interval or 1,
                end_date=txn.recurring_end_date,
                next_date=txn.recurring_next_date,
                parent_transaction=txn.parent_transaction_id,
            ),
            source=txn.source or "manual",
            confidence=txn.confidence if txn.confidence is not None else 1.0,
            status=txn.status or "completed",
            notes=txn.notes,
            is_deleted=bool(txn.is_deleted),
            deleted_at=txn.deleted_at,
            version=txn.version or 1,
            created_at=txn.created_at,
            updated_at=txn.updated_at,
        )


# User Schemas
class PreferencesResponse(CamelModel):
    currency: str
    language: str
    theme: str
    notifications: dict

    @classmethod
    def from_user(cls, user: User) -> "PreferencesResponse":
        return cls(
            currency=user.currency or "INR",
            language=user.language or "en",
            theme=user.theme or "system",
            notifications=dict(user.notification_preferences or {}),
        )


class GamificationResponse(CamelModel):
    level: int
    total_points: int
    streak: int
    badges: List[dict]
    last_activity_date: Optional[datetime] = None


class UserProfile(CamelModel):
    id: UUID
    email: str
    full_name: str
    avatar: Optional[str] = None
    phone_number: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    preferences: PreferencesResponse
    gamification: GamificationResponse
    is_active: bool
    email_verified: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, user: User) -> "UserProfile":
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            avatar=user.avatar,
            phone_number=user.phone_number,
            date_of_birth=user.date_of_birth,
            preferences=PreferencesResponse.from_user(user),
            gamification=GamificationResponse(
                level=user.level or 1,
                total_points=user.total_points or 0,
                streak=user.streak or 0,
                badges=list(user.badges or []),
                last_activity_date=user.last_activity_date,
            ),
            is_active=bool(user.is_active),
            email_verified=bool(user.email_verified),
            last_login=user.last_login,
            created_at=user.created_at,
        )
