"""
Repository interface for users, categories and transactions.

Two implementations exist: ``SqlAlchemyRepository`` (persistent) and
``InMemoryRepository`` (tests and demo mode). Services depend only on this
interface; the concrete store is chosen once at application start-up.
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterator, List, Optional
from uuid import UUID

from app.database import settings
from app.models import Category, Transaction, User

SORT_FIELDS = {
    "date": "date",
    "amount": "base_amount",
    "createdAt": "created_at",
    "created_at": "created_at",
}


@dataclass
class TransactionFilters:
    """Optional narrowing applied to transaction lists and aggregates."""
    transaction_type: Optional[str] = None
    category_id: Optional[UUID] = None
    payment_method: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    search: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def search_terms(self) -> List[str]:
        return [term.lower() for term in (self.search or "").split() if term]


@dataclass
class TransactionPage:
    items: List[Transaction]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass
class MonthlyTotal:
    transaction_type: str
    year: int
    month: int
    total: Decimal
    count: int

    @property
    def average(self) -> Decimal:
        return self.total / self.count if self.count else Decimal("0")


@dataclass
class CategoryTotal:
    category_id: UUID
    name: str
    icon: Optional[str]
    color: Optional[str]
    total: Decimal
    count: int

    @property
    def average(self) -> Decimal:
        return self.total / self.count if self.count else Decimal("0")


def parse_sort(sort: Optional[str]) -> tuple:
    """Translate ``-date``/``amount``-style sort keys into (attribute, descending)."""
    sort = (sort or "-date").strip()
    descending = sort.startswith("-")
    key = sort.lstrip("-+")
    return SORT_FIELDS.get(key, "date"), descending


class FinanceRepository(ABC):
    """Storage operations needed by the services."""

    # Users

    @abstractmethod
    def get_user(self, user_id: UUID) -> Optional[User]:
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    def add_user(self, user: User) -> User:
        pass

    @abstractmethod
    def save_user(self, user: User) -> User:
        pass

    # Categories

    @abstractmethod
    def add_categories(self, categories: List[Category]) -> List[Category]:
        pass

    @abstractmethod
    def save_category(self, category: Category) -> Category:
        pass

    @abstractmethod
    def get_category(self, category_id: UUID, user_id: UUID) -> Optional[Category]:
        """A category visible to the user: owned by them or a system default."""
        pass

    @abstractmethod
    def list_categories(
        self,
        user_id: UUID,
        category_type: Optional[str] = None,
        active_only: bool = True,
    ) -> List[Category]:
        """Visible categories ordered by type, sort order, then name."""
        pass

    # Transactions

    def add_transaction(self, transaction: Transaction) -> Transaction:
        transaction.before_save(self.home_currency_for(transaction.user_id), is_new=True)
        return self._insert_transaction(transaction)

    def save_transaction(self, transaction: Transaction) -> Transaction:
        transaction.before_save(self.home_currency_for(transaction.user_id), is_new=False)
        return self._update_transaction(transaction)

    @abstractmethod
    def _insert_transaction(self, transaction: Transaction) -> Transaction:
        pass

    @abstractmethod
    def _update_transaction(self, transaction: Transaction) -> Transaction:
        pass

    @abstractmethod
    def get_transaction(
        self, transaction_id: UUID, user_id: UUID, include_deleted: bool = False
    ) -> Optional[Transaction]:
        pass

    @abstractmethod
    def find_transactions(
        self,
        user_id: UUID,
        filters: TransactionFilters,
        page: int = 1,
        limit: int = 20,
        sort: Optional[str] = None,
    ) -> TransactionPage:
        pass

    @abstractmethod
    def list_deleted_transactions(self, user_id: UUID) -> List[Transaction]:
        pass

    @abstractmethod
    def recent_transactions(self, user_id: UUID, limit: int = 5) -> List[Transaction]:
        """Most recently created completed transactions."""
        pass

    @abstractmethod
    def monthly_totals(
        self,
        user_id: UUID,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> List[MonthlyTotal]:
        """Completed, non-deleted totals grouped by (type, year, month), oldest first."""
        pass

    @abstractmethod
    def category_totals(
        self,
        user_id: UUID,
        start: Optional[datetime],
        end: Optional[datetime],
        transaction_type: str = "expense",
    ) -> List[CategoryTotal]:
        """Completed, non-deleted totals per category, largest first."""
        pass

    @abstractmethod
    def find_due_recurring(self, now: datetime) -> List[Transaction]:
        """Recurring chain roots whose next occurrence is due."""
        pass

    # Unit of work

    @contextmanager
    def unit_of_work(self) -> Iterator["FinanceRepository"]:
        yield self

    def home_currency_for(self, user_id: UUID) -> str:
        user = self.get_user(user_id)
        if user is not None and user.currency:
            return user.currency
        return settings.home_currency
