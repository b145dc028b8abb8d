"""
In-process repository used by tests and demo mode.

Objects are kept as transient model instances in dictionaries. There is no
rollback: a failure halfway through a ``unit_of_work()`` block leaves the
writes that already happened in place.
"""
import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import inspect

from app.models import Category, Transaction, User
from app.repositories.base import (
    CategoryTotal,
    FinanceRepository,
    MonthlyTotal,
    TransactionFilters,
    TransactionPage,
    parse_sort,
)

logger = logging.getLogger(__name__)


def _apply_defaults(obj) -> None:
    """Fill unset columns from their declared defaults, as an INSERT would."""
    for attr in inspect(type(obj)).column_attrs:
        column = attr.columns[0]
        if getattr(obj, attr.key) is not None or column.default is None:
            continue
        if column.default.is_scalar:
            setattr(obj, attr.key, column.default.arg)
        elif column.default.is_callable:
            setattr(obj, attr.key, column.default.arg(None))


def _contains(value: Optional[str], term: str) -> bool:
    return bool(value) and term in value.lower()


class InMemoryRepository(FinanceRepository):
    """Dictionary-backed repository with the same semantics as the SQL one."""

    def __init__(self):
        self.users: Dict[UUID, User] = {}
        self.categories: Dict[UUID, Category] = {}
        self.transactions: Dict[UUID, Transaction] = {}

    # Users

    def get_user(self, user_id: UUID) -> Optional[User]:
        return self.users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    def add_user(self, user: User) -> User:
        _apply_defaults(user)
        self.users[user.id] = user
        return user

    def save_user(self, user: User) -> User:
        user.updated_at = datetime.utcnow()
        self.users[user.id] = user
        return user

    # Categories

    def add_categories(self, categories: List[Category]) -> List[Category]:
        for category in categories:
            _apply_defaults(category)
            self.categories[category.id] = category
        return categories

    def save_category(self, category: Category) -> Category:
        if category.id is None:
            _apply_defaults(category)
        category.updated_at = datetime.utcnow()
        self.categories[category.id] = category
        return category

    def _is_visible(self, category: Category, user_id: UUID) -> bool:
        if category.user_id == user_id:
            return True
        return category.user_id is None and bool(category.is_default)

    def get_category(self, category_id: UUID, user_id: UUID) -> Optional[Category]:
        category = self.categories.get(category_id)
        if category is None or not self._is_visible(category, user_id):
            return None
        return category

    def list_categories(
        self,
        user_id: UUID,
        category_type: Optional[str] = None,
        active_only: bool = True,
    ) -> List[Category]:
        result = [
            c for c in self.categories.values()
            if self._is_visible(c, user_id)
            and (not active_only or c.is_active)
            and (not category_type or c.category_type == category_type)
        ]
        return sorted(result, key=lambda c: (c.category_type, c.sort_order or 0, c.name))

    # Transactions

    def _attach_category(self, transaction: Transaction) -> None:
        category = self.categories.get(transaction.category_id)
        if category is not None:
            transaction.category = category

    def _insert_transaction(self, transaction: Transaction) -> Transaction:
        self._attach_category(transaction)
        self.transactions[transaction.id] = transaction
        return transaction

    def _update_transaction(self, transaction: Transaction) -> Transaction:
        transaction.updated_at = datetime.utcnow()
        self._attach_category(transaction)
        self.transactions[transaction.id] = transaction
        return transaction

    def add_transaction(self, transaction: Transaction) -> Transaction:
        # Column defaults must be in place before the derived fields are computed
        _apply_defaults(transaction)
        return super().add_transaction(transaction)

    def get_transaction(
        self, transaction_id: UUID, user_id: UUID, include_deleted: bool = False
    ) -> Optional[Transaction]:
        transaction = self.transactions.get(transaction_id)
        if transaction is None or transaction.user_id != user_id:
            return None
        if transaction.is_deleted and not include_deleted:
            return None
        return transaction

    def _matches(self, txn: Transaction, filters: TransactionFilters) -> bool:
        if filters.transaction_type and txn.transaction_type != filters.transaction_type:
            return False
        if filters.category_id and txn.category_id != filters.category_id:
            return False
        if filters.payment_method and txn.payment_method != filters.payment_method:
            return False
        if filters.status and txn.status != filters.status:
            return False
        if filters.start_date and txn.date < filters.start_date:
            return False
        if filters.end_date and txn.date > filters.end_date:
            return False
        if filters.min_amount is not None and txn.base_amount < filters.min_amount:
            return False
        if filters.max_amount is not None and txn.base_amount > filters.max_amount:
            return False

        terms = filters.search_terms()
        if terms:
            found = any(
                _contains(txn.title, term)
                or _contains(txn.description, term)
                or _contains(txn.notes, term)
                or any(_contains(tag, term) for tag in txn.tags)
                for term in terms
            )
            if not found:
                return False

        if filters.tags and not set(filters.tags) & set(txn.tags):
            return False
        return True

    def _owned(self, user_id: UUID, include_deleted: bool = False) -> List[Transaction]:
        return [
            t for t in self.transactions.values()
            if t.user_id == user_id and (include_deleted or not t.is_deleted)
        ]

    def find_transactions(
        self,
        user_id: UUID,
        filters: TransactionFilters,
        page: int = 1,
        limit: int = 20,
        sort: Optional[str] = None,
    ) -> TransactionPage:
        matched = [t for t in self._owned(user_id) if self._matches(t, filters)]

        attribute, descending = parse_sort(sort)
        matched.sort(key=lambda t: (getattr(t, attribute), t.created_at), reverse=descending)

        offset = (page - 1) * limit
        return TransactionPage(
            items=matched[offset:offset + limit],
            total=len(matched),
            page=page,
            limit=limit,
        )

    def list_deleted_transactions(self, user_id: UUID) -> List[Transaction]:
        deleted = [t for t in self._owned(user_id, include_deleted=True) if t.is_deleted]
        return sorted(deleted, key=lambda t: t.deleted_at, reverse=True)

    def recent_transactions(self, user_id: UUID, limit: int = 5) -> List[Transaction]:
        completed = [t for t in self._owned(user_id) if t.status == "completed"]
        return sorted(completed, key=lambda t: t.created_at, reverse=True)[:limit]

    def _aggregate_scope(
        self, user_id: UUID, start: Optional[datetime], end: Optional[datetime]
    ) -> List[Transaction]:
        return [
            t for t in self._owned(user_id)
            if t.status == "completed"
            and (start is None or t.date >= start)
            and (end is None or t.date <= end)
        ]

    def monthly_totals(
        self,
        user_id: UUID,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> List[MonthlyTotal]:
        groups = defaultdict(lambda: [Decimal("0"), 0])
        for txn in self._aggregate_scope(user_id, start, end):
            bucket = groups[(txn.transaction_type, txn.date.year, txn.date.month)]
            bucket[0] += Decimal(str(txn.base_amount))
            bucket[1] += 1

        ordered = sorted(groups.items(), key=lambda item: (item[0][1], item[0][2], item[0][0]))
        return [
            MonthlyTotal(transaction_type=key[0], year=key[1], month=key[2], total=total, count=count)
            for key, (total, count) in ordered
        ]

    def category_totals(
        self,
        user_id: UUID,
        start: Optional[datetime],
        end: Optional[datetime],
        transaction_type: str = "expense",
    ) -> List[CategoryTotal]:
        groups = defaultdict(lambda: [Decimal("0"), 0])
        for txn in self._aggregate_scope(user_id, start, end):
            if txn.transaction_type != transaction_type or txn.category_id not in self.categories:
                continue
            bucket = groups[txn.category_id]
            bucket[0] += Decimal(str(txn.base_amount))
            bucket[1] += 1

        totals = []
        for category_id, (total, count) in groups.items():
            category = self.categories[category_id]
            totals.append(CategoryTotal(
                category_id=category_id,
                name=category.name,
                icon=category.icon,
                color=category.color,
                total=total,
                count=count,
            ))
        return sorted(totals, key=lambda t: t.total, reverse=True)

    def find_due_recurring(self, now: datetime) -> List[Transaction]:
        due = [
            t for t in self.transactions.values()
            if t.is_recurring
            and not t.is_deleted
            and t.parent_transaction_id is None
            and t.recurring_next_date is not None
            and t.recurring_next_date <= now
        ]
        return sorted(due, key=lambda t: t.recurring_next_date)
