"""
Persistent repository backed by a SQLAlchemy session.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, List, Optional
from uuid import UUID

from sqlalchemy import extract, func, or_, select
from sqlalchemy.orm import Session

from app.models import Category, Transaction, TransactionTag, User
from app.repositories.base import (
    CategoryTotal,
    FinanceRepository,
    MonthlyTotal,
    TransactionFilters,
    TransactionPage,
    parse_sort,
)

logger = logging.getLogger(__name__)


def _to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


class SqlAlchemyRepository(FinanceRepository):
    """
    Repository over a single SQLAlchemy session.

    Writes are flushed immediately so generated ids are available; they are
    committed when the enclosing ``unit_of_work()`` block exits.
    """

    def __init__(self, db: Session):
        self.db = db
        self._in_unit_of_work = False

    @contextmanager
    def unit_of_work(self) -> Iterator["SqlAlchemyRepository"]:
        if self._in_unit_of_work:
            yield self
            return

        self._in_unit_of_work = True
        try:
            yield self
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        finally:
            self._in_unit_of_work = False

    def _persist(self, obj):
        self.db.add(obj)
        self.db.flush()
        if not self._in_unit_of_work:
            self.db.commit()
        return obj

    # Users

    def get_user(self, user_id: UUID) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def add_user(self, user: User) -> User:
        return self._persist(user)

    def save_user(self, user: User) -> User:
        return self._persist(user)

    # Categories

    def add_categories(self, categories: List[Category]) -> List[Category]:
        self.db.add_all(categories)
        self.db.flush()
        if not self._in_unit_of_work:
            self.db.commit()
        return categories

    def save_category(self, category: Category) -> Category:
        return self._persist(category)

    def _visible_categories(self, user_id: UUID):
        return self.db.query(Category).filter(
            or_(
                Category.user_id == user_id,
                (Category.user_id.is_(None)) & (Category.is_default.is_(True)),
            )
        )

    def get_category(self, category_id: UUID, user_id: UUID) -> Optional[Category]:
        return self._visible_categories(user_id).filter(Category.id == category_id).first()

    def list_categories(
        self,
        user_id: UUID,
        category_type: Optional[str] = None,
        active_only: bool = True,
    ) -> List[Category]:
        query = self._visible_categories(user_id)
        if active_only:
            query = query.filter(Category.is_active.is_(True))
        if category_type:
            query = query.filter(Category.category_type == category_type)
        return query.order_by(Category.category_type, Category.sort_order, Category.name).all()

    # Transactions

    def _insert_transaction(self, transaction: Transaction) -> Transaction:
        return self._persist(transaction)

    def _update_transaction(self, transaction: Transaction) -> Transaction:
        return self._persist(transaction)

    def get_transaction(
        self, transaction_id: UUID, user_id: UUID, include_deleted: bool = False
    ) -> Optional[Transaction]:
        query = self.db.query(Transaction).filter(
            Transaction.id == transaction_id,
            Transaction.user_id == user_id,
        )
        if not include_deleted:
            query = query.filter(Transaction.is_deleted.is_(False))
        return query.first()

    def _apply_filters(self, query, filters: TransactionFilters):
        if filters.transaction_type:
            query = query.filter(Transaction.transaction_type == filters.transaction_type)
        if filters.category_id:
            query = query.filter(Transaction.category_id == filters.category_id)
        if filters.payment_method:
            query = query.filter(Transaction.payment_method == filters.payment_method)
        if filters.status:
            query = query.filter(Transaction.status == filters.status)
        if filters.start_date:
            query = query.filter(Transaction.date >= filters.start_date)
        if filters.end_date:
            query = query.filter(Transaction.date <= filters.end_date)
        if filters.min_amount is not None:
            query = query.filter(Transaction.base_amount >= filters.min_amount)
        if filters.max_amount is not None:
            query = query.filter(Transaction.base_amount <= filters.max_amount)

        terms = filters.search_terms()
        if terms:
            tagged = select(TransactionTag.transaction_id).where(
                or_(*[func.lower(TransactionTag.name).contains(term, autoescape=True) for term in terms])
            )
            conditions = [Transaction.id.in_(tagged)]
            for term in terms:
                conditions.extend([
                    func.lower(Transaction.title).contains(term, autoescape=True),
                    func.lower(Transaction.description).contains(term, autoescape=True),
                    func.lower(Transaction.notes).contains(term, autoescape=True),
                ])
            query = query.filter(or_(*conditions))

        if filters.tags:
            tagged = select(TransactionTag.transaction_id).where(
                TransactionTag.name.in_(filters.tags)
            )
            query = query.filter(Transaction.id.in_(tagged))
        return query

    def find_transactions(
        self,
        user_id: UUID,
        filters: TransactionFilters,
        page: int = 1,
        limit: int = 20,
        sort: Optional[str] = None,
    ) -> TransactionPage:
        query = self.db.query(Transaction).filter(
            Transaction.user_id == user_id,
            Transaction.is_deleted.is_(False),
        )
        query = self._apply_filters(query, filters)
        total = query.count()

        attribute, descending = parse_sort(sort)
        column = getattr(Transaction, attribute)
        created = Transaction.created_at
        ordering = [column.desc(), created.desc()] if descending else [column.asc(), created.asc()]

        items = query.order_by(*ordering).offset((page - 1) * limit).limit(limit).all()
        return TransactionPage(items=items, total=total, page=page, limit=limit)

    def list_deleted_transactions(self, user_id: UUID) -> List[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(Transaction.user_id == user_id, Transaction.is_deleted.is_(True))
            .order_by(Transaction.deleted_at.desc())
            .all()
        )

    def recent_transactions(self, user_id: UUID, limit: int = 5) -> List[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(
                Transaction.user_id == user_id,
                Transaction.is_deleted.is_(False),
                Transaction.status == "completed",
            )
            .order_by(Transaction.created_at.desc())
            .limit(limit)
            .all()
        )

    def _aggregate_scope(self, query, user_id: UUID, start: Optional[datetime], end: Optional[datetime]):
        query = query.filter(
            Transaction.user_id == user_id,
            Transaction.is_deleted.is_(False),
            Transaction.status == "completed",
        )
        if start:
            query = query.filter(Transaction.date >= start)
        if end:
            query = query.filter(Transaction.date <= end)
        return query

    def monthly_totals(
        self,
        user_id: UUID,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> List[MonthlyTotal]:
        year = extract("year", Transaction.date)
        month = extract("month", Transaction.date)
        query = self.db.query(
            Transaction.transaction_type.label("transaction_type"),
            year.label("year"),
            month.label("month"),
            func.sum(Transaction.base_amount).label("total"),
            func.count(Transaction.id).label("count"),
        )
        query = self._aggregate_scope(query, user_id, start, end)
        rows = (
            query.group_by(Transaction.transaction_type, year, month)
            .order_by(year, month, Transaction.transaction_type)
            .all()
        )
        return [
            MonthlyTotal(
                transaction_type=r.transaction_type,
                year=int(r.year),
                month=int(r.month),
                total=_to_decimal(r.total),
                count=int(r.count),
            )
            for r in rows
        ]

    def category_totals(
        self,
        user_id: UUID,
        start: Optional[datetime],
        end: Optional[datetime],
        transaction_type: str = "expense",
    ) -> List[CategoryTotal]:
        total = func.sum(Transaction.base_amount)
        query = self.db.query(
            Category.id.label("category_id"),
            Category.name.label("name"),
            Category.icon.label("icon"),
            Category.color.label("color"),
            total.label("total"),
            func.count(Transaction.id).label("count"),
        ).select_from(Transaction).join(Category, Transaction.category_id == Category.id)
        query = self._aggregate_scope(query, user_id, start, end).filter(
            Transaction.transaction_type == transaction_type
        )
        rows = (
            query.group_by(Category.id, Category.name, Category.icon, Category.color)
            .order_by(total.desc())
            .all()
        )
        return [
            CategoryTotal(
                category_id=r.category_id,
                name=r.name,
                icon=r.icon,
                color=r.color,
                total=_to_decimal(r.total),
                count=int(r.count),
            )
            for r in rows
        ]

    def find_due_recurring(self, now: datetime) -> List[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(
                Transaction.is_recurring.is_(True),
                Transaction.is_deleted.is_(False),
                Transaction.parent_transaction_id.is_(None),
                Transaction.recurring_next_date.isnot(None),
                Transaction.recurring_next_date <= now,
            )
            .order_by(Transaction.recurring_next_date)
            .all()
        )
