"""
Transaction writes and reads on behalf of one user.

Every multi-step write (the transaction itself, the category usage counters
and the user's points) runs inside one ``unit_of_work()`` block. Real-time
events go out only after that block has completed.
"""
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from app.models import Category, Transaction
from app.repositories.base import FinanceRepository, TransactionFilters, TransactionPage
from app.schemas import (
    BulkImportItem,
    RecurringSettings,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
)
from app.services import gamification
from app.services.category_suggester import CategorySuggester
from app.services.errors import InvalidRequestError, NotFoundError, ServiceError
from app.services.event_publisher import EventPublisher

logger = logging.getLogger(__name__)

IMPORT_CONFIDENCE = 0.8

# Request fields copied onto the model as-is when present and not null
_SIMPLE_FIELDS = {
    "title": "title",
    "amount": "amount",
    "type": "transaction_type",
    "date": "date",
    "payment_method": "payment_method",
    "currency": "currency",
    "exchange_rate": "exchange_rate",
    "status": "status",
}
# Nullable request fields
_OPTIONAL_FIELDS = ("subcategory", "description", "location", "notes")


def _apply_recurring(txn: Transaction, recurring: Optional[RecurringSettings]) -> None:
    recurring = recurring or RecurringSettings()
    txn.is_recurring = recurring.is_recurring
    txn.recurring_frequency = recurring.frequency if recurring.is_recurring else None
    txn.recurring_interval = recurring.interval
    txn.recurring_end_date = recurring.end_date if recurring.is_recurring else None
    # Recomputed from the transaction date on save
    txn.recurring_next_date = None


class TransactionService:
    def __init__(
        self,
        repository: FinanceRepository,
        publisher: Optional[EventPublisher] = None,
    ):
        self.repository = repository
        self.publisher = publisher
        self.suggester = CategorySuggester(repository)

    # Reads

    def list_transactions(
        self,
        user_id: UUID,
        filters: TransactionFilters,
        page: int = 1,
        limit: int = 20,
        sort: Optional[str] = None,
    ) -> TransactionPage:
        return self.repository.find_transactions(user_id, filters, page=page, limit=limit, sort=sort)

    def get_transaction(self, user_id: UUID, transaction_id: UUID) -> Transaction:
        txn = self.repository.get_transaction(transaction_id, user_id)
        if txn is None:
            raise NotFoundError("Transaction not found")
        return txn

    def list_deleted(self, user_id: UUID) -> List[Transaction]:
        return self.repository.list_deleted_transactions(user_id)

    # Writes

    def _validate_category(self, user_id: UUID, category_id: UUID, transaction_type: str) -> Category:
        category = self.repository.get_category(category_id, user_id)
        if category is None or not category.is_active or category.category_type != transaction_type:
            raise InvalidRequestError("Invalid category for this transaction type")
        return category

    def create_transaction(
        self,
        user_id: UUID,
        payload: TransactionCreate,
        now: Optional[datetime] = None,
    ) -> Transaction:
        now = now or datetime.utcnow()
        category = self._validate_category(user_id, payload.category, payload.type)

        with self.repository.unit_of_work() as repo:
            txn = Transaction(
                user_id=user_id,
                title=payload.title,
                amount=payload.amount,
                transaction_type=payload.type,
                category_id=category.id,
                subcategory=payload.subcategory,
                description=payload.description,
                date=payload.date,
                location=payload.location,
                payment_method=payload.payment_method,
                currency=payload.currency or repo.home_currency_for(user_id),
                exchange_rate=payload.exchange_rate,
                source="manual",
                confidence=1.0,
                status=payload.status,
                notes=payload.notes,
            )
            txn.tags = list(payload.tags)
            _apply_recurring(txn, payload.recurring)
            repo.add_transaction(txn)

            category.record_usage(txn.base_amount, now)
            repo.save_category(category)

            user = repo.get_user(user_id)
            if user is not None:
                gamification.add_points(user, gamification.TRANSACTION_POINTS)
                repo.save_user(user)

        logger.info(f"Created transaction {txn.id} for user {user_id}")
        self._publish_added(user_id, txn)
        return txn

    def update_transaction(
        self,
        user_id: UUID,
        transaction_id: UUID,
        payload: TransactionUpdate,
    ) -> Transaction:
        txn = self.get_transaction(user_id, transaction_id)
        changes = payload.model_dump(exclude_unset=True)

        new_type = changes.get("type") or txn.transaction_type
        category = None
        if changes.get("category") or changes.get("type"):
            category = self._validate_category(user_id, changes.get("category") or txn.category_id, new_type)

        with self.repository.unit_of_work() as repo:
            for field, attribute in _SIMPLE_FIELDS.items():
                if changes.get(field) is not None:
                    setattr(txn, attribute, changes[field])
            for field in _OPTIONAL_FIELDS:
                if field in changes:
                    setattr(txn, field, changes[field])
            if changes.get("tags") is not None:
                txn.tags = list(changes["tags"])
            if category is not None:
                txn.category_id = category.id
                txn.category = category

            if "recurring" in changes:
                _apply_recurring(txn, payload.recurring)
            elif "date" in changes and txn.is_recurring:
                txn.recurring_next_date = None

            repo.save_transaction(txn)

        logger.info(f"Updated transaction {txn.id} (version {txn.version})")
        self._publish_updated(user_id, txn)
        return txn

    def delete_transaction(self, user_id: UUID, transaction_id: UUID) -> Transaction:
        txn = self.get_transaction(user_id, transaction_id)
        with self.repository.unit_of_work() as repo:
            txn.soft_delete()
            repo.save_transaction(txn)

        logger.info(f"Soft-deleted transaction {txn.id}")
        if self.publisher is not None:
            self.publisher.publish_transaction_deleted(str(user_id), str(txn.id))
        return txn

    def restore_transaction(self, user_id: UUID, transaction_id: UUID) -> Transaction:
        txn = self.repository.get_transaction(transaction_id, user_id, include_deleted=True)
        if txn is None:
            raise NotFoundError("Transaction not found")
        if not txn.is_deleted:
            raise InvalidRequestError("Transaction is not deleted")

        with self.repository.unit_of_work() as repo:
            txn.restore()
            repo.save_transaction(txn)

        logger.info(f"Restored transaction {txn.id}")
        self._publish_updated(user_id, txn)
        return txn

    def bulk_import(self, user_id: UUID, items: List[BulkImportItem]) -> dict:
        """
        Import each item independently. Items without a category get the
        best suggestion for their text; items that cannot be placed are
        reported in ``failed`` and do not stop the rest.
        """
        results = {"successful": [], "failed": [], "total": len(items)}
        imported = []
        home_currency = self.repository.home_currency_for(user_id)

        for index, item in enumerate(items):
            try:
                if item.category is None:
                    suggestions = self.suggester.suggest(user_id, item.title, item.description, item.type)
                    if not suggestions:
                        raise InvalidRequestError("No suitable category found")
                    category = suggestions[0]
                else:
                    category = self._validate_category(user_id, item.category, item.type)

                with self.repository.unit_of_work() as repo:
                    txn = Transaction(
                        user_id=user_id,
                        title=item.title,
                        amount=item.amount,
                        transaction_type=item.type,
                        category_id=category.id,
                        description=item.description,
                        date=item.date or datetime.utcnow(),
                        payment_method=item.payment_method,
                        currency=item.currency or home_currency,
                        exchange_rate=item.exchange_rate,
                        source="import",
                        confidence=IMPORT_CONFIDENCE,
                        status="completed",
                    )
                    txn.tags = list(item.tags)
                    repo.add_transaction(txn)
            except ServiceError as exc:
                results["failed"].append({
                    "index": index,
                    "transaction": item.as_payload(),
                    "error": exc.message,
                })
                continue

            results["successful"].append(str(txn.id))
            imported.append(txn)

        if imported:
            with self.repository.unit_of_work() as repo:
                user = repo.get_user(user_id)
                if user is not None:
                    gamification.add_points(user, gamification.IMPORT_POINTS * len(imported))
                    repo.save_user(user)

        logger.info(
            f"Bulk import for user {user_id}: {len(results['successful'])} successful, "
            f"{len(results['failed'])} failed"
        )
        for txn in imported:
            self._publish_added(user_id, txn)
        return results

    # Events

    def _publish_added(self, user_id: UUID, txn: Transaction) -> None:
        if self.publisher is not None:
            self.publisher.publish_transaction_added(str(user_id), TransactionResponse.from_model(txn).as_payload())

    def _publish_updated(self, user_id: UUID, txn: Transaction) -> None:
        if self.publisher is not None:
            self.publisher.publish_transaction_updated(str(user_id), TransactionResponse.from_model(txn).as_payload())
