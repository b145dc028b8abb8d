"""
Materialises occurrences of recurring transactions.

A series is a flat chain: the first transaction is the root, and every
generated occurrence points at the root through ``parent_transaction_id``.
The root's ``recurring_next_date`` is the date of the next occurrence to
create.
"""
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from app.models import Transaction
from app.recurrence import calculate_next_date
from app.repositories.base import FinanceRepository
from app.schemas import TransactionResponse
from app.services.errors import InvalidRequestError, NotFoundError
from app.services.event_publisher import EventPublisher

logger = logging.getLogger(__name__)


def _series_ended(source: Transaction, occurrence_date: datetime) -> bool:
    return source.recurring_end_date is not None and occurrence_date > source.recurring_end_date


class RecurringService:
    def __init__(
        self,
        repository: FinanceRepository,
        publisher: Optional[EventPublisher] = None,
    ):
        self.repository = repository
        self.publisher = publisher

    def create_next_occurrence(self, source: Transaction) -> Optional[Transaction]:
        """
        Create the occurrence due on ``source.recurring_next_date`` and move
        the source's next date one step further along its series.

        Returns None when the source is not recurring, has no next date, or
        the next date lies past the series end date.
        """
        if not source.is_recurring or source.recurring_next_date is None:
            return None

        occurrence_date = source.recurring_next_date
        if _series_ended(source, occurrence_date):
            logger.debug(f"Recurring series {source.id} ended on {source.recurring_end_date}")
            return None

        with self.repository.unit_of_work() as repo:
            occurrence = Transaction(
                user_id=source.user_id,
                title=source.title,
                amount=source.amount,
                transaction_type=source.transaction_type,
                category_id=source.category_id,
                subcategory=source.subcategory,
                description=source.description,
                date=occurrence_date,
                location=source.location,
                payment_method=source.payment_method,
                currency=source.currency,
                exchange_rate=source.exchange_rate,
                is_recurring=True,
                recurring_frequency=source.recurring_frequency,
                recurring_interval=source.recurring_interval,
                recurring_end_date=source.recurring_end_date,
                parent_transaction_id=source.parent_transaction_id or source.id,
                source="recurring",
                confidence=1.0,
                status="completed",
                notes=source.notes,
            )
            occurrence.tags = list(source.tags)
            repo.add_transaction(occurrence)

            source.recurring_next_date = calculate_next_date(
                source.date,
                source.recurring_frequency,
                source.recurring_interval,
                after=occurrence_date,
            )
            repo.save_transaction(source)

        logger.info(
            f"Created occurrence {occurrence.id} of {source.id} for {occurrence_date.date()}, "
            f"next due {source.recurring_next_date}"
        )
        if self.publisher is not None:
            self.publisher.publish_transaction_added(
                str(occurrence.user_id), TransactionResponse.from_model(occurrence).as_payload()
            )
        return occurrence

    def advance(self, user_id: UUID, transaction_id: UUID) -> Transaction:
        """
        Create the next occurrence of one of the user's recurring transactions.
        Generated occurrences advance their series root, which owns the schedule.
        """
        source = self.repository.get_transaction(transaction_id, user_id)
        if source is None:
            raise NotFoundError("Transaction not found")
        if not source.is_recurring:
            raise InvalidRequestError("Transaction is not recurring")
        if source.parent_transaction_id is not None:
            source = self.repository.get_transaction(source.parent_transaction_id, user_id)
            if source is None or not source.is_recurring:
                raise InvalidRequestError("Recurring series is no longer active")

        occurrence = self.create_next_occurrence(source)
        if occurrence is None:
            raise InvalidRequestError("Recurring series has no further occurrences")
        return occurrence

    def process_due(self, now: Optional[datetime] = None) -> List[Transaction]:
        """
        Catch every due series up to ``now``. Each root may produce several
        occurrences if it fell behind.
        """
        now = now or datetime.utcnow()
        created = []
        for source in self.repository.find_due_recurring(now):
            while source.recurring_next_date is not None and source.recurring_next_date <= now:
                occurrence = self.create_next_occurrence(source)
                if occurrence is None:
                    break
                created.append(occurrence)

        logger.info(f"Recurring run at {now.isoformat()} created {len(created)} occurrences")
        return created
