from fastapi import APIRouter, Depends, Query
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID
import logging

from app.db_helpers import get_user_id
from app.repositories import FinanceRepository, TransactionFilters, get_repository
from app.responses import envelope
from app.schemas import (
    BulkImportRequest,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
    to_naive_utc,
)
from app.services.analytics_service import AnalyticsService
from app.services.event_publisher import EventPublisher, get_event_publisher
from app.services.recurring_service import RecurringService
from app.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

router = APIRouter()


def _serialize(transaction) -> dict:
    return TransactionResponse.from_model(transaction).as_payload()


@router.get("")
def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[Literal["income", "expense"]] = None,
    category: Optional[UUID] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None, max_length=200),
    min_amount: Optional[Decimal] = Query(None, alias="minAmount", ge=0),
    max_amount: Optional[Decimal] = Query(None, alias="maxAmount", ge=0),
    payment_method: Optional[Literal["cash", "card", "bank_transfer", "upi", "wallet", "other"]] = Query(
        None, alias="paymentMethod"
    ),
    status: Optional[Literal["pending", "completed", "cancelled", "disputed"]] = None,
    tags: Optional[List[str]] = Query(None),
    sort: str = "-date",
    repository: FinanceRepository = Depends(get_repository),
):
    """
    List the current user's transactions with filters and pagination.

    ``sort`` accepts date, amount or createdAt, prefixed with ``-`` for
    descending order. Pagination counts only the transactions that match the
    filters.
    """
    filters = TransactionFilters(
        transaction_type=type,
        category_id=category,
        payment_method=payment_method,
        status=status,
        start_date=to_naive_utc(start_date),
        end_date=to_naive_utc(end_date),
        min_amount=min_amount,
        max_amount=max_amount,
        search=search,
        tags=tags or [],
    )
    result = TransactionService(repository).list_transactions(
        get_user_id(), filters, page=page, limit=limit, sort=sort
    )
    return envelope("OK", {
        "transactions": [_serialize(t) for t in result.items],
        "pagination": {
            "currentPage": result.page,
            "totalPages": result.total_pages,
            "totalTransactions": result.total,
            "hasNextPage": result.page < result.total_pages,
            "hasPrevPage": result.page > 1,
        },
    })


@router.post("", status_code=201)
def create_transaction(
    payload: TransactionCreate,
    repository: FinanceRepository = Depends(get_repository),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    transaction = TransactionService(repository, publisher).create_transaction(get_user_id(), payload)
    return envelope("Transaction created successfully", {"transaction": _serialize(transaction)})


@router.get("/deleted")
def list_deleted_transactions(repository: FinanceRepository = Depends(get_repository)):
    """Soft-deleted transactions, most recently deleted first."""
    transactions = TransactionService(repository).list_deleted(get_user_id())
    return envelope("OK", {"transactions": [_serialize(t) for t in transactions]})


@router.get("/analytics/overview")
def analytics_overview(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    breakdown_type: Literal["income", "expense"] = Query("expense", alias="breakdownType"),
    repository: FinanceRepository = Depends(get_repository),
):
    """Totals, monthly series, category breakdown and recent activity. Defaults to the current month."""
    data = AnalyticsService(repository).overview(
        get_user_id(), to_naive_utc(start_date), to_naive_utc(end_date), breakdown_type=breakdown_type
    )
    return envelope("OK", data)


@router.get("/analytics/trends")
def analytics_trends(
    period: Literal["3months", "6months", "12months"] = "6months",
    repository: FinanceRepository = Depends(get_repository),
):
    data = AnalyticsService(repository).trends(get_user_id(), period)
    return envelope("OK", data)


@router.post("/bulk-import")
def bulk_import(
    payload: BulkImportRequest,
    repository: FinanceRepository = Depends(get_repository),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    results = TransactionService(repository, publisher).bulk_import(get_user_id(), payload.transactions)
    return envelope(
        f"Import completed. {len(results['successful'])} successful, {len(results['failed'])} failed.",
        results,
    )


@router.get("/{transaction_id}")
def get_transaction(transaction_id: UUID, repository: FinanceRepository = Depends(get_repository)):
    transaction = TransactionService(repository).get_transaction(get_user_id(), transaction_id)
    return envelope("OK", {"transaction": _serialize(transaction)})


@router.put("/{transaction_id}")
def update_transaction(
    transaction_id: UUID,
    payload: TransactionUpdate,
    repository: FinanceRepository = Depends(get_repository),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    transaction = TransactionService(repository, publisher).update_transaction(
        get_user_id(), transaction_id, payload
    )
    return envelope("Transaction updated successfully", {"transaction": _serialize(transaction)})


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: UUID,
    repository: FinanceRepository = Depends(get_repository),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    TransactionService(repository, publisher).delete_transaction(get_user_id(), transaction_id)
    return envelope("Transaction deleted successfully")


@router.post("/{transaction_id}/restore")
def restore_transaction(
    transaction_id: UUID,
    repository: FinanceRepository = Depends(get_repository),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    transaction = TransactionService(repository, publisher).restore_transaction(get_user_id(), transaction_id)
    return envelope("Transaction restored successfully", {"transaction": _serialize(transaction)})


@router.post("/{transaction_id}/recurring/next", status_code=201)
def create_next_recurring_occurrence(
    transaction_id: UUID,
    repository: FinanceRepository = Depends(get_repository),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    """Materialise the next occurrence of a recurring transaction now."""
    service = RecurringService(repository, publisher)
    occurrence = service.advance(get_user_id(), transaction_id)
    source = repository.get_transaction(occurrence.parent_transaction_id, get_user_id())
    return envelope("Recurring transaction created", {
        "transaction": _serialize(occurrence),
        "source": _serialize(source),
    })
