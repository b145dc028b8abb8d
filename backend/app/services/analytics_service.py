"""
Dashboard aggregates: overview totals, monthly series, category breakdown
and spending trends.

All sums are over ``base_amount`` (the owner's home currency) and include
only completed, non-deleted transactions.
"""
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from dateutil.relativedelta import relativedelta

from app.repositories.base import FinanceRepository, MonthlyTotal
from app.schemas import TransactionResponse

logger = logging.getLogger(__name__)

TREND_PERIODS = {"3months": 3, "6months": 6, "12months": 12}
DEFAULT_TREND_PERIOD = "6months"
RECENT_TRANSACTION_LIMIT = 5


def default_overview_range(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """First instant of the current month up to now."""
    now = now or datetime.utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0), now


def savings_rate(income: Decimal, expenses: Decimal) -> float:
    if income <= 0:
        return 0.0
    rate = (income - expenses) / income * 100
    return float(rate.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def group_monthly_totals(rows: List[MonthlyTotal]) -> List[dict]:
    """Regroup (type, year, month) rows into one series per transaction type."""
    by_type: Dict[str, dict] = {}
    for row in rows:
        entry = by_type.setdefault(row.transaction_type, {
            "type": row.transaction_type,
            "monthlyData": [],
            "totalAmount": Decimal("0"),
            "totalCount": 0,
        })
        entry["monthlyData"].append({
            "month": row.month,
            "year": row.year,
            "total": float(row.total),
            "count": row.count,
            "average": float(row.average),
        })
        entry["totalAmount"] += row.total
        entry["totalCount"] += row.count

    grouped = []
    for transaction_type in sorted(by_type):
        entry = by_type[transaction_type]
        entry["totalAmount"] = float(entry["totalAmount"])
        grouped.append(entry)
    return grouped


class AnalyticsService:
    def __init__(self, repository: FinanceRepository):
        self.repository = repository

    def overview(
        self,
        user_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        now: Optional[datetime] = None,
        breakdown_type: str = "expense",
    ) -> dict:
        default_start, default_end = default_overview_range(now)
        start = start or default_start
        end = end or default_end

        monthly = self.repository.monthly_totals(user_id, start, end)
        breakdown = self.repository.category_totals(user_id, start, end, breakdown_type)
        recent = self.repository.recent_transactions(user_id, RECENT_TRANSACTION_LIMIT)

        totals = {"income": Decimal("0"), "expense": Decimal("0")}
        counts = {"income": 0, "expense": 0}
        for row in monthly:
            totals[row.transaction_type] = totals.get(row.transaction_type, Decimal("0")) + row.total
            counts[row.transaction_type] = counts.get(row.transaction_type, 0) + row.count

        income = totals["income"]
        expenses = totals["expense"]

        return {
            "overview": {
                "totalIncome": float(income),
                "totalExpenses": float(expenses),
                "balance": float(income - expenses),
                "savingsRate": savings_rate(income, expenses),
                "transactionCount": counts["income"] + counts["expense"],
            },
            "monthlyData": group_monthly_totals(monthly),
            "categoryBreakdown": [
                {
                    "categoryId": str(row.category_id),
                    "category": row.name,
                    "icon": row.icon,
                    "color": row.color,
                    "totalAmount": float(row.total),
                    "transactionCount": row.count,
                    "avgAmount": float(row.average),
                }
                for row in breakdown
            ],
            "recentTransactions": [TransactionResponse.from_model(t).as_payload() for t in recent],
            "dateRange": {"startDate": start.isoformat(), "endDate": end.isoformat()},
        }

    def trends(self, user_id: UUID, period: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        now = now or datetime.utcnow()
        period = period if period in TREND_PERIODS else DEFAULT_TREND_PERIOD
        start = now - relativedelta(months=TREND_PERIODS[period])

        rows = self.repository.monthly_totals(user_id, start, None)
        return {
            "period": period,
            "startDate": start.isoformat(),
            "trends": [
                {
                    "year": row.year,
                    "month": row.month,
                    "type": row.transaction_type,
                    "total": float(row.total),
                    "count": row.count,
                    "average": float(row.average),
                }
                for row in rows
            ],
        }
