"""
Overview and trend aggregates.
"""
from datetime import datetime
from decimal import Decimal

from app.repositories import MonthlyTotal
from app.services.analytics_service import (
    AnalyticsService,
    default_overview_range,
    group_monthly_totals,
    savings_rate,
)

NOW = datetime(2024, 3, 20, 18, 30)


def test_default_range_is_month_to_date():
    start, end = default_overview_range(NOW)
    assert start == datetime(2024, 3, 1)
    assert end == NOW


def test_savings_rate():
    assert savings_rate(Decimal("1000"), Decimal("250")) == 75.0
    assert savings_rate(Decimal("3"), Decimal("2")) == 33.33
    assert savings_rate(Decimal("0"), Decimal("500")) == 0.0
    assert savings_rate(Decimal("100"), Decimal("150")) == -50.0


def test_group_monthly_totals_by_type():
    rows = [
        MonthlyTotal("expense", 2024, 1, Decimal("100"), 2),
        MonthlyTotal("income", 2024, 1, Decimal("900"), 1),
        MonthlyTotal("expense", 2024, 2, Decimal("50"), 1),
    ]
    grouped = group_monthly_totals(rows)

    assert [g["type"] for g in grouped] == ["expense", "income"]
    expense = grouped[0]
    assert expense["totalAmount"] == 150.0
    assert expense["totalCount"] == 3
    assert [(m["year"], m["month"], m["average"]) for m in expense["monthlyData"]] == [
        (2024, 1, 50.0),
        (2024, 2, 50.0),
    ]


def test_overview_totals(repository, user, make_transaction):
    make_transaction(category="Salary", title="Salary", amount=Decimal("1000"), date=datetime(2024, 3, 1, 9))
    make_transaction(title="Groceries", amount=Decimal("150"), date=datetime(2024, 3, 5))
    make_transaction(category="Shopping", title="Headphones", amount=Decimal("5"), currency="USD",
                     exchange_rate=Decimal("20"), date=datetime(2024, 3, 6))
    make_transaction(title="Disputed", amount=Decimal("400"), status="disputed", date=datetime(2024, 3, 7))
    make_transaction(title="Last month", amount=Decimal("400"), date=datetime(2024, 2, 27))
    deleted = make_transaction(title="Deleted", amount=Decimal("400"), date=datetime(2024, 3, 8))
    deleted.soft_delete()
    repository.save_transaction(deleted)

    data = AnalyticsService(repository).overview(user.id, now=NOW)

    assert data["overview"] == {
        "totalIncome": 1000.0,
        "totalExpenses": 250.0,
        "balance": 750.0,
        "savingsRate": 75.0,
        "transactionCount": 3,
    }
    breakdown = data["categoryBreakdown"]
    assert [b["category"] for b in breakdown] == ["Food & Dining", "Shopping"]
    assert sum(b["totalAmount"] for b in breakdown) == data["overview"]["totalExpenses"]
    assert breakdown[1]["avgAmount"] == 100.0
    assert data["dateRange"] == {"startDate": "2024-03-01T00:00:00", "endDate": NOW.isoformat()}
    assert "Disputed" not in [t["title"] for t in data["recentTransactions"]]
    assert len(data["recentTransactions"]) <= 5


def test_overview_with_explicit_range(repository, user, make_transaction):
    make_transaction(title="January", amount=Decimal("10"), date=datetime(2024, 1, 15))
    make_transaction(title="February", amount=Decimal("20"), date=datetime(2024, 2, 15))

    data = AnalyticsService(repository).overview(
        user.id, start=datetime(2024, 1, 1), end=datetime(2024, 2, 29, 23, 59), now=NOW
    )

    assert data["overview"]["totalExpenses"] == 30.0
    expense = data["monthlyData"][0]
    assert [m["month"] for m in expense["monthlyData"]] == [1, 2]


def test_trends_cover_requested_period(repository, user, make_transaction):
    make_transaction(title="Old", amount=Decimal("999"), date=datetime(2023, 11, 1))
    make_transaction(title="Recent", amount=Decimal("40"), date=datetime(2024, 1, 10))
    make_transaction(title="Recent too", amount=Decimal("60"), date=datetime(2024, 1, 20))
    make_transaction(category="Salary", title="Pay", amount=Decimal("500"), date=datetime(2024, 3, 1))

    service = AnalyticsService(repository)
    data = service.trends(user.id, "3months", now=NOW)

    assert data["period"] == "3months"
    assert data["startDate"] == "2023-12-20T18:30:00"
    assert data["trends"] == [
        {"year": 2024, "month": 1, "type": "expense", "total": 100.0, "count": 2, "average": 50.0},
        {"year": 2024, "month": 3, "type": "income", "total": 500.0, "count": 1, "average": 500.0},
    ]

    wider = service.trends(user.id, "6months", now=NOW)
    assert [row["month"] for row in wider["trends"]] == [11, 1, 3]


def test_unknown_trend_period_falls_back_to_six_months(repository, user):
    data = AnalyticsService(repository).trends(user.id, "forever", now=NOW)
    assert data["period"] == "6months"
    assert data["trends"] == []
