"""
Repository behaviour shared by the SQL and in-memory stores.

Every test runs against both implementations through the ``repository``
fixture.
"""
from datetime import datetime
from decimal import Decimal

from app.models import User
from app.repositories import TransactionFilters


def test_base_amount_equals_amount_in_home_currency(make_transaction):
    txn = make_transaction(amount=Decimal("250.50"), exchange_rate=Decimal("3"))

    assert txn.currency == "INR"
    assert txn.base_amount == Decimal("250.50")


def test_base_amount_converts_foreign_currency(make_transaction):
    txn = make_transaction(amount=Decimal("10.00"), currency="USD", exchange_rate=Decimal("83.255"))
    assert txn.base_amount == Decimal("832.55")


def test_base_amount_rounds_half_up(make_transaction):
    txn = make_transaction(amount=Decimal("1.00"), currency="EUR", exchange_rate=Decimal("0.125"))
    assert txn.base_amount == Decimal("0.13")


def test_save_recomputes_base_amount_and_bumps_version(repository, make_transaction):
    txn = make_transaction(amount=Decimal("100.00"))
    assert txn.version == 1

    txn.amount = Decimal("300.00")
    repository.save_transaction(txn)
    assert txn.base_amount == Decimal("300.00")
    assert txn.version == 2

    txn.currency = "USD"
    txn.exchange_rate = Decimal("2")
    repository.save_transaction(txn)
    assert txn.base_amount == Decimal("600.00")
    assert txn.version == 3


def test_recurring_next_date_is_set_on_insert(make_transaction):
    txn = make_transaction(
        date=datetime(2024, 1, 31, 9, 0),
        is_recurring=True,
        recurring_frequency="monthly",
        recurring_interval=1,
    )
    assert txn.recurring_next_date == datetime(2024, 2, 29, 9, 0)


def test_non_recurring_has_no_next_date(make_transaction):
    assert make_transaction().recurring_next_date is None


def test_user_email_lookup_is_case_insensitive(repository, user):
    assert repository.get_user_by_email("ALICE@example.com").id == user.id
    assert repository.get_user_by_email("nobody@example.com") is None


def test_list_categories_filters_by_type(repository, user):
    expenses = repository.list_categories(user.id, category_type="expense")
    income = repository.list_categories(user.id, category_type="income")

    assert len(expenses) == 12
    assert len(income) == 7
    assert {c.category_type for c in expenses} == {"expense"}


def test_inactive_categories_are_hidden_unless_requested(repository, user, categories):
    shopping = categories["Shopping"]
    shopping.is_active = False
    repository.save_category(shopping)

    active_names = {c.name for c in repository.list_categories(user.id)}
    all_names = {c.name for c in repository.list_categories(user.id, active_only=False)}
    assert "Shopping" not in active_names
    assert "Shopping" in all_names


def test_find_transactions_counts_the_filtered_set(repository, user, make_transaction):
    for day in range(1, 6):
        make_transaction(title=f"Lunch {day}", date=datetime(2024, 3, day))
    make_transaction(category="Salary", title="March salary", amount=Decimal("5000"))

    page = repository.find_transactions(
        user.id, TransactionFilters(transaction_type="expense"), page=1, limit=2
    )
    assert page.total == 5
    assert page.total_pages == 3
    assert len(page.items) == 2
    # Default sort is newest first
    assert [t.title for t in page.items] == ["Lunch 5", "Lunch 4"]

    last = repository.find_transactions(
        user.id, TransactionFilters(transaction_type="expense"), page=3, limit=2
    )
    assert [t.title for t in last.items] == ["Lunch 1"]


def test_find_transactions_sort_by_amount(repository, user, make_transaction):
    make_transaction(title="Mid", amount=Decimal("50"))
    make_transaction(title="Low", amount=Decimal("5"))
    make_transaction(title="High", amount=Decimal("500"))

    page = repository.find_transactions(user.id, TransactionFilters(), sort="amount")
    assert [t.title for t in page.items] == ["Low", "Mid", "High"]


def test_search_matches_text_fields_and_tags(repository, user, make_transaction):
    make_transaction(title="Uber ride to office")
    make_transaction(title="Groceries", tags=["Weekly"])
    make_transaction(title="Cinema", notes="with uber friends")
    make_transaction(title="Rent", description="March 100% paid")

    def titles(search):
        page = repository.find_transactions(user.id, TransactionFilters(search=search))
        return sorted(t.title for t in page.items)

    assert titles("UBER") == ["Cinema", "Uber ride to office"]
    assert titles("weekly") == ["Groceries"]
    assert titles("cinema groceries") == ["Cinema", "Groceries"]
    assert titles("100%") == ["Rent"]
    assert titles("nothing-like-this") == []


def test_tag_and_amount_filters(repository, user, make_transaction):
    make_transaction(title="Tagged", amount=Decimal("40"), tags=["work", "travel"])
    make_transaction(title="Other tag", amount=Decimal("400"), tags=["home"])
    make_transaction(title="Untagged", amount=Decimal("4000"))

    tagged = repository.find_transactions(user.id, TransactionFilters(tags=["travel", "home"]))
    assert sorted(t.title for t in tagged.items) == ["Other tag", "Tagged"]

    ranged = repository.find_transactions(
        user.id, TransactionFilters(min_amount=Decimal("100"), max_amount=Decimal("1000"))
    )
    assert [t.title for t in ranged.items] == ["Other tag"]


def test_soft_deleted_transactions_are_hidden(repository, user, make_transaction):
    kept = make_transaction(title="Kept")
    gone = make_transaction(title="Gone")

    gone.soft_delete()
    repository.save_transaction(gone)

    page = repository.find_transactions(user.id, TransactionFilters())
    assert [t.id for t in page.items] == [kept.id]
    assert repository.get_transaction(gone.id, user.id) is None
    assert repository.get_transaction(gone.id, user.id, include_deleted=True).id == gone.id
    assert [t.id for t in repository.list_deleted_transactions(user.id)] == [gone.id]

    gone.restore()
    repository.save_transaction(gone)
    assert repository.find_transactions(user.id, TransactionFilters()).total == 2
    assert repository.list_deleted_transactions(user.id) == []


def test_transactions_are_scoped_to_their_owner(repository, make_transaction):
    txn = make_transaction()
    stranger = repository.add_user(User(email="mallory@example.com", password_hash="x", full_name="Mallory"))
    assert repository.get_transaction(txn.id, stranger.id) is None
    assert repository.find_transactions(stranger.id, TransactionFilters()).total == 0


def test_aggregates_use_completed_non_deleted_base_amounts(repository, user, make_transaction):
    start, end = datetime(2024, 3, 1), datetime(2024, 3, 31, 23, 59)
    make_transaction(title="Dinner", amount=Decimal("200"))
    make_transaction(category="Shopping", title="Shoes", amount=Decimal("10"), currency="USD",
                     exchange_rate=Decimal("80"))
    make_transaction(title="Pending", amount=Decimal("999"), status="pending")
    deleted = make_transaction(title="Deleted", amount=Decimal("999"))
    deleted.soft_delete()
    repository.save_transaction(deleted)
    make_transaction(title="Outside range", amount=Decimal("999"), date=datetime(2024, 4, 2))
    make_transaction(category="Salary", title="Salary", amount=Decimal("5000"))

    monthly = repository.monthly_totals(user.id, start, end)
    by_type = {row.transaction_type: row for row in monthly}
    assert by_type["expense"].total == Decimal("1000")
    assert by_type["expense"].count == 2
    assert by_type["expense"].average == Decimal("500")
    assert by_type["income"].total == Decimal("5000")

    breakdown = repository.category_totals(user.id, start, end, "expense")
    assert [row.name for row in breakdown] == ["Shopping", "Food & Dining"]
    assert [row.total for row in breakdown] == [Decimal("800"), Decimal("200")]
    assert sum(row.total for row in breakdown) == by_type["expense"].total


def test_monthly_totals_are_ordered_oldest_first(repository, user, make_transaction):
    make_transaction(date=datetime(2024, 3, 5))
    make_transaction(date=datetime(2024, 1, 5))
    make_transaction(date=datetime(2024, 2, 5))

    rows = repository.monthly_totals(user.id, None, None)
    assert [(row.year, row.month) for row in rows] == [(2024, 1), (2024, 2), (2024, 3)]


def test_find_due_recurring_returns_only_due_roots(repository, make_transaction):
    root = make_transaction(
        date=datetime(2024, 1, 10),
        is_recurring=True,
        recurring_frequency="monthly",
    )
    make_transaction(
        date=datetime(2024, 2, 10),
        is_recurring=True,
        recurring_frequency="monthly",
        parent_transaction_id=root.id,
    )
    make_transaction(
        date=datetime(2024, 6, 10),
        is_recurring=True,
        recurring_frequency="monthly",
    )

    due = repository.find_due_recurring(datetime(2024, 3, 1))
    assert [t.id for t in due] == [root.id]


def test_unit_of_work_commits_all_writes(repository, user, categories, make_transaction):
    food = categories["Food & Dining"]
    with repository.unit_of_work() as repo:
        txn = make_transaction(amount=Decimal("75"))
        food.record_usage(txn.base_amount)
        repo.save_category(food)

    reloaded = repository.get_category(food.id, user.id)
    assert reloaded.usage_transaction_count == 1
    assert reloaded.usage_total_amount == Decimal("75")
