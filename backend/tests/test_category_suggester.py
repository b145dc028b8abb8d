"""
Keyword-based category suggestions.
"""
from datetime import datetime

from app.schemas import RegisterRequest
from app.services.auth_service import AuthService
from app.services.category_suggester import CategorySuggester, build_pattern

from conftest import TEST_PASSWORD


def test_pattern_escapes_regex_metacharacters():
    pattern = build_pattern("c++ (books)", "50% off")
    assert pattern.search("C++")
    assert pattern.search("(BOOKS)")
    assert not pattern.search("cxx")


def test_empty_text_matches_everything():
    assert build_pattern("", None).search("anything")
    assert build_pattern(None, "   ").search("")


def test_suggests_matching_categories_of_requested_type(repository, user):
    suggestions = CategorySuggester(repository).suggest(user.id, "Restaurant")

    assert [c.name for c in suggestions] == ["Food & Dining"]


def test_results_never_exceed_three_and_respect_type(repository, user):
    suggester = CategorySuggester(repository)

    expense = suggester.suggest(user.id, "rent gift travel movie fuel salary")
    assert len(expense) == 3
    assert all(c.category_type == "expense" for c in expense)

    income = suggester.suggest(user.id, "rent gift travel movie fuel salary", transaction_type="income")
    assert len(income) == 3
    assert all(c.category_type == "income" for c in income)


def test_empty_text_returns_top_three_of_type(repository, user):
    suggestions = CategorySuggester(repository).suggest(user.id, "", transaction_type="income")
    assert len(suggestions) == 3
    assert all(c.category_type == "income" for c in suggestions)


def test_matches_on_aliases(repository, user, categories):
    utilities = categories["Utilities"]
    utilities.aliases = ["broadband"]
    repository.save_category(utilities)

    suggestions = CategorySuggester(repository).suggest(user.id, "Broadband bill")
    assert [c.name for c in suggestions] == ["Utilities"]


def test_ranked_by_usage_count_then_recency(repository, user, categories):
    food = categories["Food & Dining"]
    shopping = categories["Shopping"]
    for _ in range(3):
        shopping.record_usage(10, datetime(2024, 1, 1))
    repository.save_category(shopping)
    food.record_usage(10, datetime(2024, 2, 1))
    repository.save_category(food)

    text = "amazon grocery order"
    ranked = CategorySuggester(repository).suggest(user.id, text)
    assert [c.name for c in ranked] == ["Shopping", "Food & Dining"]

    food.record_usage(10, datetime(2024, 2, 2))
    food.record_usage(10, datetime(2024, 2, 3))
    repository.save_category(food)
    # Equal counts: the most recently used wins
    ranked = CategorySuggester(repository).suggest(user.id, text)
    assert [c.name for c in ranked] == ["Food & Dining", "Shopping"]


def test_inactive_categories_are_not_suggested(repository, user, categories):
    food = categories["Food & Dining"]
    food.is_active = False
    repository.save_category(food)

    assert CategorySuggester(repository).suggest(user.id, "restaurant") == []


def test_other_users_categories_are_not_suggested(repository, user, categories):
    other, _ = AuthService(repository).register(
        RegisterRequest(email="carol@example.com", password=TEST_PASSWORD, full_name="Carol Example")
    )
    suggestions = CategorySuggester(repository).suggest(user.id, "restaurant salary rent")
    own_ids = {c.id for c in categories.values()}

    assert suggestions
    assert all(c.id in own_ids for c in suggestions)
    assert all(c.user_id != other.id for c in suggestions)
