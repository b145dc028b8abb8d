"""
Suggests categories for a transaction from its title and description.

Matching is deterministic: every whitespace-separated word of the text
becomes an alternative in one case-insensitive pattern, and a category
matches when that pattern hits its name, one of its keywords or one of its
aliases. Matches are ranked by how often the category has been used.
"""
import re
import logging
from datetime import datetime
from typing import List, Optional, Pattern
from uuid import UUID

from app.models import Category
from app.repositories.base import FinanceRepository

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3


def build_pattern(title: Optional[str], description: Optional[str] = None) -> Pattern:
    """
    Alternation of the escaped words in ``"{title} {description}"``.

    Empty text produces the empty pattern, which matches every category.
    """
    text = f"{title or ''} {description or ''}".lower()
    tokens = [re.escape(token) for token in text.split()]
    return re.compile("|".join(tokens), re.IGNORECASE)


def category_matches(category: Category, pattern: Pattern) -> bool:
    candidates = [category.name or ""]
    candidates.extend(category.keywords or [])
    candidates.extend(category.aliases or [])
    return any(pattern.search(candidate) for candidate in candidates)


def _usage_rank(category: Category):
    # Most used first, then most recently used, never-used last
    last_used = category.usage_last_used
    return (
        -(category.usage_transaction_count or 0),
        last_used is None,
        -(last_used - datetime.min).total_seconds() if last_used else 0,
    )


class CategorySuggester:
    def __init__(self, repository: FinanceRepository):
        self.repository = repository

    def suggest(
        self,
        user_id: UUID,
        title: Optional[str],
        description: Optional[str] = None,
        transaction_type: str = "expense",
        limit: int = MAX_SUGGESTIONS,
    ) -> List[Category]:
        """
        Up to ``limit`` active categories of ``transaction_type`` visible to
        the user whose name, keywords or aliases match the text.
        """
        pattern = build_pattern(title, description)
        candidates = self.repository.list_categories(user_id, category_type=transaction_type, active_only=True)

        matched = [c for c in candidates if category_matches(c, pattern)]
        matched.sort(key=_usage_rank)

        logger.debug(
            f"Category suggestion for '{title}' ({transaction_type}): "
            f"{len(matched)} matches from {len(candidates)} candidates"
        )
        return matched[:limit]
