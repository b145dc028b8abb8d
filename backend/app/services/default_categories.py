"""
Default category set created for every new user.
"""
from dataclasses import dataclass
from typing import List, Tuple
from uuid import UUID

from app.models import Category


@dataclass(frozen=True)
class DefaultCategory:
    name: str
    icon: str
    color: str
    category_type: str
    keywords: Tuple[str, ...]


DEFAULT_CATEGORIES: Tuple[DefaultCategory, ...] = (
    # Expense
    DefaultCategory("Food & Dining", "🍽️", "#ff6b6b", "expense", ("food", "restaurant", "dining", "meal", "grocery")),
    DefaultCategory("Transportation", "🚗", "#4ecdc4", "expense", ("transport", "uber", "taxi", "bus", "fuel", "petrol")),
    DefaultCategory("Entertainment", "🎬", "#45b7d1", "expense", ("movie", "game", "entertainment", "fun", "leisure")),
    DefaultCategory("Shopping", "🛒", "#f7931e", "expense", ("shopping", "clothes", "amazon", "flipkart", "purchase")),
    DefaultCategory("Healthcare", "🏥", "#6c5ce7", "expense", ("medical", "doctor", "hospital", "medicine", "health")),
    DefaultCategory("Education", "📚", "#00b894", "expense", ("education", "course", "book", "school", "college")),
    DefaultCategory("Utilities", "⚡", "#ffeaa7", "expense", ("electricity", "water", "gas", "internet", "phone")),
    DefaultCategory("Housing", "🏠", "#fd79a8", "expense", ("rent", "mortgage", "home", "house", "apartment")),
    DefaultCategory("Insurance", "🛡️", "#636e72", "expense", ("insurance", "premium", "policy", "coverage")),
    DefaultCategory("Personal Care", "💄", "#e17055", "expense", ("salon", "cosmetics", "grooming", "beauty")),
    DefaultCategory("Gifts & Donations", "🎁", "#fd79a8", "expense", ("gift", "donation", "charity", "present")),
    DefaultCategory("Travel", "✈️", "#00b894", "expense", ("travel", "vacation", "trip", "hotel", "flight")),
    # Income
    DefaultCategory("Salary", "💼", "#00b894", "income", ("salary", "wage", "payroll", "income")),
    DefaultCategory("Freelance", "💻", "#0984e3", "income", ("freelance", "contract", "consulting", "gig")),
    DefaultCategory("Business", "🏢", "#6c5ce7", "income", ("business", "profit", "revenue", "sales")),
    DefaultCategory("Investments", "📈", "#e17055", "income", ("investment", "dividend", "interest", "returns")),
    DefaultCategory("Rental", "🏠", "#fd79a8", "income", ("rent", "rental", "property", "lease")),
    DefaultCategory("Gifts", "🎁", "#fdcb6e", "income", ("gift", "bonus", "reward", "prize")),
    DefaultCategory("Other Income", "💰", "#55a3ff", "income", ("other", "miscellaneous", "extra")),
)


def build_default_categories(user_id: UUID) -> List[Category]:
    """Fresh, unsaved copies of the default categories owned by ``user_id``."""
    return [
        Category(
            user_id=user_id,
            name=entry.name,
            icon=entry.icon,
            color=entry.color,
            category_type=entry.category_type,
            is_default=True,
            is_active=True,
            keywords=list(entry.keywords),
            patterns=[],
            aliases=[],
            sort_order=0,
        )
        for entry in DEFAULT_CATEGORIES
    ]
