"""Demo environment seeding service.

Creates a demo account with the default categories and a small, realistic set
of transactions dated within the current month so every dashboard widget has
data on first load.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from app.models import User
from app.repositories.base import FinanceRepository
from app.schemas import RecurringSettings, RegisterRequest, TransactionCreate
from app.services.auth_service import AuthService
from app.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@smartbudget.ai"
DEMO_PASSWORD = "demo1234"
DEMO_FULL_NAME = "Demo User"


@dataclass(frozen=True)
class TxTemplate:
    title: str
    amount: Decimal
    transaction_type: str
    category_name: str
    day_offset: int
    description: str
    tags: Tuple[str, ...] = ()
    payment_method: str = "other"
    recurring_frequency: Optional[str] = None
    location: Optional[dict] = None


DEMO_TRANSACTIONS: tuple[TxTemplate, ...] = (
    TxTemplate("Monthly Salary", Decimal("85000"), "income", "Salary", 0,
               "Monthly salary from company", ("salary", "monthly"), "bank_transfer", "monthly"),
    TxTemplate("Grocery Shopping", Decimal("3500"), "expense", "Food & Dining", 1,
               "Weekly grocery shopping at BigBasket", ("grocery", "food"), "upi"),
    TxTemplate("Uber Ride", Decimal("280"), "expense", "Transportation", 2,
               "Office to home", ("transport", "uber"), "wallet",
               location={"name": "Mumbai, India", "coordinates": [19.0760, 72.8777]}),
    TxTemplate("House Rent", Decimal("25000"), "expense", "Housing", 3,
               "Monthly house rent", ("rent", "monthly", "housing"), "bank_transfer", "monthly"),
    TxTemplate("Movie Tickets", Decimal("800"), "expense", "Entertainment", 4,
               "Movie night with family", ("entertainment", "movies", "family"), "card"),
    TxTemplate("Freelance Project", Decimal("15000"), "income", "Freelance", 5,
               "Web development project payment", ("freelance", "programming"), "bank_transfer"),
    TxTemplate("Restaurant Dinner", Decimal("1200"), "expense", "Food & Dining", 6,
               "Dinner at Italian restaurant", ("food", "restaurant", "dinner"), "card"),
)


class DemoSeedService:
    """Creates the demo account once; later calls are no-ops."""

    def __init__(self, repository: FinanceRepository):
        self.repository = repository

    def seed(self, now: Optional[datetime] = None) -> User:
        existing = self.repository.get_user_by_email(DEMO_EMAIL)
        if existing is not None:
            logger.info("Demo user already present, skipping seed")
            return existing

        now = now or datetime.utcnow()
        user, _ = AuthService(self.repository).register(
            RegisterRequest(email=DEMO_EMAIL, password=DEMO_PASSWORD, full_name=DEMO_FULL_NAME),
            now=now,
        )
        user.email_verified = True
        self.repository.save_user(user)

        categories = {
            (c.category_type, c.name): c
            for c in self.repository.list_categories(user.id)
        }
        month_start = now.replace(day=1, hour=9, minute=0, second=0, microsecond=0)
        transactions = TransactionService(self.repository)

        for template in DEMO_TRANSACTIONS:
            category = categories[(template.transaction_type, template.category_name)]
            date = min(month_start + timedelta(days=template.day_offset), now)
            recurring = None
            if template.recurring_frequency:
                recurring = RecurringSettings(is_recurring=True, frequency=template.recurring_frequency)

            transactions.create_transaction(
                user.id,
                TransactionCreate(
                    title=template.title,
                    amount=template.amount,
                    type=template.transaction_type,
                    category=category.id,
                    date=date,
                    description=template.description,
                    payment_method=template.payment_method,
                    tags=list(template.tags),
                    location=template.location,
                    recurring=recurring,
                ),
                now=now,
            )

        logger.info(f"Seeded demo user {user.id} with {len(DEMO_TRANSACTIONS)} transactions")
        return user
