"""
User category management.
"""
import logging
from typing import List, Optional
from uuid import UUID

from app.models import Category
from app.repositories.base import FinanceRepository
from app.schemas import CategoryCreate, CategoryUpdate
from app.services.errors import InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)

# Request fields stored under a different column name
_RENAMED = {"type": "category_type"}


class CategoryService:
    def __init__(self, repository: FinanceRepository):
        self.repository = repository

    def list_categories(self, user_id: UUID, category_type: Optional[str] = None) -> List[Category]:
        return self.repository.list_categories(user_id, category_type=category_type, active_only=True)

    def get_category(self, user_id: UUID, category_id: UUID) -> Category:
        category = self.repository.get_category(category_id, user_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def _owned_category(self, user_id: UUID, category_id: UUID) -> Category:
        category = self.get_category(user_id, category_id)
        if category.user_id != user_id:
            raise InvalidRequestError("System default categories cannot be modified")
        return category

    def _check_parent(self, user_id: UUID, parent_id: Optional[UUID], category_type: str) -> None:
        if parent_id is None:
            return
        parent = self.repository.get_category(parent_id, user_id)
        if parent is None or parent.category_type != category_type:
            raise InvalidRequestError("Parent category must be a visible category of the same type")

    def create_category(self, user_id: UUID, payload: CategoryCreate) -> Category:
        self._check_parent(user_id, payload.parent_id, payload.type)
        data = payload.model_dump()
        category = Category(
            user_id=user_id,
            is_default=False,
            is_active=True,
            patterns=[],
            **{_RENAMED.get(key, key): value for key, value in data.items()},
        )
        with self.repository.unit_of_work() as repo:
            repo.add_categories([category])
        logger.info(f"Created category {category.id} '{category.name}' for user {user_id}")
        return category

    def update_category(self, user_id: UUID, category_id: UUID, payload: CategoryUpdate) -> Category:
        category = self._owned_category(user_id, category_id)
        updates = payload.model_dump(exclude_unset=True)
        if "parent_id" in updates:
            if updates["parent_id"] == category.id:
                raise InvalidRequestError("A category cannot be its own parent")
            self._check_parent(user_id, updates["parent_id"], category.category_type)

        for field, value in updates.items():
            setattr(category, field, value)

        with self.repository.unit_of_work() as repo:
            repo.save_category(category)
        return category

    def deactivate_category(self, user_id: UUID, category_id: UUID) -> Category:
        """Hide a category from selection. Existing transactions keep their reference."""
        category = self._owned_category(user_id, category_id)
        category.is_active = False
        with self.repository.unit_of_work() as repo:
            repo.save_category(category)
        logger.info(f"Deactivated category {category.id}")
        return category
