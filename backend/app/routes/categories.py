from fastapi import APIRouter, Depends, Query
from typing import Literal, Optional
from uuid import UUID

from app.db_helpers import get_user_id
from app.repositories import FinanceRepository, get_repository
from app.responses import envelope
from app.schemas import CategoryCreate, CategoryResponse, CategoryUpdate
from app.services.category_service import CategoryService
from app.services.category_suggester import CategorySuggester

router = APIRouter()


@router.get("")
def list_categories(
    type: Optional[Literal["income", "expense"]] = None,
    repository: FinanceRepository = Depends(get_repository),
):
    """List active categories visible to the current user."""
    categories = CategoryService(repository).list_categories(get_user_id(), type)
    return envelope("OK", {
        "categories": [CategoryResponse.from_model(c).as_payload() for c in categories],
    })


@router.post("", status_code=201)
def create_category(payload: CategoryCreate, repository: FinanceRepository = Depends(get_repository)):
    category = CategoryService(repository).create_category(get_user_id(), payload)
    return envelope("Category created successfully", {
        "category": CategoryResponse.from_model(category).as_payload(),
    })


@router.get("/suggest")
def suggest_categories(
    title: str = Query("", max_length=200),
    description: Optional[str] = Query(None, max_length=500),
    type: Literal["income", "expense"] = "expense",
    repository: FinanceRepository = Depends(get_repository),
):
    """Up to three categories matching the transaction text, most used first."""
    suggestions = CategorySuggester(repository).suggest(get_user_id(), title, description, type)
    return envelope("OK", {
        "suggestions": [CategoryResponse.from_model(c).as_payload() for c in suggestions],
    })


@router.get("/{category_id}")
def get_category(category_id: UUID, repository: FinanceRepository = Depends(get_repository)):
    category = CategoryService(repository).get_category(get_user_id(), category_id)
    return envelope("OK", {"category": CategoryResponse.from_model(category).as_payload()})


@router.patch("/{category_id}")
def update_category(
    category_id: UUID,
    updates: CategoryUpdate,
    repository: FinanceRepository = Depends(get_repository),
):
    category = CategoryService(repository).update_category(get_user_id(), category_id, updates)
    return envelope("Category updated successfully", {
        "category": CategoryResponse.from_model(category).as_payload(),
    })


@router.delete("/{category_id}")
def delete_category(category_id: UUID, repository: FinanceRepository = Depends(get_repository)):
    """Deactivate a user-owned category."""
    CategoryService(repository).deactivate_category(get_user_id(), category_id)
    return envelope("Category deleted successfully")
