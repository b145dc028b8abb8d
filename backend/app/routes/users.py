from fastapi import APIRouter, Depends

from app.db_helpers import get_user_id
from app.repositories import FinanceRepository, get_repository
from app.responses import envelope
from app.schemas import ProfileUpdate, UserProfile
from app.services.auth_service import AuthService
from app.services.gamification import gamification_summary

router = APIRouter()


@router.get("/profile")
def get_profile(repository: FinanceRepository = Depends(get_repository)):
    user = AuthService(repository).get_user(get_user_id())
    return envelope("OK", {"user": UserProfile.from_model(user).as_payload()})


@router.put("/profile")
def update_profile(payload: ProfileUpdate, repository: FinanceRepository = Depends(get_repository)):
    user = AuthService(repository).update_profile(get_user_id(), payload)
    return envelope("Profile updated successfully", {"user": UserProfile.from_model(user).as_payload()})


@router.get("/gamification")
def get_gamification(repository: FinanceRepository = Depends(get_repository)):
    """Level, points, streak and badges for the current user."""
    user = AuthService(repository).get_user(get_user_id())
    return envelope("OK", {"gamification": gamification_summary(user)})
