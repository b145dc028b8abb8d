from fastapi import APIRouter, Depends
import logging

from app.db_helpers import get_user_id
from app.repositories import FinanceRepository, get_repository
from app.responses import envelope
from app.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    PreferencesUpdate,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    UserProfile,
)
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, repository: FinanceRepository = Depends(get_repository)):
    """Create an account with the default categories and return a token pair."""
    user, tokens = AuthService(repository).register(payload)
    return envelope("User registered successfully", {
        "user": UserProfile.from_model(user).as_payload(),
        **tokens,
    })


@router.post("/login")
def login(payload: LoginRequest, repository: FinanceRepository = Depends(get_repository)):
    user, tokens = AuthService(repository).login(payload.email, payload.password)
    return envelope("Login successful", {
        "user": UserProfile.from_model(user).as_payload(),
        **tokens,
    })


@router.post("/refresh")
def refresh(payload: RefreshRequest, repository: FinanceRepository = Depends(get_repository)):
    """Exchange a refresh token for a new access/refresh pair."""
    tokens = AuthService(repository).refresh(payload.refresh_token)
    return envelope("Token refreshed", tokens)


@router.get("/me")
def me(repository: FinanceRepository = Depends(get_repository)):
    user = AuthService(repository).get_user(get_user_id())
    return envelope("OK", {"user": UserProfile.from_model(user).as_payload()})


@router.put("/profile")
def update_profile(payload: ProfileUpdate, repository: FinanceRepository = Depends(get_repository)):
    user = AuthService(repository).update_profile(get_user_id(), payload)
    return envelope("Profile updated successfully", {"user": UserProfile.from_model(user).as_payload()})


@router.put("/preferences")
def update_preferences(payload: PreferencesUpdate, repository: FinanceRepository = Depends(get_repository)):
    user = AuthService(repository).update_preferences(get_user_id(), payload.preferences)
    profile = UserProfile.from_model(user).as_payload()
    return envelope("Preferences updated successfully", {"preferences": profile["preferences"]})


@router.put("/change-password")
def change_password(payload: ChangePasswordRequest, repository: FinanceRepository = Depends(get_repository)):
    AuthService(repository).change_password(get_user_id(), payload)
    return envelope("Password changed successfully")


@router.post("/logout")
def logout():
    """Tokens are stateless; the client discards them."""
    logger.info(f"User {get_user_id()} logged out")
    return envelope("Logged out successfully")
