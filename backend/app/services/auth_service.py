"""
Registration, login with attempt lockout, token refresh and account updates.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple
from uuid import UUID

from app.models import User
from app.repositories.base import FinanceRepository
from app.schemas import (
    ChangePasswordRequest,
    PreferencesPayload,
    ProfileUpdate,
    RegisterRequest,
)
from app.security.passwords import hash_password, verify_password
from app.security.tokens import REFRESH_TOKEN_TYPE, TokenError, create_token_pair, decode_token
from app.services import gamification
from app.services.default_categories import build_default_categories
from app.services.errors import (
    AccountLockedError,
    AuthenticationError,
    InvalidRequestError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

MAX_LOGIN_ATTEMPTS = 5
LOCK_TIME = timedelta(hours=2)

INVALID_CREDENTIALS = "Invalid email or password"


def is_locked(user: User, now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    return user.lock_until is not None and user.lock_until > now


def register_failed_login(user: User, now: Optional[datetime] = None) -> None:
    """
    Count a failed password check.

    A lock that has already expired is cleared and the counter restarts at 1.
    Otherwise the counter is incremented and, on reaching the limit with no
    lock in place, the account is locked for ``LOCK_TIME``.
    """
    now = now or datetime.utcnow()
    if user.lock_until is not None and user.lock_until < now:
        user.lock_until = None
        user.login_attempts = 1
        return

    user.login_attempts = (user.login_attempts or 0) + 1
    if user.login_attempts >= MAX_LOGIN_ATTEMPTS and user.lock_until is None:
        user.lock_until = now + LOCK_TIME
        logger.warning(f"User {user.id} locked after {user.login_attempts} failed logins")


def reset_login_attempts(user: User) -> None:
    user.login_attempts = 0
    user.lock_until = None


class AuthService:
    def __init__(self, repository: FinanceRepository):
        self.repository = repository

    def register(self, payload: RegisterRequest, now: Optional[datetime] = None) -> Tuple[User, dict]:
        now = now or datetime.utcnow()
        if self.repository.get_user_by_email(payload.email) is not None:
            raise InvalidRequestError("User already exists with this email")

        with self.repository.unit_of_work() as repo:
            user = User(
                email=payload.email,
                password_hash=hash_password(payload.password),
                full_name=payload.full_name,
                email_verified=False,
                last_activity_date=now,
            )
            repo.add_user(user)
            repo.add_categories(build_default_categories(user.id))

            gamification.update_activity(user, now)
            gamification.add_points(user, gamification.REGISTRATION_POINTS)
            repo.save_user(user)

        logger.info(f"Registered user {user.id}")
        return user, create_token_pair(str(user.id))

    def login(self, email: str, password: str, now: Optional[datetime] = None) -> Tuple[User, dict]:
        now = now or datetime.utcnow()
        user = self.repository.get_user_by_email(email)
        if user is None:
            raise AuthenticationError(INVALID_CREDENTIALS)

        if is_locked(user, now):
            raise AccountLockedError("Account is locked due to too many failed login attempts")

        if not verify_password(password, user.password_hash):
            register_failed_login(user, now)
            self.repository.save_user(user)
            raise AuthenticationError(INVALID_CREDENTIALS)

        reset_login_attempts(user)
        user.last_login = now
        gamification.update_activity(user, now)
        gamification.add_points(user, gamification.LOGIN_POINTS)
        self.repository.save_user(user)

        return user, create_token_pair(str(user.id))

    def refresh(self, refresh_token: Optional[str]) -> dict:
        if not refresh_token:
            raise AuthenticationError("Refresh token required")
        try:
            user_id = decode_token(refresh_token, REFRESH_TOKEN_TYPE)
        except TokenError as exc:
            logger.info(f"Rejected refresh token: {exc}")
            raise AuthenticationError("Invalid or expired refresh token") from exc

        user = self._find_user(user_id)
        if user is None or not user.is_active:
            raise AuthenticationError("User not found or inactive")
        return create_token_pair(str(user.id))

    def get_user(self, user_id: UUID) -> User:
        user = self._find_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def update_profile(self, user_id: UUID, updates: ProfileUpdate) -> User:
        user = self.get_user(user_id)
        for field, value in updates.model_dump(exclude_unset=True).items():
            setattr(user, field, value)
        return self.repository.save_user(user)

    def update_preferences(self, user_id: UUID, preferences: PreferencesPayload) -> User:
        user = self.get_user(user_id)
        changes = preferences.model_dump(exclude_unset=True, exclude_none=True)
        notifications = changes.pop("notifications", None)
        for field, value in changes.items():
            setattr(user, field, value)
        if notifications is not None:
            user.notification_preferences = {**(user.notification_preferences or {}), **notifications}
        return self.repository.save_user(user)

    def change_password(self, user_id: UUID, payload: ChangePasswordRequest) -> None:
        user = self.get_user(user_id)
        if not verify_password(payload.current_password, user.password_hash):
            raise InvalidRequestError("Current password is incorrect")
        user.password_hash = hash_password(payload.new_password)
        self.repository.save_user(user)
        logger.info(f"Password changed for user {user.id}")

    def _find_user(self, user_id) -> Optional[User]:
        try:
            user_uuid = user_id if isinstance(user_id, UUID) else UUID(str(user_id))
        except ValueError:
            return None
        return self.repository.get_user(user_uuid)
