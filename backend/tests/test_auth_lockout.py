"""
Failed-login counting and temporary account lockout.
"""
from datetime import datetime, timedelta

import pytest

from app.services.auth_service import (
    LOCK_TIME,
    MAX_LOGIN_ATTEMPTS,
    AuthService,
    is_locked,
    register_failed_login,
)
from app.services.errors import AccountLockedError, AuthenticationError

from conftest import TEST_PASSWORD

NOW = datetime(2024, 5, 1, 12, 0)


def fail_login(service, now=NOW, times=1):
    for _ in range(times):
        with pytest.raises(AuthenticationError):
            service.login("alice@example.com", "wrong-password", now=now)


def test_account_locks_after_max_attempts(repository, user):
    service = AuthService(repository)
    fail_login(service, times=MAX_LOGIN_ATTEMPTS)

    stored = repository.get_user(user.id)
    assert stored.login_attempts == MAX_LOGIN_ATTEMPTS
    assert stored.lock_until == NOW + LOCK_TIME

    # Even the right password is refused while locked
    with pytest.raises(AccountLockedError) as excinfo:
        service.login("alice@example.com", TEST_PASSWORD, now=NOW + timedelta(minutes=5))
    assert excinfo.value.status_code == 423


def test_successful_login_resets_counter(repository, user):
    service = AuthService(repository)
    fail_login(service, times=MAX_LOGIN_ATTEMPTS - 1)

    logged_in, tokens = service.login("alice@example.com", TEST_PASSWORD, now=NOW)
    assert logged_in.login_attempts == 0
    assert logged_in.lock_until is None
    assert logged_in.last_login == NOW
    assert set(tokens) == {"token", "refreshToken"}

    fail_login(service, times=MAX_LOGIN_ATTEMPTS - 1)
    assert not is_locked(repository.get_user(user.id), NOW)


def test_login_succeeds_once_lock_expires(repository, user):
    service = AuthService(repository)
    fail_login(service, times=MAX_LOGIN_ATTEMPTS)

    later = NOW + LOCK_TIME + timedelta(seconds=1)
    logged_in, _ = service.login("alice@example.com", TEST_PASSWORD, now=later)
    assert logged_in.login_attempts == 0
    assert logged_in.lock_until is None


def test_failure_after_expired_lock_restarts_count(repository, user):
    service = AuthService(repository)
    fail_login(service, times=MAX_LOGIN_ATTEMPTS)

    later = NOW + LOCK_TIME + timedelta(minutes=1)
    fail_login(service, now=later)

    stored = repository.get_user(user.id)
    assert stored.login_attempts == 1
    assert stored.lock_until is None


def test_unknown_email_and_wrong_password_share_a_message(repository, user):
    service = AuthService(repository)

    with pytest.raises(AuthenticationError) as unknown:
        service.login("nobody@example.com", TEST_PASSWORD, now=NOW)
    with pytest.raises(AuthenticationError) as wrong:
        service.login("alice@example.com", "nope-nope", now=NOW)

    assert unknown.value.message == wrong.value.message == "Invalid email or password"


def test_register_failed_login_does_not_extend_existing_lock(user):
    user.login_attempts = MAX_LOGIN_ATTEMPTS
    user.lock_until = NOW + timedelta(minutes=30)

    register_failed_login(user, NOW)

    assert user.login_attempts == MAX_LOGIN_ATTEMPTS + 1
    assert user.lock_until == NOW + timedelta(minutes=30)
