"""
JWT issuance and verification.

Access and refresh tokens are signed with different secrets and carry a
``type`` claim so one can never be used in place of the other.
"""
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt

from app.database import settings

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenError(Exception):
    """Raised when a token is missing, malformed, expired or of the wrong type."""


def _secret_for(token_type: str) -> str:
    if token_type == REFRESH_TOKEN_TYPE:
        return settings.jwt_refresh_secret
    return settings.jwt_secret


def _encode(user_id: str, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.utcnow()
    claims = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(claims, _secret_for(token_type), algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    expires_delta = expires_delta or timedelta(minutes=settings.jwt_expire_minutes)
    return _encode(user_id, ACCESS_TOKEN_TYPE, expires_delta)


def create_refresh_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    expires_delta = expires_delta or timedelta(minutes=settings.jwt_refresh_expire_minutes)
    return _encode(user_id, REFRESH_TOKEN_TYPE, expires_delta)


def create_token_pair(user_id: str) -> dict:
    return {
        "token": create_access_token(user_id),
        "refreshToken": create_refresh_token(user_id),
    }


def decode_token(token: str, token_type: str = ACCESS_TOKEN_TYPE) -> str:
    """
    Validate ``token`` and return the user id it was issued for.

    Raises:
        TokenError: If the signature, expiry or type claim is invalid.
    """
    if not token:
        raise TokenError("Token is missing")
    try:
        claims = jwt.decode(token, _secret_for(token_type), algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise TokenError(str(exc)) from exc

    if claims.get("type") != token_type:
        raise TokenError("Unexpected token type")

    subject = claims.get("sub")
    if not subject:
        raise TokenError("Token has no subject")
    return subject
