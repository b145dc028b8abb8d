"""
Request user context and bearer-token authentication helpers.
"""
import contextvars
from typing import Mapping, Optional
from uuid import UUID

from fastapi import HTTPException, status

from app.security.tokens import TokenError, decode_token

BEARER_PREFIX = "bearer "

_request_user_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_user_id",
    default=None,
)


def set_request_user_id(user_id: str) -> contextvars.Token:
    return _request_user_id.set(user_id)


def clear_request_user_id(token: contextvars.Token) -> None:
    _request_user_id.reset(token)


def get_request_user_id() -> Optional[str]:
    return _request_user_id.get()


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def authenticate_request_from_headers(
    headers: Mapping[str, str],
    query_token: Optional[str] = None,
) -> str:
    """
    Resolve the user id from the ``Authorization: Bearer`` access token.

    ``query_token`` is accepted as a fallback for clients that cannot set
    headers (the browser EventSource API).

    Raises:
        HTTPException: 401 when the token is missing or invalid.
    """
    token = extract_bearer_token(headers.get("authorization")) or query_token
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
        )

    try:
        return decode_token(token)
    except TokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc


def get_user_id() -> UUID:
    """
    Get the authenticated user's ID for the current request.

    Raises:
        HTTPException: 401 if the request carried no valid access token.
    """
    request_user_id = get_request_user_id()
    if not request_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )

    try:
        return UUID(request_user_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc
