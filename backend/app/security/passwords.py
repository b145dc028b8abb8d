"""
Password hashing with bcrypt.
"""
import bcrypt

from app.database import settings

# bcrypt only considers the first 72 bytes of the secret
_MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_encode(password), salt).decode()


def verify_password(password: str, stored_hash: str) -> bool:
    """Check a candidate password against a stored bcrypt hash."""
    if not password or not stored_hash:
        return False
    try:
        return bcrypt.checkpw(_encode(password), stored_hash.encode())
    except ValueError:
        # Malformed hash
        return False
