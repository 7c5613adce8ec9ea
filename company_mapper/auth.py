"""
Admin authentication.

A single admin account (ADMIN_EMAIL + bcrypt ADMIN_PASSWORD_HASH) logs in
and receives a signed session token (JWT, HS256) that expires after
SESSION_EXPIRE_DAYS. The token travels in the ``admin_session`` cookie for
browsers or in an ``Authorization: Bearer`` header for API clients.
"""
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import bcrypt
from fastapi import Request
from jose import JWTError, jwt

from .config import Settings
from .models import AdminSession

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_PASSWORD = "admin123"
TOKEN_TYPE = "admin_session"


# ============================================================
# PASSWORD HASHING
# ============================================================

def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt"""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash"""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed hash in configuration
        return False


@lru_cache(maxsize=4)
def _default_password_hash(rounds: int) -> str:
    logger.warning("ADMIN_PASSWORD_HASH is not set; the default admin password is active")
    return hash_password(DEFAULT_ADMIN_PASSWORD, rounds)


def admin_password_hash(settings: Settings) -> str:
    return settings.ADMIN_PASSWORD_HASH or _default_password_hash(settings.BCRYPT_ROUNDS)


def verify_credentials(email: str, password: str, settings: Settings) -> bool:
    if email.strip().casefold() != settings.ADMIN_EMAIL.casefold():
        return False
    return verify_password(password, admin_password_hash(settings))


# ============================================================
# SESSION TOKENS
# ============================================================

def create_session_token(email: str, settings: Settings) -> tuple[str, datetime]:
    """Create a signed session token; returns (token, expiry)."""
    expires_at = datetime.now(timezone.utc) + timedelta(days=settings.SESSION_EXPIRE_DAYS)
    payload = {
        "sub": email,
        "exp": expires_at,
        "type": TOKEN_TYPE,
    }
    token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token, expires_at


def verify_session_token(token: str, settings: Settings) -> AdminSession | None:
    """Decode a session token. Bad signature, expiry or shape all give None."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None

    if payload.get("type") != TOKEN_TYPE or not payload.get("sub"):
        return None
    return AdminSession(
        email=payload["sub"],
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def token_from_request(request: Request, settings: Settings) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def session_from_request(request: Request, settings: Settings) -> AdminSession | None:
    token = token_from_request(request, settings)
    if not token:
        return None
    return verify_session_token(token, settings)


def is_authenticated(request: Request, settings: Settings) -> bool:
    return session_from_request(request, settings) is not None
