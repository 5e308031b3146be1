"""
Password hashing, JWT access tokens and credential checks.

Tokens are HS256 JWTs (python-jose) whose subject is the profile id;
passwords are hashed with bcrypt.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import JWTError, jwt
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from reportes.core.config import settings
from reportes.models.user_profile import UserProfile

ALGORITHM = "HS256"

# Bcrypt ignores everything past 72 bytes and newer releases reject it
_BCRYPT_MAX_BYTES = 72
_BCRYPT_ROUNDS = 12


class TokenData(BaseModel):
    """Validated token payload; user_id is the profile id (JWT "sub")."""
    user_id: str
    exp: Optional[datetime] = None


class Token(BaseModel):
    """Access token response returned by login and signup."""
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type (always 'bearer')")


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=_BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | bytes) -> bool:
    """Check a plain password against a stored bcrypt hash."""
    if isinstance(hashed_password, str):
        hashed_password = hashed_password.encode("utf-8")
    return bcrypt.checkpw(_password_bytes(plain_password), hashed_password)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a JWT with the given claims.

    Args:
        data: Claims to encode ("sub" = profile id)
        expires_delta: Lifetime; defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Example:
        >>> token = create_access_token({"sub": profile.id, "role": profile.role})
    """
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {**data, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[TokenData]:
    """
    Validate a JWT and return its payload.

    Returns:
        TokenData, or None when the token is malformed, badly signed,
        expired or has no subject
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None

    subject = payload.get("sub")
    if not subject:
        return None
    return TokenData(user_id=subject, exp=payload.get("exp"))


def issue_token_for(profile: UserProfile) -> Token:
    """Token returned to a freshly authenticated or registered profile."""
    return Token(access_token=create_access_token({"sub": profile.id, "role": profile.role}))


async def authenticate_user(
    session: AsyncSession,
    email: str,
    password: str,
) -> Optional[UserProfile]:
    """
    Look up a profile by email (case-insensitive) and check its password.

    Returns:
        The profile, or None for an unknown email, a wrong password or
        an inactive account
    """
    from reportes.repositories.user_profile import UserProfileRepository

    profile = await UserProfileRepository(session).get_by_email(email)
    if profile is None or not profile.hashed_password:
        return None
    if not verify_password(password, profile.hashed_password):
        return None
    if not profile.is_active:
        return None
    return profile
