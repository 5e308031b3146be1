"""
Authentication endpoints.

Issues JWT access tokens for email/password logins and self-service
conductor signups. Logout is handled by the client discarding its token.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from reportes.api.dependencies import CurrentUser, DatabaseSession
from reportes.core.security import (
    authenticate_user,
    get_password_hash,
    issue_token_for,
    Token,
)
from reportes.models.user_profile import ROLE_CONDUCTOR
from reportes.repositories.user_profile import UserProfileRepository
from reportes.schemas.user import SignupRequest, UserProfileResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/token", response_model=Token, status_code=status.HTTP_200_OK)
async def login(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: DatabaseSession,
) -> Token:
    """
    OAuth2 compatible token login endpoint.

    The OAuth2 "username" field carries the email address.

    Raises:
        HTTPException 401: Unknown email, wrong password or inactive account

    Example:
        POST /api/v1/auth/token
        Content-Type: application/x-www-form-urlencoded

        username=chofer@example.com&password=secreto123

        Response:
        {
            "access_token": "eyJ...",
            "token_type": "bearer"
        }

    Security:
        - Generic error message on failure (don't reveal if the email exists)
        - Rate limited by RateLimitMiddleware (auth tier)
    """
    profile = await authenticate_user(db, form_data.username, form_data.password)

    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Correo o contraseña incorrectos",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info("User logged in", extra={"user_id": profile.id, "role": profile.role})
    return issue_token_for(profile)


@router.post("/signup", response_model=Token, status_code=status.HTTP_201_CREATED)
async def signup(request: SignupRequest, db: DatabaseSession) -> Token:
    """
    Register a new conductor account and log it in.

    Raises:
        HTTPException 409: Email already registered
    """
    repo = UserProfileRepository(db)

    try:
        profile = await repo.create_profile(
            email=request.email,
            hashed_password=get_password_hash(request.password),
            role=ROLE_CONDUCTOR,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )

    await db.commit()

    logger.info("User signed up", extra={"user_id": profile.id})
    return issue_token_for(profile)


@router.get("/me", response_model=UserProfileResponse)
async def read_users_me(current_user: CurrentUser) -> UserProfileResponse:
    """Profile of the authenticated user."""
    return UserProfileResponse.from_model(current_user)
