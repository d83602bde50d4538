"""Authentication route handlers."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from skintracker.api.routes import limiter, handle_route_error
from skintracker.database.db import get_db_session
from skintracker.services import auth_service, user_service
from skintracker.api.auth_dependencies import get_current_user
from skintracker.models.schemas import (
    SignupRequest,
    LoginRequest,
    TokenRequest,
    EmailRequest,
    ResetPasswordRequest,
    OkResponse,
    AuthResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _user_response(user: dict) -> UserResponse:
    return UserResponse(
        id=user["id"],
        email=user["email"],
        username=user["username"],
        name=user.get("name"),
        email_verified=user.get("email_verified"),
    )


@router.post("/api/auth/signup", response_model=OkResponse)
@limiter.limit("5/minute")
async def signup(request: Request, payload: SignupRequest, session: AsyncSession = Depends(get_db_session)):
    """
    Create an unverified account and email a verification link.
    The account cannot sign in until the link is used.
    """
    try:
        await user_service.sign_up(
            session,
            email=payload.email,
            password=payload.password,
            username=payload.username,
            name=payload.name,
        )
        return OkResponse()
    except Exception as e:
        raise handle_route_error(e, "during signup")


@router.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(request: Request, payload: LoginRequest, session: AsyncSession = Depends(get_db_session)):
    """Sign in with email or username and password."""
    try:
        user = await user_service.authenticate(session, payload.identifier, payload.password)
        access_token = auth_service.create_access_token(data={"user_id": user["id"]})
        return AuthResponse(access_token=access_token, token_type="bearer", user=_user_response(user))
    except Exception as e:
        raise handle_route_error(e, "during login")


@router.get("/api/auth/me", response_model=UserResponse)
async def get_me(current_user: dict = Depends(get_current_user)):
    """Return the signed-in user."""
    return _user_response(current_user)


@router.post("/api/auth/verify-email", response_model=OkResponse)
async def verify_email(payload: TokenRequest, session: AsyncSession = Depends(get_db_session)):
    """Consume a verification token from the emailed link."""
    try:
        await user_service.verify_email(session, payload.token)
        return OkResponse()
    except Exception as e:
        raise handle_route_error(e, "verifying email")


@router.post("/api/auth/resend-verification", response_model=OkResponse)
@limiter.limit("5/minute")
async def resend_verification(
    request: Request, payload: EmailRequest, session: AsyncSession = Depends(get_db_session)
):
    """
    Send a new verification link.

    Always answers ok so the response does not reveal whether the account
    exists or is already verified.
    """
    try:
        await user_service.resend_verification(session, payload.email)
    except Exception as e:
        logger.error(f"Error resending verification: {e}", exc_info=True)
    return OkResponse()


@router.post("/api/auth/request-reset", response_model=OkResponse)
@limiter.limit("5/minute")
async def request_reset(request: Request, payload: EmailRequest, session: AsyncSession = Depends(get_db_session)):
    """Email a password reset link. Answers ok for unknown addresses too."""
    try:
        await user_service.request_password_reset(session, payload.email)
        return OkResponse()
    except Exception as e:
        raise handle_route_error(e, "requesting password reset")


@router.post("/api/auth/reset-password", response_model=OkResponse)
@limiter.limit("10/minute")
async def reset_password(
    request: Request, payload: ResetPasswordRequest, session: AsyncSession = Depends(get_db_session)
):
    """Set a new password using a reset token."""
    try:
        await user_service.complete_password_reset(session, payload.token, payload.password)
        return OkResponse()
    except Exception as e:
        raise handle_route_error(e, "resetting password")
