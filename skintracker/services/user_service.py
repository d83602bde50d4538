"""
User service layer: accounts, email verification, password reset and sign-in.

Enumeration-sensitive flows (resend verification, password reset request)
return normally whether or not the account exists.
"""

from typing import Optional, Dict
from datetime import timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, or_
from sqlalchemy.exc import IntegrityError
from skintracker.utils.datetime_utils import utcnow, is_expired
from skintracker.utils.constants import (
    MIN_PASSWORD_LENGTH,
    TOKEN_EXPIRATION_MINUTES,
    DELETE_ACCOUNT_CONFIRMATION,
)
from skintracker.database.models import User, VerificationToken, PasswordResetToken
from skintracker.services import auth_service, email_service
from skintracker.services.errors import (
    ValidationError,
    Conflict,
    NotFound,
    InvalidCredentials,
    InvalidOrExpiredToken,
    EmailNotVerified,
)
import logging

logger = logging.getLogger(__name__)


def _user_to_dict(user: User) -> Dict:
    """
    Convert a User ORM instance to a dictionary.

    Args:
        user: User ORM instance

    Returns:
        User dictionary
    """
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "name": user.name,
        "password_hash": user.password_hash,
        "email_verified": user.email_verified.isoformat() if user.email_verified else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


# Lookups


async def get_user_by_id(session: AsyncSession, user_id: str) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def _find_by_identifier(session: AsyncSession, identifier: str) -> Optional[User]:
    """Resolve an email-or-username identifier to a User row."""
    identifier = (identifier or "").strip()
    if not identifier:
        return None
    result = await session.execute(
        select(User)
        .where(or_(func.lower(User.email) == identifier.lower(), User.username == identifier))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _identity_taken(session: AsyncSession, email: str, username: str) -> bool:
    """True if the (normalized) email or the username belongs to an account."""
    existing = await session.execute(
        select(User.id).where(or_(func.lower(User.email) == email, User.username == username)).limit(1)
    )
    return existing.scalar_one_or_none() is not None


# Tokens


async def _issue_verification_token(session: AsyncSession, user_id: str) -> str:
    """Replace any verification tokens for the user with a fresh one."""
    await session.execute(delete(VerificationToken).where(VerificationToken.user_id == user_id))
    token = auth_service.generate_one_time_token()
    expires_at = utcnow() + timedelta(minutes=TOKEN_EXPIRATION_MINUTES)
    session.add(VerificationToken(token=token, user_id=user_id, expires_at=expires_at.isoformat()))
    return token


async def _issue_password_reset_token(session: AsyncSession, user_id: str) -> str:
    """Replace any reset tokens for the user with a fresh one."""
    await session.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == user_id))
    token = auth_service.generate_one_time_token()
    expires_at = utcnow() + timedelta(minutes=TOKEN_EXPIRATION_MINUTES)
    session.add(PasswordResetToken(token=token, user_id=user_id, expires_at=expires_at.isoformat()))
    return token


# Signup and verification


async def sign_up(
    session: AsyncSession, email: str, password: str, username: str, name: str
) -> str:
    """
    Create an unverified account and send the verification email.

    Args:
        session: Database session
        email: Email address
        password: Plain text password (min 8 characters)
        username: Unique username
        name: Display name

    Returns:
        ID of the created user

    Raises:
        ValidationError: If a field is missing or invalid
        Conflict: If the email or username is already taken
    """
    if not email or not password or not username or not name:
        raise ValidationError("All fields are required")
    if not email.strip():
        raise ValidationError("Email cannot be empty")
    if not name.strip():
        raise ValidationError("Display name cannot be empty")
    if not username.strip():
        raise ValidationError("Username cannot be empty")
    _validate_password(password)

    email = auth_service.normalize_email(email)
    if not auth_service.is_valid_email(email):
        raise ValidationError("Invalid email format")
    username = username.strip()
    name = name.strip()

    if await _identity_taken(session, email, username):
        raise Conflict("Email or username already taken")

    user = User(
        email=email,
        username=username,
        name=name,
        password_hash=auth_service.hash_password(password),
        email_verified=None,
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        # Lost a race with a concurrent signup for the same email or username
        await session.rollback()
        raise Conflict("Email or username already taken")
    user_id = user.id

    token = await _issue_verification_token(session, user_id)
    await session.commit()

    sent = await email_service.send_verification_email(email, name or username, token)
    if not sent:
        logger.error(f"Verification email could not be sent for user {user_id}")

    return user_id


async def verify_email(session: AsyncSession, token: str) -> str:
    """
    Consume a verification token and mark the account verified.

    Args:
        session: Database session
        token: Token from the verification link

    Returns:
        ID of the verified user

    Raises:
        InvalidOrExpiredToken: If the token is missing, unknown, used or expired
    """
    if not token:
        raise InvalidOrExpiredToken("Missing token")

    result = await session.execute(select(VerificationToken).where(VerificationToken.token == token))
    record = result.scalar_one_or_none()
    if not record or is_expired(record.expires_at):
        raise InvalidOrExpiredToken()

    user_id = record.user_id

    # Deleting by id doubles as the single-use check under concurrent requests
    consumed = await session.execute(delete(VerificationToken).where(VerificationToken.id == record.id))
    if consumed.rowcount == 0:
        raise InvalidOrExpiredToken()

    user = await session.get(User, user_id)
    user.email_verified = utcnow()
    await session.commit()
    return user_id


async def resend_verification(session: AsyncSession, identifier: str) -> None:
    """
    Send a fresh verification link to an unverified account.

    Silently does nothing for unknown or already verified accounts.

    Args:
        session: Database session
        identifier: Email or username
    """
    user = await _find_by_identifier(session, identifier)
    if not user or user.email_verified:
        return

    token = await _issue_verification_token(session, user.id)
    await session.commit()
    await email_service.send_verification_email(user.email, user.name or user.username, token)


# Password reset


async def request_password_reset(session: AsyncSession, email: str) -> None:
    """
    Send a password reset link if the email belongs to an account.

    Args:
        session: Database session
        email: Email address
    """
    if not email:
        raise ValidationError("Missing email")

    normalized = auth_service.normalize_email(email)
    result = await session.execute(select(User).where(func.lower(User.email) == normalized).limit(1))
    user = result.scalar_one_or_none()
    if not user:
        return

    token = await _issue_password_reset_token(session, user.id)
    await session.commit()
    await email_service.send_password_reset_email(user.email, token)


async def complete_password_reset(session: AsyncSession, token: str, password: str) -> str:
    """
    Consume a reset token and set a new password.

    Args:
        session: Database session
        token: Token from the reset link
        password: New plain text password

    Returns:
        ID of the user whose password changed

    Raises:
        ValidationError: If token or password is missing or the password is too short
        InvalidOrExpiredToken: If the token is unknown, used or expired
    """
    if not token or not password:
        raise ValidationError("Missing token or password")
    _validate_password(password)

    result = await session.execute(select(PasswordResetToken).where(PasswordResetToken.token == token))
    record = result.scalar_one_or_none()
    if not record or is_expired(record.expires_at):
        raise InvalidOrExpiredToken()

    user_id = record.user_id
    consumed = await session.execute(delete(PasswordResetToken).where(PasswordResetToken.id == record.id))
    if consumed.rowcount == 0:
        raise InvalidOrExpiredToken()

    user = await session.get(User, user_id)
    user.password_hash = auth_service.hash_password(password)
    await session.commit()
    return user_id


# Sign-in


async def authenticate(session: AsyncSession, identifier: str, password: str) -> Dict:
    """
    Check credentials for an email-or-username identifier.

    The verification check happens before the password comparison, so an
    unverified account always gets EmailNotVerified.

    Args:
        session: Database session
        identifier: Email or username
        password: Plain text password

    Returns:
        User dictionary

    Raises:
        InvalidCredentials: Unknown user, no password set, or wrong password
        EmailNotVerified: Account has not verified its email
    """
    if not identifier or not password:
        raise InvalidCredentials()

    user = await _find_by_identifier(session, identifier)
    if not user or not user.password_hash:
        raise InvalidCredentials()

    if not user.email_verified:
        raise EmailNotVerified()

    if not auth_service.verify_password(password, user.password_hash):
        raise InvalidCredentials()

    return _user_to_dict(user)


# Account settings


async def change_name(session: AsyncSession, user_id: str, new_name: Optional[str]) -> str:
    """
    Change the display name.

    Returns:
        The stored (trimmed) name
    """
    if new_name is None:
        raise ValidationError("Display name is required")
    trimmed = new_name.strip()
    if not trimmed:
        raise ValidationError("Display name cannot be empty")

    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    user.name = trimmed
    await session.commit()
    return trimmed


async def change_email(
    session: AsyncSession, user_id: str, new_email: Optional[str], password: Optional[str]
) -> str:
    """
    Change the account email. The new address must be verified again.

    Returns:
        The stored (normalized) email

    Raises:
        ValidationError: Missing fields or malformed email
        NotFound: User missing or has no password
        InvalidCredentials: Wrong password
        Conflict: Email used by another account
    """
    if not new_email or not password:
        raise ValidationError("New email and password are required")
    normalized = auth_service.normalize_email(new_email)
    if not auth_service.is_valid_email(normalized):
        raise ValidationError("Invalid email format")

    user = await session.get(User, user_id)
    if not user or not user.password_hash:
        raise NotFound("User not found or no password set")
    if not auth_service.verify_password(password, user.password_hash):
        raise InvalidCredentials("Invalid password")

    result = await session.execute(select(User.id).where(func.lower(User.email) == normalized))
    existing_id = result.scalar_one_or_none()
    if existing_id and existing_id != user.id:
        raise Conflict("Email already in use")

    user.email = normalized
    user.email_verified = None
    token = await _issue_verification_token(session, user.id)
    await session.commit()

    await email_service.send_verification_email(normalized, user.name or user.username, token)
    return normalized


async def delete_account(
    session: AsyncSession, user_id: str, password: Optional[str], confirmation: Optional[str]
) -> None:
    """
    Permanently delete the account and everything it owns.

    Raises:
        ValidationError: Missing fields or wrong confirmation phrase
        NotFound: User missing
        InvalidCredentials: Wrong password
    """
    if not password or not confirmation:
        raise ValidationError("Password and confirmation are required")
    if confirmation != DELETE_ACCOUNT_CONFIRMATION:
        raise ValidationError(f"Please type {DELETE_ACCOUNT_CONFIRMATION} to confirm account deletion")

    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    # Passwordless accounts skip the check
    if user.password_hash and not auth_service.verify_password(password, user.password_hash):
        raise InvalidCredentials("Invalid password")

    await session.delete(user)
    await session.commit()
    logger.info(f"Deleted account {user_id}")
