"""
Tests for user_service: signup, email verification, password reset,
sign-in and account settings.
"""
import pytest
from datetime import timedelta
from sqlalchemy import select, func

from skintracker.database.models import (
    User,
    VerificationToken,
    PasswordResetToken,
    CollectionEntry,
    Loadout,
)
from skintracker.services import user_service, email_service, auth_service, membership_service, loadout_service
from skintracker.services.errors import (
    ValidationError,
    Conflict,
    InvalidCredentials,
    InvalidOrExpiredToken,
    EmailNotVerified,
)
from skintracker.utils.datetime_utils import utcnow
from conftest import TEST_PASSWORD


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture outgoing mail instead of sending it."""
    sent = []

    async def fake_send_verification_email(to_email, display_name, token):
        sent.append(("verify", to_email, token))
        return True

    async def fake_send_password_reset_email(to_email, token):
        sent.append(("reset", to_email, token))
        return True

    monkeypatch.setattr(email_service, "send_verification_email", fake_send_verification_email)
    monkeypatch.setattr(email_service, "send_password_reset_email", fake_send_password_reset_email)
    return sent


async def _tokens(session, model, user_id):
    result = await session.execute(select(model).where(model.user_id == user_id))
    return result.scalars().all()


# ============================================================================
# Signup
# ============================================================================

@pytest.mark.asyncio
async def test_sign_up_creates_unverified_user(db_session, sent_emails):
    user_id = await user_service.sign_up(
        db_session, email="  New@Example.com ", password="password123", username="newbie", name="New"
    )

    user = await db_session.get(User, user_id)
    assert user.email == "new@example.com"
    assert user.email_verified is None
    assert auth_service.verify_password("password123", user.password_hash)

    tokens = await _tokens(db_session, VerificationToken, user_id)
    assert len(tokens) == 1
    assert sent_emails == [("verify", "new@example.com", tokens[0].token)]


@pytest.mark.asyncio
async def test_sign_up_missing_field(db_session, sent_emails):
    with pytest.raises(ValidationError):
        await user_service.sign_up(db_session, email="a@b.com", password="password123", username="", name="A")


@pytest.mark.asyncio
async def test_sign_up_blank_name(db_session, sent_emails):
    with pytest.raises(ValidationError, match="Display name"):
        await user_service.sign_up(db_session, email="a@b.com", password="password123", username="a", name="   ")


@pytest.mark.asyncio
async def test_sign_up_short_password(db_session, sent_emails):
    with pytest.raises(ValidationError, match="at least 8"):
        await user_service.sign_up(db_session, email="a@b.com", password="short", username="a", name="A")


@pytest.mark.asyncio
async def test_sign_up_bad_email(db_session, sent_emails):
    with pytest.raises(ValidationError, match="email"):
        await user_service.sign_up(db_session, email="not-an-email", password="password123", username="a", name="A")


@pytest.mark.asyncio
async def test_sign_up_duplicate_email_case_insensitive(db_session, test_user, sent_emails):
    with pytest.raises(Conflict):
        await user_service.sign_up(
            db_session, email=test_user.email.upper(), password="password123", username="fresh", name="A"
        )


@pytest.mark.asyncio
async def test_sign_up_duplicate_username(db_session, test_user, sent_emails):
    with pytest.raises(Conflict):
        await user_service.sign_up(
            db_session, email="fresh@example.com", password="password123", username=test_user.username, name="A"
        )



@pytest.mark.asyncio
async def test_sign_up_losing_insert_race_is_conflict(db_session, make_user, sent_emails, monkeypatch):
    await make_user(email="dup@example.com", username="first")

    # Both requests pass the pre-check; the unique constraint decides at flush
    async def not_taken(session, email, username):
        return False

    monkeypatch.setattr(user_service, "_identity_taken", not_taken)

    with pytest.raises(Conflict):
        await user_service.sign_up(
            db_session, email="dup@example.com", password="password123", username="second", name="B"
        )

    count = (await db_session.execute(select(func.count(User.id)))).scalar_one()
    assert count == 1
    assert sent_emails == []

# ============================================================================
# Email verification
# ============================================================================

@pytest.mark.asyncio
async def test_verify_email_marks_verified_and_consumes_token(db_session, sent_emails):
    user_id = await user_service.sign_up(
        db_session, email="v@example.com", password="password123", username="v", name="V"
    )
    token = sent_emails[0][2]

    assert await user_service.verify_email(db_session, token) == user_id
    user = await db_session.get(User, user_id)
    assert user.email_verified is not None
    assert await _tokens(db_session, VerificationToken, user_id) == []

    # Single use
    with pytest.raises(InvalidOrExpiredToken):
        await user_service.verify_email(db_session, token)


@pytest.mark.asyncio
async def test_verify_email_expired_token(db_session, make_user):
    user = await make_user(verified=False)
    db_session.add(
        VerificationToken(
            token="a" * 64, user_id=user.id, expires_at=(utcnow() - timedelta(seconds=1)).isoformat()
        )
    )
    await db_session.commit()

    with pytest.raises(InvalidOrExpiredToken):
        await user_service.verify_email(db_session, "a" * 64)

    refreshed = await db_session.get(User, user.id)
    assert refreshed.email_verified is None


@pytest.mark.asyncio
async def test_verify_email_missing_or_unknown_token(db_session):
    with pytest.raises(InvalidOrExpiredToken):
        await user_service.verify_email(db_session, "")
    with pytest.raises(InvalidOrExpiredToken):
        await user_service.verify_email(db_session, "f" * 64)


@pytest.mark.asyncio
async def test_resend_verification_replaces_token(db_session, make_user, sent_emails):
    user = await make_user(verified=False)
    await user_service.resend_verification(db_session, user.email)
    first = sent_emails[-1][2]
    await user_service.resend_verification(db_session, user.username)
    second = sent_emails[-1][2]

    assert first != second
    tokens = await _tokens(db_session, VerificationToken, user.id)
    assert [t.token for t in tokens] == [second]


@pytest.mark.asyncio
async def test_resend_verification_is_silent(db_session, test_user, sent_emails):
    """Unknown and already verified accounts return normally and send nothing."""
    await user_service.resend_verification(db_session, "nobody@example.com")
    await user_service.resend_verification(db_session, test_user.email)
    assert sent_emails == []


# ============================================================================
# Password reset
# ============================================================================

@pytest.mark.asyncio
async def test_request_reset_unknown_email_is_silent(db_session, sent_emails):
    await user_service.request_password_reset(db_session, "ghost@example.com")
    assert sent_emails == []


@pytest.mark.asyncio
async def test_request_reset_missing_email(db_session):
    with pytest.raises(ValidationError):
        await user_service.request_password_reset(db_session, "")


@pytest.mark.asyncio
async def test_password_reset_flow(db_session, test_user, sent_emails):
    await user_service.request_password_reset(db_session, test_user.email.upper())
    kind, to_email, token = sent_emails[-1]
    assert kind == "reset"
    assert to_email == test_user.email

    await user_service.complete_password_reset(db_session, token, "brand-new-password")

    user = await user_service.authenticate(db_session, test_user.email, "brand-new-password")
    assert user["id"] == test_user.id
    with pytest.raises(InvalidCredentials):
        await user_service.authenticate(db_session, test_user.email, TEST_PASSWORD)

    # Single use
    with pytest.raises(InvalidOrExpiredToken):
        await user_service.complete_password_reset(db_session, token, "another-password")


@pytest.mark.asyncio
async def test_password_reset_short_password(db_session, test_user, sent_emails):
    await user_service.request_password_reset(db_session, test_user.email)
    token = sent_emails[-1][2]
    with pytest.raises(ValidationError):
        await user_service.complete_password_reset(db_session, token, "short")
    # Token survives a rejected attempt
    assert len(await _tokens(db_session, PasswordResetToken, test_user.id)) == 1


@pytest.mark.asyncio
async def test_password_reset_expired(db_session, test_user):
    db_session.add(
        PasswordResetToken(
            token="b" * 64, user_id=test_user.id, expires_at=(utcnow() - timedelta(minutes=1)).isoformat()
        )
    )
    await db_session.commit()
    with pytest.raises(InvalidOrExpiredToken):
        await user_service.complete_password_reset(db_session, "b" * 64, "brand-new-password")


# ============================================================================
# Sign-in
# ============================================================================

@pytest.mark.asyncio
async def test_authenticate_by_email_or_username(db_session, test_user):
    by_email = await user_service.authenticate(db_session, test_user.email.upper(), TEST_PASSWORD)
    by_username = await user_service.authenticate(db_session, test_user.username, TEST_PASSWORD)
    assert by_email["id"] == by_username["id"] == test_user.id


@pytest.mark.asyncio
async def test_authenticate_wrong_password(db_session, test_user):
    with pytest.raises(InvalidCredentials):
        await user_service.authenticate(db_session, test_user.email, "wrong-password")


@pytest.mark.asyncio
async def test_authenticate_unknown_user(db_session):
    with pytest.raises(InvalidCredentials):
        await user_service.authenticate(db_session, "ghost", "whatever-password")


@pytest.mark.asyncio
async def test_authenticate_unverified_always_refused(db_session, make_user):
    """Unverified accounts get EmailNotVerified even with the right password."""
    user = await make_user(verified=False)
    with pytest.raises(EmailNotVerified):
        await user_service.authenticate(db_session, user.email, TEST_PASSWORD)
    with pytest.raises(EmailNotVerified):
        await user_service.authenticate(db_session, user.email, "wrong-password")


@pytest.mark.asyncio
async def test_authenticate_passwordless_account(db_session, make_user):
    user = await make_user(password=None)
    with pytest.raises(InvalidCredentials):
        await user_service.authenticate(db_session, user.email, TEST_PASSWORD)


# ============================================================================
# Account settings
# ============================================================================

@pytest.mark.asyncio
async def test_change_name(db_session, test_user):
    assert await user_service.change_name(db_session, test_user.id, "  Renamed ") == "Renamed"
    with pytest.raises(ValidationError):
        await user_service.change_name(db_session, test_user.id, "   ")


@pytest.mark.asyncio
async def test_change_email_resets_verification(db_session, test_user, sent_emails):
    new_email = await user_service.change_email(db_session, test_user.id, "New@Example.com", TEST_PASSWORD)

    assert new_email == "new@example.com"
    user = await db_session.get(User, test_user.id)
    assert user.email == "new@example.com"
    assert user.email_verified is None
    assert sent_emails[-1][:2] == ("verify", "new@example.com")


@pytest.mark.asyncio
async def test_change_email_wrong_password(db_session, test_user, sent_emails):
    with pytest.raises(InvalidCredentials):
        await user_service.change_email(db_session, test_user.id, "new@example.com", "wrong-password")


@pytest.mark.asyncio
async def test_change_email_taken(db_session, test_user, other_user, sent_emails):
    with pytest.raises(Conflict):
        await user_service.change_email(db_session, test_user.id, other_user.email, TEST_PASSWORD)


@pytest.mark.asyncio
async def test_delete_account_requires_confirmation(db_session, test_user):
    with pytest.raises(ValidationError):
        await user_service.delete_account(db_session, test_user.id, TEST_PASSWORD, "delete")
    with pytest.raises(InvalidCredentials):
        await user_service.delete_account(db_session, test_user.id, "wrong-password", "DELETE")
    assert await db_session.get(User, test_user.id) is not None


@pytest.mark.asyncio
async def test_delete_account_cascades(db_session, test_user, skins):
    await membership_service.add_to_collection(db_session, test_user.id, "prime-vandal")
    await loadout_service.create_loadout(db_session, test_user.id, "Main", entries={"Vandal": "prime-vandal"})

    await user_service.delete_account(db_session, test_user.id, TEST_PASSWORD, "DELETE")

    assert await user_service.get_user_by_id(db_session, test_user.id) is None
    collection = await db_session.execute(select(CollectionEntry).where(CollectionEntry.user_id == test_user.id))
    assert collection.scalars().all() == []
    loadouts = await db_session.execute(select(Loadout).where(Loadout.user_id == test_user.id))
    assert loadouts.scalars().all() == []
