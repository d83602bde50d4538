"""
Email service using SendGrid for account verification and password reset mail.
"""

import os
import logging
from html import escape
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def get_bool_env(key: str, default: bool = True) -> bool:
    """
    Parse a boolean environment variable from a string value.

    .env files store all values as strings, so this function converts string
    values like "true", "True", "TRUE", "1", "yes" to True, and everything
    else (including "false", "False", "0", "no", empty string) to False.

    Args:
        key: Environment variable name
        default: Default value if the variable is not set

    Returns:
        bool: Parsed boolean value
    """
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


# SendGrid Configuration
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDGRID_FROM_EMAIL = os.getenv("SENDGRID_FROM_EMAIL", "no-reply@valorantskins.dev")
ENABLE_EMAIL = get_bool_env("ENABLE_EMAIL", default=True)
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")


def build_verify_url(token: str) -> str:
    return f"{APP_URL}/auth/verify?token={token}"


def build_reset_url(token: str) -> str:
    return f"{APP_URL}/auth/reset?token={token}"


def _send(to_email: str, subject: str, text_body: str, html_body: str) -> bool:
    """
    Deliver one message through SendGrid.

    Returns:
        bool: True if the email was sent (or sending is disabled), False on failure
    """
    if not ENABLE_EMAIL:
        logger.info("Email sending is disabled. Email to %s skipped.", to_email)
        return True

    # If SendGrid is not configured, log warning and return True (don't fail the request)
    if not SENDGRID_API_KEY:
        logger.warning("SENDGRID_API_KEY not configured. Email to %s skipped.", to_email)
        return True

    try:
        message = Mail(
            from_email=Email(SENDGRID_FROM_EMAIL, "Valorant Skins"),
            to_emails=To(to_email),
            subject=subject,
            plain_text_content=Content("text/plain", text_body),
            html_content=Content("text/html", html_body),
        )

        sg = SendGridAPIClient(SENDGRID_API_KEY)
        response = sg.send(message)

        if 200 <= response.status_code < 300:
            logger.info(f"Email '{subject}' sent successfully")
            return True
        logger.error(f"SendGrid returned status {response.status_code}: {response.body}")
        return False

    except Exception as e:
        logger.error(f"Failed to send email '{subject}': {str(e)}")
        return False


async def send_verification_email(to_email: str, display_name: str, token: str) -> bool:
    """
    Send the account verification link.

    Args:
        to_email: Recipient address
        display_name: Name used in the greeting
        token: Verification token to embed in the link

    Returns:
        bool: True if the email was sent successfully, False otherwise
    """
    verify_url = build_verify_url(token)
    html_body = (
        f"<p>Hey {escape(display_name)},</p>"
        "<p>Click the link below to verify your email:</p>"
        f'<p><a href="{verify_url}">{verify_url}</a></p>'
    )
    return _send(
        to_email,
        "Verify your Valorant Skin Tracker account",
        f"Verify your account: {verify_url}",
        html_body,
    )


async def send_password_reset_email(to_email: str, token: str) -> bool:
    """
    Send the password reset link.

    Args:
        to_email: Recipient address
        token: Reset token to embed in the link

    Returns:
        bool: True if the email was sent successfully, False otherwise
    """
    reset_url = build_reset_url(token)
    return _send(
        to_email,
        "Reset your password",
        f"Reset your password: {reset_url}",
        f'<p>Reset your password: <a href="{reset_url}">{reset_url}</a></p>',
    )
