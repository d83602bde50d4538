"""Account settings route handlers."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skintracker.api.routes import handle_route_error
from skintracker.database.db import get_db_session
from skintracker.services import user_service
from skintracker.api.auth_dependencies import get_current_user
from skintracker.models.schemas import (
    ChangeNameRequest,
    ChangeNameResponse,
    ChangeEmailRequest,
    ChangeEmailResponse,
    DeleteAccountRequest,
    MessageResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/user/change-name", response_model=ChangeNameResponse)
async def change_name(
    payload: ChangeNameRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    try:
        name = await user_service.change_name(session, current_user["id"], payload.new_name)
        return ChangeNameResponse(message="Display name updated successfully", name=name)
    except Exception as e:
        raise handle_route_error(e, "changing display name")


@router.post("/api/user/change-email", response_model=ChangeEmailResponse)
async def change_email(
    payload: ChangeEmailRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    """Change email after re-entering the password. The new address must be verified."""
    try:
        email = await user_service.change_email(
            session, current_user["id"], payload.new_email, payload.password
        )
        return ChangeEmailResponse(
            message="Email updated. Please check your inbox to verify the new address.",
            email=email,
        )
    except Exception as e:
        raise handle_route_error(e, "changing email")


@router.post("/api/user/delete-account", response_model=MessageResponse)
async def delete_account(
    payload: DeleteAccountRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    """Permanently delete the account, its collection, wishlist and loadouts."""
    try:
        await user_service.delete_account(
            session, current_user["id"], payload.password, payload.confirmation
        )
        return MessageResponse(message="Account deleted successfully")
    except Exception as e:
        raise handle_route_error(e, "deleting account")
