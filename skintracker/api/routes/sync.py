"""Catalog sync route, called by the scheduled job."""

import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from skintracker.api.routes import handle_route_error
from skintracker.database.db import get_db_session
from skintracker.services import sync_service
from skintracker.models.schemas import SyncResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def get_cron_secret() -> Optional[str]:
    """Read at request time so a missing secret is reported on every call."""
    return os.getenv("CRON_SECRET")


@router.post("/api/sync/skins", response_model=SyncResponse)
async def sync_skins(
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Pull the latest catalog from the skin API.

    Requires ``Authorization: Bearer <CRON_SECRET>``. An unset CRON_SECRET is a
    500 (misconfiguration), a wrong or missing header a 401.
    """
    try:
        sync_service.check_cron_authorization(authorization, get_cron_secret())
        return await sync_service.sync_catalog(session)
    except Exception as e:
        raise handle_route_error(e, "syncing skins")
