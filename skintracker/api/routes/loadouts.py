"""Loadout route handlers."""

import logging
from typing import List, Dict, Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from skintracker.api.routes import handle_route_error
from skintracker.database.db import get_db_session
from skintracker.services import loadout_service, loadout_image_service, skin_service
from skintracker.api.auth_dependencies import get_current_user
from skintracker.models.schemas import LoadoutRequest, SuccessResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/loadouts", response_model=List[Dict[str, Any]])
async def list_loadouts(
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    """The user's loadouts, newest first."""
    try:
        return await loadout_service.list_loadouts(session, current_user["id"])
    except Exception as e:
        raise handle_route_error(e, "listing loadouts")


@router.post("/api/loadouts", response_model=Dict[str, Any], status_code=201)
async def create_loadout(
    payload: LoadoutRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    try:
        return await loadout_service.create_loadout(
            session,
            current_user["id"],
            name=payload.name,
            icon=payload.icon,
            entries=payload.entries,
        )
    except Exception as e:
        raise handle_route_error(e, "creating loadout")


@router.post("/api/loadouts/import", response_model=Dict[str, Any], status_code=201)
async def import_loadout(
    payload: Any = Body(...),
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    """Create a loadout from a previously exported JSON document."""
    try:
        return await loadout_service.import_loadout(session, current_user["id"], payload)
    except Exception as e:
        raise handle_route_error(e, "importing loadout")


@router.get("/api/loadouts/{loadout_id}", response_model=Dict[str, Any])
async def get_loadout(
    loadout_id: str,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    try:
        return await loadout_service.get_loadout(session, current_user["id"], loadout_id)
    except Exception as e:
        raise handle_route_error(e, f"loading loadout {loadout_id}")


@router.put("/api/loadouts/{loadout_id}", response_model=Dict[str, Any])
async def update_loadout(
    loadout_id: str,
    payload: LoadoutRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    """
    Replace a loadout's name and full entry set.
    Leaving icon out of the body keeps the current icon; null clears it.
    """
    try:
        icon = payload.icon if "icon" in payload.model_fields_set else loadout_service.UNSET
        return await loadout_service.update_loadout(
            session,
            current_user["id"],
            loadout_id,
            name=payload.name,
            icon=icon,
            entries=payload.entries,
        )
    except Exception as e:
        raise handle_route_error(e, f"updating loadout {loadout_id}")


@router.delete("/api/loadouts/{loadout_id}", response_model=SuccessResponse)
async def delete_loadout(
    loadout_id: str,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    try:
        await loadout_service.delete_loadout(session, current_user["id"], loadout_id)
        return SuccessResponse()
    except Exception as e:
        raise handle_route_error(e, f"deleting loadout {loadout_id}")


@router.get("/api/loadouts/{loadout_id}/export")
async def export_loadout(
    loadout_id: str,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    """Download the loadout as a JSON file that import accepts."""
    try:
        loadout = await loadout_service.get_loadout(session, current_user["id"], loadout_id)
        filename = loadout_service.export_filename(loadout["name"])
        return JSONResponse(
            content=loadout_service.export_loadout(loadout),
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    except Exception as e:
        raise handle_route_error(e, f"exporting loadout {loadout_id}")


@router.get("/api/loadouts/{loadout_id}/image")
async def render_loadout_image(
    loadout_id: str,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    """PNG of the loadout grid for sharing."""
    try:
        loadout = await loadout_service.get_loadout(session, current_user["id"], loadout_id)
        standard_images = await skin_service.get_standard_images(session)
        png = await loadout_image_service.render_loadout_image(loadout, standard_images)
        filename = loadout_service.safe_filename(loadout["name"], ".png")
        return Response(
            content=png,
            media_type="image/png",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    except Exception as e:
        raise handle_route_error(e, f"rendering loadout {loadout_id}")
