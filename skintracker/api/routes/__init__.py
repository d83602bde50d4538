"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error translation) lives here; every
sub-router imports what it needs from this package.
"""

import logging
import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from skintracker.services.errors import ServiceError, to_http_exception

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)


# ---------------------------------------------------------------------------
# Shared error translation
# ---------------------------------------------------------------------------
def handle_route_error(e: Exception, action: str) -> HTTPException:
    """
    Map an exception raised inside a route to the HTTPException to raise.

    Service errors keep their status and message. Anything else is logged
    and reported as a generic 500.
    """
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, ServiceError):
        return to_http_exception(e)
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail="Server error")


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from skintracker.api.routes.auth import router as auth_router  # noqa: E402
from skintracker.api.routes.skins import router as skins_router  # noqa: E402
from skintracker.api.routes.collection import router as collection_router  # noqa: E402
from skintracker.api.routes.loadouts import router as loadouts_router  # noqa: E402
from skintracker.api.routes.sync import router as sync_router  # noqa: E402
from skintracker.api.routes.users import router as users_router  # noqa: E402
from skintracker.api.routes.health import router as health_router  # noqa: E402

router = APIRouter()
router.include_router(auth_router)
router.include_router(skins_router)
router.include_router(collection_router)
router.include_router(loadouts_router)
router.include_router(sync_router)
router.include_router(users_router)
router.include_router(health_router)
