"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error conversion) lives here; every
sub-router imports what it needs from this package.
"""

import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from padel_ladder.services.errors import MatchEngineError

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
limiter = Limiter(key_func=get_remote_address)
if IS_TEST_ENV:

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()


# ---------------------------------------------------------------------------
# Shared error conversion
# ---------------------------------------------------------------------------
def to_http_exception(error: MatchEngineError) -> HTTPException:
    """Map a service error onto the HTTP status it carries."""
    headers = {"WWW-Authenticate": "Bearer"} if error.status_code == 401 else None
    return HTTPException(
        status_code=error.status_code, detail=error.message or str(error), headers=headers
    )


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from padel_ladder.api.routes.queue import router as queue_router  # noqa: E402
from padel_ladder.api.routes.matches import router as matches_router  # noqa: E402
from padel_ladder.api.routes.rankings import router as rankings_router  # noqa: E402

router = APIRouter()
router.include_router(queue_router)
router.include_router(matches_router)
router.include_router(rankings_router)
