"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error translation) lives here; every
sub-router imports what it needs from this package.
"""

import logging

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from league_backend.config import IS_TEST_ENV
from league_backend.services.errors import (
    CodeExhaustedError,
    CodeExpiredError,
    CodeNotFoundError,
    LeagueAuthError,
    LeagueNotFoundError,
    PersistenceConflictError,
    ProfileNotFoundError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
limiter = Limiter(key_func=get_remote_address)
if IS_TEST_ENV:

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""

        def decorator(func):
            return func

        return decorator

    limiter.limit = no_op_limit

# ---------------------------------------------------------------------------
# Service error -> HTTP status
# ---------------------------------------------------------------------------
_STATUS_BY_ERROR = [
    (CodeNotFoundError, 404),
    (LeagueNotFoundError, 404),
    (ProfileNotFoundError, 403),
    (CodeExpiredError, 410),
    (CodeExhaustedError, 409),
    (PersistenceConflictError, 409),
]


def to_http_exception(error: LeagueAuthError) -> HTTPException:
    """Translate a service exception into an HTTPException with a stable error code."""
    status_code = 400
    for error_cls, code in _STATUS_BY_ERROR:
        if isinstance(error, error_cls):
            status_code = code
            break
    detail = {"error": error.code, "message": error.message}
    if isinstance(error, PersistenceConflictError):
        detail["retryable"] = True
    return HTTPException(status_code=status_code, detail=detail)


def internal_error(action: str) -> HTTPException:
    """Log the in-flight exception and return a generic 500."""
    logger.error("Unexpected error %s", action, exc_info=True)
    return HTTPException(status_code=500, detail=f"Error {action}")


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from league_backend.api.routes.leagues import router as leagues_router  # noqa: E402
from league_backend.api.routes.signup_codes import router as signup_codes_router  # noqa: E402
from league_backend.api.routes.profiles import router as profiles_router  # noqa: E402

router = APIRouter()
router.include_router(leagues_router)
router.include_router(signup_codes_router)
router.include_router(profiles_router)
