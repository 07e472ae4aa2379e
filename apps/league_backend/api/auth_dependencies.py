"""
Authentication and authorization dependencies for FastAPI routes.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.db import get_db_session
from league_backend.database.models import Role
from league_backend.services import auth_service, authorization_service, profile_service

security = HTTPBearer()


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Dependency to get the authenticated identity from the bearer token.

    Returns:
        Dict with ``id`` (identity id) and ``email`` (may be None)

    Raises:
        HTTPException: If the token is invalid
    """
    payload = auth_service.verify_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {"id": str(payload["sub"]), "email": payload.get("email")}


async def require_profile(
    identity: dict = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    """Require an authenticated identity that already has a profile."""
    profile = await profile_service.get_profile(session, identity["id"])
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Profile required",
        )
    return identity


def make_require_league_role(role: Role):
    """
    Require the caller to hold ``role`` in the path's league.

    The check is re-derived from user_roles on every request.
    """

    async def _dep(
        league_id: int,
        identity: dict = Depends(require_profile),
        session: AsyncSession = Depends(get_db_session),
    ) -> dict:
        if not await authorization_service.has_role(session, identity["id"], league_id, role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"League {role.value} access required",
            )
        return identity

    return _dep


def make_require_commissioner():
    return make_require_league_role(Role.COMMISSIONER)
