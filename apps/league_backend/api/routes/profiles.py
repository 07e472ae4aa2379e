"""Profile and effective-role route handlers."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.db import get_db_session
from league_backend.services import authorization_service, profile_service
from league_backend.services.errors import LeagueAuthError
from league_backend.api.auth_dependencies import get_current_identity, require_profile
from league_backend.api.routes import to_http_exception
from league_backend.models.schemas import ProfileCreate, ProfileResponse, RoleSetResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/profile", response_model=ProfileResponse)
async def ensure_profile(
    payload: ProfileCreate,
    identity: dict = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Create the caller's profile on first sign-in; returns the existing one otherwise."""
    try:
        return await profile_service.ensure_profile(
            session,
            identity_id=identity["id"],
            email=payload.email,
            full_name=payload.full_name,
            phone=payload.phone,
        )
    except LeagueAuthError as e:
        raise to_http_exception(e)


@router.get("/api/me/roles", response_model=RoleSetResponse)
async def my_roles(
    identity: dict = Depends(require_profile),
    session: AsyncSession = Depends(get_db_session),
):
    """Roles the caller holds and where each applies. Drives role-scoped navigation."""
    return await authorization_service.roles_for(session, identity["id"])
