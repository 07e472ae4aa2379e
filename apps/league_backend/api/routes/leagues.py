"""League route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.db import get_db_session
from league_backend.services import authorization_service, league_service
from league_backend.services.errors import LeagueAuthError
from league_backend.api.auth_dependencies import make_require_commissioner, require_profile
from league_backend.api.routes import internal_error, to_http_exception
from league_backend.models.schemas import (
    LeagueCreate,
    LeagueMemberResponse,
    LeagueResponse,
    TeamCreate,
    TeamResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/leagues", response_model=LeagueResponse)
async def create_league(
    payload: LeagueCreate,
    identity: dict = Depends(require_profile),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Create a new league. The caller becomes its commissioner.
    """
    try:
        return await league_service.create_league_with_commissioner(
            session=session,
            identity_id=identity["id"],
            name=payload.name,
            season_year=payload.season_year,
            status=payload.status.value,
            description=payload.description,
        )
    except LeagueAuthError as e:
        raise to_http_exception(e)
    except Exception:
        raise internal_error("creating league")


@router.get("/api/leagues/{league_id}", response_model=LeagueResponse)
async def get_league(
    league_id: int,
    identity: dict = Depends(require_profile),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a league by id."""
    league = await league_service.get_league(session, league_id)
    if league is None:
        raise HTTPException(status_code=404, detail="League not found")
    return league


@router.post("/api/leagues/{league_id}/teams", response_model=TeamResponse)
async def create_team(
    league_id: int,
    payload: TeamCreate,
    identity: dict = Depends(make_require_commissioner()),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a team (commissioner only)."""
    try:
        return await league_service.create_team(
            session, league_id=league_id, name=payload.name, color=payload.color
        )
    except LeagueAuthError as e:
        raise to_http_exception(e)
    except Exception:
        raise internal_error("creating team")


@router.get("/api/leagues/{league_id}/members", response_model=List[LeagueMemberResponse])
async def list_league_members(
    league_id: int,
    identity: dict = Depends(make_require_commissioner()),
    session: AsyncSession = Depends(get_db_session),
):
    """List every role grant in the league (commissioner only)."""
    return await authorization_service.league_members(session, league_id)
