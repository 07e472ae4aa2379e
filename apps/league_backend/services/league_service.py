"""
League service layer.

Handles league bootstrap (league + commissioner grant in one transaction),
team creation, and the shared "team belongs to league" scope check.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend import config
from league_backend.database.models import League, LeagueStatus, Role, Team, UserRole
from league_backend.models.schemas import LeagueResponse, TeamResponse
from league_backend.services import profile_service
from league_backend.services.errors import (
    InvalidNameError,
    InvalidSeasonYearError,
    InvalidStatusError,
    InvalidTeamScopeError,
    LeagueNotFoundError,
    PersistenceConflictError,
)
from league_backend.utils.datetime_utils import isoformat_or_none

logger = logging.getLogger(__name__)

_LEAGUE_STATUSES = {s.value for s in LeagueStatus}


def _league_response(league: League) -> LeagueResponse:
    return LeagueResponse(
        id=league.id,
        name=league.name,
        description=league.description,
        season_year=league.season_year,
        status=league.status,
        created_by=league.created_by,
        created_at=isoformat_or_none(league.created_at),
    )


def _validate_league_fields(name: str, season_year: int, status: str) -> str:
    """Return the trimmed name, or raise the matching validation error."""
    trimmed = (name or "").strip()
    if not trimmed:
        raise InvalidNameError("League name is required")
    if not (config.SEASON_YEAR_MIN <= season_year <= config.SEASON_YEAR_MAX):
        raise InvalidSeasonYearError(
            f"Season year must be between {config.SEASON_YEAR_MIN} and {config.SEASON_YEAR_MAX}"
        )
    if status not in _LEAGUE_STATUSES:
        raise InvalidStatusError(
            f"Invalid league status '{status}'. Expected one of: {', '.join(sorted(_LEAGUE_STATUSES))}"
        )
    return trimmed


async def create_league_with_commissioner(
    session: AsyncSession,
    identity_id: str,
    name: str,
    season_year: int,
    status: str = LeagueStatus.DRAFT.value,
    description: Optional[str] = None,
) -> LeagueResponse:
    """
    Create a league and grant its creator the commissioner role, atomically.

    Both rows are flushed inside the session's transaction and committed
    once. If either write fails, the whole transaction is rolled back, so a
    league never exists without its commissioner grant and vice versa.

    Args:
        session: Database session
        identity_id: Creator's identity id (must have a profile)
        name: League name (trimmed, must be non-empty)
        season_year: Season year within the configured window
        status: 'draft', 'active' or 'completed'
        description: Optional description

    Returns:
        LeagueResponse for the new league

    Raises:
        InvalidNameError, InvalidSeasonYearError, InvalidStatusError,
        ProfileNotFoundError: Validation failures (nothing written)
        PersistenceConflictError: The transaction could not commit
    """
    if isinstance(status, LeagueStatus):
        status = status.value
    trimmed_name = _validate_league_fields(name, season_year, status)
    await profile_service.require_profile(session, identity_id)

    description = description.strip() if description and description.strip() else None

    try:
        league = League(
            name=trimmed_name,
            description=description,
            season_year=season_year,
            status=status,
            created_by=identity_id,
        )
        session.add(league)
        await session.flush()  # Get the league ID

        grant = UserRole(
            user_id=identity_id,
            league_id=league.id,
            team_id=None,
            role=Role.COMMISSIONER.value,
        )
        session.add(grant)
        await session.flush()

        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.warning("League bootstrap for %s rolled back: %s", identity_id, e)
        raise PersistenceConflictError(
            "The league could not be created because of a conflicting change. Please try again."
        ) from e

    await session.refresh(league)
    logger.info(
        "Created league %d '%s' with commissioner %s", league.id, league.name, identity_id
    )
    return _league_response(league)


async def get_league(session: AsyncSession, league_id: int) -> Optional[LeagueResponse]:
    """Return a league by id, or None."""
    league = await session.get(League, league_id)
    return _league_response(league) if league else None


async def require_team_in_league(
    session: AsyncSession, team_id: int, league_id: int
) -> Team:
    """
    Load a team and check it belongs to the given league.

    Raises:
        InvalidTeamScopeError: If the team doesn't exist or is in another league
    """
    result = await session.execute(select(Team).where(Team.id == team_id))
    team = result.scalar_one_or_none()
    if team is None or team.league_id != league_id:
        raise InvalidTeamScopeError(f"Team {team_id} does not belong to league {league_id}")
    return team


async def create_team(
    session: AsyncSession,
    league_id: int,
    name: str,
    color: Optional[str] = None,
) -> TeamResponse:
    """
    Create a team in a league.

    Raises:
        LeagueNotFoundError: If the league doesn't exist
        InvalidNameError: If the trimmed name is empty
    """
    league = await session.get(League, league_id)
    if league is None:
        raise LeagueNotFoundError(f"League {league_id} not found")

    trimmed = (name or "").strip()
    if not trimmed:
        raise InvalidNameError("Team name is required")

    team = Team(league_id=league_id, name=trimmed, color=color or None)
    session.add(team)
    await session.commit()
    await session.refresh(team)

    logger.info("Created team %d '%s' in league %d", team.id, team.name, league_id)
    return TeamResponse(id=team.id, league_id=team.league_id, name=team.name, color=team.color)
