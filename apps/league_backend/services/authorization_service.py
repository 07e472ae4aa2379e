"""
Authorization view over role grants.

Read-only projections of the user_roles table. Nothing here writes, caches
or orders grants beyond what display needs, so every call reflects the
grants committed at the time of the query.
"""

from collections import defaultdict
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.models import League, Profile, Role, ROLE_ORDER, Team, UserRole
from league_backend.models.schemas import (
    LeagueMemberResponse,
    RoleAssignments,
    RoleScope,
    RoleSetResponse,
)
from league_backend.utils.datetime_utils import isoformat_or_none


def _role_sort_key(role: str) -> Tuple[int, str]:
    try:
        return (ROLE_ORDER.index(role), role)
    except ValueError:
        return (len(ROLE_ORDER), role)


def _scope_sort_key(scope: RoleScope) -> Tuple[int, int, int]:
    # League-wide scope (no team) sorts before team scopes in the same league
    if scope.team_id is None:
        return (scope.league_id, 0, 0)
    return (scope.league_id, 1, scope.team_id)


async def roles_for(session: AsyncSession, identity_id: str) -> RoleSetResponse:
    """
    Distinct roles an identity holds, with the leagues/teams each applies to.

    Duplicate grant rows (same role, league and team) collapse into one
    scope. Roles come back in canonical order (commissioner first), scopes
    ordered by league then team.

    Args:
        session: Database session
        identity_id: Identity to project

    Returns:
        RoleSetResponse; ``roles`` is empty for an identity with no grants
    """
    stmt = (
        select(
            UserRole.role,
            UserRole.league_id,
            League.name,
            UserRole.team_id,
            Team.name,
        )
        .join(League, League.id == UserRole.league_id)
        .outerjoin(Team, Team.id == UserRole.team_id)
        .where(UserRole.user_id == identity_id)
    )
    result = await session.execute(stmt)

    scopes_by_role: Dict[str, Dict[Tuple[int, Optional[int]], RoleScope]] = defaultdict(dict)
    for role, league_id, league_name, team_id, team_name in result.all():
        scopes_by_role[role][(league_id, team_id)] = RoleScope(
            league_id=league_id,
            league_name=league_name,
            team_id=team_id,
            team_name=team_name,
        )

    roles = [
        RoleAssignments(
            role=role,
            scopes=sorted(scopes_by_role[role].values(), key=_scope_sort_key),
        )
        for role in sorted(scopes_by_role, key=_role_sort_key)
    ]
    return RoleSetResponse(user_id=identity_id, roles=roles)


async def has_role(
    session: AsyncSession,
    identity_id: str,
    league_id: int,
    role: Union[Role, str],
    team_id: Optional[int] = None,
) -> bool:
    """
    Whether the identity holds ``role`` in ``league_id``.

    Without ``team_id`` any grant of the role in the league counts. With a
    ``team_id``, a grant on that team or a league-wide grant counts.

    Pure membership test; safe to call on every request.
    """
    role_value = role.value if isinstance(role, Role) else role
    stmt = select(UserRole.id).where(
        UserRole.user_id == identity_id,
        UserRole.league_id == league_id,
        UserRole.role == role_value,
    )
    if team_id is not None:
        stmt = stmt.where(or_(UserRole.team_id == team_id, UserRole.team_id.is_(None)))

    result = await session.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def league_members(session: AsyncSession, league_id: int) -> List[LeagueMemberResponse]:
    """
    Every role grant in a league with profile and team names.

    An identity holding several roles appears once per grant.
    """
    stmt = (
        select(UserRole, Profile.full_name, Profile.email, Team.name)
        .join(Profile, Profile.id == UserRole.user_id)
        .outerjoin(Team, Team.id == UserRole.team_id)
        .where(UserRole.league_id == league_id)
        .order_by(UserRole.assigned_at, UserRole.id)
    )
    result = await session.execute(stmt)
    return [
        LeagueMemberResponse(
            role_id=grant.id,
            user_id=grant.user_id,
            full_name=full_name,
            email=email,
            league_id=grant.league_id,
            team_id=grant.team_id,
            team_name=team_name,
            role=grant.role,
            assigned_at=isoformat_or_none(grant.assigned_at),
        )
        for grant, full_name, email, team_name in result.all()
    ]
