"""
Signup code service layer.

Issues, lists and revokes signup codes. Redemption lives in
redemption_service; the token helpers here are shared with it.
"""

import enum
import logging
import secrets
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend import config
from league_backend.database.models import League, Role, SignupCode, Team
from league_backend.models.schemas import SignupCodeResponse
from league_backend.services import league_service
from league_backend.services.errors import (
    CodeGenerationError,
    CodeNotFoundError,
    InvalidMaxUsesError,
    InvalidRoleError,
    LeagueNotFoundError,
)
from league_backend.utils.datetime_utils import ensure_utc, isoformat_or_none, utcnow

logger = logging.getLogger(__name__)

# No 0/O or 1/I so codes survive being read aloud
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

_ROLES = {r.value for r in Role}


class CodeStatus(str, enum.Enum):
    """Derived state of a signup code."""

    ACTIVE = "active"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


def generate_code(prefix: Optional[str] = None) -> str:
    """Random token in the human-typed format, e.g. 'BU-7KX9QA'."""
    prefix = (prefix or config.SIGNUP_CODE_PREFIX).strip().upper()
    body = "".join(secrets.choice(CODE_ALPHABET) for _ in range(config.SIGNUP_CODE_LENGTH))
    return f"{prefix}-{body}"


def normalize_code(raw_code: str) -> str:
    """Canonical form used for storage and lookup: trimmed and upper-cased."""
    return (raw_code or "").strip().upper()


def code_status(code: SignupCode, now: Optional[datetime] = None) -> CodeStatus:
    """
    Derive a code's status. Expiry takes precedence over exhaustion.

    A code whose expires_at equals ``now`` is already expired.
    """
    now = now or utcnow()
    expires_at = ensure_utc(code.expires_at)
    if expires_at is not None and expires_at <= now:
        return CodeStatus.EXPIRED
    if code.max_uses is not None and code.use_count >= code.max_uses:
        return CodeStatus.EXHAUSTED
    return CodeStatus.ACTIVE


def _code_response(
    code: SignupCode, team_name: Optional[str], now: Optional[datetime] = None
) -> SignupCodeResponse:
    return SignupCodeResponse(
        id=code.id,
        league_id=code.league_id,
        code=code.code,
        role=code.role,
        team_id=code.team_id,
        team_name=team_name,
        max_uses=code.max_uses,
        use_count=code.use_count,
        expires_at=isoformat_or_none(code.expires_at),
        status=code_status(code, now).value,
        created_at=isoformat_or_none(code.created_at),
    )


async def _code_exists(session: AsyncSession, token: str) -> bool:
    result = await session.execute(select(SignupCode.id).where(SignupCode.code == token))
    return result.scalar_one_or_none() is not None


async def issue_code(
    session: AsyncSession,
    league_id: int,
    role: Union[Role, str],
    created_by: Optional[str] = None,
    team_id: Optional[int] = None,
    max_uses: Optional[int] = None,
    expires_at: Optional[datetime] = None,
) -> SignupCodeResponse:
    """
    Create a signup code bound to a league, role and optional team.

    The caller must already be authorized as the league's commissioner;
    this function does not check roles.

    Args:
        session: Database session
        league_id: League the code grants access to
        role: Role granted on redemption
        created_by: Identity id of the issuing commissioner
        team_id: Optional team scope (must belong to league_id)
        max_uses: Optional usage cap (>= 1); None means unlimited
        expires_at: Optional expiry instant; naive values are treated as UTC

    Returns:
        SignupCodeResponse for the new code

    Raises:
        InvalidRoleError, InvalidMaxUsesError, LeagueNotFoundError,
        InvalidTeamScopeError: Validation failures
        CodeGenerationError: No unused token after SIGNUP_CODE_MAX_ATTEMPTS tries
    """
    role_value = role.value if isinstance(role, Role) else str(role).strip().lower()
    if role_value not in _ROLES:
        raise InvalidRoleError(f"Invalid role '{role}'")
    if max_uses is not None and max_uses < 1:
        raise InvalidMaxUsesError("Max uses must be at least 1")

    league = await session.get(League, league_id)
    if league is None:
        raise LeagueNotFoundError(f"League {league_id} not found")

    team_name = None
    if team_id is not None:
        team = await league_service.require_team_in_league(session, team_id, league_id)
        team_name = team.name

    expires_at = ensure_utc(expires_at)

    for attempt in range(1, config.SIGNUP_CODE_MAX_ATTEMPTS + 1):
        token = generate_code()
        if await _code_exists(session, token):
            logger.debug("Signup code collision on attempt %d, regenerating", attempt)
            continue

        code = SignupCode(
            league_id=league_id,
            code=token,
            role=role_value,
            team_id=team_id,
            max_uses=max_uses,
            use_count=0,
            expires_at=expires_at,
            created_by=created_by,
        )
        session.add(code)
        try:
            await session.commit()
        except IntegrityError:
            # Another request inserted the same token between check and insert
            await session.rollback()
            logger.debug("Signup code insert collided on attempt %d, regenerating", attempt)
            continue

        await session.refresh(code)
        logger.info(
            "Issued signup code %s for league %d (role=%s, team=%s, max_uses=%s)",
            code.code, league_id, role_value, team_id, max_uses,
        )
        return _code_response(code, team_name)

    raise CodeGenerationError("Could not generate a unique signup code. Please try again.")


async def list_codes(
    session: AsyncSession, league_id: int, now: Optional[datetime] = None
) -> List[SignupCodeResponse]:
    """List a league's signup codes, newest first, with derived status."""
    now = now or utcnow()
    stmt = (
        select(SignupCode, Team.name)
        .outerjoin(Team, Team.id == SignupCode.team_id)
        .where(SignupCode.league_id == league_id)
        .order_by(SignupCode.created_at.desc(), SignupCode.id.desc())
    )
    result = await session.execute(stmt)
    return [_code_response(code, team_name, now) for code, team_name in result.all()]


async def revoke_code(
    session: AsyncSession, code_id: int, league_id: int
) -> SignupCodeResponse:
    """
    Make a code unredeemable by setting its expiry to now.

    Codes that already expired keep their original expiry.

    Raises:
        CodeNotFoundError: If the code doesn't exist in this league
    """
    now = utcnow()
    result = await session.execute(
        select(SignupCode).where(SignupCode.id == code_id, SignupCode.league_id == league_id)
    )
    code = result.scalar_one_or_none()
    if code is None:
        raise CodeNotFoundError("Signup code not found")

    if code_status(code, now) != CodeStatus.EXPIRED:
        await session.execute(
            update(SignupCode).where(SignupCode.id == code.id).values(expires_at=now)
        )
        await session.commit()
        await session.refresh(code)
        logger.info("Revoked signup code %s in league %d", code.code, league_id)

    team_name = None
    if code.team_id is not None:
        team = await session.get(Team, code.team_id)
        team_name = team.name if team else None
    return _code_response(code, team_name, now)
