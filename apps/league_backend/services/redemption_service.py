"""
Signup code redemption.

Turns a signup code into a role grant for an authenticated identity, and a
roster entry when the code is a team-scoped player code. The whole thing is
one transaction: consume a use, write the grant, maybe write the roster
row, commit. Nothing is written on any failure path.

Concurrency: the validity check and the use_count increment are a single
guarded UPDATE, so the database decides which of several concurrent
redemptions gets the last use. Application code never decides validity
from a value it read earlier.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.models import (
    League,
    Role,
    RosterEntry,
    RosterStatus,
    SignupCode,
    Team,
    UserRole,
)
from league_backend.models.schemas import RedemptionResult
from league_backend.services import profile_service
from league_backend.services.errors import (
    CodeExhaustedError,
    CodeExpiredError,
    CodeNotFoundError,
    CodeStateError,
    PersistenceConflictError,
)
from league_backend.services.signup_code_service import CodeStatus, code_status, normalize_code
from league_backend.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    CodeStatus.EXPIRED: (CodeExpiredError, "This signup code has expired"),
    CodeStatus.EXHAUSTED: (CodeExhaustedError, "This signup code has reached its maximum number of uses"),
}


def _rejection_for(code: Optional[SignupCode], now: datetime) -> Optional[CodeStateError]:
    """Map a code's current state to the error a redemption should raise, if any."""
    if code is None:
        return CodeNotFoundError("Signup code not found")
    status = code_status(code, now)
    if status in _STATUS_ERRORS:
        error_cls, message = _STATUS_ERRORS[status]
        return error_cls(message)
    return None


def _dialect_insert(session: AsyncSession):
    """INSERT construct supporting ON CONFLICT for the session's dialect."""
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def _add_to_roster(session: AsyncSession, team_id: int, player_user_id: str) -> bool:
    """
    Put a player on a team's roster unless they're already on it.

    The unique (team_id, player_user_id) constraint backs up the existence
    check; a conflicting insert is a no-op.

    Returns:
        True if a roster row was created
    """
    existing = await session.execute(
        select(RosterEntry.id).where(
            RosterEntry.team_id == team_id,
            RosterEntry.player_user_id == player_user_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        return False

    insert = _dialect_insert(session)
    stmt = (
        insert(RosterEntry)
        .values(
            team_id=team_id,
            player_user_id=player_user_id,
            status=RosterStatus.ACTIVE.value,
        )
        .on_conflict_do_nothing(index_elements=["team_id", "player_user_id"])
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def _consume_use(session: AsyncSession, code_id: int, now: datetime) -> bool:
    """
    Increment use_count only if the code is still redeemable at ``now``.

    Returns:
        True if this call consumed a use
    """
    stmt = (
        update(SignupCode)
        .where(
            SignupCode.id == code_id,
            or_(SignupCode.max_uses.is_(None), SignupCode.use_count < SignupCode.max_uses),
            or_(SignupCode.expires_at.is_(None), SignupCode.expires_at > now),
        )
        .values(use_count=SignupCode.use_count + 1)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def _reload_code(session: AsyncSession, code_id: int) -> Optional[SignupCode]:
    result = await session.execute(
        select(SignupCode)
        .where(SignupCode.id == code_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def redeem(
    session: AsyncSession,
    identity_id: str,
    raw_code: str,
    now: Optional[datetime] = None,
) -> RedemptionResult:
    """
    Redeem a signup code for an identity.

    Steps:
      1. Look up the code by its canonical (trimmed, upper-cased) token
      2. Consume one use with a guarded UPDATE (not expired, uses left)
      3. Create the role grant copied from the code
      4. For team-scoped player codes, add a roster entry if missing
      5. Commit and return league/role/team display names

    Redeeming a code the identity already redeemed still consumes a use and
    writes another grant row; the roster entry is not duplicated.

    Args:
        session: Database session
        identity_id: Authenticated identity id (must have a profile)
        raw_code: Code as typed by the user, e.g. ' bu-abc123 '
        now: Evaluation instant, defaults to the current UTC time

    Returns:
        RedemptionResult

    Raises:
        ProfileNotFoundError: If the identity has no profile
        CodeNotFoundError: If no code matches
        CodeExpiredError: If the code's expiry has passed
        CodeExhaustedError: If the code has no uses left
        PersistenceConflictError: If the transaction could not commit.
            Nothing was consumed; the user may retry.
    """
    now = ensure_utc(now) if now else utcnow()
    token = normalize_code(raw_code)
    if not token:
        raise CodeNotFoundError("Signup code not found")

    await profile_service.require_profile(session, identity_id)

    result = await session.execute(
        select(SignupCode)
        .where(SignupCode.code == token)
        .execution_options(populate_existing=True)
    )
    code = result.scalar_one_or_none()

    # Cheap early rejection; the guarded UPDATE below is what actually decides
    rejection = _rejection_for(code, now)
    if rejection is not None:
        logger.info("Redemption of %s by %s rejected: %s", token, identity_id, rejection.code)
        raise rejection

    code_id = code.id
    league_id = code.league_id
    role = code.role
    team_id = code.team_id

    # Display names are read before the write so the write transaction stays short
    league = await session.get(League, league_id)
    team = await session.get(Team, team_id) if team_id is not None else None
    league_name = league.name if league else ""
    team_name = team.name if team else None

    roster_created = False
    try:
        if not await _consume_use(session, code_id, now):
            # Someone else took the last use, or the code expired in between
            await session.rollback()
            current = await _reload_code(session, code_id)
            rejection = _rejection_for(current, now)
            if rejection is None:
                raise PersistenceConflictError(
                    "The signup code could not be redeemed because of a concurrent change. "
                    "Please try again."
                )
            logger.info(
                "Redemption of %s by %s lost the race: %s", token, identity_id, rejection.code
            )
            raise rejection

        session.add(
            UserRole(
                user_id=identity_id,
                league_id=league_id,
                team_id=team_id,
                role=role,
            )
        )
        await session.flush()

        if role == Role.PLAYER.value and team_id is not None:
            roster_created = await _add_to_roster(session, team_id, identity_id)

        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.warning("Redemption of %s by %s rolled back: %s", token, identity_id, e)
        raise PersistenceConflictError(
            "The signup code could not be redeemed because of a concurrent change. "
            "Please try again."
        ) from e

    logger.info(
        "Identity %s redeemed %s: role=%s league=%d team=%s roster_created=%s",
        identity_id, token, role, league_id, team_id, roster_created,
    )

    return RedemptionResult(
        league_id=league_id,
        league_name=league_name,
        role=role,
        team_id=team_id,
        team_name=team_name,
    )
