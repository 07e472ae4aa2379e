"""
Tests for signup code redemption.

Tests:
- Team-scoped player code: grant + roster entry + use consumed
- League-scoped codes: grant only, no roster entry
- Expired / exhausted / unknown codes: distinct errors, nothing written
- Concurrent redemptions racing for the last use
- Usage cap under repeated sequential redemptions
- Roster idempotency for repeat redemptions
- Token normalization (case, whitespace)
- Missing profile and rolled-back transactions
"""

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from unittest.mock import patch
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from league_backend.database.models import Role, RosterEntry, SignupCode, UserRole
from league_backend.services import profile_service, redemption_service
from league_backend.services.errors import (
    CodeExhaustedError,
    CodeExpiredError,
    CodeNotFoundError,
    PersistenceConflictError,
    ProfileNotFoundError,
)
from league_backend.utils.datetime_utils import utcnow


# ============================================================================
# Fixtures / helpers
# ============================================================================


@pytest_asyncio.fixture
async def make_code(db_session, league):
    """Insert a signup code with a fixed token."""

    async def _make(token, role=Role.PLAYER, team_id=None, max_uses=None, expires_at=None, use_count=0):
        code = SignupCode(
            league_id=league.id,
            code=token,
            role=role.value,
            team_id=team_id,
            max_uses=max_uses,
            use_count=use_count,
            expires_at=expires_at,
            created_by="user-A",
        )
        db_session.add(code)
        await db_session.commit()
        return code.id

    return _make


async def _make_players(session, count, start=1):
    ids = []
    for i in range(start, start + count):
        identity_id = f"player-{i}"
        await profile_service.ensure_profile(session, identity_id, f"p{i}@example.com")
        ids.append(identity_id)
    return ids


async def _use_count(session_maker, code_id):
    async with session_maker() as s:
        return (await s.execute(select(SignupCode.use_count).where(SignupCode.id == code_id))).scalar_one()


async def _count(session_maker, model, *criteria):
    async with session_maker() as s:
        stmt = select(func.count()).select_from(model)
        if criteria:
            stmt = stmt.where(*criteria)
        return (await s.execute(stmt)).scalar_one()


# ============================================================================
# Successful redemption
# ============================================================================


class TestRedeemSuccess:
    @pytest.mark.asyncio
    async def test_team_player_code_grants_role_and_rosters(
        self, db_session, session_maker, league, team, player, make_code
    ):
        """BU-ABC123 (player, Tigers, max 20, use 0) -> grant, roster entry, use_count 1."""
        code_id = await make_code("BU-ABC123", team_id=team.id, max_uses=20)

        result = await redemption_service.redeem(db_session, player, "BU-ABC123")

        assert result.league_id == league.id
        assert result.league_name == "Spring 2025"
        assert result.role == "player"
        assert result.team_id == team.id
        assert result.team_name == "Tigers"

        assert await _use_count(session_maker, code_id) == 1
        assert await _count(
            session_maker,
            UserRole,
            UserRole.user_id == player,
            UserRole.role == "player",
            UserRole.team_id == team.id,
        ) == 1
        assert await _count(
            session_maker,
            RosterEntry,
            RosterEntry.team_id == team.id,
            RosterEntry.player_user_id == player,
            RosterEntry.status == "active",
        ) == 1

    @pytest.mark.asyncio
    async def test_league_scoped_fan_code_has_no_roster_entry(
        self, db_session, session_maker, league, player, make_code
    ):
        await make_code("BU-FAN222", role=Role.FAN)

        result = await redemption_service.redeem(db_session, player, "BU-FAN222")

        assert result.role == "fan"
        assert result.team_id is None
        assert result.team_name is None
        assert await _count(session_maker, UserRole, UserRole.user_id == player) == 1
        assert await _count(session_maker, RosterEntry) == 0

    @pytest.mark.asyncio
    async def test_team_scoped_coach_code_has_no_roster_entry(
        self, db_session, session_maker, league, team, player, make_code
    ):
        await make_code("BU-COACH2", role=Role.COACH, team_id=team.id)

        result = await redemption_service.redeem(db_session, player, "BU-COACH2")

        assert result.role == "coach"
        assert result.team_name == "Tigers"
        assert await _count(session_maker, RosterEntry) == 0

    @pytest.mark.asyncio
    async def test_lookup_is_case_and_whitespace_insensitive(
        self, db_session, session_maker, league, player, make_code
    ):
        code_id = await make_code("BU-ABC123")

        result = await redemption_service.redeem(db_session, player, "  bu-abc123 ")

        assert result.role == "player"
        assert await _use_count(session_maker, code_id) == 1

    @pytest.mark.asyncio
    async def test_unlimited_code_keeps_counting(self, db_session, session_maker, league, make_code):
        code_id = await make_code("BU-OPEN22")
        players = await _make_players(db_session, 4)

        for identity_id in players:
            await redemption_service.redeem(db_session, identity_id, "BU-OPEN22")

        assert await _use_count(session_maker, code_id) == 4


# ============================================================================
# Rejections
# ============================================================================


class TestRedeemRejections:
    @pytest.mark.asyncio
    async def test_expired_code(self, db_session, session_maker, league, team, player, make_code):
        """BU-XYZ999 expired yesterday -> CodeExpired, nothing written."""
        code_id = await make_code(
            "BU-XYZ999", team_id=team.id, expires_at=utcnow() - timedelta(days=1)
        )

        with pytest.raises(CodeExpiredError):
            await redemption_service.redeem(db_session, player, "BU-XYZ999")

        assert await _use_count(session_maker, code_id) == 0
        assert await _count(session_maker, UserRole, UserRole.user_id == player) == 0
        assert await _count(session_maker, RosterEntry) == 0

    @pytest.mark.asyncio
    async def test_expiry_boundary_is_expired(self, db_session, league, player, make_code):
        now = utcnow()
        await make_code("BU-EDGE22", expires_at=now)

        with pytest.raises(CodeExpiredError):
            await redemption_service.redeem(db_session, player, "BU-EDGE22", now=now)

    @pytest.mark.asyncio
    async def test_exhausted_code(self, db_session, session_maker, league, player, make_code):
        code_id = await make_code("BU-FULL22", max_uses=2, use_count=2)

        with pytest.raises(CodeExhaustedError):
            await redemption_service.redeem(db_session, player, "BU-FULL22")

        assert await _use_count(session_maker, code_id) == 2
        assert await _count(session_maker, UserRole, UserRole.user_id == player) == 0

    @pytest.mark.asyncio
    async def test_expired_wins_over_exhausted(self, db_session, league, player, make_code):
        await make_code(
            "BU-BOTH22", max_uses=1, use_count=1, expires_at=utcnow() - timedelta(hours=1)
        )

        with pytest.raises(CodeExpiredError):
            await redemption_service.redeem(db_session, player, "BU-BOTH22")

    @pytest.mark.asyncio
    async def test_unknown_code(self, db_session, league, player):
        with pytest.raises(CodeNotFoundError):
            await redemption_service.redeem(db_session, player, "BU-NOPE22")

    @pytest.mark.asyncio
    async def test_blank_code(self, db_session, league, player):
        with pytest.raises(CodeNotFoundError):
            await redemption_service.redeem(db_session, player, "   ")

    @pytest.mark.asyncio
    async def test_identity_without_profile(self, db_session, session_maker, league, make_code):
        code_id = await make_code("BU-ABC123")

        with pytest.raises(ProfileNotFoundError):
            await redemption_service.redeem(db_session, "ghost", "BU-ABC123")

        assert await _use_count(session_maker, code_id) == 0

    def test_distinct_error_codes(self):
        assert CodeNotFoundError("x").code == "code_not_found"
        assert CodeExpiredError("x").code == "code_expired"
        assert CodeExhaustedError("x").code == "code_exhausted"


# ============================================================================
# Usage limits and concurrency
# ============================================================================


class TestRedeemUsageLimits:
    @pytest.mark.asyncio
    async def test_sequential_redemptions_stop_at_max_uses(
        self, db_session, session_maker, league, team, make_code
    ):
        code_id = await make_code("BU-CAP333", team_id=team.id, max_uses=3)
        players = await _make_players(db_session, 5)

        outcomes = []
        for identity_id in players:
            try:
                await redemption_service.redeem(db_session, identity_id, "BU-CAP333")
                outcomes.append("ok")
            except CodeExhaustedError:
                outcomes.append("exhausted")

        assert outcomes == ["ok", "ok", "ok", "exhausted", "exhausted"]
        assert await _use_count(session_maker, code_id) == 3
        assert await _count(session_maker, UserRole, UserRole.role == "player") == 3
        assert await _count(session_maker, RosterEntry) == 3

    @pytest.mark.asyncio
    async def test_concurrent_redemptions_for_last_use(
        self, db_session, session_maker, league, team, make_code
    ):
        """Two identities race for a max_uses=1 code: exactly one wins."""
        code_id = await make_code("BU-LAST22", team_id=team.id, max_uses=1)
        players = await _make_players(db_session, 2)

        async def _attempt(identity_id):
            async with session_maker() as session:
                return await redemption_service.redeem(session, identity_id, "BU-LAST22")

        results = await asyncio.gather(*(_attempt(p) for p in players), return_exceptions=True)

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        # The loser sees the code as used up; a lock timeout surfaces as a retryable conflict
        assert isinstance(failures[0], (CodeExhaustedError, PersistenceConflictError))

        assert await _use_count(session_maker, code_id) == 1
        assert await _count(session_maker, UserRole, UserRole.role == "player") == 1
        assert await _count(session_maker, RosterEntry) == 1

    @pytest.mark.asyncio
    async def test_loser_of_race_is_reported_exhausted(
        self, db_session, session_maker, league, player, make_code
    ):
        """The guarded update decides, even if the early read saw a free use."""
        code_id = await make_code("BU-RACE22", max_uses=1)
        original = redemption_service._consume_use

        async def _someone_else_first(session, cid, now):
            async with session_maker() as other:
                code = await other.get(SignupCode, cid)
                code.use_count = 1
                await other.commit()
            return await original(session, cid, now)

        with patch.object(redemption_service, "_consume_use", _someone_else_first):
            with pytest.raises(CodeExhaustedError):
                await redemption_service.redeem(db_session, player, "BU-RACE22")

        assert await _use_count(session_maker, code_id) == 1
        assert await _count(session_maker, UserRole, UserRole.user_id == player) == 0


# ============================================================================
# Repeat redemption and atomicity
# ============================================================================


class TestRedeemRepeatAndAtomicity:
    @pytest.mark.asyncio
    async def test_repeat_redemption_does_not_duplicate_roster(
        self, db_session, session_maker, league, team, player, make_code
    ):
        code_id = await make_code("BU-TWICE2", team_id=team.id, max_uses=5)

        await redemption_service.redeem(db_session, player, "BU-TWICE2")
        await redemption_service.redeem(db_session, player, "BU-TWICE2")

        assert await _use_count(session_maker, code_id) == 2
        assert await _count(session_maker, UserRole, UserRole.user_id == player) == 2
        assert await _count(
            session_maker, RosterEntry, RosterEntry.player_user_id == player
        ) == 1

    @pytest.mark.asyncio
    async def test_existing_roster_entry_is_kept(
        self, db_session, session_maker, league, team, player, make_code
    ):
        db_session.add(
            RosterEntry(team_id=team.id, player_user_id=player, status="injured", jersey_number=7)
        )
        await db_session.commit()
        await make_code("BU-ROST22", team_id=team.id)

        await redemption_service.redeem(db_session, player, "BU-ROST22")

        async with session_maker() as s:
            entries = (await s.execute(select(RosterEntry))).scalars().all()
        assert len(entries) == 1
        assert entries[0].status == "injured"
        assert entries[0].jersey_number == 7

    @pytest.mark.asyncio
    async def test_failed_commit_rolls_back_everything(
        self, db_session, session_maker, league, team, player, make_code
    ):
        code_id = await make_code("BU-FAIL22", team_id=team.id, max_uses=1)

        async def _broken_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        with patch.object(db_session, "commit", _broken_commit):
            with pytest.raises(PersistenceConflictError) as exc_info:
                await redemption_service.redeem(db_session, player, "BU-FAIL22")

        assert exc_info.value.retryable is True
        assert await _use_count(session_maker, code_id) == 0
        assert await _count(session_maker, UserRole, UserRole.user_id == player) == 0
        assert await _count(session_maker, RosterEntry) == 0

        # Nothing was consumed, so the user can try again
        result = await redemption_service.redeem(db_session, player, "BU-FAIL22")
        assert result.team_name == "Tigers"
        assert await _use_count(session_maker, code_id) == 1
