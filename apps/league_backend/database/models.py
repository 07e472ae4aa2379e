"""
SQLAlchemy ORM models for league membership, signup codes and role grants.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from league_backend.database.db import Base


class Role(str, enum.Enum):
    """Role a profile can hold within a league."""

    COMMISSIONER = "commissioner"
    MANAGER = "manager"
    COACH = "coach"
    PLAYER = "player"
    PARENT = "parent"
    FAN = "fan"


ROLE_ORDER = [r.value for r in Role]
"""Canonical display order for roles."""


class LeagueStatus(str, enum.Enum):
    """League lifecycle status."""

    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"


class RosterStatus(str, enum.Enum):
    """Roster entry status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    INJURED = "injured"


class GameStatus(str, enum.Enum):
    """Game status enum."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINAL = "final"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"


def _in_clause(column: str, enum_cls) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


class Profile(Base):
    """Profile for an authenticated identity (1:1, created on first sign-in)."""

    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)  # identity id from the auth provider
    email = Column(String, nullable=False, unique=True)
    full_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    roles = relationship("UserRole", back_populates="profile")
    roster_entries = relationship("RosterEntry", back_populates="player")


class League(Base):
    """Top-level organizational unit for a season."""

    __tablename__ = "leagues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    season_year = Column(Integer, nullable=False)
    status = Column(String, nullable=False, server_default=LeagueStatus.DRAFT.value)
    created_by = Column(String(64), ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    creator = relationship("Profile", foreign_keys=[created_by])
    teams = relationship("Team", back_populates="league")
    fields = relationship("Field", back_populates="league")
    signup_codes = relationship("SignupCode", back_populates="league")
    roles = relationship("UserRole", back_populates="league")

    __table_args__ = (
        CheckConstraint(_in_clause("status", LeagueStatus), name="ck_leagues_status"),
        Index("idx_leagues_created_by", "created_by"),
    )


class Team(Base):
    """Team within a league."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    name = Column(String, nullable=False)
    color = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    league = relationship("League", back_populates="teams")
    roster = relationship("RosterEntry", back_populates="team")

    __table_args__ = (
        # Target for the (team_id, league_id) foreign keys on codes and grants
        UniqueConstraint("id", "league_id", name="uq_teams_id_league"),
        Index("idx_teams_league", "league_id"),
    )


class Field(Base):
    """Playing field owned by a league."""

    __tablename__ = "fields"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    diamond_count = Column(Integer, nullable=False, server_default="1")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    league = relationship("League", back_populates="fields")

    __table_args__ = (
        CheckConstraint("diamond_count >= 1", name="ck_fields_diamond_count"),
        Index("idx_fields_league", "league_id"),
    )


class SignupCode(Base):
    """Consumable invitation token bound to a league, role and optional team.

    Only redemption mutates ``use_count``; revoking sets ``expires_at``.
    Rows are never deleted.
    """

    __tablename__ = "signup_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    code = Column(String(32), nullable=False, unique=True)  # canonical upper-case
    role = Column(String, nullable=False)
    team_id = Column(Integer, nullable=True)
    max_uses = Column(Integer, nullable=True)  # NULL = unlimited
    use_count = Column(Integer, nullable=False, default=0, server_default="0")
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(64), ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    league = relationship("League", back_populates="signup_codes")
    team = relationship(
        "Team",
        primaryjoin="SignupCode.team_id == Team.id",
        foreign_keys=[team_id],
        viewonly=True,
    )

    __table_args__ = (
        ForeignKeyConstraint(
            ["team_id", "league_id"],
            ["teams.id", "teams.league_id"],
            name="fk_signup_codes_team_in_league",
        ),
        CheckConstraint(_in_clause("role", Role), name="ck_signup_codes_role"),
        CheckConstraint("use_count >= 0", name="ck_signup_codes_use_count"),
        CheckConstraint("max_uses IS NULL OR max_uses >= 1", name="ck_signup_codes_max_uses"),
        CheckConstraint(
            "max_uses IS NULL OR use_count <= max_uses", name="ck_signup_codes_within_max"
        ),
        Index("idx_signup_codes_league", "league_id"),
    )


class UserRole(Base):
    """Role grant: a profile holds ``role`` in a league, optionally on one team.

    (user_id, league_id, role, team_id) is intentionally not unique.
    """

    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("profiles.id"), nullable=False)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    team_id = Column(Integer, nullable=True)
    role = Column(String, nullable=False)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    profile = relationship("Profile", back_populates="roles")
    league = relationship("League", back_populates="roles")
    team = relationship(
        "Team",
        primaryjoin="UserRole.team_id == Team.id",
        foreign_keys=[team_id],
        viewonly=True,
    )

    __table_args__ = (
        ForeignKeyConstraint(
            ["team_id", "league_id"],
            ["teams.id", "teams.league_id"],
            name="fk_user_roles_team_in_league",
        ),
        CheckConstraint(_in_clause("role", Role), name="ck_user_roles_role"),
        Index("idx_user_roles_user", "user_id"),
        Index("idx_user_roles_league_role", "league_id", "role"),
    )


class RosterEntry(Base):
    """A player's membership on a team."""

    __tablename__ = "roster_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    player_user_id = Column(String(64), ForeignKey("profiles.id"), nullable=False)
    position = Column(String, nullable=True)
    jersey_number = Column(Integer, nullable=True)
    status = Column(String, nullable=False, server_default=RosterStatus.ACTIVE.value)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    team = relationship("Team", back_populates="roster")
    player = relationship("Profile", back_populates="roster_entries")

    __table_args__ = (
        UniqueConstraint("team_id", "player_user_id", name="uq_roster_entries_team_player"),
        CheckConstraint(_in_clause("status", RosterStatus), name="ck_roster_entries_status"),
        Index("idx_roster_entries_player", "player_user_id"),
    )


class Game(Base):
    """Scheduled game. Read-only from the point of view of role management."""

    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    home_team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    away_team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    field_id = Column(Integer, ForeignKey("fields.id"), nullable=True)
    diamond_number = Column(Integer, nullable=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False, server_default=GameStatus.SCHEDULED.value)
    home_score = Column(Integer, nullable=False, server_default="0")
    away_score = Column(Integer, nullable=False, server_default="0")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(_in_clause("status", GameStatus), name="ck_games_status"),
        Index("idx_games_league", "league_id"),
    )
