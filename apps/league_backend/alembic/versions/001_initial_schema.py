"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Create the league membership schema:
- profiles, leagues, teams, fields, games
- signup_codes with usage/expiry checks and a (team_id, league_id) foreign key
- user_roles with the same team-in-league foreign key
- roster_entries unique per (team_id, player_user_id)
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLE_CHECK = "role IN ('commissioner', 'manager', 'coach', 'player', 'parent', 'fan')"


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_profiles_email"),
    )

    op.create_table(
        "leagues",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("season_year", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("created_by", sa.String(64), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["created_by"], ["profiles.id"]),
        sa.CheckConstraint(
            "status IN ('draft', 'active', 'completed')", name="ck_leagues_status"
        ),
    )
    op.create_index("idx_leagues_created_by", "leagues", ["created_by"])

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("league_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("color", sa.String(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["league_id"], ["leagues.id"]),
        sa.UniqueConstraint("id", "league_id", name="uq_teams_id_league"),
    )
    op.create_index("idx_teams_league", "teams", ["league_id"])

    op.create_table(
        "fields",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("league_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("diamond_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["league_id"], ["leagues.id"]),
        sa.CheckConstraint("diamond_count >= 1", name="ck_fields_diamond_count"),
    )
    op.create_index("idx_fields_league", "fields", ["league_id"])

    op.create_table(
        "signup_codes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("league_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=True),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("use_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_signup_codes_code"),
        sa.ForeignKeyConstraint(["league_id"], ["leagues.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["profiles.id"]),
        sa.ForeignKeyConstraint(
            ["team_id", "league_id"],
            ["teams.id", "teams.league_id"],
            name="fk_signup_codes_team_in_league",
        ),
        sa.CheckConstraint(ROLE_CHECK, name="ck_signup_codes_role"),
        sa.CheckConstraint("use_count >= 0", name="ck_signup_codes_use_count"),
        sa.CheckConstraint("max_uses IS NULL OR max_uses >= 1", name="ck_signup_codes_max_uses"),
        sa.CheckConstraint(
            "max_uses IS NULL OR use_count <= max_uses", name="ck_signup_codes_within_max"
        ),
    )
    op.create_index("idx_signup_codes_league", "signup_codes", ["league_id"])

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("league_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=True),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"]),
        sa.ForeignKeyConstraint(["league_id"], ["leagues.id"]),
        sa.ForeignKeyConstraint(
            ["team_id", "league_id"],
            ["teams.id", "teams.league_id"],
            name="fk_user_roles_team_in_league",
        ),
        sa.CheckConstraint(ROLE_CHECK, name="ck_user_roles_role"),
    )
    op.create_index("idx_user_roles_user", "user_roles", ["user_id"])
    op.create_index("idx_user_roles_league_role", "user_roles", ["league_id", "role"])

    op.create_table(
        "roster_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("player_user_id", sa.String(64), nullable=False),
        sa.Column("position", sa.String(), nullable=True),
        sa.Column("jersey_number", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["player_user_id"], ["profiles.id"]),
        sa.UniqueConstraint("team_id", "player_user_id", name="uq_roster_entries_team_player"),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'injured')", name="ck_roster_entries_status"
        ),
    )
    op.create_index("idx_roster_entries_player", "roster_entries", ["player_user_id"])

    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("league_id", sa.Integer(), nullable=False),
        sa.Column("home_team_id", sa.Integer(), nullable=False),
        sa.Column("away_team_id", sa.Integer(), nullable=False),
        sa.Column("field_id", sa.Integer(), nullable=True),
        sa.Column("diamond_number", sa.Integer(), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
        sa.Column("home_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("away_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["league_id"], ["leagues.id"]),
        sa.ForeignKeyConstraint(["home_team_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["away_team_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["field_id"], ["fields.id"]),
        sa.CheckConstraint(
            "status IN ('scheduled', 'in_progress', 'final', 'cancelled', 'postponed')",
            name="ck_games_status",
        ),
    )
    op.create_index("idx_games_league", "games", ["league_id"])


def downgrade() -> None:
    """Drop all tables."""
    for table in (
        "games",
        "roster_entries",
        "user_roles",
        "signup_codes",
        "fields",
        "teams",
        "leagues",
        "profiles",
    ):
        op.drop_table(table)
