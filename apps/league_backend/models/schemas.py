"""
Pydantic models for API request/response validation.
"""

from datetime import datetime, timedelta
from typing import Optional, List
from pydantic import BaseModel, Field, model_validator

from league_backend.database.models import Role, LeagueStatus


class ProfileCreate(BaseModel):
    """Profile details supplied on first sign-in."""

    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None


class ProfileResponse(BaseModel):
    """Profile response."""

    id: str
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[str] = None


class LeagueCreate(BaseModel):
    """Request to create a league (creator becomes commissioner)."""

    name: str
    description: Optional[str] = None
    season_year: int
    status: LeagueStatus = LeagueStatus.DRAFT


class LeagueResponse(BaseModel):
    """League response."""

    id: int
    name: str
    description: Optional[str] = None
    season_year: int
    status: str
    created_by: Optional[str] = None
    created_at: Optional[str] = None


class TeamCreate(BaseModel):
    """Request to create a team."""

    name: str
    color: Optional[str] = None


class TeamResponse(BaseModel):
    """Team response."""

    id: int
    league_id: int
    name: str
    color: Optional[str] = None


class SignupCodeCreate(BaseModel):
    """
    Request to issue a signup code.

    Expiry can be given as an absolute instant or as a number of days from
    now (the commissioner form offers the latter); not both.
    """

    role: Role
    team_id: Optional[int] = None
    max_uses: Optional[int] = Field(default=None, ge=1)
    expires_at: Optional[datetime] = None
    expires_in_days: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_expiry(self):
        if self.expires_at is not None and self.expires_in_days is not None:
            raise ValueError("Provide either expires_at or expires_in_days, not both")
        return self

    def resolve_expires_at(self, now: datetime) -> Optional[datetime]:
        if self.expires_in_days is not None:
            return now + timedelta(days=self.expires_in_days)
        return self.expires_at


class SignupCodeResponse(BaseModel):
    """Signup code with its derived status."""

    id: int
    league_id: int
    code: str
    role: str
    team_id: Optional[int] = None
    team_name: Optional[str] = None
    max_uses: Optional[int] = None
    use_count: int
    expires_at: Optional[str] = None
    status: str  # 'active' | 'expired' | 'exhausted'
    created_at: Optional[str] = None


class RedeemCodeRequest(BaseModel):
    """Request to redeem a signup code."""

    code: str = Field(min_length=1, max_length=64)


class RedemptionResult(BaseModel):
    """What the join-confirmation screen shows after a successful redemption."""

    league_id: int
    league_name: str
    role: str
    team_id: Optional[int] = None
    team_name: Optional[str] = None


class RoleScope(BaseModel):
    """A league (and optionally a team) a role applies to."""

    league_id: int
    league_name: str
    team_id: Optional[int] = None
    team_name: Optional[str] = None


class RoleAssignments(BaseModel):
    """One distinct role and every scope it is held in."""

    role: str
    scopes: List[RoleScope]


class RoleSetResponse(BaseModel):
    """Effective permission set for an identity."""

    user_id: str
    roles: List[RoleAssignments]

    @property
    def role_names(self) -> List[str]:
        return [entry.role for entry in self.roles]


class LeagueMemberResponse(BaseModel):
    """A role grant in a league, joined with profile and team names."""

    role_id: int
    user_id: str
    full_name: Optional[str] = None
    email: str
    league_id: int
    team_id: Optional[int] = None
    team_name: Optional[str] = None
    role: str
    assigned_at: Optional[str] = None
