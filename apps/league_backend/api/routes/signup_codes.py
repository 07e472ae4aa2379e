"""Signup code route handlers: issue, list, revoke, redeem."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.config import REDEEM_RATE_LIMIT
from league_backend.database.db import get_db_session
from league_backend.services import redemption_service, signup_code_service
from league_backend.services.errors import LeagueAuthError
from league_backend.api.auth_dependencies import make_require_commissioner, require_profile
from league_backend.api.routes import internal_error, limiter, to_http_exception
from league_backend.models.schemas import (
    RedeemCodeRequest,
    RedemptionResult,
    SignupCodeCreate,
    SignupCodeResponse,
)
from league_backend.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/leagues/{league_id}/signup-codes", response_model=SignupCodeResponse)
async def issue_signup_code(
    league_id: int,
    payload: SignupCodeCreate,
    identity: dict = Depends(make_require_commissioner()),
    session: AsyncSession = Depends(get_db_session),
):
    """Issue a signup code for the league (commissioner only)."""
    try:
        return await signup_code_service.issue_code(
            session,
            league_id=league_id,
            role=payload.role,
            created_by=identity["id"],
            team_id=payload.team_id,
            max_uses=payload.max_uses,
            expires_at=payload.resolve_expires_at(utcnow()),
        )
    except LeagueAuthError as e:
        raise to_http_exception(e)
    except Exception:
        raise internal_error("issuing signup code")


@router.get("/api/leagues/{league_id}/signup-codes", response_model=List[SignupCodeResponse])
async def list_signup_codes(
    league_id: int,
    identity: dict = Depends(make_require_commissioner()),
    session: AsyncSession = Depends(get_db_session),
):
    """List the league's signup codes with their status (commissioner only)."""
    return await signup_code_service.list_codes(session, league_id)


@router.post(
    "/api/leagues/{league_id}/signup-codes/{code_id}/revoke",
    response_model=SignupCodeResponse,
)
async def revoke_signup_code(
    league_id: int,
    code_id: int,
    identity: dict = Depends(make_require_commissioner()),
    session: AsyncSession = Depends(get_db_session),
):
    """Expire a signup code immediately (commissioner only)."""
    try:
        return await signup_code_service.revoke_code(session, code_id=code_id, league_id=league_id)
    except LeagueAuthError as e:
        raise to_http_exception(e)


@router.post("/api/signup-codes/redeem", response_model=RedemptionResult)
@limiter.limit(REDEEM_RATE_LIMIT)
async def redeem_signup_code(
    request: Request,
    payload: RedeemCodeRequest,
    identity: dict = Depends(require_profile),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Redeem a signup code for the caller.

    Expired, exhausted and unknown codes get distinct error codes so the
    join screen can say exactly what went wrong. A persistence conflict is
    returned as retryable; nothing is retried server-side.
    """
    try:
        return await redemption_service.redeem(session, identity["id"], payload.code)
    except LeagueAuthError as e:
        raise to_http_exception(e)
    except Exception:
        raise internal_error("redeeming signup code")
