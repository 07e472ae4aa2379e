"""
Profile service layer.

A profile is created the first time an authenticated identity reaches the
backend; every other service assumes it exists.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.models import Profile
from league_backend.models.schemas import ProfileResponse
from league_backend.services.errors import ProfileNotFoundError, ValidationError
from league_backend.utils.datetime_utils import isoformat_or_none

logger = logging.getLogger(__name__)


def _to_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        email=profile.email,
        full_name=profile.full_name,
        phone=profile.phone,
        created_at=isoformat_or_none(profile.created_at),
    )


async def get_profile(session: AsyncSession, identity_id: str) -> Optional[ProfileResponse]:
    """Return the profile for an identity, or None."""
    profile = await session.get(Profile, identity_id)
    return _to_response(profile) if profile else None


async def require_profile(session: AsyncSession, identity_id: str) -> Profile:
    """
    Load the Profile row or raise.

    Raises:
        ProfileNotFoundError: If the identity has no profile yet
    """
    profile = await session.get(Profile, identity_id)
    if profile is None:
        raise ProfileNotFoundError(f"No profile for identity {identity_id}")
    return profile


async def ensure_profile(
    session: AsyncSession,
    identity_id: str,
    email: str,
    full_name: Optional[str] = None,
    phone: Optional[str] = None,
) -> ProfileResponse:
    """
    Create the profile for an identity if it doesn't exist yet.

    Existing profiles are returned untouched; editing profile details is a
    separate feature.

    Args:
        session: Database session
        identity_id: Authenticated identity id
        email: Email reported by the identity provider
        full_name: Optional display name
        phone: Optional phone number

    Returns:
        ProfileResponse

    Raises:
        ValidationError: If email is empty or already used by another identity
    """
    existing = await session.get(Profile, identity_id)
    if existing is not None:
        return _to_response(existing)

    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")

    profile = Profile(
        id=identity_id,
        email=email,
        full_name=full_name.strip() if full_name else None,
        phone=phone.strip() if phone else None,
    )
    session.add(profile)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        # Lost a race against a concurrent first sign-in for the same identity
        result = await session.execute(select(Profile).where(Profile.id == identity_id))
        raced = result.scalar_one_or_none()
        if raced is not None:
            return _to_response(raced)
        raise ValidationError(f"Email {email} is already registered")

    await session.refresh(profile)
    logger.info("Created profile %s", identity_id)
    return _to_response(profile)
