"""
Bearer token verification.

Tokens are issued by the external identity provider; this module only
checks the signature and expiry and extracts the identity claims.
"""

import logging
from typing import Optional

from jose import JWTError, jwt

from league_backend import config

logger = logging.getLogger(__name__)


def verify_token(token: str) -> Optional[dict]:
    """
    Decode and verify a JWT.

    Args:
        token: Encoded JWT from the Authorization header

    Returns:
        The token payload, or None if the token is invalid or expired
    """
    try:
        payload = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError as e:
        logger.debug("Rejected bearer token: %s", e)
        return None

    if not payload.get("sub"):
        return None
    return payload


def create_access_token(identity_id: str, email: Optional[str] = None, **claims) -> str:
    """
    Sign a token for an identity.

    Used by tests and local tooling; production tokens come from the
    identity provider with the same secret.
    """
    payload = {"sub": identity_id, **claims}
    if email is not None:
        payload["email"] = email
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)
