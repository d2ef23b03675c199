"""API authentication."""

import logging

from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ..config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def decode_user_id(token: str) -> str | None:
    """Return the `sub` claim of a valid access token, or None."""
    if not settings.jwt_secret:
        logger.warning("JWT_SECRET not set, treating request as anonymous")
        return None
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError as exc:
        logger.warning("Ignoring invalid bearer token: %s", exc)
        return None
    return payload.get("sub")


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Security(security),
) -> str | None:
    """Resolve the signed-in user from the bearer token.

    Missing or invalid tokens do not fail the request; it continues anonymously.

    Args:
        credentials: HTTP Bearer credentials from the request, if any.

    Returns:
        The user id, or None for anonymous requests.
    """
    if credentials is None:
        return None
    return decode_user_id(credentials.credentials)
