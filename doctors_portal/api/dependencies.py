"""FastAPI dependency injection functions."""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from doctors_portal.api.models import normalize_email
from doctors_portal.auth import Identity, InvalidCredentialError
from doctors_portal.config import Settings, load_settings
from doctors_portal.portal import Portal


security = HTTPBearer(auto_error=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings from the environment (cached singleton)."""
    return load_settings()


_portal: Optional[Portal] = None


def get_portal() -> Portal:
    """
    Get or create the Portal singleton.

    Pattern: build services once, reuse across requests. Tests replace
    this dependency with a Portal bound to an in-memory database.
    """
    global _portal
    if _portal is None:
        _portal = Portal.from_settings(get_settings())
    return _portal


def reset_portal() -> None:
    """Drop the Portal singleton (used on shutdown)."""
    global _portal
    _portal = None


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    portal: Portal = Depends(get_portal),
) -> Identity:
    """
    Resolve the bearer token into an Identity.

    Raises:
        HTTPException 401: No Authorization header
        HTTPException 403: Invalid or expired token
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="unauthorized access",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return portal.credentials.verify(credentials.credentials)
    except InvalidCredentialError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


async def require_admin(
    identity: Identity = Depends(get_current_identity),
    portal: Portal = Depends(get_portal),
) -> Identity:
    """
    Admin-only gate.

    Raises:
        HTTPException 403: Identity is not an admin
    """
    if not await run_in_threadpool(portal.users.is_admin, identity.email):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden access")
    return identity


def require_subject(identity: Identity, email: str) -> None:
    """
    The requested subject must be the caller.

    Raises:
        HTTPException 403: Email does not match the authenticated identity
    """
    if normalize_email(email) != identity.email:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden access")
