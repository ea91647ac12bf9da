"""
Bearer token authentication for the FastAPI API.
"""

from typing import Optional

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.dependencies import get_auth_service
from catalog.auth import AuthService
from catalog.exceptions import UnauthenticatedError
from catalog.models import Identity

logger = structlog.get_logger(__name__)

# Missing headers are reported through UnauthenticatedError, not FastAPI's 403
security = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth: AuthService = Depends(get_auth_service)
) -> Identity:
    """
    Resolve the bearer token of the request to an identity.

    Raises:
        UnauthenticatedError: Missing, invalid or expired token, or unusable account
    """
    if credentials is None:
        raise UnauthenticatedError("Authentication required")

    try:
        return await auth.resolve(credentials.credentials)
    except UnauthenticatedError as e:
        logger.warning("Token rejected", reason=e.message)
        raise


async def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth: AuthService = Depends(get_auth_service)
) -> Optional[Identity]:
    """Identity for endpoints open to anonymous callers; a bad token still fails."""
    if credentials is None:
        return None
    return await auth.resolve(credentials.credentials)
