"""Authentication middleware for FastAPI."""

import asyncio
from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lifemap.core.config import get_settings
from lifemap.core.errors import AuthorizationError
from lifemap.core.logging import get_logger

logger = get_logger(__name__)

# HTTP Bearer scheme for Authorization header
security = HTTPBearer(auto_error=False)


class AuthContext:
    """Context object containing authenticated user info."""

    def __init__(self, user_id: UUID, token: str, email: Optional[str] = None):
        self.user_id = user_id
        self.token = token
        self.email = email


def _verify_token(token: str):
    from lifemap.db.supabase_client import get_supabase

    return get_supabase().auth.get_user(token)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthContext]:
    """
    Extract and validate the current user from the request.

    The Supabase check runs in a worker thread under a hard timeout
    (AUTH_TIMEOUT_SECONDS). A timeout or failed check yields no identity.

    Returns None if no valid auth is present.
    """
    if not credentials:
        return None

    token = credentials.credentials
    timeout = get_settings().AUTH_TIMEOUT_SECONDS

    try:
        auth_response = await asyncio.wait_for(asyncio.to_thread(_verify_token, token), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Auth check timed out after {timeout}s")
        return None
    except Exception as e:
        logger.warning(f"Auth error: {e}")
        return None

    if not auth_response or not auth_response.user:
        return None

    return AuthContext(
        user_id=UUID(str(auth_response.user.id)),
        token=token,
        email=getattr(auth_response.user, "email", None),
    )


async def require_auth(
    auth: Optional[AuthContext] = Depends(get_current_user),
) -> AuthContext:
    """Require authentication. Raises AuthorizationError (401) if not authenticated."""
    if not auth:
        raise AuthorizationError("Not authenticated")
    return auth
