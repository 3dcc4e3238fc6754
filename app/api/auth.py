"""
Authentication dependencies.

The upstream gateway verifies the user and forwards the acting (id, role) pair in
X-Actor-Id / X-Actor-Role. Maintenance endpoints use the admin API key instead.
"""
from fastapi import Header, HTTPException, Security
from fastapi.security import APIKeyHeader

from app.core.config import settings
from app.services.actor import Actor

# API Key header name
API_KEY_HEADER = "X-Admin-API-Key"
ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"

# Security scheme
api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def get_admin_auth(api_key: str | None = Security(api_key_header)) -> bool:
    """
    Verify admin API key from header.

    Args:
        api_key: API key from X-Admin-API-Key header

    Returns:
        True if authenticated

    Raises:
        HTTPException: If API key is missing or invalid
        RuntimeError: If in production without admin_api_key configured
    """
    # Production safety: refuse to serve if admin_api_key not set in production
    if settings.app_env == "production" and not settings.admin_api_key:
        raise RuntimeError(
            "ADMIN_API_KEY must be set in production environment. "
            "Set ADMIN_API_KEY environment variable or set APP_ENV=dev for development."
        )

    # If no admin_api_key is configured, allow access (dev mode only)
    if not settings.admin_api_key:
        return True

    if not api_key:
        raise HTTPException(status_code=401, detail="Missing API key. Provide X-Admin-API-Key header.")

    if api_key != settings.admin_api_key:
        raise HTTPException(status_code=403, detail="Invalid API key.")

    return True


def get_actor(
    actor_id: str | None = Header(default=None, alias=ACTOR_ID_HEADER),
    actor_role: str | None = Header(default=None, alias=ACTOR_ROLE_HEADER),
) -> Actor:
    """
    Resolve the acting user from gateway headers.

    Raises:
        HTTPException: 401 if either header is missing or the role is unknown
    """
    if not actor_id or not actor_role:
        raise HTTPException(
            status_code=401,
            detail=f"Missing actor. Provide {ACTOR_ID_HEADER} and {ACTOR_ROLE_HEADER} headers.",
        )
    try:
        return Actor(user_id=actor_id.strip(), role=actor_role.strip().lower())
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e