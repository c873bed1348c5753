"""
X-API-Key check for the /queries routes.

Off unless API_AUTH_ENABLED=true. Scheduled queries push data with the
stored grid credentials of their requestor, so any deployment reachable
beyond localhost should turn it on and set API_KEY.

Both values are read once at import; tests reload this module after
changing the environment.
"""

import os
import secrets
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false").lower() == "true"
API_KEY = os.getenv("API_KEY", "")

api_key_header = APIKeyHeader(
    name="X-API-Key",
    auto_error=False,
    description="Shared secret; required only when API_AUTH_ENABLED=true",
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "ApiKey"},
    )


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> Optional[str]:
    """
    Dependency attached to every /queries route.

    Returns None while auth is disabled, otherwise the accepted key.
    An unset API_KEY rejects every request.
    """
    if not API_AUTH_ENABLED:
        return None

    if not api_key:
        raise _unauthorized("Missing API key. Send it in the X-API-Key header.")

    if not API_KEY or not secrets.compare_digest(api_key, API_KEY):
        raise _unauthorized("Invalid API key")

    return api_key
