"""
API Dependencies package.

Optional X-API-Key authentication for the /queries routes.
"""

from .auth import verify_api_key, API_AUTH_ENABLED

__all__ = ["verify_api_key", "API_AUTH_ENABLED"]
