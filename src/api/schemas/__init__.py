"""
API Schemas package.

Pydantic models for request/response validation.
"""

from .queries import (
    QueryScheduleRequest,
    QueryResponse,
    QueryListResponse,
    QueryDeleteResponse,
    QuerySyncResponse,
)

__all__ = [
    "QueryScheduleRequest",
    "QueryResponse",
    "QueryListResponse",
    "QueryDeleteResponse",
    "QuerySyncResponse",
]
