"""
Scheduled query API schemas.

Supports the /queries endpoints.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, model_validator


class QueryScheduleRequest(BaseModel):
    """
    Request to schedule a query.

    With fid: refresh an existing grid, addressing its columns by uids.
    Without fid: create a new grid named filename, then schedule it.
    """

    requestor: str = Field(..., description="User on whose behalf the query runs")
    query: str = Field(..., description="Query text, re-run verbatim on every refresh")
    connection_id: str = Field(..., description="Registered connection to run the query against")
    refresh_interval: Optional[int] = Field(
        default=None,
        description="Seconds between refreshes (must meet the configured minimum)"
    )
    fid: Optional[str] = Field(default=None, description="Target grid id (owner:number)")
    uids: List[str] = Field(default_factory=list, description="Column uids of the target grid")
    filename: Optional[str] = Field(
        default=None,
        description="Name for a new grid when fid is omitted"
    )

    @model_validator(mode="after")
    def check_target(self) -> "QueryScheduleRequest":
        if not self.fid and not self.filename:
            raise ValueError("Either fid or filename must be provided")
        if self.fid and not self.uids:
            raise ValueError("uids are required when fid is provided")
        return self


class QueryResponse(BaseModel):
    """Response representing a scheduled query."""

    fid: str = Field(..., description="Target grid id")
    requestor: str = Field(..., description="Requesting user")
    uids: List[str] = Field(default_factory=list, description="Column uids")
    query: str = Field(..., description="Query text")
    connection_id: str = Field(..., description="Connection id")
    refresh_interval: int = Field(..., description="Seconds between refreshes")
    created_at: str = Field(..., description="Schedule timestamp (ISO format)")
    scheduled: bool = Field(default=False, description="Whether a timer is currently armed")


class QueryListResponse(BaseModel):
    """Response for query list endpoint."""

    queries: List[QueryResponse] = Field(default_factory=list)
    total: int = Field(..., description="Total number of stored queries")
    active_timers: int = Field(default=0, description="Number of armed timers")


class QueryDeleteResponse(BaseModel):
    """Response from query deletion."""

    fid: str
    success: bool
    message: Optional[str] = None


class QuerySyncResponse(BaseModel):
    """Response from a manual sync."""

    fid: str
    state: Optional[str] = Field(default=None, description="Final sync state (null if skipped)")
    skipped: bool = Field(default=False, description="A sync for this grid was already running")
    removed: bool = Field(default=False, description="Query removed because its grid is gone")
    error: Optional[str] = None
