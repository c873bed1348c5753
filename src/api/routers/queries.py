"""
Queries router for scheduled grid refreshes.

- POST /queries - Schedule a query (or create a grid, then schedule)
- GET /queries - List stored queries
- GET /queries/{fid} - Get a stored query
- DELETE /queries/{fid} - Unschedule and delete a query
- POST /queries/{fid}/sync - Run one sync now
"""

from fastapi import APIRouter, HTTPException

from src.scheduler import (
    GridApiError,
    InvalidIntervalError,
    MalformedResponseError,
    QueryExecutionError,
    QueryJob,
    QueryNotFoundError,
    UnauthenticatedError,
)

from ..schemas.queries import (
    QueryScheduleRequest,
    QueryResponse,
    QueryListResponse,
    QueryDeleteResponse,
    QuerySyncResponse,
)
from .._scheduler_state import get_scheduler_service


router = APIRouter()


def _to_response(job: QueryJob, scheduled: bool) -> QueryResponse:
    return QueryResponse(**job.to_dict(), scheduled=scheduled)


@router.post("", response_model=QueryResponse, status_code=201)
async def schedule_query(request: QueryScheduleRequest):
    """
    Schedule a query.

    Replaces any query already scheduled for the same fid.
    """
    service = get_scheduler_service()

    try:
        if request.fid:
            job = service.schedule_query(
                requestor=request.requestor,
                fid=request.fid,
                uids=request.uids,
                refresh_interval=request.refresh_interval,
                query=request.query,
                connection_id=request.connection_id,
            )
        else:
            job = await service.create_and_schedule(
                requestor=request.requestor,
                filename=request.filename,
                refresh_interval=request.refresh_interval,
                query=request.query,
                connection_id=request.connection_id,
            )

    except InvalidIntervalError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UnauthenticatedError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except QueryExecutionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (GridApiError, MalformedResponseError) as e:
        raise HTTPException(status_code=502, detail=str(e))

    return _to_response(job, scheduled=service.is_scheduled(job.fid))


@router.get("", response_model=QueryListResponse)
async def list_queries():
    """List every stored query and whether its timer is armed."""
    service = get_scheduler_service()
    jobs = service.list_queries()

    return QueryListResponse(
        queries=[_to_response(job, service.is_scheduled(job.fid)) for job in jobs],
        total=len(jobs),
        active_timers=service.get_status()["active_timers"],
    )


@router.get("/{fid}", response_model=QueryResponse)
async def get_query(fid: str):
    """Get a stored query by grid fid."""
    service = get_scheduler_service()
    job = service.get_query(fid)

    if job is None:
        raise HTTPException(status_code=404, detail=f"Query not found: {fid}")

    return _to_response(job, service.is_scheduled(fid))


@router.delete("/{fid}", response_model=QueryDeleteResponse)
async def delete_query(fid: str):
    """Unschedule a query and delete its stored definition."""
    service = get_scheduler_service()

    if not service.remove_query(fid):
        raise HTTPException(status_code=404, detail=f"Query not found: {fid}")

    return QueryDeleteResponse(
        fid=fid,
        success=True,
        message="Query unscheduled and deleted",
    )


@router.post("/{fid}/sync", response_model=QuerySyncResponse)
async def sync_query(fid: str):
    """Run one sync of a stored query now."""
    service = get_scheduler_service()

    try:
        outcome = await service.sync_now(fid)
    except QueryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if outcome is None:
        return QuerySyncResponse(fid=fid, skipped=True)

    return QuerySyncResponse(
        fid=fid,
        state=outcome.state.value,
        removed=outcome.removed,
        error=str(outcome.error) if outcome.error else None,
    )
