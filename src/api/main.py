"""
FastAPI application entry point.

Serves the scheduled query API and runs the query timers inside the
server's event loop.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI

from src import __version__
from src.infra.settings import get_db_path
from .routers import queries
from ._scheduler_state import (
    init_scheduler_service,
    get_scheduler_service,
    shutdown_scheduler_service,
)
from .dependencies.auth import verify_api_key, API_AUTH_ENABLED

logger = logging.getLogger("grid_sync")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: create the scheduler and re-arm every persisted query.
    Shutdown: cancel all timers.
    """
    service = init_scheduler_service(get_db_path())
    service.load_persisted_jobs()

    yield

    shutdown_scheduler_service()


tags_metadata = [
    {
        "name": "queries",
        "description": "Scheduled queries - periodically re-run a query and push the rows to a grid",
    },
]

app = FastAPI(
    title="Grid Sync Scheduler API",
    lifespan=lifespan,
    description="""
## Grid Sync Scheduler API

Schedules database queries that refresh remote grids on a fixed interval.

### Authentication
When `API_AUTH_ENABLED=true`, all endpoints except `/health` and `/status` require
an `X-API-Key` header matching the `API_KEY` environment variable.

### Usage
```bash
# Start server
python main.py serve --host 127.0.0.1 --port 9494

# Schedule a query
curl -X POST http://localhost:9494/queries \\
  -H "Content-Type: application/json" \\
  -d '{"requestor": "alice", "fid": "alice:12", "uids": ["ab12cd"],
       "refresh_interval": 60, "query": "SELECT 1", "connection_id": "local"}'
```
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=tags_metadata,
)


# Health check - NO authentication (operational endpoints)
@app.get("/health")
async def health_check():
    """Health check endpoint. Not authenticated."""
    return {"status": "ok", "version": __version__}


@app.get("/status")
async def scheduler_status():
    """Timer and in-flight sync counts. Not authenticated."""
    return get_scheduler_service().get_status()


# Include routers WITH authentication dependency (when enabled)
auth_dependency = [Depends(verify_api_key)] if API_AUTH_ENABLED else []

app.include_router(
    queries.router, prefix="/queries", tags=["queries"], dependencies=auth_dependency
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=9494)
