"""
Scheduler state management for API integration.

Provides singleton access to the QueryScheduler instance.
Initialized during FastAPI lifespan, which also loads persisted queries.

Usage:
    from ._scheduler_state import get_scheduler_service, init_scheduler_service

    # In lifespan:
    init_scheduler_service(db_path)

    # In routers:
    service = get_scheduler_service()
"""

from pathlib import Path
from typing import Optional

from src.scheduler.service import QueryScheduler


# Global scheduler service instance
_scheduler_service: Optional[QueryScheduler] = None


def init_scheduler_service(
    db_path: str | Path,
    api_url: Optional[str] = None,
) -> QueryScheduler:
    """
    Initialize the scheduler service singleton.

    Args:
        db_path: Path to SQLite database
        api_url: Grid API base URL override

    Returns:
        Initialized QueryScheduler
    """
    global _scheduler_service

    if _scheduler_service is not None:
        return _scheduler_service

    _scheduler_service = QueryScheduler.create(db_path=db_path, api_url=api_url)
    return _scheduler_service


def set_scheduler_service(service: QueryScheduler) -> None:
    """Install a pre-built scheduler (used by tests)."""
    global _scheduler_service
    _scheduler_service = service


def get_scheduler_service() -> QueryScheduler:
    """
    Get the scheduler service singleton.

    Raises:
        RuntimeError: If scheduler service not initialized
    """
    if _scheduler_service is None:
        raise RuntimeError(
            "Scheduler service not initialized. "
            "Ensure init_scheduler_service() is called during startup."
        )

    return _scheduler_service


def shutdown_scheduler_service() -> None:
    """
    Shutdown the scheduler service.

    Called during FastAPI lifespan shutdown. Cancels every timer.
    """
    global _scheduler_service

    if _scheduler_service is not None:
        _scheduler_service.unschedule_all()
        _scheduler_service = None
