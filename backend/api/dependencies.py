"""
Zeami Watcher API Dependencies.

Shared dependencies for FastAPI routes.
Requires Python 3.11+.
"""

from typing import Any

from fastapi import HTTPException

from watcher.service import WatcherService


# Shared state - populated by the watcher routes, cleared by main.py lifespan
_state: dict[str, Any] = {}


def set_watcher_service(service: WatcherService | None) -> None:
    """Set the shared watcher service instance."""
    _state["watcher_service"] = service


def get_watcher_service() -> WatcherService | None:
    """Get the shared watcher service instance."""
    return _state.get("watcher_service")


def require_watcher_service() -> WatcherService:
    """
    Dependency that requires a watcher service.

    Raises HTTPException if the watcher was never started.
    """
    service = get_watcher_service()
    if service is None:
        raise HTTPException(
            status_code=409,
            detail="Watcher has not been started",
        )
    return service
