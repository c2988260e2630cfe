"""Dependency injection helpers for FastAPI."""

from functools import lru_cache

from fastapi import HTTPException, Request, status

from .config import Settings, settings
from .services.todo_store import TodoStore


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return settings


def get_app_settings(request: Request) -> Settings:
    """Get the settings the running app was created with."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_todo_store(request: Request) -> TodoStore:
    """Get the todo store owned by the running app.

    Raises:
        HTTPException: If the store has not been initialized yet
    """
    store = getattr(request.app.state, "todo_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Todo store not initialized"
        )
    return store
