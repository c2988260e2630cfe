"""FastAPI main application with app factory and route configuration."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .deps import get_app_settings, get_settings
from .exceptions import InternalError, TaskNotFoundError, TaskValidationError
from .routes import todos
from .schemas import HealthResponse, format_validation_errors
from .services.todo_store import create_todo_store
from .utils.logging import configure_request_logging, log_shutdown_info, log_startup_info, setup_logging

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


def _error_body(message: str, **extra) -> dict:
    body = {"success": False, "message": message}
    body.update({key: value for key, value in extra.items() if value is not None})
    return body


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events.

    Args:
        app: FastAPI application instance
    """
    settings: Settings = app.state.settings

    try:
        setup_logging(settings)
        log_startup_info(settings)

        todo_store = create_todo_store(settings)
        app.state.todo_store = todo_store
        if todo_store.load_error is not None:
            logger.warning(f"Todo store started empty: {todo_store.load_error}")
        logger.info("Todo store initialized")

        logger.info("Application startup completed successfully")

    except Exception as e:
        logger.error(f"Error during application startup: {str(e)}")
        raise

    yield

    app.state.todo_store = None
    log_shutdown_info()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to run with (environment settings when omitted)

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Todo Service",
        description="Task list API with filtering, search, manual ordering and statistics",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.todo_store = None

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging middleware
    app.middleware("http")(configure_request_logging())

    # Custom exception handlers
    @app.exception_handler(TaskValidationError)
    async def task_validation_exception_handler(request: Request, exc: TaskValidationError):
        """Handle store validation failures."""
        logger.warning(f"Validation failed for {request.method} {request.url}: {exc.errors}")

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body(exc.message, errors=exc.errors),
        )

    @app.exception_handler(TaskNotFoundError)
    async def task_not_found_exception_handler(request: Request, exc: TaskNotFoundError):
        """Handle lookups of missing todos."""
        logger.warning(f"Todo {exc.task_id} not found for {request.method} {request.url}")

        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=_error_body("Todo not found"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors with readable messages."""
        logger.warning(f"Validation error for {request.method} {request.url}: {exc.errors()}")

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body("Validation failed", errors=format_validation_errors(exc.errors())),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with proper logging."""
        logger.warning(f"HTTP {exc.status_code}: {exc.detail} for {request.method} {request.url}")

        message = exc.detail
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            message = "API endpoint not found"

        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(message)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(InternalError)
    async def internal_exception_handler(request: Request, exc: InternalError):
        """Handle failures wrapped by the routes."""
        logger.error(f"Internal error for {request.method} {request.url}: {exc.cause}", exc_info=exc.cause)

        app_settings = get_app_settings(request)
        detail = str(exc.cause or exc) if app_settings.is_development else "Something went wrong"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(exc.message, error=detail),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(f"Unexpected error for {request.method} {request.url}: {str(exc)}", exc_info=True)

        app_settings = get_app_settings(request)
        detail = str(exc) if app_settings.is_development else "Something went wrong"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("Internal server error", error=detail),
        )

    # Health check endpoint
    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    async def health_check(request: Request) -> HealthResponse:
        """Liveness check; reports degraded storage without failing.

        Returns:
            Health status information
        """
        todo_store = getattr(request.app.state, "todo_store", None)

        storage = {"initialized": todo_store is not None}
        health_status = "healthy"
        if todo_store is None:
            health_status = "degraded"
        else:
            storage["todos"] = len(todo_store)
            if todo_store.load_error is not None:
                storage["loadError"] = str(todo_store.load_error)
                health_status = "degraded"
            if todo_store.last_persistence_error is not None:
                storage["writeError"] = str(todo_store.last_persistence_error)
                health_status = "degraded"

        return HealthResponse(status=health_status, version=APP_VERSION, storage=storage)

    # Root endpoint
    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with API information.

        Returns:
            API information and available endpoints
        """
        return {
            "name": "Todo Service API",
            "version": APP_VERSION,
            "docs_url": "/docs",
            "health_check": "/api/health",
            "endpoints": {
                "todos": "/api/todos",
                "stats": "/api/todos/stats",
                "actions": "/api/todos/actions",
            },
        }

    app.include_router(todos.router, prefix="/api")

    logger.info("FastAPI application created and configured")

    return app


def run() -> None:
    """Run the API server with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "todo_service.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_config=None,
    )


# Create the app instance
app = create_app()


if __name__ == "__main__":
    run()
