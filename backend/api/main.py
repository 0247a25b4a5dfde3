"""
Zeami Watcher API Main Application.

FastAPI application with CORS, error handling, and lifecycle management.
Requires Python 3.11+.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import get_watcher_service, set_watcher_service
from utils.config import get_settings
from utils.logger import configure_logging, get_logger


# Initialize logging
configure_logging()
logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Stops a running watcher on shutdown so no watcher threads outlive the app.
    """
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        project_root=str(settings.watcher.project_root),
    )

    yield

    logger.info("shutting_down_application")
    service = get_watcher_service()
    if service is not None:
        await asyncio.to_thread(service.stop)
        set_watcher_service(None)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()

    application = FastAPI(
        title=settings.app_name,
        description="Debounced, filtered file change notifications for the Zeami UI",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if settings.is_development else "An unexpected error occurred",
            },
        )

    @application.get("/health")
    async def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        service = get_watcher_service()
        return {
            "status": "healthy",
            "version": settings.app_version,
            "watcher": service.state.value if service is not None else "stopped",
        }

    # Import and include routers here to avoid circular imports
    from api.routes import watcher, websocket

    application.include_router(watcher.router, prefix="/watcher", tags=["Watcher"])
    application.include_router(websocket.router, prefix="/ws", tags=["WebSocket"])

    return application


# Create the application instance
app = create_app()
