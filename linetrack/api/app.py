"""FastAPI application factory for linetrack.

Creates the FastAPI app with CORS and all route modules registered.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

logger = logging.getLogger(__name__)


def create_app(engine, db_manager) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        engine: LineTrackerEngine instance
        db_manager: DatabaseManager instance

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="linetrack API",
        description="Line-count history for source repositories",
        version="0.1.0",
    )

    # CORS for the dashboard dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store shared dependencies on app state
    app.state.engine = engine
    app.state.db_manager = db_manager

    # Register routers
    from .routes.repositories import router as repositories_router
    from .routes.failures import router as failures_router
    from .routes.preferences import router as preferences_router

    app.include_router(repositories_router, prefix="/api")
    app.include_router(failures_router, prefix="/api")
    app.include_router(preferences_router, prefix="/api")

    @app.get("/api/health")
    async def health_check():
        database = "ok" if db_manager.check_connection() else "unavailable"
        return {
            "status": "ok",
            "service": "linetrack",
            "database": database,
            "retry_scheduler": "running" if engine.scheduler.is_running else "stopped",
        }

    logger.info("FastAPI app created with all routes registered")
    return app
