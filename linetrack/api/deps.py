"""FastAPI dependencies for linetrack.

Shared services are stored on app.state by create_app() and handed to
routes through Depends().
"""

from fastapi import Request


async def get_db_manager(request: Request):
    """Get DatabaseManager from app state."""
    return request.app.state.db_manager


async def get_engine(request: Request):
    """Get LineTrackerEngine from app state."""
    return request.app.state.engine
