"""
FastAPI dependency injection for the database connection and request metadata.

The database connection is built once at startup and stored on
``app.state.database``; handlers receive it through :func:`get_database`
rather than importing module-level state.
"""

from typing import Dict, Optional

import structlog
from fastapi import HTTPException, Request, status

from server.src.config import Settings
from server.src.database import DatabaseConnection
from server.src.middleware import extract_base_properties

logger = structlog.get_logger(__name__)


def get_app_settings(request: Request) -> Settings:
    """Settings the running application was built with."""
    return request.app.state.settings


def get_database(request: Request) -> DatabaseConnection:
    """
    Get the application's database connection.

    Raises:
        HTTPException: 503 if the application has no connection yet
    """
    database: Optional[DatabaseConnection] = getattr(request.app.state, "database", None)
    if database is None:
        logger.error("database_not_initialized", **extract_base_properties(request))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not initialized",
        )
    return database


def get_request_properties(request: Request) -> Dict[str, Optional[str]]:
    """Structured-logging payload for the current request."""
    return extract_base_properties(request)
