"""
MongoDB connection bootstrap.

The server opens exactly one MongoDB client at startup, pinned to the Stable
API in strict mode, and verifies it with a ``ping`` against the application
database before any request is served. The resulting
:class:`DatabaseConnection` is handed to the application explicitly.

Failure policy lives at the process entry point: :func:`connect_database`
raises a typed :class:`DatabaseBootstrapError`, and :func:`bootstrap_or_exit`
turns that into exit status 1.
"""

import sys
from enum import Enum
from typing import Callable, Optional
from urllib.parse import quote_plus

import structlog
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConfigurationError, ConnectionFailure, OperationFailure, PyMongoError
from pymongo.server_api import ServerApi

from server.src.config import Settings
from server.src.database.errors import (
    ConfigurationMissingError,
    DatabaseConnectionError,
    DatabaseProbeError,
)
from shared.logging import LoggerMixin

logger = structlog.get_logger(__name__)

ClientFactory = Callable[..., MongoClient]


class ConnectionState(str, Enum):
    """Bootstrap state of the database connection."""

    NOT_CONNECTED = "not_connected"
    PROBE_PENDING = "probe_pending"
    CONNECTED = "connected"
    FAILED = "failed"


class DatabaseConnection(LoggerMixin):
    """Application-facing MongoDB connection."""

    def __init__(self, client: MongoClient, database_name: str) -> None:
        """
        Wrap an open client.

        Args:
            client: MongoDB client
            database_name: Name of the application database
        """
        self.client = client
        self.database_name = database_name
        self.state = ConnectionState.NOT_CONNECTED

    @property
    def db(self) -> Database:
        """Handle to the application database."""
        return self.client[self.database_name]

    def ping(self) -> bool:
        """
        Issue a ping against the application database.

        Returns:
            True when the server answered, False otherwise
        """
        try:
            self.db.command("ping")
            return True
        except PyMongoError as e:
            self.logger.warning("database_ping_failed", database=self.database_name, error=str(e))
            return False

    def close(self) -> None:
        """Close the underlying client."""
        self.client.close()
        self.logger.info("database_closed", database=self.database_name)


def build_mongo_uri(settings: Settings) -> str:
    """
    Compose the MongoDB connection string from settings.

    Args:
        settings: Application settings

    Returns:
        Connection string with escaped credentials

    Raises:
        ConfigurationMissingError: user name or password is not configured
    """
    missing = [
        name
        for name, value in (
            ("MONGO_USER_NAME", settings.mongo_user_name),
            ("MONGO_USER_PASSWORD", settings.mongo_user_password),
        )
        if not value
    ]
    if missing:
        raise ConfigurationMissingError(f"Missing database configuration: {', '.join(missing)}")

    uri = (
        f"{settings.mongo_scheme}://"
        f"{quote_plus(settings.mongo_user_name)}:{quote_plus(settings.mongo_user_password)}"
        f"@{settings.mongo_cluster_host}/{settings.mongo_database}"
    )
    if settings.mongo_uri_options:
        uri = f"{uri}?{settings.mongo_uri_options}"
    return uri


def connect_database(
    settings: Settings,
    client_factory: ClientFactory = MongoClient,
) -> DatabaseConnection:
    """
    Open the application's MongoDB connection and verify it with a ping.

    Args:
        settings: Application settings
        client_factory: Callable building the client (``MongoClient`` by default)

    Returns:
        Connected DatabaseConnection

    Raises:
        ConfigurationMissingError: credentials are not configured
        DatabaseConnectionError: the client could not be built or the cluster
            could not be reached
        DatabaseProbeError: the ping command was rejected
    """
    uri = build_mongo_uri(settings)

    logger.info(
        "database_connecting",
        host=settings.mongo_cluster_host,
        database=settings.mongo_database,
        server_api_version=settings.mongo_server_api_version,
    )

    try:
        client = client_factory(
            uri,
            server_api=ServerApi(
                settings.mongo_server_api_version,
                strict=True,
                deprecation_errors=True,
            ),
            serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
        )
    except (ConfigurationError, ConnectionFailure, ValueError, TypeError) as e:
        raise DatabaseConnectionError(f"Could not create MongoDB client: {e}") from e

    connection = DatabaseConnection(client, settings.mongo_database)
    connection.state = ConnectionState.PROBE_PENDING

    try:
        connection.db.command("ping")
    except ConnectionFailure as e:
        connection.state = ConnectionState.FAILED
        client.close()
        raise DatabaseConnectionError(f"MongoDB cluster unreachable: {e}") from e
    except OperationFailure as e:
        connection.state = ConnectionState.FAILED
        client.close()
        raise DatabaseProbeError(f"MongoDB ping rejected: {e}") from e
    except Exception as e:
        connection.state = ConnectionState.FAILED
        client.close()
        raise DatabaseConnectionError(f"MongoDB ping failed: {e}") from e

    logger.info("database_ping_succeeded", database=settings.mongo_database)

    connection.state = ConnectionState.CONNECTED
    logger.info(
        "database_connected",
        host=settings.mongo_cluster_host,
        database=settings.mongo_database,
    )
    return connection


def bootstrap_or_exit(
    settings: Settings,
    client_factory: ClientFactory = MongoClient,
) -> DatabaseConnection:
    """
    Connect to MongoDB or terminate the process with exit status 1.

    No retry is attempted; the server does not run without its database.
    Any failure, typed or not, is logged once as ``database_bootstrap_failed``
    before exiting.
    """
    try:
        return connect_database(settings, client_factory=client_factory)
    except Exception as e:
        logger.error(
            "database_bootstrap_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        sys.exit(1)


def close_database(connection: Optional[DatabaseConnection]) -> None:
    if connection is not None:
        connection.close()
