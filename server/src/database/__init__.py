"""MongoDB connection bootstrap."""

from server.src.database.connection import (
    ConnectionState,
    DatabaseConnection,
    bootstrap_or_exit,
    build_mongo_uri,
    close_database,
    connect_database,
)
from server.src.database.errors import (
    ConfigurationMissingError,
    DatabaseBootstrapError,
    DatabaseConnectionError,
    DatabaseProbeError,
)

__all__ = [
    "ConnectionState",
    "DatabaseConnection",
    "bootstrap_or_exit",
    "build_mongo_uri",
    "close_database",
    "connect_database",
    "ConfigurationMissingError",
    "DatabaseBootstrapError",
    "DatabaseConnectionError",
    "DatabaseProbeError",
]
