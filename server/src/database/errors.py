"""Errors raised while bootstrapping the MongoDB connection."""


class DatabaseBootstrapError(Exception):
    """Base class for startup database failures."""


class ConfigurationMissingError(DatabaseBootstrapError):
    """Required database credentials are not configured."""


class DatabaseConnectionError(DatabaseBootstrapError):
    """The database cluster could not be reached."""


class DatabaseProbeError(DatabaseBootstrapError):
    """The cluster answered but rejected the ping command."""
