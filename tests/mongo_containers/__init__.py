"""MongoDB testcontainers for integration testing."""

from .containers import MongoDBContainer

__all__ = [
    "MongoDBContainer",
]
