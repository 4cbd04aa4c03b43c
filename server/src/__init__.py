"""FastAPI service for the Brief study assistant.

This package provides request correlation and the MongoDB bootstrap the
rest of the server depends on.
"""

__version__ = "1.0.0"
