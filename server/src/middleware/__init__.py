"""FastAPI middleware components.

This package contains middleware for request correlation and request
metadata extraction used by logging.
"""

from server.src.middleware.request_context import (
    FORWARDED_FOR_HEADER,
    REQUEST_ID_HEADER,
    RequestContext,
    RequestContextMiddleware,
    begin_request,
    duration_ms_from,
    extract_base_properties,
    generate_request_id,
    start_request,
)

__all__ = [
    "FORWARDED_FOR_HEADER",
    "REQUEST_ID_HEADER",
    "RequestContext",
    "RequestContextMiddleware",
    "begin_request",
    "duration_ms_from",
    "extract_base_properties",
    "generate_request_id",
    "start_request",
]
