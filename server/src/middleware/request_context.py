"""
Request correlation for the Brief server.

Every inbound HTTP request gets a correlation id (propagated from the
``x-request-id`` header or freshly generated) and a monotonic start
timestamp. Both are stored on ``request.state`` as ``rid`` and ``t0`` and the
id is echoed back in the ``x-request-id`` response header.

Downstream logging code calls :func:`extract_base_properties` to get a
consistent structured-logging payload for the request.
"""

import re
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, MutableMapping, Optional

import structlog
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from shared.logging import bind_context, unbind_context
from shared.metrics import HTTPMetrics

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "x-request-id"
FORWARDED_FOR_HEADER = "x-forwarded-for"
USER_AGENT_HEADER = "user-agent"

DEFAULT_REQUEST_ID_MAX_LENGTH = 128
UNMATCHED_ROUTE_LABEL = "unmatched"

_PRINTABLE_ASCII = re.compile(r"^[\x20-\x7e]+$")


@dataclass(frozen=True)
class RequestContext:
    """Correlation id and start time of one inbound request."""

    correlation_id: str
    start_time: int  # time.perf_counter_ns()


def generate_request_id() -> str:
    """Generate a new unique request id (UUID4)."""
    return str(uuid.uuid4())


def is_acceptable_request_id(value: Optional[str], max_length: int = DEFAULT_REQUEST_ID_MAX_LENGTH) -> bool:
    """
    Check whether an inbound request id can be used verbatim.

    Blank values, values longer than ``max_length`` and values containing
    anything but printable ASCII are rejected.
    """
    if not value or not value.strip():
        return False
    if len(value) > max_length:
        return False
    return _PRINTABLE_ASCII.match(value) is not None


def start_request(request: Request, max_length: int = DEFAULT_REQUEST_ID_MAX_LENGTH) -> RequestContext:
    """
    Assign the correlation id and start the request timer.

    Sets ``request.state.rid`` and ``request.state.t0``.

    Args:
        request: Inbound request
        max_length: Longest inbound id accepted verbatim

    Returns:
        The request's context
    """
    inbound = request.headers.get(REQUEST_ID_HEADER)
    correlation_id = inbound if is_acceptable_request_id(inbound, max_length) else generate_request_id()

    context = RequestContext(correlation_id=correlation_id, start_time=time.perf_counter_ns())
    request.state.rid = context.correlation_id
    request.state.t0 = context.start_time
    return context


def set_request_id_header(headers: MutableMapping[str, str], correlation_id: str) -> None:
    headers[REQUEST_ID_HEADER] = correlation_id


def begin_request(request: Request, response: Any, max_length: int = DEFAULT_REQUEST_ID_MAX_LENGTH) -> RequestContext:
    """
    Start correlation tracking for a request and tag its response.

    The inbound ``x-request-id`` is propagated when it is non-blank, printable
    ASCII and at most ``max_length`` characters long; otherwise a new id is
    generated. The response immediately carries the chosen id in its
    ``x-request-id`` header.

    Args:
        request: Inbound request
        response: Response whose ``headers`` can be mutated
        max_length: Longest inbound id accepted verbatim

    Returns:
        The request's context
    """
    context = start_request(request, max_length)
    set_request_id_header(response.headers, context.correlation_id)
    return context


def extract_base_properties(request: Request) -> Dict[str, Optional[str]]:
    """
    Build the structured-logging payload for a request.

    Keys are fixed: ``rid``, ``ip``, ``ua``, ``path`` and ``method``. ``rid`` is
    ``None`` for a request that never went through :func:`start_request`;
    the other optional fields fall back to an empty string.
    """
    forwarded_for = request.headers.get(FORWARDED_FOR_HEADER)
    peer = request.client.host if request.client else ""

    return {
        "rid": getattr(request.state, "rid", None),
        "ip": forwarded_for or peer or "",
        "ua": request.headers.get(USER_AGENT_HEADER) or "",
        "path": request.url.path,
        "method": request.method,
    }


def duration_ms_from(t0: int) -> float:
    """Milliseconds elapsed since a ``time.perf_counter_ns()`` reading."""
    return (time.perf_counter_ns() - t0) / 1e6


def route_label(scope: Scope) -> str:
    """
    Metrics label for the route that handled a request.

    The path template of the route the router matched
    (``/api/lectures/{lecture_id}``), or :data:`UNMATCHED_ROUTE_LABEL`.
    """
    return getattr(scope.get("route"), "path", None) or UNMATCHED_ROUTE_LABEL


class RequestContextMiddleware:
    """
    ASGI middleware that gives every HTTP request a correlation id.

    The id is bound into the structlog context for the duration of the
    request and injected into the response start message, so the header is
    present whichever layer produced the response. An exception escaping the
    application before the response started is logged and answered with a
    500 JSON body carrying the id.
    """

    def __init__(
        self,
        app: ASGIApp,
        metrics: Optional[HTTPMetrics] = None,
        request_id_max_length: int = DEFAULT_REQUEST_ID_MAX_LENGTH,
    ) -> None:
        self.app = app
        self.metrics = metrics
        self.request_id_max_length = request_id_max_length

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        context = start_request(request, self.request_id_max_length)
        properties = extract_base_properties(request)
        method = properties["method"]

        bind_context(rid=context.correlation_id)
        if self.metrics:
            self.metrics.requests_in_progress.labels(method=method).inc()

        status_code = 500
        response_started = False

        async def send_with_request_id(message: Message) -> None:
            nonlocal status_code, response_started
            if message["type"] == "http.response.start":
                response_started = True
                status_code = message["status"]
                set_request_id_header(MutableHeaders(scope=message), context.correlation_id)
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        except Exception as e:
            logger.error(
                "request_failed",
                **properties,
                error=str(e),
                duration_ms=round(duration_ms_from(context.start_time), 3),
                exc_info=True,
            )
            if response_started:
                raise
            response = JSONResponse(
                status_code=500,
                content={"detail": "Internal server error"},
            )
            set_request_id_header(response.headers, context.correlation_id)
            await response(scope, receive, send)
        else:
            logger.info(
                "request_completed",
                **properties,
                status_code=status_code,
                duration_ms=round(duration_ms_from(context.start_time), 3),
            )
        finally:
            if self.metrics:
                self.metrics.requests_in_progress.labels(method=method).dec()
                self.metrics.observe_request(
                    method, route_label(scope), status_code, duration_ms_from(context.start_time) / 1000
                )
            unbind_context("rid")
