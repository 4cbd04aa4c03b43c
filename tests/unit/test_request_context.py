"""
Unit tests for request correlation.

Tests cover:
- Propagating an inbound x-request-id
- Generating unique ids when the header is missing or unusable
- Monotonic start timestamps and duration measurement
- The structured-logging payload returned by extract_base_properties
"""

import time
import uuid

import pytest
from starlette.responses import Response
from starlette.routing import Route

from server.src.middleware.request_context import (
    REQUEST_ID_HEADER,
    UNMATCHED_ROUTE_LABEL,
    RequestContextMiddleware,
    begin_request,
    duration_ms_from,
    extract_base_properties,
    generate_request_id,
    is_acceptable_request_id,
    route_label,
    start_request,
)


class TestBeginRequest:
    """Tests for begin_request."""

    def test_propagates_inbound_request_id(self, make_request):
        request = make_request(headers={"x-request-id": "abc"})
        response = Response()

        context = begin_request(request, response)

        assert context.correlation_id == "abc"
        assert request.state.rid == "abc"
        assert response.headers[REQUEST_ID_HEADER] == "abc"

    def test_generates_id_when_header_missing(self, make_request):
        request = make_request()
        response = Response()

        context = begin_request(request, response)

        assert context.correlation_id
        assert uuid.UUID(context.correlation_id).version == 4
        assert response.headers[REQUEST_ID_HEADER] == context.correlation_id
        assert request.state.rid == context.correlation_id

    def test_generates_id_when_header_empty(self, make_request):
        request = make_request(headers={"x-request-id": ""})

        context = begin_request(request, Response())

        assert context.correlation_id != ""

    def test_generated_ids_are_unique(self, make_request):
        first = begin_request(make_request(), Response())
        second = begin_request(make_request(), Response())

        assert first.correlation_id != second.correlation_id

    def test_records_monotonic_start_time(self, make_request):
        request = make_request()
        before = time.perf_counter_ns()

        context = begin_request(request, Response())

        assert request.state.t0 == context.start_time
        assert before <= context.start_time <= time.perf_counter_ns()

    def test_does_not_touch_request_body(self, make_request):
        request = make_request(method="POST")

        begin_request(request, Response())

        assert not hasattr(request, "_body")

    def test_rejects_oversized_inbound_id(self, make_request):
        request = make_request(headers={"x-request-id": "a" * 500})

        context = begin_request(request, Response())

        assert context.correlation_id != "a" * 500
        assert len(context.correlation_id) == 36

    def test_respects_custom_max_length(self, make_request):
        request = make_request(headers={"x-request-id": "abcdef"})

        context = start_request(request, max_length=3)

        assert context.correlation_id != "abcdef"


class TestRequestIdValidation:
    """Tests for inbound id acceptance."""

    @pytest.mark.parametrize("value", ["abc", "req-42", "3f1c9b1e-7e55-4b1a-9d38-1f0e1c2a7b10", "a b"])
    def test_accepts_printable_ids(self, value):
        assert is_acceptable_request_id(value)

    @pytest.mark.parametrize("value", [None, "", "   ", "abc\tdef", "café"])
    def test_rejects_blank_or_non_printable_ids(self, value):
        assert not is_acceptable_request_id(value)

    def test_generate_request_id_is_uuid4(self):
        assert uuid.UUID(generate_request_id()).version == 4


class TestExtractBaseProperties:
    """Tests for extract_base_properties."""

    def test_returns_fixed_keys(self, make_request):
        request = make_request(
            headers={"x-request-id": "abc", "user-agent": "pytest-agent"},
            path="/api/lectures/12",
            method="DELETE",
        )
        start_request(request)

        properties = extract_base_properties(request)

        assert properties == {
            "rid": "abc",
            "ip": "10.0.0.7",
            "ua": "pytest-agent",
            "path": "/api/lectures/12",
            "method": "DELETE",
        }

    def test_is_pure(self, make_request):
        request = make_request(headers={"user-agent": "pytest-agent"})
        start_request(request)

        assert extract_base_properties(request) == extract_base_properties(request)
        assert request.state.rid == extract_base_properties(request)["rid"]

    def test_missing_user_agent_is_empty_string(self, make_request):
        request = make_request()

        assert extract_base_properties(request)["ua"] == ""

    def test_prefers_forwarded_for_over_peer(self, make_request):
        request = make_request(headers={"x-forwarded-for": "203.0.113.9, 10.0.0.1"})

        assert extract_base_properties(request)["ip"] == "203.0.113.9, 10.0.0.1"

    def test_falls_back_to_peer_address(self, make_request):
        request = make_request(client=("192.0.2.44", 4000))

        assert extract_base_properties(request)["ip"] == "192.0.2.44"

    def test_missing_peer_address_is_empty_string(self, make_request):
        request = make_request(client=None)

        assert extract_base_properties(request)["ip"] == ""

    def test_unstarted_request_has_no_rid(self, make_request):
        request = make_request(headers={"x-request-id": "abc"})

        assert extract_base_properties(request)["rid"] is None


def test_duration_ms_from_is_non_negative():
    t0 = time.perf_counter_ns()
    time.sleep(0.01)

    elapsed = duration_ms_from(t0)

    assert elapsed >= 9.0


class TestRequestContextMiddleware:
    """ASGI-level tests for RequestContextMiddleware."""

    @pytest.mark.asyncio
    async def test_passes_through_non_http_scopes(self):
        seen = []

        async def app(scope, receive, send):
            seen.append(scope["type"])

        await RequestContextMiddleware(app)({"type": "lifespan"}, None, None)

        assert seen == ["lifespan"]

    @pytest.mark.asyncio
    async def test_injects_header_into_response_start(self, make_request):
        scope = make_request(headers={"x-request-id": "asgi-1"}).scope
        seen_rid = []
        sent = []

        async def app(scope, receive, send):
            seen_rid.append(scope["state"]["rid"])
            await send({"type": "http.response.start", "status": 204, "headers": []})
            await send({"type": "http.response.body", "body": b""})

        async def send(message):
            sent.append(message)

        await RequestContextMiddleware(app)(scope, None, send)

        assert seen_rid == ["asgi-1"]
        assert (b"x-request-id", b"asgi-1") in sent[0]["headers"]
        assert sent[0]["status"] == 204


class TestRouteLabel:
    """Tests for the metrics route label."""

    def test_uses_matched_route_template(self):
        route = Route("/api/lectures/{lecture_id}", endpoint=lambda request: Response())

        assert route_label({"route": route}) == "/api/lectures/{lecture_id}"

    def test_unmatched_request_shares_one_label(self):
        assert route_label({"path": "/wp-login.php"}) == UNMATCHED_ROUTE_LABEL
