"""Shared fixtures for the Brief server test suite."""

from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from starlette.requests import Request

from server.src.config import Settings


@pytest.fixture
def settings() -> Settings:
    """Settings with credentials and development logging."""
    return Settings(
        mongo_user_name="brief_user",
        mongo_user_password="s3cret",
        environment="development",
        log_format="text",
    )


@pytest.fixture
def mongo_client() -> MagicMock:
    """MongoClient double whose ping succeeds."""
    client = MagicMock(name="MongoClient")
    client.__getitem__.return_value.command.return_value = {"ok": 1.0}
    return client


@pytest.fixture
def client_factory(mongo_client):
    """Factory double returning the mongo_client fixture."""
    return MagicMock(name="client_factory", return_value=mongo_client)


@pytest.fixture
def make_request():
    """Build a Starlette request from headers and a peer address."""

    def _make(
        headers: Optional[Dict[str, str]] = None,
        client: Optional[tuple] = ("10.0.0.7", 51234),
        path: str = "/api/subjects",
        method: str = "GET",
    ) -> Request:
        raw_headers: List[tuple] = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ]
        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": method,
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "query_string": b"",
            "root_path": "",
            "headers": raw_headers,
            "client": client,
            "server": ("testserver", 80),
        }
        return Request(scope)

    return _make
