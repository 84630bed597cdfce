"""Shared pytest fixtures.

The ERP is replaced by a fake aiohttp session that answers from canned
responses, the bus by an in-memory bus and the archive by a temp directory.
"""

import json
from typing import Any, Dict, List, Optional

import pytest


# =============================================================================
# Fake ERP Session
# =============================================================================

class FakeResponse:
    """Response of the fake session, usable as ``async with``."""

    def __init__(self, status: int, body: str):
        self.status = status
        self._body = body

    async def text(self) -> str:
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """aiohttp-compatible session answering from canned responses.

    Responses are registered per method and URL fragment. The most specific
    fragment wins. Responses of a route are returned in order, the last one
    is repeated.

    Usage:
        session = FakeSession()
        session.add("GET", "/to_ProductionOrderComponent", 200, {"d": {"results": []}})
    """

    def __init__(self):
        self.routes: List[Dict[str, Any]] = []
        self.requests: List[Dict[str, Any]] = []
        self.closed = False

    def add(self, method: str, fragment: str, status: int = 200, body: Any = None) -> "FakeSession":
        text = body if isinstance(body, str) else json.dumps(body if body is not None else {})
        for route in self.routes:
            if route["method"] == method and route["fragment"] == fragment:
                route["responses"].append((status, text))
                return self
        self.routes.append({"method": method, "fragment": fragment, "responses": [(status, text)]})
        return self

    def requests_to(self, fragment: str, method: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            r for r in self.requests
            if fragment in r["url"] and (method is None or r["method"] == method)
        ]

    def request(self, method, url, headers=None, data=None, timeout=None):
        self.requests.append({"method": method, "url": url, "headers": headers, "data": data})
        candidates = [
            r for r in self.routes
            if r["method"] == method and r["fragment"] in url
        ]
        if not candidates:
            raise AssertionError(f"Unexpected request {method} {url}")
        route = max(candidates, key=lambda r: len(r["fragment"]))
        responses = route["responses"]
        status, text = responses.pop(0) if len(responses) > 1 else responses[0]
        return FakeResponse(status, text)

    async def close(self):
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def erp_session():
    return FakeSession()


@pytest.fixture
def make_runtime(tmp_path, erp_session):
    """Factory for runtimes with fakes, settings can be overridden."""
    from activities.runtime import build_runtime
    from connectors.bus import InMemoryBus
    from core.config import IntegrationSettings
    from core.eligibility import CharacteristicIdCache

    def _make(**overrides):
        values = {
            "erp_base_url": "http://erp.test",
            "archive_path": tmp_path / "archive",
        }
        values.update(overrides)
        return build_runtime(
            IntegrationSettings(**values),
            bus=InMemoryBus(),
            session=erp_session,
            cache=CharacteristicIdCache(),
        )

    return _make


@pytest.fixture
def runtime(make_runtime):
    return make_runtime()


@pytest.fixture(autouse=True)
def reset_telemetry():
    from core.observability.telemetry import get_telemetry

    get_telemetry().reset()
    yield
    get_telemetry().reset()
