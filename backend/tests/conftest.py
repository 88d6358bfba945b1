"""
Backend Tests - Shared Fixtures and Utilities

pytest conftest.py with shared fixtures for all test files.
Outbound HTTP is never real: tests hand a RecordingTransport (an
httpx.MockTransport that keeps every request) to the code under test.
"""

import sys
from pathlib import Path
from typing import Callable

import httpx
import pytest

# Add backend to path for imports (before other local imports)
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config import Settings, get_settings  # noqa: E402
from app.limiter import limiter  # noqa: E402
from app.utils import telemetry  # noqa: E402

INTERNAL_DOMAIN = "internal.example.it"


# =============================================================================
# Utility Functions
# =============================================================================


def make_settings(**overrides) -> Settings:
    """Settings isolated from the process environment's .env files."""
    base = {
        "valueserp_key": "test-valueserp-key",
        "serpapi_key": "test-serpapi-key",
        "internal_search_domains": [INTERNAL_DOMAIN],
        "alternate_engine_domains": ["msn.com"],
        "site_overrides": [],
        "probe_timeout_seconds": 1.0,
        "search_timeout_seconds": 1.0,
    }
    base.update(overrides)
    return Settings(_env_file=None, **base)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that records every outbound request in order."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request):
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


def html_page(body: str, title: str = "", description: str = "") -> str:
    head = f"<title>{title}</title>" if title else ""
    if description:
        head += f'<meta name="description" content="{description}">'
    return f"<html><head>{head}</head><body>{body}</body></html>"


# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture(autouse=True)
def _reset_process_state():
    """Rate-limit counters and telemetry are process-wide; start each test clean."""
    limiter.reset()
    telemetry.reset()
    yield


@pytest.fixture
def api_client():
    """
    Build a TestClient with overridden settings/transport.

    Usage: client = api_client(settings, transport)
    """
    from fastapi.testclient import TestClient

    from app.main import app
    from app.routers.search import get_transport

    def _build(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> TestClient:
        app.dependency_overrides[get_settings] = lambda: settings
        app.dependency_overrides[get_transport] = lambda: transport
        return TestClient(app)

    yield _build
    app.dependency_overrides.clear()


# =============================================================================
# Pytest Markers and Hooks
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests that make real API calls"
    )
