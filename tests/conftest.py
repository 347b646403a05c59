"""Pytest shared fixtures for roster export tests."""
import json
import os
import pathlib
import sys
from types import SimpleNamespace
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from roster.config import ExportConfig
from roster.core.keycloak import KeycloakClient


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_real_http(monkeypatch, request):
    """
    Prevent unit tests from hitting a live Keycloak.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _refuse(self, prepared, **kwargs):
        raise AssertionError(f"Unexpected real HTTP call in unit test: {prepared.method} {prepared.url}")

    monkeypatch.setattr(requests.Session, "send", _refuse)


# ─────────────────────────────────────────────────────────────────────────────
# Keycloak stubs
# ─────────────────────────────────────────────────────────────────────────────
def make_response(status_code: int = 200, payload=None, *, body: Optional[bytes] = None, url: str = "") -> requests.Response:
    """Build a real requests.Response without touching the network."""
    resp = requests.Response()
    resp.status_code = status_code
    resp._content = body if body is not None else json.dumps(payload).encode("utf-8")
    resp.encoding = "utf-8"
    resp.headers["Content-Type"] = "application/json"
    resp.url = url
    return resp


def make_users(count: int) -> list[dict]:
    return [
        {
            "id": f"id-{i:05d}",
            "createdTimestamp": 1700000000000 + i,
            "username": f"user{i:05d}",
            "enabled": True,
            "emailVerified": i % 2 == 0,
            "firstName": "First",
            "lastName": f"Last{i}",
            "email": f"user{i:05d}@example.com",
        }
        for i in range(count)
    ]


class StubKeycloakSession:
    """Duck-typed requests.Session serving a fake realm.

    Args:
        users: Realm content served by the listing endpoint
        token_response: Response returned by the token endpoint
        fail_on_get: 1-based index of the listing call that raises
        failure: Exception raised by that call
        page_bodies: Raw bodies served in order instead of slicing ``users``
    """

    def __init__(self, users=None, token_response=None, fail_on_get=None, failure=None, page_bodies=None):
        self.users = users if users is not None else []
        if token_response is None:
            token_response = make_response(200, {"access_token": "tok-123", "expires_in": 60})
        self.token_response = token_response
        self.fail_on_get = fail_on_get
        self.failure = failure or requests.ConnectionError("connection reset by peer")
        self.page_bodies = list(page_bodies) if page_bodies is not None else None
        self.posts = []
        self.gets = []
        self.closed = False

    def post(self, url, data=None, timeout=None, **kwargs):
        self.posts.append(SimpleNamespace(url=url, data=data, timeout=timeout))
        return self.token_response

    def get(self, url, params=None, headers=None, timeout=None, **kwargs):
        self.gets.append(SimpleNamespace(url=url, params=dict(params or {}), headers=dict(headers or {}), timeout=timeout))
        if self.fail_on_get is not None and len(self.gets) == self.fail_on_get:
            raise self.failure
        if self.page_bodies is not None:
            return make_response(200, body=self.page_bodies.pop(0), url=url)
        first, size = params["first"], params["max"]
        return make_response(200, self.users[first:first + size], url=url)

    def close(self):
        self.closed = True

    @property
    def offsets(self) -> list[int]:
        return [call.params["first"] for call in self.gets]


class RecordingSink:
    """Sink that keeps committed pages in memory."""

    def __init__(self):
        self.committed = []
        self.staged = None

    def emit(self, payload, content_type, attributes=None):
        assert self.staged is None, "emit() called twice without commit()"
        self.staged = (payload, content_type, attributes or {})

    def commit(self):
        assert self.staged is not None, "commit() called without emit()"
        self.committed.append(self.staged)
        self.staged = None

    @property
    def page_sizes(self) -> list[int]:
        return [len(json.loads(payload)) for payload, _, _ in self.committed]


@pytest.fixture(name="make_response")
def make_response_fixture():
    return make_response


@pytest.fixture(name="make_users")
def make_users_fixture():
    return make_users


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def sink_factory():
    return RecordingSink


@pytest.fixture
def stub_session_factory():
    return StubKeycloakSession


@pytest.fixture
def client_factory():
    """Build a KeycloakClient around a stub session."""
    def _make(session, base_url="https://kc.example.com", context_path="/auth"):
        return KeycloakClient(base_url, session=session, context_path=context_path)
    return _make


def make_config(**overrides) -> ExportConfig:
    base = dict(
        base_url="https://kc.example.com",
        admin_username="admin",
        admin_password="s3cret",
        realm="demo",
        context_path="/auth",
        page_size=200,
        tls_verify=True,
        ca_bundle=None,
        connect_timeout=30.0,
        read_timeout=60.0,
        output_dir=".runtime/export",
        demo_mode=False,
    )
    base.update(overrides)
    return ExportConfig(**base)


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def clean_export_env(monkeypatch):
    """Remove every variable load_settings() reads."""
    for var in (
        "DEMO_MODE", "KEYCLOAK_URL", "KEYCLOAK_ADMIN", "KEYCLOAK_ADMIN_PASSWORD", "KEYCLOAK_REALM",
        "KEYCLOAK_CONTEXT_PATH", "EXPORT_PAGE_SIZE", "KEYCLOAK_TLS_VERIFY", "KEYCLOAK_CA_BUNDLE",
        "KEYCLOAK_CONNECT_TIMEOUT", "KEYCLOAK_READ_TIMEOUT", "EXPORT_OUTPUT_DIR",
    ):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires running Keycloak)"
    )
