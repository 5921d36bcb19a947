"""API test fixtures - TestClient over the full app with an in-memory store."""

import pytest
from starlette.testclient import TestClient

from api.app import build_services, create_app


# =============================================================================
# SERVICES DICT
# =============================================================================


@pytest.fixture
def services(store, event_bus):
    """Every service over the shared test store, so tests can seed directly."""
    return build_services(store, event_bus)


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services):
    """FastAPI app with request ids, error handlers, and data/actions routes."""
    return create_app(services)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def post_action(client):
    """POST an action envelope and return the response."""

    def _post(domain: str, action: str, data: dict):
        return client.post("/api/actions", json={"domain": domain, "action": action, "data": data})

    return _post
