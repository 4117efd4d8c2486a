"""Fixtures for Web API tests."""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client():
    """Test client over a fresh app; the lifespan runs inside the with block."""
    from woodie.web.api import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def auth():
    """Build the X-User-Id header for a user."""

    def _headers(user) -> dict[str, str]:
        return {"X-User-Id": str(user.id)}

    return _headers
