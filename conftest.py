"""
Global pytest configuration and fixtures for the ServiceNow client tests.

Fixtures are organized by purpose: environment, HTTP mocking and clients.
"""

import json
import os
import tempfile
from typing import Any, Dict, Optional
from unittest.mock import Mock

import pytest
import requests

# Keep log files out of the working tree; must happen before nowclient is imported
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="nowclient-logs-"))

from nowclient.api import ServiceNowClient, ServiceNowConnection  # noqa: E402
from nowclient.utils.config import reset_config  # noqa: E402


INSTANCE = "http://venXXXXX.service-now.com"
BASE_URL = f"{INSTANCE}/api/now/table"


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def mock_env_vars(monkeypatch):
    """Mock ServiceNow environment variables for testing."""
    env_vars = {
        "SERVICENOW_INSTANCE": "dev12345",
        "SERVICENOW_USER": "user",
        "SERVICENOW_PASSWORD": "pass",
    }

    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)

    reset_config()
    yield env_vars
    reset_config()


# ============================================================================
# HTTP Fixtures
# ============================================================================

def make_response(status_code: int = 200, json_body: Any = None, content: bytes = b"",
                  reason: str = "OK", headers: Optional[Dict[str, str]] = None) -> requests.Response:
    """Build a real requests.Response without any network access."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response._content = json.dumps(json_body).encode("utf-8") if json_body is not None else content
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    return response


@pytest.fixture
def response_factory():
    """Factory for fake HTTP responses."""
    return make_response


@pytest.fixture
def session():
    """A requests session whose request method is mocked."""
    http_session = requests.Session()
    http_session.request = Mock(return_value=make_response(json_body={"result": []}))
    return http_session


@pytest.fixture
def connection(session):
    """Connection to a fake instance."""
    return ServiceNowConnection(INSTANCE, "user", "pass", session=session)


@pytest.fixture
def client(session):
    """Record client for a fake instance."""
    return ServiceNowClient(INSTANCE, "user", "pass", session=session)


# ============================================================================
# Markers
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
