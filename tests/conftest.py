# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import pytest
from unittest.mock import MagicMock

from fitlog.api.client import FitLogAPIClient
from fitlog.errors import APIError
from fitlog.offline.connection_manager import ConnectionManager
from fitlog.offline.local_database import LocalDatabase
from fitlog.offline.offline_queue import OfflineQueue
from fitlog.offline.retry import RetryPolicy

BASE_URL = "http://api.test"


# =============================================================================
# STORAGE FIXTURES
# =============================================================================

@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database per test"""
    database = LocalDatabase(tmp_path / "fitlog.db").initialize()
    yield database
    database.close()


@pytest.fixture
def connection():
    """Connection manager that never touches the network; starts online"""
    manager = ConnectionManager(probe=lambda: True)
    manager.check_connection()
    return manager


@pytest.fixture
def offline(connection):
    """Connection manager forced offline"""
    connection.force_offline()
    return connection


@pytest.fixture
def no_sleep():
    """Recording sleep replacement"""
    return MagicMock(name="sleep")


@pytest.fixture
def retry_policy(no_sleep):
    return RetryPolicy(max_retries=3, base_delay_ms=1000, sleep=no_sleep)


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def api_client():
    """FitLogAPIClient double with real URL building"""
    client = MagicMock(spec=FitLogAPIClient)
    client.base_url = BASE_URL
    client.url_for.side_effect = (
        lambda path: path if path.startswith("http") else f"{BASE_URL}/{path.lstrip('/')}"
    )
    return client


@pytest.fixture
def queue(db, api_client, connection):
    return OfflineQueue(db, api_client, connection, max_retries=5, owner="test-owner")


@pytest.fixture
def mock_session():
    """requests.Session double for the real API client"""
    session = MagicMock()
    session.headers = {}
    return session


@pytest.fixture
def mock_streamlit(monkeypatch):
    """Mock Streamlit for testing"""
    import sys

    mock_st = MagicMock()
    mock_st.session_state = {}
    mock_st.cache_data = lambda f: f
    mock_st.cache_resource = lambda f: f
    monkeypatch.setitem(sys.modules, "streamlit", mock_st)
    return mock_st


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _make_response(status=200, payload=None, reason="OK"):
    """Fake requests.Response"""
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 400
    response.reason = reason
    response.content = b"" if payload is None else b"{}"
    response.json.return_value = payload
    return response


def _http_error(status):
    """APIError as raised by FitLogAPIClient for a given status"""
    return APIError(f"HTTP {status}", status=status, endpoint=BASE_URL)


@pytest.fixture
def make_response():
    return _make_response


@pytest.fixture
def http_error():
    return _http_error
