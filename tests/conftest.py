"""Shared fixtures: a mock Calendar API server and a client pointed at it."""

import httplib2
import pytest

from cali.calendar import CalendarClient
from cali.testing import MockCalendarServer


@pytest.fixture(scope="session")
def mock_server():
    """One mock server for the whole run; tests reset it via `server`."""
    server = MockCalendarServer()
    yield server
    server.close()


@pytest.fixture
def server(mock_server):
    """Mock server with empty state."""
    mock_server.reset()
    yield mock_server
    mock_server.reset()


@pytest.fixture
def client(server):
    """CalendarClient talking to the mock server."""
    return CalendarClient(http=httplib2.Http(), endpoint=server.url)
