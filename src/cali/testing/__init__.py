"""In-process stand-in for the Google Calendar API, for tests.

Usage:
    from cali.testing import MockCalendarServer

    with MockCalendarServer() as server:
        client = CalendarClient(http=httplib2.Http(), endpoint=server.url)
"""

from cali.testing.server import EventStore, MockCalendarServer, StoreNotFound, create_app

__all__ = ["MockCalendarServer", "EventStore", "StoreNotFound", "create_app"]
