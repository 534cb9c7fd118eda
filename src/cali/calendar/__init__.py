"""Google Calendar events: typed requests, mapping, client and list streaming.

Usage:
    from cali.calendar import AddEventRequest, CalendarClient

    client = CalendarClient(credentials=creds)
    event = client.create_event(AddEventRequest(summary="Team Meeting"))
"""

from __future__ import annotations

from cali.calendar.client import CalendarClient, build_list_params
from cali.calendar.exceptions import (
    CalendarError,
    EventNotFoundError,
    InvalidInputError,
    ListCancelled,
    UpstreamError,
)
from cali.calendar.mapper import event_to_response, request_to_event, update_to_event
from cali.calendar.models import (
    AddEventRequest,
    AddEventResponse,
    DeleteEventRequest,
    DeleteEventResponse,
    Event,
    GetEventRequest,
    ListEventsRequest,
    ListEventsResponse,
    UpdateEventRequest,
    UpdateEventResponse,
    resolve_calendar_id,
)
from cali.calendar.stream import EventStream

__all__ = [
    "CalendarClient",
    "EventStream",
    "build_list_params",
    "request_to_event",
    "update_to_event",
    "event_to_response",
    "resolve_calendar_id",
    "AddEventRequest",
    "AddEventResponse",
    "UpdateEventRequest",
    "UpdateEventResponse",
    "GetEventRequest",
    "DeleteEventRequest",
    "DeleteEventResponse",
    "ListEventsRequest",
    "ListEventsResponse",
    "Event",
    "CalendarError",
    "EventNotFoundError",
    "InvalidInputError",
    "UpstreamError",
    "ListCancelled",
]
