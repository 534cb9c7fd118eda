"""Google Calendar API client implementation."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import httplib2
from google.auth.exceptions import GoogleAuthError as TransportAuthError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from cali.calendar.exceptions import (
    CalendarError,
    EventNotFoundError,
    InvalidInputError,
    UpstreamError,
)
from cali.calendar.mapper import format_rfc3339, request_to_event, update_to_event
from cali.calendar.models import (
    AddEventRequest,
    DeleteEventRequest,
    GetEventRequest,
    ListEventsRequest,
    UpdateEventRequest,
    resolve_calendar_id,
)
from cali.calendar.stream import EventStream

logger = logging.getLogger(__name__)


def _is_set(dt: datetime | None) -> bool:
    """A timestamp counts only if it is after the Unix epoch."""
    if dt is None:
        return False
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp() > 0


def build_list_params(request: ListEventsRequest, now: datetime | None = None) -> dict[str, Any]:
    """Build events().list keyword arguments for a request.

    Explicit after/before take precedence over future, which takes
    precedence over past. orderBy=startTime is only sent with a time
    filter, since the API requires one for that ordering.
    """
    params: dict[str, Any] = {
        "calendarId": resolve_calendar_id(request.calendar_id),
        "singleEvents": True,
    }
    now = now or datetime.now(timezone.utc)

    if _is_set(request.after) or _is_set(request.before):
        if _is_set(request.after):
            params["timeMin"] = format_rfc3339(request.after)
        if _is_set(request.before):
            params["timeMax"] = format_rfc3339(request.before)
    elif request.future:
        params["timeMin"] = format_rfc3339(now)
    elif request.past:
        params["timeMax"] = format_rfc3339(now)

    if "timeMin" in params or "timeMax" in params:
        params["orderBy"] = "startTime"

    if request.limit and request.limit > 0:
        params["maxResults"] = request.limit

    if request.anchor:
        params["pageToken"] = request.anchor

    return params


class CalendarClient:
    """Google Calendar events client.

    Thin wrapper over the googleapiclient Calendar v3 service: one call per
    operation, upstream errors wrapped with the operation that failed.

    Usage:
        client = CalendarClient(credentials=creds)

        created = client.create_event(AddEventRequest(summary="Team Meeting"))

        for item in client.list_events(ListEventsRequest(future=True, limit=10)):
            if item.event:
                print(item.event.summary)
            else:
                print("more:", item.next_anchor)

    Note:
        Pass ``endpoint`` (and an unauthenticated ``http``) to talk to
        cali.testing.MockCalendarServer instead of Google.
    """

    def __init__(
        self,
        credentials: Any = None,
        http: httplib2.Http | None = None,
        endpoint: str | None = None,
    ) -> None:
        """Initialize Calendar client.

        Args:
            credentials: google-auth credentials attached to every request.
            http: Pre-built transport; used instead of credentials.
            endpoint: API root override, e.g. a mock server URL.
        """
        if credentials is None and http is None:
            raise ValueError("CalendarClient needs credentials or an http transport")
        self._credentials = credentials
        self._http = http
        self._endpoint = endpoint
        self._service: Any = None

    def _get_service(self) -> Any:
        """Get or create Calendar API service."""
        if self._service is None:
            kwargs: dict[str, Any] = {"static_discovery": True, "cache_discovery": False}
            if self._endpoint:
                kwargs["client_options"] = {"api_endpoint": self._endpoint}
            if self._http is not None:
                kwargs["http"] = self._http
            else:
                kwargs["credentials"] = self._credentials
            self._service = build("calendar", "v3", **kwargs)
        return self._service

    def _execute(self, operation: str, call: Callable[[], Any]) -> Any:
        """Run an API call, translating failures into CalendarError."""
        try:
            return call()
        except HttpError as e:
            status = e.resp.status
            message = f"unable to {operation}: {e.reason or e}"
            if status == 404:
                raise EventNotFoundError(message, status) from e
            if status == 400:
                raise InvalidInputError(message, status) from e
            raise UpstreamError(message, status) from e
        except (httplib2.HttpLib2Error, TransportAuthError, OSError) as e:
            raise UpstreamError(f"unable to {operation}: {e}") from e

    # =========================================================================
    # Events
    # =========================================================================

    def create_event(self, request: AddEventRequest) -> dict[str, Any]:
        """Create a new event.

        Returns:
            The created event resource.
        """
        calendar_id = resolve_calendar_id(request.calendar_id)
        body = request_to_event(request)
        events = self._get_service().events()

        return self._execute(
            "create event",
            lambda: events.insert(calendarId=calendar_id, body=body).execute(),
        )

    def update_event(self, request: UpdateEventRequest) -> dict[str, Any]:
        """Patch an existing event.

        Reads the current event, applies the fields set on the request and
        writes the whole event back. Concurrent edits in between are
        overwritten.

        Returns:
            The updated event resource.
        """
        calendar_id = resolve_calendar_id(request.calendar_id)
        events = self._get_service().events()

        existing = self._execute(
            "get event",
            lambda: events.get(calendarId=calendar_id, eventId=request.event_id).execute(),
        )
        body = update_to_event(request, existing)

        return self._execute(
            "update event",
            lambda: events.update(
                calendarId=calendar_id, eventId=request.event_id, body=body
            ).execute(),
        )

    def get_event(self, request: GetEventRequest) -> dict[str, Any]:
        """Get a single event by ID."""
        calendar_id = resolve_calendar_id(request.calendar_id)
        events = self._get_service().events()

        return self._execute(
            "get event",
            lambda: events.get(calendarId=calendar_id, eventId=request.event_id).execute(),
        )

    def delete_event(self, request: DeleteEventRequest) -> None:
        """Delete an event."""
        calendar_id = resolve_calendar_id(request.calendar_id)
        events = self._get_service().events()

        self._execute(
            "delete event",
            lambda: events.delete(calendarId=calendar_id, eventId=request.event_id).execute(),
        )

    def list_events(
        self,
        request: ListEventsRequest,
        cancel: threading.Event | None = None,
        timeout: float | None = None,
    ) -> EventStream:
        """Stream one page of events.

        Args:
            request: Filters, page size and continuation anchor.
            cancel: Set this to stop the stream early.
            timeout: Optional deadline in seconds for the whole stream.

        Returns:
            EventStream yielding one ListEventsResponse per event, followed by
            one carrying next_anchor when more pages exist.
        """
        params = build_list_params(request)
        calendar_id = params["calendarId"]
        events = self._get_service().events()

        logger.debug(f"Listing events in {calendar_id}")

        def fetch_page() -> dict[str, Any]:
            try:
                return self._execute(
                    "retrieve events", lambda: events.list(**params).execute()
                )
            except CalendarError as e:
                logger.error(f"Failed to retrieve events from {calendar_id}: {e}")
                raise

        return EventStream(fetch_page, calendar_id, cancel=cancel, timeout=timeout)
