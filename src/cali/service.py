"""Calendar service: request/response operations over a lazily built client.

Authentication happens on the first call, so commands that never reach
the API (help, config inspection) do not need credentials.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator

from cali.calendar import (
    AddEventRequest,
    AddEventResponse,
    CalendarClient,
    CalendarError,
    DeleteEventRequest,
    DeleteEventResponse,
    Event,
    GetEventRequest,
    ListEventsRequest,
    ListEventsResponse,
    UpdateEventRequest,
    UpdateEventResponse,
    event_to_response,
    resolve_calendar_id,
)
from cali.config import CaliConfig, ensure_config_dir
from cali.google import GoogleAuthError, get_credentials

logger = logging.getLogger(__name__)

SETUP_HELP = """Google Calendar credentials are required. See config.example.yaml.

Option 1: Service Account (for automation/cron)
    cali auth import-key ~/Downloads/service-account.json

Option 2: OAuth Client (for interactive use)
    cali auth import ~/Downloads/credentials.json
    cali auth login"""


class NotConfiguredError(Exception):
    """Raised when no usable Google credentials are available."""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Google Calendar integration failed: {cause}\n\n{SETUP_HELP}")


class CalendarService:
    """Typed calendar operations with success/message responses.

    Usage:
        service = CalendarService(load_config())
        response = service.add_event(AddEventRequest(summary="Standup"))
        print(response.html_link)
    """

    def __init__(self, config: CaliConfig, client: CalendarClient | None = None) -> None:
        self.config = config
        self._client = client
        self._lock = threading.Lock()

    def _calendar_id(self, calendar_id: str | None) -> str:
        return resolve_calendar_id(calendar_id or self.config.calendar_id)

    def ensure_initialized(self) -> CalendarClient:
        """Build the Calendar client on first use."""
        with self._lock:
            if self._client is None:
                ensure_config_dir()
                try:
                    credentials = get_credentials(self.config)
                except GoogleAuthError as e:
                    raise NotConfiguredError(e) from e
                self._client = CalendarClient(
                    credentials=credentials, endpoint=self.config.api_endpoint
                )
            return self._client

    def add_event(self, request: AddEventRequest) -> AddEventResponse:
        client = self.ensure_initialized()
        request.calendar_id = self._calendar_id(request.calendar_id)

        try:
            event = client.create_event(request)
        except CalendarError as e:
            logger.error(f"Failed to create event in Google Calendar: {e}")
            raise

        return AddEventResponse(
            event_id=event["id"],
            success=True,
            message=f"Event '{request.summary}' added successfully to Google Calendar",
            html_link=event.get("htmlLink", ""),
            calendar_id=request.calendar_id,
        )

    def update_event(self, request: UpdateEventRequest) -> UpdateEventResponse:
        client = self.ensure_initialized()
        request.calendar_id = self._calendar_id(request.calendar_id)

        try:
            event = client.update_event(request)
        except CalendarError as e:
            logger.error(f"Failed to update event in Google Calendar: {e}")
            raise

        return UpdateEventResponse(
            event_id=event["id"],
            success=True,
            message=f"Event '{event.get('summary', '')}' updated successfully in Google Calendar",
            html_link=event.get("htmlLink", ""),
            calendar_id=request.calendar_id,
        )

    def get_event(self, request: GetEventRequest) -> Event:
        client = self.ensure_initialized()
        request.calendar_id = self._calendar_id(request.calendar_id)
        return event_to_response(client.get_event(request), request.calendar_id)

    def delete_event(self, request: DeleteEventRequest) -> DeleteEventResponse:
        client = self.ensure_initialized()
        request.calendar_id = self._calendar_id(request.calendar_id)

        try:
            client.delete_event(request)
        except CalendarError as e:
            logger.error(f"Failed to delete event from Google Calendar: {e}")
            raise

        return DeleteEventResponse(
            success=True,
            message="Event deleted successfully from Google Calendar",
            calendar_id=request.calendar_id,
        )

    def list_events(
        self,
        request: ListEventsRequest,
        cancel: threading.Event | None = None,
    ) -> Iterator[ListEventsResponse]:
        """Yield one page of events, then a next_anchor item if more exist."""
        client = self.ensure_initialized()
        request.calendar_id = self._calendar_id(request.calendar_id)

        with client.list_events(request, cancel=cancel) as stream:
            yield from stream

    def list_all_events(
        self,
        request: ListEventsRequest,
        cancel: threading.Event | None = None,
    ) -> Iterator[Event]:
        """Yield events from every page by following next_anchor."""
        while True:
            next_anchor = None
            for item in self.list_events(request, cancel=cancel):
                if item.event is not None:
                    yield item.event
                else:
                    next_anchor = item.next_anchor
            if not next_anchor:
                return
            request.anchor = next_anchor
