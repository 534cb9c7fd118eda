"""Typed request and response schema for calendar operations.

Optional fields default to None, meaning "not provided". For the guest
permission flags and blocks_time that is distinct from an explicit False.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

DEFAULT_CALENDAR_ID = "primary"


def resolve_calendar_id(calendar_id: str | None) -> str:
    """Return calendar_id, or "primary" when it is missing or empty."""
    return calendar_id or DEFAULT_CALENDAR_ID


@dataclass
class AddEventRequest:
    """Parameters for creating an event."""

    summary: str
    description: str | None = None
    location: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    guests_can_see_other_guests: bool | None = None
    guests_can_modify: bool | None = None
    guests_can_invite_others: bool | None = None
    idempotency_key: str | None = None
    source_title: str | None = None
    source_url: str | None = None
    blocks_time: bool | None = None
    calendar_id: str | None = None


@dataclass
class UpdateEventRequest:
    """Sparse patch for an existing event; None fields are left untouched."""

    event_id: str
    summary: str | None = None
    description: str | None = None
    location: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    guests_can_see_other_guests: bool | None = None
    guests_can_modify: bool | None = None
    guests_can_invite_others: bool | None = None
    source_title: str | None = None
    source_url: str | None = None
    blocks_time: bool | None = None
    calendar_id: str | None = None


@dataclass
class GetEventRequest:
    event_id: str
    calendar_id: str | None = None


@dataclass
class DeleteEventRequest:
    event_id: str
    calendar_id: str | None = None


@dataclass
class ListEventsRequest:
    """Parameters for listing one page of events.

    after/before win over future/past; future wins over past.
    """

    calendar_id: str | None = None
    after: datetime | None = None
    before: datetime | None = None
    future: bool | None = None
    past: bool | None = None
    limit: int | None = None
    anchor: str | None = None


@dataclass
class Event:
    """A calendar event as returned to callers."""

    id: str
    summary: str
    calendar_id: str
    html_link: str = ""
    description: str | None = None
    location: str | None = None
    status: str | None = None
    transparency: str | None = None
    organizer_email: str | None = None
    organizer_name: str | None = None
    conference_uri: str | None = None
    conference_id: str | None = None
    source_title: str | None = None
    source_url: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    attendees: list[str] = field(default_factory=list)

    @property
    def blocks_time(self) -> bool:
        """True unless the event is marked transparent."""
        return self.transparency != "transparent"


@dataclass
class ListEventsResponse:
    """One streamed list item: either an event or the continuation cursor."""

    event: Event | None = None
    next_anchor: str | None = None


@dataclass
class AddEventResponse:
    event_id: str
    success: bool
    message: str
    html_link: str
    calendar_id: str


@dataclass
class UpdateEventResponse:
    event_id: str
    success: bool
    message: str
    html_link: str
    calendar_id: str


@dataclass
class DeleteEventResponse:
    success: bool
    message: str
    calendar_id: str
