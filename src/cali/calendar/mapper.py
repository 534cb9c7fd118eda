"""Conversion between the typed request schema and Calendar API event resources.

Event resources are the plain dicts googleapiclient sends and receives
(``{"summary": ..., "start": {"dateTime": ..., "timeZone": ...}, ...}``).
Nothing in here raises: timestamps that fail to parse are treated as absent.
"""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from typing import Any

from cali.calendar.models import AddEventRequest, Event, UpdateEventRequest

RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DATE_FORMAT = "%Y-%m-%d"

OPAQUE = "opaque"
TRANSPARENT = "transparent"


def format_rfc3339(dt: datetime) -> str:
    """Format a datetime as second-precision RFC3339 in UTC.

    Naive datetimes are taken to be UTC already.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(RFC3339_FORMAT)


def parse_rfc3339(value: str | None) -> datetime | None:
    """Parse an RFC3339 timestamp; returns None if missing, malformed or offset-less."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        return None
    return dt


def parse_date(value: str | None) -> datetime | None:
    """Parse an all-day ``YYYY-MM-DD`` date as midnight UTC."""
    if not value:
        return None
    try:
        return datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def next_hour(now: datetime | None = None) -> datetime:
    """Top of the hour after now."""
    now = now or datetime.now(timezone.utc)
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def _event_time(dt: datetime) -> dict[str, str]:
    return {"dateTime": format_rfc3339(dt), "timeZone": "UTC"}


def _transparency(blocks_time: bool | None) -> str:
    return OPAQUE if blocks_time else TRANSPARENT


def _set_guest_permissions(
    event: dict[str, Any], request: AddEventRequest | UpdateEventRequest
) -> None:
    if request.guests_can_see_other_guests is not None:
        event["guestsCanSeeOtherGuests"] = request.guests_can_see_other_guests
    if request.guests_can_modify is not None:
        event["guestsCanModify"] = request.guests_can_modify
    if request.guests_can_invite_others is not None:
        event["guestsCanInviteOthers"] = request.guests_can_invite_others


def request_to_event(request: AddEventRequest, now: datetime | None = None) -> dict[str, Any]:
    """Build an event resource for insertion.

    Args:
        request: The add request.
        now: Reference time for the default start (defaults to current time).

    Returns:
        Event resource dict.
    """
    event: dict[str, Any] = {"summary": request.summary}

    # A caller-chosen ID makes retrying the insert safe
    if request.idempotency_key:
        event["id"] = request.idempotency_key

    if request.description:
        event["description"] = request.description
    if request.location:
        event["location"] = request.location

    _set_guest_permissions(event, request)

    if request.source_title or request.source_url:
        source = {}
        if request.source_title is not None:
            source["title"] = request.source_title
        if request.source_url is not None:
            source["url"] = request.source_url
        event["source"] = source

    # Always written: provider defaults differ between calendar types
    event["transparency"] = _transparency(request.blocks_time)

    start = request.start_time or next_hour(now)
    end = request.end_time or start + timedelta(hours=1)
    event["start"] = _event_time(start)
    event["end"] = _event_time(end)

    return event


def update_to_event(request: UpdateEventRequest, existing: dict[str, Any]) -> dict[str, Any]:
    """Apply a sparse patch to a copy of an existing event resource.

    Fields that are None (or empty strings for text fields) keep the
    existing value.
    """
    event = copy.deepcopy(existing)

    if request.summary:
        event["summary"] = request.summary
    if request.description:
        event["description"] = request.description
    if request.location:
        event["location"] = request.location

    _set_guest_permissions(event, request)

    if request.source_title is not None or request.source_url is not None:
        source = dict(event.get("source") or {})
        if request.source_title is not None:
            source["title"] = request.source_title
        if request.source_url is not None:
            source["url"] = request.source_url
        event["source"] = source

    if request.blocks_time is not None:
        event["transparency"] = _transparency(request.blocks_time)

    if request.start_time is not None:
        event["start"] = _event_time(request.start_time)
    if request.end_time is not None:
        event["end"] = _event_time(request.end_time)

    return event


def _mapping(value: Any) -> dict[str, Any]:
    """Return value when it is a JSON object, otherwise an empty one."""
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _parse_event_time(data: Any) -> datetime | None:
    """Prefer dateTime; fall back to an all-day date."""
    data = _mapping(data)
    if _text(data.get("dateTime")):
        return parse_rfc3339(data["dateTime"])
    if _text(data.get("date")):
        return parse_date(data["date"])
    return None


def _conference_uri(conference: dict[str, Any]) -> str | None:
    entry_points = conference.get("entryPoints")
    if not isinstance(entry_points, list):
        return None
    for entry_point in entry_points:
        entry_point = _mapping(entry_point)
        if entry_point.get("entryPointType") == "video" and _text(entry_point.get("uri")):
            return entry_point["uri"]
    return None


def _attendee_emails(attendees: Any) -> list[str]:
    if not isinstance(attendees, list):
        return []
    emails = []
    for attendee in attendees:
        email = _text(_mapping(attendee).get("email"))
        if email:
            emails.append(email)
    return emails


def event_to_response(event: dict[str, Any], calendar_id: str) -> Event:
    """Convert an event resource into the response model.

    Empty provider strings become None rather than "". Nested values of
    the wrong type are treated as absent.
    """
    event = _mapping(event)
    organizer = _mapping(event.get("organizer"))
    conference = _mapping(event.get("conferenceData"))
    source = _mapping(event.get("source"))

    return Event(
        id=_text(event.get("id")) or "",
        summary=_text(event.get("summary")) or "",
        calendar_id=calendar_id,
        html_link=_text(event.get("htmlLink")) or "",
        description=_text(event.get("description")),
        location=_text(event.get("location")),
        status=_text(event.get("status")),
        transparency=_text(event.get("transparency")),
        organizer_email=_text(organizer.get("email")),
        organizer_name=_text(organizer.get("displayName")),
        conference_uri=_conference_uri(conference),
        conference_id=_text(conference.get("conferenceId")),
        source_title=_text(source.get("title")),
        source_url=_text(source.get("url")),
        start_time=_parse_event_time(event.get("start")),
        end_time=_parse_event_time(event.get("end")),
        attendees=_attendee_emails(event.get("attendees")),
    )
