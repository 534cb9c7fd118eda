"""Render command results as JSON, YAML or iCalendar."""

from __future__ import annotations

import dataclasses
import json
from datetime import datetime, timezone
from typing import Any

import yaml

from cali.calendar import Event
from cali.calendar.mapper import format_rfc3339

PRODID = "-//cali//Google Calendar CLI//EN"
ICAL_DATETIME_FORMAT = "%Y%m%dT%H%M%SZ"


def to_dict(item: Any) -> dict[str, Any]:
    """Dataclass to a plain dict, dropping unset fields and formatting datetimes."""
    result = {}
    for f in dataclasses.fields(item):
        value = getattr(item, f.name)
        if value is None:
            continue
        if dataclasses.is_dataclass(value):
            value = to_dict(value)
        elif isinstance(value, datetime):
            value = format_rfc3339(value)
        result[f.name] = value
    return result


def _payload(items: list[Any], many: bool) -> Any:
    """A single result prints as an object unless the command returns a list."""
    data = [to_dict(item) for item in items]
    return data if many or len(data) != 1 else data[0]


def render_json(items: list[Any], many: bool = False) -> str:
    return json.dumps(_payload(items, many), indent=2)


def render_yaml(items: list[Any], many: bool = False) -> str:
    return yaml.safe_dump(
        _payload(items, many),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )


def _escape(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def _fold(line: str) -> list[str]:
    """Split a content line into 75-octet chunks; continuations start with a space."""
    encoded = line.encode("utf-8")
    if len(encoded) <= 75:
        return [line]

    lines = []
    current = ""
    for char in line:
        if len((current + char).encode("utf-8")) > 75:
            lines.append(current)
            current = " "
        current += char
    lines.append(current)
    return lines


def _ical_time(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(ICAL_DATETIME_FORMAT)


def render_ical(items: list[Any], now: datetime | None = None) -> str:
    """Render events as a VCALENDAR document with CRLF line endings."""
    stamp = _ical_time(now or datetime.now(timezone.utc))
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", f"PRODID:{PRODID}", "CALSCALE:GREGORIAN"]

    for item in items:
        if not isinstance(item, Event):
            raise ValueError("ical output is only available for events")

        lines.append("BEGIN:VEVENT")
        lines.append(f"UID:{item.id}@{item.calendar_id}")
        lines.append(f"DTSTAMP:{stamp}")
        if item.start_time:
            lines.append(f"DTSTART:{_ical_time(item.start_time)}")
        if item.end_time:
            lines.append(f"DTEND:{_ical_time(item.end_time)}")
        lines.append(f"SUMMARY:{_escape(item.summary)}")
        if item.description:
            lines.append(f"DESCRIPTION:{_escape(item.description)}")
        if item.location:
            lines.append(f"LOCATION:{_escape(item.location)}")
        if item.status:
            lines.append(f"STATUS:{item.status.upper()}")
        lines.append(f"TRANSP:{'OPAQUE' if item.blocks_time else 'TRANSPARENT'}")
        if item.organizer_email:
            lines.append(f"ORGANIZER:mailto:{item.organizer_email}")
        for email in item.attendees:
            lines.append(f"ATTENDEE:mailto:{email}")
        if item.html_link:
            lines.append(f"URL:{item.html_link}")
        lines.append("END:VEVENT")

    lines.append("END:VCALENDAR")

    folded = [chunk for line in lines for chunk in _fold(line)]
    return "\r\n".join(folded) + "\r\n"


RENDERERS = {
    "json": render_json,
    "yaml": render_yaml,
    "ical": render_ical,
}


def render(items: list[Any], fmt: str = "json", many: bool = False) -> str:
    """Render a list of result dataclasses in the requested format.

    Args:
        items: Results to print.
        fmt: One of RENDERERS.
        many: Always print a list for json/yaml, even for one item.
    """
    if fmt not in RENDERERS:
        raise ValueError(f"Unknown output format: {fmt}. Use one of: {list(RENDERERS)}")
    if fmt == "ical":
        return render_ical(items)
    return RENDERERS[fmt](items, many=many)
