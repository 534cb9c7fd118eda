"""Tests for result rendering."""

import json
from datetime import datetime, timezone

import pytest
import yaml

from cali.calendar import AddEventResponse, Event
from cali.output import render, render_ical, to_dict

STAMP = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def event():
    return Event(
        id="event1",
        summary="Lunch, with team; bring snacks",
        calendar_id="primary",
        html_link="https://calendar.google.com/event?eid=event1",
        description="Line one\nLine two",
        status="confirmed",
        transparency="transparent",
        organizer_email="boss@example.com",
        start_time=datetime(2024, 2, 1, 12, tzinfo=timezone.utc),
        end_time=datetime(2024, 2, 1, 13, tzinfo=timezone.utc),
        attendees=["a@example.com"],
    )


class TestStructuredOutput:
    def test_to_dict_drops_none_and_formats_times(self, event):
        """Should omit unset fields and format datetimes as RFC3339."""
        data = to_dict(event)
        assert "location" not in data
        assert data["start_time"] == "2024-02-01T12:00:00Z"
        assert data["attendees"] == ["a@example.com"]

    def test_json_single_item_unwrapped(self):
        """Should print a single result as an object."""
        response = AddEventResponse(
            event_id="event1", success=True, message="ok", html_link="", calendar_id="primary"
        )
        assert json.loads(render([response], "json"))["event_id"] == "event1"

    def test_json_many_items(self, event):
        """Should print several results as a list."""
        assert len(json.loads(render([event, event], "json"))) == 2

    def test_many_keeps_list(self, event):
        """Should keep a one-item list when the command returns many."""
        assert json.loads(render([event], "json", many=True))[0]["id"] == "event1"
        assert yaml.safe_load(render([], "yaml", many=True)) == []

    def test_yaml(self, event):
        """Should produce loadable YAML."""
        data = yaml.safe_load(render([event], "yaml"))
        assert data["id"] == "event1"
        assert data["description"] == "Line one\nLine two"

    def test_unknown_format(self, event):
        """Should reject unsupported formats."""
        with pytest.raises(ValueError, match="Unknown output format"):
            render([event], "xml")


class TestICalOutput:
    def test_calendar_structure(self, event):
        """Should wrap events in a VCALENDAR with CRLF endings."""
        text = render_ical([event], now=STAMP)
        lines = text.split("\r\n")

        assert lines[0] == "BEGIN:VCALENDAR"
        assert "BEGIN:VEVENT" in lines
        assert lines[-2] == "END:VCALENDAR"
        assert text.endswith("\r\n")

    def test_event_fields(self, event):
        """Should write times in UTC and escape text."""
        lines = render_ical([event], now=STAMP).split("\r\n")

        assert "UID:event1@primary" in lines
        assert "DTSTAMP:20240101T000000Z" in lines
        assert "DTSTART:20240201T120000Z" in lines
        assert "DTEND:20240201T130000Z" in lines
        assert "SUMMARY:Lunch\\, with team\\; bring snacks" in lines
        assert "DESCRIPTION:Line one\\nLine two" in lines
        assert "STATUS:CONFIRMED" in lines
        assert "TRANSP:TRANSPARENT" in lines
        assert "ORGANIZER:mailto:boss@example.com" in lines
        assert "ATTENDEE:mailto:a@example.com" in lines

    def test_long_lines_folded(self, event):
        """Should fold content lines longer than 75 octets."""
        event.description = "x" * 200
        lines = render_ical([event], now=STAMP).split("\r\n")

        assert all(len(line.encode("utf-8")) <= 75 for line in lines)
        description = [i for i, line in enumerate(lines) if line.startswith("DESCRIPTION:")][0]
        assert lines[description + 1].startswith(" x")

    def test_rejects_non_events(self):
        """Should only render events."""
        response = AddEventResponse(
            event_id="e", success=True, message="ok", html_link="", calendar_id="primary"
        )
        with pytest.raises(ValueError, match="only available for events"):
            render([response], "ical")
