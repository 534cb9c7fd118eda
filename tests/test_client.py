"""Tests for CalendarClient against the mock Calendar API server."""

from datetime import datetime, timezone

import httplib2
import pytest

from cali.calendar import (
    AddEventRequest,
    CalendarClient,
    DeleteEventRequest,
    EventNotFoundError,
    GetEventRequest,
    InvalidInputError,
    ListEventsRequest,
    UpdateEventRequest,
    UpstreamError,
    build_list_params,
)
from cali.calendar.mapper import parse_rfc3339

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
AFTER = datetime(2024, 1, 1, tzinfo=timezone.utc)
BEFORE = datetime(2024, 2, 1, tzinfo=timezone.utc)


def _timed(summary, start):
    return {
        "summary": summary,
        "start": {"dateTime": start, "timeZone": "UTC"},
        "end": {"dateTime": start, "timeZone": "UTC"},
    }


def _collect(client, request):
    """Split one streamed page into (events, next_anchor)."""
    events, anchor = [], None
    with client.list_events(request) as stream:
        for item in stream:
            if item.event is not None:
                events.append(item.event)
            else:
                anchor = item.next_anchor
    return events, anchor


class TestBuildListParams:
    """Filter precedence and query construction."""

    def test_no_filters(self):
        """Should only set calendar and singleEvents."""
        assert build_list_params(ListEventsRequest(), now=NOW) == {
            "calendarId": "primary",
            "singleEvents": True,
        }

    def test_after_and_before(self):
        """Should send explicit bounds with start time ordering."""
        params = build_list_params(ListEventsRequest(after=AFTER, before=BEFORE), now=NOW)
        assert params["timeMin"] == "2024-01-01T00:00:00Z"
        assert params["timeMax"] == "2024-02-01T00:00:00Z"
        assert params["orderBy"] == "startTime"

    def test_explicit_bounds_beat_future_and_past(self):
        """Should ignore future/past when after or before is set."""
        params = build_list_params(
            ListEventsRequest(before=BEFORE, future=True, past=True), now=NOW
        )
        assert params["timeMax"] == "2024-02-01T00:00:00Z"
        assert "timeMin" not in params

    def test_future_beats_past(self):
        """Should use now as the lower bound when future is set."""
        params = build_list_params(ListEventsRequest(future=True, past=True), now=NOW)
        assert params["timeMin"] == "2024-06-01T12:00:00Z"
        assert "timeMax" not in params
        assert params["orderBy"] == "startTime"

    def test_past(self):
        """Should use now as the upper bound when past is set."""
        params = build_list_params(ListEventsRequest(past=True), now=NOW)
        assert params["timeMax"] == "2024-06-01T12:00:00Z"
        assert "timeMin" not in params

    def test_epoch_counts_as_unset(self):
        """Should fall through to future when after is the epoch."""
        epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
        params = build_list_params(ListEventsRequest(after=epoch, future=True), now=NOW)
        assert params["timeMin"] == "2024-06-01T12:00:00Z"

    def test_limit_anchor_and_calendar(self):
        """Should pass page size, token and calendar through."""
        params = build_list_params(
            ListEventsRequest(calendar_id="team", limit=5, anchor="10"), now=NOW
        )
        assert params["calendarId"] == "team"
        assert params["maxResults"] == 5
        assert params["pageToken"] == "10"
        assert "orderBy" not in params

    def test_zero_limit_omitted(self):
        """Should not send maxResults for a zero limit."""
        assert "maxResults" not in build_list_params(ListEventsRequest(limit=0), now=NOW)


class TestClientSetup:
    def test_requires_credentials_or_http(self):
        """Should refuse to build without any way to authenticate."""
        with pytest.raises(ValueError):
            CalendarClient()


class TestEventLifecycle:
    """Create, read, update and delete through the HTTP API."""

    def test_insert_then_get(self, client):
        """Should return the created event with server-owned fields."""
        created = client.create_event(AddEventRequest(summary="Standup", location="Room 1"))

        assert created["id"] == "event1"
        assert created["status"] == "confirmed"
        assert created["htmlLink"]

        fetched = client.get_event(GetEventRequest(event_id=created["id"]))
        assert fetched["summary"] == "Standup"
        assert fetched["location"] == "Room 1"
        assert fetched["status"] == "confirmed"
        assert fetched["created"] == fetched["updated"]

    def test_insert_writes_expected_body(self, client, server):
        """Should store transparency and UTC times."""
        start = datetime(2024, 3, 1, 9, tzinfo=timezone.utc)
        client.create_event(
            AddEventRequest(summary="Focus", start_time=start, blocks_time=True, calendar_id="me")
        )

        stored = server.events("me")[0]
        assert stored["transparency"] == "opaque"
        assert stored["start"] == {"dateTime": "2024-03-01T09:00:00Z", "timeZone": "UTC"}
        assert stored["end"]["dateTime"] == "2024-03-01T10:00:00Z"

    def test_update_location_only(self, client):
        """Should change only the given field and bump updated."""
        created = client.create_event(AddEventRequest(summary="Sync", description="Weekly"))

        updated = client.update_event(
            UpdateEventRequest(event_id=created["id"], location="Room 9")
        )

        assert updated["location"] == "Room 9"
        assert updated["summary"] == "Sync"
        assert updated["description"] == "Weekly"
        assert updated["created"] == created["created"]
        assert parse_rfc3339(updated["updated"]) > parse_rfc3339(created["updated"])

    def test_delete_then_get(self, client):
        """Should report a deleted event as not found, and fail a second delete."""
        created = client.create_event(AddEventRequest(summary="Temp"))
        client.delete_event(DeleteEventRequest(event_id=created["id"]))

        with pytest.raises(EventNotFoundError) as exc_info:
            client.get_event(GetEventRequest(event_id=created["id"]))
        assert exc_info.value.status_code == 404
        assert "unable to get event" in str(exc_info.value)

        with pytest.raises(EventNotFoundError):
            client.delete_event(DeleteEventRequest(event_id=created["id"]))

    def test_update_missing_event(self, client):
        """Should raise not found for an unknown event."""
        with pytest.raises(EventNotFoundError):
            client.update_event(UpdateEventRequest(event_id="nope", summary="x"))

    def test_ids_not_reused(self, client):
        """Should never hand out a deleted event's ID again."""
        first = client.create_event(AddEventRequest(summary="a"))
        client.delete_event(DeleteEventRequest(event_id=first["id"]))
        second = client.create_event(AddEventRequest(summary="b"))

        assert second["id"] != first["id"]

    def test_unreachable_endpoint(self):
        """Should wrap connection failures as upstream errors."""
        client = CalendarClient(http=httplib2.Http(timeout=2), endpoint="http://127.0.0.1:1/")
        with pytest.raises(UpstreamError, match="unable to get event"):
            client.get_event(GetEventRequest(event_id="event1"))


class TestListEvents:
    """Streaming, filtering and pagination."""

    def test_pagination_concatenates(self, client, server):
        """Should return every event exactly once across pages."""
        for i in range(5):
            server.add_event("primary", _timed(f"e{i}", f"2024-01-0{i + 1}T10:00:00Z"))

        seen = []
        request = ListEventsRequest(limit=2)
        while True:
            events, anchor = _collect(client, request)
            seen.extend(e.summary for e in events)
            if not anchor:
                break
            request.anchor = anchor

        assert seen == ["e0", "e1", "e2", "e3", "e4"]

    def test_anchor_only_when_more(self, client, server):
        """Should omit the anchor when the page is the last one."""
        server.add_event("primary", _timed("only", "2024-01-01T10:00:00Z"))

        events, anchor = _collect(client, ListEventsRequest(limit=5))
        assert len(events) == 1
        assert anchor is None

    def test_time_min_beyond_all_events(self, client, server):
        """Should return nothing when every event starts before timeMin."""
        server.add_event("primary", _timed("old", "2020-01-01T10:00:00Z"))

        events, anchor = _collect(
            client, ListEventsRequest(after=datetime(2030, 1, 1, tzinfo=timezone.utc))
        )
        assert events == []
        assert anchor is None

    def test_window_filter_and_order(self, client, server):
        """Should filter by window and order by start time."""
        server.add_event("primary", _timed("late", "2024-01-20T10:00:00Z"))
        server.add_event("primary", _timed("outside", "2024-03-01T10:00:00Z"))
        server.add_event("primary", _timed("early", "2024-01-05T10:00:00Z"))

        events, _ = _collect(client, ListEventsRequest(after=AFTER, before=BEFORE))

        assert [e.summary for e in events] == ["early", "late"]
        assert events[0].start_time == datetime(2024, 1, 5, 10, tzinfo=timezone.utc)

    def test_unfiltered_keeps_insertion_order(self, client, server):
        """Should not reorder without a time filter."""
        server.add_event("primary", _timed("second", "2024-01-20T10:00:00Z"))
        server.add_event("primary", _timed("first", "2024-01-05T10:00:00Z"))

        events, _ = _collect(client, ListEventsRequest())
        assert [e.summary for e in events] == ["second", "first"]

    def test_calendar_isolation(self, client, server):
        """Should only list events in the requested calendar."""
        server.add_event("work", _timed("work item", "2024-01-01T10:00:00Z"))
        server.add_event("primary", _timed("personal", "2024-01-01T10:00:00Z"))

        events, _ = _collect(client, ListEventsRequest(calendar_id="work"))
        assert [e.summary for e in events] == ["work item"]
        assert events[0].calendar_id == "work"

    def test_bad_page_token(self, client):
        """Should surface a 400 from the provider as invalid input."""
        with pytest.raises(InvalidInputError):
            _collect(client, ListEventsRequest(anchor="not-a-number"))
