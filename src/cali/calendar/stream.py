"""Cancellable, back-pressured stream of list results.

A producer thread fetches one page of events and hands results to the
consumer through a one-slot queue, so it never runs more than one item
ahead of the caller. Setting the cancellation token stops delivery: the
producer gives up at its next hand-off and the consumer raises
ListCancelled on its next read.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable, Iterator
from typing import Any

from cali.calendar.exceptions import ListCancelled, UpstreamError
from cali.calendar.mapper import event_to_response
from cali.calendar.models import ListEventsResponse

logger = logging.getLogger(__name__)

# How often blocked producer/consumer re-check the cancellation token
POLL_INTERVAL = 0.05

_DONE = object()


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


class EventStream:
    """Iterator over ListEventsResponse items for a single page.

    One item per event in provider order, then a final item carrying
    ``next_anchor`` if the provider has more pages.

    Usage:
        cancel = threading.Event()
        with client.list_events(request, cancel=cancel) as stream:
            for item in stream:
                ...
    """

    def __init__(
        self,
        fetch_page: Callable[[], dict[str, Any]],
        calendar_id: str,
        cancel: threading.Event | None = None,
        timeout: float | None = None,
    ) -> None:
        """Start the producer.

        Args:
            fetch_page: Performs the list call and returns the raw response.
            calendar_id: Calendar the events belong to.
            cancel: Cancellation token; set it to stop the stream.
            timeout: Optional deadline in seconds, after which the stream
                behaves as if cancelled.
        """
        self._fetch_page = fetch_page
        self._calendar_id = calendar_id
        # The caller's token is only read; stopping this stream never sets it
        self._cancel = cancel
        self._stop = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._queue: queue.Queue = queue.Queue(maxsize=1)
        self._finished = False

        self._thread = threading.Thread(
            target=self._produce,
            name=f"cali-list-{calendar_id}",
            daemon=True,
        )
        self._thread.start()

    @property
    def cancelled(self) -> bool:
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._stop.set()
        if self._cancel is not None and self._cancel.is_set():
            self._stop.set()
        return self._stop.is_set()

    def cancel(self) -> None:
        """Stop delivering items."""
        self._stop.set()

    def close(self) -> None:
        """Cancel the producer if it is still running."""
        if not self._finished:
            self._stop.set()
            self._finished = True

    def _put(self, item: object) -> bool:
        """Hand one item to the consumer; False if cancelled while waiting."""
        while not self.cancelled:
            try:
                self._queue.put(item, timeout=POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _produce(self) -> None:
        try:
            page = self._fetch_page()
            items = page.get("items") or []
            next_token = page.get("nextPageToken") or ""
            logger.debug(
                f"Retrieved {len(items)} events from {self._calendar_id} "
                f"(has_next_page={bool(next_token)})"
            )

            for item in items:
                response = ListEventsResponse(event=event_to_response(item, self._calendar_id))
                if not self._put(response):
                    return

            if next_token and not self._put(ListEventsResponse(next_anchor=next_token)):
                return
        except Exception as e:
            self._put(_Failure(e))
            return

        self._put(_DONE)

    def __iter__(self) -> Iterator[ListEventsResponse]:
        return self

    def __next__(self) -> ListEventsResponse:
        if self._finished:
            raise StopIteration

        while True:
            if self.cancelled:
                self._finished = True
                raise ListCancelled()
            try:
                item = self._queue.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                # Producer gone without a final item
                if not self._thread.is_alive() and self._queue.empty():
                    self._finished = True
                    raise UpstreamError(
                        f"event listing for {self._calendar_id} stopped unexpectedly"
                    ) from None
                continue

            if item is _DONE:
                self._finished = True
                raise StopIteration
            if isinstance(item, _Failure):
                self._finished = True
                raise item.error
            return item

    def __enter__(self) -> EventStream:
        return self

    def __exit__(self, *args) -> None:
        self.close()
