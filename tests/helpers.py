"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: it exists to prevent test suites from
growing lots of one-off delegates and executors as coverage expands.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
import threading
from typing import Any

from courier.passthrough import PassthroughDelegate


class InlineExecutor(Executor):
    """Executor that runs submitted work immediately on the calling thread."""

    def submit(self, fn, /, *args, **kwargs):  # type: ignore[override]
        future: Future[Any] = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as e:
            future.set_exception(e)
        return future


@dataclass
class RecordingPassthrough(PassthroughDelegate):
    """Delegate that records ``(event, args)`` tuples for assertions."""

    events: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _record(self, event: str, *args: Any) -> None:
        with self._lock:
            self.events.append((event, args))

    def names(self) -> list[str]:
        with self._lock:
            return [name for name, _ in self.events]

    def count(self, event: str) -> int:
        return self.names().count(event)

    def request_sent(self, request):
        self._record("request_sent", request)

    def response_received(self, response, data, request, error):
        self._record("response_received", response, data, request, error)

    def service_result_failure(self, error):
        self._record("service_result_failure", error)

    def update_ui_begin(self, response):
        self._record("update_ui_begin", response)

    def update_ui_end(self, response):
        self._record("update_ui_end", response)


@dataclass
class RewritingPassthrough(RecordingPassthrough):
    """Recording delegate that adds a header to every outgoing request."""

    header: tuple[str, str] = ("x-request-id", "test-1")

    def modified_request(self, request):
        name, value = self.header
        headers = dict(request.headers)
        headers[name] = value
        return request.replace(headers=headers)


class ThreadCapture:
    """Collects values together with the name of the thread that produced them."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, str]] = []
        self.done = threading.Event()

    def __call__(self, value: Any) -> None:
        self.calls.append((value, threading.current_thread().name))
        self.done.set()
