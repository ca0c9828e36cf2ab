"""Mock transport for testing and offline use.

Responses come from a FIFO script, from per-URL routes, or from a default.
Operations complete on ``resume()`` unless ``auto_complete=False``, in which
case the test drives completion with ``complete_next()``.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
import json
import threading
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from courier.errors import InvalidStateError, TransportCancelledError
from courier.transport.base import OperationState, ResponseMetadata

if TYPE_CHECKING:
    from courier.request import RequestDescriptor
    from courier.transport.base import CompletionHandler


@dataclass(frozen=True)
class MockResponse:
    """A canned reply. Set ``error`` to simulate a transport failure."""

    body: bytes | None = b""
    status_code: int = 200
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    error: BaseException | None = None

    @classmethod
    def json(cls, obj: Any, *, status_code: int = 200) -> MockResponse:
        return cls(
            body=json.dumps(obj).encode("utf-8"),
            status_code=status_code,
            headers={"content-type": "application/json"},
        )

    @classmethod
    def text(cls, text: str, *, status_code: int = 200) -> MockResponse:
        return cls(
            body=text.encode("utf-8"),
            status_code=status_code,
            headers={"content-type": "text/plain; charset=utf-8"},
        )

    @classmethod
    def failure(cls, error: BaseException) -> MockResponse:
        return cls(body=None, error=error)


class MockTransport:
    """Transport source that never touches the network.

    Example:
        transport = MockTransport([MockResponse.json({"id": 1})])
        task = ServiceTask(Request(Method.GET, "https://x.test/"), transport)
    """

    def __init__(
        self,
        responses: Iterable[MockResponse | BaseException] = (),
        *,
        routes: Mapping[str, MockResponse | BaseException] | None = None,
        default: MockResponse | None = None,
        auto_complete: bool = True,
    ) -> None:
        self.auto_complete = auto_complete
        self.default = default or MockResponse()
        self.submitted: list[RequestDescriptor] = []
        self.operations: list[MockOperation] = []
        self._script: deque[MockResponse | BaseException] = deque(responses)
        self._routes = dict(routes or {})
        self._lock = threading.Lock()

    def submit(
        self, descriptor: RequestDescriptor, on_complete: CompletionHandler
    ) -> MockOperation:
        operation = MockOperation(self, descriptor, on_complete)
        with self._lock:
            self.submitted.append(descriptor)
            self.operations.append(operation)
        return operation

    def complete_next(
        self, response: MockResponse | BaseException | None = None
    ) -> MockOperation:
        """Complete the oldest resumed operation that is still running."""
        with self._lock:
            waiting = [
                op for op in self.operations if op.state is OperationState.RUNNING
            ]
        if not waiting:
            raise InvalidStateError(
                "No running operation to complete",
                hint="Call resume() on a task before complete_next().",
            )
        operation = waiting[0]
        operation.complete(response)
        return operation

    def _next_response(
        self, descriptor: RequestDescriptor
    ) -> MockResponse | BaseException:
        with self._lock:
            if descriptor.url in self._routes:
                return self._routes[descriptor.url]
            if self._script:
                return self._script.popleft()
        return self.default


class MockOperation:
    """Operation created by ``MockTransport``; records how it was driven."""

    def __init__(
        self,
        transport: MockTransport,
        descriptor: RequestDescriptor,
        on_complete: CompletionHandler,
    ) -> None:
        self.descriptor = descriptor
        self.resume_count = 0
        self.suspend_count = 0
        self._transport = transport
        self._on_complete = on_complete
        self._lock = threading.Lock()
        self._state = OperationState.SUSPENDED

    @property
    def state(self) -> OperationState:
        return self._state

    def resume(self) -> None:
        with self._lock:
            if self._state is OperationState.COMPLETED:
                return
            self._state = OperationState.RUNNING
            self.resume_count += 1
        if self._transport.auto_complete:
            self.complete()

    def suspend(self) -> None:
        with self._lock:
            if self._state is OperationState.RUNNING:
                self._state = OperationState.SUSPENDED
                self.suspend_count += 1

    def cancel(self) -> None:
        error = TransportCancelledError(
            f"{self.descriptor.method} {self.descriptor.url} was cancelled",
            descriptor=self.descriptor,
        )
        self._finish(None, None, error)

    def complete(self, response: MockResponse | BaseException | None = None) -> None:
        """Deliver *response*, or the transport's next scripted reply."""
        reply = response
        if reply is None:
            reply = self._transport._next_response(self.descriptor)
        if isinstance(reply, BaseException):
            self._finish(None, None, reply)
        elif reply.error is not None:
            self._finish(None, None, reply.error)
        else:
            metadata = ResponseMetadata(
                status_code=reply.status_code,
                headers=reply.headers,
                url=self.descriptor.url,
                http_version="HTTP/1.1",
            )
            self._finish(reply.body, metadata, None)

    def _finish(
        self,
        data: bytes | None,
        metadata: ResponseMetadata | None,
        error: BaseException | None,
    ) -> None:
        with self._lock:
            if self._state is OperationState.COMPLETED:
                return
            self._state = OperationState.COMPLETED
        self._on_complete(data, metadata, error)
