"""Transport protocol: the minimal interface a network backend must offer."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from courier.request import RequestDescriptor


class OperationState(Enum):
    """Lifecycle of a single transport operation."""

    RUNNING = "running"
    SUSPENDED = "suspended"
    CANCELING = "canceling"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class ResponseMetadata:
    """Transport-neutral view of an HTTP response, without the body."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    url: str | None = None
    http_version: str | None = None
    reason_phrase: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.headers, MappingProxyType):
            object.__setattr__(
                self,
                "headers",
                MappingProxyType({k.lower(): v for k, v in self.headers.items()}),
            )

    @property
    def ok(self) -> bool:
        """Whether the status code is in the 2xx range."""
        return 200 <= self.status_code < 300

    @property
    def content_type(self) -> str | None:
        """The response ``content-type`` header, if present."""
        return self.headers.get("content-type")


CompletionHandler = Callable[
    [bytes | None, ResponseMetadata | None, BaseException | None], None
]
"""Called exactly once per operation with ``(body, metadata, error)``."""


@runtime_checkable
class TransportOperation(Protocol):
    """Handle on one in-flight request."""

    @property
    def state(self) -> OperationState:
        """Current lifecycle state."""
        ...

    def resume(self) -> None:
        """Start the operation, or continue it after ``suspend()``."""
        ...

    def suspend(self) -> None:
        """Pause the operation; it may be resumed later."""
        ...

    def cancel(self) -> None:
        """Cancel the operation; completion is still reported, with an error."""
        ...


@runtime_checkable
class TransportSource(Protocol):
    """Creates transport operations for request descriptors.

    Operations are created suspended. ``on_complete`` may be invoked from any
    thread, at most once.
    """

    def submit(
        self, descriptor: RequestDescriptor, on_complete: CompletionHandler
    ) -> TransportOperation:
        """Create a suspended operation that sends *descriptor*."""
        ...
