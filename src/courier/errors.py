"""Exception hierarchy for Courier."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from courier.request import RequestDescriptor


class CourierError(Exception):
    """Base exception for all Courier errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(CourierError):
    """Configuration validation or resolution failed."""


class RequestEncodingError(CourierError):
    """A request body or its parameters could not be encoded."""


class InvalidStateError(CourierError):
    """An operation is not allowed in the task's current state."""


class TransportError(CourierError):
    """The transport failed to deliver a response.

    The underlying exception (``httpx.ConnectError`` and friends) is kept as
    ``__cause__``; the descriptor that was sent is attached when known.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        descriptor: RequestDescriptor | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.descriptor = descriptor


class TransportCancelledError(TransportError):
    """The transport operation was cancelled before it completed."""


class NilResponseBodyError(CourierError):
    """A JSON handler was registered but the response carried no body."""

    def __init__(
        self, message: str = "Cannot parse JSON: response body is empty"
    ) -> None:
        super().__init__(
            message,
            hint="HEAD requests and 204 replies carry no body; check the status code.",
        )


class HandlerResultError(CourierError):
    """A response handler returned something other than Empty, Value or Failure."""


def walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, cycle-safe."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
