"""Passthrough delegate: observer hooks for logging and instrumentation.

A delegate is any object implementing some of the methods below; missing
methods are skipped. Subclass ``PassthroughDelegate`` to override only the
events you care about. Delegates never influence task control flow, except
``modified_request`` which may rewrite a request before it is sent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from courier.request import RequestDescriptor
    from courier.transport.base import ResponseMetadata

logger = logging.getLogger(__name__)


class PassthroughDelegate:
    """No-op base class for passthrough delegates."""

    def modified_request(self, request: RequestDescriptor) -> RequestDescriptor | None:
        """Return a replacement for *request*, or None to send it unchanged."""
        return None

    def request_sent(self, request: RequestDescriptor) -> None:
        """A request was handed to the transport."""

    def response_received(
        self,
        response: ResponseMetadata | None,
        data: bytes | None,
        request: RequestDescriptor,
        error: BaseException | None,
    ) -> None:
        """The transport completed, successfully or not."""

    def service_result_failure(self, error: BaseException) -> None:
        """A task's result was set to ``Failure(error)``."""

    def update_ui_begin(self, response: ResponseMetadata | None) -> None:
        """An ``update_ui`` callback is about to run."""

    def update_ui_end(self, response: ResponseMetadata | None) -> None:
        """An ``update_ui`` callback finished."""


class LoggingPassthrough(PassthroughDelegate):
    """Logs every passthrough event through the standard ``logging`` module."""

    def __init__(
        self, logger: logging.Logger | None = None, *, level: int = logging.DEBUG
    ) -> None:
        self.logger = logger or logging.getLogger("courier.passthrough.events")
        self.level = level

    def request_sent(self, request: RequestDescriptor) -> None:
        self.logger.log(self.level, "Sent %s %s", request.method, request.url)

    def response_received(
        self,
        response: ResponseMetadata | None,
        data: bytes | None,
        request: RequestDescriptor,
        error: BaseException | None,
    ) -> None:
        if error is not None:
            self.logger.log(
                self.level, "Failed %s %s: %s", request.method, request.url, error
            )
            return
        status = response.status_code if response is not None else "?"
        size = len(data) if data is not None else 0
        self.logger.log(
            self.level,
            "Received %s for %s %s (%d bytes)",
            status,
            request.method,
            request.url,
            size,
        )

    def service_result_failure(self, error: BaseException) -> None:
        self.logger.log(
            self.level, "Result failure: %s: %s", type(error).__name__, error
        )

    def update_ui_begin(self, response: ResponseMetadata | None) -> None:
        self.logger.log(self.level, "UI update begin (%s)", _status(response))

    def update_ui_end(self, response: ResponseMetadata | None) -> None:
        self.logger.log(self.level, "UI update end (%s)", _status(response))


def _status(response: ResponseMetadata | None) -> Any:
    return response.status_code if response is not None else None


def notify(delegate: object | None, event: str, *args: Any) -> Any:
    """Call ``delegate.<event>(*args)`` if the delegate implements it.

    Errors raised by the delegate are logged and suppressed so observers
    cannot break a task.
    """
    if delegate is None:
        return None
    method = getattr(delegate, event, None)
    if not callable(method):
        return None
    try:
        return method(*args)
    except Exception as exc:
        logger.warning(
            "Passthrough delegate %s.%s failed: %s",
            type(delegate).__name__,
            event,
            exc,
            exc_info=True,
        )
        return None
