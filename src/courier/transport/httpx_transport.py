"""Default transport: blocking ``httpx.Client`` requests on a worker pool.

Responses are streamed so an operation can be suspended or cancelled between
body chunks. HTTP error statuses are delivered as ordinary responses; only
failures to obtain a response are reported as errors.
"""

from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
import logging
import threading
from typing import TYPE_CHECKING, ClassVar, Self

import httpx

from courier._http import CACHE_CONTROL_HEADER, PRAGMA_HEADER, USER_AGENT_HEADER
from courier.config import TransportSettings
from courier.errors import (
    TransportCancelledError,
    TransportError,
    walk_exception_chain,
)
from courier.request import CachePolicy
from courier.transport.base import OperationState, ResponseMetadata

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from courier.request import RequestDescriptor
    from courier.transport.base import CompletionHandler

logger = logging.getLogger(__name__)

_DEFAULT_MAX_WORKERS = 8


class HTTPXTransport:
    """Transport source backed by ``httpx.Client``.

    Args:
        client: Client to send requests with. When None, one is built from
            *settings* and closed by ``close()``.
        settings: Timeout, redirect and user agent defaults.
        executor: Runs the blocking requests. A private pool is created
            lazily when None.
    """

    _shared: ClassVar[dict[TransportSettings, HTTPXTransport]] = {}
    _shared_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        settings: TransportSettings | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.settings = (
            settings if settings is not None else TransportSettings.from_env()
        )
        self._owns_client = client is None
        self._client = client if client is not None else self._build_client()
        self._executor = executor
        self._owns_executor = executor is None
        self._executor_lock = threading.Lock()

    @classmethod
    def shared(cls, settings: TransportSettings) -> HTTPXTransport:
        """Return a process-wide transport for *settings*, creating it once."""
        with cls._shared_lock:
            transport = cls._shared.get(settings)
            if transport is None:
                transport = cls(settings=settings)
                cls._shared[settings] = transport
            return transport

    def _build_client(self) -> httpx.Client:
        headers = {}
        if self.settings.user_agent:
            headers[USER_AGENT_HEADER] = self.settings.user_agent
        return httpx.Client(
            timeout=self.settings.timeout_s,
            follow_redirects=self.settings.follow_redirects,
            headers=headers,
        )

    @property
    def client(self) -> httpx.Client:
        return self._client

    def submit(
        self, descriptor: RequestDescriptor, on_complete: CompletionHandler
    ) -> HTTPXOperation:
        """Create a suspended operation for *descriptor*."""
        return HTTPXOperation(self, descriptor, on_complete)

    def close(self) -> None:
        """Close the owned client and worker pool."""
        if self._owns_client:
            self._client.close()
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _dispatch(self, work: Callable[[], None]) -> None:
        if self._executor is None:
            with self._executor_lock:
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=_DEFAULT_MAX_WORKERS,
                        thread_name_prefix="courier-transport",
                    )
        self._executor.submit(work)


class HTTPXOperation:
    """One request sent through ``HTTPXTransport``.

    Created suspended; the request is dispatched on the first ``resume()``.
    ``suspend()`` pauses body reading between chunks. ``cancel()`` before
    dispatch completes immediately; afterwards the stream is abandoned at
    the next chunk boundary. Either way completion reports
    ``TransportCancelledError``.
    """

    def __init__(
        self,
        transport: HTTPXTransport,
        descriptor: RequestDescriptor,
        on_complete: CompletionHandler,
    ) -> None:
        self.descriptor = descriptor
        self._transport = transport
        self._on_complete = on_complete
        self._lock = threading.Lock()
        self._state = OperationState.SUSPENDED
        self._dispatched = False
        self._cancelled = False
        self._finished = False
        # Set while body reading may proceed
        self._running = threading.Event()

    @property
    def state(self) -> OperationState:
        return self._state

    def resume(self) -> None:
        with self._lock:
            if self._state in (OperationState.CANCELING, OperationState.COMPLETED):
                return
            self._state = OperationState.RUNNING
            self._running.set()
            dispatch = not self._dispatched
            self._dispatched = True
        if dispatch:
            logger.debug(
                "Dispatching %s %s", self.descriptor.method, self.descriptor.url
            )
            self._transport._dispatch(self._run)

    def suspend(self) -> None:
        with self._lock:
            if self._state is not OperationState.RUNNING:
                return
            self._state = OperationState.SUSPENDED
            self._running.clear()

    def cancel(self) -> None:
        with self._lock:
            if self._state in (OperationState.CANCELING, OperationState.COMPLETED):
                return
            self._cancelled = True
            if self._dispatched:
                self._state = OperationState.CANCELING
                # Wake a suspended reader so it notices the cancellation
                self._running.set()
                return
        logger.debug(
            "Cancelled %s %s before dispatch",
            self.descriptor.method,
            self.descriptor.url,
        )
        self._finish(None, None, self._cancellation())

    def _run(self) -> None:
        descriptor = self.descriptor
        if self._cancelled:
            self._finish(None, None, self._cancellation())
            return
        try:
            with self._transport.client.stream(
                descriptor.method,
                descriptor.url,
                headers=_request_headers(descriptor),
                content=descriptor.body,
            ) as response:
                metadata = _response_metadata(response)
                chunks: list[bytes] = []
                for chunk in response.iter_bytes():
                    self._running.wait()
                    if self._cancelled:
                        break
                    chunks.append(chunk)
        except Exception as e:
            self._finish(None, None, _transport_error(e, descriptor))
            return

        if self._cancelled:
            self._finish(None, None, self._cancellation())
        else:
            self._finish(b"".join(chunks), metadata, None)

    def _cancellation(self) -> TransportCancelledError:
        return TransportCancelledError(
            f"{self.descriptor.method} {self.descriptor.url} was cancelled",
            descriptor=self.descriptor,
        )

    def _finish(
        self,
        data: bytes | None,
        metadata: ResponseMetadata | None,
        error: BaseException | None,
    ) -> None:
        with self._lock:
            if self._finished:
                return
            self._finished = True
            self._state = OperationState.COMPLETED
        self._on_complete(data, metadata, error)


def _request_headers(descriptor: RequestDescriptor) -> dict[str, str]:
    headers = dict(descriptor.headers)
    if descriptor.cache_policy is CachePolicy.RELOAD_IGNORING_LOCAL_CACHE:
        headers.setdefault(CACHE_CONTROL_HEADER, "no-cache")
        headers.setdefault(PRAGMA_HEADER, "no-cache")
    return headers


def _response_metadata(response: httpx.Response) -> ResponseMetadata:
    return ResponseMetadata(
        status_code=response.status_code,
        headers=dict(response.headers),
        url=str(response.url),
        http_version=response.http_version,
        reason_phrase=response.reason_phrase,
    )


def _transport_error(exc: Exception, descriptor: RequestDescriptor) -> TransportError:
    """Wrap *exc* in a TransportError that keeps it as ``__cause__``."""
    hint = None
    for e in walk_exception_chain(exc):
        if isinstance(e, httpx.TimeoutException):
            hint = "Increase COURIER_TIMEOUT_S or TransportSettings.timeout_s."
            break
        if isinstance(e, httpx.ConnectError):
            hint = "Check the host name and that the server is reachable."
            break
    error = TransportError(
        f"{descriptor.method} {descriptor.url} failed: {exc}",
        hint=hint,
        descriptor=descriptor,
    )
    error.__cause__ = exc
    return error
