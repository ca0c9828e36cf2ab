"""ServiceTask: one HTTP request plus the ordered chain of handlers that process it.

A task wraps a single transport operation. Handlers registered on the task
are queued immediately but only run once the operation completes, strictly
in registration order, on a background queue. ``update_ui`` and
``update_error_ui`` callbacks are handed off to a UI context.

Example:
    task = (
        service.get("/users/42")
        .response_json(lambda obj: Value(User(**obj)))
        .update_ui(lambda user: view.show(user))
        .response_error(lambda error: log.warning("lookup failed: %s", error))
        .resume()
    )
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import json
import logging
import threading
from typing import TYPE_CHECKING, Any, Self
import weakref

from pydantic import BaseModel, ValidationError

from courier.config import ServiceConfiguration
from courier.dispatch import HandlerQueue, default_ui_context
from courier.errors import (
    HandlerResultError,
    InvalidStateError,
    NilResponseBodyError,
    RequestEncodingError,
)
from courier.passthrough import notify
from courier.request import RequestDescriptor
from courier.result import Empty, Failure, ServiceTaskResult, Value, is_result
from courier.transport.base import OperationState, ResponseMetadata

if TYPE_CHECKING:
    from concurrent.futures import Executor

    from courier.dispatch import UIContext
    from courier.request import CachePolicy, ParameterEncoding, Request
    from courier.transport.base import TransportOperation, TransportSource

logger = logging.getLogger(__name__)

# A task reports the state of its transport operation.
TaskState = OperationState

ResponseProcessingHandler = Callable[
    [bytes | None, ResponseMetadata | None], ServiceTaskResult
]
JSONHandler = Callable[[Any], ServiceTaskResult]
UpdateUIHandler = Callable[[Any], None]
ErrorHandler = Callable[[BaseException], None]


class ServiceTask:
    """Chainable pipeline around a single HTTP request.

    Every registration method returns ``self`` and is safe to call from any
    thread, before or after ``resume()``.
    """

    def __init__(
        self,
        request: Request,
        transport: TransportSource,
        *,
        configuration: ServiceConfiguration | None = None,
        ui_context: UIContext | None = None,
        executor: Executor | None = None,
    ) -> None:
        """Initialize a task to fulfill *request*.

        Args:
            request: The request to send. Frozen once ``resume()`` is called.
            transport: Creates the transport operation that sends the request.
            configuration: Source of passthrough hooks and defaults. Held
                weakly; the process default is used when None.
            ui_context: Where ``update_ui``/``update_error_ui`` callbacks run.
            executor: Background executor for the handler queue.
        """
        configuration = configuration or ServiceConfiguration.default_configuration()
        self._request = request
        self._transport = transport
        self._configuration_ref = weakref.ref(configuration)
        self._ui_context: UIContext = (
            ui_context or configuration.ui_context or default_ui_context()
        )
        self._handlers = HandlerQueue(executor or configuration.handler_executor)

        self._lock = threading.Lock()
        self._started = False
        self._completed = False
        self._operation: TransportOperation | None = None
        self._descriptor: RequestDescriptor | None = None

        self._result: ServiceTaskResult | None = None
        self._response_data: bytes | None = None
        self._response_metadata: ResponseMetadata | None = None

    def __repr__(self) -> str:
        return (
            f"ServiceTask({self._request.method.value} {self._request.url}, "
            f"state={self.state.value})"
        )

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def request(self) -> Request:
        return self._request

    @property
    def state(self) -> TaskState:
        """State of the underlying transport operation.

        ``SUSPENDED`` until ``resume()`` creates the operation.
        """
        operation = self._operation
        if operation is not None:
            return operation.state
        return TaskState.COMPLETED if self._completed else TaskState.SUSPENDED

    @property
    def result(self) -> ServiceTaskResult | None:
        """Most recent result, or None before any was produced."""
        return self._result

    @property
    def response_data(self) -> bytes | None:
        return self._response_data

    @property
    def response_metadata(self) -> ResponseMetadata | None:
        return self._response_metadata

    @property
    def configuration(self) -> ServiceConfiguration | None:
        """The configuration, if it is still alive."""
        return self._configuration_ref()

    # ------------------------------------------------------------------
    # Request API
    # ------------------------------------------------------------------

    def set_parameters(
        self,
        parameters: Mapping[str, Any],
        encoding: ParameterEncoding | None = None,
    ) -> Self:
        self._mutable_request().set_parameters(parameters, encoding)
        return self

    def set_body(self, data: bytes | bytearray | memoryview | str) -> Self:
        self._mutable_request().set_body(data)
        return self

    def set_json(self, obj: Any) -> Self:
        """Serialize *obj* as the JSON body.

        Raises:
            RequestEncodingError: If *obj* is not JSON serializable.
        """
        self._mutable_request().set_json(obj)
        return self

    def set_headers(self, headers: Mapping[str, str]) -> Self:
        self._mutable_request().set_headers(headers)
        return self

    def set_header_value(self, value: str, name: str) -> Self:
        self._mutable_request().set_header_value(value, name)
        return self

    def set_cache_policy(self, cache_policy: CachePolicy) -> Self:
        self._mutable_request().set_cache_policy(cache_policy)
        return self

    def set_parameter_encoding(self, encoding: ParameterEncoding) -> Self:
        self._mutable_request().set_parameter_encoding(encoding)
        return self

    def _mutable_request(self) -> Request:
        if self._started:
            raise InvalidStateError(
                "Cannot modify the request of a task that has been resumed",
                hint="Configure the request before calling resume().",
            )
        return self._request

    # ------------------------------------------------------------------
    # Transport operation
    # ------------------------------------------------------------------

    def resume(self) -> Self:
        """Start the transport operation, or resume it after ``suspend()``.

        The operation is created on the first call only. If the request
        cannot be encoded, no operation is created: the result becomes
        ``Failure(RequestEncodingError)`` and the handlers run right away.
        """
        descriptor: RequestDescriptor | None = None
        encoding_error: RequestEncodingError | None = None
        with self._lock:
            first = not self._started
            self._started = True
            if first:
                try:
                    descriptor = self._request.descriptor()
                except RequestEncodingError as e:
                    encoding_error = e
            operation = self._operation

        # Hooks and the transport are called without holding the lock
        if encoding_error is not None:
            logger.debug("Request encoding failed, failing task: %s", encoding_error)
            if self._claim_completion():
                self._handle_response(None, None, encoding_error)
            return self
        if descriptor is not None:
            operation = self._submit(descriptor)
            with self._lock:
                self._operation = operation
        if operation is not None:
            operation.resume()
        return self

    def suspend(self) -> None:
        """Suspend the transport operation. No effect before ``resume()``."""
        operation = self._operation
        if operation is not None:
            operation.suspend()

    def cancel(self) -> None:
        """Cancel the transport operation. No effect before ``resume()``.

        Handlers still run; error handlers receive the cancellation error.
        """
        operation = self._operation
        if operation is not None:
            operation.cancel()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the response arrived and all handlers added so far ran.

        UI callbacks are handed off, not awaited, so they may still be queued
        on the UI context when this returns.

        Returns:
            False if *timeout* elapsed first.
        """
        return self._handlers.join(timeout)

    def _submit(self, descriptor: RequestDescriptor) -> TransportOperation:
        delegate = self._delegate()
        modified = notify(delegate, "modified_request", descriptor)
        if isinstance(modified, RequestDescriptor):
            descriptor = modified
        self._descriptor = descriptor
        notify(delegate, "request_sent", descriptor)
        logger.debug("Submitting %s %s", descriptor.method, descriptor.url)
        return self._transport.submit(descriptor, self._transport_completed)

    def _transport_completed(
        self,
        data: bytes | None,
        metadata: ResponseMetadata | None,
        error: BaseException | None,
    ) -> None:
        if not self._claim_completion():
            return
        notify(
            self._delegate(),
            "response_received",
            metadata,
            data,
            self._descriptor,
            error,
        )
        self._handle_response(metadata, data, error)

    def _claim_completion(self) -> bool:
        """Mark the task completed; False if it already was."""
        with self._lock:
            claimed = not self._completed
            self._completed = True
        if not claimed:
            logger.warning("Ignoring duplicate completion for %r", self)
        return claimed

    def _handle_response(
        self,
        metadata: ResponseMetadata | None,
        data: bytes | None,
        error: BaseException | None,
    ) -> None:
        """Record the response and release the handler queue."""
        self._response_metadata = metadata
        self._response_data = data
        if error is not None:
            self._set_result(Failure(error))
        logger.debug(
            "Task completed (status=%s, error=%s); releasing %d handler(s)",
            metadata.status_code if metadata is not None else None,
            type(error).__name__ if error is not None else None,
            self._handlers.pending,
        )
        self._handlers.release()

    # ------------------------------------------------------------------
    # Response API
    # ------------------------------------------------------------------

    def response(self, handler: ResponseProcessingHandler) -> Self:
        """Add a background handler that turns the raw response into a result.

        The handler is skipped if an earlier result is a ``Failure``. Its
        return value replaces the task's result; an exception it raises
        becomes ``Failure(exception)``.
        """

        def entry() -> None:
            if isinstance(self._result, Failure):
                return
            self._set_result(self._process(handler))

        self._handlers.add(entry)
        return self

    def response_json(self, handler: JSONHandler) -> Self:
        """Add a response handler that receives the body parsed as JSON.

        An absent or empty body yields ``Failure(NilResponseBodyError)`` and
        malformed JSON yields ``Failure(JSONDecodeError)``; *handler* is not
        called in either case.
        """

        def process_json(
            data: bytes | None, metadata: ResponseMetadata | None
        ) -> ServiceTaskResult:
            if not data:
                return Failure(NilResponseBodyError())
            try:
                obj = json.loads(data)
            except ValueError as e:
                return Failure(e)
            return handler(obj)

        return self.response(process_json)

    def response_model(
        self,
        model: type[BaseModel],
        handler: Callable[[BaseModel], ServiceTaskResult] | None = None,
    ) -> Self:
        """Add a response handler that validates the JSON body into *model*.

        The result is ``Value(instance)``, or whatever *handler* returns for
        the instance. Invalid bodies yield ``Failure(ValidationError)``.
        """

        def process_model(
            data: bytes | None, metadata: ResponseMetadata | None
        ) -> ServiceTaskResult:
            if not data:
                return Failure(NilResponseBodyError())
            try:
                instance = model.model_validate_json(data)
            except ValidationError as e:
                return Failure(e)
            return handler(instance) if handler is not None else Value(instance)

        return self.response(process_model)

    def update_ui(self, handler: UpdateUIHandler) -> Self:
        """Add a handler that runs on the UI context with the current value.

        Called with the ``Value`` payload, or None for ``Empty``. Skipped when
        the result is a ``Failure`` or no result was produced.
        """

        def entry() -> None:
            result = self._result
            if isinstance(result, Value):
                payload = result.payload
            elif isinstance(result, Empty):
                payload = None
            else:
                return
            metadata = self._response_metadata
            self._ui_context.call_soon(
                lambda: self._run_ui_update(handler, payload, metadata)
            )

        self._handlers.add(entry)
        return self

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------

    def response_error(self, handler: ErrorHandler) -> Self:
        """Add a background handler called only if the result is a ``Failure``."""

        def entry() -> None:
            result = self._result
            if not isinstance(result, Failure):
                return
            try:
                handler(result.error)
            except Exception:
                logger.exception("response_error handler %s raised", _name(handler))

        self._handlers.add(entry)
        return self

    def update_error_ui(self, handler: ErrorHandler) -> Self:
        """Add a UI-context handler called only if the result is a ``Failure``."""

        def entry() -> None:
            result = self._result
            if not isinstance(result, Failure):
                return
            error = result.error
            self._ui_context.call_soon(lambda: self._run_error_ui(handler, error))

        self._handlers.add(entry)
        return self

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _process(self, handler: ResponseProcessingHandler) -> ServiceTaskResult:
        try:
            result = handler(self._response_data, self._response_metadata)
        except Exception as e:
            logger.debug("Response handler %s raised %r", _name(handler), e)
            return Failure(e)
        if not is_result(result):
            return Failure(
                HandlerResultError(
                    f"Response handler {_name(handler)} returned "
                    f"{type(result).__name__}",
                    hint="Return Empty(), Value(payload) or Failure(error).",
                )
            )
        return result

    def _set_result(self, result: ServiceTaskResult) -> None:
        self._result = result
        if isinstance(result, Failure):
            notify(self._delegate(), "service_result_failure", result.error)

    def _run_ui_update(
        self,
        handler: UpdateUIHandler,
        payload: Any,
        metadata: ResponseMetadata | None,
    ) -> None:
        delegate = self._delegate()
        notify(delegate, "update_ui_begin", metadata)
        try:
            handler(payload)
        except Exception:
            logger.exception("update_ui handler %s raised", _name(handler))
        finally:
            notify(delegate, "update_ui_end", metadata)

    def _run_error_ui(self, handler: ErrorHandler, error: BaseException) -> None:
        try:
            handler(error)
        except Exception:
            logger.exception("update_error_ui handler %s raised", _name(handler))

    def _delegate(self) -> object | None:
        configuration = self._configuration_ref()
        if configuration is None:
            return None
        return configuration.passthrough_delegate


def _name(handler: Callable[..., Any]) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)
