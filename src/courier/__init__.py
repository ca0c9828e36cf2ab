"""Courier: chainable HTTP request/response pipelines.

Public API:
    - WebService: Builds tasks for paths relative to a base URL
    - ServiceTask: One request plus its ordered handler chain
    - Empty / Value / Failure: Handler results
    - ServiceConfiguration / TransportSettings: Configuration
"""

from __future__ import annotations

import logging

from courier.config import ServiceConfiguration, TransportSettings
from courier.dispatch import (
    AsyncioUIContext,
    ImmediateUIContext,
    ThreadUIContext,
    UIContext,
)
from courier.errors import (
    ConfigurationError,
    CourierError,
    HandlerResultError,
    InvalidStateError,
    NilResponseBodyError,
    RequestEncodingError,
    TransportCancelledError,
    TransportError,
)
from courier.passthrough import LoggingPassthrough, PassthroughDelegate
from courier.request import (
    CachePolicy,
    ContentType,
    Method,
    ParameterEncoding,
    Request,
    RequestDescriptor,
)
from courier.result import Empty, Failure, ServiceTaskResult, Value
from courier.service import WebService
from courier.task import ServiceTask, TaskState
from courier.transport import (
    HTTPXTransport,
    MockResponse,
    MockTransport,
    ResponseMetadata,
)

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("courier-http")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("courier").addHandler(logging.NullHandler())

__all__ = [
    "AsyncioUIContext",
    "CachePolicy",
    "ConfigurationError",
    "ContentType",
    "CourierError",
    "Empty",
    "Failure",
    "HTTPXTransport",
    "HandlerResultError",
    "ImmediateUIContext",
    "InvalidStateError",
    "LoggingPassthrough",
    "Method",
    "MockResponse",
    "MockTransport",
    "NilResponseBodyError",
    "ParameterEncoding",
    "PassthroughDelegate",
    "Request",
    "RequestDescriptor",
    "RequestEncodingError",
    "ResponseMetadata",
    "ServiceConfiguration",
    "ServiceTask",
    "ServiceTaskResult",
    "TaskState",
    "ThreadUIContext",
    "TransportCancelledError",
    "TransportError",
    "TransportSettings",
    "UIContext",
    "Value",
    "WebService",
]
