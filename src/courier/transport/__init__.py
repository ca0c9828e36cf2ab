"""Transport implementations."""

from .base import OperationState, ResponseMetadata, TransportOperation, TransportSource
from .httpx_transport import HTTPXOperation, HTTPXTransport
from .mock import MockOperation, MockResponse, MockTransport

__all__ = [
    "HTTPXOperation",
    "HTTPXTransport",
    "MockOperation",
    "MockResponse",
    "MockTransport",
    "OperationState",
    "ResponseMetadata",
    "TransportOperation",
    "TransportSource",
]
