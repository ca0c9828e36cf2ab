"""Exception hierarchy and hint tests."""

from __future__ import annotations

import pytest

from courier.errors import (
    ConfigurationError,
    CourierError,
    HandlerResultError,
    InvalidStateError,
    NilResponseBodyError,
    RequestEncodingError,
    TransportCancelledError,
    TransportError,
    walk_exception_chain,
)
from courier.request import RequestDescriptor

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "error_type",
    [
        ConfigurationError,
        RequestEncodingError,
        InvalidStateError,
        TransportError,
        TransportCancelledError,
        NilResponseBodyError,
        HandlerResultError,
    ],
)
def test_all_errors_share_the_courier_base(error_type: type[Exception]) -> None:
    assert issubclass(error_type, CourierError)


def test_hint_is_keyword_only_and_optional() -> None:
    assert CourierError("plain").hint is None
    assert CourierError("with hint", hint="do this").hint == "do this"


def test_cancellation_is_a_transport_error() -> None:
    descriptor = RequestDescriptor("GET", "https://example.test/")
    error = TransportCancelledError("cancelled", descriptor=descriptor)

    assert isinstance(error, TransportError)
    assert error.descriptor is descriptor


def test_nil_body_error_has_default_message_and_hint() -> None:
    error = NilResponseBodyError()
    assert "empty" in str(error)
    assert error.hint is not None
    assert "204" in error.hint


def test_walk_exception_chain_follows_cause_and_context() -> None:
    root = OSError("refused")
    middle = ConnectionError("connect failed")
    middle.__cause__ = root
    top = RuntimeError("request failed")
    top.__context__ = middle

    assert list(walk_exception_chain(top)) == [top, middle, root]


def test_walk_exception_chain_survives_cycles() -> None:
    a = ValueError("a")
    b = ValueError("b")
    a.__cause__ = b
    b.__cause__ = a

    assert list(walk_exception_chain(a)) == [a, b]
