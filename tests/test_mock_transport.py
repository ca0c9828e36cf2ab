"""MockTransport behavior tests."""

from __future__ import annotations

import pytest

from courier.errors import InvalidStateError, TransportCancelledError, TransportError
from courier.request import RequestDescriptor
from courier.transport.base import OperationState
from courier.transport.mock import MockResponse, MockTransport

pytestmark = pytest.mark.unit


def _collect(into: list):
    return lambda data, meta, error: into.append((data, meta, error))


def test_scripted_responses_are_served_in_order() -> None:
    transport = MockTransport([MockResponse.text("one"), MockResponse.text("two")])
    results: list = []

    for _ in range(3):
        transport.submit(RequestDescriptor("GET", "https://a.test/"), _collect(results))
    for operation in transport.operations:
        operation.resume()

    assert [data for data, _, _ in results] == [b"one", b"two", b""]
    assert len(transport.submitted) == 3


def test_routes_match_by_url() -> None:
    transport = MockTransport(
        [MockResponse.text("scripted")],
        routes={"https://a.test/health": MockResponse.json({"ok": True})},
    )
    results: list = []

    transport.submit(
        RequestDescriptor("GET", "https://a.test/health"), _collect(results)
    ).resume()

    data, meta, error = results[0]
    assert data == b'{"ok": true}'
    assert meta.content_type == "application/json"
    assert error is None


def test_errors_are_delivered_without_metadata() -> None:
    failure = TransportError("offline")
    transport = MockTransport([failure, MockResponse.failure(failure)])
    results: list = []

    for _ in range(2):
        transport.submit(
            RequestDescriptor("GET", "https://a.test/"), _collect(results)
        ).resume()

    assert results == [(None, None, failure), (None, None, failure)]


def test_manual_completion_drives_running_operations() -> None:
    transport = MockTransport(auto_complete=False)
    results: list = []
    operation = transport.submit(
        RequestDescriptor("GET", "https://a.test/"), _collect(results)
    )

    with pytest.raises(InvalidStateError):
        transport.complete_next()

    operation.resume()
    assert results == []
    assert transport.complete_next(MockResponse.text("late")) is operation

    assert results[0][0] == b"late"
    assert operation.state is OperationState.COMPLETED


def test_cancel_completes_once_with_cancellation() -> None:
    transport = MockTransport(auto_complete=False)
    results: list = []
    operation = transport.submit(
        RequestDescriptor("GET", "https://a.test/"), _collect(results)
    )
    operation.resume()

    operation.cancel()
    operation.cancel()
    operation.complete(MockResponse.text("too late"))

    assert len(results) == 1
    assert isinstance(results[0][2], TransportCancelledError)
