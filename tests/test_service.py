"""WebService factory and end-to-end tests."""

from __future__ import annotations

import gc
import threading

import httpx
import pytest

from courier.config import ServiceConfiguration, TransportSettings
from courier.dispatch import ThreadUIContext
from courier.errors import TransportError
from courier.request import Method
from courier.result import Failure, Value
from courier.service import WebService
from courier.transport.httpx_transport import HTTPXTransport
from courier.transport.mock import MockResponse, MockTransport
from tests.helpers import InlineExecutor, ThreadCapture

pytestmark = pytest.mark.unit

BASE = "https://api.test/v1/"


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("users/42", "https://api.test/v1/users/42"),
        ("/health", "https://api.test/health"),
        ("", "https://api.test/v1/"),
        ("https://other.test/x", "https://other.test/x"),
        ("users?page=2", "https://api.test/v1/users?page=2"),
    ],
)
def test_absolute_url(path: str, expected: str) -> None:
    service = WebService(BASE, transport=MockTransport())
    assert service.absolute_url(path) == expected


@pytest.mark.parametrize(
    ("factory", "method"),
    [
        ("get", Method.GET),
        ("post", Method.POST),
        ("put", Method.PUT),
        ("delete", Method.DELETE),
        ("head", Method.HEAD),
    ],
)
def test_verb_factories_build_suspended_tasks(factory: str, method: Method) -> None:
    transport = MockTransport()
    service = WebService(BASE, transport=transport)

    task = getattr(service, factory)("items")

    assert task.request.method is method
    assert task.request.url == "https://api.test/v1/items"
    assert transport.submitted == []


def test_tasks_share_the_service_configuration(sync_config) -> None:
    service = WebService(BASE, configuration=sync_config, transport=MockTransport())

    task = service.request("PUT", "items/1")

    assert task.configuration is sync_config
    assert task.request.method is Method.PUT


def test_service_holds_configuration_weakly() -> None:
    config = ServiceConfiguration(settings=TransportSettings())
    service = WebService(BASE, configuration=config, transport=MockTransport())

    del config
    gc.collect()

    assert service.configuration is None
    assert service.get("items").configuration is not None


def test_default_transport_is_shared_per_settings() -> None:
    config = ServiceConfiguration(settings=TransportSettings(timeout_s=4.5))

    first = WebService(BASE, configuration=config)
    second = WebService("https://other.test/", configuration=config)

    assert isinstance(first.transport, HTTPXTransport)
    assert first.transport is second.transport
    assert first.transport is HTTPXTransport.shared(config.settings)


def test_get_parses_body_and_updates_ui_on_ui_thread() -> None:
    ui_context = ThreadUIContext(name="e2e-ui")
    config = ServiceConfiguration(settings=TransportSettings(), ui_context=ui_context)
    service = WebService(
        BASE, configuration=config, transport=MockTransport([MockResponse.text("42")])
    )
    captures_int = ThreadCapture()

    task = (
        service.get("answer")
        .response(lambda data, meta: Value(int(data)))
        .update_ui(captures_int)
        .resume()
    )
    try:
        assert task.wait(timeout=5)
        assert captures_int.done.wait(timeout=5)
    finally:
        ui_context.shutdown(wait=True)

    assert [value for value, _ in captures_int.calls] == [42]
    assert captures_int.calls[0][1] != threading.current_thread().name


@pytest.mark.integration
def test_end_to_end_over_httpx_transport(sync_config, recorder) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/items":
            return httpx.Response(200, json={"items": [1, 2, 3]})
        raise httpx.ConnectError("no route", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    transport = HTTPXTransport(client, executor=InlineExecutor())
    service = WebService(BASE, configuration=sync_config, transport=transport)
    errors: list[BaseException] = []

    ok = service.get("items").response_json(lambda obj: Value(sum(obj["items"])))
    broken = service.get("missing").response_json(lambda obj: Value(obj))
    broken.response_error(errors.append)
    ok.resume()
    broken.resume()

    assert ok.result == Value(6)
    assert isinstance(broken.result, Failure)
    assert isinstance(errors[0], TransportError)
    assert recorder.count("request_sent") == 2
    assert recorder.count("service_result_failure") == 1
    client.close()
