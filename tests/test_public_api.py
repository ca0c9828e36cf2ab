"""Public package surface tests."""

from __future__ import annotations

import logging

import pytest

import courier

pytestmark = pytest.mark.unit


def test_all_names_are_importable() -> None:
    for name in courier.__all__:
        assert hasattr(courier, name), name


def test_library_logger_is_silent_by_default() -> None:
    handlers = logging.getLogger("courier").handlers
    assert any(isinstance(h, logging.NullHandler) for h in handlers)


def test_version_is_a_string() -> None:
    assert isinstance(courier.__version__, str)
    assert courier.__version__


def test_quickstart_chain_runs_offline() -> None:
    config = courier.ServiceConfiguration(
        settings=courier.TransportSettings(),
        ui_context=courier.ImmediateUIContext(),
    )
    service = courier.WebService(
        "https://api.test/",
        configuration=config,
        transport=courier.MockTransport([courier.MockResponse.json({"n": 5})]),
    )
    seen: list[object] = []

    task = (
        service.get("numbers")
        .response_json(lambda obj: courier.Value(obj["n"] * 2))
        .update_ui(seen.append)
        .resume()
    )

    assert task.wait(timeout=5)
    assert seen == [10]
