"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration and the deterministic
configuration most task tests run under. Fixtures here are autouse unless
noted.
"""

from __future__ import annotations

from contextlib import suppress
import logging
import os

import pytest

from courier.config import ServiceConfiguration, TransportSettings
from courier.dispatch import ImmediateUIContext
from tests.helpers import InlineExecutor, RecordingPassthrough

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_courier_env(request, monkeypatch):
    """Clear COURIER_* variables so settings resolve to their defaults.

    Opt-out: @pytest.mark.allow_env_pollution
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    for key in list(os.environ.keys()):
        if key.startswith("COURIER_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Task Fixtures (opt-in)
# =============================================================================


@pytest.fixture
def recorder() -> RecordingPassthrough:
    """Passthrough delegate that records every event it receives."""
    return RecordingPassthrough()


@pytest.fixture
def sync_config(recorder: RecordingPassthrough) -> ServiceConfiguration:
    """Configuration that runs handlers and UI callbacks inline.

    With a ``MockTransport`` in auto-complete mode the whole chain finishes
    inside ``resume()``. Tasks hold their configuration weakly, so tests
    must keep this fixture value referenced.
    """
    return ServiceConfiguration(
        recorder,
        settings=TransportSettings(),
        ui_context=ImmediateUIContext(),
        handler_executor=InlineExecutor(),
    )
