"""Configuration: transport settings and the shared service configuration."""

from __future__ import annotations

from dataclasses import dataclass
import os
import threading
from typing import TYPE_CHECKING, Any, ClassVar

from dotenv import load_dotenv

from courier.errors import ConfigurationError

if TYPE_CHECKING:
    from concurrent.futures import Executor

    from courier.dispatch import UIContext

load_dotenv()

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class TransportSettings:
    """Immutable settings for the default HTTP transport.

    Example:
        settings = TransportSettings(timeout_s=5.0)
        # or, resolved from COURIER_* environment variables:
        settings = TransportSettings.from_env()
    """

    timeout_s: float = 30.0
    follow_redirects: bool = True
    #: Sent as ``User-Agent`` unless the request sets its own.
    user_agent: str | None = None

    def __post_init__(self) -> None:
        """Validate settings early for clear errors."""
        if not isinstance(self.timeout_s, (int, float)) or self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s!r}",
                hint="This is the per-request network timeout in seconds.",
            )
        if self.user_agent is not None and not self.user_agent.strip():
            raise ConfigurationError(
                "user_agent must not be blank",
                hint="Pass user_agent=None to use the transport's default.",
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> TransportSettings:
        """Resolve settings from ``COURIER_*`` variables; *overrides* win."""
        values: dict[str, Any] = {}

        raw_timeout = os.environ.get("COURIER_TIMEOUT_S")
        if raw_timeout:
            try:
                values["timeout_s"] = float(raw_timeout)
            except ValueError as e:
                raise ConfigurationError(
                    f"COURIER_TIMEOUT_S is not a number: {raw_timeout!r}",
                    hint="Use seconds, e.g. COURIER_TIMEOUT_S=10.",
                ) from e

        raw_redirects = os.environ.get("COURIER_FOLLOW_REDIRECTS")
        if raw_redirects:
            values["follow_redirects"] = _parse_bool(
                "COURIER_FOLLOW_REDIRECTS", raw_redirects
            )

        user_agent = os.environ.get("COURIER_USER_AGENT")
        if user_agent:
            values["user_agent"] = user_agent

        values.update(overrides)
        return cls(**values)


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"{name} is not a boolean: {raw!r}",
        hint="Use one of 1/0, true/false, yes/no, on/off.",
    )


class ServiceConfiguration:
    """Configuration shared by web services and their tasks.

    Tasks and services reference a configuration weakly, so keep the object
    alive for as long as its hooks should fire. ``passthrough_delegate`` may
    be reassigned at any time; everything else is fixed at construction.
    """

    _default: ClassVar[ServiceConfiguration | None] = None
    _default_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        passthrough_delegate: object | None = None,
        *,
        settings: TransportSettings | None = None,
        ui_context: UIContext | None = None,
        handler_executor: Executor | None = None,
    ) -> None:
        self.passthrough_delegate = passthrough_delegate
        self._settings = (
            settings if settings is not None else TransportSettings.from_env()
        )
        self._ui_context = ui_context
        self._handler_executor = handler_executor

    @property
    def settings(self) -> TransportSettings:
        """Settings for the default transport."""
        return self._settings

    @property
    def ui_context(self) -> UIContext | None:
        """UI context for ``update_ui`` handlers, or None for the shared default."""
        return self._ui_context

    @property
    def handler_executor(self) -> Executor | None:
        """Executor for handler queues, or None for the shared default."""
        return self._handler_executor

    @classmethod
    def default_configuration(cls) -> ServiceConfiguration:
        """Return the process-wide default configuration, creating it once."""
        if cls._default is None:
            with cls._default_lock:
                if cls._default is None:
                    cls._default = cls()
        return cls._default

    def __repr__(self) -> str:
        delegate = type(self.passthrough_delegate).__name__
        return (
            f"ServiceConfiguration(passthrough_delegate={delegate}, "
            f"settings={self._settings!r})"
        )
