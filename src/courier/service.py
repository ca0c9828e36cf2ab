"""WebService: builds service tasks for requests against a base URL."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING
from urllib.parse import urljoin
import weakref

from courier.config import ServiceConfiguration
from courier.request import Method, Request
from courier.task import ServiceTask
from courier.transport.httpx_transport import HTTPXTransport

if TYPE_CHECKING:
    from courier.transport.base import TransportSource

logger = logging.getLogger(__name__)


class WebService:
    """Factory for ``ServiceTask`` objects sharing a base URL and configuration.

    Tasks are returned suspended; call ``resume()`` after registering
    handlers.

    Example:
        service = WebService("https://api.example.com/v1/")
        service.get("users/42").response_json(parse_user).resume()

    Args:
        base_url: Relative paths are resolved against this URL with
            ``urllib.parse.urljoin`` rules; end it with ``/`` to keep its last
            path segment.
        configuration: Held weakly. The process default is used when None.
        transport: Sends the requests. Defaults to the shared
            ``HTTPXTransport`` for the configuration's settings, created on
            first use.
    """

    def __init__(
        self,
        base_url: str,
        *,
        configuration: ServiceConfiguration | None = None,
        transport: TransportSource | None = None,
    ) -> None:
        self.base_url = base_url
        configuration = configuration or ServiceConfiguration.default_configuration()
        self._configuration_ref = weakref.ref(configuration)
        self._transport = transport
        self._transport_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"WebService({self.base_url!r})"

    @property
    def configuration(self) -> ServiceConfiguration | None:
        """The configuration, if it is still alive."""
        return self._configuration_ref()

    @property
    def transport(self) -> TransportSource:
        if self._transport is None:
            with self._transport_lock:
                if self._transport is None:
                    self._transport = self._default_transport()
        return self._transport

    def _default_transport(self) -> TransportSource:
        configuration = (
            self._configuration_ref() or ServiceConfiguration.default_configuration()
        )
        logger.debug("Using shared HTTPX transport for %r", configuration.settings)
        return HTTPXTransport.shared(configuration.settings)

    def get(self, path: str) -> ServiceTask:
        return self.request(Method.GET, path)

    def post(self, path: str) -> ServiceTask:
        return self.request(Method.POST, path)

    def put(self, path: str) -> ServiceTask:
        return self.request(Method.PUT, path)

    def delete(self, path: str) -> ServiceTask:
        return self.request(Method.DELETE, path)

    def head(self, path: str) -> ServiceTask:
        return self.request(Method.HEAD, path)

    def request(self, method: Method | str, path: str) -> ServiceTask:
        """Create a suspended task for *method* on *path*."""
        return self.service_task(Request(method, self.absolute_url(path)))

    def service_task(self, request: Request) -> ServiceTask:
        """Create a suspended task that fulfills *request*."""
        return ServiceTask(
            request, self.transport, configuration=self._configuration_ref()
        )

    def absolute_url(self, path: str) -> str:
        """Resolve *path* against ``base_url``; absolute URLs pass through."""
        return urljoin(self.base_url, path)
