"""Request builder and the transport-ready descriptor it encodes to."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
import json
from types import MappingProxyType
from typing import Any, Self
from urllib.parse import urlencode, urlsplit, urlunsplit

from courier._http import CONTENT_TYPE_HEADER, QUERY_ENCODED_METHODS
from courier.errors import RequestEncodingError


class Method(Enum):
    """HTTP request methods supported by a service task."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"


class ParameterEncoding(Enum):
    """How request parameters are encoded."""

    PERCENT = "percent"
    JSON = "json"


class CachePolicy(Enum):
    """Cache policy token handed to the transport; the transport decides its meaning."""

    USE_PROTOCOL_CACHE_POLICY = "use_protocol_cache_policy"
    RELOAD_IGNORING_LOCAL_CACHE = "reload_ignoring_local_cache"
    RETURN_CACHE_DATA_ELSE_LOAD = "return_cache_data_else_load"
    RETURN_CACHE_DATA_DONT_LOAD = "return_cache_data_dont_load"


class ContentType:
    """Common content type values."""

    JSON = "application/json"
    FORM_URLENCODED = "application/x-www-form-urlencoded"


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """Transport-ready form of a request.

    ``url`` is absolute and already carries any query-encoded parameters;
    ``headers`` keys are lower case.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    body: bytes | None = None
    cache_policy: CachePolicy = CachePolicy.USE_PROTOCOL_CACHE_POLICY

    def __post_init__(self) -> None:
        # Coerce plain dict so the descriptor cannot be mutated after sending
        if not isinstance(self.headers, MappingProxyType):
            object.__setattr__(
                self, "headers", MappingProxyType(_normalize_headers(self.headers))
            )

    def replace(self, **changes: Any) -> RequestDescriptor:
        """Return a new descriptor with the given fields replaced.

        Used by passthrough delegates that rewrite requests before sending.
        """
        fields = {
            "method": self.method,
            "url": self.url,
            "headers": dict(self.headers),
            "body": self.body,
            "cache_policy": self.cache_policy,
        }
        fields.update(changes)
        return RequestDescriptor(**fields)


@dataclass
class Request:
    """Mutable description of an HTTP request.

    Setters return ``self`` so a request can be configured fluently::

        request = (
            Request(Method.POST, "https://api.example.com/items")
            .set_parameters({"name": "lamp"}, ParameterEncoding.JSON)
            .set_header_value("secret", "X-Api-Key")
        )
    """

    method: Method
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    parameters: Mapping[str, Any] | None = None
    parameter_encoding: ParameterEncoding = ParameterEncoding.PERCENT
    #: Explicit content type. When None, one is implied by how the body is built.
    content_type: str | None = None
    cache_policy: CachePolicy = CachePolicy.USE_PROTOCOL_CACHE_POLICY
    _json_body: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.method, str):
            self.method = Method(self.method.upper())
        self.headers = _normalize_headers(self.headers)

    # ------------------------------------------------------------------
    # Fluent mutators
    # ------------------------------------------------------------------

    def set_parameters(
        self,
        parameters: Mapping[str, Any],
        encoding: ParameterEncoding | None = None,
    ) -> Self:
        """Set request parameters; *encoding* defaults to percent encoding."""
        self.parameters = dict(parameters)
        self.parameter_encoding = encoding or ParameterEncoding.PERCENT
        return self

    def set_body(self, data: bytes | bytearray | memoryview | str) -> Self:
        """Set an explicit request body. Strings are encoded as UTF-8."""
        self.body = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        self._json_body = False
        return self

    def set_json(self, obj: Any) -> Self:
        """Serialize *obj* as the JSON request body.

        Raises:
            RequestEncodingError: If *obj* is not JSON serializable.
        """
        self.body = _dump_json(obj)
        self._json_body = True
        return self

    def set_headers(self, headers: Mapping[str, str]) -> Self:
        """Replace all request headers."""
        self.headers = _normalize_headers(headers)
        return self

    def set_header_value(self, value: str, name: str) -> Self:
        """Set a single header, replacing any value with the same name."""
        self.headers[name.lower()] = value
        return self

    def set_cache_policy(self, cache_policy: CachePolicy) -> Self:
        """Set the cache policy token passed to the transport."""
        self.cache_policy = cache_policy
        return self

    def set_parameter_encoding(self, encoding: ParameterEncoding) -> Self:
        """Change how parameters are encoded without touching the content type."""
        self.parameter_encoding = encoding
        return self

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def descriptor(self) -> RequestDescriptor:
        """Encode the request into the form handed to a transport.

        For GET and HEAD with percent encoding, parameters are appended to
        the query string. Otherwise encoded parameters become the body and
        take precedence over an explicit body.

        Raises:
            RequestEncodingError: If JSON parameters are not serializable.
        """
        url = self.url
        body = self.body
        headers = dict(self.headers)
        content_type = self.content_type
        json_body = self._json_body

        if self.parameters is not None:
            percent = self.parameter_encoding is ParameterEncoding.PERCENT
            if percent and self.method.value in QUERY_ENCODED_METHODS:
                url = _append_query(url, self.parameters)
            elif percent:
                body = urlencode(self.parameters, doseq=True).encode("ascii")
                json_body = False
                content_type = content_type or ContentType.FORM_URLENCODED
            else:
                body = _dump_json(self.parameters)
                content_type = ContentType.JSON

        if json_body and content_type is None:
            content_type = ContentType.JSON
        if content_type is not None:
            headers[CONTENT_TYPE_HEADER] = content_type

        return RequestDescriptor(
            method=self.method.value,
            url=url,
            headers=headers,
            body=body,
            cache_policy=self.cache_policy,
        )


def _normalize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {str(name).lower(): str(value) for name, value in headers.items()}


def _dump_json(obj: Any) -> bytes:
    try:
        return json.dumps(obj, separators=(",", ":"), allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise RequestEncodingError(
            f"Cannot encode {type(obj).__name__} as JSON: {e}",
            hint="Pass dicts, lists, strings, numbers, booleans or None.",
        ) from e


def _append_query(url: str, parameters: Mapping[str, Any]) -> str:
    query = urlencode(parameters, doseq=True)
    if not query:
        return url
    parts = urlsplit(url)
    merged = f"{parts.query}&{query}" if parts.query else query
    return urlunsplit(parts._replace(query=merged))
