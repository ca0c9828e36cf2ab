"""Small HTTP-related constants shared across Courier.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

# Methods whose percent-encoded parameters travel in the query string.
QUERY_ENCODED_METHODS: frozenset[str] = frozenset({"GET", "HEAD"})

CONTENT_TYPE_HEADER = "content-type"
CACHE_CONTROL_HEADER = "cache-control"
PRAGMA_HEADER = "pragma"
USER_AGENT_HEADER = "user-agent"
