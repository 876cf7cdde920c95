"""
Helper utilities for building and inspecting gateway query requests.

Provides the building blocks the executor and the Locust user classes
rely on: per-iteration identity, correlation identifiers, request
payload and header factories, and tolerant response parsing.  Keeping
these in one module means the wire format is defined in one place.

Key Concepts Demonstrated:
- Correlation ids derived from user number, iteration and timestamp
- Randomised user roles drawn from an injectable random source
- Tolerant JSON parsing that never raises into an iteration
"""

from __future__ import annotations

import itertools
import random
import time
from dataclasses import dataclass
from typing import Any

USER_ROLES = ("teacher", "educator", "district_admin")
REQUEST_ORIGIN = "locust_load_test"

# Primary header first, legacy name second.
CACHE_STATUS_HEADERS = ("X-Cache-Status", "X-AirBrx-Cache")
PAYLOAD_FIELDS = ("data", "result")

ERROR_PREVIEW_CHARS = 200

_user_numbers = itertools.count(start=1)


def next_user_number() -> int:
    """Hand out process-unique, 1-based virtual-user numbers."""
    return next(_user_numbers)


@dataclass(frozen=True)
class IterationContext:
    """
    Identity of one virtual-user iteration.

    Attributes:
        user_number: 1-based number of the virtual user.
        iteration: 0-based iteration counter within that user.
        timestamp_ms: Wall-clock milliseconds when the iteration began.
    """

    user_number: int
    iteration: int
    timestamp_ms: int

    @classmethod
    def now(cls, user_number: int, iteration: int) -> IterationContext:
        return cls(user_number, iteration, int(time.time() * 1000))

    @property
    def user_id(self) -> str:
        return f"user_{self.user_number}"

    @property
    def session_id(self) -> str:
        return f"session_{self.user_number}_{self.iteration}"

    @property
    def request_id(self) -> str:
        return f"req_{self.user_number}_{self.iteration}_{self.timestamp_ms}"


def random_user_role(rng: random.Random) -> str:
    """Pick a simulated user role uniformly from :data:`USER_ROLES`."""
    return rng.choice(USER_ROLES)


def build_query_payload(query_text: str, context: IterationContext, user_role: str) -> dict[str, Any]:
    """
    Build the JSON body for ``POST /query``.

    Returns:
        A JSON-serialisable dictionary with ``sql``, an empty
        ``parameters`` mapping, and correlation ``metadata``.
    """
    return {
        "sql": query_text,
        "parameters": {},
        "metadata": {
            "userId": context.user_id,
            "sessionId": context.session_id,
            "requestId": context.request_id,
            "userRole": user_role,
            "origin": REQUEST_ORIGIN,
        },
    }


def query_headers(context: IterationContext) -> dict[str, str]:
    """Build the JSON and correlation headers the gateway expects."""
    return {
        "Content-Type": "application/json",
        "X-Request-ID": context.request_id,
        "X-User-ID": context.user_id,
    }


def safe_json(response: Any) -> dict[str, Any]:
    """
    Decode a gateway body that should be a JSON object.

    HTML error pages, plain-text proxy errors and JSON arrays all come
    back as ``{}``, which :func:`has_payload` then reports as missing.
    """
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def has_payload(body: dict[str, Any]) -> bool:
    """True when the body carries either the current or the legacy payload field."""
    return any(body.get(field) is not None for field in PAYLOAD_FIELDS)


def is_cache_hit(headers: Any) -> bool:
    """True when either cache-status header reports ``HIT``."""
    if headers is None:
        return False
    return any(headers.get(name) == "HIT" for name in CACHE_STATUS_HEADERS)


def body_preview(response: Any, limit: int = ERROR_PREVIEW_CHARS) -> str:
    """First *limit* characters of the response body, for diagnostics."""
    text = getattr(response, "text", None) or ""
    return text[:limit]
