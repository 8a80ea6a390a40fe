"""
Identity service client: resolves a client-side request token into an
identity event (visitor id + bot verdict) through the Fingerprint Server API.

This module must be isolated from business logic so that:
- The provider (or its region endpoint) can change without touching signup rules
- Failures come back as data, never as exceptions, so the caller branches on them
- The client can be replaced by a stub in tests
"""

import enum
import http.client
import json
import socket
from dataclasses import dataclass
from typing import Any, Union
from urllib.parse import quote, urlparse

from app.utils.logging import logger, redact


class BotVerdict(str, enum.Enum):
    DETECTED = "detected"
    NOT_DETECTED = "not_detected"
    UNKNOWN = "unknown"

    @property
    def is_bot(self) -> bool:
        # Unknown counts as not detected.
        return self is BotVerdict.DETECTED


# Raw `products.botd.data.bot.result` values. "good" bots (crawlers, monitors)
# are still automated traffic and may not create accounts.
_BOT_RESULTS = {
    "bad": BotVerdict.DETECTED,
    "good": BotVerdict.DETECTED,
    "detected": BotVerdict.DETECTED,
    "notDetected": BotVerdict.NOT_DETECTED,
}


class FailureKind(str, enum.Enum):
    NETWORK = "network"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    UPSTREAM = "upstream"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class IdentityEvent:
    visitor_id: str
    bot_verdict: BotVerdict = BotVerdict.UNKNOWN


@dataclass(frozen=True)
class LookupFailure:
    kind: FailureKind
    message: str


LookupResult = Union[IdentityEvent, LookupFailure]


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def parse_event(payload: Any) -> LookupResult:
    """
    Parse a Fingerprint event payload.

    Expected shape (only the fields read here):

        {
          "products": {
            "identification": {"data": {"visitorId": "..."}},
            "botd": {"data": {"bot": {"result": "notDetected"}}}
          }
        }

    A missing visitor id makes the whole event unusable (MALFORMED).
    A missing or unrecognised bot result parses to BotVerdict.UNKNOWN.
    """
    if not isinstance(payload, dict):
        return LookupFailure(FailureKind.MALFORMED, "event payload is not a JSON object")

    products = payload.get("products")
    visitor_id = _dig(products, "identification", "data", "visitorId")
    if not isinstance(visitor_id, str) or not visitor_id:
        return LookupFailure(FailureKind.MALFORMED, "event has no visitorId")

    raw_bot = _dig(products, "botd", "data", "bot", "result")
    verdict = _BOT_RESULTS.get(raw_bot, BotVerdict.UNKNOWN) if isinstance(raw_bot, str) else BotVerdict.UNKNOWN

    return IdentityEvent(visitor_id=visitor_id, bot_verdict=verdict)


class IdentityClient:
    """
    Synchronous client for `GET /events/{request_id}`.

    The secret key is sent in the `Auth-API-Key` header and is never logged.
    """

    def __init__(self, api_url: str, api_key: str, timeout: float = 3.0) -> None:
        parsed = urlparse(api_url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"Invalid identity service URL: {api_url!r}")

        self._scheme = parsed.scheme
        self._host = parsed.hostname
        self._port = parsed.port or (443 if parsed.scheme == "https" else 80)
        self._base_path = parsed.path.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout

    def _open(self) -> http.client.HTTPConnection:
        if self._scheme == "https":
            return http.client.HTTPSConnection(self._host, self._port, timeout=self._timeout)
        return http.client.HTTPConnection(self._host, self._port, timeout=self._timeout)

    def get_event(self, request_id: str) -> LookupResult:
        """
        Resolve `request_id` into an IdentityEvent.

        Returns a LookupFailure on network errors, timeouts, non-200 responses
        or unparseable bodies. Never raises.
        """
        path = f"{self._base_path}/events/{quote(request_id, safe='')}"
        headers = {"Auth-API-Key": self._api_key, "Accept": "application/json"}

        try:
            conn = self._open()
            try:
                conn.request("GET", path, headers=headers)
                resp = conn.getresponse()
                status = resp.status
                body = resp.read()
            finally:
                conn.close()
        except (OSError, socket.timeout, http.client.HTTPException) as e:
            logger.warning(f"Identity lookup failed for request {redact(request_id)}: {type(e).__name__}")
            return LookupFailure(FailureKind.NETWORK, f"{type(e).__name__}: {e}")

        if status in (401, 403):
            return LookupFailure(FailureKind.UNAUTHORIZED, f"identity service rejected credentials ({status})")
        if status == 404:
            return LookupFailure(FailureKind.NOT_FOUND, "unknown request id")
        if status != 200:
            return LookupFailure(FailureKind.UPSTREAM, f"identity service answered {status}")

        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return LookupFailure(FailureKind.MALFORMED, "identity service returned invalid JSON")

        return parse_event(payload)


def describe(result: LookupResult) -> str:
    """Short log-safe summary of a lookup result."""
    if isinstance(result, IdentityEvent):
        return f"visitor={redact(result.visitor_id)} bot={result.bot_verdict.value}"
    return f"failure={result.kind.value}"
