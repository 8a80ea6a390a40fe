import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from app.services.identity_service import (
    BotVerdict,
    FailureKind,
    IdentityClient,
    IdentityEvent,
    LookupFailure,
    parse_event,
)


def fingerprint_event(visitor_id="V1", bot="notDetected"):
    products = {"identification": {"data": {"visitorId": visitor_id}}}
    if bot is not None:
        products["botd"] = {"data": {"bot": {"result": bot}}}
    return {"products": products}


# -----------------------------------------------------------------------------
# parse_event
# -----------------------------------------------------------------------------

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("notDetected", BotVerdict.NOT_DETECTED),
        ("bad", BotVerdict.DETECTED),
        ("good", BotVerdict.DETECTED),
        ("detected", BotVerdict.DETECTED),
        ("somethingNew", BotVerdict.UNKNOWN),
        (None, BotVerdict.UNKNOWN),
    ],
)
def test_parse_event_bot_verdicts(raw, expected):
    result = parse_event(fingerprint_event(bot=raw))

    assert result == IdentityEvent(visitor_id="V1", bot_verdict=expected)


def test_unknown_verdict_is_not_a_bot():
    assert not BotVerdict.UNKNOWN.is_bot
    assert not BotVerdict.NOT_DETECTED.is_bot
    assert BotVerdict.DETECTED.is_bot


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {},
        {"products": {}},
        {"products": {"identification": {"data": {}}}},
        {"products": {"identification": {"data": {"visitorId": ""}}}},
        {"products": {"identification": {"data": {"visitorId": 42}}}},
    ],
)
def test_parse_event_without_visitor_id_is_malformed(payload):
    result = parse_event(payload)

    assert isinstance(result, LookupFailure)
    assert result.kind is FailureKind.MALFORMED


# -----------------------------------------------------------------------------
# IdentityClient against a local HTTP server
# -----------------------------------------------------------------------------

class FakeFingerprintHandler(BaseHTTPRequestHandler):
    responses = {}
    seen_headers = []

    def do_GET(self):
        self.seen_headers.append(dict(self.headers))
        status, body = self.responses.get(self.path, (404, b'{"error":"not found"}'))
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture()
def fake_server():
    FakeFingerprintHandler.responses = {}
    FakeFingerprintHandler.seen_headers = []
    server = HTTPServer(("127.0.0.1", 0), FakeFingerprintHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


def client_for(server, api_key="secret-key"):
    host, port = server.server_address
    return IdentityClient(f"http://{host}:{port}", api_key, timeout=2)


def test_get_event_success(fake_server):
    FakeFingerprintHandler.responses["/events/tok-1"] = (200, json.dumps(fingerprint_event("V1")).encode())

    result = client_for(fake_server).get_event("tok-1")

    assert result == IdentityEvent(visitor_id="V1", bot_verdict=BotVerdict.NOT_DETECTED)
    headers = FakeFingerprintHandler.seen_headers[0]
    assert headers["Auth-API-Key"] == "secret-key"


def test_get_event_quotes_request_id(fake_server):
    FakeFingerprintHandler.responses["/events/a%2Fb"] = (200, json.dumps(fingerprint_event("V9")).encode())

    result = client_for(fake_server).get_event("a/b")

    assert isinstance(result, IdentityEvent)
    assert result.visitor_id == "V9"


@pytest.mark.parametrize(
    "status, kind",
    [
        (403, FailureKind.UNAUTHORIZED),
        (401, FailureKind.UNAUTHORIZED),
        (404, FailureKind.NOT_FOUND),
        (429, FailureKind.UPSTREAM),
        (502, FailureKind.UPSTREAM),
    ],
)
def test_get_event_error_statuses(fake_server, status, kind):
    FakeFingerprintHandler.responses["/events/tok-x"] = (status, b"{}")

    result = client_for(fake_server).get_event("tok-x")

    assert isinstance(result, LookupFailure)
    assert result.kind is kind


def test_get_event_invalid_json(fake_server):
    FakeFingerprintHandler.responses["/events/tok-x"] = (200, b"<html>oops</html>")

    result = client_for(fake_server).get_event("tok-x")

    assert isinstance(result, LookupFailure)
    assert result.kind is FailureKind.MALFORMED


def test_get_event_network_failure():
    # Reserve a port, then release it so nothing is listening there.
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()

    result = IdentityClient(f"http://127.0.0.1:{port}", "secret-key", timeout=1).get_event("tok-3")

    assert isinstance(result, LookupFailure)
    assert result.kind is FailureKind.NETWORK


def test_invalid_url_is_rejected():
    with pytest.raises(ValueError):
        IdentityClient("not-a-url", "secret-key")
