from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import unquote
import json
import os

# Canned identity events keyed by request token, served like the
# Fingerprint Server API: GET /events/<requestId>
EVENTS = {
    "tok-1": {"visitorId": "V1", "bot": "notDetected"},
    "tok-2": {"visitorId": "V2", "bot": "bad"},
}


def build_event(visitor_id, bot):
    return {
        "products": {
            "identification": {"data": {"visitorId": visitor_id}},
            "botd": {"data": {"bot": {"result": bot}}},
        }
    }


class Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        if not self.path.startswith("/events/"):
            self.send_response(404)
            self.end_headers()
            return

        request_id = unquote(self.path[len("/events/"):])
        event = EVENTS.get(request_id)
        if event is None:
            self.send_response(404)
            self.end_headers()
            self.wfile.write(b'{"error":{"code":"RequestNotFound"}}')
            return

        print(f"[IDENTITY-MOCK] Resolving request {request_id}")

        body = json.dumps(build_event(event["visitorId"], event["bot"])).encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        self.wfile.write(body)


if __name__ == "__main__":
    port = int(os.getenv("IDENTITY_MOCK_PORT", "3002"))
    server = HTTPServer(('0.0.0.0', port), Handler)
    print(f"[IDENTITY-MOCK] Running on :{port}")
    server.serve_forever()
