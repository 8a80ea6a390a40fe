import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.db.accounts import SqliteAccountStore
from app.main import create_app
from app.services.identity_service import BotVerdict, FailureKind, IdentityEvent, LookupFailure
from app.services.signup_service import SignupContext


class StubIdentityClient:
    """In-memory identity service: request token → event or failure."""

    def __init__(self):
        self.events = {}
        self.calls = []

    def add_event(self, request_id, visitor_id, bot=BotVerdict.NOT_DETECTED):
        self.events[request_id] = IdentityEvent(visitor_id=visitor_id, bot_verdict=bot)

    def add_failure(self, request_id, kind=FailureKind.NETWORK, message="connection refused"):
        self.events[request_id] = LookupFailure(kind, message)

    def get_event(self, request_id):
        self.calls.append(request_id)
        return self.events.get(request_id, LookupFailure(FailureKind.NOT_FOUND, "unknown request id"))


@pytest.fixture()
def store(tmp_path):
    store = SqliteAccountStore(tmp_path / "accounts.sqlite3")
    store.initialize()
    return store


@pytest.fixture()
def identity():
    return StubIdentityClient()


@pytest.fixture()
def context(store, identity):
    return SignupContext(store=store, identity=identity, settings=Settings())


@pytest.fixture()
def client(context):
    return TestClient(create_app(context))
