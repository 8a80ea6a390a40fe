import base64
import hashlib
from dataclasses import dataclass
from typing import Optional, Protocol

import bcrypt

from app.config import Settings
from app.db.accounts import PostgresAccountStore, SqliteAccountStore
from app.db.connection import get_connection
from app.services.errors import BotDetected, DuplicateDevice, IdentityLookupError, ValidationError
from app.services.identity_service import IdentityClient, LookupFailure, LookupResult, describe
from app.utils.logging import logger, redact


class AccountStore(Protocol):
    """What the signup decision needs from storage (SqliteAccountStore, PostgresAccountStore)."""

    def count_by_visitor_id(self, visitor_id: str) -> int: ...

    def insert_account(self, username: str, password_hash: str, visitor_id: str) -> int: ...


class IdentityLookup(Protocol):
    """Resolves a request token; failures are returned, not raised (IdentityClient)."""

    def get_event(self, request_id: str) -> LookupResult: ...


@dataclass
class SignupContext:
    """Everything one signup decision needs, built once at startup and passed in."""
    store: AccountStore
    identity: IdentityLookup
    settings: Settings


@dataclass(frozen=True)
class SignupResult:
    account_id: int
    visitor_id: str


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _prehash(password: str) -> bytes:
    # bcrypt only accepts 72 bytes; a base64 SHA-256 digest is always 44.
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str) -> str:
    """Hash the password using bcrypt (one-way hash + salt) over its SHA-256 digest."""
    return bcrypt.hashpw(_prehash(password), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(_prehash(password), hashed.encode())


def evaluate_signup(
    ctx: SignupContext,
    username: Optional[str],
    password: Optional[str],
    request_id: Optional[str],
) -> SignupResult:
    """
    Decide whether an account may be created, and create it if so.

    Steps:
    - All three inputs must be present and non-blank.
    - Resolve `request_id` to an identity event (visitor id + bot verdict).
    - A detected bot is rejected before storage is touched.
    - A visitor id that already owns an account is rejected.
    - Otherwise insert exactly one account row.

    Raises:
        ValidationError: missing username, password or requestId.
        IdentityLookupError: identity service unreachable or unusable answer.
        BotDetected: the event carries a detected bot verdict.
        DuplicateDevice: an account already exists for this visitor id.
        StorageError: the insert failed for another reason.
    """
    # 1) Validate inputs.
    missing = [
        name
        for name, value in (("username", username), ("password", password), ("requestId", request_id))
        if _is_blank(value)
    ]
    if missing:
        raise ValidationError(
            "Missing required fields: " + ", ".join(missing),
            details={"missing": missing},
        )

    # 2) Resolve the request token. The client reports failures as data.
    result = ctx.identity.get_event(request_id)
    logger.info(f"Identity lookup for request {redact(request_id)}: {describe(result)}")

    if isinstance(result, LookupFailure):
        raise IdentityLookupError(details={"reason": result.kind.value}, cause=result.message)

    # 3) Bot check precedes the duplicate check; storage is not touched for bots.
    if result.bot_verdict.is_bot:
        logger.info(f"Signup rejected: bot detected for visitor {redact(result.visitor_id)}")
        raise BotDetected()

    # 4) Duplicate device check (read). Concurrent inserts are caught by the UNIQUE constraint.
    if ctx.store.count_by_visitor_id(result.visitor_id) > 0:
        logger.info(f"Signup rejected: duplicate device {redact(result.visitor_id)}")
        raise DuplicateDevice()

    # 5) Insert (the only write).
    account_id = ctx.store.insert_account(username, hash_password(password), result.visitor_id)
    logger.info(f"Account {account_id} created for {redact(username)} on visitor {redact(result.visitor_id)}")

    return SignupResult(account_id=account_id, visitor_id=result.visitor_id)


def build_context(settings: Settings) -> SignupContext:
    """Construct the production context: configured store + Fingerprint client."""
    if settings.database_backend == "postgres":
        store = PostgresAccountStore(lambda: get_connection(settings))
    else:
        store = SqliteAccountStore(settings.database_path)
    store.initialize()

    if not settings.fingerprint_api_key:
        logger.warning("FINGERPRINT_SECRET_API_KEY is not set; identity lookups will be rejected upstream.")

    identity = IdentityClient(
        settings.fingerprint_api_url,
        settings.fingerprint_api_key,
        timeout=settings.identity_timeout,
    )
    return SignupContext(store=store, identity=identity, settings=settings)
