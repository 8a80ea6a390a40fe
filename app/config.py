"""
Runtime configuration for the signup service.

Values come from environment variables. A local `.env` file is loaded first
(python-dotenv) so the tutorial-style setup keeps working:

    FINGERPRINT_SECRET_API_KEY=...
    DATABASE_PATH=accounts.sqlite3

The secret API key must never be logged or hardcoded.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv


DEFAULT_FINGERPRINT_API_URL = "https://api.fpjs.io"
DEFAULT_IDENTITY_TIMEOUT = 3.0
DEFAULT_SIGNUP_PATH = "/create-account"


@dataclass(frozen=True)
class Settings:
    fingerprint_api_key: str = ""
    fingerprint_api_url: str = DEFAULT_FINGERPRINT_API_URL
    identity_timeout: float = DEFAULT_IDENTITY_TIMEOUT
    database_backend: str = "sqlite"
    database_path: str = "accounts.sqlite3"
    db_host: str = "db"
    db_name: str = "signup"
    db_user: str = "user"
    db_password: str = "password"
    signup_path: str = DEFAULT_SIGNUP_PATH
    cors_allow_origins: Tuple[str, ...] = ("*",)

    @staticmethod
    def from_env(environ: Optional[Dict[str, str]] = None) -> "Settings":
        """Build settings from `environ` (defaults to the process environment)."""
        if environ is None:
            load_dotenv()
            environ = dict(os.environ)

        backend = environ.get("DATABASE_BACKEND", "sqlite").strip().lower()
        if backend not in ("sqlite", "postgres"):
            raise ValueError(f"Unsupported DATABASE_BACKEND: {backend!r}")

        raw_timeout = environ.get("IDENTITY_TIMEOUT_SECONDS")
        timeout = float(raw_timeout) if raw_timeout else DEFAULT_IDENTITY_TIMEOUT
        if timeout <= 0:
            raise ValueError("IDENTITY_TIMEOUT_SECONDS must be positive")

        signup_path = environ.get("SIGNUP_PATH", DEFAULT_SIGNUP_PATH)
        if not signup_path.startswith("/"):
            signup_path = "/" + signup_path

        origins = tuple(
            origin.strip()
            for origin in environ.get("CORS_ALLOW_ORIGINS", "*").split(",")
            if origin.strip()
        )

        return Settings(
            fingerprint_api_key=environ.get("FINGERPRINT_SECRET_API_KEY", ""),
            fingerprint_api_url=environ.get("FINGERPRINT_API_URL", DEFAULT_FINGERPRINT_API_URL),
            identity_timeout=timeout,
            database_backend=backend,
            database_path=environ.get("DATABASE_PATH", "accounts.sqlite3"),
            db_host=environ.get("DB_HOST", "db"),
            db_name=environ.get("DB_NAME", "signup"),
            db_user=environ.get("DB_USER", "user"),
            db_password=environ.get("DB_PASSWORD", "password"),
            signup_path=signup_path,
            cors_allow_origins=origins or ("*",),
        )

    def __repr__(self) -> str:
        # Keep the secret out of tracebacks and log lines.
        return (
            f"Settings(fingerprint_api_url={self.fingerprint_api_url!r}, "
            f"database_backend={self.database_backend!r}, "
            f"signup_path={self.signup_path!r})"
        )
