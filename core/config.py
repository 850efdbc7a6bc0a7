"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the User API happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY).

  Explicit configuration object: the lifespan in api/main.py reads Settings
      once and hands the values to each component's constructor (TokenService,
      UserStore, connect_with_retry). Components never reach for a global.

Security notes:
  [S1] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
       relies on key entropy -- a short key weakens every token.

  [S2] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure. Tokens must never be signed with an empty or
       default secret.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("userapi.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'userapi.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields except secret_key have usable defaults. In tests, set DEBUG=true
    before the first get_settings() call so a throwaway key is generated.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # 0 means tokens carry no exp claim and stay valid until the secret
    # rotates. Any positive value adds exp and bounds token lifetime.
    token_expire_seconds: int = 0

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    password_hasher: str = "bcrypt"  # "bcrypt" or "pbkdf2"

    # ------------------------------------------------------------------
    # Backing store
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL
    connect_retries: int = 3
    connect_retry_delay: float = 5.0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    host: str = "0.0.0.0"  # noqa: S104 -- container default
    port: int = 8080
    cors_origins: list[str] = ["*"]
    allowed_hosts: list[str] = ["*"]
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy [S2].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive a restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [S1].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Issued tokens will not survive a restart.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if self.password_hasher not in ("bcrypt", "pbkdf2"):
            raise ValueError(f"Unknown PASSWORD_HASHER: {self.password_hasher!r}")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
