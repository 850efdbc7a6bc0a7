"""
auth/tokens.py -- Bearer token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry exactly two identity claims,
       "id" and "userName", plus "exp" when TOKEN_EXPIRE_SECONDS > 0. The
       password hash and every other user field stay out of the payload.

  Secret: TokenService is constructed once at startup from Settings and
       refuses an empty or short secret with MisconfiguredSecretError, so a
       bad deployment fails before serving a single request instead of
       signing tokens with a guessable key.

  Verification: the algorithm list is pinned to HS256, which rejects "none"
       and algorithm-confusion tokens. Bad signature, bad structure, missing
       or mistyped claims and expiry all raise the same UnauthorizedError --
       callers cannot tell which check failed.

  Extraction: exactly one scheme is accepted, "Authorization: Bearer <token>".

Layer rule: no imports from api/. Token operations are CPU-only and never
touch the store.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.models import Identity
from core.errors import MisconfiguredSecretError, UnauthorizedError

if TYPE_CHECKING:
    from auth.models import User
    from core.config import Settings

logger = logging.getLogger("userapi.auth.tokens")

_ALGORITHM = "HS256"
_MIN_SECRET_LENGTH = 32
BEARER_SCHEME = "bearer"


class TokenService:
    """Issue and verify signed identity tokens with one immutable secret."""

    def __init__(self, secret_key: str, expire_seconds: int = 0) -> None:
        if not secret_key:
            raise MisconfiguredSecretError("Token signing secret is not configured.")
        if len(secret_key) < _MIN_SECRET_LENGTH:
            raise MisconfiguredSecretError(f"Token signing secret must be at least {_MIN_SECRET_LENGTH} characters.")
        self._secret_key = secret_key
        self.expire_seconds = max(0, expire_seconds)

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenService:
        return cls(settings.secret_key, expire_seconds=settings.token_expire_seconds)

    def create_access_token(self, user: User) -> str:
        """Encode a signed JWT holding the user's id and username."""
        payload: dict = {"id": user.id, "userName": user.username}
        if self.expire_seconds:
            payload["exp"] = datetime.now(timezone.utc) + timedelta(seconds=self.expire_seconds)
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def decode_access_token(self, token: str) -> Identity:
        """Verify a JWT and return the identity it names.

        Raises:
            UnauthorizedError: on any failure, without saying which.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            raise UnauthorizedError() from None

        user_id = payload.get("id")
        username = payload.get("userName")
        # bool is an int subclass; a true/false id is a forged payload.
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise UnauthorizedError()
        if not isinstance(username, str) or not username:
            raise UnauthorizedError()
        return Identity(id=user_id, username=username)


def extract_bearer_token(header: str | None) -> str | None:
    """Return the token from an "Authorization: Bearer <token>" header value.

    The scheme name is case-insensitive. Returns None for a missing header,
    any other scheme, or an empty token.
    """
    if not header:
        return None
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        return None
    token = token.strip()
    return token or None


def authenticate(header: str | None, token_service: TokenService) -> Identity:
    """Turn a raw Authorization header into a verified Identity.

    Raises:
        UnauthorizedError: missing header, wrong scheme, or invalid token.
    """
    token = extract_bearer_token(header)
    if token is None:
        raise UnauthorizedError()
    return token_service.decode_access_token(token)
