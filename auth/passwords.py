"""
auth/passwords.py -- Password hashing capability and credential verification.

Security design decisions:
  Hashers: PasswordHasher is the capability interface -- hash(plain) returns a
       self-describing digest with the salt embedded, verify(plain, digest)
       compares in constant time. authenticate_user() only talks to the
       interface, so the algorithm can change without touching it.

  Mixed digests: PASSWORD_HASHER picks the algorithm for new passwords only.
       hasher_for_digest() routes each stored digest to the hasher that wrote
       it (by prefix), so switching algorithms never locks out old accounts.

  BcryptHasher (default): bcrypt.gensalt() gives a fresh salt per call and
       bcrypt.checkpw() compares in constant time.

  Pbkdf2Hasher: stdlib hashlib.pbkdf2_hmac with a 16-byte random salt,
       encoded as pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>.
       hmac.compare_digest does the comparison.

  Timing equalization [C1]: each hasher precomputes a dummy digest at
       construction. authenticate_user() verifies against it when the
       username does not exist so the response time does not reveal which
       usernames are registered.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is the
kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import TYPE_CHECKING

import bcrypt

from core.errors import InvalidCredentialsError, UserNotFoundError

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("userapi.auth")

_DUMMY_PASSWORD = "userapi_timing_dummy"


class PasswordHasher(ABC):
    """Capability interface for one-way salted password hashing."""

    name: str = ""
    # Leading text that marks a digest as produced by this hasher.
    prefixes: tuple[str, ...] = ()

    def __init__(self) -> None:
        # Computed once so the first failed login is not measurably slower.
        self.dummy_hash: str = self.hash(_DUMMY_PASSWORD)

    @abstractmethod
    def hash(self, plain: str) -> str: ...

    @abstractmethod
    def verify(self, plain: str, hashed: str) -> bool: ...

    def identifies(self, hashed: str) -> bool:
        return hashed.startswith(self.prefixes)


class BcryptHasher(PasswordHasher):
    """bcrypt with a per-call salt embedded in the digest.

    bcrypt truncates input past 72 bytes. The API layer caps password length
    at 72 UTF-8 bytes so distinct passwords never collapse to one digest.
    """

    name = "bcrypt"
    prefixes = ("$2a$", "$2b$", "$2y$")

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        super().__init__()

    def hash(self, plain: str) -> str:
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Not a bcrypt digest (e.g. a row written by another hasher).
            return False


class Pbkdf2Hasher(PasswordHasher):
    """PBKDF2-HMAC-SHA256 from the standard library."""

    name = "pbkdf2"
    _PREFIX = "pbkdf2_sha256"
    prefixes = (_PREFIX + "$",)

    def __init__(self, iterations: int = 600_000) -> None:
        self.iterations = iterations
        super().__init__()

    def _derive(self, plain: str, salt: bytes, iterations: int) -> bytes:
        return hashlib.pbkdf2_hmac("sha256", plain.encode("utf-8"), salt, iterations)

    def hash(self, plain: str) -> str:
        salt = secrets.token_bytes(16)
        digest = self._derive(plain, salt, self.iterations)
        return f"{self._PREFIX}${self.iterations}${salt.hex()}${digest.hex()}"

    def verify(self, plain: str, hashed: str) -> bool:
        try:
            prefix, iterations, salt_hex, digest_hex = hashed.split("$")
            if prefix != self._PREFIX:
                return False
            expected = bytes.fromhex(digest_hex)
            actual = self._derive(plain, bytes.fromhex(salt_hex), int(iterations))
        except ValueError:
            return False
        return hmac.compare_digest(actual, expected)


_HASHERS: dict[str, type[PasswordHasher]] = {
    BcryptHasher.name: BcryptHasher,
    Pbkdf2Hasher.name: Pbkdf2Hasher,
}


def get_hasher(name: str) -> PasswordHasher:
    """Instantiate the hasher registered under name ("bcrypt" or "pbkdf2")."""
    try:
        return _HASHERS[name]()
    except KeyError:
        raise ValueError(f"Unknown password hasher: {name!r}") from None


@lru_cache(maxsize=None)
def _fallback_hasher(name: str) -> PasswordHasher:
    # Verification reads cost parameters from the digest, so defaults suffice.
    return _HASHERS[name]()


def hasher_for_digest(hashed: str, configured: PasswordHasher) -> PasswordHasher:
    """Return the hasher able to verify hashed.

    The configured hasher wins whenever it recognises the digest. Otherwise the
    registered hasher whose prefix matches is used. Unrecognised digests fall
    back to the configured hasher, whose verify() then returns False.
    """
    if configured.identifies(hashed):
        return configured
    for name, hasher_cls in _HASHERS.items():
        if hashed.startswith(hasher_cls.prefixes):
            logger.debug("Verifying stored %s digest (configured hasher: %s)", name, configured.name)
            return _fallback_hasher(name)
    return configured


# ---------------------------------------------------------------------------
# Credential verification (constant-time) [C1]
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, hasher: PasswordHasher, username: str, password: str) -> User:
    """Verify a username/password pair and return the matching User.

    Always runs the hasher whether or not the user exists:
    - Unknown username: verify against hasher.dummy_hash (same cost as a real check)
    - Wrong password: verify against the real digest (same cost)

    The stored digest is checked by whichever hasher produced it (see
    hasher_for_digest), so accounts survive a PASSWORD_HASHER change.

    Raises:
        InvalidCredentialsError: for both failure cases, with one message.
    """
    try:
        user = store.get_by_username(username)
    except UserNotFoundError:
        # Equalize timing -- do NOT return early before running the hasher [C1]
        hasher.verify(password, hasher.dummy_hash)
        logger.info("Login rejected: unknown user %r", username)
        raise InvalidCredentialsError() from None
    if not hasher_for_digest(user.hashed_password, hasher).verify(password, user.hashed_password):
        logger.info("Login rejected: wrong password for %r", username)
        raise InvalidCredentialsError()
    return user
