"""
core/errors.py -- Exception taxonomy for the auth core.

Per-request errors (DuplicateIdentifierError, InvalidCredentialsError,
UnauthorizedError) are caught at the route/dependency layer and turned into
an HTTP status plus a generic message. Startup errors (MisconfiguredSecretError,
ConnectionExhaustedError) propagate out of the lifespan and stop the server.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every auth core failure."""


class DuplicateIdentifierError(AuthError):
    """A user with the requested username already exists."""

    def __init__(self, username: str) -> None:
        super().__init__(f"User name {username!r} is already taken.")
        self.username = username


class UserNotFoundError(AuthError):
    """No user record matches the lookup key."""


class InvalidCredentialsError(AuthError):
    """Unknown username or wrong password -- deliberately indistinguishable."""

    def __init__(self) -> None:
        super().__init__("Incorrect user name or password.")


class UnauthorizedError(AuthError):
    """Missing, malformed, mis-signed or expired bearer token."""

    def __init__(self) -> None:
        super().__init__("Unauthorized.")


class MisconfiguredSecretError(AuthError, ValueError):
    """The token signing secret is empty or too short."""


class ConnectionExhaustedError(AuthError):
    """The backing store stayed unreachable after every connection attempt."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Backing store unreachable after {attempts} attempt(s).")
        self.attempts = attempts
