"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The store and the
token service do the work; routes map these to Pydantic response models.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is the
kernel and has no reverse dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A registered account.

    hashed_password is the full hasher output, salt included, so verification
    needs nothing beyond this record. favourites and history belong to the
    resource layer; the auth core only hands the owning id downstream.
    """

    username: str
    hashed_password: str
    id: int | None = None
    favourites: list[str] = field(default_factory=list)
    history: list[str] = field(default_factory=list)
    created_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """The verified caller of a single request, rebuilt from token claims."""

    id: int
    username: str
