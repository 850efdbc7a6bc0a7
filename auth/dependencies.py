"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one auth method exists: an "Authorization: Bearer <token>" header
carrying a JWT issued by POST /api/user/login. There is no cookie, API key
or anonymous fallback.

get_current_identity() verifies the token and records the caller on
request.state.user for the rest of the request. Any failure is a uniform 401
and the route handler is never invoked.

Layer rule: auth/dependencies.py may import from fastapi (for
HTTPException/Request) because it is part of the FastAPI dependency
injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Identity
from auth.tokens import TokenService, authenticate
from core.errors import UnauthorizedError


def get_current_identity(request: Request) -> Identity:
    """Require a valid bearer token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    token_service: TokenService = request.app.state.token_service
    try:
        identity = authenticate(request.headers.get("Authorization"), token_service)
    except UnauthorizedError as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    request.state.user = identity
    return identity
