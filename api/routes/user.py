"""
api/routes/user.py -- Registration, login and per-user resource endpoints.

Routes:
  POST /api/user/register     -- create an account (public, rate limited)
  POST /api/user/login        -- exchange credentials for a bearer token (public, rate limited)
  GET  /api/user/me           -- identity carried by the caller's token (requires auth)
  GET  /api/user/favourites   -- caller's favourites list (requires auth)
  GET  /api/user/history      -- caller's history list (requires auth)

Security:
  [H2] register and login are rate-limited per IP (LOGIN_RATE_LIMIT).
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on login responses.
  Unknown user and wrong password produce the same 422 body.
  Protected routes scope every lookup to the token's id, never to a
  client-supplied user id.

Handlers are plain `def`: bcrypt and the SQLAlchemy calls block, so Starlette
runs them in its thread pool and the event loop stays free.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import credential_rate_limit, limiter
from api.models import IdentityResponse, LoginRequest, LoginResponse, MessageResponse, RegisterRequest
from auth.dependencies import get_current_identity
from auth.models import Identity
from auth.passwords import authenticate_user
from auth.store import UserStore
from auth.tokens import TokenService
from core.errors import DuplicateIdentifierError, InvalidCredentialsError

logger = logging.getLogger("userapi.api.user")

# Auth policy:
# - POST /api/user/register:    public -- account creation
# - POST /api/user/login:       public -- login endpoint must be unauthenticated
# - GET  /api/user/me:          requires auth (get_current_identity)
# - GET  /api/user/favourites:  requires auth (get_current_identity)
# - GET  /api/user/history:     requires auth (get_current_identity)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/user/register", response_model=MessageResponse)
@limiter.limit(credential_rate_limit)  # [H2] must be BELOW @router so the route registers the limited wrapper
def register(request: Request, body: RegisterRequest) -> MessageResponse:
    """Create an account. The password is hashed with a fresh salt before storage."""
    if body.password2 is not None and body.password2 != body.password:
        raise HTTPException(
            status_code=422,
            detail={"code": "password_mismatch", "message": "Passwords do not match."},
        )

    user_store: UserStore = request.app.state.user_store
    try:
        user = user_store.create_user(body.username, body.password)
    except DuplicateIdentifierError as exc:
        raise HTTPException(
            status_code=422,
            detail={"code": "duplicate_username", "message": str(exc)},
        ) from exc

    return MessageResponse(message=f"User {user.username} successfully registered.")


@router.post("/user/login", response_model=LoginResponse)
@limiter.limit(credential_rate_limit)  # [H2]
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with user name and password; return a bearer token.

    Uses authenticate_user() which includes timing equalization [C1]. Do NOT
    inline get_by_username() + verify() -- that re-introduces the timing attack.
    """
    user_store: UserStore = request.app.state.user_store
    token_service: TokenService = request.app.state.token_service
    try:
        user = authenticate_user(user_store, user_store.hasher, body.username, body.password)
    except InvalidCredentialsError as exc:
        resp = JSONResponse(
            status_code=422,
            content={"error": {"code": "bad_credentials", "message": str(exc)}},
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    token = token_service.create_access_token(user)
    identity = Identity(id=user.id, username=user.username)
    logger.info("User %r logged in", user.username)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            message="login successful",
            token=token,
            user=IdentityResponse.from_identity(identity),
        ).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/user/me", response_model=IdentityResponse)
def me(identity: Identity = Depends(get_current_identity)) -> IdentityResponse:
    """Return the identity carried by the caller's token."""
    return IdentityResponse.from_identity(identity)


@router.get("/user/favourites", response_model=list[str])
def get_favourites(request: Request, identity: Identity = Depends(get_current_identity)) -> list[str]:
    user_store: UserStore = request.app.state.user_store
    return user_store.get_favourites(identity.id)


@router.get("/user/history", response_model=list[str])
def get_history(request: Request, identity: Identity = Depends(get_current_identity)) -> list[str]:
    user_store: UserStore = request.app.state.user_store
    return user_store.get_history(identity.id)
