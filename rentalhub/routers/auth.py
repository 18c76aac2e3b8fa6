"""Beginner-friendly overview for this module.

WHAT: Account endpoints under ``/v1/auth``: password login, token refresh,
invitations, and the Google/GitHub OAuth round-trips.
WHEN: Called by the web app before it has (or after it loses) an access token.
WHY: Keeps every way of obtaining a token pair in one router so the rules for
issuing tokens stay identical across them.
HOW: Password flows are plain sync handlers over the CRUD layer. OAuth
handlers are async because they call the providers with httpx; provider
failures are turned into an error code the web app can show.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import DomainError
from ..core.oauth_state import generate_oauth_state, validate_oauth_state
from ..core.security import TokenError, issue_token_pair, refresh_access_token
from ..crud.users import (
    InvalidCredentials,
    PasswordlessAccount,
    accept_invite,
    authenticate,
    find_or_create_oauth_user,
    get_active_user,
    get_invited_user,
    register_user,
)
from ..db.session import get_db
from ..deps.auth import CurrentUser, require_auth
from ..schemas.auth import (
    AcceptInviteRequest,
    LoginRequest,
    OAuthExchangeRequest,
    OAuthTokens,
    RefreshRequest,
    RegisterRequest,
)
from ..schemas.common import created, ok
from ..schemas.user import UserOut
from ..services import oauth

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])

PROVIDERS = ("google", "github")


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Create a password account")
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    user = register_user(db, payload.email, payload.password, payload.name)
    return created({"user": UserOut.model_validate(user), "tokens": issue_token_pair(user)})


@router.post("/login", summary="Exchange email and password for tokens")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = authenticate(db, payload.email, payload.password)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except PasswordlessAccount as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    logger.info("auth.login", extra={"extra_data": {"user_id": user.id}})
    return ok({"user": UserOut.model_validate(user), "tokens": issue_token_pair(user)})


@router.post("/refresh", summary="Refresh access token")
def refresh_token(payload: RefreshRequest):
    try:
        pair = refresh_access_token(payload.refresh_token)
    except TokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    return ok({"tokens": pair})


@router.get("/me")
def me(current: CurrentUser = Depends(require_auth), db: Session = Depends(get_db)):
    return ok({"user": UserOut.model_validate(get_active_user(db, current.user_id))})


@router.post("/logout")
def logout():
    # Tokens are stateless; the client drops them.
    return ok(message="Logged out successfully")


# ---------- Invitations ----------


@router.post("/accept-invite")
def accept_invitation(payload: AcceptInviteRequest, db: Session = Depends(get_db)):
    user = accept_invite(db, payload.token, payload.password)
    pair = issue_token_pair(user)
    return ok(
        {
            "access_token": pair.access_token,
            "refresh_token": pair.refresh_token,
            "user": UserOut.model_validate(user),
        }
    )


@router.get("/validate-invite")
def validate_invite(token: Optional[str] = Query(default=None), db: Session = Depends(get_db)):
    user = get_invited_user(db, token)
    return ok({"email": user.email, "name": user.name})


# ---------- OAuth ----------


def _oauth_http_error(exc: oauth.OAuthError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": exc.code, "message": str(exc)},
    )


def _start(provider: str) -> RedirectResponse:
    try:
        url = oauth.authorize_url(provider, generate_oauth_state())
    except oauth.OAuthError as exc:
        raise _oauth_http_error(exc) from exc
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


async def _complete(provider: str, code: Optional[str], state: Optional[str], db: Session):
    """Validate the round-trip and return ``(user, is_new_user)``."""
    if not validate_oauth_state(state):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "OAuthStateInvalid", "message": "Invalid or expired OAuth state parameter"},
        )
    if not code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "OAuthCodeInvalid", "message": "Authorization code not provided"},
        )
    try:
        tokens = await oauth.exchange_code(provider, code)
        profile = await oauth.fetch_profile(provider, tokens.access_token)
    except oauth.OAuthError as exc:
        logger.error(
            "oauth.failed",
            extra={"extra_data": {"provider": provider, "code": exc.code, "reason": str(exc)}},
        )
        raise _oauth_http_error(exc) from exc
    user, is_new_user, _ = find_or_create_oauth_user(db, provider, profile, tokens.access_token, tokens.refresh_token)
    return user, is_new_user


def _web_redirect(path: str, params: dict[str, str]) -> RedirectResponse:
    url = f"{settings.WEB_APP_URL.rstrip('/')}{path}?{urlencode(params)}"
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


async def _callback(provider: str, code: Optional[str], state: Optional[str], error: Optional[str], db: Session):
    if error:
        return _web_redirect("/login", {"error": error})
    try:
        user, is_new_user = await _complete(provider, code, state, db)
    except HTTPException as exc:
        detail = exc.detail if isinstance(exc.detail, dict) else {}
        return _web_redirect("/login", {"error": detail.get("error", "OAuthProviderError")})
    except DomainError as exc:
        return _web_redirect("/login", {"error": exc.error})
    pair = issue_token_pair(user)
    return _web_redirect(
        "/auth/callback",
        {
            "access_token": pair.access_token,
            "refresh_token": pair.refresh_token,
            "is_new_user": str(is_new_user).lower(),
        },
    )


async def _exchange(provider: str, payload: OAuthExchangeRequest, db: Session):
    user, is_new_user = await _complete(provider, payload.code, payload.state, db)
    pair = issue_token_pair(user)
    return ok(
        OAuthTokens(access_token=pair.access_token, refresh_token=pair.refresh_token, is_new_user=is_new_user)
    )


@router.get("/google", summary="Start Google sign-in")
def google_login():
    return _start("google")


@router.get("/github", summary="Start GitHub sign-in")
def github_login():
    return _start("github")


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    return await _callback("google", code, state, error, db)


@router.get("/github/callback")
async def github_callback(
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    return await _callback("github", code, state, error, db)


@router.post("/google/exchange")
async def google_exchange(payload: OAuthExchangeRequest, db: Session = Depends(get_db)):
    return await _exchange("google", payload, db)


@router.post("/github/exchange")
async def github_exchange(payload: OAuthExchangeRequest, db: Session = Depends(get_db)):
    return await _exchange("github", payload, db)
