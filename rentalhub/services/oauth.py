"""Google and GitHub OAuth2 clients (authorize URL, code exchange, profile)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_USER_URL = "https://api.github.com/user"
GITHUB_EMAILS_URL = "https://api.github.com/user/emails"
GITHUB_ACCEPT = "application/vnd.github.v3+json"


class OAuthError(Exception):
    """Provider round-trip failed; ``code`` ends up in the redirect/query string."""

    def __init__(self, message: str, code: str = "OAuthProviderError") -> None:
        super().__init__(message)
        self.code = code


class OAuthNotConfigured(OAuthError):
    def __init__(self, provider: str) -> None:
        label = "Google" if provider == "google" else "GitHub"
        super().__init__(f"{label} OAuth not configured", code="ConfigurationError")


@dataclass(frozen=True)
class OAuthProfile:
    provider_user_id: str
    email: Optional[str]
    name: str
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class ProviderTokens:
    access_token: str
    refresh_token: Optional[str] = None


def ensure_configured(provider: str) -> None:
    configured = settings.google_configured if provider == "google" else settings.github_configured
    if not configured:
        raise OAuthNotConfigured(provider)


def authorize_url(provider: str, state: str) -> str:
    ensure_configured(provider)
    redirect_uri = settings.oauth_callback_uri(provider)
    if provider == "google":
        params = {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": "openid profile email",
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"
    params = {
        "client_id": settings.GITHUB_CLIENT_ID,
        "redirect_uri": redirect_uri,
        "scope": "user:email read:user",
        "state": state,
    }
    return f"{GITHUB_AUTHORIZE_URL}?{urlencode(params)}"


def _client(transport: Optional[httpx.AsyncBaseTransport]) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT, transport=transport)


async def exchange_code(
    provider: str, code: str, transport: Optional[httpx.AsyncBaseTransport] = None
) -> ProviderTokens:
    ensure_configured(provider)
    redirect_uri = settings.oauth_callback_uri(provider)
    async with _client(transport) as client:
        try:
            if provider == "google":
                response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": settings.GOOGLE_CLIENT_ID,
                        "client_secret": settings.GOOGLE_CLIENT_SECRET,
                        "redirect_uri": redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
            else:
                response = await client.post(
                    GITHUB_TOKEN_URL,
                    json={
                        "client_id": settings.GITHUB_CLIENT_ID,
                        "client_secret": settings.GITHUB_CLIENT_SECRET,
                        "code": code,
                        "redirect_uri": redirect_uri,
                    },
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            logger.error("oauth.token_exchange_failed", extra={"extra_data": {"provider": provider, "error": str(exc)}})
            raise OAuthError("Failed to exchange authorization code") from exc

    try:
        payload: dict[str, Any] = response.json() if response.content else {}
    except ValueError as exc:
        logger.error(
            "oauth.token_exchange_rejected",
            extra={"extra_data": {"provider": provider, "status": response.status_code, "error": "invalid_json"}},
        )
        raise OAuthError("Failed to exchange authorization code") from exc
    access_token = payload.get("access_token")
    if response.status_code >= 400 or not access_token:
        logger.error(
            "oauth.token_exchange_rejected",
            extra={"extra_data": {"provider": provider, "status": response.status_code, "error": payload.get("error")}},
        )
        raise OAuthError("Failed to exchange authorization code")
    return ProviderTokens(access_token=access_token, refresh_token=payload.get("refresh_token"))


async def _get_json(client: httpx.AsyncClient, url: str, headers: dict[str, str], what: str) -> Any:
    try:
        response = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:
        raise OAuthError(f"Failed to fetch {what}") from exc
    if response.status_code >= 400:
        raise OAuthError(f"Failed to fetch {what}")
    try:
        return response.json()
    except ValueError as exc:
        raise OAuthError(f"Failed to fetch {what}") from exc


async def fetch_profile(
    provider: str, access_token: str, transport: Optional[httpx.AsyncBaseTransport] = None
) -> OAuthProfile:
    async with _client(transport) as client:
        if provider == "google":
            data = await _get_json(
                client, GOOGLE_USERINFO_URL, {"Authorization": f"Bearer {access_token}"}, "Google user info"
            )
            return OAuthProfile(
                provider_user_id=str(data["id"]),
                email=data.get("email"),
                name=data.get("name") or "User",
                avatar_url=data.get("picture"),
            )

        headers = {"Authorization": f"Bearer {access_token}", "Accept": GITHUB_ACCEPT}
        data = await _get_json(client, GITHUB_USER_URL, headers, "GitHub user info")
        email = data.get("email")
        if not email:
            # Private GitHub emails only show up on the dedicated endpoint.
            emails = await _get_json(client, GITHUB_EMAILS_URL, headers, "GitHub emails")
            primary = next((item for item in emails if item.get("primary") and item.get("verified")), None)
            if primary is None:
                raise OAuthError("No verified primary email on GitHub account", code="OAuthEmailMissing")
            email = primary["email"]
        return OAuthProfile(
            provider_user_id=str(data["id"]),
            email=email,
            name=data.get("name") or data.get("login") or "User",
            avatar_url=data.get("avatar_url"),
        )
