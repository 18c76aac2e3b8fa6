import asyncio
import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from rentalhub.core.config import settings
from rentalhub.services import email, oauth


@pytest.fixture()
def mailgun(monkeypatch):
    monkeypatch.setattr(settings, "MAILGUN_API_KEY", "key-test")
    monkeypatch.setattr(settings, "MAILGUN_DOMAIN", "mg.example.com")
    monkeypatch.setattr(settings, "MAILGUN_API_URL", "https://mailgun.test/v3")


@pytest.fixture()
def oauth_apps(monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "google-id")
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_SECRET", "google-secret")
    monkeypatch.setattr(settings, "GITHUB_CLIENT_ID", "github-id")
    monkeypatch.setattr(settings, "GITHUB_CLIENT_SECRET", "github-secret")
    monkeypatch.setattr(settings, "WEB_APP_URL", "https://app.example.com")


# ---------- Email ----------


def test_email_without_configuration(monkeypatch):
    monkeypatch.setattr(settings, "MAILGUN_API_KEY", "")

    result = asyncio.run(email.send_email("a@example.com", "Hi", text="hello"))

    assert result == email.EmailResult(success=False, error=email.NOT_CONFIGURED)


def test_build_message_form_keeps_recipient_lists():
    form = email.build_message_form(
        ["a@example.com", "b@example.com"], "Subject", text="body", bcc="audit@example.com", variables={"x": 1}
    )

    assert form["to"] == ["a@example.com", "b@example.com"]
    assert form["bcc"] == ["audit@example.com"]
    assert "cc" not in form
    assert "html" not in form
    assert json.loads(form["h:X-Mailgun-Variables"]) == {"x": 1}


def test_send_email_posts_to_mailgun(mailgun):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = request.content.decode()
        return httpx.Response(200, json={"id": "<msg-1@mg.example.com>", "message": "Queued"})

    result = asyncio.run(
        email.send_email(
            "a@example.com", "Welcome", text="hello", transport=httpx.MockTransport(handler)
        )
    )

    assert result.success is True
    assert result.message_id == "<msg-1@mg.example.com>"
    assert seen["url"] == "https://mailgun.test/v3/mg.example.com/messages"
    assert seen["auth"].startswith("Basic ")
    assert "Welcome" in seen["body"]


def test_send_email_reports_rejection(mailgun):
    transport = httpx.MockTransport(lambda request: httpx.Response(401, text="Forbidden"))

    result = asyncio.run(email.send_email("a@example.com", "Hi", text="x", transport=transport))

    assert result.success is False
    assert result.error == "Mailgun responded with 401"


def test_send_email_reports_network_failure(mailgun):
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    result = asyncio.run(
        email.send_email("a@example.com", "Hi", text="x", transport=httpx.MockTransport(handler))
    )

    assert result.success is False
    assert "boom" in result.error


def test_invitation_escapes_name(mailgun):
    captured = {}

    def handler(request):
        captured["body"] = request.content.decode()
        return httpx.Response(200, json={"id": "m"})

    asyncio.run(
        email.send_invitation(
            "a@example.com",
            "<Eve>",
            "https://app.example.com/accept-invite?token=t",
            transport=httpx.MockTransport(handler),
        )
    )

    html = parse_qs(captured["body"])["html"][0]
    assert "&lt;Eve&gt;" in html
    assert "<Eve>" not in html


def _capture_form(sent):
    def handler(request):
        sent.append(parse_qs(request.content.decode()))
        return httpx.Response(200, json={"id": f"m{len(sent)}"})

    return httpx.MockTransport(handler)


def test_password_reset_email(mailgun):
    sent = []

    result = asyncio.run(
        email.send_password_reset(
            "ada@example.com", "Ada & Co", "https://app.example.com/reset?token=r1", transport=_capture_form(sent)
        )
    )

    assert result.success is True
    (form,) = sent
    assert form["to"] == ["ada@example.com"]
    assert form["subject"] == ["Reset your password"]
    assert 'href="https://app.example.com/reset?token=r1"' in form["html"][0]
    assert "Ada &amp; Co" in form["html"][0]
    assert "https://app.example.com/reset?token=r1" in form["text"][0]


def test_welcome_email(mailgun, monkeypatch):
    monkeypatch.setattr(settings, "APP_NAME", "RentalHub")
    monkeypatch.setattr(settings, "WEB_APP_URL", "https://app.example.com")
    sent = []

    result = asyncio.run(email.send_welcome("ada@example.com", "<Ada>", transport=_capture_form(sent)))

    assert result.message_id == "m1"
    (form,) = sent
    assert form["subject"] == ["Welcome to RentalHub"]
    assert "&lt;Ada&gt;" in form["html"][0]
    assert "Sign in at https://app.example.com" in form["text"][0]


# ---------- OAuth ----------


def test_authorize_url_requires_configuration(monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "")

    with pytest.raises(oauth.OAuthNotConfigured) as excinfo:
        oauth.authorize_url("google", "state")
    assert excinfo.value.code == "ConfigurationError"
    assert str(excinfo.value) == "Google OAuth not configured"


def test_authorize_urls(oauth_apps):
    google = urlparse(oauth.authorize_url("google", "s1"))
    params = parse_qs(google.query)
    assert google.netloc == "accounts.google.com"
    assert params["client_id"] == ["google-id"]
    assert params["redirect_uri"] == ["https://app.example.com/api/auth/callback/google"]
    assert params["state"] == ["s1"]

    github = parse_qs(urlparse(oauth.authorize_url("github", "s2")).query)
    assert github["scope"] == ["user:email read:user"]


def test_google_exchange_and_profile(oauth_apps):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/token":
            assert b"grant_type=authorization_code" in request.content
            return httpx.Response(200, json={"access_token": "g-at", "refresh_token": "g-rt"})
        assert request.headers["Authorization"] == "Bearer g-at"
        return httpx.Response(
            200, json={"id": 123, "email": "ada@example.com", "name": "Ada", "picture": "https://p/ada.png"}
        )

    transport = httpx.MockTransport(handler)
    tokens = asyncio.run(oauth.exchange_code("google", "code-1", transport=transport))
    profile = asyncio.run(oauth.fetch_profile("google", tokens.access_token, transport=transport))

    assert tokens == oauth.ProviderTokens(access_token="g-at", refresh_token="g-rt")
    assert profile == oauth.OAuthProfile(
        provider_user_id="123", email="ada@example.com", name="Ada", avatar_url="https://p/ada.png"
    )


def test_exchange_without_access_token_fails(oauth_apps):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"error": "bad_verification_code"}))

    with pytest.raises(oauth.OAuthError, match="Failed to exchange authorization code"):
        asyncio.run(oauth.exchange_code("github", "bad", transport=transport))


@pytest.mark.parametrize("provider", ["google", "github"])
def test_exchange_with_html_error_page_fails(oauth_apps, provider):
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="<html>Bad Gateway</html>"))

    with pytest.raises(oauth.OAuthError, match="Failed to exchange authorization code") as excinfo:
        asyncio.run(oauth.exchange_code(provider, "abc", transport=transport))
    assert excinfo.value.code == "OAuthProviderError"


def test_profile_with_non_json_body_fails(oauth_apps):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>maintenance</html>"))

    with pytest.raises(oauth.OAuthError, match="Failed to fetch Google user info"):
        asyncio.run(oauth.fetch_profile("google", "g-at", transport=transport))


def test_github_profile_falls_back_to_primary_email(oauth_apps):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/user":
            return httpx.Response(200, json={"id": 7, "login": "octo", "email": None, "avatar_url": None})
        return httpx.Response(
            200,
            json=[
                {"email": "old@example.com", "primary": False, "verified": True},
                {"email": "octo@example.com", "primary": True, "verified": True},
            ],
        )

    profile = asyncio.run(oauth.fetch_profile("github", "gh-at", transport=httpx.MockTransport(handler)))

    assert profile.email == "octo@example.com"
    assert profile.name == "octo"
    assert profile.provider_user_id == "7"


def test_github_profile_without_verified_email(oauth_apps):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/user":
            return httpx.Response(200, json={"id": 7, "login": "octo"})
        return httpx.Response(200, json=[{"email": "octo@example.com", "primary": True, "verified": False}])

    with pytest.raises(oauth.OAuthError) as excinfo:
        asyncio.run(oauth.fetch_profile("github", "gh-at", transport=httpx.MockTransport(handler)))
    assert excinfo.value.code == "OAuthEmailMissing"
