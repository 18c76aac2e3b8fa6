"""Beginner-friendly overview for this module.

WHAT: Sends transactional email (invitations, password resets, welcomes)
through the Mailgun HTTP API.
WHEN: Called from route handlers, usually as a FastAPI background task so the
response does not wait on Mailgun.
WHY: Email is optional infrastructure; a missing API key must never break the
request that triggered it.
HOW: Build a multipart form for ``POST {MAILGUN_API_URL}/{domain}/messages``
with httpx and report the outcome as an ``EmailResult`` instead of raising.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from html import escape
from typing import Any, Iterable, Optional, Sequence

import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Email service not configured"


@dataclass(frozen=True)
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


def _as_list(value: str | Iterable[str] | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [item for item in value if item]


def _sender() -> str:
    if settings.EMAIL_FROM_NAME:
        return f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"
    return settings.EMAIL_FROM


def build_message_form(
    to: str | Iterable[str],
    subject: str,
    *,
    html: Optional[str] = None,
    text: Optional[str] = None,
    cc: str | Iterable[str] | None = None,
    bcc: str | Iterable[str] | None = None,
    template: Optional[str] = None,
    variables: Optional[dict[str, Any]] = None,
) -> dict[str, str | list[str]]:
    """Mailgun accepts repeated keys for multiple recipients, so those stay lists."""

    form: dict[str, str | list[str]] = {"from": _sender(), "subject": subject, "to": _as_list(to)}
    for key, value in (("cc", cc), ("bcc", bcc)):
        if _as_list(value):
            form[key] = _as_list(value)
    optional = {"html": html, "text": text, "template": template}
    form.update({key: value for key, value in optional.items() if value})
    if variables:
        form["h:X-Mailgun-Variables"] = json.dumps(variables)
    return form


async def send_email(
    to: str | Iterable[str],
    subject: str,
    *,
    html: Optional[str] = None,
    text: Optional[str] = None,
    cc: str | Iterable[str] | None = None,
    bcc: str | Iterable[str] | None = None,
    template: Optional[str] = None,
    variables: Optional[dict[str, Any]] = None,
    attachments: Sequence[Attachment] = (),
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> EmailResult:
    if not settings.mailgun_configured:
        logger.warning("email.not_configured", extra={"extra_data": {"subject": subject}})
        return EmailResult(success=False, error=NOT_CONFIGURED)

    url = f"{settings.MAILGUN_API_URL.rstrip('/')}/{settings.MAILGUN_DOMAIN}/messages"
    form = build_message_form(
        to, subject, html=html, text=text, cc=cc, bcc=bcc, template=template, variables=variables
    )
    files = [
        ("attachment", (item.filename, item.content, item.content_type)) for item in attachments
    ] or None

    try:
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT, transport=transport) as client:
            response = await client.post(url, data=form, files=files, auth=("api", settings.MAILGUN_API_KEY))
    except httpx.HTTPError as exc:
        logger.error("email.send_failed", extra={"extra_data": {"subject": subject, "error": str(exc)}})
        return EmailResult(success=False, error=str(exc))

    if response.status_code >= 400:
        logger.error(
            "email.rejected",
            extra={"extra_data": {"subject": subject, "status": response.status_code, "body": response.text[:500]}},
        )
        return EmailResult(success=False, error=f"Mailgun responded with {response.status_code}")

    payload = response.json() if response.content else {}
    message_id = payload.get("id")
    logger.info("email.sent", extra={"extra_data": {"subject": subject, "message_id": message_id}})
    return EmailResult(success=True, message_id=message_id)


def _layout(title: str, body_html: str) -> str:
    return (
        "<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif; color: #1f2937;\">"
        f"<h2>{escape(title)}</h2>{body_html}"
        f"<p style=\"color: #6b7280; font-size: 12px;\">{escape(settings.APP_NAME)}</p>"
        "</body></html>"
    )


async def send_invitation(
    to: str,
    name: str,
    invite_url: str,
    inviter_name: Optional[str] = None,
    **kwargs: Any,
) -> EmailResult:
    lead = f"{inviter_name} has invited you" if inviter_name else "You have been invited"
    html = _layout(
        "You're invited",
        f"<p>Hi {escape(name)},</p>"
        f"<p>{escape(lead)} to join {escape(settings.APP_NAME)}.</p>"
        f"<p><a href=\"{escape(invite_url, quote=True)}\">Accept your invitation</a></p>"
        f"<p>This link expires in {settings.INVITE_TTL_HOURS // 24} days.</p>",
    )
    text = (
        f"Hi {name},\n\n{lead} to join {settings.APP_NAME}.\n"
        f"Accept your invitation: {invite_url}\n"
    )
    return await send_email(to, f"You're invited to {settings.APP_NAME}", html=html, text=text, **kwargs)


async def send_password_reset(to: str, name: str, reset_url: str, **kwargs: Any) -> EmailResult:
    html = _layout(
        "Reset your password",
        f"<p>Hi {escape(name)},</p>"
        "<p>We received a request to reset your password.</p>"
        f"<p><a href=\"{escape(reset_url, quote=True)}\">Choose a new password</a></p>"
        "<p>If you did not ask for this, you can ignore this email.</p>",
    )
    text = f"Hi {name},\n\nReset your password: {reset_url}\n"
    return await send_email(to, "Reset your password", html=html, text=text, **kwargs)


async def send_welcome(to: str, name: str, **kwargs: Any) -> EmailResult:
    html = _layout(
        f"Welcome to {settings.APP_NAME}",
        f"<p>Hi {escape(name)},</p><p>Your account is ready.</p>"
        f"<p><a href=\"{escape(settings.WEB_APP_URL, quote=True)}\">Sign in</a></p>",
    )
    text = f"Hi {name},\n\nYour account is ready. Sign in at {settings.WEB_APP_URL}\n"
    return await send_email(to, f"Welcome to {settings.APP_NAME}", html=html, text=text, **kwargs)
