from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, ValidationError

from .config import settings

ALGORITHM = "HS256"
AUDIENCE = "rentalhub-clients"
DEFAULT_ACCESS_SECONDS = 900

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


class TokenError(ValueError):
    """Raised when a bearer or refresh token cannot be trusted."""


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int


class TokenPayload(BaseModel):
    sub: str
    email: str
    role: str
    exp: datetime
    iat: datetime
    typ: str
    aud: str
    iss: str

    @property
    def user_id(self) -> str:
        return self.sub


def parse_duration(value: str, default: int = DEFAULT_ACCESS_SECONDS) -> int:
    """Turn ``15m``/``7d`` style strings into seconds."""
    match = _DURATION_RE.match((value or "").strip())
    if not match:
        return default
    return int(match.group(1)) * _UNIT_SECONDS[match.group(2)]


def access_token_expires_in() -> int:
    return parse_duration(settings.JWT_EXPIRES_IN)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _encode_token(subject: str, email: str, role: str, expires_delta: timedelta, token_type: str) -> str:
    now = _now()
    payload: dict[str, Any] = {
        "sub": subject,
        "email": email,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        "typ": token_type,
        "aud": AUDIENCE,
        "iss": settings.JWT_ISSUER,
    }
    secret = settings.JWT_REFRESH_SECRET if token_type == "refresh" else settings.JWT_SECRET
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def create_access_token(subject: str, email: str, role: str) -> str:
    delta = timedelta(seconds=access_token_expires_in())
    return _encode_token(subject, email, role, delta, token_type="access")


def create_refresh_token(subject: str, email: str, role: str) -> str:
    delta = timedelta(seconds=parse_duration(settings.JWT_REFRESH_EXPIRES_IN, default=7 * 86400))
    return _encode_token(subject, email, role, delta, token_type="refresh")


def issue_token_pair(user: Any) -> TokenPair:
    """Issue access + refresh tokens for anything with ``id``/``email``/``role``."""
    subject = str(user.id)
    return TokenPair(
        access_token=create_access_token(subject, user.email, user.role),
        refresh_token=create_refresh_token(subject, user.email, user.role),
        expires_in=access_token_expires_in(),
    )


def _decode(token: str, *, token_type: str, expired_message: str, invalid_message: str) -> TokenPayload:
    secret = settings.JWT_REFRESH_SECRET if token_type == "refresh" else settings.JWT_SECRET
    try:
        decoded = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            audience=AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except ExpiredSignatureError as exc:
        raise TokenError(expired_message) from exc
    except JWTError as exc:
        raise TokenError(invalid_message) from exc
    try:
        payload = TokenPayload.model_validate(decoded)
    except ValidationError as exc:
        raise TokenError(invalid_message) from exc
    if payload.typ != token_type:
        raise TokenError(invalid_message)
    return payload


def decode_access_token(token: str) -> TokenPayload:
    return _decode(token, token_type="access", expired_message="Token expired", invalid_message="Invalid token")


def decode_refresh_token(token: str) -> TokenPayload:
    return _decode(
        token,
        token_type="refresh",
        expired_message="Refresh token expired",
        invalid_message="Invalid refresh token",
    )


def refresh_access_token(refresh_token: str) -> TokenPair:
    """Mint a new access token; the refresh token is handed back unchanged."""
    payload = decode_refresh_token(refresh_token)
    return TokenPair(
        access_token=create_access_token(payload.sub, payload.email, payload.role),
        refresh_token=refresh_token,
        expires_in=access_token_expires_in(),
    )
