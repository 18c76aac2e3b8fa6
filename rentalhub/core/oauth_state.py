from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from .config import settings

STATE_ISSUER = "rentalhub-oauth"
STATE_TTL = timedelta(minutes=5)
ALGORITHM = "HS256"


def generate_oauth_state() -> str:
    """Signed, short-lived CSRF token round-tripped through the provider."""
    now = datetime.now(tz=timezone.utc)
    payload = {
        "timestamp": int(now.timestamp() * 1000),
        "nonce": secrets.token_hex(16),
        "iss": STATE_ISSUER,
        "exp": int((now + STATE_TTL).timestamp()),
    }
    return jwt.encode(payload, settings.OAUTH_STATE_SECRET, algorithm=ALGORITHM)


def validate_oauth_state(state: str | None) -> bool:
    if not state:
        return False
    try:
        jwt.decode(state, settings.OAUTH_STATE_SECRET, algorithms=[ALGORITHM], issuer=STATE_ISSUER)
    except JWTError:
        return False
    return True
