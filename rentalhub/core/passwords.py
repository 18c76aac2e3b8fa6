"""Password hashing and email normalisation helpers."""

from __future__ import annotations

import bcrypt

from .config import settings

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 100
# bcrypt only looks at the first 72 bytes; newer releases refuse longer input.
BCRYPT_MAX_BYTES = 72


def normalize_email(email: str) -> str:
    """Lowercase and trim so ``Bob@X.com `` and ``bob@x.com`` are one account."""
    return (email or "").strip().lower()


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_encode(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False
