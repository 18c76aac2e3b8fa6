"""CRUD helpers for accounts, invitations and linked OAuth identities."""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import BadRequestError, ConflictError, EmailVerificationRequired, NotFoundError
from ..core.passwords import PASSWORD_MIN_LENGTH, hash_password, normalize_email, verify_password
from ..db.session import as_utc, search_filter, utcnow
from ..models.user import OAuthProvider, User
from ..services.oauth import OAuthProfile

logger = logging.getLogger(__name__)


class InvalidCredentials(ValueError):
    """Unknown email, inactive account or wrong password."""


class PasswordlessAccount(ValueError):
    """The account was created through OAuth and has no password to check."""


def get_user(db: Session, user_id: str) -> User | None:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    stmt = select(User).where(User.email == normalize_email(email))
    return db.execute(stmt).scalars().first()


def get_active_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("User not found")
    return user


def list_users(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    role: Optional[str] = None,
    search: Optional[str] = None,
) -> tuple[list[User], int]:
    filters = []
    if role:
        filters.append(User.role == role)
    if search:
        filters.append(search_filter(search.strip(), User.name, User.email))
    total = db.execute(select(func.count()).select_from(User).where(*filters)).scalar_one()
    stmt = (
        select(User)
        .where(*filters)
        .order_by(User.created_at.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(db.execute(stmt).scalars().unique()), total


def register_user(db: Session, email: str, password: str, name: str) -> User:
    email = normalize_email(email)
    if get_user_by_email(db, email) is not None:
        raise ConflictError("Email already exists")
    user = User(email=email, password_hash=hash_password(password), name=name.strip())
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user.registered", extra={"extra_data": {"user_id": user.id}})
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = get_user_by_email(db, email)
    if user is None or not user.is_active:
        raise InvalidCredentials("Invalid email or password")
    if not user.password_hash:
        raise PasswordlessAccount("This account uses OAuth login. Please sign in with Google or GitHub.")
    if not verify_password(password, user.password_hash):
        raise InvalidCredentials("Invalid email or password")
    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)
    return user


def update_user(db: Session, user: User, payload: dict) -> User:
    changes = {key: value for key, value in payload.items() if value is not None}
    if not changes:
        raise BadRequestError("No fields to update")
    for key, value in changes.items():
        setattr(user, key, value.strip() if isinstance(value, str) and key == "name" else value)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: str) -> None:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    # Providers go first so a failure leaves the account untouched.
    for provider in list(user.oauth_providers):
        db.delete(provider)
    db.flush()
    db.delete(user)
    db.commit()
    logger.info("user.deleted", extra={"extra_data": {"user_id": user_id}})


def invite_user(db: Session, email: str, name: str, role: str = "user") -> tuple[User, str]:
    email = normalize_email(email)
    if get_user_by_email(db, email) is not None:
        raise BadRequestError("User with this email already exists")
    token = secrets.token_hex(32)
    user = User(
        email=email,
        name=name.strip(),
        role=role,
        is_active=False,
        status="invited",
        invite_token=token,
        invite_expires_at=utcnow() + timedelta(hours=settings.INVITE_TTL_HOURS),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user.invited", extra={"extra_data": {"user_id": user.id, "role": role}})
    return user, token


def get_invited_user(db: Session, token: Optional[str]) -> User:
    if not token:
        raise BadRequestError("Token is required")
    stmt = select(User).where(User.invite_token == token)
    user = db.execute(stmt).scalars().first()
    if user is None:
        raise BadRequestError("Invalid invitation token")
    expires_at = as_utc(user.invite_expires_at)
    if expires_at is not None and utcnow() > expires_at:
        raise BadRequestError("Invitation token has expired")
    return user


def accept_invite(db: Session, token: Optional[str], password: Optional[str]) -> User:
    if not token or not password:
        raise BadRequestError("Token and password are required")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise BadRequestError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    user = get_invited_user(db, token)
    now = utcnow()
    user.password_hash = hash_password(password)
    user.email_verified = True
    user.email_verified_at = now
    user.is_active = True
    user.status = "active"
    user.invite_token = None
    user.invite_expires_at = None
    user.last_login_at = now
    db.commit()
    db.refresh(user)
    logger.info("user.invite_accepted", extra={"extra_data": {"user_id": user.id}})
    return user


def _find_provider(db: Session, provider: str, provider_user_id: str) -> OAuthProvider | None:
    stmt = select(OAuthProvider).where(
        OAuthProvider.provider == provider,
        OAuthProvider.provider_user_id == provider_user_id,
    )
    return db.execute(stmt).scalars().first()


def find_or_create_oauth_user(
    db: Session,
    provider: str,
    profile: OAuthProfile,
    access_token: str,
    refresh_token: Optional[str] = None,
) -> tuple[User, bool, OAuthProvider]:
    """Resolve an OAuth login to a local account inside one transaction.

    Returns ``(user, is_new_user, linked_provider)``.
    """

    if not profile.email:
        raise BadRequestError("OAuth provider did not return an email address")
    email = normalize_email(profile.email)
    now = utcnow()
    try:
        link = _find_provider(db, provider, profile.provider_user_id)
        if link is not None:
            user = link.user
            user.last_login_at = now
            if profile.avatar_url:
                user.avatar_url = profile.avatar_url
            link.access_token = access_token
            link.refresh_token = refresh_token
            db.commit()
            db.refresh(user)
            return user, False, link

        user = get_user_by_email(db, email)
        is_new_user = user is None
        if user is not None:
            if user.password_hash and not user.email_verified:
                raise EmailVerificationRequired()
            user.last_login_at = now
            if profile.avatar_url:
                user.avatar_url = profile.avatar_url
        else:
            user = User(
                email=email,
                name=profile.name,
                avatar_url=profile.avatar_url,
                email_verified=True,
                email_verified_at=now,
                last_login_at=now,
            )
            db.add(user)
            db.flush()

        link = OAuthProvider(
            user_id=user.id,
            provider=provider,
            provider_user_id=profile.provider_user_id,
            provider_email=email,
            provider_name=profile.name,
            provider_avatar_url=profile.avatar_url,
            access_token=access_token,
            refresh_token=refresh_token,
        )
        db.add(link)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info(
        "user.oauth_linked",
        extra={"extra_data": {"user_id": user.id, "provider": provider, "new_user": is_new_user}},
    )
    return user, is_new_user, link


def link_oauth_provider(
    db: Session,
    user_id: str,
    provider: str,
    profile: OAuthProfile,
    access_token: str,
    refresh_token: Optional[str] = None,
) -> OAuthProvider:
    existing = _find_provider(db, provider, profile.provider_user_id)
    if existing is not None:
        if existing.user_id != user_id:
            raise ConflictError(
                "This OAuth account is already linked to another user",
                error="OAUTH_PROVIDER_CONFLICT",
            )
        existing.access_token = access_token
        existing.refresh_token = refresh_token
        db.commit()
        db.refresh(existing)
        return existing
    link = OAuthProvider(
        user_id=user_id,
        provider=provider,
        provider_user_id=profile.provider_user_id,
        provider_email=normalize_email(profile.email) if profile.email else None,
        provider_name=profile.name,
        provider_avatar_url=profile.avatar_url,
        access_token=access_token,
        refresh_token=refresh_token,
    )
    db.add(link)
    db.commit()
    db.refresh(link)
    return link
