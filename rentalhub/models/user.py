"""Beginner-friendly overview for this module.

WHAT: Accounts (``users``) and the external identities linked to them
(``oauth_providers``).
WHEN: Loaded by the auth routes on every login/refresh and by the admin user
screens.
WHY: Email/password and Google/GitHub logins must resolve to the same person.
HOW: One ``User`` row owns zero or more ``OAuthProvider`` rows; the pair
``(provider, provider_user_id)`` is unique so an identity can only ever belong
to one account.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db.session import Base, generate_uuid, utcnow

USER_ROLES = ("user", "admin", "super_user")
ADMIN_ROLES = ("admin", "super_user")
OAUTH_PROVIDERS = ("google", "github")


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=True)
    name = Column(String(255), nullable=False)
    avatar_url = Column(Text, nullable=True)
    role = Column(String(20), nullable=False, default="user")
    is_active = Column(Boolean, nullable=False, default=True)
    status = Column(String(20), nullable=False, default="active")
    email_verified = Column(Boolean, nullable=False, default=False)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    is_student = Column(Boolean, nullable=False, default=False)
    invite_token = Column(String(64), nullable=True, unique=True, index=True)
    invite_expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    oauth_providers = relationship(
        "OAuthProvider",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="OAuthProvider.created_at",
    )

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)


class OAuthProvider(Base):
    __tablename__ = "oauth_providers"
    __table_args__ = (UniqueConstraint("provider", "provider_user_id", name="uq_oauth_provider_identity"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String(20), nullable=False)
    provider_user_id = Column(String(255), nullable=False)
    provider_email = Column(String(255), nullable=True)
    provider_name = Column(String(255), nullable=True)
    provider_avatar_url = Column(Text, nullable=True)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="oauth_providers")
