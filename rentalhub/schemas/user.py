from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["user", "admin", "super_user"]


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    avatar_url: Optional[str] = None
    role: str
    is_active: bool
    status: str = "active"
    email_verified: bool
    email_verified_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    is_student: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OAuthProviderOut(BaseModel):
    id: str
    provider: str
    provider_email: Optional[str] = None
    provider_name: Optional[str] = None
    provider_avatar_url: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserDetail(UserOut):
    oauth_providers: list[OAuthProviderOut] = Field(default_factory=list)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    is_student: Optional[bool] = None


class UserInvite(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    role: Role = "user"
