from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from ..core.passwords import PASSWORD_MAX_LENGTH, PASSWORD_MIN_LENGTH


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    name: str = Field(..., min_length=1, max_length=255)

    model_config = {
        "json_schema_extra": {
            "example": {"email": "ada@example.com", "password": "correct horse", "name": "Ada"}
        }
    }


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    model_config = {
        "json_schema_extra": {
            "example": {"email": "ada@example.com", "password": "correct horse"}
        }
    }


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)

    model_config = {
        "json_schema_extra": {
            "example": {"refresh_token": "<jwt>"}
        }
    }


# Both fields are checked by hand so the handlers can answer with the
# provider-specific error codes instead of a generic validation error.
class OAuthExchangeRequest(BaseModel):
    code: Optional[str] = None
    state: Optional[str] = None


class AcceptInviteRequest(BaseModel):
    token: Optional[str] = None
    password: Optional[str] = None


class OAuthTokens(BaseModel):
    access_token: str
    refresh_token: str
    is_new_user: bool
