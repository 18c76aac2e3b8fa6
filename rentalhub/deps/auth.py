from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param

from ..core.logging import bind_log_context
from ..core.security import TokenError, decode_access_token
from ..middlewares import principal_ctx_var
from ..models.user import ADMIN_ROLES


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _set_principal(request: Request, principal: str) -> None:
    principal_ctx_var.set(principal)
    request.state.principal = principal


def require_auth(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> CurrentUser:
    if not authorization:
        raise _unauthorized("No authorization header provided")
    scheme, credentials = get_authorization_scheme_param(authorization)
    if scheme.lower() != "bearer" or not credentials:
        raise _unauthorized("Invalid authorization header format")
    try:
        payload = decode_access_token(credentials)
    except TokenError as exc:
        raise _unauthorized(str(exc)) from exc
    _set_principal(request, f"user:{payload.sub}")
    bind_log_context(user_id=payload.sub, role=payload.role)
    return CurrentUser(user_id=payload.sub, email=payload.email, role=payload.role)


def require_role(*roles: str):
    allowed = set(roles)

    def _check(user: CurrentUser = Depends(require_auth)) -> CurrentUser:
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return _check


require_admin = require_role(*ADMIN_ROLES)
