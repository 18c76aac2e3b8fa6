"""Request dependencies shared by the API routers."""

from .auth import CurrentUser, require_admin, require_auth, require_role

__all__ = ["CurrentUser", "require_admin", "require_auth", "require_role"]
