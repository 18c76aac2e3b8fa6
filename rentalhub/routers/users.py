from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import NotFoundError
from ..crud.users import delete_user, get_user, invite_user, list_users, update_user
from ..db.session import get_db
from ..deps.auth import CurrentUser, require_admin
from ..schemas.common import created, ok, paginate
from ..schemas.user import Role, UserDetail, UserInvite, UserOut, UserUpdate
from ..services.email import send_invitation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users", tags=["users"], dependencies=[Depends(require_admin)])


def _load(db: Session, user_id: str):
    user = get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def _send_invite_email(email: str, name: str, token: str, inviter_name: Optional[str]) -> None:
    invite_url = f"{settings.WEB_APP_URL.rstrip('/')}/accept-invite?token={token}"
    result = await send_invitation(email, name, invite_url, inviter_name=inviter_name)
    if not result.success:
        logger.warning("user.invite_email_failed", extra={"extra_data": {"email": email, "error": result.error}})


@router.get("")
def api_list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    role: Optional[Role] = Query(default=None),
    search: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    users, total = list_users(db, page=page, limit=limit, role=role, search=search)
    return ok({"users": [UserOut.model_validate(u) for u in users], "pagination": paginate(page, limit, total)})


@router.post("/invite", status_code=status.HTTP_201_CREATED)
def api_invite_user(
    payload: UserInvite,
    background_tasks: BackgroundTasks,
    current: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user, token = invite_user(db, payload.email, payload.name, payload.role)
    if settings.mailgun_configured:
        inviter = get_user(db, current.user_id)
        background_tasks.add_task(_send_invite_email, user.email, user.name, token, inviter.name if inviter else None)
    return created({"user": UserOut.model_validate(user), "inviteToken": token})


@router.get("/{user_id}")
def api_get_user(user_id: str, db: Session = Depends(get_db)):
    return ok({"user": UserDetail.model_validate(_load(db, user_id))})


@router.put("/{user_id}")
def api_update_user(user_id: str, payload: UserUpdate, db: Session = Depends(get_db)):
    user = update_user(db, _load(db, user_id), payload.model_dump(exclude_unset=True))
    return ok({"user": UserOut.model_validate(user)})


@router.delete("/{user_id}")
def api_delete_user(user_id: str, db: Session = Depends(get_db)):
    delete_user(db, user_id)
    return ok(message="User deleted successfully")
