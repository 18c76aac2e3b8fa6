"""Response envelopes and shared payload pieces."""

from __future__ import annotations

import math
from typing import Any, Optional

from pydantic import BaseModel, Field


def ok(data: Any = None, *, message: Optional[str] = None) -> dict[str, Any]:
    body: dict[str, Any] = {"status": "ok"}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body


def created(data: Any) -> dict[str, Any]:
    return {"status": "created", "data": data}


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


def paginate(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, totalPages=math.ceil(total / limit) if limit else 0)


class ColorIn(BaseModel):
    color_name: str = Field(..., min_length=1, max_length=100)
    hex_code: Optional[str] = None
    text_color: Optional[str] = None
    border_color: Optional[str] = None
    display_order: int = 0


class ColorOut(ColorIn):
    id: str
    is_active: bool = True

    model_config = {"from_attributes": True}
