from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

ArticleStatus = Literal["draft", "published"]


class KBCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: int = 0
    icon: Optional[str] = None
    is_active: bool = True


class KBCategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: Optional[int] = None
    icon: Optional[str] = None
    is_active: Optional[bool] = None


class KBCategoryOut(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: int
    icon: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    article_count: Optional[int] = None
    children: Optional[list["KBCategoryOut"]] = None

    model_config = {"from_attributes": True}


class KBArticleCreate(BaseModel):
    category_id: str
    title: str = Field(..., min_length=1, max_length=500)
    slug: Optional[str] = Field(default=None, max_length=500)
    summary: Optional[str] = None
    content: str = Field(..., min_length=1)
    status: ArticleStatus = "draft"
    is_featured: bool = False


class KBArticleUpdate(BaseModel):
    category_id: Optional[str] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=500)
    summary: Optional[str] = None
    content: Optional[str] = Field(default=None, min_length=1)
    status: Optional[ArticleStatus] = None
    is_featured: Optional[bool] = None


class ArticleCategoryRef(BaseModel):
    id: str
    name: str
    slug: str

    model_config = {"from_attributes": True}


class ArticleAuthorRef(BaseModel):
    id: str
    name: str

    model_config = {"from_attributes": True}


class KBArticleOut(BaseModel):
    id: str
    category_id: str
    title: str
    slug: str
    summary: Optional[str] = None
    content: str
    status: str
    author_id: Optional[str] = None
    view_count: int
    is_featured: bool
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    category: Optional[ArticleCategoryRef] = None
    author: Optional[ArticleAuthorRef] = None

    model_config = {"from_attributes": True}


class KBSearchHit(KBArticleOut):
    rank: float
    highlighted_summary: Optional[str] = None
