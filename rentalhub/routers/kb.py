from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..crud import kb as crud
from ..db.session import get_db
from ..deps.auth import CurrentUser, require_admin, require_auth
from ..schemas.common import created, ok, paginate
from ..schemas.kb import (
    ArticleStatus,
    KBArticleCreate,
    KBArticleOut,
    KBArticleUpdate,
    KBCategoryCreate,
    KBCategoryOut,
    KBCategoryUpdate,
    KBSearchHit,
)

router = APIRouter(prefix="/v1/kb", tags=["knowledge-base"], dependencies=[Depends(require_auth)])


# ---------- Categories ----------


@router.get("/categories")
def api_list_categories(
    parent_id: Optional[str] = Query(default=None, description='A category id, or "null" for top-level only'),
    include_children: bool = Query(default=False),
    include_article_count: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    roots_only = parent_id == "null" or (include_children and parent_id is None)
    categories = crud.list_categories(
        db,
        parent_id=None if roots_only else parent_id,
        roots_only=roots_only,
        include_children=include_children,
        include_article_count=include_article_count,
    )
    return ok({"categories": [KBCategoryOut.model_validate(c) for c in categories]})


@router.get("/categories/{category_id}")
def api_get_category(category_id: str, db: Session = Depends(get_db)):
    return ok({"category": KBCategoryOut.model_validate(crud.category_detail(db, category_id))})


@router.post("/categories", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def api_create_category(payload: KBCategoryCreate, db: Session = Depends(get_db)):
    return created({"category": KBCategoryOut.model_validate(crud.create_category(db, payload.model_dump()))})


@router.put("/categories/{category_id}", dependencies=[Depends(require_admin)])
def api_update_category(category_id: str, payload: KBCategoryUpdate, db: Session = Depends(get_db)):
    category = crud.update_category(db, category_id, payload.model_dump(exclude_unset=True))
    return ok({"category": KBCategoryOut.model_validate(category)})


@router.delete("/categories/{category_id}", dependencies=[Depends(require_admin)])
def api_delete_category(category_id: str, db: Session = Depends(get_db)):
    crud.delete_category(db, category_id)
    return ok(message="Category deleted successfully")


# ---------- Articles ----------


@router.get("/articles")
def api_list_articles(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    category_id: Optional[str] = Query(default=None),
    status: Optional[ArticleStatus] = Query(default=None),
    search: Optional[str] = Query(default=None),
    is_featured: Optional[bool] = Query(default=None),
    author_id: Optional[str] = Query(default=None),
    current: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
):
    articles, total = crud.list_articles(
        db,
        page=page,
        limit=limit,
        include_drafts=current.is_admin,
        category_id=category_id,
        status=status,
        search=search,
        is_featured=is_featured,
        author_id=author_id,
    )
    return ok(
        {
            "articles": [KBArticleOut.model_validate(a) for a in articles],
            "pagination": paginate(page, limit, total),
        }
    )


@router.get("/articles/search")
def api_search_articles(
    q: Optional[str] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    hits = crud.search_articles(db, q, limit=limit)
    results = [
        KBSearchHit(
            **KBArticleOut.model_validate(hit["article"]).model_dump(),
            rank=hit["rank"],
            highlighted_summary=hit["highlighted_summary"],
        )
        for hit in hits
    ]
    return ok({"articles": results, "query": q})


@router.get("/articles/slug/{slug}")
def api_get_article_by_slug(slug: str, current: CurrentUser = Depends(require_auth), db: Session = Depends(get_db)):
    article = crud.get_article_by_slug(db, slug, include_drafts=current.is_admin)
    return ok({"article": KBArticleOut.model_validate(article)})


@router.post("/articles", status_code=status.HTTP_201_CREATED)
@router.post("/articles/import", status_code=status.HTTP_201_CREATED)
def api_create_article(
    payload: KBArticleCreate,
    current: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    article = crud.create_article(db, payload.model_dump(), current.user_id)
    return created({"article": KBArticleOut.model_validate(article)})


@router.get("/articles/{article_id}")
def api_get_article(article_id: str, current: CurrentUser = Depends(require_auth), db: Session = Depends(get_db)):
    article = crud.get_article(db, article_id, include_drafts=current.is_admin)
    return ok({"article": KBArticleOut.model_validate(article)})


@router.put("/articles/{article_id}", dependencies=[Depends(require_admin)])
def api_update_article(article_id: str, payload: KBArticleUpdate, db: Session = Depends(get_db)):
    article = crud.update_article(db, article_id, payload.model_dump(exclude_unset=True))
    return ok({"article": KBArticleOut.model_validate(article)})


@router.delete("/articles/{article_id}", dependencies=[Depends(require_admin)])
def api_delete_article(article_id: str, db: Session = Depends(get_db)):
    crud.delete_article(db, article_id)
    return ok(message="Article deleted successfully")


@router.post("/articles/{article_id}/view")
def api_record_view(article_id: str, current: CurrentUser = Depends(require_auth), db: Session = Depends(get_db)):
    view_count = crud.record_view(db, article_id, include_drafts=current.is_admin)
    return ok({"view_count": view_count})
