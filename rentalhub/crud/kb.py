"""CRUD helpers for the knowledge base: nested categories and articles."""

from __future__ import annotations

import html
import re
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.errors import BadRequestError, ConflictError, NotFoundError
from ..db.session import search_filter, utcnow
from ..models.kb import KBArticle, KBCategory

SEARCH_MIN_LENGTH = 2
SEARCH_WEIGHTS = {"title": 3.0, "summary": 2.0, "content": 1.0}


def kb_slugify(value: str) -> str:
    """``"Getting Started: Laptops"`` -> ``"getting-started-laptops"``."""
    return re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")


# ---------- Categories ----------


def _published_counts(db: Session) -> dict[str, int]:
    stmt = (
        select(KBArticle.category_id, func.count(KBArticle.id))
        .where(KBArticle.status == "published")
        .group_by(KBArticle.category_id)
    )
    return {category_id: count for category_id, count in db.execute(stmt).all()}


def _all_categories(db: Session) -> list[KBCategory]:
    stmt = select(KBCategory).order_by(KBCategory.sort_order, KBCategory.name)
    return list(db.execute(stmt).scalars())


def list_categories(
    db: Session,
    *,
    parent_id: Optional[str] = None,
    roots_only: bool = False,
    include_children: bool = False,
    include_article_count: bool = False,
) -> list[dict[str, Any]]:
    """Return categories as plain dicts, optionally nested and counted.

    ``roots_only`` selects top-level categories; ``parent_id`` selects the
    direct children of one category. With ``include_children`` every node
    carries its whole subtree under ``children``.
    """

    categories = _all_categories(db)
    counts = _published_counts(db) if include_article_count else {}
    by_parent: dict[Optional[str], list[KBCategory]] = {}
    for category in categories:
        by_parent.setdefault(category.parent_id, []).append(category)

    def node(category: KBCategory) -> dict[str, Any]:
        data: dict[str, Any] = {column: getattr(category, column) for column in _CATEGORY_FIELDS}
        if include_article_count:
            data["article_count"] = counts.get(category.id, 0)
        if include_children:
            data["children"] = [node(child) for child in by_parent.get(category.id, [])]
        return data

    if roots_only:
        selected = by_parent.get(None, [])
    elif parent_id:
        selected = by_parent.get(parent_id, [])
    else:
        selected = categories
    return [node(category) for category in selected]


_CATEGORY_FIELDS = (
    "id",
    "name",
    "slug",
    "description",
    "parent_id",
    "sort_order",
    "icon",
    "is_active",
    "created_at",
    "updated_at",
)


def get_category(db: Session, category_id: str) -> KBCategory:
    category = db.get(KBCategory, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def category_detail(db: Session, category_id: str) -> dict[str, Any]:
    category = get_category(db, category_id)
    data = {column: getattr(category, column) for column in _CATEGORY_FIELDS}
    children = db.execute(
        select(KBCategory).where(KBCategory.parent_id == category_id).order_by(KBCategory.sort_order, KBCategory.name)
    ).scalars()
    data["children"] = [{column: getattr(child, column) for column in _CATEGORY_FIELDS} for child in children]
    data["article_count"] = _published_counts(db).get(category_id, 0)
    return data


def _ensure_unique_category_slug(db: Session, slug: str, exclude_id: Optional[str] = None) -> None:
    stmt = select(KBCategory.id).where(KBCategory.slug == slug)
    if exclude_id:
        stmt = stmt.where(KBCategory.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise ConflictError("Category with this slug already exists")


def _descendant_ids(db: Session, category_id: str) -> set[str]:
    children: dict[Optional[str], list[str]] = {}
    for cid, parent in db.execute(select(KBCategory.id, KBCategory.parent_id)).all():
        children.setdefault(parent, []).append(cid)
    found: set[str] = set()
    stack = list(children.get(category_id, []))
    while stack:
        current = stack.pop()
        if current in found:
            continue
        found.add(current)
        stack.extend(children.get(current, []))
    return found


def create_category(db: Session, payload: dict[str, Any]) -> KBCategory:
    data = dict(payload)
    data["slug"] = data.get("slug") or kb_slugify(data["name"])
    if data.get("parent_id") and db.get(KBCategory, data["parent_id"]) is None:
        raise BadRequestError("Parent category not found")
    _ensure_unique_category_slug(db, data["slug"])
    category = KBCategory(**data)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def update_category(db: Session, category_id: str, changes: dict[str, Any]) -> KBCategory:
    category = get_category(db, category_id)
    if not changes:
        raise BadRequestError("No fields to update")
    if "name" in changes and "slug" not in changes:
        changes["slug"] = kb_slugify(changes["name"])
    if changes.get("slug"):
        _ensure_unique_category_slug(db, changes["slug"], exclude_id=category_id)
    parent_id = changes.get("parent_id")
    if parent_id:
        if parent_id == category_id:
            raise BadRequestError("Category cannot be its own parent")
        if db.get(KBCategory, parent_id) is None:
            raise BadRequestError("Parent category not found")
        if parent_id in _descendant_ids(db, category_id):
            raise BadRequestError("Cannot set parent to a descendant category")
    for key, value in changes.items():
        setattr(category, key, value)
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: str) -> None:
    category = get_category(db, category_id)
    if db.execute(select(func.count(KBArticle.id)).where(KBArticle.category_id == category_id)).scalar_one():
        raise BadRequestError("Cannot delete category with articles. Move or delete articles first.")
    if db.execute(select(func.count(KBCategory.id)).where(KBCategory.parent_id == category_id)).scalar_one():
        raise BadRequestError("Cannot delete category with sub-categories. Delete sub-categories first.")
    db.delete(category)
    db.commit()


# ---------- Articles ----------


def list_articles(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    include_drafts: bool = False,
    category_id: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    is_featured: Optional[bool] = None,
    author_id: Optional[str] = None,
) -> tuple[list[KBArticle], int]:
    filters = []
    if not include_drafts:
        filters.append(KBArticle.status == "published")
    elif status:
        filters.append(KBArticle.status == status)
    if category_id:
        filters.append(KBArticle.category_id == category_id)
    if search:
        filters.append(search_filter(search.strip(), KBArticle.title, KBArticle.summary, KBArticle.content))
    if is_featured is not None:
        filters.append(KBArticle.is_featured.is_(is_featured))
    if author_id:
        filters.append(KBArticle.author_id == author_id)
    total = db.execute(select(func.count()).select_from(KBArticle).where(*filters)).scalar_one()
    stmt = (
        select(KBArticle)
        .where(*filters)
        .order_by(
            KBArticle.is_featured.desc(),
            KBArticle.published_at.desc().nulls_last(),
            KBArticle.created_at.desc(),
        )
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(db.execute(stmt).unique().scalars()), total


def _terms(query: str) -> list[str]:
    return [term for term in re.split(r"\s+", query.strip().lower()) if term]


def highlight(text: Optional[str], terms: list[str]) -> Optional[str]:
    """Escape ``text`` and wrap each search term in ``<mark>``."""
    if not text:
        return text
    if not terms:
        return html.escape(text)
    pattern = re.compile("|".join(re.escape(term) for term in sorted(terms, key=len, reverse=True)), re.I)
    parts = []
    last = 0
    for match in pattern.finditer(text):
        parts.append(html.escape(text[last : match.start()]))
        parts.append(f"<mark>{html.escape(match.group(0))}</mark>")
        last = match.end()
    parts.append(html.escape(text[last:]))
    return "".join(parts)


def _rank(article: KBArticle, terms: list[str]) -> float:
    score = 0.0
    for field, weight in SEARCH_WEIGHTS.items():
        value = (getattr(article, field) or "").lower()
        score += weight * sum(value.count(term) for term in terms)
    return score


def search_articles(db: Session, query: Optional[str], *, limit: int = 20) -> list[dict[str, Any]]:
    """Published articles matching every term, best weighted hits first."""

    if not query or len(query.strip()) < SEARCH_MIN_LENGTH:
        raise BadRequestError(f"Search query must be at least {SEARCH_MIN_LENGTH} characters")
    terms = _terms(query)
    filters = [KBArticle.status == "published"]
    for term in terms:
        filters.append(search_filter(term, KBArticle.title, KBArticle.summary, KBArticle.content))
    articles = list(db.execute(select(KBArticle).where(*filters)).unique().scalars())
    ranked = sorted(
        articles,
        key=lambda article: (_rank(article, terms), article.published_at.timestamp() if article.published_at else 0),
        reverse=True,
    )
    return [
        {"article": article, "rank": _rank(article, terms), "highlighted_summary": highlight(article.summary, terms)}
        for article in ranked[:limit]
    ]


def get_article(db: Session, article_id: str, *, include_drafts: bool = False) -> KBArticle:
    article = db.get(KBArticle, article_id)
    if article is None or (not include_drafts and article.status != "published"):
        raise NotFoundError("Article not found")
    return article


def get_article_by_slug(db: Session, slug: str, *, include_drafts: bool = False) -> KBArticle:
    article = db.execute(select(KBArticle).where(KBArticle.slug == slug)).unique().scalars().first()
    if article is None or (not include_drafts and article.status != "published"):
        raise NotFoundError("Article not found")
    return article


def _ensure_unique_article_slug(db: Session, slug: str, exclude_id: Optional[str] = None) -> None:
    stmt = select(KBArticle.id).where(KBArticle.slug == slug)
    if exclude_id:
        stmt = stmt.where(KBArticle.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise ConflictError("Article with this slug already exists")


def create_article(db: Session, payload: dict[str, Any], author_id: Optional[str]) -> KBArticle:
    data = dict(payload)
    if db.get(KBCategory, data["category_id"]) is None:
        raise BadRequestError("Category not found", error="ValidationError")
    data["slug"] = data.get("slug") or kb_slugify(data["title"])
    _ensure_unique_article_slug(db, data["slug"])
    article = KBArticle(**data, author_id=author_id)
    if article.status == "published":
        article.published_at = utcnow()
    db.add(article)
    db.commit()
    db.refresh(article)
    return article


def update_article(db: Session, article_id: str, changes: dict[str, Any]) -> KBArticle:
    article = get_article(db, article_id, include_drafts=True)
    if not changes:
        raise BadRequestError("No fields to update")
    if changes.get("category_id") and db.get(KBCategory, changes["category_id"]) is None:
        raise BadRequestError("Category not found", error="ValidationError")
    if changes.get("slug"):
        _ensure_unique_article_slug(db, changes["slug"], exclude_id=article_id)
    if changes.get("status") == "published" and article.published_at is None:
        article.published_at = utcnow()
    for key, value in changes.items():
        setattr(article, key, value)
    db.commit()
    db.refresh(article)
    return article


def delete_article(db: Session, article_id: str) -> None:
    article = get_article(db, article_id, include_drafts=True)
    db.delete(article)
    db.commit()


def record_view(db: Session, article_id: str, *, include_drafts: bool = False) -> int:
    article = get_article(db, article_id, include_drafts=include_drafts)
    article.view_count = KBArticle.view_count + 1
    db.commit()
    db.refresh(article)
    return article.view_count
