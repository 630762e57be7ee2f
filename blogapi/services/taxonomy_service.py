"""
Taxonomy service — categories and tags.

Both kinds share one implementation parameterised by a ``_Kind``
descriptor.  Reads go through the cache-aside pattern (``taxonomy:<kind>:*``
keys); every write invalidates the kind's keys.  Mutations are restricted
to administrators by ``policy.can_manage_taxonomy``.
"""
from dataclasses import dataclass

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blogapi.cache import CacheManager, taxonomy_key
from blogapi.config import settings
from blogapi.exceptions import (
    AppError,
    CategoryInUse,
    CategoryNameExists,
    CategoryNotFound,
    Forbidden,
    SlugExists,
    TagInUse,
    TagNameExists,
    TagNotFound,
)
from blogapi.models import Article, ArticleStatus, Category, Tag, article_tags
from blogapi.policy import can_manage_taxonomy
from blogapi.security import Caller
from blogapi.services.common import iso, user_brief

# Latest published articles embedded in a category / tag detail view.
_DETAIL_ARTICLE_LIMIT = 10


@dataclass(frozen=True)
class _Kind:
    key: str
    model: type
    not_found: type[AppError]
    name_exists: type[AppError]
    in_use: type[AppError]


CATEGORIES = _Kind("categories", Category, CategoryNotFound, CategoryNameExists, CategoryInUse)
TAGS = _Kind("tags", Tag, TagNotFound, TagNameExists, TagInUse)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _article_count_query(kind: _Kind):
    if kind is CATEGORIES:
        return select(Article.category_id, func.count()).group_by(Article.category_id)
    return select(article_tags.c.tag_id, func.count()).group_by(article_tags.c.tag_id)


async def _article_count(db: AsyncSession, kind: _Kind, item_id: int) -> int:
    if kind is CATEGORIES:
        q = select(func.count()).select_from(Article).where(Article.category_id == item_id)
    else:
        q = select(func.count()).select_from(article_tags).where(article_tags.c.tag_id == item_id)
    return (await db.execute(q)).scalar_one()


def _to_dict(item, article_count: int | None = None) -> dict:
    data = {
        "id": item.id,
        "name": item.name,
        "slug": item.slug,
        "color": item.color,
        "created_at": iso(item.created_at),
        "updated_at": iso(item.updated_at),
    }
    if isinstance(item, Category):
        data["description"] = item.description
    if article_count is not None:
        data["article_count"] = article_count
    return data


async def _get_or_404(db: AsyncSession, kind: _Kind, item_id: int):
    item = await db.get(kind.model, item_id)
    if item is None:
        raise kind.not_found()
    return item


async def _ensure_unique(db: AsyncSession, kind: _Kind, name: str | None, slug: str | None, exclude_id=None):
    model = kind.model
    if name is not None:
        q = select(model.id).where(model.name == name)
        if exclude_id is not None:
            q = q.where(model.id != exclude_id)
        if (await db.execute(q)).first():
            raise kind.name_exists()
    if slug is not None:
        q = select(model.id).where(model.slug == slug)
        if exclude_id is not None:
            q = q.where(model.id != exclude_id)
        if (await db.execute(q)).first():
            raise SlugExists()


async def _flush_unique(db: AsyncSession, kind: _Kind) -> None:
    """Flush, mapping a unique-constraint race onto the pre-check errors."""
    try:
        await db.flush()
    except IntegrityError as exc:
        if "slug" in str(exc.orig):
            raise SlugExists() from exc
        raise kind.name_exists() from exc


def _require_admin(caller: Caller | None) -> None:
    if not can_manage_taxonomy(caller):
        raise Forbidden("Only administrators can manage categories and tags")


# ---------------------------------------------------------------------------
# Generic operations
# ---------------------------------------------------------------------------

async def list_items(db: AsyncSession, cache: CacheManager, kind: _Kind) -> list[dict]:
    """All items of *kind* in creation order, each with its article count."""

    async def load() -> list[dict]:
        items = (
            await db.execute(select(kind.model).order_by(kind.model.created_at, kind.model.id))
        ).scalars().all()
        counts = dict((await db.execute(_article_count_query(kind))).all())
        return [_to_dict(item, counts.get(item.id, 0)) for item in items]

    return await cache.cached(taxonomy_key(kind.key, "list"), load, ttl=settings.CACHE_TTL_TAXONOMY)


async def get_item(db: AsyncSession, cache: CacheManager, kind: _Kind, item_id: int) -> dict:
    """
    One item with its article count and latest published articles.

    Article entries carry no view or like counters; those change without
    invalidating the taxonomy cache.
    """

    async def load() -> dict:
        item = await _get_or_404(db, kind, item_id)
        q = (
            select(Article)
            .where(Article.status == ArticleStatus.PUBLISHED)
            .options(joinedload(Article.author))
            .order_by(desc(Article.created_at), desc(Article.id))
            .limit(_DETAIL_ARTICLE_LIMIT)
        )
        if kind is CATEGORIES:
            q = q.where(Article.category_id == item_id)
        else:
            q = q.where(Article.tags.any(Tag.id == item_id))
        articles = (await db.execute(q)).unique().scalars().all()

        data = _to_dict(item, await _article_count(db, kind, item_id))
        data["articles"] = [
            {
                "id": a.id,
                "title": a.title,
                "slug": a.slug,
                "excerpt": a.excerpt,
                "created_at": iso(a.created_at),
                "author": user_brief(a.author),
            }
            for a in articles
        ]
        return data

    return await cache.cached(
        taxonomy_key(kind.key, "detail", item_id), load, ttl=settings.CACHE_TTL_TAXONOMY
    )


async def create_item(
    db: AsyncSession, cache: CacheManager, kind: _Kind, data, caller: Caller | None
) -> dict:
    _require_admin(caller)
    await _ensure_unique(db, kind, data.name, data.slug)

    item = kind.model(**data.model_dump())
    db.add(item)
    await _flush_unique(db, kind)
    await cache.invalidate_taxonomy(kind.key)
    return _to_dict(item, 0)


async def update_item(
    db: AsyncSession, cache: CacheManager, kind: _Kind, item_id: int, data, caller: Caller | None
) -> dict:
    _require_admin(caller)
    item = await _get_or_404(db, kind, item_id)

    # Explicit nulls are ignored; every taxonomy column is NOT NULL.
    update_data = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    await _ensure_unique(
        db,
        kind,
        update_data.get("name") if update_data.get("name") != item.name else None,
        update_data.get("slug") if update_data.get("slug") != item.slug else None,
        exclude_id=item.id,
    )
    for field, value in update_data.items():
        setattr(item, field, value)

    await _flush_unique(db, kind)
    await cache.invalidate_taxonomy(kind.key)
    return _to_dict(item, await _article_count(db, kind, item.id))


async def delete_item(
    db: AsyncSession, cache: CacheManager, kind: _Kind, item_id: int, caller: Caller | None
) -> None:
    """Delete an item; refused while any article still references it."""
    _require_admin(caller)
    item = await _get_or_404(db, kind, item_id)
    if await _article_count(db, kind, item_id):
        raise kind.in_use()

    await db.delete(item)
    await db.flush()
    await cache.invalidate_taxonomy(kind.key)
