"""
Article service — business logic for the Article aggregate.

Design notes
------------
- Every read and write consults ``blogapi.policy``; no role or owner
  comparison happens here directly.
- List filters are described with ``blogapi.filters`` predicates and
  translated to SQL in one place (``filters.to_clause``).
- Eager loading via ``joinedload`` (many-to-one: author, category) and
  ``selectinload`` (tags, comment replies) avoids N+1 queries.  ``unique()``
  is required after any query that combines ``joinedload`` with
  collections.
- The view counter is bumped by ``record_view`` in its own session after
  the response has been produced; a failure there is logged and never
  reaches the reader.
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import asc, delete, desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blogapi.cache import CacheManager
from blogapi.database import Database
from blogapi.exceptions import ArticleNotFound, CategoryNotFound, Forbidden, SlugExists, TagNotFound
from blogapi.filters import AuthoredBy, HasTag, InCategory, TextSearch, all_of, to_clause
from blogapi.models import Article, ArticleStatus, Category, Comment, Like, Tag, article_tags
from blogapi.pagination import Page, PageRequest, SortSpec
from blogapi.policy import can_mutate_article, can_view_article, can_view_unpublished_by, list_visibility
from blogapi.schemas import ArticleCreate, ArticleUpdate
from blogapi.security import Caller
from blogapi.services import like_service
from blogapi.services.common import article_to_dict, comment_to_dict
from blogapi.services.user_service import get_user_or_404

logger = logging.getLogger(__name__)

# Columns that are safe to sort by; guards against arbitrary attribute access.
SORTABLE_COLUMNS = {
    "created_at": Article.created_at,
    "updated_at": Article.updated_at,
    "view_count": Article.view_count,
    "like_count": Article.like_count,
}

# Columns that may be cleared with an explicit null on update.
_NULLABLE_FIELDS = frozenset({"cover_image"})


@dataclass(frozen=True)
class ArticleQuery:
    page: PageRequest
    sort: SortSpec
    status: ArticleStatus | None = None
    category_id: int | None = None
    tag_id: int | None = None
    author_id: int | None = None
    search: str | None = None


# ---------------------------------------------------------------------------
# Loading helpers
# ---------------------------------------------------------------------------

def _with_relations(q):
    return q.options(
        joinedload(Article.author),
        joinedload(Article.category),
        selectinload(Article.tags),
    )


async def _load_article(db: AsyncSession, article_id: int) -> Article | None:
    q = _with_relations(select(Article).where(Article.id == article_id)).execution_options(
        populate_existing=True
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def _get_or_404(db: AsyncSession, article_id: int) -> Article:
    article = await _load_article(db, article_id)
    if article is None:
        raise ArticleNotFound()
    return article


async def _comment_counts(db: AsyncSession, article_ids: list[int]) -> dict[int, int]:
    if not article_ids:
        return {}
    q = (
        select(Comment.article_id, func.count())
        .where(Comment.article_id.in_(article_ids))
        .group_by(Comment.article_id)
    )
    return dict((await db.execute(q)).all())


async def _top_level_comments(db: AsyncSession, article_id: int) -> list[Comment]:
    q = (
        select(Comment)
        .where(Comment.article_id == article_id, Comment.parent_id.is_(None))
        .options(
            joinedload(Comment.author),
            selectinload(Comment.replies).joinedload(Comment.author),
        )
        .order_by(desc(Comment.created_at), desc(Comment.id))
        .execution_options(populate_existing=True)
    )
    return list((await db.execute(q)).unique().scalars().all())


async def _serialize_detail(db: AsyncSession, article: Article) -> dict:
    comments = await _top_level_comments(db, article.id)
    counts = await _comment_counts(db, [article.id])
    data = article_to_dict(article, comment_count=counts.get(article.id, 0))
    data["content"] = article.content
    data["comments"] = [comment_to_dict(c, with_replies=True) for c in comments]
    return data


# ---------------------------------------------------------------------------
# Referential checks
# ---------------------------------------------------------------------------

async def _ensure_category(db: AsyncSession, category_id: int) -> None:
    if await db.get(Category, category_id) is None:
        raise CategoryNotFound()


async def _resolve_tags(db: AsyncSession, tag_ids: list[int]) -> list[Tag]:
    """Return the Tag rows for *tag_ids*; every id must exist."""
    if not tag_ids:
        return []
    result = await db.execute(select(Tag).where(Tag.id.in_(tag_ids)))
    tags = result.scalars().all()
    if len(tags) != len(set(tag_ids)):
        raise TagNotFound()
    return list(tags)


async def _ensure_slug_free(db: AsyncSession, slug: str) -> None:
    if (await db.execute(select(Article.id).where(Article.slug == slug))).first():
        raise SlugExists()


async def _flush_slug(db: AsyncSession) -> None:
    """Flush, mapping a slug uniqueness race onto ``SlugExists``."""
    try:
        await db.flush()
    except IntegrityError as exc:
        raise SlugExists() from exc


async def _invalidate(cache: CacheManager) -> None:
    # Category / tag payloads embed article counts and latest articles.
    await cache.invalidate_taxonomy("categories")
    await cache.invalidate_taxonomy("tags")


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_article(
    db: AsyncSession, cache: CacheManager, data: ArticleCreate, author: Caller
) -> dict:
    """
    Create an article owned by *author* and return its detail dict.

    ``published_at`` is stamped only when the article is created already
    PUBLISHED.
    """
    await _ensure_slug_free(db, data.slug)
    await _ensure_category(db, data.category_id)
    tags = await _resolve_tags(db, data.tag_ids)

    article = Article(
        title=data.title,
        slug=data.slug,
        excerpt=data.excerpt,
        content=data.content,
        cover_image=data.cover_image,
        status=data.status,
        is_top=data.is_top,
        author_id=author.user_id,
        category_id=data.category_id,
        published_at=datetime.now(timezone.utc) if data.status == ArticleStatus.PUBLISHED else None,
    )
    article.tags = tags
    db.add(article)
    await _flush_slug(db)

    logger.info("Article created id=%d slug=%s author_id=%d", article.id, article.slug, author.user_id)
    await _invalidate(cache)
    return await _serialize_detail(db, await _get_or_404(db, article.id))


async def get_article(db: AsyncSession, article_id: int, caller: Caller | None) -> dict:
    """
    Return the detail dict for *article_id*: body, author, category, tags,
    top-level comments with their replies, and comment count.

    The view counter is not touched here; callers schedule ``record_view``.
    """
    article = await _get_or_404(db, article_id)
    if not can_view_article(article, caller):
        raise Forbidden("You do not have permission to view this article")
    data = await _serialize_detail(db, article)
    if caller is not None:
        data["is_liked"] = await like_service.is_liked(db, article_id, caller.user_id)
    return data


async def record_view(database: Database, article_id: int) -> None:
    """
    Atomically add one to ``view_count`` in a dedicated session.

    Runs after the read has been answered; failures are logged only.
    """
    try:
        async with database.session() as session:
            await session.execute(
                update(Article)
                .where(Article.id == article_id)
                .values(view_count=Article.view_count + 1)
            )
            await session.commit()
    except Exception:
        logger.warning("View count increment failed for article_id=%d", article_id, exc_info=True)


async def _paginate(db: AsyncSession, where, page: PageRequest, sort: SortSpec, caller: Caller | None) -> Page:
    total: int = (
        await db.execute(select(func.count()).select_from(Article).where(where))
    ).scalar_one()

    sort_col = SORTABLE_COLUMNS.get(sort.sort_by, Article.created_at)
    direction = desc if sort.descending else asc
    q = (
        _with_relations(select(Article).where(where))
        .order_by(direction(sort_col), direction(Article.id))
        .offset(page.skip)
        .limit(page.limit)
        .execution_options(populate_existing=True)
    )
    articles = (await db.execute(q)).unique().scalars().all()

    ids = [a.id for a in articles]
    counts = await _comment_counts(db, ids)
    items = [article_to_dict(a, comment_count=counts.get(a.id, 0)) for a in articles]

    if caller is not None and ids:
        liked = await like_service.batch_check(db, ids, caller.user_id)
        for item in items:
            item["is_liked"] = liked[item["id"]]

    return Page.build(items, page, total)


async def list_articles(db: AsyncSession, query: ArticleQuery, caller: Caller | None) -> Page:
    """
    Return one page of articles visible to *caller* under *query*.

    Visibility comes from ``policy.list_visibility``; the remaining filters
    narrow it and never widen it.
    """
    predicates = [list_visibility(query.status, caller)]
    if query.category_id is not None:
        predicates.append(InCategory(query.category_id))
    if query.tag_id is not None:
        predicates.append(HasTag(query.tag_id))
    if query.author_id is not None:
        predicates.append(AuthoredBy(query.author_id))
    if query.search:
        predicates.append(TextSearch(query.search))

    return await _paginate(db, to_clause(all_of(*predicates)), query.page, query.sort, caller)


async def list_user_articles(
    db: AsyncSession, user_id: int, page: PageRequest, caller: Caller | None
) -> Page:
    """
    Articles written by *user_id*, newest first.  The author and admins see
    every status; everybody else sees PUBLISHED only.
    """
    await get_user_or_404(db, user_id)
    predicate = AuthoredBy(user_id)
    if not can_view_unpublished_by(user_id, caller):
        predicate = all_of(predicate, list_visibility(None, None))
    sort = SortSpec(sort_by="created_at", sort_order="desc")
    return await _paginate(db, to_clause(predicate), page, sort, caller)


async def update_article(
    db: AsyncSession, cache: CacheManager, article_id: int, data: ArticleUpdate, caller: Caller
) -> dict:
    """
    Partially update an article.  Only fields present in the payload are
    changed; ``tag_ids`` replaces the whole tag set; ``published_at`` is
    stamped on the first transition to PUBLISHED and never overwritten.
    """
    article = await _get_or_404(db, article_id)
    if not can_mutate_article(article, caller):
        raise Forbidden("Only the author or an administrator can edit this article")

    update_data = {
        k: v
        for k, v in data.model_dump(exclude_unset=True).items()
        if v is not None or k in _NULLABLE_FIELDS
    }
    tag_ids: list[int] | None = update_data.pop("tag_ids", None)

    if "slug" in update_data and update_data["slug"] != article.slug:
        await _ensure_slug_free(db, update_data["slug"])
    if "category_id" in update_data:
        await _ensure_category(db, update_data["category_id"])
    tags = await _resolve_tags(db, tag_ids) if tag_ids is not None else None

    for field, value in update_data.items():
        setattr(article, field, value)
    if update_data.get("status") == ArticleStatus.PUBLISHED and article.published_at is None:
        article.published_at = datetime.now(timezone.utc)
    if tags is not None:
        article.tags = tags

    await _flush_slug(db)
    logger.info("Article updated id=%d by user_id=%d", article_id, caller.user_id)
    await _invalidate(cache)
    return await _serialize_detail(db, await _get_or_404(db, article_id))


async def delete_article(
    db: AsyncSession, cache: CacheManager, article_id: int, caller: Caller
) -> None:
    """Delete an article together with its comments, likes and tag links."""
    article = await _get_or_404(db, article_id)
    if not can_mutate_article(article, caller):
        raise Forbidden("Only the author or an administrator can delete this article")

    await db.execute(delete(Like).where(Like.article_id == article_id))
    await db.execute(delete(Comment).where(Comment.article_id == article_id))
    await db.execute(delete(article_tags).where(article_tags.c.article_id == article_id))
    await db.execute(delete(Article).where(Article.id == article_id))
    await db.flush()

    logger.info("Article deleted id=%d by user_id=%d", article_id, caller.user_id)
    await _invalidate(cache)
