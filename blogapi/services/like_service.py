"""
Like service — toggle-style likes with a denormalised counter.

``Article.like_count`` must always equal the number of Like rows for the
article.  Every row change is paired with an in-database
``like_count = like_count ± 1`` inside the same transaction, so concurrent
toggles never lose updates and a failure rolls back both halves.
"""
import logging

from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blogapi.exceptions import ArticleNotFound, Forbidden, LikeConflict
from blogapi.models import Article, ArticleStatus, Like
from blogapi.pagination import Page, PageRequest
from blogapi.policy import can_view_article
from blogapi.security import Caller
from blogapi.services.common import category_brief, iso, user_brief

logger = logging.getLogger(__name__)


async def _ensure_article(db: AsyncSession, article_id: int) -> None:
    found = await db.execute(select(Article.id).where(Article.id == article_id))
    if found.first() is None:
        raise ArticleNotFound()


async def _get_visible_article(db: AsyncSession, article_id: int, caller: Caller | None) -> Article:
    article = await db.get(Article, article_id)
    if article is None:
        raise ArticleNotFound()
    if not can_view_article(article, caller):
        raise Forbidden("You cannot view this article")
    return article


async def _adjust_counter(db: AsyncSession, article_id: int, delta: int) -> None:
    await db.execute(
        update(Article)
        .where(Article.id == article_id)
        .values(like_count=Article.like_count + delta)
    )


async def toggle(db: AsyncSession, article_id: int, caller: Caller) -> dict:
    """
    Like the article if *caller* has not liked it yet, otherwise unlike it.

    Returns ``{"liked": bool, "like_count": int}``.  The unlike path is a
    single DELETE whose rowcount decides whether the counter moves, so two
    concurrent unlikes decrement once.  Two concurrent likes collide on the
    ``(user_id, article_id)`` unique constraint; the loser gets
    ``LikeConflict`` and its transaction is rolled back.  Articles the
    caller may not view cannot be liked.
    """
    await _get_visible_article(db, article_id, caller)
    user_id = caller.user_id

    removed = await db.execute(
        delete(Like).where(Like.user_id == user_id, Like.article_id == article_id)
    )
    if removed.rowcount:
        await _adjust_counter(db, article_id, -1)
        liked = False
    else:
        db.add(Like(user_id=user_id, article_id=article_id))
        try:
            await db.flush()
        except IntegrityError as exc:
            raise LikeConflict() from exc
        await _adjust_counter(db, article_id, 1)
        liked = True

    logger.debug("Like toggled article_id=%d user_id=%d liked=%s", article_id, user_id, liked)
    like_count = (
        await db.execute(select(Article.like_count).where(Article.id == article_id))
    ).scalar_one()
    return {"liked": liked, "like_count": like_count}


async def is_liked(db: AsyncSession, article_id: int, user_id: int) -> bool:
    found = await db.execute(
        select(Like.id).where(Like.user_id == user_id, Like.article_id == article_id)
    )
    return found.first() is not None


async def like_status(db: AsyncSession, article_id: int, caller: Caller) -> dict:
    await _get_visible_article(db, article_id, caller)
    return {
        "liked": await is_liked(db, article_id, caller.user_id),
        "like_count": await count_for(db, article_id),
    }


async def count_for(db: AsyncSession, article_id: int) -> int:
    """Authoritative like count, computed from the Like rows."""
    return (
        await db.execute(select(func.count()).select_from(Like).where(Like.article_id == article_id))
    ).scalar_one()


async def batch_check(db: AsyncSession, article_ids: list[int], user_id: int) -> dict[int, bool]:
    """Map each of *article_ids* to whether *user_id* has liked it."""
    status = {article_id: False for article_id in article_ids}
    if not article_ids:
        return status
    result = await db.execute(
        select(Like.article_id).where(Like.user_id == user_id, Like.article_id.in_(article_ids))
    )
    for article_id in result.scalars():
        status[article_id] = True
    return status


async def reconcile(db: AsyncSession, article_id: int) -> int:
    """Rewrite ``like_count`` from the Like rows; returns the corrected value."""
    await _ensure_article(db, article_id)
    actual = await count_for(db, article_id)
    await db.execute(update(Article).where(Article.id == article_id).values(like_count=actual))
    return actual


async def list_likers(
    db: AsyncSession, article_id: int, page: PageRequest, caller: Caller | None = None
) -> Page:
    """Users who liked *article_id*, most recent like first."""
    await _get_visible_article(db, article_id, caller)
    total = await count_for(db, article_id)
    q = (
        select(Like)
        .where(Like.article_id == article_id)
        .options(joinedload(Like.user))
        .order_by(desc(Like.created_at), desc(Like.id))
        .offset(page.skip)
        .limit(page.limit)
    )
    likes = (await db.execute(q)).scalars().all()
    return Page.build([user_brief(like.user) for like in likes], page, total)


async def list_liked_articles(db: AsyncSession, user_id: int, page: PageRequest) -> Page:
    """Published articles *user_id* has liked, most recent like first."""
    where = (Like.user_id == user_id, Article.status == ArticleStatus.PUBLISHED)
    total = (
        await db.execute(select(func.count()).select_from(Like).join(Article).where(*where))
    ).scalar_one()
    q = (
        select(Like)
        .join(Like.article)
        .where(*where)
        .options(
            joinedload(Like.article).joinedload(Article.author),
            joinedload(Like.article).joinedload(Article.category),
        )
        .order_by(desc(Like.created_at), desc(Like.id))
        .offset(page.skip)
        .limit(page.limit)
    )
    likes = (await db.execute(q)).unique().scalars().all()
    items = [
        {
            "id": like.article.id,
            "title": like.article.title,
            "slug": like.article.slug,
            "excerpt": like.article.excerpt,
            "cover_image": like.article.cover_image,
            "like_count": like.article.like_count,
            "author": user_brief(like.article.author),
            "category": category_brief(like.article.category),
            "liked_at": iso(like.created_at),
        }
        for like in likes
    ]
    return Page.build(items, page, total)
