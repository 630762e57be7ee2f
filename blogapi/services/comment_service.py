"""
Comment service — comments and one level of replies on articles.

A reply's ``parent_id`` must name a top-level comment on the same article;
deeper nesting is refused with ``InvalidParentComment``.  Deleting a
top-level comment removes its replies in the same statement.
"""
import logging

from sqlalchemy import delete, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blogapi.exceptions import (
    ArticleNotFound,
    CommentNotFound,
    Forbidden,
    InvalidParentComment,
    ParentCommentNotFound,
)
from blogapi.models import Article, ArticleStatus, Comment
from blogapi.pagination import Page, PageRequest
from blogapi.policy import can_mutate_comment, can_view_article
from blogapi.schemas import CommentCreate, CommentUpdate
from blogapi.security import Caller
from blogapi.services.common import comment_to_dict
from blogapi.services.user_service import get_user_or_404

logger = logging.getLogger(__name__)


async def _load_comment(db: AsyncSession, comment_id: int) -> Comment | None:
    q = (
        select(Comment)
        .where(Comment.id == comment_id)
        .options(
            joinedload(Comment.author),
            selectinload(Comment.replies).joinedload(Comment.author),
        )
        .execution_options(populate_existing=True)
    )
    return (await db.execute(q)).unique().scalar_one_or_none()


async def _get_or_404(db: AsyncSession, comment_id: int) -> Comment:
    comment = await _load_comment(db, comment_id)
    if comment is None:
        raise CommentNotFound()
    return comment


async def _get_visible_article(db: AsyncSession, article_id: int, caller: Caller | None) -> Article:
    article = await db.get(Article, article_id)
    if article is None:
        raise ArticleNotFound()
    if not can_view_article(article, caller):
        raise Forbidden("You cannot view this article")
    return article


async def create_comment(db: AsyncSession, data: CommentCreate, caller: Caller) -> dict:
    """
    Add a comment (or a reply when ``parent_id`` is set) authored by *caller*.

    The article must exist and be visible to *caller*.  A parent must exist,
    belong to the same article and itself be top-level.
    """
    await _get_visible_article(db, data.article_id, caller)

    if data.parent_id is not None:
        parent = await db.get(Comment, data.parent_id)
        if parent is None:
            raise ParentCommentNotFound()
        if parent.article_id != data.article_id:
            raise InvalidParentComment("Parent comment belongs to a different article")
        if parent.parent_id is not None:
            raise InvalidParentComment("Replies cannot be nested more than one level")

    comment = Comment(
        content=data.content,
        article_id=data.article_id,
        parent_id=data.parent_id,
        author_id=caller.user_id,
    )
    db.add(comment)
    await db.flush()

    logger.info(
        "Comment created id=%d article_id=%d parent_id=%s author_id=%d",
        comment.id, comment.article_id, comment.parent_id, caller.user_id,
    )
    return comment_to_dict(await _get_or_404(db, comment.id), with_replies=True)


async def get_comment(db: AsyncSession, comment_id: int, caller: Caller | None = None) -> dict:
    comment = await _get_or_404(db, comment_id)
    await _get_visible_article(db, comment.article_id, caller)
    return comment_to_dict(comment, with_replies=True)


async def list_for_article(
    db: AsyncSession, article_id: int, page: PageRequest, caller: Caller | None = None
) -> Page:
    """
    Top-level comments of *article_id*, newest first, each carrying its
    replies oldest first.  ``total`` counts top-level comments only.
    """
    await _get_visible_article(db, article_id, caller)

    where = (Comment.article_id == article_id, Comment.parent_id.is_(None))
    total = (
        await db.execute(select(func.count()).select_from(Comment).where(*where))
    ).scalar_one()
    q = (
        select(Comment)
        .where(*where)
        .options(
            joinedload(Comment.author),
            selectinload(Comment.replies).joinedload(Comment.author),
        )
        .order_by(desc(Comment.created_at), desc(Comment.id))
        .offset(page.skip)
        .limit(page.limit)
        .execution_options(populate_existing=True)
    )
    comments = (await db.execute(q)).unique().scalars().all()
    return Page.build([comment_to_dict(c, with_replies=True) for c in comments], page, total)


async def list_for_user(db: AsyncSession, user_id: int, page: PageRequest) -> Page:
    """Comments written by *user_id* on published articles, newest first."""
    await get_user_or_404(db, user_id)
    where = (Comment.author_id == user_id, Article.status == ArticleStatus.PUBLISHED)
    total = (
        await db.execute(select(func.count()).select_from(Comment).join(Article).where(*where))
    ).scalar_one()
    q = (
        select(Comment)
        .join(Comment.article)
        .where(*where)
        .options(joinedload(Comment.author), joinedload(Comment.article))
        .order_by(desc(Comment.created_at), desc(Comment.id))
        .offset(page.skip)
        .limit(page.limit)
    )
    comments = (await db.execute(q)).unique().scalars().all()
    items = []
    for c in comments:
        item = comment_to_dict(c)
        item["article"] = {"id": c.article.id, "title": c.article.title, "slug": c.article.slug}
        items.append(item)
    return Page.build(items, page, total)


async def update_comment(
    db: AsyncSession, comment_id: int, data: CommentUpdate, caller: Caller
) -> dict:
    comment = await _get_or_404(db, comment_id)
    if not can_mutate_comment(comment, caller):
        raise Forbidden("Only the author or an administrator can edit this comment")

    comment.content = data.content
    await db.flush()
    logger.info("Comment updated id=%d by user_id=%d", comment_id, caller.user_id)
    return comment_to_dict(await _get_or_404(db, comment_id), with_replies=True)


async def delete_comment(db: AsyncSession, comment_id: int, caller: Caller) -> int:
    """
    Delete a comment and its replies.  Returns the number of rows removed.
    """
    comment = await db.get(Comment, comment_id)
    if comment is None:
        raise CommentNotFound()
    if not can_mutate_comment(comment, caller):
        raise Forbidden("Only the author or an administrator can delete this comment")

    result = await db.execute(
        delete(Comment).where(or_(Comment.id == comment_id, Comment.parent_id == comment_id))
    )
    await db.flush()
    logger.info(
        "Comment deleted id=%d with %d row(s) by user_id=%d",
        comment_id, result.rowcount, caller.user_id,
    )
    return result.rowcount
