"""
Helpers shared by the service modules: ORM-to-dict serialisation and
integrity-error inspection.
"""
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from blogapi.models import Article, Category, Comment, Tag, User


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def integrity_error_mentions(exc: IntegrityError, column: str) -> bool:
    """
    True when the driver message for *exc* names *column*.

    SQLite reports ``UNIQUE constraint failed: users.email``; PostgreSQL
    reports the constraint name, e.g. ``users_email_key``.
    """
    return column in str(exc.orig)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_brief(user: User | None) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "username": user.username, "avatar": user.avatar}


def user_to_dict(user: User) -> dict:
    """Private view of an account, returned to its owner only."""
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "role": user.role.value,
        "is_active": user.is_active,
        "avatar": user.avatar,
        "bio": user.bio,
        "created_at": iso(user.created_at),
        "updated_at": iso(user.updated_at),
    }


def category_brief(category: Category | None) -> dict | None:
    if category is None:
        return None
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "color": category.color,
    }


def tag_brief(tag: Tag) -> dict:
    return {"id": tag.id, "name": tag.name, "slug": tag.slug, "color": tag.color}


def comment_to_dict(comment: Comment, with_replies: bool = False) -> dict:
    data = {
        "id": comment.id,
        "content": comment.content,
        "article_id": comment.article_id,
        "parent_id": comment.parent_id,
        "author_id": comment.author_id,
        "author": user_brief(comment.author),
        "created_at": iso(comment.created_at),
        "updated_at": iso(comment.updated_at),
    }
    if with_replies:
        data["replies"] = [comment_to_dict(r) for r in comment.replies]
    return data


def article_to_dict(article: Article, comment_count: int | None = None) -> dict:
    """Serialise an Article for list views (no body, no comments)."""
    data = {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "excerpt": article.excerpt,
        "cover_image": article.cover_image,
        "status": article.status.value,
        "is_top": article.is_top,
        "view_count": article.view_count,
        "like_count": article.like_count,
        "published_at": iso(article.published_at),
        "created_at": iso(article.created_at),
        "updated_at": iso(article.updated_at),
        "author_id": article.author_id,
        "category_id": article.category_id,
        "author": user_brief(article.author),
        "category": category_brief(article.category),
        "tags": [tag_brief(t) for t in article.tags],
    }
    if comment_count is not None:
        data["comment_count"] = comment_count
    return data
