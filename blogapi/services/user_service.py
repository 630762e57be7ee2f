"""
User service — profile reads and self-service account updates.

Users are never hard-deleted; deactivation (``is_active = False``) is an
administrative action outside this API.
"""
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.exceptions import InvalidOldPassword, UsernameExists, UserNotFound
from blogapi.models import Article, ArticleStatus, Comment, User
from blogapi.schemas import PasswordChange, ProfileUpdate
from blogapi.services.auth_service import ensure_strong_password, validate_username
from blogapi.services.common import iso, user_to_dict
from blogapi.security import hash_password, verify_password


async def get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFound()
    return user


async def get_me(db: AsyncSession, user_id: int) -> dict:
    return user_to_dict(await get_user_or_404(db, user_id))


async def get_public_profile(db: AsyncSession, user_id: int) -> dict:
    """
    Return the public view of *user_id*: no email, no role, plus counts of
    published articles and comments.
    """
    user = await get_user_or_404(db, user_id)

    article_count = (
        await db.execute(
            select(func.count())
            .select_from(Article)
            .where(Article.author_id == user_id, Article.status == ArticleStatus.PUBLISHED)
        )
    ).scalar_one()
    comment_count = (
        await db.execute(
            select(func.count()).select_from(Comment).where(Comment.author_id == user_id)
        )
    ).scalar_one()

    return {
        "id": user.id,
        "username": user.username,
        "avatar": user.avatar,
        "bio": user.bio,
        "created_at": iso(user.created_at),
        "article_count": article_count,
        "comment_count": comment_count,
    }


async def update_profile(db: AsyncSession, user_id: int, data: ProfileUpdate) -> dict:
    """Partially update username / bio / avatar for the calling user."""
    user = await get_user_or_404(db, user_id)
    update_data = data.model_dump(exclude_unset=True)

    username = update_data.pop("username", None)
    if username is not None and username != user.username:
        validate_username(username)
        taken = await db.execute(select(User.id).where(User.username == username))
        if taken.first():
            raise UsernameExists()
        user.username = username

    for field, value in update_data.items():
        setattr(user, field, value)

    try:
        await db.flush()
    except IntegrityError as exc:
        raise UsernameExists() from exc
    return user_to_dict(user)


async def change_password(db: AsyncSession, user_id: int, data: PasswordChange) -> None:
    user = await get_user_or_404(db, user_id)
    if not verify_password(data.old_password, user.password_hash):
        raise InvalidOldPassword()
    ensure_strong_password(data.new_password)
    user.password_hash = hash_password(data.new_password)
    await db.flush()
