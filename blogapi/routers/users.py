from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi import responses
from blogapi.database import get_db
from blogapi.dependencies import PaginationParams, get_optional_user
from blogapi.security import Caller
from blogapi.services import article_service, comment_service, like_service, user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("/{user_id}")
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    return responses.success(await user_service.get_public_profile(db, user_id))


@router.get("/{user_id}/articles")
async def list_user_articles(
    user_id: int,
    pagination: PaginationParams = Depends(),
    caller: Caller | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    page = await article_service.list_user_articles(db, user_id, pagination.request, caller)
    return responses.paginated(page)


@router.get("/{user_id}/comments")
async def list_user_comments(
    user_id: int,
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return responses.paginated(await comment_service.list_for_user(db, user_id, pagination.request))


@router.get("/{user_id}/likes")
async def list_user_likes(
    user_id: int,
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    await user_service.get_user_or_404(db, user_id)
    page = await like_service.list_liked_articles(db, user_id, pagination.request)
    return responses.paginated(page)
