from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi import responses
from blogapi.database import get_db
from blogapi.dependencies import PaginationParams, get_current_user, get_optional_user
from blogapi.schemas import CommentCreate, CommentUpdate
from blogapi.security import Caller
from blogapi.services import comment_service

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])


@router.get("/article/{article_id}")
async def list_article_comments(
    article_id: int,
    pagination: PaginationParams = Depends(),
    caller: Caller | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    page = await comment_service.list_for_article(db, article_id, pagination.request, caller)
    return responses.paginated(page)


@router.post("", status_code=201)
async def create_comment(
    data: CommentCreate,
    caller: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.create_comment(db, data, caller)
    return responses.success(comment, message="Comment created")


@router.get("/{comment_id}")
async def get_comment(
    comment_id: int,
    caller: Caller | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return responses.success(await comment_service.get_comment(db, comment_id, caller))


@router.put("/{comment_id}")
async def update_comment(
    comment_id: int,
    data: CommentUpdate,
    caller: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.update_comment(db, comment_id, data, caller)
    return responses.success(comment, message="Comment updated")


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    caller: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, comment_id, caller)
    return responses.success(message="Comment deleted")
