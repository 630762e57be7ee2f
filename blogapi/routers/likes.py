from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi import responses
from blogapi.database import get_db
from blogapi.dependencies import get_current_user
from blogapi.schemas import LikeCheckRequest
from blogapi.security import Caller
from blogapi.services import like_service

router = APIRouter(prefix="/api/v1/likes", tags=["likes"])


@router.post("/check")
async def check_likes(
    data: LikeCheckRequest,
    caller: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Batch lookup: ``{article_id: liked}`` for up to 100 articles."""
    status = await like_service.batch_check(db, data.article_ids, caller.user_id)
    return responses.success({str(k): v for k, v in status.items()})
