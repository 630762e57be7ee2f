from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi import responses
from blogapi.cache import CacheManager, get_cache
from blogapi.database import get_db
from blogapi.dependencies import PaginationParams, get_current_user, get_optional_user
from blogapi.models import ArticleStatus
from blogapi.pagination import resolve_sort
from blogapi.schemas import ArticleCreate, ArticleUpdate
from blogapi.security import Caller
from blogapi.services import article_service, like_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])


def _parse_status(value: str | None) -> ArticleStatus | None:
    # Unknown values are treated as "no explicit status".
    if not value:
        return None
    try:
        return ArticleStatus(value.upper())
    except ValueError:
        return None


def _parse_id(value: str | None) -> int | None:
    try:
        return int(value) if value else None
    except ValueError:
        return None


@router.get("")
async def list_articles(
    pagination: PaginationParams = Depends(),
    sort_by: str | None = Query(None),
    sort_order: str | None = Query(None),
    status: str | None = Query(None),
    category_id: str | None = Query(None),
    tag_id: str | None = Query(None),
    author_id: str | None = Query(None),
    search: str | None = Query(None),
    caller: Caller | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    query = article_service.ArticleQuery(
        page=pagination.request,
        sort=resolve_sort(sort_by, sort_order, article_service.SORTABLE_COLUMNS),
        status=_parse_status(status),
        category_id=_parse_id(category_id),
        tag_id=_parse_id(tag_id),
        author_id=_parse_id(author_id),
        search=search.strip() if search else None,
    )
    return responses.paginated(await article_service.list_articles(db, query, caller))


@router.get("/{article_id}")
async def get_article(
    article_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    caller: Caller | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    data = await article_service.get_article(db, article_id, caller)
    background_tasks.add_task(article_service.record_view, request.app.state.database, article_id)
    return responses.success(data)


@router.post("", status_code=201)
async def create_article(
    data: ArticleCreate,
    caller: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    article = await article_service.create_article(db, cache, data, caller)
    return responses.success(article, message="Article created")


@router.put("/{article_id}")
async def update_article(
    article_id: int,
    data: ArticleUpdate,
    caller: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    article = await article_service.update_article(db, cache, article_id, data, caller)
    return responses.success(article, message="Article updated")


@router.delete("/{article_id}")
async def delete_article(
    article_id: int,
    caller: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    await article_service.delete_article(db, cache, article_id, caller)
    return responses.success(message="Article deleted")


# --- Likes ---

@router.post("/{article_id}/like")
async def toggle_like(
    article_id: int,
    caller: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await like_service.toggle(db, article_id, caller)
    return responses.success(result, message="Liked" if result["liked"] else "Unliked")


@router.get("/{article_id}/like")
async def like_status(
    article_id: int,
    caller: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return responses.success(await like_service.like_status(db, article_id, caller))


@router.get("/{article_id}/likes")
async def list_likers(
    article_id: int,
    pagination: PaginationParams = Depends(),
    caller: Caller | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return responses.paginated(await like_service.list_likers(db, article_id, pagination.request, caller))
