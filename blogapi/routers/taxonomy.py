"""
Routers for categories and tags.

Both expose the same five routes; ``_build_router`` wires one
``taxonomy_service`` kind to a prefix and its create / update schemas.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi import responses
from blogapi.cache import CacheManager, get_cache
from blogapi.database import get_db
from blogapi.dependencies import get_current_user
from blogapi.schemas import CategoryCreate, CategoryUpdate, TagCreate, TagUpdate
from blogapi.security import Caller
from blogapi.services import taxonomy_service


def _build_router(kind, create_schema, update_schema, label: str) -> APIRouter:
    router = APIRouter(prefix=f"/api/v1/{kind.key}", tags=[kind.key])

    @router.get("")
    async def list_items(
        db: AsyncSession = Depends(get_db),
        cache: CacheManager = Depends(get_cache),
    ):
        return responses.success(await taxonomy_service.list_items(db, cache, kind))

    @router.get("/{item_id}")
    async def get_item(
        item_id: int,
        db: AsyncSession = Depends(get_db),
        cache: CacheManager = Depends(get_cache),
    ):
        return responses.success(await taxonomy_service.get_item(db, cache, kind, item_id))

    @router.post("", status_code=201)
    async def create_item(
        data: create_schema,
        caller: Caller = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
        cache: CacheManager = Depends(get_cache),
    ):
        item = await taxonomy_service.create_item(db, cache, kind, data, caller)
        return responses.success(item, message=f"{label} created")

    @router.put("/{item_id}")
    async def update_item(
        item_id: int,
        data: update_schema,
        caller: Caller = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
        cache: CacheManager = Depends(get_cache),
    ):
        item = await taxonomy_service.update_item(db, cache, kind, item_id, data, caller)
        return responses.success(item, message=f"{label} updated")

    @router.delete("/{item_id}")
    async def delete_item(
        item_id: int,
        caller: Caller = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
        cache: CacheManager = Depends(get_cache),
    ):
        await taxonomy_service.delete_item(db, cache, kind, item_id, caller)
        return responses.success(message=f"{label} deleted")

    return router


categories_router = _build_router(
    taxonomy_service.CATEGORIES, CategoryCreate, CategoryUpdate, "Category"
)
tags_router = _build_router(taxonomy_service.TAGS, TagCreate, TagUpdate, "Tag")
