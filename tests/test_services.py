"""
Direct service-layer tests — exercises business logic without HTTP overhead.

These cover the paths that are awkward to reach through the API: unique
constraint races, background view counting, cache-aside behaviour and
counter consistency after a failed like.
"""
import logging

import pytest
from sqlalchemy import delete as sql_delete, false, select
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.cache import CacheManager
from blogapi.database import Database
from blogapi.exceptions import ArticleNotFound, Forbidden, LikeConflict, SlugExists, TagNameExists
from blogapi.models import Article, ArticleStatus, Comment, Like
from blogapi.pagination import SortSpec, normalize_page
from blogapi.schemas import ArticleCreate, ArticleUpdate, CommentCreate, TagCreate
from blogapi.services import article_service, comment_service, like_service, taxonomy_service
from conftest import caller_for, make_user, test_database


class MemoryCache(CacheManager):
    """In-process stand-in for Redis with the same cache-aside contract."""

    def __init__(self) -> None:
        super().__init__("memory://")
        self.store: dict = {}

    @property
    def enabled(self) -> bool:
        return True

    async def get(self, key):
        if key in self.store:
            self._hits += 1
            return self.store[key]
        self._misses += 1
        return None

    async def set(self, key, value, ttl=None):
        self.store[key] = value

    async def delete_pattern(self, pattern):
        prefix = pattern.rstrip("*")
        for key in [k for k in self.store if k.startswith(prefix)]:
            del self.store[key]


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


def _article_data(category_id: int, slug: str, **overrides) -> ArticleCreate:
    fields = {
        "title": "Service article",
        "slug": slug,
        "content": "Direct service test content",
        "category_id": category_id,
    }
    fields.update(overrides)
    return ArticleCreate(**fields)


# ---------------------------------------------------------------------------
# article_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_and_get_article(db_session: AsyncSession, cache, author, category):
    created = await article_service.create_article(
        db_session, cache, _article_data(category.id, "svc-post"), caller_for(author)
    )
    assert created["status"] == "DRAFT"

    detail = await article_service.get_article(db_session, created["id"], caller_for(author))
    assert detail["content"] == "Direct service test content"
    assert detail["is_liked"] is False

    with pytest.raises(Forbidden):
        await article_service.get_article(db_session, created["id"], None)
    with pytest.raises(ArticleNotFound):
        await article_service.get_article(db_session, 999, None)


@pytest.mark.asyncio
async def test_slug_race_maps_to_slug_exists(db_session: AsyncSession, cache, author, category, monkeypatch):
    await article_service.create_article(
        db_session, cache, _article_data(category.id, "contested"), caller_for(author)
    )
    await db_session.commit()

    async def _skip_precheck(db, slug):
        return None

    # Simulate a concurrent writer that passed the pre-check first.
    monkeypatch.setattr(article_service, "_ensure_slug_free", _skip_precheck)
    with pytest.raises(SlugExists):
        await article_service.create_article(
            db_session, cache, _article_data(category.id, "contested"), caller_for(author)
        )
    await db_session.rollback()


@pytest.mark.asyncio
async def test_update_ignores_explicit_nulls(db_session: AsyncSession, cache, author, category):
    created = await article_service.create_article(
        db_session, cache, _article_data(category.id, "nulls", excerpt="kept"), caller_for(author)
    )
    updated = await article_service.update_article(
        db_session, cache, created["id"], ArticleUpdate(title=None, excerpt=None), caller_for(author)
    )
    assert updated["title"] == "Service article"
    assert updated["excerpt"] == "kept"


@pytest.mark.asyncio
async def test_list_articles_query(db_session: AsyncSession, cache, author, reader, category):
    for slug, status in [("l-one", ArticleStatus.PUBLISHED), ("l-two", ArticleStatus.DRAFT)]:
        await article_service.create_article(
            db_session, cache, _article_data(category.id, slug, status=status), caller_for(author)
        )
    query = article_service.ArticleQuery(
        page=normalize_page(),
        sort=SortSpec("created_at", "desc"),
        status=ArticleStatus.DRAFT,
    )
    mine = await article_service.list_articles(db_session, query, caller_for(author))
    assert {a["slug"] for a in mine.items} == {"l-one", "l-two"}
    theirs = await article_service.list_articles(db_session, query, caller_for(reader))
    assert [a["slug"] for a in theirs.items] == ["l-one"]
    assert theirs.items[0]["is_liked"] is False


@pytest.mark.asyncio
async def test_record_view_uses_its_own_session(db_session: AsyncSession, cache, author, category):
    created = await article_service.create_article(
        db_session, cache, _article_data(category.id, "viewed", status=ArticleStatus.PUBLISHED),
        caller_for(author),
    )
    await db_session.commit()

    await article_service.record_view(test_database, created["id"])
    await article_service.record_view(test_database, created["id"])

    result = await db_session.execute(
        select(Article.view_count).where(Article.id == created["id"])
    )
    assert result.scalar_one() == 2


@pytest.mark.asyncio
async def test_record_view_failure_is_logged_not_raised(caplog):
    closed = Database("sqlite+aiosqlite:///:memory:")
    with caplog.at_level(logging.WARNING, logger="blogapi.services.article_service"):
        await article_service.record_view(closed, 1)
    assert "View count increment failed" in caplog.text


@pytest.mark.asyncio
async def test_article_writes_invalidate_taxonomy_cache(db_session: AsyncSession, cache, author, category):
    before = await taxonomy_service.list_items(db_session, cache, taxonomy_service.CATEGORIES)
    assert before[0]["article_count"] == 0
    assert "taxonomy:categories:list" in cache.store

    await article_service.create_article(
        db_session, cache, _article_data(category.id, "counted"), caller_for(author)
    )
    assert "taxonomy:categories:list" not in cache.store

    after = await taxonomy_service.list_items(db_session, cache, taxonomy_service.CATEGORIES)
    assert after[0]["article_count"] == 1


# ---------------------------------------------------------------------------
# taxonomy_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_taxonomy_reads_are_cached(db_session: AsyncSession, cache, admin, category):
    await taxonomy_service.get_item(db_session, cache, taxonomy_service.CATEGORIES, category.id)
    await taxonomy_service.get_item(db_session, cache, taxonomy_service.CATEGORIES, category.id)
    assert cache.stats["hits"] == 1
    assert cache.stats["misses"] == 1


@pytest.mark.asyncio
async def test_tag_name_race(db_session: AsyncSession, cache, admin, monkeypatch):
    await taxonomy_service.create_item(
        db_session, cache, taxonomy_service.TAGS, TagCreate(name="Async", slug="async"), caller_for(admin)
    )
    await db_session.commit()

    async def _skip_precheck(*args, **kwargs):
        return None

    monkeypatch.setattr(taxonomy_service, "_ensure_unique", _skip_precheck)
    with pytest.raises(TagNameExists):
        await taxonomy_service.create_item(
            db_session, cache, taxonomy_service.TAGS, TagCreate(name="Async", slug="asyncio"), caller_for(admin)
        )
    await db_session.rollback()



@pytest.mark.asyncio
async def test_cached_detail_omits_live_counters(db_session: AsyncSession, cache, author, reader, category):
    created = await article_service.create_article(
        db_session, cache, _article_data(category.id, "popular", status=ArticleStatus.PUBLISHED),
        caller_for(author),
    )
    first = await taxonomy_service.get_item(db_session, cache, taxonomy_service.CATEGORIES, category.id)
    await like_service.toggle(db_session, created["id"], caller_for(reader))
    second = await taxonomy_service.get_item(db_session, cache, taxonomy_service.CATEGORIES, category.id)

    assert second == first
    assert "like_count" not in second["articles"][0]
    assert "view_count" not in second["articles"][0]

# ---------------------------------------------------------------------------
# like_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_like_conflict_leaves_counter_untouched(
    db_session: AsyncSession, cache, author, reader, category, monkeypatch
):
    created = await article_service.create_article(
        db_session, cache, _article_data(category.id, "raced", status=ArticleStatus.PUBLISHED),
        caller_for(author),
    )
    await like_service.toggle(db_session, created["id"], caller_for(reader))
    await db_session.commit()

    # A concurrent request inserted the row after this one's DELETE missed it.
    monkeypatch.setattr(like_service, "delete", lambda model: sql_delete(model).where(false()))
    with pytest.raises(LikeConflict):
        await like_service.toggle(db_session, created["id"], caller_for(reader))
    await db_session.rollback()

    count = (await db_session.execute(
        select(Article.like_count).where(Article.id == created["id"])
    )).scalar_one()
    assert count == 1
    assert await like_service.count_for(db_session, created["id"]) == 1


@pytest.mark.asyncio
async def test_batch_check_empty(db_session: AsyncSession, reader):
    assert await like_service.batch_check(db_session, [], reader.id) == {}


@pytest.mark.asyncio
async def test_toggle_pairs_row_and_counter(db_session: AsyncSession, cache, author, category):
    created = await article_service.create_article(
        db_session, cache, _article_data(category.id, "paired", status=ArticleStatus.PUBLISHED),
        caller_for(author),
    )
    users = [await make_user(db_session, f"u{i}") for i in range(3)]
    for user in users:
        await like_service.toggle(db_session, created["id"], caller_for(user))
    await like_service.toggle(db_session, created["id"], caller_for(users[1]))

    rows = (await db_session.execute(select(Like.user_id).where(Like.article_id == created["id"]))).scalars()
    assert sorted(rows) == sorted([users[0].id, users[2].id])
    count = (await db_session.execute(
        select(Article.like_count).where(Article.id == created["id"])
    )).scalar_one()
    assert count == 2


# ---------------------------------------------------------------------------
# comment_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_comment_counts_replies(db_session: AsyncSession, cache, author, reader, category):
    created = await article_service.create_article(
        db_session, cache, _article_data(category.id, "threaded", status=ArticleStatus.PUBLISHED),
        caller_for(author),
    )
    top = await comment_service.create_comment(
        db_session, CommentCreate(article_id=created["id"], content="top"), caller_for(reader)
    )
    for text in ("a", "b"):
        await comment_service.create_comment(
            db_session,
            CommentCreate(article_id=created["id"], content=text, parent_id=top["id"]),
            caller_for(author),
        )

    assert await comment_service.delete_comment(db_session, top["id"], caller_for(reader)) == 3
    remaining = await db_session.execute(select(Comment.id).where(Comment.article_id == created["id"]))
    assert remaining.first() is None
