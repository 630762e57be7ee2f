"""
Category and tag endpoint tests.  Both share one implementation, so most
scenarios are parametrised over the two prefixes.
"""
import pytest
from httpx import AsyncClient

from conftest import auth_headers, post_article

KINDS = ["categories", "tags"]


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", KINDS)
async def test_admin_crud(async_client: AsyncClient, admin, kind):
    headers = auth_headers(admin)
    resp = await async_client.post(f"/api/v1/{kind}", json={"name": "Rust", "slug": "rust"}, headers=headers)
    assert resp.status_code == 201
    created = resp.json()["data"]
    assert created["article_count"] == 0
    assert created["color"] == ("#3B82F6" if kind == "categories" else "#10B981")

    listed = (await async_client.get(f"/api/v1/{kind}")).json()["data"]
    assert [x["slug"] for x in listed] == ["rust"]

    resp = await async_client.put(
        f"/api/v1/{kind}/{created['id']}", json={"name": "Rustlang", "color": "#000000"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Rustlang"
    assert resp.json()["data"]["color"] == "#000000"

    resp = await async_client.delete(f"/api/v1/{kind}/{created['id']}", headers=headers)
    assert resp.status_code == 200
    assert (await async_client.get(f"/api/v1/{kind}/{created['id']}")).status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", KINDS)
async def test_non_admin_cannot_write(async_client: AsyncClient, reader, kind):
    resp = await async_client.post(
        f"/api/v1/{kind}", json={"name": "Go", "slug": "go"}, headers=auth_headers(reader)
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "FORBIDDEN"


@pytest.mark.asyncio
@pytest.mark.parametrize("kind, code", [("categories", "CATEGORY_NAME_EXISTS"), ("tags", "TAG_NAME_EXISTS")])
async def test_duplicates(async_client: AsyncClient, admin, kind, code):
    headers = auth_headers(admin)
    await async_client.post(f"/api/v1/{kind}", json={"name": "Go", "slug": "go"}, headers=headers)

    resp = await async_client.post(f"/api/v1/{kind}", json={"name": "Go", "slug": "golang"}, headers=headers)
    assert resp.status_code == 409
    assert resp.json()["error"] == code

    resp = await async_client.post(f"/api/v1/{kind}", json={"name": "Golang", "slug": "go"}, headers=headers)
    assert resp.status_code == 409
    assert resp.json()["error"] == "SLUG_EXISTS"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{"name": "G", "slug": "g-lang"}, {"name": "Go", "slug": "Go Lang"},
                                     {"name": "Go", "slug": "go", "color": "blue"}])
async def test_validation(async_client: AsyncClient, admin, payload):
    resp = await async_client.post("/api/v1/categories", json=payload, headers=auth_headers(admin))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_missing_items(async_client: AsyncClient, admin):
    assert (await async_client.get("/api/v1/categories/99")).json()["error"] == "CATEGORY_NOT_FOUND"
    resp = await async_client.put("/api/v1/tags/99", json={"name": "Nope"}, headers=auth_headers(admin))
    assert resp.json()["error"] == "TAG_NOT_FOUND"


@pytest.mark.asyncio
async def test_category_in_use(async_client: AsyncClient, admin, author, category):
    await post_article(async_client, author, category.id, "anchored")
    resp = await async_client.delete(f"/api/v1/categories/{category.id}", headers=auth_headers(admin))
    assert resp.status_code == 400
    assert resp.json()["error"] == "CATEGORY_IN_USE"


@pytest.mark.asyncio
async def test_tag_in_use(async_client: AsyncClient, admin, author, category, tags):
    await post_article(async_client, author, category.id, "tagged-post", tag_ids=[tags[0].id])
    resp = await async_client.delete(f"/api/v1/tags/{tags[0].id}", headers=auth_headers(admin))
    assert resp.status_code == 400
    assert resp.json()["error"] == "TAG_IN_USE"

    resp = await async_client.delete(f"/api/v1/tags/{tags[1].id}", headers=auth_headers(admin))
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_detail_lists_latest_published(async_client: AsyncClient, author, category, tags):
    await post_article(async_client, author, category.id, "shown", status="PUBLISHED", tag_ids=[tags[0].id])
    await post_article(async_client, author, category.id, "hidden", tag_ids=[tags[0].id])

    cat = (await async_client.get(f"/api/v1/categories/{category.id}")).json()["data"]
    assert cat["article_count"] == 2
    assert [a["slug"] for a in cat["articles"]] == ["shown"]
    assert cat["articles"][0]["author"]["username"] == "author"

    tag = (await async_client.get(f"/api/v1/tags/{tags[0].id}")).json()["data"]
    assert [a["slug"] for a in tag["articles"]] == ["shown"]

    listing = (await async_client.get("/api/v1/tags")).json()["data"]
    assert {t["slug"]: t["article_count"] for t in listing} == {"python": 2, "databases": 0}
