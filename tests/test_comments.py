"""
Comment endpoint tests: the full HTTP round trip through FastAPI, the
SQLite test database and the per-test MemoryCache.

Every response is a RestResponse envelope whose ``status`` field matches
the HTTP status code.
"""
import pytest
from httpx import AsyncClient

from app.cache import MemoryCache


def _assert_envelope(resp, status: int, state: str) -> dict:
    assert resp.status_code == status
    data = resp.json()
    assert data["status"] == status
    assert data["state"] == state
    return data


async def _create_comment(client: AsyncClient, post_id: int = 1, text: str = "hi", **extra) -> dict:
    body = {"userId": "1", "postId": str(post_id), "comment": text}
    body.update(extra)
    resp = await client.post("/api/v1/comment", json=body)
    return _assert_envelope(resp, 200, "success")["body"]


# ---------------------------------------------------------------------------
# POST /api/v1/comment
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_comment(async_client: AsyncClient, seed_posts):
    await seed_posts(2)

    resp = await async_client.post(
        "/api/v1/comment", json={"userId": "1", "postId": "2", "comment": "hi"}
    )
    data = _assert_envelope(resp, 200, "success")
    assert data["message"] == "Comment has been added successfully!"
    comment = data["body"]
    assert comment["comment"] == "hi"
    assert comment["postId"] == 2
    assert comment["userId"] == 1
    assert comment["parentCommentId"] is None
    assert comment["status"] == 1
    assert "id" in comment
    assert "createdAt" in comment


@pytest.mark.asyncio
async def test_register_comment_escapes_markup(async_client: AsyncClient, seed_posts):
    await seed_posts(1)
    comment = await _create_comment(async_client, text="<b>hey</b>")
    assert comment["comment"] == "&lt;b&gt;hey&lt;/b&gt;"


@pytest.mark.asyncio
async def test_register_reply(async_client: AsyncClient, seed_posts):
    await seed_posts(1)
    parent = await _create_comment(async_client, text="parent")
    reply = await _create_comment(async_client, text="child", parentCommentId=str(parent["id"]))
    assert reply["parentCommentId"] == parent["id"]


@pytest.mark.asyncio
async def test_register_comment_empty_post_id(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/comment", json={"userId": "1", "postId": "", "comment": "hi"}
    )
    data = _assert_envelope(resp, 500, "failed")
    assert data["message"] == "Validation Error!"
    assert any("Post ID" in m for m in data["err"]["messages"])


@pytest.mark.asyncio
async def test_register_comment_without_body(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/comment")
    _assert_envelope(resp, 500, "failed")


@pytest.mark.asyncio
async def test_register_comment_on_nonexistent_post(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/comment", json={"userId": "1", "postId": "99999", "comment": "Ghost"}
    )
    _assert_envelope(resp, 404, "notfound")

    # Nothing was written.
    listing = await async_client.get("/api/v1/comment/post/99999")
    _assert_envelope(listing, 404, "notfound")


@pytest.mark.asyncio
async def test_register_reply_to_nonexistent_parent(async_client: AsyncClient, seed_posts):
    await seed_posts(1)
    resp = await async_client.post(
        "/api/v1/comment",
        json={"userId": "1", "postId": "1", "parentCommentId": "404", "comment": "orphan"},
    )
    _assert_envelope(resp, 404, "notfound")


# ---------------------------------------------------------------------------
# PUT /api/v1/comment/{comment_id}
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_comment(async_client: AsyncClient, seed_posts):
    await seed_posts(1)
    created = await _create_comment(async_client, text="before")

    resp = await async_client.put(
        f"/api/v1/comment/{created['id']}",
        json={"userId": "1", "postId": "1", "comment": "after", "status": 0},
    )
    data = _assert_envelope(resp, 200, "success")
    assert data["body"]["comment"] == "after"
    assert data["body"]["status"] == 1


@pytest.mark.asyncio
async def test_update_nonexistent_comment(async_client: AsyncClient, seed_posts):
    await seed_posts(1)
    resp = await async_client.put(
        "/api/v1/comment/12345", json={"userId": "1", "postId": "1", "comment": "after"}
    )
    _assert_envelope(resp, 404, "notfound")


@pytest.mark.asyncio
async def test_update_invalid_payload(async_client: AsyncClient, seed_posts):
    await seed_posts(1)
    created = await _create_comment(async_client)
    resp = await async_client.put(
        f"/api/v1/comment/{created['id']}",
        json={"userId": "1", "postId": "1", "comment": "x" * 201},
    )
    _assert_envelope(resp, 500, "failed")


# ---------------------------------------------------------------------------
# GET /api/v1/comment/post/{post_id}
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_comments(async_client: AsyncClient, seed_posts):
    await seed_posts(1, 2)
    for i in range(3):
        await _create_comment(async_client, post_id=1, text=f"Comment {i}")
    await _create_comment(async_client, post_id=2, text="elsewhere")

    resp = await async_client.get("/api/v1/comment/post/1")
    data = _assert_envelope(resp, 200, "success")
    assert [c["comment"] for c in data["body"]] == ["Comment 0", "Comment 1", "Comment 2"]
    assert all(c["postId"] == 1 for c in data["body"])


@pytest.mark.asyncio
async def test_get_comments_none_posted(async_client: AsyncClient, seed_posts):
    await seed_posts(1)
    resp = await async_client.get("/api/v1/comment/post/1")
    data = _assert_envelope(resp, 404, "notfound")
    assert data["body"] is None


@pytest.mark.asyncio
async def test_get_comments_malformed_post_id(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/comment/post/abc")
    _assert_envelope(resp, 500, "failed")


@pytest.mark.asyncio
async def test_get_comments_cached_list_skips_database(async_client: AsyncClient, seed_posts, cache: MemoryCache):
    await seed_posts(1)
    await _create_comment(async_client)

    first = await async_client.get("/api/v1/comment/post/1")
    assert int(first.headers["x-query-count"]) > 0
    assert await cache.has("CL-1")

    second = await async_client.get("/api/v1/comment/post/1")
    assert second.json() == first.json()
    assert second.headers["x-query-count"] == "0"


# ---------------------------------------------------------------------------
# DELETE /api/v1/comment/{comment_id}
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_comment(async_client: AsyncClient, seed_posts, cache: MemoryCache):
    await seed_posts(1)
    created = await _create_comment(async_client)
    parent_key = f"comment-{created['id']}"

    # Replying caches the parent's existence.
    await _create_comment(async_client, text="reply", parentCommentId=created["id"])
    assert await cache.has(parent_key)

    resp = await async_client.delete(f"/api/v1/comment/{created['id']}")
    data = _assert_envelope(resp, 200, "success")
    assert data["body"] is None
    assert await cache.has(parent_key) is False

    # The deleted comment can no longer be replied to.
    resp = await async_client.post(
        "/api/v1/comment",
        json={"userId": "1", "postId": "1", "parentCommentId": created["id"], "comment": "late"},
    )
    _assert_envelope(resp, 404, "notfound")


@pytest.mark.asyncio
async def test_delete_unknown_comment(async_client: AsyncClient):
    resp = await async_client.delete("/api/v1/comment/4242")
    _assert_envelope(resp, 500, "failed")


# ---------------------------------------------------------------------------
# Health and metrics
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_metrics(async_client: AsyncClient, seed_posts):
    await seed_posts(1, 2)
    await _create_comment(async_client, post_id=1)
    await _create_comment(async_client, post_id=1, text="again")

    resp = await async_client.get("/api/v1/metrics")
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_posts"] == 2
    assert data["total_comments"] == 2
    assert data["avg_comments_per_post"] == 1.0
    assert data["cache_info"]["backend"] == "memory"
    # Second create hit the cached post-1 entry.
    assert data["cache_info"]["hits"] >= 1
