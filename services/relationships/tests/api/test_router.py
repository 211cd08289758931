import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.main import create_app

API = "/api/v1"


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "relationships"}


@pytest.mark.asyncio
async def test_requires_bearer_token(async_client: AsyncClient, bob) -> None:
    response = await async_client.post(f"{API}/users/{bob}/follow")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_follow_and_relationship(async_client: AsyncClient, auth_headers, alice, bob) -> None:
    response = await async_client.post(f"{API}/users/{bob}/follow", headers=auth_headers(alice))
    assert response.status_code == 200
    body = response.json()
    assert body["action"] == "follow"
    assert body["changed"] is True
    assert "can_unfollow" in body["permissions"]

    response = await async_client.get(f"{API}/users/{alice}/relationship", headers=auth_headers(bob))
    assert response.status_code == 200
    body = response.json()
    assert body["is_followed_by"] is True
    assert body["is_following"] is False
    assert body["permissions"] == sorted(body["permissions"])
    assert "can_follow" in body["permissions"]


@pytest.mark.asyncio
async def test_follow_self_is_unprocessable(async_client: AsyncClient, auth_headers, alice) -> None:
    response = await async_client.post(f"{API}/users/{alice}/follow", headers=auth_headers(alice))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_follow_unknown_user(async_client: AsyncClient, auth_headers, alice) -> None:
    response = await async_client.post(
        f"{API}/users/{uuid.uuid4()}/follow", headers=auth_headers(alice)
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_toggle_and_unfollow(async_client: AsyncClient, auth_headers, alice, bob) -> None:
    headers = auth_headers(alice)
    toggled = await async_client.post(f"{API}/users/{bob}/follow/toggle", headers=headers)
    assert toggled.json()["action"] == "follow"

    removed = await async_client.delete(f"{API}/users/{bob}/follow", headers=headers)
    assert removed.status_code == 200
    assert removed.json()["changed"] is True

    repeated = await async_client.delete(f"{API}/users/{bob}/follow", headers=headers)
    assert repeated.json()["changed"] is False


@pytest.mark.asyncio
async def test_block_with_reason_then_follow_forbidden(
    async_client: AsyncClient, container, auth_headers, alice, bob
) -> None:
    response = await async_client.post(
        f"{API}/users/{bob}/block",
        json={"reason": "  spam  "},
        headers=auth_headers(alice),
    )
    assert response.status_code == 200
    assert response.json()["permissions"] == ["can_unblock"]
    assert container.graph.block_reason(alice, bob) == "spam"

    response = await async_client.post(f"{API}/users/{alice}/follow", headers=auth_headers(bob))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_block_without_body_and_unblock(async_client: AsyncClient, auth_headers, alice, bob) -> None:
    headers = auth_headers(alice)
    blocked = await async_client.post(f"{API}/users/{bob}/block", headers=headers)
    assert blocked.status_code == 200

    listed = await async_client.get(f"{API}/users/me/blocked", headers=headers)
    assert listed.json()["items"] == [str(bob)]

    unblocked = await async_client.delete(f"{API}/users/{bob}/block", headers=headers)
    assert unblocked.json()["changed"] is True
    listed = await async_client.get(f"{API}/users/me/blocked", headers=headers)
    assert listed.json()["total"] == 0


@pytest.mark.asyncio
async def test_block_reason_too_long(async_client: AsyncClient, auth_headers, alice, bob) -> None:
    response = await async_client.post(
        f"{API}/users/{bob}/block", json={"reason": "x" * 501}, headers=auth_headers(alice)
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_follow_lists(async_client: AsyncClient, auth_headers, alice, bob, carol) -> None:
    await async_client.post(f"{API}/users/{alice}/follow", headers=auth_headers(bob))
    await async_client.post(f"{API}/users/{alice}/follow", headers=auth_headers(carol))

    response = await async_client.get(
        f"{API}/users/me/followers", params={"page": 1, "size": 1}, headers=auth_headers(alice)
    )
    body = response.json()
    assert body == {"items": [str(carol)], "total": 2, "page": 1, "size": 1}

    response = await async_client.get(f"{API}/users/me/following", headers=auth_headers(bob))
    assert response.json()["items"] == [str(alice)]


# ── Conversations ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_conversation_requires_mutual_follow(
    async_client: AsyncClient, auth_headers, alice, bob
) -> None:
    response = await async_client.post(f"{API}/conversations/{bob}", headers=auth_headers(alice))
    assert response.status_code == 403

    await async_client.post(f"{API}/users/{bob}/follow", headers=auth_headers(alice))
    await async_client.post(f"{API}/users/{alice}/follow", headers=auth_headers(bob))

    created = await async_client.post(f"{API}/conversations/{bob}", headers=auth_headers(alice))
    assert created.status_code == 201
    body = created.json()
    assert body["created"] is True
    assert body["other_user_id"] == str(bob)

    fetched = await async_client.post(f"{API}/conversations/{alice}", headers=auth_headers(bob))
    assert fetched.status_code == 200
    assert fetched.json()["id"] == body["id"]

    listed = await async_client.get(f"{API}/conversations", headers=auth_headers(bob))
    assert listed.json()["total"] == 1
    assert listed.json()["items"][0]["other_user_id"] == str(alice)


@pytest.mark.asyncio
async def test_conversation_blocked(async_client: AsyncClient, auth_headers, alice, bob) -> None:
    await async_client.post(f"{API}/users/{alice}/block", headers=auth_headers(bob))
    response = await async_client.post(f"{API}/conversations/{bob}", headers=auth_headers(alice))
    assert response.status_code == 403
    assert "not available" in response.json()["detail"]


# ── Other users' lists ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_user_lists(async_client: AsyncClient, auth_headers, alice, bob, carol) -> None:
    await async_client.post(f"{API}/users/{bob}/follow", headers=auth_headers(carol))
    await async_client.post(f"{API}/users/{carol}/follow", headers=auth_headers(bob))

    response = await async_client.get(f"{API}/users/{bob}/followers", headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["items"] == [str(carol)]

    response = await async_client.get(f"{API}/users/{bob}/following", headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json() == {"items": [str(carol)], "total": 1, "page": 1, "size": 20}


@pytest.mark.asyncio
async def test_user_lists_hidden_across_block(
    async_client: AsyncClient, auth_headers, alice, bob, carol
) -> None:
    await async_client.post(f"{API}/users/{bob}/follow", headers=auth_headers(carol))
    await async_client.post(f"{API}/users/{alice}/block", headers=auth_headers(bob))

    for path in ("followers", "following"):
        response = await async_client.get(f"{API}/users/{bob}/{path}", headers=auth_headers(alice))
        assert response.status_code == 404
        response = await async_client.get(f"{API}/users/{alice}/{path}", headers=auth_headers(bob))
        assert response.status_code == 404

    response = await async_client.get(f"{API}/users/{bob}/followers", headers=auth_headers(carol))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_user_lists_unknown_user(async_client: AsyncClient, auth_headers, alice) -> None:
    response = await async_client.get(f"{API}/users/{uuid.uuid4()}/followers", headers=auth_headers(alice))
    assert response.status_code == 404


# ── Memory backend without a prepared container ────────────────────────────────

@pytest.mark.asyncio
async def test_memory_backend_seeded_users(auth_headers, alice, bob) -> None:
    settings = Settings(
        storage_backend="memory",
        rate_limit_enabled=False,
        events_topic_arn="",
        memory_user_ids=f" {bob}, ",
        _env_file=None,
    )
    assert settings.memory_user_ids_list == [bob]

    async with AsyncClient(transport=ASGITransport(app=create_app(settings)), base_url="http://test") as client:
        response = await client.post(f"{API}/users/{bob}/follow", headers=auth_headers(alice))
        assert response.status_code == 200

        response = await client.get(f"{API}/users/{alice}/relationship", headers=auth_headers(bob))
        assert response.status_code == 200
        assert response.json()["is_followed_by"] is True


@pytest.mark.asyncio
async def test_memory_backend_learns_authenticated_callers(settings, auth_headers, alice, bob) -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app(settings)), base_url="http://test") as client:
        response = await client.post(f"{API}/users/{bob}/follow", headers=auth_headers(alice))
        assert response.status_code == 404

        await client.get(f"{API}/users/me/following", headers=auth_headers(bob))

        response = await client.post(f"{API}/users/{bob}/follow", headers=auth_headers(alice))
        assert response.status_code == 200
