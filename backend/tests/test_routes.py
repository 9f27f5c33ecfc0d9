"""
PokeLend Backend — HTTP Route Tests
=====================================

What:  Status codes and error bodies of every endpoint, through the full
       middleware stack and exception handlers.
How:   httpx AsyncClient over ASGITransport; the lending service and the
       read session are bound to the per-test SQLite database.
"""

import uuid

import pytest


class TestReserveRoute:

    @pytest.mark.asyncio
    async def test_reserve_returns_201(self, test_client, seed):
        response = await test_client.post(
            "/api/loans",
            json={"item_ids": [seed.pikachu], "credential": seed.ash_credential, "duration_hours": 2},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["borrower_name"] == "Ash"
        assert len(body["history_ids"]) == 1
        assert body["expected_return_at"] is not None

    @pytest.mark.asyncio
    async def test_conflict_names_items(self, test_client, seed):
        payload = {"item_ids": [seed.pikachu], "credential": seed.ash_credential}
        await test_client.post("/api/loans", json=payload)

        response = await test_client.post("/api/loans", json=payload)

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "conflict"
        assert body["details"]["item_ids"] == [seed.pikachu]
        assert "Pikachu" in body["message"]

    @pytest.mark.asyncio
    async def test_empty_list_is_400(self, test_client, seed):
        response = await test_client.post(
            "/api/loans", json={"item_ids": [], "credential": seed.ash_credential}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["field"] == "item_ids"

    @pytest.mark.asyncio
    async def test_bad_credential_is_401(self, test_client, seed):
        response = await test_client.post(
            "/api/loans", json={"item_ids": [seed.pikachu], "credential": "wrong"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "invalid_credential"

    @pytest.mark.asyncio
    async def test_unknown_item_is_404(self, test_client, seed):
        response = await test_client.post(
            "/api/loans",
            json={"item_ids": [str(uuid.uuid4())], "credential": seed.ash_credential},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client, seed):
        response = await test_client.post(
            "/api/loans",
            json={"item_ids": [], "credential": "x"},
            headers={"X-Request-ID": "trace-42"},
        )

        assert response.headers["X-Request-ID"] == "trace-42"
        assert response.json()["request_id"] == "trace-42"


class TestReturnRoutes:

    @pytest.mark.asyncio
    async def test_return_one_is_idempotent(self, test_client, seed):
        reserve = await test_client.post(
            "/api/loans", json={"item_ids": [seed.pikachu], "credential": seed.ash_credential}
        )
        history_id = reserve.json()["history_ids"][0]

        first = await test_client.put(
            f"/api/history/{history_id}/return", json={"credential": seed.ash_credential}
        )
        second = await test_client.put(
            f"/api/history/{history_id}/return", json={"credential": seed.ash_credential}
        )

        assert (first.status_code, first.json()["count"]) == (200, 1)
        assert (second.status_code, second.json()["count"]) == (200, 0)

    @pytest.mark.asyncio
    async def test_return_one_unknown_entry(self, test_client, seed):
        response = await test_client.put(
            "/api/history/9999/return", json={"credential": seed.ash_credential}
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_return_multiple_reports_count(self, test_client, seed):
        reserve = await test_client.post(
            "/api/loans",
            json={"item_ids": [seed.pikachu, seed.charmander], "credential": seed.ash_credential},
        )
        h1, h2 = reserve.json()["history_ids"]
        await test_client.put(f"/api/history/{h2}/return", json={"credential": seed.ash_credential})

        response = await test_client.put(
            "/api/history/return-multiple",
            json={"history_ids": [h1, h2], "credential": seed.ash_credential},
        )

        assert response.status_code == 200
        assert response.json()["count"] == 1

    @pytest.mark.asyncio
    async def test_return_multiple_wrong_owner_is_401(self, test_client, seed):
        reserve = await test_client.post(
            "/api/loans", json={"item_ids": [seed.pikachu], "credential": seed.ash_credential}
        )

        response = await test_client.put(
            "/api/history/return-multiple",
            json={"history_ids": reserve.json()["history_ids"], "credential": seed.misty_credential},
        )

        assert response.status_code == 401


class TestFavoriteRoute:

    @pytest.mark.asyncio
    async def test_partial_borrow_is_201(self, test_client, seed):
        await test_client.post(
            "/api/loans", json={"item_ids": [seed.squirtle], "credential": seed.misty_credential}
        )

        response = await test_client.post(
            f"/api/favorites/{seed.starters}/borrow", json={"credential": seed.ash_credential}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["reserved_count"] == 2
        assert body["skipped"] == [{"item_id": seed.squirtle, "name": "Squirtle", "reason": "borrowed"}]

    @pytest.mark.asyncio
    async def test_unknown_list_is_404(self, test_client, seed):
        response = await test_client.post(
            f"/api/favorites/{uuid.uuid4()}/borrow", json={"credential": seed.ash_credential}
        )
        assert response.status_code == 404


class TestReadRoutes:

    @pytest.mark.asyncio
    async def test_history_listing(self, test_client, seed):
        await test_client.post(
            "/api/loans", json={"item_ids": [seed.pikachu], "credential": seed.ash_credential}
        )

        response = await test_client.get("/api/history", params={"limit": 10})

        assert response.status_code == 200
        assert response.headers["X-Total-Count"] == "1"
        assert response.json()["entries"][0]["item_name"] == "Pikachu"

    @pytest.mark.asyncio
    async def test_active_groups(self, test_client, seed):
        await test_client.post(
            "/api/loans",
            json={"item_ids": [seed.pikachu, seed.charmander], "credential": seed.ash_credential},
        )

        response = await test_client.get("/api/history/active")

        assert response.status_code == 200
        groups = response.json()["groups"]
        assert len(groups) == 1
        assert groups[0]["borrower_name"] == "Ash"
        assert len(groups[0]["history_ids"]) == 2

    @pytest.mark.asyncio
    async def test_item_lookup(self, test_client, seed):
        found = await test_client.get(f"/api/items/{seed.charmander}")
        missing = await test_client.get(f"/api/items/{uuid.uuid4()}")

        assert found.status_code == 200
        assert found.json()["clans"] == ["volcanic"]
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_clan_items(self, test_client, seed):
        response = await test_client.get("/api/clans/Raibolt/items")

        assert response.status_code == 200
        assert [i["name"] for i in response.json()["items"]] == ["Pikachu"]

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] == "connected"
