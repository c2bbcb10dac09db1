"""HTTP-level tests over the assembled application."""

from __future__ import annotations

import pytest

from tests.conftest import published


class TestHealth:
    """Test liveness and readiness endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_version(self, client):
        resp = await client.get("/version")
        assert resp.status_code == 200
        assert "version" in resp.json()

    @pytest.mark.asyncio
    async def test_request_id_header(self, client):
        resp = await client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"


class TestIdentity:
    """Test the gateway-provided user header."""

    @pytest.mark.asyncio
    async def test_missing_header(self, client):
        resp = await client.get("/api/v1/stats", headers={"X-User-Id": ""})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_non_numeric_header(self, client):
        resp = await client.get("/api/v1/stats", headers={"X-User-Id": "alice"})
        assert resp.status_code == 401


class TestStatsAndSessions:
    """Test the ledger and session endpoints."""

    @pytest.mark.asyncio
    async def test_first_stats_read_creates_ledger(self, client):
        resp = await client.get("/api/v1/stats")

        assert resp.status_code == 200
        body = resp.json()
        assert body["user_id"] == 42
        assert (body["energy"], body["hearts"], body["xp"]) == (25, 5, 0)

    @pytest.mark.asyncio
    async def test_apply_session(self, client, redis):
        resp = await client.post("/api/v1/sessions", json={"correct": 4, "total": 5, "passed": True})

        assert resp.status_code == 200
        body = resp.json()
        assert body["xp_gained"] == 60
        assert body["hearts_lost"] == 1
        assert body["streak_count"] == 1
        assert published(redis, "xp.gained")[0]["userId"] == 42

    @pytest.mark.asyncio
    async def test_inconsistent_session_is_rejected(self, client):
        resp = await client.post("/api/v1/sessions", json={"correct": 6, "total": 5, "passed": True})

        assert resp.status_code == 422
        assert resp.json()["detail"] == "Validation error"

    @pytest.mark.asyncio
    async def test_out_of_hearts(self, client):
        for _ in range(5):
            await client.post("/api/v1/sessions", json={"correct": 0, "total": 1, "passed": False})

        resp = await client.post("/api/v1/sessions", json={"correct": 1, "total": 1, "passed": True})

        assert resp.status_code == 402
        assert resp.json()["error"] == "insufficient_resource"

    @pytest.mark.asyncio
    async def test_achievements_listing(self, client):
        await client.post("/api/v1/sessions", json={"correct": 3, "total": 3, "passed": True})

        resp = await client.get("/api/v1/achievements")

        body = resp.json()
        assert body["total_unlocked"] == 2
        unlocked = {a["code"] for a in body["achievements"] if a["unlocked"]}
        assert unlocked == {"FIRST_QUIZ_PASS", "PERFECT_SCORE"}

    @pytest.mark.asyncio
    async def test_no_free_heart_refill(self, client):
        resp = await client.post("/api/v1/hearts/refill", json={})

        assert resp.status_code in (404, 405)


class TestShopEndpoints:
    """Test buying consumables with gems."""

    @staticmethod
    async def _item_id(client, code: str) -> int:
        items = (await client.get("/api/v1/shop/items")).json()
        return next(item["id"] for item in items if item["code"] == code)

    @pytest.mark.asyncio
    async def test_lists_default_items(self, client):
        resp = await client.get("/api/v1/shop/items")

        assert resp.status_code == 200
        codes = {item["code"] for item in resp.json()}
        assert {"heart_refill", "energy_refill", "xp_boost_1h", "streak_repair"} <= codes

    @pytest.mark.asyncio
    async def test_purchase_without_gems(self, client):
        item_id = await self._item_id(client, "heart_refill")

        resp = await client.post("/api/v1/shop/purchase", json={"shop_item_id": item_id})

        assert resp.status_code == 402
        assert resp.json()["error"] == "insufficient_resource"

    @pytest.mark.asyncio
    async def test_heart_refill_spends_earned_gems(self, client):
        await client.post("/api/v1/sessions", json={"correct": 0, "total": 2, "passed": False})
        # A perfect pass unlocks FIRST_QUIZ_PASS and PERFECT_SCORE: 15 gems.
        await client.post("/api/v1/sessions", json={"correct": 3, "total": 3, "passed": True})
        before = (await client.get("/api/v1/stats")).json()
        item_id = await self._item_id(client, "heart_refill")

        resp = await client.post("/api/v1/shop/purchase", json={"shop_item_id": item_id})

        assert resp.status_code == 200
        body = resp.json()
        assert body["hearts"] == 5
        assert body["gems"] == before["gems"] - 15
        assert body["purchase"]["gems_spent"] == 15
        history = (await client.get("/api/v1/shop/purchases")).json()
        assert [p["shop_item_id"] for p in history] == [item_id]

    @pytest.mark.asyncio
    async def test_unknown_item(self, client):
        resp = await client.post("/api/v1/shop/purchase", json={"shop_item_id": 9999})

        assert resp.status_code == 404


class TestProgressEndpoints:
    """Test the unlock cascade over HTTP."""

    @pytest.mark.asyncio
    async def test_initialize_then_watch(self, client):
        assert (await client.post("/api/v1/progress/initialize")).status_code == 204

        await client.post("/api/v1/progress/lessons/lesson-1/watched", json={"video_id": "vid-1"})
        resp = await client.post("/api/v1/progress/lessons/lesson-1/watched", json={"video_id": "vid-2"})

        body = resp.json()
        assert body["newly_completed"] is True
        assert body["next_lesson_unlocked"] == "lesson-2"
        status = await client.get("/api/v1/progress/lessons/lesson-2/unlocked")
        assert status.json() == {"node_type": "lesson", "node_id": "lesson-2", "unlocked": True}

    @pytest.mark.asyncio
    async def test_locked_lesson_is_conflict(self, client):
        resp = await client.post("/api/v1/progress/lessons/lesson-3/watched", json={"video_id": "vid-4"})

        assert resp.status_code == 409
        assert resp.json()["error"] == "invalid_state"

    @pytest.mark.asyncio
    async def test_foreign_video_is_invalid(self, client):
        resp = await client.post("/api/v1/progress/lessons/lesson-1/watched", json={"video_id": "vid-5"})

        assert resp.status_code == 422
        assert resp.json()["error"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_unknown_lesson(self, client):
        resp = await client.post("/api/v1/progress/lessons/missing/watched", json={"video_id": "vid-1"})

        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_overview(self, client):
        await client.post("/api/v1/progress/initialize")

        resp = await client.get("/api/v1/progress")

        levels = resp.json()["levels"]
        assert [lv["level_id"] for lv in levels] == ["level-1", "level-2"]
        assert levels[0]["unlocked"] is True
        assert levels[1]["unlocked"] is False


class TestQuestEndpoints:
    """Test quest issuing and claiming over HTTP."""

    @pytest.mark.asyncio
    async def test_generate_and_list(self, client):
        generated = await client.post("/api/v1/quests/generate")
        listed = await client.get("/api/v1/quests")

        assert len(generated.json()["quests"]) == 3
        assert {q["id"] for q in listed.json()["quests"]} == {q["id"] for q in generated.json()["quests"]}

    @pytest.mark.asyncio
    async def test_claim_incomplete_quest(self, client):
        quests = (await client.post("/api/v1/quests/generate")).json()["quests"]

        resp = await client.post(f"/api/v1/quests/{quests[0]['id']}/claim")

        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_claim_unknown_quest(self, client):
        resp = await client.post("/api/v1/quests/9999/claim")

        assert resp.status_code == 404


class TestLeagueEndpoints:
    """Test league status over HTTP."""

    @pytest.mark.asyncio
    async def test_status_joins_current_week(self, client):
        await client.post("/api/v1/sessions", json={"correct": 2, "total": 2, "passed": False})

        resp = await client.get("/api/v1/league")

        body = resp.json()
        assert body["tier"] == "bronze"
        assert body["rank"] == 1
        assert body["weekly_xp"] == 20
        leaderboard = await client.get(f"/api/v1/league/sessions/{body['session_id']}/leaderboard")
        assert [e["user_id"] for e in leaderboard.json()] == [42]

    @pytest.mark.asyncio
    async def test_history(self, client):
        await client.get("/api/v1/league")

        resp = await client.get("/api/v1/league/history")

        assert len(resp.json()["history"]) == 1


class TestMasteryEndpoints:
    """Test skill practice and the legendary gate over HTTP."""

    @pytest.mark.asyncio
    async def test_practice_levels_up(self, client):
        resp = await client.post("/api/v1/mastery/skills/alphabet/practice", json={"xp": 60, "mistakes": 0})

        body = resp.json()
        assert body["leveled_up"] is True
        assert body["new_crown_level"] == 1
        assert body["progress"]["crown_level"] == 1

    @pytest.mark.asyncio
    async def test_legendary_not_available(self, client):
        resp = await client.post("/api/v1/mastery/skills/alphabet/legendary", json={"passed": True})

        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_overview(self, client):
        await client.post("/api/v1/mastery/skills/alphabet/practice", json={"xp": 10, "mistakes": 1})

        resp = await client.get("/api/v1/mastery")

        assert resp.json()["total_skills"] == 1


class TestMilestoneEndpoints:
    """Test milestone listing and claims over HTTP."""

    @pytest.mark.asyncio
    async def test_list(self, client):
        resp = await client.get("/api/v1/milestones")

        days = [m["day"] for m in resp.json()]
        assert days[:3] == [3, 7, 14]

    @pytest.mark.asyncio
    async def test_ineligible_claim(self, client):
        await client.get("/api/v1/stats")

        resp = await client.post("/api/v1/milestones/7/claim")

        assert resp.status_code == 200
        assert resp.json()["claimed"] is False
