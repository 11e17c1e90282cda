# -*- coding: utf-8 -*-
"""HTTP 接口：响应信封、状态码、状态迁移与一致性检查（含 AI 失败降级）。"""
from unittest.mock import AsyncMock

import pytest

from backend.services.consistency_service import ConsistencyChecker
from backend.services.errors import GenerationError


async def _create_novel(client, title="회귀한 검성"):
    resp = await client.post("/novels", json={"title": title})
    assert resp.status_code == 201
    return resp.json()["novel"]["id"]


async def _create_chapter(client, novel_id, title="1화", content=""):
    resp = await client.post("/chapters", json={"novel_id": novel_id, "title": title, "content": content})
    assert resp.status_code == 201
    return resp.json()["chapter"]


async def _create_character(client, novel_id, name="서윤"):
    return await client.post(
        "/characters",
        json={
            "novel_id": novel_id,
            "name": name,
            "description": "검은 머리의 검사",
            "personality": "과묵함",
            "background": "몰락한 가문",
        },
    )


class TestEnvelope:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        resp = await client.get("/novels/missing")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Novel not found"}

    @pytest.mark.asyncio
    async def test_validation_error(self, client):
        resp = await client.post("/novels", json={"title": ""})
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["error"] == "Invalid request data"
        assert body["details"]

    @pytest.mark.asyncio
    async def test_novel_id_required(self, client):
        resp = await client.get("/characters")
        assert resp.status_code == 400
        assert resp.json()["error"] == "Novel ID is required"


class TestChaptersAndCharacters:
    @pytest.mark.asyncio
    async def test_chapter_numbering_and_word_count(self, client):
        novel_id = await _create_novel(client)
        first = await _create_chapter(client, novel_id, content="  ")
        second = await _create_chapter(client, novel_id, "2화", content="hello world")
        assert (first["number"], first["word_count"]) == (1, 0)
        assert (second["number"], second["word_count"]) == (2, 2)

        listed = (await client.get("/chapters", params={"novel_id": novel_id})).json()["chapters"]
        assert [c["number"] for c in listed] == [1, 2]

    @pytest.mark.asyncio
    async def test_duplicate_character_name(self, client):
        novel_id = await _create_novel(client)
        other_id = await _create_novel(client, "다른 소설")
        assert (await _create_character(client, novel_id)).status_code == 201
        dup = await _create_character(client, novel_id)
        assert dup.status_code == 400
        assert dup.json() == {"success": False, "error": "Character with this name already exists in this novel"}
        assert (await _create_character(client, other_id)).status_code == 201

    @pytest.mark.asyncio
    async def test_character_delete_blocked_with_counts(self, client):
        novel_id = await _create_novel(client)
        chapter = await _create_chapter(client, novel_id)
        character_id = (await _create_character(client, novel_id)).json()["character"]["id"]
        await client.post(f"/chapters/{chapter['id']}/appearances", json={"character_id": character_id})

        resp = await client.delete(f"/characters/{character_id}")

        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["details"] == {"usage_count": 0, "appearance_count": 1, "total_references": 1}

        info = (await client.get(f"/characters/{character_id}")).json()
        assert info["references"]["total_references"] == 1


class TestPlotlines:
    @pytest.mark.asyncio
    async def test_development_updates_status_and_migration(self, client):
        novel_id = await _create_novel(client)
        chapter = await _create_chapter(client, novel_id)
        resp = await client.post(
            "/plotlines",
            json={"novel_id": novel_id, "name": "복수극", "description": "원수를 찾는다", "priority": 3},
        )
        plotline_id = resp.json()["plotline"]["id"]
        assert resp.json()["plotline"]["status"] == "PLANNED"

        resp = await client.post(
            f"/plotlines/{plotline_id}/developments",
            json={"chapter_id": chapter["id"], "development_type": "introduction", "description": "첫 등장"},
        )
        assert resp.status_code == 201
        assert resp.json()["plotline"]["status"] == "INTRODUCED"

        preview = (await client.get("/plotlines/migrate-status", params={"novel_id": novel_id})).json()
        assert preview["success"] is True
        assert preview["summary"] == {"needs_enum_migration": 0, "needs_development_update": 0}

        run = (await client.post("/plotlines/migrate-status", params={"novel_id": novel_id})).json()
        assert run["summary"]["total_plotlines"] == 1
        assert run["summary"]["development_updated"] == 0

        progression = (await client.get(f"/plotlines/{plotline_id}/progression")).json()["progression"]
        assert progression["suggested_status"] == "INTRODUCED"

        attention = (await client.get("/plotlines/attention", params={"novel_id": novel_id})).json()
        assert attention["chapter_number"] == 1
        assert attention["plotlines"][0]["name"] == "복수극"

    @pytest.mark.asyncio
    async def test_migrate_status_requires_novel_id(self, client):
        resp = await client.post("/plotlines/migrate-status")
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Novel ID is required"}

    @pytest.mark.asyncio
    async def test_invalid_priority(self, client):
        novel_id = await _create_novel(client)
        resp = await client.post(
            "/plotlines", json={"novel_id": novel_id, "name": "x", "description": "y", "priority": 9}
        )
        assert resp.status_code == 400


class TestConsistency:
    @pytest.mark.asyncio
    async def test_requires_target(self, client):
        resp = await client.post("/consistency/check", json={"use_ai": True})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid request data"

    @pytest.mark.asyncio
    async def test_ai_failure_still_succeeds(self, client):
        from backend.app.main import app
        from backend.routers.deps import get_consistency_checker

        generate = AsyncMock(side_effect=GenerationError("Generation failed after 2 attempts"))
        app.dependency_overrides[get_consistency_checker] = lambda: ConsistencyChecker(generate=generate)

        novel_id = await _create_novel(client)
        chapter = await _create_chapter(client, novel_id, content="어제 지금 내일")
        resp = await client.post("/consistency/check", json={"chapter_id": chapter["id"], "use_ai": True})

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        result = body["chapter_consistency"]
        assert result["automated"]["has_issues"] is True
        assert result["ai"]["error"] == "Generation failed after 2 attempts"
        assert result["ai"]["full_analysis"] == "AI analysis failed"
        assert result["summary"]["total_issues"] == 1

    @pytest.mark.asyncio
    async def test_novel_report(self, client):
        novel_id = await _create_novel(client)
        resp = await client.post("/consistency/check", json={"novel_id": novel_id})
        body = resp.json()
        assert body["success"] is True
        assert body["novel_consistency"]["summary"]["overall_score"] == 100
        assert body["novel_consistency"]["ai"] is None

    @pytest.mark.asyncio
    async def test_missing_chapter(self, client):
        resp = await client.post("/consistency/check", json={"chapter_id": "missing"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "Chapter not found"


class TestPlanning:
    @pytest.mark.asyncio
    async def test_abandoned_plotline_survives_migration(self, client):
        novel_id = await _create_novel(client)
        resp = await client.post(
            "/plotlines",
            json={"novel_id": novel_id, "name": "폐기된 떡밥", "description": "접은 이야기", "status": "ABANDONED"},
        )
        plotline_id = resp.json()["plotline"]["id"]

        run = (await client.post("/plotlines/migrate-status", params={"novel_id": novel_id})).json()
        assert run["summary"]["development_updated"] == 0

        plotline = (await client.get(f"/plotlines/{plotline_id}")).json()["plotline"]
        assert plotline["status"] == "ABANDONED"

    @pytest.mark.asyncio
    async def test_balance_and_distribution(self, client):
        novel_id = await _create_novel(client)
        chapter = await _create_chapter(client, novel_id)
        resp = await client.post(
            "/plotlines",
            json={"novel_id": novel_id, "name": "복수극", "description": "원수를 찾는다", "priority": 3},
        )
        plotline_id = resp.json()["plotline"]["id"]
        await client.post(
            f"/plotlines/{plotline_id}/developments",
            json={"chapter_id": chapter["id"], "development_type": "introduction", "description": "첫 등장"},
        )

        balance = (await client.get("/plotlines/balance", params={"novel_id": novel_id})).json()
        assert balance["success"] is True
        assert balance["chapter_number"] == 1
        assert [p["name"] for p in balance["plotlines"]] == ["복수극"]

        distribution = (await client.get("/plotlines/distribution", params={"novel_id": novel_id})).json()
        assert distribution["distribution"]["total_developments"] == 1
        assert distribution["distribution"]["plotline_distribution"][0]["plotline_name"] == "복수극"

    @pytest.mark.asyncio
    async def test_balance_rejects_large_limit(self, client):
        novel_id = await _create_novel(client)
        resp = await client.get("/plotlines/balance", params={"novel_id": novel_id, "max_plotlines": 11})
        assert resp.status_code == 400


class TestEvolution:
    @pytest.mark.asyncio
    async def test_character_evolution_without_notes(self, client):
        from backend.app.main import app
        from backend.routers.deps import get_evolution_service
        from backend.services.evolution_service import EvolutionService

        generate = AsyncMock()
        app.dependency_overrides[get_evolution_service] = lambda: EvolutionService(generate=generate)

        novel_id = await _create_novel(client)
        character_id = (await _create_character(client, novel_id)).json()["character"]["id"]
        resp = await client.post("/evolution", json={"type": "character", "target_id": character_id})

        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "type": "character",
            "result": {"character_id": character_id, "updated": False, "changes": []},
        }
        generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_type(self, client):
        resp = await client.post("/evolution", json={"type": "world", "target_id": "x"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid request data"

    @pytest.mark.asyncio
    async def test_missing_plotline(self, client):
        resp = await client.post("/evolution", json={"type": "plotline", "target_id": "missing"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "Plotline not found"

    @pytest.mark.asyncio
    async def test_world_building_and_summary(self, client):
        novel_id = await _create_novel(client)
        await _create_chapter(client, novel_id)

        resp = await client.post(
            "/evolution/world-building", params={"novel_id": novel_id}, json={"locations": ["수도"]}
        )
        assert resp.json() == {"success": True, "updated": True, "elements_added": ["Locations: 수도"]}

        summary = (await client.get("/evolution", params={"novel_id": novel_id})).json()
        assert summary["novel_id"] == novel_id
        assert summary["evolution_summary"]["characters_with_development"] == []
        assert summary["evolution_summary"]["recent_chapters"][0]["number"] == 1
