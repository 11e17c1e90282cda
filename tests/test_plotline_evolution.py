# -*- coding: utf-8 -*-
"""情节线状态判定、状态迁移与预览、进展分析、关注度排序。"""
from datetime import datetime

import pytest

from backend.models.chapter import Chapter
from backend.models.plot import DevelopmentType, PlotStatus, Plotline, PlotlineDevelopment
from backend.services.errors import NotFoundError
from backend.services.plotline_evolution import (
    LEGACY_STATUS_MAPPING,
    analyze_plotline_distribution,
    analyze_plotline_progression,
    calculate_plotline_urgency,
    classify_developments,
    determine_status_from_developments,
    ensure_most_recent_first,
    get_plotlines_needing_attention,
    migrate_plotline_statuses,
    preview_status_migration,
    remap_legacy_status,
    select_balanced_plotlines,
    suggest_plotline_balance,
    update_plotline_status,
)


async def _add_plotline(session, novel_id, name, status="PLANNED", priority=1):
    plotline = Plotline(novel_id=novel_id, name=name, description=f"{name} 설명", status=status, priority=priority)
    session.add(plotline)
    await session.flush()
    return plotline


async def _add_chapter(session, novel_id, number):
    chapter = Chapter(novel_id=novel_id, number=number, title=f"{number}화", content="", word_count=0)
    session.add(chapter)
    await session.flush()
    return chapter


async def _add_development(session, plotline, chapter, dev_type, created_at):
    dev = PlotlineDevelopment(
        plotline_id=plotline.id,
        chapter_id=chapter.id,
        development_type=dev_type,
        description=f"{dev_type} in chapter {chapter.number}",
        created_at=created_at,
    )
    session.add(dev)
    await session.flush()
    return dev


class TestDetermineStatus:
    def test_empty_is_planned(self):
        assert determine_status_from_developments([]) == PlotStatus.PLANNED

    def test_resolution_anywhere_is_resolved(self):
        assert determine_status_from_developments(["resolution"]) == PlotStatus.RESOLVED
        assert determine_status_from_developments(["complication", "advancement", "resolution"]) == PlotStatus.RESOLVED
        assert determine_status_from_developments(["introduction", "resolution", "advancement"]) == PlotStatus.RESOLVED

    def test_single_advancement_is_introduced(self):
        assert determine_status_from_developments(["advancement"]) == PlotStatus.INTRODUCED

    def test_two_advancements_is_developing(self):
        assert determine_status_from_developments(["advancement", "advancement"]) == PlotStatus.DEVELOPING

    def test_advancement_count_uses_whole_sequence(self):
        seq = ["advancement", "complication", "introduction", "advancement"]
        assert determine_status_from_developments(seq) == PlotStatus.DEVELOPING

    def test_latest_introduction_wins(self):
        assert determine_status_from_developments(["introduction", "advancement"]) == PlotStatus.INTRODUCED

    def test_latest_complication(self):
        assert determine_status_from_developments(["complication", "advancement", "advancement"]) == PlotStatus.COMPLICATED

    def test_unknown_latest_type_is_planned(self):
        assert determine_status_from_developments(["foreshadowing", "advancement"]) == PlotStatus.PLANNED

    def test_accepts_enum_members(self):
        seq = [DevelopmentType.advancement, DevelopmentType.advancement]
        assert determine_status_from_developments(seq) == PlotStatus.DEVELOPING

    def test_pure_function(self):
        seq = ["complication", "introduction"]
        assert determine_status_from_developments(seq) == determine_status_from_developments(list(seq))
        assert seq == ["complication", "introduction"]


class TestOrderingPrecondition:
    def test_most_recent_first_accepted(self):
        devs = [
            PlotlineDevelopment(development_type="advancement", created_at=datetime(2024, 1, 3)),
            PlotlineDevelopment(development_type="introduction", created_at=datetime(2024, 1, 1)),
        ]
        ensure_most_recent_first(devs)
        assert classify_developments(devs) == PlotStatus.INTRODUCED

    def test_equal_timestamps_accepted(self):
        ts = datetime(2024, 1, 1)
        devs = [
            PlotlineDevelopment(development_type="advancement", created_at=ts),
            PlotlineDevelopment(development_type="advancement", created_at=ts),
        ]
        assert classify_developments(devs) == PlotStatus.DEVELOPING

    def test_chronological_order_rejected(self):
        devs = [
            PlotlineDevelopment(development_type="introduction", created_at=datetime(2024, 1, 1)),
            PlotlineDevelopment(development_type="complication", created_at=datetime(2024, 1, 2)),
        ]
        with pytest.raises(ValueError, match="most-recent-first"):
            classify_developments(devs)


class TestLegacyMapping:
    def test_active_maps_to_developing(self):
        assert remap_legacy_status("ACTIVE") == "DEVELOPING"

    def test_current_statuses_map_to_themselves(self):
        for status in PlotStatus:
            assert LEGACY_STATUS_MAPPING[status.value] == status.value

    def test_unrecognised_value_unchanged(self):
        assert remap_legacy_status("ON_HOLD") == "ON_HOLD"


class TestMigration:
    @pytest.mark.asyncio
    async def test_update_plotline_status_missing(self, session):
        with pytest.raises(NotFoundError):
            await update_plotline_status(session, "missing")

    @pytest.mark.asyncio
    async def test_migration_remaps_and_derives(self, session, novel, timestamps):
        ch1 = await _add_chapter(session, novel.id, 1)
        ch2 = await _add_chapter(session, novel.id, 2)
        legacy = await _add_plotline(session, novel.id, "복수", status="ACTIVE")
        await _add_development(session, legacy, ch1, "advancement", timestamps[0])
        await _add_development(session, legacy, ch2, "complication", timestamps[1])
        await _add_plotline(session, novel.id, "로맨스", status="ACTIVE")

        result = await migrate_plotline_statuses(session, novel.id)

        assert result["summary"] == {"total_plotlines": 2, "enum_updated": 2, "development_updated": 1}
        names = {m["plotline_name"]: m for m in result["enum_migration"]}
        assert names["복수"]["old_status"] == "ACTIVE"
        assert names["복수"]["new_status"] == "DEVELOPING"
        updates = {u["name"]: u["new_status"] for u in result["development_migration"]}
        assert updates == {"복수": "COMPLICATED"}

    @pytest.mark.asyncio
    async def test_second_run_reports_no_changes(self, session, novel, timestamps):
        ch1 = await _add_chapter(session, novel.id, 1)
        p = await _add_plotline(session, novel.id, "각성", status="ACTIVE")
        await _add_development(session, p, ch1, "introduction", timestamps[0])
        climax = await _add_plotline(session, novel.id, "음모", status="CLIMAXING")

        first = await migrate_plotline_statuses(session, novel.id)
        assert [u["name"] for u in first["development_migration"]] == ["각성"]
        assert climax.status == "CLIMAXING"
        second = await migrate_plotline_statuses(session, novel.id)

        assert second["summary"]["enum_updated"] == 0
        assert second["summary"]["development_updated"] == 0
        assert second["enum_migration"] == []
        assert second["development_migration"] == []

    @pytest.mark.asyncio
    async def test_preview_does_not_mutate(self, session, novel, timestamps):
        ch1 = await _add_chapter(session, novel.id, 1)
        p = await _add_plotline(session, novel.id, "비밀", status="ACTIVE")
        await _add_development(session, p, ch1, "resolution", timestamps[0])
        await session.commit()

        preview = await preview_status_migration(session, novel.id)

        assert preview["total_plotlines"] == 1
        assert preview["summary"] == {"needs_enum_migration": 1, "needs_development_update": 1}
        item = preview["preview"][0]
        assert item["current_status"] == "ACTIVE"
        assert item["changes"]["enum_migration"] == {"from": "ACTIVE", "to": "DEVELOPING"}
        assert item["changes"]["development_based_update"] == {"from": "DEVELOPING", "to": "RESOLVED"}
        assert item["development_history"][0]["type"] == "resolution"

        session.expire_all()
        refreshed = await session.get(Plotline, p.id)
        assert refreshed.status == "ACTIVE"

    @pytest.mark.asyncio
    async def test_preview_matches_settled_state(self, session, novel):
        await _add_plotline(session, novel.id, "준비", status="PLANNED")
        preview = await preview_status_migration(session, novel.id)
        assert preview["preview"][0]["changes"] == {"enum_migration": None, "development_based_update": None}


class TestManualStatuses:
    @pytest.mark.asyncio
    async def test_statuses_without_developments_survive_migration(self, session, novel):
        abandoned = await _add_plotline(session, novel.id, "폐기된 복선", status="ABANDONED")
        climax = await _add_plotline(session, novel.id, "결전", status="CLIMAXING")
        await session.commit()

        result = await migrate_plotline_statuses(session, novel.id)

        assert result["summary"] == {"total_plotlines": 2, "enum_updated": 0, "development_updated": 0}
        session.expire_all()
        assert (await session.get(Plotline, abandoned.id)).status == "ABANDONED"
        assert (await session.get(Plotline, climax.id)).status == "CLIMAXING"

    @pytest.mark.asyncio
    async def test_update_without_developments_does_not_write(self, session, novel):
        p = await _add_plotline(session, novel.id, "보류", status="ABANDONED")
        assert await update_plotline_status(session, p.id) == PlotStatus.PLANNED
        assert p.status == "ABANDONED"

    @pytest.mark.asyncio
    async def test_preview_skips_plotlines_without_developments(self, session, novel):
        await _add_plotline(session, novel.id, "폐기", status="ABANDONED")
        preview = await preview_status_migration(session, novel.id)
        assert preview["summary"] == {"needs_enum_migration": 0, "needs_development_update": 0}


class TestUnrecognisedStatus:
    @pytest.mark.asyncio
    async def test_migration_keeps_unrecognised_value(self, session, novel):
        p = await _add_plotline(session, novel.id, "휴재", status="ON_HOLD")

        result = await migrate_plotline_statuses(session, novel.id)

        assert result["enum_migration"] == []
        assert result["development_migration"] == []
        assert p.status == "ON_HOLD"

    @pytest.mark.asyncio
    async def test_preview_keeps_unrecognised_value(self, session, novel):
        await _add_plotline(session, novel.id, "휴재", status="ON_HOLD")
        item = (await preview_status_migration(session, novel.id))["preview"][0]
        assert item["current_status"] == "ON_HOLD"
        assert item["changes"] == {"enum_migration": None, "development_based_update": None}

    @pytest.mark.asyncio
    async def test_developments_rederive_unrecognised_value(self, session, novel, timestamps):
        ch1 = await _add_chapter(session, novel.id, 1)
        p = await _add_plotline(session, novel.id, "재개", status="ON_HOLD")
        await _add_development(session, p, ch1, "complication", timestamps[0])

        item = (await preview_status_migration(session, novel.id))["preview"][0]
        assert item["changes"]["enum_migration"] is None
        assert item["changes"]["development_based_update"] == {"from": "ON_HOLD", "to": "COMPLICATED"}

        result = await migrate_plotline_statuses(session, novel.id)
        assert result["enum_migration"] == []
        assert result["development_migration"][0]["old_status"] == "ON_HOLD"
        assert p.status == "COMPLICATED"


class TestProgression:
    @pytest.mark.asyncio
    async def test_analyze_progression(self, session, novel, timestamps):
        ch1 = await _add_chapter(session, novel.id, 1)
        ch2 = await _add_chapter(session, novel.id, 2)
        p = await _add_plotline(session, novel.id, "전쟁")
        await _add_development(session, p, ch1, "advancement", timestamps[0])
        await _add_development(session, p, ch2, "advancement", timestamps[1])

        analysis = await analyze_plotline_progression(session, p.id)

        assert analysis["suggested_status"] == "DEVELOPING"
        assert analysis["current_status"] == "PLANNED"
        assert [h["chapter_number"] for h in analysis["development_history"]] == [1, 2]
        assert analysis["progression_summary"] == "Total developments: 2 (2 advancement(s))"

    @pytest.mark.asyncio
    async def test_no_developments_recommendation(self, session, novel):
        p = await _add_plotline(session, novel.id, "미정")
        analysis = await analyze_plotline_progression(session, p.id)
        assert analysis["suggested_status"] == "PLANNED"
        assert any("No developments yet" in r for r in analysis["recommendations"])


class TestAttention:
    def test_urgency_score(self):
        # 3*15 + 4*12 + 2*8 + 30 (INTRODUCED) + 25 (<2 devs) + 20 (>3 chapters)
        assert calculate_plotline_urgency(3, 4, 2, "INTRODUCED", 1) == 184

    @pytest.mark.asyncio
    async def test_sorted_by_urgency_and_active_only(self, session, novel, timestamps):
        ch1 = await _add_chapter(session, novel.id, 1)
        ch5 = await _add_chapter(session, novel.id, 5)
        stale = await _add_plotline(session, novel.id, "오래된", status="INTRODUCED", priority=5)
        fresh = await _add_plotline(session, novel.id, "최근", status="DEVELOPING", priority=1)
        await _add_plotline(session, novel.id, "완결", status="RESOLVED", priority=5)
        await _add_development(session, stale, ch1, "introduction", timestamps[0])
        await _add_development(session, fresh, ch5, "advancement", timestamps[1])
        await _add_development(session, fresh, ch5, "advancement", timestamps[2])

        result = await get_plotlines_needing_attention(session, novel.id, 5)

        assert [r["name"] for r in result] == ["오래된", "최근"]
        assert result[0]["chapters_since_last_development"] == 4
        assert result[0]["needs_attention"] is True
        assert result[1]["development_count"] == 2


def _activity(name, score):
    return {"id": name, "name": name, "urgency_score": score}


class TestBalance:
    def test_no_plotlines(self):
        assert select_balanced_plotlines([]) == []

    def test_below_thresholds_takes_top_scores(self):
        activity = [_activity("a", 20), _activity("b", 10), _activity("c", 5), _activity("d", 1)]
        assert [a["name"] for a in select_balanced_plotlines(activity)] == ["a", "b", "c"]

    def test_many_plotlines_mix_urgent_and_medium(self):
        activity = [
            _activity("u1", 90), _activity("u2", 80), _activity("u3", 70),
            _activity("m1", 40), _activity("low", 5),
        ]
        assert [a["name"] for a in select_balanced_plotlines(activity)] == ["u1", "u2", "m1"]

    def test_many_plotlines_filled_from_remaining(self):
        activity = [_activity("u1", 90), _activity("x", 20), _activity("y", 10), _activity("z", 5)]
        assert [a["name"] for a in select_balanced_plotlines(activity)] == ["u1", "x", "y"]

    def test_few_plotlines_urgent_first(self):
        activity = [_activity("u1", 60), _activity("m1", 30), _activity("low", 10)]
        assert [a["name"] for a in select_balanced_plotlines(activity, max_plotlines=2)] == ["u1", "m1"]

    def test_urgent_capped(self):
        activity = [_activity("u1", 90), _activity("u2", 80), _activity("u3", 70)]
        assert [a["name"] for a in select_balanced_plotlines(activity, max_plotlines=2)] == ["u1", "u2"]

    @pytest.mark.asyncio
    async def test_suggest_from_database(self, session, novel):
        await _add_chapter(session, novel.id, 1)
        await _add_plotline(session, novel.id, "주선", status="INTRODUCED", priority=5)
        await _add_plotline(session, novel.id, "완결", status="RESOLVED", priority=5)

        result = await suggest_plotline_balance(session, novel.id, 1)

        assert [r["name"] for r in result] == ["주선"]


class TestDistribution:
    @pytest.mark.asyncio
    async def test_empty_novel(self, session, novel):
        result = await analyze_plotline_distribution(session, novel.id)
        assert result["total_plotlines"] == 0
        assert result["total_developments"] == 0
        assert result["recommendations"] == []

    @pytest.mark.asyncio
    async def test_recent_window_and_metrics(self, session, novel, timestamps):
        chapters = [await _add_chapter(session, novel.id, n) for n in range(1, 7)]
        busy = await _add_plotline(session, novel.id, "주요", priority=5)
        quiet = await _add_plotline(session, novel.id, "조연", priority=1)
        # 第 1 章在最近 5 章之外
        await _add_development(session, quiet, chapters[0], "introduction", timestamps[0])
        for i, chapter in enumerate(chapters[1:5], start=1):
            await _add_development(session, busy, chapter, "advancement", timestamps[i])
        await _add_development(session, quiet, chapters[5], "advancement", timestamps[6])

        result = await analyze_plotline_distribution(session, novel.id, chapter_count=5)

        assert result["total_developments"] == 5
        assert result["average_devs_per_plotline"] == 2.5
        assert result["imbalance_score"] == 1.5
        assert result["is_balanced"] is False
        first, second = result["plotline_distribution"]
        assert (first["plotline_name"], first["development_count"], first["chapters_active"]) == ("주요", 4, 4)
        assert first["development_density"] == 0.8
        assert second["active_ratio"] == 0.2
        assert result["recommendations"] == [
            "Focus more on underdeveloped plotlines: 조연",
            "Consider reducing focus on overdeveloped plotlines: 주요",
            "These plotlines need more frequent mentions: 조연",
        ]
