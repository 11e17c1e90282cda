# -*- coding: utf-8 -*-
"""
一致性检查服务：组装章节快照、执行规则集、汇总小说报告，并可选调用 AI 复核。

AI 部分是尽力而为的增强：生成失败时返回带 error 字段的降级结果，
规则检查结果始终照常返回。AI 回复按关键词逐行解析，解析不出内容时标记 parse_status="unparseable"。
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.chapter import Chapter, ChapterEvent, EventType
from backend.models.character import Character
from backend.models.novel import Novel, WorldBuilding
from backend.models.plot import ACTIVE_STATUSES, Plotline
from backend.schemas.consistency import ConsistencyCheck, ConsistencyIssue
from backend.services.consistency_rules import (
    DEFAULT_RULES,
    ActivePlotline,
    ChapterSnapshot,
    CharacterProfile,
    ConsistencyRule,
    PlotAdvancement,
    WorldSnapshot,
    run_rules,
)
from backend.services.errors import NotFoundError
from backend.utils import llm_client

logger = logging.getLogger(__name__)

GenerateFn = Callable[..., Awaitable[str]]

AI_MAX_RETRIES = 2
RECENT_EVENT_LIMIT = 10
RECENT_CHAPTER_WINDOW = 5
NOVEL_CONTENT_BUDGET = 3000
CHECKS_PER_CHAPTER = 12
CATEGORY_CHECKS_PER_CHAPTER = 3
MAX_RECOMMENDATIONS = 15
MAX_INSIGHTS = 5

PARSED = "parsed"
UNPARSEABLE = "unparseable"

# ---------- Prompt ----------

CHAPTER_CHECK_PROMPT = """당신은 한국 웹소설 전문 편집자입니다. 아래 챕터의 스토리 일관성을 검증해주세요.

**검증 항목:**
1. 캐릭터 일관성 (성격, 말투, 행동 패턴)
2. 플롯 연속성 (이전 챕터와의 연결)
3. 세계관 일관성 (기존 설정과의 모순)
4. 관계 역학과 감정 흐름
5. 시간 흐름 (논리적 시간 경과)

**챕터 내용:**
{content}

**등장인물:**
{characters}

**세계관 규칙:**
{world_rules}

**최근 사건:**
{recent_events}

발견된 일관성 문제는 한 줄에 하나씩 "문제:"로 시작해 적어주세요.
마지막에 "개선 제안" 제목 아래 각 제안을 "- "로 시작하는 목록으로 적어주세요.
"""

NOVEL_CHECK_PROMPT = """한국 웹소설 "{title}" 전체 일관성을 분석해주세요.

**장르**: {genre}
**최근 5개 장 내용**:
{content}

**등장인물**:
{characters}

**주요 플롯라인**:
{plotlines}

다음 관점에서 분석해주세요:
1. 전체적인 스토리 일관성
2. 캐릭터 발전의 논리성
3. 세계관 설정의 일관성
4. 한국 웹소설 장르 특성 부합도
5. 개선 제안사항

분석 결과를 구체적으로 제시하고, 개선 제안은 "- "로 시작하는 목록으로 적어주세요.
"""

NO_WORLD_RULES = "No specific world rules defined"
NO_PREVIOUS_EVENTS = "No previous events found"

# ---------- AI 回复解析 ----------

RECOMMENDATION_CUES = ("제안", "권장", "개선", "recommend", "suggest", "improve")
ISSUE_CUES = ("문제", "오류", "불일치", "issue", "error", "inconsisten")
INSIGHT_CUES = ("분석", "평가", "특징", "analysis", "evaluat", "characteristic")


def _has_cue(line: str, cues: Sequence[str]) -> bool:
    lowered = line.lower()
    return any(cue in lowered for cue in cues)


def extract_recommendations(response: str) -> List[str]:
    """出现建议类标题（不以 "-" 开头且含关键词的行）之后，所有以 "-" 开头的行视为一条建议。"""
    recommendations = []
    in_section = False
    for line in response.splitlines():
        stripped = line.strip()
        is_bullet = stripped.startswith("-")
        if not is_bullet and _has_cue(line, RECOMMENDATION_CUES):
            in_section = True
            continue
        if in_section and is_bullet:
            item = stripped[1:].strip()
            if item:
                recommendations.append(item)
    return recommendations


def extract_issues(response: str) -> List[ConsistencyIssue]:
    """包含问题类关键词的行，各作为一条 ai-detected / medium 问题。"""
    return [
        ConsistencyIssue(type="ai-detected", severity="medium", description=line.strip())
        for line in response.splitlines()
        if line.strip() and _has_cue(line, ISSUE_CUES)
    ]


def extract_insights(response: str) -> List[str]:
    """包含分析类关键词的行，最多取 5 条。"""
    insights = [line.strip() for line in response.splitlines() if line.strip() and _has_cue(line, INSIGHT_CUES)]
    return insights[:MAX_INSIGHTS]


def _ai_failure(error: Exception, **empty: Any) -> Dict[str, Any]:
    return {
        **empty,
        "recommendations": [],
        "full_analysis": "AI analysis failed",
        "parse_status": UNPARSEABLE,
        "error": str(error) or "AI analysis unavailable",
    }


# ---------- 检查器 ----------

class ConsistencyChecker:
    """
    一致性检查器：rules 为规则集，generate 为文本生成函数（默认 llm_client.generate）。
    本身无状态，每次调用独立查询数据库。
    """

    def __init__(
        self,
        rules: Sequence[ConsistencyRule] = DEFAULT_RULES,
        generate: Optional[GenerateFn] = None,
    ) -> None:
        self.rules = tuple(rules)
        self._generate = generate

    async def _call_generate(self, prompt: str) -> str:
        generate = self._generate or llm_client.generate
        return await generate(prompt, AI_MAX_RETRIES, False)

    # ----- 快照 -----

    async def _get_chapter(self, session: AsyncSession, chapter_id: str) -> Chapter:
        chapter = await session.get(Chapter, chapter_id)
        if chapter is None:
            raise NotFoundError("Chapter not found")
        return chapter

    async def _count_plotline_events(
        self,
        session: AsyncSession,
        novel_id: str,
        plotline_id: str,
        first_number: int,
        last_number: int,
    ) -> int:
        result = await session.execute(
            select(func.count(ChapterEvent.id))
            .join(Chapter, Chapter.id == ChapterEvent.chapter_id)
            .where(
                ChapterEvent.plotline_id == plotline_id,
                Chapter.novel_id == novel_id,
                Chapter.number >= first_number,
                Chapter.number <= last_number,
            )
        )
        return result.scalar_one()

    async def build_snapshot(self, session: AsyncSession, chapter: Chapter) -> ChapterSnapshot:
        """从数据库组装规则检查所需的章节快照。"""
        characters = (
            await session.execute(select(Character).where(Character.novel_id == chapter.novel_id))
        ).scalars().all()
        world = (
            await session.execute(select(WorldBuilding).where(WorldBuilding.novel_id == chapter.novel_id))
        ).scalar_one_or_none()

        advancement_rows = (
            await session.execute(
                select(ChapterEvent, Plotline)
                .join(Plotline, Plotline.id == ChapterEvent.plotline_id)
                .where(
                    ChapterEvent.chapter_id == chapter.id,
                    ChapterEvent.event_type == EventType.PLOT_ADVANCEMENT.value,
                )
            )
        ).all()
        advancements = []
        for event, plotline in advancement_rows:
            prior = await self._count_plotline_events(
                session, chapter.novel_id, plotline.id, 1, chapter.number - 1
            )
            advancements.append(
                PlotAdvancement(plotline_name=plotline.name, description=event.description, prior_event_count=prior)
            )

        active = (
            await session.execute(
                select(Plotline).where(
                    Plotline.novel_id == chapter.novel_id,
                    Plotline.status.in_(ACTIVE_STATUSES),
                )
            )
        ).scalars().all()
        active_plotlines = []
        for plotline in active:
            recent = await self._count_plotline_events(
                session, chapter.novel_id, plotline.id, chapter.number - RECENT_CHAPTER_WINDOW, chapter.number
            )
            active_plotlines.append(
                ActivePlotline(name=plotline.name, priority=plotline.priority, recent_mentions=recent)
            )

        return ChapterSnapshot(
            content=chapter.content or "",
            number=chapter.number,
            characters=tuple(
                CharacterProfile(
                    name=c.name,
                    personality=c.personality or "",
                    description=c.description or "",
                    relationships=c.relationships or "{}",
                )
                for c in characters
            ),
            world=WorldSnapshot(rules=world.rules, magic_system=world.magic_system, locations=world.locations)
            if world is not None
            else None,
            plot_advancements=tuple(advancements),
            active_plotlines=tuple(active_plotlines),
        )

    # ----- 规则检查 -----

    async def check_chapter_consistency(self, session: AsyncSession, chapter_id: str) -> ConsistencyCheck:
        chapter = await self._get_chapter(session, chapter_id)
        snapshot = await self.build_snapshot(session, chapter)
        return run_rules(snapshot, self.rules)

    async def generate_consistency_report(self, session: AsyncSession, novel_id: str) -> Dict[str, Any]:
        """
        小说级报告：逐章执行规则检查并汇总。
        总分 = (章数*12 - 问题数) / (章数*12) * 100，分类分以章数*3 为满额；没有章节时均为 100。
        """
        chapters = (
            await session.execute(
                select(Chapter).where(Chapter.novel_id == novel_id).order_by(Chapter.number.asc())
            )
        ).scalars().all()

        total_issues = 0
        issues_summary: Dict[str, int] = {}
        recommendations: List[str] = []
        category_issues = {"character": 0, "plot": 0, "worldbuilding": 0, "timeline": 0}

        for chapter in chapters:
            check = run_rules(await self.build_snapshot(session, chapter), self.rules)
            total_issues += len(check.issues)
            for issue in check.issues:
                issues_summary[issue.type] = issues_summary.get(issue.type, 0) + 1
                if issue.type in category_issues:
                    category_issues[issue.type] += 1
                if issue.suggestion and issue.suggestion not in recommendations:
                    recommendations.append(issue.suggestion)

        def score(issues: int, checks: int) -> int:
            if checks == 0:
                return 100
            return round(max(0.0, min(100.0, (checks - issues) / checks * 100)))

        category_checks = len(chapters) * CATEGORY_CHECKS_PER_CHAPTER
        logger.info("一致性报告: novel=%s chapters=%d issues=%d", novel_id, len(chapters), total_issues)
        return {
            "overall_consistency": score(total_issues, len(chapters) * CHECKS_PER_CHAPTER),
            "issues_summary": issues_summary,
            "recommendations": recommendations[:MAX_RECOMMENDATIONS],
            "detailed_analysis": {
                "character_consistency": score(category_issues["character"], category_checks),
                "plot_consistency": score(category_issues["plot"], category_checks),
                "world_building_consistency": score(category_issues["worldbuilding"], category_checks),
                "timeline_consistency": score(category_issues["timeline"], category_checks),
            },
        }

    # ----- AI 复核 -----

    async def get_recent_events_for_chapter(self, session: AsyncSession, chapter: Chapter) -> List[str]:
        """同一小说中序号不大于当前章的最近 10 条章节事件，按章节序号倒序。"""
        rows = (
            await session.execute(
                select(ChapterEvent, Character.name)
                .join(Chapter, Chapter.id == ChapterEvent.chapter_id)
                .outerjoin(Character, Character.id == ChapterEvent.character_id)
                .where(Chapter.novel_id == chapter.novel_id, Chapter.number <= chapter.number)
                .order_by(Chapter.number.desc())
                .limit(RECENT_EVENT_LIMIT)
            )
        ).all()
        lines = []
        for event, character_name in rows:
            line = f"{event.event_type}: {event.description}"
            if character_name:
                line += f" ({character_name})"
            lines.append(line)
        return lines

    async def perform_ai_chapter_check(self, session: AsyncSession, chapter: Chapter) -> Dict[str, Any]:
        try:
            characters = (
                await session.execute(select(Character).where(Character.novel_id == chapter.novel_id))
            ).scalars().all()
            world = (
                await session.execute(select(WorldBuilding).where(WorldBuilding.novel_id == chapter.novel_id))
            ).scalar_one_or_none()
            events = await self.get_recent_events_for_chapter(session, chapter)
            prompt = CHAPTER_CHECK_PROMPT.format(
                content=chapter.content or "",
                characters="\n".join(f"{c.name}: {c.personality} - {c.description}" for c in characters),
                world_rules=(world.rules if world is not None and world.rules else NO_WORLD_RULES),
                recent_events="\n".join(events) or NO_PREVIOUS_EVENTS,
            )
            response = await self._call_generate(prompt)
        except Exception as e:
            logger.warning("AI 章节一致性检查失败: chapter=%s error=%s", chapter.id, e)
            return _ai_failure(e, has_issues=False, issues=[])

        issues = extract_issues(response)
        recommendations = extract_recommendations(response)
        parse_status = PARSED if issues or recommendations else UNPARSEABLE
        if parse_status == UNPARSEABLE:
            logger.info("AI 回复未能解析出问题或建议: chapter=%s", chapter.id)
        return {
            "has_issues": bool(issues),
            "issues": [issue.model_dump() for issue in issues],
            "recommendations": recommendations,
            "full_analysis": response,
            "parse_status": parse_status,
        }

    async def perform_ai_novel_check(
        self,
        novel: Novel,
        chapters: Sequence[Chapter],
        characters: Sequence[Character],
        plotlines: Sequence[Plotline],
    ) -> Dict[str, Any]:
        """取序号最大的 5 章，按先后顺序拼接并截断到 3000 字，请求整体分析。"""
        recent = sorted(chapters, key=lambda c: c.number, reverse=True)[:RECENT_CHAPTER_WINDOW]
        combined = "\n\n".join(c.content or "" for c in reversed(recent))
        try:
            prompt = NOVEL_CHECK_PROMPT.format(
                title=novel.title,
                genre=novel.genre,
                content=combined[:NOVEL_CONTENT_BUDGET] + "...",
                characters="\n".join(f"{c.name}: {c.personality}" for c in characters),
                plotlines="\n".join(f"{p.name}: {p.description} ({p.status})" for p in plotlines),
            )
            response = await self._call_generate(prompt)
        except Exception as e:
            logger.warning("AI 小说一致性检查失败: novel=%s error=%s", novel.id, e)
            return _ai_failure(e, insights=[])

        insights = extract_insights(response)
        recommendations = extract_recommendations(response)
        return {
            "insights": insights,
            "recommendations": recommendations,
            "full_analysis": response,
            "parse_status": PARSED if insights or recommendations else UNPARSEABLE,
        }

    # ----- 对外入口 -----

    async def check_chapter(self, session: AsyncSession, chapter_id: str, use_ai: bool = False) -> Dict[str, Any]:
        """单章检查：规则结果 + 可选 AI 结果 + 汇总。"""
        chapter = await self._get_chapter(session, chapter_id)
        automated = run_rules(await self.build_snapshot(session, chapter), self.rules)
        ai = await self.perform_ai_chapter_check(session, chapter) if use_ai else None

        recommendations = [i.suggestion for i in automated.issues if i.suggestion]
        if ai:
            recommendations.extend(ai["recommendations"])
        return {
            "automated": automated.model_dump(),
            "ai": ai,
            "summary": {
                "total_issues": len(automated.issues) + (len(ai["issues"]) if ai else 0),
                "has_issues": automated.has_issues or bool(ai and ai["has_issues"]),
                "recommendations": recommendations,
            },
        }

    async def check_novel(self, session: AsyncSession, novel_id: str, use_ai: bool = False) -> Dict[str, Any]:
        """全书检查：一致性报告 + 可选 AI 整体分析 + 汇总。"""
        novel = await session.get(Novel, novel_id)
        if novel is None:
            raise NotFoundError("Novel not found")
        report = await self.generate_consistency_report(session, novel_id)

        ai = None
        if use_ai:
            chapters = (
                await session.execute(select(Chapter).where(Chapter.novel_id == novel_id))
            ).scalars().all()
            characters = (
                await session.execute(select(Character).where(Character.novel_id == novel_id))
            ).scalars().all()
            plotlines = (
                await session.execute(select(Plotline).where(Plotline.novel_id == novel_id))
            ).scalars().all()
            ai = await self.perform_ai_novel_check(novel, chapters, characters, plotlines)

        return {
            "automated": report,
            "ai": ai,
            "summary": {
                "overall_score": report["overall_consistency"],
                "total_issues": sum(report["issues_summary"].values()),
                "recommendations": report["recommendations"],
                "ai_insights": ai["insights"] if ai else [],
            },
        }
