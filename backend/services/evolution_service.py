# -*- coding: utf-8 -*-
"""
章节写完后的自动演化：
- 角色：根据最近的成长笔记（CharacterUsage.development_notes）请 AI 改写档案；
- 情节线：按发展记录重新推导状态（与状态迁移同一套判定）；
- 世界观：把章节新出现的地点、法则、文化、力量体系合并进已有设定。

AI 调用失败或回复无法解析时只返回 updated=False 与 error，不影响其余演化步骤。
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.chapter import Chapter
from backend.models.character import Character, CharacterUsage
from backend.models.novel import WorldBuilding
from backend.models.plot import Plotline, PlotlineDevelopment
from backend.schemas.evolution import CharacterEvolution, WorldBuildingElements
from backend.services.character_service import get_character
from backend.services.errors import NotFoundError
from backend.services.novel_service import get_novel
from backend.services.plotline_evolution import update_plotline_status
from backend.utils import llm_client

logger = logging.getLogger(__name__)

GenerateFn = Callable[..., Awaitable[str]]

EVOLUTION_MAX_RETRIES = 2
NOTE_LIMIT = 10
NOVEL_CHAPTER_LIMIT = 3
SUMMARY_CHAPTER_LIMIT = 5
EVOLVABLE_FIELDS = ("description", "personality", "background")

CHARACTER_EVOLUTION_PROMPT = """당신은 한국 웹소설 캐릭터 분석 전문가입니다.
다음 캐릭터의 발전 과정을 분석하고 업데이트된 캐릭터 프로필을 제안해주세요.

**현재 캐릭터:**
이름: {name}
설명: {description}
성격: {personality}
배경: {background}

**캐릭터 발전 기록:**
{notes}

**지시사항:**
1. 발전 기록을 바탕으로 캐릭터의 성격이나 설명이 어떻게 변화했는지 분석
2. 자연스러운 캐릭터 발전을 반영한 업데이트된 프로필 제안
3. 기존 핵심 특성은 유지하되, 성장과 변화를 적절히 반영

JSON 형식으로 응답해주세요:
```json
{{
  "shouldUpdate": true,
  "changes": [
    {{
      "field": "description" | "personality" | "background",
      "originalValue": "기존 값",
      "newValue": "새로운 값",
      "reason": "변경 이유"
    }}
  ],
  "evolutionSummary": "캐릭터 발전 요약"
}}
```
"""

_JSON_BLOCK = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)


def parse_character_evolution(response: str) -> CharacterEvolution:
    """
    解析 AI 回复：优先取 ```json 代码块，否则取第一个 { 到最后一个 } 之间的内容。
    :raises ValueError: 找不到 JSON 或结构不符
    """
    match = _JSON_BLOCK.search(response or "")
    if match:
        raw = match.group(1)
    else:
        start, end = (response or "").find("{"), (response or "").rfind("}")
        if start < 0 or end <= start:
            raise ValueError("no JSON object in evolution response")
        raw = response[start:end + 1]
    try:
        return CharacterEvolution.model_validate(json.loads(raw))
    except ValidationError as e:
        raise ValueError(f"unexpected evolution response: {e.error_count()} validation error(s)") from e


# ---------- 世界观合并 ----------

def _merge_named_items(existing: Optional[str], new_items: Sequence[str]) -> Tuple[Optional[str], List[str]]:
    """
    把新条目合并进已有设定文本，返回 (新文本或 None, 实际新增的条目)。
    已有文本是 JSON 数组时追加；是 JSON 对象时新增键（值为 null）；其他文本整体当作一个条目。
    """
    if not existing:
        container: Any = []
    else:
        try:
            container = json.loads(existing)
        except json.JSONDecodeError:
            container = [existing]
        if not isinstance(container, (list, dict)):
            container = [existing]

    added = [item for item in dict.fromkeys(new_items) if item and item not in container]
    if not added:
        return None, []
    if isinstance(container, dict):
        for item in added:
            container[item] = None
    else:
        container.extend(added)
    return json.dumps(container, ensure_ascii=False), added


def _merge_text(existing: Optional[str], addition: Optional[str]) -> Optional[str]:
    """自由文本追加；已包含时返回 None。"""
    if not addition or (existing and addition in existing):
        return None
    return f"{existing}\n\n{addition}" if existing else addition


# ---------- 演化服务 ----------

class EvolutionService:
    """自动演化；generate 为文本生成函数（默认 llm_client.generate），测试中可替换。"""

    def __init__(self, generate: Optional[GenerateFn] = None) -> None:
        self._generate = generate

    async def _call_generate(self, prompt: str) -> str:
        generate = self._generate or llm_client.generate
        return await generate(prompt, EVOLUTION_MAX_RETRIES, True)

    async def evolve_character_data(self, session: AsyncSession, character_id: str) -> Dict[str, Any]:
        """用最近 10 条成长笔记请 AI 更新角色的描述、性格或背景。"""
        character = await get_character(session, character_id)
        rows = (
            await session.execute(
                select(CharacterUsage.development_notes, Chapter.number)
                .join(Chapter, Chapter.id == CharacterUsage.chapter_id)
                .where(
                    CharacterUsage.character_id == character_id,
                    CharacterUsage.development_notes.is_not(None),
                    CharacterUsage.development_notes != "",
                )
                .order_by(CharacterUsage.created_at.desc())
                .limit(NOTE_LIMIT)
            )
        ).all()
        if not rows:
            return {"updated": False, "changes": []}

        prompt = CHARACTER_EVOLUTION_PROMPT.format(
            name=character.name,
            description=character.description,
            personality=character.personality,
            background=character.background,
            notes="\n".join(f"Chapter {number}: {notes}" for notes, number in rows),
        )
        try:
            response = await self._call_generate(prompt)
        except Exception as e:
            logger.warning("角色演化生成失败: character=%s error=%s", character_id, e)
            return {"updated": False, "changes": [], "error": str(e) or "AI evolution unavailable"}
        try:
            evolution = parse_character_evolution(response)
        except ValueError as e:
            logger.warning("角色演化回复无法解析: character=%s error=%s", character_id, e)
            return {"updated": False, "changes": [], "error": "Failed to parse character evolution response"}

        changes: List[str] = []
        if evolution.should_update:
            for change in evolution.changes:
                if change.field in EVOLVABLE_FIELDS:
                    setattr(character, change.field, change.new_value)
                    changes.append(f"{change.field}: {change.reason}")
        if not changes:
            return {"updated": False, "changes": []}

        await session.flush()
        logger.info("角色 %s 已演化: %s", character.name, changes)
        return {"updated": True, "changes": changes, "evolution_summary": evolution.evolution_summary}

    async def advance_plotline_status(self, session: AsyncSession, plotline_id: str) -> Dict[str, Any]:
        plotline = await session.get(Plotline, plotline_id)
        if plotline is None:
            raise NotFoundError("Plotline not found")
        old_status = plotline.status
        await update_plotline_status(session, plotline_id)
        return {"updated": plotline.status != old_status, "old_status": old_status, "new_status": plotline.status}

    async def merge_world_building_elements(
        self,
        session: AsyncSession,
        novel_id: str,
        elements: WorldBuildingElements,
    ) -> Dict[str, Any]:
        """把新要素合并进小说的世界观设定，不存在设定时新建。"""
        await get_novel(session, novel_id)
        world = (
            await session.execute(select(WorldBuilding).where(WorldBuilding.novel_id == novel_id))
        ).scalar_one_or_none()
        current = world or WorldBuilding(novel_id=novel_id)

        updates: Dict[str, str] = {}
        added: List[str] = []
        for field, label in (("locations", "Locations"), ("rules", "Rules")):
            items = getattr(elements, field)
            if items:
                merged, new_items = _merge_named_items(getattr(current, field), items)
                if merged is not None:
                    updates[field] = merged
                    added.append(f"{label}: {', '.join(new_items)}")
        for field, label in (("cultures", "Cultures"), ("magic_system", "Magic System")):
            addition = getattr(elements, field)
            merged = _merge_text(getattr(current, field), addition)
            if merged is not None:
                updates[field] = merged
                added.append(f"{label}: {addition}")

        if not updates:
            return {"updated": False, "elements_added": []}
        for field, value in updates.items():
            setattr(current, field, value)
        if world is None:
            session.add(current)
        await session.flush()
        logger.info("世界观已合并: novel=%s %s", novel_id, added)
        return {"updated": True, "elements_added": added}

    async def perform_post_chapter_evolution(
        self,
        session: AsyncSession,
        chapter_id: str,
        world_building_elements: Optional[WorldBuildingElements] = None,
    ) -> Dict[str, Any]:
        """章节演化：本章有成长笔记的角色、本章有发展记录的情节线，以及附带的新世界观要素。"""
        chapter = await session.get(Chapter, chapter_id)
        if chapter is None:
            raise NotFoundError("Chapter not found")

        characters = (
            await session.execute(
                select(Character)
                .join(CharacterUsage, CharacterUsage.character_id == Character.id)
                .where(
                    CharacterUsage.chapter_id == chapter_id,
                    CharacterUsage.development_notes.is_not(None),
                    CharacterUsage.development_notes != "",
                )
                .distinct()
            )
        ).scalars().all()
        characters_evolved = []
        for character in characters:
            evolution = await self.evolve_character_data(session, character.id)
            if evolution["updated"]:
                characters_evolved.append({"id": character.id, "name": character.name, "changes": evolution["changes"]})

        plotlines = (
            await session.execute(
                select(Plotline)
                .join(PlotlineDevelopment, PlotlineDevelopment.plotline_id == Plotline.id)
                .where(PlotlineDevelopment.chapter_id == chapter_id)
                .distinct()
            )
        ).scalars().all()
        plotlines_advanced = []
        for plotline in plotlines:
            advancement = await self.advance_plotline_status(session, plotline.id)
            if advancement["updated"]:
                plotlines_advanced.append({
                    "id": plotline.id,
                    "name": plotline.name,
                    "old_status": advancement["old_status"],
                    "new_status": advancement["new_status"],
                })

        world_building_updated: Dict[str, Any] = {"updated": False, "elements_added": []}
        if world_building_elements is not None:
            world_building_updated = await self.merge_world_building_elements(
                session, chapter.novel_id, world_building_elements
            )

        return {
            "characters_evolved": characters_evolved,
            "plotlines_advanced": plotlines_advanced,
            "world_building_updated": world_building_updated,
        }

    async def evolve_novel(self, session: AsyncSession, novel_id: str) -> Dict[str, Any]:
        """对最近 3 章依次执行章节演化（最新章在前）。"""
        await get_novel(session, novel_id)
        chapters = (
            await session.execute(
                select(Chapter)
                .where(Chapter.novel_id == novel_id)
                .order_by(Chapter.number.desc())
                .limit(NOVEL_CHAPTER_LIMIT)
            )
        ).scalars().all()
        results = []
        for chapter in chapters:
            results.append({
                "chapter_id": chapter.id,
                "chapter_number": chapter.number,
                "evolution": await self.perform_post_chapter_evolution(session, chapter.id),
            })
        return {"novel_id": novel_id, "chapters_processed": len(results), "evolution": results}

    async def evolution_summary(self, session: AsyncSession, novel_id: str) -> Dict[str, Any]:
        """演化概况：有成长笔记的角色、有发展记录的情节线、最近 5 章。"""
        await get_novel(session, novel_id)
        characters = []
        for character in (
            await session.execute(select(Character).where(Character.novel_id == novel_id).order_by(Character.name))
        ).scalars().all():
            notes = (
                await session.execute(
                    select(CharacterUsage.development_notes)
                    .where(
                        CharacterUsage.character_id == character.id,
                        CharacterUsage.development_notes.is_not(None),
                        CharacterUsage.development_notes != "",
                    )
                    .order_by(CharacterUsage.created_at.desc())
                )
            ).scalars().all()
            if notes:
                characters.append({
                    "id": character.id,
                    "name": character.name,
                    "last_development": notes[0],
                    "total_developments": len(notes),
                })

        plotlines = []
        for plotline in (
            await session.execute(select(Plotline).where(Plotline.novel_id == novel_id).order_by(Plotline.name))
        ).scalars().all():
            descriptions = (
                await session.execute(
                    select(PlotlineDevelopment.description)
                    .where(PlotlineDevelopment.plotline_id == plotline.id)
                    .order_by(PlotlineDevelopment.created_at.desc())
                )
            ).scalars().all()
            if descriptions:
                plotlines.append({
                    "id": plotline.id,
                    "name": plotline.name,
                    "status": plotline.status,
                    "last_development": descriptions[0],
                    "total_developments": len(descriptions),
                })

        chapters = (
            await session.execute(
                select(Chapter)
                .where(Chapter.novel_id == novel_id)
                .order_by(Chapter.number.desc())
                .limit(SUMMARY_CHAPTER_LIMIT)
            )
        ).scalars().all()
        return {
            "characters_with_development": characters,
            "plotlines_with_development": plotlines,
            "recent_chapters": [
                {"id": c.id, "number": c.number, "title": c.title, "word_count": c.word_count} for c in chapters
            ],
        }
