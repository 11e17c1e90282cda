# -*- coding: utf-8 -*-
"""
章节服务：序号按小说自增（max + 1），字数按空白切分；
章节事件、角色使用记录、出场标记的追加。
"""
from __future__ import annotations

import logging
from typing import Dict, List

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.chapter import Chapter, ChapterEvent
from backend.models.character import CharacterAppearance, CharacterUsage
from backend.models.plot import PlotlineDevelopment
from backend.schemas.chapter import (
    ChapterCreate,
    ChapterEventCreate,
    ChapterUpdate,
    CharacterAppearanceCreate,
    CharacterUsageCreate,
)
from backend.services.character_service import get_character
from backend.services.errors import BusinessRuleError, NotFoundError, ReferenceConflictError
from backend.services.novel_service import get_novel
from backend.services.plotline_service import get_plotline

logger = logging.getLogger(__name__)


def count_words(content: str) -> int:
    """按空白切分计数；空串或纯空白为 0。"""
    if not content or not content.strip():
        return 0
    return len(content.split())


async def next_chapter_number(session: AsyncSession, novel_id: str) -> int:
    result = await session.execute(select(func.max(Chapter.number)).where(Chapter.novel_id == novel_id))
    current = result.scalar_one_or_none()
    return (current or 0) + 1


async def create_chapter(session: AsyncSession, data: ChapterCreate) -> Chapter:
    await get_novel(session, data.novel_id)
    number = await next_chapter_number(session, data.novel_id)
    chapter = Chapter(
        novel_id=data.novel_id,
        number=number,
        title=data.title,
        content=data.content,
        word_count=count_words(data.content),
        summary=data.summary,
        cliffhanger=data.cliffhanger,
    )
    session.add(chapter)
    try:
        await session.flush()
    except IntegrityError as e:
        # 并发创建时两边算出同一个序号
        raise BusinessRuleError("Chapter number already taken, please retry", {"number": number}) from e
    logger.info("创建章节: novel=%s number=%d words=%d", chapter.novel_id, chapter.number, chapter.word_count)
    return chapter


async def list_chapters(session: AsyncSession, novel_id: str) -> List[Chapter]:
    result = await session.execute(
        select(Chapter).where(Chapter.novel_id == novel_id).order_by(Chapter.number.asc())
    )
    return list(result.scalars().all())


async def get_chapter(session: AsyncSession, chapter_id: str) -> Chapter:
    chapter = await session.get(Chapter, chapter_id)
    if chapter is None:
        raise NotFoundError("Chapter not found")
    return chapter


async def update_chapter(session: AsyncSession, chapter_id: str, data: ChapterUpdate) -> Chapter:
    chapter = await get_chapter(session, chapter_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("title") is None:
        changes.pop("title", None)
    if "content" in changes:
        changes["content"] = changes["content"] or ""
        changes["word_count"] = count_words(changes["content"])
    for key, value in changes.items():
        setattr(chapter, key, value)
    await session.flush()
    return chapter


async def _chapter_references(session: AsyncSession, chapter_id: str) -> Dict[str, int]:
    counts = {}
    for key, model in (
        ("event_count", ChapterEvent),
        ("development_count", PlotlineDevelopment),
        ("usage_count", CharacterUsage),
        ("appearance_count", CharacterAppearance),
    ):
        counts[key] = (
            await session.execute(select(func.count(model.id)).where(model.chapter_id == chapter_id))
        ).scalar_one()
    return counts


async def delete_chapter(session: AsyncSession, chapter_id: str) -> None:
    """仍有事件、发展记录或角色引用的章节不可删除。"""
    chapter = await get_chapter(session, chapter_id)
    counts = await _chapter_references(session, chapter_id)
    if any(counts.values()):
        raise ReferenceConflictError("Cannot delete chapter with associated events or references.", details=counts)
    await session.delete(chapter)
    await session.flush()
    logger.info("删除章节: id=%s", chapter_id)


# ---------- 章节引用 ----------

def _ensure_same_novel(chapter: Chapter, novel_id: str, what: str) -> None:
    if novel_id != chapter.novel_id:
        raise BusinessRuleError(f"{what} does not belong to the chapter's novel")


async def add_chapter_event(session: AsyncSession, chapter_id: str, data: ChapterEventCreate) -> ChapterEvent:
    chapter = await get_chapter(session, chapter_id)
    if data.character_id:
        _ensure_same_novel(chapter, (await get_character(session, data.character_id)).novel_id, "Character")
    if data.plotline_id:
        _ensure_same_novel(chapter, (await get_plotline(session, data.plotline_id)).novel_id, "Plotline")
    event = ChapterEvent(
        chapter_id=chapter_id,
        character_id=data.character_id,
        plotline_id=data.plotline_id,
        event_type=data.event_type.value,
        description=data.description,
        importance=data.importance,
    )
    session.add(event)
    await session.flush()
    return event


async def list_chapter_events(session: AsyncSession, chapter_id: str) -> List[ChapterEvent]:
    await get_chapter(session, chapter_id)
    result = await session.execute(select(ChapterEvent).where(ChapterEvent.chapter_id == chapter_id))
    return list(result.scalars().all())


async def add_character_usage(session: AsyncSession, chapter_id: str, data: CharacterUsageCreate) -> CharacterUsage:
    chapter = await get_chapter(session, chapter_id)
    character = await get_character(session, data.character_id)
    _ensure_same_novel(chapter, character.novel_id, "Character")
    usage = CharacterUsage(
        chapter_id=chapter_id,
        character_id=character.id,
        role=data.role,
        development_notes=data.development_notes,
    )
    session.add(usage)
    await session.flush()
    return usage


async def add_character_appearance(
    session: AsyncSession, chapter_id: str, data: CharacterAppearanceCreate
) -> CharacterAppearance:
    chapter = await get_chapter(session, chapter_id)
    character = await get_character(session, data.character_id)
    _ensure_same_novel(chapter, character.novel_id, "Character")
    existing = (
        await session.execute(
            select(CharacterAppearance.id).where(
                CharacterAppearance.chapter_id == chapter_id,
                CharacterAppearance.character_id == character.id,
            )
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise BusinessRuleError("Character already appears in this chapter")
    appearance = CharacterAppearance(chapter_id=chapter_id, character_id=character.id)
    session.add(appearance)
    await session.flush()
    return appearance
