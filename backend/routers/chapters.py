# -*- coding: utf-8 -*-
"""章节接口：章节 CRUD 及章节事件、角色引用。"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_async_session
from backend.routers.deps import require_novel_id
from backend.schemas.chapter import (
    ChapterCreate,
    ChapterEventCreate,
    ChapterEventRead,
    ChapterRead,
    ChapterUpdate,
    CharacterAppearanceCreate,
    CharacterUsageCreate,
)
from backend.services import chapter_service

router = APIRouter(prefix="/chapters", tags=["chapters"])


@router.post("", status_code=201)
async def create_chapter(
    body: ChapterCreate,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    """新章节序号为当前最大序号 + 1。"""
    chapter = await chapter_service.create_chapter(session, body)
    return {"success": True, "chapter": ChapterRead.model_validate(chapter)}


@router.get("")
async def list_chapters(
    novel_id: str = Depends(require_novel_id),
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    chapters = await chapter_service.list_chapters(session, novel_id)
    return {"success": True, "chapters": [ChapterRead.model_validate(c) for c in chapters]}


@router.get("/{chapter_id}")
async def get_chapter(chapter_id: str, session: AsyncSession = Depends(get_async_session)) -> Dict[str, Any]:
    chapter = await chapter_service.get_chapter(session, chapter_id)
    return {"success": True, "chapter": ChapterRead.model_validate(chapter)}


@router.put("/{chapter_id}")
async def update_chapter(
    chapter_id: str,
    body: ChapterUpdate,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    chapter = await chapter_service.update_chapter(session, chapter_id, body)
    return {"success": True, "chapter": ChapterRead.model_validate(chapter)}


@router.delete("/{chapter_id}")
async def delete_chapter(chapter_id: str, session: AsyncSession = Depends(get_async_session)) -> Dict[str, Any]:
    await chapter_service.delete_chapter(session, chapter_id)
    return {"success": True, "message": "Chapter deleted successfully"}


# ---------- 章节事件与角色引用 ----------

@router.post("/{chapter_id}/events", status_code=201)
async def add_chapter_event(
    chapter_id: str,
    body: ChapterEventCreate,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    event = await chapter_service.add_chapter_event(session, chapter_id, body)
    return {"success": True, "event": ChapterEventRead.model_validate(event)}


@router.get("/{chapter_id}/events")
async def list_chapter_events(chapter_id: str, session: AsyncSession = Depends(get_async_session)) -> Dict[str, Any]:
    events = await chapter_service.list_chapter_events(session, chapter_id)
    return {"success": True, "events": [ChapterEventRead.model_validate(e) for e in events]}


@router.post("/{chapter_id}/usages", status_code=201)
async def add_character_usage(
    chapter_id: str,
    body: CharacterUsageCreate,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    usage = await chapter_service.add_character_usage(session, chapter_id, body)
    return {
        "success": True,
        "usage": {"id": usage.id, "chapter_id": usage.chapter_id, "character_id": usage.character_id, "role": usage.role},
    }


@router.post("/{chapter_id}/appearances", status_code=201)
async def add_character_appearance(
    chapter_id: str,
    body: CharacterAppearanceCreate,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    appearance = await chapter_service.add_character_appearance(session, chapter_id, body)
    return {
        "success": True,
        "appearance": {
            "id": appearance.id,
            "chapter_id": appearance.chapter_id,
            "character_id": appearance.character_id,
        },
    }
