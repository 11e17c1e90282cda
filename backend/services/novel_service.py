# -*- coding: utf-8 -*-
"""小说与世界观设定的增删查；只 flush，由调用方（请求会话/CLI）提交。"""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.chapter import Chapter
from backend.models.character import Character
from backend.models.novel import Novel, WorldBuilding
from backend.models.plot import Plotline
from backend.schemas.novel import NovelCreate, WorldBuildingUpsert
from backend.services.errors import NotFoundError, ReferenceConflictError

logger = logging.getLogger(__name__)


async def create_novel(session: AsyncSession, data: NovelCreate) -> Novel:
    novel = Novel(**data.model_dump())
    session.add(novel)
    await session.flush()
    logger.info("创建小说: id=%s title=%s", novel.id, novel.title)
    return novel


async def get_novel(session: AsyncSession, novel_id: str) -> Novel:
    novel = await session.get(Novel, novel_id)
    if novel is None:
        raise NotFoundError("Novel not found")
    return novel


async def list_novels(session: AsyncSession) -> List[Novel]:
    result = await session.execute(select(Novel).order_by(Novel.created_at.desc()))
    return list(result.scalars().all())


async def delete_novel(session: AsyncSession, novel_id: str) -> None:
    """仅允许删除没有章节的小说；其角色、情节线与世界观一并删除。"""
    novel = await get_novel(session, novel_id)
    chapter_count = (
        await session.execute(select(func.count(Chapter.id)).where(Chapter.novel_id == novel_id))
    ).scalar_one()
    if chapter_count:
        raise ReferenceConflictError(
            "Cannot delete novel with existing chapters. Please delete its chapters first.",
            details={"chapter_count": chapter_count},
        )
    for model in (WorldBuilding, Character, Plotline):
        await session.execute(delete(model).where(model.novel_id == novel_id))
    await session.delete(novel)
    await session.flush()
    logger.info("删除小说: id=%s", novel_id)


# ---------- 世界观 ----------

async def get_world_building(session: AsyncSession, novel_id: str) -> Optional[WorldBuilding]:
    await get_novel(session, novel_id)
    result = await session.execute(select(WorldBuilding).where(WorldBuilding.novel_id == novel_id))
    return result.scalar_one_or_none()


async def upsert_world_building(session: AsyncSession, novel_id: str, data: WorldBuildingUpsert) -> WorldBuilding:
    """每本小说一条世界观设定：存在则整体覆盖，不存在则新建。"""
    world = await get_world_building(session, novel_id)
    if world is None:
        world = WorldBuilding(novel_id=novel_id, **data.model_dump())
        session.add(world)
    else:
        for key, value in data.model_dump().items():
            setattr(world, key, value)
    await session.flush()
    return world
