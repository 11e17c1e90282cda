# -*- coding: utf-8 -*-
"""
情节线服务：名称在同一本小说内唯一，优先级 1-5。
新增发展记录后立即按发展历史重新推导状态。
"""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.chapter import Chapter, ChapterEvent
from backend.models.plot import Plotline, PlotlineDevelopment
from backend.schemas.plot_schemas import DevelopmentCreate, PlotlineCreate, PlotlineUpdate
from backend.services.errors import BusinessRuleError, DuplicateNameError, NotFoundError, ReferenceConflictError
from backend.services.novel_service import get_novel
from backend.services.plotline_evolution import update_plotline_status

logger = logging.getLogger(__name__)


async def _name_taken(
    session: AsyncSession, novel_id: str, name: str, exclude_id: Optional[str] = None
) -> bool:
    stmt = select(Plotline.id).where(Plotline.novel_id == novel_id, Plotline.name == name)
    if exclude_id:
        stmt = stmt.where(Plotline.id != exclude_id)
    return (await session.execute(stmt.limit(1))).scalar_one_or_none() is not None


async def create_plotline(session: AsyncSession, data: PlotlineCreate) -> Plotline:
    await get_novel(session, data.novel_id)
    if await _name_taken(session, data.novel_id, data.name):
        raise DuplicateNameError("Plotline with this name already exists in this novel")
    plotline = Plotline(
        novel_id=data.novel_id,
        name=data.name,
        description=data.description,
        status=data.status.value,
        priority=data.priority,
    )
    session.add(plotline)
    try:
        await session.flush()
    except IntegrityError as e:
        raise DuplicateNameError("Plotline with this name already exists in this novel") from e
    logger.info("创建情节线: novel=%s name=%s", data.novel_id, data.name)
    return plotline


async def list_plotlines(session: AsyncSession, novel_id: str) -> List[Plotline]:
    result = await session.execute(
        select(Plotline)
        .where(Plotline.novel_id == novel_id)
        .order_by(Plotline.priority.desc(), Plotline.name.asc())
    )
    return list(result.scalars().all())


async def get_plotline(session: AsyncSession, plotline_id: str) -> Plotline:
    plotline = await session.get(Plotline, plotline_id)
    if plotline is None:
        raise NotFoundError("Plotline not found")
    return plotline


async def update_plotline(session: AsyncSession, plotline_id: str, data: PlotlineUpdate) -> Plotline:
    """用户手动编辑；可直接改状态（含 ABANDONED）。"""
    plotline = await get_plotline(session, plotline_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    new_name = changes.get("name")
    if new_name and new_name != plotline.name:
        if await _name_taken(session, plotline.novel_id, new_name, exclude_id=plotline.id):
            raise DuplicateNameError("A plotline with this name already exists in this novel")
    if "status" in changes:
        changes["status"] = changes["status"].value
    for key, value in changes.items():
        setattr(plotline, key, value)
    try:
        await session.flush()
    except IntegrityError as e:
        raise DuplicateNameError("A plotline with this name already exists in this novel") from e
    return plotline


async def delete_plotline(session: AsyncSession, plotline_id: str) -> None:
    """已有章节事件或发展记录的情节线不可删除，建议改为 ABANDONED。"""
    plotline = await get_plotline(session, plotline_id)
    event_count = (
        await session.execute(select(func.count(ChapterEvent.id)).where(ChapterEvent.plotline_id == plotline_id))
    ).scalar_one()
    development_count = (
        await session.execute(
            select(func.count(PlotlineDevelopment.id)).where(PlotlineDevelopment.plotline_id == plotline_id)
        )
    ).scalar_one()
    if event_count or development_count:
        raise ReferenceConflictError(
            "Cannot delete plotline with associated events.",
            details={
                "event_count": event_count,
                "development_count": development_count,
                "suggestion": "Consider changing the status to ABANDONED instead of deleting.",
            },
        )
    await session.delete(plotline)
    await session.flush()
    logger.info("删除情节线: id=%s", plotline_id)


# ---------- 发展记录 ----------

async def add_development(session: AsyncSession, plotline_id: str, data: DevelopmentCreate) -> PlotlineDevelopment:
    """追加一条发展记录并重新推导情节线状态。"""
    plotline = await get_plotline(session, plotline_id)
    chapter = await session.get(Chapter, data.chapter_id)
    if chapter is None:
        raise NotFoundError("Chapter not found")
    if chapter.novel_id != plotline.novel_id:
        raise BusinessRuleError("Chapter does not belong to the plotline's novel")
    development = PlotlineDevelopment(
        plotline_id=plotline_id,
        chapter_id=chapter.id,
        development_type=data.development_type.value,
        description=data.description,
    )
    session.add(development)
    await session.flush()
    await update_plotline_status(session, plotline_id)
    return development


async def list_developments(session: AsyncSession, plotline_id: str) -> List[PlotlineDevelopment]:
    """最新在前。"""
    await get_plotline(session, plotline_id)
    result = await session.execute(
        select(PlotlineDevelopment)
        .where(PlotlineDevelopment.plotline_id == plotline_id)
        .order_by(PlotlineDevelopment.created_at.desc())
    )
    return list(result.scalars().all())
