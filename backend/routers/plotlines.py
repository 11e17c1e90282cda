# -*- coding: utf-8 -*-
"""
情节线接口：CRUD、发展记录、状态迁移（GET 预览 / POST 执行）、进展分析、关注度排序与均衡分析。
固定路径（migrate-status、attention、balance、distribution）须在 /{plotline_id} 之前注册。
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_async_session
from backend.routers.deps import require_novel_id
from backend.schemas.plot_schemas import (
    DevelopmentCreate,
    DevelopmentRead,
    PlotlineCreate,
    PlotlineRead,
    PlotlineUpdate,
)
from backend.services import plotline_evolution, plotline_service

router = APIRouter(prefix="/plotlines", tags=["plotlines"])


@router.post("", status_code=201)
async def create_plotline(
    body: PlotlineCreate,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    plotline = await plotline_service.create_plotline(session, body)
    return {"success": True, "plotline": PlotlineRead.model_validate(plotline)}


@router.get("")
async def list_plotlines(
    novel_id: str = Depends(require_novel_id),
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    plotlines = await plotline_service.list_plotlines(session, novel_id)
    return {"success": True, "plotlines": [PlotlineRead.model_validate(p) for p in plotlines]}


# ---------- 状态迁移 ----------

@router.get("/migrate-status")
async def preview_migration(
    novel_id: str = Depends(require_novel_id),
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    """预览：只读，列出每条情节线将发生的变化。"""
    preview = await plotline_evolution.preview_status_migration(session, novel_id)
    return {"success": True, **preview}


@router.post("/migrate-status")
async def run_migration(
    novel_id: str = Depends(require_novel_id),
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    """执行迁移：遗留枚举映射 + 按发展记录重推状态，可重复执行。"""
    results = await plotline_evolution.migrate_plotline_statuses(session, novel_id)
    return {"success": True, "message": "Plotline status migration completed", **results}


@router.get("/attention")
async def plotlines_needing_attention(
    novel_id: str = Depends(require_novel_id),
    chapter_number: Optional[int] = Query(default=None, ge=1),
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    """按紧迫度排序的推进中情节线；未给 chapter_number 时以最新章节为准。"""
    if chapter_number is None:
        chapter_number = await plotline_evolution.latest_chapter_number(session, novel_id)
    plotlines = await plotline_evolution.get_plotlines_needing_attention(session, novel_id, chapter_number)
    return {"success": True, "chapter_number": chapter_number, "plotlines": plotlines}


@router.get("/balance")
async def plotline_balance(
    novel_id: str = Depends(require_novel_id),
    chapter_number: Optional[int] = Query(default=None, ge=1),
    max_plotlines: int = Query(default=3, ge=1, le=10),
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    """下一章建议照顾的情节线。"""
    if chapter_number is None:
        chapter_number = await plotline_evolution.latest_chapter_number(session, novel_id)
    plotlines = await plotline_evolution.suggest_plotline_balance(session, novel_id, chapter_number, max_plotlines)
    return {"success": True, "chapter_number": chapter_number, "plotlines": plotlines}


@router.get("/distribution")
async def plotline_distribution(
    novel_id: str = Depends(require_novel_id),
    chapter_count: int = Query(default=5, ge=1, le=50),
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    analysis = await plotline_evolution.analyze_plotline_distribution(session, novel_id, chapter_count)
    return {"success": True, "distribution": analysis}


# ---------- 单条情节线 ----------

@router.get("/{plotline_id}")
async def get_plotline(plotline_id: str, session: AsyncSession = Depends(get_async_session)) -> Dict[str, Any]:
    plotline = await plotline_service.get_plotline(session, plotline_id)
    return {"success": True, "plotline": PlotlineRead.model_validate(plotline)}


@router.put("/{plotline_id}")
async def update_plotline(
    plotline_id: str,
    body: PlotlineUpdate,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    plotline = await plotline_service.update_plotline(session, plotline_id, body)
    return {"success": True, "plotline": PlotlineRead.model_validate(plotline)}


@router.delete("/{plotline_id}")
async def delete_plotline(plotline_id: str, session: AsyncSession = Depends(get_async_session)) -> Dict[str, Any]:
    await plotline_service.delete_plotline(session, plotline_id)
    return {"success": True, "message": "Plotline deleted successfully"}


@router.post("/{plotline_id}/developments", status_code=201)
async def add_development(
    plotline_id: str,
    body: DevelopmentCreate,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    """追加发展记录，返回记录与重新推导后的情节线。"""
    development = await plotline_service.add_development(session, plotline_id, body)
    plotline = await plotline_service.get_plotline(session, plotline_id)
    return {
        "success": True,
        "development": DevelopmentRead.model_validate(development),
        "plotline": PlotlineRead.model_validate(plotline),
    }


@router.get("/{plotline_id}/developments")
async def list_developments(plotline_id: str, session: AsyncSession = Depends(get_async_session)) -> Dict[str, Any]:
    developments = await plotline_service.list_developments(session, plotline_id)
    return {"success": True, "developments": [DevelopmentRead.model_validate(d) for d in developments]}


@router.get("/{plotline_id}/progression")
async def plotline_progression(plotline_id: str, session: AsyncSession = Depends(get_async_session)) -> Dict[str, Any]:
    analysis = await plotline_evolution.analyze_plotline_progression(session, plotline_id)
    return {"success": True, "progression": analysis}
