# -*- coding: utf-8 -*-
"""自动演化接口：POST 按类型执行演化，GET 返回小说的演化概况。"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_async_session
from backend.routers.deps import get_evolution_service, require_novel_id
from backend.schemas.evolution import EvolutionRequest, WorldBuildingElements
from backend.services.evolution_service import EvolutionService

router = APIRouter(prefix="/evolution", tags=["evolution"])


@router.post("")
async def run_evolution(
    body: EvolutionRequest,
    session: AsyncSession = Depends(get_async_session),
    service: EvolutionService = Depends(get_evolution_service),
) -> Dict[str, Any]:
    if body.type == "character":
        result = await service.evolve_character_data(session, body.target_id)
        return {"success": True, "type": body.type, "result": {"character_id": body.target_id, **result}}
    if body.type == "plotline":
        result = await service.advance_plotline_status(session, body.target_id)
        return {"success": True, "type": body.type, "result": {"plotline_id": body.target_id, **result}}
    if body.type == "chapter":
        evolution = await service.perform_post_chapter_evolution(
            session, body.target_id, body.world_building_elements
        )
        return {"success": True, "type": body.type, "result": {"chapter_id": body.target_id, "evolution": evolution}}
    result = await service.evolve_novel(session, body.target_id)
    return {"success": True, "type": body.type, "result": result}


@router.get("")
async def evolution_summary(
    novel_id: str = Depends(require_novel_id),
    session: AsyncSession = Depends(get_async_session),
    service: EvolutionService = Depends(get_evolution_service),
) -> Dict[str, Any]:
    summary = await service.evolution_summary(session, novel_id)
    return {"success": True, "novel_id": novel_id, "evolution_summary": summary}


@router.post("/world-building")
async def merge_world_building(
    body: WorldBuildingElements,
    novel_id: str = Depends(require_novel_id),
    session: AsyncSession = Depends(get_async_session),
    service: EvolutionService = Depends(get_evolution_service),
) -> Dict[str, Any]:
    """把新要素合并进世界观设定（已有条目不会重复添加）。"""
    result = await service.merge_world_building_elements(session, novel_id, body)
    return {"success": True, **result}
