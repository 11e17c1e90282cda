# -*- coding: utf-8 -*-
"""小说与世界观设定接口。"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_async_session
from backend.schemas.novel import NovelCreate, NovelRead, WorldBuildingRead, WorldBuildingUpsert
from backend.services import novel_service

router = APIRouter(prefix="/novels", tags=["novels"])


@router.post("", status_code=201)
async def create_novel(
    body: NovelCreate,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    novel = await novel_service.create_novel(session, body)
    return {"success": True, "novel": NovelRead.model_validate(novel)}


@router.get("")
async def list_novels(session: AsyncSession = Depends(get_async_session)) -> Dict[str, Any]:
    novels = await novel_service.list_novels(session)
    return {"success": True, "novels": [NovelRead.model_validate(n) for n in novels]}


@router.get("/{novel_id}")
async def get_novel(novel_id: str, session: AsyncSession = Depends(get_async_session)) -> Dict[str, Any]:
    novel = await novel_service.get_novel(session, novel_id)
    return {"success": True, "novel": NovelRead.model_validate(novel)}


@router.delete("/{novel_id}")
async def delete_novel(novel_id: str, session: AsyncSession = Depends(get_async_session)) -> Dict[str, Any]:
    await novel_service.delete_novel(session, novel_id)
    return {"success": True, "message": "Novel deleted successfully"}


@router.get("/{novel_id}/world-building")
async def get_world_building(
    novel_id: str,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    world = await novel_service.get_world_building(session, novel_id)
    return {
        "success": True,
        "world_building": WorldBuildingRead.model_validate(world) if world is not None else None,
    }


@router.put("/{novel_id}/world-building")
async def upsert_world_building(
    novel_id: str,
    body: WorldBuildingUpsert,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    """整体覆盖写入世界观设定。"""
    world = await novel_service.upsert_world_building(session, novel_id, body)
    return {"success": True, "world_building": WorldBuildingRead.model_validate(world)}
