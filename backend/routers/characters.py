# -*- coding: utf-8 -*-
"""角色接口。"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_async_session
from backend.routers.deps import require_novel_id
from backend.schemas.character import CharacterCreate, CharacterRead, CharacterUpdate
from backend.services import character_service

router = APIRouter(prefix="/characters", tags=["characters"])


@router.post("", status_code=201)
async def create_character(
    body: CharacterCreate,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    character = await character_service.create_character(session, body)
    return {"success": True, "character": CharacterRead.model_validate(character)}


@router.get("")
async def list_characters(
    novel_id: str = Depends(require_novel_id),
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    characters = await character_service.list_characters(session, novel_id)
    return {"success": True, "characters": [CharacterRead.model_validate(c) for c in characters]}


@router.get("/{character_id}")
async def get_character(character_id: str, session: AsyncSession = Depends(get_async_session)) -> Dict[str, Any]:
    """角色详情，附带章节引用计数。"""
    info = await character_service.get_character_with_counts(session, character_id)
    character = info.pop("character")
    return {"success": True, "character": CharacterRead.model_validate(character), "references": info}


@router.put("/{character_id}")
async def update_character(
    character_id: str,
    body: CharacterUpdate,
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, Any]:
    character = await character_service.update_character(session, character_id, body)
    return {"success": True, "character": CharacterRead.model_validate(character)}


@router.delete("/{character_id}")
async def delete_character(character_id: str, session: AsyncSession = Depends(get_async_session)) -> Dict[str, Any]:
    await character_service.delete_character(session, character_id)
    return {"success": True, "message": "Character deleted successfully"}
