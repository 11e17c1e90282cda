# -*- coding: utf-8 -*-
"""
角色服务：姓名在同一本小说内唯一；
存在任何章节引用（使用记录或出场标记）的角色不可删除。
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.character import Character, CharacterAppearance, CharacterUsage
from backend.schemas.character import CharacterCreate, CharacterUpdate
from backend.services.errors import DuplicateNameError, NotFoundError, ReferenceConflictError
from backend.services.novel_service import get_novel

logger = logging.getLogger(__name__)


async def _name_taken(
    session: AsyncSession, novel_id: str, name: str, exclude_id: Optional[str] = None
) -> bool:
    stmt = select(Character.id).where(Character.novel_id == novel_id, Character.name == name)
    if exclude_id:
        stmt = stmt.where(Character.id != exclude_id)
    return (await session.execute(stmt.limit(1))).scalar_one_or_none() is not None


async def reference_counts(session: AsyncSession, character_id: str) -> Dict[str, int]:
    """角色被章节引用的次数：usage_count / appearance_count / total_references。"""
    usage_count = (
        await session.execute(
            select(func.count(CharacterUsage.id)).where(CharacterUsage.character_id == character_id)
        )
    ).scalar_one()
    appearance_count = (
        await session.execute(
            select(func.count(CharacterAppearance.id)).where(CharacterAppearance.character_id == character_id)
        )
    ).scalar_one()
    return {
        "usage_count": usage_count,
        "appearance_count": appearance_count,
        "total_references": usage_count + appearance_count,
    }


async def create_character(session: AsyncSession, data: CharacterCreate) -> Character:
    await get_novel(session, data.novel_id)
    if await _name_taken(session, data.novel_id, data.name):
        raise DuplicateNameError("Character with this name already exists in this novel")
    character = Character(**data.model_dump())
    session.add(character)
    try:
        await session.flush()
    except IntegrityError as e:
        raise DuplicateNameError("Character with this name already exists in this novel") from e
    logger.info("创建角色: novel=%s name=%s", data.novel_id, data.name)
    return character


async def list_characters(session: AsyncSession, novel_id: str) -> List[Character]:
    result = await session.execute(
        select(Character).where(Character.novel_id == novel_id).order_by(Character.name.asc())
    )
    return list(result.scalars().all())


async def get_character(session: AsyncSession, character_id: str) -> Character:
    character = await session.get(Character, character_id)
    if character is None:
        raise NotFoundError("Character not found")
    return character


async def get_character_with_counts(session: AsyncSession, character_id: str) -> Dict[str, Any]:
    character = await get_character(session, character_id)
    return {"character": character, **await reference_counts(session, character_id)}


async def update_character(session: AsyncSession, character_id: str, data: CharacterUpdate) -> Character:
    character = await get_character(session, character_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    new_name = changes.get("name")
    if new_name and new_name != character.name:
        if await _name_taken(session, character.novel_id, new_name, exclude_id=character.id):
            raise DuplicateNameError("A character with this name already exists in this novel")
    for key, value in changes.items():
        setattr(character, key, value)
    try:
        await session.flush()
    except IntegrityError as e:
        raise DuplicateNameError("A character with this name already exists in this novel") from e
    return character


async def delete_character(session: AsyncSession, character_id: str) -> None:
    character = await get_character(session, character_id)
    counts = await reference_counts(session, character_id)
    if counts["total_references"] > 0:
        raise ReferenceConflictError(
            "Cannot delete character with associated chapter references. "
            "Please remove character from all chapters first.",
            details=counts,
        )
    await session.delete(character)
    await session.flush()
    logger.info("删除角色: id=%s", character_id)
