# -*- coding: utf-8 -*-
"""一致性检查接口：chapter_id 优先，否则检查整本小说；use_ai 时追加 AI 复核。"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_async_session
from backend.routers.deps import get_consistency_checker
from backend.schemas.consistency import ConsistencyCheckRequest
from backend.services.consistency_service import ConsistencyChecker

router = APIRouter(prefix="/consistency", tags=["consistency"])


@router.post("/check")
async def check_consistency(
    body: ConsistencyCheckRequest,
    session: AsyncSession = Depends(get_async_session),
    checker: ConsistencyChecker = Depends(get_consistency_checker),
) -> Dict[str, Any]:
    """AI 复核失败不会导致请求失败，错误写在 ai.error 中。"""
    if body.chapter_id:
        result = await checker.check_chapter(session, body.chapter_id, use_ai=body.use_ai)
        return {"success": True, "chapter_consistency": result}
    result = await checker.check_novel(session, body.novel_id, use_ai=body.use_ai)
    return {"success": True, "novel_consistency": result}
