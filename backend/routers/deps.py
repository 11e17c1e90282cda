# -*- coding: utf-8 -*-
"""路由公共依赖。"""
from typing import Optional

from fastapi import Query

from backend.services.consistency_service import ConsistencyChecker
from backend.services.errors import InvalidInputError
from backend.services.evolution_service import EvolutionService


def require_novel_id(novel_id: Optional[str] = Query(default=None)) -> str:
    """查询参数 novel_id 必填；缺失时返回 400 "Novel ID is required"。"""
    if not novel_id or not novel_id.strip():
        raise InvalidInputError("Novel ID is required")
    return novel_id.strip()


def get_consistency_checker() -> ConsistencyChecker:
    """默认规则集 + llm_client.generate；测试中可通过 dependency_overrides 替换。"""
    return ConsistencyChecker()


def get_evolution_service() -> EvolutionService:
    return EvolutionService()
