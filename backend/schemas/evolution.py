# -*- coding: utf-8 -*-
"""自动演化 Pydantic 模式：AI 给出的角色变更、新世界观要素、演化请求体。"""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class CharacterChange(BaseModel):
    """AI 建议的一处角色档案修改。"""
    field: str
    original_value: str = Field(default="", alias="originalValue")
    new_value: str = Field(..., alias="newValue")
    reason: str = ""

    model_config = {"populate_by_name": True}


class CharacterEvolution(BaseModel):
    """AI 角色演化回复（JSON）。"""
    should_update: bool = Field(default=False, alias="shouldUpdate")
    changes: List[CharacterChange] = Field(default_factory=list)
    evolution_summary: str = Field(default="", alias="evolutionSummary")

    model_config = {"populate_by_name": True}


class WorldBuildingElements(BaseModel):
    """章节中新出现的世界观要素，合并进已有设定。"""
    locations: Optional[List[str]] = None
    rules: Optional[List[str]] = None
    cultures: Optional[str] = None
    magic_system: Optional[str] = None


class EvolutionRequest(BaseModel):
    """
    演化请求：
    - character / plotline：target_id 为角色或情节线；
    - chapter：target_id 为章节，可附带该章的新世界观要素；
    - novel：target_id 为小说，对最近 3 章依次执行章节演化。
    """
    type: Literal["character", "plotline", "chapter", "novel"]
    target_id: str = Field(..., min_length=1)
    world_building_elements: Optional[WorldBuildingElements] = None
