# -*- coding: utf-8 -*-
"""小说与世界观 Pydantic 模式。"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class NovelCreate(BaseModel):
    """创建小说请求体。"""
    title: str = Field(..., min_length=1, max_length=255, description="书名")
    description: Optional[str] = Field(default=None, max_length=2000)
    genre: str = Field(default="FANTASY", max_length=64, description="类型，如 ROMANCE / REGRESSION")
    setting: str = Field(default="FANTASY_WORLD", max_length=64, description="背景，如 MODERN_KOREA")
    novel_outline: Optional[str] = None


class NovelRead(BaseModel):
    """小说只读视图。"""
    id: str
    title: str
    description: Optional[str] = None
    genre: str
    setting: str
    novel_outline: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WorldBuildingUpsert(BaseModel):
    """世界观设定（整体覆盖写入，未提交的字段置空）。"""
    magic_system: Optional[str] = None
    locations: Optional[str] = None
    cultures: Optional[str] = None
    timeline: Optional[str] = None
    rules: Optional[str] = None


class WorldBuildingRead(WorldBuildingUpsert):
    id: str
    novel_id: str

    model_config = {"from_attributes": True}
