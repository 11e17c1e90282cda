# -*- coding: utf-8 -*-
"""
情节线相关 Pydantic 模式：情节线 CRUD、发展记录。
状态迁移预览/执行的结果直接以 dict 返回（含 from/to 键）。
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from backend.models.plot import DevelopmentType, PlotStatus


class PlotlineCreate(BaseModel):
    """创建情节线请求。"""
    novel_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    status: PlotStatus = PlotStatus.PLANNED
    priority: int = Field(default=1, ge=1, le=5)


class PlotlineUpdate(BaseModel):
    """更新情节线（用户手动编辑，可直接改状态）。"""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    status: Optional[PlotStatus] = None
    priority: Optional[int] = Field(default=None, ge=1, le=5)


class PlotlineRead(BaseModel):
    """情节线只读视图；status 可能是尚未迁移的遗留值，故为 str。"""
    id: str
    novel_id: str
    name: str
    description: str
    status: str
    priority: int

    model_config = {"from_attributes": True}


class DevelopmentCreate(BaseModel):
    """新增情节发展记录。"""
    chapter_id: str = Field(..., min_length=1)
    development_type: DevelopmentType
    description: str = Field(..., min_length=1)


class DevelopmentRead(BaseModel):
    id: str
    plotline_id: str
    chapter_id: str
    development_type: str
    description: str
    created_at: datetime

    model_config = {"from_attributes": True}
