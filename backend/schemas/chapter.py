# -*- coding: utf-8 -*-
"""章节、章节事件与角色引用的 Pydantic 模式。"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from backend.models.chapter import EventType


class ChapterCreate(BaseModel):
    """创建章节请求体：序号与字数由服务端计算。"""
    novel_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=80)
    content: str = Field(default="")
    cliffhanger: Optional[str] = Field(default=None, max_length=200)
    summary: Optional[str] = None


class ChapterUpdate(BaseModel):
    """更新章节；修改 content 时重新计算字数。"""
    title: Optional[str] = Field(default=None, min_length=1, max_length=80)
    content: Optional[str] = None
    cliffhanger: Optional[str] = Field(default=None, max_length=200)
    summary: Optional[str] = None


class ChapterRead(BaseModel):
    """章节只读视图。"""
    id: str
    novel_id: str
    number: int
    title: str
    content: str
    word_count: int
    summary: Optional[str] = None
    cliffhanger: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ChapterEventCreate(BaseModel):
    """章节事件：可选关联角色与情节线。"""
    event_type: EventType
    description: str = Field(..., min_length=1)
    character_id: Optional[str] = None
    plotline_id: Optional[str] = None
    importance: int = Field(default=1, ge=1, le=5)


class ChapterEventRead(BaseModel):
    id: str
    chapter_id: str
    character_id: Optional[str] = None
    plotline_id: Optional[str] = None
    event_type: str
    description: str
    importance: int

    model_config = {"from_attributes": True}


class CharacterUsageCreate(BaseModel):
    """角色使用记录。"""
    character_id: str = Field(..., min_length=1)
    role: str = Field(default="supporting", max_length=64)
    development_notes: Optional[str] = None


class CharacterAppearanceCreate(BaseModel):
    """角色出场标记。"""
    character_id: str = Field(..., min_length=1)
