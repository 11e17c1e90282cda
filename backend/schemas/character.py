# -*- coding: utf-8 -*-
"""角色相关 Pydantic 校验模型：Create / Read / Update。"""
from typing import Optional

from pydantic import BaseModel, Field


# ---------- 公共字段 ----------
class CharacterBase(BaseModel):
    """角色公共字段。"""
    name: str = Field(..., min_length=1, max_length=50, description="姓名（同一本小说内唯一）")
    description: str = Field(..., min_length=1, max_length=500, description="外貌与身份")
    personality: str = Field(..., min_length=1, max_length=800, description="性格")
    background: str = Field(..., min_length=1, max_length=1000, description="背景故事")
    relationships: str = Field(default="{}", description="关系，序列化文本，如 {\"민준\": \"enemy\"}")


# ---------- Create ----------
class CharacterCreate(CharacterBase):
    """创建角色请求体（id 由服务端生成）。"""
    novel_id: str = Field(..., min_length=1)


# ---------- Read ----------
class CharacterRead(CharacterBase):
    """角色查询响应（含主键）。"""
    id: str = Field(..., description="主键 UUID")
    novel_id: str

    model_config = {"from_attributes": True}


# ---------- Update ----------
class CharacterUpdate(BaseModel):
    """更新角色请求体（全部可选，只提交要改的字段）。"""
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    personality: Optional[str] = Field(default=None, min_length=1, max_length=800)
    background: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    relationships: Optional[str] = None
