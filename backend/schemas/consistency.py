# -*- coding: utf-8 -*-
"""一致性检查 Pydantic 模式：问题条目、检查结果、请求体。"""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

IssueType = Literal["character", "plot", "worldbuilding", "timeline", "ai-detected"]
Severity = Literal["low", "medium", "high"]


class ConsistencyIssue(BaseModel):
    """检测到的一条叙事矛盾（不落库）。"""
    type: IssueType
    severity: Severity
    description: str
    suggestion: Optional[str] = None


class ConsistencyCheck(BaseModel):
    """单章自动检查结果。"""
    has_issues: bool = False
    issues: List[ConsistencyIssue] = Field(default_factory=list)


class ConsistencyCheckRequest(BaseModel):
    """检查请求：chapter_id 与 novel_id 至少提供一个，chapter_id 优先。"""
    chapter_id: Optional[str] = None
    novel_id: Optional[str] = None
    use_ai: bool = False

    @model_validator(mode="after")
    def _require_target(self) -> "ConsistencyCheckRequest":
        if not self.chapter_id and not self.novel_id:
            raise ValueError("Either chapter_id or novel_id must be provided")
        return self
