# -*- coding: utf-8 -*-
"""小说表与世界观设定表。"""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from backend.database.database import Base, utcnow


class Novel(Base):
    """小说：章节、角色、情节线、世界观均按 novel_id 隔离。"""

    __tablename__ = "novel"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False, comment="书名")
    description = Column(Text, nullable=True, comment="简介")
    genre = Column(String(64), nullable=False, default="FANTASY", comment="类型，如 ROMANCE / FANTASY / REGRESSION")
    setting = Column(String(64), nullable=False, default="FANTASY_WORLD", comment="背景，如 MODERN_KOREA / MURIM_WORLD")
    novel_outline = Column(Text, nullable=True, comment="全书大纲")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Novel(id={self.id!r}, title={self.title!r})>"


class WorldBuilding(Base):
    """
    世界观设定：每本小说至多一条。
    各字段为自由文本，能解析为 JSON 时一致性检查会按结构化规则使用。
    """

    __tablename__ = "world_building"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    novel_id = Column(
        String(36),
        ForeignKey("novel.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    magic_system = Column(Text, nullable=True, comment="力量/魔法体系，JSON 如 {requiresChanting: true}")
    locations = Column(Text, nullable=True, comment="地点，JSON 如 {地名: {rules: [...]}}")
    cultures = Column(Text, nullable=True, comment="文化")
    timeline = Column(Text, nullable=True, comment="年表")
    rules = Column(Text, nullable=True, comment="世界法则，JSON 如 {触发词: 必须出现的条件}")

    def __repr__(self) -> str:
        return f"<WorldBuilding(novel_id={self.novel_id!r})>"
