# -*- coding: utf-8 -*-
"""角色表与章节对角色的两类引用：使用记录（usage）与出场标记（appearance）。"""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint

from backend.database.database import Base, utcnow


class Character(Base):
    """角色档案：姓名在同一本小说内唯一。"""

    __tablename__ = "character"
    __table_args__ = (UniqueConstraint("novel_id", "name", name="uq_character_novel_name"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    novel_id = Column(String(36), ForeignKey("novel.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True, comment="姓名")
    description = Column(Text, nullable=False, default="", comment="外貌与身份描述")
    personality = Column(Text, nullable=False, default="", comment="性格")
    background = Column(Text, nullable=False, default="", comment="背景故事")
    relationships = Column(Text, nullable=False, default="{}", comment="关系，序列化文本，通常为 JSON {角色名: 关系类型}")

    def __repr__(self) -> str:
        return f"<Character(id={self.id!r}, name={self.name!r})>"


class CharacterUsage(Base):
    """角色使用记录：某章中角色承担的作用与成长笔记（事件日志型引用）。"""

    __tablename__ = "character_usage"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    chapter_id = Column(String(36), ForeignKey("chapter.id", ondelete="RESTRICT"), nullable=False, index=True)
    character_id = Column(String(36), ForeignKey("character.id", ondelete="RESTRICT"), nullable=False, index=True)
    role = Column(String(64), nullable=False, default="supporting", comment="本章作用，如 protagonist / supporting")
    development_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class CharacterAppearance(Base):
    """角色出场标记：仅表示角色出现在某章。"""

    __tablename__ = "character_appearance"
    __table_args__ = (UniqueConstraint("chapter_id", "character_id", name="uq_appearance_chapter_character"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    chapter_id = Column(String(36), ForeignKey("chapter.id", ondelete="RESTRICT"), nullable=False, index=True)
    character_id = Column(String(36), ForeignKey("character.id", ondelete="RESTRICT"), nullable=False, index=True)
