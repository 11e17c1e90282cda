# -*- coding: utf-8 -*-
"""章节表与章节事件表。"""
import enum
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint

from backend.database.database import Base, utcnow


class EventType(str, enum.Enum):
    """章节事件类型。"""
    CHARACTER_INTRODUCTION = "CHARACTER_INTRODUCTION"
    PLOT_ADVANCEMENT = "PLOT_ADVANCEMENT"
    ROMANCE_DEVELOPMENT = "ROMANCE_DEVELOPMENT"
    CONFLICT_ESCALATION = "CONFLICT_ESCALATION"
    REVELATION = "REVELATION"
    CLIFFHANGER = "CLIFFHANGER"
    CLIFFHANGER_RESOLUTION = "CLIFFHANGER_RESOLUTION"
    CHARACTER_DEVELOPMENT = "CHARACTER_DEVELOPMENT"
    WORLD_BUILDING = "WORLD_BUILDING"
    DIALOGUE_SCENE = "DIALOGUE_SCENE"
    ACTION_SCENE = "ACTION_SCENE"
    FLASHBACK = "FLASHBACK"
    FORESHADOWING = "FORESHADOWING"
    TWIST = "TWIST"
    COMPLICATION = "COMPLICATION"
    RESOLUTION = "RESOLUTION"
    ABILITY_ACQUISITION = "ABILITY_ACQUISITION"


class Chapter(Base):
    """章节：number 在同一本小说内唯一，新章节取 max(number) + 1。"""

    __tablename__ = "chapter"
    __table_args__ = (UniqueConstraint("novel_id", "number", name="uq_chapter_novel_number"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    novel_id = Column(String(36), ForeignKey("novel.id", ondelete="CASCADE"), nullable=False, index=True)
    number = Column(Integer, nullable=False, index=True, comment="章节序号（1-based）")
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    word_count = Column(Integer, nullable=False, default=0, comment="按空白切分的词数")
    summary = Column(Text, nullable=True)
    cliffhanger = Column(Text, nullable=True, comment="章末悬念")
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Chapter(id={self.id!r}, novel_id={self.novel_id!r}, number={self.number})>"


class ChapterEvent(Base):
    """章节事件：可关联角色和/或情节线，为一致性检查与 AI 上下文提供前情。"""

    __tablename__ = "chapter_event"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    chapter_id = Column(String(36), ForeignKey("chapter.id", ondelete="RESTRICT"), nullable=False, index=True)
    character_id = Column(String(36), ForeignKey("character.id", ondelete="SET NULL"), nullable=True, index=True)
    plotline_id = Column(String(36), ForeignKey("plotline.id", ondelete="SET NULL"), nullable=True, index=True)
    event_type = Column(String(64), nullable=False, comment="EventType 取值")
    description = Column(Text, nullable=False)
    importance = Column(Integer, nullable=False, default=1)
