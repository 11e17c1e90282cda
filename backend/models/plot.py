# -*- coding: utf-8 -*-
"""
情节线与情节发展记录。
情节线状态由发展记录推导（见 services.plotline_evolution），发展记录只追加、不修改。
"""
import enum
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint

from backend.database.database import Base, utcnow


class PlotStatus(str, enum.Enum):
    """情节线状态。"""
    PLANNED = "PLANNED"
    INTRODUCED = "INTRODUCED"
    DEVELOPING = "DEVELOPING"
    COMPLICATED = "COMPLICATED"
    CLIMAXING = "CLIMAXING"
    RESOLVED = "RESOLVED"
    ABANDONED = "ABANDONED"


# 仍在推进中的状态：一致性检查与关注度排序只看这些
ACTIVE_STATUSES = (
    PlotStatus.INTRODUCED.value,
    PlotStatus.DEVELOPING.value,
    PlotStatus.COMPLICATED.value,
    PlotStatus.CLIMAXING.value,
)


class DevelopmentType(str, enum.Enum):
    """情节发展类型。"""
    introduction = "introduction"
    advancement = "advancement"
    complication = "complication"
    resolution = "resolution"


class Plotline(Base):
    """
    情节线：名称在同一本小说内唯一。
    status 以普通字符串存储，旧版本数据可能残留 ACTIVE 等遗留值，由状态迁移统一改写。
    """

    __tablename__ = "plotline"
    __table_args__ = (UniqueConstraint("novel_id", "name", name="uq_plotline_novel_name"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    novel_id = Column(String(36), ForeignKey("novel.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(32), nullable=False, default=PlotStatus.PLANNED.value, index=True)
    priority = Column(Integer, nullable=False, default=1, comment="优先级 1-5")

    def __repr__(self) -> str:
        return f"<Plotline(id={self.id!r}, name={self.name!r}, status={self.status!r})>"


class PlotlineDevelopment(Base):
    """情节发展记录：某章对某条情节线的一次推进。"""

    __tablename__ = "plotline_development"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    plotline_id = Column(String(36), ForeignKey("plotline.id", ondelete="RESTRICT"), nullable=False, index=True)
    chapter_id = Column(String(36), ForeignKey("chapter.id", ondelete="RESTRICT"), nullable=False, index=True)
    development_type = Column(String(32), nullable=False, comment="DevelopmentType 取值")
    description = Column(Text, nullable=False, default="")
    created_at = Column(
        DateTime,
        nullable=False,
        default=utcnow,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<PlotlineDevelopment(plotline_id={self.plotline_id!r}, type={self.development_type!r})>"
