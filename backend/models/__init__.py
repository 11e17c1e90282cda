# -*- coding: utf-8 -*-
"""SQLAlchemy ORM 模型层。"""
from .chapter import Chapter, ChapterEvent, EventType
from .character import Character, CharacterAppearance, CharacterUsage
from .novel import Novel, WorldBuilding
from .plot import ACTIVE_STATUSES, DevelopmentType, PlotStatus, Plotline, PlotlineDevelopment

__all__ = [
    "ACTIVE_STATUSES",
    "Chapter",
    "ChapterEvent",
    "Character",
    "CharacterAppearance",
    "CharacterUsage",
    "DevelopmentType",
    "EventType",
    "Novel",
    "PlotStatus",
    "Plotline",
    "PlotlineDevelopment",
    "WorldBuilding",
]
