# -*- coding: utf-8 -*-
"""Pydantic 请求/响应模式层。"""
from .chapter import (
    ChapterCreate,
    ChapterEventCreate,
    ChapterEventRead,
    ChapterRead,
    ChapterUpdate,
    CharacterAppearanceCreate,
    CharacterUsageCreate,
)
from .character import CharacterCreate, CharacterRead, CharacterUpdate
from .consistency import ConsistencyCheck, ConsistencyCheckRequest, ConsistencyIssue
from .evolution import CharacterChange, CharacterEvolution, EvolutionRequest, WorldBuildingElements
from .novel import NovelCreate, NovelRead, WorldBuildingRead, WorldBuildingUpsert
from .plot_schemas import DevelopmentCreate, DevelopmentRead, PlotlineCreate, PlotlineRead, PlotlineUpdate

__all__ = [
    "ChapterCreate", "ChapterEventCreate", "ChapterEventRead", "ChapterRead", "ChapterUpdate",
    "CharacterAppearanceCreate", "CharacterUsageCreate",
    "CharacterCreate", "CharacterRead", "CharacterUpdate",
    "ConsistencyCheck", "ConsistencyCheckRequest", "ConsistencyIssue",
    "CharacterChange", "CharacterEvolution", "EvolutionRequest", "WorldBuildingElements",
    "NovelCreate", "NovelRead", "WorldBuildingRead", "WorldBuildingUpsert",
    "DevelopmentCreate", "DevelopmentRead", "PlotlineCreate", "PlotlineRead", "PlotlineUpdate",
]
