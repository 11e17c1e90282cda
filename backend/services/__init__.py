# -*- coding: utf-8 -*-
"""业务逻辑服务层。"""
from .errors import (
    BusinessRuleError,
    DuplicateNameError,
    GenerationError,
    InvalidInputError,
    NotFoundError,
    QuotaExceededError,
    ReferenceConflictError,
    ServiceError,
)
from .plotline_evolution import (
    LEGACY_STATUS_MAPPING,
    analyze_plotline_distribution,
    analyze_plotline_progression,
    classify_developments,
    determine_status_from_developments,
    get_plotlines_needing_attention,
    migrate_plotline_statuses,
    preview_status_migration,
    remap_legacy_status,
    suggest_plotline_balance,
    update_all_plotline_statuses,
    update_plotline_status,
)
from .consistency_rules import DEFAULT_RULES, ChapterSnapshot, run_rules
from .consistency_service import ConsistencyChecker

__all__ = [
    "BusinessRuleError",
    "DuplicateNameError",
    "GenerationError",
    "InvalidInputError",
    "NotFoundError",
    "QuotaExceededError",
    "ReferenceConflictError",
    "ServiceError",
    "LEGACY_STATUS_MAPPING",
    "analyze_plotline_distribution",
    "analyze_plotline_progression",
    "classify_developments",
    "determine_status_from_developments",
    "get_plotlines_needing_attention",
    "migrate_plotline_statuses",
    "preview_status_migration",
    "remap_legacy_status",
    "suggest_plotline_balance",
    "update_all_plotline_statuses",
    "update_plotline_status",
    "DEFAULT_RULES",
    "ChapterSnapshot",
    "run_rules",
    "ConsistencyChecker",
]
