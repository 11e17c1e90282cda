# -*- coding: utf-8 -*-
"""
情节线状态演化：由发展记录推导情节线状态，并批量迁移旧状态值。

- 状态判定（determine_status_from_developments）是纯函数，输入必须按时间倒序（最新在前）；
- 状态迁移分两步：遗留枚举映射 → 按发展记录重新推导，两步均幂等；
- 预览模式只读，返回每条情节线将发生的变化与完整发展历史；
- 另有关注度排序、均衡建议与近期发展分布分析，供下一章选题参考。
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.chapter import Chapter, ChapterEvent
from backend.models.plot import (
    ACTIVE_STATUSES,
    DevelopmentType,
    PlotStatus,
    Plotline,
    PlotlineDevelopment,
)
from backend.services.errors import NotFoundError

logger = logging.getLogger(__name__)


# ---------- 遗留状态映射 ----------

# 旧版本只有 ACTIVE/PLANNED/RESOLVED/ABANDONED；现行状态映射到自身
LEGACY_STATUS_MAPPING: Dict[str, str] = {
    "ACTIVE": PlotStatus.DEVELOPING.value,
    **{status.value: status.value for status in PlotStatus},
}


def remap_legacy_status(raw_status: str) -> str:
    """遗留状态名 -> 现行状态名；无法识别的值原样返回。"""
    return LEGACY_STATUS_MAPPING.get(raw_status, raw_status)


# ---------- 状态判定 ----------

def _count_advancements(types: Sequence[str]) -> PlotStatus:
    if types.count(DevelopmentType.advancement.value) >= 2:
        return PlotStatus.DEVELOPING
    return PlotStatus.INTRODUCED


# 最新一条发展记录的类型 -> 状态（resolution 已在前面单独处理，这里保留以完整覆盖枚举）
_LATEST_TYPE_RULES: Dict[str, Callable[[Sequence[str]], PlotStatus]] = {
    DevelopmentType.introduction.value: lambda types: PlotStatus.INTRODUCED,
    DevelopmentType.advancement.value: _count_advancements,
    DevelopmentType.complication.value: lambda types: PlotStatus.COMPLICATED,
    DevelopmentType.resolution.value: lambda types: PlotStatus.RESOLVED,
}


def determine_status_from_developments(development_types: Sequence[str]) -> PlotStatus:
    """
    根据发展类型序列判定情节线状态。

    :param development_types: 发展类型，必须按时间倒序（最新在前）；
        顺序颠倒会静默得到错误结果，持久化数据请走 classify_developments
    :return: PlotStatus
    """
    types = [getattr(t, "value", t) for t in development_types]
    if not types:
        return PlotStatus.PLANNED
    # resolution 为终态：只要出现过就视为已解决
    if DevelopmentType.resolution.value in types:
        return PlotStatus.RESOLVED
    rule = _LATEST_TYPE_RULES.get(types[0])
    return rule(types) if rule else PlotStatus.PLANNED


def ensure_most_recent_first(developments: Sequence[PlotlineDevelopment]) -> None:
    """校验发展记录按 created_at 非递增排列，否则抛 ValueError。"""
    for newer, older in zip(developments, developments[1:]):
        if newer.created_at < older.created_at:
            raise ValueError(
                "developments must be ordered most-recent-first "
                f"({newer.created_at.isoformat()} precedes {older.created_at.isoformat()})"
            )


def classify_developments(developments: Sequence[PlotlineDevelopment]) -> PlotStatus:
    """对已按时间倒序加载的发展记录判定状态。"""
    ensure_most_recent_first(developments)
    return determine_status_from_developments([d.development_type for d in developments])


# ---------- 数据访问 ----------

async def _get_plotline(session: AsyncSession, plotline_id: str) -> Plotline:
    plotline = await session.get(Plotline, plotline_id)
    if plotline is None:
        raise NotFoundError("Plotline not found", {"plotline_id": plotline_id})
    return plotline


async def _load_developments(session: AsyncSession, plotline_id: str) -> List[PlotlineDevelopment]:
    """按 created_at 倒序（最新在前）加载某情节线的发展记录。"""
    result = await session.execute(
        select(PlotlineDevelopment)
        .where(PlotlineDevelopment.plotline_id == plotline_id)
        .order_by(PlotlineDevelopment.created_at.desc())
    )
    return list(result.scalars().all())


async def _list_plotlines(session: AsyncSession, novel_id: str) -> List[Plotline]:
    result = await session.execute(
        select(Plotline).where(Plotline.novel_id == novel_id).order_by(Plotline.name.asc())
    )
    return list(result.scalars().all())


# ---------- 单条 / 批量更新 ----------

async def _derive_status(session: AsyncSession, plotline: Plotline) -> Optional[PlotStatus]:
    """按发展记录推导状态，仅在变化时写回；没有任何发展记录时返回 None 且不写，保留手动设置的状态。"""
    developments = await _load_developments(session, plotline.id)
    if not developments:
        return None
    new_status = classify_developments(developments)
    if plotline.status != new_status.value:
        logger.info("情节线 %s 状态 %s -> %s", plotline.name, plotline.status, new_status.value)
        plotline.status = new_status.value
        await session.flush()
    return new_status


async def update_plotline_status(session: AsyncSession, plotline_id: str) -> PlotStatus:
    """重新推导单条情节线状态；尚无发展记录时返回 PLANNED，不改动已存状态。"""
    plotline = await _get_plotline(session, plotline_id)
    new_status = await _derive_status(session, plotline)
    return PlotStatus.PLANNED if new_status is None else new_status


async def update_all_plotline_statuses(session: AsyncSession, novel_id: str) -> List[Dict[str, Any]]:
    """逐条推导小说内有发展记录的情节线，返回实际发生变化的条目。"""
    updates: List[Dict[str, Any]] = []
    for plotline in await _list_plotlines(session, novel_id):
        old_status = plotline.status
        new_status = await _derive_status(session, plotline)
        if new_status is not None and old_status != new_status.value:
            updates.append({
                "id": plotline.id,
                "name": plotline.name,
                "old_status": old_status,
                "new_status": new_status.value,
            })
    return updates


async def migrate_plotline_statuses(session: AsyncSession, novel_id: str) -> Dict[str, Any]:
    """
    执行状态迁移：先做遗留枚举映射，再按发展记录推导。
    每条变化单独 flush；中途失败可直接重跑（两步均幂等）。
    """
    plotlines = await _list_plotlines(session, novel_id)
    logger.info("开始迁移小说 %s 的情节线状态，共 %s 条", novel_id, len(plotlines))

    enum_migration: List[Dict[str, Any]] = []
    for plotline in plotlines:
        old_status = plotline.status
        new_status = remap_legacy_status(old_status)
        if new_status != old_status:
            plotline.status = new_status
            await session.flush()
            enum_migration.append({
                "plotline_name": plotline.name,
                "old_status": old_status,
                "new_status": new_status,
            })

    development_migration = await update_all_plotline_statuses(session, novel_id)

    summary = {
        "total_plotlines": len(plotlines),
        "enum_updated": len(enum_migration),
        "development_updated": len(development_migration),
    }
    logger.info("情节线状态迁移完成: %s", summary)
    return {
        "summary": summary,
        "enum_migration": enum_migration,
        "development_migration": development_migration,
    }


async def preview_status_migration(session: AsyncSession, novel_id: str) -> Dict[str, Any]:
    """
    预览状态迁移（只读）。
    development_based_update 以「枚举映射后的状态」为起点计算，与真实迁移的两步顺序一致；
    没有发展记录的情节线不参与推导。
    """
    preview: List[Dict[str, Any]] = []
    for plotline in await _list_plotlines(session, novel_id):
        current_status = plotline.status
        remapped = remap_legacy_status(current_status)
        developments = await _load_developments(session, plotline.id)
        suggested = classify_developments(developments).value if developments else remapped

        preview.append({
            "plotline_id": plotline.id,
            "plotline_name": plotline.name,
            "current_status": current_status,
            "changes": {
                "enum_migration": {"from": current_status, "to": remapped} if remapped != current_status else None,
                "development_based_update": {"from": remapped, "to": suggested} if suggested != remapped else None,
            },
            "development_history": [
                {"type": d.development_type, "description": d.description, "created_at": d.created_at}
                for d in developments
            ],
        })

    return {
        "novel_id": novel_id,
        "total_plotlines": len(preview),
        "preview": preview,
        "summary": {
            "needs_enum_migration": sum(1 for p in preview if p["changes"]["enum_migration"]),
            "needs_development_update": sum(1 for p in preview if p["changes"]["development_based_update"]),
        },
    }


# ---------- 进展分析 ----------

def _progression_summary(types: Sequence[str]) -> str:
    parts = []
    for dev_type in DevelopmentType:
        n = types.count(dev_type.value)
        if n:
            parts.append(f"{n} {dev_type.value}(s)")
    return f"Total developments: {len(types)} ({', '.join(parts)})"


def _progression_recommendations(types: Sequence[str], current_status: str) -> List[str]:
    recommendations: List[str] = []
    if "complication" in types and "introduction" not in types:
        recommendations.append("Consider adding an introduction development to establish the plotline foundation")
    if "resolution" in types and "complication" not in types:
        recommendations.append(
            "Plotline resolved without complications - consider adding tension for more engaging storytelling"
        )
    if types.count("advancement") >= 3 and "complication" not in types:
        recommendations.append("Multiple advancements without complications - consider adding obstacles or conflicts")
    if current_status == PlotStatus.RESOLVED.value and len(types) < 3:
        recommendations.append("Plotline resolved quickly - consider if more development would benefit the story")
    if not types:
        recommendations.append("No developments yet - this plotline needs to be introduced in upcoming chapters")
    return recommendations


async def analyze_plotline_progression(session: AsyncSession, plotline_id: str) -> Dict[str, Any]:
    """情节线进展分析：建议状态、按时间正序的发展历史、摘要与建议。"""
    plotline = await _get_plotline(session, plotline_id)
    result = await session.execute(
        select(PlotlineDevelopment, Chapter.number, Chapter.title)
        .join(Chapter, Chapter.id == PlotlineDevelopment.chapter_id)
        .where(PlotlineDevelopment.plotline_id == plotline_id)
        .order_by(PlotlineDevelopment.created_at.asc())
    )
    rows = result.all()
    chronological = [row[0] for row in rows]
    types = [d.development_type for d in chronological]

    return {
        "plotline_name": plotline.name,
        "current_status": plotline.status,
        "suggested_status": classify_developments(list(reversed(chronological))).value,
        "development_history": [
            {
                "chapter_number": number,
                "chapter_title": title,
                "development_type": dev.development_type,
                "description": dev.description,
                "created_at": dev.created_at,
            }
            for dev, number, title in rows
        ],
        "progression_summary": _progression_summary(types),
        "recommendations": _progression_recommendations(types, plotline.status),
    }


# ---------- 关注度排序 ----------

_STATUS_URGENCY = {
    PlotStatus.INTRODUCED.value: 30,
    PlotStatus.COMPLICATED.value: 35,
    PlotStatus.CLIMAXING.value: 40,
    PlotStatus.DEVELOPING.value: 15,
}

ATTENTION_THRESHOLD = 35


def calculate_plotline_urgency(
    priority: int,
    chapters_since_last_dev: int,
    chapters_since_last_event: int,
    status: str,
    development_count: int,
) -> int:
    """紧迫度：优先级、久未推进/提及、状态与发展次数加权。"""
    score = priority * 15
    score += chapters_since_last_dev * 12
    score += chapters_since_last_event * 8
    score += _STATUS_URGENCY.get(status, 0)
    if development_count < 2:
        score += 25
    if chapters_since_last_dev > 3:
        score += 20
    return score


async def get_plotlines_needing_attention(
    session: AsyncSession,
    novel_id: str,
    chapter_number: int,
) -> List[Dict[str, Any]]:
    """返回推进中的情节线及其紧迫度，按紧迫度降序。"""
    result = await session.execute(
        select(Plotline)
        .where(Plotline.novel_id == novel_id, Plotline.status.in_(ACTIVE_STATUSES))
        .order_by(Plotline.priority.desc())
    )
    activity: List[Dict[str, Any]] = []
    for plotline in result.scalars().all():
        last_dev_chapter: Optional[int] = (await session.execute(
            select(Chapter.number)
            .join(PlotlineDevelopment, PlotlineDevelopment.chapter_id == Chapter.id)
            .where(PlotlineDevelopment.plotline_id == plotline.id)
            .order_by(PlotlineDevelopment.created_at.desc())
            .limit(1)
        )).scalar_one_or_none()
        last_event_chapter: Optional[int] = (await session.execute(
            select(func.max(Chapter.number))
            .join(ChapterEvent, ChapterEvent.chapter_id == Chapter.id)
            .where(ChapterEvent.plotline_id == plotline.id)
        )).scalar_one_or_none()
        development_count = (await session.execute(
            select(func.count(PlotlineDevelopment.id)).where(PlotlineDevelopment.plotline_id == plotline.id)
        )).scalar_one()

        since_dev = chapter_number - last_dev_chapter if last_dev_chapter is not None else chapter_number
        since_event = chapter_number - last_event_chapter if last_event_chapter is not None else chapter_number
        score = calculate_plotline_urgency(
            plotline.priority, since_dev, since_event, plotline.status, development_count
        )
        activity.append({
            "id": plotline.id,
            "name": plotline.name,
            "description": plotline.description,
            "status": plotline.status,
            "priority": plotline.priority,
            "chapters_since_last_development": since_dev,
            "chapters_since_last_event": since_event,
            "urgency_score": score,
            "development_count": development_count,
            "needs_attention": score > ATTENTION_THRESHOLD,
        })
    return sorted(activity, key=lambda a: a["urgency_score"], reverse=True)


# ---------- 均衡建议 ----------

URGENT_THRESHOLD = 50
MEDIUM_THRESHOLD = 25


def select_balanced_plotlines(activity: Sequence[Dict[str, Any]], max_plotlines: int = 3) -> List[Dict[str, Any]]:
    """
    从按紧迫度降序排列的情节线中挑选下一章要照顾的条目。

    - 紧迫（> 50）优先，中等（25-50）至少带上一条；
    - 都未达到阈值时直接取分数最高的几条；
    - 推进中的情节线不超过 3 条时，紧迫的全部纳入（超过上限则截断），余下名额按分数补齐。
    """
    if not activity:
        return []
    urgent = [a for a in activity if a["urgency_score"] > URGENT_THRESHOLD]
    medium = [a for a in activity if MEDIUM_THRESHOLD < a["urgency_score"] <= URGENT_THRESHOLD]

    if not urgent and not medium:
        logger.info("没有情节线达到紧迫度阈值，按分数取前 %s 条", max_plotlines)
        return list(activity[:max_plotlines])

    if len(activity) > 3:
        selection = urgent[:2] + medium[:1]
        if len(selection) < max_plotlines:
            chosen = {a["id"] for a in selection}
            remaining = [a for a in activity if a["id"] not in chosen]
            selection.extend(remaining[:max_plotlines - len(selection)])
        return selection

    if len(urgent) > max_plotlines:
        return urgent[:max_plotlines]
    others = [a for a in activity if a["urgency_score"] <= URGENT_THRESHOLD]
    return urgent + others[:max_plotlines - len(urgent)]


async def suggest_plotline_balance(
    session: AsyncSession,
    novel_id: str,
    chapter_number: int,
    max_plotlines: int = 3,
) -> List[Dict[str, Any]]:
    activity = await get_plotlines_needing_attention(session, novel_id, chapter_number)
    return select_balanced_plotlines(activity, max_plotlines)


# ---------- 分布分析 ----------

async def latest_chapter_number(session: AsyncSession, novel_id: str) -> int:
    """小说最新章节序号，没有章节时为 0。"""
    latest = (
        await session.execute(select(func.max(Chapter.number)).where(Chapter.novel_id == novel_id))
    ).scalar_one_or_none()
    return latest or 0


def _balance_recommendations(distribution: Sequence[Dict[str, Any]], average: float) -> List[str]:
    recommendations: List[str] = []
    underdeveloped = [d["plotline_name"] for d in distribution if d["development_count"] < average * 0.7]
    overdeveloped = [d["plotline_name"] for d in distribution if d["development_count"] > average * 1.5]
    low_activity = [d["plotline_name"] for d in distribution if d["active_ratio"] < 0.3]
    if underdeveloped:
        recommendations.append(f"Focus more on underdeveloped plotlines: {', '.join(underdeveloped)}")
    if overdeveloped:
        recommendations.append(f"Consider reducing focus on overdeveloped plotlines: {', '.join(overdeveloped)}")
    if low_activity:
        recommendations.append(f"These plotlines need more frequent mentions: {', '.join(low_activity)}")
    return recommendations


async def analyze_plotline_distribution(
    session: AsyncSession,
    novel_id: str,
    chapter_count: int = 5,
) -> Dict[str, Any]:
    """
    统计最近 chapter_count 章内各情节线的发展次数与活跃章节数，给出失衡度与建议。
    只统计近期有发展记录的情节线。
    """
    first_chapter = await latest_chapter_number(session, novel_id) - chapter_count + 1
    result = await session.execute(
        select(Plotline.id, Plotline.name, Plotline.priority, Chapter.number)
        .join(PlotlineDevelopment, PlotlineDevelopment.plotline_id == Plotline.id)
        .join(Chapter, Chapter.id == PlotlineDevelopment.chapter_id)
        .where(
            Plotline.novel_id == novel_id,
            Chapter.novel_id == novel_id,
            Chapter.number >= first_chapter,
        )
        .order_by(PlotlineDevelopment.created_at.desc())
    )
    rows = result.all()

    grouped: Dict[str, Dict[str, Any]] = {}
    for plotline_id, name, priority, number in rows:
        entry = grouped.setdefault(
            plotline_id,
            {"plotline_name": name, "priority": priority, "development_count": 0, "chapters": set()},
        )
        entry["development_count"] += 1
        entry["chapters"].add(number)

    distribution = [
        {
            "plotline_id": plotline_id,
            "plotline_name": data["plotline_name"],
            "priority": data["priority"],
            "development_count": data["development_count"],
            "chapters_active": len(data["chapters"]),
            "development_density": data["development_count"] / chapter_count,
            "active_ratio": len(data["chapters"]) / chapter_count,
        }
        for plotline_id, data in grouped.items()
    ]

    total = len(rows)
    average = total / max(len(distribution), 1)
    imbalance = sum(abs(d["development_count"] - average) for d in distribution) / max(len(distribution), 1)
    return {
        "total_plotlines": len(distribution),
        "total_developments": total,
        "average_devs_per_plotline": average,
        "imbalance_score": imbalance,
        "is_balanced": imbalance < average * 0.5,
        "plotline_distribution": sorted(distribution, key=lambda d: d["development_count"], reverse=True),
        "recommendations": _balance_recommendations(distribution, average),
    }
