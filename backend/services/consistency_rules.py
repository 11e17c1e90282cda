# -*- coding: utf-8 -*-
"""
规则式一致性检查：每条规则是 ChapterSnapshot -> List[ConsistencyIssue] 的纯函数。
快照由 consistency_service 从数据库组装，规则本身不访问数据库，可单独替换与测试。
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from backend.schemas.consistency import ConsistencyCheck, ConsistencyIssue

logger = logging.getLogger(__name__)

MENTION_CONTEXT_CHARS = 50


# ---------- 快照 ----------

@dataclass(frozen=True)
class CharacterProfile:
    name: str
    personality: str = ""
    description: str = ""
    relationships: str = "{}"


@dataclass(frozen=True)
class WorldSnapshot:
    """世界观原始文本；能解析为 JSON 的字段按结构化规则检查。"""
    rules: Optional[str] = None
    magic_system: Optional[str] = None
    locations: Optional[str] = None


@dataclass(frozen=True)
class PlotAdvancement:
    """本章一条 PLOT_ADVANCEMENT 事件，及其情节线在此前章节中的事件数。"""
    plotline_name: str
    description: str
    prior_event_count: int


@dataclass(frozen=True)
class ActivePlotline:
    """推进中的情节线，及其在最近 5 章（含本章）内的事件数。"""
    name: str
    priority: int
    recent_mentions: int


@dataclass(frozen=True)
class ChapterSnapshot:
    content: str
    number: int
    characters: Tuple[CharacterProfile, ...] = ()
    world: Optional[WorldSnapshot] = None
    plot_advancements: Tuple[PlotAdvancement, ...] = ()
    active_plotlines: Tuple[ActivePlotline, ...] = ()


@dataclass(frozen=True)
class Mention:
    context: str
    position: int


ConsistencyRule = Callable[[ChapterSnapshot], List[ConsistencyIssue]]


# ---------- 工具 ----------

def find_character_mentions(content: str, name: str) -> List[Mention]:
    """查找角色名出现位置及前后 50 字上下文；ASCII 名按整词匹配，其余（如韩文名后接助词）按子串匹配。"""
    if not name:
        return []
    escaped = re.escape(name)
    pattern = rf"\b{escaped}\b" if name.isascii() else escaped
    mentions = []
    for m in re.finditer(pattern, content, re.IGNORECASE):
        start = max(0, m.start() - MENTION_CONTEXT_CHARS)
        end = min(len(content), m.end() + MENTION_CONTEXT_CHARS)
        mentions.append(Mention(context=content[start:end], position=m.start()))
    return mentions


def _parse_json_object(raw: Optional[str], fallback_key: str) -> Dict[str, Any]:
    """解析 JSON 对象；不是 JSON 时以 {fallback_key: 原文} 作为纯文本设定。"""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("设定不是 JSON，按纯文本处理: %s", fallback_key)
        return {fallback_key: raw}
    return parsed if isinstance(parsed, dict) else {fallback_key: raw}


# ---------- 角色 ----------

_BOLD_MARKERS = ("boldly", "confidently spoke", "loudly declared")
_INFORMAL_SPEECH = re.compile(r"\b(ya|hey|dude)\b", re.IGNORECASE)

RELATIONSHIP_PATTERNS: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "enemy": {
        "positive": ("attack", "fight", "oppose", "적대", "싸움"),
        "negative": ("friendly", "help", "support", "친근", "도움"),
    },
    "friend": {
        "positive": ("help", "support", "friendly", "도움", "친근", "지원"),
        "negative": ("attack", "betray", "oppose", "공격", "배신", "반대"),
    },
    "lover": {
        "positive": ("love", "kiss", "embrace", "사랑", "키스", "포옹"),
        "negative": ("hate", "ignore", "cold", "미움", "무시", "차가운"),
    },
}


def check_character_personality(snapshot: ChapterSnapshot) -> List[ConsistencyIssue]:
    """内向/害羞的角色出现大胆、张扬的行为。"""
    issues = []
    for character in snapshot.characters:
        personality = character.personality.lower()
        if not any(word in personality for word in ("shy", "introverted", "내성적", "수줍")):
            continue
        mentions = find_character_mentions(snapshot.content, character.name)
        if any(marker in m.context.lower() for m in mentions for marker in _BOLD_MARKERS):
            issues.append(ConsistencyIssue(
                type="character",
                severity="medium",
                description=f"{character.name} is described as {personality} but shows bold/confident behavior",
                suggestion="Consider adjusting the character's actions to match their shy personality, "
                           "or show character growth",
            ))
    return issues


def check_character_dialogue(snapshot: ChapterSnapshot) -> List[ConsistencyIssue]:
    """设定为正式/礼貌的角色使用随意口语。"""
    issues = []
    for character in snapshot.characters:
        personality = character.personality.lower()
        if "formal" not in personality and "polite" not in personality:
            continue
        name = re.escape(character.name)
        dialogue_pattern = re.compile(rf'"([^"]*)"[^"]*{name}|{name}[^"]*"([^"]*)"', re.IGNORECASE)
        dialogues = [m.group(1) or m.group(2) for m in dialogue_pattern.finditer(snapshot.content)]
        if any(d and _INFORMAL_SPEECH.search(d) for d in dialogues):
            issues.append(ConsistencyIssue(
                type="character",
                severity="low",
                description=f"{character.name} uses informal speech despite being described as formal/polite",
                suggestion="Adjust dialogue to match character's formal personality",
            ))
    return issues


def check_character_relationships(snapshot: ChapterSnapshot) -> List[ConsistencyIssue]:
    """角色间互动与已建立的关系（敌人/朋友/恋人）相矛盾。"""
    issues = []
    for character in snapshot.characters:
        try:
            relationships = json.loads(character.relationships or "{}")
        except json.JSONDecodeError:
            logger.debug("角色 %s 的关系不是 JSON，跳过关系检查", character.name)
            continue
        if not isinstance(relationships, dict):
            continue
        mentions = find_character_mentions(snapshot.content, character.name)
        if not mentions:
            continue
        for related, relationship in relationships.items():
            pattern = RELATIONSHIP_PATTERNS.get(str(relationship).lower())
            if not pattern:
                continue
            for mention in mentions:
                context = mention.context.lower()
                if related.lower() not in context:
                    continue
                negative = any(word in context for word in pattern["negative"])
                positive = any(word in context for word in pattern["positive"])
                if negative and not positive:
                    issues.append(ConsistencyIssue(
                        type="character",
                        severity="medium",
                        description=f"{character.name}'s behavior toward {related} contradicts "
                                    f"their {relationship} relationship",
                        suggestion=f"Adjust interaction to match the established {relationship} relationship "
                                   "or explain the change in dynamics",
                    ))
    return issues


# ---------- 情节 ----------

def check_plot_advancement_setup(snapshot: ChapterSnapshot) -> List[ConsistencyIssue]:
    """情节线在此前章节毫无铺垫就被解决。"""
    return [
        ConsistencyIssue(
            type="plot",
            severity="high",
            description=f'Plot "{adv.plotline_name}" appears to be resolved without proper setup',
            suggestion="Add more development before resolving this plotline",
        )
        for adv in snapshot.plot_advancements
        if adv.prior_event_count == 0 and "resolved" in adv.description.lower()
    ]


def check_unresolved_plotlines(snapshot: ChapterSnapshot) -> List[ConsistencyIssue]:
    """高优先级（> 2）情节线在最近章节中无任何事件。"""
    return [
        ConsistencyIssue(
            type="plot",
            severity="medium",
            description=f'High-priority plotline "{p.name}" has not been addressed in recent chapters',
            suggestion=f'Consider advancing or referencing the "{p.name}" plotline to maintain narrative momentum',
        )
        for p in snapshot.active_plotlines
        if p.recent_mentions == 0 and p.priority > 2
    ]


# ---------- 世界观 ----------

def check_magic_system(snapshot: ChapterSnapshot) -> List[ConsistencyIssue]:
    """魔法体系要求吟唱，但施法时没有吟唱。"""
    if snapshot.world is None:
        return []
    magic = _parse_json_object(snapshot.world.magic_system, "description")
    content = snapshot.content
    if magic.get("requiresChanting") and "cast spell" in content:
        if not any(word in content for word in ("chant", "incant", "murmur")):
            return [ConsistencyIssue(
                type="worldbuilding",
                severity="medium",
                description="Magic is used without required chanting according to established magic system",
                suggestion="Add chanting/incantation before spell casting",
            )]
    return []


def check_world_rules(snapshot: ChapterSnapshot) -> List[ConsistencyIssue]:
    """世界法则 {触发: 条件}：正文出现触发词却未提及条件。"""
    if snapshot.world is None:
        return []
    issues = []
    for rule, requirement in _parse_json_object(snapshot.world.rules, "rules").items():
        if isinstance(requirement, str) and rule in snapshot.content and requirement not in snapshot.content:
            issues.append(ConsistencyIssue(
                type="worldbuilding",
                severity="low",
                description=f'World rule "{rule}" triggered without mentioning "{requirement}"',
                suggestion=f"Include reference to {requirement} when {rule} occurs",
            ))
    return issues


def check_location_rules(snapshot: ChapterSnapshot) -> List[ConsistencyIssue]:
    """地点规则（如禁魔区）被违反。"""
    if snapshot.world is None or not snapshot.world.locations:
        return []
    try:
        locations = json.loads(snapshot.world.locations)
    except json.JSONDecodeError:
        logger.debug("地点设定不是 JSON，跳过地点检查")
        return []
    if not isinstance(locations, dict):
        return []

    content = snapshot.content
    issues = []
    for location, data in locations.items():
        if location.lower() not in content.lower() or not isinstance(data, dict):
            continue
        for rule in data.get("rules") or []:
            if isinstance(rule, str) and "no magic" in rule and "magic" in content:
                issues.append(ConsistencyIssue(
                    type="worldbuilding",
                    severity="high",
                    description=f"Magic is used in {location} where it should be prohibited",
                    suggestion=f"Remove magic usage in {location} or modify the location rules",
                ))
    return issues


# ---------- 时间线 ----------

TIME_PATTERNS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"(어제|yesterday|지난|과거|전에)"), "past"),
    (re.compile(r"(오늘|today|지금|현재|이제)"), "present"),
    (re.compile(r"(내일|tomorrow|미래|나중에|다음)"), "future"),
)


def extract_time_indicators(content: str) -> List[Tuple[str, str]]:
    """每种时态取首个时间词：[(词, past|present|future)]。"""
    indicators = []
    for pattern, kind in TIME_PATTERNS:
        m = pattern.search(content)
        if m:
            indicators.append((m.group(0), kind))
    return indicators


def check_timeline(snapshot: ChapterSnapshot) -> List[ConsistencyIssue]:
    """同一章内过去、现在、将来的时间指示同时出现。"""
    indicators = extract_time_indicators(snapshot.content)
    kinds = {kind for _, kind in indicators}
    if "past" in kinds and "future" in kinds and len(indicators) > 2:
        return [ConsistencyIssue(
            type="timeline",
            severity="medium",
            description="Chapter contains conflicting time references (past and future)",
            suggestion="Clarify the timeline progression or use clearer temporal transitions",
        )]
    return []


# ---------- 规则集 ----------

DEFAULT_RULES: Tuple[ConsistencyRule, ...] = (
    check_character_personality,
    check_character_dialogue,
    check_character_relationships,
    check_plot_advancement_setup,
    check_unresolved_plotlines,
    check_magic_system,
    check_world_rules,
    check_location_rules,
    check_timeline,
)


def run_rules(snapshot: ChapterSnapshot, rules: Sequence[ConsistencyRule] = DEFAULT_RULES) -> ConsistencyCheck:
    issues: List[ConsistencyIssue] = []
    for rule in rules:
        issues.extend(rule(snapshot))
    return ConsistencyCheck(has_issues=bool(issues), issues=issues)
