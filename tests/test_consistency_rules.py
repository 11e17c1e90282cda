# -*- coding: utf-8 -*-
"""规则式一致性检查：对快照逐条规则断言。"""
from backend.schemas.consistency import ConsistencyIssue
from backend.services.consistency_rules import (
    DEFAULT_RULES,
    ActivePlotline,
    ChapterSnapshot,
    CharacterProfile,
    PlotAdvancement,
    WorldSnapshot,
    check_character_dialogue,
    check_character_personality,
    check_character_relationships,
    check_location_rules,
    check_magic_system,
    check_plot_advancement_setup,
    check_timeline,
    check_unresolved_plotlines,
    check_world_rules,
    extract_time_indicators,
    find_character_mentions,
    run_rules,
)


def _snapshot(content, **kwargs):
    return ChapterSnapshot(content=content, number=kwargs.pop("number", 1), **kwargs)


class TestMentions:
    def test_ascii_name_matches_whole_word(self):
        mentions = find_character_mentions("Anna met Annabel. anna smiled.", "Anna")
        assert [m.position for m in mentions] == [0, 18]

    def test_korean_name_matches_with_particle(self):
        mentions = find_character_mentions("서윤은 검을 뽑았다. 민준이 웃었다.", "서윤")
        assert len(mentions) == 1
        assert mentions[0].position == 0

    def test_context_window(self):
        content = "가" * 100 + "서윤" + "나" * 100
        mention = find_character_mentions(content, "서윤")[0]
        assert mention.context == "가" * 50 + "서윤" + "나" * 50


class TestCharacterRules:
    def test_shy_character_acting_boldly(self):
        snap = _snapshot(
            "Mina boldly stepped forward and demanded an answer.",
            characters=(CharacterProfile(name="Mina", personality="Shy and quiet"),),
        )
        issues = check_character_personality(snap)
        assert len(issues) == 1
        assert issues[0].type == "character"
        assert issues[0].severity == "medium"

    def test_shy_character_without_bold_action(self):
        snap = _snapshot(
            "Mina looked at the floor.",
            characters=(CharacterProfile(name="Mina", personality="shy"),),
        )
        assert check_character_personality(snap) == []

    def test_formal_character_using_slang(self):
        snap = _snapshot(
            'Lord Kang said, "Hey dude, over here."',
            characters=(CharacterProfile(name="Kang", personality="formal and polite"),),
        )
        issues = check_character_dialogue(snap)
        assert len(issues) == 1
        assert issues[0].severity == "low"

    def test_formal_character_speaking_formally(self):
        snap = _snapshot(
            'Kang said, "Good evening, my lady."',
            characters=(CharacterProfile(name="Kang", personality="formal"),),
        )
        assert check_character_dialogue(snap) == []

    def test_enemy_behaving_friendly(self):
        snap = _snapshot(
            "Jin offered to help Rei carry the wounded.",
            characters=(CharacterProfile(name="Jin", relationships='{"Rei": "enemy"}'),),
        )
        issues = check_character_relationships(snap)
        assert len(issues) == 1
        assert "enemy" in issues[0].description

    def test_enemy_fighting_is_consistent(self):
        snap = _snapshot(
            "Jin attack Rei without mercy.",
            characters=(CharacterProfile(name="Jin", relationships='{"Rei": "enemy"}'),),
        )
        assert check_character_relationships(snap) == []

    def test_unparseable_relationships_skipped(self):
        snap = _snapshot(
            "Jin helped Rei.",
            characters=(CharacterProfile(name="Jin", relationships="Rei is an enemy"),),
        )
        assert check_character_relationships(snap) == []


class TestPlotRules:
    def test_resolution_without_setup(self):
        snap = _snapshot(
            "",
            plot_advancements=(PlotAdvancement("Lost Heir", "The mystery was resolved", prior_event_count=0),),
        )
        issues = check_plot_advancement_setup(snap)
        assert len(issues) == 1
        assert issues[0].severity == "high"

    def test_resolution_with_setup(self):
        snap = _snapshot(
            "",
            plot_advancements=(PlotAdvancement("Lost Heir", "The mystery was resolved", prior_event_count=2),),
        )
        assert check_plot_advancement_setup(snap) == []

    def test_high_priority_plotline_not_addressed(self):
        snap = _snapshot(
            "",
            number=8,
            active_plotlines=(
                ActivePlotline("복수", priority=4, recent_mentions=0),
                ActivePlotline("로맨스", priority=2, recent_mentions=0),
                ActivePlotline("음모", priority=5, recent_mentions=1),
            ),
        )
        issues = check_unresolved_plotlines(snap)
        assert [i.description for i in issues] == [
            'High-priority plotline "복수" has not been addressed in recent chapters'
        ]


class TestWorldRules:
    def test_magic_requires_chanting(self):
        world = WorldSnapshot(magic_system='{"requiresChanting": true}')
        assert len(check_magic_system(_snapshot("She cast spell at once.", world=world))) == 1
        assert check_magic_system(_snapshot("She began to chant, then cast spell.", world=world)) == []

    def test_plain_text_magic_system_ignored(self):
        world = WorldSnapshot(magic_system="Mana flows from the moon.")
        assert check_magic_system(_snapshot("She cast spell.", world=world)) == []

    def test_world_rule_trigger_without_requirement(self):
        world = WorldSnapshot(rules='{"teleport": "mana stone"}')
        issues = check_world_rules(_snapshot("He tried to teleport home.", world=world))
        assert len(issues) == 1
        assert issues[0].severity == "low"
        assert check_world_rules(_snapshot("He used a mana stone to teleport.", world=world)) == []

    def test_no_magic_location(self):
        world = WorldSnapshot(locations='{"Silent Temple": {"rules": ["no magic allowed"]}}')
        issues = check_location_rules(_snapshot("Inside the silent temple she used magic.", world=world))
        assert len(issues) == 1
        assert issues[0].severity == "high"

    def test_no_world_building(self):
        snap = _snapshot("teleport magic cast spell")
        assert check_magic_system(snap) == []
        assert check_world_rules(snap) == []
        assert check_location_rules(snap) == []


class TestTimeline:
    def test_indicators_one_per_kind(self):
        assert extract_time_indicators("어제 그리고 어제, 내일") == [("어제", "past"), ("내일", "future")]

    def test_conflicting_references(self):
        issues = check_timeline(_snapshot("어제 만났던 그는 지금 내일의 계획을 말했다."))
        assert len(issues) == 1
        assert issues[0].type == "timeline"

    def test_past_and_future_only_is_not_flagged(self):
        assert check_timeline(_snapshot("yesterday and tomorrow")) == []


class TestRuleSet:
    def test_run_rules_concatenates(self):
        def always(snapshot):
            return [ConsistencyIssue(type="plot", severity="low", description="x")]

        result = run_rules(_snapshot(""), [always, always])
        assert result.has_issues is True
        assert len(result.issues) == 2

    def test_clean_chapter(self):
        result = run_rules(_snapshot("평범한 하루였다."), DEFAULT_RULES)
        assert result.has_issues is False
        assert result.issues == []
