"""Tests for the chapter-writer context formatter."""

from __future__ import annotations

from uuid import uuid4

import pytest

from facegraph.models import (
    BloodFeud,
    Character,
    DebtType,
    FaceCategory,
    FaceDebt,
    FaceGraphConfig,
    FeudParty,
    KarmaActionType,
    KarmaEvent,
    KarmaPolarity,
    KarmaRipple,
    KarmaSeverity,
    SettlementType,
    SocialGraph,
    SocialLinkType,
    ThreatLevel,
    create_face_profile,
)
from facegraph.services.context import (
    ContextFormatter,
    describe_debt_weight,
    describe_feud_intensity,
    describe_sentiment,
    tension_level,
)
from facegraph.services.novel import FaceGraphSnapshot

NOVEL = "novel-1"


def humiliation(chapter: int = 3) -> KarmaEvent:
    return KarmaEvent(
        novel_id=NOVEL,
        actor_id="mc",
        actor_name="Lin Feng",
        target_id="zy",
        target_name="Zhao Yun",
        action_type=KarmaActionType.HUMILIATE,
        polarity=KarmaPolarity.NEGATIVE,
        severity=KarmaSeverity.MODERATE,
        base_karma_weight=50,
        final_karma_weight=50,
        chapter_number=chapter,
        description="Slapped him in front of the sect",
    )


@pytest.fixture
def snapshot() -> FaceGraphSnapshot:
    graph = SocialGraph(NOVEL)
    graph.upsert("zy", "Zhao Yun", "mc", "Lin Feng", SocialLinkType.ENEMY, 3,
                 sentiment_score=-45, unsettled_karma=50)

    mc = create_face_profile(NOVEL, "mc", "Lin Feng")
    mc.category_scores.add(FaceCategory.MARTIAL, 300)
    zy = create_face_profile(NOVEL, "zy", "Zhao Yun")
    zy.category_scores.add(FaceCategory.MARTIAL, 100)

    return FaceGraphSnapshot(
        novel_id=NOVEL,
        config=FaceGraphConfig(novel_id=NOVEL),
        graph=graph,
        characters={
            "mc": Character(id="mc", novel_id=NOVEL, name="Lin Feng", is_protagonist=True),
            "zy": Character(id="zy", novel_id=NOVEL, name="Zhao Yun"),
            "xr": Character(id="xr", novel_id=NOVEL, name="Xiao Rou"),
        },
        profiles={"mc": mc, "zy": zy},
        events=[humiliation()],
        debts=[
            FaceDebt(
                novel_id=NOVEL,
                debtor_id="xr",
                debtor_name="Xiao Rou",
                creditor_id="mc",
                creditor_name="Lin Feng",
                debt_type=DebtType.LIFE_SAVING,
                weight=95,
                incurred_chapter=4,
            )
        ],
    )


@pytest.fixture
def formatter() -> ContextFormatter:
    return ContextFormatter()


class TestDescriptions:
    def test_sentiment(self):
        assert describe_sentiment(-80) == "Murderous hatred"
        assert describe_sentiment(-45) == "Strong resentment"
        assert describe_sentiment(0) == "Neutral"
        assert describe_sentiment(100) == "Devoted loyalty"

    def test_feud_and_debt(self):
        assert describe_feud_intensity(95).startswith("War-level")
        assert describe_feud_intensity(10) == "Low-level grudge"
        assert describe_debt_weight(95).startswith("Life debt")
        assert describe_debt_weight(5).startswith("Small courtesy")

    def test_tension(self):
        assert tension_level(100) == "EXTREME"
        assert tension_level(60) == "HIGH"
        assert tension_level(30) == "MODERATE"
        assert tension_level(29) == "LOW"


class TestFormatContext:
    def test_grudge_and_threat(self, formatter, snapshot):
        text = formatter.format_context(snapshot, ["mc", "zy"], current_chapter=10)

        assert text.startswith("# FACE GRAPH CONTEXT")
        assert "## UNRESOLVED KARMA" in text
        assert "- **Zhao Yun**: humiliate (moderate)" in text
        assert "Chapter 3 (7 chapters ago)" in text
        assert "Current sentiment toward MC: Strong resentment" in text
        assert "## NPC THREAT ASSESSMENT" in text
        assert "MAJOR THREAT" in text
        assert "## UNPAID DEBTS" not in text
        assert text.rstrip().endswith("---")

    def test_debt_needs_both_parties(self, formatter, snapshot):
        text = formatter.format_context(snapshot, ["mc", "xr"], current_chapter=10)

        assert "**Xiao Rou** owes **Lin Feng**" in text
        assert "Type: life saving" in text
        assert "Life debt" in text
        assert "## UNRESOLVED KARMA" not in text

    def test_nothing_to_say(self, formatter, snapshot):
        assert formatter.format_context(snapshot, ["stranger"], current_chapter=10) == ""

    def test_disabled(self, formatter, snapshot):
        snapshot.config = FaceGraphConfig(novel_id=NOVEL, enabled=False)
        assert formatter.format_context(snapshot, ["mc", "zy"], current_chapter=10) == ""

    def test_settled_grudges_hidden(self, formatter, snapshot):
        snapshot.events[0].settle(SettlementType.FORGIVEN, 6)
        text = formatter.format_context(snapshot, ["mc", "zy"], current_chapter=10)

        assert "## UNRESOLVED KARMA" not in text

    def test_grudges_capped_per_character(self, formatter, snapshot):
        snapshot.events = [humiliation(chapter) for chapter in range(1, 8)]
        text = formatter.format_context(snapshot, ["mc", "zy"], current_chapter=10)

        assert text.count("humiliate (moderate)") == 5
        assert "Chapter 7 (3 chapters ago)" in text
        assert "Chapter 2 (8 chapters ago)" not in text

    def test_feud_section(self, formatter, snapshot):
        snapshot.feuds = [
            BloodFeud(
                novel_id=NOVEL,
                feud_name="Zhao Yun vs Lin Feng",
                aggrieved_party=FeudParty(party_id="zy", party_name="Zhao Yun"),
                target_party=FeudParty(party_id="mc", party_name="Lin Feng"),
                origin_description="The slap",
                started_chapter=3,
                intensity=75,
            )
        ]
        text = formatter.format_context(snapshot, ["zy"], current_chapter=10)

        assert "### Zhao Yun vs Lin Feng" in text
        assert "Active pursuit of vengeance (75/100)" in text

    def test_pending_threat_ripples(self, formatter, snapshot):
        base = dict(
            novel_id=NOVEL,
            source_event_id=uuid4(),
            original_actor_id="mc",
            original_actor_name="Lin Feng",
            original_target_id="zy",
            original_target_name="Zhao Yun",
            degrees_of_separation=1,
            relationship_strength=1.0,
        )
        snapshot.ripples = [
            KarmaRipple(
                **base,
                affected_character_id="elder",
                affected_character_name="Elder Zhao",
                sentiment_change=-25,
                becomes_threat=True,
                threat_level=ThreatLevel.MODERATE,
                potential_response="May intervene directly",
            ),
            KarmaRipple(
                **base,
                affected_character_id="friend",
                affected_character_name="Wu Ping",
                sentiment_change=-9,
            ),
        ]
        text = formatter.format_context(snapshot, ["mc"], current_chapter=10)

        assert "**Elder Zhao** (connected to Zhao Yun)" in text
        assert "Threat Level: moderate" in text
        assert "Wu Ping" not in text

    def test_deterministic(self, formatter, snapshot):
        first = formatter.format_context(snapshot, ["mc", "zy", "xr"], current_chapter=10)
        second = formatter.format_context(snapshot, ["mc", "zy", "xr"], current_chapter=10)
        assert first == second


class TestConfrontation:
    def test_full_confrontation(self, formatter, snapshot):
        text = formatter.format_confrontation(snapshot, "mc", "zy")

        assert "*Lin Feng significantly outranks Zhao Yun in social standing*" in text
        assert "**Zhao Yun** sees **Lin Feng** as: enemy" in text
        assert "Unsettled karma: 50" in text
        assert "Chapter 3: **Lin Feng** humiliate **Zhao Yun** (UNRESOLVED)" in text
        assert "**MODERATE**" in text

    def test_strangers(self, formatter, snapshot):
        text = formatter.format_confrontation(snapshot, "xr", "zy")

        assert "## RELATIONSHIP" not in text
        assert "## TENSION LEVEL" not in text


class TestCharacterSummary:
    def test_summary(self, formatter, snapshot):
        summary = formatter.character_summary(snapshot, "mc")

        assert summary.profile.total_face == 300
        assert summary.unresolved_karma_count == 1
        assert summary.active_threats == 1
        assert summary.pending_debts == 1
        assert summary.blood_feuds_involved == 0
