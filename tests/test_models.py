"""Tests for the Face Graph data models."""

from __future__ import annotations

from uuid import uuid4

import pytest
from pydantic import ValidationError

from facegraph.models import (
    BloodFeud,
    Character,
    CharacterRole,
    FaceCategory,
    FaceGraphConfig,
    FaceTier,
    FeudParty,
    FeudPartyType,
    FeudSide,
    KarmaActionType,
    KarmaEvent,
    KarmaPolarity,
    KarmaRipple,
    KarmaSeverity,
    Notoriety,
    SentimentLabel,
    SettlementType,
    SocialLink,
    SocialLinkCategory,
    SocialLinkType,
    create_face_profile,
    find_character_by_name,
    get_face_tier,
    get_notoriety,
    get_sentiment_label,
    map_relationship_to_link_type,
    map_relationship_to_sentiment,
)
from facegraph.models.links import (
    classify_relationship,
    get_link_category,
    get_relationship_strength,
    strength_for_weight,
)


def make_event(**overrides) -> KarmaEvent:
    data = {
        "novel_id": "novel-1",
        "actor_id": "a",
        "actor_name": "Lin Feng",
        "target_id": "b",
        "target_name": "Zhao Yun",
        "action_type": KarmaActionType.HUMILIATE,
        "polarity": KarmaPolarity.NEGATIVE,
        "severity": KarmaSeverity.MODERATE,
        "base_karma_weight": 50,
        "final_karma_weight": 50,
        "chapter_number": 3,
    }
    data.update(overrides)
    return KarmaEvent(**data)


# --- Character Tests ---


class TestCharacterLookup:
    @pytest.fixture
    def roster(self) -> list[Character]:
        return [
            Character(id="1", novel_id="n", name="Lin Feng", aliases=["Young Master Lin"]),
            Character(id="2", novel_id="n", name="Lin Xue"),
            Character(id="3", novel_id="n", name="Elder Mo", is_protagonist=False),
        ]

    def test_exact_name(self, roster):
        assert find_character_by_name(roster, "lin feng").id == "1"

    def test_alias(self, roster):
        assert find_character_by_name(roster, "YOUNG MASTER LIN").id == "1"

    def test_unique_partial(self, roster):
        assert find_character_by_name(roster, "Mo").id == "3"

    def test_ambiguous_partial(self, roster):
        assert find_character_by_name(roster, "Lin") is None

    def test_unknown_and_blank(self, roster):
        assert find_character_by_name(roster, "Nobody") is None
        assert find_character_by_name(roster, "  ") is None

    @pytest.mark.parametrize(
        ("character", "expected"),
        [
            (Character(id="1", novel_id="n", name="Lin Feng", is_protagonist=True), 100),
            (Character(id="2", novel_id="n", name="Zhao Yun", role=CharacterRole.ANTAGONIST), 80),
            (Character(id="3", novel_id="n", name="Su Qing", role=CharacterRole.SUPPORTING), 30),
            (Character(id="4", novel_id="n", name="Old Wu", role=CharacterRole.MINOR), 0),
            (Character(id="5", novel_id="n", name="Passerby"), 0),
        ],
    )
    def test_starting_face(self, character, expected):
        assert character.starting_face == expected


# --- KarmaEvent Tests ---


class TestKarmaEvent:
    def test_weight_bounds_enforced(self):
        with pytest.raises(ValidationError):
            make_event(final_karma_weight=101)
        with pytest.raises(ValidationError):
            make_event(final_karma_weight=-1)

    def test_settle_is_idempotent(self):
        event = make_event()

        assert event.settle(SettlementType.FORGIVEN, 10)
        assert not event.settle(SettlementType.AVENGED, 12)

        assert event.settlement_type == SettlementType.FORGIVEN
        assert event.settled_chapter == 10

    def test_involves(self):
        event = make_event()
        assert event.involves("a")
        assert event.involves("b")
        assert not event.involves("c")

    def test_polarity_sign(self):
        assert KarmaPolarity.POSITIVE.sign == 1
        assert KarmaPolarity.NEGATIVE.sign == -1
        assert KarmaPolarity.NEUTRAL.sign == 0


# --- Face Tests ---


class TestFaceProfile:
    def test_tiers(self):
        assert get_face_tier(0) == FaceTier.NOBODY
        assert get_face_tier(99) == FaceTier.NOBODY
        assert get_face_tier(100) == FaceTier.KNOWN
        assert get_face_tier(500) == FaceTier.RENOWNED
        assert get_face_tier(2000) == FaceTier.FAMOUS
        assert get_face_tier(5000) == FaceTier.LEGENDARY
        assert get_face_tier(10000) == FaceTier.MYTHICAL
        assert get_face_tier(-50) == FaceTier.NOBODY

    def test_notoriety(self):
        assert get_notoriety(10) == Notoriety.LOCAL
        assert get_notoriety(50) == Notoriety.REGIONAL
        assert get_notoriety(-120) == Notoriety.REALM

    def test_total_is_sum_of_categories(self):
        profile = create_face_profile("n", "c1", "Lin Feng")
        profile.category_scores.add(FaceCategory.MARTIAL, 80)
        profile.category_scores.add(FaceCategory.WEALTH, 30)
        profile.category_scores.add(FaceCategory.MORAL, -10)

        assert profile.total_face == 100
        assert profile.tier == FaceTier.KNOWN

    def test_total_face_is_not_a_field(self):
        profile = create_face_profile("n", "c1", "Lin Feng")
        assert "total_face" not in profile.model_dump()

    def test_karma_balance_tracks_totals(self):
        profile = create_face_profile("n", "c1", "Lin Feng")
        profile.update_karma_balance(40)
        profile.update_karma_balance(-70)
        profile.update_karma_balance(0)

        assert profile.karma_balance == -30
        assert profile.positive_karma_total == 40
        assert profile.negative_karma_total == 70


# --- SocialLink Tests ---


class TestSocialLink:
    def test_sentiment_labels(self):
        assert get_sentiment_label(-60) == SentimentLabel.HOSTILE
        assert get_sentiment_label(-59) == SentimentLabel.ANTAGONISTIC
        assert get_sentiment_label(-20) == SentimentLabel.ANTAGONISTIC
        assert get_sentiment_label(-1) == SentimentLabel.COLD
        assert get_sentiment_label(0) == SentimentLabel.NEUTRAL
        assert get_sentiment_label(19) == SentimentLabel.WARM
        assert get_sentiment_label(59) == SentimentLabel.FRIENDLY
        assert get_sentiment_label(60) == SentimentLabel.DEVOTED

    def test_sentiment_range_enforced(self):
        with pytest.raises(ValidationError):
            SocialLink(
                novel_id="n",
                source_character_id="a",
                source_name="A",
                target_character_id="b",
                target_name="B",
                link_type=SocialLinkType.FRIEND,
                sentiment_score=150,
            )

    def test_adjust_sentiment_clamps(self):
        link = SocialLink(
            novel_id="n",
            source_character_id="a",
            source_name="A",
            target_character_id="b",
            target_name="B",
            link_type=SocialLinkType.ENEMY,
            sentiment_score=-90,
        )

        assert link.adjust_sentiment(-50) == -100
        assert link.adjust_sentiment(250) == 100
        assert link.sentiment == SentimentLabel.DEVOTED

    def test_other_endpoint(self):
        link = SocialLink(
            novel_id="n",
            source_character_id="a",
            source_name="A",
            target_character_id="b",
            target_name="B",
            link_type=SocialLinkType.MASTER,
        )
        assert link.other("a") == ("b", "B")
        assert link.other("b") == ("a", "A")

    def test_every_link_type_has_a_category(self):
        assert len(SocialLinkType) == 30
        for link_type in SocialLinkType:
            get_link_category(link_type)
        assert get_link_category(SocialLinkType.DAO_COMPANION) == SocialLinkCategory.CULTIVATION

    def test_relationship_strength(self):
        assert classify_relationship(SocialLinkType.DISCIPLE) == "strong"
        assert get_relationship_strength(SocialLinkType.DISCIPLE) == 1.0
        assert get_relationship_strength(SocialLinkType.SECT_MEMBER) == 0.6
        assert get_relationship_strength(SocialLinkType.RIVAL) == 0.3

    def test_strength_for_weight(self):
        assert strength_for_weight(60).value == "strong"
        assert strength_for_weight(30).value == "moderate"
        assert strength_for_weight(29).value == "weak"


class TestMapRelationship:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("dao_companion", SocialLinkType.DAO_COMPANION),
            ("Martial Sister", SocialLinkType.MARTIAL_SISTER),
            ("senior martial brother", SocialLinkType.MARTIAL_BROTHER),
            ("younger brother", SocialLinkType.SIBLING),
            ("father", SocialLinkType.PARENT),
            ("Sect Master", SocialLinkType.SECT_LEADER),
            ("master", SocialLinkType.MASTER),
            ("outer sect disciple", SocialLinkType.DISCIPLE),
            ("sworn enemy", SocialLinkType.ENEMY),
            ("acquaintance", SocialLinkType.FRIEND),
        ],
    )
    def test_mapping(self, text, expected):
        assert map_relationship_to_link_type(text) == expected

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Dao Companion", 30),
            ("faction_ally", 30),
            ("outer sect disciple", 30),
            ("sworn enemy", -30),
            ("blood_feud_target", -30),
            ("Rival", -30),
            ("younger brother", 0),
            ("martial sister", 0),
            ("", 0),
        ],
    )
    def test_sentiment(self, text, expected):
        assert map_relationship_to_sentiment(text) == expected


# --- Ripple / Feud / Config Tests ---


class TestKarmaRipple:
    def test_effective_sentiment_scales_with_decay(self):
        ripple = KarmaRipple(
            novel_id="n",
            source_event_id=uuid4(),
            original_actor_id="a",
            original_actor_name="A",
            original_target_id="b",
            original_target_name="B",
            affected_character_id="c",
            affected_character_name="C",
            degrees_of_separation=1,
            relationship_strength=1.0,
            sentiment_change=-25,
            decay_factor=0.5,
        )
        assert ripple.effective_sentiment_change == -12

    def test_degree_bound(self):
        with pytest.raises(ValidationError):
            KarmaRipple(
                novel_id="n",
                source_event_id=uuid4(),
                original_actor_id="a",
                original_actor_name="A",
                original_target_id="b",
                original_target_name="B",
                affected_character_id="c",
                affected_character_name="C",
                degrees_of_separation=4,
                relationship_strength=1.0,
                sentiment_change=0,
            )


class TestBloodFeudModel:
    def test_sides(self):
        feud = BloodFeud(
            novel_id="n",
            feud_name="Zhao vs Lin",
            aggrieved_party=FeudParty(party_id="zhao", party_name="Zhao Clan",
                                      party_type=FeudPartyType.CLAN, member_ids=["b"]),
            target_party=FeudParty(party_id="a", party_name="Lin Feng"),
            started_chapter=1,
        )

        assert feud.intensity == 50
        assert feud.side_of("b") == FeudSide.AGGRIEVED
        assert feud.side_of("a") == FeudSide.TARGET
        assert feud.side_of("x") is None
        assert feud.opposing_party("b").party_id == "a"
        # Clan ids are not characters
        assert feud.aggrieved_party.all_member_ids() == ["b"]
        assert feud.target_party.all_member_ids() == ["a"]


class TestFaceGraphConfig:
    def test_defaults(self):
        config = FaceGraphConfig(novel_id="n")

        assert config.enabled
        assert config.max_ripple_degrees == 3
        assert config.ripple_karma_threshold == 30
        assert config.karma_decay_per_chapter == 0.99
        assert config.face_multiplier(KarmaActionType.EXTERMINATE_CLAN) == 4.0
        assert SocialLinkType.SPOUSE in config.propagating_link_types
        assert SocialLinkType.FRIEND not in config.propagating_link_types

    def test_round_trips_through_json(self):
        config = FaceGraphConfig(novel_id="n", protected_character_ids=["mc"])
        restored = FaceGraphConfig.model_validate_json(config.model_dump_json())

        assert restored == config
        assert restored.is_protected("mc")
