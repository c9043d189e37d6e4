"""Tests for ripple propagation, decay, manifestation and threat assessment."""

from __future__ import annotations

import random
from uuid import uuid4

import pytest

from facegraph.db.memory import InMemoryGraphRepository, InMemoryLedgerRepository
from facegraph.errors import PersistenceError, RecordNotFound
from facegraph.models import (
    Character,
    FaceGraphConfig,
    KarmaActionType,
    KarmaEvent,
    KarmaPolarity,
    KarmaRipple,
    KarmaSeverity,
    LinkStrength,
    SettlementType,
    SocialGraph,
    SocialLinkType,
    ThreatLevel,
    create_face_profile,
)
from facegraph.services.novel import FaceGraphSnapshot, NovelContext
from facegraph.services.ripple import (
    POSITIVE_RESPONSE,
    RippleAnalyzer,
    assess_threat,
    compute_ripple_sentiment,
    compute_ripples,
    generate_potential_response,
    get_threat_level,
)

NOVEL = "novel-1"


def make_event(
    weight: int = 100,
    action: KarmaActionType = KarmaActionType.KILL,
    polarity: KarmaPolarity = KarmaPolarity.NEGATIVE,
    severity: KarmaSeverity = KarmaSeverity.SEVERE,
    actor_id: str = "a",
    target_id: str = "b",
    chapter: int = 5,
) -> KarmaEvent:
    return KarmaEvent(
        novel_id=NOVEL,
        actor_id=actor_id,
        actor_name="Lin Feng" if actor_id == "a" else actor_id,
        target_id=target_id,
        target_name="Zhao Yun" if target_id == "b" else target_id,
        action_type=action,
        polarity=polarity,
        severity=severity,
        base_karma_weight=80,
        final_karma_weight=weight,
        chapter_number=chapter,
    )


@pytest.fixture
def graph() -> SocialGraph:
    """
    b (the victim) has a disciple c and a sect brother d.

    c -> e sibling -> f master carries the news two more hops; d's friend g
    is only reachable over a non-propagating link.
    """
    g = SocialGraph(NOVEL)
    g.upsert("b", "Zhao Yun", "c", "Zhao Min", SocialLinkType.DISCIPLE, 1)
    g.upsert("b", "Zhao Yun", "d", "Wu Ping", SocialLinkType.SECT_MEMBER, 1)
    g.upsert("c", "Zhao Min", "e", "Zhao Hu", SocialLinkType.SIBLING, 1)
    g.upsert("e", "Zhao Hu", "f", "Old Ancestor Zhao", SocialLinkType.MASTER, 1)
    g.upsert("d", "Wu Ping", "g", "Chen Bo", SocialLinkType.FRIEND, 1)
    g.upsert("a", "Lin Feng", "b", "Zhao Yun", SocialLinkType.ENEMY, 1)
    return g


@pytest.fixture
def config() -> FaceGraphConfig:
    return FaceGraphConfig(novel_id=NOVEL)


def by_id(ripples: list[KarmaRipple]) -> dict[str, KarmaRipple]:
    return {r.affected_character_id: r for r in ripples}


class TestRippleMath:
    def test_sentiment_formula(self):
        assert compute_ripple_sentiment(100, 1.0, 1, KarmaPolarity.NEGATIVE) == -25
        assert compute_ripple_sentiment(100, 0.6, 1, KarmaPolarity.NEGATIVE) == -15
        assert compute_ripple_sentiment(100, 1.0, 2, KarmaPolarity.NEGATIVE) == -17
        assert compute_ripple_sentiment(60, 1.0, 1, KarmaPolarity.POSITIVE) == 15
        assert compute_ripple_sentiment(90, 1.0, 1, KarmaPolarity.NEUTRAL) == 0

    def test_threat_levels(self):
        assert get_threat_level(-50) == ThreatLevel.EXTREME
        assert get_threat_level(-35) == ThreatLevel.MAJOR
        assert get_threat_level(-25) == ThreatLevel.MODERATE
        assert get_threat_level(-20) == ThreatLevel.MINOR

    def test_responses(self):
        assert (
            generate_potential_response(SocialLinkType.SIBLING, KarmaPolarity.POSITIVE, 1, "x")
            == POSITIVE_RESPONSE
        )
        assert (
            generate_potential_response(SocialLinkType.PARENT, KarmaPolarity.NEGATIVE, 2, "x")
            == "Seek vengeance for their child"
        )
        assert generate_potential_response(
            SocialLinkType.MASTER, KarmaPolarity.NEGATIVE, 2, "x"
        ).startswith("Consider")
        first = generate_potential_response(SocialLinkType.FRIEND, KarmaPolarity.NEGATIVE, 1, "s")
        again = generate_potential_response(SocialLinkType.FRIEND, KarmaPolarity.NEGATIVE, 1, "s")
        assert first == again


class TestComputeRipples:
    def test_first_degree(self, graph, config):
        ripples = by_id(compute_ripples(graph, make_event(), config))
        c, d = ripples["c"], ripples["d"]

        assert c.degrees_of_separation == 1
        assert c.sentiment_change == -25
        assert c.becomes_threat
        assert c.threat_level == ThreatLevel.MODERATE
        assert c.decay_factor == pytest.approx(0.99)
        assert [hop.character_id for hop in c.connection_path] == ["b"]

        assert d.sentiment_change == -15
        assert not d.becomes_threat
        assert d.threat_level == ThreatLevel.NONE

    def test_actor_and_target_never_rippled(self, graph, config):
        affected = {r.affected_character_id for r in compute_ripples(graph, make_event(), config)}
        assert "a" not in affected
        assert "b" not in affected

    def test_extreme_event_reaches_third_degree(self, graph, config):
        ripples = by_id(compute_ripples(graph, make_event(weight=100), config))

        assert ripples["e"].degrees_of_separation == 2
        assert ripples["e"].sentiment_change == -17
        assert ripples["f"].degrees_of_separation == 3
        assert ripples["f"].sentiment_change == -13
        assert ripples["f"].decay_factor == pytest.approx(0.99**3)
        assert [h.character_id for h in ripples["f"].connection_path] == ["b", "c", "e"]

    def test_lighter_event_stops_at_second_degree(self, graph, config):
        ripples = by_id(compute_ripples(graph, make_event(weight=60), config))

        assert "e" in ripples
        assert "f" not in ripples

    def test_config_caps_depth(self, graph):
        config = FaceGraphConfig(novel_id=NOVEL, max_ripple_degrees=1)
        ripples = compute_ripples(graph, make_event(), config)

        assert {r.degrees_of_separation for r in ripples} == {1}

    def test_non_propagating_link_does_not_carry(self, graph, config):
        assert "g" not in by_id(compute_ripples(graph, make_event(), config))

    def test_each_character_once(self, graph, config):
        # A second route to e must not produce a second ripple
        graph.upsert("d", "Wu Ping", "e", "Zhao Hu", SocialLinkType.MARTIAL_BROTHER, 1)
        ripples = compute_ripples(graph, make_event(), config)
        ids = [r.affected_character_id for r in ripples]

        assert len(ids) == len(set(ids))

    def test_edge_insertion_order_does_not_matter(self, graph, config):
        # Two routes of equal length to e, and h reachable directly and via c
        graph.upsert("d", "Wu Ping", "e", "Zhao Hu", SocialLinkType.MARTIAL_BROTHER, 1)
        graph.upsert("b", "Zhao Yun", "h", "Zhao Lan", SocialLinkType.SIBLING, 1)
        graph.upsert("c", "Zhao Min", "h", "Zhao Lan", SocialLinkType.FRIEND, 1)
        edges = [link.model_copy(deep=True) for link in graph.links()]
        event = make_event()

        def ripple_set(links) -> set[tuple]:
            shuffled = SocialGraph.from_links(NOVEL, links)
            return {
                (
                    r.affected_character_id,
                    r.degrees_of_separation,
                    r.sentiment_change,
                    r.relationship_strength,
                    tuple((hop.character_id, hop.link_type) for hop in r.connection_path),
                )
                for r in compute_ripples(shuffled, event, config)
            }

        expected = ripple_set(edges)
        assert expected
        for seed in range(20):
            order = list(edges)
            random.Random(seed).shuffle(order)
            assert ripple_set(order) == expected, f"seed {seed}"

    def test_ordered_by_degree(self, graph, config):
        degrees = [r.degrees_of_separation for r in compute_ripples(graph, make_event(), config)]
        assert degrees == sorted(degrees)

    def test_protected_characters_skipped_for_negative(self, graph, config):
        ripples = by_id(compute_ripples(graph, make_event(), config, protected_ids={"c"}))

        assert "c" not in ripples
        assert "e" not in ripples
        assert "d" in ripples

    def test_protected_characters_receive_positive(self, graph, config):
        event = make_event(
            weight=60, action=KarmaActionType.SAVE, polarity=KarmaPolarity.POSITIVE
        )
        ripples = by_id(compute_ripples(graph, event, config, protected_ids={"c"}))

        assert ripples["c"].sentiment_change == 15
        assert not ripples["c"].becomes_threat


class TestRippleAnalyzer:
    @pytest.fixture
    def ledger(self) -> InMemoryLedgerRepository:
        return InMemoryLedgerRepository()

    @pytest.fixture
    def graph_repo(self) -> InMemoryGraphRepository:
        return InMemoryGraphRepository()

    @pytest.fixture
    def context(self, graph, config) -> NovelContext:
        return NovelContext(novel_id=NOVEL, config=config, graph=graph)

    @pytest.fixture
    def analyzer(self, ledger, graph_repo) -> RippleAnalyzer:
        return RippleAnalyzer(ledger, graph_repo)

    def test_should_ripple(self, analyzer, config):
        assert analyzer.should_ripple(make_event(weight=30), config)
        assert not analyzer.should_ripple(make_event(weight=29), config)
        disabled = config.model_copy(update={"auto_calculate_ripples": False})
        assert not analyzer.should_ripple(make_event(weight=90), disabled)

    def test_analyze_saves_and_tags_event(self, analyzer, context, ledger):
        event = make_event()
        saved = analyzer.analyze(context, event)

        assert len(saved) == len(ledger.get_ripples(NOVEL))
        assert set(event.ripple_affected_ids) == {"c", "d", "e", "f"}

    def test_profile_flag_protects(self, analyzer, context, ledger):
        ledger.save_profile(create_face_profile(NOVEL, "d", "Wu Ping", is_protected=True))
        event = make_event()
        analyzer.analyze(context, event)

        assert "d" not in event.ripple_affected_ids

    def test_failed_save_is_skipped(self, context, graph_repo, caplog):
        class FlakyLedger(InMemoryLedgerRepository):
            def save_ripple(self, ripple):
                if ripple.affected_character_id == "d":
                    raise PersistenceError("disk full")
                super().save_ripple(ripple)

        ledger = FlakyLedger()
        analyzer = RippleAnalyzer(ledger, graph_repo)
        saved = analyzer.analyze(context, make_event())

        assert "d" not in {r.affected_character_id for r in saved}
        assert "c" in {r.affected_character_id for r in ledger.get_ripples(NOVEL)}
        assert "Could not save ripple" in caplog.text

    def test_decay(self, analyzer, context, ledger):
        context.config = FaceGraphConfig(novel_id=NOVEL, karma_decay_per_chapter=0.5)
        fading = KarmaRipple(
            novel_id=NOVEL, source_event_id=uuid4(),
            original_actor_id="a", original_actor_name="Lin Feng",
            original_target_id="b", original_target_name="Zhao Yun",
            affected_character_id="c", affected_character_name="Zhao Min",
            degrees_of_separation=1, relationship_strength=1.0,
            sentiment_change=-25, decay_factor=0.2,
        )
        fresh = fading.model_copy(update={"id": uuid4(), "decay_factor": 0.8,
                                          "affected_character_id": "d"})
        done = fading.model_copy(update={"id": uuid4(), "decay_factor": 0.2,
                                         "affected_character_id": "e",
                                         "has_manifested": True})
        for ripple in (fading, fresh, done):
            ledger.save_ripple(ripple)

        result = analyzer.apply_ripple_decay(context, 1)

        assert result.removed == 1
        assert result.removed_ids == [fading.id]
        assert result.updated == 1
        assert ledger.get_ripple(NOVEL, fading.id) is None
        assert ledger.get_ripple(NOVEL, fresh.id).decay_factor == pytest.approx(0.4)
        assert ledger.get_ripple(NOVEL, done.id).decay_factor == 0.2

    def test_decay_zero_chapters_is_noop(self, analyzer, context, ledger):
        analyzer.analyze(context, make_event())
        before = [r.decay_factor for r in ledger.get_ripples(NOVEL)]

        result = analyzer.apply_ripple_decay(context, 0)

        assert result.updated == 0
        assert [r.decay_factor for r in ledger.get_ripples(NOVEL)] == before

    def test_decay_never_increases(self, analyzer, context, ledger):
        analyzer.analyze(context, make_event())
        previous = {r.id: r.decay_factor for r in ledger.get_ripples(NOVEL)}

        for _ in range(5):
            analyzer.apply_ripple_decay(context, 3)
            for ripple in ledger.get_ripples(NOVEL):
                assert ripple.decay_factor <= previous[ripple.id]
                previous[ripple.id] = ripple.decay_factor

    def test_negative_chapters_rejected(self, analyzer, context):
        with pytest.raises(ValueError):
            analyzer.apply_ripple_decay(context, -1)

    def test_manifest_creates_hidden_enemy_link(self, analyzer, context, ledger, graph_repo):
        analyzer.analyze(context, make_event())
        ripple = next(r for r in ledger.get_ripples(NOVEL) if r.affected_character_id == "c")

        manifested = analyzer.manifest_ripple(context, ripple.id, 9, "Zhao Min swears revenge")

        assert manifested.has_manifested
        assert manifested.manifested_chapter == 9
        link = context.graph.get("c", "a", SocialLinkType.ENEMY)
        assert link is not None
        assert link.strength == LinkStrength.WEAK
        assert link.sentiment_score == -24
        assert not link.is_known_to_target
        assert graph_repo.get_links(NOVEL)[0].key == link.key

    def test_manifest_adjusts_existing_links(self, analyzer, context, ledger):
        context.graph.upsert("c", "Zhao Min", "a", "Lin Feng", SocialLinkType.RIVAL, 2,
                             sentiment_score=-10)
        analyzer.analyze(context, make_event())
        ripple = next(r for r in ledger.get_ripples(NOVEL) if r.affected_character_id == "c")

        analyzer.manifest_ripple(context, ripple.id, 9)

        assert context.graph.get("c", "a", SocialLinkType.RIVAL).sentiment_score == -34
        assert context.graph.get("c", "a", SocialLinkType.ENEMY) is None

    def test_manifest_twice_is_noop(self, analyzer, context, ledger, caplog):
        analyzer.analyze(context, make_event())
        ripple = next(r for r in ledger.get_ripples(NOVEL) if r.affected_character_id == "c")

        analyzer.manifest_ripple(context, ripple.id, 9)
        second = analyzer.manifest_ripple(context, ripple.id, 12)

        assert second.manifested_chapter == 9
        assert context.graph.get("c", "a", SocialLinkType.ENEMY).sentiment_score == -24
        assert "already manifested" in caplog.text

    def test_manifest_unknown(self, analyzer, context):
        with pytest.raises(RecordNotFound):
            analyzer.manifest_ripple(context, uuid4(), 1)


class TestThreatAssessment:
    @pytest.fixture
    def snapshot(self, graph, config) -> FaceGraphSnapshot:
        graph.upsert("h", "Fang Li", "c", "Zhao Min", SocialLinkType.FRIEND, 1)
        characters = {
            "a": Character(id="a", novel_id=NOVEL, name="Lin Feng", is_protagonist=True),
            "b": Character(id="b", novel_id=NOVEL, name="Zhao Yun"),
        }
        return FaceGraphSnapshot(
            novel_id=NOVEL,
            config=config,
            graph=graph,
            characters=characters,
            events=[make_event()],
        )

    def test_close_bond_to_grave_wrong(self, snapshot):
        result = assess_threat(snapshot, "c", "a")

        assert result.threat_level == ThreatLevel.EXTREME
        assert result.direct_connections[0].wronged_character_id == "b"
        assert result.direct_connections[0].connection_type == SocialLinkType.DISCIPLE
        assert "disciple of Zhao Yun (kill, strong bond)" in result.threat_reasons
        assert len(result.story_hooks) == 3

    def test_moderate_bond_to_severe_wrong(self, snapshot):
        result = assess_threat(snapshot, "d", "a")
        assert result.threat_level == ThreatLevel.MAJOR

    def test_indirect_connection(self, snapshot):
        result = assess_threat(snapshot, "h", "a")

        assert result.direct_connections == []
        assert result.indirect_connections[0].wronged_character_id == "b"
        assert [h.character_id for h in result.indirect_connections[0].path_to_wronged] == ["c", "b"]
        assert result.threat_level == ThreatLevel.MINOR
        assert len(result.story_hooks) == 2

    def test_victim_themselves(self, snapshot):
        result = assess_threat(snapshot, "b", "a")

        assert result.personally_wronged
        assert result.threat_level == ThreatLevel.EXTREME

    def test_unconnected(self, snapshot):
        result = assess_threat(snapshot, "zzz", "a")

        assert result.threat_level == ThreatLevel.NONE
        assert result.threat_reasons == []

    def test_settled_wrongs_are_forgiven(self, snapshot):
        snapshot.events[0].settle(SettlementType.FORGIVEN, 8)
        assert assess_threat(snapshot, "c", "a").threat_level == ThreatLevel.NONE
