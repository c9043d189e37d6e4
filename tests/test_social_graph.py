"""Tests for the in-memory directed social graph."""

from __future__ import annotations

import pytest

from facegraph.models import LinkStrength, SocialGraph, SocialLinkType


@pytest.fixture
def graph() -> SocialGraph:
    g = SocialGraph("novel-1")
    g.upsert("a", "Lin Feng", "b", "Zhao Yun", SocialLinkType.ENEMY, 1, sentiment_score=-40)
    g.upsert("b", "Zhao Yun", "a", "Lin Feng", SocialLinkType.RIVAL, 1)
    g.upsert("b", "Zhao Yun", "c", "Elder Zhao", SocialLinkType.DISCIPLE, 1)
    return g


class TestUpsert:
    def test_creates_with_defaults(self, graph):
        link = graph.get("b", "a", SocialLinkType.RIVAL)

        assert link is not None
        assert link.strength == LinkStrength.MODERATE
        assert link.sentiment_score == 0
        assert link.established_chapter == 1

    def test_updates_in_place(self, graph):
        graph.upsert(
            "a", "Lin Feng", "b", "Zhao Yun", SocialLinkType.ENEMY, 7,
            strength=LinkStrength.STRONG, sentiment_score=-80,
            relationship_history="Duel at the river",
        )
        link = graph.get("a", "b", SocialLinkType.ENEMY)

        assert len(graph) == 3
        assert link.strength == LinkStrength.STRONG
        assert link.sentiment_score == -80
        assert link.established_chapter == 1
        assert link.last_interaction_chapter == 7
        assert link.relationship_history == "Duel at the river"

    def test_clamps_sentiment(self, graph):
        link = graph.upsert("c", "Elder Zhao", "a", "Lin Feng", SocialLinkType.ENEMY, 2,
                            sentiment_score=-500)
        assert link.sentiment_score == -100

    def test_unknown_field_rejected_on_update(self, graph):
        with pytest.raises(ValueError):
            graph.upsert("a", "Lin Feng", "b", "Zhao Yun", SocialLinkType.ENEMY, 2,
                         not_a_field=True)

    def test_same_pair_different_types(self, graph):
        graph.upsert("a", "Lin Feng", "b", "Zhao Yun", SocialLinkType.DEBT_OWED, 3)

        types = {link.link_type for link in graph.directed_links("a", "b")}
        assert types == {SocialLinkType.ENEMY, SocialLinkType.DEBT_OWED}


class TestQueries:
    def test_direction_matters(self, graph):
        assert [l.link_type for l in graph.directed_links("a", "b")] == [SocialLinkType.ENEMY]
        assert [l.link_type for l in graph.directed_links("b", "a")] == [SocialLinkType.RIVAL]

    def test_neighbors_both_directions(self, graph):
        assert len(graph.neighbors("b")) == 3
        assert len(graph.outgoing("b")) == 2
        assert len(graph.incoming("b")) == 1

    def test_neighbors_filtered_by_type(self, graph):
        links = graph.neighbors("b", [SocialLinkType.DISCIPLE])
        assert [l.target_character_id for l in links] == ["c"]

    def test_links_between(self, graph):
        assert len(graph.links_between("a", "b")) == 2
        assert graph.links_between("a", "c") == []

    def test_characters_and_names(self, graph):
        assert graph.characters() == ["a", "b", "c"]
        assert graph.name_of("c") == "Elder Zhao"
        assert graph.name_of("zzz") is None

    def test_remove(self, graph):
        assert graph.remove("b", "c", SocialLinkType.DISCIPLE)
        assert not graph.remove("b", "c", SocialLinkType.DISCIPLE)
        assert "c" not in graph.characters()

    def test_copy_is_independent(self, graph):
        clone = graph.copy()
        clone.get("a", "b", SocialLinkType.ENEMY).adjust_sentiment(-60)

        assert graph.get("a", "b", SocialLinkType.ENEMY).sentiment_score == -40
