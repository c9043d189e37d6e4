"""Tests for the Neo4j graph repository against a mocked driver session."""

from __future__ import annotations

import os
from unittest.mock import MagicMock, patch

import pytest
from neo4j.exceptions import ServiceUnavailable

from facegraph.db.neo4j_driver import Neo4jConnection, Neo4jGraphRepository
from facegraph.errors import PersistenceError
from facegraph.models import LinkStrength, SocialLink, SocialLinkType

NOVEL = "novel-1"

ENDPOINT_FIELDS = {"source_character_id", "source_name", "target_character_id", "target_name"}


def enemy_link() -> SocialLink:
    return SocialLink(
        novel_id=NOVEL,
        source_character_id="zy",
        source_name="Zhao Yun",
        target_character_id="mc",
        target_name="Lin Feng",
        link_type=SocialLinkType.ENEMY,
        strength=LinkStrength.STRONG,
        sentiment_score=-64,
        unsettled_karma=80,
    )


def link_record(link: SocialLink) -> dict:
    """Shape of one row returned by the get_links query."""
    return {
        "source_id": link.source_character_id,
        "source_name": link.source_name,
        "target_id": link.target_character_id,
        "target_name": link.target_name,
        "props": link.model_dump(mode="json", exclude=ENDPOINT_FIELDS),
    }


@pytest.fixture
def session() -> MagicMock:
    return MagicMock()


@pytest.fixture
def repo(session) -> Neo4jGraphRepository:
    connection = MagicMock(spec=Neo4jConnection)
    connection.get_session.return_value.__enter__.return_value = session
    return Neo4jGraphRepository(connection)


class TestNeo4jConnection:
    @patch.dict(os.environ, {"NEO4J_URI": "bolt://graph:7687", "NEO4J_USER": "writer"}, clear=True)
    def test_from_env(self):
        conn = Neo4jConnection.from_env()

        assert conn.uri == "bolt://graph:7687"
        assert conn.auth == ("writer", "password")
        assert conn.database == "neo4j"


class TestNeo4jGraphRepository:
    def test_upsert_sends_edge_properties(self, repo, session):
        repo.upsert_link(enemy_link())

        _, params = session.run.call_args[0]
        assert params["source_id"] == "zy"
        assert params["target_name"] == "Lin Feng"
        assert params["link_type"] == "enemy"
        assert params["props"]["sentiment_score"] == -64
        assert params["props"]["strength"] == "strong"
        assert ENDPOINT_FIELDS.isdisjoint(params["props"])
        assert "link_type" not in params["props"]

    def test_get_links(self, repo, session):
        link = enemy_link()
        session.run.return_value = [link_record(link)]

        loaded = repo.get_links(NOVEL)

        assert loaded == [link]
        assert session.run.call_args[0][1] == {"novel_id": NOVEL}

    def test_load_graph(self, repo, session):
        session.run.return_value = [link_record(enemy_link())]

        graph = repo.load_graph(NOVEL)

        assert len(graph) == 1
        assert graph.get("zy", "mc", SocialLinkType.ENEMY).unsettled_karma == 80

    def test_delete_link(self, repo, session):
        repo.delete_link(NOVEL, "zy", "mc", SocialLinkType.ENEMY)

        query, params = session.run.call_args[0]
        assert "DELETE r" in query.text
        assert params["link_type"] == "enemy"

    def test_corrupt_record(self, repo, session):
        record = link_record(enemy_link())
        record["props"]["sentiment_score"] = -500
        session.run.return_value = [record]

        with pytest.raises(PersistenceError, match="Corrupt SocialLink record"):
            repo.get_links(NOVEL)

    def test_missing_endpoint(self, repo, session):
        record = link_record(enemy_link())
        del record["target_id"]
        session.run.return_value = [record]

        with pytest.raises(PersistenceError):
            repo.get_links(NOVEL)

    def test_driver_errors_wrapped(self, repo, session):
        session.run.side_effect = ServiceUnavailable("no route to host")

        with pytest.raises(PersistenceError, match="Neo4j query failed"):
            repo.get_links(NOVEL)
        with pytest.raises(PersistenceError, match="Neo4j write failed"):
            repo.upsert_link(enemy_link())
