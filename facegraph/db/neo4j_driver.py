"""
Real Neo4j database implementation for the social graph.

Uses the official neo4j Python driver. Characters are (:Character) nodes
scoped by novel id; every directed SocialLink is one [:SOCIAL_LINK] edge,
merged on (source, target, link_type).
"""

from __future__ import annotations

import os
from typing import Any

from neo4j import Driver, GraphDatabase, Query, Session
from neo4j.exceptions import Neo4jError, ServiceUnavailable
from pydantic import ValidationError

from facegraph.errors import PersistenceError
from facegraph.models import SocialGraph, SocialLink, SocialLinkType


class Neo4jConnection:
    """
    Connection manager for Neo4j database.

    Handles driver lifecycle and provides session access.
    """

    def __init__(
        self,
        uri: str = "bolt://localhost:7687",
        user: str = "neo4j",
        password: str = "password",
        database: str = "neo4j",
    ) -> None:
        self.uri = uri
        self.auth = (user, password)
        self.database = database
        self._driver: Driver | None = None

    @classmethod
    def from_env(cls) -> Neo4jConnection:
        """Build a connection from NEO4J_* environment variables."""
        return cls(
            uri=os.getenv("NEO4J_URI", "bolt://localhost:7687"),
            user=os.getenv("NEO4J_USER", "neo4j"),
            password=os.getenv("NEO4J_PASSWORD", "password"),
            database=os.getenv("NEO4J_DATABASE", "neo4j"),
        )

    def get_driver(self) -> Driver:
        """Get or create a database driver."""
        if self._driver is None:
            self._driver = GraphDatabase.driver(self.uri, auth=self.auth)
        return self._driver

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.get_driver().session(database=self.database)

    def close(self) -> None:
        """Close the database driver."""
        if self._driver:
            self._driver.close()
            self._driver = None

    def verify_connectivity(self) -> bool:
        """Verify the database connection is working."""
        try:
            self.get_driver().verify_connectivity()
            return True
        except (Neo4jError, ServiceUnavailable, OSError):
            return False


class Neo4jGraphRepository:
    """
    Real Neo4j implementation of the GraphRepository interface.
    """

    def __init__(self, connection: Neo4jConnection) -> None:
        self._conn = connection

    def _run_query(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Execute a Cypher query and return results."""
        try:
            with self._conn.get_session() as session:
                result = session.run(Query(query), parameters or {})  # type: ignore[arg-type]
                return [dict(record) for record in result]
        except (Neo4jError, ServiceUnavailable) as e:
            raise PersistenceError(f"Neo4j query failed: {e}") from e

    def _run_write(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
    ) -> None:
        """Execute a write query."""
        try:
            with self._conn.get_session() as session:
                session.run(Query(query), parameters or {})  # type: ignore[arg-type]
        except (Neo4jError, ServiceUnavailable) as e:
            raise PersistenceError(f"Neo4j write failed: {e}") from e

    # =========================================================================
    # Link Operations
    # =========================================================================

    def upsert_link(self, link: SocialLink) -> None:
        """Insert or update a directed edge."""
        query = """
        MERGE (source:Character {id: $source_id, novel_id: $novel_id})
        SET source.name = $source_name
        MERGE (target:Character {id: $target_id, novel_id: $novel_id})
        SET target.name = $target_name
        MERGE (source)-[r:SOCIAL_LINK {link_type: $link_type}]->(target)
        SET r += $props
        """
        props = link.model_dump(
            mode="json",
            exclude={
                "source_character_id",
                "source_name",
                "target_character_id",
                "target_name",
                "link_type",
            },
        )
        self._run_write(
            query,
            {
                "novel_id": link.novel_id,
                "source_id": link.source_character_id,
                "source_name": link.source_name,
                "target_id": link.target_character_id,
                "target_name": link.target_name,
                "link_type": link.link_type.value,
                "props": props,
            },
        )

    def get_links(self, novel_id: str) -> list[SocialLink]:
        """Get every edge in a novel."""
        query = """
        MATCH (source:Character {novel_id: $novel_id})-[r:SOCIAL_LINK]->(target:Character)
        RETURN source.id AS source_id, source.name AS source_name,
               target.id AS target_id, target.name AS target_name,
               properties(r) AS props
        ORDER BY source_id, target_id, r.link_type
        """
        records = self._run_query(query, {"novel_id": novel_id})
        return [self._record_to_link(record) for record in records]

    def delete_link(
        self,
        novel_id: str,
        source_id: str,
        target_id: str,
        link_type: SocialLinkType,
    ) -> None:
        """Delete one edge."""
        query = """
        MATCH (source:Character {id: $source_id, novel_id: $novel_id})
              -[r:SOCIAL_LINK {link_type: $link_type}]->
              (target:Character {id: $target_id, novel_id: $novel_id})
        DELETE r
        """
        self._run_write(
            query,
            {
                "novel_id": novel_id,
                "source_id": source_id,
                "target_id": target_id,
                "link_type": link_type.value,
            },
        )

    def load_graph(self, novel_id: str) -> SocialGraph:
        """Load a novel's edges into an in-memory graph."""
        return SocialGraph.from_links(novel_id, self.get_links(novel_id))

    def _record_to_link(self, record: dict[str, Any]) -> SocialLink:
        """Convert a Neo4j record to a SocialLink."""
        try:
            data = dict(record["props"])
            data.update(
                source_character_id=record["source_id"],
                source_name=record["source_name"],
                target_character_id=record["target_id"],
                target_name=record["target_name"],
            )
            return SocialLink.model_validate(data)
        except (KeyError, ValidationError) as e:
            raise PersistenceError(f"Corrupt SocialLink record: {e}") from e


# Cypher statements for schema initialization
NEO4J_SCHEMA = [
    "CREATE INDEX character_id_index IF NOT EXISTS FOR (c:Character) ON (c.id)",
    "CREATE INDEX character_novel_index IF NOT EXISTS FOR (c:Character) ON (c.novel_id)",
    "CREATE INDEX link_type_index IF NOT EXISTS FOR ()-[r:SOCIAL_LINK]-() ON (r.link_type)",
    "CREATE INDEX link_novel_index IF NOT EXISTS FOR ()-[r:SOCIAL_LINK]-() ON (r.novel_id)",
]


def init_neo4j_schema(connection: Neo4jConnection) -> None:
    """Initialize the Neo4j indexes."""
    with connection.get_session() as session:
        for statement in NEO4J_SCHEMA:
            try:
                session.run(Query(statement))  # type: ignore[arg-type]
            except Neo4jError as e:
                # Index may already exist, that's fine
                if "already exists" not in str(e).lower():
                    raise PersistenceError(f"Could not initialize Neo4j schema: {e}") from e
