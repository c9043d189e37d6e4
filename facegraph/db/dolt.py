"""
Real Dolt database implementation for the Face Graph ledger.

Uses mysql-connector-python to connect to a Dolt SQL server. Every write is
followed by a Dolt commit, so the ledger keeps a versioned history of how
karma, Face and obligations changed chapter by chapter.

Each table has exactly one row -> model function. Those functions hand the
row to ``Model.model_validate`` and let pydantic reject missing or malformed
columns instead of defaulting them.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import UUID

import mysql.connector
from mysql.connector.cursor import MySQLCursor
from pydantic import ValidationError

from facegraph.errors import PersistenceError
from facegraph.models import (
    BloodFeud,
    Character,
    FaceDebt,
    FaceGraphConfig,
    FaceProfile,
    KarmaEvent,
    KarmaRipple,
)


class DoltConnection:
    """
    Connection manager for Dolt database.

    Holds a single lazily opened connection.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 3306,
        user: str = "root",
        password: str = "",
        database: str = "facegraph",
    ) -> None:
        self.config = {
            "host": host,
            "port": port,
            "user": user,
            "password": password,
            "database": database,
            "autocommit": True,
        }
        self._connection: Any = None

    @classmethod
    def from_env(cls) -> DoltConnection:
        """Build a connection from DOLT_* environment variables."""
        return cls(
            host=os.getenv("DOLT_HOST", "localhost"),
            port=int(os.getenv("DOLT_PORT", "3306")),
            user=os.getenv("DOLT_USER", "root"),
            password=os.getenv("DOLT_PASSWORD", ""),
            database=os.getenv("DOLT_DATABASE", "facegraph"),
        )

    def get_connection(self) -> Any:
        """Get or create a database connection."""
        if self._connection is None or not self._connection.is_connected():
            try:
                self._connection = mysql.connector.connect(**self.config)
            except mysql.connector.Error as e:
                raise PersistenceError(f"Could not connect to Dolt: {e}") from e
        return self._connection

    def close(self) -> None:
        """Close the database connection."""
        if self._connection and self._connection.is_connected():
            self._connection.close()
            self._connection = None


def _json_value(value: Any) -> Any:
    """JSON columns come back as str or bytes depending on server and driver."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return value


def _dump(models: list[Any]) -> str:
    return json.dumps([m.model_dump(mode="json") for m in models])


@contextmanager
def _row_errors(model: type[Any]) -> Iterator[None]:
    """Turn a missing column or invalid value into PersistenceError."""
    try:
        yield
    except (KeyError, ValidationError, json.JSONDecodeError) as e:
        raise PersistenceError(f"Corrupt {model.__name__} row: {e}") from e


class DoltLedgerRepository:
    """
    Real Dolt implementation of the LedgerRepository interface.

    Scalar fields live in columns; nested lists (modifiers, titles,
    escalations, connection paths) live in JSON columns.
    """

    def __init__(self, connection: DoltConnection, commit: bool = True) -> None:
        self._conn = connection
        self._commit_enabled = commit

    def _execute(
        self,
        query: str,
        params: tuple[Any, ...] | None = None,
        fetch: bool = True,
    ) -> list[dict[str, Any]]:
        """Execute a query and return results as list of dicts."""
        conn = self._conn.get_connection()
        cursor: MySQLCursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(query, params or ())
            if fetch:
                results = cursor.fetchall()
                return [dict(row) for row in results]  # type: ignore[arg-type]
            return []
        except mysql.connector.Error as e:
            raise PersistenceError(f"Dolt query failed: {e}") from e
        finally:
            cursor.close()

    def _commit(self, message: str) -> None:
        """Record the working set as a Dolt commit."""
        if not self._commit_enabled:
            return
        conn = self._conn.get_connection()
        cursor: MySQLCursor = conn.cursor(dictionary=True)
        try:
            cursor.callproc("dolt_commit", ("-am", message, "--allow-empty"))
        except mysql.connector.Error as e:
            raise PersistenceError(f"Dolt commit failed: {e}") from e
        finally:
            cursor.close()

    def _upsert(self, table: str, values: dict[str, Any], keys: tuple[str, ...]) -> None:
        """INSERT ... ON DUPLICATE KEY UPDATE every non-key column."""
        columns = list(values)
        placeholders = ", ".join(["%s"] * len(columns))
        updates = ", ".join(f"{c} = VALUES({c})" for c in columns if c not in keys)
        query = (
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) "
            f"ON DUPLICATE KEY UPDATE {updates}"
        )
        self._execute(query, tuple(values.values()), fetch=False)

    # =========================================================================
    # Roster
    # =========================================================================

    def save_character(self, character: Character) -> None:
        """Insert or update a roster entry."""
        self._upsert(
            "fg_characters",
            {
                "novel_id": character.novel_id,
                "id": character.id,
                "name": character.name,
                "aliases": json.dumps(character.aliases),
                "is_protagonist": character.is_protagonist,
                "role": character.role.value if character.role else None,
                "relationships": _dump(character.relationships),
            },
            keys=("novel_id", "id"),
        )
        self._commit(f"Save character {character.name}")

    def get_character(self, novel_id: str, character_id: str) -> Character | None:
        """Get a roster entry by id."""
        rows = self._execute(
            "SELECT * FROM fg_characters WHERE novel_id = %s AND id = %s",
            (novel_id, character_id),
        )
        return self._row_to_character(rows[0]) if rows else None

    def get_characters(self, novel_id: str) -> list[Character]:
        """Get the whole roster of a novel."""
        rows = self._execute(
            "SELECT * FROM fg_characters WHERE novel_id = %s ORDER BY id",
            (novel_id,),
        )
        return [self._row_to_character(row) for row in rows]

    def _row_to_character(self, row: dict[str, Any]) -> Character:
        """Convert a database row to a Character."""
        with _row_errors(Character):
            return Character.model_validate(
                {
                    "id": row["id"],
                    "novel_id": row["novel_id"],
                    "name": row["name"],
                    "aliases": _json_value(row["aliases"]) or [],
                    "is_protagonist": bool(row["is_protagonist"]),
                    "role": row.get("role"),
                    "relationships": _json_value(row.get("relationships")) or [],
                },
            )

    # =========================================================================
    # Face Profiles
    # =========================================================================

    def save_profile(self, profile: FaceProfile) -> None:
        """Insert or update a Face profile."""
        self._upsert(
            "face_profiles",
            {
                "id": str(profile.id),
                "novel_id": profile.novel_id,
                "character_id": profile.character_id,
                "character_name": profile.character_name,
                "category_scores": profile.category_scores.model_dump_json(),
                "total_face": profile.total_face,
                "karma_balance": profile.karma_balance,
                "positive_karma_total": profile.positive_karma_total,
                "negative_karma_total": profile.negative_karma_total,
                "titles": _dump(profile.titles),
                "accomplishments": _dump(profile.accomplishments),
                "shames": _dump(profile.shames),
                "is_protected": profile.is_protected,
                "last_updated_chapter": profile.last_updated_chapter,
            },
            keys=("id",),
        )
        self._commit(f"Save face profile {profile.character_name}")

    def get_profile(self, novel_id: str, character_id: str) -> FaceProfile | None:
        """Get a character's Face profile."""
        rows = self._execute(
            "SELECT * FROM face_profiles WHERE novel_id = %s AND character_id = %s",
            (novel_id, character_id),
        )
        return self._row_to_profile(rows[0]) if rows else None

    def get_profiles(self, novel_id: str) -> list[FaceProfile]:
        """Get every Face profile in a novel."""
        rows = self._execute(
            "SELECT * FROM face_profiles WHERE novel_id = %s ORDER BY character_id",
            (novel_id,),
        )
        return [self._row_to_profile(row) for row in rows]

    def delete_profile(self, novel_id: str, character_id: str) -> None:
        """Delete a character's Face profile."""
        self._execute(
            "DELETE FROM face_profiles WHERE novel_id = %s AND character_id = %s",
            (novel_id, character_id),
            fetch=False,
        )
        self._commit(f"Delete face profile {character_id}")

    def _row_to_profile(self, row: dict[str, Any]) -> FaceProfile:
        """Convert a database row to a FaceProfile. total_face is derived, not read."""
        with _row_errors(FaceProfile):
            return FaceProfile.model_validate(
                {
                    "id": row["id"],
                    "novel_id": row["novel_id"],
                    "character_id": row["character_id"],
                    "character_name": row["character_name"],
                    "category_scores": _json_value(row["category_scores"]),
                    "karma_balance": row["karma_balance"],
                    "positive_karma_total": row["positive_karma_total"],
                    "negative_karma_total": row["negative_karma_total"],
                    "titles": _json_value(row["titles"]),
                    "accomplishments": _json_value(row["accomplishments"]),
                    "shames": _json_value(row["shames"]),
                    "is_protected": bool(row["is_protected"]),
                    "last_updated_chapter": row["last_updated_chapter"],
                },
            )

    # =========================================================================
    # Karma Events
    # =========================================================================

    def save_event(self, event: KarmaEvent) -> None:
        """Insert or update a karma event."""
        self._upsert(
            "karma_events",
            {
                "id": str(event.id),
                "novel_id": event.novel_id,
                "actor_id": event.actor_id,
                "actor_name": event.actor_name,
                "target_id": event.target_id,
                "target_name": event.target_name,
                "action_type": event.action_type.value,
                "polarity": event.polarity.value,
                "severity": event.severity.value,
                "base_karma_weight": event.base_karma_weight,
                "weight_modifiers": _dump(event.weight_modifiers),
                "final_karma_weight": event.final_karma_weight,
                "chapter_number": event.chapter_number,
                "description": event.description,
                "was_witnessed": event.was_witnessed,
                "witness_ids": json.dumps(event.witness_ids),
                "affected_third_parties": json.dumps(event.affected_third_parties),
                "is_retaliation": event.is_retaliation,
                "retaliation_for_event_id": str(event.retaliation_for_event_id)
                if event.retaliation_for_event_id
                else None,
                "face_change_actor": event.face_change_actor,
                "face_change_target": event.face_change_target,
                "is_settled": event.is_settled,
                "settlement_type": event.settlement_type.value
                if event.settlement_type
                else None,
                "settled_chapter": event.settled_chapter,
                "ripple_affected_ids": json.dumps(event.ripple_affected_ids),
                "created_at": event.created_at,
            },
            keys=("id",),
        )
        self._commit(
            f"Karma: {event.actor_name} {event.action_type.value} {event.target_name}"
        )

    def get_event(self, novel_id: str, event_id: UUID) -> KarmaEvent | None:
        """Get a karma event by id."""
        rows = self._execute(
            "SELECT * FROM karma_events WHERE novel_id = %s AND id = %s",
            (novel_id, str(event_id)),
        )
        return self._row_to_event(rows[0]) if rows else None

    def get_events(self, novel_id: str) -> list[KarmaEvent]:
        """Get every karma event in a novel, oldest chapter first."""
        rows = self._execute(
            "SELECT * FROM karma_events WHERE novel_id = %s "
            "ORDER BY chapter_number, created_at",
            (novel_id,),
        )
        return [self._row_to_event(row) for row in rows]

    def _row_to_event(self, row: dict[str, Any]) -> KarmaEvent:
        """Convert a database row to a KarmaEvent."""
        with _row_errors(KarmaEvent):
            return KarmaEvent.model_validate(
                {
                    "id": row["id"],
                    "novel_id": row["novel_id"],
                    "actor_id": row["actor_id"],
                    "actor_name": row["actor_name"],
                    "target_id": row["target_id"],
                    "target_name": row["target_name"],
                    "action_type": row["action_type"],
                    "polarity": row["polarity"],
                    "severity": row["severity"],
                    "base_karma_weight": row["base_karma_weight"],
                    "weight_modifiers": _json_value(row["weight_modifiers"]),
                    "final_karma_weight": row["final_karma_weight"],
                    "chapter_number": row["chapter_number"],
                    "description": row["description"],
                    "was_witnessed": bool(row["was_witnessed"]),
                    "witness_ids": _json_value(row["witness_ids"]),
                    "affected_third_parties": _json_value(row["affected_third_parties"]),
                    "is_retaliation": bool(row["is_retaliation"]),
                    "retaliation_for_event_id": row["retaliation_for_event_id"],
                    "face_change_actor": row["face_change_actor"],
                    "face_change_target": row["face_change_target"],
                    "is_settled": bool(row["is_settled"]),
                    "settlement_type": row["settlement_type"],
                    "settled_chapter": row["settled_chapter"],
                    "ripple_affected_ids": _json_value(row["ripple_affected_ids"]),
                    "created_at": row["created_at"],
                },
            )

    # =========================================================================
    # Ripples
    # =========================================================================

    def save_ripple(self, ripple: KarmaRipple) -> None:
        """Insert or update a ripple."""
        self._upsert(
            "karma_ripples",
            {
                "id": str(ripple.id),
                "novel_id": ripple.novel_id,
                "source_event_id": str(ripple.source_event_id),
                "original_actor_id": ripple.original_actor_id,
                "original_actor_name": ripple.original_actor_name,
                "original_target_id": ripple.original_target_id,
                "original_target_name": ripple.original_target_name,
                "affected_character_id": ripple.affected_character_id,
                "affected_character_name": ripple.affected_character_name,
                "connection_path": _dump(ripple.connection_path),
                "degrees_of_separation": ripple.degrees_of_separation,
                "relationship_strength": ripple.relationship_strength,
                "sentiment_change": ripple.sentiment_change,
                "becomes_threat": ripple.becomes_threat,
                "threat_level": ripple.threat_level.value,
                "potential_response": ripple.potential_response,
                "decay_factor": ripple.decay_factor,
                "calculated_at_chapter": ripple.calculated_at_chapter,
                "has_manifested": ripple.has_manifested,
                "manifested_chapter": ripple.manifested_chapter,
                "manifestation_description": ripple.manifestation_description,
                "created_at": ripple.created_at,
            },
            keys=("id",),
        )
        self._commit(f"Ripple to {ripple.affected_character_name}")

    def get_ripple(self, novel_id: str, ripple_id: UUID) -> KarmaRipple | None:
        """Get a ripple by id."""
        rows = self._execute(
            "SELECT * FROM karma_ripples WHERE novel_id = %s AND id = %s",
            (novel_id, str(ripple_id)),
        )
        return self._row_to_ripple(rows[0]) if rows else None

    def get_ripples(self, novel_id: str) -> list[KarmaRipple]:
        """Get every ripple in a novel."""
        rows = self._execute(
            "SELECT * FROM karma_ripples WHERE novel_id = %s "
            "ORDER BY calculated_at_chapter, affected_character_id",
            (novel_id,),
        )
        return [self._row_to_ripple(row) for row in rows]

    def delete_ripple(self, novel_id: str, ripple_id: UUID) -> None:
        """Delete a faded ripple."""
        self._execute(
            "DELETE FROM karma_ripples WHERE novel_id = %s AND id = %s",
            (novel_id, str(ripple_id)),
            fetch=False,
        )
        self._commit(f"Ripple {ripple_id} faded")

    def _row_to_ripple(self, row: dict[str, Any]) -> KarmaRipple:
        """Convert a database row to a KarmaRipple."""
        with _row_errors(KarmaRipple):
            return KarmaRipple.model_validate(
                {
                    "id": row["id"],
                    "novel_id": row["novel_id"],
                    "source_event_id": row["source_event_id"],
                    "original_actor_id": row["original_actor_id"],
                    "original_actor_name": row["original_actor_name"],
                    "original_target_id": row["original_target_id"],
                    "original_target_name": row["original_target_name"],
                    "affected_character_id": row["affected_character_id"],
                    "affected_character_name": row["affected_character_name"],
                    "connection_path": _json_value(row["connection_path"]),
                    "degrees_of_separation": row["degrees_of_separation"],
                    "relationship_strength": row["relationship_strength"],
                    "sentiment_change": row["sentiment_change"],
                    "becomes_threat": bool(row["becomes_threat"]),
                    "threat_level": row["threat_level"],
                    "potential_response": row["potential_response"],
                    "decay_factor": row["decay_factor"],
                    "calculated_at_chapter": row["calculated_at_chapter"],
                    "has_manifested": bool(row["has_manifested"]),
                    "manifested_chapter": row["manifested_chapter"],
                    "manifestation_description": row["manifestation_description"],
                    "created_at": row["created_at"],
                },
            )

    # =========================================================================
    # Blood Feuds
    # =========================================================================

    def save_feud(self, feud: BloodFeud) -> None:
        """Insert or update a blood feud."""
        self._upsert(
            "blood_feuds",
            {
                "id": str(feud.id),
                "novel_id": feud.novel_id,
                "feud_name": feud.feud_name,
                "aggrieved_party": feud.aggrieved_party.model_dump_json(),
                "target_party": feud.target_party.model_dump_json(),
                "origin_event_id": str(feud.origin_event_id)
                if feud.origin_event_id
                else None,
                "origin_description": feud.origin_description,
                "started_chapter": feud.started_chapter,
                "intensity": feud.intensity,
                "escalations": _dump(feud.escalations),
                "is_resolved": feud.is_resolved,
                "resolution_type": feud.resolution_type.value
                if feud.resolution_type
                else None,
                "resolved_chapter": feud.resolved_chapter,
                "resolution_description": feud.resolution_description,
                "created_at": feud.created_at,
            },
            keys=("id",),
        )
        self._commit(f"Save blood feud {feud.feud_name}")

    def get_feud(self, novel_id: str, feud_id: UUID) -> BloodFeud | None:
        """Get a blood feud by id."""
        rows = self._execute(
            "SELECT * FROM blood_feuds WHERE novel_id = %s AND id = %s",
            (novel_id, str(feud_id)),
        )
        return self._row_to_feud(rows[0]) if rows else None

    def get_feuds(self, novel_id: str) -> list[BloodFeud]:
        """Get every blood feud in a novel."""
        rows = self._execute(
            "SELECT * FROM blood_feuds WHERE novel_id = %s "
            "ORDER BY started_chapter, feud_name",
            (novel_id,),
        )
        return [self._row_to_feud(row) for row in rows]

    def delete_feud(self, novel_id: str, feud_id: UUID) -> None:
        """Delete a blood feud."""
        self._execute(
            "DELETE FROM blood_feuds WHERE novel_id = %s AND id = %s",
            (novel_id, str(feud_id)),
            fetch=False,
        )
        self._commit(f"Delete blood feud {feud_id}")

    def _row_to_feud(self, row: dict[str, Any]) -> BloodFeud:
        """Convert a database row to a BloodFeud."""
        with _row_errors(BloodFeud):
            return BloodFeud.model_validate(
                {
                    "id": row["id"],
                    "novel_id": row["novel_id"],
                    "feud_name": row["feud_name"],
                    "aggrieved_party": _json_value(row["aggrieved_party"]),
                    "target_party": _json_value(row["target_party"]),
                    "origin_event_id": row["origin_event_id"],
                    "origin_description": row["origin_description"],
                    "started_chapter": row["started_chapter"],
                    "intensity": row["intensity"],
                    "escalations": _json_value(row["escalations"]),
                    "is_resolved": bool(row["is_resolved"]),
                    "resolution_type": row["resolution_type"],
                    "resolved_chapter": row["resolved_chapter"],
                    "resolution_description": row["resolution_description"],
                    "created_at": row["created_at"],
                },
            )

    # =========================================================================
    # Debts
    # =========================================================================

    def save_debt(self, debt: FaceDebt) -> None:
        """Insert or update a debt."""
        self._upsert(
            "face_debts",
            {
                "id": str(debt.id),
                "novel_id": debt.novel_id,
                "debtor_id": debt.debtor_id,
                "debtor_name": debt.debtor_name,
                "creditor_id": debt.creditor_id,
                "creditor_name": debt.creditor_name,
                "debt_type": debt.debt_type.value,
                "weight": debt.weight,
                "description": debt.description,
                "origin_event_id": str(debt.origin_event_id)
                if debt.origin_event_id
                else None,
                "incurred_chapter": debt.incurred_chapter,
                "is_repaid": debt.is_repaid,
                "repaid_chapter": debt.repaid_chapter,
                "repayment_description": debt.repayment_description,
                "can_be_inherited": debt.can_be_inherited,
                "was_inherited": debt.was_inherited,
                "inherited_from_id": debt.inherited_from_id,
                "created_at": debt.created_at,
            },
            keys=("id",),
        )
        self._commit(f"Debt: {debt.debtor_name} owes {debt.creditor_name}")

    def get_debt(self, novel_id: str, debt_id: UUID) -> FaceDebt | None:
        """Get a debt by id."""
        rows = self._execute(
            "SELECT * FROM face_debts WHERE novel_id = %s AND id = %s",
            (novel_id, str(debt_id)),
        )
        return self._row_to_debt(rows[0]) if rows else None

    def get_debts(self, novel_id: str) -> list[FaceDebt]:
        """Get every debt in a novel."""
        rows = self._execute(
            "SELECT * FROM face_debts WHERE novel_id = %s "
            "ORDER BY incurred_chapter, created_at",
            (novel_id,),
        )
        return [self._row_to_debt(row) for row in rows]

    def delete_debt(self, novel_id: str, debt_id: UUID) -> None:
        """Delete a debt."""
        self._execute(
            "DELETE FROM face_debts WHERE novel_id = %s AND id = %s",
            (novel_id, str(debt_id)),
            fetch=False,
        )
        self._commit(f"Delete debt {debt_id}")

    def _row_to_debt(self, row: dict[str, Any]) -> FaceDebt:
        """Convert a database row to a FaceDebt."""
        with _row_errors(FaceDebt):
            return FaceDebt.model_validate(
                {
                    "id": row["id"],
                    "novel_id": row["novel_id"],
                    "debtor_id": row["debtor_id"],
                    "debtor_name": row["debtor_name"],
                    "creditor_id": row["creditor_id"],
                    "creditor_name": row["creditor_name"],
                    "debt_type": row["debt_type"],
                    "weight": row["weight"],
                    "description": row["description"],
                    "origin_event_id": row["origin_event_id"],
                    "incurred_chapter": row["incurred_chapter"],
                    "is_repaid": bool(row["is_repaid"]),
                    "repaid_chapter": row["repaid_chapter"],
                    "repayment_description": row["repayment_description"],
                    "can_be_inherited": bool(row["can_be_inherited"]),
                    "was_inherited": bool(row["was_inherited"]),
                    "inherited_from_id": row["inherited_from_id"],
                    "created_at": row["created_at"],
                },
            )

    # =========================================================================
    # Config
    # =========================================================================

    def save_config(self, config: FaceGraphConfig) -> None:
        """Insert or update a novel's config."""
        self._upsert(
            "face_graph_config",
            {"novel_id": config.novel_id, "config": config.model_dump_json()},
            keys=("novel_id",),
        )
        self._commit(f"Save face graph config for {config.novel_id}")

    def get_config(self, novel_id: str) -> FaceGraphConfig | None:
        """Get a novel's config, or None if it runs on defaults."""
        rows = self._execute(
            "SELECT * FROM face_graph_config WHERE novel_id = %s",
            (novel_id,),
        )
        if not rows:
            return None
        with _row_errors(FaceGraphConfig):
            return FaceGraphConfig.model_validate(_json_value(rows[0]["config"]))


# SQL schema for initializing the database
DOLT_SCHEMA = """
-- Character roster (names only, owned by the novel pipeline)
CREATE TABLE IF NOT EXISTS fg_characters (
    novel_id VARCHAR(64) NOT NULL,
    id VARCHAR(64) NOT NULL,
    name VARCHAR(255) NOT NULL,
    aliases JSON,
    is_protagonist BOOLEAN NOT NULL DEFAULT FALSE,
    role VARCHAR(32),
    relationships JSON,
    PRIMARY KEY (novel_id, id),
    INDEX idx_name (novel_id, name)
);

-- Face profiles, one per character
CREATE TABLE IF NOT EXISTS face_profiles (
    id VARCHAR(36) PRIMARY KEY,
    novel_id VARCHAR(64) NOT NULL,
    character_id VARCHAR(64) NOT NULL,
    character_name VARCHAR(255) NOT NULL,
    category_scores JSON NOT NULL,
    total_face INT NOT NULL DEFAULT 0,
    karma_balance INT NOT NULL DEFAULT 0,
    positive_karma_total INT NOT NULL DEFAULT 0,
    negative_karma_total INT NOT NULL DEFAULT 0,
    titles JSON NOT NULL,
    accomplishments JSON NOT NULL,
    shames JSON NOT NULL,
    is_protected BOOLEAN NOT NULL DEFAULT FALSE,
    last_updated_chapter INT NOT NULL DEFAULT 0,
    UNIQUE KEY uk_character (novel_id, character_id),
    INDEX idx_total_face (novel_id, total_face)
);

-- Karma events (facts, only settlement and ripple ids change)
CREATE TABLE IF NOT EXISTS karma_events (
    id VARCHAR(36) PRIMARY KEY,
    novel_id VARCHAR(64) NOT NULL,
    actor_id VARCHAR(64) NOT NULL,
    actor_name VARCHAR(255) NOT NULL,
    target_id VARCHAR(64) NOT NULL,
    target_name VARCHAR(255) NOT NULL,
    action_type VARCHAR(50) NOT NULL,
    polarity VARCHAR(20) NOT NULL,
    severity VARCHAR(20) NOT NULL,
    base_karma_weight INT NOT NULL,
    weight_modifiers JSON NOT NULL,
    final_karma_weight INT NOT NULL,
    chapter_number INT NOT NULL,
    description TEXT,
    was_witnessed BOOLEAN NOT NULL DEFAULT FALSE,
    witness_ids JSON NOT NULL,
    affected_third_parties JSON NOT NULL,
    is_retaliation BOOLEAN NOT NULL DEFAULT FALSE,
    retaliation_for_event_id VARCHAR(36),
    face_change_actor INT NOT NULL DEFAULT 0,
    face_change_target INT NOT NULL DEFAULT 0,
    is_settled BOOLEAN NOT NULL DEFAULT FALSE,
    settlement_type VARCHAR(20),
    settled_chapter INT,
    ripple_affected_ids JSON NOT NULL,
    created_at DATETIME NOT NULL,
    INDEX idx_novel_chapter (novel_id, chapter_number),
    INDEX idx_actor (novel_id, actor_id),
    INDEX idx_target (novel_id, target_id)
);

-- Ripples (derived, deleted once faded)
CREATE TABLE IF NOT EXISTS karma_ripples (
    id VARCHAR(36) PRIMARY KEY,
    novel_id VARCHAR(64) NOT NULL,
    source_event_id VARCHAR(36) NOT NULL,
    original_actor_id VARCHAR(64) NOT NULL,
    original_actor_name VARCHAR(255) NOT NULL,
    original_target_id VARCHAR(64) NOT NULL,
    original_target_name VARCHAR(255) NOT NULL,
    affected_character_id VARCHAR(64) NOT NULL,
    affected_character_name VARCHAR(255) NOT NULL,
    connection_path JSON NOT NULL,
    degrees_of_separation INT NOT NULL,
    relationship_strength FLOAT NOT NULL,
    sentiment_change INT NOT NULL,
    becomes_threat BOOLEAN NOT NULL DEFAULT FALSE,
    threat_level VARCHAR(20) NOT NULL,
    potential_response TEXT,
    decay_factor DOUBLE NOT NULL,
    calculated_at_chapter INT NOT NULL,
    has_manifested BOOLEAN NOT NULL DEFAULT FALSE,
    manifested_chapter INT,
    manifestation_description TEXT,
    created_at DATETIME NOT NULL,
    INDEX idx_source_event (source_event_id),
    INDEX idx_affected (novel_id, affected_character_id)
);

-- Blood feuds
CREATE TABLE IF NOT EXISTS blood_feuds (
    id VARCHAR(36) PRIMARY KEY,
    novel_id VARCHAR(64) NOT NULL,
    feud_name VARCHAR(255) NOT NULL,
    aggrieved_party JSON NOT NULL,
    target_party JSON NOT NULL,
    origin_event_id VARCHAR(36),
    origin_description TEXT,
    started_chapter INT NOT NULL,
    intensity INT NOT NULL DEFAULT 50,
    escalations JSON NOT NULL,
    is_resolved BOOLEAN NOT NULL DEFAULT FALSE,
    resolution_type VARCHAR(50),
    resolved_chapter INT,
    resolution_description TEXT,
    created_at DATETIME NOT NULL,
    INDEX idx_novel_resolved (novel_id, is_resolved)
);

-- Face debts
CREATE TABLE IF NOT EXISTS face_debts (
    id VARCHAR(36) PRIMARY KEY,
    novel_id VARCHAR(64) NOT NULL,
    debtor_id VARCHAR(64) NOT NULL,
    debtor_name VARCHAR(255) NOT NULL,
    creditor_id VARCHAR(64) NOT NULL,
    creditor_name VARCHAR(255) NOT NULL,
    debt_type VARCHAR(50) NOT NULL,
    weight INT NOT NULL,
    description TEXT,
    origin_event_id VARCHAR(36),
    incurred_chapter INT NOT NULL,
    is_repaid BOOLEAN NOT NULL DEFAULT FALSE,
    repaid_chapter INT,
    repayment_description TEXT,
    can_be_inherited BOOLEAN NOT NULL DEFAULT TRUE,
    was_inherited BOOLEAN NOT NULL DEFAULT FALSE,
    inherited_from_id VARCHAR(64),
    created_at DATETIME NOT NULL,
    INDEX idx_debtor (novel_id, debtor_id),
    INDEX idx_creditor (novel_id, creditor_id)
);

-- Per-novel engine config
CREATE TABLE IF NOT EXISTS face_graph_config (
    novel_id VARCHAR(64) PRIMARY KEY,
    config JSON NOT NULL
);
"""


def init_dolt_schema(connection: DoltConnection) -> None:
    """Initialize the Dolt database schema."""
    conn = connection.get_connection()
    cursor = conn.cursor()
    try:
        for statement in DOLT_SCHEMA.split(";"):
            statement = statement.strip()
            if statement:
                cursor.execute(statement)
        conn.commit()
    except mysql.connector.Error as e:
        raise PersistenceError(f"Could not initialize Dolt schema: {e}") from e
    finally:
        cursor.close()
