"""Tests for the Dolt ledger repository against a mocked MySQL connection."""

from __future__ import annotations

import json
import os
from unittest.mock import MagicMock, patch
from uuid import uuid4

import mysql.connector
import pytest

from facegraph.db.dolt import DoltConnection, DoltLedgerRepository
from facegraph.errors import PersistenceError
from facegraph.models import (
    Character,
    CharacterRelationship,
    CharacterRole,
    FaceGraphConfig,
    KarmaActionType,
    KarmaEvent,
    KarmaPolarity,
    KarmaSeverity,
)

NOVEL = "novel-1"


def kill_event() -> KarmaEvent:
    return KarmaEvent(
        novel_id=NOVEL,
        actor_id="mc",
        actor_name="Lin Feng",
        target_id="zy",
        target_name="Zhao Yun",
        action_type=KarmaActionType.KILL,
        polarity=KarmaPolarity.NEGATIVE,
        severity=KarmaSeverity.SEVERE,
        base_karma_weight=80,
        final_karma_weight=100,
        chapter_number=12,
        witness_ids=["elder"],
    )


def event_row(event: KarmaEvent) -> dict:
    """What the driver hands back: JSON columns as text, booleans as ints."""
    row = event.model_dump(mode="json")
    for column in ("weight_modifiers", "witness_ids", "affected_third_parties", "ripple_affected_ids"):
        row[column] = json.dumps(row[column])
    for column in ("was_witnessed", "is_retaliation", "is_settled"):
        row[column] = int(row[column])
    return row


@pytest.fixture
def cursor() -> MagicMock:
    return MagicMock()


@pytest.fixture
def connection(cursor) -> DoltConnection:
    conn = DoltConnection()
    conn._connection = MagicMock()
    conn._connection.cursor.return_value = cursor
    return conn


@pytest.fixture
def repo(connection) -> DoltLedgerRepository:
    return DoltLedgerRepository(connection)


class TestDoltConnection:
    @patch.dict(
        os.environ,
        {"DOLT_HOST": "dolt.local", "DOLT_PORT": "3307", "DOLT_DATABASE": "novels"},
        clear=True,
    )
    def test_from_env(self):
        conn = DoltConnection.from_env()

        assert conn.config["host"] == "dolt.local"
        assert conn.config["port"] == 3307
        assert conn.config["database"] == "novels"
        assert conn.config["user"] == "root"

    def test_connect_failure(self):
        conn = DoltConnection()
        with patch(
            "mysql.connector.connect",
            side_effect=mysql.connector.Error("refused"),
        ):
            with pytest.raises(PersistenceError, match="Could not connect"):
                conn.get_connection()


class TestDoltWrites:
    def test_save_character_upserts_and_commits(self, repo, cursor):
        repo.save_character(
            Character(id="mc", novel_id=NOVEL, name="Lin Feng", aliases=["Young Master Lin"])
        )

        query, params = cursor.execute.call_args[0]
        assert query.startswith("INSERT INTO fg_characters")
        assert "ON DUPLICATE KEY UPDATE" in query
        assert "name = VALUES(name)" in query
        assert "novel_id = VALUES(novel_id)" not in query
        assert params == (NOVEL, "mc", "Lin Feng", '["Young Master Lin"]', False, None, "[]")

        cursor.callproc.assert_called_once_with(
            "dolt_commit", ("-am", "Save character Lin Feng", "--allow-empty")
        )

    def test_deletes_are_scoped_and_committed(self, repo, cursor):
        feud_id = uuid4()
        repo.delete_profile(NOVEL, "mc")
        repo.delete_feud(NOVEL, feud_id)

        (profile_query, profile_params), (feud_query, feud_params) = [
            c.args for c in cursor.execute.call_args_list
        ]
        assert profile_query.startswith("DELETE FROM face_profiles")
        assert profile_params == (NOVEL, "mc")
        assert feud_query.startswith("DELETE FROM blood_feuds")
        assert feud_params == (NOVEL, str(feud_id))
        cursor.callproc.assert_called_with(
            "dolt_commit", ("-am", f"Delete blood feud {feud_id}", "--allow-empty")
        )

    def test_commit_can_be_disabled(self, connection, cursor):
        repo = DoltLedgerRepository(connection, commit=False)
        repo.save_config(FaceGraphConfig(novel_id=NOVEL))

        cursor.execute.assert_called_once()
        cursor.callproc.assert_not_called()

    def test_query_error_wrapped(self, repo, cursor):
        cursor.execute.side_effect = mysql.connector.Error("table missing")

        with pytest.raises(PersistenceError, match="Dolt query failed"):
            repo.get_events(NOVEL)
        cursor.close.assert_called_once()

    def test_commit_error_wrapped(self, repo, cursor):
        cursor.callproc.side_effect = mysql.connector.Error("nothing to commit")

        with pytest.raises(PersistenceError, match="Dolt commit failed"):
            repo.save_event(kill_event())


class TestDoltReads:
    def test_character_row(self, repo, cursor):
        cursor.fetchall.return_value = [
            {
                "novel_id": NOVEL,
                "id": "mc",
                "name": "Lin Feng",
                "aliases": b'["Young Master Lin"]',
                "is_protagonist": 1,
            }
        ]

        character = repo.get_character(NOVEL, "mc")

        assert character.aliases == ["Young Master Lin"]
        assert character.is_protagonist is True
        assert cursor.execute.call_args[0][1] == (NOVEL, "mc")

    def test_character_role_and_relationships(self, repo, cursor):
        cursor.fetchall.return_value = [
            {
                "novel_id": NOVEL,
                "id": "zy",
                "name": "Zhao Yun",
                "aliases": "[]",
                "is_protagonist": 0,
                "role": "antagonist",
                "relationships": '[{"target_name": "Elder Zhao", "relationship_type": "master"}]',
            }
        ]

        character = repo.get_character(NOVEL, "zy")

        assert character.role == CharacterRole.ANTAGONIST
        assert character.relationships == [
            CharacterRelationship(target_name="Elder Zhao", relationship_type="master")
        ]

    def test_missing_row(self, repo, cursor):
        cursor.fetchall.return_value = []
        assert repo.get_character(NOVEL, "ghost") is None
        assert repo.get_config(NOVEL) is None

    def test_event_row(self, repo, cursor):
        event = kill_event()
        cursor.fetchall.return_value = [event_row(event)]

        loaded = repo.get_event(NOVEL, event.id)

        assert loaded.id == event.id
        assert loaded.action_type == KarmaActionType.KILL
        assert loaded.witness_ids == ["elder"]
        assert loaded.final_karma_weight == 100
        assert loaded.is_settled is False

    def test_config_row(self, repo, cursor):
        config = FaceGraphConfig(novel_id=NOVEL, max_ripple_degrees=2)
        cursor.fetchall.return_value = [
            {"novel_id": NOVEL, "config": config.model_dump_json().encode("utf-8")}
        ]

        assert repo.get_config(NOVEL) == config

    def test_missing_column_is_corrupt(self, repo, cursor):
        cursor.fetchall.return_value = [{"novel_id": NOVEL, "id": "mc", "aliases": "[]"}]

        with pytest.raises(PersistenceError, match="Corrupt Character row"):
            repo.get_characters(NOVEL)

    def test_invalid_value_is_corrupt(self, repo, cursor):
        row = event_row(kill_event())
        row["action_type"] = "murder"
        cursor.fetchall.return_value = [row]

        with pytest.raises(PersistenceError, match="Corrupt KarmaEvent row"):
            repo.get_events(NOVEL)

    def test_bad_json_is_corrupt(self, repo, cursor):
        row = event_row(kill_event())
        row["witness_ids"] = "[elder"
        cursor.fetchall.return_value = [row]

        with pytest.raises(PersistenceError):
            repo.get_events(NOVEL)
