"""
Exception hierarchy for the Face Graph engine.

Every error raised on purpose by the engine derives from FaceGraphError, so an
embedding service can catch the whole family at once. The lookup and
validation errors also derive from the matching builtin so callers that only
know about LookupError / ValueError keep working.
"""

from __future__ import annotations


class FaceGraphError(Exception):
    """Base class for Face Graph errors."""


class CharacterNotFound(FaceGraphError, LookupError):
    """A character reference could not be resolved to a roster entry."""

    def __init__(self, reference: str, novel_id: str | None = None):
        self.reference = reference
        self.novel_id = novel_id
        where = f" in novel {novel_id}" if novel_id else ""
        super().__init__(f"Character not found{where}: {reference!r}")


class InvalidActionType(FaceGraphError, ValueError):
    """An action type string is not one of the known karma actions."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid karma action type: {value!r}")


class InvalidSeverity(FaceGraphError, ValueError):
    """A severity string is not one of the known karma severities."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid karma severity: {value!r}")


class RecordNotFound(FaceGraphError, LookupError):
    """A stored record (event, ripple, feud, debt) does not exist."""

    def __init__(self, kind: str, record_id: object):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class PersistenceError(FaceGraphError):
    """The storage backend failed. The engine never retries these."""
