"""
Character roster entries.

The roster itself is owned by the surrounding novel pipeline; the engine only
needs ids, display names and aliases so it can resolve references coming in
from extraction, plus roles and written relationships for seeding a new graph.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class CharacterRole(str, Enum):
    """Narrative role, as tagged by the novel pipeline."""

    PROTAGONIST = "protagonist"
    ANTAGONIST = "antagonist"
    SUPPORTING = "supporting"
    MINOR = "minor"


# Face a character starts with when the graph is first seeded from the roster
STARTING_FACE_BY_ROLE = {
    CharacterRole.PROTAGONIST: 100,
    CharacterRole.ANTAGONIST: 80,
    CharacterRole.SUPPORTING: 30,
}


class CharacterRelationship(BaseModel):
    """A relationship as written in the roster: free text, target by name."""

    target_name: str = Field(min_length=1)
    relationship_type: str = ""


class Character(BaseModel):
    """A character node as known to the Face Graph."""

    id: str = Field(min_length=1)
    novel_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=255)
    aliases: list[str] = Field(default_factory=list)
    is_protagonist: bool = False
    role: CharacterRole | None = None
    relationships: list[CharacterRelationship] = Field(default_factory=list)

    def matches(self, name: str) -> bool:
        """Exact, case-insensitive match on name or any alias."""
        needle = name.strip().lower()
        if self.name.lower() == needle:
            return True
        return any(alias.lower() == needle for alias in self.aliases)

    @property
    def starting_face(self) -> int:
        if self.is_protagonist:
            return STARTING_FACE_BY_ROLE[CharacterRole.PROTAGONIST]
        return STARTING_FACE_BY_ROLE.get(self.role, 0)


def find_character_by_name(
    characters: list[Character], name: str
) -> Character | None:
    """
    Resolve a display name to a roster entry.

    Exact matches (name or alias, ignoring case) win. Otherwise a partial match
    is accepted only when exactly one character contains the text, so an
    ambiguous fragment like "Li" never silently picks the wrong person.
    """
    needle = name.strip().lower()
    if not needle:
        return None

    for character in characters:
        if character.matches(needle):
            return character

    partial = [
        c
        for c in characters
        if needle in c.name.lower() or any(needle in a.lower() for a in c.aliases)
    ]
    if len(partial) == 1:
        return partial[0]
    return None
