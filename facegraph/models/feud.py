"""
Blood feud models.

A feud sits between two parties, each of which may be a lone character or a
whole clan, sect or faction. Intensity rises and falls with every escalation
and the feud ends exactly once.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

FEUD_INTENSITY_MIN = 0
FEUD_INTENSITY_MAX = 100
DEFAULT_FEUD_INTENSITY = 50


class FeudPartyType(str, Enum):
    CHARACTER = "character"
    CLAN = "clan"
    SECT = "sect"
    FACTION = "faction"


class FeudSide(str, Enum):
    """Which side of a feud a party is on."""

    AGGRIEVED = "aggrieved"
    TARGET = "target"


class FeudResolution(str, Enum):
    VENGEANCE_COMPLETE = "vengeance_complete"
    MUTUAL_DESTRUCTION = "mutual_destruction"
    FORGIVENESS = "forgiveness"
    EXTINCTION = "extinction"
    ALLIANCE = "alliance"


class FeudParty(BaseModel):
    """One side of a feud."""

    party_type: FeudPartyType = FeudPartyType.CHARACTER
    party_id: str
    party_name: str
    member_ids: list[str] = Field(default_factory=list)

    def includes(self, character_id: str) -> bool:
        return character_id == self.party_id or character_id in self.member_ids

    def all_member_ids(self) -> list[str]:
        """Party id (for character parties) plus members, without duplicates."""
        ids = list(self.member_ids)
        if self.party_type == FeudPartyType.CHARACTER and self.party_id not in ids:
            ids.insert(0, self.party_id)
        return ids


class FeudEscalation(BaseModel):
    """One entry in a feud's escalation log."""

    chapter: int
    description: str
    intensity_change: int
    intensity_after: int
    karma_event_id: UUID | None = None


def clamp_intensity(value: int) -> int:
    return max(FEUD_INTENSITY_MIN, min(FEUD_INTENSITY_MAX, value))


class BloodFeud(BaseModel):
    """Standing hostility between two parties."""

    id: UUID = Field(default_factory=uuid4)
    novel_id: str
    feud_name: str

    aggrieved_party: FeudParty
    target_party: FeudParty

    origin_event_id: UUID | None = None
    origin_description: str = ""
    started_chapter: int

    intensity: Annotated[
        int, Field(ge=FEUD_INTENSITY_MIN, le=FEUD_INTENSITY_MAX)
    ] = DEFAULT_FEUD_INTENSITY
    escalations: list[FeudEscalation] = Field(default_factory=list)

    is_resolved: bool = False
    resolution_type: FeudResolution | None = None
    resolved_chapter: int | None = None
    resolution_description: str | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def party(self, side: FeudSide) -> FeudParty:
        if side == FeudSide.AGGRIEVED:
            return self.aggrieved_party
        return self.target_party

    def side_of(self, character_id: str) -> FeudSide | None:
        """Which side a character is on, or None if they are not involved."""
        if self.aggrieved_party.includes(character_id):
            return FeudSide.AGGRIEVED
        if self.target_party.includes(character_id):
            return FeudSide.TARGET
        return None

    def opposing_party(self, character_id: str) -> FeudParty | None:
        side = self.side_of(character_id)
        if side is None:
            return None
        if side == FeudSide.AGGRIEVED:
            return self.target_party
        return self.aggrieved_party
