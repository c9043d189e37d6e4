"""
Karma ripple models.

A ripple is the echo of a karma event reaching someone who was not there: the
master of the disciple who was killed, the sister of the man who was saved.
Ripples fade as chapters pass and are dropped once they fade far enough.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from facegraph.models.links import SocialLinkType

# Ripples at or below this decay factor have faded and are deleted
RIPPLE_DECAY_FLOOR = 0.1

# Propagation never goes deeper than this, whatever the config says
MAX_RIPPLE_DEPTH = 3


class ThreatLevel(str, Enum):
    """How dangerous an affected character has become."""

    NONE = "none"
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    EXTREME = "extreme"


class ConnectionHop(BaseModel):
    """One intermediate character on the path from the event target."""

    character_id: str
    character_name: str
    link_type: SocialLinkType


class KarmaRipple(BaseModel):
    """A derived, decaying consequence of a karma event."""

    id: UUID = Field(default_factory=uuid4)
    novel_id: str
    source_event_id: UUID

    original_actor_id: str
    original_actor_name: str
    original_target_id: str
    original_target_name: str

    affected_character_id: str
    affected_character_name: str
    connection_path: list[ConnectionHop] = Field(default_factory=list)
    degrees_of_separation: Annotated[int, Field(ge=1, le=MAX_RIPPLE_DEPTH)]
    relationship_strength: float = Field(ge=0.0, le=1.0)

    sentiment_change: Annotated[int, Field(ge=-100, le=100)]
    becomes_threat: bool = False
    threat_level: ThreatLevel = ThreatLevel.NONE
    potential_response: str = ""

    decay_factor: float = Field(default=1.0, ge=0.0, le=1.0)
    calculated_at_chapter: int = 0

    has_manifested: bool = False
    manifested_chapter: int | None = None
    manifestation_description: str | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def effective_sentiment_change(self) -> int:
        """Sentiment change scaled by how much the ripple has faded."""
        return int(self.sentiment_change * self.decay_factor)

    def manifest(self, chapter: int, description: str | None = None) -> bool:
        """Mark the ripple as having played out. False if it already had."""
        if self.has_manifested:
            return False
        self.has_manifested = True
        self.manifested_chapter = chapter
        self.manifestation_description = description
        return True
