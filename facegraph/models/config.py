"""
Per-novel engine configuration.

Loaded and saved through the ledger repository; a novel without a stored
config runs on these defaults.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from facegraph.models.karma import KarmaActionType
from facegraph.models.links import STRONG_RELATIONSHIPS, SocialLinkType


def default_face_multipliers() -> dict[KarmaActionType, float]:
    """How strongly each action type moves Face, relative to its karma weight."""
    return {
        KarmaActionType.KILL: 2.0,
        KarmaActionType.SPARE: 0.5,
        KarmaActionType.HUMILIATE: 1.5,
        KarmaActionType.HONOR: 0.8,
        KarmaActionType.BETRAY: 2.5,
        KarmaActionType.SAVE: 1.5,
        KarmaActionType.STEAL: 1.2,
        KarmaActionType.GIFT: 0.8,
        KarmaActionType.DEFEAT: 1.0,
        KarmaActionType.SUBMIT: 0.5,
        KarmaActionType.OFFEND: 0.3,
        KarmaActionType.PROTECT: 1.0,
        KarmaActionType.AVENGE: 1.5,
        KarmaActionType.ABANDON: 1.8,
        KarmaActionType.ENSLAVE: 2.0,
        KarmaActionType.LIBERATE: 1.2,
        KarmaActionType.CURSE: 1.8,
        KarmaActionType.BLESS: 1.0,
        KarmaActionType.DESTROY_SECT: 3.0,
        KarmaActionType.CRIPPLE_CULTIVATION: 2.5,
        KarmaActionType.RESTORE_CULTIVATION: 1.5,
        KarmaActionType.EXTERMINATE_CLAN: 4.0,
        KarmaActionType.ELEVATE_STATUS: 1.0,
    }


class FaceGraphConfig(BaseModel):
    """Configuration for one novel's Face Graph."""

    novel_id: str
    enabled: bool = Field(default=True, description="Master switch for side effects")
    auto_calculate_ripples: bool = Field(
        default=True, description="Run ripple analysis when an event is recorded"
    )
    max_ripple_degrees: int = Field(
        default=3, ge=1, description="Deepest ripple degree (hard-capped at 3)"
    )
    ripple_karma_threshold: int = Field(
        default=30, ge=0, le=100, description="Minimum final weight to ripple"
    )
    karma_decay_per_chapter: float = Field(
        default=0.99, gt=0.0, le=1.0, description="Ripple decay rate per chapter"
    )
    auto_extract_karma: bool = Field(
        default=True, description="Accept proposals from the extraction step"
    )
    protected_character_ids: list[str] = Field(
        default_factory=list,
        description="Characters shielded from negative ripples and Face loss",
    )
    face_multipliers: dict[KarmaActionType, float] = Field(
        default_factory=default_face_multipliers,
        description="Face delta multiplier per action type",
    )
    propagating_link_types: list[SocialLinkType] = Field(
        default_factory=lambda: sorted(STRONG_RELATIONSHIPS, key=lambda t: t.value),
        description="Link types that carry ripples past the first degree",
    )

    def face_multiplier(self, action_type: KarmaActionType) -> float:
        return self.face_multipliers.get(action_type, 1.0)

    def is_protected(self, character_id: str) -> bool:
        return character_id in self.protected_character_ids
