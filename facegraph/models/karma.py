"""
Karma event models.

A karma event is an immutable historical fact: who did what to whom, how
heavily it weighs, and whether the debt it created has been settled.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class KarmaActionType(str, Enum):
    """Every action the engine knows how to weigh."""

    KILL = "kill"
    SPARE = "spare"
    HUMILIATE = "humiliate"
    HONOR = "honor"
    BETRAY = "betray"
    SAVE = "save"
    STEAL = "steal"
    GIFT = "gift"
    DEFEAT = "defeat"
    SUBMIT = "submit"
    OFFEND = "offend"
    PROTECT = "protect"
    AVENGE = "avenge"
    ABANDON = "abandon"
    ENSLAVE = "enslave"
    LIBERATE = "liberate"
    CURSE = "curse"
    BLESS = "bless"
    DESTROY_SECT = "destroy_sect"
    CRIPPLE_CULTIVATION = "cripple_cultivation"
    RESTORE_CULTIVATION = "restore_cultivation"
    EXTERMINATE_CLAN = "exterminate_clan"
    ELEVATE_STATUS = "elevate_status"


class KarmaPolarity(str, Enum):
    """Direction of a karmic action. Fixed per action type."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"

    @property
    def sign(self) -> int:
        if self is KarmaPolarity.POSITIVE:
            return 1
        if self is KarmaPolarity.NEGATIVE:
            return -1
        return 0


class KarmaSeverity(str, Enum):
    """How heavy the action was, independent of its type."""

    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    SEVERE = "severe"
    EXTREME = "extreme"


class SettlementType(str, Enum):
    """How an outstanding karma event was closed."""

    AVENGED = "avenged"
    FORGIVEN = "forgiven"
    BALANCED = "balanced"
    INHERITED = "inherited"


class ModifierType(str, Enum):
    """Context modifiers applied on top of base weight and severity."""

    POWER_DIFFERENCE = "power_difference"
    PROVOCATION = "provocation"
    PUBLIC_NATURE = "public_nature"
    INNOCENCE = "innocence"
    JUSTIFIED = "justified"
    CLAN_INVOLVEMENT = "clan_involvement"
    SECT_INVOLVEMENT = "sect_involvement"
    TREASURE_VALUE = "treasure_value"
    CULTIVATION_IMPACT = "cultivation_impact"
    BETRAYAL_DEPTH = "betrayal_depth"
    FACE_LOSS = "face_loss"


class TreasureValue(str, Enum):
    """Tier of treasure involved in a theft or gift."""

    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    LEGENDARY = "legendary"


class KarmaWeightModifier(BaseModel):
    """One logged multiplier, kept so a weight can always be explained."""

    type: ModifierType
    multiplier: float = Field(gt=0)
    reason: str


class KarmaContext(BaseModel):
    """
    Circumstances around an action that change how heavily it weighs.

    Every field is optional; an empty context leaves the severity-scaled base
    weight untouched.
    """

    power_difference: int | None = None
    """Actor power minus target power. Beyond +/-50 it counts as bullying or daring."""

    was_provoked: bool = False
    was_public: bool = False
    target_was_innocent: bool = False
    was_justified: bool = False
    involves_clan: bool = False
    involves_sect: bool = False
    treasure_value: TreasureValue | None = None
    affects_cultivation: bool = False
    betrayal_of_trust: bool = False


class KarmaEvent(BaseModel):
    """A single recorded karmic action between an actor and a target."""

    id: UUID = Field(default_factory=uuid4)
    novel_id: str

    actor_id: str
    actor_name: str
    target_id: str
    target_name: str

    action_type: KarmaActionType
    polarity: KarmaPolarity
    severity: KarmaSeverity

    base_karma_weight: Annotated[int, Field(ge=0, le=100)]
    weight_modifiers: list[KarmaWeightModifier] = Field(default_factory=list)
    final_karma_weight: Annotated[int, Field(ge=0, le=100)]

    chapter_number: Annotated[int, Field(ge=0)]
    description: str = ""

    was_witnessed: bool = False
    witness_ids: list[str] = Field(default_factory=list)
    affected_third_parties: list[str] = Field(default_factory=list)

    is_retaliation: bool = False
    retaliation_for_event_id: UUID | None = None

    face_change_actor: int = 0
    face_change_target: int = 0

    is_settled: bool = False
    settlement_type: SettlementType | None = None
    settled_chapter: int | None = None

    ripple_affected_ids: list[str] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def settle(self, settlement_type: SettlementType, chapter: int) -> bool:
        """
        Mark the event settled.

        Returns False, leaving the event untouched, if it was already settled.
        """
        if self.is_settled:
            return False
        self.is_settled = True
        self.settlement_type = settlement_type
        self.settled_chapter = chapter
        return True

    def involves(self, character_id: str) -> bool:
        return character_id in (self.actor_id, self.target_id)
