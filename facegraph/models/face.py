"""
Face (reputation) models.

Face is split into six categories. The aggregate is always derived from the
categories, never stored, so the two can't drift apart.
"""

from __future__ import annotations

from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class FaceCategory(str, Enum):
    """What kind of reputation a Face change touches."""

    MARTIAL = "martial"
    SCHOLARLY = "scholarly"
    POLITICAL = "political"
    MORAL = "moral"
    MYSTERIOUS = "mysterious"
    WEALTH = "wealth"


class FaceTier(str, Enum):
    """Named reputation bands, lowest first."""

    NOBODY = "nobody"
    KNOWN = "known"
    RENOWNED = "renowned"
    FAMOUS = "famous"
    LEGENDARY = "legendary"
    MYTHICAL = "mythical"


class Notoriety(str, Enum):
    """How far news of an accomplishment or shame travels."""

    LOCAL = "local"
    REGIONAL = "regional"
    REALM = "realm"


# Lower bound of each tier, highest first
FACE_TIER_THRESHOLDS: list[tuple[int, FaceTier]] = [
    (10000, FaceTier.MYTHICAL),
    (5000, FaceTier.LEGENDARY),
    (2000, FaceTier.FAMOUS),
    (500, FaceTier.RENOWNED),
    (100, FaceTier.KNOWN),
]


def get_face_tier(total_face: int) -> FaceTier:
    """Return the tier for an aggregate Face score."""
    for threshold, tier in FACE_TIER_THRESHOLDS:
        if total_face >= threshold:
            return tier
    return FaceTier.NOBODY


def get_notoriety(amount: int) -> Notoriety:
    """Notoriety scales with the size of the Face swing."""
    magnitude = abs(amount)
    if magnitude >= 100:
        return Notoriety.REALM
    if magnitude >= 50:
        return Notoriety.REGIONAL
    return Notoriety.LOCAL


class FaceTitle(BaseModel):
    """A title a character holds, e.g. "Young Master of the Azure Sect"."""

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(min_length=1)
    description: str = ""
    face_bonus: int = 0
    acquired_chapter: int
    is_active: bool = True
    lost_chapter: int | None = None


class Accomplishment(BaseModel):
    """A recorded Face gain."""

    id: UUID = Field(default_factory=uuid4)
    description: str
    chapter_number: int
    face_gained: int
    category: FaceCategory
    notoriety: Notoriety


class Shame(BaseModel):
    """A recorded Face loss. Can later be redeemed."""

    id: UUID = Field(default_factory=uuid4)
    description: str
    chapter_number: int
    face_lost: int
    category: FaceCategory
    notoriety: Notoriety
    is_redeemed: bool = False
    redeemed_chapter: int | None = None


class FaceCategoryScores(BaseModel):
    """Per-category Face. Scores may go negative."""

    martial: int = 0
    scholarly: int = 0
    political: int = 0
    moral: int = 0
    mysterious: int = 0
    wealth: int = 0

    def get(self, category: FaceCategory) -> int:
        return getattr(self, category.value)

    def add(self, category: FaceCategory, amount: int) -> int:
        new_value = self.get(category) + amount
        setattr(self, category.value, new_value)
        return new_value

    def total(self) -> int:
        return sum(self.get(category) for category in FaceCategory)


class FaceProfile(BaseModel):
    """One character's reputation, karma balance and record of deeds."""

    id: UUID = Field(default_factory=uuid4)
    novel_id: str
    character_id: str
    character_name: str

    category_scores: FaceCategoryScores = Field(default_factory=FaceCategoryScores)

    karma_balance: int = 0
    positive_karma_total: int = Field(default=0, ge=0)
    negative_karma_total: int = Field(default=0, ge=0)

    titles: list[FaceTitle] = Field(default_factory=list)
    accomplishments: list[Accomplishment] = Field(default_factory=list)
    shames: list[Shame] = Field(default_factory=list)

    is_protected: bool = False
    """Protected characters never take negative Face or negative ripples."""

    last_updated_chapter: int = 0

    @property
    def total_face(self) -> int:
        return self.category_scores.total()

    @property
    def tier(self) -> FaceTier:
        return get_face_tier(self.total_face)

    @property
    def active_titles(self) -> list[FaceTitle]:
        return [t for t in self.titles if t.is_active]

    @property
    def unredeemed_shames(self) -> list[Shame]:
        return [s for s in self.shames if not s.is_redeemed]

    def update_karma_balance(self, delta: int) -> None:
        """
        Adjust the signed balance and the matching unsigned running total.

        This is the only way the balance is meant to change.
        """
        self.karma_balance += delta
        if delta > 0:
            self.positive_karma_total += delta
        elif delta < 0:
            self.negative_karma_total += -delta


def create_face_profile(
    novel_id: str,
    character_id: str,
    character_name: str,
    is_protected: bool = False,
) -> FaceProfile:
    """Factory for a fresh profile at tier "nobody"."""
    return FaceProfile(
        novel_id=novel_id,
        character_id=character_id,
        character_name=character_name,
        is_protected=is_protected,
    )
