"""
Social link models.

A link is a directed edge: it describes how the source sees the target. The
reverse edge, if any, is a separate record and may say something different
(A sees B as "benefactor" while B sees A as "enemy").
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

SENTIMENT_MIN = -100
SENTIMENT_MAX = 100


class SocialLinkType(str, Enum):
    """Relationship kinds, grouped by category below."""

    # Family
    PARENT = "parent"
    CHILD = "child"
    SIBLING = "sibling"
    SPOUSE = "spouse"
    CLAN_ELDER = "clan_elder"
    CLAN_MEMBER = "clan_member"

    # Cultivation lineage
    MASTER = "master"
    DISCIPLE = "disciple"
    MARTIAL_BROTHER = "martial_brother"
    MARTIAL_SISTER = "martial_sister"
    DAO_COMPANION = "dao_companion"

    # Political
    SECT_LEADER = "sect_leader"
    SECT_MEMBER = "sect_member"
    SECT_ELDER = "sect_elder"
    FACTION_ALLY = "faction_ally"
    FACTION_ENEMY = "faction_enemy"
    VASSAL = "vassal"
    OVERLORD = "overlord"

    # Personal
    FRIEND = "friend"
    RIVAL = "rival"
    ENEMY = "enemy"
    NEMESIS = "nemesis"
    DEBT_OWED = "debt_owed"
    DEBT_OWED_BY = "debt_owed_by"
    BLOOD_FEUD_TARGET = "blood_feud_target"
    BLOOD_FEUD_HUNTER = "blood_feud_hunter"
    PROTECTOR = "protector"
    PROTECTED = "protected"
    BENEFACTOR = "benefactor"
    BENEFICIARY = "beneficiary"


class SocialLinkCategory(str, Enum):
    FAMILY = "family"
    CULTIVATION = "cultivation"
    POLITICAL = "political"
    PERSONAL = "personal"


class LinkStrength(str, Enum):
    """How durable a relationship is."""

    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"
    UNBREAKABLE = "unbreakable"


class SentimentLabel(str, Enum):
    HOSTILE = "hostile"
    ANTAGONISTIC = "antagonistic"
    COLD = "cold"
    NEUTRAL = "neutral"
    WARM = "warm"
    FRIENDLY = "friendly"
    DEVOTED = "devoted"


LINK_CATEGORIES: dict[SocialLinkCategory, frozenset[SocialLinkType]] = {
    SocialLinkCategory.FAMILY: frozenset(
        {
            SocialLinkType.PARENT,
            SocialLinkType.CHILD,
            SocialLinkType.SIBLING,
            SocialLinkType.SPOUSE,
            SocialLinkType.CLAN_ELDER,
            SocialLinkType.CLAN_MEMBER,
        }
    ),
    SocialLinkCategory.CULTIVATION: frozenset(
        {
            SocialLinkType.MASTER,
            SocialLinkType.DISCIPLE,
            SocialLinkType.MARTIAL_BROTHER,
            SocialLinkType.MARTIAL_SISTER,
            SocialLinkType.DAO_COMPANION,
        }
    ),
    SocialLinkCategory.POLITICAL: frozenset(
        {
            SocialLinkType.SECT_LEADER,
            SocialLinkType.SECT_MEMBER,
            SocialLinkType.SECT_ELDER,
            SocialLinkType.FACTION_ALLY,
            SocialLinkType.FACTION_ENEMY,
            SocialLinkType.VASSAL,
            SocialLinkType.OVERLORD,
        }
    ),
    SocialLinkCategory.PERSONAL: frozenset(
        {
            SocialLinkType.FRIEND,
            SocialLinkType.RIVAL,
            SocialLinkType.ENEMY,
            SocialLinkType.NEMESIS,
            SocialLinkType.DEBT_OWED,
            SocialLinkType.DEBT_OWED_BY,
            SocialLinkType.BLOOD_FEUD_TARGET,
            SocialLinkType.BLOOD_FEUD_HUNTER,
            SocialLinkType.PROTECTOR,
            SocialLinkType.PROTECTED,
            SocialLinkType.BENEFACTOR,
            SocialLinkType.BENEFICIARY,
        }
    ),
}

# Blood, lineage and dao bonds. News reaches these people first and travels on.
STRONG_RELATIONSHIPS: frozenset[SocialLinkType] = frozenset(
    {
        SocialLinkType.PARENT,
        SocialLinkType.CHILD,
        SocialLinkType.SIBLING,
        SocialLinkType.SPOUSE,
        SocialLinkType.MASTER,
        SocialLinkType.DISCIPLE,
        SocialLinkType.MARTIAL_BROTHER,
        SocialLinkType.MARTIAL_SISTER,
        SocialLinkType.DAO_COMPANION,
    }
)

MODERATE_RELATIONSHIPS: frozenset[SocialLinkType] = frozenset(
    {
        SocialLinkType.CLAN_ELDER,
        SocialLinkType.CLAN_MEMBER,
        SocialLinkType.SECT_LEADER,
        SocialLinkType.SECT_MEMBER,
        SocialLinkType.SECT_ELDER,
        SocialLinkType.FRIEND,
        SocialLinkType.PROTECTOR,
        SocialLinkType.PROTECTED,
        SocialLinkType.BENEFACTOR,
        SocialLinkType.BENEFICIARY,
    }
)

RELATIONSHIP_STRENGTH_VALUES: dict[str, float] = {
    "strong": 1.0,
    "moderate": 0.6,
    "weak": 0.3,
}

ENEMY_LINK_TYPES: frozenset[SocialLinkType] = frozenset(
    {
        SocialLinkType.ENEMY,
        SocialLinkType.NEMESIS,
        SocialLinkType.FACTION_ENEMY,
        SocialLinkType.BLOOD_FEUD_TARGET,
        SocialLinkType.BLOOD_FEUD_HUNTER,
    }
)

ALLY_LINK_TYPES: frozenset[SocialLinkType] = frozenset(
    {
        SocialLinkType.FRIEND,
        SocialLinkType.FACTION_ALLY,
        SocialLinkType.MARTIAL_BROTHER,
        SocialLinkType.MARTIAL_SISTER,
        SocialLinkType.DAO_COMPANION,
        SocialLinkType.SPOUSE,
        SocialLinkType.SIBLING,
        SocialLinkType.PARENT,
        SocialLinkType.CHILD,
        SocialLinkType.MASTER,
        SocialLinkType.DISCIPLE,
        SocialLinkType.PROTECTOR,
        SocialLinkType.PROTECTED,
        SocialLinkType.BENEFACTOR,
        SocialLinkType.BENEFICIARY,
    }
)


def get_link_category(link_type: SocialLinkType) -> SocialLinkCategory:
    for category, members in LINK_CATEGORIES.items():
        if link_type in members:
            return category
    raise ValueError(f"Link type has no category: {link_type}")


def classify_relationship(link_type: SocialLinkType) -> str:
    """Bucket a link type as "strong", "moderate" or "weak" for ripple math."""
    if link_type in STRONG_RELATIONSHIPS:
        return "strong"
    if link_type in MODERATE_RELATIONSHIPS:
        return "moderate"
    return "weak"


def get_relationship_strength(link_type: SocialLinkType) -> float:
    return RELATIONSHIP_STRENGTH_VALUES[classify_relationship(link_type)]


def clamp_sentiment(score: int) -> int:
    return max(SENTIMENT_MIN, min(SENTIMENT_MAX, score))


def get_sentiment_label(score: int) -> SentimentLabel:
    """Map a -100..100 score to its label."""
    if score <= -60:
        return SentimentLabel.HOSTILE
    if score <= -20:
        return SentimentLabel.ANTAGONISTIC
    if score < 0:
        return SentimentLabel.COLD
    if score == 0:
        return SentimentLabel.NEUTRAL
    if score < 20:
        return SentimentLabel.WARM
    if score < 60:
        return SentimentLabel.FRIENDLY
    return SentimentLabel.DEVOTED


def strength_for_weight(weight: int) -> LinkStrength:
    """Strength of a link created as the direct result of a karma event."""
    if weight >= 60:
        return LinkStrength.STRONG
    if weight >= 30:
        return LinkStrength.MODERATE
    return LinkStrength.WEAK


class SocialLink(BaseModel):
    """Directed relationship edge: how the source sees the target."""

    id: UUID = Field(default_factory=uuid4)
    novel_id: str

    source_character_id: str
    source_name: str
    target_character_id: str
    target_name: str

    link_type: SocialLinkType
    strength: LinkStrength = LinkStrength.MODERATE
    sentiment_score: Annotated[int, Field(ge=SENTIMENT_MIN, le=SENTIMENT_MAX)] = 0

    mutual_karma_balance: int = 0
    unsettled_karma: int = Field(default=0, ge=0)

    established_chapter: int = 0
    last_interaction_chapter: int = 0
    relationship_history: str = ""

    is_inherited: bool = False
    inherited_from_character_id: str | None = None

    is_known_to_source: bool = True
    is_known_to_target: bool = True
    is_public: bool = True

    @property
    def key(self) -> tuple[str, str, SocialLinkType]:
        return (self.source_character_id, self.target_character_id, self.link_type)

    @property
    def sentiment(self) -> SentimentLabel:
        return get_sentiment_label(self.sentiment_score)

    @property
    def category(self) -> SocialLinkCategory:
        return get_link_category(self.link_type)

    def other(self, character_id: str) -> tuple[str, str]:
        """Return (id, name) of the endpoint that is not ``character_id``."""
        if self.source_character_id == character_id:
            return self.target_character_id, self.target_name
        return self.source_character_id, self.source_name

    def touches(self, character_id: str) -> bool:
        return character_id in (self.source_character_id, self.target_character_id)

    def adjust_sentiment(self, delta: int) -> int:
        """Shift sentiment by ``delta``, clamped to [-100, 100]. Returns the new score."""
        self.sentiment_score = clamp_sentiment(self.sentiment_score + delta)
        return self.sentiment_score


# Keyword -> link type, checked in order, first hit wins
_RELATIONSHIP_KEYWORDS: list[tuple[tuple[str, ...], SocialLinkType]] = [
    (("father", "mother", "parent"), SocialLinkType.PARENT),
    (("son", "daughter", "child"), SocialLinkType.CHILD),
    (("brother", "sister", "sibling"), SocialLinkType.SIBLING),
    (("wife", "husband", "spouse"), SocialLinkType.SPOUSE),
    (("clan elder",), SocialLinkType.CLAN_ELDER),
    (("clan",), SocialLinkType.CLAN_MEMBER),
    (("dao companion", "dao partner"), SocialLinkType.DAO_COMPANION),
    (("sect leader", "patriarch", "sect master"), SocialLinkType.SECT_LEADER),
    (("master", "teacher", "mentor"), SocialLinkType.MASTER),
    (("disciple", "student", "apprentice"), SocialLinkType.DISCIPLE),
    (("elder",), SocialLinkType.SECT_ELDER),
    (("sect",), SocialLinkType.SECT_MEMBER),
    (("nemesis", "archenemy", "arch-enemy"), SocialLinkType.NEMESIS),
    (("enemy", "foe", "hostile"), SocialLinkType.ENEMY),
    (("rival",), SocialLinkType.RIVAL),
    (("vassal", "servant"), SocialLinkType.VASSAL),
    (("overlord", "lord"), SocialLinkType.OVERLORD),
    (("ally", "alliance"), SocialLinkType.FACTION_ALLY),
    (("protector", "guardian"), SocialLinkType.PROTECTOR),
    (("benefactor",), SocialLinkType.BENEFACTOR),
]


def map_relationship_to_link_type(relationship: str) -> SocialLinkType:
    """
    Map free-form relationship text from extraction to a link type.

    The exact enum value is accepted as-is; otherwise keywords are matched and
    anything unrecognised becomes a friendship.
    """
    text = relationship.strip().lower()
    try:
        return SocialLinkType(text.replace(" ", "_"))
    except ValueError:
        pass
    # "brother" must not shadow "martial brother"
    if "martial" in text:
        if "sister" in text:
            return SocialLinkType.MARTIAL_SISTER
        if "brother" in text or "sibling" in text:
            return SocialLinkType.MARTIAL_BROTHER
    for keywords, link_type in _RELATIONSHIP_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return link_type
    return SocialLinkType.FRIEND


# Sentiment a link seeded from the roster starts with
ROSTER_LINK_SENTIMENT = 30

_WARM_RELATIONSHIP_WORDS = (
    "friend",
    "ally",
    "spouse",
    "dao companion",
    "benefactor",
    "protector",
    "master",
    "disciple",
)
_HOSTILE_RELATIONSHIP_WORDS = ("enemy", "nemesis", "rival", "foe", "blood feud")


def map_relationship_to_sentiment(relationship: str) -> int:
    """
    Starting sentiment for free-form relationship text.

    Warm relationships start at +30 and hostile ones at -30. Everything else,
    family included, starts neutral.
    """
    text = relationship.strip().lower().replace("_", " ")
    if any(word in text for word in _WARM_RELATIONSHIP_WORDS):
        return ROSTER_LINK_SENTIMENT
    if any(word in text for word in _HOSTILE_RELATIONSHIP_WORDS):
        return -ROSTER_LINK_SENTIMENT
    return 0
