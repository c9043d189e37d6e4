"""
Karma Calculation Skills.

Pure functions that weigh karmic actions. Nothing here touches storage or
keeps state: the same inputs always give the same outputs, which is what makes
replaying an event idempotent.

Face and sentiment deltas are derived from an already computed final weight;
they never re-weigh the action themselves.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, Field

from facegraph.errors import InvalidActionType, InvalidSeverity
from facegraph.models.debt import DebtType
from facegraph.models.face import FaceCategory
from facegraph.models.karma import (
    KarmaActionType,
    KarmaContext,
    KarmaPolarity,
    KarmaSeverity,
    KarmaWeightModifier,
    ModifierType,
    TreasureValue,
)

# =============================================================================
# Constants
# =============================================================================

# action -> (base weight, polarity)
KARMA_WEIGHTS: dict[KarmaActionType, tuple[int, KarmaPolarity]] = {
    KarmaActionType.KILL: (80, KarmaPolarity.NEGATIVE),
    KarmaActionType.SPARE: (30, KarmaPolarity.POSITIVE),
    KarmaActionType.HUMILIATE: (50, KarmaPolarity.NEGATIVE),
    KarmaActionType.HONOR: (40, KarmaPolarity.POSITIVE),
    KarmaActionType.BETRAY: (70, KarmaPolarity.NEGATIVE),
    KarmaActionType.SAVE: (60, KarmaPolarity.POSITIVE),
    KarmaActionType.STEAL: (40, KarmaPolarity.NEGATIVE),
    KarmaActionType.GIFT: (35, KarmaPolarity.POSITIVE),
    KarmaActionType.DEFEAT: (30, KarmaPolarity.NEGATIVE),
    KarmaActionType.SUBMIT: (20, KarmaPolarity.NEGATIVE),
    KarmaActionType.OFFEND: (15, KarmaPolarity.NEGATIVE),
    KarmaActionType.PROTECT: (45, KarmaPolarity.POSITIVE),
    KarmaActionType.AVENGE: (50, KarmaPolarity.NEUTRAL),
    KarmaActionType.ABANDON: (55, KarmaPolarity.NEGATIVE),
    KarmaActionType.ENSLAVE: (75, KarmaPolarity.NEGATIVE),
    KarmaActionType.LIBERATE: (55, KarmaPolarity.POSITIVE),
    KarmaActionType.CURSE: (60, KarmaPolarity.NEGATIVE),
    KarmaActionType.BLESS: (50, KarmaPolarity.POSITIVE),
    KarmaActionType.DESTROY_SECT: (95, KarmaPolarity.NEGATIVE),
    KarmaActionType.CRIPPLE_CULTIVATION: (85, KarmaPolarity.NEGATIVE),
    KarmaActionType.RESTORE_CULTIVATION: (70, KarmaPolarity.POSITIVE),
    KarmaActionType.EXTERMINATE_CLAN: (100, KarmaPolarity.NEGATIVE),
    KarmaActionType.ELEVATE_STATUS: (45, KarmaPolarity.POSITIVE),
}

SEVERITY_MULTIPLIERS: dict[KarmaSeverity, float] = {
    KarmaSeverity.MINOR: 0.5,
    KarmaSeverity.MODERATE: 1.0,
    KarmaSeverity.MAJOR: 1.5,
    KarmaSeverity.SEVERE: 2.0,
    KarmaSeverity.EXTREME: 2.5,
}

TREASURE_MULTIPLIERS: dict[TreasureValue, float] = {
    TreasureValue.MINOR: 1.0,
    TreasureValue.MODERATE: 1.2,
    TreasureValue.MAJOR: 1.5,
    TreasureValue.LEGENDARY: 2.0,
}

MAX_KARMA_WEIGHT = 100

# Face coefficients
POSITIVE_ACTOR_FACE = 0.3
POSITIVE_TARGET_FACE = 0.5
NEGATIVE_ACTOR_GAIN_FACE = 0.4
NEGATIVE_ACTOR_LOSS_FACE = 0.2
NEGATIVE_TARGET_FACE = 0.6
PUBLIC_FACE_MULTIPLIER = 1.5
HIGH_REPUTATION_THRESHOLD = 500
HIGH_REPUTATION_FACE_MULTIPLIER = 1.3

ACTOR_FACE_GAIN_ACTIONS: frozenset[KarmaActionType] = frozenset(
    {
        KarmaActionType.DEFEAT,
        KarmaActionType.HONOR,
        KarmaActionType.SAVE,
        KarmaActionType.PROTECT,
        KarmaActionType.LIBERATE,
        KarmaActionType.AVENGE,
    }
)
ACTOR_FACE_LOSS_ACTIONS: frozenset[KarmaActionType] = frozenset(
    {KarmaActionType.BETRAY, KarmaActionType.ABANDON, KarmaActionType.HUMILIATE}
)

# Sentiment coefficients (target's view of the actor)
POSITIVE_SENTIMENT = 0.7
NEGATIVE_SENTIMENT = 0.8
RETALIATION_SENTIMENT = 0.6

# Blood feud advice
FEUD_TRIGGER_ACTIONS: frozenset[KarmaActionType] = frozenset(
    {
        KarmaActionType.KILL,
        KarmaActionType.EXTERMINATE_CLAN,
        KarmaActionType.DESTROY_SECT,
        KarmaActionType.CRIPPLE_CULTIVATION,
        KarmaActionType.BETRAY,
        KarmaActionType.HUMILIATE,
    }
)
FEUD_SEVERITY_SCORES: dict[KarmaSeverity, int] = {
    KarmaSeverity.MINOR: 0,
    KarmaSeverity.MODERATE: 20,
    KarmaSeverity.MAJOR: 40,
    KarmaSeverity.SEVERE: 60,
    KarmaSeverity.EXTREME: 80,
}
FEUD_THRESHOLD = 70
FEUD_THRESHOLD_KILL_IMPORTANT = 50

# Debt advice
DEBT_TYPES_BY_ACTION: dict[KarmaActionType, DebtType] = {
    KarmaActionType.SAVE: DebtType.LIFE_SAVING,
    KarmaActionType.GIFT: DebtType.TREASURE,
    KarmaActionType.BLESS: DebtType.TEACHING,
    KarmaActionType.PROTECT: DebtType.PROTECTION,
    KarmaActionType.ELEVATE_STATUS: DebtType.POLITICAL,
    KarmaActionType.RESTORE_CULTIVATION: DebtType.TEACHING,
    KarmaActionType.LIBERATE: DebtType.LIFE_SAVING,
}
DEBT_THRESHOLD = 30

FACE_CATEGORY_BY_ACTION: dict[KarmaActionType, FaceCategory] = {
    KarmaActionType.KILL: FaceCategory.MARTIAL,
    KarmaActionType.SPARE: FaceCategory.MORAL,
    KarmaActionType.HUMILIATE: FaceCategory.MARTIAL,
    KarmaActionType.HONOR: FaceCategory.POLITICAL,
    KarmaActionType.BETRAY: FaceCategory.MORAL,
    KarmaActionType.SAVE: FaceCategory.MORAL,
    KarmaActionType.STEAL: FaceCategory.WEALTH,
    KarmaActionType.GIFT: FaceCategory.WEALTH,
    KarmaActionType.DEFEAT: FaceCategory.MARTIAL,
    KarmaActionType.SUBMIT: FaceCategory.MARTIAL,
    KarmaActionType.OFFEND: FaceCategory.POLITICAL,
    KarmaActionType.PROTECT: FaceCategory.MORAL,
    KarmaActionType.AVENGE: FaceCategory.MARTIAL,
    KarmaActionType.ABANDON: FaceCategory.MORAL,
    KarmaActionType.ENSLAVE: FaceCategory.MORAL,
    KarmaActionType.LIBERATE: FaceCategory.MORAL,
    KarmaActionType.CURSE: FaceCategory.MYSTERIOUS,
    KarmaActionType.BLESS: FaceCategory.MYSTERIOUS,
    KarmaActionType.DESTROY_SECT: FaceCategory.POLITICAL,
    KarmaActionType.CRIPPLE_CULTIVATION: FaceCategory.MARTIAL,
    KarmaActionType.RESTORE_CULTIVATION: FaceCategory.SCHOLARLY,
    KarmaActionType.EXTERMINATE_CLAN: FaceCategory.MARTIAL,
    KarmaActionType.ELEVATE_STATUS: FaceCategory.POLITICAL,
}


# =============================================================================
# Result Models
# =============================================================================


class KarmaWeightResult(BaseModel):
    """Outcome of weighing one action."""

    action_type: KarmaActionType
    severity: KarmaSeverity
    polarity: KarmaPolarity
    base_weight: int
    modifiers: list[KarmaWeightModifier] = Field(default_factory=list)
    total_multiplier: float
    final_weight: int = Field(ge=0, le=MAX_KARMA_WEIGHT)


class FaceChange(BaseModel):
    """Face deltas for both parties of an action."""

    actor_face_change: int
    target_face_change: int
    public_perception: str


class FeudRecommendation(BaseModel):
    """Advisory: should this event start a blood feud?"""

    should_trigger: bool
    suggested_intensity: int = Field(ge=0, le=100)
    reason: str


class DebtRecommendation(BaseModel):
    """Advisory: does this event leave the target owing the actor?"""

    should_create: bool
    debt_type: DebtType
    suggested_weight: int = Field(ge=0, le=100)
    reason: str


# =============================================================================
# Parsing
# =============================================================================


def parse_action_type(value: KarmaActionType | str) -> KarmaActionType:
    """Validate an action type. Raises InvalidActionType, never defaults."""
    if isinstance(value, KarmaActionType):
        return value
    if not isinstance(value, str):
        raise InvalidActionType(value)
    try:
        return KarmaActionType(value.strip().lower())
    except ValueError:
        raise InvalidActionType(value) from None


def parse_severity(value: KarmaSeverity | str) -> KarmaSeverity:
    """Validate a severity. Raises InvalidSeverity, never defaults."""
    if isinstance(value, KarmaSeverity):
        return value
    if not isinstance(value, str):
        raise InvalidSeverity(value)
    try:
        return KarmaSeverity(value.strip().lower())
    except ValueError:
        raise InvalidSeverity(value) from None


# =============================================================================
# Weight
# =============================================================================


def get_base_weight(action_type: KarmaActionType) -> int:
    return KARMA_WEIGHTS[action_type][0]


def get_polarity(action_type: KarmaActionType) -> KarmaPolarity:
    return KARMA_WEIGHTS[action_type][1]


def round_half_up(value: float) -> int:
    """Round .5 away from negative infinity, the same for every sign."""
    return math.floor(value + 0.5)


def floor_scaled(value: float) -> int:
    """Floor a scaled weight, rounding off float noise first (90 * 0.7 is not exactly 63)."""
    return math.floor(round(value, 9))


def collect_modifiers(context: KarmaContext) -> list[KarmaWeightModifier]:
    """Context modifiers in a fixed order, each with its reason."""
    modifiers: list[KarmaWeightModifier] = []

    if context.power_difference is not None:
        if context.power_difference > 50:
            modifiers.append(
                KarmaWeightModifier(
                    type=ModifierType.POWER_DIFFERENCE,
                    multiplier=1.3,
                    reason="Overwhelming power against weaker target",
                )
            )
        elif context.power_difference < -50:
            modifiers.append(
                KarmaWeightModifier(
                    type=ModifierType.POWER_DIFFERENCE,
                    multiplier=0.8,
                    reason="Acted despite being significantly weaker",
                )
            )

    if context.was_provoked:
        modifiers.append(
            KarmaWeightModifier(
                type=ModifierType.PROVOCATION,
                multiplier=0.7,
                reason="Action was provoked",
            )
        )
    if context.was_public:
        modifiers.append(
            KarmaWeightModifier(
                type=ModifierType.PUBLIC_NATURE,
                multiplier=1.4,
                reason="Witnessed publicly, affecting face",
            )
        )
    if context.target_was_innocent:
        modifiers.append(
            KarmaWeightModifier(
                type=ModifierType.INNOCENCE,
                multiplier=1.5,
                reason="Target was innocent",
            )
        )
    if context.was_justified:
        modifiers.append(
            KarmaWeightModifier(
                type=ModifierType.JUSTIFIED,
                multiplier=0.6,
                reason="Action was justified",
            )
        )
    if context.involves_clan:
        modifiers.append(
            KarmaWeightModifier(
                type=ModifierType.CLAN_INVOLVEMENT,
                multiplier=1.8,
                reason="Involves clan honor",
            )
        )
    if context.involves_sect:
        modifiers.append(
            KarmaWeightModifier(
                type=ModifierType.SECT_INVOLVEMENT,
                multiplier=1.6,
                reason="Involves sect politics",
            )
        )
    if context.treasure_value is not None:
        modifiers.append(
            KarmaWeightModifier(
                type=ModifierType.TREASURE_VALUE,
                multiplier=TREASURE_MULTIPLIERS[context.treasure_value],
                reason=f"Treasure value: {context.treasure_value.value}",
            )
        )
    if context.affects_cultivation:
        modifiers.append(
            KarmaWeightModifier(
                type=ModifierType.CULTIVATION_IMPACT,
                multiplier=1.7,
                reason="Affects cultivation path",
            )
        )
    if context.betrayal_of_trust:
        modifiers.append(
            KarmaWeightModifier(
                type=ModifierType.BETRAYAL_DEPTH,
                multiplier=2.0,
                reason="Deep betrayal of trust",
            )
        )

    return modifiers


def compute_karma_weight(
    action_type: KarmaActionType | str,
    severity: KarmaSeverity | str,
    context: KarmaContext | None = None,
) -> KarmaWeightResult:
    """
    Weigh an action.

    final = round(base * severity * product(modifiers)), clamped to [0, 100].

    Raises:
        InvalidActionType: Unknown action type.
        InvalidSeverity: Unknown severity.
    """
    action = parse_action_type(action_type)
    level = parse_severity(severity)
    base, polarity = KARMA_WEIGHTS[action]

    modifiers = collect_modifiers(context or KarmaContext())

    multiplier = SEVERITY_MULTIPLIERS[level]
    for modifier in modifiers:
        multiplier *= modifier.multiplier

    final = max(0, min(MAX_KARMA_WEIGHT, round_half_up(base * multiplier)))

    return KarmaWeightResult(
        action_type=action,
        severity=level,
        polarity=polarity,
        base_weight=base,
        modifiers=modifiers,
        total_multiplier=multiplier,
        final_weight=final,
    )


# =============================================================================
# Derived deltas
# =============================================================================


def _action_label(action_type: KarmaActionType) -> str:
    return action_type.value.replace("_", " ")


def compute_face_change(
    action_type: KarmaActionType,
    polarity: KarmaPolarity,
    final_weight: int,
    was_public: bool = False,
    target_reputation: int | None = None,
) -> FaceChange:
    """
    Face deltas for actor and target.

    Positive deeds lift both sides. Negative deeds always cost the target;
    the actor gains for acts of strength, loses for acts of dishonour, and is
    otherwise unaffected. Neutral deeds move nothing.
    """
    actor_change = 0
    target_change = 0

    if polarity == KarmaPolarity.POSITIVE:
        actor_change = floor_scaled(final_weight * POSITIVE_ACTOR_FACE)
        target_change = floor_scaled(final_weight * POSITIVE_TARGET_FACE)
    elif polarity == KarmaPolarity.NEGATIVE:
        if action_type in ACTOR_FACE_GAIN_ACTIONS:
            actor_change = floor_scaled(final_weight * NEGATIVE_ACTOR_GAIN_FACE)
        elif action_type in ACTOR_FACE_LOSS_ACTIONS:
            actor_change = -floor_scaled(final_weight * NEGATIVE_ACTOR_LOSS_FACE)
        target_change = -floor_scaled(final_weight * NEGATIVE_TARGET_FACE)

    if was_public:
        actor_change = round_half_up(actor_change * PUBLIC_FACE_MULTIPLIER)
        target_change = round_half_up(target_change * PUBLIC_FACE_MULTIPLIER)

    if target_reputation is not None and target_reputation > HIGH_REPUTATION_THRESHOLD:
        target_change = round_half_up(target_change * HIGH_REPUTATION_FACE_MULTIPLIER)

    label = _action_label(action_type)
    if polarity == KarmaPolarity.POSITIVE:
        perception = f"{label} is viewed favorably"
    elif actor_change > 0:
        perception = f"{label} is seen as a show of strength"
    elif actor_change < 0:
        perception = f"{label} is viewed as dishonorable"
    else:
        perception = f"{label} may have mixed reception"

    return FaceChange(
        actor_face_change=actor_change,
        target_face_change=target_change,
        public_perception=perception,
    )


def compute_sentiment_change(
    polarity: KarmaPolarity,
    final_weight: int,
    is_retaliation: bool = False,
) -> int:
    """How much the target's sentiment toward the actor moves, in [-100, 100]."""
    if polarity == KarmaPolarity.POSITIVE:
        change = floor_scaled(final_weight * POSITIVE_SENTIMENT)
    elif polarity == KarmaPolarity.NEGATIVE:
        change = -floor_scaled(final_weight * NEGATIVE_SENTIMENT)
    else:
        change = 0

    # Retaliation is partly expected, so it stings less
    if is_retaliation:
        change = floor_scaled(change * RETALIATION_SENTIMENT)

    return max(-100, min(100, change))


def face_category_for_action(action_type: KarmaActionType) -> FaceCategory:
    return FACE_CATEGORY_BY_ACTION[action_type]


# =============================================================================
# Advisory decisions
# =============================================================================


def should_trigger_blood_feud(
    action_type: KarmaActionType,
    severity: KarmaSeverity,
    final_weight: int,
    involves_clan: bool = False,
    target_is_important: bool = False,
) -> FeudRecommendation:
    """Advise whether an event is grave enough to start a blood feud."""
    if action_type not in FEUD_TRIGGER_ACTIONS:
        return FeudRecommendation(
            should_trigger=False,
            suggested_intensity=0,
            reason="Action type does not typically trigger blood feud",
        )

    if action_type == KarmaActionType.EXTERMINATE_CLAN:
        return FeudRecommendation(
            should_trigger=True,
            suggested_intensity=100,
            reason="Clan extermination automatically creates blood feud",
        )

    score = FEUD_SEVERITY_SCORES[severity] + math.floor(final_weight * 0.5)
    if involves_clan:
        score += 30
    if target_is_important:
        score += 20

    if action_type == KarmaActionType.KILL and (involves_clan or target_is_important):
        return FeudRecommendation(
            should_trigger=score >= FEUD_THRESHOLD_KILL_IMPORTANT,
            suggested_intensity=min(100, score + 20),
            reason="Killing clan member or important figure",
        )

    if score >= FEUD_THRESHOLD:
        reason = (
            f"High karma weight ({final_weight}) and severity ({severity.value}) "
            "warrant blood feud"
        )
    else:
        reason = "Karma weight not significant enough for blood feud"
    return FeudRecommendation(
        should_trigger=score >= FEUD_THRESHOLD,
        suggested_intensity=min(100, score),
        reason=reason,
    )


def should_create_debt(
    action_type: KarmaActionType,
    polarity: KarmaPolarity,
    final_weight: int,
) -> DebtRecommendation:
    """Advise whether the target now owes the actor a favour."""
    if polarity != KarmaPolarity.POSITIVE:
        return DebtRecommendation(
            should_create=False,
            debt_type=DebtType.OTHER,
            suggested_weight=0,
            reason="Only positive actions create debts",
        )

    debt_type = DEBT_TYPES_BY_ACTION.get(action_type)
    if debt_type is None:
        return DebtRecommendation(
            should_create=False,
            debt_type=DebtType.OTHER,
            suggested_weight=0,
            reason="Action type does not typically create debt",
        )

    if final_weight >= DEBT_THRESHOLD:
        reason = (
            f"{_action_label(action_type)} with weight {final_weight} "
            f"creates a {debt_type.value} debt"
        )
    else:
        reason = "Karma weight too low for significant debt"
    return DebtRecommendation(
        should_create=final_weight >= DEBT_THRESHOLD,
        debt_type=debt_type,
        suggested_weight=final_weight,
        reason=reason,
    )
