"""
Stateless Skills for the Face Graph.

Skills are pure functions that:
- Take structured input (Pydantic models and enums)
- Execute the karma rules (weights, modifiers, Face and sentiment deltas)
- Return structured output
- NEVER maintain state between calls
- NEVER touch storage
"""

from facegraph.skills.karma import (
    KARMA_WEIGHTS,
    SEVERITY_MULTIPLIERS,
    DebtRecommendation,
    FaceChange,
    FeudRecommendation,
    KarmaWeightResult,
    compute_face_change,
    compute_karma_weight,
    compute_sentiment_change,
    face_category_for_action,
    get_base_weight,
    get_polarity,
    parse_action_type,
    parse_severity,
    should_create_debt,
    should_trigger_blood_feud,
)

__all__ = [
    "KARMA_WEIGHTS",
    "SEVERITY_MULTIPLIERS",
    "DebtRecommendation",
    "FaceChange",
    "FeudRecommendation",
    "KarmaWeightResult",
    "compute_face_change",
    "compute_karma_weight",
    "compute_sentiment_change",
    "face_category_for_action",
    "get_base_weight",
    "get_polarity",
    "parse_action_type",
    "parse_severity",
    "should_create_debt",
    "should_trigger_blood_feud",
]
