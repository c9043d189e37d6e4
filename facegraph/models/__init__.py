"""
Core data models for the Face Graph.

These models define the ontology of the engine: characters, karma events,
Face profiles, directed social links, ripples, blood feuds and debts.

Models are stored in:
- Dolt: profiles, karma events, ripples, feuds, debts, config (the ledger)
- Neo4j: social links (the graph)
"""

from facegraph.models.character import (
    Character,
    CharacterRelationship,
    CharacterRole,
    find_character_by_name,
)
from facegraph.models.config import FaceGraphConfig, default_face_multipliers
from facegraph.models.debt import DebtType, FaceDebt
from facegraph.models.face import (
    Accomplishment,
    FaceCategory,
    FaceCategoryScores,
    FaceProfile,
    FaceTier,
    FaceTitle,
    Notoriety,
    Shame,
    create_face_profile,
    get_face_tier,
    get_notoriety,
)
from facegraph.models.feud import (
    BloodFeud,
    FeudEscalation,
    FeudParty,
    FeudPartyType,
    FeudResolution,
    FeudSide,
)
from facegraph.models.graph import SocialGraph
from facegraph.models.karma import (
    KarmaActionType,
    KarmaContext,
    KarmaEvent,
    KarmaPolarity,
    KarmaSeverity,
    KarmaWeightModifier,
    ModifierType,
    SettlementType,
    TreasureValue,
)
from facegraph.models.links import (
    LinkStrength,
    SentimentLabel,
    SocialLink,
    SocialLinkCategory,
    SocialLinkType,
    get_sentiment_label,
    map_relationship_to_link_type,
    map_relationship_to_sentiment,
)
from facegraph.models.ripple import (
    RIPPLE_DECAY_FLOOR,
    ConnectionHop,
    KarmaRipple,
    ThreatLevel,
)

__all__ = [
    # Character
    "Character",
    "CharacterRelationship",
    "CharacterRole",
    "find_character_by_name",
    # Config
    "FaceGraphConfig",
    "default_face_multipliers",
    # Debt
    "DebtType",
    "FaceDebt",
    # Face
    "Accomplishment",
    "FaceCategory",
    "FaceCategoryScores",
    "FaceProfile",
    "FaceTier",
    "FaceTitle",
    "Notoriety",
    "Shame",
    "create_face_profile",
    "get_face_tier",
    "get_notoriety",
    # Feud
    "BloodFeud",
    "FeudEscalation",
    "FeudParty",
    "FeudPartyType",
    "FeudResolution",
    "FeudSide",
    # Graph
    "SocialGraph",
    # Karma
    "KarmaActionType",
    "KarmaContext",
    "KarmaEvent",
    "KarmaPolarity",
    "KarmaSeverity",
    "KarmaWeightModifier",
    "ModifierType",
    "SettlementType",
    "TreasureValue",
    # Links
    "LinkStrength",
    "SentimentLabel",
    "SocialLink",
    "SocialLinkCategory",
    "SocialLinkType",
    "get_sentiment_label",
    "map_relationship_to_link_type",
    "map_relationship_to_sentiment",
    # Ripple
    "RIPPLE_DECAY_FLOOR",
    "ConnectionHop",
    "KarmaRipple",
    "ThreatLevel",
]
