"""
Service layer for the Face Graph.

Services orchestrate the karma skills and models over the repositories.
FaceGraphService is the entry point; the others are its parts and can be
used on their own.
"""

from __future__ import annotations

from facegraph.services.analytics import (
    HostilityReason,
    NetworkAnalytics,
    NetworkStatistics,
    PathResult,
    SocialCluster,
)
from facegraph.services.context import CharacterSummary, ContextFormatter
from facegraph.services.debt import DebtLedger
from facegraph.services.face import FaceLedger, FaceUpdate
from facegraph.services.facegraph import (
    ConsequencePreview,
    FaceGraphService,
    IngestResult,
    KarmaEventOptions,
    KarmaProposal,
    KarmaRecordResult,
)
from facegraph.services.feud import BloodFeudManager
from facegraph.services.novel import FaceGraphSnapshot, NovelContext
from facegraph.services.ripple import (
    DecayResult,
    RippleAnalyzer,
    ThreatAssessment,
    compute_ripples,
)

__all__ = [
    # Entry point
    "FaceGraphService",
    "KarmaEventOptions",
    "KarmaRecordResult",
    "KarmaProposal",
    "IngestResult",
    "ConsequencePreview",
    # Per-novel state
    "NovelContext",
    "FaceGraphSnapshot",
    # Components
    "FaceLedger",
    "FaceUpdate",
    "RippleAnalyzer",
    "DecayResult",
    "ThreatAssessment",
    "compute_ripples",
    "BloodFeudManager",
    "DebtLedger",
    "NetworkAnalytics",
    "NetworkStatistics",
    "PathResult",
    "SocialCluster",
    "HostilityReason",
    "ContextFormatter",
    "CharacterSummary",
]
