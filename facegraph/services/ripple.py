"""
Ripple analysis: how a karma event reaches people who weren't there.

Propagation is a bounded breadth-first walk out from the event's target.
Everyone directly connected to the target feels it (degree 1). Past that,
only the propagating relationship types (blood, lineage, dao bonds by
default) carry news further: degree 2 for any rippling event, degree 3
only for extreme ones.

Each character is admitted at most once per event. Everyone at degree d is
collected before anyone at degree d+1, so the set of affected characters
depends only on the graph and the event, never on edge iteration order. When
a character can be reached through several equally short paths, the recorded
path is picked by a fixed tie-break (strongest relationship, then ids); any
of those paths is a valid explanation of the ripple.
"""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from uuid import UUID

from pydantic import BaseModel, Field

from facegraph.db.interfaces import GraphRepository, LedgerRepository
from facegraph.errors import PersistenceError, RecordNotFound
from facegraph.models import (
    ConnectionHop,
    FaceGraphConfig,
    KarmaActionType,
    KarmaEvent,
    KarmaPolarity,
    KarmaRipple,
    KarmaSeverity,
    LinkStrength,
    SocialGraph,
    SocialLink,
    SocialLinkType,
    ThreatLevel,
)
from facegraph.models.links import (
    STRONG_RELATIONSHIPS,
    classify_relationship,
    get_relationship_strength,
)
from facegraph.models.ripple import MAX_RIPPLE_DEPTH, RIPPLE_DECAY_FLOOR
from facegraph.services.novel import FaceGraphSnapshot, NovelContext

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# Degree 3 is reserved for events at least this heavy
EXTREME_RIPPLE_WEIGHT = 80

RIPPLE_SENTIMENT_SCALE = 0.5
THREAT_SENTIMENT_THRESHOLD = -20

POSITIVE_RESPONSE = "May feel positively disposed toward the actor"
DEFAULT_NEGATIVE_RESPONSE = "May hold negative feelings toward the actor"

RESPONSES_BY_RELATIONSHIP: dict[SocialLinkType, list[str]] = {
    SocialLinkType.PARENT: [
        "Seek vengeance for their child",
        "Mobilize family resources against the actor",
    ],
    SocialLinkType.CHILD: [
        "Swear blood oath of revenge",
        "Train to surpass the actor",
    ],
    SocialLinkType.SIBLING: [
        "Join forces with others who were wronged",
        "Hunt the actor relentlessly",
    ],
    SocialLinkType.SPOUSE: [
        "Dedicate life to revenge",
        "Rally allies against the actor",
    ],
    SocialLinkType.MASTER: [
        "Consider this an attack on themselves",
        "May intervene directly",
    ],
    SocialLinkType.DISCIPLE: [
        "Feel honor-bound to avenge their martial relative",
        "Spread word of the actor's deed",
    ],
    SocialLinkType.MARTIAL_BROTHER: [
        "Treat this as a sect matter",
        "May challenge the actor",
    ],
    SocialLinkType.MARTIAL_SISTER: [
        "Seek justice through sect channels",
        "May gather sect allies",
    ],
    SocialLinkType.CLAN_ELDER: [
        "View this as an attack on the clan",
        "May issue clan bounty",
    ],
    SocialLinkType.CLAN_MEMBER: [
        "Feel obligation to support fellow clan member",
        "May provide information",
    ],
    SocialLinkType.SECT_LEADER: [
        "Consider official sect response",
        "May mobilize sect resources",
    ],
    SocialLinkType.SECT_MEMBER: [
        "Feel sect honor is at stake",
        "May report to sect leadership",
    ],
    SocialLinkType.FRIEND: [
        "Hold grudge against the actor",
        "May refuse to cooperate with actor",
    ],
    SocialLinkType.PROTECTOR: [
        "Feel failure in their duty",
        "May seek to settle the score",
    ],
}


# =============================================================================
# Result Models
# =============================================================================


class DecayResult(BaseModel):
    """Outcome of one decay pass."""

    updated: int = 0
    removed: int = 0
    removed_ids: list[UUID] = Field(default_factory=list)


class DirectConnection(BaseModel):
    """The NPC is linked straight to someone the protagonist wronged."""

    wronged_character_id: str
    wronged_character_name: str
    connection_type: SocialLinkType
    connection_strength: LinkStrength
    karma_event_id: UUID
    action_type: KarmaActionType
    karma_severity: KarmaSeverity
    chapter_occurred: int


class IndirectConnection(BaseModel):
    """The NPC reaches someone the protagonist wronged through one intermediary."""

    wronged_character_id: str
    wronged_character_name: str
    path_to_wronged: list[ConnectionHop]
    degrees_of_separation: int = 2
    karma_event_id: UUID
    action_type: KarmaActionType
    karma_severity: KarmaSeverity
    chapter_occurred: int


class ThreatAssessment(BaseModel):
    """How dangerous an NPC is to the protagonist, and why."""

    npc_id: str
    npc_name: str
    personally_wronged: bool = False
    direct_connections: list[DirectConnection] = Field(default_factory=list)
    indirect_connections: list[IndirectConnection] = Field(default_factory=list)
    threat_level: ThreatLevel = ThreatLevel.NONE
    threat_reasons: list[str] = Field(default_factory=list)
    story_hooks: list[str] = Field(default_factory=list)


# =============================================================================
# Pure helpers
# =============================================================================


def get_threat_level(sentiment_change: int) -> ThreatLevel:
    """Bucket a (negative) sentiment swing into a threat level."""
    magnitude = abs(sentiment_change)
    if magnitude >= 50:
        return ThreatLevel.EXTREME
    if magnitude >= 35:
        return ThreatLevel.MAJOR
    if magnitude >= 25:
        return ThreatLevel.MODERATE
    return ThreatLevel.MINOR


def compute_ripple_sentiment(
    final_weight: int,
    relationship_strength: float,
    degree: int,
    polarity: KarmaPolarity,
) -> int:
    """floor(weight * strength * 1/(degree+1) * sign * 0.5)."""
    raw = final_weight * relationship_strength / (degree + 1) * polarity.sign
    # round off float noise (100 * 0.6 is not exactly 60) before flooring
    return math.floor(round(raw * RIPPLE_SENTIMENT_SCALE, 9))


def _stable_index(seed: str, size: int) -> int:
    digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()
    return int(digest, 16) % size


def generate_potential_response(
    connection_type: SocialLinkType,
    polarity: KarmaPolarity,
    degree: int,
    seed: str,
) -> str:
    """
    Describe how an affected character might react.

    The choice among candidate responses is seeded, so the same event always
    produces the same text for the same character.
    """
    if polarity != KarmaPolarity.NEGATIVE:
        return POSITIVE_RESPONSE

    responses = RESPONSES_BY_RELATIONSHIP.get(
        connection_type, [DEFAULT_NEGATIVE_RESPONSE]
    )
    if degree >= 2:
        return responses[0].replace("May", "Might eventually").replace("Will", "May")
    return responses[_stable_index(seed, len(responses))]


def _edge_rank(link: SocialLink, other_id: str) -> tuple[float, str, str]:
    """Sort key: strongest relationship first, then link type, then endpoint."""
    return (-get_relationship_strength(link.link_type), link.link_type.value, other_id)


def compute_ripples(
    graph: SocialGraph,
    event: KarmaEvent,
    config: FaceGraphConfig,
    protected_ids: set[str] | frozenset[str] = frozenset(),
) -> list[KarmaRipple]:
    """
    Propagate an event through the graph without touching storage.

    Returns ripples ordered by degree, then affected character id. The
    threshold and auto-ripple flag are the caller's business; this always
    propagates.
    """
    max_depth = min(config.max_ripple_degrees, MAX_RIPPLE_DEPTH)
    if event.final_karma_weight < EXTREME_RIPPLE_WEIGHT:
        max_depth = min(max_depth, 2)
    propagating = set(config.propagating_link_types)
    is_negative = event.polarity == KarmaPolarity.NEGATIVE

    visited: set[str] = {event.actor_id, event.target_id}
    ripples: list[KarmaRipple] = []

    # (affected id) -> (edge, parent ripple or None)
    candidates: dict[str, tuple[SocialLink, KarmaRipple | None]] = {}
    for link in graph.neighbors(event.target_id):
        other_id, _ = link.other(event.target_id)
        if other_id in visited:
            continue
        current = candidates.get(other_id)
        if current is None or _edge_rank(link, other_id) < _edge_rank(current[0], other_id):
            candidates[other_id] = (link, None)

    frontier: list[KarmaRipple] = []
    degree = 1
    while candidates:
        for affected_id in sorted(candidates):
            link, parent = candidates[affected_id]
            visited.add(affected_id)
            if is_negative and affected_id in protected_ids:
                logger.debug("Ripple to protected %s suppressed", affected_id)
                continue

            if parent is None:
                via_id, via_name = event.target_id, event.target_name
                path: list[ConnectionHop] = []
            else:
                via_id = parent.affected_character_id
                via_name = parent.affected_character_name
                path = list(parent.connection_path)
            path.append(
                ConnectionHop(
                    character_id=via_id, character_name=via_name, link_type=link.link_type
                )
            )

            strength = get_relationship_strength(link.link_type)
            change = compute_ripple_sentiment(
                event.final_karma_weight, strength, degree, event.polarity
            )
            becomes_threat = is_negative and change <= THREAT_SENTIMENT_THRESHOLD
            _, affected_name = link.other(via_id)

            ripple = KarmaRipple(
                novel_id=event.novel_id,
                source_event_id=event.id,
                original_actor_id=event.actor_id,
                original_actor_name=event.actor_name,
                original_target_id=event.target_id,
                original_target_name=event.target_name,
                affected_character_id=affected_id,
                affected_character_name=affected_name,
                connection_path=path,
                degrees_of_separation=degree,
                relationship_strength=strength,
                sentiment_change=change,
                becomes_threat=becomes_threat,
                threat_level=get_threat_level(change) if becomes_threat else ThreatLevel.NONE,
                potential_response=generate_potential_response(
                    link.link_type,
                    event.polarity,
                    degree,
                    seed=f"{event.id}:{affected_id}",
                ),
                decay_factor=config.karma_decay_per_chapter**degree,
                calculated_at_chapter=event.chapter_number,
            )
            ripples.append(ripple)
            frontier.append(ripple)

        degree += 1
        candidates = {}
        if degree > max_depth:
            break
        for parent in frontier:
            parent_id = parent.affected_character_id
            for link in graph.neighbors(parent_id, link_types=propagating):
                other_id, _ = link.other(parent_id)
                if other_id in visited:
                    continue
                current = candidates.get(other_id)
                rank = (*_edge_rank(link, other_id), parent_id)
                if current is None or rank < (
                    *_edge_rank(current[0], other_id),
                    current[1].affected_character_id,  # type: ignore[union-attr]
                ):
                    candidates[other_id] = (link, parent)
        frontier = []

    logger.debug(
        "Event %s rippled to %d characters (max degree %d)",
        event.id,
        len(ripples),
        max_depth,
    )
    return ripples


# =============================================================================
# Service
# =============================================================================


@dataclass
class RippleAnalyzer:
    """Creates, decays and manifests ripples for a novel."""

    ledger: LedgerRepository
    graph_repo: GraphRepository

    def should_ripple(self, event: KarmaEvent, config: FaceGraphConfig) -> bool:
        return (
            config.enabled
            and config.auto_calculate_ripples
            and event.final_karma_weight >= config.ripple_karma_threshold
        )

    def protected_ids(self, context: NovelContext) -> set[str]:
        protected = set(context.config.protected_character_ids)
        for profile in self.ledger.get_profiles(context.novel_id):
            if profile.is_protected:
                protected.add(profile.character_id)
        return protected

    def analyze(self, context: NovelContext, event: KarmaEvent) -> list[KarmaRipple]:
        """
        Compute and store ripples for an event.

        Storing is best effort: a ripple that fails to save is logged and
        skipped, and the rest are still saved. Records the affected ids on
        ``event`` (the caller persists the event). Returns the saved ripples.
        """
        with context.write_lock():
            ripples = compute_ripples(
                context.graph, event, context.config, self.protected_ids(context)
            )
            saved: list[KarmaRipple] = []
            for ripple in ripples:
                try:
                    self.ledger.save_ripple(ripple)
                except PersistenceError as e:
                    logger.warning(
                        "Could not save ripple to %s for event %s: %s",
                        ripple.affected_character_name,
                        event.id,
                        e,
                    )
                    continue
                saved.append(ripple)

            event.ripple_affected_ids = [r.affected_character_id for r in ripples]
            return saved

    def apply_ripple_decay(
        self, context: NovelContext, chapters_passed: int = 1
    ) -> DecayResult:
        """
        Fade every unmanifested ripple by ``rate ** chapters_passed``.

        Ripples that reach the floor are deleted. Decay never increases a
        factor, so running this repeatedly is safe.
        """
        if chapters_passed < 0:
            raise ValueError("chapters_passed cannot be negative")

        result = DecayResult()
        if chapters_passed == 0:
            return result

        with context.write_lock():
            factor = context.config.karma_decay_per_chapter**chapters_passed
            for ripple in self.ledger.get_ripples(context.novel_id):
                if ripple.has_manifested:
                    continue
                new_factor = min(ripple.decay_factor, ripple.decay_factor * factor)
                if new_factor <= RIPPLE_DECAY_FLOOR:
                    self.ledger.delete_ripple(context.novel_id, ripple.id)
                    result.removed += 1
                    result.removed_ids.append(ripple.id)
                    continue
                ripple.decay_factor = new_factor
                self.ledger.save_ripple(ripple)
                result.updated += 1

        if result.removed:
            logger.info(
                "%d ripples faded in novel %s", result.removed, context.novel_id
            )
        return result

    def manifest_ripple(
        self,
        context: NovelContext,
        ripple_id: UUID,
        chapter: int,
        description: str | None = None,
    ) -> KarmaRipple:
        """
        Play a ripple out in the story.

        The ripple stops decaying and its (decayed) sentiment change lands on
        how the affected character sees the original actor. A second call is
        a no-op.
        """
        with context.write_lock():
            ripple = self.ledger.get_ripple(context.novel_id, ripple_id)
            if ripple is None:
                raise RecordNotFound("KarmaRipple", ripple_id)
            if not ripple.manifest(chapter, description):
                logger.warning("Ripple %s already manifested", ripple_id)
                return ripple

            change = ripple.effective_sentiment_change
            if change != 0:
                self._apply_sentiment(context, ripple, change, chapter)
            self.ledger.save_ripple(ripple)
            return ripple

    def _apply_sentiment(
        self, context: NovelContext, ripple: KarmaRipple, change: int, chapter: int
    ) -> None:
        graph = context.graph
        source_id = ripple.affected_character_id
        target_id = ripple.original_actor_id
        links = graph.directed_links(source_id, target_id)
        if not links:
            link_type = SocialLinkType.ENEMY if change < 0 else SocialLinkType.BENEFACTOR
            links = [
                graph.upsert(
                    source_id,
                    ripple.affected_character_name,
                    target_id,
                    ripple.original_actor_name,
                    link_type,
                    chapter,
                    strength=LinkStrength.WEAK,
                    is_known_to_target=False,
                )
            ]
            links[0].adjust_sentiment(change)
        else:
            for link in links:
                link.adjust_sentiment(change)
                link.last_interaction_chapter = max(link.last_interaction_chapter, chapter)
        for link in links:
            self.graph_repo.upsert_link(link)

    def query_connection_to_wronged(
        self,
        snapshot: FaceGraphSnapshot,
        npc_id: str,
        protagonist_id: str,
    ) -> ThreatAssessment:
        """See :func:`assess_threat`."""
        return assess_threat(snapshot, npc_id, protagonist_id)


# =============================================================================
# Threat assessment
# =============================================================================

_SEVERE = {KarmaSeverity.SEVERE, KarmaSeverity.EXTREME}


def _heaviest(events: list[KarmaEvent]) -> KarmaEvent:
    return max(events, key=lambda e: (e.final_karma_weight, e.chapter_number, str(e.id)))


def assess_threat(
    snapshot: FaceGraphSnapshot, npc_id: str, protagonist_id: str
) -> ThreatAssessment:
    """
    Work out whether an NPC has reason to hate the protagonist.

    Looks at unsettled negative karma the protagonist caused and checks
    whether the NPC is its victim, linked to a victim, or one step removed
    from a victim.
    """
    npc_name = snapshot.name_of(npc_id)
    result = ThreatAssessment(npc_id=npc_id, npc_name=npc_name)

    grudges = snapshot.unsettled_events(
        polarity=KarmaPolarity.NEGATIVE, actor_id=protagonist_id
    )
    if not grudges or npc_id == protagonist_id:
        return result

    by_victim: dict[str, list[KarmaEvent]] = {}
    for event in grudges:
        by_victim.setdefault(event.target_id, []).append(event)

    graph = snapshot.graph
    if npc_id in by_victim:
        result.personally_wronged = True

    direct_ids: set[str] = set()
    for link in graph.neighbors(npc_id):
        other_id, _ = link.other(npc_id)
        if other_id == npc_id or other_id not in by_victim:
            continue
        event = _heaviest(by_victim[other_id])
        direct_ids.add(other_id)
        result.direct_connections.append(
            DirectConnection(
                wronged_character_id=other_id,
                wronged_character_name=event.target_name,
                connection_type=link.link_type,
                connection_strength=link.strength,
                karma_event_id=event.id,
                action_type=event.action_type,
                karma_severity=event.severity,
                chapter_occurred=event.chapter_number,
            )
        )

    seen_indirect: set[str] = set()
    for link in graph.neighbors(npc_id):
        hop_id, hop_name = link.other(npc_id)
        if hop_id == npc_id:
            continue
        for second in graph.neighbors(hop_id):
            victim_id, _ = second.other(hop_id)
            if (
                victim_id in (npc_id, hop_id)
                or victim_id not in by_victim
                or victim_id in direct_ids
                or victim_id in seen_indirect
            ):
                continue
            seen_indirect.add(victim_id)
            event = _heaviest(by_victim[victim_id])
            result.indirect_connections.append(
                IndirectConnection(
                    wronged_character_id=victim_id,
                    wronged_character_name=event.target_name,
                    path_to_wronged=[
                        ConnectionHop(
                            character_id=hop_id,
                            character_name=hop_name,
                            link_type=link.link_type,
                        ),
                        ConnectionHop(
                            character_id=victim_id,
                            character_name=event.target_name,
                            link_type=second.link_type,
                        ),
                    ],
                    karma_event_id=event.id,
                    action_type=event.action_type,
                    karma_severity=event.severity,
                    chapter_occurred=event.chapter_number,
                )
            )

    protagonist_name = snapshot.name_of(protagonist_id)
    if result.personally_wronged:
        event = _heaviest(by_victim[npc_id])
        severe = event.severity in _SEVERE
        result.threat_level = ThreatLevel.EXTREME if severe else ThreatLevel.MAJOR
        result.threat_reasons.append(
            f"Personally wronged by {protagonist_name} ({event.action_type.value})"
        )
        result.story_hooks.append(f"{npc_name} wants to settle the score personally")

    if result.direct_connections:
        strong = any(
            c.connection_type in STRONG_RELATIONSHIPS for c in result.direct_connections
        )
        severe = any(c.karma_severity in _SEVERE for c in result.direct_connections)
        if strong and severe:
            level = ThreatLevel.EXTREME
            result.threat_reasons.append(
                f"Close bond to someone {protagonist_name} gravely wronged"
            )
        elif strong or severe:
            level = ThreatLevel.MAJOR
            result.threat_reasons.append(
                f"Direct connection to someone {protagonist_name} severely wronged"
            )
        else:
            level = ThreatLevel.MODERATE
            result.threat_reasons.append(
                f"Direct connection to someone {protagonist_name} wronged"
            )
        result.threat_level = _max_threat(result.threat_level, level)
        for conn in result.direct_connections:
            relation = conn.connection_type.value.replace("_", " ")
            result.threat_reasons.append(
                f"{relation} of {conn.wronged_character_name} "
                f"({conn.action_type.value}, {classify_relationship(conn.connection_type)} bond)"
            )
        result.story_hooks.extend(
            [
                f"{npc_name} may recognize {protagonist_name} and act hostile",
                f"{npc_name} could provide information to enemies",
                f"{npc_name} might demand an explanation or apology",
            ]
        )
    elif result.indirect_connections:
        result.threat_level = _max_threat(result.threat_level, ThreatLevel.MINOR)
        result.threat_reasons.append(
            f"Indirect connection to people {protagonist_name} wronged"
        )
        result.story_hooks.extend(
            [
                f"{npc_name} may have heard rumors about {protagonist_name}",
                f"{npc_name} could become hostile if they learn more",
            ]
        )

    return result


_THREAT_ORDER = [
    ThreatLevel.NONE,
    ThreatLevel.MINOR,
    ThreatLevel.MODERATE,
    ThreatLevel.MAJOR,
    ThreatLevel.EXTREME,
]


def _max_threat(a: ThreatLevel, b: ThreatLevel) -> ThreatLevel:
    return a if _THREAT_ORDER.index(a) >= _THREAT_ORDER.index(b) else b
