"""
Face Graph Service.

The entry point the rest of a novel pipeline talks to. Recording a karma
event is the only way new facts enter the graph; everything else here either
settles, decays or annotates what is already there, or reads it back.

Writes for a novel serialize on its NovelContext lock. Reads go through
snapshots.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from uuid import UUID

from pydantic import BaseModel, Field

from facegraph.db.interfaces import GraphRepository, LedgerRepository
from facegraph.errors import (
    CharacterNotFound,
    InvalidActionType,
    InvalidSeverity,
    PersistenceError,
    RecordNotFound,
)
from facegraph.models import (
    BloodFeud,
    Character,
    DebtType,
    FaceCategory,
    FaceDebt,
    FaceGraphConfig,
    FaceProfile,
    FeudResolution,
    FeudSide,
    KarmaActionType,
    KarmaContext,
    KarmaEvent,
    KarmaPolarity,
    KarmaRipple,
    KarmaSeverity,
    LinkStrength,
    SettlementType,
    SocialLink,
    SocialLinkType,
    create_face_profile,
    find_character_by_name,
    map_relationship_to_link_type,
    map_relationship_to_sentiment,
)
from facegraph.models.links import strength_for_weight
from facegraph.services.analytics import NetworkAnalytics
from facegraph.services.context import ContextFormatter
from facegraph.services.debt import DebtLedger
from facegraph.services.face import FaceLedger, FaceUpdate
from facegraph.services.feud import BloodFeudManager
from facegraph.services.novel import FaceGraphSnapshot, NovelContext
from facegraph.services.ripple import (
    DecayResult,
    RippleAnalyzer,
    ThreatAssessment,
    assess_threat,
    compute_ripples,
)
from facegraph.skills.karma import (
    DebtRecommendation,
    FaceChange,
    FeudRecommendation,
    KarmaWeightResult,
    compute_face_change,
    compute_karma_weight,
    compute_sentiment_change,
    face_category_for_action,
    parse_action_type,
    parse_severity,
    round_half_up,
    should_create_debt,
    should_trigger_blood_feud,
)

logger = logging.getLogger(__name__)

# Category roster-seeded starting Face is booked under
STARTING_FACE_CATEGORY = FaceCategory.POLITICAL

# Link created on the target's side when it had no opinion of the actor yet
_FIRST_IMPRESSION_LINKS = {
    KarmaPolarity.NEGATIVE: SocialLinkType.ENEMY,
    KarmaPolarity.POSITIVE: SocialLinkType.BENEFACTOR,
    KarmaPolarity.NEUTRAL: SocialLinkType.RIVAL,
}


# =============================================================================
# Request / Result Models
# =============================================================================


class KarmaEventOptions(BaseModel):
    """Everything about an event beyond who did what to whom."""

    severity: KarmaSeverity | str = KarmaSeverity.MODERATE
    context: KarmaContext = Field(default_factory=KarmaContext)
    witness_ids: list[str] = Field(default_factory=list)
    affected_third_parties: list[str] = Field(default_factory=list)
    is_retaliation: bool = False
    retaliation_for_event_id: UUID | None = Field(
        default=None, description="Event this one avenges; it is settled as avenged"
    )
    target_is_important: bool = False
    apply_recommendations: bool = Field(
        default=False, description="Create the advised blood feud / debt automatically"
    )


class KarmaRecordResult(BaseModel):
    """What recording one karma event changed."""

    event: KarmaEvent
    weight: KarmaWeightResult
    face_change: FaceChange
    actor_face: FaceUpdate | None = None
    target_face: FaceUpdate | None = None
    sentiment_change: int = 0
    updated_links: list[SocialLink] = Field(default_factory=list)
    ripples: list[KarmaRipple] = Field(default_factory=list)
    settled_event_id: UUID | None = None
    feud_recommendation: FeudRecommendation
    debt_recommendation: DebtRecommendation
    feud: BloodFeud | None = None
    debt: FaceDebt | None = None


class KarmaProposal(BaseModel):
    """
    A candidate event from the extraction step.

    Characters are named, not identified; names are resolved against the
    roster when the proposal is ingested.
    """

    actor_name: str
    target_name: str
    action_type: str
    severity: str = "moderate"
    chapter_number: int = Field(ge=0)
    description: str = ""
    context: KarmaContext = Field(default_factory=KarmaContext)
    is_retaliation: bool = False
    witness_names: list[str] = Field(default_factory=list)


class ProposalRejection(BaseModel):
    proposal: KarmaProposal
    reason: str


class IngestResult(BaseModel):
    recorded: list[KarmaRecordResult] = Field(default_factory=list)
    rejected: list[ProposalRejection] = Field(default_factory=list)


class RosterSeedResult(BaseModel):
    """What seeding a graph from the roster created."""

    links_created: int = 0
    profiles_created: int = 0
    errors: list[str] = Field(default_factory=list)


class ConsequencePreview(BaseModel):
    """What an event would do, computed without recording it."""

    weight: KarmaWeightResult
    face_change: FaceChange
    sentiment_change: int
    would_ripple: bool
    ripples: list[KarmaRipple] = Field(default_factory=list)
    feud_recommendation: FeudRecommendation
    debt_recommendation: DebtRecommendation


def _resolve_witnesses(roster: list[Character], names: list[str]) -> list[str]:
    """Roster ids for the named witnesses; names that match no one are dropped."""
    ids: list[str] = []
    for name in names:
        character = find_character_by_name(roster, name)
        if character is None:
            logger.debug("Witness %r is not on the roster", name)
        elif character.id not in ids:
            ids.append(character.id)
    return ids


@dataclass
class _Checkpoint:
    """What a novel looked like before an event started applying."""

    links: dict[tuple[str, str, SocialLinkType], SocialLink]
    profiles: dict[str, FaceProfile | None]
    avenged: KarmaEvent | None = None

    @classmethod
    def take(
        cls,
        ledger: LedgerRepository,
        context: NovelContext,
        event: KarmaEvent,
        avenged: KarmaEvent | None,
    ) -> _Checkpoint:
        return cls(
            links={link.key: link.model_copy(deep=True) for link in context.graph.links()},
            profiles={
                character_id: ledger.get_profile(context.novel_id, character_id)
                for character_id in (event.actor_id, event.target_id)
            },
            avenged=avenged.model_copy(deep=True) if avenged is not None else None,
        )


# =============================================================================
# Service
# =============================================================================


@dataclass
class FaceGraphService:
    """
    Records karma and keeps Face, links, ripples, feuds and debts consistent.

    One service can hold any number of novels. Contexts are opened once per
    novel and reused, so every caller shares the same writer lock.
    """

    ledger: LedgerRepository
    graph_repo: GraphRepository

    faces: FaceLedger = field(init=False)
    ripples: RippleAnalyzer = field(init=False)
    feuds: BloodFeudManager = field(init=False)
    debts: DebtLedger = field(init=False)
    formatter: ContextFormatter = field(init=False)

    _contexts: dict[str, NovelContext] = field(init=False, default_factory=dict)
    _contexts_lock: threading.Lock = field(init=False, default_factory=threading.Lock)

    def __post_init__(self) -> None:
        self.faces = FaceLedger(self.ledger)
        self.ripples = RippleAnalyzer(self.ledger, self.graph_repo)
        self.feuds = BloodFeudManager(self.ledger)
        self.debts = DebtLedger(self.ledger)
        self.formatter = ContextFormatter()

    # =========================================================================
    # Novel lifecycle
    # =========================================================================

    def open_novel(self, novel_id: str) -> NovelContext:
        """Load a novel's config and graph, or return the already open context."""
        with self._contexts_lock:
            context = self._contexts.get(novel_id)
            if context is None:
                config = self.ledger.get_config(novel_id) or FaceGraphConfig(
                    novel_id=novel_id
                )
                context = NovelContext(
                    novel_id=novel_id,
                    config=config,
                    graph=self.graph_repo.load_graph(novel_id),
                )
                self._contexts[novel_id] = context
            return context

    def close_novel(self, novel_id: str) -> None:
        with self._contexts_lock:
            self._contexts.pop(novel_id, None)

    def save_config(self, config: FaceGraphConfig) -> None:
        """Persist a novel's config and make it live for an open context."""
        self.ledger.save_config(config)
        with self._contexts_lock:
            context = self._contexts.get(config.novel_id)
        if context is not None:
            with context.write_lock():
                context.config = config.model_copy(deep=True)

    def snapshot(self, context: NovelContext) -> FaceGraphSnapshot:
        with context.write_lock():
            return FaceGraphSnapshot.load(self.ledger, context)

    # =========================================================================
    # Roster seeding
    # =========================================================================

    def initialize_from_roster(
        self, context: NovelContext, overwrite_existing: bool = False
    ) -> RosterSeedResult:
        """
        Seed a novel's Face Graph from the relationships written in its roster.

        Characters without a Face profile get one, starting with the Face
        their role carries (protagonist 100, antagonist 80, supporting 30).
        Each roster relationship becomes a moderate link established in
        chapter 1, warm ones at +30 sentiment and hostile ones at -30.

        A relationship naming nobody on the roster is skipped and reported in
        ``errors``, as is any write that fails. Links that already exist are
        kept as they are unless ``overwrite_existing``.
        """
        novel_id = context.novel_id
        result = RosterSeedResult()

        with context.write_lock():
            roster = self.ledger.get_characters(novel_id)
            logger.info(
                "Seeding Face Graph for %s from %d characters", novel_id, len(roster)
            )

            for character in roster:
                if self.ledger.get_profile(novel_id, character.id) is not None:
                    continue
                profile = create_face_profile(
                    novel_id,
                    character.id,
                    character.name,
                    is_protected=context.is_protected(character.id),
                )
                profile.category_scores.add(STARTING_FACE_CATEGORY, character.starting_face)
                try:
                    self.ledger.save_profile(profile)
                except PersistenceError as e:
                    result.errors.append(f"Failed to create profile for {character.name}: {e}")
                    continue
                result.profiles_created += 1

            graph = context.graph
            for character in roster:
                for relationship in character.relationships:
                    target = find_character_by_name(roster, relationship.target_name)
                    if target is None:
                        logger.debug(
                            "No roster entry for %r, related to %s",
                            relationship.target_name,
                            character.name,
                        )
                        result.errors.append(
                            f"{character.name}: no character named {relationship.target_name!r}"
                        )
                        continue
                    if target.id == character.id:
                        result.errors.append(f"{character.name}: relationship with themselves")
                        continue

                    link_type = map_relationship_to_link_type(relationship.relationship_type)
                    existing = graph.get(character.id, target.id, link_type)
                    if existing is not None and not overwrite_existing:
                        continue
                    before = existing.model_copy(deep=True) if existing is not None else None

                    link = graph.upsert(
                        character.id,
                        character.name,
                        target.id,
                        target.name,
                        link_type,
                        1,
                        strength=LinkStrength.MODERATE,
                        sentiment_score=map_relationship_to_sentiment(
                            relationship.relationship_type
                        ),
                    )
                    try:
                        self.graph_repo.upsert_link(link)
                    except PersistenceError as e:
                        if before is None:
                            graph.remove(*link.key)
                        else:
                            graph.add(before)
                        result.errors.append(f"Failed to create link for {character.name}: {e}")
                        continue
                    result.links_created += 1

        logger.info(
            "Face Graph seeded for %s: %d profiles, %d links, %d errors",
            novel_id,
            result.profiles_created,
            result.links_created,
            len(result.errors),
        )
        return result

    # =========================================================================
    # Recording karma
    # =========================================================================

    def record_karma_event(
        self,
        context: NovelContext,
        actor_id: str,
        target_id: str,
        action_type: KarmaActionType | str,
        chapter: int,
        description: str = "",
        options: KarmaEventOptions | None = None,
    ) -> KarmaRecordResult:
        """
        Record one karmic action and apply its consequences.

        In order: weigh the action, move both parties' Face and karma balance,
        shift how the target sees the actor, settle the event this one avenges
        (if any), ripple out through the graph, and optionally open the
        advised feud or debt. The event itself is stored last.

        If any write fails, everything already applied is undone and the
        error is raised; a failed event leaves no trace.

        Raises:
            CharacterNotFound: Actor or target can't be resolved.
            InvalidActionType: Unknown action type.
            InvalidSeverity: Unknown severity.
            RecordNotFound: ``retaliation_for_event_id`` names no event.
            ValueError: Actor and target are the same character.
            PersistenceError: A write failed; the event was rolled back.
        """
        options = options or KarmaEventOptions()
        novel_id = context.novel_id

        with context.write_lock():
            config = context.config
            event, weight = self._build_event(
                context, actor_id, target_id, action_type, chapter, description, options
            )

            avenged: KarmaEvent | None = None
            if options.retaliation_for_event_id is not None:
                avenged = self.ledger.get_event(novel_id, options.retaliation_for_event_id)
                if avenged is None:
                    raise RecordNotFound("KarmaEvent", options.retaliation_for_event_id)

            feud_advice = should_trigger_blood_feud(
                event.action_type,
                event.severity,
                event.final_karma_weight,
                involves_clan=options.context.involves_clan,
                target_is_important=options.target_is_important,
            )
            debt_advice = should_create_debt(
                event.action_type, event.polarity, event.final_karma_weight
            )
            face_change = self._face_change(context, event, options)

            if not config.enabled:
                self.ledger.save_event(event)
                logger.info("Face Graph disabled for %s; event %s stored only", novel_id, event.id)
                return KarmaRecordResult(
                    event=event,
                    weight=weight,
                    face_change=face_change,
                    feud_recommendation=feud_advice,
                    debt_recommendation=debt_advice,
                )

            checkpoint = _Checkpoint.take(self.ledger, context, event, avenged)
            try:
                actor_face, target_face = self._apply_face(context, event, face_change)
                self._apply_karma_balance(event)

                sentiment = compute_sentiment_change(
                    event.polarity, event.final_karma_weight, is_retaliation=event.is_retaliation
                )
                links = self._apply_sentiment(context, event, sentiment)

                settled_id = None
                if avenged is not None:
                    if self._settle(context, avenged, SettlementType.AVENGED, chapter):
                        settled_id = avenged.id

                ripples: list[KarmaRipple] = []
                if self.ripples.should_ripple(event, config):
                    ripples = self.ripples.analyze(context, event)

                feud = None
                debt = None
                if options.apply_recommendations:
                    if feud_advice.should_trigger:
                        feud = self._open_feud(context, event, feud_advice.suggested_intensity)
                    if debt_advice.should_create:
                        debt = self._open_debt(
                            context, event, debt_advice.debt_type, debt_advice.suggested_weight
                        )

                # Last write: a stored event means everything above landed
                self.ledger.save_event(event)
            except Exception:
                self._rollback(context, event, checkpoint)
                raise

            logger.info(
                "Chapter %d: %s %s %s (weight %d, %d ripples)",
                chapter,
                event.actor_name,
                event.action_type.value,
                event.target_name,
                event.final_karma_weight,
                len(ripples),
            )
            return KarmaRecordResult(
                event=event,
                weight=weight,
                face_change=face_change,
                actor_face=actor_face,
                target_face=target_face,
                sentiment_change=sentiment,
                updated_links=[link.model_copy(deep=True) for link in links],
                ripples=ripples,
                settled_event_id=settled_id,
                feud_recommendation=feud_advice,
                debt_recommendation=debt_advice,
                feud=feud,
                debt=debt,
            )

    def record_karma_event_by_name(
        self,
        context: NovelContext,
        actor_name: str,
        target_name: str,
        action_type: KarmaActionType | str,
        chapter: int,
        description: str = "",
        options: KarmaEventOptions | None = None,
    ) -> KarmaRecordResult:
        """Same as :meth:`record_karma_event`, naming characters instead of ids."""
        actor = self._find_by_name(context.novel_id, actor_name)
        target = self._find_by_name(context.novel_id, target_name)
        return self.record_karma_event(
            context, actor, target, action_type, chapter, description, options
        )

    def ingest_proposals(
        self, context: NovelContext, proposals: list[KarmaProposal]
    ) -> IngestResult:
        """
        Record extracted proposals, collecting the ones that don't resolve.

        A proposal naming an unknown character, action or severity is rejected
        with its reason; the rest are recorded in order.
        """
        result = IngestResult()
        if not context.config.auto_extract_karma:
            result.rejected = [
                ProposalRejection(proposal=p, reason="Karma extraction is disabled")
                for p in proposals
            ]
            return result

        roster = self.ledger.get_characters(context.novel_id)
        for proposal in proposals:
            options = KarmaEventOptions(
                severity=proposal.severity,
                context=proposal.context,
                witness_ids=_resolve_witnesses(roster, proposal.witness_names),
                is_retaliation=proposal.is_retaliation,
            )
            try:
                recorded = self.record_karma_event_by_name(
                    context,
                    proposal.actor_name,
                    proposal.target_name,
                    proposal.action_type,
                    proposal.chapter_number,
                    proposal.description,
                    options,
                )
            except (CharacterNotFound, InvalidActionType, InvalidSeverity, ValueError) as e:
                logger.warning("Rejected karma proposal %r: %s", proposal.description, e)
                result.rejected.append(ProposalRejection(proposal=proposal, reason=str(e)))
                continue
            result.recorded.append(recorded)
        return result

    def preview_consequences(
        self,
        context: NovelContext,
        actor_id: str,
        target_id: str,
        action_type: KarmaActionType | str,
        chapter: int,
        options: KarmaEventOptions | None = None,
    ) -> ConsequencePreview:
        """Everything ``record_karma_event`` would do, without doing it."""
        options = options or KarmaEventOptions()
        with context.write_lock():
            event, weight = self._build_event(
                context, actor_id, target_id, action_type, chapter, "", options
            )
            would_ripple = self.ripples.should_ripple(event, context.config)
            ripples = []
            if would_ripple:
                ripples = compute_ripples(
                    context.graph,
                    event,
                    context.config,
                    self.ripples.protected_ids(context),
                )
            return ConsequencePreview(
                weight=weight,
                face_change=self._face_change(context, event, options),
                sentiment_change=compute_sentiment_change(
                    event.polarity, event.final_karma_weight, options.is_retaliation
                ),
                would_ripple=would_ripple,
                ripples=ripples,
                feud_recommendation=should_trigger_blood_feud(
                    event.action_type,
                    event.severity,
                    event.final_karma_weight,
                    involves_clan=options.context.involves_clan,
                    target_is_important=options.target_is_important,
                ),
                debt_recommendation=should_create_debt(
                    event.action_type, event.polarity, event.final_karma_weight
                ),
            )

    def settle_karma_event(
        self,
        context: NovelContext,
        event_id: UUID,
        settlement_type: SettlementType,
        chapter: int,
    ) -> bool:
        """Close out an event. Returns False if it was already settled."""
        with context.write_lock():
            event = self.ledger.get_event(context.novel_id, event_id)
            if event is None:
                raise RecordNotFound("KarmaEvent", event_id)
            return self._settle(context, event, settlement_type, chapter)

    # =========================================================================
    # Links
    # =========================================================================

    def upsert_link(
        self,
        context: NovelContext,
        source_id: str,
        target_id: str,
        link_type: SocialLinkType | str,
        chapter: int,
        strength: LinkStrength | None = None,
        sentiment_score: int | None = None,
        **opts: object,
    ) -> SocialLink:
        """
        Create or update how ``source_id`` sees ``target_id``.

        ``link_type`` may be free text from extraction ("martial brother",
        "Sect Master"); it is mapped onto the closest link type. Extra fields
        such as ``is_inherited`` or ``relationship_history`` go in ``opts``.
        """
        if source_id == target_id:
            raise ValueError("A character cannot link to themselves")
        if not isinstance(link_type, SocialLinkType):
            link_type = map_relationship_to_link_type(link_type)

        with context.write_lock():
            link = context.graph.upsert(
                source_id,
                self._resolve_name(context, source_id),
                target_id,
                self._resolve_name(context, target_id),
                link_type,
                chapter,
                strength=strength,
                sentiment_score=sentiment_score,
                **opts,
            )
            self.graph_repo.upsert_link(link)
            return link.model_copy(deep=True)

    def remove_link(
        self,
        context: NovelContext,
        source_id: str,
        target_id: str,
        link_type: SocialLinkType,
    ) -> bool:
        with context.write_lock():
            if not context.graph.remove(source_id, target_id, link_type):
                return False
            self.graph_repo.delete_link(context.novel_id, source_id, target_id, link_type)
            return True

    # =========================================================================
    # Ripples, feuds, debts
    # =========================================================================

    def apply_ripple_decay(self, context: NovelContext, chapters_passed: int = 1) -> DecayResult:
        return self.ripples.apply_ripple_decay(context, chapters_passed)

    def manifest_ripple(
        self,
        context: NovelContext,
        ripple_id: UUID,
        chapter: int,
        description: str | None = None,
    ) -> KarmaRipple:
        return self.ripples.manifest_ripple(context, ripple_id, chapter, description)

    def escalate_feud(
        self,
        context: NovelContext,
        feud_id: UUID,
        chapter: int,
        description: str,
        intensity_change: int,
        karma_event_id: UUID | None = None,
    ) -> BloodFeud:
        with context.write_lock():
            return self.feuds.escalate(
                context.novel_id, feud_id, chapter, description, intensity_change, karma_event_id
            )

    def resolve_feud(
        self,
        context: NovelContext,
        feud_id: UUID,
        resolution_type: FeudResolution,
        chapter: int,
        description: str | None = None,
    ) -> bool:
        with context.write_lock():
            return self.feuds.resolve(
                context.novel_id, feud_id, resolution_type, chapter, description
            )

    def add_feud_member(
        self, context: NovelContext, feud_id: UUID, side: FeudSide, character_id: str
    ) -> BloodFeud:
        with context.write_lock():
            return self.feuds.add_member(context.novel_id, feud_id, side, character_id)

    def repay_debt(
        self,
        context: NovelContext,
        debt_id: UUID,
        chapter: int,
        description: str | None = None,
    ) -> bool:
        with context.write_lock():
            return self.debts.repay(context.novel_id, debt_id, chapter, description)

    def inherit_debt(
        self, context: NovelContext, debt_id: UUID, heir_id: str
    ) -> FaceDebt:
        with context.write_lock():
            return self.debts.inherit(
                context.novel_id, debt_id, heir_id, self._resolve_name(context, heir_id)
            )

    # =========================================================================
    # Reads
    # =========================================================================

    def analytics(self, context: NovelContext) -> NetworkAnalytics:
        return NetworkAnalytics(self.snapshot(context))

    def format_context(
        self,
        context: NovelContext,
        present_ids: list[str],
        current_chapter: int,
        protagonist_id: str | None = None,
    ) -> str:
        snapshot = self.snapshot(context)
        return self.formatter.format_context(
            snapshot, present_ids, current_chapter, protagonist_id
        )

    def query_connection_to_wronged(
        self,
        context: NovelContext,
        npc_id: str,
        protagonist_id: str | None = None,
    ) -> ThreatAssessment:
        snapshot = self.snapshot(context)
        protagonist_id = protagonist_id or snapshot.protagonist_id()
        if protagonist_id is None:
            raise ValueError(f"Novel {context.novel_id} has no protagonist")
        return assess_threat(snapshot, npc_id, protagonist_id)

    def karma_between(
        self, context: NovelContext, first_id: str, second_id: str
    ) -> list[KarmaEvent]:
        """Every event between two characters, either direction, oldest first."""
        return [
            e
            for e in self.ledger.get_events(context.novel_id)
            if e.involves(first_id) and e.involves(second_id)
        ]

    # =========================================================================
    # Internals
    # =========================================================================

    def _resolve_name(self, context: NovelContext, character_id: str) -> str:
        character = self.ledger.get_character(context.novel_id, character_id)
        if character is not None:
            return character.name
        profile = self.ledger.get_profile(context.novel_id, character_id)
        if profile is not None:
            return profile.character_name
        name = context.graph.name_of(character_id)
        if name is not None:
            return name
        raise CharacterNotFound(character_id, context.novel_id)

    def _find_by_name(self, novel_id: str, name: str) -> str:
        character = find_character_by_name(self.ledger.get_characters(novel_id), name)
        if character is None:
            raise CharacterNotFound(name, novel_id)
        return character.id

    def _build_event(
        self,
        context: NovelContext,
        actor_id: str,
        target_id: str,
        action_type: KarmaActionType | str,
        chapter: int,
        description: str,
        options: KarmaEventOptions,
    ) -> tuple[KarmaEvent, KarmaWeightResult]:
        if actor_id == target_id:
            raise ValueError("Actor and target must be different characters")
        actor_name = self._resolve_name(context, actor_id)
        target_name = self._resolve_name(context, target_id)
        action = parse_action_type(action_type)
        severity = parse_severity(options.severity)
        weight = compute_karma_weight(action, severity, options.context)

        event = KarmaEvent(
            novel_id=context.novel_id,
            actor_id=actor_id,
            actor_name=actor_name,
            target_id=target_id,
            target_name=target_name,
            action_type=action,
            polarity=weight.polarity,
            severity=severity,
            base_karma_weight=weight.base_weight,
            weight_modifiers=weight.modifiers,
            final_karma_weight=weight.final_weight,
            chapter_number=chapter,
            description=description,
            was_witnessed=bool(options.witness_ids) or options.context.was_public,
            witness_ids=list(options.witness_ids),
            affected_third_parties=list(options.affected_third_parties),
            is_retaliation=options.is_retaliation or options.retaliation_for_event_id is not None,
            retaliation_for_event_id=options.retaliation_for_event_id,
        )
        return event, weight

    def _face_change(
        self, context: NovelContext, event: KarmaEvent, options: KarmaEventOptions
    ) -> FaceChange:
        target_profile = self.ledger.get_profile(context.novel_id, event.target_id)
        raw = compute_face_change(
            event.action_type,
            event.polarity,
            event.final_karma_weight,
            was_public=options.context.was_public,
            target_reputation=target_profile.total_face if target_profile else None,
        )
        multiplier = context.config.face_multiplier(event.action_type)
        return FaceChange(
            actor_face_change=round_half_up(raw.actor_face_change * multiplier),
            target_face_change=round_half_up(raw.target_face_change * multiplier),
            public_perception=raw.public_perception,
        )

    def _apply_face(
        self, context: NovelContext, event: KarmaEvent, change: FaceChange
    ) -> tuple[FaceUpdate | None, FaceUpdate | None]:
        category = face_category_for_action(event.action_type)
        label = event.action_type.value.replace("_", " ")
        updates = []
        for character_id, name, delta, what in (
            (
                event.actor_id,
                event.actor_name,
                change.actor_face_change,
                f"{label} {event.target_name}",
            ),
            (
                event.target_id,
                event.target_name,
                change.target_face_change,
                f"Suffered {label} by {event.actor_name}"
                if change.target_face_change < 0
                else f"Received {label} from {event.actor_name}",
            ),
        ):
            if delta < 0 and context.is_protected(character_id):
                delta = 0
            if delta == 0:
                self.faces.get_or_create_profile(
                    context.novel_id,
                    character_id,
                    name,
                    is_protected=context.is_protected(character_id),
                )
                updates.append(None)
                continue
            update = self.faces.add_face(
                context.novel_id,
                character_id,
                delta,
                category,
                event.chapter_number,
                what,
                character_name=name,
            )
            updates.append(update)

        actor_update, target_update = updates
        event.face_change_actor = actor_update.delta if actor_update else 0
        event.face_change_target = target_update.delta if target_update else 0
        return actor_update, target_update

    def _apply_karma_balance(self, event: KarmaEvent) -> None:
        signed = event.polarity.sign * event.final_karma_weight
        if signed == 0:
            return
        self.faces.update_karma_balance(event.novel_id, event.actor_id, signed, event.actor_name)
        self.faces.update_karma_balance(event.novel_id, event.target_id, -signed, event.target_name)

    def _apply_sentiment(
        self, context: NovelContext, event: KarmaEvent, change: int
    ) -> list[SocialLink]:
        """Shift every edge from the target to the actor, creating one if needed."""
        graph = context.graph
        links = graph.directed_links(event.target_id, event.actor_id)
        if not links:
            links = [
                graph.upsert(
                    event.target_id,
                    event.target_name,
                    event.actor_id,
                    event.actor_name,
                    _FIRST_IMPRESSION_LINKS[event.polarity],
                    event.chapter_number,
                    strength=strength_for_weight(event.final_karma_weight),
                    is_public=event.was_witnessed,
                )
            ]

        signed = event.polarity.sign * event.final_karma_weight
        for link in links:
            link.adjust_sentiment(change)
            link.unsettled_karma += event.final_karma_weight
            link.mutual_karma_balance += signed
            link.last_interaction_chapter = max(
                link.last_interaction_chapter, event.chapter_number
            )
            self.graph_repo.upsert_link(link)
        return links

    def _rollback(self, context: NovelContext, event: KarmaEvent, checkpoint: _Checkpoint) -> None:
        """
        Put a novel back the way ``checkpoint`` found it after a failed record.

        The in-memory graph is always restored. Stored state is restored step
        by step; a step that fails is logged and the rest still run, so the
        caller sees the original error rather than a rollback error.
        """
        novel_id = context.novel_id
        graph = context.graph
        undo: list[tuple[str, Callable[[], object]]] = []

        for link in graph.links():
            if link.key not in checkpoint.links:
                graph.remove(*link.key)
                drop = partial(self.graph_repo.delete_link, novel_id, *link.key)
                undo.append((f"drop link {link.key}", drop))
        for key, before in checkpoint.links.items():
            if graph.get(*key) != before:
                graph.add(before.model_copy(deep=True))
                undo.append((f"restore link {key}", partial(self.graph_repo.upsert_link, before)))

        for character_id, profile in checkpoint.profiles.items():
            if profile is None:
                undo.append(
                    (
                        f"drop profile {character_id}",
                        partial(self.ledger.delete_profile, novel_id, character_id),
                    )
                )
            else:
                undo.append(
                    (f"restore profile {character_id}", partial(self.ledger.save_profile, profile))
                )
        if checkpoint.avenged is not None:
            undo.append(
                (
                    f"restore event {checkpoint.avenged.id}",
                    partial(self.ledger.save_event, checkpoint.avenged),
                )
            )

        def drop_records() -> None:
            for ripple in self.ledger.get_ripples(novel_id):
                if ripple.source_event_id == event.id:
                    self.ledger.delete_ripple(novel_id, ripple.id)
            for feud in self.ledger.get_feuds(novel_id):
                if feud.origin_event_id == event.id:
                    self.ledger.delete_feud(novel_id, feud.id)
            for debt in self.ledger.get_debts(novel_id):
                if debt.origin_event_id == event.id:
                    self.ledger.delete_debt(novel_id, debt.id)

        undo.append(("drop ripples, feuds and debts", drop_records))

        for what, step in undo:
            try:
                step()
            except PersistenceError as e:
                logger.error("Rollback of event %s could not %s: %s", event.id, what, e)
        logger.warning("Karma event %s rolled back", event.id)

    def _settle(
        self,
        context: NovelContext,
        event: KarmaEvent,
        settlement_type: SettlementType,
        chapter: int,
    ) -> bool:
        if not event.settle(settlement_type, chapter):
            logger.warning("Karma event %s already settled", event.id)
            return False
        self.ledger.save_event(event)

        for link in context.graph.directed_links(event.target_id, event.actor_id):
            link.unsettled_karma = max(0, link.unsettled_karma - event.final_karma_weight)
            self.graph_repo.upsert_link(link)

        logger.info(
            "Karma between %s and %s settled (%s)",
            event.actor_name,
            event.target_name,
            settlement_type.value,
        )
        return True

    def _open_feud(self, context: NovelContext, event: KarmaEvent, intensity: int) -> BloodFeud:
        feud = self.feuds.create_from_event(event, intensity=intensity)
        graph = context.graph
        # The target now hunts the actor; the actor is the hunted
        for source_id, source_name, target_id, target_name, link_type in (
            (
                event.target_id,
                event.target_name,
                event.actor_id,
                event.actor_name,
                SocialLinkType.BLOOD_FEUD_TARGET,
            ),
            (
                event.actor_id,
                event.actor_name,
                event.target_id,
                event.target_name,
                SocialLinkType.BLOOD_FEUD_HUNTER,
            ),
        ):
            link = graph.upsert(
                source_id,
                source_name,
                target_id,
                target_name,
                link_type,
                event.chapter_number,
                strength=LinkStrength.STRONG,
                sentiment_score=-feud.intensity,
            )
            self.graph_repo.upsert_link(link)
        return feud

    def _open_debt(
        self, context: NovelContext, event: KarmaEvent, debt_type: DebtType, weight: int
    ) -> FaceDebt:
        debt = self.debts.create_from_event(event, debt_type, weight)
        graph = context.graph
        # debt_owed: the source owes the target
        for source_id, source_name, target_id, target_name, link_type in (
            (
                event.target_id,
                event.target_name,
                event.actor_id,
                event.actor_name,
                SocialLinkType.DEBT_OWED,
            ),
            (
                event.actor_id,
                event.actor_name,
                event.target_id,
                event.target_name,
                SocialLinkType.DEBT_OWED_BY,
            ),
        ):
            link = graph.upsert(
                source_id,
                source_name,
                target_id,
                target_name,
                link_type,
                event.chapter_number,
                strength=strength_for_weight(debt.weight),
            )
            self.graph_repo.upsert_link(link)
        return debt
