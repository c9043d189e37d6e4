"""
Blood feud lifecycle.

Feuds are created (usually from a grave karma event), escalate over many
chapters, and end exactly once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from facegraph.db.interfaces import LedgerRepository
from facegraph.errors import RecordNotFound
from facegraph.models import (
    BloodFeud,
    FeudEscalation,
    FeudParty,
    FeudPartyType,
    FeudResolution,
    FeudSide,
    KarmaEvent,
)
from facegraph.models.feud import DEFAULT_FEUD_INTENSITY, clamp_intensity

logger = logging.getLogger(__name__)


@dataclass
class BloodFeudManager:
    """Creates and advances blood feuds for a novel."""

    ledger: LedgerRepository

    def get(self, novel_id: str, feud_id: UUID) -> BloodFeud:
        feud = self.ledger.get_feud(novel_id, feud_id)
        if feud is None:
            raise RecordNotFound("BloodFeud", feud_id)
        return feud

    def create(
        self,
        novel_id: str,
        feud_name: str,
        aggrieved_party: FeudParty,
        target_party: FeudParty,
        started_chapter: int,
        origin_description: str = "",
        origin_event_id: UUID | None = None,
        intensity: int = DEFAULT_FEUD_INTENSITY,
    ) -> BloodFeud:
        feud = BloodFeud(
            novel_id=novel_id,
            feud_name=feud_name,
            aggrieved_party=aggrieved_party,
            target_party=target_party,
            origin_event_id=origin_event_id,
            origin_description=origin_description,
            started_chapter=started_chapter,
            intensity=clamp_intensity(intensity),
        )
        self.ledger.save_feud(feud)
        logger.info(
            "Blood feud '%s' started in chapter %d (intensity %d)",
            feud_name,
            started_chapter,
            feud.intensity,
        )
        return feud

    def create_from_event(
        self,
        event: KarmaEvent,
        intensity: int = DEFAULT_FEUD_INTENSITY,
        aggrieved_member_ids: list[str] | None = None,
        target_member_ids: list[str] | None = None,
    ) -> BloodFeud:
        """The event's target swears vengeance on its actor."""
        return self.create(
            novel_id=event.novel_id,
            feud_name=f"{event.target_name} vs {event.actor_name}",
            aggrieved_party=FeudParty(
                party_type=FeudPartyType.CHARACTER,
                party_id=event.target_id,
                party_name=event.target_name,
                member_ids=list(aggrieved_member_ids or []),
            ),
            target_party=FeudParty(
                party_type=FeudPartyType.CHARACTER,
                party_id=event.actor_id,
                party_name=event.actor_name,
                member_ids=list(target_member_ids or []),
            ),
            started_chapter=event.chapter_number,
            origin_description=event.description,
            origin_event_id=event.id,
            intensity=intensity,
        )

    def escalate(
        self,
        novel_id: str,
        feud_id: UUID,
        chapter: int,
        description: str,
        intensity_change: int,
        karma_event_id: UUID | None = None,
    ) -> BloodFeud:
        """
        Log an escalation (or de-escalation) and move intensity, clamped to [0, 100].

        A resolved feud is returned unchanged.
        """
        feud = self.get(novel_id, feud_id)
        if feud.is_resolved:
            logger.warning("Feud '%s' is resolved; escalation ignored", feud.feud_name)
            return feud

        feud.intensity = clamp_intensity(feud.intensity + intensity_change)
        feud.escalations.append(
            FeudEscalation(
                chapter=chapter,
                description=description,
                intensity_change=intensity_change,
                intensity_after=feud.intensity,
                karma_event_id=karma_event_id,
            )
        )
        self.ledger.save_feud(feud)
        logger.info(
            "Feud '%s' %s to %d",
            feud.feud_name,
            "escalated" if intensity_change >= 0 else "cooled",
            feud.intensity,
        )
        return feud

    def resolve(
        self,
        novel_id: str,
        feud_id: UUID,
        resolution_type: FeudResolution,
        chapter: int,
        description: str | None = None,
    ) -> bool:
        """End a feud. Returns False if it had already ended."""
        feud = self.get(novel_id, feud_id)
        if feud.is_resolved:
            logger.warning("Feud '%s' already resolved", feud.feud_name)
            return False

        feud.is_resolved = True
        feud.resolution_type = resolution_type
        feud.resolved_chapter = chapter
        feud.resolution_description = description
        self.ledger.save_feud(feud)
        logger.info(
            "Feud '%s' resolved by %s in chapter %d",
            feud.feud_name,
            resolution_type.value,
            chapter,
        )
        return True

    def add_member(
        self, novel_id: str, feud_id: UUID, side: FeudSide, character_id: str
    ) -> BloodFeud:
        """Draw a character into one side of a feud."""
        feud = self.get(novel_id, feud_id)
        current = feud.side_of(character_id)
        if current is not None and current != side:
            raise ValueError(
                f"{character_id} is already on the {current.value} side of {feud.feud_name}"
            )
        party = feud.party(side)
        if not party.includes(character_id):
            party.member_ids.append(character_id)
            self.ledger.save_feud(feud)
        return feud

    def active_feuds(self, novel_id: str) -> list[BloodFeud]:
        return [f for f in self.ledger.get_feuds(novel_id) if not f.is_resolved]

    def feuds_involving(
        self, novel_id: str, character_id: str, include_resolved: bool = False
    ) -> list[BloodFeud]:
        return [
            f
            for f in self.ledger.get_feuds(novel_id)
            if f.side_of(character_id) is not None
            and (include_resolved or not f.is_resolved)
        ]
