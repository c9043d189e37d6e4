"""
Per-novel state: the write context and read-only snapshots.

There is no process-wide state in the engine. The embedding service opens a
NovelContext per novel and passes it into every write; all writes for that
novel serialize on the context's lock. Readers take a FaceGraphSnapshot,
a deep copy made under the same lock, and query it at their leisure.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from facegraph.db.interfaces import LedgerRepository
from facegraph.models import (
    BloodFeud,
    Character,
    FaceDebt,
    FaceGraphConfig,
    FaceProfile,
    KarmaEvent,
    KarmaPolarity,
    KarmaRipple,
    SocialGraph,
)


@dataclass
class NovelContext:
    """Live state for one novel: config, the in-memory graph and the writer lock."""

    novel_id: str
    config: FaceGraphConfig
    graph: SocialGraph
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        """Hold the single-writer lock for this novel. Re-entrant."""
        with self._lock:
            yield

    def is_protected(self, character_id: str) -> bool:
        return self.config.is_protected(character_id)


@dataclass
class FaceGraphSnapshot:
    """A consistent, read-only copy of a novel's Face Graph."""

    novel_id: str
    config: FaceGraphConfig
    graph: SocialGraph
    characters: dict[str, Character] = field(default_factory=dict)
    profiles: dict[str, FaceProfile] = field(default_factory=dict)
    events: list[KarmaEvent] = field(default_factory=list)
    ripples: list[KarmaRipple] = field(default_factory=list)
    feuds: list[BloodFeud] = field(default_factory=list)
    debts: list[FaceDebt] = field(default_factory=list)

    @classmethod
    def load(
        cls,
        ledger: LedgerRepository,
        context: NovelContext,
    ) -> FaceGraphSnapshot:
        """Copy everything for the context's novel. Call under the write lock."""
        novel_id = context.novel_id
        return cls(
            novel_id=novel_id,
            config=context.config.model_copy(deep=True),
            graph=context.graph.copy(),
            characters={c.id: c for c in ledger.get_characters(novel_id)},
            profiles={p.character_id: p for p in ledger.get_profiles(novel_id)},
            events=ledger.get_events(novel_id),
            ripples=ledger.get_ripples(novel_id),
            feuds=ledger.get_feuds(novel_id),
            debts=ledger.get_debts(novel_id),
        )

    def name_of(self, character_id: str) -> str:
        """Best known display name: roster, then profile, then graph, then the id."""
        character = self.characters.get(character_id)
        if character is not None:
            return character.name
        profile = self.profiles.get(character_id)
        if profile is not None:
            return profile.character_name
        return self.graph.name_of(character_id) or character_id

    def protagonist_id(self) -> str | None:
        for character_id in sorted(self.characters):
            if self.characters[character_id].is_protagonist:
                return character_id
        return None

    def total_face(self, character_id: str) -> int:
        profile = self.profiles.get(character_id)
        return profile.total_face if profile else 0

    def unsettled_events(
        self,
        polarity: KarmaPolarity | None = None,
        actor_id: str | None = None,
        target_id: str | None = None,
    ) -> list[KarmaEvent]:
        return [
            e
            for e in self.events
            if not e.is_settled
            and (polarity is None or e.polarity == polarity)
            and (actor_id is None or e.actor_id == actor_id)
            and (target_id is None or e.target_id == target_id)
        ]

    def active_feuds(self) -> list[BloodFeud]:
        return [f for f in self.feuds if not f.is_resolved]

    def unpaid_debts(self) -> list[FaceDebt]:
        return [d for d in self.debts if not d.is_repaid]

    def pending_ripples(self) -> list[KarmaRipple]:
        return [r for r in self.ripples if not r.has_manifested]
