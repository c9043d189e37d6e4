"""
Database interface definitions for the Face Graph.

Uses Protocol classes to define the contract for persistence.
Implementations can use real drivers or in-memory stores for testing.

Every implementation must raise PersistenceError for storage failures; the
engine propagates those to the caller and never retries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol
from uuid import UUID

if TYPE_CHECKING:
    from facegraph.models import (
        BloodFeud,
        Character,
        FaceDebt,
        FaceGraphConfig,
        FaceProfile,
        KarmaEvent,
        KarmaRipple,
        SocialGraph,
        SocialLink,
        SocialLinkType,
    )


class LedgerRepository(Protocol):
    """
    Interface for the ledger store.

    The ledger is the "source of truth" for everything except edges:
    characters, Face profiles, karma events, ripples, feuds, debts and config.
    All reads are keyed by novel id.
    """

    # Roster
    def save_character(self, character: Character) -> None:
        """Insert or update a roster entry."""
        ...

    def get_character(self, novel_id: str, character_id: str) -> Character | None:
        """Get a roster entry by id."""
        ...

    def get_characters(self, novel_id: str) -> list[Character]:
        """Get the whole roster of a novel."""
        ...

    # Face profiles
    def save_profile(self, profile: FaceProfile) -> None:
        """Insert or update a Face profile."""
        ...

    def get_profile(self, novel_id: str, character_id: str) -> FaceProfile | None:
        """Get a character's Face profile."""
        ...

    def get_profiles(self, novel_id: str) -> list[FaceProfile]:
        """Get every Face profile in a novel."""
        ...

    def delete_profile(self, novel_id: str, character_id: str) -> None:
        """Delete a character's Face profile."""
        ...

    # Karma events
    def save_event(self, event: KarmaEvent) -> None:
        """Insert or update a karma event."""
        ...

    def get_event(self, novel_id: str, event_id: UUID) -> KarmaEvent | None:
        """Get a karma event by id."""
        ...

    def get_events(self, novel_id: str) -> list[KarmaEvent]:
        """Get every karma event in a novel, oldest chapter first."""
        ...

    # Ripples
    def save_ripple(self, ripple: KarmaRipple) -> None:
        """Insert or update a ripple."""
        ...

    def get_ripple(self, novel_id: str, ripple_id: UUID) -> KarmaRipple | None:
        """Get a ripple by id."""
        ...

    def get_ripples(self, novel_id: str) -> list[KarmaRipple]:
        """Get every ripple in a novel."""
        ...

    def delete_ripple(self, novel_id: str, ripple_id: UUID) -> None:
        """Delete a faded ripple."""
        ...

    # Blood feuds
    def save_feud(self, feud: BloodFeud) -> None:
        """Insert or update a blood feud."""
        ...

    def get_feud(self, novel_id: str, feud_id: UUID) -> BloodFeud | None:
        """Get a blood feud by id."""
        ...

    def get_feuds(self, novel_id: str) -> list[BloodFeud]:
        """Get every blood feud in a novel."""
        ...

    def delete_feud(self, novel_id: str, feud_id: UUID) -> None:
        """Delete a blood feud."""
        ...

    # Debts
    def save_debt(self, debt: FaceDebt) -> None:
        """Insert or update a debt."""
        ...

    def get_debt(self, novel_id: str, debt_id: UUID) -> FaceDebt | None:
        """Get a debt by id."""
        ...

    def get_debts(self, novel_id: str) -> list[FaceDebt]:
        """Get every debt in a novel."""
        ...

    def delete_debt(self, novel_id: str, debt_id: UUID) -> None:
        """Delete a debt."""
        ...

    # Config
    def save_config(self, config: FaceGraphConfig) -> None:
        """Insert or update a novel's config."""
        ...

    def get_config(self, novel_id: str) -> FaceGraphConfig | None:
        """Get a novel's config, or None if it runs on defaults."""
        ...


class GraphRepository(Protocol):
    """
    Interface for the relationship graph store.

    Edges are keyed by (source, target, link type) within a novel.
    """

    def upsert_link(self, link: SocialLink) -> None:
        """Insert or update a directed edge."""
        ...

    def get_links(self, novel_id: str) -> list[SocialLink]:
        """Get every edge in a novel."""
        ...

    def delete_link(
        self,
        novel_id: str,
        source_id: str,
        target_id: str,
        link_type: SocialLinkType,
    ) -> None:
        """Delete one edge."""
        ...

    def load_graph(self, novel_id: str) -> SocialGraph:
        """Load a novel's edges into an in-memory graph."""
        ...
