"""
In-memory implementations of database interfaces for testing.

These implementations store everything in dictionaries, making tests
fast and isolated from actual database infrastructure. Records are deep
copied on the way in and out, so callers can't mutate stored state by
accident, just like with a real database.
"""

from __future__ import annotations

from copy import deepcopy
from uuid import UUID

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


class InMemoryLedgerRepository:
    """
    In-memory implementation of LedgerRepository for testing.

    Data is stored per novel: table -> novel_id -> {id -> record}.
    """

    def __init__(self) -> None:
        self._characters: dict[str, dict[str, Character]] = {}
        self._profiles: dict[str, dict[str, FaceProfile]] = {}
        self._events: dict[str, dict[UUID, KarmaEvent]] = {}
        self._ripples: dict[str, dict[UUID, KarmaRipple]] = {}
        self._feuds: dict[str, dict[UUID, BloodFeud]] = {}
        self._debts: dict[str, dict[UUID, FaceDebt]] = {}
        self._configs: dict[str, FaceGraphConfig] = {}

    # Roster
    def save_character(self, character: Character) -> None:
        """Insert or update a roster entry."""
        table = self._characters.setdefault(character.novel_id, {})
        table[character.id] = deepcopy(character)

    def get_character(self, novel_id: str, character_id: str) -> Character | None:
        """Get a roster entry by id."""
        character = self._characters.get(novel_id, {}).get(character_id)
        return deepcopy(character) if character else None

    def get_characters(self, novel_id: str) -> list[Character]:
        """Get the whole roster of a novel."""
        table = self._characters.get(novel_id, {})
        return [deepcopy(table[cid]) for cid in sorted(table)]

    # Face profiles
    def save_profile(self, profile: FaceProfile) -> None:
        """Insert or update a Face profile."""
        table = self._profiles.setdefault(profile.novel_id, {})
        table[profile.character_id] = deepcopy(profile)

    def get_profile(self, novel_id: str, character_id: str) -> FaceProfile | None:
        """Get a character's Face profile."""
        profile = self._profiles.get(novel_id, {}).get(character_id)
        return deepcopy(profile) if profile else None

    def get_profiles(self, novel_id: str) -> list[FaceProfile]:
        """Get every Face profile in a novel."""
        table = self._profiles.get(novel_id, {})
        return [deepcopy(table[cid]) for cid in sorted(table)]

    def delete_profile(self, novel_id: str, character_id: str) -> None:
        """Delete a character's Face profile."""
        self._profiles.get(novel_id, {}).pop(character_id, None)

    # Karma events
    def save_event(self, event: KarmaEvent) -> None:
        """Insert or update a karma event."""
        self._events.setdefault(event.novel_id, {})[event.id] = deepcopy(event)

    def get_event(self, novel_id: str, event_id: UUID) -> KarmaEvent | None:
        """Get a karma event by id."""
        event = self._events.get(novel_id, {}).get(event_id)
        return deepcopy(event) if event else None

    def get_events(self, novel_id: str) -> list[KarmaEvent]:
        """Get every karma event in a novel, oldest chapter first."""
        events = self._events.get(novel_id, {}).values()
        ordered = sorted(events, key=lambda e: (e.chapter_number, e.created_at))
        return [deepcopy(e) for e in ordered]

    # Ripples
    def save_ripple(self, ripple: KarmaRipple) -> None:
        """Insert or update a ripple."""
        self._ripples.setdefault(ripple.novel_id, {})[ripple.id] = deepcopy(ripple)

    def get_ripple(self, novel_id: str, ripple_id: UUID) -> KarmaRipple | None:
        """Get a ripple by id."""
        ripple = self._ripples.get(novel_id, {}).get(ripple_id)
        return deepcopy(ripple) if ripple else None

    def get_ripples(self, novel_id: str) -> list[KarmaRipple]:
        """Get every ripple in a novel."""
        ripples = self._ripples.get(novel_id, {}).values()
        ordered = sorted(
            ripples, key=lambda r: (r.calculated_at_chapter, r.affected_character_id)
        )
        return [deepcopy(r) for r in ordered]

    def delete_ripple(self, novel_id: str, ripple_id: UUID) -> None:
        """Delete a faded ripple."""
        self._ripples.get(novel_id, {}).pop(ripple_id, None)

    # Blood feuds
    def save_feud(self, feud: BloodFeud) -> None:
        """Insert or update a blood feud."""
        self._feuds.setdefault(feud.novel_id, {})[feud.id] = deepcopy(feud)

    def get_feud(self, novel_id: str, feud_id: UUID) -> BloodFeud | None:
        """Get a blood feud by id."""
        feud = self._feuds.get(novel_id, {}).get(feud_id)
        return deepcopy(feud) if feud else None

    def get_feuds(self, novel_id: str) -> list[BloodFeud]:
        """Get every blood feud in a novel."""
        feuds = self._feuds.get(novel_id, {}).values()
        ordered = sorted(feuds, key=lambda f: (f.started_chapter, f.feud_name))
        return [deepcopy(f) for f in ordered]

    def delete_feud(self, novel_id: str, feud_id: UUID) -> None:
        """Delete a blood feud."""
        self._feuds.get(novel_id, {}).pop(feud_id, None)

    # Debts
    def save_debt(self, debt: FaceDebt) -> None:
        """Insert or update a debt."""
        self._debts.setdefault(debt.novel_id, {})[debt.id] = deepcopy(debt)

    def get_debt(self, novel_id: str, debt_id: UUID) -> FaceDebt | None:
        """Get a debt by id."""
        debt = self._debts.get(novel_id, {}).get(debt_id)
        return deepcopy(debt) if debt else None

    def get_debts(self, novel_id: str) -> list[FaceDebt]:
        """Get every debt in a novel."""
        debts = self._debts.get(novel_id, {}).values()
        ordered = sorted(debts, key=lambda d: (d.incurred_chapter, d.created_at))
        return [deepcopy(d) for d in ordered]

    def delete_debt(self, novel_id: str, debt_id: UUID) -> None:
        """Delete a debt."""
        self._debts.get(novel_id, {}).pop(debt_id, None)

    # Config
    def save_config(self, config: FaceGraphConfig) -> None:
        """Insert or update a novel's config."""
        self._configs[config.novel_id] = deepcopy(config)

    def get_config(self, novel_id: str) -> FaceGraphConfig | None:
        """Get a novel's config, or None if it runs on defaults."""
        config = self._configs.get(novel_id)
        return deepcopy(config) if config else None


class InMemoryGraphRepository:
    """
    In-memory implementation of GraphRepository for testing.

    Edges are stored per novel, keyed by (source, target, link type).
    """

    def __init__(self) -> None:
        self._links: dict[str, dict[tuple[str, str, SocialLinkType], SocialLink]] = {}

    def upsert_link(self, link: SocialLink) -> None:
        """Insert or update a directed edge."""
        self._links.setdefault(link.novel_id, {})[link.key] = deepcopy(link)

    def get_links(self, novel_id: str) -> list[SocialLink]:
        """Get every edge in a novel."""
        table = self._links.get(novel_id, {})
        return [
            deepcopy(table[key])
            for key in sorted(table, key=lambda k: (k[0], k[1], k[2].value))
        ]

    def delete_link(
        self,
        novel_id: str,
        source_id: str,
        target_id: str,
        link_type: SocialLinkType,
    ) -> None:
        """Delete one edge."""
        self._links.get(novel_id, {}).pop((source_id, target_id, link_type), None)

    def load_graph(self, novel_id: str) -> SocialGraph:
        """Load a novel's edges into an in-memory graph."""
        return SocialGraph.from_links(novel_id, self.get_links(novel_id))
