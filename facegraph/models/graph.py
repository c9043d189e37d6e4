"""
In-memory social graph.

A directed multigraph: the key of an edge is (source, target, link_type), so
one pair of characters can carry several edges of different types, and the
edge A->B says nothing about B->A.
"""

from __future__ import annotations

from collections.abc import Iterable
from copy import deepcopy

from facegraph.models.links import (
    LinkStrength,
    SocialLink,
    SocialLinkType,
    clamp_sentiment,
)

LinkKey = tuple[str, str, SocialLinkType]


class SocialGraph:
    """Typed, directed relationship edges for one novel."""

    def __init__(self, novel_id: str):
        self.novel_id = novel_id
        self._links: dict[LinkKey, SocialLink] = {}
        # character id -> keys of every edge touching it
        self._index: dict[str, set[LinkKey]] = {}
        self._names: dict[str, str] = {}

    @classmethod
    def from_links(cls, novel_id: str, links: Iterable[SocialLink]) -> SocialGraph:
        graph = cls(novel_id)
        for link in links:
            graph.add(link)
        return graph

    def __len__(self) -> int:
        return len(self._links)

    def __contains__(self, key: object) -> bool:
        return key in self._links

    # =========================================================================
    # Writes
    # =========================================================================

    def add(self, link: SocialLink) -> SocialLink:
        """Insert or replace an edge wholesale."""
        key = link.key
        self._links[key] = link
        self._index.setdefault(link.source_character_id, set()).add(key)
        self._index.setdefault(link.target_character_id, set()).add(key)
        self._names[link.source_character_id] = link.source_name
        self._names[link.target_character_id] = link.target_name
        return link

    def upsert(
        self,
        source_id: str,
        source_name: str,
        target_id: str,
        target_name: str,
        link_type: SocialLinkType,
        chapter: int,
        strength: LinkStrength | None = None,
        sentiment_score: int | None = None,
        **opts: object,
    ) -> SocialLink:
        """
        Create the edge (source, target, link_type) or update it in place.

        On update only strength, sentiment, last interaction and any extra
        fields passed in ``opts`` change; the establishing chapter is kept.
        """
        key = (source_id, target_id, link_type)
        link = self._links.get(key)
        if link is None:
            link = SocialLink(
                novel_id=self.novel_id,
                source_character_id=source_id,
                source_name=source_name,
                target_character_id=target_id,
                target_name=target_name,
                link_type=link_type,
                strength=strength or LinkStrength.MODERATE,
                sentiment_score=clamp_sentiment(sentiment_score or 0),
                established_chapter=chapter,
                last_interaction_chapter=chapter,
                **opts,
            )
            return self.add(link)

        if strength is not None:
            link.strength = strength
        if sentiment_score is not None:
            link.sentiment_score = clamp_sentiment(sentiment_score)
        for field, value in opts.items():
            if field not in SocialLink.model_fields:
                raise ValueError(f"Unknown social link field: {field}")
            setattr(link, field, value)
        link.last_interaction_chapter = max(link.last_interaction_chapter, chapter)
        return link

    def remove(self, source_id: str, target_id: str, link_type: SocialLinkType) -> bool:
        key = (source_id, target_id, link_type)
        if self._links.pop(key, None) is None:
            return False
        for character_id in (source_id, target_id):
            keys = self._index.get(character_id)
            if keys is not None:
                keys.discard(key)
        return True

    # =========================================================================
    # Reads
    # =========================================================================

    def get(
        self, source_id: str, target_id: str, link_type: SocialLinkType
    ) -> SocialLink | None:
        return self._links.get((source_id, target_id, link_type))

    def links(self) -> list[SocialLink]:
        """Every edge, in a stable order."""
        return [self._links[key] for key in sorted(self._links, key=_sort_key)]

    def neighbors(
        self,
        character_id: str,
        link_types: Iterable[SocialLinkType] | None = None,
    ) -> list[SocialLink]:
        """All edges touching the character in either direction."""
        keys = self._index.get(character_id, set())
        allowed = set(link_types) if link_types is not None else None
        return [
            self._links[key]
            for key in sorted(keys, key=_sort_key)
            if allowed is None or key[2] in allowed
        ]

    def outgoing(self, character_id: str) -> list[SocialLink]:
        return [
            link
            for link in self.neighbors(character_id)
            if link.source_character_id == character_id
        ]

    def incoming(self, character_id: str) -> list[SocialLink]:
        return [
            link
            for link in self.neighbors(character_id)
            if link.target_character_id == character_id
        ]

    def links_between(self, a: str, b: str) -> list[SocialLink]:
        """Edges between two characters, both directions."""
        return [link for link in self.neighbors(a) if link.touches(b) and a != b]

    def directed_links(self, source_id: str, target_id: str) -> list[SocialLink]:
        return [
            link
            for link in self.outgoing(source_id)
            if link.target_character_id == target_id
        ]

    def characters(self) -> list[str]:
        """Ids of every character with at least one edge, sorted."""
        return sorted(cid for cid, keys in self._index.items() if keys)

    def name_of(self, character_id: str) -> str | None:
        return self._names.get(character_id)

    def copy(self) -> SocialGraph:
        """Deep copy, for read-only snapshots."""
        return SocialGraph.from_links(self.novel_id, deepcopy(self.links()))


def _sort_key(key: LinkKey) -> tuple[str, str, str]:
    return (key[0], key[1], key[2].value)
