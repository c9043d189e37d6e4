"""
Network analytics over a Face Graph snapshot.

Every query here is read-only. They all run against a FaceGraphSnapshot, so
any number of them can run at once without holding the novel's write lock.
"""

from __future__ import annotations

from collections import Counter, deque
from enum import Enum
from typing import TypeVar

from pydantic import BaseModel, Field

from facegraph.models import (
    KarmaPolarity,
    LinkStrength,
    SocialLinkType,
)
from facegraph.models.links import ALLY_LINK_TYPES
from facegraph.services.novel import FaceGraphSnapshot

INFLUENCE_PER_CONNECTION = 50
INFLUENCE_PER_STRONG_CONNECTION = 100
DEFAULT_MAX_PATH_DEPTH = 6

# How a character sees the other end of an outgoing edge
_OUTGOING_ENEMY_TYPES = frozenset(
    {
        SocialLinkType.ENEMY,
        SocialLinkType.NEMESIS,
        SocialLinkType.FACTION_ENEMY,
        SocialLinkType.BLOOD_FEUD_TARGET,
    }
)
# How the other end sees the character on an incoming edge
_INCOMING_ENEMY_TYPES = frozenset(
    {
        SocialLinkType.ENEMY,
        SocialLinkType.NEMESIS,
        SocialLinkType.FACTION_ENEMY,
        SocialLinkType.BLOOD_FEUD_HUNTER,
    }
)


# =============================================================================
# Result Models
# =============================================================================


class InfluenceRanking(BaseModel):
    character_id: str
    character_name: str
    total_face: int
    connection_count: int
    strong_connections: int
    influence_score: int


class PathHop(BaseModel):
    """One character on a path. The first hop has no link type."""

    character_id: str
    character_name: str
    link_type: SocialLinkType | None = None


class PathResult(BaseModel):
    found: bool
    path: list[PathHop] = Field(default_factory=list)
    length: int = 0


class SocialCluster(BaseModel):
    """A group of characters held together by non-hostile links."""

    cluster_id: int
    member_ids: list[str]
    member_names: list[str]
    dominant_link_types: list[SocialLinkType]
    average_sentiment: int

    @property
    def size(self) -> int:
        return len(self.member_ids)


class HostilityReason(str, Enum):
    DIRECT_LINK = "direct_link"
    BLOOD_FEUD = "blood_feud"
    KARMA = "karma"


class HostileRelation(BaseModel):
    """
    Why another character opposes this one.

    ``reason``, ``intensity`` and ``details`` come from the first reason found
    (direct links, then feuds, then karma); ``reasons`` and ``all_details``
    collect every reason found for the same character.
    """

    character_id: str
    character_name: str
    reason: HostilityReason
    intensity: int
    details: str
    reasons: list[HostilityReason] = Field(default_factory=list)
    all_details: list[str] = Field(default_factory=list)


class AllyRelation(BaseModel):
    """Why another character stands with this one. Reasons collect as for enemies."""

    character_id: str
    character_name: str
    reason: HostilityReason
    link_type: SocialLinkType | None = None
    strength: LinkStrength | None = None
    sentiment: int
    details: str
    reasons: list[HostilityReason] = Field(default_factory=list)
    all_details: list[str] = Field(default_factory=list)


_Relation = TypeVar("_Relation", HostileRelation, AllyRelation)


def _collect(found: dict[str, _Relation], relation: _Relation) -> None:
    """Keep the first relation per character, folding later reasons into it."""
    known = found.setdefault(relation.character_id, relation)
    if relation.reason not in known.reasons:
        known.reasons.append(relation.reason)
    if relation.details not in known.all_details:
        known.all_details.append(relation.details)


class MostConnected(BaseModel):
    character_id: str
    character_name: str
    connections: int


class NetworkStatistics(BaseModel):
    total_nodes: int
    total_edges: int
    average_connections_per_node: float
    most_connected_character: MostConnected | None = None
    total_positive_karma: int
    total_negative_karma: int
    active_blood_feuds: int
    pending_debts: int


# =============================================================================
# Queries
# =============================================================================


class NetworkAnalytics:
    """Read-only queries over one snapshot."""

    def __init__(self, snapshot: FaceGraphSnapshot):
        self.snapshot = snapshot
        self.graph = snapshot.graph

    def _all_character_ids(self) -> list[str]:
        return sorted(set(self.snapshot.profiles) | set(self.graph.characters()))

    def most_influential(self, limit: int = 10) -> list[InfluenceRanking]:
        """
        Rank characters by Face plus how well connected they are.

        score = total face + 50 per outgoing link + 100 per strong outgoing link
        """
        rankings = []
        for character_id in self._all_character_ids():
            outgoing = self.graph.outgoing(character_id)
            strong = sum(
                1
                for link in outgoing
                if link.strength in (LinkStrength.STRONG, LinkStrength.UNBREAKABLE)
            )
            total_face = self.snapshot.total_face(character_id)
            rankings.append(
                InfluenceRanking(
                    character_id=character_id,
                    character_name=self.snapshot.name_of(character_id),
                    total_face=total_face,
                    connection_count=len(outgoing),
                    strong_connections=strong,
                    influence_score=total_face
                    + len(outgoing) * INFLUENCE_PER_CONNECTION
                    + strong * INFLUENCE_PER_STRONG_CONNECTION,
                )
            )
        rankings.sort(key=lambda r: (-r.influence_score, r.character_id))
        return rankings[:limit]

    def shortest_path(
        self, start_id: str, end_id: str, max_depth: int = DEFAULT_MAX_PATH_DEPTH
    ) -> PathResult:
        """Fewest hops between two characters, ignoring edge direction."""
        start = PathHop(character_id=start_id, character_name=self.snapshot.name_of(start_id))
        if start_id == end_id:
            return PathResult(found=True, path=[start], length=0)

        queue: deque[tuple[str, list[PathHop]]] = deque([(start_id, [start])])
        visited = {start_id}
        while queue:
            current, path = queue.popleft()
            if len(path) - 1 >= max_depth:
                continue
            for link in self.graph.neighbors(current):
                other_id, other_name = link.other(current)
                if other_id in visited:
                    continue
                visited.add(other_id)
                next_path = path + [
                    PathHop(
                        character_id=other_id,
                        character_name=other_name,
                        link_type=link.link_type,
                    )
                ]
                if other_id == end_id:
                    return PathResult(found=True, path=next_path, length=len(next_path) - 1)
                queue.append((other_id, next_path))

        return PathResult(found=False)

    def detect_clusters(self) -> list[SocialCluster]:
        """
        Connected groups over non-hostile links (sentiment >= 0).

        Lone characters are not clusters. Largest first.
        """
        adjacency: dict[str, set[str]] = {}
        for link in self.graph.links():
            if link.sentiment_score < 0:
                continue
            source, target = link.source_character_id, link.target_character_id
            adjacency.setdefault(source, set()).add(target)
            adjacency.setdefault(target, set()).add(source)

        components: list[list[str]] = []
        visited: set[str] = set()
        for character_id in sorted(adjacency):
            if character_id in visited:
                continue
            component = []
            stack = [character_id]
            while stack:
                current = stack.pop()
                if current in visited:
                    continue
                visited.add(current)
                component.append(current)
                stack.extend(n for n in adjacency[current] if n not in visited)
            if len(component) > 1:
                components.append(sorted(component))

        components.sort(key=lambda c: (-len(c), c[0]))

        clusters = []
        for cluster_id, members in enumerate(components):
            member_set = set(members)
            inside = [
                link
                for link in self.graph.links()
                if link.source_character_id in member_set
                and link.target_character_id in member_set
            ]
            type_counts = Counter(
                link.link_type for link in inside if link.sentiment_score >= 0
            )
            dominant = sorted(type_counts, key=lambda t: (-type_counts[t], t.value))[:3]
            average = (
                round(sum(link.sentiment_score for link in inside) / len(inside))
                if inside
                else 0
            )
            clusters.append(
                SocialCluster(
                    cluster_id=cluster_id,
                    member_ids=members,
                    member_names=[self.snapshot.name_of(m) for m in members],
                    dominant_link_types=dominant,
                    average_sentiment=average,
                )
            )
        return clusters

    def find_enemies(self, character_id: str) -> list[HostileRelation]:
        """Everyone with a reason to oppose the character, fiercest first."""
        enemies: dict[str, HostileRelation] = {}

        def add(relation: HostileRelation) -> None:
            if relation.character_id != character_id:
                _collect(enemies, relation)

        for link in self.graph.neighbors(character_id):
            if link.source_character_id == character_id:
                if link.link_type in _OUTGOING_ENEMY_TYPES:
                    add(
                        HostileRelation(
                            character_id=link.target_character_id,
                            character_name=link.target_name,
                            reason=HostilityReason.DIRECT_LINK,
                            intensity=abs(link.sentiment_score),
                            details=f"{link.link_type.value} relationship",
                        )
                    )
            elif link.link_type in _INCOMING_ENEMY_TYPES:
                add(
                    HostileRelation(
                        character_id=link.source_character_id,
                        character_name=link.source_name,
                        reason=HostilityReason.DIRECT_LINK,
                        intensity=abs(link.sentiment_score),
                        details=f"Sees character as {link.link_type.value}",
                    )
                )

        for feud in self.snapshot.active_feuds():
            opposing = feud.opposing_party(character_id)
            if opposing is None:
                continue
            for member_id in opposing.all_member_ids():
                add(
                    HostileRelation(
                        character_id=member_id,
                        character_name=self.snapshot.name_of(member_id),
                        reason=HostilityReason.BLOOD_FEUD,
                        intensity=feud.intensity,
                        details=f"Blood feud: {feud.feud_name}",
                    )
                )

        for event in self.snapshot.unsettled_events(polarity=KarmaPolarity.NEGATIVE):
            action = event.action_type.value.replace("_", " ")
            if event.actor_id == character_id:
                add(
                    HostileRelation(
                        character_id=event.target_id,
                        character_name=event.target_name,
                        reason=HostilityReason.KARMA,
                        intensity=event.final_karma_weight,
                        details=f"Unresolved: {action} in chapter {event.chapter_number}",
                    )
                )
            elif event.target_id == character_id:
                add(
                    HostileRelation(
                        character_id=event.actor_id,
                        character_name=event.actor_name,
                        reason=HostilityReason.KARMA,
                        intensity=event.final_karma_weight,
                        details=f"Wronged by {action} in chapter {event.chapter_number}",
                    )
                )

        return sorted(enemies.values(), key=lambda e: (-e.intensity, e.character_id))

    def find_allies(self, character_id: str) -> list[AllyRelation]:
        """Everyone likely to stand with the character, warmest first."""
        allies: dict[str, AllyRelation] = {}

        def add(relation: AllyRelation) -> None:
            if relation.character_id != character_id:
                _collect(allies, relation)

        for link in self.graph.neighbors(character_id):
            if link.link_type not in ALLY_LINK_TYPES or link.sentiment_score < 0:
                continue
            other_id, other_name = link.other(character_id)
            add(
                AllyRelation(
                    character_id=other_id,
                    character_name=other_name,
                    reason=HostilityReason.DIRECT_LINK,
                    link_type=link.link_type,
                    strength=link.strength,
                    sentiment=link.sentiment_score,
                    details=f"{link.link_type.value} relationship",
                )
            )

        for feud in self.snapshot.active_feuds():
            side = feud.side_of(character_id)
            if side is None:
                continue
            for member_id in feud.party(side).all_member_ids():
                add(
                    AllyRelation(
                        character_id=member_id,
                        character_name=self.snapshot.name_of(member_id),
                        reason=HostilityReason.BLOOD_FEUD,
                        sentiment=0,
                        details=f"Same side in {feud.feud_name}",
                    )
                )

        for event in self.snapshot.unsettled_events(
            polarity=KarmaPolarity.POSITIVE, target_id=character_id
        ):
            add(
                AllyRelation(
                    character_id=event.actor_id,
                    character_name=event.actor_name,
                    reason=HostilityReason.KARMA,
                    sentiment=0,
                    details=(
                        f"Owed for {event.action_type.value.replace('_', ' ')} "
                        f"in chapter {event.chapter_number}"
                    ),
                )
            )

        return sorted(allies.values(), key=lambda a: (-a.sentiment, a.character_id))

    def network_statistics(self) -> NetworkStatistics:
        nodes = self._all_character_ids()
        links = self.graph.links()

        most_connected = None
        for character_id in self.graph.characters():
            count = len(self.graph.outgoing(character_id))
            if count and (most_connected is None or count > most_connected.connections):
                most_connected = MostConnected(
                    character_id=character_id,
                    character_name=self.snapshot.name_of(character_id),
                    connections=count,
                )

        positive = sum(
            e.final_karma_weight
            for e in self.snapshot.events
            if e.polarity == KarmaPolarity.POSITIVE
        )
        negative = sum(
            e.final_karma_weight
            for e in self.snapshot.events
            if e.polarity == KarmaPolarity.NEGATIVE
        )

        return NetworkStatistics(
            total_nodes=len(nodes),
            total_edges=len(links),
            average_connections_per_node=round(len(links) / len(nodes), 1) if nodes else 0.0,
            most_connected_character=most_connected,
            total_positive_karma=positive,
            total_negative_karma=negative,
            active_blood_feuds=len(self.snapshot.active_feuds()),
            pending_debts=len(self.snapshot.unpaid_debts()),
        )
