"""
Text context for the chapter writer.

Turns a snapshot into the markdown blocks a generation step reads before
writing a scene: grudges, feuds, debts, consequences still waiting to land,
and who in the room has reason to hate the protagonist. Formatting never
touches storage, and the same snapshot always yields the same text.
"""

from __future__ import annotations

from pydantic import BaseModel

from facegraph.models import FaceProfile, KarmaPolarity, ThreatLevel
from facegraph.services.novel import FaceGraphSnapshot
from facegraph.services.ripple import assess_threat

MAX_GRUDGES_PER_CHARACTER = 5


def describe_sentiment(score: int) -> str:
    if score <= -80:
        return "Murderous hatred"
    if score <= -60:
        return "Deep hostility"
    if score <= -40:
        return "Strong resentment"
    if score <= -20:
        return "Cold and unfriendly"
    if score < 0:
        return "Slightly negative"
    if score == 0:
        return "Neutral"
    if score <= 20:
        return "Slightly positive"
    if score <= 40:
        return "Friendly"
    if score <= 60:
        return "Warm and trusting"
    if score <= 80:
        return "Strong affection"
    return "Devoted loyalty"


def describe_feud_intensity(intensity: int) -> str:
    if intensity >= 90:
        return "War-level hostility - violence is imminent"
    if intensity >= 70:
        return "Active pursuit of vengeance"
    if intensity >= 50:
        return "Open hostility"
    if intensity >= 30:
        return "Simmering resentment"
    return "Low-level grudge"


def describe_debt_weight(weight: int) -> str:
    if weight >= 90:
        return "Life debt - must be repaid at any cost"
    if weight >= 70:
        return "Major favor - significant sacrifice expected"
    if weight >= 50:
        return "Notable debt - meaningful repayment needed"
    if weight >= 30:
        return "Minor favor - can be repaid with assistance"
    return "Small courtesy - easily settled"


def tension_level(unsettled_weight: int) -> str:
    """Label for the total unsettled karma between two characters."""
    if unsettled_weight >= 100:
        return "EXTREME"
    if unsettled_weight >= 60:
        return "HIGH"
    if unsettled_weight >= 30:
        return "MODERATE"
    return "LOW"


_TENSION_TEXT = {
    "EXTREME": "Blood feud level animosity. Violence is likely.",
    "HIGH": "Significant bad blood. Confrontation will be hostile.",
    "MODERATE": "Notable tension. Conversation will be strained.",
    "LOW": "Some history but manageable. May be civil.",
}


def _label(value: str) -> str:
    return value.replace("_", " ")


class CharacterSummary(BaseModel):
    """Quick Face Graph status for one character."""

    character_id: str
    profile: FaceProfile | None = None
    unresolved_karma_count: int = 0
    active_threats: int = 0
    pending_debts: int = 0
    blood_feuds_involved: int = 0


class ContextFormatter:
    """Renders snapshots as context blocks. Holds no state."""

    def format_context(
        self,
        snapshot: FaceGraphSnapshot,
        present_ids: list[str],
        current_chapter: int,
        protagonist_id: str | None = None,
    ) -> str:
        """
        Everything the writer should know about the characters in a scene.

        Returns "" when the Face Graph is disabled or there is nothing to say.
        """
        if not snapshot.config.enabled:
            return ""

        mc_id = protagonist_id or snapshot.protagonist_id()
        present = list(dict.fromkeys(present_ids))
        sections = [
            section
            for section in (
                self._unresolved_karma(snapshot, present, current_chapter, mc_id),
                self._blood_feuds(snapshot, present),
                self._debts(snapshot, present, current_chapter),
                self._pending_ripples(snapshot, present),
                self._threats(snapshot, present, mc_id),
            )
            if section
        ]
        if not sections:
            return ""

        return "\n".join(
            [
                "# FACE GRAPH CONTEXT (Social Network Memory)",
                "",
                'The following information tracks the "Face" (social standing) and karmic relationships',
                "in the cultivation world. Use this to make NPC reactions authentic and consistent.",
                "",
                *sections,
                "---",
                "IMPORTANT: NPCs should react based on their relationship history with the MC.",
                "A character who was wronged should not suddenly be friendly without resolution.",
                "Blood feuds and debts are serious matters in the cultivation world.",
                "---",
            ]
        )

    # =========================================================================
    # Sections
    # =========================================================================

    def _unresolved_karma(
        self,
        snapshot: FaceGraphSnapshot,
        present: list[str],
        current_chapter: int,
        mc_id: str | None,
    ) -> str:
        lines: list[str] = []
        for character_id in present:
            if character_id == mc_id:
                continue
            grudges = snapshot.unsettled_events(
                polarity=KarmaPolarity.NEGATIVE, actor_id=mc_id, target_id=character_id
            )
            grudges = sorted(grudges, key=lambda e: (-e.chapter_number, str(e.id)))
            for event in grudges[:MAX_GRUDGES_PER_CHARACTER]:
                sentiment = self._sentiment_toward(snapshot, character_id, event.actor_id)
                lines.extend(
                    [
                        f"- **{event.target_name}**: {_label(event.action_type.value)} "
                        f"({event.severity.value})",
                        f"  - Occurred: Chapter {event.chapter_number} "
                        f"({current_chapter - event.chapter_number} chapters ago)",
                        f"  - Severity: {event.severity.value}",
                        f"  - Current sentiment toward MC: {describe_sentiment(sentiment)}",
                        "  - *This character may seek revenge, refuse to help, or work against the MC*",
                        "",
                    ]
                )
        if not lines:
            return ""
        return "\n".join(
            [
                "## UNRESOLVED KARMA (NPC Grudges Against MC)",
                "These characters have been wronged by the MC and the debt is not yet settled:",
                "",
                *lines,
            ]
        )

    def _sentiment_toward(
        self, snapshot: FaceGraphSnapshot, character_id: str, other_id: str
    ) -> int:
        links = snapshot.graph.directed_links(character_id, other_id)
        if not links:
            links = snapshot.graph.links_between(character_id, other_id)
        if not links:
            return 0
        return min(link.sentiment_score for link in links)

    def _blood_feuds(self, snapshot: FaceGraphSnapshot, present: list[str]) -> str:
        feuds = [
            feud
            for feud in snapshot.active_feuds()
            if any(feud.side_of(character_id) is not None for character_id in present)
        ]
        if not feuds:
            return ""
        lines = ["## ACTIVE BLOOD FEUDS", "Ongoing vendettas that affect character interactions:", ""]
        for feud in feuds:
            lines.extend(
                [
                    f"### {feud.feud_name}",
                    f"- **Aggrieved Party**: {feud.aggrieved_party.party_name}",
                    f"- **Target of Vengeance**: {feud.target_party.party_name}",
                    f"- **Cause**: {feud.origin_description}",
                    f"- **Intensity**: {describe_feud_intensity(feud.intensity)} ({feud.intensity}/100)",
                    "- *Characters from these factions will be hostile to each other*",
                    "",
                ]
            )
        return "\n".join(lines)

    def _debts(
        self, snapshot: FaceGraphSnapshot, present: list[str], current_chapter: int
    ) -> str:
        here = set(present)
        debts = [
            debt
            for debt in snapshot.unpaid_debts()
            if debt.debtor_id in here and debt.creditor_id in here
        ]
        if not debts:
            return ""
        lines = ["## UNPAID DEBTS (Favors Owed)", "Life debts and favors that characters may call upon:", ""]
        for debt in debts:
            lines.extend(
                [
                    f"- **{debt.debtor_name}** owes **{debt.creditor_name}**",
                    f"  - Type: {_label(debt.debt_type.value)}",
                    f"  - Weight: {describe_debt_weight(debt.weight)}",
                    f"  - Since: Chapter {debt.incurred_chapter} "
                    f"({current_chapter - debt.incurred_chapter} chapters ago)",
                    "  - *The creditor may call in this favor at any time*",
                    "",
                ]
            )
        return "\n".join(lines)

    def _pending_ripples(self, snapshot: FaceGraphSnapshot, present: list[str]) -> str:
        here = set(present)
        ripples = [
            ripple
            for ripple in snapshot.pending_ripples()
            if ripple.becomes_threat
            and (
                ripple.affected_character_id in here
                or ripple.original_actor_id in here
            )
        ]
        if not ripples:
            return ""
        lines = ["## PENDING CONSEQUENCES", "Ripple effects from past actions that may manifest:", ""]
        for ripple in ripples:
            lines.extend(
                [
                    f"- **{ripple.affected_character_name}** "
                    f"(connected to {ripple.original_target_name})",
                    f"  - Threat Level: {ripple.threat_level.value}",
                    f"  - Potential Response: {ripple.potential_response}",
                    "  - *This NPC may become hostile or take action against the MC*",
                    "",
                ]
            )
        return "\n".join(lines)

    def _threats(
        self, snapshot: FaceGraphSnapshot, present: list[str], mc_id: str | None
    ) -> str:
        if mc_id is None:
            return ""
        lines: list[str] = []
        for npc_id in present:
            if npc_id == mc_id:
                continue
            assessment = assess_threat(snapshot, npc_id, mc_id)
            if assessment.threat_level == ThreatLevel.NONE:
                continue
            lines.append(
                f"- **{assessment.npc_name}**: {assessment.threat_level.value.upper()} THREAT"
            )
            lines.extend(f"  - {reason}" for reason in assessment.threat_reasons)
            lines.append("")
        if not lines:
            return ""
        return "\n".join(
            [
                "## NPC THREAT ASSESSMENT",
                "Characters in this scene who have reason to oppose the MC:",
                "",
                *lines,
            ]
        )

    # =========================================================================
    # Other views
    # =========================================================================

    def format_confrontation(
        self, snapshot: FaceGraphSnapshot, first_id: str, second_id: str
    ) -> str:
        """Context for a scene where two characters face each other."""
        lines = ["# CONFRONTATION CONTEXT", ""]

        first = snapshot.profiles.get(first_id)
        second = snapshot.profiles.get(second_id)
        if first is not None and second is not None:
            lines.append("## FACE STANDINGS")
            for profile in (first, second):
                lines.append(
                    f"- **{profile.character_name}**: {profile.total_face} Face "
                    f"({profile.tier.value})"
                )
            if first.total_face > second.total_face * 2:
                lines.append(
                    f"*{first.character_name} significantly outranks "
                    f"{second.character_name} in social standing*"
                )
            elif second.total_face > first.total_face * 2:
                lines.append(
                    f"*{second.character_name} significantly outranks "
                    f"{first.character_name} in social standing*"
                )
            lines.append("")

        links = snapshot.graph.links_between(first_id, second_id)
        if links:
            lines.append("## RELATIONSHIP")
            for link in links:
                lines.extend(
                    [
                        f"- **{link.source_name}** sees **{link.target_name}** as: "
                        f"{link.link_type.value}",
                        f"  - Sentiment: {describe_sentiment(link.sentiment_score)} "
                        f"({link.sentiment_score})",
                        f"  - Unsettled karma: {link.unsettled_karma}",
                    ]
                )
            lines.append("")

        history = [
            e
            for e in snapshot.events
            if e.involves(first_id) and e.involves(second_id) and first_id != second_id
        ]
        history.sort(key=lambda e: (e.chapter_number, e.created_at))
        if history:
            lines.extend(
                [
                    "## KARMIC HISTORY",
                    "Events that have occurred between these characters:",
                    "",
                ]
            )
            for event in history:
                status = "(SETTLED)" if event.is_settled else "(UNRESOLVED)"
                lines.append(
                    f"- Chapter {event.chapter_number}: **{event.actor_name}** "
                    f"{_label(event.action_type.value)} **{event.target_name}** {status}"
                )
                if event.description:
                    lines.append(f"  - {event.description}")
            lines.append("")

        unsettled = sum(e.final_karma_weight for e in history if not e.is_settled)
        if unsettled > 0:
            level = tension_level(unsettled)
            lines.extend(["## TENSION LEVEL", f"**{level}**: {_TENSION_TEXT[level]}", ""])

        return "\n".join(lines)

    def character_summary(
        self, snapshot: FaceGraphSnapshot, character_id: str
    ) -> CharacterSummary:
        unresolved = [e for e in snapshot.unsettled_events() if e.involves(character_id)]
        return CharacterSummary(
            character_id=character_id,
            profile=snapshot.profiles.get(character_id),
            unresolved_karma_count=len(unresolved),
            active_threats=sum(
                1 for e in unresolved if e.polarity == KarmaPolarity.NEGATIVE
            ),
            pending_debts=sum(
                1
                for d in snapshot.unpaid_debts()
                if character_id in (d.debtor_id, d.creditor_id)
            ),
            blood_feuds_involved=sum(
                1 for f in snapshot.active_feuds() if f.side_of(character_id) is not None
            ),
        )
