"""Face ledger: reputation profiles, karma balances and titles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from pydantic import BaseModel

from facegraph.db.interfaces import LedgerRepository
from facegraph.errors import CharacterNotFound, RecordNotFound
from facegraph.models.face import (
    Accomplishment,
    FaceCategory,
    FaceProfile,
    FaceTier,
    FaceTitle,
    Shame,
    create_face_profile,
    get_notoriety,
)

logger = logging.getLogger(__name__)


class FaceUpdate(BaseModel):
    """Result of a single Face change."""

    character_id: str
    character_name: str
    category: FaceCategory
    delta: int
    old_total: int
    new_total: int
    old_tier: FaceTier
    new_tier: FaceTier

    @property
    def tier_changed(self) -> bool:
        return self.old_tier != self.new_tier


@dataclass
class FaceLedger:
    """Applies and queries Face for the characters of a novel."""

    ledger: LedgerRepository

    def get_profile(self, novel_id: str, character_id: str) -> FaceProfile | None:
        return self.ledger.get_profile(novel_id, character_id)

    def get_or_create_profile(
        self,
        novel_id: str,
        character_id: str,
        character_name: str | None = None,
        is_protected: bool = False,
    ) -> FaceProfile:
        """
        Load a character's profile, creating it on first use.

        The display name comes from ``character_name`` or, failing that, the
        roster. A character with neither can't get a profile.

        Raises:
            CharacterNotFound: No profile, no name given, no roster entry.
        """
        profile = self.ledger.get_profile(novel_id, character_id)
        if profile is not None:
            return profile

        if character_name is None:
            character = self.ledger.get_character(novel_id, character_id)
            if character is None:
                raise CharacterNotFound(character_id, novel_id)
            character_name = character.name

        profile = create_face_profile(
            novel_id, character_id, character_name, is_protected=is_protected
        )
        self.ledger.save_profile(profile)
        logger.debug("Created face profile for %s", character_name)
        return profile

    def add_face(
        self,
        novel_id: str,
        character_id: str,
        amount: int,
        category: FaceCategory,
        chapter: int,
        description: str,
        character_name: str | None = None,
    ) -> FaceUpdate:
        """
        Add (or, with a negative amount, take away) Face in one category.

        Gains are recorded as accomplishments and losses as shames. Protected
        characters keep their Face when the amount is negative.
        """
        profile = self.get_or_create_profile(novel_id, character_id, character_name)
        old_total = profile.total_face
        old_tier = profile.tier

        if amount < 0 and profile.is_protected:
            logger.debug("Face loss for protected %s ignored", profile.character_name)
            amount = 0

        if amount != 0:
            profile.category_scores.add(category, amount)
            if amount > 0:
                profile.accomplishments.append(
                    Accomplishment(
                        description=description,
                        chapter_number=chapter,
                        face_gained=amount,
                        category=category,
                        notoriety=get_notoriety(amount),
                    )
                )
            else:
                profile.shames.append(
                    Shame(
                        description=description,
                        chapter_number=chapter,
                        face_lost=-amount,
                        category=category,
                        notoriety=get_notoriety(amount),
                    )
                )
            profile.last_updated_chapter = max(profile.last_updated_chapter, chapter)
            self.ledger.save_profile(profile)

        if profile.tier != old_tier:
            logger.info(
                "%s is now %s (face %d)",
                profile.character_name,
                profile.tier.value,
                profile.total_face,
            )

        return FaceUpdate(
            character_id=character_id,
            character_name=profile.character_name,
            category=category,
            delta=amount,
            old_total=old_total,
            new_total=profile.total_face,
            old_tier=old_tier,
            new_tier=profile.tier,
        )

    def update_karma_balance(
        self,
        novel_id: str,
        character_id: str,
        delta: int,
        character_name: str | None = None,
    ) -> FaceProfile:
        """Adjust a character's karma balance and the matching running total."""
        profile = self.get_or_create_profile(novel_id, character_id, character_name)
        profile.update_karma_balance(delta)
        self.ledger.save_profile(profile)
        return profile

    def award_title(
        self,
        novel_id: str,
        character_id: str,
        title: str,
        chapter: int,
        description: str = "",
        face_bonus: int = 0,
    ) -> FaceTitle:
        """Grant a title. A positive bonus is booked as political Face."""
        profile = self.get_or_create_profile(novel_id, character_id)
        awarded = FaceTitle(
            title=title,
            description=description,
            face_bonus=face_bonus,
            acquired_chapter=chapter,
        )
        profile.titles.append(awarded)
        self.ledger.save_profile(profile)

        if face_bonus:
            self.add_face(
                novel_id,
                character_id,
                face_bonus,
                FaceCategory.POLITICAL,
                chapter,
                f"Earned the title {title}",
            )
        return awarded

    def revoke_title(
        self, novel_id: str, character_id: str, title_id: UUID, chapter: int
    ) -> bool:
        """Strip a title. Returns False if it was already inactive."""
        profile = self.get_or_create_profile(novel_id, character_id)
        for title in profile.titles:
            if title.id == title_id:
                if not title.is_active:
                    logger.warning("Title %s already revoked", title.title)
                    return False
                title.is_active = False
                title.lost_chapter = chapter
                self.ledger.save_profile(profile)
                return True
        raise RecordNotFound("Title", title_id)

    def redeem_shame(
        self, novel_id: str, character_id: str, shame_id: UUID, chapter: int
    ) -> bool:
        """Mark a shame redeemed. Returns False if it already was."""
        profile = self.get_or_create_profile(novel_id, character_id)
        for shame in profile.shames:
            if shame.id == shame_id:
                if shame.is_redeemed:
                    logger.warning("Shame %s already redeemed", shame_id)
                    return False
                shame.is_redeemed = True
                shame.redeemed_chapter = chapter
                self.ledger.save_profile(profile)
                return True
        raise RecordNotFound("Shame", shame_id)
