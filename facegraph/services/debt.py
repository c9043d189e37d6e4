"""Face debts: favours owed, repaid, and passed down."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from facegraph.db.interfaces import LedgerRepository
from facegraph.errors import RecordNotFound
from facegraph.models import DebtType, FaceDebt, KarmaEvent

logger = logging.getLogger(__name__)


@dataclass
class DebtLedger:
    """Tracks who owes whom."""

    ledger: LedgerRepository

    def get(self, novel_id: str, debt_id: UUID) -> FaceDebt:
        debt = self.ledger.get_debt(novel_id, debt_id)
        if debt is None:
            raise RecordNotFound("FaceDebt", debt_id)
        return debt

    def create(
        self,
        novel_id: str,
        debtor_id: str,
        debtor_name: str,
        creditor_id: str,
        creditor_name: str,
        debt_type: DebtType,
        incurred_chapter: int,
        weight: int = 50,
        description: str = "",
        origin_event_id: UUID | None = None,
        can_be_inherited: bool = True,
    ) -> FaceDebt:
        debt = FaceDebt(
            novel_id=novel_id,
            debtor_id=debtor_id,
            debtor_name=debtor_name,
            creditor_id=creditor_id,
            creditor_name=creditor_name,
            debt_type=debt_type,
            weight=max(0, min(100, weight)),
            description=description,
            origin_event_id=origin_event_id,
            incurred_chapter=incurred_chapter,
            can_be_inherited=can_be_inherited,
        )
        self.ledger.save_debt(debt)
        logger.info(
            "%s now owes %s a %s debt (weight %d)",
            debtor_name,
            creditor_name,
            debt_type.value,
            debt.weight,
        )
        return debt

    def create_from_event(
        self, event: KarmaEvent, debt_type: DebtType, weight: int | None = None
    ) -> FaceDebt:
        """The event's target owes its actor."""
        return self.create(
            novel_id=event.novel_id,
            debtor_id=event.target_id,
            debtor_name=event.target_name,
            creditor_id=event.actor_id,
            creditor_name=event.actor_name,
            debt_type=debt_type,
            incurred_chapter=event.chapter_number,
            weight=event.final_karma_weight if weight is None else weight,
            description=event.description,
            origin_event_id=event.id,
        )

    def repay(
        self,
        novel_id: str,
        debt_id: UUID,
        chapter: int,
        description: str | None = None,
    ) -> bool:
        """Mark a debt repaid. Returns False if it already was."""
        debt = self.get(novel_id, debt_id)
        if debt.is_repaid:
            logger.warning(
                "Debt of %s to %s already repaid", debt.debtor_name, debt.creditor_name
            )
            return False

        debt.is_repaid = True
        debt.repaid_chapter = chapter
        debt.repayment_description = description
        self.ledger.save_debt(debt)
        logger.info(
            "%s repaid %s in chapter %d", debt.debtor_name, debt.creditor_name, chapter
        )
        return True

    def inherit(
        self, novel_id: str, debt_id: UUID, heir_id: str, heir_name: str
    ) -> FaceDebt:
        """
        Pass an unpaid debt to the debtor's heir.

        Raises:
            ValueError: The debt can't be inherited or is already repaid.
        """
        debt = self.get(novel_id, debt_id)
        if not debt.can_be_inherited:
            raise ValueError(f"Debt {debt_id} cannot be inherited")
        if debt.is_repaid:
            raise ValueError(f"Debt {debt_id} is already repaid")

        debt.inherited_from_id = debt.debtor_id
        debt.debtor_id = heir_id
        debt.debtor_name = heir_name
        debt.was_inherited = True
        self.ledger.save_debt(debt)
        logger.info("%s inherited a debt to %s", heir_name, debt.creditor_name)
        return debt

    def unpaid_debts(
        self,
        novel_id: str,
        character_id: str | None = None,
        as_debtor: bool = True,
    ) -> list[FaceDebt]:
        """
        Unpaid debts, heaviest first, optionally only those owed by (or to) one
        character. Equal weights keep the order they were incurred in.
        """
        debts = [d for d in self.ledger.get_debts(novel_id) if not d.is_repaid]
        if character_id is not None:
            if as_debtor:
                debts = [d for d in debts if d.debtor_id == character_id]
            else:
                debts = [d for d in debts if d.creditor_id == character_id]
        return sorted(debts, key=lambda d: d.weight, reverse=True)
