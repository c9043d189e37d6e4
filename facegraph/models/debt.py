"""Face debt models: favours owed after a positive karma event."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class DebtType(str, Enum):
    LIFE_SAVING = "life_saving"
    TREASURE = "treasure"
    TEACHING = "teaching"
    PROTECTION = "protection"
    POLITICAL = "political"
    OTHER = "other"


class FaceDebt(BaseModel):
    """An owed favour. Terminal once repaid."""

    id: UUID = Field(default_factory=uuid4)
    novel_id: str

    debtor_id: str
    debtor_name: str
    creditor_id: str
    creditor_name: str

    debt_type: DebtType
    weight: Annotated[int, Field(ge=0, le=100)]
    description: str = ""
    origin_event_id: UUID | None = None
    incurred_chapter: int

    is_repaid: bool = False
    repaid_chapter: int | None = None
    repayment_description: str | None = None

    can_be_inherited: bool = True
    was_inherited: bool = False
    inherited_from_id: str | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
