from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pagent.domain.entities.credit import RecurringCreditConfig


@dataclass(frozen=True)
class SweepItemResult:
    config_id: str
    user_id: str
    success: bool
    amount: Decimal
    permission_id: str | None = None
    assignment_id: str | None = None
    next_assignment: datetime | None = None
    error: str | None = None


@dataclass(frozen=True)
class SweepOutput:
    processed: int
    successful: int
    errors: list[str]
    results: list[SweepItemResult]


@dataclass(frozen=True)
class RecurringPreviewOutput:
    total_active: int
    due_count: int
    upcoming_count: int
    due: list[RecurringCreditConfig]
    upcoming: list[RecurringCreditConfig]
