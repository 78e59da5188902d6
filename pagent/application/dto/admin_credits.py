from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from pagent.domain.entities.credit import CreditAssignment, CreditType, RecurringCreditConfig
from pagent.domain.entities.permission import SpendPermission


@dataclass(frozen=True)
class AssignCreditsInput:
    wallet_address: str
    amount: Decimal
    credit_type: CreditType
    description: str | None = None
    period_seconds: int | None = None


@dataclass(frozen=True)
class AssignCreditsOutput:
    credit_type: CreditType
    amount: Decimal
    permission: SpendPermission | None
    assignment: CreditAssignment | None
    recurring_config: RecurringCreditConfig | None = None


@dataclass(frozen=True)
class UserCreditsReport:
    user_id: str
    wallet_address: str
    assignments: list[CreditAssignment]
    recurring_configs: list[RecurringCreditConfig]
