from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal


RecurringStatus = Literal["active", "paused", "cancelled"]
CreditType = Literal["recurring", "topup", "one-time"]


@dataclass(frozen=True)
class RecurringCreditConfig:
    id: str
    user_id: str
    amount: Decimal
    period_seconds: int
    next_assignment: datetime
    status: RecurringStatus
    description: str
    created_at: datetime
    updated_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CreditAssignment:
    id: str
    user_id: str
    amount: Decimal
    credit_type: CreditType
    assigned_at: datetime
    expires_at: datetime | None
    status: str
    description: str
    metadata: dict[str, Any] = field(default_factory=dict)
