from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pagent.domain.entities.reward import CashbackStatus, Promo


CASHBACK_HISTORY_LIMIT = 50
ACTIVE_PROMOS_LIMIT = 10


@dataclass(frozen=True)
class CashbackEntry:
    id: str
    transaction_id: str
    amount: Decimal
    percentage: Decimal
    merchant: str
    earned_at: datetime | None
    status: CashbackStatus


@dataclass(frozen=True)
class RewardsSummary:
    balance: Decimal
    points: int
    cashback: list[CashbackEntry]
    promos: list[Promo]


@dataclass(frozen=True)
class ProcessCashbackInput:
    user_id: str
    action: str | None
    transaction_id: str | None
    amount: Decimal | None


@dataclass(frozen=True)
class ProcessCashbackOutput:
    transaction_id: str
    cashback_amount: Decimal
    cashback_percentage: Decimal
    processed_at: datetime
    status: CashbackStatus
    already_credited: bool = False
