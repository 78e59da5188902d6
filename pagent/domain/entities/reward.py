from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal


CashbackStatus = Literal["pending", "credited", "expired"]
PromoRewardType = Literal["cashback", "points", "bonus"]

CASHBACK_RATE_PERCENT = Decimal("1.0")


@dataclass(frozen=True)
class RewardBalance:
    user_id: str
    cashback_balance: Decimal
    points_balance: int
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Promo:
    id: str
    title: str
    description: str
    reward_type: PromoRewardType
    reward_value: Decimal
    conditions: str
    expires_at: datetime | None
    status: str
    priority: int = 0
