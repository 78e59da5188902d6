from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class UpdateProfileInput:
    user_id: str
    metadata: dict[str, Any] | None = None
    eoa_wallet_address: str | None = None


@dataclass(frozen=True)
class ClaimCardInput:
    user_id: str
    initial_limit: Decimal


@dataclass(frozen=True)
class CardOutput:
    card_id: str
    user_id: str
    initial_limit: Decimal | None
    status: str
