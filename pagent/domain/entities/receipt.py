from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal


ReceiptStatus = Literal["pending", "completed", "failed"]


@dataclass(frozen=True)
class Receipt:
    id: str
    user_id: str
    card_id: str | None
    auth_id: str
    amount: Decimal
    merchant: str
    chain_tx: str | None
    status: ReceiptStatus
    created_at: datetime
    updated_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)
