from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal


CardEventStatus = Literal["authorized", "declined"]
SettlementOutcomeStatus = Literal["duplicate", "declined_recorded", "completed", "failed"]
SettlementFailureReason = Literal[
    "NoActivePermission",
    "CreditLimitExceeded",
    "ChargeExecutionFailed",
]


@dataclass(frozen=True)
class CardWebhookEvent:
    card_id: str
    auth_id: str
    amount: Decimal
    merchant: str
    timestamp: str
    status: CardEventStatus
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CardWebhookInput:
    signature: str | None
    payload: bytes


@dataclass(frozen=True)
class SpendRequest:
    permission_id: str
    user_id: str
    token_address: str
    spender_address: str
    permission_signature: str
    amount: Decimal
    auth_id: str
    merchant: str


@dataclass(frozen=True)
class SpendResult:
    tx_hash: str
    gas_used: int | None = None
    block_number: int | None = None


@dataclass(frozen=True)
class CardWebhookOutcome:
    status: SettlementOutcomeStatus
    auth_id: str
    receipt_id: str | None = None
    tx_hash: str | None = None
    reason: SettlementFailureReason | None = None
