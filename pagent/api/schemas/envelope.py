from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from pagent.domain.entities.credit import CreditAssignment, RecurringCreditConfig
from pagent.domain.entities.permission import CreditUsage, SpendPermission
from pagent.domain.entities.receipt import Receipt


class PermissionResponse(BaseModel):
    id: str
    user_id: str
    token_address: str
    cap_amount: float
    period_seconds: int
    start_timestamp: datetime
    end_timestamp: datetime
    spender_address: str
    status: str
    metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class CreditUsageResponse(BaseModel):
    id: str
    permission_id: str
    period_start: datetime
    period_end: datetime
    total_limit: float
    used_amount: float
    transaction_count: int


class ReceiptResponse(BaseModel):
    id: str
    card_id: str | None
    auth_id: str
    amount: float
    merchant: str
    chain_tx: str | None
    status: str
    metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class RecurringConfigResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    amount: float
    period_seconds: int
    next_assignment: datetime
    status: str
    description: str


class CreditAssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    amount: float
    credit_type: str
    assigned_at: datetime
    expires_at: datetime | None
    status: str
    description: str
    metadata: dict[str, Any]


def permission_response(permission: SpendPermission) -> PermissionResponse:
    # The on-chain authorization proof stays server-side.
    return PermissionResponse(
        id=permission.id,
        user_id=permission.user_id,
        token_address=permission.token_address,
        cap_amount=permission.cap_amount,
        period_seconds=permission.period_seconds,
        start_timestamp=permission.start_timestamp,
        end_timestamp=permission.end_timestamp,
        spender_address=permission.spender_address,
        status=permission.status,
        metadata=permission.metadata,
        created_at=permission.created_at,
        updated_at=permission.updated_at,
    )


def usage_response(usage: CreditUsage) -> CreditUsageResponse:
    return CreditUsageResponse(
        id=usage.id,
        permission_id=usage.permission_id,
        period_start=usage.period_start,
        period_end=usage.period_end,
        total_limit=usage.total_limit,
        used_amount=usage.used_amount,
        transaction_count=usage.transaction_count,
    )


def receipt_response(receipt: Receipt) -> ReceiptResponse:
    return ReceiptResponse(
        id=receipt.id,
        card_id=receipt.card_id,
        auth_id=receipt.auth_id,
        amount=receipt.amount,
        merchant=receipt.merchant,
        chain_tx=receipt.chain_tx,
        status=receipt.status,
        metadata=receipt.metadata,
        created_at=receipt.created_at,
        updated_at=receipt.updated_at,
    )


def recurring_config_response(config: RecurringCreditConfig) -> RecurringConfigResponse:
    return RecurringConfigResponse.model_validate(config)


def assignment_response(assignment: CreditAssignment) -> CreditAssignmentResponse:
    return CreditAssignmentResponse.model_validate(assignment)
