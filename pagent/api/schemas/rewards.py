from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CashbackEntryResponse(BaseModel):
    id: str
    transaction_id: str
    amount: float
    percentage: float
    merchant: str
    earned_at: datetime | None
    status: str


class PromoResponse(BaseModel):
    id: str
    title: str
    description: str
    reward_type: str
    reward_value: float
    conditions: str
    expires_at: datetime | None
    status: str


class RewardsData(BaseModel):
    balance: float
    points: int
    cashback: list[CashbackEntryResponse]
    promos: list[PromoResponse]


class RewardsResponse(BaseModel):
    success: bool = True
    data: RewardsData


class ProcessCashbackRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str | None = None
    transaction_id: str | None = Field(default=None, alias="transactionId")
    amount: Decimal | None = None


class ProcessCashbackData(BaseModel):
    transaction_id: str
    cashback_amount: float
    cashback_percentage: float
    processed_at: datetime
    status: str


class ProcessCashbackResponse(BaseModel):
    success: bool = True
    data: ProcessCashbackData
    message: str
