from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UserProfileResponseData(BaseModel):
    id: str
    smart_account: str
    eoa_wallet_address: str | None
    card_id: str | None
    is_active: bool
    metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class UserProfileResponse(BaseModel):
    success: bool = True
    data: UserProfileResponseData


class UpdateUserProfileRequest(BaseModel):
    metadata: dict[str, Any] | None = None
    eoa_wallet_address: str | None = None


class ClaimCardRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    initial_limit: Decimal = Field(..., alias="initialLimit")


class CardResponseData(BaseModel):
    card_id: str
    user_id: str
    initial_limit: float | None
    status: str


class ListCardsResponse(BaseModel):
    success: bool = True
    cards: list[CardResponseData]


class ClaimCardResponse(BaseModel):
    success: bool = True
    data: CardResponseData
