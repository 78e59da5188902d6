from __future__ import annotations

from pydantic import BaseModel


class CardWebhookResponse(BaseModel):
    success: bool = True
    status: str
    auth_id: str
    receipt_id: str | None = None
    tx_hash: str | None = None
    reason: str | None = None
    message: str
