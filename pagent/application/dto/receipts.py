from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pagent.domain.entities.receipt import Receipt, ReceiptStatus


DEFAULT_RECEIPTS_LIMIT = 50
MAX_RECEIPTS_LIMIT = 100


@dataclass(frozen=True)
class ReceiptFilters:
    status: ReceiptStatus | None = None
    merchant: str | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None


@dataclass(frozen=True)
class ListReceiptsInput:
    user_id: str
    filters: ReceiptFilters
    limit: int | None = None
    offset: int | None = None


@dataclass(frozen=True)
class ReceiptsPagination:
    limit: int
    offset: int
    total: int
    has_more: bool


@dataclass(frozen=True)
class ReceiptsSummary:
    total_count: int
    total_amount: Decimal
    completed_count: int
    completed_amount: Decimal
    pending_count: int
    pending_amount: Decimal
    failed_count: int


@dataclass(frozen=True)
class ListReceiptsOutput:
    receipts: list[Receipt]
    pagination: ReceiptsPagination
    summary: ReceiptsSummary
