from __future__ import annotations

from decimal import Decimal

from pagent.application.dto.receipts import (
    DEFAULT_RECEIPTS_LIMIT,
    MAX_RECEIPTS_LIMIT,
    ListReceiptsInput,
    ListReceiptsOutput,
    ReceiptsPagination,
    ReceiptsSummary,
)
from pagent.application.ports.ledger_port import LedgerPort
from pagent.domain.exceptions import ValidationError


class ListReceiptsUseCase:
    def __init__(self, *, ledger_port: LedgerPort):
        self._ledger_port = ledger_port

    def execute(self, command: ListReceiptsInput) -> ListReceiptsOutput:
        if command.limit is not None and command.limit < 0:
            raise ValidationError("limit must not be negative.")
        if command.offset is not None and command.offset < 0:
            raise ValidationError("offset must not be negative.")

        limit = min(command.limit or DEFAULT_RECEIPTS_LIMIT, MAX_RECEIPTS_LIMIT)
        offset = command.offset or 0
        filters = command.filters
        if filters.from_date and filters.to_date and filters.from_date > filters.to_date:
            raise ValidationError("from_date must not be after to_date.")

        receipts, total = self._ledger_port.list_receipts(
            user_id=command.user_id,
            filters=filters,
            limit=limit,
            offset=offset,
        )
        amounts = self._ledger_port.list_receipt_amounts_by_status(user_id=command.user_id)

        return ListReceiptsOutput(
            receipts=receipts,
            pagination=ReceiptsPagination(
                limit=limit,
                offset=offset,
                total=total,
                has_more=total > offset + limit,
            ),
            summary=summarize_receipts(amounts),
        )


def summarize_receipts(amounts: list[tuple[str, Decimal]]) -> ReceiptsSummary:
    zero = Decimal("0")
    completed = [amount for status, amount in amounts if status == "completed"]
    pending = [amount for status, amount in amounts if status == "pending"]
    return ReceiptsSummary(
        total_count=len(amounts),
        total_amount=sum((amount for _, amount in amounts), zero),
        completed_count=len(completed),
        completed_amount=sum(completed, zero),
        pending_count=len(pending),
        pending_amount=sum(pending, zero),
        failed_count=sum(1 for status, _ in amounts if status == "failed"),
    )
