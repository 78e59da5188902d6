from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pagent.application.dto.receipts import ListReceiptsInput, ReceiptFilters
from pagent.application.use_cases.list_receipts import ListReceiptsUseCase, summarize_receipts
from pagent.domain.exceptions import ValidationError

from pagent_fakes import T0, FakeLedger


def _seed(ledger: FakeLedger, count: int, *, status: str = "completed", user_id: str = "user-1") -> None:
    start = len(ledger.receipts)
    for index in range(start, start + count):
        ledger.create_receipt(
            receipt_id=f"r-{index}",
            user_id=user_id,
            card_id="card_1",
            auth_id=f"auth-{index}",
            amount=Decimal("10"),
            merchant="Coffee Shop" if index % 2 else "Book Store",
            status=status,
            metadata={},
            created_at=T0 + timedelta(minutes=index),
        )


def test_limit_is_capped_and_has_more_reported():
    ledger = FakeLedger()
    _seed(ledger, 120)

    output = ListReceiptsUseCase(ledger_port=ledger).execute(
        ListReceiptsInput(user_id="user-1", filters=ReceiptFilters(), limit=500)
    )

    assert output.pagination.limit == 100
    assert output.pagination.total == 120
    assert output.pagination.has_more is True
    assert len(output.receipts) == 100
    assert output.receipts[0].id == "r-119"


def test_defaults_and_last_page():
    ledger = FakeLedger()
    _seed(ledger, 60)

    output = ListReceiptsUseCase(ledger_port=ledger).execute(
        ListReceiptsInput(user_id="user-1", filters=ReceiptFilters(), offset=50)
    )

    assert output.pagination.limit == 50
    assert output.pagination.offset == 50
    assert output.pagination.has_more is False
    assert len(output.receipts) == 10


def test_filters_and_user_scope():
    ledger = FakeLedger()
    _seed(ledger, 4)
    _seed(ledger, 3, user_id="user-2")

    output = ListReceiptsUseCase(ledger_port=ledger).execute(
        ListReceiptsInput(user_id="user-1", filters=ReceiptFilters(merchant="coffee"))
    )

    assert {r.merchant for r in output.receipts} == {"Coffee Shop"}
    assert output.pagination.total == 2
    assert output.summary.total_count == 4


@pytest.mark.parametrize(
    "command",
    [
        ListReceiptsInput(user_id="user-1", filters=ReceiptFilters(), limit=-1),
        ListReceiptsInput(user_id="user-1", filters=ReceiptFilters(), offset=-5),
        ListReceiptsInput(
            user_id="user-1",
            filters=ReceiptFilters(
                from_date=datetime(2025, 2, 1, tzinfo=timezone.utc),
                to_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            ),
        ),
    ],
)
def test_invalid_paging_or_range_is_rejected(command):
    with pytest.raises(ValidationError):
        ListReceiptsUseCase(ledger_port=FakeLedger()).execute(command)


def test_summary_groups_by_status():
    summary = summarize_receipts(
        [
            ("completed", Decimal("10")),
            ("completed", Decimal("5.5")),
            ("pending", Decimal("3")),
            ("failed", Decimal("7")),
        ]
    )

    assert summary.total_count == 4
    assert summary.total_amount == Decimal("25.5")
    assert summary.completed_count == 2
    assert summary.completed_amount == Decimal("15.5")
    assert summary.pending_count == 1
    assert summary.pending_amount == Decimal("3")
    assert summary.failed_count == 1


def test_summary_of_nothing_is_zero():
    summary = summarize_receipts([])

    assert summary.total_count == 0
    assert summary.total_amount == Decimal("0")
