from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from pagent.application.dto.rewards import ProcessCashbackInput
from pagent.application.use_cases.rewards import GetRewardsSummaryUseCase, ProcessCashbackUseCase
from pagent.domain.entities.reward import Promo
from pagent.domain.exceptions import ReceiptNotFoundError, ValidationError

from pagent_fakes import T0, FakeLedger


def _receipt(
    ledger: FakeLedger,
    receipt_id: str,
    *,
    user_id: str = "user-1",
    amount: str = "42.50",
    status: str = "completed",
):
    ledger.create_receipt(
        receipt_id=receipt_id,
        user_id=user_id,
        card_id="card_1",
        auth_id=f"auth-{receipt_id}",
        amount=Decimal(amount),
        merchant="Coffee Shop",
        status=status,
        metadata={"permission_id": "perm-1"},
        created_at=T0,
    )


def _cashback(transaction_id: str | None = "r-1", **overrides) -> ProcessCashbackInput:
    payload = {
        "user_id": "user-1",
        "action": "cashback",
        "transaction_id": transaction_id,
        "amount": Decimal("42.50"),
    }
    payload.update(overrides)
    return ProcessCashbackInput(**payload)


def _promo(promo_id: str, *, priority: int = 0, status: str = "active", expires_at=None) -> Promo:
    return Promo(
        id=promo_id,
        title=f"Promo {promo_id}",
        description="",
        reward_type="cashback",
        reward_value=Decimal("2"),
        conditions="",
        expires_at=expires_at,
        status=status,
        priority=priority,
    )


def test_cashback_is_one_percent_of_receipt_and_credits_balance():
    ledger = FakeLedger()
    _receipt(ledger, "r-1", amount="42.50")

    output = ProcessCashbackUseCase(ledger_port=ledger).execute(_cashback())

    assert output.cashback_amount == Decimal("0.43")
    assert output.cashback_percentage == Decimal("1.0")
    assert output.status == "credited"
    assert output.already_credited is False
    stored = ledger.receipts["r-1"].metadata
    assert stored["permission_id"] == "perm-1"
    assert stored["cashback"]["amount"] == "0.43"
    assert stored["cashback"]["status"] == "credited"
    assert ledger.reward_balances["user-1"].cashback_balance == Decimal("0.43")
    assert ledger.transactions == 1


def test_repeated_cashback_does_not_credit_twice():
    ledger = FakeLedger()
    _receipt(ledger, "r-1", amount="100")
    use_case = ProcessCashbackUseCase(ledger_port=ledger)

    first = use_case.execute(_cashback())
    second = use_case.execute(_cashback())

    assert second.already_credited is True
    assert second.cashback_amount == first.cashback_amount == Decimal("1.00")
    assert ledger.reward_balances["user-1"].cashback_balance == Decimal("1.00")


def test_cashback_for_receipt_of_other_user_is_not_found():
    ledger = FakeLedger()
    _receipt(ledger, "r-1", user_id="user-2")

    with pytest.raises(ReceiptNotFoundError):
        ProcessCashbackUseCase(ledger_port=ledger).execute(_cashback())

    assert "cashback" not in ledger.receipts["r-1"].metadata


@pytest.mark.parametrize("status", ["pending", "failed"])
def test_cashback_requires_completed_receipt(status):
    ledger = FakeLedger()
    _receipt(ledger, "r-1", status=status)

    with pytest.raises(ValidationError, match="completed"):
        ProcessCashbackUseCase(ledger_port=ledger).execute(_cashback())

    assert ledger.reward_balances == {}


@pytest.mark.parametrize(
    "overrides",
    [
        {"action": "redeem"},
        {"action": None},
        {"transaction_id": None},
        {"transaction_id": ""},
        {"amount": None},
        {"amount": Decimal("0")},
    ],
)
def test_invalid_cashback_request_is_rejected(overrides):
    with pytest.raises(ValidationError, match="Invalid rewards action"):
        ProcessCashbackUseCase(ledger_port=FakeLedger()).execute(_cashback(**overrides))


def test_rewards_summary_lists_cashback_balance_and_active_promos():
    ledger = FakeLedger()
    _receipt(ledger, "r-1", amount="10")
    _receipt(ledger, "r-2", amount="250")
    _receipt(ledger, "r-3", amount="5")
    cashback = ProcessCashbackUseCase(ledger_port=ledger)
    cashback.execute(_cashback("r-1"))
    cashback.execute(_cashback("r-2"))
    ledger.promos = [
        _promo("low", priority=1),
        _promo("high", priority=9),
        _promo("old", expires_at=T0 - timedelta(days=1)),
        _promo("used", status="used"),
    ]

    summary = GetRewardsSummaryUseCase(ledger_port=ledger).execute(user_id="user-1", now=T0)

    assert summary.balance == Decimal("2.60")
    assert summary.points == 0
    assert {entry.transaction_id for entry in summary.cashback} == {"r-1", "r-2"}
    assert {entry.amount for entry in summary.cashback} == {Decimal("0.10"), Decimal("2.50")}
    assert all(entry.status == "credited" for entry in summary.cashback)
    assert all(entry.merchant == "Coffee Shop" for entry in summary.cashback)
    assert [promo.id for promo in summary.promos] == ["high", "low"]


def test_rewards_summary_for_new_user_is_empty():
    summary = GetRewardsSummaryUseCase(ledger_port=FakeLedger()).execute(user_id="user-1", now=T0)

    assert summary.balance == Decimal("0.00")
    assert summary.points == 0
    assert summary.cashback == []
    assert summary.promos == []
