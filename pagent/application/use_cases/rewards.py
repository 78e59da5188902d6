from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pagent.application.dto.rewards import (
    ACTIVE_PROMOS_LIMIT,
    CASHBACK_HISTORY_LIMIT,
    CashbackEntry,
    ProcessCashbackInput,
    ProcessCashbackOutput,
    RewardsSummary,
)
from pagent.application.ports.ledger_port import LedgerPort
from pagent.domain.entities.receipt import Receipt
from pagent.domain.entities.reward import CASHBACK_RATE_PERCENT
from pagent.domain.exceptions import ReceiptNotFoundError, ValidationError

from .common import utcnow


logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class GetRewardsSummaryUseCase:
    def __init__(self, *, ledger_port: LedgerPort):
        self._ledger_port = ledger_port

    def execute(self, *, user_id: str, now: datetime | None = None) -> RewardsSummary:
        now = now or utcnow()
        balance = self._ledger_port.get_reward_balance(user_id=user_id)
        receipts = self._ledger_port.list_cashback_receipts(user_id=user_id, limit=CASHBACK_HISTORY_LIMIT)
        promos = self._ledger_port.list_active_promos(now=now, limit=ACTIVE_PROMOS_LIMIT)
        return RewardsSummary(
            balance=(balance.cashback_balance if balance else Decimal("0")).quantize(CENT, ROUND_HALF_UP),
            points=balance.points_balance if balance else 0,
            cashback=[cashback_entry(receipt) for receipt in receipts],
            promos=promos,
        )


class ProcessCashbackUseCase:
    """Credits a fixed-rate cashback for one of the user's settled card charges.

    The cashback is written onto the receipt and added to the reward balance in
    one transaction. Repeating the request returns the stored cashback.
    """

    def __init__(self, *, ledger_port: LedgerPort):
        self._ledger_port = ledger_port

    def execute(self, command: ProcessCashbackInput) -> ProcessCashbackOutput:
        if (
            command.action != "cashback"
            or not command.transaction_id
            or command.amount is None
            or command.amount <= 0
        ):
            raise ValidationError("Invalid rewards action or missing parameters.")

        def _tx(ledger: LedgerPort) -> ProcessCashbackOutput:
            receipt = ledger.get_user_receipt(user_id=command.user_id, receipt_id=command.transaction_id)
            if receipt is None:
                raise ReceiptNotFoundError("Transaction not found or does not belong to user.")
            if receipt.metadata.get("cashback"):
                return _already_credited(receipt)
            if receipt.status != "completed":
                raise ValidationError("Cashback applies only to completed transactions.")

            now = utcnow()
            amount = (receipt.amount * CASHBACK_RATE_PERCENT / 100).quantize(CENT, ROUND_HALF_UP)
            cashback = {
                "amount": str(amount),
                "percentage": str(CASHBACK_RATE_PERCENT),
                "processed_at": now.isoformat(),
                "status": "credited",
            }
            updated = ledger.apply_receipt_cashback(
                user_id=command.user_id,
                receipt_id=receipt.id,
                cashback=cashback,
                updated_at=now,
            )
            if updated is None:
                # A concurrent request stored the cashback first.
                current = ledger.get_user_receipt(user_id=command.user_id, receipt_id=receipt.id)
                if current is not None and current.metadata.get("cashback"):
                    return _already_credited(current)
                raise ValidationError("Cashback applies only to completed transactions.")

            ledger.credit_reward_balance(user_id=command.user_id, cashback_amount=amount, updated_at=now)
            logger.info(
                "rewards: cashback credited user_id=%s receipt_id=%s amount=%s",
                command.user_id,
                receipt.id,
                amount,
            )
            return ProcessCashbackOutput(
                transaction_id=receipt.id,
                cashback_amount=amount,
                cashback_percentage=CASHBACK_RATE_PERCENT,
                processed_at=now,
                status="credited",
            )

        return self._ledger_port.execute_in_transaction(_tx)


def cashback_entry(receipt: Receipt) -> CashbackEntry:
    cashback = receipt.metadata.get("cashback") or {}
    status = cashback.get("status")
    return CashbackEntry(
        id=receipt.id,
        transaction_id=receipt.id,
        amount=_decimal(cashback.get("amount")),
        percentage=_decimal(cashback.get("percentage")),
        merchant=receipt.merchant or "Unknown",
        earned_at=_processed_at(cashback) or receipt.updated_at,
        status=status if status in ("pending", "credited") else "expired",
    )


def _already_credited(receipt: Receipt) -> ProcessCashbackOutput:
    entry = cashback_entry(receipt)
    logger.info("rewards: cashback already credited receipt_id=%s", receipt.id)
    return ProcessCashbackOutput(
        transaction_id=receipt.id,
        cashback_amount=entry.amount,
        cashback_percentage=entry.percentage,
        processed_at=entry.earned_at or receipt.updated_at,
        status=entry.status,
        already_credited=True,
    )


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def _processed_at(cashback: dict[str, Any]) -> datetime | None:
    raw = cashback.get("processed_at")
    if not raw:
        return None
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return None
