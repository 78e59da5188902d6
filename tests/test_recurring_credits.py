from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from pagent.application.use_cases.recurring_credits import (
    PreviewRecurringCreditsUseCase,
    SweepRecurringCreditsUseCase,
)

from pagent_fakes import FakeLedger


T = datetime(2025, 1, 1, tzinfo=timezone.utc)
PERIOD = 2592000


def _config(ledger: FakeLedger, config_id: str, user_id: str, next_assignment: datetime) -> None:
    ledger.create_recurring_config(
        config_id=config_id,
        user_id=user_id,
        amount=Decimal("50"),
        period_seconds=PERIOD,
        next_assignment=next_assignment,
        description="Monthly allowance",
        metadata={},
        created_at=T - timedelta(days=30),
    )


def _sweeper(ledger: FakeLedger) -> SweepRecurringCreditsUseCase:
    return SweepRecurringCreditsUseCase(ledger_port=ledger, token_address="0xtoken")


def test_due_config_gets_permission_assignment_and_next_run():
    ledger = FakeLedger()
    _config(ledger, "cfg-1", "user-1", T - timedelta(hours=1))

    output = _sweeper(ledger).execute(now=T)

    assert output.processed == 1
    assert output.successful == 1
    assert output.errors == []
    result = output.results[0]
    assert result.next_assignment == datetime(2025, 1, 31, tzinfo=timezone.utc)
    assert ledger.recurring["cfg-1"].next_assignment == datetime(2025, 1, 31, tzinfo=timezone.utc)

    permission = ledger.permissions[result.permission_id]
    assert permission.start_timestamp == T
    assert permission.end_timestamp == datetime(2025, 1, 31, tzinfo=timezone.utc)
    assert permission.end_timestamp - permission.start_timestamp == timedelta(seconds=PERIOD)
    assert permission.cap_amount == Decimal("50")
    assert permission.status == "active"
    assert permission.metadata == {"source": "recurring_credit", "recurring_config_id": "cfg-1"}
    assert ledger.get_usage_for_permission(permission_id=permission.id).total_limit == Decimal("50")

    assignment = ledger.assignments[0]
    assert assignment.id == result.assignment_id
    assert assignment.credit_type == "recurring"
    assert assignment.description == "Recurring credit assignment: Monthly allowance"
    assert assignment.metadata["is_recurring"] is True


def test_sweep_replaces_previous_active_permission():
    ledger = FakeLedger()
    _config(ledger, "cfg-1", "user-1", T)
    first = _sweeper(ledger).execute(now=T).results[0]

    later = T + timedelta(seconds=PERIOD)
    second = _sweeper(ledger).execute(now=later).results[0]

    assert ledger.permissions[first.permission_id].status == "revoked"
    assert ledger.permissions[second.permission_id].status == "active"


def test_configs_not_yet_due_are_skipped():
    ledger = FakeLedger()
    _config(ledger, "cfg-1", "user-1", T + timedelta(seconds=1))

    output = _sweeper(ledger).execute(now=T)

    assert output.processed == 0
    assert ledger.permissions == {}


def test_one_failing_config_does_not_stop_the_sweep():
    ledger = FakeLedger()
    _config(ledger, "cfg-bad", "user-bad", T - timedelta(days=1))
    _config(ledger, "cfg-ok", "user-ok", T - timedelta(days=1))
    ledger.fail_permission_for_users.add("user-bad")

    output = _sweeper(ledger).execute(now=T)

    assert output.processed == 2
    assert output.successful == 1
    assert output.errors == ["cfg-bad: Failed to assign recurring credits."]
    failed = next(r for r in output.results if r.config_id == "cfg-bad")
    assert failed.success is False
    assert ledger.recurring["cfg-bad"].next_assignment == T - timedelta(days=1)
    assert ledger.recurring["cfg-ok"].next_assignment == T + timedelta(seconds=PERIOD)


def test_preview_splits_due_and_upcoming():
    ledger = FakeLedger()
    for index in range(12):
        _config(ledger, f"due-{index}", f"user-{index}", T - timedelta(hours=index + 1))
    for index in range(7):
        _config(ledger, f"up-{index}", f"user-up-{index}", T + timedelta(hours=index + 1))

    output = PreviewRecurringCreditsUseCase(ledger_port=ledger).execute(now=T)

    assert output.total_active == 19
    assert output.due_count == 12
    assert output.upcoming_count == 7
    assert len(output.due) == 10
    assert len(output.upcoming) == 5
    assert output.due[0].id == "due-11"
    assert output.upcoming[0].id == "up-0"
