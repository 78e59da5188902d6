from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pagent.application.dto.permissions import (
    CreateCreditPermissionInput,
    CreatePermissionInput,
    PermissionTerms,
    RevokePermissionInput,
)
from pagent.application.use_cases.credits import CreateCreditPermissionUseCase, GetCreditsUseCase
from pagent.application.use_cases.manage_permissions import (
    CreatePermissionUseCase,
    ListPermissionsUseCase,
    RevokePermissionUseCase,
)
from pagent.application.use_cases.upsert_wallet_user import UpsertWalletUserUseCase
from pagent.domain.exceptions import PermissionNotFoundError, ValidationError

from pagent_fakes import FakeLedger, FakeUserDirectory, make_user


SMART_ACCOUNT = "0x" + "a" * 40
TOKEN = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
SPENDER = "0x" + "9" * 40


def _terms(**overrides) -> PermissionTerms:
    now = datetime.now(timezone.utc)
    payload = {
        "token": TOKEN,
        "cap": Decimal("100"),
        "period": 86400,
        "start": now - timedelta(minutes=1),
        "end": now + timedelta(days=30),
        "spender": SPENDER,
    }
    payload.update(overrides)
    return PermissionTerms(**payload)


def _create_use_case(directory: FakeUserDirectory, ledger: FakeLedger) -> CreatePermissionUseCase:
    return CreatePermissionUseCase(
        upsert_wallet_user=UpsertWalletUserUseCase(user_directory_port=directory),
        ledger_port=ledger,
    )


def _credit_input(**overrides) -> CreateCreditPermissionInput:
    payload = {
        "user_id": "user-1",
        "token_address": TOKEN,
        "cap_amount": Decimal("100"),
        "period_seconds": 2592000,
        "spender_address": SPENDER,
        "permission_signature": "0xsig",
        "mode": "recurring",
    }
    payload.update(overrides)
    return CreateCreditPermissionInput(**payload)


def test_create_permission_upserts_user_and_opens_usage():
    directory = FakeUserDirectory()
    ledger = FakeLedger()

    output = _create_use_case(directory, ledger).execute(
        CreatePermissionInput(smart_account=SMART_ACCOUNT, permission=_terms(), signature="0xsig")
    )

    permission = ledger.permissions[output.permission_id]
    assert permission.status == "active"
    assert permission.token_address == TOKEN.lower()
    assert permission.user_id == output.user_id
    usage = ledger.get_usage_for_permission(permission_id=permission.id)
    assert usage.total_limit == Decimal("100")
    assert usage.used_amount == Decimal("0")


def test_new_permission_replaces_the_active_one_in_one_transaction():
    directory = FakeUserDirectory()
    ledger = FakeLedger()
    use_case = _create_use_case(directory, ledger)

    first = use_case.execute(
        CreatePermissionInput(smart_account=SMART_ACCOUNT, permission=_terms(), signature="0x1")
    )
    second = use_case.execute(
        CreatePermissionInput(
            smart_account=SMART_ACCOUNT, permission=_terms(cap=Decimal("250")), signature="0x2"
        )
    )

    assert ledger.permissions[first.permission_id].status == "revoked"
    assert ledger.permissions[second.permission_id].status == "active"
    assert ledger.permissions[second.permission_id].metadata == {"revoked_previous": 1}
    assert ledger.transactions == 2


@pytest.mark.parametrize(
    "overrides",
    [
        {"cap": Decimal("0")},
        {"period": 0},
        {"spender": ""},
    ],
)
def test_create_permission_rejects_invalid_terms(overrides):
    with pytest.raises(ValidationError):
        _create_use_case(FakeUserDirectory(), FakeLedger()).execute(
            CreatePermissionInput(
                smart_account=SMART_ACCOUNT, permission=_terms(**overrides), signature="0xsig"
            )
        )


def test_create_permission_rejects_end_before_start():
    now = datetime.now(timezone.utc)
    with pytest.raises(ValidationError):
        _create_use_case(FakeUserDirectory(), FakeLedger()).execute(
            CreatePermissionInput(
                smart_account=SMART_ACCOUNT,
                permission=_terms(start=now, end=now - timedelta(seconds=1)),
                signature="0xsig",
            )
        )


def test_revoke_only_touches_the_callers_permission():
    owner = make_user("owner", SMART_ACCOUNT)
    stranger = make_user("stranger", "0x" + "b" * 40)
    directory = FakeUserDirectory([owner, stranger])
    ledger = FakeLedger()
    created = _create_use_case(directory, ledger).execute(
        CreatePermissionInput(smart_account=SMART_ACCOUNT, permission=_terms(), signature="0xsig")
    )
    use_case = RevokePermissionUseCase(user_directory_port=directory, ledger_port=ledger)

    with pytest.raises(PermissionNotFoundError):
        use_case.execute(
            RevokePermissionInput(smart_account=stranger.smart_account, permission_id=created.permission_id)
        )
    revoked = use_case.execute(
        RevokePermissionInput(smart_account=SMART_ACCOUNT, permission_id=created.permission_id)
    )

    assert revoked.id == created.permission_id
    assert ledger.permissions[created.permission_id].status == "revoked"


def test_list_permissions_for_unknown_wallet_is_empty():
    use_case = ListPermissionsUseCase(user_directory_port=FakeUserDirectory(), ledger_port=FakeLedger())

    assert use_case.execute(smart_account=SMART_ACCOUNT) == []


def test_credits_overview_without_permission_is_zero():
    overview = GetCreditsUseCase(ledger_port=FakeLedger()).execute(user_id="user-1")

    assert overview.active_permission is None
    assert overview.credit_limit == Decimal("0")
    assert overview.remaining_amount == Decimal("0")


def test_recurring_mode_resets_balance_to_requested_amount():
    ledger = FakeLedger()
    use_case = CreateCreditPermissionUseCase(ledger_port=ledger)
    first = use_case.execute(_credit_input(cap_amount=Decimal("100")))
    ledger.reserve_usage(usage_id=first.usage.id, amount=Decimal("30"), updated_at=datetime.now(timezone.utc))

    second = use_case.execute(_credit_input(cap_amount=Decimal("80")))

    assert second.permission.cap_amount == Decimal("80")
    assert second.usage.used_amount == Decimal("0")
    assert ledger.permissions[first.permission.id].status == "revoked"


def test_topup_adds_remaining_balance_and_keeps_previous_usage():
    ledger = FakeLedger()
    use_case = CreateCreditPermissionUseCase(ledger_port=ledger)
    first = use_case.execute(_credit_input(cap_amount=Decimal("100")))
    ledger.reserve_usage(usage_id=first.usage.id, amount=Decimal("30"), updated_at=datetime.now(timezone.utc))

    topped = use_case.execute(_credit_input(cap_amount=Decimal("50"), mode="topup"))

    assert topped.mode == "topup"
    assert topped.permission.cap_amount == Decimal("120")
    assert topped.usage.total_limit == Decimal("120")
    assert topped.usage.used_amount == Decimal("0")
    assert topped.permission.metadata == {
        "mode": "topup",
        "original_request_amount": "50",
        "previous_used_amount": "30",
    }

    overview = GetCreditsUseCase(ledger_port=ledger).execute(user_id="user-1")
    assert overview.active_permission.id == topped.permission.id
    assert overview.remaining_amount == Decimal("120")
    assert len(overview.permissions) == 2


def test_credit_permission_lists_missing_fields():
    with pytest.raises(ValidationError) as excinfo:
        CreateCreditPermissionUseCase(ledger_port=FakeLedger()).execute(
            _credit_input(token_address=None, permission_signature="")
        )

    assert str(excinfo.value) == "Missing required fields: tokenAddress, permissionSignature"


def test_credit_permission_rejects_unknown_mode():
    with pytest.raises(ValidationError):
        CreateCreditPermissionUseCase(ledger_port=FakeLedger()).execute(_credit_input(mode="forever"))
