from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from pagent.api.deps import (
    get_current_session,
    get_get_credits_use_case,
    get_list_permissions_use_case,
    get_login_siwe_use_case,
    get_process_card_webhook_use_case,
    get_process_cashback_use_case,
    get_rewards_summary_use_case,
    get_sweep_recurring_credits_use_case,
    get_update_user_profile_use_case,
)
from pagent.application.dto.permissions import CreditsOverview
from pagent.application.dto.recurring_credits import SweepOutput
from pagent.application.dto.rewards import CashbackEntry, ProcessCashbackOutput, RewardsSummary
from pagent.application.dto.settlement import CardWebhookOutcome
from pagent.application.dto.siwe import LoginSiweOutput, SessionClaims
from pagent.domain.exceptions import (
    MalformedMessageError,
    ReceiptNotFoundError,
    SiweAuthenticationError,
    ValidationError,
    WalletAddressConflictError,
    WebhookSignatureError,
)
from pagent.main import app


WALLET = "0x" + "a" * 40
EXPIRES = datetime(2025, 1, 1, 1, tzinfo=timezone.utc)


class FakeLoginUseCase:
    def __init__(self, *, is_new_user: bool = True, error: Exception | None = None):
        self.is_new_user = is_new_user
        self.error = error
        self.commands = []

    def execute(self, command):
        self.commands.append(command)
        if self.error:
            raise self.error
        return LoginSiweOutput(
            token="session-token",
            expires_at=EXPIRES,
            user_id="user-1",
            address=WALLET,
            is_new_user=self.is_new_user,
            method="eoa",
        )


class FakeCreditsUseCase:
    def execute(self, *, user_id: str) -> CreditsOverview:
        assert user_id == "user-1"
        return CreditsOverview(
            permissions=[],
            active_permission=None,
            usage=None,
            credit_limit=Decimal("100"),
            used_amount=Decimal("40"),
            remaining_amount=Decimal("60"),
        )


class FakeListPermissionsUseCase:
    def execute(self, *, smart_account: str):
        return []


class FakeWebhookUseCase:
    def __init__(self, *, outcome: CardWebhookOutcome | None = None, error: Exception | None = None):
        self.outcome = outcome
        self.error = error
        self.commands = []

    def execute(self, command):
        self.commands.append(command)
        if self.error:
            raise self.error
        return self.outcome


class FakeSweepUseCase:
    def execute(self, *, now):
        return SweepOutput(processed=0, successful=0, errors=[], results=[])


def _session() -> SessionClaims:
    return SessionClaims(wallet_address=WALLET, user_id="user-1", role="authenticated", expires_at=EXPIRES)


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_siwe_auth_returns_201_for_new_user(client):
    login = FakeLoginUseCase(is_new_user=True)
    app.dependency_overrides[get_login_siwe_use_case] = lambda: login

    response = client.post(
        "/siwe-auth",
        json={"message": "msg", "signature": "0xsig", "timestamp": 1, "clientInfo": {"app": "web"}},
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["success"] is True
    assert payload["token"] == "session-token"
    assert payload["user"] == {"id": "user-1", "address": WALLET, "isNewUser": True}
    assert login.commands[0].client_info == {"app": "web"}


def test_siwe_auth_returns_200_for_returning_user(client):
    app.dependency_overrides[get_login_siwe_use_case] = lambda: FakeLoginUseCase(is_new_user=False)

    response = client.post("/siwe-auth", json={"message": "msg", "signature": "0xsig"})

    assert response.status_code == 200
    assert response.json()["user"]["isNewUser"] is False


def test_siwe_auth_reports_failure_reason(client):
    app.dependency_overrides[get_login_siwe_use_case] = lambda: FakeLoginUseCase(
        error=SiweAuthenticationError("Expired")
    )

    response = client.post("/siwe-auth", json={"message": "msg", "signature": "0xsig"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Expired"}


def test_siwe_auth_malformed_is_400(client):
    app.dependency_overrides[get_login_siwe_use_case] = lambda: FakeLoginUseCase(
        error=MalformedMessageError("Malformed SIWE message.")
    )

    response = client.post("/siwe-auth", json={"message": "msg", "signature": "0xsig"})

    assert response.status_code == 400


def test_missing_body_fields_are_400(client):
    app.dependency_overrides[get_login_siwe_use_case] = lambda: FakeLoginUseCase()

    response = client.post("/siwe-auth", json={"message": "msg"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_credits_requires_bearer_token(client):
    response = client.get("/credits")

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Missing or invalid authorization header."}


def test_credits_overview_for_session_user(client):
    app.dependency_overrides[get_current_session] = _session
    app.dependency_overrides[get_get_credits_use_case] = lambda: FakeCreditsUseCase()

    response = client.get("/credits")

    assert response.status_code == 200
    payload = response.json()
    assert payload["creditLimit"] == 100
    assert payload["usedAmount"] == 40
    assert payload["remainingAmount"] == 60
    assert payload["activePermission"] is None


def test_permissions_for_other_wallet_are_forbidden(client):
    app.dependency_overrides[get_current_session] = _session
    app.dependency_overrides[get_list_permissions_use_case] = lambda: FakeListPermissionsUseCase()

    response = client.get("/permissions", params={"smart_account": "0x" + "b" * 40})

    assert response.status_code == 403


def test_permissions_for_own_wallet(client):
    app.dependency_overrides[get_current_session] = _session
    app.dependency_overrides[get_list_permissions_use_case] = lambda: FakeListPermissionsUseCase()

    response = client.get("/permissions", params={"smart_account": WALLET.upper().replace("0X", "0x")})

    assert response.status_code == 200
    assert response.json() == {"success": True, "permissions": []}


def test_card_webhook_passes_raw_body_and_signature(client):
    webhook = FakeWebhookUseCase(
        outcome=CardWebhookOutcome(status="duplicate", auth_id="auth_1")
    )
    app.dependency_overrides[get_process_card_webhook_use_case] = lambda: webhook

    response = client.post(
        "/card-webhook",
        content=b'{"auth_id": "auth_1"}',
        headers={"x-webhook-signature": "sha256=abc", "content-type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "duplicate"
    assert webhook.commands[0].payload == b'{"auth_id": "auth_1"}'
    assert webhook.commands[0].signature == "sha256=abc"


class LoopRecordingWebhookUseCase(FakeWebhookUseCase):
    def execute(self, command):
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self.on_event_loop = False
        else:
            self.on_event_loop = True
        return super().execute(command)


def test_card_webhook_settles_off_the_event_loop(client):
    webhook = LoopRecordingWebhookUseCase(
        outcome=CardWebhookOutcome(status="completed", auth_id="auth_1", receipt_id="r-1", tx_hash="0xabc")
    )
    app.dependency_overrides[get_process_card_webhook_use_case] = lambda: webhook

    response = client.post("/card-webhook", content=b"{}", headers={"x-webhook-signature": "sig"})

    assert response.status_code == 200
    assert response.json()["message"] == "Charge settled."
    assert webhook.on_event_loop is False


def test_card_webhook_bad_signature_is_401(client):
    app.dependency_overrides[get_process_card_webhook_use_case] = lambda: FakeWebhookUseCase(
        error=WebhookSignatureError("Invalid webhook signature.")
    )

    response = client.post("/card-webhook", content=b"{}")

    assert response.status_code == 401


def test_recurring_sweep_requires_admin_key(client, monkeypatch):
    monkeypatch.setenv("ADMIN_API_KEY", "admin-secret")
    app.dependency_overrides[get_sweep_recurring_credits_use_case] = lambda: FakeSweepUseCase()

    denied = client.post("/process-recurring-credits", headers={"x-admin-key": "wrong"})
    allowed = client.post("/process-recurring-credits", headers={"x-admin-key": "admin-secret"})

    assert denied.status_code == 401
    assert allowed.status_code == 200
    assert allowed.json()["data"] == {"processed": 0, "successful": 0, "errors": [], "results": []}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class ConflictingProfileUseCase:
    def execute(self, command):
        raise WalletAddressConflictError("EOA wallet address is linked to another user.")


def test_profile_update_with_taken_eoa_is_409(client):
    app.dependency_overrides[get_current_session] = _session
    app.dependency_overrides[get_update_user_profile_use_case] = lambda: ConflictingProfileUseCase()

    response = client.patch("/user-profile", json={"eoa_wallet_address": "0x" + "b" * 40})

    assert response.status_code == 409
    assert response.json() == {"success": False, "error": "EOA wallet address is linked to another user."}


class FakeRewardsSummaryUseCase:
    def execute(self, *, user_id: str) -> RewardsSummary:
        assert user_id == "user-1"
        return RewardsSummary(
            balance=Decimal("2.60"),
            points=0,
            cashback=[
                CashbackEntry(
                    id="r-1",
                    transaction_id="r-1",
                    amount=Decimal("0.43"),
                    percentage=Decimal("1.0"),
                    merchant="Coffee Shop",
                    earned_at=EXPIRES,
                    status="credited",
                )
            ],
            promos=[],
        )


class FakeCashbackUseCase:
    def __init__(self, *, already_credited: bool = False, error: Exception | None = None):
        self.already_credited = already_credited
        self.error = error
        self.commands = []

    def execute(self, command):
        self.commands.append(command)
        if self.error:
            raise self.error
        return ProcessCashbackOutput(
            transaction_id=command.transaction_id,
            cashback_amount=Decimal("0.43"),
            cashback_percentage=Decimal("1.0"),
            processed_at=EXPIRES,
            status="credited",
            already_credited=self.already_credited,
        )


def test_rewards_summary_for_session_user(client):
    app.dependency_overrides[get_current_session] = _session
    app.dependency_overrides[get_rewards_summary_use_case] = lambda: FakeRewardsSummaryUseCase()

    response = client.get("/rewards")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["balance"] == 2.6
    assert data["points"] == 0
    assert data["cashback"][0]["transaction_id"] == "r-1"
    assert data["cashback"][0]["amount"] == 0.43
    assert data["promos"] == []


def test_rewards_require_bearer_token(client):
    assert client.get("/rewards").status_code == 401


def test_cashback_accepts_transaction_id_alias(client):
    cashback = FakeCashbackUseCase()
    app.dependency_overrides[get_current_session] = _session
    app.dependency_overrides[get_process_cashback_use_case] = lambda: cashback

    response = client.post("/rewards", json={"action": "cashback", "transactionId": "r-1", "amount": 42.5})

    assert response.status_code == 200
    assert response.json()["message"] == "Cashback processed successfully."
    assert response.json()["data"]["cashback_amount"] == 0.43
    command = cashback.commands[0]
    assert command.user_id == "user-1"
    assert command.transaction_id == "r-1"
    assert command.amount == Decimal("42.5")


def test_repeated_cashback_reports_already_credited(client):
    app.dependency_overrides[get_current_session] = _session
    app.dependency_overrides[get_process_cashback_use_case] = lambda: FakeCashbackUseCase(already_credited=True)

    response = client.post("/rewards", json={"action": "cashback", "transaction_id": "r-1", "amount": 42.5})

    assert response.status_code == 200
    assert response.json()["message"] == "Cashback already credited."


@pytest.mark.parametrize(
    "error, status_code",
    [
        (ValidationError("Invalid rewards action or missing parameters."), 400),
        (ReceiptNotFoundError("Transaction not found or does not belong to user."), 404),
    ],
)
def test_cashback_errors_map_to_status(client, error, status_code):
    app.dependency_overrides[get_current_session] = _session
    app.dependency_overrides[get_process_cashback_use_case] = lambda: FakeCashbackUseCase(error=error)

    response = client.post("/rewards", json={"action": "cashback", "transactionId": "r-9", "amount": 1})

    assert response.status_code == status_code
    assert response.json() == {"success": False, "error": str(error)}
