from __future__ import annotations

import json
import random
from decimal import Decimal

import httpx
import pytest

from pagent.application.dto.settlement import SpendRequest
from pagent.domain.exceptions import ChargeExecutionError
from pagent.infrastructure.clients import spend_executor
from pagent.infrastructure.clients.spend_executor import RelayerSpendExecutor, SimulatedSpendExecutor


def _request() -> SpendRequest:
    return SpendRequest(
        permission_id="perm-1",
        user_id="user-1",
        token_address="0xtoken",
        spender_address="0xspender",
        permission_signature="0xsig",
        amount=Decimal("12.50"),
        auth_id="auth_1",
        merchant="Coffee Shop",
    )


def _patch_transport(monkeypatch: pytest.MonkeyPatch, handler) -> None:
    real_client = httpx.Client

    def _client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(spend_executor.httpx, "Client", _client)


def test_simulated_spend_returns_synthetic_receipt():
    result = SimulatedSpendExecutor(rng=random.Random(7)).execute_spend(request=_request())

    assert result.tx_hash.startswith("0x")
    assert len(result.tx_hash) == 66
    assert result.gas_used == 150000
    assert 18_000_000 <= result.block_number < 19_000_000


def test_relayer_posts_spend_and_reads_receipt(monkeypatch: pytest.MonkeyPatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"tx_hash": "0xabc", "gas_used": "21000", "block_number": 5})

    _patch_transport(monkeypatch, handler)

    result = RelayerSpendExecutor(
        relayer_url="https://relayer.test/spend", timeout_seconds=5, api_key="k"
    ).execute_spend(request=_request())

    assert result.tx_hash == "0xabc"
    assert result.gas_used == 21000
    assert result.block_number == 5
    assert seen["auth"] == "Bearer k"
    assert seen["body"]["amount"] == "12.50"
    assert seen["body"]["permission_id"] == "perm-1"


def test_relayer_http_error_is_charge_error(monkeypatch: pytest.MonkeyPatch):
    _patch_transport(monkeypatch, lambda request: httpx.Response(502, json={"error": "bad gateway"}))

    with pytest.raises(ChargeExecutionError):
        RelayerSpendExecutor(relayer_url="https://relayer.test/spend", timeout_seconds=5).execute_spend(
            request=_request()
        )


def test_relayer_without_tx_hash_is_charge_error(monkeypatch: pytest.MonkeyPatch):
    _patch_transport(monkeypatch, lambda request: httpx.Response(200, json={"error": "insufficient allowance"}))

    with pytest.raises(ChargeExecutionError, match="insufficient allowance"):
        RelayerSpendExecutor(relayer_url="https://relayer.test/spend", timeout_seconds=5).execute_spend(
            request=_request()
        )


@pytest.mark.parametrize("body", [["0xabc"], "0xabc", 42, None])
def test_relayer_non_object_response_is_charge_error(monkeypatch: pytest.MonkeyPatch, body):
    _patch_transport(monkeypatch, lambda request: httpx.Response(200, json=body))

    with pytest.raises(ChargeExecutionError, match="unexpected response"):
        RelayerSpendExecutor(relayer_url="https://relayer.test/spend", timeout_seconds=5).execute_spend(
            request=_request()
        )
