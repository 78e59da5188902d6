from __future__ import annotations

import logging
import random
import secrets

import httpx

from pagent.application.dto.settlement import SpendRequest, SpendResult
from pagent.application.ports.spend_executor_port import SpendExecutorPort
from pagent.domain.exceptions import ChargeExecutionError


logger = logging.getLogger(__name__)

SIMULATED_GAS_USED = 150_000


class SimulatedSpendExecutor(SpendExecutorPort):
    """Development executor: returns a synthetic receipt without touching a chain."""

    def __init__(self, *, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    def execute_spend(self, *, request: SpendRequest) -> SpendResult:
        tx_hash = "0x" + secrets.token_hex(32)
        logger.info(
            "spend_executor: simulated spend permission_id=%s amount=%s auth_id=%s",
            request.permission_id,
            request.amount,
            request.auth_id,
        )
        return SpendResult(
            tx_hash=tx_hash,
            gas_used=SIMULATED_GAS_USED,
            block_number=18_000_000 + self._rng.randint(0, 999_999),
        )


class RelayerSpendExecutor(SpendExecutorPort):
    """Posts the spend to a settlement relayer that owns the spender key.

    One attempt per call; redelivery of the card webhook is the retry path.
    """

    def __init__(self, *, relayer_url: str, timeout_seconds: float, api_key: str | None = None):
        self._relayer_url = relayer_url
        self._timeout_seconds = timeout_seconds
        self._api_key = api_key

    def execute_spend(self, *, request: SpendRequest) -> SpendResult:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        body = {
            "permission_id": request.permission_id,
            "user_id": request.user_id,
            "token_address": request.token_address,
            "spender_address": request.spender_address,
            "permission_signature": request.permission_signature,
            "amount": str(request.amount),
            "auth_id": request.auth_id,
            "merchant": request.merchant,
        }
        try:
            with httpx.Client(timeout=self._timeout_seconds) as client:
                response = client.post(self._relayer_url, json=body, headers=headers)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "spend_executor: relayer call failed auth_id=%s error=%s",
                request.auth_id,
                exc.__class__.__name__,
            )
            raise ChargeExecutionError(f"Relayer call failed: {exc.__class__.__name__}") from exc

        if not isinstance(payload, dict):
            logger.warning("spend_executor: relayer returned non-object auth_id=%s", request.auth_id)
            raise ChargeExecutionError("Relayer returned an unexpected response.")

        tx_hash = payload.get("tx_hash") or payload.get("transactionHash")
        if not tx_hash:
            raise ChargeExecutionError(payload.get("error") or "Relayer returned no transaction hash.")

        return SpendResult(
            tx_hash=str(tx_hash),
            gas_used=_as_int(payload.get("gas_used")),
            block_number=_as_int(payload.get("block_number")),
        )


def _as_int(value) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
