from __future__ import annotations

from typing import Protocol

from pagent.application.dto.settlement import SpendRequest, SpendResult


class SpendExecutorPort(Protocol):
    def execute_spend(self, *, request: SpendRequest) -> SpendResult:
        """Raises ChargeExecutionError when the spend call fails."""
        ...
