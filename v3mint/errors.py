"""
Ошибки движка минта.

- RangeError: тик / операнд вне допустимых границ (фатально, планирование прерывается)
- InvariantViolation: нарушен инвариант, которого не должно быть (логическая ошибка)
- UnavailableError: ChainStateReader не смог получить состояние пула
- StaleStateError: финальное наблюдение (O2) получить не удалось
- SubmissionFailure: отправка mint не удалась, причина передаётся как есть
"""

from typing import Optional


class V3MintError(Exception):
    """Base class for all engine errors."""


class RangeError(V3MintError, ValueError):
    """Tick, sqrt price, amount or intermediate value is out of bounds."""


class InvariantViolation(V3MintError, AssertionError):
    """A computed value broke an invariant that the code guarantees."""


class UnavailableError(V3MintError):
    """Pool state could not be read (RPC / connectivity failure)."""


class StaleStateError(V3MintError):
    """The pre-submission observation could not be obtained."""


class SubmissionFailure(V3MintError):
    """
    Mint submission failed.

    The reason is the submitter's opaque string, kept verbatim. Drift and
    final slippage are attached so the caller can decide whether to start a
    new planning cycle.
    """

    def __init__(
        self,
        reason: str,
        drift: int,
        final_slippage: float,
        mint_request=None,
        tx_hash: Optional[str] = None
    ):
        super().__init__(reason)
        self.reason = reason
        self.drift = drift
        self.final_slippage = final_slippage
        self.mint_request = mint_request
        self.tx_hash = tx_hash

    def __str__(self):
        return (
            f"Mint submission failed: {self.reason} "
            f"(drift={self.drift} ticks, slippage={self.final_slippage}%)"
        )
