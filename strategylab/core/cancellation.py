"""Cooperative cancellation for long-running backtests and optimizations."""

import threading

from strategylab.exceptions import BacktestCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag.

    The simulation loop calls raise_if_cancelled() once per simulated day;
    any thread may call cancel().
    """

    def __init__(self):
        self._event = threading.Event()
        self._reason = "Backtest cancelled"

    def cancel(self, reason: str = "Backtest cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise BacktestCancelledError(self._reason)
