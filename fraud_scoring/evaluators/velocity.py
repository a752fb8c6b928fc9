"""Burst of high-value transactions."""

from datetime import timedelta
from decimal import Decimal

from fraud_scoring.config import VELOCITY, VelocityConfig
from fraud_scoring.evaluators.base import INSUFFICIENT_HISTORY
from fraud_scoring.models import Signal, Transaction, UserProfile

# Signal per number of high-value transactions in the window
VELOCITY_STEPS = {0: 0.0, 1: 0.3, 2: 0.6}


class VelocityEvaluator:
    """Count high-value transactions in the trailing window.

    The window ends at the current transaction and includes it when it is
    itself high-value. More than two hits saturate the signal.
    """

    name = VELOCITY
    timeout: float | None = None

    def __init__(self, config: VelocityConfig | None = None) -> None:
        config = config or VelocityConfig()
        self.window = timedelta(seconds=config.window_seconds)
        self.threshold = Decimal(str(config.high_value_threshold))

    def evaluate(self, transaction: Transaction, baseline: UserProfile) -> Signal:
        if baseline.is_empty:
            return Signal.neutral(self.name, INSUFFICIENT_HISTORY)

        start = transaction.timestamp - self.window
        count = sum(
            1
            for tx in baseline.transactions
            if start <= tx.timestamp <= transaction.timestamp and tx.amount > self.threshold
        )
        if transaction.amount > self.threshold:
            count += 1

        value = VELOCITY_STEPS.get(count, 1.0)
        seconds = int(self.window.total_seconds())
        return Signal(
            name=self.name,
            value=value,
            rationale=f"{count} transaction(s) above {self.threshold} within {seconds}s",
        )
