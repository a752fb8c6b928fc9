"""Amount deviation from the user's spending baseline."""

from fraud_scoring.config import AMOUNT_DEVIATION, AmountDeviationConfig
from fraud_scoring.evaluators.base import INSUFFICIENT_HISTORY
from fraud_scoring.models import Signal, Transaction, UserProfile


class AmountDeviationEvaluator:
    """Saturating function of the amount's z-score.

    Only spending above the mean counts. The standard deviation is floored
    at ``min_std_ratio * mean`` so a perfectly regular history still yields a
    finite z-score.
    """

    name = AMOUNT_DEVIATION
    timeout: float | None = None

    def __init__(self, config: AmountDeviationConfig | None = None) -> None:
        self.config = config or AmountDeviationConfig()

    def evaluate(self, transaction: Transaction, baseline: UserProfile) -> Signal:
        cfg = self.config
        if baseline.size < cfg.min_history:
            return Signal.neutral(self.name, INSUFFICIENT_HISTORY)

        mean = baseline.mean_amount
        std = max(baseline.std_amount, mean * cfg.min_std_ratio)
        if std <= 0:
            return Signal.neutral(self.name, "no spending variability to compare against")

        amount = float(transaction.amount)
        z = (amount - mean) / std
        if z <= cfg.z_low:
            value = 0.0
        elif z >= cfg.z_high:
            value = 1.0
        else:
            value = (z - cfg.z_low) / (cfg.z_high - cfg.z_low)

        return Signal(
            name=self.name,
            value=value,
            rationale=f"amount {amount:.2f} is {z:.2f} std from mean {mean:.2f} (std {std:.2f})",
        )
