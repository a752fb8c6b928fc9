"""Device fingerprint and IP novelty."""

from fraud_scoring.config import DEVICE_NOVELTY, DeviceConfig
from fraud_scoring.evaluators.base import INSUFFICIENT_HISTORY
from fraud_scoring.models import Signal, Transaction, UserProfile


class DeviceNoveltyEvaluator:
    """1.0 when both device and IP are new to the user, partial when only one is."""

    name = DEVICE_NOVELTY
    timeout: float | None = None

    def __init__(self, config: DeviceConfig | None = None) -> None:
        self.partial_score = (config or DeviceConfig()).partial_score

    def evaluate(self, transaction: Transaction, baseline: UserProfile) -> Signal:
        if baseline.is_empty:
            return Signal.neutral(self.name, INSUFFICIENT_HISTORY)

        unseen: list[str] = []
        present = 0
        if transaction.device_fingerprint:
            present += 1
            if transaction.device_fingerprint not in baseline.devices:
                unseen.append("device")
        if transaction.ip:
            present += 1
            if transaction.ip not in baseline.ips:
                unseen.append("ip")

        if present == 0:
            return Signal.neutral(self.name, "no device or ip on transaction")
        if not unseen:
            return Signal(name=self.name, value=0.0, rationale="known device and ip")

        value = 1.0 if len(unseen) == 2 else self.partial_score
        return Signal(name=self.name, value=value, rationale=f"new {' and '.join(unseen)}")
