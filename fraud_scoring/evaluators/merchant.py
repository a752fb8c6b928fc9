"""Merchant risk lookup."""

import logging
import threading
from typing import Protocol

from fraud_scoring.config import MERCHANT_RISK, MerchantConfig
from fraud_scoring.exceptions import EvaluatorUnavailableError
from fraud_scoring.models import Signal, Transaction, UserProfile

logger = logging.getLogger(__name__)


class MerchantRiskRegistry(Protocol):
    """External source of merchant risk scores in [0, 1]."""

    def risk_for(self, merchant_id: str) -> float | None: ...


class InMemoryMerchantRegistry:
    """Thread-safe merchant risk table."""

    def __init__(self, risks: dict[str, float] | None = None) -> None:
        self._lock = threading.Lock()
        self._risks: dict[str, float] = {}
        for merchant_id, risk in (risks or {}).items():
            self.set_risk(merchant_id, risk)

    def set_risk(self, merchant_id: str, risk: float) -> None:
        if not 0.0 <= risk <= 1.0:
            raise ValueError(f"Risk for {merchant_id} must be within [0, 1], got {risk}")
        with self._lock:
            self._risks[merchant_id] = risk

    def risk_for(self, merchant_id: str) -> float | None:
        with self._lock:
            return self._risks.get(merchant_id)

    def __len__(self) -> int:
        return len(self._risks)


class MerchantRiskEvaluator:
    """Signal equal to the registry's risk for the merchant.

    Merchants the registry does not know are neutral. The lookup is bounded
    by ``timeout``, enforced by the engine.
    """

    name = MERCHANT_RISK

    def __init__(self, registry: MerchantRiskRegistry, config: MerchantConfig | None = None) -> None:
        self.registry = registry
        self.timeout: float | None = (config or MerchantConfig()).lookup_timeout_seconds

    def evaluate(self, transaction: Transaction, baseline: UserProfile) -> Signal:
        if not transaction.merchant_id:
            return Signal.neutral(self.name, "no merchant on transaction")

        try:
            risk = self.registry.risk_for(transaction.merchant_id)
        except Exception as exc:
            raise EvaluatorUnavailableError(
                f"merchant registry lookup failed for {transaction.merchant_id}: {exc}"
            ) from exc

        if risk is None:
            return Signal.neutral(self.name, f"merchant {transaction.merchant_id} not in risk registry")
        return Signal(
            name=self.name,
            value=risk,
            rationale=f"merchant {transaction.merchant_id} risk {risk:.2f}",
        )
