"""Verdict and audit record models."""

from dataclasses import dataclass
from datetime import datetime

from fraud_scoring.models.enums import Decision
from fraud_scoring.models.signal import Signal
from fraud_scoring.models.transaction import Transaction


@dataclass(frozen=True)
class Verdict:
    """Final decision for one transaction."""

    transaction_id: str
    user_id: str
    score: float
    decision: Decision
    signals: tuple[Signal, ...]
    decided_at: datetime

    @property
    def degraded_evaluators(self) -> list[str]:
        """Names of evaluators whose signal was substituted."""
        return [s.name for s in self.signals if s.degraded]

    def signal(self, name: str) -> Signal | None:
        for s in self.signals:
            if s.name == name:
                return s
        return None


@dataclass(frozen=True)
class AuditRecord:
    """Unit written to audit sinks: the verdict plus what it was based on."""

    verdict: Verdict
    transaction: Transaction

    @property
    def transaction_id(self) -> str:
        return self.verdict.transaction_id

    @property
    def signals(self) -> tuple[Signal, ...]:
        return self.verdict.signals
