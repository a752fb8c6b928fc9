"""Signal model produced by evaluators."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Signal:
    """Bounded, explainable output of a single fraud check.

    ``value`` is clamped to [0, 1] at construction. ``degraded`` marks a
    neutral value substituted because the evaluator timed out or failed.
    """

    name: str
    value: float
    rationale: str
    degraded: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", min(1.0, max(0.0, float(self.value))))

    @classmethod
    def neutral(cls, name: str, rationale: str, degraded: bool = False) -> "Signal":
        """Fail-closed signal: no evidence of fraud."""
        return cls(name=name, value=0.0, rationale=rationale, degraded=degraded)
