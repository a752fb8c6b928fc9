"""Combine evaluator signals into a fraud score and decision."""

from collections.abc import Iterable, Mapping

from fraud_scoring.config import ThresholdConfig
from fraud_scoring.exceptions import ConfigurationError
from fraud_scoring.models import Decision, Signal

SCORE_PRECISION = 6


class ScoringAggregator:
    """Deterministic score aggregation.

    Aggregation modes:

    - ``weighted_mean``: sum(w * v) / sum(w).
    - ``max``: the strongest signal.
    - ``corroborated``: the larger of the weighted mean and the
      ``corroboration_k`` largest weighted contributions (w * v) measured
      against the ``corroboration_k`` largest weights. Two strong
      signals agreeing outweigh a battery of quiet ones; a lightly weighted
      evaluator cannot force a decision on its own.

    Signals are processed in name order and the score is rounded, so the
    same set of signals always yields the same score regardless of the order
    evaluators finished in.

    Parameters
    ----------
    thresholds : ThresholdConfig | None
        Decision thresholds and aggregation mode.
    weights : Mapping[str, float] | None
        Per-evaluator weights; evaluators not listed weigh 1.0.
    """

    def __init__(
        self,
        thresholds: ThresholdConfig | None = None,
        weights: Mapping[str, float] | None = None,
    ) -> None:
        self.thresholds = thresholds or ThresholdConfig()
        self.weights = dict(weights or {})
        if self.thresholds.review_threshold > self.thresholds.block_threshold:
            raise ConfigurationError("review_threshold must not exceed block_threshold")
        if any(w < 0 for w in self.weights.values()):
            raise ConfigurationError("weights must not be negative")

    def weight_of(self, name: str) -> float:
        return self.weights.get(name, 1.0)

    def score(self, signals: Iterable[Signal]) -> float:
        weighted = [
            (s.value, self.weight_of(s.name))
            for s in sorted(signals, key=lambda s: (s.name, s.value))
            if self.weight_of(s.name) > 0
        ]
        if not weighted:
            return 0.0

        total_weight = sum(w for _, w in weighted)
        mean = sum(v * w for v, w in weighted) / total_weight

        mode = self.thresholds.aggregation
        if mode == "weighted_mean":
            score = mean
        elif mode == "max":
            score = max(v for v, _ in weighted)
        elif mode == "corroborated":
            k = self.thresholds.corroboration_k
            strongest = sorted((v * w for v, w in weighted), reverse=True)[:k]
            heaviest = sorted((w for _, w in weighted), reverse=True)[:k]
            score = max(mean, sum(strongest) / sum(heaviest))
        else:
            raise ConfigurationError(f"Unknown aggregation mode {mode!r}")

        return round(min(1.0, max(0.0, score)), SCORE_PRECISION)

    def classify(self, score: float) -> Decision:
        """Map a score to a decision; a score on a threshold takes the higher severity."""
        if score >= self.thresholds.block_threshold:
            return Decision.BLOCKED
        if score >= self.thresholds.review_threshold:
            return Decision.REVIEW
        return Decision.APPROVED

    def aggregate(self, signals: Iterable[Signal]) -> tuple[float, Decision]:
        """Return ``(score, decision)`` for a set of signals."""
        score = self.score(signals)
        return score, self.classify(score)
