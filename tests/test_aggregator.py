"""Tests for ScoringAggregator."""

import random

import pytest

from fraud_scoring.config import ThresholdConfig
from fraud_scoring.exceptions import ConfigurationError
from fraud_scoring.models import Decision, Signal
from fraud_scoring.scoring import ScoringAggregator


def _signals(**values: float) -> list[Signal]:
    return [Signal(name, value, "test") for name, value in values.items()]


class TestScoringModes:
    """Tests for the aggregation modes."""

    def test_weighted_mean(self) -> None:
        aggregator = ScoringAggregator(
            ThresholdConfig(aggregation="weighted_mean"), weights={"velocity": 3.0, "geo_distance": 1.0}
        )

        assert aggregator.score(_signals(velocity=1.0, geo_distance=0.0)) == 0.75

    def test_default_weights_are_equal(self) -> None:
        aggregator = ScoringAggregator(ThresholdConfig(aggregation="weighted_mean"))

        assert aggregator.score(_signals(a=1.0, b=0.0, c=0.5, d=0.5)) == 0.5

    def test_zero_weight_ignored(self) -> None:
        aggregator = ScoringAggregator(ThresholdConfig(aggregation="weighted_mean"), weights={"noisy": 0.0})

        assert aggregator.score(_signals(noisy=1.0, calm=0.2)) == 0.2

    def test_max(self) -> None:
        aggregator = ScoringAggregator(ThresholdConfig(aggregation="max"))

        assert aggregator.score(_signals(a=0.1, b=0.9, c=0.3)) == 0.9

    def test_corroborated_single_strong_signal_reviews(self) -> None:
        aggregator = ScoringAggregator()

        score, decision = aggregator.aggregate(_signals(a=1.0, b=0.0, c=0.0, d=0.0, e=0.0))

        assert score == 0.5
        assert decision is Decision.REVIEW

    def test_corroborated_two_strong_signals_block(self) -> None:
        aggregator = ScoringAggregator()

        score, decision = aggregator.aggregate(_signals(a=1.0, b=0.9, c=0.0, d=0.0, e=0.0))

        assert score == 0.95
        assert decision is Decision.BLOCKED

    def test_corroborated_never_below_mean(self) -> None:
        aggregator = ScoringAggregator(weights={"c": 10.0})

        # weighted mean 6.8 / 12 beats the top-2 term (5.0 + 0.9) / 11
        assert aggregator.score(_signals(a=0.9, b=0.9, c=0.5)) == pytest.approx(0.566667)

    def test_corroborated_ignores_lightly_weighted_pair(self) -> None:
        aggregator = ScoringAggregator(
            weights={
                "velocity": 0.01,
                "merchant_risk": 0.01,
                "amount_deviation": 10.0,
                "geo_distance": 10.0,
                "device_novelty": 10.0,
            }
        )
        signals = _signals(
            velocity=1.0, merchant_risk=1.0, amount_deviation=0.0, geo_distance=0.0, device_novelty=0.0
        )

        score, decision = aggregator.aggregate(signals)

        assert score < 0.01
        assert decision is Decision.APPROVED

    def test_corroborated_follows_weight(self) -> None:
        signals = _signals(velocity=1.0, geo_distance=0.9, amount_deviation=0.0, device_novelty=0.0)
        scores = [
            ScoringAggregator(weights={"velocity": weight}).score(signals) for weight in (1.0, 0.5, 0.1)
        ]

        assert scores == sorted(scores, reverse=True)
        assert scores[0] > scores[-1]

    def test_no_signals(self) -> None:
        assert ScoringAggregator().aggregate([]) == (0.0, Decision.APPROVED)

    def test_unknown_mode(self) -> None:
        aggregator = ScoringAggregator(ThresholdConfig(aggregation="median"))

        with pytest.raises(ConfigurationError, match="Unknown aggregation mode"):
            aggregator.score(_signals(a=0.5))


class TestClassification:
    """Threshold boundaries resolve to the higher severity."""

    @pytest.mark.parametrize(
        ("score", "decision"),
        [
            (0.0, Decision.APPROVED),
            (0.399999, Decision.APPROVED),
            (0.4, Decision.REVIEW),
            (0.749999, Decision.REVIEW),
            (0.75, Decision.BLOCKED),
            (1.0, Decision.BLOCKED),
        ],
    )
    def test_default_thresholds(self, score: float, decision: Decision) -> None:
        assert ScoringAggregator().classify(score) is decision

    def test_aggregate_exactly_on_block_threshold(self) -> None:
        aggregator = ScoringAggregator(ThresholdConfig(aggregation="weighted_mean"))

        score, decision = aggregator.aggregate(_signals(a=1.0, b=1.0, c=1.0, d=0.0))

        assert score == 0.75
        assert decision is Decision.BLOCKED

    def test_aggregate_exactly_on_review_threshold(self) -> None:
        aggregator = ScoringAggregator(ThresholdConfig(aggregation="weighted_mean"))

        score, decision = aggregator.aggregate(_signals(a=0.6, b=0.2))

        assert score == 0.4
        assert decision is Decision.REVIEW

    def test_custom_thresholds(self) -> None:
        aggregator = ScoringAggregator(ThresholdConfig(review_threshold=0.2, block_threshold=0.5))

        assert aggregator.classify(0.2) is Decision.REVIEW
        assert aggregator.classify(0.5) is Decision.BLOCKED


class TestDeterminism:
    """Same signals, same result."""

    def test_order_independent(self) -> None:
        aggregator = ScoringAggregator(
            ThresholdConfig(aggregation="weighted_mean"),
            weights={"velocity": 0.7, "amount_deviation": 1.3, "geo_distance": 0.9},
        )
        signals = _signals(velocity=0.1, amount_deviation=0.7, geo_distance=0.2, device_novelty=0.3)
        expected = aggregator.aggregate(signals)
        rng = random.Random(7)

        for _ in range(50):
            shuffled = list(signals)
            rng.shuffle(shuffled)
            assert aggregator.aggregate(shuffled) == expected

    def test_repeated_invocations(self) -> None:
        aggregator = ScoringAggregator()
        signals = _signals(velocity=0.3, amount_deviation=0.61, geo_distance=0.0)

        results = {aggregator.aggregate(signals) for _ in range(100)}

        assert len(results) == 1


class TestValidation:
    """Nonsensical settings are rejected up front."""

    def test_review_above_block(self) -> None:
        with pytest.raises(ConfigurationError, match="must not exceed"):
            ScoringAggregator(ThresholdConfig(review_threshold=0.9, block_threshold=0.5))

    def test_negative_weight(self) -> None:
        with pytest.raises(ConfigurationError, match="must not be negative"):
            ScoringAggregator(weights={"velocity": -1.0})

    def test_weight_of_unlisted(self) -> None:
        assert ScoringAggregator(weights={"velocity": 2.0}).weight_of("geo_distance") == 1.0
