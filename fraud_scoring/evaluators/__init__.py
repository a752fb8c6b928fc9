"""Fraud signal evaluators and their registry."""

from fraud_scoring.config import EngineConfig
from fraud_scoring.evaluators.amount import AmountDeviationEvaluator
from fraud_scoring.evaluators.base import (
    INSUFFICIENT_HISTORY,
    EvaluatorRegistry,
    FunctionEvaluator,
    RegisteredEvaluator,
    SignalEvaluator,
)
from fraud_scoring.evaluators.device import DeviceNoveltyEvaluator
from fraud_scoring.evaluators.geo import GeoDistanceEvaluator, haversine_km
from fraud_scoring.evaluators.merchant import (
    InMemoryMerchantRegistry,
    MerchantRiskEvaluator,
    MerchantRiskRegistry,
)
from fraud_scoring.evaluators.model import ModelFn, ModelScoreEvaluator
from fraud_scoring.evaluators.velocity import VelocityEvaluator


def build_registry(
    config: EngineConfig,
    merchants: MerchantRiskRegistry | None = None,
    model: ModelFn | None = None,
) -> EvaluatorRegistry:
    """Register the built-in evaluators with weights from ``config``.

    The merchant evaluator uses an empty registry when none is given; the
    model evaluator is only registered when a model is supplied.
    """
    evaluators: list[SignalEvaluator] = [
        VelocityEvaluator(config.velocity),
        AmountDeviationEvaluator(config.amount_deviation),
        GeoDistanceEvaluator(config.geo),
        DeviceNoveltyEvaluator(config.device),
        MerchantRiskEvaluator(merchants or InMemoryMerchantRegistry(), config.merchant),
    ]
    if model is not None:
        evaluators.append(ModelScoreEvaluator(model, config.model))

    registry = EvaluatorRegistry()
    for evaluator in evaluators:
        settings = config.settings_for(evaluator.name)
        registry.register(evaluator, weight=settings.weight, enabled=settings.enabled)
    return registry


__all__ = [
    "INSUFFICIENT_HISTORY",
    "AmountDeviationEvaluator",
    "DeviceNoveltyEvaluator",
    "EvaluatorRegistry",
    "FunctionEvaluator",
    "GeoDistanceEvaluator",
    "InMemoryMerchantRegistry",
    "MerchantRiskEvaluator",
    "MerchantRiskRegistry",
    "ModelFn",
    "ModelScoreEvaluator",
    "RegisteredEvaluator",
    "SignalEvaluator",
    "VelocityEvaluator",
    "build_registry",
    "haversine_km",
]
