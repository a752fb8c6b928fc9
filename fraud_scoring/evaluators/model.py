"""External model inference behind the evaluator contract."""

import math
from collections.abc import Callable

from fraud_scoring.config import MODEL_SCORE, ModelConfig
from fraud_scoring.exceptions import EvaluatorUnavailableError
from fraud_scoring.models import Signal, Transaction, UserProfile

ModelFn = Callable[[Transaction, UserProfile], float]


class ModelScoreEvaluator:
    """Wrap an opaque scoring callable (e.g. a model-serving client).

    The callable returns a fraud probability; failures surface as
    ``EvaluatorUnavailableError`` so the engine substitutes a neutral signal.
    """

    name = MODEL_SCORE

    def __init__(self, model: ModelFn, config: ModelConfig | None = None, label: str = "model") -> None:
        self.model = model
        self.label = label
        self.timeout: float | None = (config or ModelConfig()).timeout_seconds

    def evaluate(self, transaction: Transaction, baseline: UserProfile) -> Signal:
        try:
            score = float(self.model(transaction, baseline))
        except Exception as exc:
            raise EvaluatorUnavailableError(f"{self.label} inference failed: {exc}") from exc
        if math.isnan(score):
            raise EvaluatorUnavailableError(f"{self.label} returned NaN")
        return Signal(name=self.name, value=score, rationale=f"{self.label} score {score:.3f}")
