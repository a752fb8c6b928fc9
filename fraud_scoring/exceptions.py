"""Custom exception hierarchy for fraud-scoring."""


class FraudScoringError(Exception):
    """Base exception for all fraud-scoring errors."""


class MalformedInputError(FraudScoringError):
    """Raised when a raw transaction cannot be parsed or validated.

    Parameters
    ----------
    errors : dict[str, str]
        Field name to problem description.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        detail = "; ".join(f"{name}: {problem}" for name, problem in sorted(self.errors.items()))
        super().__init__(f"Malformed transaction ({detail})")


class EvaluatorError(FraudScoringError):
    """Raised when a signal evaluator cannot produce a signal."""


class EvaluatorTimeoutError(EvaluatorError):
    """Raised when an evaluator misses its deadline."""


class EvaluatorUnavailableError(EvaluatorError):
    """Raised when an evaluator's external dependency is unavailable."""


class ConfigurationError(FraudScoringError):
    """Raised when configuration is invalid or missing."""


class SinkError(FraudScoringError):
    """Raised when a sink operation fails."""
