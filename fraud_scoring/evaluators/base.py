"""Evaluator contract and registry.

An evaluator is any object with a ``name``, an optional ``timeout`` (seconds)
and an ``evaluate(transaction, baseline) -> Signal`` method. Evaluators must
not mutate shared state; the engine runs them concurrently.
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from fraud_scoring.exceptions import ConfigurationError
from fraud_scoring.models import Signal, Transaction, UserProfile

INSUFFICIENT_HISTORY = "insufficient history"


@runtime_checkable
class SignalEvaluator(Protocol):
    name: str
    timeout: float | None

    def evaluate(self, transaction: Transaction, baseline: UserProfile) -> Signal: ...


class FunctionEvaluator:
    """Adapt a plain function to the evaluator contract."""

    def __init__(
        self,
        name: str,
        fn: Callable[[Transaction, UserProfile], Signal],
        timeout: float | None = None,
    ) -> None:
        self.name = name
        self.timeout = timeout
        self._fn = fn

    def evaluate(self, transaction: Transaction, baseline: UserProfile) -> Signal:
        return self._fn(transaction, baseline)


@dataclass
class RegisteredEvaluator:
    evaluator: SignalEvaluator
    weight: float = 1.0
    enabled: bool = True

    @property
    def name(self) -> str:
        return self.evaluator.name

    @property
    def active(self) -> bool:
        return self.enabled and self.weight > 0


class EvaluatorRegistry:
    """Named evaluators with their aggregation weights."""

    def __init__(self) -> None:
        self._entries: dict[str, RegisteredEvaluator] = {}

    def register(
        self,
        evaluator: SignalEvaluator,
        weight: float = 1.0,
        enabled: bool = True,
        replace: bool = False,
    ) -> None:
        """Add an evaluator.

        Raises
        ------
        ConfigurationError
            If the object does not satisfy the contract, the weight is
            negative, or the name is taken and ``replace`` is False.
        """
        if not isinstance(evaluator, SignalEvaluator):
            raise ConfigurationError(f"{evaluator!r} does not implement evaluate(transaction, baseline)")
        if weight < 0:
            raise ConfigurationError(f"Weight for {evaluator.name} must not be negative, got {weight}")
        if evaluator.name in self._entries and not replace:
            raise ConfigurationError(f"Evaluator {evaluator.name} is already registered")
        self._entries[evaluator.name] = RegisteredEvaluator(evaluator, weight, enabled)

    def unregister(self, name: str) -> None:
        self._entries.pop(name, None)

    def get(self, name: str) -> RegisteredEvaluator | None:
        return self._entries.get(name)

    def active(self) -> list[RegisteredEvaluator]:
        """Enabled evaluators with a positive weight, in registration order."""
        return [entry for entry in self._entries.values() if entry.active]

    def weights(self) -> dict[str, float]:
        return {entry.name: entry.weight for entry in self.active()}

    def names(self) -> list[str]:
        return list(self._entries)

    def __iter__(self) -> Iterator[RegisteredEvaluator]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries
