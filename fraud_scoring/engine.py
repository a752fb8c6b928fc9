"""Per-transaction scoring pipeline."""

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from fraud_scoring.config import EngineConfig
from fraud_scoring.emitter import VerdictEmitter
from fraud_scoring.evaluators import EvaluatorRegistry, ModelFn, build_registry
from fraud_scoring.evaluators.base import RegisteredEvaluator
from fraud_scoring.evaluators.merchant import MerchantRiskRegistry
from fraud_scoring.exceptions import ConfigurationError, EvaluatorError, MalformedInputError
from fraud_scoring.models import Decision, Signal, Transaction, UserProfile, Verdict
from fraud_scoring.normalizer import EventNormalizer
from fraud_scoring.scoring import ScoringAggregator
from fraud_scoring.store import BehaviorStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rejection:
    """A batch entry that failed normalization."""

    raw: Any
    error: MalformedInputError


@dataclass
class EngineStats:
    """Outcome counters."""

    scored: int = 0
    rejected: int = 0
    degraded: int = 0
    approved: int = 0
    review: int = 0
    blocked: int = 0


class _PendingEvaluation:
    """One evaluator submitted to the pool, recording when it started running."""

    def __init__(
        self,
        entry: RegisteredEvaluator,
        pool: ThreadPoolExecutor,
        transaction: Transaction,
        baseline: UserProfile,
    ) -> None:
        self.entry = entry
        self.started = threading.Event()
        self.started_at = 0.0
        self.future: Future = pool.submit(self._run, transaction, baseline)

    def _run(self, transaction: Transaction, baseline: UserProfile) -> Signal:
        self.started_at = time.monotonic()
        self.started.set()
        return self.entry.evaluator.evaluate(transaction, baseline)


class FraudScoringEngine:
    """Normalize, baseline, evaluate, aggregate and emit.

    For each transaction the engine takes the user's session, snapshots the
    pre-update baseline and records the transaction before releasing it, so
    later transactions of the same user always see earlier ones while no
    transaction ever sees itself. Evaluators then run concurrently on the
    immutable snapshot under the per-transaction deadline; a late or failing
    evaluator contributes its neutral signal flagged as degraded.

    Parameters
    ----------
    config : EngineConfig | None
        Validated on construction.
    registry : EvaluatorRegistry | None
        Defaults to the built-in evaluators weighted per ``config``.
    store : BehaviorStore | None
        Defaults to a store bounded per ``config.window``.
    emitter : VerdictEmitter | None
        Defaults to an emitter with no sinks.
    merchants : MerchantRiskRegistry | None
        Used when building the default registry.
    model : ModelFn | None
        Optional external model, registered as ``model_score``.
    clock : Callable[[], datetime] | None
        Source of "now" for timestamp validation and verdict times.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        registry: EvaluatorRegistry | None = None,
        store: BehaviorStore | None = None,
        emitter: VerdictEmitter | None = None,
        merchants: MerchantRiskRegistry | None = None,
        model: ModelFn | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = (config or EngineConfig()).validate()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.normalizer = EventNormalizer(self.config.max_clock_skew_seconds, clock=self.clock)
        self.store = store or BehaviorStore.from_config(self.config.window)
        self.registry = registry or build_registry(self.config, merchants=merchants, model=model)
        if not self.registry.active():
            raise ConfigurationError("No enabled evaluator with a positive weight")
        self.aggregator = ScoringAggregator(self.config.thresholds, self.registry.weights())
        self.emitter = emitter or VerdictEmitter(config=self.config.emitter)

        self.stats = EngineStats()
        self._since_purge = 0
        self._stats_lock = threading.Lock()
        self._evaluator_pool = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="evaluator"
        )
        self._batch_pool = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="scoring"
        )
        logger.info(
            "Scoring engine ready: evaluators=%s, aggregation=%s, deadline=%.3fs",
            ",".join(self.registry.weights()),
            self.config.thresholds.aggregation,
            self.config.deadline_seconds,
        )

    def __enter__(self) -> "FraudScoringEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- Public API ---

    def score(self, event: Mapping[str, Any] | Transaction) -> Verdict:
        """Score one event.

        Raw mappings are normalized; ``Transaction`` instances are re-checked
        against the same rules.

        Raises
        ------
        MalformedInputError
            If the event is invalid. Nothing is recorded.
        """
        try:
            transaction = self._prepare(event)
        except MalformedInputError as exc:
            self._count("rejected")
            logger.info("Rejected transaction: %s", exc)
            raise
        return self._score(transaction)

    def score_batch(self, events: Iterable[Mapping[str, Any] | Transaction]) -> list[Verdict | Rejection]:
        """Score many events; results line up with the input.

        Users are processed in parallel; each user's events are scored in
        input order.
        """
        events = list(events)
        results: list[Verdict | Rejection | None] = [None] * len(events)
        by_user: dict[str, list[tuple[int, Transaction]]] = {}

        for index, event in enumerate(events):
            try:
                transaction = self._prepare(event)
            except MalformedInputError as exc:
                self._count("rejected")
                logger.info("Rejected transaction at index %d: %s", index, exc)
                results[index] = Rejection(raw=event, error=exc)
                continue
            by_user.setdefault(transaction.user_id, []).append((index, transaction))

        def run(items: list[tuple[int, Transaction]]) -> None:
            for index, transaction in items:
                results[index] = self._score(transaction)

        futures = [self._batch_pool.submit(run, items) for items in by_user.values()]
        for future in futures:
            future.result()

        return results  # type: ignore[return-value]

    def evaluate(self, transaction: Transaction, baseline: UserProfile) -> tuple[Signal, ...]:
        """Run every active evaluator against ``baseline`` within the deadline.

        The overall deadline counts from submission. An evaluator's own
        ``timeout`` counts from when a pool worker starts running it, so time
        spent queued in the pool is not charged to it.
        """
        deadline = time.monotonic() + self.config.deadline_seconds
        pending = [
            _PendingEvaluation(entry, self._evaluator_pool, transaction, baseline)
            for entry in self.registry.active()
        ]

        signals = []
        for run in pending:
            limit = deadline
            timeout = run.entry.evaluator.timeout
            if timeout is not None and run.started.wait(max(0.0, deadline - time.monotonic())):
                limit = min(limit, run.started_at + timeout)
            signals.append(self._collect(run.entry, run.future, limit, transaction))

        if any(s.degraded for s in signals):
            self._count("degraded")
        return tuple(signals)

    def close(self) -> None:
        """Stop worker pools and drain the emitter."""
        self._batch_pool.shutdown(wait=True)
        self._evaluator_pool.shutdown(wait=False, cancel_futures=True)
        self.emitter.close()
        logger.info(
            "Scoring engine closed: scored=%d, rejected=%d, degraded=%d",
            self.stats.scored,
            self.stats.rejected,
            self.stats.degraded,
        )

    # --- Internals ---

    def _prepare(self, event: Mapping[str, Any] | Transaction) -> Transaction:
        if isinstance(event, Transaction):
            return self.normalizer.validate(event)
        return self.normalizer.normalize(event)

    def _score(self, transaction: Transaction) -> Verdict:
        baseline = self._baseline_and_record(transaction)
        signals = self.evaluate(transaction, baseline)
        score, decision = self.aggregator.aggregate(signals)
        verdict = Verdict(
            transaction_id=transaction.transaction_id,
            user_id=transaction.user_id,
            score=score,
            decision=decision,
            signals=signals,
            decided_at=self.clock(),
        )
        self._tally(verdict)
        self.emitter.emit(transaction, signals, verdict)
        self._maybe_purge()
        return verdict

    def _maybe_purge(self) -> None:
        every = self.config.window.purge_every
        if every is None:
            return
        with self._stats_lock:
            self._since_purge += 1
            if self._since_purge < every:
                return
            self._since_purge = 0
        self.store.purge_idle(self.clock())

    def _baseline_and_record(self, transaction: Transaction) -> UserProfile:
        with self.store.session(transaction.user_id) as session:
            baseline = session.baseline
            if not session.record(transaction):
                logger.info(
                    "Transaction %s was already recorded; scoring against history without it",
                    transaction.transaction_id,
                )
                baseline = baseline.excluding(transaction.transaction_id)
        return baseline

    def _collect(
        self,
        entry: RegisteredEvaluator,
        future: Future,
        limit: float,
        transaction: Transaction,
    ) -> Signal:
        name = entry.name
        context = {"transaction_id": transaction.transaction_id, "user_id": transaction.user_id, "evaluator": name}
        try:
            signal = future.result(timeout=max(0.0, limit - time.monotonic()))
        except FutureTimeoutError:
            future.cancel()
            logger.warning("Evaluator %s timed out for %s", name, transaction.transaction_id, extra=context)
            return Signal.neutral(name, "evaluator timed out", degraded=True)
        except EvaluatorError as exc:
            logger.warning("Evaluator %s unavailable for %s: %s", name, transaction.transaction_id, exc, extra=context)
            return Signal.neutral(name, f"evaluator unavailable: {exc}", degraded=True)
        except Exception:
            logger.exception("Evaluator %s failed for %s", name, transaction.transaction_id, extra=context)
            return Signal.neutral(name, "evaluator failed", degraded=True)

        if not isinstance(signal, Signal):
            logger.error("Evaluator %s returned %r instead of a Signal", name, type(signal).__name__)
            return Signal.neutral(name, "evaluator returned no signal", degraded=True)
        if signal.name != name:
            signal = replace(signal, name=name)
        return signal

    def _tally(self, verdict: Verdict) -> None:
        with self._stats_lock:
            self.stats.scored += 1
            if verdict.decision is Decision.BLOCKED:
                self.stats.blocked += 1
            elif verdict.decision is Decision.REVIEW:
                self.stats.review += 1
            else:
                self.stats.approved += 1
        if verdict.decision is not Decision.APPROVED:
            logger.info(
                "%s %s (user %s, score %.3f)",
                verdict.decision.value,
                verdict.transaction_id,
                verdict.user_id,
                verdict.score,
                extra={"transaction_id": verdict.transaction_id, "user_id": verdict.user_id, "decision": verdict.decision.value},
            )

    def _count(self, name: str) -> None:
        with self._stats_lock:
            setattr(self.stats, name, getattr(self.stats, name) + 1)
