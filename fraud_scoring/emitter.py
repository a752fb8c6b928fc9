"""Best-effort asynchronous dispatch of verdicts to external sinks."""

import logging
import queue
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace

from fraud_scoring.config import EmitterConfig
from fraud_scoring.models import AuditRecord, Signal, Transaction, Verdict
from fraud_scoring.sinks.base import AlertSink, AuditSink

logger = logging.getLogger(__name__)

_SENTINEL = object()


@dataclass
class EmitterStats:
    """Dispatch counters."""

    queued: int = 0
    dropped: int = 0
    stored: int = 0
    alerted: int = 0
    retries: int = 0
    failures: int = 0


class VerdictEmitter:
    """Queue audit records and deliver them from a background thread.

    ``emit`` never blocks on sink I/O and never raises for sink problems:
    each sink call is retried with bounded exponential backoff, and a final
    failure is logged and counted. The decision already made is unaffected.

    Parameters
    ----------
    audit_sinks : Iterable[AuditSink]
        Receive every record.
    alert_sinks : Iterable[AlertSink]
        Receive review/blocked verdicts only.
    config : EmitterConfig | None
        Queue size and retry policy.
    sleep : Callable[[float], None]
        Backoff sleep; replaceable in tests.
    """

    def __init__(
        self,
        audit_sinks: Iterable[AuditSink] = (),
        alert_sinks: Iterable[AlertSink] = (),
        config: EmitterConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.audit_sinks = list(audit_sinks)
        self.alert_sinks = list(alert_sinks)
        self.config = config or EmitterConfig()
        self.stats = EmitterStats()
        self._sleep = sleep
        self._queue: queue.Queue = queue.Queue(maxsize=self.config.queue_size)
        self._stats_lock = threading.Lock()
        self._closed = False
        self._worker = threading.Thread(target=self._run, name="verdict-emitter", daemon=True)
        self._worker.start()

    def emit(self, transaction: Transaction, signals: Iterable[Signal], verdict: Verdict) -> None:
        """Hand a decided verdict over for delivery and return immediately.

        ``signals`` replaces the verdict's signal list in the audit record
        when it differs (e.g. a caller attaching extra diagnostics).
        """
        if self._closed:
            logger.warning("Emitter closed; dropping verdict for %s", verdict.transaction_id)
            self._count("dropped")
            return
        signals = tuple(signals)
        if signals != verdict.signals:
            verdict = replace(verdict, signals=signals)
        record = AuditRecord(verdict=verdict, transaction=transaction)
        try:
            self._queue.put_nowait(record)
        except queue.Full:
            logger.warning("Emitter queue full; dropping verdict for %s", verdict.transaction_id)
            self._count("dropped")
            return
        self._count("queued")

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until everything queued so far has been dispatched.

        Returns False if ``timeout`` elapsed first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._queue.unfinished_tasks:
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(0.005)
        return True

    def close(self, timeout: float | None = 10.0) -> None:
        """Drain the queue and stop the worker."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(_SENTINEL)
        self._worker.join(timeout)
        if self._worker.is_alive():
            logger.warning("Emitter worker still running after %.1fs", timeout or 0)
        logger.info(
            "Verdict emitter closed: stored=%d, alerted=%d, failures=%d, dropped=%d",
            self.stats.stored,
            self.stats.alerted,
            self.stats.failures,
            self.stats.dropped,
        )

    # --- Worker ---

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _SENTINEL:
                    return
                self._dispatch(item)
            finally:
                self._queue.task_done()

    def _dispatch(self, record: AuditRecord) -> None:
        for sink in self.audit_sinks:
            if self._deliver(sink, "store", record):
                self._count("stored")
        if record.verdict.decision.requires_alert:
            for sink in self.alert_sinks:
                if self._deliver(sink, "notify", record.verdict):
                    self._count("alerted")

    def _deliver(self, sink: object, method: str, payload: object) -> bool:
        """Call ``sink.method(payload)`` with retries; never raises."""
        cfg = self.config
        sink_name = type(sink).__name__
        transaction_id = getattr(payload, "transaction_id", "?")
        for attempt in range(cfg.max_retries + 1):
            try:
                getattr(sink, method)(payload)
                return True
            except Exception as exc:
                if attempt >= cfg.max_retries:
                    logger.error(
                        "%s.%s failed for %s after %d attempt(s): %s",
                        sink_name,
                        method,
                        transaction_id,
                        attempt + 1,
                        exc,
                        extra={"transaction_id": transaction_id, "sink": sink_name},
                    )
                    self._count("failures")
                    return False
                delay = min(cfg.max_backoff_seconds, cfg.backoff_seconds * (2**attempt))
                logger.warning(
                    "%s.%s failed for %s (attempt %d), retrying in %.3fs: %s",
                    sink_name,
                    method,
                    transaction_id,
                    attempt + 1,
                    delay,
                    exc,
                )
                self._count("retries")
                self._sleep(delay)
        return False

    def _count(self, name: str) -> None:
        with self._stats_lock:
            setattr(self.stats, name, getattr(self.stats, name) + 1)
