"""Contracts for verdict sinks.

Audit sinks must be idempotent on the transaction id. Both kinds signal
failure by raising ``SinkError``; the emitter retries and absorbs it.
"""

from typing import Protocol, runtime_checkable

from fraud_scoring.models import AuditRecord, Verdict


@runtime_checkable
class AuditSink(Protocol):
    def store(self, record: AuditRecord) -> None: ...


@runtime_checkable
class AlertSink(Protocol):
    def notify(self, verdict: Verdict) -> None: ...
