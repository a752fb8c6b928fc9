"""In-memory sinks for tests and local runs."""

import threading

from fraud_scoring.models import AuditRecord, Verdict


class InMemoryAuditSink:
    """Audit records keyed by transaction id; re-storing is a no-op."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.records: dict[str, AuditRecord] = {}
        self.duplicates = 0

    def store(self, record: AuditRecord) -> None:
        with self._lock:
            if record.transaction_id in self.records:
                self.duplicates += 1
                return
            self.records[record.transaction_id] = record

    def get(self, transaction_id: str) -> AuditRecord | None:
        return self.records.get(transaction_id)

    def __len__(self) -> int:
        return len(self.records)


class InMemoryAlertSink:
    """Collects alerted verdicts in arrival order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.alerts: list[Verdict] = []

    def notify(self, verdict: Verdict) -> None:
        with self._lock:
            self.alerts.append(verdict)

    def __len__(self) -> int:
        return len(self.alerts)
