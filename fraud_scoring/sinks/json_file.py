"""JSON Lines audit sink."""

import json
import threading
from pathlib import Path

from fraud_scoring.exceptions import SinkError
from fraud_scoring.models import AuditRecord
from fraud_scoring.sinks.serialization import to_json


class JsonlAuditSink:
    """Append audit records to a JSON Lines file, once per transaction id.

    Ids already present in the file are loaded on open so that restarts do
    not duplicate records.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize JSON Lines sink.

        Parameters
        ----------
        path : str | Path
            File to append to; parent directories are created.
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._ids: set[str] = self._load_ids()
        self._count = 0

    def _load_ids(self) -> set[str]:
        if not self.path.exists():
            return set()
        ids = set()
        with open(self.path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    ids.add(json.loads(line)["transaction_id"])
                except (json.JSONDecodeError, KeyError, TypeError) as exc:
                    raise SinkError(f"Corrupt audit file {self.path}: {exc}") from exc
        return ids

    def store(self, record: AuditRecord) -> None:
        """Append ``record`` unless its transaction id was already written."""
        with self._lock:
            if record.transaction_id in self._ids:
                return
            line = to_json(record)
            try:
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as exc:
                raise SinkError(f"Cannot write audit record to {self.path}: {exc}") from exc
            self._ids.add(record.transaction_id)
            self._count += 1

    def __len__(self) -> int:
        return len(self._ids)

    def close(self) -> None:
        """Print summary."""
        print(f"Audit records written to: {self.path} ({self._count} new, {len(self._ids)} total)")
