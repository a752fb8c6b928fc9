"""Console alert sink for debugging and development."""

from fraud_scoring.models import Verdict
from fraud_scoring.sinks.serialization import to_json, verdict_to_dict


class ConsoleAlertSink:
    """Print review/blocked verdicts to stdout."""

    def __init__(self, pretty: bool = False, show_signals: bool = True) -> None:
        """Initialize console sink.

        Parameters
        ----------
        pretty : bool
            Pretty-print the JSON payload.
        show_signals : bool
            Include per-signal detail.
        """
        self.pretty = pretty
        self.show_signals = show_signals
        self._counts: dict[str, int] = {}

    def notify(self, verdict: Verdict) -> None:
        data = verdict_to_dict(verdict)
        if not self.show_signals:
            data.pop("signals")
        print(f"[{verdict.decision.value}] {verdict.transaction_id} user={verdict.user_id} score={verdict.score:.3f}")
        print(to_json(data, pretty=self.pretty))
        key = verdict.decision.value
        self._counts[key] = self._counts.get(key, 0) + 1

    def close(self) -> None:
        """Print summary."""
        print(f"\n{'=' * 60}")
        print("Console Alert Summary")
        print("=" * 60)
        for decision, count in sorted(self._counts.items()):
            print(f"  {decision}: {count} alerts")
