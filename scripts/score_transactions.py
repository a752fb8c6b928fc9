#!/usr/bin/env python3
"""Score transaction events and write the audit trail.

Reads raw events from a JSON Lines file, or simulates traffic, runs them
through the scoring engine and prints a decision summary.

Usage:
    python scripts/score_transactions.py --simulate --users 200 --fraud-rate 0.1
    python scripts/score_transactions.py --input events.jsonl --audit-out output/audit.jsonl
    python scripts/score_transactions.py --simulate --kafka localhost:9092
"""

import argparse
import json
import sys
import time
from collections import Counter
from pathlib import Path
from typing import Any

from fraud_scoring.config import EngineConfig
from fraud_scoring.emitter import VerdictEmitter
from fraud_scoring.engine import FraudScoringEngine, Rejection
from fraud_scoring.evaluators import InMemoryMerchantRegistry
from fraud_scoring.exceptions import FraudScoringError
from fraud_scoring.logging import get_logger, setup_logging
from fraud_scoring.simulation import TrafficSimulator
from fraud_scoring.sinks import ConsoleAlertSink, JsonlAuditSink, KafkaAlertSink, PostgresAuditSink

logger = get_logger(__name__)


def load_events(path: Path) -> list[dict[str, Any]]:
    """Read one JSON object per line, skipping blank lines."""
    events = []
    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise SystemExit(f"{path}:{line_no}: invalid JSON ({exc})") from exc
    return events


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Score transactions for fraud")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", type=Path, help="JSON Lines file of raw events")
    source.add_argument("--simulate", action="store_true", help="Score simulated traffic")
    parser.add_argument("--users", type=int, default=100, help="Simulated users (default: 100)")
    parser.add_argument("--events-per-user", type=int, default=20, help="Legitimate events per user (default: 20)")
    parser.add_argument("--fraud-rate", type=float, default=0.05, help="Share of users with fraud (default: 0.05)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--config", type=Path, help="JSON engine configuration (default: environment)")
    parser.add_argument(
        "--audit-out",
        type=Path,
        default=Path("output/audit.jsonl"),
        help="Audit JSON Lines file (default: output/audit.jsonl)",
    )
    parser.add_argument("--postgres", help="PostgreSQL connection string for the audit table")
    parser.add_argument("--kafka", help="Kafka bootstrap servers for alerts")
    parser.add_argument("--console-alerts", action="store_true", help="Print alerts to stdout")
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")
    parser.add_argument("--log-format", choices=["standard", "json"], default="standard")
    return parser.parse_args(argv)


def build_config(path: Path | None) -> EngineConfig:
    if path is None:
        return EngineConfig.from_env()
    with open(path, encoding="utf-8") as f:
        return EngineConfig.from_dict(json.load(f))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_format)

    try:
        config = build_config(args.config)
        config.validate()
    except FraudScoringError as exc:
        logger.error("%s", exc)
        return 2

    labels: dict[str, str | None] = {}
    merchants = InMemoryMerchantRegistry()
    if args.simulate:
        simulator = TrafficSimulator(num_users=args.users, seed=args.seed)
        simulated = simulator.generate(args.events_per_user, args.fraud_rate)
        events = [e.raw for e in simulated]
        labels = {e.raw["id"]: e.pattern for e in simulated}
        for merchant_id, risk in simulator.merchant_risks().items():
            merchants.set_risk(merchant_id, risk)
    else:
        events = load_events(args.input)

    audit_sinks: list[Any] = [JsonlAuditSink(args.audit_out)]
    alert_sinks: list[Any] = []
    if args.postgres:
        audit_sinks.append(PostgresAuditSink(args.postgres))
    if args.kafka:
        config.kafka.bootstrap_servers = args.kafka
        alert_sinks.append(KafkaAlertSink(config.kafka))
    if args.console_alerts:
        alert_sinks.append(ConsoleAlertSink())

    emitter = VerdictEmitter(audit_sinks, alert_sinks, config.emitter)
    start = time.perf_counter()
    with FraudScoringEngine(config, emitter=emitter, merchants=merchants) as engine:
        results = engine.score_batch(events)
    elapsed = time.perf_counter() - start

    for sink in audit_sinks + alert_sinks:
        close = getattr(sink, "close", None)
        if close is not None:
            close()

    decisions = Counter(
        "REJECTED" if isinstance(r, Rejection) else r.decision.value for r in results
    )
    print(f"\n{'=' * 60}")
    print(f"Scored {len(results)} events in {elapsed:.2f}s ({len(results) / max(elapsed, 1e-9):.0f}/sec)")
    print("=" * 60)
    for decision, count in sorted(decisions.items()):
        print(f"  {decision}: {count}")

    if labels:
        flagged = {r.transaction_id for r in results if not isinstance(r, Rejection) and r.decision.requires_alert}
        fraud_ids = {tx_id for tx_id, pattern in labels.items() if pattern}
        caught = len(flagged & fraud_ids)
        print(f"\nInjected fraud caught: {caught}/{len(fraud_ids)}")
        print(f"False alerts: {len(flagged - fraud_ids)}")
        by_pattern = Counter(labels[tx_id] for tx_id in flagged & fraud_ids)
        for pattern, count in sorted(by_pattern.items()):
            print(f"  {pattern}: {count}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
