"""Pytest configuration and fixtures."""

from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytest

from fraud_scoring.config import EngineConfig
from fraud_scoring.emitter import VerdictEmitter
from fraud_scoring.engine import FraudScoringEngine
from fraud_scoring.evaluators import InMemoryMerchantRegistry
from fraud_scoring.models import Location, PaymentMethod, Transaction
from fraud_scoring.sinks import InMemoryAlertSink, InMemoryAuditSink

NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)

NEW_YORK = Location(latitude=40.7128, longitude=-74.0060, place="New York")
LOS_ANGELES = Location(latitude=34.0522, longitude=-118.2437, place="Los Angeles")


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def now() -> datetime:
    """Fixed "current" time."""
    return NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Clock frozen at ``NOW``."""
    return lambda: NOW


@pytest.fixture
def make_tx() -> Callable[..., Transaction]:
    """Factory for normalized transactions with sensible defaults."""
    counter = iter(range(1, 1_000_000))

    def factory(
        user_id: str = "user-001",
        amount: str | Decimal = "50.00",
        at: datetime | None = None,
        minutes_ago: float | None = None,
        transaction_id: str | None = None,
        location: Location | None = NEW_YORK,
        device: str | None = "device-a",
        ip: str | None = "10.0.0.1",
        merchant_id: str | None = "m-grocer",
    ) -> Transaction:
        if at is None:
            at = NOW - timedelta(minutes=minutes_ago or 0)
        return Transaction(
            transaction_id=transaction_id or f"tx-{next(counter):04d}",
            user_id=user_id,
            amount=Decimal(str(amount)),
            currency="USD",
            timestamp=at,
            location=location,
            payment_method=PaymentMethod.CREDIT_CARD,
            device_fingerprint=device,
            merchant_id=merchant_id,
            ip=ip,
        )

    return factory


@pytest.fixture
def raw_event() -> dict[str, Any]:
    """A well-formed raw event as received from upstream."""
    return {
        "id": "tx-raw-001",
        "userId": "user-001",
        "amount": "125.50",
        "currency": "usd",
        "timestamp": "2026-03-02T11:58:00Z",
        "location": {"lat": 40.7128, "lon": -74.0060, "place": "New York"},
        "paymentMethod": "credit_card",
        "deviceFingerprint": "device-a",
        "merchantId": "m-grocer",
        "ip": "10.0.0.1",
    }


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def alert_sink() -> InMemoryAlertSink:
    return InMemoryAlertSink()


@pytest.fixture
def merchants() -> InMemoryMerchantRegistry:
    return InMemoryMerchantRegistry({"m-grocer": 0.05, "m-casino": 0.9})


@pytest.fixture
def engine(
    clock: Callable[[], datetime],
    audit_sink: InMemoryAuditSink,
    alert_sink: InMemoryAlertSink,
    merchants: InMemoryMerchantRegistry,
) -> Iterator[FraudScoringEngine]:
    """Engine with default config, in-memory sinks and a frozen clock."""
    config = EngineConfig()
    emitter = VerdictEmitter([audit_sink], [alert_sink], config.emitter, sleep=lambda _: None)
    scoring_engine = FraudScoringEngine(config, emitter=emitter, merchants=merchants, clock=clock)
    yield scoring_engine
    scoring_engine.close()
