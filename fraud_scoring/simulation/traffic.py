"""Synthetic transaction traffic with labelled fraud patterns."""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterator

from faker import Faker

from fraud_scoring.models import PaymentMethod

logger = logging.getLogger(__name__)


@dataclass
class FraudPattern:
    """Configuration for fraud pattern generation."""

    name: str
    description: str


@dataclass
class SimulatedUser:
    """A cardholder with stable habits."""

    user_id: str
    home_city: str
    latitude: float
    longitude: float
    device_fingerprint: str
    ip: str
    typical_amount: float
    payment_method: PaymentMethod
    merchants: list[str] = field(default_factory=list)


@dataclass
class SimulatedEvent:
    """Raw event plus the fraud pattern it belongs to (None if legitimate)."""

    raw: dict[str, Any]
    pattern: str | None = None

    @property
    def is_fraud(self) -> bool:
        return self.pattern is not None


class TrafficSimulator:
    """Generate raw transaction events for a population of users.

    Legitimate traffic stays near each user's home city, device and typical
    spend. Injected fraud produces the patterns the evaluators look for.
    """

    CITIES: list[tuple[str, float, float]] = [
        ("New York", 40.7128, -74.0060),
        ("Chicago", 41.8781, -87.6298),
        ("London", 51.5074, -0.1278),
        ("Berlin", 52.5200, 13.4050),
        ("Sao Paulo", -23.5505, -46.6333),
        ("Mumbai", 19.0760, 72.8777),
        ("Tokyo", 35.6762, 139.6503),
        ("Sydney", -33.8688, 151.2093),
    ]

    PATTERNS = {
        "velocity": FraudPattern("velocity", "Several high-value transactions within minutes"),
        "amount_anomaly": FraudPattern("amount_anomaly", "Amount far above the user's usual spend"),
        "impossible_travel": FraudPattern("impossible_travel", "Two locations too far apart for the elapsed time"),
        "account_takeover": FraudPattern("account_takeover", "Unknown device and IP with a large amount"),
    }

    PAYMENT_WEIGHTS = {
        PaymentMethod.CREDIT_CARD: 0.45,
        PaymentMethod.DEBIT_CARD: 0.30,
        PaymentMethod.DIGITAL_WALLET: 0.15,
        PaymentMethod.BANK_TRANSFER: 0.10,
    }

    def __init__(
        self,
        num_users: int = 100,
        seed: int | None = None,
        locale: str = "en_US",
        merchants: int = 50,
        risky_merchant_rate: float = 0.1,
    ) -> None:
        """Initialize simulator.

        Parameters
        ----------
        num_users : int
            Number of users to simulate.
        seed : int | None
            Random seed for reproducibility.
        locale : str
            Faker locale.
        merchants : int
            Size of the merchant catalogue.
        risky_merchant_rate : float
            Share of merchants given a high risk score.
        """
        self.fake = Faker(locale)
        self.rng = random.Random(seed)
        if seed is not None:
            self.fake.seed_instance(seed)

        self.merchant_ids = [f"m-{self.fake.unique.bothify('????-####').lower()}" for _ in range(merchants)]
        risky_count = int(merchants * risky_merchant_rate)
        self._merchant_risks = {
            merchant_id: round(self.rng.uniform(0.6, 0.95), 2)
            for merchant_id in self.rng.sample(self.merchant_ids, risky_count)
        }
        self.users = [self._make_user() for _ in range(num_users)]

    def _make_user(self) -> SimulatedUser:
        city, lat, lon = self.rng.choice(self.CITIES)
        methods = list(self.PAYMENT_WEIGHTS)
        safe_merchants = [m for m in self.merchant_ids if m not in self._merchant_risks]
        return SimulatedUser(
            user_id=f"user-{self.fake.uuid4()[:12]}",
            home_city=city,
            latitude=lat + self.rng.uniform(-0.1, 0.1),
            longitude=lon + self.rng.uniform(-0.1, 0.1),
            device_fingerprint=self.fake.sha1()[:20],
            ip=self.fake.ipv4_public(),
            typical_amount=round(self.rng.lognormvariate(3.5, 0.6), 2),
            payment_method=self.rng.choices(methods, weights=list(self.PAYMENT_WEIGHTS.values()), k=1)[0],
            merchants=self.rng.sample(safe_merchants, k=min(5, len(safe_merchants))),
        )

    def merchant_risks(self) -> dict[str, float]:
        """Risk table for ``InMemoryMerchantRegistry``."""
        return dict(self._merchant_risks)

    def _event(
        self,
        user: SimulatedUser,
        at: datetime,
        amount: float,
        latitude: float | None = None,
        longitude: float | None = None,
        city: str | None = None,
        device: str | None = None,
        ip: str | None = None,
        merchant_id: str | None = None,
    ) -> dict[str, Any]:
        return {
            "id": f"tx-{self.fake.uuid4()}",
            "userId": user.user_id,
            "amount": str(Decimal(str(round(amount, 2)))),
            "currency": "USD",
            "timestamp": at.isoformat(),
            "location": {
                "lat": round(latitude if latitude is not None else user.latitude, 4),
                "lon": round(longitude if longitude is not None else user.longitude, 4),
                "place": city or user.home_city,
            },
            "paymentMethod": user.payment_method.value,
            "deviceFingerprint": device or user.device_fingerprint,
            "merchantId": merchant_id or self.rng.choice(user.merchants or self.merchant_ids),
            "ip": ip or user.ip,
        }

    def normal_event(self, user: SimulatedUser, at: datetime) -> dict[str, Any]:
        """A legitimate purchase close to the user's habits."""
        amount = max(1.0, self.rng.gauss(user.typical_amount, user.typical_amount * 0.25))
        return self._event(user, at, amount)

    def inject_velocity_burst(
        self,
        user: SimulatedUser,
        at: datetime,
        count: int = 3,
        window_minutes: int = 4,
    ) -> list[dict[str, Any]]:
        """High-value transactions packed into a few minutes."""
        offsets = sorted(self.rng.uniform(0, window_minutes * 60) for _ in range(count))
        return [
            self._event(user, at + timedelta(seconds=offset), self.rng.uniform(1200, 4000))
            for offset in offsets
        ]

    def inject_amount_anomaly(self, user: SimulatedUser, at: datetime, multiplier: float = 50.0) -> dict[str, Any]:
        """A single purchase far above the usual amount."""
        return self._event(user, at, user.typical_amount * multiplier)

    def inject_impossible_travel(self, user: SimulatedUser, at: datetime) -> dict[str, Any]:
        """A purchase in a distant city moments after a local one."""
        far = [c for c in self.CITIES if c[0] != user.home_city]
        city, lat, lon = self.rng.choice(far)
        amount = user.typical_amount * self.rng.uniform(1, 3)
        return self._event(user, at, amount, latitude=lat, longitude=lon, city=city)

    def inject_account_takeover(self, user: SimulatedUser, at: datetime) -> dict[str, Any]:
        """Unknown device and IP spending big at a risky merchant."""
        merchant = self.rng.choice(list(self._merchant_risks) or self.merchant_ids)
        return self._event(
            user,
            at,
            self.rng.uniform(2000, 9000),
            device=self.fake.sha1()[:20],
            ip=self.fake.ipv4_public(),
            merchant_id=merchant,
        )

    def generate(
        self,
        events_per_user: int = 20,
        fraud_rate: float = 0.05,
        end: datetime | None = None,
    ) -> list[SimulatedEvent]:
        """Generate a time-ordered event list ending at ``end`` (default now).

        Parameters
        ----------
        events_per_user : int
            Legitimate events per user.
        fraud_rate : float
            Probability that a user also suffers one fraud pattern.
        end : datetime | None
            Timestamp of the latest event.

        Returns
        -------
        list[SimulatedEvent]
            Events sorted by timestamp.
        """
        end = end or datetime.now(timezone.utc)
        events: list[SimulatedEvent] = []
        fraud_users = 0

        for user in self.users:
            at = end - timedelta(hours=self.rng.uniform(events_per_user, events_per_user * 2))
            for _ in range(events_per_user):
                at += timedelta(minutes=self.rng.uniform(20, 90))
                events.append(SimulatedEvent(self.normal_event(user, min(at, end))))

            if self.rng.random() >= fraud_rate:
                continue
            fraud_users += 1
            at = min(at + timedelta(minutes=1), end)
            pattern = self.rng.choice(list(self.PATTERNS))
            if pattern == "velocity":
                raws = self.inject_velocity_burst(user, at - timedelta(minutes=5))
            elif pattern == "amount_anomaly":
                raws = [self.inject_amount_anomaly(user, at, multiplier=self.rng.uniform(20, 80))]
            elif pattern == "impossible_travel":
                raws = [self.inject_impossible_travel(user, at)]
            else:
                raws = [self.inject_account_takeover(user, at)]
            events.extend(SimulatedEvent(raw, pattern) for raw in raws)

        events.sort(key=lambda e: datetime.fromisoformat(e.raw["timestamp"]))
        logger.info(
            "Simulated %d events for %d users (%d with injected fraud)",
            len(events),
            len(self.users),
            fraud_users,
        )
        return events

    def stream(self, events_per_user: int = 20, fraud_rate: float = 0.05) -> Iterator[dict[str, Any]]:
        """Raw events only, in timestamp order."""
        for event in self.generate(events_per_user, fraud_rate):
            yield event.raw
