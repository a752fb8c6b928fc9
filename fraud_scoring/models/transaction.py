"""Normalized transaction model."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from fraud_scoring.models.enums import PaymentMethod


@dataclass(frozen=True)
class Location:
    """Where a transaction happened.

    Either a coordinate pair, a symbolic place (city, store code, ...) or
    both. Coordinates are decimal degrees.
    """

    latitude: float | None = None
    longitude: float | None = None
    place: str | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def key(self) -> str:
        """Stable identity used for the recently-seen location set."""
        if self.place:
            return self.place.strip().lower()
        return f"{self.latitude:.2f},{self.longitude:.2f}"


@dataclass(frozen=True)
class Transaction:
    """A validated, canonical payment event. Immutable once normalized."""

    transaction_id: str
    user_id: str
    amount: Decimal
    currency: str
    timestamp: datetime  # timezone-aware, UTC
    location: Location | None = None
    payment_method: PaymentMethod = PaymentMethod.UNKNOWN
    device_fingerprint: str | None = None
    merchant_id: str | None = None
    ip: str | None = None
