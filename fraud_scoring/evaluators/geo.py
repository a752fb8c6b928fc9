"""Impossible travel detection."""

import math

from fraud_scoring.config import GEO_DISTANCE, GeoConfig
from fraud_scoring.evaluators.base import INSUFFICIENT_HISTORY
from fraud_scoring.models import Location, Signal, Transaction, UserProfile

EARTH_RADIUS_KM = 6371.0088


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


class GeoDistanceEvaluator:
    """Compare the travel speed implied by two locations with a plausible maximum.

    The signal is ``speed / implausible_speed_kmh`` capped at 1.0; hops
    shorter than ``min_distance_km`` are ignored. Locations without
    coordinates are looked up in the configured gazetteer.
    """

    name = GEO_DISTANCE
    timeout: float | None = None

    def __init__(self, config: GeoConfig | None = None) -> None:
        self.config = config or GeoConfig()
        self._gazetteer = {k.lower(): v for k, v in self.config.gazetteer.items()}

    def resolve(self, location: Location) -> tuple[float, float] | None:
        if location.has_coordinates:
            return location.latitude, location.longitude
        if location.place:
            return self._gazetteer.get(location.place.strip().lower())
        return None

    def evaluate(self, transaction: Transaction, baseline: UserProfile) -> Signal:
        if baseline.is_empty:
            return Signal.neutral(self.name, INSUFFICIENT_HISTORY)
        if transaction.location is None:
            return Signal.neutral(self.name, "transaction has no location")

        previous = baseline.last_located()
        if previous is None:
            return Signal.neutral(self.name, "no prior location")

        here = self.resolve(transaction.location)
        there = self.resolve(previous.location)
        if here is None or there is None:
            if transaction.location.key == previous.location.key:
                return Signal.neutral(self.name, "same place as last transaction")
            return Signal.neutral(self.name, "location not geocoded")

        distance = haversine_km(there[0], there[1], here[0], here[1])
        if distance < self.config.min_distance_km:
            return Signal.neutral(self.name, f"{distance:.0f} km from last location")

        elapsed_hours = abs((transaction.timestamp - previous.timestamp).total_seconds()) / 3600.0
        if elapsed_hours == 0:
            return Signal(
                name=self.name,
                value=1.0,
                rationale=f"{distance:.0f} km from last location at the same instant",
            )

        speed = distance / elapsed_hours
        value = min(1.0, speed / self.config.implausible_speed_kmh)
        return Signal(
            name=self.name,
            value=value,
            rationale=(
                f"{distance:.0f} km in {elapsed_hours * 60:.1f} min implies {speed:.0f} km/h "
                f"(limit {self.config.implausible_speed_kmh:.0f} km/h)"
            ),
        )
