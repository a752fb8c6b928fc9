"""Validation and canonicalization of raw transaction events."""

import math
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from fraud_scoring.exceptions import MalformedInputError
from fraud_scoring.models import Location, PaymentMethod, Transaction

# Epoch values above this are taken to be milliseconds (year ~5138 in seconds)
_EPOCH_MILLIS_CUTOFF = 1e11

# Canonical field -> accepted spellings, first match wins
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "transaction_id": ("transaction_id", "transactionId", "id"),
    "user_id": ("user_id", "userId", "customer_id", "customerId"),
    "amount": ("amount",),
    "currency": ("currency",),
    "timestamp": ("timestamp", "ts", "event_time", "eventTime"),
    "location": ("location",),
    "payment_method": ("payment_method", "paymentMethod"),
    "device_fingerprint": ("device_fingerprint", "deviceFingerprint", "device_id", "deviceId"),
    "merchant_id": ("merchant_id", "merchantId"),
    "ip": ("ip", "ip_address", "ipAddress"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventNormalizer:
    """Turn raw event mappings into immutable ``Transaction`` records.

    All field problems are collected and reported together through
    ``MalformedInputError.errors``. Suspicious-but-valid input is never a
    normalization failure.

    Parameters
    ----------
    max_clock_skew_seconds : float
        How far in the future a timestamp may be before it is rejected.
    default_currency : str
        Currency assumed when the event carries none.
    clock : Callable[[], datetime] | None
        Source of "now" (timezone-aware); defaults to the UTC wall clock.
    """

    def __init__(
        self,
        max_clock_skew_seconds: float = 300.0,
        default_currency: str = "USD",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.max_clock_skew = timedelta(seconds=max_clock_skew_seconds)
        self.default_currency = default_currency
        self.clock = clock or _utcnow

    def normalize(self, raw: Mapping[str, Any]) -> Transaction:
        """Validate ``raw`` and build a ``Transaction``.

        Raises
        ------
        MalformedInputError
            If any field is missing, mistyped or out of range.
        """
        if not isinstance(raw, Mapping):
            raise MalformedInputError({"event": f"expected a mapping, got {type(raw).__name__}"})

        errors: dict[str, str] = {}

        def field(name: str) -> Any:
            for alias in FIELD_ALIASES[name]:
                if alias in raw and raw[alias] is not None:
                    return raw[alias]
            return None

        transaction_id = self._identifier(field("transaction_id"), "transaction_id", errors, required=True)
        user_id = self._identifier(field("user_id"), "user_id", errors, required=True)
        amount = self._amount(field("amount"), errors)
        currency = self._currency(field("currency"), errors)
        timestamp = self._timestamp(field("timestamp"), errors)
        location = self._location(field("location"), raw, errors)
        payment_method = self._payment_method(field("payment_method"), errors)
        device = self._identifier(field("device_fingerprint"), "device_fingerprint", errors)
        merchant_id = self._identifier(field("merchant_id"), "merchant_id", errors)
        ip = self._identifier(field("ip"), "ip", errors)

        if errors:
            raise MalformedInputError(errors)

        return Transaction(
            transaction_id=transaction_id,
            user_id=user_id,
            amount=amount,
            currency=currency,
            timestamp=timestamp,
            location=location,
            payment_method=payment_method,
            device_fingerprint=device,
            merchant_id=merchant_id,
            ip=ip,
        )

    def validate(self, transaction: Transaction) -> Transaction:
        """Re-check an already built ``Transaction`` against the same rules.

        Returns the transaction, with its timestamp converted to UTC when it
        was naive or in another zone.

        Raises
        ------
        MalformedInputError
            If the identifiers, amount or timestamp are invalid.
        """
        errors: dict[str, str] = {}
        self._identifier(transaction.transaction_id, "transaction_id", errors, required=True)
        self._identifier(transaction.user_id, "user_id", errors, required=True)
        self._amount(transaction.amount, errors)
        timestamp = self._timestamp(transaction.timestamp, errors)
        if errors:
            raise MalformedInputError(errors)
        if timestamp is not transaction.timestamp:
            transaction = replace(transaction, timestamp=timestamp)
        return transaction

    # --- Field parsers: append to ``errors`` and return None on failure ---

    @staticmethod
    def _identifier(value: Any, name: str, errors: dict[str, str], required: bool = False) -> str | None:
        if value is None:
            if required:
                errors[name] = "is required"
            return None
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            errors[name] = f"must be a string, got {type(value).__name__}"
            return None
        text = str(value).strip()
        if not text:
            if required:
                errors[name] = "must not be blank"
            return None
        return text

    @staticmethod
    def _amount(value: Any, errors: dict[str, str]) -> Decimal | None:
        if value is None:
            errors["amount"] = "is required"
            return None
        if isinstance(value, bool):
            errors["amount"] = "must be a number, got bool"
            return None
        try:
            amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        except InvalidOperation:
            errors["amount"] = f"must be a number, got {value!r}"
            return None
        if not amount.is_finite():
            errors["amount"] = "must be finite"
            return None
        if amount < 0:
            errors["amount"] = f"must not be negative, got {amount}"
            return None
        return amount

    def _currency(self, value: Any, errors: dict[str, str]) -> str:
        if value is None:
            return self.default_currency
        code = str(value).strip().upper()
        if len(code) != 3 or not code.isalpha():
            errors["currency"] = f"must be a 3-letter code, got {value!r}"
        return code

    def _timestamp(self, value: Any, errors: dict[str, str]) -> datetime | None:
        if value is None:
            errors["timestamp"] = "is required"
            return None

        parsed: datetime | None = None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            if not math.isfinite(value):
                errors["timestamp"] = "must be finite"
                return None
            seconds = value / 1000.0 if abs(value) > _EPOCH_MILLIS_CUTOFF else float(value)
            try:
                parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                parsed = None
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                parsed = None

        if parsed is None:
            errors["timestamp"] = f"cannot parse {value!r}"
            return None

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        else:
            parsed = parsed.astimezone(timezone.utc)

        now = self.clock()
        if parsed > now + self.max_clock_skew:
            errors["timestamp"] = f"{parsed.isoformat()} is in the future (now {now.isoformat()})"
            return None
        return parsed

    def _location(self, value: Any, raw: Mapping[str, Any], errors: dict[str, str]) -> Location | None:
        if value is None:
            lat = raw.get("latitude", raw.get("lat"))
            lon = raw.get("longitude", raw.get("lon"))
            if lat is None and lon is None:
                return None
            value = {"lat": lat, "lon": lon}

        if isinstance(value, Location):
            return value

        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            parts = [p.strip() for p in text.split(",")]
            if len(parts) == 2:
                try:
                    return self._coordinates(float(parts[0]), float(parts[1]), None, errors)
                except ValueError:
                    pass
            return Location(place=text)

        if isinstance(value, Mapping):
            lat = _first(value, ("lat", "latitude"))
            lon = _first(value, ("lon", "lng", "longitude"))
            place = _first(value, ("place", "city", "name"))
            if place is not None:
                place = str(place).strip() or None
            if lat is None and lon is None:
                if place is None:
                    errors["location"] = "needs coordinates or a place"
                    return None
                return Location(place=place)
            if lat is None or lon is None:
                errors["location"] = "latitude and longitude must be given together"
                return None
            try:
                return self._coordinates(float(lat), float(lon), place, errors)
            except (TypeError, ValueError):
                errors["location"] = f"coordinates must be numbers, got {lat!r}, {lon!r}"
                return None

        errors["location"] = f"unsupported type {type(value).__name__}"
        return None

    @staticmethod
    def _coordinates(lat: float, lon: float, place: str | None, errors: dict[str, str]) -> Location | None:
        if not (math.isfinite(lat) and -90.0 <= lat <= 90.0):
            errors["location"] = f"latitude out of range: {lat}"
            return None
        if not (math.isfinite(lon) and -180.0 <= lon <= 180.0):
            errors["location"] = f"longitude out of range: {lon}"
            return None
        return Location(latitude=lat, longitude=lon, place=place)

    @staticmethod
    def _payment_method(value: Any, errors: dict[str, str]) -> PaymentMethod:
        if value is None:
            return PaymentMethod.UNKNOWN
        if isinstance(value, PaymentMethod):
            return value
        key = str(value).strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return PaymentMethod(key)
        except ValueError:
            errors["payment_method"] = f"unknown payment method {value!r}"
            return PaymentMethod.UNKNOWN


def _first(mapping: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return None


_default_normalizer = EventNormalizer()


def normalize(raw: Mapping[str, Any]) -> Transaction:
    """Normalize ``raw`` with the default settings."""
    return _default_normalizer.normalize(raw)
