"""Shared serialization utilities for sinks."""

import json
from dataclasses import fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from fraud_scoring.models import AuditRecord, Signal, Transaction, Verdict


def to_dict(obj: Any) -> dict:
    """Convert object to dictionary."""
    if isinstance(obj, AuditRecord):
        return audit_record_to_dict(obj)
    if isinstance(obj, Verdict):
        return verdict_to_dict(obj)
    if is_dataclass(obj):
        return dataclass_to_dict(obj)
    elif isinstance(obj, dict):
        return obj
    else:
        return {"value": str(obj)}


def dataclass_to_dict(obj: Any) -> dict:
    """Convert a dataclass without deep copy.

    Uses ``dataclasses.fields()`` + ``getattr`` instead of ``asdict()``,
    recursing through ``serialize_value`` for nested dataclasses.
    """
    return {f.name: serialize_value(getattr(obj, f.name)) for f in fields(obj)}


def serialize_value(value: Any) -> Any:
    """Serialize a value for JSON output."""
    if isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, date):
        return value.isoformat()
    elif is_dataclass(value) and not isinstance(value, type):
        return dataclass_to_dict(value)
    elif isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    elif isinstance(value, (set, frozenset)):
        return sorted(serialize_value(v) for v in value)
    return value


def signal_to_dict(signal: Signal) -> dict:
    return dataclass_to_dict(signal)


def transaction_to_dict(transaction: Transaction) -> dict:
    return dataclass_to_dict(transaction)


def verdict_to_dict(verdict: Verdict) -> dict:
    """Flatten a verdict for alert payloads."""
    return {
        "transaction_id": verdict.transaction_id,
        "user_id": verdict.user_id,
        "score": verdict.score,
        "decision": verdict.decision.value,
        "decided_at": verdict.decided_at.isoformat(),
        "signals": [signal_to_dict(s) for s in verdict.signals],
        "degraded_evaluators": verdict.degraded_evaluators,
    }


def audit_record_to_dict(record: AuditRecord) -> dict:
    """Verdict fields plus the transaction it was computed for."""
    data = verdict_to_dict(record.verdict)
    data["transaction"] = transaction_to_dict(record.transaction)
    return data


def to_json(obj: Any, pretty: bool = False) -> str:
    data = to_dict(obj)
    if pretty:
        return json.dumps(data, indent=2, ensure_ascii=False, default=str)
    return json.dumps(data, ensure_ascii=False, default=str)
