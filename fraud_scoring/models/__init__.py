"""Domain models for fraud scoring."""

from fraud_scoring.models.enums import Decision, PaymentMethod
from fraud_scoring.models.profile import UserProfile
from fraud_scoring.models.signal import Signal
from fraud_scoring.models.transaction import Location, Transaction
from fraud_scoring.models.verdict import AuditRecord, Verdict

__all__ = [
    "AuditRecord",
    "Decision",
    "Location",
    "PaymentMethod",
    "Signal",
    "Transaction",
    "UserProfile",
    "Verdict",
]
