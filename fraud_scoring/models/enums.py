"""Enumeration types for the fraud-scoring domain."""

from enum import Enum


class PaymentMethod(str, Enum):
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    DIGITAL_WALLET = "DIGITAL_WALLET"
    UPI = "UPI"
    PIX = "PIX"
    CASH = "CASH"
    UNKNOWN = "UNKNOWN"


class Decision(str, Enum):
    """Categorical verdict, ordered by severity."""

    APPROVED = "APPROVED"
    REVIEW = "REVIEW"
    BLOCKED = "BLOCKED"

    @property
    def requires_alert(self) -> bool:
        return self is not Decision.APPROVED
