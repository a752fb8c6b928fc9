"""Per-user behavioral baseline snapshot."""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from fraud_scoring.models.transaction import Location, Transaction


@dataclass(frozen=True)
class UserProfile:
    """Immutable view of a user's recent behavior.

    Produced by the behavior store as of *before* the transaction being
    scored. ``transactions`` is ordered oldest first, newest last.
    """

    user_id: str
    transactions: tuple[Transaction, ...] = ()
    mean_amount: float = 0.0
    std_amount: float = 0.0
    devices: frozenset[str] = field(default_factory=frozenset)
    ips: frozenset[str] = field(default_factory=frozenset)
    locations: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def empty(cls, user_id: str) -> "UserProfile":
        return cls(user_id=user_id)

    @classmethod
    def from_transactions(cls, user_id: str, transactions: Iterable[Transaction]) -> "UserProfile":
        """Build a profile by scanning ``transactions`` (population std)."""
        txs = tuple(sorted(transactions, key=lambda t: t.timestamp))
        if not txs:
            return cls.empty(user_id)
        amounts = [float(t.amount) for t in txs]
        mean = sum(amounts) / len(amounts)
        std = math.sqrt(sum((a - mean) ** 2 for a in amounts) / len(amounts)) if len(amounts) > 1 else 0.0
        return cls(
            user_id=user_id,
            transactions=txs,
            mean_amount=mean,
            std_amount=std,
            devices=frozenset(t.device_fingerprint for t in txs if t.device_fingerprint),
            ips=frozenset(t.ip for t in txs if t.ip),
            locations=frozenset(t.location.key for t in txs if t.location is not None),
        )

    @property
    def is_empty(self) -> bool:
        return not self.transactions

    @property
    def size(self) -> int:
        return len(self.transactions)

    @property
    def last_transaction(self) -> Transaction | None:
        return self.transactions[-1] if self.transactions else None

    def contains(self, transaction_id: str) -> bool:
        return any(t.transaction_id == transaction_id for t in self.transactions)

    def excluding(self, transaction_id: str) -> "UserProfile":
        """Profile as it would be without ``transaction_id``."""
        if not self.contains(transaction_id):
            return self
        return self.from_transactions(
            self.user_id, (t for t in self.transactions if t.transaction_id != transaction_id)
        )

    def last_located(self) -> Transaction | None:
        """Most recent transaction that carries a location."""
        for tx in reversed(self.transactions):
            if tx.location is not None:
                return tx
        return None

    def knows_location(self, location: Location) -> bool:
        return location.key in self.locations
