"""Per-user behavioral history with per-key serialization."""

import bisect
import logging
import math
import threading
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from fraud_scoring.config import BehaviorWindowConfig
from fraud_scoring.exceptions import FraudScoringError
from fraud_scoring.models import Transaction, UserProfile

logger = logging.getLogger(__name__)


@dataclass
class RollingStats:
    """Running mean/variance supporting removal (Welford)."""

    count: int = 0
    mean: float = 0.0
    _m2: float = 0.0

    def add(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self._m2 += delta * (value - self.mean)

    def remove(self, value: float) -> None:
        if self.count <= 1:
            self.count, self.mean, self._m2 = 0, 0.0, 0.0
            return
        old_mean = self.mean
        self.count -= 1
        self.mean = (old_mean * (self.count + 1) - value) / self.count
        self._m2 = max(0.0, self._m2 - (value - old_mean) * (value - self.mean))

    @property
    def std(self) -> float:
        """Population standard deviation."""
        if self.count < 2:
            return 0.0
        return math.sqrt(self._m2 / self.count)


@dataclass
class UserWindow:
    """Mutable history for one user. Owned by ``BehaviorStore``."""

    user_id: str
    transactions: list[Transaction] = field(default_factory=list)
    stats: RollingStats = field(default_factory=RollingStats)
    devices: Counter = field(default_factory=Counter)
    ips: Counter = field(default_factory=Counter)
    locations: Counter = field(default_factory=Counter)
    _ids: set[str] = field(default_factory=set)

    def contains(self, transaction_id: str) -> bool:
        return transaction_id in self._ids

    def append(self, tx: Transaction) -> None:
        """Insert keeping timestamp order (newest last)."""
        bisect.insort_right(self.transactions, tx, key=lambda t: t.timestamp)
        self._ids.add(tx.transaction_id)
        self.stats.add(float(tx.amount))
        if tx.device_fingerprint:
            self.devices[tx.device_fingerprint] += 1
        if tx.ip:
            self.ips[tx.ip] += 1
        if tx.location is not None:
            self.locations[tx.location.key] += 1

    def evict_oldest(self) -> Transaction:
        tx = self.transactions.pop(0)
        self._ids.discard(tx.transaction_id)
        self.stats.remove(float(tx.amount))
        if tx.device_fingerprint:
            _decrement(self.devices, tx.device_fingerprint)
        if tx.ip:
            _decrement(self.ips, tx.ip)
        if tx.location is not None:
            _decrement(self.locations, tx.location.key)
        return tx

    def newest_timestamp(self) -> datetime | None:
        return self.transactions[-1].timestamp if self.transactions else None

    def snapshot(self) -> UserProfile:
        return UserProfile(
            user_id=self.user_id,
            transactions=tuple(self.transactions),
            mean_amount=self.stats.mean,
            std_amount=self.stats.std,
            devices=frozenset(self.devices),
            ips=frozenset(self.ips),
            locations=frozenset(self.locations),
        )


def _decrement(counter: Counter, key: str) -> None:
    counter[key] -= 1
    if counter[key] <= 0:
        del counter[key]


class UserSession:
    """Exclusive access to one user's window while the session is open.

    ``baseline`` is captured on entry, before anything is recorded.
    """

    def __init__(self, store: "BehaviorStore", user_id: str) -> None:
        self._store = store
        self.user_id = user_id
        self.baseline = store._snapshot(user_id)
        self.recorded = False

    def record(self, transaction: Transaction) -> bool:
        """Append ``transaction`` to this user's window."""
        if transaction.user_id != self.user_id:
            raise FraudScoringError(
                f"Transaction {transaction.transaction_id} belongs to {transaction.user_id}, "
                f"not {self.user_id}"
            )
        self.recorded = self._store._record_locked(transaction)
        return self.recorded


class BehaviorStore:
    """In-memory store of rolling per-user windows.

    Reads and writes for the same user are serialized with a per-user lock;
    different users never contend. Windows are bounded by ``capacity``,
    ``window_seconds`` or both; overflow and expiry evict oldest first.

    Parameters
    ----------
    capacity : int | None
        Maximum transactions kept per user.
    window_seconds : float | None
        Maximum age of kept transactions, relative to the user's newest one.
    """

    def __init__(self, capacity: int | None = 200, window_seconds: float | None = 30 * 24 * 3600.0) -> None:
        if capacity is None and window_seconds is None:
            raise FraudScoringError("BehaviorStore needs a capacity, a window_seconds, or both")
        self.capacity = capacity
        self.window = timedelta(seconds=window_seconds) if window_seconds is not None else None

        self._windows: dict[str, UserWindow] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: BehaviorWindowConfig) -> "BehaviorStore":
        return cls(capacity=config.capacity, window_seconds=config.window_seconds)

    # --- Locking ---

    def _lock_for(self, user_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.RLock()
            return lock

    @contextmanager
    def _locked(self, user_id: str) -> Iterator[None]:
        while True:
            lock = self._lock_for(user_id)
            lock.acquire()
            # purge_idle may have retired this lock while we waited for it
            if self._locks.get(user_id) is lock:
                break
            lock.release()
        try:
            yield
        finally:
            lock.release()

    # --- Public API ---

    @contextmanager
    def session(self, user_id: str) -> Iterator[UserSession]:
        """Hold ``user_id``'s lock across a baseline read and its record."""
        with self._locked(user_id):
            yield UserSession(self, user_id)

    def get_baseline(self, user_id: str) -> UserProfile:
        """Current profile for ``user_id``; empty for unseen users.

        Reading an unseen user allocates nothing.
        """
        with self._registry_lock:
            if user_id not in self._windows:
                return UserProfile.empty(user_id)
        with self._locked(user_id):
            return self._snapshot(user_id)

    def record(self, transaction: Transaction) -> bool:
        """Append a normalized transaction to its user's window.

        Returns False when the transaction id is already in the window.
        """
        with self._locked(transaction.user_id):
            return self._record_locked(transaction)

    def purge_idle(self, now: datetime) -> int:
        """Drop windows whose newest entry has aged out of the time window.

        Locks left behind by sessions that never recorded are dropped too.
        Users currently being processed are skipped. Returns the number of
        windows removed.
        """
        cutoff = now - self.window if self.window is not None else None
        removed = 0
        with self._registry_lock:
            for user_id in list(self._locks):
                lock = self._locks[user_id]
                if not lock.acquire(blocking=False):
                    continue
                try:
                    window = self._windows.get(user_id)
                    if window is None:
                        del self._locks[user_id]
                        continue
                    if cutoff is None:
                        continue
                    newest = window.newest_timestamp()
                    if newest is None or newest < cutoff:
                        del self._windows[user_id]
                        del self._locks[user_id]
                        removed += 1
                finally:
                    lock.release()
        if removed:
            logger.info("Purged %d idle user windows", removed)
        return removed

    def user_count(self) -> int:
        return len(self._windows)

    def summary(self) -> dict[str, int]:
        """Return summary counts."""
        with self._registry_lock:
            windows = list(self._windows.values())
            locks = len(self._locks)
        return {
            "users": len(windows),
            "transactions": sum(len(w.transactions) for w in windows),
            "locks": locks,
        }

    # --- Internals; callers must hold the user's lock ---

    def _snapshot(self, user_id: str) -> UserProfile:
        window = self._windows.get(user_id)
        if window is None:
            return UserProfile.empty(user_id)
        return window.snapshot()

    def _record_locked(self, transaction: Transaction) -> bool:
        window = self._windows.get(transaction.user_id)
        if window is None:
            window = UserWindow(user_id=transaction.user_id)
            with self._registry_lock:
                self._windows[transaction.user_id] = window
        elif window.contains(transaction.transaction_id):
            logger.debug("Transaction %s already recorded", transaction.transaction_id)
            return False

        window.append(transaction)
        self._evict(window)
        return True

    def _evict(self, window: UserWindow) -> None:
        if self.window is not None:
            cutoff = window.newest_timestamp() - self.window
            while window.transactions and window.transactions[0].timestamp < cutoff:
                window.evict_oldest()
        if self.capacity is not None:
            while len(window.transactions) > self.capacity:
                window.evict_oldest()
