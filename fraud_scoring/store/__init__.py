"""In-memory behavioral state for per-user baselines."""

from fraud_scoring.store.behavior import BehaviorStore, RollingStats, UserSession, UserWindow

__all__ = ["BehaviorStore", "RollingStats", "UserSession", "UserWindow"]
