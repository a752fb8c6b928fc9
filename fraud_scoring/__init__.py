"""Real-time transaction fraud scoring."""

from fraud_scoring.config import EngineConfig
from fraud_scoring.emitter import VerdictEmitter
from fraud_scoring.engine import FraudScoringEngine, Rejection
from fraud_scoring.models import Decision, Signal, Transaction, UserProfile, Verdict
from fraud_scoring.normalizer import EventNormalizer, normalize
from fraud_scoring.scoring import ScoringAggregator
from fraud_scoring.store import BehaviorStore

__all__ = [
    "BehaviorStore",
    "Decision",
    "EngineConfig",
    "EventNormalizer",
    "FraudScoringEngine",
    "Rejection",
    "ScoringAggregator",
    "Signal",
    "Transaction",
    "UserProfile",
    "Verdict",
    "VerdictEmitter",
    "normalize",
]
