"""Output sinks for verdicts and audit records."""

from fraud_scoring.sinks.base import AlertSink, AuditSink
from fraud_scoring.sinks.console import ConsoleAlertSink
from fraud_scoring.sinks.json_file import JsonlAuditSink
from fraud_scoring.sinks.kafka import KafkaAlertSink
from fraud_scoring.sinks.memory import InMemoryAlertSink, InMemoryAuditSink
from fraud_scoring.sinks.postgres import PostgresAuditSink

__all__ = [
    "AlertSink",
    "AuditSink",
    "ConsoleAlertSink",
    "InMemoryAlertSink",
    "InMemoryAuditSink",
    "JsonlAuditSink",
    "KafkaAlertSink",
    "PostgresAuditSink",
]
