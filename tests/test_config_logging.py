"""Tests for config and logging."""

import io
import json
import logging
import sys
from decimal import Decimal

import pytest

from fraud_scoring.config import (
    DEFAULT_EVALUATORS,
    BehaviorWindowConfig,
    EngineConfig,
    EvaluatorSettings,
    KafkaConfig,
    PostgresConfig,
    ThresholdConfig,
)
from fraud_scoring.exceptions import ConfigurationError
from fraud_scoring.logging import JsonFormatter, get_logger, setup_logging

ENV_VARS = [
    "FRAUD_VELOCITY_WINDOW_SECONDS",
    "FRAUD_VELOCITY_THRESHOLD",
    "FRAUD_Z_LOW",
    "FRAUD_Z_HIGH",
    "FRAUD_MIN_HISTORY",
    "FRAUD_IMPLAUSIBLE_SPEED_KMH",
    "FRAUD_MIN_DISTANCE_KM",
    "FRAUD_REVIEW_THRESHOLD",
    "FRAUD_BLOCK_THRESHOLD",
    "FRAUD_AGGREGATION",
    "FRAUD_WINDOW_CAPACITY",
    "FRAUD_WINDOW_SECONDS",
    "FRAUD_PURGE_EVERY",
    "FRAUD_EVALUATOR_WEIGHTS",
    "FRAUD_DISABLED_EVALUATORS",
    "FRAUD_DEADLINE_SECONDS",
    "FRAUD_MAX_CLOCK_SKEW_SECONDS",
    "FRAUD_MAX_WORKERS",
    "KAFKA_BOOTSTRAP_SERVERS",
    "KAFKA_ALERT_TOPIC",
    "KAFKA_ACKS",
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_DB",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every variable ``from_env`` reads."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestKafkaConfig:
    """Tests for KafkaConfig."""

    def test_default_values(self) -> None:
        config = KafkaConfig()

        assert config.bootstrap_servers == "localhost:9092"
        assert config.alert_topic == "fraud.alerts"
        assert config.acks == "all"

    def test_to_dict(self) -> None:
        """Test conversion to confluent-kafka config dict."""
        config = KafkaConfig(bootstrap_servers="kafka:9092", linger_ms=10, compression="gzip", retries=5)

        result = config.to_dict()

        assert result == {
            "bootstrap.servers": "kafka:9092",
            "acks": "all",
            "linger.ms": 10,
            "compression.type": "gzip",
            "retries": 5,
        }


class TestPostgresConfig:
    """Tests for PostgresConfig."""

    def test_default_values(self) -> None:
        config = PostgresConfig()

        assert config.host == "localhost"
        assert config.port == 5432
        assert config.database == "fraud"
        assert config.table == "fraud_audit"

    def test_connection_string(self) -> None:
        config = PostgresConfig(host="db", port=5433, database="risk", user="svc", password="pw")

        assert config.connection_string == "postgresql://svc:pw@db:5433/risk"


class TestEngineConfigDefaults:
    """Tests for EngineConfig defaults."""

    def test_default_values(self) -> None:
        config = EngineConfig()

        assert config.velocity.window_seconds == 300.0
        assert config.velocity.high_value_threshold == Decimal("1000")
        assert config.amount_deviation.z_low == 2.0
        assert config.amount_deviation.z_high == 4.0
        assert config.geo.implausible_speed_kmh == 900.0
        assert config.thresholds.review_threshold == 0.4
        assert config.thresholds.block_threshold == 0.75
        assert config.thresholds.aggregation == "corroborated"
        assert config.deadline_seconds == 0.25
        assert set(config.evaluators) == set(DEFAULT_EVALUATORS)

    def test_settings_for_unlisted_evaluator(self) -> None:
        config = EngineConfig()

        settings = config.settings_for("model_score")

        assert settings.weight == 1.0
        assert settings.enabled is True

    def test_evaluator_settings_not_shared(self) -> None:
        first = EngineConfig()
        second = EngineConfig()

        first.evaluators["velocity"].weight = 3.0

        assert second.evaluators["velocity"].weight == 1.0


class TestEngineConfigValidate:
    """Tests for EngineConfig.validate."""

    def test_defaults_are_valid(self) -> None:
        config = EngineConfig()

        assert config.validate() is config

    def test_review_above_block_rejected(self) -> None:
        config = EngineConfig(thresholds=ThresholdConfig(review_threshold=0.8, block_threshold=0.6))

        with pytest.raises(ConfigurationError, match="exceeds block_threshold"):
            config.validate()

    def test_threshold_out_of_range_rejected(self) -> None:
        config = EngineConfig(thresholds=ThresholdConfig(review_threshold=0.4, block_threshold=1.5))

        with pytest.raises(ConfigurationError, match=r"block_threshold must be within \[0, 1\]"):
            config.validate()

    def test_negative_weight_rejected(self) -> None:
        config = EngineConfig()
        config.evaluators["geo_distance"] = EvaluatorSettings(weight=-1.0)

        with pytest.raises(ConfigurationError, match="weight for geo_distance must not be negative"):
            config.validate()

    def test_all_evaluators_disabled_rejected(self) -> None:
        config = EngineConfig()
        for settings in config.evaluators.values():
            settings.enabled = False

        with pytest.raises(ConfigurationError, match="at least one evaluator"):
            config.validate()

    def test_unknown_aggregation_rejected(self) -> None:
        config = EngineConfig(thresholds=ThresholdConfig(aggregation="median"))

        with pytest.raises(ConfigurationError, match="aggregation must be one of"):
            config.validate()

    def test_unbounded_window_rejected(self) -> None:
        config = EngineConfig(window=BehaviorWindowConfig(capacity=None, window_seconds=None))

        with pytest.raises(ConfigurationError, match="behavior window needs"):
            config.validate()

    def test_purge_every_below_one_rejected(self) -> None:
        config = EngineConfig(window=BehaviorWindowConfig(purge_every=0))

        with pytest.raises(ConfigurationError, match="purge_every must be at least 1"):
            config.validate()

    def test_purge_disabled_is_valid(self) -> None:
        EngineConfig(window=BehaviorWindowConfig(purge_every=None)).validate()

    def test_all_problems_reported_together(self) -> None:
        config = EngineConfig(deadline_seconds=0, max_workers=0)

        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()

        message = str(exc_info.value)
        assert "deadline_seconds must be positive" in message
        assert "max_workers must be at least 1" in message


class TestEngineConfigFromDict:
    """Tests for EngineConfig.from_dict."""

    def test_nested_sections(self) -> None:
        config = EngineConfig.from_dict(
            {
                "thresholds": {"review_threshold": 0.3, "aggregation": "weighted_mean"},
                "velocity": {"high_value_threshold": 500},
                "geo": {"gazetteer": {"Paris": [48.8566, 2.3522]}},
                "deadline_seconds": 0.5,
            }
        )

        assert config.thresholds.review_threshold == 0.3
        assert config.thresholds.block_threshold == 0.75
        assert config.thresholds.aggregation == "weighted_mean"
        assert config.velocity.high_value_threshold == Decimal("500")
        assert config.geo.gazetteer == {"paris": (48.8566, 2.3522)}
        assert config.deadline_seconds == 0.5

    def test_evaluator_settings_merge_with_defaults(self) -> None:
        config = EngineConfig.from_dict({"evaluators": {"velocity": {"weight": 2.0}, "model_score": {"enabled": False}}})

        assert config.evaluators["velocity"].weight == 2.0
        assert config.evaluators["model_score"].enabled is False
        assert config.evaluators["geo_distance"].weight == 1.0

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown keys in config.thresholds: bogus"):
            EngineConfig.from_dict({"thresholds": {"bogus": 1}})

    def test_section_must_be_mapping(self) -> None:
        with pytest.raises(ConfigurationError, match="config.thresholds must be a mapping"):
            EngineConfig.from_dict({"thresholds": 0.5})

    def test_bad_threshold_amount_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="velocity.high_value_threshold"):
            EngineConfig.from_dict({"velocity": {"high_value_threshold": "lots"}})


class TestEngineConfigFromEnv:
    """Tests for EngineConfig.from_env."""

    def test_from_env_default(self, clean_env: pytest.MonkeyPatch) -> None:
        config = EngineConfig.from_env()

        assert config.kafka.bootstrap_servers == "localhost:9092"
        assert config.postgres.host == "localhost"
        assert config.thresholds.block_threshold == 0.75
        assert config.log_level == "INFO"
        assert all(s.enabled for s in config.evaluators.values())

    def test_from_env_custom(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("FRAUD_VELOCITY_THRESHOLD", "2500.50")
        clean_env.setenv("FRAUD_REVIEW_THRESHOLD", "0.35")
        clean_env.setenv("FRAUD_BLOCK_THRESHOLD", "0.8")
        clean_env.setenv("FRAUD_AGGREGATION", "max")
        clean_env.setenv("FRAUD_WINDOW_CAPACITY", "50")
        clean_env.setenv("FRAUD_PURGE_EVERY", "500")
        clean_env.setenv("FRAUD_DEADLINE_SECONDS", "0.1")
        clean_env.setenv("KAFKA_BOOTSTRAP_SERVERS", "kafka-cluster:9092")
        clean_env.setenv("POSTGRES_PORT", "5433")
        clean_env.setenv("LOG_LEVEL", "DEBUG")

        config = EngineConfig.from_env()

        assert config.velocity.high_value_threshold == Decimal("2500.50")
        assert config.thresholds.review_threshold == 0.35
        assert config.thresholds.block_threshold == 0.8
        assert config.thresholds.aggregation == "max"
        assert config.window.capacity == 50
        assert config.window.purge_every == 500
        assert config.deadline_seconds == 0.1
        assert config.kafka.bootstrap_servers == "kafka-cluster:9092"
        assert config.postgres.port == 5433
        assert config.log_level == "DEBUG"

    def test_from_env_weights_and_disabled(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("FRAUD_EVALUATOR_WEIGHTS", '{"velocity": 2, "model_score": 0.5}')
        clean_env.setenv("FRAUD_DISABLED_EVALUATORS", "merchant_risk, geo_distance")

        config = EngineConfig.from_env()

        assert config.evaluators["velocity"].weight == 2.0
        assert config.evaluators["model_score"].weight == 0.5
        assert config.evaluators["merchant_risk"].enabled is False
        assert config.evaluators["geo_distance"].enabled is False
        assert config.evaluators["device_novelty"].enabled is True

    def test_from_env_bad_number(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("FRAUD_REVIEW_THRESHOLD", "high")

        with pytest.raises(ConfigurationError, match="FRAUD_REVIEW_THRESHOLD"):
            EngineConfig.from_env()

    def test_from_env_bad_weights(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("FRAUD_EVALUATOR_WEIGHTS", "[1, 2]")

        with pytest.raises(ConfigurationError, match="must be a JSON object"):
            EngineConfig.from_env()


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_default(self) -> None:
        setup_logging()

        assert logging.getLogger("fraud_scoring").level == logging.INFO

    def test_setup_logging_debug(self) -> None:
        setup_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_invalid_level(self) -> None:
        """Test logging with invalid level defaults to INFO."""
        setup_logging(level="INVALID")

        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_json_format(self) -> None:
        setup_logging(format_type="json")

        root = logging.getLogger()
        assert any(isinstance(h.formatter, JsonFormatter) for h in root.handlers)

    def test_setup_logging_replaces_handlers(self) -> None:
        root = logging.getLogger()
        root.addHandler(logging.StreamHandler())
        root.addHandler(logging.StreamHandler())

        setup_logging()

        assert len(root.handlers) == 1

    def test_external_loggers_quieted(self) -> None:
        setup_logging(level="DEBUG")

        assert logging.getLogger("confluent_kafka").level == logging.WARNING
        assert logging.getLogger("psycopg").level == logging.WARNING
        assert logging.getLogger("faker").level == logging.WARNING


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    @staticmethod
    def _record(level: int = logging.INFO, msg: str = "Test message", exc_info: object = None) -> logging.LogRecord:
        return logging.LogRecord(
            name="fraud_scoring.engine",
            level=level,
            pathname="/path/to/engine.py",
            lineno=42,
            msg=msg,
            args=(),
            exc_info=exc_info,
        )

    def test_format_basic(self) -> None:
        data = json.loads(JsonFormatter().format(self._record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "fraud_scoring.engine"
        assert data["message"] == "Test message"
        assert "timestamp" in data

    def test_format_with_exception(self) -> None:
        try:
            raise ValueError("Test error")
        except ValueError:
            exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(self._record(logging.ERROR, "Failed", exc_info)))

        assert data["level"] == "ERROR"
        assert "ValueError" in data["exception"]

    def test_format_with_extra(self) -> None:
        record = self._record()
        record.extra = {"transaction_id": "tx-1", "score": Decimal("0.5")}

        data = json.loads(JsonFormatter().format(record))

        assert data["transaction_id"] == "tx-1"
        assert data["score"] == "0.5"

    def test_format_with_context_fields(self) -> None:
        record = self._record(logging.WARNING, "Evaluator geo_distance timed out")
        record.transaction_id = "tx-9"
        record.evaluator = "geo_distance"

        data = json.loads(JsonFormatter().format(record))

        assert data["transaction_id"] == "tx-9"
        assert data["evaluator"] == "geo_distance"
        assert "user_id" not in data
        assert data["thread"] == record.threadName


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger(self) -> None:
        logger = get_logger("fraud_scoring.test")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "fraud_scoring.test"


class TestLoggingOutput:
    """End-to-end formatting through setup_logging."""

    def test_json_lines_to_stream(self) -> None:
        stream = io.StringIO()
        setup_logging(format_type="json", stream=stream)

        logging.getLogger("fraud_scoring.engine").warning(
            "late", extra={"transaction_id": "tx-1", "user_id": "user-1"}
        )

        data = json.loads(stream.getvalue().strip())
        assert data["message"] == "late"
        assert data["user_id"] == "user-1"

    def test_standard_format_names_thread(self) -> None:
        stream = io.StringIO()
        setup_logging(stream=stream)

        logging.getLogger("fraud_scoring.emitter").info("dispatched")

        assert "MainThread" in stream.getvalue()
        assert "fraud_scoring.emitter | dispatched" in stream.getvalue()
