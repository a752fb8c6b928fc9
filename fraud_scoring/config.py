"""Configuration management for fraud-scoring."""

from dataclasses import dataclass, field, fields, is_dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from fraud_scoring.exceptions import ConfigurationError

VELOCITY = "velocity"
AMOUNT_DEVIATION = "amount_deviation"
GEO_DISTANCE = "geo_distance"
DEVICE_NOVELTY = "device_novelty"
MERCHANT_RISK = "merchant_risk"
MODEL_SCORE = "model_score"

DEFAULT_EVALUATORS = (VELOCITY, AMOUNT_DEVIATION, GEO_DISTANCE, DEVICE_NOVELTY, MERCHANT_RISK)

AGGREGATIONS = ("weighted_mean", "max", "corroborated")


@dataclass
class VelocityConfig:
    """High-value transaction burst detection."""

    window_seconds: float = 300.0
    high_value_threshold: Decimal = Decimal("1000")


@dataclass
class AmountDeviationConfig:
    """Z-score bounds for the amount deviation check."""

    z_low: float = 2.0
    z_high: float = 4.0
    min_history: int = 3
    min_std_ratio: float = 0.1


@dataclass
class GeoConfig:
    """Impossible travel detection.

    ``gazetteer`` maps lower-cased symbolic place names to (lat, lon) so that
    events carrying only a place can still be compared.
    """

    implausible_speed_kmh: float = 900.0
    min_distance_km: float = 50.0
    gazetteer: dict[str, tuple[float, float]] = field(default_factory=dict)


@dataclass
class DeviceConfig:
    """Device/IP novelty scoring."""

    partial_score: float = 0.5


@dataclass
class MerchantConfig:
    """Merchant risk registry lookup."""

    lookup_timeout_seconds: float = 0.05


@dataclass
class ModelConfig:
    """External model inference."""

    timeout_seconds: float = 0.1


@dataclass
class EvaluatorSettings:
    """Per-evaluator weight and switch."""

    weight: float = 1.0
    enabled: bool = True


@dataclass
class ThresholdConfig:
    """Score to decision mapping and aggregation policy."""

    review_threshold: float = 0.4
    block_threshold: float = 0.75
    aggregation: str = "corroborated"
    corroboration_k: int = 2


@dataclass
class BehaviorWindowConfig:
    """Bounds of the per-user history window (either or both)."""

    capacity: int | None = 200
    window_seconds: float | None = 30 * 24 * 3600.0
    # engine calls BehaviorStore.purge_idle after this many scored transactions; None disables
    purge_every: int | None = 10_000


@dataclass
class EmitterConfig:
    """Asynchronous verdict dispatch."""

    queue_size: int = 10_000
    max_retries: int = 3
    backoff_seconds: float = 0.05
    max_backoff_seconds: float = 1.0


@dataclass
class KafkaConfig:
    """Kafka producer configuration for alert delivery."""

    bootstrap_servers: str = "localhost:9092"
    alert_topic: str = "fraud.alerts"
    acks: str = "all"
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
        }


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration for the audit trail."""

    host: str = "localhost"
    port: int = 5432
    database: str = "fraud"
    user: str = "postgres"
    password: str = "postgres"
    table: str = "fraud_audit"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


def _default_evaluator_settings() -> dict[str, EvaluatorSettings]:
    return {name: EvaluatorSettings() for name in DEFAULT_EVALUATORS}


@dataclass
class EngineConfig:
    """Main configuration for the scoring engine."""

    velocity: VelocityConfig = field(default_factory=VelocityConfig)
    amount_deviation: AmountDeviationConfig = field(default_factory=AmountDeviationConfig)
    geo: GeoConfig = field(default_factory=GeoConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    merchant: MerchantConfig = field(default_factory=MerchantConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    evaluators: dict[str, EvaluatorSettings] = field(default_factory=_default_evaluator_settings)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    window: BehaviorWindowConfig = field(default_factory=BehaviorWindowConfig)
    emitter: EmitterConfig = field(default_factory=EmitterConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    deadline_seconds: float = 0.25
    max_clock_skew_seconds: float = 300.0
    max_workers: int = 8
    log_level: str = "INFO"

    def settings_for(self, name: str) -> EvaluatorSettings:
        """Settings for an evaluator; unlisted evaluators get the defaults."""
        return self.evaluators.get(name, EvaluatorSettings())

    def validate(self) -> "EngineConfig":
        """Reject nonsensical configuration.

        Raises
        ------
        ConfigurationError
            Listing every problem found.
        """
        problems: list[str] = []

        t = self.thresholds
        for name, value in (("review_threshold", t.review_threshold), ("block_threshold", t.block_threshold)):
            if not 0.0 <= value <= 1.0:
                problems.append(f"{name} must be within [0, 1], got {value}")
        if t.review_threshold > t.block_threshold:
            problems.append(
                f"review_threshold ({t.review_threshold}) exceeds block_threshold ({t.block_threshold})"
            )
        if t.aggregation not in AGGREGATIONS:
            problems.append(f"aggregation must be one of {', '.join(AGGREGATIONS)}, got {t.aggregation!r}")
        if t.corroboration_k < 1:
            problems.append("corroboration_k must be at least 1")

        for name, settings in self.evaluators.items():
            if settings.weight < 0:
                problems.append(f"weight for {name} must not be negative, got {settings.weight}")
        active = [s for s in self.evaluators.values() if s.enabled and s.weight > 0]
        if self.evaluators and not active:
            problems.append("at least one evaluator must be enabled with a positive weight")

        if self.velocity.window_seconds <= 0:
            problems.append("velocity window_seconds must be positive")
        if self.velocity.high_value_threshold < 0:
            problems.append("velocity high_value_threshold must not be negative")

        a = self.amount_deviation
        if a.z_low < 0 or a.z_low >= a.z_high:
            problems.append(f"amount deviation bounds must satisfy 0 <= z_low < z_high, got {a.z_low}/{a.z_high}")
        if a.min_history < 1:
            problems.append("amount deviation min_history must be at least 1")
        if a.min_std_ratio < 0:
            problems.append("amount deviation min_std_ratio must not be negative")

        if self.geo.implausible_speed_kmh <= 0:
            problems.append("geo implausible_speed_kmh must be positive")
        if self.geo.min_distance_km < 0:
            problems.append("geo min_distance_km must not be negative")
        if not 0.0 <= self.device.partial_score <= 1.0:
            problems.append("device partial_score must be within [0, 1]")
        if self.merchant.lookup_timeout_seconds <= 0:
            problems.append("merchant lookup_timeout_seconds must be positive")
        if self.model.timeout_seconds <= 0:
            problems.append("model timeout_seconds must be positive")

        w = self.window
        if w.capacity is None and w.window_seconds is None:
            problems.append("behavior window needs a capacity, a window_seconds, or both")
        if w.capacity is not None and w.capacity < 1:
            problems.append("behavior window capacity must be at least 1")
        if w.window_seconds is not None and w.window_seconds <= 0:
            problems.append("behavior window_seconds must be positive")
        if w.purge_every is not None and w.purge_every < 1:
            problems.append("behavior window purge_every must be at least 1")

        e = self.emitter
        if e.queue_size < 1:
            problems.append("emitter queue_size must be at least 1")
        if e.max_retries < 0:
            problems.append("emitter max_retries must not be negative")
        if e.backoff_seconds < 0 or e.max_backoff_seconds < e.backoff_seconds:
            problems.append("emitter backoff must satisfy 0 <= backoff_seconds <= max_backoff_seconds")

        if self.deadline_seconds <= 0:
            problems.append("deadline_seconds must be positive")
        if self.max_clock_skew_seconds < 0:
            problems.append("max_clock_skew_seconds must not be negative")
        if self.max_workers < 1:
            problems.append("max_workers must be at least 1")

        if problems:
            raise ConfigurationError("Invalid configuration: " + "; ".join(problems))
        return self

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineConfig":
        """Build config from a nested mapping (e.g. parsed JSON).

        Unknown keys are rejected rather than ignored.
        """
        data = dict(data)
        evaluators_raw = data.pop("evaluators", None)
        config = _build(cls, data, "config")
        if evaluators_raw is not None:
            if not isinstance(evaluators_raw, dict):
                raise ConfigurationError("evaluators must be a mapping of name to settings")
            evaluators = _default_evaluator_settings()
            for name, raw in evaluators_raw.items():
                evaluators[name] = _build(EvaluatorSettings, raw, f"evaluators.{name}")
            config.evaluators = evaluators
        config.geo.gazetteer = {
            str(place).lower(): (float(coords[0]), float(coords[1]))
            for place, coords in config.geo.gazetteer.items()
        }
        config.velocity.high_value_threshold = _to_decimal(
            config.velocity.high_value_threshold, "velocity.high_value_threshold"
        )
        return config

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from environment variables."""
        import json
        import os

        def env(name: str, cast: Any, default: Any) -> Any:
            raw = os.getenv(name)
            if raw is None or raw == "":
                return default
            try:
                return cast(raw)
            except (ValueError, InvalidOperation) as exc:
                raise ConfigurationError(f"{name}={raw!r} is not a valid value") from exc

        defaults = cls()

        velocity = VelocityConfig(
            window_seconds=env("FRAUD_VELOCITY_WINDOW_SECONDS", float, defaults.velocity.window_seconds),
            high_value_threshold=env(
                "FRAUD_VELOCITY_THRESHOLD", Decimal, defaults.velocity.high_value_threshold
            ),
        )

        amount_deviation = AmountDeviationConfig(
            z_low=env("FRAUD_Z_LOW", float, defaults.amount_deviation.z_low),
            z_high=env("FRAUD_Z_HIGH", float, defaults.amount_deviation.z_high),
            min_history=env("FRAUD_MIN_HISTORY", int, defaults.amount_deviation.min_history),
        )

        geo = GeoConfig(
            implausible_speed_kmh=env(
                "FRAUD_IMPLAUSIBLE_SPEED_KMH", float, defaults.geo.implausible_speed_kmh
            ),
            min_distance_km=env("FRAUD_MIN_DISTANCE_KM", float, defaults.geo.min_distance_km),
        )

        thresholds = ThresholdConfig(
            review_threshold=env("FRAUD_REVIEW_THRESHOLD", float, defaults.thresholds.review_threshold),
            block_threshold=env("FRAUD_BLOCK_THRESHOLD", float, defaults.thresholds.block_threshold),
            aggregation=os.getenv("FRAUD_AGGREGATION", defaults.thresholds.aggregation),
        )

        window = BehaviorWindowConfig(
            capacity=env("FRAUD_WINDOW_CAPACITY", int, defaults.window.capacity),
            window_seconds=env("FRAUD_WINDOW_SECONDS", float, defaults.window.window_seconds),
            purge_every=env("FRAUD_PURGE_EVERY", int, defaults.window.purge_every),
        )

        evaluators = _default_evaluator_settings()
        weights_str = os.getenv("FRAUD_EVALUATOR_WEIGHTS")
        if weights_str:
            try:
                weights = json.loads(weights_str)
            except json.JSONDecodeError as exc:
                raise ConfigurationError("FRAUD_EVALUATOR_WEIGHTS must be a JSON object") from exc
            if not isinstance(weights, dict):
                raise ConfigurationError("FRAUD_EVALUATOR_WEIGHTS must be a JSON object")
            for name, weight in weights.items():
                evaluators.setdefault(name, EvaluatorSettings()).weight = float(weight)
        for name in filter(None, os.getenv("FRAUD_DISABLED_EVALUATORS", "").split(",")):
            evaluators.setdefault(name.strip(), EvaluatorSettings()).enabled = False

        kafka = KafkaConfig(
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            alert_topic=os.getenv("KAFKA_ALERT_TOPIC", "fraud.alerts"),
            acks=os.getenv("KAFKA_ACKS", "all"),
        )

        postgres = PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=env("POSTGRES_PORT", int, 5432),
            database=os.getenv("POSTGRES_DB", "fraud"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
        )

        return cls(
            velocity=velocity,
            amount_deviation=amount_deviation,
            geo=geo,
            evaluators=evaluators,
            thresholds=thresholds,
            window=window,
            kafka=kafka,
            postgres=postgres,
            deadline_seconds=env("FRAUD_DEADLINE_SECONDS", float, defaults.deadline_seconds),
            max_clock_skew_seconds=env(
                "FRAUD_MAX_CLOCK_SKEW_SECONDS", float, defaults.max_clock_skew_seconds
            ),
            max_workers=env("FRAUD_MAX_WORKERS", int, defaults.max_workers),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def _to_decimal(value: Any, path: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError(f"{path} must be a number, got {value!r}") from exc


def _build(cls: type, data: Any, path: str) -> Any:
    """Instantiate a (possibly nested) config dataclass from a mapping."""
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must be a mapping, got {type(data).__name__}")

    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ConfigurationError(f"Unknown keys in {path}: {', '.join(unknown)}")

    defaults = cls()
    kwargs: dict[str, Any] = {}
    for name, value in data.items():
        current = getattr(defaults, name)
        if is_dataclass(current):
            kwargs[name] = _build(type(current), value, f"{path}.{name}")
        else:
            kwargs[name] = value
    return cls(**kwargs)
