"""Pydantic configuration models for celo-predict."""

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from shared_types import StoreBackend


class GameConfig(BaseModel):
    """Prediction game tunables. Times in milliseconds."""

    prediction_window_ms: int = Field(default=60_000, gt=0)
    rate_limit_window_ms: int = Field(default=3_600_000, gt=0)
    max_predictions_per_hour: int = Field(default=10, gt=0)
    verify_grace_ms: int = Field(default=10_000, ge=0)
    sweep_buffer_ms: int = Field(default=60_000, ge=0)
    win_multiplier: float = Field(default=2.0, ge=0)
    loss_multiplier: float = Field(default=0.5, ge=0)


class StoreTTLConfig(BaseModel):
    """Per-record store expiry, in seconds."""

    prediction_seconds: int = Field(default=300, gt=0)
    history_seconds: int = Field(default=3600, gt=0)
    stats_seconds: int = Field(default=2_592_000, gt=0)  # 30 days


class StoreConfig(BaseModel):
    """Key-value store configuration."""

    backend: StoreBackend = StoreBackend.SQLITE
    path: Path = Path("~/.celo-predict/ledger.db")
    timeout_seconds: float = Field(default=5.0, gt=0)
    ttl: StoreTTLConfig = Field(default_factory=StoreTTLConfig)

    @model_validator(mode="after")
    def expand_path(self):
        """Expand ~ in store path."""
        self.path = self.path.expanduser()
        return self


class RetryConfig(BaseModel):
    """Retry/backoff for store calls."""

    max_attempts: int = Field(default=3, ge=1)
    min_wait: float = Field(default=0.05, ge=0)
    max_wait: float = Field(default=0.5, ge=0)


class OracleConfig(BaseModel):
    """Price oracle (CoinGecko simple price API)."""

    base_url: str = "https://api.coingecko.com/api/v3"
    asset_id: str = "celo"
    currency: str = "usd"
    timeout_seconds: float = Field(default=10.0, gt=0)
    cache_seconds: float = Field(default=5.0, ge=0)
    api_key: str | None = None


class SweepConfig(BaseModel):
    """Periodic maintenance sweep."""

    enabled: bool = True
    interval_seconds: int = Field(default=60, gt=0)


VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_logs: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class WebConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "127.0.0.1"
    port: int = Field(default=8000, gt=0, lt=65536)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class AppConfig(BaseModel):
    """Main configuration model."""

    game: GameConfig = Field(default_factory=GameConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    sweep: SweepConfig = Field(default_factory=SweepConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    web: WebConfig = Field(default_factory=WebConfig)

    @model_validator(mode="after")
    def validate_sweep_buffer(self):
        """A sweep must not remove predictions verify would still accept."""
        game = self.game
        if game.sweep_buffer_ms < game.verify_grace_ms:
            raise ValueError(
                f"game.sweep_buffer_ms ({game.sweep_buffer_ms}ms) must be >= "
                f"game.verify_grace_ms ({game.verify_grace_ms}ms)"
            )
        return self

    @model_validator(mode="after")
    def validate_ttls(self):
        """Store TTLs must outlive the windows they back."""
        ttl = self.store.ttl
        needed = self.game.prediction_window_ms + self.game.verify_grace_ms
        if ttl.prediction_seconds * 1000 < needed:
            raise ValueError(
                f"store.ttl.prediction_seconds ({ttl.prediction_seconds}s) must cover "
                f"prediction window + grace ({needed}ms)"
            )
        if ttl.history_seconds * 1000 < self.game.rate_limit_window_ms:
            raise ValueError(
                f"store.ttl.history_seconds ({ttl.history_seconds}s) must cover "
                f"rate limit window ({self.game.rate_limit_window_ms}ms)"
            )
        return self

    @model_validator(mode="after")
    def expand_env_vars(self):
        """Expand ${VAR} pattern in oracle API key."""
        key = self.oracle.api_key
        if key and key.startswith("${") and key.endswith("}"):
            self.oracle.api_key = os.getenv(key[2:-1]) or None
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        return cls.model_validate(data or {})

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
