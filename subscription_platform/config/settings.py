"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Configuration
    app_name: str = Field(default="subscription-service", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8080, description="Subscription service port")
    payment_api_port: int = Field(default=8081, description="Payment service port")
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:8080",
        description="CORS allowed origins (comma-separated)",
    )

    # Payment Gateway
    payment_backend: str = Field(
        default="simulated", description="Payment gateway backend (simulated/http)"
    )
    payment_service_url: str = Field(
        default="http://payment-service:8081", description="Base URL of the payment service"
    )
    payment_timeout_seconds: float = Field(
        default=10.0, description="Deadline for a single payment call (seconds)"
    )
    default_currency: str = Field(default="USD", description="Currency used when none is given")

    # Payment Simulation
    processing_delay_ms: int = Field(default=100, description="Fixed simulated processing delay")
    enable_failures: bool = Field(default=False, description="Inject random payment failures")
    failure_rate: float = Field(default=0.1, description="Probability of an injected failure")
    extra_delay_probability: float = Field(
        default=0.1, description="Probability of extra latency on a successful payment"
    )
    extra_delay_max_ms: int = Field(default=200, description="Upper bound for extra latency")

    # Observability
    metrics_enabled: bool = Field(default=True, description="Expose Prometheus metrics")
    tracing_enabled: bool = Field(default=False, description="Enable OpenTelemetry tracing")
    otlp_endpoint: Optional[str] = Field(
        default=None, description="OTLP gRPC collector endpoint (e.g. http://otel-collector:4317)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @field_validator("payment_backend")
    @classmethod
    def validate_payment_backend(cls, v: str) -> str:
        """Validate payment backend selection."""
        if v.lower() not in ("simulated", "http"):
            raise ValueError("Invalid payment backend. Must be 'simulated' or 'http'")
        return v.lower()

    @field_validator("failure_rate", "extra_delay_probability")
    @classmethod
    def validate_probability(cls, v: float) -> float:
        """Probabilities must lie in [0, 1]."""
        if not 0.0 <= v <= 1.0:
            raise ValueError("Probability must be between 0.0 and 1.0")
        return v

    @field_validator("processing_delay_ms", "extra_delay_max_ms")
    @classmethod
    def validate_delay(cls, v: int) -> int:
        """Delays cannot be negative."""
        if v < 0:
            raise ValueError("Delay must not be negative")
        return v

    @field_validator("payment_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Payment deadline must be positive."""
        if v <= 0:
            raise ValueError("Payment timeout must be positive")
        return v

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def processing_delay_seconds(self) -> float:
        return self.processing_delay_ms / 1000.0

    @property
    def extra_delay_max_seconds(self) -> float:
        return self.extra_delay_max_ms / 1000.0


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
