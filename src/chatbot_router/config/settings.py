"""Settings configuration"""
import json
from functools import lru_cache
from typing import Annotated, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class RouterSettings(BaseSettings):
    """Router settings, overridable through ROUTER_* environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="ROUTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        validate_assignment=True,
    )

    # Application
    app_name: str = "Chatbot Router"
    version: str = "1.0.0"
    environment: str = "development"

    # Adaptive timeout
    default_timeout_ms: int = Field(default=10000, ge=1)
    min_timeout_ms: int = Field(default=1000, ge=1)
    max_timeout_ms: int = Field(default=60000, ge=1)

    # Fallback
    default_fallback_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    min_fallback_confidence: float = Field(default=0.3, ge=0.0, le=1.0)

    # Candidate ordering
    express_providers: Annotated[List[str], NoDecode] = Field(default=["Chat-Memory", "ChatFree"])
    expert_providers: Annotated[List[str], NoDecode] = Field(
        default=["ConversationEngine-Semantic", "Intelligent-Processor"]
    )
    auto_hints: bool = False
    skip_unavailable_providers: bool = False

    # Health sweep
    health_base_interval_s: float = Field(default=60.0, gt=0)
    health_max_interval_s: float = Field(default=300.0, gt=0)
    health_warmup_s: float = Field(default=10.0, ge=0)
    health_check_timeout_s: float = Field(default=3.0, gt=0)
    health_sweep_concurrency: int = Field(default=8, ge=1)

    # Health thresholds
    latency_degraded_ms: float = 8000.0
    error_rate_degraded: float = Field(default=0.15, ge=0.0, le=1.0)
    error_rate_critical: float = Field(default=0.4, ge=0.0, le=1.0)
    memory_limit_mb: float = 800.0
    latency_smoothing: float = Field(default=0.5, gt=0.0, le=1.0)

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("express_providers", "expert_providers", mode="before")
    @classmethod
    def parse_provider_list(cls, v):
        if isinstance(v, str):
            # Handle JSON array format
            if v.startswith("["):
                try:
                    return json.loads(v)
                except (json.JSONDecodeError, ValueError):
                    pass
            # Handle comma-separated format
            return [name.strip() for name in v.split(",") if name.strip()]
        return v

    @field_validator("max_timeout_ms")
    @classmethod
    def check_timeout_bounds(cls, v, info):
        minimum = info.data.get("min_timeout_ms")
        if minimum is not None and v < minimum:
            raise ValueError("max_timeout_ms must not be lower than min_timeout_ms")
        return v

    # Properties
    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def clamp_timeout(self, time_limit_ms: int | None) -> int:
        """Clamp a requested time limit into the configured window."""
        requested = self.default_timeout_ms if time_limit_ms is None else time_limit_ms
        return int(max(self.min_timeout_ms, min(requested, self.max_timeout_ms)))


@lru_cache()
def get_settings() -> RouterSettings:
    """Get cached settings instance"""
    return RouterSettings()
