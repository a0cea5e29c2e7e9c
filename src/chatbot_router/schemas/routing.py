"""Routing request and response schemas."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def normalize_confidence(value: float | int | None) -> float | None:
    """Bring a confidence score onto the 0..1 scale.

    Producers report either fractions or percentages; anything above 1 is read
    as a percentage.
    """
    if value is None:
        return None
    value = float(value)
    if value > 1.0:
        value = value / 100.0
    return max(0.0, min(value, 1.0))


class CamelModel(BaseModel):
    """Base model accepting both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoutingMode(str, Enum):
    """Candidate ordering modes."""

    DEFAULT = "default"
    EXPRESS = "express"
    EXPERT = "expert"


class RoutingHints(CamelModel):
    """Per-request directives that bias provider selection and the timeout."""

    mode: RoutingMode = Field(default=RoutingMode.DEFAULT, description="Ordering mode")
    complexity: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Message complexity, used for fallback confidence"
    )
    preferred_providers: set[str] = Field(
        default_factory=set, description="Restrict candidates to these names when any is registered"
    )
    skip_providers: set[str] = Field(default_factory=set, description="Provider names to exclude")
    time_limit_ms: int | None = Field(default=None, description="Requested per-candidate timeout")
    special_category: str | None = Field(default=None, description="Detected message category")

    @field_validator("mode", mode="before")
    @classmethod
    def parse_mode(cls, v):
        if v is None:
            return RoutingMode.DEFAULT
        if isinstance(v, str):
            v = v.strip().lower()
            # "standard" and "specialized" both order candidates like the default
            if v in ("", "standard", "specialized"):
                return RoutingMode.DEFAULT
        return v

    @field_validator("time_limit_ms", mode="before")
    @classmethod
    def round_time_limit(cls, v):
        if isinstance(v, float):
            return int(round(v))
        return v

    @field_validator("preferred_providers", "skip_providers", mode="before")
    @classmethod
    def parse_names(cls, v):
        if v is None:
            return set()
        if isinstance(v, str):
            return {name.strip() for name in v.split(",") if name.strip()}
        return v


class RouteOptions(CamelModel):
    """Options accompanying a routed message."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    user_id: str | None = Field(default=None, description="User identifier")
    session_id: str | None = Field(default=None, description="Conversation session identifier")
    request_id: str | None = Field(default=None, description="Correlation identifier")
    routing_hints: RoutingHints | None = Field(default=None, description="Routing hints")


AttemptOutcome = Literal["timeout", "error", "abandoned"]


class AttemptRecord(CamelModel):
    """A candidate attempt that did not produce the answer."""

    provider: str = Field(..., description="Provider name")
    outcome: AttemptOutcome = Field(..., description="Failure kind")
    reason: str = Field(..., description="Timeout description or error message")
    elapsed_ms: int = Field(..., ge=0, description="Time spent on the attempt")


class RouterResult(CamelModel):
    """Response envelope returned to the chat endpoint."""

    success: bool = Field(True, description="Always true unless an infra error occurred")
    response: str = Field(..., description="Answer text")
    provider_name: str | None = Field(None, description="Provider that produced the answer")
    confidence: float = Field(0.5, ge=0.0, le=1.0, description="Confidence on the 0..1 scale")
    processing_time_ms: int = Field(0, ge=0, description="Total routing time")
    method: str | None = Field(None, description="Internal path that produced the answer")
    routed_by: Literal["router", "router-fallback"] = Field(
        "router", description="Whether a provider or the fallback answered"
    )
    adaptive_timeout_ms: int | None = Field(None, description="Per-candidate timeout applied")
    attempted: list[str] = Field(default_factory=list, description="Providers whose process ran")
    skipped: list[str] = Field(default_factory=list, description="Providers that declined")
    failures: list[AttemptRecord] = Field(default_factory=list, description="Failed attempts")
    system_health: str = Field("unknown", description="Status of the last health sweep")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Additional metadata")

    @field_validator("confidence", mode="before")
    @classmethod
    def scale_confidence(cls, v):
        return normalize_confidence(v)

    @property
    def is_fallback(self) -> bool:
        return self.routed_by == "router-fallback"
