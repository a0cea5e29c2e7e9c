"""
Base provider abstract class and the result model providers return.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chatbot_router.schemas.routing import RouteOptions, normalize_confidence


class ProviderResult(BaseModel):
    """Outcome of a provider's process() call."""

    model_config = ConfigDict(extra="allow")

    success: bool = Field(True, description="Whether the provider produced an answer")
    response: str = Field("", description="Answer text")
    confidence: float = Field(0.5, ge=0.0, le=1.0, description="Confidence on the 0..1 scale")
    method: Optional[str] = Field(None, description="Provider-internal path")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional metadata")

    @field_validator("confidence", mode="before")
    @classmethod
    def scale_confidence(cls, v):
        if v is None:
            return 0.5
        return normalize_confidence(v)

    @field_validator("response", mode="before")
    @classmethod
    def coerce_response(cls, v):
        return "" if v is None else v

    @property
    def is_usable(self) -> bool:
        """True when the result can be handed to the user."""
        return self.success and bool(self.response.strip())

    @classmethod
    def coerce(cls, value: Any) -> "ProviderResult":
        """
        Accept the shapes processors return in practice.

        Args:
            value: A ProviderResult, a mapping with the same keys, or a string

        Returns:
            ProviderResult: The normalized result
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(success=True, response=value)
        if isinstance(value, Mapping):
            return cls.model_validate(dict(value))
        if value is None:
            return cls(success=False, response="")
        raise TypeError(f"Unsupported provider result type: {type(value).__name__}")


class BaseProvider(ABC):
    """Abstract base class for chat providers."""

    name: str = ""
    priority: int = 0
    critical: bool = False

    def __init__(self, name: Optional[str] = None, priority: Optional[int] = None):
        """
        Initialize the provider.

        Args:
            name: Unique provider name; defaults to the class attribute
            priority: Routing priority, higher is tried first
        """
        if name is not None:
            self.name = name
        if priority is not None:
            self.priority = priority
        if not self.name:
            self.name = self.__class__.__name__.replace("Provider", "")

    @abstractmethod
    def can_handle(self, message: str, options: RouteOptions) -> bool:
        """
        Decide whether this provider should see the message.

        Args:
            message: User message
            options: Routing options for the request

        Returns:
            bool: True if process() should be attempted
        """
        pass

    @abstractmethod
    async def process(self, message: str, options: RouteOptions) -> ProviderResult:
        """
        Produce an answer.

        Args:
            message: User message
            options: Routing options for the request

        Returns:
            ProviderResult: The answer, or success=False when none was produced

        Raises:
            Exception: Any failure; the router records it and moves on
        """
        pass

    async def health_check(self) -> Dict[str, Any]:
        """Self-check used by the health sweep."""
        return {"healthy": True, "issues": []}

    def get_info(self) -> Dict[str, Any]:
        """Describe the provider."""
        return {
            "name": self.name,
            "priority": self.priority,
            "critical": self.critical,
            "type": self.__class__.__name__,
        }
