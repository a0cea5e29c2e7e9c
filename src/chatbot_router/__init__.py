"""Chat message routing across prioritized providers with fallback."""

__version__ = "1.0.0"

from chatbot_router.exceptions import (
    DuplicateNameError,
    InvalidProviderError,
    ProviderError,
    RegistryError,
    RouterError,
)
from chatbot_router.orchestrator import (
    FallbackResponder,
    HealthStatus,
    HealthTracker,
    HintAnalyzer,
    Router,
)
from chatbot_router.providers import BaseProvider, ProviderResult, ProviderRegistry
from chatbot_router.schemas import RouteOptions, RouterResult, RoutingHints, RoutingMode

__all__ = [
    "__version__",
    "BaseProvider",
    "DuplicateNameError",
    "FallbackResponder",
    "HealthStatus",
    "HealthTracker",
    "HintAnalyzer",
    "InvalidProviderError",
    "ProviderError",
    "ProviderRegistry",
    "ProviderResult",
    "RegistryError",
    "RouteOptions",
    "Router",
    "RouterError",
    "RouterResult",
    "RoutingHints",
    "RoutingMode",
]
