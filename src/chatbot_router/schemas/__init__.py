"""Data schemas for the chat router."""

from chatbot_router.schemas.routing import (
    AttemptRecord,
    RouteOptions,
    RouterResult,
    RoutingHints,
    RoutingMode,
    normalize_confidence,
)

__all__ = [
    "AttemptRecord",
    "RouteOptions",
    "RouterResult",
    "RoutingHints",
    "RoutingMode",
    "normalize_confidence",
]
