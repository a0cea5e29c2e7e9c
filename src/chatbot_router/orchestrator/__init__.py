"""Orchestrator module: routing, fallback and provider health."""

from chatbot_router.orchestrator.fallback import FallbackResponder, FallbackResponse
from chatbot_router.orchestrator.health import HealthStatus, HealthTracker, SystemHealthReport
from chatbot_router.orchestrator.hints import HintAnalyzer
from chatbot_router.orchestrator.router import Router

__all__ = [
    "FallbackResponder",
    "FallbackResponse",
    "HealthStatus",
    "HealthTracker",
    "HintAnalyzer",
    "Router",
    "SystemHealthReport",
]
