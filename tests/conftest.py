"""Pytest configuration and fixtures."""

import asyncio
from typing import Any, Callable

import pytest
from prometheus_client import CollectorRegistry

from chatbot_router.config import RouterSettings
from chatbot_router.orchestrator.health import HealthTracker
from chatbot_router.orchestrator.router import Router
from chatbot_router.providers.base import BaseProvider, ProviderResult
from chatbot_router.providers.registry import ProviderRegistry
from chatbot_router.telemetry.metrics import RouterMetrics


class ProviderMock(BaseProvider):
    """Provider with configurable capability and failure modes"""

    def __init__(
        self,
        name: str,
        priority: int = 50,
        response: Any = "ok",
        handles: bool | Callable[[str], bool] = True,
        fail_with: Exception | None = None,
        hang: bool = False,
        delay: float = 0.0,
        health: Any = None,
        critical: bool = False,
    ):
        super().__init__(name=name, priority=priority)
        self.response = response
        self.handles = handles
        self.fail_with = fail_with
        self.hang = hang
        self.delay = delay
        self.health = health
        self.critical = critical
        self.call_count = 0
        self.can_handle_calls = 0
        self.cancelled = False

    def can_handle(self, message, options) -> bool:
        self.can_handle_calls += 1
        if callable(self.handles):
            return self.handles(message)
        return self.handles

    async def process(self, message, options):
        self.call_count += 1
        try:
            if self.hang:
                await asyncio.Event().wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.fail_with is not None:
            raise self.fail_with
        if isinstance(self.response, (str, dict, ProviderResult)) or self.response is None:
            return self.response
        return ProviderResult(response=str(self.response))

    async def health_check(self):
        if isinstance(self.health, Exception):
            raise self.health
        if self.health == "hang":
            await asyncio.Event().wait()
        if self.health is None:
            return {"healthy": True, "issues": []}
        return self.health


@pytest.fixture
def make_provider():
    """Factory for mock providers."""
    return ProviderMock


@pytest.fixture
def settings():
    """Settings with short timeouts so failure paths run quickly."""
    return RouterSettings(
        default_timeout_ms=500,
        min_timeout_ms=10,
        max_timeout_ms=5000,
        health_check_timeout_s=0.05,
        health_base_interval_s=60,
        health_max_interval_s=300,
        health_warmup_s=0,
    )


@pytest.fixture
def metrics():
    """Metrics bound to a private registry so tests never collide."""
    return RouterMetrics(registry=CollectorRegistry())


@pytest.fixture
def registry():
    return ProviderRegistry(
        express_providers=["Chat-Memory", "ChatFree"],
        expert_providers=["ConversationEngine-Semantic", "Intelligent-Processor"],
    )


@pytest.fixture
def health(settings, metrics):
    return HealthTracker(settings=settings, metrics=metrics)


@pytest.fixture
def router(registry, health, settings, metrics):
    return Router(registry, health=health, settings=settings, metrics=metrics)
