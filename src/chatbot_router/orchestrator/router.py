"""Chat message router: ordered provider attempts with timeouts and fallback."""

import asyncio
import inspect
import time
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence

import structlog

from chatbot_router.config import RouterSettings, get_settings
from chatbot_router.exceptions import CandidateError, CandidateTimeout, RegistryError
from chatbot_router.orchestrator.fallback import FallbackResponder, FallbackResponse
from chatbot_router.orchestrator.health import HealthTracker
from chatbot_router.orchestrator.hints import HintAnalyzer
from chatbot_router.orchestrator.timeouts import DeadlineExceeded, TaskCancelled, run_with_timeout
from chatbot_router.providers.base import ProviderResult
from chatbot_router.providers.registry import ProviderRecord, ProviderRegistry
from chatbot_router.schemas.routing import AttemptRecord, RouteOptions, RouterResult, RoutingHints
from chatbot_router.telemetry.logger import RequestContext, preview
from chatbot_router.telemetry.metrics import RouterMetrics, metrics_collector

logger = structlog.get_logger(__name__)

FALLBACK_PROVIDER_NAME = "FallbackResponder"


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class Router:
    """Routes a message to the first registered provider that answers.

    Candidates come from the registry in priority order (reshaped by routing
    hints) and are tried one at a time. A candidate whose can_handle() is false
    is skipped; otherwise its process() runs under the adaptive timeout. The
    first usable result wins. Timeouts and errors are recorded with the health
    tracker and the next candidate is tried. When every candidate is exhausted
    the fallback responder answers, so callers always get a successful result.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        health: Optional[HealthTracker] = None,
        fallback: Optional[FallbackResponder] = None,
        settings: Optional[RouterSettings] = None,
        metrics: Optional[RouterMetrics] = None,
        hint_analyzer: Optional[HintAnalyzer] = None,
    ):
        """Initialize the router around an already populated registry."""
        self.registry = registry
        self.settings = settings or get_settings()
        self.metrics = metrics or metrics_collector
        self.health = health or HealthTracker(settings=self.settings, metrics=self.metrics)
        self.fallback = fallback or FallbackResponder()
        if hint_analyzer is None and self.settings.auto_hints:
            hint_analyzer = HintAnalyzer()
        self.hint_analyzer = hint_analyzer

        for record in registry.snapshot():
            self._track(record)
        registry.subscribe(self._track)

    @classmethod
    def from_providers(
        cls,
        providers: Sequence[Any],
        settings: Optional[RouterSettings] = None,
        **kwargs,
    ) -> "Router":
        """Build a registry from provider objects once at startup and wrap it."""
        settings = settings or get_settings()
        registry = ProviderRegistry(
            express_providers=settings.express_providers,
            expert_providers=settings.expert_providers,
        )
        for provider in providers:
            registry.register_provider(provider)
        return cls(registry, settings=settings, **kwargs)

    def _track(self, record: ProviderRecord) -> None:
        self.health.track(record.name, self_check=record.health_check, critical=record.critical)

    async def start(self):
        """Start background health sweeps."""
        await self.health.start()

    async def stop(self):
        """Stop background health sweeps."""
        await self.health.stop()

    async def __aenter__(self) -> "Router":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
        return False

    @staticmethod
    def _coerce_options(options: Any) -> RouteOptions:
        if options is None:
            return RouteOptions()
        if isinstance(options, RouteOptions):
            return options
        if isinstance(options, Mapping):
            return RouteOptions.model_validate(dict(options))
        raise TypeError(f"Unsupported routing options type: {type(options).__name__}")

    def _system_health(self) -> str:
        report = self.health.last_report
        return report.status if report is not None else "unknown"

    async def route(self, message: str, options: Any = None) -> RouterResult:
        """
        Answer a chat message.

        Args:
            message: User message
            options: RouteOptions, or a mapping with userId/sessionId/routingHints

        Returns:
            RouterResult: Provider answer, or the fallback answer

        Raises:
            RegistryError: No providers are registered
            asyncio.CancelledError: The caller cancelled the request
        """
        start = time.perf_counter()
        opts = self._coerce_options(options)

        with RequestContext(
            request_id=opts.request_id, user_id=opts.user_id, session_id=opts.session_id
        ):
            if not isinstance(message, str) or not message.strip():
                logger.info("Empty message, answering with fallback")
                return self._finish(
                    self._fallback_result(
                        self.fallback.empty_input(),
                        hints=opts.routing_hints,
                        candidates=(),
                        attempted=[],
                        skipped=[],
                        failures=[],
                        adaptive_timeout_ms=None,
                        start=start,
                    )
                )

            if len(self.registry) == 0:
                raise RegistryError("No providers registered")

            hints = opts.routing_hints
            if hints is None and self.hint_analyzer is not None:
                hints = self.hint_analyzer.analyze(message)
                opts = opts.model_copy(update={"routing_hints": hints})

            adaptive_timeout_ms = self.settings.clamp_timeout(
                hints.time_limit_ms if hints is not None else None
            )
            candidates = self._select_candidates(hints)

            logger.info(
                "Routing message",
                message=preview(message),
                candidates=[c.name for c in candidates],
                mode=hints.mode.value if hints is not None else None,
                adaptive_timeout_ms=adaptive_timeout_ms,
            )

            attempted: List[str] = []
            skipped: List[str] = []
            failures: List[AttemptRecord] = []

            for record in candidates:
                if not self._can_handle(record, message, opts):
                    skipped.append(record.name)
                    continue

                attempted.append(record.name)
                result = await self._attempt(record, message, opts, adaptive_timeout_ms, failures)
                if result is None:
                    continue

                logger.info("Provider answered", provider=record.name, attempts=len(attempted))
                return self._finish(
                    RouterResult(
                        success=True,
                        response=result.response,
                        provider_name=record.name,
                        confidence=result.confidence,
                        processing_time_ms=_elapsed_ms(start),
                        method=result.method or "provider",
                        routed_by="router",
                        adaptive_timeout_ms=adaptive_timeout_ms,
                        attempted=attempted,
                        skipped=skipped,
                        failures=failures,
                        system_health=self._system_health(),
                        metadata={
                            **result.metadata,
                            "routing_hints_used": hints is not None,
                        },
                    )
                )

            logger.warning(
                "No provider answered, using fallback",
                attempted=attempted,
                skipped=skipped,
            )
            return self._finish(
                self._fallback_result(
                    self.fallback.respond(message, hints),
                    hints=hints,
                    candidates=candidates,
                    attempted=attempted,
                    skipped=skipped,
                    failures=failures,
                    adaptive_timeout_ms=adaptive_timeout_ms,
                    start=start,
                )
            )

    def _select_candidates(self, hints: Optional[RoutingHints]) -> Sequence[ProviderRecord]:
        candidates = self.registry.active_providers(hints)
        if self.settings.skip_unavailable_providers:
            available = tuple(c for c in candidates if not self.health.is_unavailable(c.name))
            if len(available) != len(candidates):
                logger.info(
                    "Unavailable providers excluded",
                    excluded=[c.name for c in candidates if c not in available],
                )
            candidates = available
        return candidates

    @staticmethod
    def _can_handle(record: ProviderRecord, message: str, options: RouteOptions) -> bool:
        try:
            return bool(record.can_handle(message, options))
        except Exception as e:
            logger.warning("can_handle raised, skipping provider", provider=record.name, error=str(e))
            return False

    async def _attempt(
        self,
        record: ProviderRecord,
        message: str,
        options: RouteOptions,
        timeout_ms: int,
        failures: List[AttemptRecord],
    ) -> Optional[ProviderResult]:
        """Run one candidate. Returns the result on success, None otherwise."""
        attempt_start = time.perf_counter()
        try:
            outcome = record.process(message, options)
            if inspect.isawaitable(outcome):
                outcome = await run_with_timeout(
                    outcome, timeout_ms / 1000, name=f"provider:{record.name}"
                )
            result = ProviderResult.coerce(outcome)
        except DeadlineExceeded:
            error = CandidateTimeout(record.name, timeout_ms)
            self._record_failure(record, "timeout", error.message, attempt_start, failures)
            return None
        except TaskCancelled:
            error = CandidateError("Provider cancelled itself", provider=record.name)
            self._record_failure(record, "error", error.message, attempt_start, failures)
            return None
        except asyncio.CancelledError:
            elapsed = _elapsed_ms(attempt_start)
            self.health.record(record.name, elapsed, False, outcome="abandoned", reason="cancelled")
            self.metrics.record_attempt(record.name, "abandoned", elapsed / 1000)
            logger.info("Request cancelled, attempt abandoned", provider=record.name)
            raise
        except Exception as e:
            error = CandidateError(str(e) or type(e).__name__, provider=record.name)
            self._record_failure(record, "error", error.message, attempt_start, failures)
            return None

        if not result.is_usable:
            error = CandidateError("Provider returned no usable response", provider=record.name)
            self._record_failure(record, "error", error.message, attempt_start, failures)
            return None

        elapsed = _elapsed_ms(attempt_start)
        self.health.record(record.name, elapsed, False)
        self.metrics.record_attempt(record.name, "success", elapsed / 1000)
        return result

    def _record_failure(
        self,
        record: ProviderRecord,
        outcome: str,
        reason: str,
        attempt_start: float,
        failures: List[AttemptRecord],
    ) -> None:
        elapsed = _elapsed_ms(attempt_start)
        self.health.record(record.name, elapsed, True, outcome=outcome, reason=reason)
        self.metrics.record_attempt(record.name, outcome, elapsed / 1000)
        failures.append(
            AttemptRecord(provider=record.name, outcome=outcome, reason=reason, elapsed_ms=elapsed)
        )
        logger.warning("Provider attempt failed", provider=record.name, outcome=outcome, reason=reason)

    def _fallback_confidence(self, hints: Optional[RoutingHints]) -> float:
        if hints is not None and hints.complexity is not None:
            return max(self.settings.min_fallback_confidence, hints.complexity)
        return self.settings.default_fallback_confidence

    def _fallback_result(
        self,
        fallback: FallbackResponse,
        *,
        hints: Optional[RoutingHints],
        candidates: Sequence[ProviderRecord],
        attempted: List[str],
        skipped: List[str],
        failures: List[AttemptRecord],
        adaptive_timeout_ms: Optional[int],
        start: float,
    ) -> RouterResult:
        routing_hints = None
        if hints is not None:
            routing_hints = {
                "mode": hints.mode.value,
                "complexity": hints.complexity,
                "special_category": hints.special_category,
            }

        return RouterResult(
            success=True,
            response=fallback.text,
            provider_name=FALLBACK_PROVIDER_NAME,
            confidence=self._fallback_confidence(hints),
            processing_time_ms=_elapsed_ms(start),
            method=f"fallback:{fallback.rule}",
            routed_by="router-fallback",
            adaptive_timeout_ms=adaptive_timeout_ms,
            attempted=attempted,
            skipped=skipped,
            failures=failures,
            system_health=self._system_health(),
            metadata={
                "fallback": True,
                "fallback_rule": fallback.rule,
                "providers_checked": len(candidates),
                "available_providers": len(self.registry),
                "routing_hints": routing_hints,
            },
        )

    def _finish(self, result: RouterResult) -> RouterResult:
        self.metrics.record_route(result.routed_by, result.processing_time_ms / 1000)
        if result.is_fallback:
            self.metrics.record_fallback(result.metadata.get("fallback_rule", "unknown"))
        return result

    def get_status(self) -> Dict[str, Any]:
        """Registry, per-provider health and the last sweep."""
        report = self.health.last_report
        return {
            "providers": self.registry.describe(),
            "health": {
                name: snapshot.model_dump(mode="json")
                for name in self.registry.names()
                if (snapshot := self.health.status_of(name)) is not None
            },
            "last_sweep": report.model_dump(mode="json") if report is not None else None,
            "monitoring": self.health.self_diagnostic(),
        }
