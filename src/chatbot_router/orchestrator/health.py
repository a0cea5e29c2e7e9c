"""Per-provider health accounting and the periodic health sweep."""

import asyncio
import inspect
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

import psutil
import structlog
from pydantic import BaseModel, Field

from chatbot_router.config import RouterSettings, get_settings
from chatbot_router.orchestrator.timeouts import DeadlineExceeded, run_with_timeout
from chatbot_router.telemetry.metrics import RouterMetrics, metrics_collector

logger = structlog.get_logger(__name__)

SelfCheck = Callable[[], Awaitable[Any]]

HISTORY_LIMIT = 50
ERROR_LOG_LIMIT = 25


class HealthStatus(str, Enum):
    """Provider health classification."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"
    UNAVAILABLE = "unavailable"


_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.CRITICAL: 2,
    HealthStatus.UNAVAILABLE: 3,
}


def _worse(current: HealthStatus, candidate: HealthStatus) -> HealthStatus:
    return candidate if _SEVERITY[candidate] > _SEVERITY[current] else current


@dataclass
class HealthRecord:
    """Mutable counters for one provider. Guarded by its own lock."""

    name: str
    critical: bool = False
    self_check: Optional[SelfCheck] = None
    total_calls: int = 0
    successful_calls: int = 0
    timeouts: int = 0
    abandoned_calls: int = 0
    average_response_time_ms: float = 0.0
    last_error: Optional[str] = None
    check_failed: bool = False
    check_issues: List[str] = field(default_factory=list)
    memory_issue: Optional[str] = None
    last_checked: Optional[float] = None
    registered_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    errors: Deque[Dict[str, Any]] = field(default_factory=lambda: deque(maxlen=ERROR_LOG_LIMIT))
    history: Deque[Dict[str, Any]] = field(default_factory=lambda: deque(maxlen=HISTORY_LIMIT))
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def error_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return 1.0 - (self.successful_calls / self.total_calls)


class HealthSnapshot(BaseModel):
    """Point-in-time copy of a provider's health record."""

    name: str
    status: HealthStatus
    critical: bool = False
    total_calls: int = 0
    successful_calls: int = 0
    timeouts: int = 0
    abandoned_calls: int = 0
    average_response_time_ms: float = 0.0
    error_rate: float = 0.0
    last_error: Optional[str] = None
    issues: List[str] = Field(default_factory=list)
    last_checked: Optional[float] = None


class HealthSummary(BaseModel):
    total: int = 0
    healthy: int = 0
    degraded: int = 0
    critical: int = 0
    unavailable: int = 0


class HealthIssue(BaseModel):
    provider: str
    issue: str
    critical: bool = False


class Recommendation(BaseModel):
    priority: str
    action: str
    details: str


class SystemHealthReport(BaseModel):
    """Aggregate result of a health sweep."""

    status: str = "healthy"
    timestamp: float = Field(default_factory=time.time)
    summary: HealthSummary = Field(default_factory=HealthSummary)
    providers: Dict[str, HealthSnapshot] = Field(default_factory=dict)
    issues: List[HealthIssue] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    check_duration_ms: float = 0.0


def overall_status(summary: HealthSummary) -> str:
    """Collapse per-provider counts into a system status."""
    if summary.critical > 0 or summary.unavailable > 2:
        return "critical"
    if summary.degraded > 3 or summary.unavailable > 0:
        return "degraded"
    if summary.healthy == summary.total:
        return "optimal"
    return "healthy"


def generate_recommendations(
    summary: HealthSummary, issues: List[HealthIssue]
) -> List[Recommendation]:
    """Recommendations derived only from the sweep counts and issue texts."""
    recommendations = []

    if summary.critical > 0:
        recommendations.append(
            Recommendation(
                priority="high",
                action="Fix critical providers immediately",
                details=f"{summary.critical} providers in critical state",
            )
        )

    if summary.unavailable > 0:
        recommendations.append(
            Recommendation(
                priority="medium",
                action="Check provider availability",
                details=f"{summary.unavailable} providers unavailable",
            )
        )

    if summary.degraded > 2:
        recommendations.append(
            Recommendation(
                priority="medium",
                action="Optimize provider performance",
                details=f"{summary.degraded} providers running degraded",
            )
        )

    if any("memory" in i.issue.lower() for i in issues):
        recommendations.append(
            Recommendation(
                priority="medium",
                action="Reduce memory usage",
                details="Providers report memory pressure",
            )
        )

    if any("response time" in i.issue.lower() for i in issues):
        recommendations.append(
            Recommendation(
                priority="low",
                action="Improve response times",
                details="Some providers are slow",
            )
        )

    return recommendations


class HealthTracker:
    """Tracks provider outcomes and runs the periodic health sweep."""

    def __init__(
        self,
        settings: Optional[RouterSettings] = None,
        metrics: Optional[RouterMetrics] = None,
    ):
        """Initialize health tracker."""
        self.settings = settings or get_settings()
        self.metrics = metrics or metrics_collector
        self._records: Dict[str, HealthRecord] = {}
        self._lock = threading.Lock()

        self.last_report: Optional[SystemHealthReport] = None
        self.consecutive_failures = 0
        self.current_interval = self.settings.health_base_interval_s
        self._task: Optional[asyncio.Task] = None
        self._running = False

    # Recording

    def track(
        self,
        name: str,
        *,
        self_check: Optional[SelfCheck] = None,
        critical: bool = False,
    ) -> HealthRecord:
        """Start tracking a provider. Tracking the same name twice keeps the counters."""
        with self._lock:
            record = self._records.get(name)
            if record is None:
                record = HealthRecord(name=name, critical=critical, self_check=self_check)
                self._records[name] = record
                logger.debug("Health tracking started", provider=name, critical=critical)
            else:
                with record.lock:
                    if self_check is not None:
                        record.self_check = self_check
                    record.critical = record.critical or critical
            return record

    def record(
        self,
        name: str,
        elapsed_ms: float,
        is_error: bool,
        *,
        outcome: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """Account for one process() call. Never raises."""
        try:
            record = self._records.get(name) or self.track(name)
            now = time.time()
            with record.lock:
                record.last_activity = now
                if outcome == "abandoned":
                    record.abandoned_calls += 1
                    return

                record.total_calls += 1
                if not is_error:
                    record.successful_calls += 1
                if outcome == "timeout":
                    record.timeouts += 1

                elapsed_ms = max(float(elapsed_ms), 0.0)
                if record.total_calls == 1:
                    record.average_response_time_ms = elapsed_ms
                else:
                    alpha = self.settings.latency_smoothing
                    record.average_response_time_ms = (
                        record.average_response_time_ms * (1 - alpha) + elapsed_ms * alpha
                    )

                if is_error:
                    record.last_error = reason or outcome or "error"
                    record.errors.append(
                        {"timestamp": now, "elapsed_ms": elapsed_ms, "reason": record.last_error}
                    )
        except Exception as e:
            logger.error("Failed to record provider outcome", provider=name, error=str(e))

    # Reading

    def names(self) -> List[str]:
        with self._lock:
            return list(self._records)

    def status_of(self, name: str) -> Optional[HealthSnapshot]:
        """Snapshot of a provider's record, or None if it is not tracked."""
        record = self._records.get(name)
        if record is None:
            return None
        with record.lock:
            return self._snapshot(record)

    def is_unavailable(self, name: str) -> bool:
        snapshot = self.status_of(name)
        return snapshot is not None and snapshot.status == HealthStatus.UNAVAILABLE

    def _snapshot(self, record: HealthRecord) -> HealthSnapshot:
        """Classify a record. Caller holds record.lock."""
        settings = self.settings
        status = HealthStatus.HEALTHY
        issues: List[str] = []

        if record.average_response_time_ms > settings.latency_degraded_ms:
            status = _worse(status, HealthStatus.DEGRADED)
            issues.append(f"High response time: {record.average_response_time_ms:.0f}ms")

        error_rate = record.error_rate
        if error_rate > settings.error_rate_degraded:
            status = _worse(
                status,
                HealthStatus.CRITICAL
                if error_rate > settings.error_rate_critical
                else HealthStatus.DEGRADED,
            )
            issues.append(f"High error rate: {error_rate * 100:.1f}%")

        if record.memory_issue:
            status = _worse(status, HealthStatus.DEGRADED)
            issues.append(record.memory_issue)

        issues.extend(record.check_issues)
        if record.check_failed:
            status = HealthStatus.UNAVAILABLE
        elif record.check_issues:
            status = _worse(status, HealthStatus.DEGRADED)

        return HealthSnapshot(
            name=record.name,
            status=status,
            critical=record.critical,
            total_calls=record.total_calls,
            successful_calls=record.successful_calls,
            timeouts=record.timeouts,
            abandoned_calls=record.abandoned_calls,
            average_response_time_ms=record.average_response_time_ms,
            error_rate=error_rate,
            last_error=record.last_error,
            issues=issues,
            last_checked=record.last_checked,
        )

    # Sweep

    async def sweep(self) -> SystemHealthReport:
        """Check every tracked provider and aggregate the results."""
        start = time.perf_counter()
        with self._lock:
            records = list(self._records.values())

        memory_mb = self._memory_usage_mb()
        semaphore = asyncio.Semaphore(self.settings.health_sweep_concurrency)

        async def bounded(record: HealthRecord) -> HealthSnapshot:
            async with semaphore:
                return await self._check_provider(record, memory_mb)

        results = await asyncio.gather(*(bounded(r) for r in records), return_exceptions=True)

        report = SystemHealthReport()
        counts: Dict[str, int] = {status.value: 0 for status in HealthStatus}
        for record, result in zip(records, results):
            if isinstance(result, BaseException):
                logger.error("Provider health check crashed", provider=record.name, error=str(result))
                result = HealthSnapshot(
                    name=record.name,
                    status=HealthStatus.UNAVAILABLE,
                    critical=record.critical,
                    issues=[f"Health check crashed: {result}"],
                )

            report.providers[record.name] = result
            counts[result.status.value] += 1
            report.issues.extend(
                HealthIssue(provider=record.name, issue=issue, critical=record.critical)
                for issue in result.issues
            )
            self.metrics.record_provider_health(record.name, result.status.value)

        report.summary = HealthSummary(total=len(records), **counts)
        report.status = overall_status(report.summary)
        report.recommendations = generate_recommendations(report.summary, report.issues)
        report.check_duration_ms = (time.perf_counter() - start) * 1000
        self.metrics.observe_histogram("sweep_duration", report.check_duration_ms / 1000)
        self.last_report = report

        logger.info(
            "Health sweep finished",
            status=report.status,
            healthy=report.summary.healthy,
            total=report.summary.total,
            duration_ms=round(report.check_duration_ms, 1),
        )
        return report

    async def _check_provider(self, record: HealthRecord, memory_mb: Optional[float]) -> HealthSnapshot:
        check_failed = False
        check_issues: List[str] = []

        if record.self_check is not None:
            timeout_s = self.settings.health_check_timeout_s
            try:
                outcome = record.self_check()
                if inspect.isawaitable(outcome):
                    outcome = await run_with_timeout(
                        outcome, timeout_s, name=f"health:{record.name}"
                    )
            except DeadlineExceeded:
                check_failed = True
                check_issues.append(f"Health check timed out (>{timeout_s:g}s)")
            except Exception as e:
                check_failed = True
                check_issues.append(f"Health check error: {e}")
            else:
                check_issues.extend(self._self_check_issues(outcome))

        memory_issue = None
        if record.critical and memory_mb is not None and memory_mb > self.settings.memory_limit_mb:
            memory_issue = f"High memory usage: {memory_mb:.1f}MB"

        with record.lock:
            record.check_failed = check_failed
            record.check_issues = check_issues
            record.memory_issue = memory_issue
            record.last_checked = time.time()
            snapshot = self._snapshot(record)
            record.history.append(
                {
                    "timestamp": record.last_checked,
                    "status": snapshot.status.value,
                    "issue_count": len(snapshot.issues),
                }
            )
        return snapshot

    @staticmethod
    def _self_check_issues(outcome: Any) -> List[str]:
        """Issues reported by a provider's own check; a bare False means unhealthy."""
        if outcome is None or outcome is True:
            return []
        if outcome is False:
            return ["Provider reported internal problems"]
        if isinstance(outcome, dict):
            if outcome.get("healthy", True):
                return []
            return [str(i) for i in outcome.get("issues") or ["Provider reported internal problems"]]
        return []

    @staticmethod
    def _memory_usage_mb() -> Optional[float]:
        try:
            return psutil.Process().memory_info().rss / 1024 / 1024
        except psutil.Error as e:
            logger.warning("Memory usage unavailable", error=str(e))
            return None

    # Scheduling

    def next_interval(self, failures: int) -> float:
        """Sweep interval after the given number of consecutive failed sweeps."""
        base = self.settings.health_base_interval_s
        return min(base * (2**failures), self.settings.health_max_interval_s)

    async def tick(self) -> float:
        """Run one scheduled sweep and return the delay before the next one."""
        try:
            await self.sweep()
            self.consecutive_failures = 0
        except Exception as e:
            self.consecutive_failures += 1
            logger.error(
                "Health sweep failed",
                failures=self.consecutive_failures,
                error=str(e),
            )
        self.current_interval = self.next_interval(self.consecutive_failures)
        if self.consecutive_failures:
            logger.warning("Health sweep interval increased", interval_s=self.current_interval)
        return self.current_interval

    async def start(self):
        """Start the periodic sweep in the background."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(
            "Health sweep scheduled",
            warmup_s=self.settings.health_warmup_s,
            base_interval_s=self.settings.health_base_interval_s,
            max_interval_s=self.settings.health_max_interval_s,
        )

    async def stop(self):
        """Stop the periodic sweep."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Health sweep stopped")

    async def _sweep_loop(self):
        await asyncio.sleep(self.settings.health_warmup_s)
        while self._running:
            delay = await self.tick()
            await asyncio.sleep(delay)

    def self_diagnostic(self) -> Dict[str, Any]:
        """Report on the monitoring itself."""
        issues = []
        last_check_age = None
        if self.last_report is not None:
            last_check_age = time.time() - self.last_report.timestamp

        with self._lock:
            tracked = len(self._records)
        if tracked == 0:
            issues.append("No providers tracked")
        if last_check_age is not None and last_check_age > 60:
            issues.append("No recent health sweep")

        return {
            "status": "warning" if issues else "operational",
            "tracked_providers": tracked,
            "last_check_age_s": last_check_age,
            "consecutive_failures": self.consecutive_failures,
            "current_interval_s": self.current_interval,
            "issues": issues,
        }
