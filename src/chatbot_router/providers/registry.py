"""Provider registry with priority ordering and hint-based filtering."""

import threading
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import structlog

from chatbot_router.config import get_settings
from chatbot_router.exceptions import DuplicateNameError, InvalidProviderError
from chatbot_router.providers.base import BaseProvider
from chatbot_router.schemas.routing import RoutingHints, RoutingMode

logger = structlog.get_logger(__name__)

CanHandle = Callable[[str, Any], bool]
Process = Callable[[str, Any], Awaitable[Any]]
SelfCheck = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class ProviderRecord:
    """A registered provider."""

    name: str
    priority: int
    can_handle: CanHandle
    process: Process
    health_check: Optional[SelfCheck] = None
    critical: bool = False
    order: int = 0
    info: Dict[str, Any] = field(default_factory=dict, compare=False)


class ProviderRegistry:
    """Holds named provider records and returns them in routing order."""

    def __init__(
        self,
        express_providers: Optional[Iterable[str]] = None,
        expert_providers: Optional[Iterable[str]] = None,
    ):
        """Initialize provider registry."""
        settings = get_settings()
        self.express_providers = frozenset(
            settings.express_providers if express_providers is None else express_providers
        )
        self.expert_providers = frozenset(
            settings.expert_providers if expert_providers is None else expert_providers
        )
        self._records: Tuple[ProviderRecord, ...] = ()
        self._listeners: List[Callable[[ProviderRecord], None]] = []
        self._lock = threading.Lock()

    def register(
        self,
        name: str,
        priority: int,
        can_handle: CanHandle,
        process: Process,
        *,
        health_check: Optional[SelfCheck] = None,
        critical: bool = False,
        info: Optional[Dict[str, Any]] = None,
    ) -> ProviderRecord:
        """Register a provider; duplicate names and missing callables fail fast."""
        if not isinstance(name, str) or not name.strip():
            raise InvalidProviderError("Provider name must be a non-empty string")
        if not callable(can_handle):
            raise InvalidProviderError(
                f"Provider '{name}' has no callable can_handle", details={"provider": name}
            )
        if not callable(process):
            raise InvalidProviderError(
                f"Provider '{name}' has no callable process", details={"provider": name}
            )
        if health_check is not None and not callable(health_check):
            raise InvalidProviderError(
                f"Provider '{name}' health_check is not callable", details={"provider": name}
            )

        with self._lock:
            if any(record.name == name for record in self._records):
                raise DuplicateNameError(name)
            record = ProviderRecord(
                name=name,
                priority=int(priority),
                can_handle=can_handle,
                process=process,
                health_check=health_check,
                critical=critical,
                order=len(self._records),
                info=dict(info or {}),
            )
            # Copy-on-write: readers keep whatever snapshot they already hold
            self._records = self._records + (record,)
            listeners = list(self._listeners)

        logger.info("Provider registered", provider=name, priority=record.priority)
        for listener in listeners:
            listener(record)
        return record

    def register_provider(
        self, provider: BaseProvider, priority: Optional[int] = None
    ) -> ProviderRecord:
        """Register an object implementing the provider interface."""
        can_handle = getattr(provider, "can_handle", None)
        process = getattr(provider, "process", None)
        name = getattr(provider, "name", None)
        return self.register(
            name,
            provider.priority if priority is None else priority,
            can_handle,
            process,
            health_check=getattr(provider, "health_check", None),
            critical=getattr(provider, "critical", False),
            info=provider.get_info() if hasattr(provider, "get_info") else None,
        )

    def subscribe(self, listener: Callable[[ProviderRecord], None]) -> None:
        """Call listener for every provider registered from now on."""
        with self._lock:
            self._listeners.append(listener)

    def snapshot(self) -> Tuple[ProviderRecord, ...]:
        """Current records in registration order."""
        return self._records

    def get(self, name: str) -> Optional[ProviderRecord]:
        for record in self._records:
            if record.name == name:
                return record
        return None

    def names(self) -> List[str]:
        return [record.name for record in self._records]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: object) -> bool:
        return any(record.name == name for record in self._records)

    def active_providers(
        self, hints: Optional[RoutingHints] = None
    ) -> Tuple[ProviderRecord, ...]:
        """Candidates for a request, in the order they must be tried."""
        candidates = list(self._records)

        if hints is not None:
            if hints.preferred_providers:
                preferred = [r for r in candidates if r.name in hints.preferred_providers]
                # Unknown names are ignored; if none is registered, keep everything
                if preferred:
                    candidates = preferred

            if hints.skip_providers:
                candidates = [r for r in candidates if r.name not in hints.skip_providers]

        # Stable: equal priorities keep registration order
        candidates.sort(key=lambda r: (-r.priority, r.order))

        curated = self._curated_subset(hints)
        if curated:
            candidates.sort(key=lambda r: 0 if r.name in curated else 1)

        return tuple(candidates)

    def _curated_subset(self, hints: Optional[RoutingHints]) -> frozenset:
        if hints is None:
            return frozenset()
        if hints.mode == RoutingMode.EXPRESS:
            return self.express_providers
        if hints.mode == RoutingMode.EXPERT:
            return self.expert_providers
        return frozenset()

    def describe(self) -> List[Dict[str, Any]]:
        """Provider info in priority order."""
        return [
            {
                "name": record.name,
                "priority": record.priority,
                "critical": record.critical,
                "has_health_check": record.health_check is not None,
                **{k: v for k, v in record.info.items() if k not in ("name", "priority", "critical")},
            }
            for record in self.active_providers()
        ]
