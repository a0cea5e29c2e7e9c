"""Derive routing hints from a message's complexity and category."""

import re
from dataclasses import dataclass, field
from typing import Optional, Tuple

import structlog

from chatbot_router.schemas.routing import RoutingHints, RoutingMode
from chatbot_router.telemetry.logger import preview

logger = structlog.get_logger(__name__)

FAST_PROVIDERS = ("Chat-Memory", "ChatFree")
HEAVY_PROVIDERS = ("ConversationEngine-Semantic", "Neural-Integration")
ANALYSIS_PROVIDERS = ("ConversationEngine-Semantic", "Intelligent-Processor")


@dataclass(frozen=True)
class ComplexityTier:
    name: str
    keywords: Tuple[str, ...]
    patterns: Tuple[re.Pattern, ...]


@dataclass(frozen=True)
class SpecialCategory:
    name: str
    keywords: Tuple[str, ...]
    complexity: float
    preferred_providers: Tuple[str, ...] = field(default=ANALYSIS_PROVIDERS[:1])


COMPLEXITY_TIERS = (
    ComplexityTier(
        name="simple",
        keywords=("hello", "hi", "thanks", "thank you", "bye", "yes", "no", "ok"),
        patterns=(
            re.compile(r"^.{1,20}$", re.DOTALL),
            re.compile(r"^(hello|hi|hey|thanks|bye)[!.]?$", re.IGNORECASE),
        ),
    ),
    ComplexityTier(
        name="medium",
        keywords=("tell me", "explain", "help", "create", "make"),
        patterns=(
            re.compile(r"^.{20,100}$", re.DOTALL),
            re.compile(r"\b(how|what|where|when|why)\b", re.IGNORECASE),
        ),
    ),
    ComplexityTier(
        name="complex",
        keywords=("analysis", "analyze", "research", "design", "optimiz", "algorithm"),
        patterns=(
            re.compile(r"^.{100,}$", re.DOTALL),
            re.compile(r"\b(analysis|research|project|system|architecture)\b", re.IGNORECASE),
        ),
    ),
)

SPECIAL_CATEGORIES = (
    SpecialCategory(
        name="embroidery",
        keywords=("embroider", "dst", "pes", "jef", "stitch"),
        complexity=0.8,
    ),
    SpecialCategory(
        name="vectorization",
        keywords=("svg", "vectoriz", "vector", "contour", "path"),
        complexity=0.7,
    ),
    SpecialCategory(
        name="generation",
        keywords=("create an image", "draw", "generate", "picture"),
        complexity=0.6,
        preferred_providers=("Intelligent-Processor",),
    ),
    SpecialCategory(
        name="knowledge",
        keywords=("tell me about", "what is", "how does", "explain"),
        complexity=0.5,
    ),
)

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_BRACKETS = re.compile(r"[{}\[\]()\"]")


class HintAnalyzer:
    """Scores message complexity and turns it into routing hints."""

    def __init__(
        self,
        tiers: Tuple[ComplexityTier, ...] = COMPLEXITY_TIERS,
        categories: Tuple[SpecialCategory, ...] = SPECIAL_CATEGORIES,
    ):
        self.tiers = tiers
        self.categories = categories

    def analyze_complexity(self, message: str) -> float:
        """Complexity score in [0, 1]."""
        lower = message.lower()
        length = len(message)

        if length < 20:
            complexity = 0.1
        elif length < 50:
            complexity = 0.3
        elif length < 100:
            complexity = 0.5
        else:
            complexity = 0.7

        for tier in self.tiers:
            keyword_hit = any(k in lower for k in tier.keywords)
            pattern_hit = any(p.search(message) for p in tier.patterns)

            if tier.name == "simple":
                if keyword_hit:
                    complexity = max(0.1, complexity - 0.2)
                if pattern_hit:
                    complexity = max(0.1, complexity - 0.1)
            elif tier.name == "medium":
                if keyword_hit or pattern_hit:
                    complexity = max(0.3, complexity)
            elif tier.name == "complex":
                if keyword_hit:
                    complexity = max(0.7, complexity + 0.2)
                if pattern_hit:
                    complexity = max(0.7, complexity + 0.1)

        sentences = [s for s in _SENTENCE_SPLIT.split(message) if s.strip()]
        words_per_sentence = len(message.split()) / max(len(sentences), 1)
        if words_per_sentence > 15:
            complexity += 0.1
        if len(sentences) > 3:
            complexity += 0.1

        if _BRACKETS.search(message):
            complexity += 0.1
        if "```" in message:
            complexity += 0.2

        return min(1.0, max(0.0, complexity))

    def detect_category(self, message: str) -> Optional[SpecialCategory]:
        """First special category whose keywords occur in the message."""
        lower = message.lower()
        for category in self.categories:
            if any(k in lower for k in category.keywords):
                return category
        return None

    def analyze(self, message: str) -> RoutingHints:
        """Build routing hints for a message."""
        complexity = self.analyze_complexity(message)
        category = self.detect_category(message)

        if category is not None:
            hints = RoutingHints(
                mode=RoutingMode.DEFAULT,
                complexity=category.complexity,
                preferred_providers=set(category.preferred_providers),
                time_limit_ms=10000,
                special_category=category.name,
            )
        elif complexity < 0.3:
            hints = RoutingHints(
                mode=RoutingMode.EXPRESS,
                complexity=complexity,
                preferred_providers=set(FAST_PROVIDERS),
                skip_providers=set(HEAVY_PROVIDERS),
                time_limit_ms=1000,
            )
        elif complexity > 0.7:
            hints = RoutingHints(
                mode=RoutingMode.EXPERT,
                complexity=complexity,
                preferred_providers=set(ANALYSIS_PROVIDERS),
                time_limit_ms=30000,
            )
        else:
            hints = RoutingHints(
                mode=RoutingMode.DEFAULT,
                complexity=complexity,
                preferred_providers=set(ANALYSIS_PROVIDERS),
                time_limit_ms=5000,
            )

        logger.debug(
            "Routing hints derived",
            message=preview(message),
            complexity=round(complexity, 2),
            mode=hints.mode.value,
            special_category=hints.special_category,
        )
        return hints
