"""Deterministic canned responses used when no provider answers."""

import re
from dataclasses import dataclass
from typing import Optional, Sequence

from chatbot_router.schemas.routing import RoutingHints, RoutingMode


@dataclass(frozen=True)
class FallbackRule:
    """Keyword rule; the first matching rule in priority order wins."""

    name: str
    keywords: tuple
    template: str
    whole_word: bool = False


@dataclass(frozen=True)
class FallbackResponse:
    text: str
    rule: str


GREETING_RULE = FallbackRule(
    name="greeting",
    keywords=("hello", "hi", "hey", "greetings", "good morning", "good afternoon", "good evening", "howdy"),
    template=(
        "Hello! I'm {assistant}. I can help with image generation, vectorization "
        "and design questions. What would you like to do?"
    ),
    whole_word=True,
)

CAPABILITY_RULE = FallbackRule(
    name="capability",
    keywords=(
        "what can you do",
        "what can you",
        "what are you able",
        "what do you do",
        "your capabilities",
        "what are your features",
    ),
    template=(
        "I'm {assistant}. Here is what I can do:\n\n"
        "- Generate images in many styles\n"
        "- Convert raster images to SVG\n"
        "- Prepare embroidery files (DST, PES, JEF)\n"
        "- Give design advice\n"
        "- Search the web for information"
    ),
)

DOMAIN_RULES = (
    FallbackRule(
        name="embroidery",
        keywords=("embroider", "dst", "pes", "jef", "stitch"),
        template=(
            "I work with embroidery formats:\n\n"
            "- DST for most machines\n"
            "- PES for Brother, Babylock, Bernina\n"
            "- JEF for Janome, Elna, Kenmore\n"
            "- EXP for Melco\n"
            "- VP3 for Husqvarna Viking\n\n"
            "Upload an image and I will prepare an embroidery file."
        ),
    ),
    FallbackRule(
        name="image_generation",
        keywords=("draw", "generate", "create an image", "create image", "picture", "illustrat"),
        template="I can create that image. Describe it in as much detail as you can and I'll generate it.",
    ),
    FallbackRule(
        name="vectorization",
        keywords=("vector", "svg", "trace", "contour"),
        template="I can convert images to clean SVG. Upload a raster image or share a link to it.",
    ),
    FallbackRule(
        name="advice",
        keywords=("help", "advice", "advise", "recommend", "suggest"),
        template="Of course I'll help! Tell me more about your project so I can give specific recommendations.",
    ),
)

SPECIAL_CATEGORY_TEMPLATE = (
    'This looks like a "{category}" request. Some modules are updating right now, '
    "but I'm ready to help with this topic!"
)

EXPRESS_TEMPLATE = (
    "Hi! Your request is being handled in fast mode. Could you rephrase it so I can answer better?"
)

EXPERT_TEMPLATE = (
    "Your request needs an in-depth analysis. The analysis modules are temporarily "
    "unavailable, but I'm ready to discuss the topic in detail!"
)

GENERIC_TEMPLATE = (
    "Got it! {assistant} can help with image generation, vectorization, design advice "
    "and information search. Could you tell me a bit more about what you need?"
)

EMPTY_INPUT_TEMPLATE = "It looks like your message is empty. What would you like to ask?"


class FallbackResponder:
    """Maps message text to one of a fixed set of response templates.

    Rule order: greeting, capability question, domain rules (the hinted special
    category first, then keyword rules), generic catch-all. The generic tier is
    specialised by routing mode. No state and no randomness.
    """

    def __init__(
        self,
        assistant_name: str = "the assistant",
        domain_rules: Optional[Sequence[FallbackRule]] = None,
    ):
        self.assistant_name = assistant_name
        rules = (GREETING_RULE, CAPABILITY_RULE)
        self._leading = [(rule, self._compile(rule)) for rule in rules]
        self._domain = [
            (rule, self._compile(rule))
            for rule in (DOMAIN_RULES if domain_rules is None else domain_rules)
        ]

    @staticmethod
    def _compile(rule: FallbackRule) -> re.Pattern:
        alternatives = "|".join(re.escape(k.lower()) for k in rule.keywords)
        suffix = r"\b" if rule.whole_word else ""
        return re.compile(rf"\b(?:{alternatives}){suffix}")

    def _render(self, template: str, **params) -> str:
        return template.format(assistant=self.assistant_name, **params)

    def respond(self, message: str, hints: Optional[RoutingHints] = None) -> FallbackResponse:
        """Pick the canned response for a message."""
        text = (message or "").lower()
        if not text.strip():
            return self.empty_input()

        for rule, pattern in self._leading:
            if pattern.search(text):
                return FallbackResponse(self._render(rule.template), rule.name)

        if hints is not None and hints.special_category:
            return FallbackResponse(
                self._render(SPECIAL_CATEGORY_TEMPLATE, category=hints.special_category),
                "special_category",
            )

        for rule, pattern in self._domain:
            if pattern.search(text):
                return FallbackResponse(self._render(rule.template), rule.name)

        if hints is not None and hints.mode == RoutingMode.EXPERT:
            return FallbackResponse(self._render(EXPERT_TEMPLATE), "expert")
        if hints is not None and hints.mode == RoutingMode.EXPRESS:
            return FallbackResponse(self._render(EXPRESS_TEMPLATE), "express")

        return FallbackResponse(self._render(GENERIC_TEMPLATE), "generic")

    def empty_input(self) -> FallbackResponse:
        return FallbackResponse(self._render(EMPTY_INPUT_TEMPLATE), "empty_input")
