"""Tests for the fallback responder."""

import pytest

from chatbot_router.orchestrator.fallback import FallbackResponder, FallbackRule
from chatbot_router.schemas.routing import RoutingHints, RoutingMode


@pytest.fixture
def responder():
    return FallbackResponder(assistant_name="Studio Bot")


@pytest.mark.parametrize(
    "message",
    ["Hello", "hi there", "Hey!", "Good morning, bot", "howdy"],
)
def test_greeting(responder, message):
    result = responder.respond(message)
    assert result.rule == "greeting"
    assert "Studio Bot" in result.text


def test_greeting_needs_whole_word(responder):
    # "this" and "high" contain "hi" but are not greetings
    assert responder.respond("this is a high bar").rule == "generic"


def test_capability_question(responder):
    result = responder.respond("What can you do for me?")
    assert result.rule == "capability"
    assert "SVG" in result.text


def test_greeting_wins_over_capability(responder):
    assert responder.respond("hi, what can you do?").rule == "greeting"


@pytest.mark.parametrize(
    "message,rule",
    [
        ("I need an embroidery file", "embroidery"),
        ("convert this to DST please", "embroidery"),
        ("please draw a cat", "image_generation"),
        ("an illustration of a fox", "image_generation"),
        ("make this an svg", "vectorization"),
        ("any advice on colors?", "advice"),
    ],
)
def test_domain_rules(responder, message, rule):
    assert responder.respond(message).rule == rule


def test_domain_rule_order(responder):
    # embroidery is checked before vectorization
    assert responder.respond("embroider this svg").rule == "embroidery"


def test_special_category_hint_echoed(responder):
    hints = RoutingHints(special_category="knowledge")
    result = responder.respond("tell me about color theory", hints)
    assert result.rule == "special_category"
    assert '"knowledge"' in result.text


def test_special_category_after_greeting(responder):
    hints = RoutingHints(special_category="knowledge")
    assert responder.respond("hello", hints).rule == "greeting"


def test_mode_specific_catch_all(responder):
    assert responder.respond("xyz", RoutingHints(mode=RoutingMode.EXPERT)).rule == "expert"
    assert responder.respond("xyz", RoutingHints(mode=RoutingMode.EXPRESS)).rule == "express"
    assert responder.respond("xyz", RoutingHints()).rule == "generic"


def test_generic(responder):
    result = responder.respond("Tell me something random")
    assert result.rule == "generic"
    assert "Studio Bot" in result.text


def test_empty_message(responder):
    assert responder.respond("   ").rule == "empty_input"
    assert responder.empty_input().text.startswith("It looks like your message is empty")


def test_deterministic(responder):
    first = responder.respond("please draw a cat")
    second = responder.respond("please draw a cat")
    assert first == second


def test_custom_domain_rules():
    rule = FallbackRule(name="billing", keywords=("invoice",), template="Billing help for {assistant}.")
    responder = FallbackResponder(assistant_name="Bot", domain_rules=[rule])
    result = responder.respond("where is my invoice")
    assert result.rule == "billing"
    assert result.text == "Billing help for Bot."
    assert responder.respond("please draw a cat").rule == "generic"
