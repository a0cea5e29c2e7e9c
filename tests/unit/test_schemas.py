"""Tests for routing schemas and provider results."""

import pytest
from pydantic import ValidationError

from chatbot_router.providers.base import ProviderResult
from chatbot_router.schemas.routing import (
    RouteOptions,
    RouterResult,
    RoutingHints,
    RoutingMode,
    normalize_confidence,
)


@pytest.mark.parametrize(
    "raw,expected",
    [(0.85, 0.85), (85, 0.85), (1, 1.0), (0, 0.0), (250, 1.0), (-3, 0.0)],
)
def test_normalize_confidence(raw, expected):
    assert normalize_confidence(raw) == pytest.approx(expected)


def test_normalize_confidence_none():
    assert normalize_confidence(None) is None


def test_hints_accept_camel_case():
    hints = RoutingHints.model_validate(
        {
            "mode": "express",
            "preferredProviders": ["A", "B"],
            "skipProviders": "C, D",
            "timeLimitMs": 1500,
            "specialCategory": "embroidery",
        }
    )
    assert hints.mode == RoutingMode.EXPRESS
    assert hints.preferred_providers == {"A", "B"}
    assert hints.skip_providers == {"C", "D"}
    assert hints.time_limit_ms == 1500
    assert hints.special_category == "embroidery"


@pytest.mark.parametrize("mode", ["standard", "specialized", "", None, "DEFAULT"])
def test_default_mode_aliases(mode):
    assert RoutingHints(mode=mode).mode == RoutingMode.DEFAULT


def test_unknown_mode_rejected():
    with pytest.raises(ValidationError):
        RoutingHints(mode="turbo")


def test_complexity_bounds():
    with pytest.raises(ValidationError):
        RoutingHints(complexity=1.5)


def test_route_options_keep_extra_keys():
    options = RouteOptions.model_validate(
        {"userId": "u1", "sessionId": "s1", "routingHints": {"mode": "expert"}, "locale": "en"}
    )
    assert options.user_id == "u1"
    assert options.routing_hints.mode == RoutingMode.EXPERT
    assert options.model_extra == {"locale": "en"}


def test_router_result_serializes_camel_case():
    result = RouterResult(response="hi", provider_name="A", confidence=90, routed_by="router")
    data = result.model_dump(by_alias=True)
    assert data["providerName"] == "A"
    assert data["routedBy"] == "router"
    assert data["confidence"] == pytest.approx(0.9)
    assert data["systemHealth"] == "unknown"
    assert not result.is_fallback


class TestProviderResult:
    def test_coerce_string(self):
        result = ProviderResult.coerce("hello")
        assert result.success
        assert result.response == "hello"
        assert result.confidence == 0.5

    def test_coerce_mapping_with_percentage(self):
        result = ProviderResult.coerce({"response": "x", "confidence": 85, "method": "memory"})
        assert result.confidence == pytest.approx(0.85)
        assert result.method == "memory"

    def test_coerce_none_is_unusable(self):
        assert not ProviderResult.coerce(None).is_usable

    def test_blank_response_is_unusable(self):
        assert not ProviderResult(response="   ").is_usable
        assert not ProviderResult(success=False, response="text").is_usable

    def test_coerce_rejects_other_types(self):
        with pytest.raises(TypeError):
            ProviderResult.coerce(42)


@pytest.mark.parametrize("raw,expected", [(1500.5, 1500), (1500.4, 1500), (1499.6, 1500), (2000, 2000)])
def test_fractional_time_limit_rounded(raw, expected):
    hints = RoutingHints.model_validate({"timeLimitMs": raw})
    assert hints.time_limit_ms == expected
