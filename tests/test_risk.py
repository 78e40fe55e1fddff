"""
Risk scorer tests: local heuristic and the external API client.
"""
import asyncio
import json
from datetime import timedelta
from decimal import Decimal

import httpx
import pytest

from codform.errors import TransportError
from codform.services.risk_service import (
    HttpRiskScorer,
    LocalRiskScorer,
    RiskFeatures,
    assess_address_quality,
    recommendation_for,
)
from codform.services.tracking_service import TrackingRecorder

from conftest import SHOP, add_tracking


def features(**overrides) -> RiskFeatures:
    values = dict(
        customer_ip="10.0.0.1",
        email="buyer@example.com",
        phone="0555123456",
        address1="12 Rue Didouche Mourad",
        city="Alger",
        province="Alger",
        zip="16000",
        country="DZ",
        order_value=Decimal("1500.00"),
        item_count=1,
    )
    values.update(overrides)
    return RiskFeatures(**values)


def test_recommendation_thresholds():
    assert recommendation_for(0) == "allow"
    assert recommendation_for(39) == "allow"
    assert recommendation_for(40) == "review"
    assert recommendation_for(69) == "review"
    assert recommendation_for(70) == "reject"


@pytest.mark.parametrize("address, expected", [
    ("12 Rue Didouche Mourad", 0),
    ("abc", 25),
    ("test street 4", 35),
    ("123 Main Road", 35),
    ("aaaaaa street", 35),
    ("fake", 60),
])
def test_address_quality(address, expected):
    score, _ = assess_address_quality(address)
    assert score == expected


class TestLocalScorer:
    def scorer(self, session_factory, clock):
        return LocalRiskScorer(TrackingRecorder(session_factory, clock=clock))

    def test_clean_submission_is_allowed(self, session_factory, clock):
        result = asyncio.run(self.scorer(session_factory, clock).score(SHOP, features()))
        assert result.score == 0
        assert result.recommendation == "allow"
        assert result.factors == []

    def test_temporary_email_and_high_value(self, session_factory, clock):
        result = asyncio.run(self.scorer(session_factory, clock).score(
            SHOP, features(email="x@mailinator.com", order_value=Decimal("5000.01"))
        ))
        assert result.score == 60
        assert result.recommendation == "review"

    def test_history_and_velocity_cap_at_100(self, session_factory, clock):
        for hours in range(4):
            add_tracking(session_factory, clock.now - timedelta(hours=hours), customer_email="buyer@example.com")
        result = asyncio.run(self.scorer(session_factory, clock).score(
            SHOP, features(email="buyer@example.com", address1="fake")
        ))
        assert result.score == 100
        assert result.recommendation == "reject"
        assert "Previous order history" in result.factors
        assert "Multiple recent orders from same source" in result.factors

    def test_old_orders_count_as_history_not_velocity(self, session_factory, clock):
        for days in range(31, 36):
            add_tracking(session_factory, clock.now - timedelta(days=days), customer_phone="0555123456")
        result = asyncio.run(self.scorer(session_factory, clock).score(SHOP, features()))
        assert result.score == 50
        assert "Multiple recent orders from same source" not in result.factors


class TestHttpScorer:
    def test_posts_features_and_maps_approve(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"score": 12.4, "recommendation": "approve", "factors": ["ok"]})

        scorer = HttpRiskScorer("https://risk.example/score", api_key="k", transport=httpx.MockTransport(handler))
        result = asyncio.run(scorer.score(SHOP, features()))

        assert result.score == 12
        assert result.recommendation == "allow"
        assert result.factors == ["ok"]
        assert seen["auth"] == "Bearer k"
        assert seen["body"]["shop"] == SHOP
        assert seen["body"]["orderValue"] == 1500.0

    def test_unknown_recommendation_falls_back_to_score(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"score": 80}))
        result = asyncio.run(HttpRiskScorer("https://risk.example", transport=transport).score(SHOP, features()))
        assert result.recommendation == "reject"

    def test_http_error_raises_transport_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        with pytest.raises(TransportError):
            asyncio.run(HttpRiskScorer("https://risk.example", transport=transport).score(SHOP, features()))

    def test_malformed_body_raises_transport_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"nope": 1}))
        with pytest.raises(TransportError):
            asyncio.run(HttpRiskScorer("https://risk.example", transport=transport).score(SHOP, features()))
