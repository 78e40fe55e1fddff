"""
Risk Scorer

Scores a submission 0-100 (higher is riskier) and recommends allow, review or
reject. The local heuristic works off this shop's order tracking history; an
external scoring API can be configured instead.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol

import httpx

from codform.errors import TransportError
from codform.services.tracking_service import TrackingRecorder
from codform.utils.logger import log

RECOMMEND_ALLOW = "allow"
RECOMMEND_REVIEW = "review"
RECOMMEND_REJECT = "reject"

REJECT_THRESHOLD = 70
REVIEW_THRESHOLD = 40

TEMPORARY_EMAIL_DOMAINS = {
    "10minutemail.com",
    "tempmail.org",
    "guerrillamail.com",
    "mailinator.com",
    "yopmail.com",
}

SUSPICIOUS_ADDRESS_PATTERNS = [
    re.compile(r"^test", re.IGNORECASE),
    re.compile(r"^fake", re.IGNORECASE),
    re.compile(r"^(123|000)"),
    re.compile(r"(.)\1{4,}"),  # same character 5+ times in a row
]


@dataclass
class RiskFeatures:
    """Inputs to risk scoring. Contact fields are normalised."""
    customer_ip: str
    email: str
    phone: str
    address1: str
    city: str
    province: str
    zip: str
    country: str
    order_value: Decimal  # major units
    item_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customerIp": self.customer_ip,
            "customerEmail": self.email,
            "customerPhone": self.phone,
            "shippingAddress": {
                "address1": self.address1,
                "city": self.city,
                "province": self.province,
                "zip": self.zip,
                "country": self.country,
            },
            "orderValue": float(self.order_value),
            "itemCount": self.item_count,
        }


@dataclass
class RiskAssessment:
    score: int
    recommendation: str
    factors: List[str] = field(default_factory=list)


def recommendation_for(score: int) -> str:
    if score >= REJECT_THRESHOLD:
        return RECOMMEND_REJECT
    if score >= REVIEW_THRESHOLD:
        return RECOMMEND_REVIEW
    return RECOMMEND_ALLOW


class RiskScorer(Protocol):
    async def score(self, shop: str, features: RiskFeatures) -> RiskAssessment:
        ...


class LocalRiskScorer:
    """Heuristic scoring over order history, address quality and email domain"""

    RECENT_WINDOW_DAYS = 30
    RECENT_ORDER_LIMIT = 3
    HIGH_ORDER_VALUE = Decimal("5000")

    def __init__(self, tracking: TrackingRecorder):
        self.tracking = tracking

    async def score(self, shop: str, features: RiskFeatures) -> RiskAssessment:
        score = 0
        factors: List[str] = []

        # 1. Order velocity from the same source
        since = self.tracking.clock() - timedelta(days=self.RECENT_WINDOW_DAYS)
        recent = self.tracking.count_recent_orders(
            shop, since, ip=features.customer_ip, email=features.email, phone=features.phone
        )
        if recent > self.RECENT_ORDER_LIMIT:
            score += 30
            factors.append("Multiple recent orders from same source")

        # 2. Address quality
        address_score, address_factors = assess_address_quality(features.address1)
        score += address_score
        factors.extend(address_factors)

        # 3. Order value
        if features.order_value > self.HIGH_ORDER_VALUE:
            score += 20
            factors.append("High order value")

        # 4. Disposable email
        domain = features.email.rsplit("@", 1)[-1] if "@" in features.email else ""
        if domain in TEMPORARY_EMAIL_DOMAINS:
            score += 40
            factors.append("Temporary email domain")

        # 5. Earlier orders for this contact
        if self.tracking.has_order_history(shop, email=features.email, phone=features.phone):
            score += 50
            factors.append("Previous order history")

        score = min(score, 100)
        return RiskAssessment(score=score, recommendation=recommendation_for(score), factors=factors)


def assess_address_quality(address1: str):
    score = 0
    factors: List[str] = []
    address1 = (address1 or "").strip()

    if len(address1) < 5:
        score += 25
        factors.append("Incomplete or very short address")

    if any(pattern.search(address1) for pattern in SUSPICIOUS_ADDRESS_PATTERNS):
        score += 35
        factors.append("Suspicious address pattern")

    return score, factors


class HttpRiskScorer:
    """Delegates scoring to an external risk API"""

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def score(self, shop: str, features: RiskFeatures) -> RiskAssessment:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(self.url, json={"shop": shop, **features.to_dict()}, headers=headers)
        except httpx.HTTPError as e:
            log.error(f"Risk scorer request failed: {e}")
            raise TransportError("risk-scorer", str(e)) from e

        if response.status_code != 200:
            raise TransportError("risk-scorer", f"HTTP {response.status_code}")

        try:
            data = response.json()
            score = max(0, min(100, int(round(float(data["score"])))))
        except (ValueError, KeyError, TypeError) as e:
            raise TransportError("risk-scorer", f"malformed response: {e}") from e

        recommendation = str(data.get("recommendation") or "").lower()
        if recommendation == "approve":
            recommendation = RECOMMEND_ALLOW
        if recommendation not in (RECOMMEND_ALLOW, RECOMMEND_REVIEW, RECOMMEND_REJECT):
            recommendation = recommendation_for(score)

        factors = data.get("factors") or []
        return RiskAssessment(
            score=score,
            recommendation=recommendation,
            factors=[str(f) for f in factors] if isinstance(factors, list) else [],
        )
