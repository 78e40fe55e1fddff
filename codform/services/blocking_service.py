"""
Blocking Rule Engine

Evaluates a shop's anti-abuse rules against one submission, in a fixed order:

    allowlisted IP  -> allow, nothing else is checked
    risk scoring    -> reject on auto-reject + "reject" recommendation
    IP / email / phone blocklists
    quantity cap
    postal code allow/exclude list
    repeat orders within the configured window

Every rejection carries the shop's own message. Which rule matched is only
logged, so abusive customers cannot probe the configuration.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from codform.errors import BlockedError
from codform.schemas import BlockingRules, OrderSubmission
from codform.services.risk_service import RECOMMEND_REJECT, RECOMMEND_REVIEW, RiskFeatures, RiskScorer
from codform.services.tracking_service import TrackingRecorder
from codform.utils.helpers import minor_to_major, normalize_ip
from codform.utils.logger import log

RULE_ALLOWLIST = "allowlisted_ip"
RULE_RISK = "risk_score"
RULE_IP = "blocked_ip"
RULE_EMAIL = "blocked_email"
RULE_PHONE = "blocked_phone"
RULE_QUANTITY = "quantity_cap"
RULE_POSTAL = "postal_code"
RULE_REPEAT = "repeat_order"


@dataclass
class BlockDecision:
    allowed: bool
    rule: Optional[str] = None
    message: Optional[str] = None
    risk_score: Optional[int] = None

    def raise_if_blocked(self):
        if not self.allowed:
            raise BlockedError(self.message, rule=self.rule, risk_score=self.risk_score)


class BlockingRuleEngine:
    """Applies BlockingRules to OrderSubmissions"""

    def __init__(self, tracking: TrackingRecorder, risk_scorer: Optional[RiskScorer] = None):
        self.tracking = tracking
        self.risk_scorer = risk_scorer

    async def evaluate(self, rules: BlockingRules, submission: OrderSubmission) -> BlockDecision:
        ip = normalize_ip(submission.customer_ip)

        if ip and ip in rules.allowed_ip_set:
            log.info(f"[{submission.shop}] IP {ip} is allowlisted; blocking rules skipped")
            return BlockDecision(True, rule=RULE_ALLOWLIST)

        if rules.enable_risk_scoring and self.risk_scorer is not None:
            assessment = await self.risk_scorer.score(submission.shop, self._features(submission, ip))
            log.info(
                f"[{submission.shop}] Risk score {assessment.score} ({assessment.recommendation}): "
                f"{', '.join(assessment.factors) or 'no factors'}"
            )
            if rules.auto_reject_high_risk and assessment.recommendation == RECOMMEND_REJECT:
                return self._reject(rules, submission, RULE_RISK, risk_score=assessment.score)
            if assessment.recommendation == RECOMMEND_REVIEW:
                log.warning(f"[{submission.shop}] Submission flagged for review (score {assessment.score})")

        if ip and ip in rules.blocked_ip_set:
            return self._reject(rules, submission, RULE_IP)

        if submission.email and submission.email in rules.blocked_email_set:
            return self._reject(rules, submission, RULE_EMAIL)

        if submission.phone and submission.phone in rules.blocked_phone_set:
            return self._reject(rules, submission, RULE_PHONE)

        if rules.block_by_quantity and submission.total_quantity > rules.block_quantity_amount:
            return self._reject(rules, submission, RULE_QUANTITY)

        if rules.postal_code_mode != "none" and submission.postal_code:
            listed = submission.postal_code in rules.postal_code_set
            if rules.postal_code_mode == "exclude" and listed:
                return self._reject(rules, submission, RULE_POSTAL)
            if rules.postal_code_mode == "allow" and not listed:
                return self._reject(rules, submission, RULE_POSTAL)

        if rules.limit_same_customer_orders:
            since = self.tracking.clock() - timedelta(hours=rules.limit_same_customer_hours)
            recent = self.tracking.find_recent_order(
                submission.shop, since, ip=ip, email=submission.email, phone=submission.phone
            )
            if recent is not None:
                return self._reject(rules, submission, RULE_REPEAT)

        return BlockDecision(True)

    def _features(self, submission: OrderSubmission, ip: str) -> RiskFeatures:
        address = submission.shipping_address
        return RiskFeatures(
            customer_ip=ip,
            email=submission.email,
            phone=submission.phone,
            address1=address.address1 or "",
            city=address.city or "",
            province=address.province or "",
            zip=address.zip or "",
            country=address.country or "",
            order_value=minor_to_major(submission.cart.total_price),
            item_count=submission.cart.item_count,
        )

    def _reject(
        self, rules: BlockingRules, submission: OrderSubmission, rule: str, risk_score: Optional[int] = None
    ) -> BlockDecision:
        log.info(f"[{submission.shop}] Submission blocked by rule '{rule}' (ip={submission.customer_ip or '-'})")
        return BlockDecision(False, rule=rule, message=rules.blocked_message, risk_score=risk_score)
