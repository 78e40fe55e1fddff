"""
Alert Service
Notifies operators about orders that need manual reconciliation.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import aiohttp

from codform.config import get_settings
from codform.utils.logger import log


@dataclass
class DeliveryResult:
    """Tracks delivery attempt results for auditing."""
    success: bool = False
    channel: str = ""
    errors: List[str] = field(default_factory=list)
    final_error: Optional[str] = None


class AlertService:
    """
    Posts operator alerts to Slack.

    Runs on the request path, so it makes a single short attempt and never
    raises; the CRITICAL log line written by the caller is the durable record.
    """

    TIMEOUT_SECONDS = 5

    def __init__(self, webhook_url: Optional[str] = None, enabled: Optional[bool] = None):
        settings = get_settings()
        self.webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self.enabled = settings.enable_operator_alerts if enabled is None else enabled

    @property
    def slack_configured(self) -> bool:
        return bool(self.enabled and self.webhook_url)

    async def send_finalization_alert(
        self, shop: str, draft_order_id: str, errors: Optional[List[str]] = None
    ) -> DeliveryResult:
        """Alert that a draft order was created but never completed"""
        return await self.send_slack_alert(
            title="COD order stuck as draft",
            message=(
                f"Draft order {draft_order_id} on {shop} was created but could not be completed. "
                "Complete or delete it in the Shopify admin."
            ),
            data={"shop": shop, "draft_order_id": draft_order_id, "errors": "; ".join(errors or []) or "n/a"},
            priority="critical",
        )

    async def send_slack_alert(
        self,
        title: str,
        message: str,
        data: Optional[Dict] = None,
        priority: str = "medium",
    ) -> DeliveryResult:
        result = DeliveryResult(channel="slack")

        if not self.slack_configured:
            log.warning("Slack not configured, skipping Slack alert")
            result.final_error = "Slack not configured"
            return result

        colors = {
            "critical": "#dc3545",
            "high": "#fd7e14",
            "medium": "#ffc107",
            "low": "#28a745",
        }

        payload = {
            "attachments": [
                {
                    "color": colors.get(priority, "#6c757d"),
                    "title": title,
                    "text": message,
                    "fields": [
                        {"title": "Priority", "value": priority.upper(), "short": True},
                        {
                            "title": "Timestamp",
                            "value": datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S UTC"),
                            "short": True,
                        },
                    ],
                    "footer": "CODForm Order Intake",
                }
            ]
        }

        if data:
            for key, value in list(data.items())[:5]:
                payload["attachments"][0]["fields"].append({
                    "title": key.replace("_", " ").title(),
                    "value": str(value),
                    "short": True,
                })

        try:
            timeout = aiohttp.ClientTimeout(total=self.TIMEOUT_SECONDS)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.webhook_url, json=payload) as response:
                    if response.status == 200:
                        result.success = True
                        log.info(f"Slack alert sent: {title}")
                    else:
                        result.final_error = f"HTTP {response.status}"
                        log.error(f"Slack alert failed with status {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            result.final_error = f"{type(e).__name__}: {e}"
            result.errors.append(result.final_error)
            log.error(f"Slack alert failed: {result.final_error}")

        return result
