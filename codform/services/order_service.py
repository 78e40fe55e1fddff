"""
Order Orchestrator

Turns an accepted submission into a Shopify order in two Admin API calls:

    1. draftOrderCreate   - nothing is written locally if this fails
    2. draftOrderComplete - a failure here leaves a draft order in Shopify
                            with no local record (FinalizationFailure)

Finalization is never retried automatically: completing the same draft twice
could duplicate inventory and bookkeeping side effects, so the draft is handed
to an operator instead (CRITICAL log + alert).

How a successful order is reported back (JSON body or redirect to the
thank-you page) is decided by the ResponseStrategy passed in by the caller.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import JSONResponse, RedirectResponse, Response

from codform.connectors.shopify_admin import ShopifyAdminClient
from codform.errors import CodformError, FinalizationFailure
from codform.schemas import OrderSubmission, ResponseMode, ShopConfig
from codform.services.alert_service import AlertService
from codform.services.tracking_service import TrackingRecorder
from codform.utils.helpers import minor_to_major
from codform.utils.logger import log

DEFAULT_ORDER_TAGS = ["EasyCOD", "Cash on Delivery"]


@dataclass
class OrderResult:
    shop: str
    draft_order_id: str
    order_id: str
    order_name: Optional[str]
    purchase_data: Dict[str, Any] = field(default_factory=dict)


class ResponseStrategy(Protocol):
    def success(self, result: OrderResult, config: ShopConfig) -> Response:
        ...


class JsonResponseStrategy:
    """Storefront widget fires its purchase pixels from the JSON body"""

    def success(self, result: OrderResult, config: ShopConfig) -> Response:
        return JSONResponse({
            "success": True,
            "orderId": result.order_id,
            "orderName": result.order_name,
            "purchaseData": result.purchase_data,
        })


class RedirectResponseStrategy:
    """Send the shopper straight to the shop's thank-you page"""

    def __init__(self, default_path: str = "/pages/thank-you"):
        self.default_path = default_path

    def thank_you_url(self, shop: str, config: ShopConfig) -> str:
        target = (config.redirect_url or self.default_path).strip()
        if target.startswith(("http://", "https://")):
            return target
        if not target.startswith("/"):
            target = f"/{target}"
        return f"https://{shop}{target}"

    def success(self, result: OrderResult, config: ShopConfig) -> Response:
        return RedirectResponse(self.thank_you_url(result.shop, config), status_code=302)


def strategy_for(config: ShopConfig, default_thank_you_path: str = "/pages/thank-you") -> ResponseStrategy:
    if config.general.response_mode == ResponseMode.JSON:
        return JsonResponseStrategy()
    return RedirectResponseStrategy(default_thank_you_path)


def _error_messages(exc: Exception) -> List[str]:
    if isinstance(exc, CodformError):
        return [exc.message] + ([str(exc)] if str(exc) != exc.message else [])
    return [f"{type(exc).__name__}: {exc}"]


class OrderOrchestrator:
    """Create -> complete -> track, for one shop's Admin API client"""

    def __init__(
        self,
        client: ShopifyAdminClient,
        tracking: TrackingRecorder,
        alerts: Optional[AlertService] = None,
        base_tags: Optional[List[str]] = None,
    ):
        self.client = client
        self.tracking = tracking
        self.alerts = alerts
        self.base_tags = base_tags if base_tags is not None else list(DEFAULT_ORDER_TAGS)

    def build_draft_input(self, submission: OrderSubmission, config: ShopConfig) -> Dict[str, Any]:
        tags = list(self.base_tags)
        if config.general.add_order_tag and config.general.order_tag:
            tags.append(config.general.order_tag)

        draft_input: Dict[str, Any] = {
            "lineItems": [item.to_graphql() for item in submission.line_items],
            "shippingAddress": submission.shipping_address.to_graphql(),
            "tags": tags,
            "note": submission.note,
            "useCustomerDefaultAddress": False,
        }
        if submission.raw_email:
            draft_input["email"] = submission.raw_email
        return draft_input

    def build_purchase_data(self, submission: OrderSubmission, config: ShopConfig) -> Dict[str, Any]:
        return {
            "value": float(minor_to_major(submission.cart.total_price)),
            "currency": submission.cart.currency,
            "items": [item.to_event_item() for item in submission.line_items],
            "pixelSettings": config.pixel_settings,
        }

    async def place_order(
        self, submission: OrderSubmission, config: ShopConfig, strategy: ResponseStrategy
    ) -> Response:
        result = await self.create_order(submission, config)
        return strategy.success(result, config)

    async def create_order(self, submission: OrderSubmission, config: ShopConfig) -> OrderResult:
        """
        Run both phases and record the order.

        Raises:
            OrderValidationError: phase 1 rejected by Shopify (bad address etc.)
            TransportError: phase 1 could not reach Shopify
            FinalizationFailure: phase 1 succeeded, phase 2 did not
        """
        shop = submission.shop

        # Phase 1: any exception propagates and phase 2 is never attempted
        draft = await self.client.create_draft_order(self.build_draft_input(submission, config))
        log.info(f"[{shop}] Draft order created: {draft.id}")

        # Phase 2: the draft exists now, so every failure is escalated
        try:
            order = await self.client.complete_draft_order(draft.id)
        except Exception as e:
            errors = _error_messages(e)
            log.critical(
                f"[{shop}] Draft order {draft.id} created but NOT completed; manual reconciliation required: {errors}"
            )
            if self.alerts is not None:
                await self.alerts.send_finalization_alert(shop, draft.id, errors)
            raise FinalizationFailure(shop, draft.id, errors) from e

        log.info(f"[{shop}] Order completed: {order.name or order.id} (draft {draft.id})")

        # The order exists in Shopify from here on; local bookkeeping failures
        # are logged but do not turn a placed order into an error for the shopper.
        try:
            self.tracking.record_order(
                shop=shop,
                draft_order_id=draft.id,
                order_id=order.id,
                order_name=order.name,
                customer_ip=submission.customer_ip,
                email=submission.email,
                phone=submission.phone,
                postal_code=submission.postal_code,
                total_quantity=submission.cart.item_count,
                order_total=minor_to_major(submission.cart.total_price),
                currency=submission.cart.currency,
            )
        except SQLAlchemyError:
            log.exception(f"[{shop}] Failed to record tracking for order {order.id}")

        if submission.session_id:
            try:
                self.tracking.mark_cart_recovered(shop, submission.session_id, order.id)
            except SQLAlchemyError:
                log.exception(f"[{shop}] Failed to mark session {submission.session_id} recovered")

        return OrderResult(
            shop=shop,
            draft_order_id=draft.id,
            order_id=order.id,
            order_name=order.name,
            purchase_data=self.build_purchase_data(submission, config),
        )
