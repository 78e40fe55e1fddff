"""
Proxy Service

Runs the two storefront-facing flows end to end:

- read path:   authenticate (previews allowed) -> settings -> visibility ->
               amount bounds -> form configuration JSON
- submit path: authenticate -> settings -> parse -> visibility -> amount
               bounds -> blocking rules -> create + complete order -> respond

Pipeline errors are raised as CodformError subclasses and rendered by the
exception handlers registered in codform.main.
"""
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple

from starlette.responses import JSONResponse, Response

from codform.config import Settings, get_settings
from codform.connectors.shopify_admin import ShopifyAdminClient
from codform.errors import AppNotInstalledError, CodformError, EligibilityMiss, ShopNotConnectedError
from codform.schemas import RequestContext, ShopConfig
from codform.services.alert_service import AlertService
from codform.services.blocking_service import BlockingRuleEngine
from codform.services.order_service import OrderOrchestrator, strategy_for
from codform.services.proxy_auth import authenticate_proxy_request
from codform.services.risk_service import RiskScorer
from codform.services.settings_service import SettingsAccessor
from codform.services.submission_parser import (
    cart_total_for_bounds,
    parse_request_context,
    parse_submission,
    resolve_customer_ip,
)
from codform.services.tracking_service import TrackingRecorder
from codform.services.visibility_service import resolve_visibility, validate_cart_amount
from codform.utils.helpers import split_csv
from codform.utils.logger import log

ClientFactory = Callable[[str, str], ShopifyAdminClient]
QueryItems = Iterable[Tuple[str, str]]


class ProxyService:
    """Request pipeline for the app proxy routes"""

    def __init__(
        self,
        settings_accessor: SettingsAccessor,
        tracking: TrackingRecorder,
        risk_scorer: Optional[RiskScorer] = None,
        alerts: Optional[AlertService] = None,
        app_settings: Optional[Settings] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.settings_accessor = settings_accessor
        self.tracking = tracking
        self.app_settings = app_settings or get_settings()
        self.alerts = alerts
        self.engine = BlockingRuleEngine(tracking, risk_scorer)
        self.client_factory = client_factory or self._default_client

    def _default_client(self, shop: str, access_token: str) -> ShopifyAdminClient:
        return ShopifyAdminClient(
            shop,
            access_token,
            api_version=self.app_settings.shopify_api_version,
            timeout=self.app_settings.shopify_timeout_seconds,
        )

    def admin_client(self, shop: str) -> ShopifyAdminClient:
        token = self.settings_accessor.get_access_token(shop)
        if not token:
            log.error(f"No Admin API session stored for {shop}; app needs reinstalling")
            raise ShopNotConnectedError(shop)
        return self.client_factory(shop, token)

    def _check_eligibility(self, config: ShopConfig, context: RequestContext, cart_total) -> None:
        visibility = resolve_visibility(
            config,
            product_id=context.product_id,
            page_type=context.page_type,
            template=context.template,
            country_code=context.country_code,
        )
        if not visibility:
            log.debug(f"[{config.shop_id}] Form not visible: {visibility.reason}")
            raise EligibilityMiss(visibility.reason)

        amount = validate_cart_amount(config, cart_total)
        if not amount:
            log.debug(f"[{config.shop_id}] Cart amount out of bounds: {amount.reason}")
            raise EligibilityMiss(amount.reason)

    # ── Read path ─────────────────────────────────────────

    async def form_config(self, query_items: QueryItems) -> Response:
        query_items = list(query_items)
        shop = authenticate_proxy_request(query_items, self.app_settings.shopify_api_secret, allow_preview=True)
        context = parse_request_context(dict(query_items))

        config = self.settings_accessor.get_config(shop)
        if config is None:
            raise EligibilityMiss("app not configured")

        payload = self._base_form_config(shop, config)

        if context.is_preview:
            payload["product"] = await self._preview_product(shop)
            payload["isPreview"] = True
            return JSONResponse(payload)

        self._check_eligibility(config, context, context.cart_total)
        payload["customerData"] = await self._logged_in_customer(shop, context.logged_in_customer_id)
        return JSONResponse(payload)

    def _base_form_config(self, shop: str, config: ShopConfig) -> dict:
        return {
            "shop": shop,
            "formFields": config.form_fields,
            "formStyle": config.form_style,
            "submitUrl": f"https://{shop}{self.app_settings.proxy_submit_path}",
            "redirectUrl": config.redirect_url or self.app_settings.default_thank_you_path,
            "pixelSettings": config.pixel_settings,
            "visibilitySettings": {
                "hideAddToCart": config.hide_add_to_cart,
                "hideBuyNow": config.hide_buy_now,
                "minimumAmount": config.minimum_amount_raw,
                "maximumAmount": config.maximum_amount_raw,
            },
            "customerData": None,
        }

    async def _logged_in_customer(self, shop: str, customer_id: Optional[str]) -> Optional[dict]:
        """Prefill data for a logged-in customer; the form still renders without it"""
        if not customer_id:
            return None
        try:
            return await self.admin_client(shop).fetch_customer(customer_id)
        except CodformError as e:
            log.warning(f"[{shop}] Could not fetch customer {customer_id}: {e}")
            return None

    async def _preview_product(self, shop: str) -> Optional[dict]:
        try:
            return await self.admin_client(shop).fetch_newest_product()
        except CodformError as e:
            log.warning(f"[{shop}] Could not load preview product: {e}")
            return None

    # ── Submit path ───────────────────────────────────────

    async def submit(
        self,
        query_items: QueryItems,
        form: Mapping[str, Any],
        headers: Mapping[str, str],
        client_host: Optional[str] = None,
    ) -> Response:
        query_items = list(query_items)
        shop = authenticate_proxy_request(query_items, self.app_settings.shopify_api_secret, allow_preview=False)
        context = parse_request_context(dict(query_items))

        config = self.settings_accessor.get_config(shop)
        if config is None:
            log.warning(f"Submission for {shop} but the app is not installed")
            raise AppNotInstalledError(shop)

        submission = parse_submission(
            shop,
            form,
            customer_ip=resolve_customer_ip(headers, client_host),
            country_code=context.country_code,
            default_country=self.app_settings.default_country,
            default_currency=self.app_settings.default_currency,
        )

        self._check_eligibility(config, context, cart_total_for_bounds(context, submission))

        decision = await self.engine.evaluate(config.blocking, submission)
        decision.raise_if_blocked()

        orchestrator = OrderOrchestrator(
            self.admin_client(shop),
            self.tracking,
            alerts=self.alerts,
            base_tags=split_csv(self.app_settings.order_tags),
        )
        strategy = strategy_for(config, self.app_settings.default_thank_you_path)
        return await orchestrator.place_order(submission, config, strategy)
