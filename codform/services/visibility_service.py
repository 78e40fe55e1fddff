"""
Visibility Resolver

Decides whether the COD form may be shown (and submitted) for a request:
page/product/country eligibility, then cart amount bounds. A failed check is
not an error for the shopper; the proxy just renders nothing.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from codform.schemas import PageType, ShopConfig, VisibilityMode, template_base
from codform.utils.helpers import last_path_segment

ZERO = Decimal("0")


@dataclass(frozen=True)
class VisibilityDecision:
    visible: bool
    reason: str = "visible"

    def __bool__(self) -> bool:
        return self.visible


def _hidden(reason: str) -> VisibilityDecision:
    return VisibilityDecision(False, reason)


def resolve_visibility(
    config: ShopConfig,
    product_id: Optional[str],
    page_type: PageType,
    template: Optional[str] = None,
    country_code: Optional[str] = None,
) -> VisibilityDecision:
    """
    Evaluate the visibility rules in order, stopping at the first failure.

    When both the allow-list and the deny-list are enabled the allow-list is
    checked first and the deny-list can still hide the product.
    """
    # 1. Globally disabled
    if config.visibility_mode == VisibilityMode.DISABLED:
        return _hidden("form disabled")

    # 2. Page-specific modes (home, collection and other pages fail both)
    if config.visibility_mode == VisibilityMode.CART_ONLY and page_type != PageType.CART:
        return _hidden("cart page only")
    if config.visibility_mode == VisibilityMode.PRODUCT_ONLY and page_type != PageType.PRODUCT:
        return _hidden("product pages only")

    # 3. Home / collection templates
    template = template_base(template)
    if config.disable_on_home and template == "index":
        return _hidden("disabled on home page")
    if config.disable_on_collections and template == "collection":
        return _hidden("disabled on collection pages")

    # 4-5. Specific products
    if product_id:
        simple_id = last_path_segment(product_id)
        if config.enable_specific_products and simple_id not in config.visible_product_ids:
            return _hidden(f"product {simple_id} not in allow-list")
        if config.disable_specific_products and simple_id in config.hidden_product_ids:
            return _hidden(f"product {simple_id} in deny-list")

    # 6. Country allow-list (fails closed without a country)
    if config.enable_specific_countries and config.allowed_countries:
        country = (country_code or "").strip().upper()
        if not country:
            return _hidden("country unknown")
        if country not in config.allowed_countries:
            return _hidden(f"country {country} not allowed")

    return VisibilityDecision(True)


def validate_cart_amount(config: ShopConfig, cart_total: Optional[Decimal]) -> VisibilityDecision:
    """
    Check the cart total against the configured bounds (inclusive).

    Zero on either side means no bound on that side; both zero means any
    amount is accepted.
    """
    minimum = config.minimum_amount
    maximum = config.maximum_amount
    if minimum <= ZERO and maximum <= ZERO:
        return VisibilityDecision(True)

    total = cart_total if cart_total is not None else ZERO
    if minimum > ZERO and total < minimum:
        return _hidden(f"cart total {total} below minimum {minimum}")
    if maximum > ZERO and total > maximum:
        return _hidden(f"cart total {total} above maximum {maximum}")
    return VisibilityDecision(True)
