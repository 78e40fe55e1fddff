"""
Visibility and cart amount tests.

Guards against:
1. Showing the form when the shop disabled it
2. Allow/deny-list mismatches on Shopify GIDs
3. Off-by-one errors on the inclusive amount bounds
"""
import json
from decimal import Decimal

import pytest

from codform.models.shop import ShopSettings
from codform.schemas import PageType, RequestContext, ShopConfig, VisibilityMode
from codform.services.visibility_service import resolve_visibility, validate_cart_amount


def config(**overrides) -> ShopConfig:
    return ShopConfig(shop_id="s.myshopify.com", **overrides)


def test_default_config_is_visible_on_both_page_types():
    assert resolve_visibility(config(), "1", PageType.PRODUCT)
    assert resolve_visibility(config(), None, PageType.CART)


def test_disabled_mode_hides_everywhere():
    cfg = config(visibility_mode=VisibilityMode.DISABLED)
    decision = resolve_visibility(cfg, "1", PageType.PRODUCT)
    assert not decision
    assert decision.reason == "form disabled"
    assert not resolve_visibility(cfg, None, PageType.CART)


def test_cart_only_mode():
    cfg = config(visibility_mode=VisibilityMode.CART_ONLY)
    assert resolve_visibility(cfg, None, PageType.CART)
    assert not resolve_visibility(cfg, "1", PageType.PRODUCT)


def test_product_only_mode():
    cfg = config(visibility_mode=VisibilityMode.PRODUCT_ONLY)
    assert resolve_visibility(cfg, "1", PageType.PRODUCT)
    assert not resolve_visibility(cfg, None, PageType.CART)


def test_home_and_collection_templates():
    cfg = config(disable_on_home=True, disable_on_collections=True)
    assert not resolve_visibility(cfg, None, PageType.CART, template="index")
    assert not resolve_visibility(cfg, None, PageType.CART, template="collection")
    assert resolve_visibility(cfg, None, PageType.CART, template="cart")


class TestPageType:
    def page(self, **params) -> PageType:
        return RequestContext(shop="s.myshopify.com", **params).page_type

    def test_template_decides(self):
        assert self.page(template="cart") == PageType.CART
        assert self.page(template="product", product_id=None) == PageType.PRODUCT
        assert self.page(template="product.preorder") == PageType.PRODUCT
        assert self.page(template="cart", product_id="42") == PageType.CART

    def test_other_templates_are_neither_cart_nor_product(self):
        assert self.page(template="index") == PageType.OTHER
        assert self.page(template="collection") == PageType.OTHER
        assert self.page(template="search") == PageType.OTHER

    def test_product_id_without_template_tag(self):
        assert self.page(product_id="42") == PageType.PRODUCT
        assert self.page(template="collection", product_id="42") == PageType.PRODUCT
        assert self.page() == PageType.CART


@pytest.mark.parametrize("template", ["index", "collection", "collection.sale", "search"])
def test_cart_only_mode_hides_non_cart_templates(template):
    cfg = config(visibility_mode=VisibilityMode.CART_ONLY)
    context = RequestContext(shop="s.myshopify.com", template=template)
    decision = resolve_visibility(cfg, None, context.page_type, template=template)
    assert not decision.visible
    assert decision.reason == "cart page only"


@pytest.mark.parametrize("template", ["index", "collection"])
def test_product_only_mode_hides_non_product_templates(template):
    cfg = config(visibility_mode=VisibilityMode.PRODUCT_ONLY)
    context = RequestContext(shop="s.myshopify.com", template=template)
    assert not resolve_visibility(cfg, None, context.page_type, template=template)


def test_alternate_templates_match_their_base():
    cfg = config(disable_on_home=True, disable_on_collections=True)
    assert not resolve_visibility(cfg, None, PageType.OTHER, template="collection.sale")
    assert not resolve_visibility(cfg, None, PageType.OTHER, template="index.landing")
    assert resolve_visibility(cfg, None, PageType.OTHER, template="search")


def test_allow_list_add_then_remove():
    cfg = config(enable_specific_products=True, visible_product_ids={"42"})
    assert resolve_visibility(cfg, "42", PageType.PRODUCT)
    assert resolve_visibility(cfg, "gid://shopify/Product/42", PageType.PRODUCT)

    cfg = config(enable_specific_products=True, visible_product_ids=set())
    assert not resolve_visibility(cfg, "42", PageType.PRODUCT)


def test_allow_list_compares_whole_segments():
    cfg = config(enable_specific_products=True, visible_product_ids={"142"})
    assert not resolve_visibility(cfg, "42", PageType.PRODUCT)


def test_deny_list_hides_listed_product():
    cfg = config(disable_specific_products=True, hidden_product_ids={"7"})
    assert not resolve_visibility(cfg, "7", PageType.PRODUCT)
    assert resolve_visibility(cfg, "8", PageType.PRODUCT)


def test_deny_wins_when_both_lists_enabled():
    cfg = config(
        enable_specific_products=True, visible_product_ids={"7"},
        disable_specific_products=True, hidden_product_ids={"7"},
    )
    decision = resolve_visibility(cfg, "7", PageType.PRODUCT)
    assert not decision
    assert "deny-list" in decision.reason


def test_country_restriction_fails_closed():
    cfg = config(enable_specific_countries=True, allowed_countries={"DZ", "MA"})
    assert resolve_visibility(cfg, None, PageType.CART, country_code="dz")
    assert not resolve_visibility(cfg, None, PageType.CART, country_code="FR")
    assert not resolve_visibility(cfg, None, PageType.CART, country_code=None)


def test_country_restriction_with_empty_list_is_ignored():
    cfg = config(enable_specific_countries=True, allowed_countries=set())
    assert resolve_visibility(cfg, None, PageType.CART, country_code=None)


class TestCartAmount:
    def test_no_bounds_accepts_anything(self):
        assert validate_cart_amount(config(), Decimal("0"))
        assert validate_cart_amount(config(), Decimal("999999"))

    def test_inclusive_bounds(self):
        cfg = config(minimum_amount=Decimal("1000"), maximum_amount=Decimal("5000"))
        assert not validate_cart_amount(cfg, Decimal("999"))
        assert validate_cart_amount(cfg, Decimal("1000"))
        assert validate_cart_amount(cfg, Decimal("1500"))
        assert validate_cart_amount(cfg, Decimal("5000"))
        assert not validate_cart_amount(cfg, Decimal("5001"))

    def test_zero_means_no_bound_on_that_side(self):
        assert validate_cart_amount(config(minimum_amount=Decimal("100")), Decimal("10000000"))
        assert validate_cart_amount(config(maximum_amount=Decimal("100")), Decimal("0"))

    def test_missing_total_counts_as_zero(self):
        assert not validate_cart_amount(config(minimum_amount=Decimal("1")), None)


def test_config_from_record_normalises_stored_json():
    record = ShopSettings(
        shop_id="s.myshopify.com",
        visibility_mode="not-a-mode",
        visible_products=json.dumps([{"id": "gid://shopify/Product/42", "title": "Kettle"}, "43"]),
        hidden_products="{broken",
        allowed_countries=json.dumps([{"code": "dz", "name": "Algeria"}]),
        minimum_amount="1000",
        maximum_amount="",
        user_blocking=json.dumps({"blockByQuantity": "true", "blockQuantityAmount": "3"}),
        general_settings=None,
    )
    cfg = ShopConfig.from_record(record)
    assert cfg.visibility_mode == VisibilityMode.BOTH
    assert cfg.visible_product_ids == {"42", "43"}
    assert cfg.hidden_product_ids == set()
    assert cfg.allowed_countries == {"DZ"}
    assert cfg.minimum_amount == Decimal("1000")
    assert cfg.maximum_amount == Decimal("0")
    assert cfg.minimum_amount_raw == "1000"
    assert cfg.blocking.block_by_quantity is True
    assert cfg.blocking.block_quantity_amount == 3
    assert cfg.general.response_mode.value == "redirect"
