"""
Typed shop configuration and request-scoped data

ShopConfig is built once per settings read from the stored ShopSettings row:
every JSON column is parsed, merged over its defaults and validated, so the
services below never deal with raw or partially-populated JSON.
"""
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from codform.utils.helpers import (
    last_path_segment,
    normalize_email,
    normalize_ip,
    normalize_phone,
    normalize_postal_code,
    parse_json_field,
    split_lines,
    to_decimal,
)
from codform.utils.logger import log

DEFAULT_BLOCKED_MESSAGE = "Your order could not be processed at this time."


class VisibilityMode(str, Enum):
    DISABLED = "disabled"
    CART_ONLY = "only_cart_page"
    PRODUCT_ONLY = "only_product_pages"
    BOTH = "both_cart_product"


class ResponseMode(str, Enum):
    REDIRECT = "redirect"
    JSON = "json"


class PageType(str, Enum):
    CART = "cart"
    PRODUCT = "product"
    OTHER = "other"  # home, collection, search, pages...


def template_base(template: Optional[str]) -> str:
    """'collection.sale' -> 'collection'"""
    return (template or "").strip().lower().split(".")[0]


def _lenient_int(value: Any, default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


class BlockingRules(BaseModel):
    """User-blocking configuration as saved by the protection settings screen"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    limit_same_customer_orders: bool = False
    limit_same_customer_hours: int = 24
    block_by_quantity: bool = False
    block_quantity_amount: int = 5
    blocked_emails: str = ""
    blocked_phone_numbers: str = ""
    blocked_ips: str = ""
    allowed_ips: str = ""
    blocked_message: str = DEFAULT_BLOCKED_MESSAGE
    postal_code_mode: Literal["none", "exclude", "allow"] = "none"
    postal_code_list: str = ""
    enable_risk_scoring: bool = False
    auto_reject_high_risk: bool = False

    # The admin form stores numbers as strings
    @field_validator("limit_same_customer_hours", mode="before")
    @classmethod
    def _parse_hours(cls, value):
        return _lenient_int(value, 24)

    @field_validator("block_quantity_amount", mode="before")
    @classmethod
    def _parse_quantity(cls, value):
        return _lenient_int(value, 5)

    @field_validator("postal_code_mode", mode="before")
    @classmethod
    def _parse_postal_mode(cls, value):
        mode = str(value or "none").strip().lower()
        return mode if mode in ("none", "exclude", "allow") else "none"

    @field_validator("blocked_message", mode="before")
    @classmethod
    def _parse_message(cls, value):
        return str(value).strip() if value and str(value).strip() else DEFAULT_BLOCKED_MESSAGE

    @field_validator(
        "blocked_emails", "blocked_phone_numbers", "blocked_ips", "allowed_ips", "postal_code_list",
        mode="before",
    )
    @classmethod
    def _parse_list_text(cls, value):
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return "\n".join(str(v) for v in value)
        return str(value)

    @field_validator(
        "limit_same_customer_orders", "block_by_quantity", "enable_risk_scoring", "auto_reject_high_risk",
        mode="before",
    )
    @classmethod
    def _parse_flag(cls, value):
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes", "on")
        return bool(value)

    @property
    def allowed_ip_set(self) -> Set[str]:
        return split_lines(self.allowed_ips, normalize_ip)

    @property
    def blocked_ip_set(self) -> Set[str]:
        return split_lines(self.blocked_ips, normalize_ip)

    @property
    def blocked_email_set(self) -> Set[str]:
        return split_lines(self.blocked_emails, normalize_email)

    @property
    def blocked_phone_set(self) -> Set[str]:
        return split_lines(self.blocked_phone_numbers, normalize_phone)

    @property
    def postal_code_set(self) -> Set[str]:
        return split_lines(self.postal_code_list, normalize_postal_code)


class GeneralSettings(BaseModel):
    """Subset of general settings the order pipeline acts on"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    response_mode: ResponseMode = ResponseMode.REDIRECT
    add_order_tag: bool = True
    order_tag: str = ""
    redirect_url: str = ""

    @field_validator("response_mode", mode="before")
    @classmethod
    def _parse_mode(cls, value):
        try:
            return ResponseMode(str(value or "redirect").strip().lower())
        except ValueError:
            return ResponseMode.REDIRECT


class ShopConfig(BaseModel):
    """Everything the pipeline needs from a shop's stored settings"""

    shop_id: str
    visibility_mode: VisibilityMode = VisibilityMode.BOTH
    enable_specific_products: bool = False
    visible_product_ids: Set[str] = Field(default_factory=set)
    disable_specific_products: bool = False
    hidden_product_ids: Set[str] = Field(default_factory=set)
    enable_specific_countries: bool = False
    allowed_countries: Set[str] = Field(default_factory=set)
    disable_on_home: bool = False
    disable_on_collections: bool = False
    hide_add_to_cart: bool = False
    hide_buy_now: bool = False
    minimum_amount: Decimal = Decimal("0")
    maximum_amount: Decimal = Decimal("0")
    # Raw values echoed back to the widget as the admin entered them
    minimum_amount_raw: str = ""
    maximum_amount_raw: str = ""
    blocking: BlockingRules = Field(default_factory=BlockingRules)
    general: GeneralSettings = Field(default_factory=GeneralSettings)
    redirect_url: Optional[str] = None
    form_fields: List[Any] = Field(default_factory=list)
    form_style: Dict[str, Any] = Field(default_factory=dict)
    pixel_settings: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record) -> "ShopConfig":
        """Default-and-merge step from a ShopSettings row"""
        try:
            mode = VisibilityMode(record.visibility_mode or VisibilityMode.BOTH.value)
        except ValueError:
            log.warning(f"Unknown visibility mode {record.visibility_mode!r} for {record.shop_id}, using both_cart_product")
            mode = VisibilityMode.BOTH

        blocking_raw = parse_json_field(record.user_blocking, {})
        try:
            blocking = BlockingRules.model_validate(blocking_raw if isinstance(blocking_raw, dict) else {})
        except ValidationError as e:
            log.error(f"Invalid blocking rules for {record.shop_id}, using defaults: {e}")
            blocking = BlockingRules()

        general_raw = parse_json_field(record.general_settings, {})
        try:
            general = GeneralSettings.model_validate(general_raw if isinstance(general_raw, dict) else {})
        except ValidationError as e:
            log.error(f"Invalid general settings for {record.shop_id}, using defaults: {e}")
            general = GeneralSettings()

        form_fields = parse_json_field(record.form_fields, [])
        form_style = parse_json_field(record.form_style, {})
        pixel_settings = parse_json_field(record.pixel_settings, {})

        return cls(
            shop_id=record.shop_id,
            visibility_mode=mode,
            enable_specific_products=bool(record.enable_specific_products),
            visible_product_ids=_product_ids(parse_json_field(record.visible_products, [])),
            disable_specific_products=bool(record.disable_specific_products),
            hidden_product_ids=_product_ids(parse_json_field(record.hidden_products, [])),
            enable_specific_countries=bool(record.enable_specific_countries),
            allowed_countries=_country_codes(parse_json_field(record.allowed_countries, [])),
            disable_on_home=bool(record.disable_on_home),
            disable_on_collections=bool(record.disable_on_collections),
            hide_add_to_cart=bool(record.hide_add_to_cart),
            hide_buy_now=bool(record.hide_buy_now),
            minimum_amount=max(to_decimal(record.minimum_amount), Decimal("0")),
            maximum_amount=max(to_decimal(record.maximum_amount), Decimal("0")),
            minimum_amount_raw=record.minimum_amount or "",
            maximum_amount_raw=record.maximum_amount or "",
            blocking=blocking,
            general=general,
            redirect_url=record.redirect_url or general.redirect_url or None,
            form_fields=form_fields if isinstance(form_fields, list) else [],
            form_style=form_style if isinstance(form_style, dict) else {},
            pixel_settings=pixel_settings if isinstance(pixel_settings, dict) else {},
        )


def _product_ids(entries: Any) -> Set[str]:
    """Product pickers save [{id: 'gid://shopify/Product/1', ...}]; older rows hold bare ids"""
    if not isinstance(entries, list):
        return set()
    ids = set()
    for entry in entries:
        raw = entry.get("id") if isinstance(entry, dict) else entry
        segment = last_path_segment(raw)
        if segment:
            ids.add(segment)
    return ids


def _country_codes(entries: Any) -> Set[str]:
    if not isinstance(entries, list):
        return set()
    codes = set()
    for entry in entries:
        raw = entry.get("code") if isinstance(entry, dict) else entry
        if raw and str(raw).strip():
            codes.add(str(raw).strip().upper())
    return codes


class RequestContext(BaseModel):
    """Page context the storefront proxy forwards as query parameters"""

    shop: str
    product_id: Optional[str] = None
    template: Optional[str] = None
    country_code: Optional[str] = None
    cart_total: Optional[Decimal] = None
    logged_in_customer_id: Optional[str] = None
    is_preview: bool = False

    @property
    def page_type(self) -> PageType:
        """
        Template wins (alternate templates like ``product.preorder`` count as
        their base). Without a template the request came from the cart unless
        it names a product.
        """
        template = template_base(self.template)
        if template == PageType.CART.value:
            return PageType.CART
        if template == PageType.PRODUCT.value or self.product_id:
            return PageType.PRODUCT
        return PageType.OTHER if template else PageType.CART


class ShippingAddress(BaseModel):
    first_name: str = "Customer"
    last_name: str = "Name"
    address1: str = "No Address Provided"
    address2: Optional[str] = None
    city: str = "Unknown"
    province: Optional[str] = None
    zip: Optional[str] = None
    country: str = "DZ"
    phone: Optional[str] = None

    def to_graphql(self) -> Dict[str, Any]:
        """MailingAddressInput"""
        payload = {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "address1": self.address1,
            "address2": self.address2,
            "city": self.city,
            "province": self.province,
            "zip": self.zip,
            "countryCode": self.country,
            "phone": self.phone,
        }
        return {k: v for k, v in payload.items() if v is not None}


class LineItem(BaseModel):
    variant_id: Optional[str] = None
    quantity: int = 1
    title: Optional[str] = None
    original_unit_price: Optional[str] = None
    custom_attributes: List[Dict[str, str]] = Field(default_factory=list)

    def to_graphql(self) -> Dict[str, Any]:
        """DraftOrderLineItemInput"""
        if self.variant_id:
            return {"variantId": self.variant_id, "quantity": self.quantity}
        payload = {
            "title": self.title or "Custom Item",
            "quantity": self.quantity,
            "originalUnitPrice": self.original_unit_price or "0.00",
            "requiresShipping": True,
            "taxable": False,
        }
        if self.custom_attributes:
            payload["customAttributes"] = self.custom_attributes
        return payload

    def to_event_item(self) -> Dict[str, Any]:
        return {"variantId": self.variant_id, "quantity": self.quantity, "title": self.title}


class CartSnapshot(BaseModel):
    currency: str
    total_price: int = 0  # minor units
    item_count: int = 0


class OrderSubmission(BaseModel):
    """One storefront form submission, normalised at parse time"""

    shop: str
    customer_ip: str = ""
    email: str = ""  # normalised
    raw_email: str = ""
    phone: str = ""  # digits only
    postal_code: str = ""  # normalised
    shipping_address: ShippingAddress
    line_items: List[LineItem]
    cart: CartSnapshot
    note: str = ""
    session_id: Optional[str] = None

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.line_items)
