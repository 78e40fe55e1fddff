"""
Builds request-scoped objects from the proxied request: the page context from
query parameters and the OrderSubmission from the posted form.
"""
import json
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from codform.errors import SubmissionError
from codform.schemas import CartSnapshot, LineItem, OrderSubmission, RequestContext, ShippingAddress
from codform.utils.helpers import (
    first_non_empty,
    normalize_email,
    normalize_phone,
    normalize_postal_code,
    to_decimal,
)
from codform.utils.logger import log

VARIANT_GID_PREFIX = "gid://shopify/ProductVariant/"
MAX_LINE_ITEMS = 100


def _field(form: Mapping[str, Any], name: str) -> str:
    value = form.get(name)
    return str(value).strip() if value is not None else ""


def resolve_customer_ip(headers: Mapping[str, str], client_host: Optional[str] = None) -> str:
    """CF-Connecting-IP, then the first X-Forwarded-For hop, then the socket peer"""
    forwarded = (headers.get("x-forwarded-for") or "").split(",")[0]
    return first_non_empty([headers.get("cf-connecting-ip"), forwarded, client_host]) or ""


def parse_request_context(params: Mapping[str, Any]) -> RequestContext:
    cart_total_raw = params.get("cart_total")
    cart_total = to_decimal(cart_total_raw) if cart_total_raw not in (None, "") else None
    return RequestContext(
        shop=str(params.get("shop") or "").strip(),
        product_id=(str(params.get("product_id")).strip() or None) if params.get("product_id") else None,
        template=params.get("template") or None,
        country_code=(str(params.get("country_code")).strip().upper() or None) if params.get("country_code") else None,
        cart_total=cart_total,
        logged_in_customer_id=params.get("logged_in_customer_id") or None,
        is_preview=str(params.get("preview") or "").lower() == "true",
    )


def _variant_gid(raw: Any) -> Optional[str]:
    if raw is None or str(raw).strip() == "":
        return None
    value = str(raw).strip()
    return value if value.startswith("gid://") else f"{VARIANT_GID_PREFIX}{value}"


def _quantity(raw: Any) -> int:
    try:
        quantity = int(raw)
    except (TypeError, ValueError):
        raise SubmissionError(f"invalid quantity {raw!r}")
    if quantity < 1:
        raise SubmissionError(f"invalid quantity {raw!r}")
    return quantity


def parse_line_items(form: Mapping[str, Any]) -> List[LineItem]:
    """
    Accepts the cart format (``lineItems`` JSON array) and the single product
    format (``product_variant_id`` + ``product_quantity``). An empty cart
    becomes one custom inquiry line so the merchant still receives the order.
    """
    raw_items = _field(form, "lineItems")
    items: List[LineItem] = []

    if raw_items:
        try:
            decoded = json.loads(raw_items)
        except ValueError as e:
            raise SubmissionError(f"lineItems is not valid JSON: {e}")
        if not isinstance(decoded, list):
            raise SubmissionError("lineItems must be a JSON array")
        if len(decoded) > MAX_LINE_ITEMS:
            raise SubmissionError("too many line items")
        for entry in decoded:
            if not isinstance(entry, dict):
                raise SubmissionError("line item must be an object")
            items.append(LineItem(
                variant_id=_variant_gid(entry.get("variantId") or entry.get("variant_id")),
                quantity=_quantity(entry.get("quantity", 1)),
                title=entry.get("title"),
            ))
    elif _field(form, "product_variant_id"):
        items.append(LineItem(
            variant_id=_variant_gid(_field(form, "product_variant_id")),
            quantity=_quantity(_field(form, "product_quantity") or 1),
        ))

    if not items:
        items.append(LineItem(
            title="Custom Inquiry/Order",
            quantity=1,
            original_unit_price="0.00",
            custom_attributes=[
                {"key": "Order Type", "value": "Custom Inquiry"},
                {"key": "Customer Request", "value": _field(form, "order-note") or "Custom order inquiry"},
            ],
        ))
    return items


def parse_cart_snapshot(form: Mapping[str, Any], line_items: List[LineItem], default_currency: str) -> CartSnapshot:
    raw = _field(form, "cartData")
    data: Any = {}
    if raw:
        try:
            data = json.loads(raw)
        except ValueError:
            log.warning("Could not parse cartData, using defaults")
            data = {}
    if not isinstance(data, dict):
        data = {}

    total = to_decimal(data.get("total_price"))
    item_count = data.get("item_count")
    try:
        item_count = int(item_count)
    except (TypeError, ValueError):
        item_count = 0
    if item_count <= 0:
        item_count = sum(item.quantity for item in line_items)

    return CartSnapshot(
        currency=str(data.get("currency") or default_currency).upper(),
        total_price=int(total) if total > 0 else 0,
        item_count=item_count,
    )


def parse_submission(
    shop: str,
    form: Mapping[str, Any],
    customer_ip: str,
    country_code: Optional[str] = None,
    default_country: str = "DZ",
    default_currency: str = "DZD",
) -> OrderSubmission:
    """Build an OrderSubmission from posted form fields"""
    first_name = _field(form, "firstName")
    last_name = _field(form, "lastName")
    full_name = _field(form, "full-name") or f"{first_name} {last_name}".strip()
    name_parts = full_name.split()

    phone_raw = _field(form, "phone")
    zip_raw = _field(form, "zip-code")

    address = ShippingAddress(
        first_name=first_name or (name_parts[0] if name_parts else "") or "Customer",
        last_name=last_name or " ".join(name_parts[1:]) or "Name",
        address1=_field(form, "address") or "No Address Provided",
        address2=_field(form, "address2") or None,
        city=_field(form, "commune_label") or _field(form, "city") or "Unknown",
        province=_field(form, "wilaya_label") or _field(form, "province") or None,
        zip=zip_raw or None,
        country=(country_code or default_country).upper(),
        phone=phone_raw or None,
    )

    line_items = parse_line_items(form)
    raw_email = _field(form, "email")

    return OrderSubmission(
        shop=shop,
        customer_ip=customer_ip,
        email=normalize_email(raw_email),
        raw_email=raw_email,
        phone=normalize_phone(phone_raw),
        postal_code=normalize_postal_code(zip_raw),
        shipping_address=address,
        line_items=line_items,
        cart=parse_cart_snapshot(form, line_items, default_currency),
        note=_field(form, "order-note"),
        session_id=_field(form, "sessionId") or None,
    )


def cart_total_for_bounds(context: RequestContext, submission: OrderSubmission) -> Decimal:
    """Amount checked against min/max on submit: the proxy's cart_total, else the snapshot"""
    if context.cart_total is not None:
        return context.cart_total
    return to_decimal(submission.cart.total_price) / Decimal(100)
