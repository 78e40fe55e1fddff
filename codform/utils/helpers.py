"""
Helper utilities: input normalisation and JSON field parsing
"""
import json
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional, Set

_NON_DIGITS = re.compile(r"\D")


def normalize_email(value: Optional[str]) -> str:
    """Trim and lowercase an email address"""
    return (value or "").strip().lower()


def normalize_phone(value: Optional[str]) -> str:
    """Keep digits only"""
    return _NON_DIGITS.sub("", value or "")


def normalize_postal_code(value: Optional[str]) -> str:
    """Trim and uppercase a postal code"""
    return (value or "").strip().upper()


def normalize_ip(value: Optional[str]) -> str:
    """Trim and lowercase an IP address (IPv6 hex digits are case-insensitive)"""
    return (value or "").strip().lower()


def split_lines(value: Optional[str], normalizer=str.strip) -> Set[str]:
    """Parse a newline-delimited admin list into a set of normalised, non-empty entries"""
    if not value:
        return set()
    entries = (normalizer(line) for line in str(value).splitlines())
    return {entry for entry in entries if entry}


def parse_json_field(raw: Any, fallback: Any) -> Any:
    """Parse a JSON text column, returning fallback for null or malformed data"""
    if raw is None or raw == "":
        return fallback
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return fallback


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Parse a money-like value, falling back to default"""
    if value is None or value == "":
        return default
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    if not result.is_finite():
        return default
    return result


def minor_to_major(amount_minor: Any) -> Decimal:
    """Convert an amount in minor currency units (cents) to major units, 2dp"""
    return (to_decimal(amount_minor) / Decimal(100)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def last_path_segment(identifier: Any) -> str:
    """'gid://shopify/Product/123' -> '123'; '123' -> '123'"""
    return str(identifier or "").strip().rstrip("/").split("/")[-1]


def first_non_empty(values: Iterable[Optional[str]]) -> Optional[str]:
    for value in values:
        if value and str(value).strip():
            return str(value).strip()
    return None


def split_csv(value: Optional[str]) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]
