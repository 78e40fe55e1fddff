"""App proxy request signing

The storefront proxy appends ``signature`` to every forwarded request: an
HMAC-SHA256 (keyed with the app's API secret) over the other query parameters,
sorted by key and rendered as ``key=value`` pairs joined with ``&``. Repeated
keys are collapsed into one pair with their values joined by commas.
"""
import hashlib
import hmac
from typing import Dict, Iterable, List, Mapping, Tuple, Union

from codform.errors import AuthenticationError, MissingShopError
from codform.utils.logger import log

SIGNATURE_PARAM = "signature"
PAIR_SEPARATOR = "&"

Params = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def _collect(params: Params) -> Dict[str, List[str]]:
    items = params.items() if isinstance(params, Mapping) else params
    grouped: Dict[str, List[str]] = {}
    for key, value in items:
        grouped.setdefault(key, []).append("" if value is None else str(value))
    return grouped


def grouped_items(grouped: Dict[str, List[str]]) -> List[Tuple[str, str]]:
    return [(key, value) for key, values in grouped.items() for value in values]


def build_string_to_sign(params: Params) -> str:
    grouped = _collect(params)
    grouped.pop(SIGNATURE_PARAM, None)
    return PAIR_SEPARATOR.join(
        f"{key}={','.join(values)}" for key, values in sorted(grouped.items())
    )


def compute_proxy_signature(params: Params, secret: str) -> str:
    """Hex HMAC-SHA256 of the canonical parameter string"""
    return hmac.new(
        secret.encode("utf-8"),
        build_string_to_sign(params).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_proxy_signature(params: Params, secret: str) -> bool:
    """True only when a signature is present, a secret is configured and they match"""
    grouped = _collect(params)
    supplied = (grouped.get(SIGNATURE_PARAM) or [""])[0].strip().lower()
    if not supplied or not secret:
        return False
    expected = compute_proxy_signature(grouped_items(grouped), secret)
    return hmac.compare_digest(expected, supplied)


def authenticate_proxy_request(params: Params, secret: str, allow_preview: bool = False) -> str:
    """
    Authenticate a proxied request and return its shop domain.

    Shop-owner previews (``preview=true``) skip signature verification when the
    caller allows it; they still need a shop parameter. Only the read path
    allows previews, order submission never does.

    Raises:
        AuthenticationError: missing secret, missing signature or mismatch
        MissingShopError: no shop parameter on an otherwise valid request
    """
    grouped = _collect(params)
    shop = (grouped.get("shop") or [""])[0].strip()
    is_preview = (grouped.get("preview") or [""])[0].strip().lower() == "true"

    if allow_preview and is_preview:
        if not shop:
            raise MissingShopError()
        log.warning(f"Preview request for {shop}: signature verification skipped")
        return shop

    if not secret:
        log.error("SHOPIFY_API_SECRET is not configured, rejecting proxied request")
        raise AuthenticationError("secret not configured")
    if not (grouped.get(SIGNATURE_PARAM) or [""])[0]:
        raise AuthenticationError("missing signature")
    if not verify_proxy_signature(grouped_items(grouped), secret):
        log.warning(f"Proxy signature mismatch for shop={shop or '?'}")
        raise AuthenticationError("signature mismatch")

    if not shop:
        raise MissingShopError()
    return shop
