"""
App proxy signature tests.

Guards against:
1. Accepting unsigned or tampered requests
2. Canonicalisation drift (ordering, repeated keys, separator)
3. Preview bypass leaking into the submit path
"""
import hashlib
import hmac

import pytest

from codform.errors import AuthenticationError, MissingShopError
from codform.services.proxy_auth import (
    authenticate_proxy_request,
    build_string_to_sign,
    compute_proxy_signature,
    verify_proxy_signature,
)

SECRET = "hush"


def signed(params: dict, secret: str = SECRET) -> dict:
    return {**params, "signature": compute_proxy_signature(params, secret)}


def test_string_to_sign_sorts_keys_and_drops_signature():
    params = {"timestamp": "1700000000", "shop": "a.myshopify.com", "signature": "abc", "path_prefix": "/apps/proxy"}
    assert build_string_to_sign(params) == "path_prefix=/apps/proxy&shop=a.myshopify.com&timestamp=1700000000"


def test_repeated_keys_are_joined_with_commas():
    params = [("ids", "1"), ("shop", "a.myshopify.com"), ("ids", "2")]
    assert build_string_to_sign(params) == "ids=1,2&shop=a.myshopify.com"


def test_signature_is_hmac_sha256_hex():
    params = {"shop": "a.myshopify.com", "timestamp": "1"}
    expected = hmac.new(SECRET.encode(), b"shop=a.myshopify.com&timestamp=1", hashlib.sha256).hexdigest()
    assert compute_proxy_signature(params, SECRET) == expected


def test_valid_signature_verifies():
    assert verify_proxy_signature(signed({"shop": "a.myshopify.com", "timestamp": "1"}), SECRET)


def test_uppercase_hex_signature_verifies():
    params = signed({"shop": "a.myshopify.com"})
    params["signature"] = params["signature"].upper()
    assert verify_proxy_signature(params, SECRET)


def test_mutated_parameter_fails():
    params = signed({"shop": "a.myshopify.com", "cart_total": "1500"})
    params["cart_total"] = "15"
    assert not verify_proxy_signature(params, SECRET)


def test_added_parameter_fails():
    params = signed({"shop": "a.myshopify.com"})
    params["product_id"] = "42"
    assert not verify_proxy_signature(params, SECRET)


def test_wrong_secret_fails():
    assert not verify_proxy_signature(signed({"shop": "a.myshopify.com"}, "other"), SECRET)


def test_missing_signature_or_secret_fails():
    assert not verify_proxy_signature({"shop": "a.myshopify.com"}, SECRET)
    assert not verify_proxy_signature(signed({"shop": "a.myshopify.com"}), "")


class TestAuthenticate:
    def test_returns_shop(self):
        assert authenticate_proxy_request(signed({"shop": "a.myshopify.com"}), SECRET) == "a.myshopify.com"

    def test_missing_signature_raises(self):
        with pytest.raises(AuthenticationError) as exc:
            authenticate_proxy_request({"shop": "a.myshopify.com"}, SECRET)
        assert exc.value.status_code == 401
        assert exc.value.message == "Authentication failed."

    def test_unconfigured_secret_fails_closed(self):
        with pytest.raises(AuthenticationError):
            authenticate_proxy_request(signed({"shop": "a.myshopify.com"}), "")

    def test_valid_signature_without_shop_raises_missing_shop(self):
        with pytest.raises(MissingShopError) as exc:
            authenticate_proxy_request(signed({"timestamp": "1"}), SECRET)
        assert exc.value.status_code == 400

    def test_preview_bypass_only_when_allowed(self):
        params = {"shop": "a.myshopify.com", "preview": "true"}
        assert authenticate_proxy_request(params, SECRET, allow_preview=True) == "a.myshopify.com"
        with pytest.raises(AuthenticationError):
            authenticate_proxy_request(params, SECRET, allow_preview=False)

    def test_preview_still_needs_shop(self):
        with pytest.raises(MissingShopError):
            authenticate_proxy_request({"preview": "true"}, SECRET, allow_preview=True)
