"""
Settings accessor and TTL cache tests.
"""
from codform.models.shop import ShopSettings
from codform.schemas import VisibilityMode
from codform.services.settings_service import SettingsAccessor
from codform.utils.cache import TTLCache, _MISS

from conftest import ACCESS_TOKEN, SHOP, install_shop, save_settings


class FakeTime:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestTTLCache:
    def test_expires_after_ttl(self):
        now = FakeTime()
        cache = TTLCache(ttl_seconds=120, clock=now)
        cache.set("a", 1)
        now.now += 119
        assert cache.get("a") == 1
        now.now += 1
        assert cache.get("a") is _MISS
        assert len(cache) == 0

    def test_zero_ttl_disables_caching(self):
        cache = TTLCache(ttl_seconds=0)
        cache.set("a", 1)
        assert cache.get("a") is _MISS

    def test_invalidate_and_clear(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate("a")
        assert cache.get("a") is _MISS
        cache.clear()
        assert len(cache) == 0


def test_not_installed_returns_none(session_factory):
    assert SettingsAccessor(session_factory).get_config(SHOP) is None


def test_installed_shop_gets_default_row(session_factory):
    install_shop(session_factory)
    config = SettingsAccessor(session_factory).get_config(SHOP)

    assert config is not None
    assert config.visibility_mode == VisibilityMode.BOTH
    assert config.blocking.limit_same_customer_hours == 24
    assert config.general.response_mode.value == "redirect"

    db = session_factory()
    try:
        assert db.query(ShopSettings).filter(ShopSettings.shop_id == SHOP).count() == 1
    finally:
        db.close()


def test_reads_stored_settings(session_factory):
    save_settings(session_factory, visibility_mode="disabled", user_blocking={"blockedIps": "1.2.3.4"})
    config = SettingsAccessor(session_factory).get_config(SHOP)
    assert config.visibility_mode == VisibilityMode.DISABLED
    assert config.blocking.blocked_ip_set == {"1.2.3.4"}


def test_cache_serves_stale_until_invalidated(session_factory):
    save_settings(session_factory, visibility_mode="disabled")
    accessor = SettingsAccessor(session_factory, TTLCache(ttl_seconds=120))
    assert accessor.get_config(SHOP).visibility_mode == VisibilityMode.DISABLED

    save_settings(session_factory, visibility_mode="both_cart_product")
    assert accessor.get_config(SHOP).visibility_mode == VisibilityMode.DISABLED

    accessor.invalidate(SHOP)
    assert accessor.get_config(SHOP).visibility_mode == VisibilityMode.BOTH


def test_uncached_accessor_sees_updates(session_factory):
    save_settings(session_factory, visibility_mode="disabled")
    accessor = SettingsAccessor(session_factory)
    accessor.get_config(SHOP)
    save_settings(session_factory, visibility_mode="only_cart_page")
    assert accessor.get_config(SHOP).visibility_mode == VisibilityMode.CART_ONLY


def test_access_token(session_factory):
    accessor = SettingsAccessor(session_factory)
    assert accessor.get_access_token(SHOP) is None
    install_shop(session_factory)
    assert accessor.get_access_token(SHOP) == ACCESS_TOKEN
