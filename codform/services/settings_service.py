"""
Settings Accessor

Read-only view of a shop's stored configuration, returned as a typed
ShopConfig. Reads go through an injected TTLCache keyed by shop domain.
"""
import json
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from codform.models.shop import ShopSettings, ShopSession
from codform.schemas import DEFAULT_BLOCKED_MESSAGE, ShopConfig
from codform.utils.cache import TTLCache, _MISS
from codform.utils.logger import log

DEFAULT_GENERAL_SETTINGS = {
    "orderCreationMode": "cod",
    "responseMode": "redirect",
    "addOrderTag": True,
    "redirectUrl": "",
}

DEFAULT_USER_BLOCKING = {
    "limitSameCustomerOrders": False,
    "limitSameCustomerHours": "24",
    "blockByQuantity": False,
    "blockQuantityAmount": "5",
    "blockedEmails": "",
    "blockedPhoneNumbers": "",
    "blockedIps": "",
    "allowedIps": "",
    "blockedMessage": DEFAULT_BLOCKED_MESSAGE,
    "postalCodeMode": "none",
    "postalCodeList": "",
    "enableRiskScoring": False,
    "autoRejectHighRisk": False,
}

# Row written for an installed shop that has never saved its settings
DEFAULT_SHOP_SETTINGS = {
    "form_fields": "[]",
    "form_style": "{}",
    "pixel_settings": "{}",
    "visibility_mode": "both_cart_product",
    "visible_products": "[]",
    "hidden_products": "[]",
    "allowed_countries": "[]",
    "hide_add_to_cart": False,
    "hide_buy_now": False,
    "disable_on_home": False,
    "disable_on_collections": False,
    "enable_specific_products": False,
    "disable_specific_products": False,
    "enable_specific_countries": False,
    "minimum_amount": "",
    "maximum_amount": "",
    "general_settings": json.dumps(DEFAULT_GENERAL_SETTINGS),
    "user_blocking": json.dumps(DEFAULT_USER_BLOCKING),
}


class SettingsAccessor:
    """Loads ShopConfig for a shop, with TTL caching"""

    def __init__(self, session_factory: Callable[[], Session], cache: Optional[TTLCache] = None):
        self.session_factory = session_factory
        self.cache = cache if cache is not None else TTLCache(ttl_seconds=0)

    def get_config(self, shop: str) -> Optional[ShopConfig]:
        """
        Return the shop's configuration, or None when the app is not installed.

        An installed shop (one with a stored Admin API session) that has no
        settings row yet gets the defaults written on first read.
        """
        cached = self.cache.get(shop)
        if cached is not _MISS:
            return cached

        db = self.session_factory()
        try:
            record = db.query(ShopSettings).filter(ShopSettings.shop_id == shop).first()
            if record is None:
                record = self._initialize(db, shop)
            if record is None:
                return None
            config = ShopConfig.from_record(record)
        finally:
            db.close()

        self.cache.set(shop, config)
        return config

    def get_access_token(self, shop: str) -> Optional[str]:
        """Offline Admin API token stored at install time"""
        db = self.session_factory()
        try:
            session = db.query(ShopSession).filter(ShopSession.shop == shop).first()
            return session.access_token if session else None
        finally:
            db.close()

    def invalidate(self, shop: str):
        self.cache.invalidate(shop)

    def _initialize(self, db: Session, shop: str) -> Optional[ShopSettings]:
        installed = db.query(ShopSession.id).filter(ShopSession.shop == shop).first()
        if not installed:
            log.info(f"No install session for {shop}; settings initialization skipped")
            return None

        record = ShopSettings(shop_id=shop, **DEFAULT_SHOP_SETTINGS)
        db.add(record)
        try:
            db.commit()
        except IntegrityError:
            # Another request initialized it first
            db.rollback()
            return db.query(ShopSettings).filter(ShopSettings.shop_id == shop).first()
        db.refresh(record)
        log.info(f"Shop settings initialized for {shop}")
        return record
