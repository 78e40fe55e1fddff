"""
Shop configuration and install-session models

ShopSettings is written by the admin UI; this service only reads it (and
creates a default row for an installed shop that has none yet).
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text
from sqlalchemy.sql import func

from codform.models.base import Base


class ShopSettings(Base):
    """
    Per-shop form, visibility and blocking configuration

    JSON payloads are stored as text, exactly as the admin UI saves them.
    """
    __tablename__ = "shop_settings"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(String, unique=True, index=True, nullable=False)  # e.g. "store.myshopify.com"

    # Form widget (opaque to this service, passed through to the storefront)
    form_fields = Column(Text, nullable=True)  # JSON list
    form_style = Column(Text, nullable=True)  # JSON object
    pixel_settings = Column(Text, nullable=True)  # JSON object

    # Visibility
    visibility_mode = Column(String, nullable=True)  # disabled, only_cart_page, only_product_pages, both_cart_product
    visible_products = Column(Text, nullable=True)  # JSON [{id, title}, ...]
    hidden_products = Column(Text, nullable=True)  # JSON [{id, title}, ...]
    enable_specific_products = Column(Boolean, default=False)
    disable_specific_products = Column(Boolean, default=False)
    enable_specific_countries = Column(Boolean, default=False)
    allowed_countries = Column(Text, nullable=True)  # JSON [{code, name}, ...]
    disable_on_home = Column(Boolean, default=False)
    disable_on_collections = Column(Boolean, default=False)
    hide_add_to_cart = Column(Boolean, default=False)
    hide_buy_now = Column(Boolean, default=False)

    # Cart amount bounds, stored as entered ("" or "0" = no bound)
    minimum_amount = Column(String, nullable=True)
    maximum_amount = Column(String, nullable=True)

    # JSON blobs
    general_settings = Column(Text, nullable=True)
    user_blocking = Column(Text, nullable=True)

    redirect_url = Column(String, nullable=True)  # thank-you page path or absolute URL

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ShopSession(Base):
    """Offline Admin API credentials stored when the shop installed the app"""
    __tablename__ = "shop_sessions"

    id = Column(Integer, primary_key=True, index=True)
    shop = Column(String, unique=True, index=True, nullable=False)
    access_token = Column(String, nullable=False)
    scope = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
