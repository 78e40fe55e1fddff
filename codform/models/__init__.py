"""Database models for the COD order-intake service"""

from codform.models.shop import ShopSettings, ShopSession
from codform.models.order_tracking import OrderTracking, AbandonedCart

__all__ = [
    "ShopSettings",
    "ShopSession",
    "OrderTracking",
    "AbandonedCart",
]
