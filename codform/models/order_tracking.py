"""
Order tracking and abandoned cart models
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Numeric, Index

from codform.models.base import Base


class OrderTracking(Base):
    """
    One row per order that was created AND completed through the proxy.

    Read back by the repeat-order rule and the local risk scorer. Contact
    fields are stored normalised (lowercase email, digits-only phone,
    uppercase postal code) so lookups compare like with like.
    """
    __tablename__ = "order_tracking"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(String, nullable=False, index=True)

    # Shopify GIDs
    draft_order_id = Column(String, nullable=False)
    order_id = Column(String, nullable=True, index=True)
    order_name = Column(String, nullable=True)  # "#1001"

    customer_ip = Column(String, nullable=True, index=True)
    customer_email = Column(String, nullable=True, index=True)
    customer_phone = Column(String, nullable=True, index=True)
    customer_postal_code = Column(String, nullable=True)

    total_quantity = Column(Integer, default=0)
    order_total = Column(Numeric(12, 2), default=0)  # major currency units
    currency = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("ix_order_tracking_shop_created", "shop_id", "created_at"),
    )


class AbandonedCart(Base):
    """
    Incomplete checkout sessions recorded by the storefront widget.

    This service only flips is_recovered when a tracked session turns into an order.
    """
    __tablename__ = "abandoned_carts"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(String, nullable=False, index=True)
    session_id = Column(String, unique=True, index=True, nullable=False)

    customer_email = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)
    customer_name = Column(String, nullable=True)
    cart_data = Column(Text, nullable=True)  # JSON cart snapshot
    form_data = Column(Text, nullable=True)  # JSON partial form

    abandoned_at = Column(DateTime, default=datetime.utcnow)
    reminder_count = Column(Integer, default=0)
    last_reminder_at = Column(DateTime, nullable=True)

    is_recovered = Column(Boolean, default=False, nullable=False)
    recovery_order_id = Column(String, nullable=True)
    recovered_at = Column(DateTime, nullable=True)
