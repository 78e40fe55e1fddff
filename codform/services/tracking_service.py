"""
Tracking Recorder

Persists one OrderTracking row per completed order and answers the
same-customer lookups used by the blocking rules and the risk scorer. Also
flags abandoned-cart sessions as recovered.
"""
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from codform.models.order_tracking import AbandonedCart, OrderTracking
from codform.utils.logger import log


class TrackingRecorder:
    """Reads and writes order tracking state"""

    def __init__(self, session_factory: Callable[[], Session], clock: Callable[[], datetime] = datetime.utcnow):
        self.session_factory = session_factory
        self.clock = clock

    def record_order(
        self,
        shop: str,
        draft_order_id: str,
        order_id: Optional[str],
        order_name: Optional[str],
        customer_ip: str,
        email: str,
        phone: str,
        postal_code: str,
        total_quantity: int,
        order_total: Decimal,
        currency: str,
    ) -> OrderTracking:
        """Insert the tracking row. Contact fields must already be normalised."""
        db = self.session_factory()
        try:
            record = OrderTracking(
                shop_id=shop,
                draft_order_id=draft_order_id,
                order_id=order_id,
                order_name=order_name,
                customer_ip=customer_ip or None,
                customer_email=email or None,
                customer_phone=phone or None,
                customer_postal_code=postal_code or None,
                total_quantity=total_quantity,
                order_total=order_total,
                currency=currency,
                created_at=self.clock(),
            )
            db.add(record)
            db.commit()
            db.refresh(record)
            return record
        finally:
            db.close()

    def _contact_filter(self, ip: str, email: str, phone: str):
        # Empty values never match, otherwise every anonymous order would collide
        conditions = []
        if ip:
            conditions.append(OrderTracking.customer_ip == ip)
        if email:
            conditions.append(OrderTracking.customer_email == email)
        if phone:
            conditions.append(OrderTracking.customer_phone == phone)
        return or_(*conditions) if conditions else None

    def find_recent_order(
        self, shop: str, since: datetime, ip: str = "", email: str = "", phone: str = ""
    ) -> Optional[OrderTracking]:
        """Most recent order for this shop since ``since`` matching any contact field"""
        contact = self._contact_filter(ip, email, phone)
        if contact is None:
            return None
        db = self.session_factory()
        try:
            return (
                db.query(OrderTracking)
                .filter(OrderTracking.shop_id == shop, OrderTracking.created_at >= since, contact)
                .order_by(OrderTracking.created_at.desc())
                .first()
            )
        finally:
            db.close()

    def count_recent_orders(
        self, shop: str, since: datetime, ip: str = "", email: str = "", phone: str = ""
    ) -> int:
        contact = self._contact_filter(ip, email, phone)
        if contact is None:
            return 0
        db = self.session_factory()
        try:
            return (
                db.query(OrderTracking)
                .filter(OrderTracking.shop_id == shop, OrderTracking.created_at >= since, contact)
                .count()
            )
        finally:
            db.close()

    def has_order_history(self, shop: str, email: str = "", phone: str = "") -> bool:
        """Any earlier order for this email or phone, regardless of age"""
        contact = self._contact_filter("", email, phone)
        if contact is None:
            return False
        db = self.session_factory()
        try:
            return (
                db.query(OrderTracking.id)
                .filter(OrderTracking.shop_id == shop, contact)
                .first()
            ) is not None
        finally:
            db.close()

    def mark_cart_recovered(self, shop: str, session_id: str, order_id: str) -> bool:
        """
        Flag this shop's abandoned-cart session as recovered by ``order_id``.

        Unknown sessions and already-recovered sessions are left untouched.
        Returns True only when this call changed the row.
        """
        if not session_id:
            return False
        db = self.session_factory()
        try:
            cart = (
                db.query(AbandonedCart)
                .filter(AbandonedCart.shop_id == shop, AbandonedCart.session_id == session_id)
                .first()
            )
            if cart is None:
                log.info(f"[{shop}] No abandoned cart for session {session_id}; nothing to recover")
                return False
            if cart.is_recovered:
                return False
            cart.is_recovered = True
            cart.recovery_order_id = order_id
            cart.recovered_at = self.clock()
            db.commit()
            log.info(f"Marked cart as recovered: {session_id} -> {order_id}")
            return True
        finally:
            db.close()
