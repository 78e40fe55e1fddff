"""
Shared fixtures: in-memory database, shop seeding helpers and a fake Shopify
Admin API served through httpx.MockTransport.
"""
import json
import os
import tempfile

# Settings are read at import time by codform.models.base and the logger
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="codform-logs-"))
os.environ.setdefault("SHOPIFY_API_SECRET", "test-proxy-secret")
os.environ.setdefault("SLACK_WEBHOOK_URL", "")

from datetime import datetime

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from codform.models.base import Base
from codform.models.order_tracking import AbandonedCart, OrderTracking
from codform.models.shop import ShopSession, ShopSettings
from codform.services.settings_service import DEFAULT_SHOP_SETTINGS, DEFAULT_USER_BLOCKING

SHOP = "test-store.myshopify.com"
SECRET = "test-proxy-secret"
ACCESS_TOKEN = "shpat_test_token"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import codform.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


class Clock:
    """Settable replacement for datetime.utcnow"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return Clock(datetime(2025, 3, 1, 12, 0, 0))


def install_shop(session_factory, shop: str = SHOP, token: str = ACCESS_TOKEN):
    db = session_factory()
    try:
        db.add(ShopSession(shop=shop, access_token=token, scope="write_draft_orders,read_customers"))
        db.commit()
    finally:
        db.close()


def save_settings(session_factory, shop: str = SHOP, user_blocking=None, general_settings=None, **overrides):
    """Insert or replace the shop's settings row, starting from the install defaults"""
    values = dict(DEFAULT_SHOP_SETTINGS)
    if user_blocking is not None:
        values["user_blocking"] = json.dumps({**DEFAULT_USER_BLOCKING, **user_blocking})
    if general_settings is not None:
        values["general_settings"] = json.dumps(general_settings)
    values.update(overrides)

    db = session_factory()
    try:
        db.query(ShopSettings).filter(ShopSettings.shop_id == shop).delete()
        db.add(ShopSettings(shop_id=shop, **values))
        db.commit()
    finally:
        db.close()


def add_tracking(session_factory, created_at: datetime, shop: str = SHOP, **fields):
    db = session_factory()
    try:
        db.add(OrderTracking(
            shop_id=shop,
            draft_order_id=fields.pop("draft_order_id", "gid://shopify/DraftOrder/1"),
            order_id=fields.pop("order_id", "gid://shopify/Order/1"),
            created_at=created_at,
            **fields,
        ))
        db.commit()
    finally:
        db.close()


def add_abandoned_cart(session_factory, session_id: str, shop: str = SHOP, **fields):
    db = session_factory()
    try:
        db.add(AbandonedCart(shop_id=shop, session_id=session_id, **fields))
        db.commit()
    finally:
        db.close()


def tracking_rows(session_factory):
    db = session_factory()
    try:
        return db.query(OrderTracking).all()
    finally:
        db.close()


class FakeShopify:
    """
    Minimal Admin GraphQL server. Each operation answers from a configurable
    payload; every request body is kept in ``calls`` for assertions.
    """

    def __init__(self):
        self.calls = []
        self.create_response = {
            "data": {"draftOrderCreate": {
                "draftOrder": {"id": "gid://shopify/DraftOrder/9001", "name": "#D1", "status": "OPEN"},
                "userErrors": [],
            }}
        }
        self.complete_response = {
            "data": {"draftOrderComplete": {
                "draftOrder": {"status": "COMPLETED", "order": {"id": "gid://shopify/Order/5001", "name": "#1001"}},
                "userErrors": [],
            }}
        }
        self.complete_status = 200
        self.complete_content = None  # raw body, overrides complete_response
        self.customer_response = {"data": {"customer": {"id": "gid://shopify/Customer/7", "firstName": "Amina"}}}
        self.product_response = {"data": {"products": {"edges": []}}}

    def operations(self):
        return [call["operation"] for call in self.calls]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        query = body["query"]
        if "draftOrderCreate" in query:
            operation, status, payload = "create", 200, self.create_response
        elif "draftOrderComplete" in query:
            operation, status, payload = "complete", self.complete_status, self.complete_response
        elif "customer(" in query:
            operation, status, payload = "customer", 200, self.customer_response
        else:
            operation, status, payload = "products", 200, self.product_response
        self.calls.append({
            "operation": operation,
            "variables": body.get("variables") or {},
            "headers": dict(request.headers),
            "url": str(request.url),
        })
        if operation == "complete" and self.complete_content is not None:
            return httpx.Response(status, content=self.complete_content, headers={"content-type": "application/json"})
        return httpx.Response(status, json=payload)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_shopify():
    return FakeShopify()
