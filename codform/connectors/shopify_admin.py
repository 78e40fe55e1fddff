"""
Shopify Admin GraphQL connector

Draft order creation/completion for COD orders, plus the two read queries the
storefront proxy needs (logged-in customer prefill, newest product for
previews).
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from codform.errors import OrderValidationError, TransportError
from codform.utils.logger import log

CREATE_DRAFT_ORDER_MUTATION = """
mutation draftOrderCreate($input: DraftOrderInput!) {
  draftOrderCreate(input: $input) {
    draftOrder { id name invoiceUrl status }
    userErrors { field message }
  }
}
"""

COMPLETE_DRAFT_ORDER_MUTATION = """
mutation draftOrderComplete($id: ID!) {
  draftOrderComplete(id: $id) {
    draftOrder { status order { id name } }
    userErrors { field message }
  }
}
"""

CUSTOMER_QUERY = """
query getCustomer($id: ID!) {
  customer(id: $id) {
    id firstName lastName email phone
    defaultAddress { firstName lastName address1 address2 city province zip country phone }
  }
}
"""

NEWEST_PRODUCT_QUERY = """
query newestProduct {
  products(first: 1, sortKey: CREATED_AT, reverse: true) {
    edges { node {
      id title handle
      featuredMedia { ... on MediaImage { image { url } } }
      variants(first: 1) { edges { node { id price } } }
    } }
  }
}
"""


@dataclass
class DraftOrderRef:
    id: str
    name: Optional[str] = None
    status: Optional[str] = None


@dataclass
class OrderRef:
    id: str
    name: Optional[str] = None


class ShopifyAdminClient:
    """
    Minimal Admin GraphQL client for one shop

    Every call is bounded by ``timeout``. Network failures, non-200 responses
    and top-level GraphQL errors raise TransportError; field-level userErrors
    raise OrderValidationError so callers can tell the two apart.
    """

    def __init__(
        self,
        shop: str,
        access_token: str,
        api_version: str = "2024-10",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.shop = shop.replace("https://", "").replace("http://", "").rstrip("/")
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout
        self.transport = transport
        self.endpoint = f"https://{self.shop}/admin/api/{api_version}/graphql.json"

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for Shopify API requests"""
        return {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
        }

    async def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a GraphQL operation and return its ``data`` object"""
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.endpoint,
                    json={"query": query, "variables": variables or {}},
                    headers=self._get_headers(),
                )
        except httpx.TimeoutException as e:
            raise TransportError("shopify", f"timeout after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise TransportError("shopify", str(e)) from e

        if response.status_code != 200:
            log.error(f"Shopify GraphQL {response.status_code} for {self.shop}: {response.text[:500]}")
            raise TransportError("shopify", f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError("shopify", "invalid JSON response") from e

        if not isinstance(payload, dict):
            log.error(f"Shopify GraphQL returned {type(payload).__name__} for {self.shop}")
            raise TransportError("shopify", "unexpected response shape")

        if payload.get("errors"):
            messages = [err.get("message", "") for err in payload["errors"] if isinstance(err, dict)]
            log.error(f"Shopify GraphQL errors for {self.shop}: {messages}")
            raise TransportError("shopify", "; ".join(messages) or "GraphQL error")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise TransportError("shopify", "response has no data")
        return data

    async def create_draft_order(self, draft_input: Dict[str, Any]) -> DraftOrderRef:
        data = await self.graphql(CREATE_DRAFT_ORDER_MUTATION, {"input": draft_input})
        result = data.get("draftOrderCreate") or {}

        user_errors: List[dict] = result.get("userErrors") or []
        if user_errors:
            log.warning(f"draftOrderCreate user errors for {self.shop}: {user_errors}")
            raise OrderValidationError(user_errors)

        draft = result.get("draftOrder") or {}
        if not draft.get("id"):
            raise TransportError("shopify", "draftOrderCreate returned no draft order")
        return DraftOrderRef(id=draft["id"], name=draft.get("name"), status=draft.get("status"))

    async def complete_draft_order(self, draft_order_id: str) -> OrderRef:
        data = await self.graphql(COMPLETE_DRAFT_ORDER_MUTATION, {"id": draft_order_id})
        result = data.get("draftOrderComplete") or {}

        user_errors: List[dict] = result.get("userErrors") or []
        if user_errors:
            raise OrderValidationError(user_errors)

        order = ((result.get("draftOrder") or {}).get("order")) or {}
        if not order.get("id"):
            raise TransportError("shopify", "draftOrderComplete returned no order")
        return OrderRef(id=order["id"], name=order.get("name"))

    async def fetch_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        gid = customer_id if customer_id.startswith("gid://") else f"gid://shopify/Customer/{customer_id}"
        data = await self.graphql(CUSTOMER_QUERY, {"id": gid})
        return data.get("customer")

    async def fetch_newest_product(self) -> Optional[Dict[str, Any]]:
        data = await self.graphql(NEWEST_PRODUCT_QUERY)
        edges = ((data.get("products") or {}).get("edges")) or []
        if not edges:
            return None
        node = edges[0].get("node") or {}
        variants = ((node.get("variants") or {}).get("edges")) or []
        variant = variants[0].get("node") if variants else {}
        image = ((node.get("featuredMedia") or {}).get("image")) or {}
        return {
            "id": node.get("id"),
            "title": node.get("title"),
            "handle": node.get("handle"),
            "variantId": (variant or {}).get("id"),
            "price": (variant or {}).get("price"),
            "imageUrl": image.get("url"),
        }
