"""External service connectors"""

from codform.connectors.shopify_admin import ShopifyAdminClient

__all__ = [
    "ShopifyAdminClient",
]
