"""COD order-intake backend for Shopify app proxy storefronts"""

__version__ = "1.0.0"
