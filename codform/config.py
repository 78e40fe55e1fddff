"""
Configuration management for the COD order-intake service
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "CODForm Order Intake"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    database_url: str = "sqlite:///./codform.db"

    # Shopify app credentials (app proxy signatures are signed with the API secret)
    shopify_api_key: str = ""
    shopify_api_secret: str = ""
    shopify_api_version: str = "2024-10"
    shopify_timeout_seconds: float = 15.0

    # Shop settings cache. Blocking rules are read through it, keep it short.
    settings_cache_ttl_seconds: int = 120

    # Storefront defaults
    default_country: str = "DZ"
    default_currency: str = "DZD"
    default_thank_you_path: str = "/pages/thank-you"
    proxy_submit_path: str = "/apps/proxy/submit"
    order_tags: str = "EasyCOD,Cash on Delivery"

    # External risk scoring (local heuristic is used when no URL is set)
    risk_scorer_url: Optional[str] = None
    risk_scorer_api_key: Optional[str] = None
    risk_scorer_timeout_seconds: float = 5.0

    # Operator alerts
    slack_webhook_url: Optional[str] = None
    enable_operator_alerts: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
