"""
Health check and status endpoints
"""
from fastapi import APIRouter
from datetime import datetime
from codform.config import get_settings
from codform import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status():
    """Get service status"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "features": {
            "external_risk_scorer": bool(settings.risk_scorer_url),
            "operator_alerts": bool(settings.enable_operator_alerts and settings.slack_webhook_url),
            "proxy_secret_configured": bool(settings.shopify_api_secret),
        },
        "timestamp": datetime.utcnow().isoformat()
    }
