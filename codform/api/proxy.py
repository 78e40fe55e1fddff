"""
Shopify app proxy endpoints

Shopify forwards storefront requests for /apps/proxy/* here with the shop and
a signature in the query string.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from codform.config import get_settings
from codform.models.base import SessionLocal
from codform.services.alert_service import AlertService
from codform.services.proxy_service import ProxyService
from codform.services.risk_service import HttpRiskScorer, LocalRiskScorer
from codform.services.settings_service import SettingsAccessor
from codform.services.tracking_service import TrackingRecorder
from codform.utils.cache import TTLCache

router = APIRouter(prefix="/apps/proxy", tags=["proxy"])

# Lazy-init so the settings cache is shared across requests
_proxy_service = None


def build_proxy_service() -> ProxyService:
    settings = get_settings()
    tracking = TrackingRecorder(SessionLocal)

    if settings.risk_scorer_url:
        risk_scorer = HttpRiskScorer(
            settings.risk_scorer_url,
            api_key=settings.risk_scorer_api_key,
            timeout=settings.risk_scorer_timeout_seconds,
        )
    else:
        risk_scorer = LocalRiskScorer(tracking)

    return ProxyService(
        settings_accessor=SettingsAccessor(SessionLocal, TTLCache(settings.settings_cache_ttl_seconds)),
        tracking=tracking,
        risk_scorer=risk_scorer,
        alerts=AlertService(),
        app_settings=settings,
    )


def get_proxy_service() -> ProxyService:
    global _proxy_service
    if _proxy_service is None:
        _proxy_service = build_proxy_service()
    return _proxy_service


@router.get("")
async def form_config(request: Request, service: ProxyService = Depends(get_proxy_service)):
    """Form configuration for the current page, or 204 when the form should not render"""
    return await service.form_config(request.query_params.multi_items())


@router.post("/submit")
async def submit_order(request: Request, service: ProxyService = Depends(get_proxy_service)):
    """Cash-on-delivery order submission"""
    form = await request.form()
    client_host = request.client.host if request.client else None
    return await service.submit(
        request.query_params.multi_items(),
        form,
        request.headers,
        client_host=client_host,
    )


@router.get("/submit")
async def submit_wrong_method():
    return JSONResponse(
        {"success": False, "error": "Method not allowed."},
        status_code=405,
        headers={"Allow": "POST"},
    )
