"""
CODForm order intake
Main FastAPI application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.middleware.gzip import GZipMiddleware

from codform import __version__
from codform.config import get_settings
from codform.errors import CodformError, EligibilityMiss
from codform.utils.logger import log

from codform.api import health, proxy
from codform.middleware.proxy_headers import ProxyHeadersMiddleware

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    if not settings.shopify_api_secret:
        log.warning("SHOPIFY_API_SECRET is not set; every proxied request will be rejected")

    from codform.models.base import init_db
    init_db()
    log.info("Database initialized")

    yield

    log.info("Shutting down application")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Cash-on-delivery order intake behind the Shopify app proxy

    - Decides whether the COD form is shown for a page and returns its configuration
    - Screens submissions against the shop's blocking rules and optional risk scoring
    - Creates and completes the order through the Shopify Admin GraphQL API
    """,
    lifespan=lifespan
)

app.add_middleware(ProxyHeadersMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)


@app.exception_handler(CodformError)
async def codform_error_handler(request: Request, exc: CodformError):
    if isinstance(exc, EligibilityMiss):
        return Response(status_code=204)
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        {"success": False, "error": CodformError.public_message},
        status_code=500,
    )


app.include_router(health.router, tags=["health"])
app.include_router(proxy.router)


@app.get("/robots.txt", response_class=PlainTextResponse)
async def robots_txt():
    """Block all crawlers"""
    return "User-agent: *\nDisallow: /\n"


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "codform.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
