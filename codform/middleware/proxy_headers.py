"""Response headers for app proxy traffic: anti-crawl and cache control."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

PROXY_PREFIX = "/apps/proxy"


class ProxyHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)

        response.headers["X-Robots-Tag"] = "noindex, nofollow"

        # Form config and order responses are per shopper; Shopify's proxy
        # and the browser must not reuse them
        if request.url.path.startswith(PROXY_PREFIX):
            response.headers["Cache-Control"] = "no-store"
        elif "application/json" in response.headers.get("content-type", ""):
            response.headers["Cache-Control"] = "private, no-cache"

        return response
