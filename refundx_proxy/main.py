from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from refundx_proxy.auth_gate import ProxyAuthError, ProxyAuthGate
from refundx_proxy.config import Settings, settings
from refundx_proxy.routers import proxy
from refundx_proxy.shopify_api import ShopifyAdminClient

logger = logging.getLogger(__name__)


def _build_admin_client(app_settings: Settings) -> ShopifyAdminClient:
    return ShopifyAdminClient(
        access_token=app_settings.admin_access_token,
        api_version=app_settings.SHOPIFY_ADMIN_API_VERSION,
        timeout=app_settings.SHOPIFY_REQUEST_TIMEOUT_SECONDS,
    )


def create_app(
    *,
    app_settings: Settings | None = None,
    auth_gate: ProxyAuthGate | None = None,
    admin_client: ShopifyAdminClient | None = None,
) -> FastAPI:
    app_settings = app_settings or settings
    app = FastAPI(title="RefundX Proxy", default_response_class=ORJSONResponse)

    app.state.auth_gate = auth_gate or ProxyAuthGate(app_settings.proxy_secret)
    app.state.admin_client = admin_client or _build_admin_client(app_settings)
    if not app.state.auth_gate.configured:
        logger.warning("SHOPIFY_API_SECRET is not set; proxied requests will be rejected with missing_secret")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(ProxyAuthError)
    async def proxy_auth_error_handler(_request: Request, exc: ProxyAuthError) -> ORJSONResponse:
        return ORJSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"error": "server_error"})

    app.include_router(proxy.router)

    return app


app = create_app()
