from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from library_api.api.errors import register_error_handlers
from library_api.api.router import api_router
from library_api.api.routes.health import router as health_router
from library_api.core.config import settings
from library_api.core.logging import configure_logging
from library_api.core.otel import init_otel
from library_api.middleware.request_id import RequestIdMiddleware
from library_api.middleware.security_headers import SecurityHeadersMiddleware

configure_logging(settings.log_level)

app = FastAPI(
    title=settings.api_name,
    version=settings.app_version,
    docs_url=f"{settings.api_base_path}/docs",
    redoc_url=None,
    openapi_url=f"{settings.api_base_path}/openapi.json",
)

# Added last runs first: request id/logging wraps everything else.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials="*" not in settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "X-Request-Id"],
    expose_headers=["X-Request-Id", "Retry-After"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIdMiddleware)

register_error_handlers(app)

app.include_router(health_router)
app.include_router(api_router, prefix=settings.api_base_path)

init_otel(app)
