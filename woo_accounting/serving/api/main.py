"""
FastAPI Application Factory

Creates and configures the accounting API application.
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from woo_accounting.config.logging import configure_logging
from woo_accounting.config.settings import Settings, get_settings
from woo_accounting.errors import AccountingError
from woo_accounting.serving.api.dependencies import require_token
from woo_accounting.serving.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from woo_accounting.serving.api.routes import accounting_router, health_router, orders_router

logger = structlog.get_logger(__name__)


def _lifespan_for(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        configure_logging(settings=settings)

        logger.info("Starting WooCommerce Accounting API", environment=settings.app_env)

        missing = settings.woocommerce.missing_fields()
        if missing:
            logger.warning("WooCommerce connection not configured", missing=missing)

        app.state.http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.woocommerce.timeout_seconds),
            verify=settings.woocommerce.verify_ssl,
            headers={"User-Agent": f"{settings.app_name}/{settings.version}"},
        )

        yield

        logger.info("Shutting down...")
        await app.state.http_client.aclose()

    return lifespan


async def accounting_error_handler(request: Request, exc: AccountingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            path=request.url.path,
            error=exc.message,
            error_type=type(exc).__name__,
        )
    else:
        logger.info("Request rejected", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "query"),
            "message": error.get("msg", "invalid value"),
        }
        for error in exc.errors()
    ]
    message = "; ".join(f"{f['field']}: {f['message']}" for f in fields) or "invalid request"
    return JSONResponse(
        status_code=422,
        content={"ok": False, "error": message, "fields": fields},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def create_api_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Application settings (cached environment settings when omitted)

    Returns:
        Configured FastAPI app instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="WooCommerce Accounting API",
        description="Monthly revenue and refund reporting over the WooCommerce REST API",
        version=settings.version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=_lifespan_for(settings),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_exception_handler(AccountingError, accounting_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.include_router(health_router, tags=["Health"])
    app.include_router(accounting_router, tags=["Accounting"], dependencies=[Depends(require_token)])
    app.include_router(orders_router, tags=["Orders"], dependencies=[Depends(require_token)])

    return app
