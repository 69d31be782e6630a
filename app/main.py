# app/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core import logging_config  # noqa: F401  configures logging on import
from app.core.config import get_settings
from app.core.exceptions import BaseServiceError, ReconciliationGapError
from app.core.security import require_auth
from app.routes import commissions, health, orders, payouts, refunds, shipping

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.ENABLE_SCHEDULER:
        from app.scheduler import start_scheduler, stop_scheduler

        await start_scheduler()
        try:
            yield
        finally:
            await stop_scheduler()
    else:
        logger.info("Tracking scheduler disabled. Set ENABLE_SCHEDULER=true to enable")
        yield


app = FastAPI(
    title="Marketplace Fulfillment & Settlement",
    lifespan=lifespan
)


@app.exception_handler(BaseServiceError)
async def service_error_handler(request: Request, exc: BaseServiceError):
    """Every service error becomes {"success": false, "error": <type>, "message": <text>}"""
    body = {"success": False, "error": type(exc).__name__, "message": exc.message}
    if isinstance(exc, ReconciliationGapError):
        body["external_id"] = exc.external_id
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


# Include routers with authentication
app.include_router(orders.router, dependencies=[require_auth()])
app.include_router(refunds.router, dependencies=[require_auth()])
app.include_router(payouts.router, dependencies=[require_auth()])
app.include_router(shipping.router, dependencies=[require_auth()])
app.include_router(commissions.router, dependencies=[require_auth()])
app.include_router(health.router)  # Health check should be accessible without auth
