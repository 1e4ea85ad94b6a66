"""
PnD wallet service entry point.

Startup loads configuration, configures logging, opens the document store
and wires the transfer and ledger services onto `app.state`.
"""

from fastapi import FastAPI, Request, Depends
from contextlib import asynccontextmanager
from pnd_wallet.core.config import load_config
from pnd_wallet.core.handlers import setup_exception_handlers
from pnd_wallet.core.middleware import RequestLoggingMiddleware
from pnd_wallet.core.monitoring import setup_monitoring, error_monitor, monitor_errors
from pnd_wallet.core.limiter import limiter
from pnd_wallet.database import init_store, close_store, health_check as store_health_check
from pnd_wallet.routes.wallet import router as wallet_router
from pnd_wallet.security import verify_monitoring_access
from pnd_wallet.services.ledger_service import LedgerService
from pnd_wallet.services.transfer_service import TransferService
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded
import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle events"""
    try:
        config = load_config()
        setup_monitoring(config.logging.level)

        store = await init_store(config)
        app.state.store = store
        app.state.transfer_service = TransferService(
            store,
            reference_prefix=config.transfer.reference_prefix,
            max_attempts=config.transfer.max_attempts,
            retry_wait_max=config.transfer.retry_wait_max_ms / 1000,
        )
        app.state.ledger_service = LedgerService(store)
        logger.info("PnD wallet service started successfully")

    except Exception as e:
        error_monitor.log_error(e, {"context": "application_startup"})
        logger.error(f"Failed to start PnD wallet service: {str(e)}")
        raise

    yield

    logger.info("PnD wallet service shutting down")
    await close_store(app.state.store)

    final_summary = error_monitor.get_error_summary()
    logger.info(f"Shutdown - Total errors handled: {final_summary['total_errors']}")


app = FastAPI(
    title="PnD Wallet",
    description="Atomic wallet transfers for the PnD admin dashboard",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

setup_exception_handlers(app)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(wallet_router, prefix="/wallet", tags=["wallet"])


@app.get("/")
@limiter.limit("30/minute")
async def root(request: Request):
    return {
        "status": "active",
        "service": "PnD Wallet",
        "description": "Wallet transfer service is running",
    }


@app.get("/health")
@limiter.limit("30/minute")
async def health(request: Request):
    return await store_health_check(getattr(request.app.state, "store", None))


@app.get("/monitoring/errors", dependencies=[Depends(verify_monitoring_access)])
@limiter.limit("10/minute")
@monitor_errors("monitoring_endpoint")
async def get_monitoring_info(request: Request):
    """Internal endpoint for monitoring error statistics (authenticated)."""
    return error_monitor.get_error_summary()
