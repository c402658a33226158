"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from otp_gateway.auth.router import router as auth_router
from otp_gateway.config import settings
from otp_gateway.database.engine import close_db, init_db
from otp_gateway.delivery.sms import build_sms_sender
from otp_gateway.otp.generator import CodeGenerator
from otp_gateway.otp.service import OTPService
from otp_gateway.otp.store import OTPStore

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    logger.info("Starting %s …", settings.app_name)
    await init_db()
    logger.info("Database initialised")

    store = OTPStore(
        ttl_seconds=settings.otp_ttl_seconds,
        sweep_interval=settings.otp_sweep_interval_seconds,
    )
    app.state.otp_service = OTPService(
        store=store,
        generator=CodeGenerator(),
        sender=build_sms_sender(settings),
        ttl_seconds=settings.otp_ttl_seconds,
    )
    try:
        yield
    finally:
        logger.info("Shutting down %s …", settings.app_name)
        store.close()
        await close_db()


app = FastAPI(
    title=settings.app_name,
    description="SMS one-time passcode login with cookie-based session tokens",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(auth_router)


@app.get("/health")
async def health_check():
    """Simple liveness probe."""
    return {"status": "healthy", "app": settings.app_name}


def run() -> None:
    """Serve the app with uvicorn (``otp-gateway`` console script)."""
    uvicorn.run(app, host=settings.host, port=settings.port)
