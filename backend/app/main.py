import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.models import Base  # noqa: F401 - register models
from app.routers import admin, categories, health, products
from app.services.credentials import credential_issuer

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Seller Listings API",
    description="Seller product listings: OTP-gated drafts, review and publication",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix="/health")
app.include_router(categories.router, prefix="/categories")
app.include_router(products.router, prefix="/products")
app.include_router(admin.router, prefix="/admin")


async def _sweep_listing_otps(interval: float) -> None:
    """Drive every OTP countdown once per interval so expiries are reported and freed."""
    while True:
        await asyncio.sleep(interval)
        credential_issuer.sweep()


def _log_otp_expiry(product_id: str) -> None:
    logger.info("Listing OTP for product %s expired unused", product_id)


@app.on_event("startup")
async def startup():
    app.state.unsubscribe_otp_expiry = credential_issuer.subscribe_expiry(_log_otp_expiry)
    app.state.otp_sweeper = asyncio.create_task(_sweep_listing_otps(settings.LISTING_OTP_TICK_SECONDS))


@app.on_event("shutdown")
async def shutdown():
    sweeper = getattr(app.state, "otp_sweeper", None)
    if sweeper is not None:
        sweeper.cancel()
    unsubscribe = getattr(app.state, "unsubscribe_otp_expiry", None)
    if unsubscribe is not None:
        unsubscribe()
