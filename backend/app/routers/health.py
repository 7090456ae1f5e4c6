import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db
from app.services.credentials import credential_issuer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def health_check(db: Session = Depends(get_db)):
    """Liveness: database reachability and the listing OTPs currently held in memory."""
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.warning("Health check: database unreachable: %s", e)
        database = "disconnected"
    return {
        "status": "ok" if database == "connected" else "degraded",
        "database": database,
        "pending_otps": len(credential_issuer),
        "otp_ttl_seconds": settings.LISTING_OTP_TTL_SECONDS,
    }
