from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from guestpass.core.config import settings
from guestpass.db.session import get_db
from guestpass.models.guest import GuestRecord
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Reports whether the guest store answers and which mail transport is live"""
    email_transport = "graph" if settings.GRAPH_ACCESS_TOKEN else "log"
    try:
        guests = db.query(func.count(GuestRecord.id)).scalar()
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": "unavailable",
            "email_transport": email_transport,
        }

    return {
        "status": "healthy",
        "database": "connected",
        "guests": guests,
        "email_transport": email_transport,
        "service": "guestpass",
        "version": settings.VERSION,
    }
