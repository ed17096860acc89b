from datetime import datetime, timezone
from sqlalchemy import Column, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseModel:
    """Bookkeeping columns shared by every table (ISO-8601 strings)"""

    created_at = Column(String, nullable=False, default=utc_now_iso)
    updated_at = Column(String, nullable=False, default=utc_now_iso, onupdate=utc_now_iso)
