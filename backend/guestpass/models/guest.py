from dataclasses import dataclass, asdict, fields
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import Column, String, Boolean, Integer
from guestpass.core.config import NOT_A_RECIPIENT
from guestpass.db.base import Base, BaseModel

# Version 1 rows predate RSVP confirmation tracking; the columns read as NULL.
CURRENT_SCHEMA_VERSION = 2


class GuestRecord(Base, BaseModel):
    __tablename__ = "guests"

    id = Column(String, primary_key=True)

    # Contact fields
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, default="", index=True)
    country_code = Column(String, nullable=False, default="")
    mobile = Column(String, nullable=False, default="")
    organization = Column(String, nullable=False, default="")
    designation = Column(String, nullable=False, default="")
    award_category = Column(String, nullable=True)
    rsvp_date = Column(String, nullable=False)

    # Invitation
    invitation_sent = Column(Boolean, nullable=True)
    invitation_sent_at = Column(String, nullable=True)

    # RSVP confirmation
    rsvp_confirmed = Column(Boolean, nullable=True)
    rsvp_confirmed_at = Column(String, nullable=True)

    # Attendance
    checked_in = Column(Boolean, default=False, nullable=False)
    check_in_time = Column(String, nullable=True)

    schema_version = Column(Integer, nullable=False, default=CURRENT_SCHEMA_VERSION)

    def __repr__(self):
        return f"<GuestRecord {self.name} ({self.id})>"


def parse_timestamp(value) -> Optional[datetime]:
    """Read a stored ISO-8601 timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Guest:
    """Immutable snapshot of one guest.

    Optional fields are always present with an explicit default, whichever
    schema version the backing row was written with.
    """

    id: str
    name: str
    rsvp_date: datetime
    email: str = ""
    country_code: str = ""
    mobile: str = ""
    organization: str = ""
    designation: str = ""
    award_category: str = NOT_A_RECIPIENT
    invitation_sent: bool = False
    invitation_sent_at: Optional[datetime] = None
    rsvp_confirmed: bool = False
    rsvp_confirmed_at: Optional[datetime] = None
    checked_in: bool = False
    check_in_time: Optional[datetime] = None
    schema_version: int = CURRENT_SCHEMA_VERSION

    @classmethod
    def from_record(cls, record: GuestRecord) -> "Guest":
        return cls(
            id=record.id,
            name=record.name,
            email=record.email or "",
            country_code=record.country_code or "",
            mobile=record.mobile or "",
            organization=record.organization or "",
            designation=record.designation or "",
            award_category=record.award_category or NOT_A_RECIPIENT,
            rsvp_date=parse_timestamp(record.rsvp_date),
            invitation_sent=bool(record.invitation_sent),
            invitation_sent_at=parse_timestamp(record.invitation_sent_at),
            rsvp_confirmed=bool(record.rsvp_confirmed),
            rsvp_confirmed_at=parse_timestamp(record.rsvp_confirmed_at),
            checked_in=bool(record.checked_in),
            check_in_time=parse_timestamp(record.check_in_time),
            schema_version=record.schema_version or 1,
        )

    def to_row(self) -> dict:
        """Column values for a GuestRecord, timestamps as ISO-8601 strings"""
        row = {}
        for field in fields(self):
            value = getattr(self, field.name)
            row[field.name] = format_timestamp(value) if isinstance(value, datetime) else value
        row["schema_version"] = CURRENT_SCHEMA_VERSION
        return row

    def to_dict(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, datetime):
                data[key] = value.isoformat()
        return data
