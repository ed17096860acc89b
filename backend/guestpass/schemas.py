from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime


class GuestResult(BaseModel):
    id: str
    name: str
    email: str
    country_code: str
    mobile: str
    organization: str
    designation: str
    award_category: str
    rsvp_date: datetime
    invitation_sent: bool
    invitation_sent_at: Optional[datetime] = None
    rsvp_confirmed: bool
    rsvp_confirmed_at: Optional[datetime] = None
    checked_in: bool
    check_in_time: Optional[datetime] = None

    @classmethod
    def from_guest(cls, guest) -> "GuestResult":
        return cls(**{name: getattr(guest, name) for name in cls.model_fields})


class RSVPRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    country_code: str = "+960"
    mobile: str = Field(..., min_length=1)
    organization: str = Field(..., min_length=1)
    designation: str = Field(..., min_length=1)


class GuestCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    country_code: Optional[str] = None
    mobile: Optional[str] = None
    organization: Optional[str] = None
    designation: Optional[str] = None
    award_category: Optional[str] = None


class GuestUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    country_code: Optional[str] = None
    mobile: Optional[str] = None
    organization: Optional[str] = None
    designation: Optional[str] = None
    award_category: Optional[str] = None


class BatchUploadResponse(BaseModel):
    total_processed: int
    success_count: int
    skipped_emails: List[str]
    results: List[GuestResult]


class InviteRequest(BaseModel):
    guest_ids: List[str] = Field(..., min_length=1)


class InviteFailure(BaseModel):
    guest_id: str
    error: str


class InviteResponse(BaseModel):
    status: str
    message: str
    sent: List[str]
    failed: List[InviteFailure]
    missing: List[str]


class EmailTemplatePayload(BaseModel):
    subject: str = Field(..., min_length=1)
    image_url: str = ""
    body: str = Field(..., min_length=1)


class CategoryCreate(BaseModel):
    label: str = Field(..., min_length=1)


class PendingActionResponse(BaseModel):
    token: str
    action: str
    target: Optional[str] = None
    expires_at: datetime
    prompt: str


class ConfirmRequest(BaseModel):
    token: str


class CategoryConfirm(ConfirmRequest):
    label: str


class CheckInRequest(BaseModel):
    pass_id: str = Field(..., description="Decoded text from the scanned pass")


class ScanResultResponse(BaseModel):
    outcome: str
    success: bool
    reason_code: Optional[str] = None
    message: str
    timestamp: datetime
    guest: Optional[GuestResult] = None

    @classmethod
    def from_result(cls, result) -> "ScanResultResponse":
        return cls(
            outcome=result.outcome.value,
            success=result.success,
            reason_code=result.reason_code.value if result.reason_code else None,
            message=result.message,
            timestamp=result.timestamp,
            guest=GuestResult.from_guest(result.guest) if result.guest else None,
        )
