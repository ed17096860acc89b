from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging
from guestpass.api.deps import get_invitation_service
from guestpass.core.deps import get_current_admin
from guestpass.core.exceptions import GuestValidationError
from guestpass.db.session import get_db
from guestpass.models.email_template import EmailTemplate
from guestpass.schemas import EmailTemplatePayload, InviteRequest, InviteResponse
from guestpass.services.invitations import InvitationService, TemplateStore

router = APIRouter(dependencies=[Depends(get_current_admin)])
logger = logging.getLogger(__name__)


@router.post("/invitations/send", response_model=InviteResponse)
def send_invitations(
    payload: InviteRequest,
    invitations: InvitationService = Depends(get_invitation_service),
):
    """
    Send invitation emails to the selected guests.
    Guests are marked invited only once their email went out.
    """
    report = invitations.send_invitations(payload.guest_ids)

    return InviteResponse(
        status="success" if not report.failed and not report.missing else "partial",
        message=f"Invitation successfully sent to {report.success_count} guest(s).",
        sent=report.sent,
        failed=report.failed,
        missing=report.missing,
    )


@router.get("/invitations/template", response_model=EmailTemplatePayload)
def get_template(db: Session = Depends(get_db)):
    template = TemplateStore(db).get()
    return EmailTemplatePayload(subject=template.subject, image_url=template.image_url, body=template.body)


@router.put("/invitations/template", response_model=EmailTemplatePayload)
def save_template(payload: EmailTemplatePayload, db: Session = Depends(get_db)):
    try:
        TemplateStore(db).save(EmailTemplate(**payload.model_dump()))
    except GuestValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("[Admin] Invitation template updated")
    return payload
