import html
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Sequence
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from guestpass.core.config import settings
from guestpass.core.exceptions import EmailSendError, GuestValidationError, StoreUnavailableError
from guestpass.models.email_template import DEFAULT_INVITATION_TEMPLATE, EmailTemplate, EmailTemplateRecord
from guestpass.models.guest import Guest
from guestpass.services.email import EmailSender
from guestpass.services.guest_store import GuestStore

logger = logging.getLogger(__name__)


class TemplateStore:
    """The invitation template, one editable row with a built-in default"""

    def __init__(self, db: Session, key: str = "invitation"):
        self.db = db
        self.key = key

    def get(self) -> EmailTemplate:
        row = self.db.query(EmailTemplateRecord).filter(EmailTemplateRecord.key == self.key).first()
        if not row:
            return DEFAULT_INVITATION_TEMPLATE
        return EmailTemplate(subject=row.subject, image_url=row.image_url, body=row.body)

    def save(self, template: EmailTemplate) -> EmailTemplate:
        if not template.subject.strip() or not template.body.strip():
            raise GuestValidationError("Template subject and body are required")

        row = self.db.query(EmailTemplateRecord).filter(EmailTemplateRecord.key == self.key).first()
        if row is None:
            row = EmailTemplateRecord(key=self.key)
            self.db.add(row)
        row.subject = template.subject
        row.image_url = template.image_url
        row.body = template.body
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save email template: {e}")
            raise StoreUnavailableError("Could not save email template") from e
        return template


def pass_url(guest: Guest) -> str:
    return f"{settings.APP_BASE_URL.rstrip('/')}/pass/{guest.id}"


def render_invitation(template: EmailTemplate, guest: Guest) -> tuple:
    """Fill the template placeholders; returns (subject, html)"""
    values = {
        "{name}": html.escape(guest.name),
        "{organization}": html.escape(guest.organization),
        "{pass_id}": html.escape(guest.id),
    }
    body = template.body
    subject = template.subject
    for placeholder, value in values.items():
        body = body.replace(placeholder, value)
        subject = subject.replace(placeholder, html.unescape(value))

    banner = f'<img src="{html.escape(template.image_url)}" alt="" style="width:100%"/>' if template.image_url else ""
    button = f'<p><a href="{html.escape(pass_url(guest))}">View your digital pass</a></p>'
    return subject, f"{banner}{body}{button}"


def render_pass_email(guest: Guest) -> tuple:
    subject = f"Your Digital Pass - {settings.EVENT_NAME}"
    body = (
        f"<p>Dear {html.escape(guest.name)},</p>"
        f"<p>Your digital pass for {html.escape(settings.EVENT_NAME)} is ready.</p>"
        f"<p>Pass ID: <strong>{html.escape(guest.id)}</strong></p>"
        f"<p>{html.escape(settings.EVENT_DATE)}, {html.escape(settings.EVENT_TIME)} at "
        f"{html.escape(settings.EVENT_LOCATION)}.</p>"
        f'<p><a href="{html.escape(pass_url(guest))}">Open your pass</a> and present it at the entrance.</p>'
    )
    return subject, body


@dataclass
class InvitationReport:
    sent: List[str] = field(default_factory=list)
    failed: List[dict] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.sent)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InvitationService:
    def __init__(
        self,
        store: GuestStore,
        sender: EmailSender,
        template: EmailTemplate = DEFAULT_INVITATION_TEMPLATE,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.sender = sender
        self.template = template
        self.clock = clock

    def send_invitations(self, guest_ids: Sequence[str]) -> InvitationReport:
        """Send the invitation to each guest.

        A guest is marked invited only after the transport accepted the
        message. Failures are collected per guest and the batch carries on.
        """
        report = InvitationReport()
        for guest_id in dict.fromkeys(guest_ids):
            guest = self.store.get(guest_id)
            if guest is None:
                report.missing.append(guest_id)
                continue
            if not guest.email:
                report.failed.append({"guest_id": guest_id, "error": "Guest has no email address"})
                continue

            subject, body = render_invitation(self.template, guest)
            try:
                delivered = self.sender.send(guest.email, subject, body)
            except EmailSendError as e:
                logger.error(f"Failed to send invitation to {guest.email}: {e}")
                report.failed.append({"guest_id": guest_id, "error": str(e)})
                continue
            if not delivered:
                report.failed.append({"guest_id": guest_id, "error": "Email transport reported failure"})
                continue

            try:
                self.store.record_invitation(guest_id, self.clock())
            except StoreUnavailableError as e:
                logger.error(f"Invitation sent to {guest.email} but not recorded: {e}")
                report.failed.append({"guest_id": guest_id, "error": "Sent, but the invitation could not be recorded"})
                continue
            report.sent.append(guest_id)

        logger.info(
            f"Invitations: {len(report.sent)} sent, {len(report.failed)} failed, {len(report.missing)} missing"
        )
        return report

    def send_pass_email(self, guest: Guest) -> bool:
        if not guest.email:
            raise GuestValidationError("Guest has no email address")
        subject, body = render_pass_email(guest)
        return self.sender.send(guest.email, subject, body)
