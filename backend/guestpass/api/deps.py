from fastapi import Depends
from sqlalchemy.orm import Session
from guestpass.db.session import get_db
from guestpass.services.categories import CategoryStore
from guestpass.services.check_in import CheckInEngine
from guestpass.services.confirmations import ConfirmationRegistry, confirmation_registry
from guestpass.services.email import EmailSender, get_email_sender
from guestpass.services.guest_store import GuestStore
from guestpass.services.invitations import InvitationService, TemplateStore
from guestpass.services.registration import RegistrationService


def get_category_store(db: Session = Depends(get_db)) -> CategoryStore:
    return CategoryStore(db)


def get_guest_store(db: Session = Depends(get_db)) -> GuestStore:
    return GuestStore(db)


def get_check_in_engine(store: GuestStore = Depends(get_guest_store)) -> CheckInEngine:
    return CheckInEngine(store)


def get_sender() -> EmailSender:
    return get_email_sender()


def get_confirmations() -> ConfirmationRegistry:
    return confirmation_registry


def get_invitation_service(
    store: GuestStore = Depends(get_guest_store),
    sender: EmailSender = Depends(get_sender),
    db: Session = Depends(get_db),
) -> InvitationService:
    return InvitationService(store, sender, template=TemplateStore(db).get())


def get_registration_service(
    store: GuestStore = Depends(get_guest_store),
    invitations: InvitationService = Depends(get_invitation_service),
) -> RegistrationService:
    return RegistrationService(store, invitations)
