"""Guest creation paths: self-service RSVP, admin entry and bulk import."""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional
from guestpass.core.config import settings, NOT_A_RECIPIENT
from guestpass.core.exceptions import EmailSendError
from guestpass.core.security import generate_pass_id
from guestpass.models.guest import Guest
from guestpass.services.guest_store import GuestStore
from guestpass.services.invitations import InvitationService
from guestpass.services.roster import classify_for_rsvp

logger = logging.getLogger(__name__)

# Spreadsheet header aliases, first match wins
IMPORT_COLUMNS = {
    "name": ("Name", "name"),
    "email": ("Email", "email"),
    "organization": ("Organization", "organization"),
    "designation": ("Designation", "designation"),
    "mobile": ("Mobile", "mobile"),
    "country_code": ("Country Code", "CountryCode", "countryCode"),
    "award_category": ("Award Category", "awardCategory"),
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _clean(value) -> str:
    return str(value).strip() if value is not None else ""


class RegistrationService:
    def __init__(
        self,
        store: GuestStore,
        invitations: Optional[InvitationService] = None,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = generate_pass_id,
    ):
        self.store = store
        self.invitations = invitations
        self.clock = clock
        self.id_factory = id_factory

    def register_rsvp(self, form: Dict[str, str]) -> Guest:
        """Self-service RSVP.

        All contact fields are required. The category comes from matching
        the organization against the nominee list, and the guest counts as
        confirmed straight away. The pass e-mail is best effort.
        """
        now = self.clock()
        organization = _clean(form.get("organization"))
        guest = Guest(
            id=self.id_factory(),
            name=_clean(form.get("name")),
            email=_clean(form.get("email")),
            country_code=_clean(form.get("country_code")) or settings.DEFAULT_COUNTRY_CODE,
            mobile=_clean(form.get("mobile")),
            organization=organization,
            designation=_clean(form.get("designation")),
            award_category=classify_for_rsvp(organization, settings.NOMINEE_ORGANIZATIONS),
            rsvp_date=now,
            rsvp_confirmed=True,
            rsvp_confirmed_at=now,
        )
        self.store.create(guest, require_contact=True)
        logger.info(f"RSVP received from {guest.name} ({guest.organization}) -> {guest.award_category}")

        if self.invitations is not None:
            try:
                self.invitations.send_pass_email(guest)
            except EmailSendError as e:
                logger.warning(f"Pass email to {guest.email} failed; registration kept: {e}")
        return guest

    def add_guest(self, form: Dict[str, str]) -> Guest:
        """Admin manual entry: not confirmed until the guest responds"""
        guest = Guest(
            id=self.id_factory(),
            name=_clean(form.get("name")),
            email=_clean(form.get("email")),
            country_code=_clean(form.get("country_code")) or settings.DEFAULT_COUNTRY_CODE,
            mobile=_clean(form.get("mobile")),
            organization=_clean(form.get("organization")),
            designation=_clean(form.get("designation")),
            award_category=_clean(form.get("award_category")) or NOT_A_RECIPIENT,
            rsvp_date=self.clock(),
        )
        return self.store.create(guest)

    def confirm_rsvp(self, guest_id: str) -> Guest:
        return self.store.record_confirmation(guest_id, self.clock())

    def guests_from_rows(self, rows: Iterable[Dict[str, str]]) -> List[Guest]:
        """Map imported spreadsheet rows to new guests.

        Rows without a name or e-mail are dropped. Categories not in the
        live set fall back to the default category.
        """
        known_categories = set(self.store.categories.list())
        now = self.clock()
        guests = []
        for row in rows:
            values = {}
            for field_name, aliases in IMPORT_COLUMNS.items():
                values[field_name] = next((_clean(row[a]) for a in aliases if _clean(row.get(a))), "")

            if not values["name"] or not values["email"]:
                continue

            category = values["award_category"]
            if category not in known_categories:
                if category:
                    logger.info(f"Unknown category {category!r} for {values['email']}; using default")
                category = NOT_A_RECIPIENT

            guests.append(
                Guest(
                    id=self.id_factory(),
                    name=values["name"],
                    email=values["email"],
                    organization=values["organization"],
                    designation=values["designation"],
                    mobile=values["mobile"],
                    country_code=values["country_code"] or settings.DEFAULT_COUNTRY_CODE,
                    award_category=category,
                    rsvp_date=now,
                )
            )
        return guests

    def import_rows(self, rows: Iterable[Dict[str, str]]):
        """Returns (created guests, skipped e-mails)"""
        return self.store.bulk_create(self.guests_from_rows(rows))
