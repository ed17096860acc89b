"""Authoritative guest storage on top of SQLAlchemy.

The store owns id uniqueness and field validation, and serialises
check-ins with a conditional update so two scanners racing on the same
pass cannot both win.
"""

import enum
import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from guestpass.core.exceptions import (
    DuplicateGuestError,
    GuestNotFoundError,
    GuestValidationError,
    ImmutableFieldError,
    StoreUnavailableError,
)
from guestpass.db.base import utc_now_iso
from guestpass.models.guest import Guest, GuestRecord, format_timestamp
from guestpass.services import roster
from guestpass.services.categories import CategoryStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "name",
    "email",
    "country_code",
    "mobile",
    "organization",
    "designation",
    "award_category",
}
RSVP_REQUIRED_FIELDS = ("name", "email", "country_code", "mobile", "organization", "designation")


class CommitStatus(str, enum.Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    ERROR = "error"


class GuestStore:
    def __init__(self, db: Session, categories: CategoryStore = None):
        self.db = db
        self.categories = categories or CategoryStore(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, guest_id: str) -> Optional[Guest]:
        record = self._record(guest_id)
        return Guest.from_record(record) if record else None

    def require(self, guest_id: str) -> Guest:
        guest = self.get(guest_id)
        if guest is None:
            raise GuestNotFoundError(guest_id)
        return guest

    def list_guests(self, search: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[Guest]:
        """Guests newest first, optionally filtered by name, e-mail or organization"""
        try:
            query = self.db.query(GuestRecord)
            if search:
                search_fmt = f"%{search}%"
                query = query.filter(
                    or_(
                        GuestRecord.name.ilike(search_fmt),
                        GuestRecord.email.ilike(search_fmt),
                        GuestRecord.organization.ilike(search_fmt),
                    )
                )
            records = query.order_by(GuestRecord.rsvp_date.desc()).offset(skip).limit(limit).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to list guests: {e}")
            raise StoreUnavailableError("Could not load guests") from e
        return [Guest.from_record(r) for r in records]

    def all_guests(self) -> List[Guest]:
        try:
            records = self.db.query(GuestRecord).order_by(GuestRecord.rsvp_date.desc()).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load roster: {e}")
            raise StoreUnavailableError("Could not load guests") from e
        return [Guest.from_record(r) for r in records]

    def load_roster(self) -> roster.Roster:
        return roster.Roster(self.all_guests())

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(self, guest: Guest, require_contact: bool = False) -> Guest:
        """Insert a new guest.

        Args:
            guest: Fully built guest; the id is allocated by the caller.
            require_contact: Enforce non-empty contact fields (self-service RSVP).
        """
        self._validate(guest, require_contact=require_contact)
        if self._record(guest.id) is not None:
            raise DuplicateGuestError(guest.id)

        self.db.add(GuestRecord(**guest.to_row()))
        self._commit(f"create guest {guest.id}", duplicate_id=guest.id)
        logger.info(f"Created guest {guest.id} ({guest.email or 'no email'})")
        return guest

    def bulk_create(self, guests: Sequence[Guest]) -> Tuple[List[Guest], List[str]]:
        """Insert a batch in one transaction.

        Rows whose e-mail is already on the roster are skipped. Any id clash
        rejects the whole batch.

        Returns:
            (created guests, skipped e-mails)
        """
        seen_ids = set()
        for guest in guests:
            if guest.id in seen_ids or self._record(guest.id) is not None:
                raise DuplicateGuestError(guest.id)
            seen_ids.add(guest.id)
            self._validate(guest)

        emails = [g.email for g in guests if g.email]
        existing_emails = set()
        if emails:
            rows = self.db.query(GuestRecord.email).filter(GuestRecord.email.in_(emails)).all()
            existing_emails = {row[0] for row in rows}

        created, skipped = [], []
        batch_emails = set()
        for guest in guests:
            if guest.email and (guest.email in existing_emails or guest.email in batch_emails):
                skipped.append(guest.email)
                continue
            if guest.email:
                batch_emails.add(guest.email)
            self.db.add(GuestRecord(**guest.to_row()))
            created.append(guest)

        self._commit(f"bulk create {len(created)} guests")
        logger.info(f"Batch import: {len(created)} created, {len(skipped)} skipped")
        return created, skipped

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update(self, guest_id: str, changes: Dict[str, object]) -> Guest:
        """Admin edit of descriptive fields"""
        protected = set(changes) - EDITABLE_FIELDS
        if protected:
            raise ImmutableFieldError(protected)

        record = self._record(guest_id)
        if record is None:
            raise GuestNotFoundError(guest_id)

        current = Guest.from_record(record)
        updated = replace(current, **changes)
        if updated.award_category != current.award_category:
            self._validate(updated)
        elif not (updated.name or "").strip():
            raise GuestValidationError("Guest name cannot be empty")

        for key, value in changes.items():
            setattr(record, key, value)
        self._commit(f"update guest {guest_id}")
        logger.info(f"Updated guest {guest_id}: {', '.join(sorted(changes))}")
        return updated

    def record_invitation(self, guest_id: str, timestamp: datetime) -> Guest:
        """Persist a confirmed invitation send"""
        record = self._record(guest_id)
        if record is None:
            raise GuestNotFoundError(guest_id)

        updated = roster.mark_invited(Guest.from_record(record), timestamp)
        record.invitation_sent = True
        record.invitation_sent_at = format_timestamp(updated.invitation_sent_at)
        self._commit(f"record invitation for {guest_id}")
        return updated

    def record_confirmation(self, guest_id: str, timestamp: datetime) -> Guest:
        record = self._record(guest_id)
        if record is None:
            raise GuestNotFoundError(guest_id)

        current = Guest.from_record(record)
        updated = roster.mark_confirmed(current, timestamp)
        if updated is current:
            return current
        record.rsvp_confirmed = True
        record.rsvp_confirmed_at = format_timestamp(updated.rsvp_confirmed_at)
        self._commit(f"record confirmation for {guest_id}")
        return updated

    def commit_check_in(self, guest_id: str, timestamp: datetime) -> CommitStatus:
        """Latch checked_in only if it is still false.

        CONFLICT means another writer got there first; ERROR means the
        store could not be written at all.
        """
        try:
            updated = (
                self.db.query(GuestRecord)
                .filter(GuestRecord.id == guest_id, GuestRecord.checked_in.is_(False))
                .update(
                    {
                        GuestRecord.checked_in: True,
                        GuestRecord.check_in_time: format_timestamp(timestamp),
                        GuestRecord.updated_at: utc_now_iso(),
                    },
                    synchronize_session=False,
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Check-in write failed for {guest_id}: {e}")
            return CommitStatus.ERROR

        if updated == 1:
            return CommitStatus.SUCCESS

        self.db.expire_all()
        try:
            record = self._record(guest_id)
        except StoreUnavailableError:
            # Not latched by us and the outcome is unknown
            return CommitStatus.ERROR
        if record is None:
            return CommitStatus.NOT_FOUND
        logger.warning(f"Check-in conflict for {guest_id}: already latched by another writer")
        return CommitStatus.CONFLICT

    def delete(self, guest_id: str) -> Guest:
        record = self._record(guest_id)
        if record is None:
            raise GuestNotFoundError(guest_id)

        guest = Guest.from_record(record)
        self.db.delete(record)
        self._commit(f"delete guest {guest_id}")
        logger.info(f"Deleted guest {guest_id} ({guest.email})")
        return guest

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _record(self, guest_id: str) -> Optional[GuestRecord]:
        try:
            return self.db.query(GuestRecord).filter(GuestRecord.id == guest_id).first()
        except SQLAlchemyError as e:
            logger.error(f"Guest lookup failed for {guest_id}: {e}")
            raise StoreUnavailableError("Could not read guest store") from e

    def _validate(self, guest: Guest, require_contact: bool = False):
        if not guest.id or not isinstance(guest.id, str):
            raise GuestValidationError("Guest id is required")
        if not (guest.name or "").strip():
            raise GuestValidationError("Guest name is required")
        if require_contact:
            missing = [f for f in RSVP_REQUIRED_FIELDS if not (getattr(guest, f) or "").strip()]
            if missing:
                raise GuestValidationError(f"Missing required fields: {', '.join(missing)}")
        if guest.award_category and not self.categories.contains(guest.award_category):
            raise GuestValidationError(f"Unknown category '{guest.award_category}'")

    def _commit(self, action: str, duplicate_id: str = None):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if duplicate_id:
                raise DuplicateGuestError(duplicate_id) from e
            logger.error(f"Integrity error during {action}: {e}")
            raise GuestValidationError(f"Could not {action}: integrity error") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error during {action}: {e}")
            raise StoreUnavailableError(f"Could not {action}") from e
