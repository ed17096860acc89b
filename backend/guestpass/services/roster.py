"""Pure operations over an in-memory guest roster.

Nothing here touches the database; callers commit the returned guests
through the guest store.
"""

from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, Iterator, Optional, Sequence
from guestpass.core.config import NOT_A_RECIPIENT, NOMINEE_CATEGORY
from guestpass.core.exceptions import AlreadyCheckedInError
from guestpass.models.guest import Guest


class Roster:
    """Guests indexed by id.

    If two entries share an id the first one wins; the store's primary key
    keeps that from happening in practice.
    """

    def __init__(self, guests: Iterable[Guest] = ()):
        self._by_id: Dict[str, Guest] = {}
        for guest in guests:
            self._by_id.setdefault(guest.id, guest)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[Guest]:
        return iter(self._by_id.values())

    def __contains__(self, guest_id) -> bool:
        return guest_id in self._by_id

    def get(self, guest_id: str) -> Optional[Guest]:
        return self._by_id.get(guest_id)

    def with_guest(self, guest: Guest) -> "Roster":
        """Copy of the roster with one guest replaced or added"""
        updated = Roster()
        updated._by_id = dict(self._by_id)
        updated._by_id[guest.id] = guest
        return updated


def find_by_id(roster: Optional[Roster], guest_id: str) -> Optional[Guest]:
    """Exact match on the pass id; no trimming or case folding."""
    if roster is None or not isinstance(guest_id, str):
        return None
    return roster.get(guest_id)


def classify_for_rsvp(organization: str, nominee_organizations: Sequence[str]) -> str:
    """Nominee label if the organization and a nominee name contain one another."""
    candidate = (organization or "").strip().lower()
    if not candidate:
        return NOT_A_RECIPIENT

    for nominee in nominee_organizations:
        known = (nominee or "").strip().lower()
        if not known:
            continue
        if known in candidate or candidate in known:
            return NOMINEE_CATEGORY
    return NOT_A_RECIPIENT


def mark_invited(guest: Guest, timestamp: datetime) -> Guest:
    # Resending is allowed and only moves the timestamp.
    return replace(guest, invitation_sent=True, invitation_sent_at=timestamp)


def mark_confirmed(guest: Guest, timestamp: datetime) -> Guest:
    if guest.rsvp_confirmed:
        return guest
    return replace(guest, rsvp_confirmed=True, rsvp_confirmed_at=timestamp)


def mark_checked_in(guest: Guest, timestamp: datetime) -> Guest:
    """Latch the guest as checked in.

    Raises:
        AlreadyCheckedInError: the guest was checked in before. A second
            check-in is a reused pass and must be reported, not ignored.
    """
    if guest.checked_in:
        raise AlreadyCheckedInError(guest)

    # check_in_time never precedes rsvp_date, even with a skewed clock
    if guest.rsvp_date and timestamp < guest.rsvp_date:
        timestamp = guest.rsvp_date
    return replace(guest, checked_in=True, check_in_time=timestamp)
