"""Check-in verification.

One scanned string in, one outcome out. ``evaluate`` is the pure decision
over a roster snapshot; ``CheckInEngine.process`` runs it against the guest
store and only reports success once the store has latched the check-in.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
from guestpass.core.exceptions import AlreadyCheckedInError, StoreUnavailableError
from guestpass.models.guest import Guest
from guestpass.services.guest_store import CommitStatus, GuestStore
from guestpass.services.roster import Roster, find_by_id, mark_checked_in

logger = logging.getLogger(__name__)

MSG_NOT_FOUND = "Invalid Pass ID. Guest not found in records."
MSG_ALREADY_USED = "This pass has already been used for check-in."
MSG_TRY_AGAIN = "Check-in could not be saved. Please try again."


class EngineState(str, enum.Enum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Outcome(str, enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    FAILED = "failed"


class ReasonCode(str, enum.Enum):
    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    STORE_UNAVAILABLE = "store_unavailable"


@dataclass(frozen=True)
class ScanResult:
    outcome: Outcome
    message: str
    timestamp: datetime
    reason_code: Optional[ReasonCode] = None
    guest: Optional[Guest] = None

    @property
    def success(self) -> bool:
        return self.outcome == Outcome.ACCEPTED

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "success": self.success,
            "reason_code": self.reason_code.value if self.reason_code else None,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "guest": self.guest.to_dict() if self.guest else None,
        }


def accepted(guest: Guest, timestamp: datetime) -> ScanResult:
    return ScanResult(Outcome.ACCEPTED, f"{guest.name} successfully checked in.", timestamp, guest=guest)


def not_found(timestamp: datetime) -> ScanResult:
    return ScanResult(Outcome.REJECTED, MSG_NOT_FOUND, timestamp, reason_code=ReasonCode.NOT_FOUND)


def already_used(guest: Guest, timestamp: datetime) -> ScanResult:
    return ScanResult(
        Outcome.REJECTED, MSG_ALREADY_USED, timestamp, reason_code=ReasonCode.ALREADY_USED, guest=guest
    )


def try_again(timestamp: datetime, guest: Optional[Guest] = None) -> ScanResult:
    return ScanResult(
        Outcome.FAILED, MSG_TRY_AGAIN, timestamp, reason_code=ReasonCode.STORE_UNAVAILABLE, guest=guest
    )


def evaluate(scanned: str, roster: Roster, now: datetime) -> ScanResult:
    """Decide a single scan against a roster snapshot.

    On ACCEPTED the returned guest is the post-mutation record the caller
    must persist; nothing is written here.
    """
    guest = find_by_id(roster, scanned)
    if guest is None:
        return not_found(now)

    try:
        checked_in = mark_checked_in(guest, now)
    except AlreadyCheckedInError as e:
        return already_used(e.guest, now)
    return accepted(checked_in, now)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CheckInEngine:
    """Runs scans against the guest store, one at a time."""

    def __init__(self, store: GuestStore, clock: Callable[[], datetime] = _utc_now):
        self.store = store
        self.clock = clock
        self.state = EngineState.IDLE

    def process(self, scanned: str) -> ScanResult:
        self.state = EngineState.EVALUATING
        now = self.clock()
        try:
            result = self._process(scanned, now)
        finally:
            self.state = EngineState.IDLE

        logger.info(
            f"Scan {scanned!r}: {result.outcome.value}"
            + (f" ({result.reason_code.value})" if result.reason_code else "")
        )
        return result

    def _process(self, scanned: str, now: datetime) -> ScanResult:
        try:
            guest = self.store.get(scanned) if isinstance(scanned, str) and scanned else None
        except StoreUnavailableError:
            logger.error(f"Guest lookup failed while scanning {scanned!r}")
            return try_again(now)

        snapshot = Roster([guest] if guest else [])
        decision = evaluate(scanned, snapshot, now)
        self.state = EngineState.ACCEPTED if decision.success else EngineState.REJECTED
        if not decision.success:
            return decision

        try:
            status = self.store.commit_check_in(decision.guest.id, decision.guest.check_in_time)
        except StoreUnavailableError:
            status = CommitStatus.ERROR
        if status == CommitStatus.SUCCESS:
            return decision
        if status == CommitStatus.NOT_FOUND:
            # Deleted between lookup and write
            self.state = EngineState.REJECTED
            return not_found(now)
        if status == CommitStatus.CONFLICT:
            self.state = EngineState.REJECTED
            return self._resolve_conflict(guest, now)

        self.state = EngineState.REJECTED
        return try_again(now, guest)

    def _resolve_conflict(self, stale: Guest, now: datetime) -> ScanResult:
        # Another writer latched the guest; report its check_in_time, not ours
        try:
            current = self.store.get(stale.id)
        except StoreUnavailableError:
            return try_again(now, stale)
        if current is None:
            return not_found(now)
        if not current.checked_in:
            logger.error(f"Check-in conflict for {stale.id} but guest is not checked in")
            return try_again(now, current)
        return already_used(current, now)
