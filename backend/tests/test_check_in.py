"""
Tests for check-in verification and the engine's commit handling.
"""

from datetime import timedelta

import pytest

from conftest import T0, FixedClock, make_guest
from guestpass.core.exceptions import StoreUnavailableError
from guestpass.services.check_in import (
    MSG_ALREADY_USED,
    MSG_NOT_FOUND,
    MSG_TRY_AGAIN,
    CheckInEngine,
    EngineState,
    Outcome,
    ReasonCode,
    evaluate,
)
from guestpass.services.guest_store import CommitStatus, GuestStore
from guestpass.services.roster import Roster, mark_checked_in

SCAN_TIME = T0 + timedelta(days=20)


@pytest.fixture
def engine(store):
    store.create(make_guest())
    return CheckInEngine(store, clock=FixedClock(SCAN_TIME))


def test_evaluate_unknown_id():
    result = evaluate("nobody", Roster([make_guest()]), SCAN_TIME)

    assert result.outcome == Outcome.REJECTED
    assert result.reason_code == ReasonCode.NOT_FOUND
    assert result.message == MSG_NOT_FOUND
    assert result.guest is None


def test_evaluate_accepts_and_does_not_touch_roster():
    guest = make_guest()
    roster = Roster([guest])

    result = evaluate(guest.id, roster, SCAN_TIME)

    assert result.outcome == Outcome.ACCEPTED
    assert result.message == "Aishath Rasheed successfully checked in."
    assert result.guest.check_in_time == SCAN_TIME
    assert roster.get(guest.id).checked_in is False


def test_evaluate_reused_pass_reports_original_time():
    earlier = SCAN_TIME - timedelta(minutes=30)
    guest = mark_checked_in(make_guest(), earlier)

    result = evaluate(guest.id, Roster([guest]), SCAN_TIME)

    assert result.reason_code == ReasonCode.ALREADY_USED
    assert result.message == MSG_ALREADY_USED
    assert result.guest.check_in_time == earlier


def test_process_accepts_and_persists(engine, store):
    result = engine.process("pass-001")

    assert result.success
    assert result.guest.check_in_time == SCAN_TIME
    assert store.get("pass-001").checked_in is True
    assert engine.state == EngineState.IDLE


def test_second_scan_is_rejected_as_already_used(engine, store):
    engine.process("pass-001")
    engine.clock = FixedClock(SCAN_TIME + timedelta(minutes=5))

    result = engine.process("pass-001")

    assert result.outcome == Outcome.REJECTED
    assert result.reason_code == ReasonCode.ALREADY_USED
    assert result.guest.check_in_time == SCAN_TIME
    assert store.get("pass-001").check_in_time == SCAN_TIME


@pytest.mark.parametrize("scanned", ["unknown-id", "", " pass-001", "PASS-001"])
def test_unknown_scan_changes_nothing(engine, store, scanned):
    result = engine.process(scanned)

    assert result.reason_code == ReasonCode.NOT_FOUND
    assert store.get("pass-001").checked_in is False


def test_racing_scanner_wins_conflict(engine, store, monkeypatch):
    stale = store.get("pass-001")
    other_scan = SCAN_TIME - timedelta(seconds=2)
    assert store.commit_check_in("pass-001", other_scan) == CommitStatus.SUCCESS

    # Our lookup happened before the other scanner's write landed
    reads = iter([stale])
    original_get = store.get
    monkeypatch.setattr(store, "get", lambda guest_id: next(reads, None) or original_get(guest_id))

    result = engine.process("pass-001")

    assert result.outcome == Outcome.REJECTED
    assert result.reason_code == ReasonCode.ALREADY_USED
    assert result.guest.check_in_time == other_scan


def test_conflict_reread_failure_is_transient(engine, store, monkeypatch):
    stale = store.get("pass-001")
    assert store.commit_check_in("pass-001", SCAN_TIME - timedelta(seconds=2)) == CommitStatus.SUCCESS
    monkeypatch.setattr(store, "get", lambda guest_id: stale)

    def lost_connection(guest_id):
        raise StoreUnavailableError("connection lost")

    monkeypatch.setattr(store, "_record", lost_connection)

    result = engine.process("pass-001")

    assert result.outcome == Outcome.FAILED
    assert result.reason_code == ReasonCode.STORE_UNAVAILABLE
    assert result.message == MSG_TRY_AGAIN
    assert engine.state == EngineState.IDLE


def test_two_stores_on_one_guest_only_one_wins(db_session, categories):
    first = GuestStore(db_session, categories)
    second = GuestStore(db_session, categories)
    first.create(make_guest())
    engine_a = CheckInEngine(first, clock=FixedClock(SCAN_TIME))
    engine_b = CheckInEngine(second, clock=FixedClock(SCAN_TIME + timedelta(seconds=1)))

    outcomes = [engine_a.process("pass-001"), engine_b.process("pass-001")]

    assert [r.outcome for r in outcomes] == [Outcome.ACCEPTED, Outcome.REJECTED]
    assert outcomes[1].guest.check_in_time == SCAN_TIME


def test_store_write_failure_is_never_success(engine, store, monkeypatch):
    monkeypatch.setattr(store, "commit_check_in", lambda guest_id, ts: CommitStatus.ERROR)

    result = engine.process("pass-001")

    assert result.outcome == Outcome.FAILED
    assert result.reason_code == ReasonCode.STORE_UNAVAILABLE
    assert result.message == MSG_TRY_AGAIN
    assert not result.success
    assert store.get("pass-001").checked_in is False


def test_store_read_failure_is_transient(engine, store, monkeypatch):
    def broken_get(guest_id):
        raise StoreUnavailableError("database is locked")

    monkeypatch.setattr(store, "get", broken_get)

    result = engine.process("pass-001")

    assert result.outcome == Outcome.FAILED
    assert engine.state == EngineState.IDLE


def test_guest_deleted_between_lookup_and_write(engine, store, monkeypatch):
    guest = store.get("pass-001")
    store.delete("pass-001")
    monkeypatch.setattr(store, "get", lambda guest_id: guest)

    result = engine.process("pass-001")

    assert result.reason_code == ReasonCode.NOT_FOUND


def test_skewed_clock_never_precedes_rsvp(store):
    store.create(make_guest())
    engine = CheckInEngine(store, clock=FixedClock(T0 - timedelta(hours=1)))

    result = engine.process("pass-001")

    assert result.success
    assert store.get("pass-001").check_in_time == T0


def test_result_serialises(engine):
    data = engine.process("pass-001").to_dict()

    assert data["outcome"] == "accepted"
    assert data["success"] is True
    assert data["reason_code"] is None
    assert data["guest"]["id"] == "pass-001"
