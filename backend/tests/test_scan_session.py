"""
Tests for the scan session latch.
"""

import asyncio
import threading
from datetime import timedelta

import pytest

from conftest import T0, DecoderFactory, FakeDecoder, FixedClock, make_guest
from guestpass.services.check_in import MSG_TRY_AGAIN, CheckInEngine, Outcome, ReasonCode, accepted
from guestpass.services.scan_session import (
    DecodedText,
    DecodeMiss,
    DecoderFailure,
    FacingMode,
    ScanSession,
    SessionState,
)


class RecordingEngine:
    """Engine stand-in that accepts everything and remembers what it saw"""

    def __init__(self):
        self.scanned = []

    def process(self, scanned):
        self.scanned.append(scanned)
        return accepted(make_guest(id=scanned), T0)


@pytest.fixture
def engine():
    return RecordingEngine()


@pytest.mark.asyncio
async def test_start_arms_with_configured_camera(engine):
    factory = DecoderFactory()
    session = ScanSession(factory, engine)

    state = await session.start()

    assert state == SessionState.ARMED
    assert session.active_facing_mode == FacingMode.REAR
    assert factory.last.started_with == FacingMode.REAR
    assert session.status()["scanning"] is True


@pytest.mark.asyncio
async def test_falls_back_to_other_camera_once(engine):
    factory = DecoderFactory(fail_modes={FacingMode.REAR})
    session = ScanSession(factory, engine)

    await session.start()

    assert session.state == SessionState.ARMED
    assert session.active_facing_mode == FacingMode.FRONT
    assert len(factory.created) == 2
    assert factory.created[0].stopped


@pytest.mark.asyncio
async def test_both_cameras_failing_is_fatal(engine):
    factory = DecoderFactory(fail_modes={FacingMode.REAR, FacingMode.FRONT})
    session = ScanSession(factory, engine)

    await session.start()

    assert session.state == SessionState.FAILED
    assert session.error.kind == "camera_unavailable"
    assert len(factory.created) == 2
    assert all(d.stopped for d in factory.created)

    # No automatic retry; events are ignored until the operator restarts
    assert await session.handle_event(DecodedText("pass-001")) is None
    assert engine.scanned == []


@pytest.mark.asyncio
async def test_only_first_decode_is_evaluated_until_acknowledged(engine):
    factory = DecoderFactory()
    session = ScanSession(factory, engine)
    await session.start()

    first = await session.handle_event(DecodedText("pass-001"))
    second = await session.handle_event(DecodedText("pass-001"))
    third = await session.handle_event(DecodedText("pass-002"))

    assert first.success
    assert second is None and third is None
    assert engine.scanned == ["pass-001"]
    assert session.state == SessionState.SUSPENDED
    assert session.awaiting_acknowledgement
    assert session.dropped == 2
    assert factory.last.paused == 1


@pytest.mark.asyncio
async def test_acknowledge_rearms_and_resumes(engine):
    factory = DecoderFactory()
    session = ScanSession(factory, engine)
    await session.start()
    await session.handle_event(DecodedText("pass-001"))

    assert await session.acknowledge() is True
    assert session.state == SessionState.ARMED
    assert session.last_result is None
    assert factory.last.resumed == 1
    assert await session.acknowledge() is False

    await session.handle_event(DecodedText("pass-002"))
    assert engine.scanned == ["pass-001", "pass-002"]


@pytest.mark.asyncio
async def test_misses_are_ignored(engine):
    session = ScanSession(DecoderFactory(), engine)
    await session.start()

    for _ in range(5):
        await session.handle_event(DecodeMiss())

    assert session.state == SessionState.ARMED
    assert session.dropped == 0
    assert engine.scanned == []


@pytest.mark.asyncio
async def test_decoder_failure_mid_session(engine):
    factory = DecoderFactory()
    session = ScanSession(factory, engine)
    await session.start()

    await session.handle_event(DecoderFailure("Camera disconnected", kind="camera_unavailable"))

    assert session.state == SessionState.FAILED
    assert session.error.message == "Camera disconnected"
    assert factory.last.stopped

    state = await session.restart()
    assert state == SessionState.ARMED
    assert session.error is None


@pytest.mark.asyncio
async def test_cancel_releases_camera_and_drops_late_events(engine):
    factory = DecoderFactory()
    session = ScanSession(factory, engine)
    await session.start()

    await session.cancel()
    await session.cancel()
    late = await session.handle_event(DecodedText("pass-001"))

    assert late is None
    assert session.state == SessionState.CLOSED
    assert factory.last.stop_calls == 1
    assert engine.scanned == []
    assert await session.start() == SessionState.CLOSED
    assert len(factory.created) == 1


@pytest.mark.asyncio
async def test_cancel_during_initialisation(engine):
    factory = DecoderFactory(hang=True)
    session = ScanSession(factory, engine)

    starting = asyncio.create_task(session.start())
    await asyncio.sleep(0)
    assert session.state == SessionState.INITIALIZING

    await session.cancel()
    await starting

    assert session.state == SessionState.CLOSED
    assert factory.last.stopped
    # The fallback camera must not be opened after cancel
    assert len(factory.created) == 1


@pytest.mark.asyncio
async def test_initialisation_timeout_counts_as_failure(engine):
    factory = DecoderFactory(hang=True)
    session = ScanSession(factory, engine, init_timeout=0.01)

    await session.start()

    assert session.state == SessionState.FAILED
    assert session.error.kind == "camera_unavailable"
    assert all(d.stopped for d in factory.created)


@pytest.mark.asyncio
async def test_switching_facing_mode_restarts_decoder(engine):
    factory = DecoderFactory()
    session = ScanSession(factory, engine)
    await session.start()
    rear = factory.last

    await session.set_facing_mode(FacingMode.FRONT)

    assert rear.stopped
    assert factory.last.started_with == FacingMode.FRONT
    assert session.active_facing_mode == FacingMode.FRONT
    assert session.state == SessionState.ARMED


@pytest.mark.asyncio
async def test_run_pumps_events_until_stream_ends(engine):
    factory = DecoderFactory()
    session = ScanSession(factory, engine)
    await session.start()
    decoder = factory.last
    decoder.emit(DecodeMiss())
    decoder.emit(DecodedText("pass-001"))
    decoder.emit(DecodedText("pass-001"))
    decoder.finish()

    await session.run()

    assert engine.scanned == ["pass-001"]
    assert session.dropped == 1
    assert session.state == SessionState.CLOSED


@pytest.mark.asyncio
async def test_context_manager_always_releases(engine):
    factory = DecoderFactory()

    with pytest.raises(RuntimeError):
        async with ScanSession(factory, engine) as session:
            assert session.state == SessionState.ARMED
            raise RuntimeError("operator closed the tab")

    assert factory.last.stopped
    assert session.state == SessionState.CLOSED


@pytest.mark.asyncio
async def test_on_update_receives_status_changes(engine):
    updates = []

    async def record(session):
        updates.append(session.status()["state"])

    session = ScanSession(DecoderFactory(), engine, on_update=record)
    await session.start()
    await session.handle_event(DecodedText("pass-001"))
    await session.acknowledge()
    await session.cancel()

    assert updates == ["armed", "suspended", "armed", "closed"]


@pytest.mark.asyncio
async def test_session_with_real_engine_rejects_reused_pass(store):
    store.create(make_guest())
    engine = CheckInEngine(store, clock=FixedClock(T0 + timedelta(days=1)))
    session = ScanSession(DecoderFactory(), engine)
    await session.start()

    first = await session.handle_event(DecodedText("pass-001"))
    await session.acknowledge()
    second = await session.handle_event(DecodedText("pass-001"))

    assert first.success
    assert second.reason_code == ReasonCode.ALREADY_USED
    assert session.status()["last_result"]["reason_code"] == "already_used"


class BrokenDriverDecoder(FakeDecoder):
    """Camera whose driver raises a plain OS error instead of ScannerInitError"""

    async def start(self, facing_mode):
        self.started_with = facing_mode
        raise OSError("Device or resource busy")


class ExplodingEngine:
    def __init__(self):
        self.calls = 0

    def process(self, scanned):
        self.calls += 1
        raise RuntimeError("database is locked")


@pytest.mark.asyncio
async def test_unexpected_start_error_releases_camera(engine):
    created = []

    def factory():
        created.append(BrokenDriverDecoder())
        return created[-1]

    session = ScanSession(factory, engine)

    state = await session.start()

    assert state == SessionState.FAILED
    assert session.error.kind == "init_failed"
    assert session.error.message == "Device or resource busy"
    assert len(created) == 2
    assert all(d.stopped for d in created)


@pytest.mark.asyncio
async def test_context_manager_with_broken_camera_does_not_raise(engine):
    created = []

    def factory():
        created.append(BrokenDriverDecoder())
        return created[-1]

    async with ScanSession(factory, engine) as session:
        assert session.state == SessionState.FAILED

    assert session.state == SessionState.CLOSED
    assert all(d.stopped for d in created)


@pytest.mark.asyncio
async def test_engine_error_surfaces_as_try_again():
    engine = ExplodingEngine()
    factory = DecoderFactory()
    session = ScanSession(factory, engine)
    await session.start()

    result = await session.handle_event(DecodedText("pass-001"))

    assert result.outcome == Outcome.FAILED
    assert result.reason_code == ReasonCode.STORE_UNAVAILABLE
    assert result.message == MSG_TRY_AGAIN
    assert session.last_result is result
    assert session.state == SessionState.SUSPENDED
    assert session.status()["last_result"]["outcome"] == "failed"

    # The operator can dismiss it and scan again
    assert await session.acknowledge() is True
    assert session.state == SessionState.ARMED
    await session.handle_event(DecodedText("pass-001"))
    assert engine.calls == 2


@pytest.mark.asyncio
async def test_evaluation_runs_off_the_event_loop():
    seen = []

    class ThreadRecordingEngine:
        def process(self, scanned):
            seen.append(threading.get_ident())
            return accepted(make_guest(id=scanned), T0)

    session = ScanSession(DecoderFactory(), ThreadRecordingEngine())
    await session.start()

    result = await session.handle_event(DecodedText("pass-001"))

    assert result.success
    assert seen and seen[0] != threading.get_ident()
