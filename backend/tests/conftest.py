import asyncio
import os
from datetime import datetime, timezone

# Keep test runs off the real database and log file
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", "")
os.environ.pop("GRAPH_ACCESS_TOKEN", None)

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from guestpass.core.exceptions import EmailSendError, ScannerInitError
from guestpass.db.session import init_db
from guestpass.models.guest import Guest
from guestpass.services.categories import CategoryStore
from guestpass.services.email import EmailSender
from guestpass.services.guest_store import GuestStore
from guestpass.services.scan_session import Decoder

T0 = datetime(2026, 1, 20, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def categories(db_session):
    return CategoryStore(db_session)


@pytest.fixture
def store(db_session, categories):
    return GuestStore(db_session, categories)


def make_guest(**overrides) -> Guest:
    values = dict(
        id="pass-001",
        name="Aishath Rasheed",
        email="aishath@example.com",
        country_code="+960",
        mobile="7771234",
        organization="Maldivian",
        designation="Station Manager",
        rsvp_date=T0,
    )
    values.update(overrides)
    return Guest(**values)


class FixedClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FixedClock()


class FakeEmailSender(EmailSender):
    def __init__(self, fail_for=(), reject_for=()):
        self.sent = []
        self.fail_for = set(fail_for)
        self.reject_for = set(reject_for)

    def send(self, to: str, subject: str, html: str) -> bool:
        if to in self.fail_for:
            raise EmailSendError(f"Mailbox unavailable: {to}", status_code=550)
        if to in self.reject_for:
            return False
        self.sent.append({"to": to, "subject": subject, "html": html})
        return True


@pytest.fixture
def fake_sender():
    return FakeEmailSender()


class FakeDecoder(Decoder):
    """In-memory camera: tests push events with emit() and end the stream with finish()"""

    def __init__(self, fail_modes=(), hang=False):
        self.fail_modes = set(fail_modes)
        self.hang = hang
        self.started_with = None
        self.paused = 0
        self.resumed = 0
        self.stop_calls = 0
        self._queue = asyncio.Queue()
        self._released = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self.stop_calls > 0

    async def start(self, facing_mode):
        self.started_with = facing_mode
        if self.hang:
            await self._released.wait()
            raise ScannerInitError("Camera released during start", kind="released")
        if facing_mode in self.fail_modes:
            raise ScannerInitError(f"No {facing_mode.value} camera", kind="camera_unavailable")

    async def pause(self):
        self.paused += 1

    async def resume(self):
        self.resumed += 1

    async def stop(self):
        self.stop_calls += 1
        self._released.set()
        self._queue.put_nowait(None)

    def emit(self, event):
        self._queue.put_nowait(event)

    def finish(self):
        self._queue.put_nowait(None)

    async def events(self):
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


class DecoderFactory:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.created = []

    def __call__(self) -> FakeDecoder:
        decoder = FakeDecoder(**self.kwargs)
        self.created.append(decoder)
        return decoder

    @property
    def last(self) -> FakeDecoder:
        return self.created[-1]
