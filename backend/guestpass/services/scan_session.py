"""Scan session control.

Bridges a camera decoder, which emits decode events continuously and with
no deduplication, to the check-in engine, which takes one scan at a time.
The session is a latch: while ARMED the next decoded string is evaluated
and the session becomes SUSPENDED; nothing else is evaluated until the
operator acknowledges the outcome.

Usage:
    async with ScanSession(make_decoder, engine) as session:
        await session.run()
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, Optional, Union
from guestpass.core.exceptions import ScannerInitError
from guestpass.services.check_in import CheckInEngine, ScanResult, try_again

logger = logging.getLogger(__name__)


class FacingMode(str, enum.Enum):
    FRONT = "front"
    REAR = "rear"

    @property
    def alternate(self) -> "FacingMode":
        return FacingMode.FRONT if self is FacingMode.REAR else FacingMode.REAR


class SessionState(str, enum.Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    ARMED = "armed"
    SUSPENDED = "suspended"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass(frozen=True)
class DecodedText:
    text: str


@dataclass(frozen=True)
class DecodeMiss:
    """No code visible in this frame."""


@dataclass(frozen=True)
class DecoderFailure:
    message: str
    kind: str = "init_failed"


DecodeEvent = Union[DecodedText, DecodeMiss, DecoderFailure]


class Decoder:
    """Camera decoder collaborator.

    ``events`` is single-use: once it ends, a new decoder is needed.
    """

    async def start(self, facing_mode: FacingMode) -> None:
        """Open the camera; raise ScannerInitError when it cannot."""
        raise NotImplementedError

    async def pause(self) -> None:
        raise NotImplementedError

    async def resume(self) -> None:
        raise NotImplementedError

    async def stop(self) -> None:
        """Release the camera. Must tolerate being called more than once."""
        raise NotImplementedError

    def events(self) -> AsyncIterator[DecodeEvent]:
        raise NotImplementedError


@dataclass(frozen=True)
class SessionError:
    kind: str
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ScanSession:
    def __init__(
        self,
        decoder_factory: Callable[[], Decoder],
        engine: CheckInEngine,
        facing_mode: FacingMode = FacingMode.REAR,
        init_timeout: Optional[float] = None,
        on_update: Optional[Callable[["ScanSession"], Awaitable[None]]] = None,
    ):
        self.decoder_factory = decoder_factory
        self.engine = engine
        self.facing_mode = FacingMode(facing_mode)
        self.init_timeout = init_timeout
        self.on_update = on_update

        self.state = SessionState.IDLE
        self.active_facing_mode: Optional[FacingMode] = None
        self.last_result: Optional[ScanResult] = None
        self.error: Optional[SessionError] = None
        self.evaluated = 0
        self.dropped = 0

        self._decoder: Optional[Decoder] = None
        # Bumped on every teardown; work started under an older generation is stale
        self._generation = 0

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.cancel()
        return False

    @property
    def awaiting_acknowledgement(self) -> bool:
        return self.state == SessionState.SUSPENDED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> SessionState:
        """Initialise the decoder, falling back to the other camera once"""
        if self.state == SessionState.CLOSED:
            logger.info("Ignoring start on a closed scan session")
            return self.state

        await self._release()
        self._generation += 1
        generation = self._generation
        self.state = SessionState.INITIALIZING
        self.error = None
        self.last_result = None

        failure = None
        for mode in (self.facing_mode, self.facing_mode.alternate):
            decoder = self.decoder_factory()
            self._decoder = decoder
            try:
                await self._start_decoder(decoder, mode)
            except ScannerInitError as e:
                logger.warning(f"Camera start failed ({mode.value}): {e}")
                failure = e
                await self._release(decoder)
                if generation != self._generation:
                    return self.state
                continue
            except Exception as e:
                # Driver errors count as a failed start for this camera
                logger.exception(f"Camera start raised ({mode.value})")
                failure = ScannerInitError(str(e) or type(e).__name__)
                await self._release(decoder)
                if generation != self._generation:
                    return self.state
                continue
            except BaseException:
                await self._release(decoder)
                if generation == self._generation:
                    self.state = SessionState.IDLE
                raise

            if generation != self._generation:
                # Cancelled while the camera was starting
                await self._release(decoder)
                return self.state

            self.active_facing_mode = mode
            self.state = SessionState.ARMED
            logger.info(f"Scan session armed ({mode.value} camera)")
            await self._notify()
            return self.state

        self.state = SessionState.FAILED
        self.error = SessionError(failure.kind, str(failure))
        logger.error(f"Scan session failed: {self.error.kind}: {self.error.message}")
        await self._notify()
        return self.state

    async def restart(self) -> SessionState:
        """Operator-triggered restart after a fatal session error"""
        return await self.start()

    async def cancel(self) -> None:
        """Close the session and release the camera, whatever the current state"""
        self._generation += 1
        previous = self.state
        self.state = SessionState.CLOSED
        await self._release()
        if previous != SessionState.CLOSED:
            logger.info(f"Scan session closed (was {previous.value})")
            await self._notify()

    close = cancel

    async def set_facing_mode(self, mode: FacingMode) -> SessionState:
        """Switch cameras by tearing the decoder down and starting again"""
        mode = FacingMode(mode)
        self.facing_mode = mode
        if self.state == SessionState.CLOSED:
            return self.state
        if self.state in (SessionState.ARMED, SessionState.SUSPENDED) and self.active_facing_mode == mode:
            return self.state
        return await self.start()

    # ------------------------------------------------------------------
    # Event gate
    # ------------------------------------------------------------------

    async def handle_event(self, event: DecodeEvent) -> Optional[ScanResult]:
        """Apply one decoder event; returns a result only when a scan was evaluated"""
        if isinstance(event, DecodeMiss):
            return None

        if self.state in (SessionState.CLOSED, SessionState.IDLE, SessionState.FAILED):
            self.dropped += 1
            return None

        if isinstance(event, DecoderFailure):
            await self._fail(SessionError(event.kind, event.message))
            return None

        if self.state != SessionState.ARMED:
            self.dropped += 1
            logger.debug(f"Dropped decode while {self.state.value}")
            return None

        # Latch before evaluating so a repeat frame cannot slip through
        self.state = SessionState.SUSPENDED
        decoder = self._decoder
        if decoder is not None:
            await decoder.pause()

        generation = self._generation
        try:
            result = await asyncio.to_thread(self.engine.process, event.text)
        except Exception:
            logger.exception(f"Check-in evaluation raised for {event.text!r}")
            result = try_again(datetime.now(timezone.utc))
        self.evaluated += 1
        if generation != self._generation:
            # Torn down while evaluating; the outcome stands but the session moved on
            return result
        self.last_result = result
        await self._notify()
        return result

    async def acknowledge(self) -> bool:
        """Operator dismissed the outcome: re-arm and resume decoding"""
        if self.state != SessionState.SUSPENDED:
            return False

        self.last_result = None
        self.state = SessionState.ARMED
        if self._decoder is not None:
            await self._decoder.resume()
        await self._notify()
        return True

    async def run(self) -> None:
        """Feed decoder events through the gate until the session stops scanning"""
        while self.state in (SessionState.ARMED, SessionState.SUSPENDED):
            decoder, generation = self._decoder, self._generation
            if decoder is None:
                return
            async for event in decoder.events():
                if generation != self._generation:
                    break
                await self.handle_event(event)

            if generation == self._generation and self.state in (SessionState.ARMED, SessionState.SUSPENDED):
                logger.info("Decoder stream ended; closing scan session")
                await self.cancel()

    def status(self) -> dict:
        return {
            "state": self.state.value,
            "scanning": self.state == SessionState.ARMED,
            "awaiting_acknowledgement": self.awaiting_acknowledgement,
            "facing_mode": self.facing_mode.value,
            "active_facing_mode": self.active_facing_mode.value if self.active_facing_mode else None,
            "last_result": self.last_result.to_dict() if self.last_result else None,
            "error": self.error.to_dict() if self.error else None,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _start_decoder(self, decoder: Decoder, mode: FacingMode):
        if self.init_timeout is None:
            await decoder.start(mode)
            return
        try:
            await asyncio.wait_for(decoder.start(mode), timeout=self.init_timeout)
        except asyncio.TimeoutError as e:
            raise ScannerInitError("Camera did not start in time", kind="camera_unavailable") from e

    async def _fail(self, error: SessionError):
        self._generation += 1
        self.state = SessionState.FAILED
        self.error = error
        await self._release()
        logger.error(f"Scan session failed: {error.kind}: {error.message}")
        await self._notify()

    async def _release(self, decoder: Optional[Decoder] = None):
        """Stop the given decoder, or the current one; safe to repeat"""
        target = decoder or self._decoder
        if target is None:
            return
        if target is self._decoder:
            self._decoder = None
        try:
            await target.stop()
        except Exception as e:
            logger.warning(f"Decoder stop raised: {e}")

    async def _notify(self):
        if self.on_update is not None:
            await self.on_update(self)
