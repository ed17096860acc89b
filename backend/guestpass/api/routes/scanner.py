"""Live scanner over a websocket.

The browser owns the camera and the QR decoder; it streams decode events
here and receives camera commands and session status back.

Browser -> server:
    {"type": "ready"}                          camera started
    {"type": "init_failed", "kind", "message"} camera could not start or died
    {"type": "decoded", "text"}                a code was read
    {"type": "miss"}                           frame without a code
    {"type": "ack"}                            operator dismissed the result
    {"type": "facing_mode", "mode"}            switch cameras
    {"type": "restart"} / {"type": "close"} / {"type": "status"}

Server -> browser:
    {"type": "camera_start", "facing_mode"}, {"type": "camera_pause"},
    {"type": "camera_resume"}, {"type": "camera_stop"},
    {"type": "status", ...ScanSession.status()}, {"type": "error", "detail"}
"""

import asyncio
import logging
from typing import Optional
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from guestpass.api.deps import get_check_in_engine
from guestpass.core.config import settings
from guestpass.core.deps import admin_from_token
from guestpass.core.exceptions import ScannerInitError
from guestpass.services.check_in import CheckInEngine
from guestpass.services.scan_session import (
    DecodedText,
    DecodeMiss,
    Decoder,
    DecoderFailure,
    FacingMode,
    ScanSession,
)

router = APIRouter()
logger = logging.getLogger(__name__)

DECODER_MESSAGES = {"ready", "init_failed", "decoded", "miss"}


class WebSocketDecoder(Decoder):
    """Decoder whose camera lives in the connected browser"""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._queue: asyncio.Queue = asyncio.Queue()
        self._ready: Optional[asyncio.Future] = None
        self._stopped = False

    async def start(self, facing_mode: FacingMode) -> None:
        self._ready = asyncio.get_running_loop().create_future()
        await self._send({"type": "camera_start", "facing_mode": facing_mode.value})
        await self._ready

    async def pause(self) -> None:
        await self._send({"type": "camera_pause"})

    async def resume(self) -> None:
        await self._send({"type": "camera_resume"})

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._ready is not None and not self._ready.done():
            self._ready.set_exception(ScannerInitError("Camera released before it started", kind="released"))
        self._queue.put_nowait(None)
        await self._send({"type": "camera_stop"})

    async def events(self):
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    def feed(self, message: dict) -> None:
        """Route one browser message into this decoder"""
        if self._stopped:
            return

        kind = message.get("type")
        if kind == "ready":
            if self._ready is not None and not self._ready.done():
                self._ready.set_result(None)
        elif kind == "init_failed":
            text = str(message.get("message") or "Camera unavailable")
            error_kind = str(message.get("kind") or "init_failed")
            if self._ready is not None and not self._ready.done():
                self._ready.set_exception(ScannerInitError(text, kind=error_kind))
            else:
                self._queue.put_nowait(DecoderFailure(text, error_kind))
        elif kind == "decoded":
            self._queue.put_nowait(DecodedText(str(message.get("text", ""))))
        elif kind == "miss":
            self._queue.put_nowait(DecodeMiss())

    async def _send(self, message: dict):
        try:
            await self.websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"Scanner socket gone, dropped {message['type']}: {e}")


@router.websocket("/scanner/ws")
async def scanner_socket(
    websocket: WebSocket,
    token: Optional[str] = None,
    engine: CheckInEngine = Depends(get_check_in_engine),
):
    admin = admin_from_token(token or websocket.cookies.get("access_token"))
    if admin is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info(f"Scanner connected ({admin['username']})")

    decoders = []

    def make_decoder() -> Decoder:
        decoder = WebSocketDecoder(websocket)
        decoders.append(decoder)
        return decoder

    async def push_status(session: ScanSession):
        try:
            await websocket.send_json({"type": "status", **session.status()})
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"Scanner socket gone, status not sent: {e}")

    session = ScanSession(
        make_decoder,
        engine,
        facing_mode=FacingMode(settings.SCANNER_FACING_MODE),
        init_timeout=settings.SCANNER_INIT_TIMEOUT_SECONDS,
        on_update=push_status,
    )
    pump: Optional[asyncio.Task] = None

    async def drive(first_step):
        await first_step
        await session.run()

    async def launch(first_step):
        # Start must not block the reader: it waits on the browser's "ready"
        nonlocal pump
        if pump is not None and not pump.done():
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass
        pump = asyncio.create_task(drive(first_step))

    await launch(session.start())
    try:
        while True:
            message = await websocket.receive_json()
            kind = message.get("type")

            if kind in DECODER_MESSAGES:
                if decoders:
                    decoders[-1].feed(message)
            elif kind == "ack":
                await session.acknowledge()
            elif kind == "restart":
                await launch(session.restart())
            elif kind == "facing_mode":
                try:
                    mode = FacingMode(message.get("mode"))
                except ValueError:
                    await websocket.send_json({"type": "error", "detail": "Unknown facing mode"})
                    continue
                await launch(session.set_facing_mode(mode))
            elif kind == "status":
                await push_status(session)
            elif kind == "close":
                await session.cancel()
                await websocket.close()
                break
            else:
                await websocket.send_json({"type": "error", "detail": f"Unknown message type {kind!r}"})
    except WebSocketDisconnect:
        logger.info("Scanner disconnected")
    finally:
        session.on_update = None
        if pump is not None and not pump.done():
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass
        await session.cancel()
        logger.info(f"Scanner session ended: {session.evaluated} evaluated, {session.dropped} dropped")
