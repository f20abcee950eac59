"""
WebSocket transport for the dataset server. Posts open/message/close
notifications into the caller's inbox queue; never reconnects.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol, Union, runtime_checkable

import websockets
from websockets.asyncio.client import connect

logger = logging.getLogger(__name__)

OUTBOX_MAXSIZE = 10000


@dataclass(frozen=True)
class TransportOpened:
    pass


@dataclass(frozen=True)
class TransportMessage:
    text: str


@dataclass(frozen=True)
class TransportClosed:
    reason: str = ""


@dataclass(frozen=True)
class PollTick:
    pass


@dataclass(frozen=True)
class StopRequested:
    exit_code: int = 0


InboundEvent = Union[TransportOpened, TransportMessage, TransportClosed, PollTick, StopRequested]


@runtime_checkable
class Transport(Protocol):
    """Duplex text channel. Notifications arrive on the inbox passed to open()."""

    async def open(self, inbox: asyncio.Queue) -> None:
        """Start connecting. Posts TransportOpened or TransportClosed."""
        ...

    def send(self, text: str) -> None:
        """Queue a frame for sending. Never blocks."""
        ...

    async def close(self) -> None:
        """Close the channel. Safe to call more than once."""
        ...


@dataclass
class WSTransport:
    """
    Transport over a single websockets client connection.
    Outbound frames go through a bounded queue drained by a writer task.
    """
    url: str
    open_timeout: float = 10.0
    _inbox: asyncio.Queue | None = None
    _outbox: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=OUTBOX_MAXSIZE))
    _ws: object = None
    _reader: asyncio.Task | None = None
    _writer: asyncio.Task | None = None
    _closed: bool = False

    async def open(self, inbox: asyncio.Queue) -> None:
        self._inbox = inbox
        try:
            self._ws = await connect(self.url, open_timeout=self.open_timeout)
        except (websockets.InvalidURI, websockets.InvalidHandshake, OSError, TimeoutError) as e:
            logger.error("WebSocket connection to %s failed: %s", self.url, e)
            inbox.put_nowait(TransportClosed(reason=f"connect failed: {e}"))
            return

        logger.info("WebSocket connected to %s", self.url)
        inbox.put_nowait(TransportOpened())
        self._reader = asyncio.create_task(self._read_loop())
        self._writer = asyncio.create_task(self._write_loop())

    def send(self, text: str) -> None:
        if self._closed:
            logger.debug("Dropping frame after close: %s", text[:200])
            return
        try:
            self._outbox.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning("Outbound queue full, dropped frame: %s", text[:200])

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for task in (self._reader, self._writer):
            if task and task is not asyncio.current_task():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        if self._ws is not None:
            await self._ws.close()
        logger.info("WebSocket to %s closed", self.url)

    async def _read_loop(self) -> None:
        reason = "server closed connection"
        try:
            async for raw_msg in self._ws:
                if isinstance(raw_msg, bytes):
                    raw_msg = raw_msg.decode("utf-8", errors="replace")
                self._inbox.put_nowait(TransportMessage(raw_msg))
        except websockets.ConnectionClosed as e:
            reason = f"connection closed: {e}"
        except OSError as e:
            reason = f"connection error: {e}"
        except Exception as e:
            logger.error("WebSocket reader failed: %s", e, exc_info=True)
            reason = f"reader failed: {e}"
        if not self._closed:
            logger.warning("WebSocket %s", reason)
            self._inbox.put_nowait(TransportClosed(reason=reason))

    async def _write_loop(self) -> None:
        while True:
            text = await self._outbox.get()
            try:
                await self._ws.send(text)
            except websockets.ConnectionClosed as e:
                # the reader reports the close
                logger.warning("Send failed, connection closed: %s", e)
                return
