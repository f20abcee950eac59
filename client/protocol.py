"""
Protocol state machine for the dataset server.

Lifecycle: IDLE -> CONNECTING -> POLLING -> TERMINATED.

All work happens in one asyncio task consuming a queue of typed inbound
events (transport notifications, poll ticks, stop requests). That task is the
only writer of SessionState, so bounds, known events and the correlator
table are never observed half-updated.

Inbound frames carry no type field. They are classified by which keys are
present, first match wins:
  1. "events"           -> events update (new bounds, new event set, getData per event)
  2. "data"             -> data response (routed via _reqId, evaluated)
  3. message == "Lose"  -> terminate, failure exit code
  4. message == "Win"   -> terminate, exit code 0
  5. anything else      -> ignored
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum

from client import commands
from client.commands import REQ_ID_KEY, Command
from client.correlator import RequestCorrelator
from client.ws import (
    InboundEvent,
    PollTick,
    StopRequested,
    Transport,
    TransportClosed,
    TransportMessage,
    TransportOpened,
)
from matching import evaluate_pair
from matching.models import Bounds, Confirmation, DataSetPair, SessionStats, parse_bounds

logger = logging.getLogger(__name__)

EXIT_WIN = 0
EXIT_LOSE = 1
EXIT_FAILURE = 2

LOSE_MESSAGE = "Lose"
WIN_MESSAGE = "Win"


class ClientState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    POLLING = "polling"
    TERMINATED = "terminated"


class ProtocolError(Exception):
    """Base for inbound frames the client cannot act on."""
    pass


class MalformedMessage(ProtocolError):
    """Frame is not valid JSON or a recognised shape carries bad fields."""
    pass


@dataclass
class SessionState:
    """Mutated only from the protocol loop. bounds and event_ids change together."""
    bounds: Bounds | None = None
    event_ids: tuple[str, ...] = ()
    correlator: RequestCorrelator = field(default_factory=RequestCorrelator)
    stats: SessionStats = field(default_factory=SessionStats)


def decode_message(text: str) -> object:
    try:
        return json.loads(text)
    except (ValueError, TypeError, RecursionError) as e:
        raise MalformedMessage(f"unparseable frame: {e}") from e


class ProtocolClient:
    """
    Drives the poll -> fetch -> evaluate -> confirm pipeline over a Transport.

    Usage:
        client = ProtocolClient(WSTransport(url), poll_interval_sec=12.0)
        exit_code = await client.run()
    """

    def __init__(
        self,
        transport: Transport,
        poll_interval_sec: float,
        correlator: RequestCorrelator | None = None,
    ) -> None:
        if poll_interval_sec <= 0:
            raise ValueError("poll_interval_sec must be positive")
        self._transport = transport
        self._poll_interval_sec = poll_interval_sec
        if correlator is None:
            correlator = RequestCorrelator()
        self._session = SessionState(correlator=correlator)
        self._state = ClientState.IDLE
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._poll_task: asyncio.Task | None = None
        self._exit_code: int | None = None

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def stats(self) -> SessionStats:
        return self._session.stats

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    @property
    def inbox(self) -> asyncio.Queue:
        return self._inbox

    async def run(self) -> int:
        """Connect and process inbound events until terminated. Returns the exit code."""
        if self._state is not ClientState.IDLE:
            raise RuntimeError(f"client already started (state={self._state.value})")
        self._state = ClientState.CONNECTING
        await self._transport.open(self._inbox)

        while self._state is not ClientState.TERMINATED:
            event = await self._inbox.get()
            await self.dispatch(event)

        return self._exit_code

    def stop(self, exit_code: int = EXIT_WIN) -> None:
        """Request termination from outside the loop (signal handlers, callers)."""
        self._inbox.put_nowait(StopRequested(exit_code=exit_code))

    async def dispatch(self, event: InboundEvent) -> None:
        if self._state is ClientState.TERMINATED:
            return

        if isinstance(event, TransportOpened):
            self._on_open()
        elif isinstance(event, TransportMessage):
            await self.handle_message(event.text)
        elif isinstance(event, PollTick):
            if self._state is ClientState.POLLING:
                self._send_poll()
        elif isinstance(event, TransportClosed):
            logger.error("Transport closed unexpectedly: %s", event.reason)
            await self._terminate(EXIT_FAILURE)
        elif isinstance(event, StopRequested):
            logger.info("Stop requested")
            await self._terminate(event.exit_code)
        else:
            logger.warning("Unknown inbound event %r", event)

    # -- lifecycle ---------------------------------------------------------

    def _on_open(self) -> None:
        if self._state is not ClientState.CONNECTING:
            logger.warning("Ignoring open notification in state %s", self._state.value)
            return
        self._state = ClientState.POLLING
        self._send_poll()
        self._poll_task = asyncio.create_task(self._poll_timer())
        logger.info("Polling every %.1fs", self._poll_interval_sec)

    async def _poll_timer(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval_sec)
            self._inbox.put_nowait(PollTick())

    async def _terminate(self, exit_code: int) -> None:
        """Cancel the poll timer, then close the transport. Runs once."""
        if self._state is ClientState.TERMINATED:
            return
        self._state = ClientState.TERMINATED
        self._exit_code = exit_code

        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        await self._transport.close()
        logger.info("Session terminated (exit code %d): %s", exit_code, self.stats.summary())

    # -- inbound -----------------------------------------------------------

    async def handle_message(self, text: str) -> None:
        """Parse, classify and act on one inbound frame. Bad frames are logged and dropped."""
        if self._state is ClientState.TERMINATED:
            return
        logger.debug("<< %s", text)

        try:
            message = decode_message(text)
            await self._route(message)
        except ProtocolError as e:
            self.stats.malformed_messages += 1
            logger.warning("Discarded inbound frame: %s", e)

    async def _route(self, message: object) -> None:
        if not isinstance(message, dict):
            self.stats.ignored_messages += 1
            logger.debug("Ignoring non-object frame")
            return

        if isinstance(message.get("events"), dict):
            self._on_events(message)
        elif isinstance(message.get("data"), dict):
            self._on_data(message)
        elif message.get("message") == LOSE_MESSAGE:
            logger.warning("Server says: Lose")
            await self._terminate(EXIT_LOSE)
        elif message.get("message") == WIN_MESSAGE:
            logger.info("Server says: Win")
            await self._terminate(EXIT_WIN)
        else:
            self.stats.ignored_messages += 1
            logger.debug("Ignoring frame with unrecognised shape: keys=%s", sorted(message))

    def _on_events(self, message: dict) -> None:
        try:
            bounds = parse_bounds(message)
        except ValueError as e:
            raise MalformedMessage(f"events update: {e}") from e

        event_ids = tuple(message["events"])
        session = self._session
        session.bounds = bounds
        session.event_ids = event_ids
        session.correlator.reset()
        session.stats.event_updates += 1
        logger.info(
            "Events update: %d events, bounds (%s, %s)",
            len(event_ids), bounds.min_div, bounds.max_div,
        )

        for event_id in event_ids:
            if not event_id:
                logger.warning("Skipping event with empty id")
                continue
            req_id = session.correlator.next_id()
            session.correlator.track(req_id, event_id)
            self.send(commands.get_data(event_id), req_id)

    def _on_data(self, message: dict) -> None:
        self.stats.data_responses += 1
        req_id = message.get(REQ_ID_KEY)
        event_id = None
        if isinstance(req_id, str):
            event_id = self._session.correlator.resolve(req_id)
        if event_id is None:
            self.stats.stale_responses += 1
            logger.debug("Dropping data response for unknown request %s", req_id)
            return

        try:
            pair = DataSetPair.from_payload(message["data"])
        except ValueError as e:
            raise MalformedMessage(f"data response for event {event_id}: {e}") from e

        bounds = self._session.bounds
        if bounds is None:
            logger.warning("Data for event %s arrived before any bounds", event_id)
            return

        for hit in evaluate_pair(event_id, pair, bounds):
            self._send_confirmation(hit)

    # -- outbound ----------------------------------------------------------

    def send(self, command: Command, req_id: str | None = None) -> str:
        """Stamp, serialize and hand a command to the transport. Returns the request id."""
        if req_id is None:
            req_id = self._session.correlator.next_id()
        text = command.encode(req_id)
        logger.debug(">> %s", text)
        self._transport.send(text)
        return req_id

    def _send_poll(self) -> None:
        self.stats.polls_sent += 1
        self.send(commands.get_events())

    def _send_confirmation(self, hit: Confirmation) -> None:
        logger.info(
            "Match: event %s %s[%d] ratio %s",
            hit.event_id, hit.set_label, hit.index, hit.ratio,
        )
        self.stats.confirmations_sent += 1
        self.send(commands.confirm(hit.event_id, hit.set_label, hit.index, hit.ratio))
