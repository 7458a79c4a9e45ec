"""Persistent push connection to the chore server.

One ``RealtimeChannel`` per session, owned by the client composition root and
injected wherever events are consumed. The channel authenticates itself after
the socket opens, decodes frames into typed events, hands them to listeners
and reconnects with a linear backoff when the connection drops.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

from pydantic import ValidationError as PydanticValidationError
from websockets.asyncio.client import connect as websocket_connect
from websockets.exceptions import WebSocketException

from chore_cycle.config import settings
from chore_cycle.models.events import WILDCARD, ControlType, EventType, is_domain_event, parse_chore_event

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]

# Anything that means "this connection is gone"
TRANSPORT_ERRORS = (OSError, EOFError, asyncio.TimeoutError, WebSocketException)


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    OPEN = "open"


@dataclass(frozen=True)
class Credentials:
    token: str
    user_id: str


@dataclass(frozen=True)
class HandlerFailure:
    """A listener raised while handling a message."""

    event_type: str
    handler: Handler
    error: Exception
    message: Any


class Transport(Protocol):
    async def send(self, message: str) -> None: ...

    async def recv(self) -> Union[str, bytes]: ...

    async def close(self) -> None: ...


TransportFactory = Callable[[str], Awaitable[Transport]]


async def open_websocket(endpoint: str) -> Transport:
    return await websocket_connect(endpoint)


def _listener_key(event_type: Union[str, Enum]) -> str:
    return event_type.value if isinstance(event_type, Enum) else event_type


class RealtimeChannel:
    def __init__(
        self,
        transport_factory: Optional[TransportFactory] = None,
        base_delay: Optional[float] = None,
        max_reconnect_attempts: Optional[int] = None,
        handshake_timeout: Optional[float] = None,
    ):
        self._transport_factory = transport_factory or open_websocket
        self.base_delay = settings.reconnect_base_delay if base_delay is None else base_delay
        self.max_reconnect_attempts = (
            settings.max_reconnect_attempts if max_reconnect_attempts is None else max_reconnect_attempts
        )
        self.handshake_timeout = settings.http_timeout if handshake_timeout is None else handshake_timeout

        self.state = ChannelState.DISCONNECTED
        self.is_authenticated = False
        self.reconnect_attempts = 0

        self._listeners: Dict[str, List[Handler]] = {}
        self._error_listeners: List[Callable[[HandlerFailure], None]] = []
        self._transport: Optional[Transport] = None
        self._run_task: Optional[asyncio.Task] = None
        self._settled: Optional[asyncio.Event] = None
        self._should_reconnect = False
        self._endpoint: Optional[str] = None
        self._credentials: Optional[Credentials] = None

    @property
    def is_open(self) -> bool:
        return self.state == ChannelState.OPEN

    @property
    def reconnect_enabled(self) -> bool:
        return self._should_reconnect

    # Lifecycle

    async def connect(self, endpoint: Optional[str] = None, credentials: Optional[Credentials] = None) -> bool:
        """Open the connection, replacing any previous one.

        Returns once the first attempt settles: True when the channel is open
        (authenticated, or no credentials were given), False otherwise. A
        failed first attempt is left to the reconnect policy.
        """
        await self._stop_run_loop()

        self._endpoint = endpoint or settings.ws_url
        self._credentials = credentials
        self._should_reconnect = True
        self.reconnect_attempts = 0

        settled = asyncio.Event()
        self._settled = settled
        self._run_task = asyncio.create_task(self._run(settled))

        try:
            await asyncio.wait_for(settled.wait(), self.handshake_timeout)
        except asyncio.TimeoutError:
            logger.warning("No handshake reply from %s after %.1fs", self._endpoint, self.handshake_timeout)
            return False

        return self.is_open and (credentials is None or self.is_authenticated)

    async def disconnect(self) -> None:
        """Stop reconnecting, close the transport and drop every listener."""
        self._should_reconnect = False
        await self._stop_run_loop()
        self._listeners.clear()
        self.state = ChannelState.DISCONNECTED
        self.is_authenticated = False

    async def wait_closed(self) -> None:
        """Wait until the run loop ends (closed for good, or retries exhausted)."""
        task = self._run_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def reconnect_delay(self, attempt: int) -> float:
        return self.base_delay * attempt

    async def _stop_run_loop(self) -> None:
        task, self._run_task = self._run_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if self._transport is not None:
            await self._close_transport(self._transport)
            self._transport = None

    async def _run(self, settled: asyncio.Event) -> None:
        try:
            while True:
                await self._connect_once(settled)

                self.state = ChannelState.DISCONNECTED
                self.is_authenticated = False
                settled.set()

                if not self._should_reconnect:
                    break
                if self.reconnect_attempts >= self.max_reconnect_attempts:
                    logger.warning(
                        "Max reconnection attempts (%d) reached for %s",
                        self.max_reconnect_attempts, self._endpoint,
                    )
                    break

                self.reconnect_attempts += 1
                delay = self.reconnect_delay(self.reconnect_attempts)
                logger.info(
                    "Reconnecting in %.1fs (%d/%d)",
                    delay, self.reconnect_attempts, self.max_reconnect_attempts,
                )
                await asyncio.sleep(delay)
        finally:
            settled.set()

    async def _connect_once(self, settled: asyncio.Event) -> None:
        self.state = ChannelState.CONNECTING
        try:
            transport = await self._transport_factory(self._endpoint)
        except TRANSPORT_ERRORS as exc:
            logger.warning("WebSocket connection to %s failed: %s", self._endpoint, exc)
            return

        self._transport = transport
        self.reconnect_attempts = 0
        logger.info("WebSocket connected to %s", self._endpoint)
        try:
            if self._credentials is not None:
                self.state = ChannelState.AUTHENTICATING
                await transport.send(json.dumps({
                    "type": ControlType.AUTH.value,
                    "token": self._credentials.token,
                    "user_id": self._credentials.user_id,
                }))
            else:
                # Unauthenticated mode: usable as soon as the socket is open.
                self.state = ChannelState.OPEN
                await transport.send(json.dumps({"type": ControlType.PING.value}))
                settled.set()

            while True:
                self.handle_raw(await transport.recv())
        except TRANSPORT_ERRORS as exc:
            logger.info("WebSocket disconnected: %s", exc or type(exc).__name__)
        finally:
            if self._transport is transport:
                self._transport = None
            await self._close_transport(transport)

    @staticmethod
    async def _close_transport(transport: Transport) -> None:
        try:
            await transport.close()
        except TRANSPORT_ERRORS:
            logger.debug("Error while closing transport", exc_info=True)

    # Messages

    async def send(self, message: dict) -> bool:
        transport = self._transport
        if transport is None:
            logger.debug("Cannot send %s, connection not open", message.get("type"))
            return False
        try:
            await transport.send(json.dumps(message))
        except TRANSPORT_ERRORS as exc:
            logger.warning("Failed to send %s: %s", message.get("type"), exc)
            return False
        return True

    async def ping(self) -> bool:
        return await self.send({"type": ControlType.PING.value})

    def handle_raw(self, raw: Union[str, bytes]) -> None:
        """Decode one inbound frame and dispatch it."""
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            message = json.loads(raw)
        except ValueError:
            logger.debug("Dropping unparseable message: %r", raw)
            return
        if not isinstance(message, dict):
            logger.debug("Dropping non-object message: %r", message)
            return

        message_type = message.get("type")
        if not isinstance(message_type, str):
            logger.debug("Dropping message without a string type: %r", message)
            return
        if message_type == ControlType.AUTH_SUCCESS.value:
            self._on_auth_result(True)
        elif message_type == ControlType.AUTH_FAILED.value:
            self._on_auth_result(False)

        if is_domain_event(message_type):
            try:
                event = parse_chore_event(message)
            except PydanticValidationError as exc:
                logger.warning("Dropping malformed %s event: %s", message_type, exc)
                return
            self._emit(message_type, event)
        else:
            self._emit(message_type, message)

        self._emit(WILDCARD, message)

    def _on_auth_result(self, success: bool) -> None:
        self.is_authenticated = success
        self.state = ChannelState.OPEN
        if success:
            logger.info("WebSocket authenticated")
        else:
            # Still open, but the server has nothing to send us.
            logger.error("WebSocket authentication failed")
        if self._settled is not None:
            self._settled.set()

    # Listeners

    def on(self, event_type: Union[EventType, ControlType, str], handler: Handler) -> None:
        self._listeners.setdefault(_listener_key(event_type), []).append(handler)

    def off(self, event_type: Union[EventType, ControlType, str], handler: Handler) -> None:
        key = _listener_key(event_type)
        handlers = self._listeners.get(key)
        if not handlers:
            return
        self._listeners[key] = [h for h in handlers if h != handler]

    def listener_count(self, event_type: Union[EventType, ControlType, str]) -> int:
        return len(self._listeners.get(_listener_key(event_type), []))

    def on_error(self, listener: Callable[[HandlerFailure], None]) -> None:
        self._error_listeners.append(listener)

    def _emit(self, event_type: str, payload: Any) -> None:
        for handler in list(self._listeners.get(event_type, [])):
            try:
                handler(payload)
            except Exception as exc:
                logger.exception("Error in %s listener %r", event_type, handler)
                self._report(HandlerFailure(event_type, handler, exc, payload))

    def _report(self, failure: HandlerFailure) -> None:
        for listener in list(self._error_listeners):
            try:
                listener(failure)
            except Exception:
                logger.exception("Error listener failed")
