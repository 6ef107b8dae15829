"""
Purpose: Typed publish/subscribe boundary between client, driver and admin.
What it does:
- subscribe(appointment_id, handler) / publish(message) for StatusChanged and LocationUpdated
- joins the transport room of every appointment that has at least one subscriber
- reports transport loss (connection_lost) and recovery (reconnected)

Delivery is at-least-once with no ordering guarantee. While the transport is down,
outbound messages are dropped (never buffered) and nothing is replayed after a
reconnect. Consumers must re-fetch authoritative state on `reconnected`.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Protocol

from .messages import ChannelMessage, decode_message, encode_message
from .transports import ConnectionCallback, Frame, FrameCallback

logger = logging.getLogger(__name__)

MessageHandler = Callable[[ChannelMessage], None]
Signal = Callable[[], None]


class Transport(Protocol):
    connected: bool

    def bind(self, on_frame: FrameCallback, on_connection_change: ConnectionCallback) -> None: ...

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    def join(self, room: str) -> None: ...

    def leave(self, room: str) -> None: ...

    def send(self, frame: Frame) -> bool: ...


class LiveLocationChannel:
    """
    One instance per actor session, injected wherever it is needed (never a module global).
    """
    def __init__(self, transport: Transport):
        self.transport = transport
        self._handlers: Dict[str, List[MessageHandler]] = {}
        self._lost_callbacks: List[Signal] = []
        self._reconnected_callbacks: List[Signal] = []
        self._was_connected = transport.connected
        self._outage = False
        transport.bind(self._on_frame, self._on_connection_change)

    @property
    def connected(self) -> bool:
        return self.transport.connected

    async def connect(self) -> None:
        await self.transport.connect()

    async def close(self) -> None:
        await self.transport.close()

    # ------------------------------------------------------------------
    # pub/sub
    # ------------------------------------------------------------------

    def subscribe(self, appointment_id: str, handler: MessageHandler) -> Callable[[], None]:
        """
        Register handler for every message about appointment_id.
        Returns an unsubscribe function (safe to call twice).
        """
        handlers = self._handlers.setdefault(appointment_id, [])
        if not handlers and self.connected:
            self.transport.join(appointment_id)
        handlers.append(handler)

        def unsubscribe() -> None:
            current = self._handlers.get(appointment_id)
            if not current or handler not in current:
                return
            current.remove(handler)
            if not current:
                del self._handlers[appointment_id]
                if self.connected:
                    self.transport.leave(appointment_id)

        return unsubscribe

    def publish(self, message: ChannelMessage) -> bool:
        """
        Send message to the other parties of its appointment.
        Returns False when it was dropped because the transport is down.
        """
        if not self.connected:
            logger.debug("Channel down, dropping %s for %s", type(message).__name__, message.appointment_id)
            return False
        return self.transport.send(encode_message(message))

    # ------------------------------------------------------------------
    # connection signals
    # ------------------------------------------------------------------

    def on_connection_lost(self, callback: Signal) -> Callable[[], None]:
        self._lost_callbacks.append(callback)
        return lambda: self._remove(self._lost_callbacks, callback)

    def on_reconnected(self, callback: Signal) -> Callable[[], None]:
        self._reconnected_callbacks.append(callback)
        return lambda: self._remove(self._reconnected_callbacks, callback)

    @staticmethod
    def _remove(callbacks: List[Signal], callback: Signal) -> None:
        if callback in callbacks:
            callbacks.remove(callback)

    # ------------------------------------------------------------------
    # transport callbacks
    # ------------------------------------------------------------------

    def _on_frame(self, frame: Frame) -> None:
        try:
            message = decode_message(frame)
        except ValueError as exc:
            logger.warning("Dropping undecodable frame: %s", exc)
            return

        for handler in list(self._handlers.get(message.appointment_id, ())):
            try:
                handler(message)
            except Exception:
                logger.exception("Channel handler failed for appointment %s", message.appointment_id)

    def _on_connection_change(self, connected: bool) -> None:
        if not connected:
            if self._was_connected and not self._outage:
                self._outage = True
                logger.warning("Realtime connection lost")
                self._fire(self._lost_callbacks)
            return

        # (re)connected: rooms are server-side state, join them again
        for appointment_id in self._handlers:
            self.transport.join(appointment_id)

        recovered = self._outage
        self._outage = False
        self._was_connected = True
        if recovered:
            logger.info("Realtime connection restored")
            self._fire(self._reconnected_callbacks)

    @staticmethod
    def _fire(callbacks: List[Signal]) -> None:
        for callback in list(callbacks):
            try:
                callback()
            except Exception:
                logger.exception("Connection signal handler failed")
