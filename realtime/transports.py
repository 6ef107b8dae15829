"""
Purpose: Bidirectional frame transports underneath LiveLocationChannel.
What it does:
- HubTransport / InMemoryHub: in-process room fan-out (tests, simulation, single-process demos).
  Supports disconnect()/reconnect() to simulate network outages.
- WebSocketTransport: aiohttp websocket client talking to the realtime server
  (join-appointment-room, appointment-status-updated, driver-location-updated).

A transport moves JSON-able dict frames. It reports inbound frames and
connection changes through the two callbacks handed to bind().
Rule: no buffering while disconnected. Frames sent during an outage are dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, Set

import aiohttp

logger = logging.getLogger(__name__)

Frame = Dict[str, Any]
FrameCallback = Callable[[Frame], None]
ConnectionCallback = Callable[[bool], None]

JOIN_ROOM = "join-appointment-room"
LEAVE_ROOM = "leave-appointment-room"


class BaseTransport:
    """Callback plumbing shared by every transport."""

    def __init__(self):
        self.connected = False
        self._on_frame: Optional[FrameCallback] = None
        self._on_connection_change: Optional[ConnectionCallback] = None

    def bind(self, on_frame: FrameCallback, on_connection_change: ConnectionCallback) -> None:
        self._on_frame = on_frame
        self._on_connection_change = on_connection_change

    def _deliver(self, frame: Frame) -> None:
        if self._on_frame is not None:
            self._on_frame(frame)

    def _set_connected(self, connected: bool) -> None:
        if connected == self.connected:
            return
        self.connected = connected
        if self._on_connection_change is not None:
            self._on_connection_change(connected)


# -------------------------
# in-process hub
# -------------------------
class InMemoryHub:
    """
    Room-based fan-out between HubTransports living in the same process.

    A frame sent by one transport is delivered to every *other* connected
    transport that joined the frame's appointment room.
    """
    def __init__(self):
        self._rooms: Dict[str, Set[HubTransport]] = {}

    def transport(self) -> HubTransport:
        return HubTransport(self)

    def join(self, room: str, transport: HubTransport) -> None:
        self._rooms.setdefault(room, set()).add(transport)

    def leave(self, room: str, transport: HubTransport) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(transport)
        if not members:
            del self._rooms[room]

    def broadcast(self, room: str, frame: Frame, sender: HubTransport) -> int:
        delivered = 0
        # copy: a receiver may join/leave rooms while handling the frame
        for member in list(self._rooms.get(room, ())):
            if member is sender or not member.connected:
                continue
            member._deliver(dict(frame))
            delivered += 1
        return delivered


class HubTransport(BaseTransport):
    def __init__(self, hub: InMemoryHub):
        super().__init__()
        self.hub = hub
        self._rooms: Set[str] = set()

    async def connect(self) -> None:
        self._set_connected(True)

    async def close(self) -> None:
        for room in list(self._rooms):
            self.leave(room)
        self._set_connected(False)

    def join(self, room: str) -> None:
        self._rooms.add(room)
        self.hub.join(room, self)

    def leave(self, room: str) -> None:
        self._rooms.discard(room)
        self.hub.leave(room, self)

    def send(self, frame: Frame) -> bool:
        if not self.connected:
            return False
        room = frame.get("appointmentId")
        if room is None:
            return False
        self.hub.broadcast(str(room), frame, self)
        return True

    # outage simulation
    def disconnect(self) -> None:
        self._set_connected(False)

    def reconnect(self) -> None:
        self._set_connected(True)


# -------------------------
# websocket client
# -------------------------
class WebSocketTransport(BaseTransport):
    """
    aiohttp websocket client.

    Outbound frames go through a bounded queue drained by a writer task;
    when the queue is full the oldest frame is dropped (only the latest
    position matters). The reader task reports inbound frames and
    flags the connection as lost when the socket closes or errors.
    """
    def __init__(self, url: str, token: Optional[str] = None,
                 session: Optional[aiohttp.ClientSession] = None,
                 max_queue: int = 256, heartbeat: float = 20.0):
        super().__init__()
        self.url = url
        self.token = token
        self.heartbeat = heartbeat
        self._session = session
        self._owns_session = session is None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._out_q: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self._reader: Optional[asyncio.Task] = None
        self._writer: Optional[asyncio.Task] = None

    async def connect(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else None
        self._ws = await self._session.ws_connect(self.url, headers=headers, heartbeat=self.heartbeat)
        self._reader = asyncio.create_task(self._read_loop())
        self._writer = asyncio.create_task(self._write_loop())
        logger.info("Realtime websocket connected to %s", self.url)
        self._set_connected(True)

    async def reconnect(self) -> None:
        await self._teardown()
        self._set_connected(False)
        await self.connect()

    async def close(self) -> None:
        await self._teardown()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
        self._set_connected(False)

    def join(self, room: str) -> None:
        self.send({"type": JOIN_ROOM, "appointmentId": room})

    def leave(self, room: str) -> None:
        self.send({"type": LEAVE_ROOM, "appointmentId": room})

    def send(self, frame: Frame) -> bool:
        if not self.connected:
            return False
        # keep only the latest frames if the queue is full
        if self._out_q.full():
            try:
                self._out_q.get_nowait()
            except asyncio.QueueEmpty:
                pass
        self._out_q.put_nowait(frame)
        return True

    async def _read_loop(self) -> None:
        ws = self._ws
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        frame = json.loads(msg.data)
                    except ValueError:
                        logger.warning("Dropping non-JSON websocket frame")
                        continue
                    self._deliver(frame)
                elif msg.type in (aiohttp.WSMsgType.ERROR, aiohttp.WSMsgType.CLOSED):
                    break
        finally:
            if ws is self._ws:
                self._drop_outbound()
                self._set_connected(False)

    async def _write_loop(self) -> None:
        ws = self._ws
        while True:
            frame = await self._out_q.get()
            try:
                await ws.send_str(json.dumps(frame))
            except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as exc:
                logger.warning("Websocket send failed: %s", exc)
                self._drop_outbound()
                self._set_connected(False)
                return

    def _drop_outbound(self) -> None:
        while not self._out_q.empty():
            self._out_q.get_nowait()

    async def _teardown(self) -> None:
        for task in (self._reader, self._writer):
            if task is not None and not task.done():
                task.cancel()
        self._reader = self._writer = None
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        self._ws = None
        self._drop_outbound()
