"""
Realtime relay - one process-wide websocket connection manager.

Sockets subscribe to named rooms:
- user_{user_id}            joined on connect
- job_seeker_{id} / employer_{id}   joined on connect by role
- application_{id}          joined on request by the client

Handlers publish with `publish(rooms, event, data)`; frames are
{"event": ..., "data": ...}.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, Iterable, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class ConnectionManager:

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = defaultdict(set)
        self.memberships: Dict[WebSocket, Set[str]] = {}

    async def connect(self, websocket: WebSocket, rooms: Iterable[str] = ()) -> None:
        await websocket.accept()
        self.memberships[websocket] = set()
        for room in rooms:
            self.join(websocket, room)

    def disconnect(self, websocket: WebSocket) -> None:
        for room in self.memberships.pop(websocket, set()):
            members = self.rooms.get(room)
            if members is not None:
                members.discard(websocket)
                if not members:
                    del self.rooms[room]

    def join(self, websocket: WebSocket, room: str) -> None:
        self.rooms[room].add(websocket)
        self.memberships.setdefault(websocket, set()).add(room)

    def leave(self, websocket: WebSocket, room: str) -> None:
        members = self.rooms.get(room)
        if members is not None:
            members.discard(websocket)
            if not members:
                del self.rooms[room]
        self.memberships.get(websocket, set()).discard(room)

    def room_size(self, room: str) -> int:
        return len(self.rooms.get(room, ()))

    async def emit(self, room: str, event: str, data) -> int:
        return await self.emit_many([room], event, data)

    async def emit_many(self, rooms: Iterable[str], event: str, data) -> int:
        """Send one frame to every socket in any of the rooms, once each."""
        targets = set()
        for room in rooms:
            targets.update(self.rooms.get(room, ()))

        frame = {"event": event, "data": jsonable_encoder(data)}
        delivered = 0
        for websocket in targets:
            try:
                await websocket.send_json(frame)
                delivered += 1
            except Exception as e:
                logger.warning("Dropping websocket after send failure: %s", e)
                self.disconnect(websocket)
        return delivered


manager = ConnectionManager()

_pending_tasks = set()


def publish(rooms: Iterable[str], event: str, data) -> None:
    """
    Fire-and-forget emit usable from sync code.

    Schedules on the running event loop; outside a loop (cron script)
    there are no sockets to reach and the event is dropped.
    """
    rooms = list(rooms)
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("No event loop, dropping realtime event %s for %s", event, rooms)
        return
    task = loop.create_task(manager.emit_many(rooms, event, data))
    _pending_tasks.add(task)
    task.add_done_callback(_pending_tasks.discard)
