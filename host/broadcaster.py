from __future__ import annotations

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from http import HTTPStatus
from typing import Dict, Iterable, List, Optional, Set

import websockets
from websockets.asyncio.server import ServerConnection
from websockets.http11 import Request, Response

from ledger.models import EventKind

LOGGER = logging.getLogger("poker_ledger.hub")

# TableBroadcaster multiplexes websocket clients into per-table rooms.
# publish() only enqueues; each connection drains its own queue so a slow
# client never holds up the request that produced the event.

PRESENCE_JOINED = "user:joined"
PRESENCE_LEFT = "user:left"

_client_ids = itertools.count(1)


def _json_default(value: object) -> object:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _now_ts() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(eq=False)
class Subscriber:
    websocket: ServerConnection
    queue: asyncio.Queue
    client_id: str = field(default_factory=lambda: f"C-{next(_client_ids):05d}")
    rooms: Set[str] = field(default_factory=set)
    writer_task: Optional[asyncio.Task] = None
    dropped: int = 0


class TableBroadcaster:
    """Process-wide fan-out of ledger events to websocket clients, grouped by table."""

    def __init__(self, queue_size: int = 256) -> None:
        self.queue_size = queue_size
        self.rooms: Dict[str, Set[Subscriber]] = {}
        self.subscribers: Set[Subscriber] = set()

    # Registry --------------------------------------------------------

    def register(self, websocket: ServerConnection) -> Subscriber:
        subscriber = Subscriber(websocket=websocket, queue=asyncio.Queue(maxsize=self.queue_size))
        subscriber.writer_task = asyncio.create_task(self._writer(subscriber))
        self.subscribers.add(subscriber)
        LOGGER.info("Client %s connected", subscriber.client_id)
        return subscriber

    def unregister(self, subscriber: Subscriber) -> List[str]:
        rooms = sorted(subscriber.rooms)
        for table_id in rooms:
            self._discard(subscriber, table_id)
        subscriber.rooms.clear()
        self.subscribers.discard(subscriber)
        if subscriber.writer_task:
            subscriber.writer_task.cancel()
        LOGGER.info("Client %s disconnected (rooms=%s)", subscriber.client_id, rooms)
        return rooms

    def join(self, subscriber: Subscriber, table_id: str) -> None:
        self.rooms.setdefault(table_id, set()).add(subscriber)
        subscriber.rooms.add(table_id)
        LOGGER.info("Client %s joined table:%s", subscriber.client_id, table_id)

    def leave(self, subscriber: Subscriber, table_id: str) -> bool:
        if table_id not in subscriber.rooms:
            return False
        subscriber.rooms.discard(table_id)
        self._discard(subscriber, table_id)
        LOGGER.info("Client %s left table:%s", subscriber.client_id, table_id)
        return True

    def room_size(self, table_id: str) -> int:
        return len(self.rooms.get(table_id, ()))

    def _discard(self, subscriber: Subscriber, table_id: str) -> None:
        members = self.rooms.get(table_id)
        if members is None:
            return
        members.discard(subscriber)
        if not members:
            del self.rooms[table_id]

    # Publishing ------------------------------------------------------

    def publish(self, table_id: str, kind: EventKind, payload: Dict[str, object]) -> int:
        """Queue an event for everyone in the table's room. Never blocks."""
        members = self.rooms.get(table_id)
        if not members:
            return 0
        message = self._event_envelope(kind.value, table_id, payload)
        delivered = self._enqueue(members, message)
        LOGGER.debug("Broadcasted %s to table:%s (%s clients)", kind.value, table_id, delivered)
        return delivered

    async def flush(self) -> None:
        """Wait until every queued message has been handed to its socket."""
        await asyncio.gather(*(subscriber.queue.join() for subscriber in list(self.subscribers)))

    async def close(self) -> None:
        for subscriber in list(self.subscribers):
            self.unregister(subscriber)

    def _enqueue(self, targets: Iterable[Subscriber], message: str) -> int:
        delivered = 0
        for subscriber in targets:
            try:
                subscriber.queue.put_nowait(message)
            except asyncio.QueueFull:
                subscriber.dropped += 1
                LOGGER.warning(
                    "Client %s outbound queue full; dropped message (%s dropped so far)",
                    subscriber.client_id,
                    subscriber.dropped,
                )
                continue
            delivered += 1
        return delivered

    async def _writer(self, subscriber: Subscriber) -> None:
        while True:
            message = await subscriber.queue.get()
            try:
                await subscriber.websocket.send(message)
            except websockets.ConnectionClosed:
                LOGGER.debug("Client %s closed before delivery", subscriber.client_id)
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Send to client %s failed: %s", subscriber.client_id, exc)
            finally:
                subscriber.queue.task_done()

    # Connection handling ---------------------------------------------

    async def handle_connection(self, websocket: ServerConnection) -> None:
        subscriber = self.register(websocket)
        self._reply(subscriber, "welcome", {"client_id": subscriber.client_id})
        try:
            async for raw in websocket:
                self._handle_message(subscriber, raw)
        except websockets.ConnectionClosed:
            pass
        finally:
            rooms = self.unregister(subscriber)
            for table_id in rooms:
                self._presence(subscriber, table_id, PRESENCE_LEFT)

    def _handle_message(self, subscriber: Subscriber, raw: object) -> None:
        message = self._decode(raw)
        if message is None:
            self._send_error(subscriber, code="BAD_JSON", msg="Messages must be JSON objects")
            return
        msg_type = message.get("type")
        if msg_type == "ping":
            self._reply(subscriber, "pong", {})
            return
        if msg_type not in ("join", "leave"):
            self._send_error(subscriber, code="UNKNOWN_TYPE", msg="Unsupported message type")
            return

        table_raw = message.get("table_id")
        table_id = table_raw.strip() if isinstance(table_raw, str) else ""
        if not table_id:
            self._send_error(subscriber, code="BAD_SCHEMA", msg="table_id required")
            return

        if msg_type == "join":
            self.join(subscriber, table_id)
            self._reply(subscriber, "joined", {"table_id": table_id})
            self._presence(subscriber, table_id, PRESENCE_JOINED)
        elif self.leave(subscriber, table_id):
            self._reply(subscriber, "left", {"table_id": table_id})
            self._presence(subscriber, table_id, PRESENCE_LEFT)
        else:
            self._send_error(subscriber, code="NOT_IN_ROOM", msg=f"Not subscribed to table {table_id}")

    def _presence(self, subscriber: Subscriber, table_id: str, event: str) -> None:
        others = [member for member in self.rooms.get(table_id, ()) if member is not subscriber]
        if not others:
            return
        message = self._event_envelope(event, table_id, {"client_id": subscriber.client_id, "table_id": table_id})
        self._enqueue(others, message)

    def _reply(self, subscriber: Subscriber, msg_type: str, payload: Dict[str, object]) -> None:
        self._enqueue([subscriber], self._envelope(msg_type, payload))

    def _send_error(self, subscriber: Subscriber, code: str, msg: str) -> None:
        self._reply(subscriber, "error", {"code": code, "msg": msg})

    def _envelope(self, msg_type: str, payload: Dict[str, object]) -> str:
        body: Dict[str, object] = {"type": msg_type, "v": 1, "timestamp": _now_ts()}
        body.update(payload)
        return json.dumps(body, default=_json_default)

    def _event_envelope(self, event: str, table_id: str, payload: Dict[str, object]) -> str:
        body = {
            "type": event,
            "v": 1,
            "table_id": table_id,
            "payload": payload,
            "timestamp": _now_ts(),
        }
        return json.dumps(body, default=_json_default)

    def _decode(self, raw: object) -> Optional[Dict[str, object]]:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            return None
        if not isinstance(message, dict):
            return None
        return message


def process_request(connection: ServerConnection, request: Request) -> Optional[Response]:
    """Answer plain HTTP health checks; let websocket upgrades through."""
    if request.headers.get("Upgrade", "").lower() == "websocket":
        return None
    if request.path in {"/", "/health", "/healthz"}:
        return connection.respond(HTTPStatus.OK, "ledger hub running\n")
    return connection.respond(HTTPStatus.NOT_FOUND, "not found\n")
