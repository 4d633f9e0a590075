import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from fastapi import APIRouter, Query
from sse_starlette.sse import EventSourceResponse

log = logging.getLogger("lockedin.realtime")

router = APIRouter(tags=["realtime"])

QUEUE_SIZE = 1000


@dataclass(eq=False)
class Subscriber:
    # group_id None = recibe eventos de todos los grupos
    group_id: Optional[int] = None
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=QUEUE_SIZE))

    def wants(self, payload: Dict[str, Any]) -> bool:
        return self.group_id is None or payload.get("group_id") == self.group_id


_subscribers: Set[Subscriber] = set()


async def broadcast(event_type: str, payload: Dict[str, Any]) -> None:
    """Eventos con ids, nunca contenido: el cliente vuelve a pedir por REST."""
    slow = []
    for sub in _subscribers:
        if not sub.wants(payload):
            continue
        try:
            sub.queue.put_nowait({"event": event_type, "data": payload})
        except asyncio.QueueFull:
            slow.append(sub)

    # cliente que no consume: se le desconecta
    for sub in slow:
        log.warning("dropping slow SSE subscriber (group=%s)", sub.group_id)
        _subscribers.discard(sub)


def subscribe(group_id: Optional[int] = None) -> Subscriber:
    sub = Subscriber(group_id=group_id)
    _subscribers.add(sub)
    return sub


def unsubscribe(sub: Subscriber) -> None:
    _subscribers.discard(sub)


@router.get("/events")
async def sse_events(group_id: Optional[int] = Query(None, alias="groupId")):
    sub = subscribe(group_id)

    async def generator():
        try:
            while True:
                msg = await sub.queue.get()
                yield {
                    "event": msg["event"],
                    "data": json.dumps(msg["data"], ensure_ascii=False),
                }
        except asyncio.CancelledError:
            pass
        finally:
            unsubscribe(sub)

    return EventSourceResponse(generator(), ping=15)
