"""
Realtime router.

GET  /realtime         — Server-Sent Events stream of every published event
POST /realtime/ready   — Publish a `ready` event to every connected client
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import StreamingResponse

from taskwatch.core.config import settings
from taskwatch.core.deps import get_broadcaster
from taskwatch.core.realtime import Broadcaster, RealtimeEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["realtime"])

_SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: RealtimeEvent) -> str:
    return f"event: message\ndata: {event.to_json()}\n\n"


async def event_stream(
    request: Request,
    broadcaster: Broadcaster,
    keepalive_seconds: float,
) -> AsyncIterator[str]:
    """
    Yield `ready` first, then every published event until the client goes
    away. Listeners run on whatever thread publishes, so events are handed
    to this loop through call_soon_threadsafe.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[RealtimeEvent] = asyncio.Queue()
    unsubscribe = broadcaster.subscribe(
        lambda event: loop.call_soon_threadsafe(queue.put_nowait, event)
    )
    logger.debug("Realtime client connected (%d listeners)", broadcaster.listener_count)
    try:
        yield ": stream-start\n\n"
        yield format_sse(RealtimeEvent.ready())
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                if await request.is_disconnected():
                    break
                yield f": keep-alive {int(loop.time() * 1000)}\n\n"
                continue
            yield format_sse(event)
    finally:
        unsubscribe()
        logger.debug("Realtime client disconnected")


@router.get("", summary="Subscribe to realtime events (SSE)")
async def subscribe(
    request: Request,
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """
    Best-effort push: events published while the client is not connected
    are not replayed.
    """
    return StreamingResponse(
        event_stream(request, broadcaster, settings.REALTIME_KEEPALIVE_SECONDS),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )


@router.post("/ready", status_code=status.HTTP_204_NO_CONTENT, summary="Broadcast a ready event")
def publish_ready(broadcaster: Broadcaster = Depends(get_broadcaster)):
    broadcaster.publish(RealtimeEvent.ready())
    return Response(status_code=status.HTTP_204_NO_CONTENT)
