"""Realtime channel: job events pushed over SSE or a WebSocket.

Every subscriber receives every job's events; clients filter by ``job_id``.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket
from fastapi.responses import StreamingResponse

from tubefetch.routers.deps import get_broker
from tubefetch.schemas.events import JobEvent
from tubefetch.services.events import EventBroker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.get("/events")
async def event_stream(broker: EventBroker = Depends(get_broker)) -> StreamingResponse:
    """Stream job events as SSE."""
    queue = broker.subscribe()

    async def stream():
        try:
            yield ": connected\n\n"
            while True:
                event = await queue.get()
                yield event.to_sse()
        finally:
            broker.unsubscribe(queue)

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


async def _forward(websocket: WebSocket, queue: asyncio.Queue[JobEvent]) -> None:
    while True:
        event = await queue.get()
        await websocket.send_json(event.model_dump(mode="json"))


def _forward_done(task: asyncio.Task[None]) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.debug("WebSocket sender stopped: %s", task.exception())


@router.websocket("/ws")
async def event_socket(websocket: WebSocket, broker: EventBroker = Depends(get_broker)) -> None:
    """Push job events as JSON ``{event, data}`` messages until the client leaves."""
    async with broker.subscription() as queue:
        await websocket.accept()
        sender = asyncio.create_task(_forward(websocket, queue))
        sender.add_done_callback(_forward_done)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            sender.cancel()
