"""WebSocket push of newly ingested readings."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.api import get_pipeline
from services.fanout import reading_topic
from services.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PENDING_MESSAGES = 100


def offer(queue: "asyncio.Queue[Any]", message: Any) -> None:
    """Enqueue ``message``, dropping the oldest pending one when the queue is full."""
    if queue.full():
        queue.get_nowait()
        logger.warning("Dropped update for slow subscriber")
    queue.put_nowait(message)


async def _forward(websocket: WebSocket, queue: "asyncio.Queue[Any]") -> None:
    while True:
        message = await queue.get()
        await websocket.send_json(message)


async def _stop(forwarder: "asyncio.Task[None]", device_id: str) -> None:
    forwarder.cancel()
    try:
        await forwarder
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("Subscriber push failed", extra={"device_id": device_id})


@router.websocket("/ws/water-level/{device_id}")
async def water_level_updates(
    websocket: WebSocket,
    device_id: str,
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> None:
    """Stream each reading for ``device_id`` as it is ingested.

    There is no backlog: clients fetch ``latest``/``history`` after
    (re)connecting and rely on this socket only for later updates. A
    subscriber that falls more than ``MAX_PENDING_MESSAGES`` behind loses
    the oldest updates.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=MAX_PENDING_MESSAGES)

    def listener(message: Any) -> None:
        # Publishers run on request worker threads.
        loop.call_soon_threadsafe(offer, queue, message)

    topic = reading_topic(device_id)
    subscription = pipeline.fanout.subscribe(topic, listener)
    forwarder: asyncio.Task[None] | None = None
    try:
        await websocket.accept()
        logger.info("Subscriber connected", extra={"device_id": device_id, "topic": topic})
        forwarder = asyncio.create_task(_forward(websocket, queue))
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Subscriber disconnected", extra={"device_id": device_id, "topic": topic})
    finally:
        pipeline.fanout.unsubscribe(subscription)
        if forwarder is not None:
            await _stop(forwarder, device_id)
