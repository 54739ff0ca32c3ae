import asyncio
import contextlib
import logging

from fastapi import WebSocket, WebSocketDisconnect

from ikanban.models.events import RuntimeEvent

logger = logging.getLogger(__name__)


async def websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for live CLI updates.

    Every event emitted on the runtime bus while the client is connected
    is forwarded as JSON.
    """
    await websocket.accept()
    event_bus = websocket.app.state.event_bus
    queue: asyncio.Queue[RuntimeEvent] = asyncio.Queue()
    unsubscribe = event_bus.subscribe(queue.put_nowait)
    sender = asyncio.create_task(_forward(websocket, queue))
    try:
        while True:
            # Keep alive; clients do not send anything meaningful yet
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sender


async def _forward(websocket: WebSocket, queue: asyncio.Queue[RuntimeEvent]) -> None:
    while True:
        event = await queue.get()
        try:
            await websocket.send_text(event.model_dump_json())
        except Exception as e:
            # Disconnected; the receive loop tears the subscription down
            logger.debug("Stopped forwarding events to websocket: %s", e)
            return
