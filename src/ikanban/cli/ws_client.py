import json

import websockets


async def stream_events(url: str = "ws://localhost:8420/ws"):
    """Connect to the orchestrator WebSocket and yield parsed bus events."""
    async with websockets.connect(url) as ws:
        async for data in ws:
            yield json.loads(data)


def to_ws_url(http_url: str) -> str:
    return (
        http_url.rstrip("/")
        .replace("http://", "ws://", 1)
        .replace("https://", "wss://", 1)
        + "/ws"
    )
