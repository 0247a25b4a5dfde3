"""
Zeami Watcher WebSocket Routes.

Pushes watcher events to connected UI clients.
Requires Python 3.11+.
"""

import asyncio
import json
import time
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from api.dependencies import get_watcher_service
from utils.logger import get_logger
from watcher.models import ClassifiedEvent, WatcherStats, WatchErrorEvent

router = APIRouter()
logger = get_logger("api.websocket")

WATCH_EVENT = "fs-watch-event"
WATCH_ERROR = "fs-watch-error"
WATCH_STATS = "fs-watch-stats"
HEARTBEAT_SECONDS = 30.0


class WebSocketManager:
    """
    Manages WebSocket connections for real-time updates.

    Handles connection lifecycle and message broadcasting.
    """

    def __init__(self) -> None:
        """Initialize the WebSocket manager."""
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        """
        Accept and register a new WebSocket connection.

        Args:
            websocket: The WebSocket connection to register
        """
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info("websocket_connected", total_connections=len(self._connections))

    async def disconnect(self, websocket: WebSocket) -> None:
        """Unregister a WebSocket connection."""
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("websocket_disconnected", total_connections=len(self._connections))

    async def broadcast(self, message: dict[str, Any]) -> None:
        """
        Broadcast a message to all connected clients.

        Clients that fail to receive it are dropped.
        """
        if not self._connections:
            return

        message_json = json.dumps(message)
        disconnected: set[WebSocket] = set()

        async with self._lock:
            for connection in self._connections:
                try:
                    await connection.send_text(message_json)
                except Exception as e:
                    logger.warning("broadcast_failed", error=str(e))
                    disconnected.add(connection)

            self._connections -= disconnected

    async def send_to(self, websocket: WebSocket, message: dict[str, Any]) -> None:
        """Send a message to a specific client."""
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.warning("send_failed", error=str(e))

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self._connections)


# Global WebSocket manager instance
manager = WebSocketManager()


def get_manager() -> WebSocketManager:
    """Get the global WebSocket manager."""
    return manager


def event_message(item: ClassifiedEvent | WatchErrorEvent) -> dict[str, Any]:
    """Wrap a watcher output item in the message sent to clients."""
    message_type = WATCH_ERROR if isinstance(item, WatchErrorEvent) else WATCH_EVENT
    return {"type": message_type, "payload": item.to_payload()}


def stats_message(stats: WatcherStats) -> dict[str, Any]:
    return {"type": WATCH_STATS, "payload": stats.to_dict()}


async def broadcast_watch_event(item: ClassifiedEvent | WatchErrorEvent) -> None:
    """
    Broadcast a watcher event to all clients.

    Installed as the watcher service callback; runs on the API event loop.
    """
    await manager.broadcast(event_message(item))


async def broadcast_stats(stats: WatcherStats) -> None:
    """Broadcast a stats snapshot to all clients."""
    await manager.broadcast(stats_message(stats))


@router.websocket("")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """
    Main WebSocket endpoint for watcher events.

    Clients receive:
    - fs-watch-event for every classified change
    - fs-watch-error when the event source fails
    - fs-watch-stats in reply to a stats request
    - Heartbeat messages (every 30s)
    """
    await manager.connect(websocket)
    await manager.send_to(websocket, {
        "type": "connected",
        "message": "Connected to Zeami Watcher",
    })

    try:
        while True:
            try:
                data = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=HEARTBEAT_SECONDS,
                )
                try:
                    message = json.loads(data)
                    await handle_client_message(websocket, message)
                except json.JSONDecodeError:
                    await manager.send_to(websocket, {
                        "type": "error",
                        "message": "Invalid JSON",
                    })

            except asyncio.TimeoutError:
                await manager.send_to(websocket, {
                    "type": "heartbeat",
                    "timestamp": time.time(),
                })

    except WebSocketDisconnect:
        await manager.disconnect(websocket)
    except Exception as e:
        logger.error("websocket_error", error=str(e))
        await manager.disconnect(websocket)


async def handle_client_message(websocket: WebSocket, message: dict[str, Any]) -> None:
    """
    Handle incoming client messages.

    ``ping`` gets a pong and ``stats`` the current counters; anything
    else gets an error reply.
    """
    msg_type = message.get("type", "") if isinstance(message, dict) else ""

    if msg_type == "ping":
        await manager.send_to(websocket, {"type": "pong"})
    elif msg_type == "stats":
        service = get_watcher_service()
        if service is None:
            await manager.send_to(websocket, {
                "type": "error",
                "message": "Watcher has not been started",
            })
        else:
            await manager.send_to(websocket, stats_message(service.get_stats()))
    else:
        await manager.send_to(websocket, {
            "type": "error",
            "message": f"Unknown message type: {msg_type}",
        })
