from fastapi import WebSocket, WebSocketDisconnect
from typing import Dict, Optional, Sequence, Set
import asyncio
import json

from models.spot import Spot
from models.types import ErrorClass
from services.spot_sync.reconciler import PatchOp
from utils.logger import get_logger
from utils.utcnow import utc_isoformat

logger = get_logger("websocket")


class ConnectionManager:
    """Manages WebSocket connections, grouped by view id"""

    def __init__(self):
        self.active_connections: Dict[str, Set[WebSocket]] = {}

    async def connect(self, view_id: str, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.setdefault(view_id, set()).add(websocket)

    def disconnect(self, view_id: str, websocket: WebSocket):
        connections = self.active_connections.get(view_id)
        if not connections:
            return
        connections.discard(websocket)
        if not connections:
            self.active_connections.pop(view_id, None)

    def connection_count(self, view_id: Optional[str] = None) -> int:
        if view_id is not None:
            return len(self.active_connections.get(view_id, ()))
        return sum(len(c) for c in self.active_connections.values())

    async def broadcast(self, view_id: str, message: dict):
        """Send message to every client subscribed to ``view_id``"""
        connections = self.active_connections.get(view_id)
        if not connections:
            return

        message_json = json.dumps(message, default=str)
        disconnected = set()

        for connection in list(connections):
            try:
                await connection.send_text(message_json)
            except Exception:
                disconnected.add(connection)

        # Clean up disconnected clients
        for connection in disconnected:
            self.disconnect(view_id, connection)

    async def send_personal(self, view_id: str, websocket: WebSocket, message: dict):
        """Send message to specific client"""
        try:
            await websocket.send_text(json.dumps(message, default=str))
        except Exception:
            self.disconnect(view_id, websocket)


# Global connection manager
manager = ConnectionManager()


class BroadcastRenderSurface:
    """Render hooks for one view, pushed to that view's websocket clients.

    The hooks are synchronous; each message is sent from its own task on the
    running loop so a slow client never blocks a controller.
    """

    def __init__(self, connections: ConnectionManager, view_id: str):
        self._connections = connections
        self.view_id = view_id
        self._pending: Set[asyncio.Task] = set()

    def _push(self, message_type: str, data: dict) -> None:
        message = {
            "type": message_type,
            "view_id": self.view_id,
            "data": data,
            "sent_at": utc_isoformat(),
        }
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; dropping render message", type=message_type)
            return
        task = loop.create_task(self._connections.broadcast(self.view_id, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def render_ready(self, spot: Spot) -> None:
        self._push("spot_ready", {"spot": spot.to_api_dict()})

    def render_loading(self, reason_key: str) -> None:
        self._push("spot_loading", {"reason": reason_key})

    def render_error(self, error_class: ErrorClass, detail_key: Optional[str] = None) -> None:
        self._push("spot_error", {"error_class": error_class.value, "detail": detail_key})

    def render_collection(self, spots: Sequence[Spot]) -> None:
        self._push("spots_render", {"spots": [spot.to_api_dict() for spot in spots]})

    def apply_patch(self, ops: Sequence[PatchOp]) -> None:
        self._push("spots_patch", {"ops": [op.to_dict() for op in ops]})


async def handle_websocket(websocket: WebSocket, view_id: str, status: Optional[dict] = None):
    """Subscribe a client to one view's render stream"""
    await manager.connect(view_id, websocket)
    await manager.send_personal(
        view_id,
        websocket,
        {"type": "init", "view_id": view_id, "data": status or {}, "sent_at": utc_isoformat()},
    )

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except ValueError:
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                await manager.send_personal(view_id, websocket, {"type": "pong"})

    except WebSocketDisconnect:
        manager.disconnect(view_id, websocket)
    except Exception as e:
        logger.warning("WebSocket error", view_id=view_id, error=str(e))
        manager.disconnect(view_id, websocket)
