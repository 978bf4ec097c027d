"""Live WebSocket connections and their room bindings."""
from typing import Optional, Callable

from fastapi import WebSocket

from pokerroom.game.room import Room
from pokerroom.utils.logger import get_logger

logger = get_logger(__name__)


class ConnectionRegistry:
    """Tracks sockets by connection id and which room seat each one drives.

    Connections are process-local; the room itself lives in the store. A
    binding maps connection id -> (room code, player id).
    """

    def __init__(self):
        self.connections: dict[str, WebSocket] = {}
        self.bindings: dict[str, tuple[str, str]] = {}

    def register(self, connection_id: str, websocket: WebSocket) -> None:
        """Register a new connection."""
        self.connections[connection_id] = websocket

    def unregister(self, connection_id: str) -> Optional[tuple[str, str]]:
        """Forget a connection. Returns its binding, if it had one."""
        self.connections.pop(connection_id, None)
        return self.bindings.pop(connection_id, None)

    def bind(self, connection_id: str, room_code: str, player_id: str) -> None:
        """Attach a connection to a seat, replacing any older socket for it."""
        for other_id, binding in list(self.bindings.items()):
            if binding == (room_code, player_id) and other_id != connection_id:
                del self.bindings[other_id]
        self.bindings[connection_id] = (room_code, player_id)

    def binding(self, connection_id: str) -> Optional[tuple[str, str]]:
        return self.bindings.get(connection_id)

    def room_connections(self, room_code: str) -> dict[str, str]:
        """connection_id -> player_id for every socket bound to a room."""
        return {
            conn_id: player_id
            for conn_id, (code, player_id) in self.bindings.items()
            if code == room_code
        }

    async def send(self, connection_id: str, message: dict) -> bool:
        """Send a message to a specific connection."""
        websocket = self.connections.get(connection_id)
        if websocket is None:
            return False
        try:
            await websocket.send_json(message)
            return True
        except (RuntimeError, ConnectionError) as e:
            logger.warning(f"Failed to send to {connection_id}: {e}")
            return False

    async def broadcast(
        self,
        room_code: str,
        message: dict,
        exclude: Optional[str] = None,
    ) -> None:
        """Send the same message to every connection in a room."""
        for conn_id in self.room_connections(room_code):
            if conn_id == exclude:
                continue
            await self.send(conn_id, message)

    async def broadcast_room(
        self,
        room: Room,
        build: Callable[[dict], dict],
        exclude: Optional[str] = None,
    ) -> None:
        """Send each connection its own sanitised view of the room.

        Args:
            room: Room as just persisted.
            build: Wraps a per-viewer state dict into the outgoing message.
            exclude: Connection id to skip.
        """
        for conn_id, player_id in self.room_connections(room.code).items():
            if conn_id == exclude:
                continue
            state = room.get_state_for_player(player_id)
            await self.send(conn_id, build(state))
