"""Session layer: connections, turn scheduling and room events."""
from .connections import ConnectionRegistry
from .scheduler import TurnScheduler
from .room_service import RoomService

__all__ = [
    "ConnectionRegistry",
    "TurnScheduler",
    "RoomService",
]
