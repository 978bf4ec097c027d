"""Room state persistence."""
from .redis_client import redis_client, RedisClient
from .room_store import room_store, RoomStore

__all__ = [
    "redis_client",
    "RedisClient",
    "room_store",
    "RoomStore",
]
