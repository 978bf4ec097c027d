"""Room state persistence."""
from typing import Optional

from redis.exceptions import RedisError

from pokerroom.config import config
from pokerroom.game.room import Room
from pokerroom.game.errors import StorageError, StaleRoomError
from pokerroom.state.redis_client import redis_client
from pokerroom.utils.logger import get_logger

logger = get_logger(__name__)


class RoomStore:
    """Persists rooms to Redis.

    Every write refreshes the key's expiry, so a room disappears two hours
    after its last change without any sweeping on our side. ``version`` is a
    compare-and-set counter: a save only lands if nobody else saved the room
    since it was loaded.
    """

    def _room_key(self, code: str) -> str:
        """Get Redis key for room state."""
        return f"room:{code.upper()}"

    async def create_room(self, room: Room) -> bool:
        """Store a brand new room.

        Args:
            room: Room with version 0.

        Returns:
            False if the room code is already taken.

        Raises:
            StorageError: If Redis is unavailable.
        """
        room.version = 1
        try:
            created = await redis_client.set_json(
                self._room_key(room.code),
                room.to_dict(),
                ex=config.room_ttl_seconds,
                nx=True,
            )
        except RedisError as e:
            room.version = 0
            logger.error(f"Failed to create room {room.code}: {e}")
            raise StorageError() from e

        if not created:
            room.version = 0
            logger.debug(f"Room code {room.code} already taken")
            return False

        logger.info(f"Created room {room.code}")
        return True

    async def get_room(self, code: str) -> Optional[Room]:
        """Load the current state of a room.

        Returns:
            The room, or None if it does not exist or has expired.
        """
        try:
            data = await redis_client.get_json(self._room_key(code))
        except RedisError as e:
            logger.error(f"Failed to load room {code}: {e}")
            raise StorageError() from e

        if data is None:
            return None
        return Room.from_dict(data)

    async def save_room(self, room: Room) -> None:
        """Persist a room that was loaded and then mutated.

        Bumps ``room.version`` on success.

        Raises:
            StaleRoomError: If the room was saved by someone else meanwhile.
            StorageError: If Redis is unavailable.
        """
        expected = room.version
        data = room.to_dict()
        data["version"] = expected + 1

        try:
            written = await redis_client.set_json_if_version(
                self._room_key(room.code),
                data,
                expected_version=expected,
                ex=config.room_ttl_seconds,
            )
        except RedisError as e:
            logger.error(f"Failed to save room {room.code}: {e}")
            raise StorageError() from e

        if not written:
            logger.warning(f"Stale write rejected for room {room.code} at version {expected}")
            raise StaleRoomError()

        room.version = expected + 1
        logger.debug(f"Saved room {room.code} at version {room.version}")

    async def delete_room(self, code: str) -> None:
        """Delete a room."""
        try:
            await redis_client.delete(self._room_key(code))
        except RedisError as e:
            logger.error(f"Failed to delete room {code}: {e}")
            raise StorageError() from e

        logger.info(f"Deleted room {code}")


room_store = RoomStore()
