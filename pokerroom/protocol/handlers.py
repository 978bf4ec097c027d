"""Message handlers for WebSocket protocol."""
import json
from typing import Optional, TYPE_CHECKING

from pokerroom.game.room import RoomSettings
from pokerroom.game.errors import GameError, StorageError
from pokerroom.protocol.messages import (
    parse_client_message,
    ClientMessage,
    CreateRoomMessage,
    JoinRoomMessage,
    RejoinRoomMessage,
    StartGameMessage,
    PlayerActionMessage,
    ChatMessage,
    NextRoundMessage,
    BuyBackMessage,
    PingMessage,
    ErrorMessage,
    PongMessage,
)
from pokerroom.utils.logger import get_logger

if TYPE_CHECKING:
    from pokerroom.session.room_service import RoomService

logger = get_logger(__name__)


class MessageHandler:
    """Handles incoming WebSocket messages."""

    def __init__(self, service: "RoomService"):
        """Initialize handler.

        Args:
            service: Room service that runs the events.
        """
        self.service = service

    async def handle_message(self, connection_id: str, raw_message: str) -> Optional[dict]:
        """Handle an incoming message.

        Errors are returned as an ``error`` message for the sending
        connection only; the socket stays open.

        Args:
            connection_id: Id of the sending connection.
            raw_message: Raw JSON message string.

        Returns:
            Response for the sender, or None when everything went out as
            broadcasts.
        """
        try:
            data = json.loads(raw_message)
            message = parse_client_message(data)
        except json.JSONDecodeError as e:
            return ErrorMessage(message=f"Invalid JSON: {e}", code="INVALID_MESSAGE").model_dump()
        except ValueError as e:
            return ErrorMessage(message=str(e), code="INVALID_MESSAGE").model_dump()

        try:
            return await self._dispatch(connection_id, message)
        except GameError as e:
            logger.debug(f"Rejected {message.type} from {connection_id}: {e.code} {e.message}")
            return ErrorMessage(message=e.message, code=e.code).model_dump()
        except StorageError as e:
            logger.warning(f"Storage failure handling {message.type} from {connection_id}: {e.message}")
            return ErrorMessage(message=e.message, code=e.code).model_dump()

    async def _dispatch(self, connection_id: str, message: ClientMessage) -> Optional[dict]:
        if isinstance(message, PingMessage):
            return PongMessage().model_dump()

        if isinstance(message, CreateRoomMessage):
            return await self.service.create_room(
                connection_id,
                message.player_name,
                settings=RoomSettings(**message.settings.model_dump()),
                with_ai=message.with_ai,
            )

        if isinstance(message, JoinRoomMessage):
            return await self.service.join_room(
                connection_id, message.room_code, message.player_name
            )

        if isinstance(message, RejoinRoomMessage):
            return await self.service.rejoin_room(
                connection_id, message.room_code, message.player_id
            )

        if isinstance(message, StartGameMessage):
            await self.service.start_game(connection_id)
            return None

        if isinstance(message, PlayerActionMessage):
            await self.service.player_action(connection_id, message.action, message.amount)
            return None

        if isinstance(message, ChatMessage):
            await self.service.chat_message(connection_id, message.message)
            return None

        if isinstance(message, NextRoundMessage):
            await self.service.next_round(connection_id)
            return None

        if isinstance(message, BuyBackMessage):
            return await self.service.buy_back(connection_id)

        return ErrorMessage(message="Unhandled message type", code="INVALID_MESSAGE").model_dump()
