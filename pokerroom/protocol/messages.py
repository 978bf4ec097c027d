"""Pydantic message schemas for WebSocket protocol."""
from typing import Optional, Literal, Union
from pydantic import BaseModel, Field, model_validator

from pokerroom.config import config


# ============= Client -> Server Messages =============

class RoomSettingsInput(BaseModel):
    """Table settings chosen by the room creator."""
    starting_chips: int = Field(default=config.default_starting_chips, gt=0)
    small_blind: int = Field(default=config.default_small_blind, gt=0)
    big_blind: int = Field(default=config.default_big_blind, gt=0)
    turn_time_limit: int = Field(default=config.default_turn_time_seconds, ge=0)
    allow_buy_back: bool = config.default_allow_buy_back
    max_buy_backs: int = Field(default=config.default_max_buy_backs, ge=0)
    buy_back_amount: int = Field(default=config.default_buy_back_amount, gt=0)

    @model_validator(mode="after")
    def check_blinds(self) -> "RoomSettingsInput":
        if self.big_blind < self.small_blind:
            raise ValueError("big_blind must be at least small_blind")
        return self


class CreateRoomMessage(BaseModel):
    """Create a room and take the host seat."""
    type: Literal["create_room"] = "create_room"
    player_name: str = Field(min_length=1, max_length=20)
    settings: RoomSettingsInput = Field(default_factory=RoomSettingsInput)
    with_ai: bool = False


class JoinRoomMessage(BaseModel):
    """Join a room by code."""
    type: Literal["join_room"] = "join_room"
    room_code: str = Field(min_length=1)
    player_name: str = Field(min_length=1, max_length=20)


class RejoinRoomMessage(BaseModel):
    """Reclaim a seat from a new connection."""
    type: Literal["rejoin_room"] = "rejoin_room"
    room_code: str = Field(min_length=1)
    player_id: str


class StartGameMessage(BaseModel):
    """Host starts the first hand."""
    type: Literal["start_game"] = "start_game"


class PlayerActionMessage(BaseModel):
    """Betting action (fold, check, call, raise). Raise amount is the raise-to total."""
    type: Literal["player_action"] = "player_action"
    action: Literal["fold", "check", "call", "raise"]
    amount: int = Field(default=0, ge=0)


class ChatMessage(BaseModel):
    """Chat message."""
    type: Literal["chat_message"] = "chat_message"
    message: str


class NextRoundMessage(BaseModel):
    """Deal the next hand after a showdown."""
    type: Literal["next_round"] = "next_round"


class BuyBackMessage(BaseModel):
    """Refill a busted stack."""
    type: Literal["buy_back"] = "buy_back"


class PingMessage(BaseModel):
    """Keep-alive ping from client."""
    type: Literal["ping"] = "ping"


# Union of all client messages
ClientMessage = Union[
    CreateRoomMessage,
    JoinRoomMessage,
    RejoinRoomMessage,
    StartGameMessage,
    PlayerActionMessage,
    ChatMessage,
    NextRoundMessage,
    BuyBackMessage,
    PingMessage,
]


# ============= Server -> Client Messages =============

class ErrorMessage(BaseModel):
    """Error response."""
    type: Literal["error"] = "error"
    message: str
    code: Optional[str] = None


class RoomCreatedMessage(BaseModel):
    """Room created; sent to the creator only."""
    type: Literal["room_created"] = "room_created"
    room_code: str
    player_id: str
    room: dict


class RoomJoinedMessage(BaseModel):
    """Seat taken (or reclaimed); sent to the joining connection only."""
    type: Literal["room_joined"] = "room_joined"
    room_code: str
    player_id: str
    room: dict


class PlayerJoinedMessage(BaseModel):
    """Another player sat down."""
    type: Literal["player_joined"] = "player_joined"
    player_id: str
    name: str
    room: dict


class PlayerReconnectedMessage(BaseModel):
    """Player reconnected."""
    type: Literal["player_reconnected"] = "player_reconnected"
    player_id: str
    name: str


class PlayerDisconnectedMessage(BaseModel):
    """Player's socket closed. The seat is kept."""
    type: Literal["player_disconnected"] = "player_disconnected"
    player_id: str
    name: str


class GameStartedMessage(BaseModel):
    """First hand dealt."""
    type: Literal["game_started"] = "game_started"
    room: dict


class GameUpdateMessage(BaseModel):
    """Room state after an action or a new street."""
    type: Literal["game_update"] = "game_update"
    room: dict
    last_action: Optional[dict] = None


class NewChatMessage(BaseModel):
    """Chat line (player message or AI taunt)."""
    type: Literal["new_chat_message"] = "new_chat_message"
    player_id: str
    player_name: str
    message: str
    is_ai: bool = False
    is_taunt: bool = False
    timestamp: str


class ShowdownMessage(BaseModel):
    """Hand settled by comparing hands."""
    type: Literal["showdown"] = "showdown"
    room: dict
    winners: list[dict]  # {player_id, name, amount, hand}
    hands: list[dict]  # {player_id, name, cards, hand}
    pot_total: int
    reason: str


class RoundEndMessage(BaseModel):
    """Hand won because everyone else folded."""
    type: Literal["round_end"] = "round_end"
    room: dict
    winners: list[dict]
    pot_total: int
    reason: str


class BuyBackSuccessMessage(BaseModel):
    """Buy-back granted."""
    type: Literal["buy_back_success"] = "buy_back_success"
    player_id: str
    amount: int
    chips: int
    buy_backs_used: int


class PongMessage(BaseModel):
    """Keep-alive pong response."""
    type: Literal["pong"] = "pong"


# Union of all server messages
ServerMessage = Union[
    ErrorMessage,
    RoomCreatedMessage,
    RoomJoinedMessage,
    PlayerJoinedMessage,
    PlayerReconnectedMessage,
    PlayerDisconnectedMessage,
    GameStartedMessage,
    GameUpdateMessage,
    NewChatMessage,
    ShowdownMessage,
    RoundEndMessage,
    BuyBackSuccessMessage,
    PongMessage,
]


def parse_client_message(data: dict) -> ClientMessage:
    """Parse a client message from JSON dict.

    Args:
        data: Message data dictionary.

    Returns:
        Parsed client message.

    Raises:
        ValueError: If message type is unknown or invalid.
    """
    if not isinstance(data, dict):
        raise ValueError("Message must be a JSON object")

    msg_type = data.get("type")

    type_map = {
        "create_room": CreateRoomMessage,
        "join_room": JoinRoomMessage,
        "rejoin_room": RejoinRoomMessage,
        "start_game": StartGameMessage,
        "player_action": PlayerActionMessage,
        "chat_message": ChatMessage,
        "next_round": NextRoundMessage,
        "buy_back": BuyBackMessage,
        "ping": PingMessage,
    }

    if msg_type not in type_map:
        raise ValueError(f"Unknown message type: {msg_type}")

    return type_map[msg_type](**data)
