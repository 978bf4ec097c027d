"""Game engine module."""
from .deck import Deck, Card, Suit, Rank
from .player import Player
from .hand_eval import evaluate_hand, evaluate_best_hand, HandRank, HandResult
from .betting import Action, ActionType
from .room import Room, RoomSettings, Phase, ChatEntry, HandOutcome
from .engine import TurnEngine, ActionOutcome
from .errors import GameError, StorageError, StaleRoomError

__all__ = [
    "Deck",
    "Card",
    "Suit",
    "Rank",
    "Player",
    "evaluate_hand",
    "evaluate_best_hand",
    "HandRank",
    "HandResult",
    "Action",
    "ActionType",
    "Room",
    "RoomSettings",
    "Phase",
    "ChatEntry",
    "HandOutcome",
    "TurnEngine",
    "ActionOutcome",
    "GameError",
    "StorageError",
    "StaleRoomError",
]
