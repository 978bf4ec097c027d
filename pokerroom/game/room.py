"""Room state: the persisted representation of one game room."""
import random
import string
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional

from pokerroom.config import config
from pokerroom.game.deck import Card
from pokerroom.game.player import Player
from pokerroom.game.betting import get_valid_actions, get_call_amount, get_min_raise


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Phase(str, Enum):
    """Room phases."""
    WAITING = "waiting"      # Lobby, no hand dealt yet
    PREFLOP = "preflop"      # Pre-flop betting
    FLOP = "flop"            # Flop betting
    TURN = "turn"            # Turn betting
    RIVER = "river"          # River betting
    SHOWDOWN = "showdown"    # Hand settled, waiting for next round


BETTING_PHASES = (Phase.PREFLOP, Phase.FLOP, Phase.TURN, Phase.RIVER)

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_room_code(
    length: int = config.room_code_length,
    rng: Optional[random.Random] = None,
) -> str:
    """Random upper-case alphanumeric room code."""
    rng = rng or random.Random()
    return "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(length))


@dataclass
class RoomSettings:
    """Per-room table settings."""
    starting_chips: int = config.default_starting_chips
    small_blind: int = config.default_small_blind
    big_blind: int = config.default_big_blind
    turn_time_limit: int = config.default_turn_time_seconds
    allow_buy_back: bool = config.default_allow_buy_back
    max_buy_backs: int = config.default_max_buy_backs
    buy_back_amount: int = config.default_buy_back_amount

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "RoomSettings":
        defaults = cls()
        data = data or {}
        return cls(**{
            key: data.get(key, value)
            for key, value in defaults.to_dict().items()
        })


@dataclass
class ChatEntry:
    """A chat line, including AI taunts."""
    player_id: str
    player_name: str
    message: str
    is_ai: bool = False
    is_taunt: bool = False
    timestamp: str = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ChatEntry":
        return cls(**data)


@dataclass
class HandOutcome:
    """Result of a completed hand.

    ``kind`` is "showdown" when hands were compared and "round_end" when
    everyone else folded.
    """
    kind: str
    reason: str
    pot_total: int
    winners: list[dict]  # [{player_id, name, amount, hand}]
    hands: list[dict] = field(default_factory=list)  # [{player_id, name, cards, hand}]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "HandOutcome":
        return cls(**data)


@dataclass
class Room:
    """A poker room and its current hand."""

    code: str
    settings: RoomSettings = field(default_factory=RoomSettings)
    players: list[Player] = field(default_factory=list)
    deck: list[Card] = field(default_factory=list)
    burnt: list[Card] = field(default_factory=list)
    community_cards: list[Card] = field(default_factory=list)
    pot: int = 0
    current_bet: int = 0
    acting_player_index: int = 0
    phase: Phase = Phase.WAITING
    dealer_index: int = 0
    players_acted: set[str] = field(default_factory=set)
    contributions: dict[str, int] = field(default_factory=dict)
    revealed: list[str] = field(default_factory=list)
    chat_log: list[ChatEntry] = field(default_factory=list)
    hand_number: int = 0
    action_seq: int = 0
    version: int = 0
    last_outcome: Optional[HandOutcome] = None
    created_at: str = field(default_factory=utc_now)
    last_activity_at: str = field(default_factory=utc_now)

    # Lookups

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.player_id == player_id:
                return player
        return None

    def index_of(self, player_id: str) -> Optional[int]:
        for idx, player in enumerate(self.players):
            if player.player_id == player_id:
                return idx
        return None

    @property
    def acting_player(self) -> Optional[Player]:
        """Player holding the turn, or None outside a betting street."""
        if self.phase not in BETTING_PHASES or not self.players:
            return None
        player = self.players[self.acting_player_index % len(self.players)]
        return player if player.is_turn else None

    @property
    def live_players(self) -> list[Player]:
        """Players still contesting the current hand, in seat order."""
        return [p for p in self.players if p.in_hand]

    def turn_token(self) -> tuple:
        """Snapshot identifying the pending turn; changes whenever it moves."""
        actor = self.acting_player
        return (self.hand_number, self.action_seq, actor.player_id if actor else None)

    def touch(self) -> None:
        self.last_activity_at = utc_now()

    # Client views

    def get_state_for_player(self, viewer_id: Optional[str]) -> dict:
        """Room state from one viewer's perspective.

        The undealt deck is never included. A viewer sees its own hole cards,
        community cards and any hand revealed at showdown; everything else is
        hidden. ``viewer_id`` None gives the spectator view.

        Args:
            viewer_id: The player requesting state.

        Returns:
            State dictionary with appropriate visibility.
        """
        players_data = []
        for player in self.players:
            show = player.player_id == viewer_id or player.player_id in self.revealed
            player_data = player.to_dict(hide_cards=not show)
            player_data["is_you"] = player.player_id == viewer_id
            players_data.append(player_data)

        actor = self.acting_player
        valid_actions: list[str] = []
        call_amount = 0
        if actor and actor.player_id == viewer_id:
            valid_actions = [a.value for a in get_valid_actions(self, actor)]
            call_amount = get_call_amount(self, actor)

        return {
            "code": self.code,
            "phase": self.phase.value,
            "hand_number": self.hand_number,
            "dealer_index": self.dealer_index,
            "acting_player_index": self.acting_player_index if actor else None,
            "current_player": actor.player_id if actor else None,
            "pot": self.pot,
            "current_bet": self.current_bet,
            "community_cards": [str(c) for c in self.community_cards],
            "players": players_data,
            "settings": self.settings.to_dict(),
            "chat": [entry.to_dict() for entry in self.chat_log],
            "valid_actions": valid_actions,
            "call_amount": call_amount,
            "min_raise": get_min_raise(self),
            "last_outcome": self.last_outcome.to_dict() if self.last_outcome else None,
        }

    def get_state_for_spectator(self) -> dict:
        return self.get_state_for_player(None)

    # Persistence

    def to_dict(self) -> dict:
        """Serialize full room state for persistence (includes the deck)."""
        return {
            "code": self.code,
            "settings": self.settings.to_dict(),
            "players": [p.to_storage_dict() for p in self.players],
            "deck": [c.to_dict() for c in self.deck],
            "burnt": [c.to_dict() for c in self.burnt],
            "community_cards": [c.to_dict() for c in self.community_cards],
            "pot": self.pot,
            "current_bet": self.current_bet,
            "acting_player_index": self.acting_player_index,
            "phase": self.phase.value,
            "dealer_index": self.dealer_index,
            "players_acted": sorted(self.players_acted),
            "contributions": self.contributions,
            "revealed": self.revealed,
            "chat_log": [entry.to_dict() for entry in self.chat_log],
            "hand_number": self.hand_number,
            "action_seq": self.action_seq,
            "version": self.version,
            "last_outcome": self.last_outcome.to_dict() if self.last_outcome else None,
            "created_at": self.created_at,
            "last_activity_at": self.last_activity_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Room":
        """Restore room from serialized state."""
        outcome = data.get("last_outcome")
        return cls(
            code=data["code"],
            settings=RoomSettings.from_dict(data.get("settings")),
            players=[Player.from_dict(p) for p in data.get("players", [])],
            deck=[Card.from_dict(c) for c in data.get("deck", [])],
            burnt=[Card.from_dict(c) for c in data.get("burnt", [])],
            community_cards=[Card.from_dict(c) for c in data.get("community_cards", [])],
            pot=data.get("pot", 0),
            current_bet=data.get("current_bet", 0),
            acting_player_index=data.get("acting_player_index", 0),
            phase=Phase(data.get("phase", Phase.WAITING.value)),
            dealer_index=data.get("dealer_index", 0),
            players_acted=set(data.get("players_acted", [])),
            contributions=dict(data.get("contributions", {})),
            revealed=list(data.get("revealed", [])),
            chat_log=[ChatEntry.from_dict(e) for e in data.get("chat_log", [])],
            hand_number=data.get("hand_number", 0),
            action_seq=data.get("action_seq", 0),
            version=data.get("version", 0),
            last_outcome=HandOutcome.from_dict(outcome) if outcome else None,
            created_at=data.get("created_at") or utc_now(),
            last_activity_at=data.get("last_activity_at") or utc_now(),
        )
