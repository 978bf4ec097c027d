"""Player model."""
from dataclasses import dataclass, field
from typing import Optional

from pokerroom.game.deck import Card


@dataclass
class Player:
    """A player seated in a room.

    ``player_id`` is stable for the life of the room and is what every turn
    and ownership check uses. ``connection_id`` belongs to the current socket
    and changes whenever the player reconnects.
    """

    player_id: str
    name: str
    chips: int = 0
    connection_id: Optional[str] = None
    current_bet: int = 0
    hole_cards: list[Card] = field(default_factory=list)
    folded: bool = False
    is_turn: bool = False
    is_ai: bool = False
    is_host: bool = False
    buy_backs_used: int = 0
    connected: bool = True

    def reset_for_new_hand(self) -> None:
        """Reset per-hand state. Players without chips sit the hand out folded."""
        self.hole_cards = []
        self.current_bet = 0
        self.is_turn = False
        self.folded = self.chips <= 0

    def bet(self, amount: int) -> int:
        """Move chips from the stack into the current bet.

        Args:
            amount: Amount to bet.

        Returns:
            Actual amount bet (less than requested when the player is short).
        """
        actual_bet = min(amount, self.chips)
        self.chips -= actual_bet
        self.current_bet += actual_bet
        return actual_bet

    def fold(self) -> None:
        """Fold the hand."""
        self.folded = True
        self.is_turn = False

    def receive_cards(self, cards: list[Card]) -> None:
        """Receive hole cards."""
        self.hole_cards = list(cards)

    def win_pot(self, amount: int) -> None:
        """Win chips from the pot."""
        self.chips += amount

    @property
    def in_hand(self) -> bool:
        """Dealt into the current hand and not folded."""
        return not self.folded and len(self.hole_cards) > 0

    @property
    def is_all_in(self) -> bool:
        return self.in_hand and self.chips == 0

    @property
    def can_act(self) -> bool:
        """Check if player can take an action."""
        return self.in_hand and self.chips > 0

    def to_dict(self, hide_cards: bool = True) -> dict:
        """Convert to dictionary for serialization.

        Args:
            hide_cards: If True, don't include hole cards.

        Returns:
            Player state dictionary.
        """
        data = {
            "player_id": self.player_id,
            "name": self.name,
            "chips": self.chips,
            "current_bet": self.current_bet,
            "folded": self.folded,
            "is_turn": self.is_turn,
            "is_ai": self.is_ai,
            "is_host": self.is_host,
            "is_all_in": self.is_all_in,
            "buy_backs_used": self.buy_backs_used,
            "connected": self.connected,
            "has_cards": len(self.hole_cards) > 0,
        }

        if not hide_cards:
            data["hole_cards"] = [str(c) for c in self.hole_cards]

        return data

    def to_storage_dict(self) -> dict:
        """Full state for persistence, including the transient connection id."""
        data = self.to_dict(hide_cards=True)
        data["connection_id"] = self.connection_id
        data["hole_cards"] = [c.to_dict() for c in self.hole_cards]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Player":
        """Create from a persisted dictionary."""
        return cls(
            player_id=data["player_id"],
            name=data["name"],
            chips=data["chips"],
            connection_id=data.get("connection_id"),
            current_bet=data.get("current_bet", 0),
            hole_cards=[Card.from_dict(c) for c in data.get("hole_cards", [])],
            folded=data.get("folded", False),
            is_turn=data.get("is_turn", False),
            is_ai=data.get("is_ai", False),
            is_host=data.get("is_host", False),
            buy_backs_used=data.get("buy_backs_used", 0),
            connected=data.get("connected", True),
        )
