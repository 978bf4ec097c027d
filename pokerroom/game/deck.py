"""Cards and the 52-card deck."""
import random
from enum import Enum
from dataclasses import dataclass
from typing import Optional

_FACE_LABELS = {11: "J", 12: "Q", 13: "K", 14: "A"}
_LABEL_VALUES = {"J": 11, "Q": 12, "K": 13, "A": 14, "T": 10}


class Suit(str, Enum):
    """Suits, valued by their one-letter wire code."""
    HEARTS = "h"
    DIAMONDS = "d"
    CLUBS = "c"
    SPADES = "s"

    def __str__(self) -> str:
        return self.value


class Rank(int, Enum):
    """Ranks 2-14; the ace is high (a wheel is handled by the evaluator)."""
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    JACK = 11
    QUEEN = 12
    KING = 13
    ACE = 14

    @property
    def label(self) -> str:
        return _FACE_LABELS.get(self.value, str(self.value))

    @classmethod
    def from_label(cls, label: str) -> "Rank":
        label = label.upper()
        return cls(_LABEL_VALUES[label] if label in _LABEL_VALUES else int(label))

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class Card:
    """An immutable playing card, e.g. ``Card(Rank.ACE, Suit.HEARTS)`` is "Ah"."""
    rank: Rank
    suit: Suit

    def __str__(self) -> str:
        return f"{self.rank.label}{self.suit.value}"

    __repr__ = __str__

    def to_dict(self) -> dict:
        return {"rank": self.rank.value, "suit": self.suit.value}

    @classmethod
    def from_dict(cls, data: dict) -> "Card":
        return cls(Rank(data["rank"]), Suit(data["suit"]))

    @classmethod
    def from_string(cls, text: str) -> "Card":
        """Parse "Ah", "10s" or "Tc"."""
        return cls(Rank.from_label(text[:-1]), Suit(text[-1].lower()))


def create_deck() -> list[Card]:
    """All 52 cards in suit-then-rank order."""
    return [Card(rank, suit) for suit in Suit for rank in Rank]


class Deck:
    """Cards still to be dealt in a hand, top of the deck first.

    A fresh deck is shuffled with ``rng.shuffle`` (Fisher-Yates). The
    shuffle only has to be fair, not unpredictable, so any seeded
    ``random.Random`` will do.
    """

    def __init__(
        self,
        cards: Optional[list[Card]] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize a deck.

        Args:
            cards: Undealt cards to continue from (as persisted on the room).
                A new shuffled deck is built when omitted.
            rng: Random source for the shuffle.
        """
        self._rng = rng or random.Random()
        if cards is None:
            self._stack = create_deck()
            self._rng.shuffle(self._stack)
        else:
            self._stack = list(cards)

    def deal(self, count: int = 1) -> list[Card]:
        """Take ``count`` cards off the top.

        Raises:
            ValueError: If fewer than ``count`` cards are left.
        """
        if count > len(self._stack):
            raise ValueError(f"Cannot deal {count} cards, only {len(self._stack)} remain")
        dealt, self._stack = self._stack[:count], self._stack[count:]
        return dealt

    def deal_one(self) -> Card:
        return self.deal(1)[0]

    def burn(self) -> Card:
        """Discard the top card face down before a street."""
        return self.deal_one()

    @property
    def cards(self) -> list[Card]:
        """Copy of the undealt cards, top first."""
        return list(self._stack)

    @property
    def remaining(self) -> int:
        return len(self._stack)

    def __len__(self) -> int:
        return len(self._stack)
