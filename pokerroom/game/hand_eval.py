"""Hand evaluation for Texas Hold'em."""
from enum import IntEnum
from typing import Iterable, Optional
from dataclasses import dataclass, field
from collections import Counter
from itertools import combinations

from pokerroom.game.deck import Card, Rank

# Tiebreak values are card ranks (2-14), so base 15 keeps them in separate digits
_SCORE_BASE = 15
_SCORE_DIGITS = 5


class HandRank(IntEnum):
    """Poker hand rankings (higher is better)."""
    HIGH_CARD = 1
    PAIR = 2
    TWO_PAIR = 3
    THREE_OF_A_KIND = 4
    STRAIGHT = 5
    FLUSH = 6
    FULL_HOUSE = 7
    FOUR_OF_A_KIND = 8
    STRAIGHT_FLUSH = 9
    ROYAL_FLUSH = 10

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


@dataclass(eq=False)
class HandResult:
    """Result of hand evaluation."""
    rank: HandRank
    values: tuple[int, ...]  # Tiebreaker values (highest to lowest importance)
    cards: list[Card] = field(default_factory=list)  # The 5 cards making the hand
    description: str = ""

    @property
    def score(self) -> int:
        """Single integer that orders hands within and across categories."""
        score = int(self.rank)
        padded = (self.values + (0,) * _SCORE_DIGITS)[:_SCORE_DIGITS]
        for value in padded:
            score = score * _SCORE_BASE + value
        return score

    def __lt__(self, other: "HandResult") -> bool:
        return self.score < other.score

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HandResult):
            return False
        return self.score == other.score

    def __hash__(self) -> int:
        return hash(self.score)

    def __gt__(self, other: "HandResult") -> bool:
        return other < self

    def __le__(self, other: "HandResult") -> bool:
        return not other < self

    def __ge__(self, other: "HandResult") -> bool:
        return not self < other

    def to_dict(self) -> dict:
        """Convert to dictionary for clients."""
        return {
            "rank": int(self.rank),
            "name": self.rank.label,
            "description": self.description,
            "score": self.score,
            "cards": [str(c) for c in self.cards],
        }


def _straight_high(ranks: list[int]) -> Optional[int]:
    """High card of a 5-card straight, or None. The wheel is 5-high."""
    unique = sorted(set(ranks))
    if len(unique) != 5:
        return None
    if unique == [2, 3, 4, 5, 14]:
        return 5
    if unique[-1] - unique[0] == 4:
        return unique[-1]
    return None


def _evaluate_5_cards(cards: list[Card]) -> HandResult:
    """Evaluate exactly 5 cards.

    Args:
        cards: Exactly 5 cards.

    Returns:
        HandResult with ranking.
    """
    if len(cards) != 5:
        raise ValueError(f"Expected 5 cards, got {len(cards)}")

    ranks = [c.rank.value for c in cards]
    is_flush = len({c.suit for c in cards}) == 1
    straight_high = _straight_high(ranks)

    # (rank, count) sorted by count then rank, both descending
    counts = sorted(Counter(ranks).items(), key=lambda x: (x[1], x[0]), reverse=True)
    grouped = tuple(r for r, _ in counts)
    shape = [n for _, n in counts]

    if is_flush and straight_high:
        if straight_high == 14:
            return HandResult(HandRank.ROYAL_FLUSH, (14,), cards, "Royal Flush")
        return HandResult(
            HandRank.STRAIGHT_FLUSH, (straight_high,), cards,
            f"Straight Flush, {Rank(straight_high)} high",
        )

    if shape[0] == 4:
        return HandResult(
            HandRank.FOUR_OF_A_KIND, grouped, cards,
            f"Four of a Kind, {Rank(grouped[0])}s",
        )

    if shape == [3, 2]:
        return HandResult(
            HandRank.FULL_HOUSE, grouped, cards,
            f"Full House, {Rank(grouped[0])}s full of {Rank(grouped[1])}s",
        )

    if is_flush:
        high_first = tuple(sorted(ranks, reverse=True))
        return HandResult(
            HandRank.FLUSH, high_first, cards, f"Flush, {Rank(high_first[0])} high"
        )

    if straight_high:
        return HandResult(
            HandRank.STRAIGHT, (straight_high,), cards,
            f"Straight, {Rank(straight_high)} high",
        )

    if shape[0] == 3:
        return HandResult(
            HandRank.THREE_OF_A_KIND, grouped, cards,
            f"Three of a Kind, {Rank(grouped[0])}s",
        )

    if shape[:2] == [2, 2]:
        return HandResult(
            HandRank.TWO_PAIR, grouped, cards,
            f"Two Pair, {Rank(grouped[0])}s and {Rank(grouped[1])}s",
        )

    if shape[0] == 2:
        return HandResult(
            HandRank.PAIR, grouped, cards, f"Pair of {Rank(grouped[0])}s"
        )

    return HandResult(
        HandRank.HIGH_CARD, grouped, cards, f"High Card, {Rank(grouped[0])}"
    )


def evaluate_best_hand(cards: Iterable[Card]) -> HandResult:
    """Evaluate the best 5-card hand out of 5 to 7 cards.

    Args:
        cards: Hole cards plus community cards.

    Returns:
        Best possible HandResult.

    Raises:
        ValueError: If fewer than 5 or more than 7 cards are given.
    """
    all_cards = list(cards)
    if not 5 <= len(all_cards) <= 7:
        raise ValueError(f"Need 5 to 7 cards, got {len(all_cards)}")

    return max(_evaluate_5_cards(list(combo)) for combo in combinations(all_cards, 5))


def evaluate_hand(hole_cards: list[Card], community_cards: list[Card]) -> HandResult:
    """Evaluate the best hand from hole cards and community cards."""
    return evaluate_best_hand(list(hole_cards) + list(community_cards))


def compare_hands(results: list[tuple[str, HandResult]]) -> list[list[str]]:
    """Compare multiple hands and return winners.

    Args:
        results: List of (player_id, HandResult) tuples.

    Returns:
        List of winner groups (ties are in the same group), best first.
    """
    if not results:
        return []

    sorted_results = sorted(results, key=lambda x: x[1].score, reverse=True)

    groups: list[list[str]] = []
    current_score: Optional[int] = None
    for player_id, hand in sorted_results:
        if hand.score != current_score:
            groups.append([])
            current_score = hand.score
        groups[-1].append(player_id)

    return groups
