"""AI opponent: hand strength estimation, betting decisions and taunts.

The AI only sees what any seated player could see (the table bet, the pot,
its own bet and stack) plus its own hole cards and the board. Its decision
is legalised here and still goes through the same validation as a human
action in the engine.
"""
import random
from dataclasses import dataclass
from typing import Optional

from pokerroom.game.deck import Card
from pokerroom.game.betting import ActionType
from pokerroom.game.hand_eval import evaluate_best_hand

STRONG_HAND = 0.6
MONSTER_HAND = 0.8
MEDIUM_HAND = 0.35
AGGRESSION = 0.75
BLUFF_CHANCE = 0.25
SHOVE_CHANCE = 0.3
LOOSE_CALL_CHANCE = 0.2
DEFAULT_STRENGTH = 0.3

TAUNTS: dict[str, list[str]] = {
    "win": [
        "Thanks for the chips!",
        "Is that all you got?",
        "Too easy! Better luck next time!",
        "Yoink! My chips now!",
        "Get good, kid!",
        "GG EZ! No re!",
    ],
    "big_win": [
        "HUGE POT! Thanks for the donation!",
        "CLEANING YOU OUT!",
        "That's gotta hurt!",
        "DOMINATED! You never had a chance!",
    ],
    "raise": [
        "Let's make this interesting!",
        "Can you afford this?",
        "Feeling lucky?",
        "Let's see what you're made of!",
    ],
    "player_folded": [
        "That's right, run away!",
        "Chicken!",
        "Another one bites the dust!",
    ],
    "player_low_chips": [
        "Running low there, buddy!",
        "Your stack is looking... sad",
    ],
}


@dataclass
class AIObservation:
    """Public table state from the AI seat."""
    current_bet: int
    pot: int
    my_bet: int
    my_chips: int
    big_blind: int

    @property
    def to_call(self) -> int:
        return max(0, self.current_bet - self.my_bet)


@dataclass
class AIDecision:
    """What the AI wants to do. ``amount`` is a raise-to total."""
    action: ActionType
    amount: int = 0
    taunt_category: Optional[str] = None


def pick_taunt(category: str, rng: Optional[random.Random] = None) -> Optional[str]:
    """Random line for a taunt category, or None for an unknown category."""
    lines = TAUNTS.get(category)
    if not lines:
        return None
    return (rng or random).choice(lines)


def preflop_strength(hole_cards: list[Card]) -> float:
    """Heuristic strength of two hole cards in [0, 0.95]."""
    if len(hole_cards) < 2:
        return DEFAULT_STRENGTH

    first, second = hole_cards[0], hole_cards[1]
    high = max(first.rank.value, second.rank.value)
    low = min(first.rank.value, second.rank.value)
    suited = first.suit == second.suit
    gap = high - low

    if gap == 0:
        if high >= 11:
            strength = 0.85 + high / 100
        elif high >= 8:
            strength = 0.65 + high / 50
        else:
            strength = 0.5 + high / 40
    elif high == 14 and low >= 12:
        strength = 0.75 if suited else 0.68
    elif high >= 12 and low >= 10:
        strength = 0.55 if suited else 0.48
    elif suited and gap <= 2 and low >= 6:
        strength = 0.45 + low / 100
    elif high == 14:
        strength = 0.45 if suited else 0.38
    else:
        strength = (high + low) / 35
        if suited:
            strength += 0.08
        if gap <= 3:
            strength += 0.05

    return min(strength, 0.95)


def estimate_strength(hole_cards: list[Card], community_cards: list[Card]) -> float:
    """Hand strength in [0, 1]: heuristic pre-flop, evaluator category after."""
    if not hole_cards:
        return DEFAULT_STRENGTH
    if len(community_cards) < 3:
        return preflop_strength(hole_cards)

    hand = evaluate_best_hand(list(hole_cards) + list(community_cards))
    return min(1.0, int(hand.rank) / 10 * 1.2)


def legalize(decision: AIDecision, observation: AIObservation) -> AIDecision:
    """Turn a decision into one the engine will accept for this observation.

    Raises are capped at the stack; a raise that no longer exceeds the table
    bet becomes a call (or check). A check facing a bet becomes a call and a
    fold with nothing to call becomes a check.
    """
    to_call = observation.to_call
    passive = ActionType.CALL if to_call > 0 else ActionType.CHECK

    if decision.action == ActionType.RAISE:
        amount = min(decision.amount, observation.my_chips + observation.my_bet)
        if amount <= observation.current_bet:
            return AIDecision(passive)
        return AIDecision(ActionType.RAISE, amount, decision.taunt_category)

    if decision.action == ActionType.FOLD and to_call == 0:
        return AIDecision(ActionType.CHECK)

    if decision.action in (ActionType.CHECK, ActionType.CALL):
        return AIDecision(passive)

    return decision


def decide(
    observation: AIObservation,
    hole_cards: list[Card],
    community_cards: list[Card],
    rng: Optional[random.Random] = None,
) -> AIDecision:
    """Pick an action for the AI seat.

    Args:
        observation: Public table state plus the AI's own stack.
        hole_cards: The AI's hole cards.
        community_cards: Board cards dealt so far.
        rng: Random source, injectable for deterministic tests.

    Returns:
        A legal AIDecision.
    """
    rng = rng or random.Random()
    strength = estimate_strength(hole_cards, community_cards)

    current_bet = observation.current_bet
    pot = observation.pot
    my_chips = observation.my_chips
    big_blind = observation.big_blind or 20
    to_call = observation.to_call

    pot_odds = to_call / (pot + to_call) if pot > 0 else DEFAULT_STRENGTH
    random_factor = rng.random()
    aggressive = random_factor < AGGRESSION
    bluffing = rng.random() < BLUFF_CHANCE and my_chips > pot

    decision: AIDecision

    if strength >= STRONG_HAND:
        if strength >= MONSTER_HAND and rng.random() < SHOVE_CHANCE:
            decision = AIDecision(ActionType.RAISE, my_chips + observation.my_bet, "raise")
        else:
            raise_to = max(int(pot * (0.5 + strength * 0.5)), current_bet + big_blind)
            if raise_to > current_bet and my_chips > raise_to:
                decision = AIDecision(ActionType.RAISE, raise_to, "raise")
            else:
                decision = AIDecision(ActionType.CALL)

    elif strength >= MEDIUM_HAND:
        if to_call == 0:
            decision = AIDecision(ActionType.CHECK)
            if aggressive or strength > 0.5:
                bet = int(pot * 0.4) + big_blind
                if my_chips > bet:
                    decision = AIDecision(ActionType.RAISE, max(bet, current_bet + big_blind))
        elif strength > pot_odds or aggressive:
            if random_factor < 0.3 and my_chips > current_bet * 2:
                decision = AIDecision(ActionType.RAISE, current_bet * 2, "raise")
            else:
                decision = AIDecision(ActionType.CALL)
        else:
            decision = AIDecision(ActionType.FOLD)

    elif to_call == 0:
        decision = AIDecision(ActionType.CHECK)
        if bluffing:
            bluff = int(pot * 0.6)
            if bluff > big_blind:
                decision = AIDecision(ActionType.RAISE, bluff)

    elif to_call <= pot * 0.3 and random_factor < LOOSE_CALL_CHANCE:
        decision = AIDecision(ActionType.CALL)

    else:
        decision = AIDecision(ActionType.FOLD)

    return legalize(decision, observation)
