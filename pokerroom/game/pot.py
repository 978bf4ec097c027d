"""Pot and side-pot calculation."""
from dataclasses import dataclass

from pokerroom.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SidePot:
    """A pot or side pot."""
    amount: int
    eligible_players: list[str]  # player_ids of players eligible to win this pot

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "amount": self.amount,
            "eligible_players": self.eligible_players,
        }


def build_side_pots(
    contributions: dict[str, int],
    live_players: list[str],
) -> list[SidePot]:
    """Split the chips put in this hand into a main pot and side pots.

    Each distinct contribution level among live (un-folded) players closes a
    pot that only players who reached that level may win. Chips from folded
    players are dead money in whichever layers they reached. A layer nobody
    live reached is merged into the pot below it.

    Args:
        contributions: player_id -> total chips put in this hand.
        live_players: player_ids still in the hand, in payout order.

    Returns:
        Pots from main pot upward.
    """
    levels = sorted({contributions.get(pid, 0) for pid in live_players})
    levels = [level for level in levels if level > 0]
    highest = max(contributions.values(), default=0)
    if levels and highest > levels[-1]:
        levels.append(highest)

    pots: list[SidePot] = []
    prev_level = 0
    for level in levels:
        amount = sum(
            max(0, min(contrib, level) - prev_level)
            for contrib in contributions.values()
        )
        eligible = [pid for pid in live_players if contributions.get(pid, 0) >= level]

        if amount > 0:
            if not eligible and pots:
                pots[-1].amount += amount
            elif pots and pots[-1].eligible_players == eligible:
                pots[-1].amount += amount
            else:
                pots.append(SidePot(amount=amount, eligible_players=eligible))
        prev_level = level

    logger.debug(f"Calculated {len(pots)} pots from {len(contributions)} contributors")
    return pots


def calculate_winnings(
    side_pots: list[SidePot],
    winners_by_pot: dict[int, list[str]]
) -> dict[str, int]:
    """Calculate how much each player wins.

    Args:
        side_pots: List of side pots.
        winners_by_pot: Dict of pot_index -> list of winner player_ids.

    Returns:
        Dict of player_id -> amount won.
    """
    winnings: dict[str, int] = {}

    for pot_idx, pot in enumerate(side_pots):
        winners = winners_by_pot.get(pot_idx)
        if not winners:
            continue

        # Split pot among winners, odd chips to the earliest winners
        share = pot.amount // len(winners)
        remainder = pot.amount % len(winners)

        for i, winner in enumerate(winners):
            amount = share + (1 if i < remainder else 0)
            winnings[winner] = winnings.get(winner, 0) + amount

    return winnings
