"""Betting rules: legal actions, call amounts and round completion."""
from enum import Enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pokerroom.game.player import Player
    from pokerroom.game.room import Room


class ActionType(str, Enum):
    """Player action types."""
    FOLD = "fold"
    CHECK = "check"
    CALL = "call"
    RAISE = "raise"


@dataclass
class Action:
    """A player's action.

    For a raise, ``amount`` is the total the player's bet is raised TO this
    street, not the increment.
    """
    type: ActionType
    amount: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "type": self.type.value,
            "amount": self.amount,
        }


def get_call_amount(room: "Room", player: "Player") -> int:
    """Chips the player would put in by calling.

    May be less than ``current_bet - player.current_bet`` when short-stacked.
    """
    to_call = max(0, room.current_bet - player.current_bet)
    return min(to_call, player.chips)


def get_min_raise(room: "Room") -> int:
    """Smallest legal raise-to total."""
    return room.current_bet + 1


def get_valid_actions(room: "Room", player: "Player") -> list[ActionType]:
    """Get valid actions for a player.

    Args:
        room: Room holding the current street.
        player: The player to check.

    Returns:
        List of valid action types.
    """
    if not player.can_act:
        return []

    actions = [ActionType.FOLD]

    to_call = room.current_bet - player.current_bet
    if to_call <= 0:
        actions.append(ActionType.CHECK)
    else:
        actions.append(ActionType.CALL)

    # Raising needs at least one chip above the table bet
    if player.chips + player.current_bet > room.current_bet:
        actions.append(ActionType.RAISE)

    return actions


def is_round_complete(room: "Room") -> bool:
    """Whether the current street's betting is finished.

    Every un-folded player who still has chips must have acted since the
    last raise and matched the table bet. All-in players are exempt, and a
    lone player who can still act has nobody left to bet against once matched.
    """
    actors = [p for p in room.players if p.can_act]
    if len(actors) <= 1:
        return all(p.current_bet >= room.current_bet for p in actors)

    for player in actors:
        if player.player_id not in room.players_acted:
            return False
        if player.current_bet < room.current_bet:
            return False
    return True
