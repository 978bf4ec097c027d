"""Turn engine: the Texas Hold'em state machine for a room.

The engine works on a loaded ``Room`` in place and never touches storage or
sockets. Every rejected request raises a ``GameError`` before anything is
mutated, so callers can simply drop the room on error.
"""
import random
import uuid
from dataclasses import dataclass
from typing import Optional

from pokerroom.config import config
from pokerroom.game.deck import Deck
from pokerroom.game.player import Player
from pokerroom.game.pot import build_side_pots, calculate_winnings
from pokerroom.game.betting import (
    Action,
    ActionType,
    get_valid_actions,
    is_round_complete,
)
from pokerroom.game.hand_eval import HandResult, evaluate_hand, compare_hands
from pokerroom.game.room import (
    Room,
    RoomSettings,
    Phase,
    ChatEntry,
    HandOutcome,
    BETTING_PHASES,
)
from pokerroom.game import ai
from pokerroom.game.errors import (
    GameError,
    BuyBackDeniedError,
    GameInProgressError,
    InsufficientChipsError,
    InvalidActionError,
    NotEnoughPlayersError,
    NotHostError,
    NotYourTurnError,
    PlayerNotFoundError,
    RoomFullError,
)
from pokerroom.utils.logger import get_logger

logger = get_logger(__name__)

# Cards dealt when leaving each betting street
_NEXT_STREET = {
    Phase.PREFLOP: (Phase.FLOP, 3),
    Phase.FLOP: (Phase.TURN, 1),
    Phase.TURN: (Phase.RIVER, 1),
}

BIG_WIN_THRESHOLD = 100
LOW_CHIPS_BIG_BLINDS = 3


@dataclass
class ActionOutcome:
    """What an applied action did to the room."""
    player_id: str
    action: Action
    paid: int = 0
    street_advanced: bool = False
    hand_complete: bool = False
    outcome: Optional[HandOutcome] = None

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "action": self.action.type.value,
            "amount": self.action.amount,
            "paid": self.paid,
        }


class TurnEngine:
    """Applies room operations and drives hands from deal to settlement."""

    def __init__(self, rng: Optional[random.Random] = None):
        """Initialize the engine.

        Args:
            rng: Random source for shuffles, AI decisions and taunts.
        """
        self._rng = rng or random.Random()

    # Room setup

    def create_room(
        self,
        code: str,
        host_name: str,
        settings: Optional[RoomSettings] = None,
        with_ai: bool = False,
    ) -> tuple[Room, Player]:
        """Build a new room with its host seated (and an AI seat if asked)."""
        room = Room(code=code, settings=settings or RoomSettings())
        host = self.add_player(room, host_name, is_host=True)
        if with_ai:
            self.add_player(room, config.ai_player_name, is_ai=True)
        return room, host

    def add_player(
        self,
        room: Room,
        name: str,
        is_ai: bool = False,
        is_host: bool = False,
    ) -> Player:
        """Seat a new player. Only allowed before the first hand."""
        if room.phase != Phase.WAITING:
            raise GameInProgressError("Game already in progress")
        if len(room.players) >= config.max_players_per_room:
            raise RoomFullError("Room is full")

        player = Player(
            player_id=str(uuid.uuid4()),
            name=name.strip() or "Player",
            chips=room.settings.starting_chips,
            is_ai=is_ai,
            is_host=is_host,
            connected=not is_ai,
        )
        room.players.append(player)
        room.touch()

        logger.info(f"{player.name} joined room {room.code}")
        return player

    def start_game(self, room: Room, player_id: str) -> None:
        """Host starts the first hand."""
        player = self._require_player(room, player_id)
        if not player.is_host:
            raise NotHostError("Only the host can start the game")
        if room.phase != Phase.WAITING:
            raise GameInProgressError("Game already in progress")
        self.start_hand(room)

    def next_round(self, room: Room, player_id: str) -> None:
        """Deal the next hand once the previous one has been settled."""
        self._require_player(room, player_id)
        if room.phase != Phase.SHOWDOWN:
            raise InvalidActionError("The current hand is not finished")
        if len(self._funded(room)) < 2:
            raise NotEnoughPlayersError("Need at least 2 players with chips")

        room.dealer_index = self._next_funded_index(room, room.dealer_index)
        self.start_hand(room)

    # Hand flow

    def start_hand(self, room: Room) -> None:
        """Shuffle, post blinds, deal hole cards and hand the turn out.

        Raises:
            NotEnoughPlayersError: If fewer than 2 players have chips.
        """
        funded = self._funded(room)
        if len(funded) < 2:
            raise NotEnoughPlayersError("Need at least 2 players with chips")

        room.hand_number += 1
        room.action_seq += 1
        room.community_cards = []
        room.burnt = []
        room.pot = 0
        room.current_bet = 0
        room.players_acted = set()
        room.contributions = {}
        room.revealed = []
        room.last_outcome = None

        for player in room.players:
            player.reset_for_new_hand()

        if room.players[room.dealer_index % len(room.players)].chips <= 0:
            room.dealer_index = self._next_funded_index(room, room.dealer_index)
        room.dealer_index %= len(room.players)

        deck = Deck(rng=self._rng)
        for idx in self._seat_order(room, room.dealer_index):
            player = room.players[idx]
            if not player.folded:
                player.receive_cards(deck.deal(2))

        # Heads-up: dealer posts the small blind and acts first pre-flop
        if len(funded) == 2:
            sb_index = room.dealer_index
        else:
            sb_index = self._next_funded_index(room, room.dealer_index)
        bb_index = self._next_funded_index(room, sb_index)

        sb_player = room.players[sb_index]
        bb_player = room.players[bb_index]
        sb_amount = self._put_in(room, sb_player, room.settings.small_blind)
        bb_amount = self._put_in(room, bb_player, room.settings.big_blind)
        room.current_bet = max(p.current_bet for p in room.players)
        room.deck = deck.cards
        room.phase = Phase.PREFLOP
        room.touch()

        logger.info(
            f"Started hand #{room.hand_number} in room {room.code}: "
            f"blinds {sb_player.name}={sb_amount}, {bb_player.name}={bb_amount}"
        )

        if is_round_complete(room):
            self._advance_street(room)
        else:
            self._set_actor(room, self._next_actor_index(room, bb_index))

    def apply_action(self, room: Room, player_id: str, action: Action) -> ActionOutcome:
        """Validate and apply one betting action.

        Args:
            room: Freshly loaded room.
            player_id: Stable id of the acting player.
            action: Requested action; a raise amount is the raise-to total.

        Returns:
            ActionOutcome describing the applied action.

        Raises:
            GameError: If the action is not legal right now. The room is
                left untouched.
        """
        if room.phase not in BETTING_PHASES:
            raise InvalidActionError("No hand in progress")
        player = self._require_player(room, player_id)
        actor = room.acting_player
        if actor is None or actor.player_id != player_id:
            raise NotYourTurnError("Not your turn")
        if not player.can_act:
            raise InvalidActionError("You cannot act in this hand")

        to_call = room.current_bet - player.current_bet
        applied = action

        if action.type == ActionType.CHECK and to_call > 0:
            raise InvalidActionError("Cannot check, there is a bet to call")
        if action.type == ActionType.CALL and to_call <= 0:
            applied = Action(ActionType.CHECK)
        if action.type == ActionType.RAISE:
            if action.amount <= room.current_bet:
                raise InvalidActionError(
                    f"Raise must be higher than the current bet of {room.current_bet}"
                )
            if action.amount - player.current_bet > player.chips:
                raise InsufficientChipsError("Not enough chips for that raise")

        paid = 0
        if applied.type == ActionType.FOLD:
            player.fold()
        elif applied.type == ActionType.CALL:
            paid = self._put_in(room, player, to_call)
            applied = Action(ActionType.CALL, player.current_bet)
        elif applied.type == ActionType.RAISE:
            paid = self._put_in(room, player, applied.amount - player.current_bet)
            room.current_bet = player.current_bet

        if applied.type == ActionType.RAISE:
            room.players_acted = {player_id}
        else:
            room.players_acted.add(player_id)

        player.is_turn = False
        room.action_seq += 1
        room.touch()

        logger.info(
            f"{player.name} {applied.type.value}"
            f"{f' {applied.amount}' if applied.amount else ''} in room {room.code}"
        )

        result = ActionOutcome(player_id=player_id, action=applied, paid=paid)
        self._progress(room, room.index_of(player_id), result)
        return result

    def auto_action(self, room: Room, player_id: str) -> ActionOutcome:
        """Timed-out turn: check when that is legal, otherwise fold."""
        player = self._require_player(room, player_id)
        if ActionType.CHECK in get_valid_actions(room, player):
            action = Action(ActionType.CHECK)
        else:
            action = Action(ActionType.FOLD)
        return self.apply_action(room, player_id, action)

    def play_ai_turn(self, room: Room) -> tuple[ActionOutcome, ai.AIDecision]:
        """Let the AI seat holding the turn decide and act.

        The decision goes through ``apply_action`` like any human action. If
        it is still rejected the AI checks, or folds when it cannot check.
        """
        player = room.acting_player
        if player is None or not player.is_ai:
            raise NotYourTurnError("Not the AI's turn")

        observation = ai.AIObservation(
            current_bet=room.current_bet,
            pot=room.pot,
            my_bet=player.current_bet,
            my_chips=player.chips,
            big_blind=room.settings.big_blind,
        )
        decision = ai.decide(
            observation, player.hole_cards, room.community_cards, rng=self._rng
        )

        try:
            result = self.apply_action(
                room, player.player_id, Action(decision.action, decision.amount)
            )
        except GameError as e:
            logger.warning(f"AI action rejected in room {room.code}: {e.message}")
            result = self.auto_action(room, player.player_id)
            decision = ai.AIDecision(result.action.type)

        return result, decision

    # Between hands

    def buy_back(self, room: Room, player_id: str) -> int:
        """Refill a busted player's stack. Returns the chips granted."""
        player = self._require_player(room, player_id)
        settings = room.settings

        if room.phase not in (Phase.WAITING, Phase.SHOWDOWN):
            raise BuyBackDeniedError("Buy-back is only allowed between hands")
        if not settings.allow_buy_back:
            raise BuyBackDeniedError("Buy-backs are disabled in this room")
        if player.chips > 0:
            raise BuyBackDeniedError("You still have chips")
        if player.buy_backs_used >= settings.max_buy_backs:
            raise BuyBackDeniedError("No buy-backs left")

        player.chips += settings.buy_back_amount
        player.buy_backs_used += 1
        room.touch()

        logger.info(
            f"{player.name} bought back {settings.buy_back_amount} in room {room.code} "
            f"({player.buy_backs_used}/{settings.max_buy_backs})"
        )
        return settings.buy_back_amount

    def add_chat(
        self,
        room: Room,
        player_id: str,
        message: str,
        is_taunt: bool = False,
    ) -> ChatEntry:
        """Append a chat line, keeping only the newest entries."""
        player = self._require_player(room, player_id)
        text = message.strip()[:config.chat_message_max_length]
        if not text:
            raise InvalidActionError("Message is empty")

        entry = ChatEntry(
            player_id=player.player_id,
            player_name=player.name,
            message=text,
            is_ai=player.is_ai,
            is_taunt=is_taunt,
        )
        room.chat_log.append(entry)
        del room.chat_log[:-config.chat_log_limit]
        room.touch()
        return entry

    def add_taunt(self, room: Room, player_id: str, category: str) -> Optional[ChatEntry]:
        """Chat a taunt from an AI seat. Never affects game state."""
        line = ai.pick_taunt(category, self._rng)
        if line is None:
            return None
        return self.add_chat(room, player_id, line, is_taunt=True)

    def hand_end_taunt(self, room: Room) -> Optional[ChatEntry]:
        """AI reaction to the hand that just finished, if any."""
        outcome = room.last_outcome
        bot = next((p for p in room.players if p.is_ai), None)
        if outcome is None or bot is None:
            return None

        won = sum(w["amount"] for w in outcome.winners if w["player_id"] == bot.player_id)
        if won > 0:
            if outcome.kind == "round_end":
                category = "player_folded"
            elif won > BIG_WIN_THRESHOLD:
                category = "big_win"
            else:
                category = "win"
            return self.add_taunt(room, bot.player_id, category)

        low = LOW_CHIPS_BIG_BLINDS * room.settings.big_blind
        if any(0 < p.chips <= low for p in room.players if not p.is_ai):
            return self.add_taunt(room, bot.player_id, "player_low_chips")
        return None

    # Internals

    def _require_player(self, room: Room, player_id: str) -> Player:
        player = room.get_player(player_id)
        if player is None:
            raise PlayerNotFoundError("Player not found in this room")
        return player

    def _funded(self, room: Room) -> list[Player]:
        return [p for p in room.players if p.chips > 0]

    def _seat_order(self, room: Room, after: int) -> list[int]:
        """Seat indices starting with the seat after ``after``."""
        count = len(room.players)
        return [(after + offset) % count for offset in range(1, count + 1)]

    def _next_funded_index(self, room: Room, after: int) -> int:
        for idx in self._seat_order(room, after):
            if room.players[idx].chips > 0:
                return idx
        return after % len(room.players)

    def _next_actor_index(self, room: Room, after: int) -> Optional[int]:
        for idx in self._seat_order(room, after):
            if room.players[idx].can_act:
                return idx
        return None

    def _put_in(self, room: Room, player: Player, amount: int) -> int:
        paid = player.bet(amount)
        room.pot += paid
        room.contributions[player.player_id] = (
            room.contributions.get(player.player_id, 0) + paid
        )
        return paid

    def _set_actor(self, room: Room, index: Optional[int]) -> None:
        for player in room.players:
            player.is_turn = False
        if index is None:
            return
        room.acting_player_index = index
        room.players[index].is_turn = True

    def _progress(self, room: Room, last_index: int, result: ActionOutcome) -> None:
        """Move the hand on after an action: next actor, next street or settlement."""
        live = room.live_players
        if len(live) == 1:
            result.outcome = self._award_uncontested(room, live[0])
            result.hand_complete = True
        elif is_round_complete(room):
            result.street_advanced = True
            result.outcome = self._advance_street(room)
            result.hand_complete = result.outcome is not None
        else:
            self._set_actor(room, self._next_actor_index(room, last_index))

    def _advance_street(self, room: Room) -> Optional[HandOutcome]:
        """Close the street and deal the next one.

        While fewer than two players can still bet, keeps dealing until the
        board is complete and settles at showdown.
        """
        deck = Deck(cards=room.deck, rng=self._rng)
        while True:
            for player in room.players:
                player.current_bet = 0
            room.current_bet = 0
            room.players_acted = set()

            if room.phase == Phase.RIVER:
                room.deck = deck.cards
                return self._showdown(room)

            next_phase, count = _NEXT_STREET[room.phase]
            room.burnt.append(deck.burn())
            room.community_cards.extend(deck.deal(count))
            room.phase = next_phase
            logger.info(
                f"Dealt {next_phase.value} in room {room.code}: "
                f"{' '.join(str(c) for c in room.community_cards)}"
            )

            if sum(1 for p in room.players if p.can_act) >= 2:
                room.deck = deck.cards
                self._set_actor(room, self._next_actor_index(room, room.dealer_index))
                return None

    def _award_uncontested(self, room: Room, winner: Player) -> HandOutcome:
        amount = room.pot
        winner.win_pot(amount)
        room.pot = 0
        room.phase = Phase.SHOWDOWN
        self._set_actor(room, None)

        outcome = HandOutcome(
            kind="round_end",
            reason="All others folded",
            pot_total=amount,
            winners=[{
                "player_id": winner.player_id,
                "name": winner.name,
                "amount": amount,
                "hand": None,
            }],
        )
        room.last_outcome = outcome
        logger.info(f"Hand #{room.hand_number} in room {room.code}: {winner.name} wins {amount} uncontested")
        return outcome

    def _showdown(self, room: Room) -> HandOutcome:
        """Evaluate live hands and pay every pot to its best eligible hands."""
        room.phase = Phase.SHOWDOWN
        self._set_actor(room, None)

        # Payout order starts left of the dealer; odd chips go to the earliest winner
        live = [
            room.players[idx] for idx in self._seat_order(room, room.dealer_index)
            if room.players[idx].in_hand
        ]
        order = [p.player_id for p in live]
        hands: dict[str, HandResult] = {
            p.player_id: evaluate_hand(p.hole_cards, room.community_cards) for p in live
        }

        side_pots = build_side_pots(room.contributions, order)
        winners_by_pot: dict[int, list[str]] = {}
        for pot_idx, side_pot in enumerate(side_pots):
            eligible = [(pid, hands[pid]) for pid in side_pot.eligible_players]
            if not eligible:
                continue
            best = set(compare_hands(eligible)[0])
            winners_by_pot[pot_idx] = [pid for pid in order if pid in best]

        winnings = calculate_winnings(side_pots, winners_by_pot)
        total = room.pot
        for player in live:
            player.win_pot(winnings.get(player.player_id, 0))
        room.pot = 0
        room.revealed = order

        winners = [
            {
                "player_id": p.player_id,
                "name": p.name,
                "amount": winnings[p.player_id],
                "hand": hands[p.player_id].description,
            }
            for p in live if winnings.get(p.player_id)
        ]
        top = max(hands.values())
        if len(winners) == 1:
            reason = f"{winners[0]['name']} wins with {top.description}"
        else:
            reason = f"Split between {', '.join(w['name'] for w in winners)}"
        outcome = HandOutcome(
            kind="showdown",
            reason=reason,
            pot_total=total,
            winners=winners,
            hands=[
                {
                    "player_id": p.player_id,
                    "name": p.name,
                    "cards": [str(c) for c in p.hole_cards],
                    "hand": hands[p.player_id].to_dict(),
                }
                for p in live
            ],
        )
        room.last_outcome = outcome
        logger.info(f"Hand #{room.hand_number} in room {room.code} winners: {winners}")
        return outcome
