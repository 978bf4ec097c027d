"""Room service: runs every room event through load, mutate, persist, broadcast.

Each event takes the room's lock, loads the room fresh from the store, lets
the engine validate and mutate it, saves it with a version check and only
then tells the connections about it. Nothing is kept in memory between
events, so a failed save leaves the persisted room as the only truth.
"""
import asyncio
import random
import weakref
from typing import Awaitable, Callable, Optional

from pokerroom.config import config
from pokerroom.game.room import Room, RoomSettings, ChatEntry, generate_room_code
from pokerroom.game.betting import Action, ActionType
from pokerroom.game.engine import TurnEngine, ActionOutcome
from pokerroom.game.errors import (
    AlreadyInRoomError,
    NotInRoomError,
    PlayerNotFoundError,
    RoomNotFoundError,
    StorageError,
)
from pokerroom.state.room_store import RoomStore, room_store
from pokerroom.session.connections import ConnectionRegistry
from pokerroom.session.scheduler import TurnScheduler
from pokerroom.protocol.messages import (
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
)
from pokerroom.utils.logger import get_logger

logger = get_logger(__name__)

ROOM_CODE_ATTEMPTS = 10


class RoomService:
    """Handles room events for all connections of this process."""

    def __init__(
        self,
        store: Optional[RoomStore] = None,
        connections: Optional[ConnectionRegistry] = None,
        scheduler: Optional[TurnScheduler] = None,
        engine: Optional[TurnEngine] = None,
        ai_delay: float = config.ai_turn_delay_seconds,
        rng: Optional[random.Random] = None,
        retry_delay: float = config.turn_retry_delay_seconds,
    ):
        self.store = store or room_store
        self.connections = connections or ConnectionRegistry()
        self.scheduler = scheduler or TurnScheduler()
        self.engine = engine or TurnEngine(rng=rng)
        self.ai_delay = ai_delay
        self.retry_delay = retry_delay
        self._rng = rng or random.Random()
        # A lock lives only while some event holds or waits for it
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    # Helpers

    def _lock(self, room_code: str) -> asyncio.Lock:
        lock = self._locks.get(room_code)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[room_code] = lock
        return lock

    async def _load(self, room_code: str) -> Room:
        room = await self.store.get_room(room_code)
        if room is None:
            raise RoomNotFoundError(f"Room {room_code} not found")
        return room

    def _bound(self, connection_id: str) -> tuple[str, str]:
        binding = self.connections.binding(connection_id)
        if binding is None:
            raise NotInRoomError("Join a room first")
        return binding

    def _require_unbound(self, connection_id: str) -> None:
        if self.connections.binding(connection_id) is not None:
            raise AlreadyInRoomError("This connection already has a seat")

    async def _broadcast_chat(self, room_code: str, entries: list[ChatEntry]) -> None:
        for entry in entries:
            await self.connections.broadcast(
                room_code, NewChatMessage(**entry.to_dict()).model_dump()
            )

    async def _announce_outcome(self, room: Room) -> None:
        """Send the settled hand: ``showdown`` or ``round_end``."""
        outcome = room.last_outcome
        if outcome is None:
            return

        if outcome.kind == "showdown":
            def build(state: dict) -> dict:
                return ShowdownMessage(
                    room=state,
                    winners=outcome.winners,
                    hands=outcome.hands,
                    pot_total=outcome.pot_total,
                    reason=outcome.reason,
                ).model_dump()
        else:
            def build(state: dict) -> dict:
                return RoundEndMessage(
                    room=state,
                    winners=outcome.winners,
                    pot_total=outcome.pot_total,
                    reason=outcome.reason,
                ).model_dump()

        await self.connections.broadcast_room(room, build)

    async def _publish_action(
        self,
        room: Room,
        result: ActionOutcome,
        chat: list[ChatEntry],
    ) -> None:
        await self.connections.broadcast_room(
            room,
            lambda state: GameUpdateMessage(
                room=state, last_action=result.to_dict()
            ).model_dump(),
        )
        if result.hand_complete:
            await self._announce_outcome(room)
        await self._broadcast_chat(room.code, chat)
        self._schedule_next_turn(room)

    def _hand_end_chat(self, room: Room, result: ActionOutcome) -> list[ChatEntry]:
        if not result.hand_complete:
            return []
        entry = self.engine.hand_end_taunt(room)
        return [entry] if entry else []

    # Turn scheduling

    def _schedule_next_turn(self, room: Room) -> None:
        """Arrange the AI move or turn timeout for whoever holds the turn now."""
        actor = room.acting_player
        if actor is None:
            self.scheduler.cancel(room.code)
            return

        code = room.code
        token = room.turn_token()
        if actor.is_ai:
            self.scheduler.schedule(code, self.ai_delay, lambda: self._run_ai_turn(code, token))
        elif room.settings.turn_time_limit > 0:
            self.scheduler.schedule(
                code,
                room.settings.turn_time_limit,
                lambda: self._run_turn_timeout(code, token),
            )
        else:
            self.scheduler.cancel(code)

    def _ensure_turn_scheduled(self, room: Room) -> None:
        """Re-arm the turn task when this process has none pending for the room.

        Tasks live in memory only, so a room loaded after a restart may have
        an actor nobody is timing.
        """
        if self.scheduler.pending(room.code) is None:
            self._schedule_next_turn(room)

    def _retry_turn(
        self,
        room_code: str,
        error: StorageError,
        attempt: int,
        retry: Callable[[int], Awaitable[None]],
    ) -> None:
        """Run a turn callback again later after its load or save failed."""
        delay = min(self.retry_delay * 2 ** attempt, config.turn_retry_max_delay_seconds)
        logger.warning(
            f"Scheduled turn in room {room_code} failed ({error.code}: {error.message}), "
            f"retry {attempt + 1} in {delay:.2f}s"
        )
        self.scheduler.schedule(room_code, delay, lambda: retry(attempt + 1))

    async def _run_ai_turn(self, room_code: str, token: tuple, attempt: int = 0) -> None:
        """Scheduled AI move. Does nothing if the turn has moved on."""
        async with self._lock(room_code):
            try:
                room = await self.store.get_room(room_code)
                if room is None or room.turn_token() != token:
                    logger.debug(f"Skipping stale AI turn in room {room_code}")
                    return

                result, decision = self.engine.play_ai_turn(room)
                chat = []
                if decision.taunt_category:
                    entry = self.engine.add_taunt(room, result.player_id, decision.taunt_category)
                    if entry:
                        chat.append(entry)
                chat.extend(self._hand_end_chat(room, result))

                await self.store.save_room(room)
            except StorageError as e:
                self._retry_turn(
                    room_code, e, attempt, lambda n: self._run_ai_turn(room_code, token, n)
                )
                return

            await self._publish_action(room, result, chat)

    async def _run_turn_timeout(self, room_code: str, token: tuple, attempt: int = 0) -> None:
        """Scheduled turn timeout: check if possible, otherwise fold."""
        async with self._lock(room_code):
            try:
                room = await self.store.get_room(room_code)
                if room is None or room.turn_token() != token:
                    logger.debug(f"Skipping stale turn timeout in room {room_code}")
                    return

                player_id = token[2]
                logger.info(f"Player {player_id} timed out in room {room_code}")
                result = self.engine.auto_action(room, player_id)
                chat = self._hand_end_chat(room, result)

                await self.store.save_room(room)
            except StorageError as e:
                self._retry_turn(
                    room_code, e, attempt, lambda n: self._run_turn_timeout(room_code, token, n)
                )
                return

            await self._publish_action(room, result, chat)

    # Events

    async def create_room(
        self,
        connection_id: str,
        player_name: str,
        settings: Optional[RoomSettings] = None,
        with_ai: bool = False,
    ) -> dict:
        """Create a room with the caller as host."""
        self._require_unbound(connection_id)
        for _ in range(ROOM_CODE_ATTEMPTS):
            code = generate_room_code(rng=self._rng)
            room, host = self.engine.create_room(code, player_name, settings, with_ai)
            host.connection_id = connection_id
            if await self.store.create_room(room):
                break
        else:
            raise StorageError("Could not allocate a room code")

        self.connections.bind(connection_id, room.code, host.player_id)
        logger.info(f"{host.name} created room {room.code} (ai={with_ai})")

        return RoomCreatedMessage(
            room_code=room.code,
            player_id=host.player_id,
            room=room.get_state_for_player(host.player_id),
        ).model_dump()

    async def join_room(self, connection_id: str, room_code: str, player_name: str) -> dict:
        """Take a new seat in a room that has not started yet."""
        self._require_unbound(connection_id)
        code = room_code.strip().upper()
        async with self._lock(code):
            room = await self._load(code)
            player = self.engine.add_player(room, player_name)
            player.connection_id = connection_id
            await self.store.save_room(room)

            self.connections.bind(connection_id, code, player.player_id)
            await self.connections.broadcast_room(
                room,
                lambda state: PlayerJoinedMessage(
                    player_id=player.player_id, name=player.name, room=state
                ).model_dump(),
                exclude=connection_id,
            )

        return RoomJoinedMessage(
            room_code=code,
            player_id=player.player_id,
            room=room.get_state_for_player(player.player_id),
        ).model_dump()

    async def rejoin_room(self, connection_id: str, room_code: str, player_id: str) -> dict:
        """Reattach a new connection to an existing seat."""
        code = room_code.strip().upper()
        binding = self.connections.binding(connection_id)
        if binding is not None and binding != (code, player_id):
            raise AlreadyInRoomError("This connection already has a seat")
        async with self._lock(code):
            room = await self._load(code)
            player = room.get_player(player_id)
            if player is None or player.is_ai:
                raise PlayerNotFoundError("Player not found in this room")

            player.connection_id = connection_id
            player.connected = True
            room.touch()
            await self.store.save_room(room)

            self.connections.bind(connection_id, code, player_id)
            await self.connections.broadcast(
                code,
                PlayerReconnectedMessage(player_id=player_id, name=player.name).model_dump(),
                exclude=connection_id,
            )
            self._ensure_turn_scheduled(room)

        logger.info(f"{player.name} reconnected to room {code}")
        return RoomJoinedMessage(
            room_code=code,
            player_id=player_id,
            room=room.get_state_for_player(player_id),
        ).model_dump()

    async def start_game(self, connection_id: str) -> None:
        code, player_id = self._bound(connection_id)
        async with self._lock(code):
            room = await self._load(code)
            self.engine.start_game(room, player_id)
            await self.store.save_room(room)

            await self.connections.broadcast_room(
                room, lambda state: GameStartedMessage(room=state).model_dump()
            )
            if room.last_outcome is not None:
                await self._announce_outcome(room)
            self._schedule_next_turn(room)

    async def player_action(self, connection_id: str, action: str, amount: int = 0) -> None:
        code, player_id = self._bound(connection_id)
        async with self._lock(code):
            room = await self._load(code)
            result = self.engine.apply_action(
                room, player_id, Action(ActionType(action), amount)
            )
            chat = self._hand_end_chat(room, result)
            await self.store.save_room(room)
            await self._publish_action(room, result, chat)

    async def chat_message(self, connection_id: str, message: str) -> None:
        code, player_id = self._bound(connection_id)
        async with self._lock(code):
            room = await self._load(code)
            entry = self.engine.add_chat(room, player_id, message)
            await self.store.save_room(room)
            await self._broadcast_chat(code, [entry])
            self._ensure_turn_scheduled(room)

    async def next_round(self, connection_id: str) -> None:
        code, player_id = self._bound(connection_id)
        async with self._lock(code):
            room = await self._load(code)
            self.engine.next_round(room, player_id)
            await self.store.save_room(room)

            await self.connections.broadcast_room(
                room, lambda state: GameStartedMessage(room=state).model_dump()
            )
            if room.last_outcome is not None:
                await self._announce_outcome(room)
            self._schedule_next_turn(room)

    async def buy_back(self, connection_id: str) -> dict:
        code, player_id = self._bound(connection_id)
        async with self._lock(code):
            room = await self._load(code)
            amount = self.engine.buy_back(room, player_id)
            await self.store.save_room(room)

            await self.connections.broadcast_room(
                room, lambda state: GameUpdateMessage(room=state).model_dump()
            )
            self._ensure_turn_scheduled(room)

        player = room.get_player(player_id)
        return BuyBackSuccessMessage(
            player_id=player_id,
            amount=amount,
            chips=player.chips,
            buy_backs_used=player.buy_backs_used,
        ).model_dump()

    async def disconnect(self, connection_id: str) -> None:
        """Socket closed. The seat stays; only the connection flag changes."""
        binding = self.connections.unregister(connection_id)
        if binding is None:
            return

        code, player_id = binding
        async with self._lock(code):
            room = await self.store.get_room(code)
            if room is None:
                return
            player = room.get_player(player_id)
            # A newer socket may already own the seat
            if player is None or player.connection_id != connection_id:
                return

            player.connected = False
            room.touch()
            await self.store.save_room(room)

            await self.connections.broadcast(
                code,
                PlayerDisconnectedMessage(player_id=player_id, name=player.name).model_dump(),
            )

        logger.info(f"{player.name} disconnected from room {code}")

    async def get_room_state(self, room_code: str) -> dict:
        """Spectator view of a room."""
        room = await self._load(room_code.strip().upper())
        return room.get_state_for_spectator()

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()
