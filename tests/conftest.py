"""Shared test helpers: rigged rooms, an in-memory room store and fake sockets."""
import json
import random
from typing import Optional

import pytest
import pytest_asyncio

from pokerroom.game.deck import Card, create_deck
from pokerroom.game.room import Room, RoomSettings
from pokerroom.game.engine import TurnEngine
from pokerroom.game.errors import StorageError, StaleRoomError
from pokerroom.session.room_service import RoomService


def make_cards(cards: str) -> list[Card]:
    """Cards from a space-separated string like 'Ah Kd 10c'."""
    return [Card.from_string(c) for c in cards.split()]


def make_room(
    num_players: int = 2,
    chips: int = 1000,
    settings: Optional[RoomSettings] = None,
    seed: int = 7,
) -> tuple[TurnEngine, Room]:
    """Engine plus a waiting room with players p0..pN (p0 is host)."""
    engine = TurnEngine(rng=random.Random(seed))
    room, _ = engine.create_room("TEST01", "p0", settings or RoomSettings(starting_chips=chips))
    for i in range(1, num_players):
        engine.add_player(room, f"p{i}")
    return engine, room


def rig_hand(room: Room, hole: list[Optional[str]], board: str) -> None:
    """Replace dealt hole cards and stack the deck so ``board`` comes out.

    Call right after a hand starts. ``hole`` is indexed like ``room.players``;
    None leaves that seat's cards alone.
    """
    used: set[Card] = set()
    for player, cards in zip(room.players, hole):
        if cards:
            player.hole_cards = make_cards(cards)
        used.update(player.hole_cards)

    board_cards = make_cards(board)
    used.update(board_cards)
    spare = [c for c in create_deck() if c not in used]
    room.deck = [
        spare[0], *board_cards[:3],
        spare[1], board_cards[3],
        spare[2], board_cards[4],
        *spare[3:],
    ]


def pid(room: Room, index: int) -> str:
    return room.players[index].player_id


class InMemoryRoomStore:
    """Dict-backed stand-in for RoomStore with the same version rules."""

    def __init__(self):
        self.rooms: dict[str, str] = {}
        self.fail_saves = False
        self.saves = 0

    async def create_room(self, room: Room) -> bool:
        if room.code in self.rooms:
            return False
        room.version = 1
        self.rooms[room.code] = json.dumps(room.to_dict())
        return True

    async def get_room(self, code: str) -> Optional[Room]:
        raw = self.rooms.get(code.upper())
        return Room.from_dict(json.loads(raw)) if raw else None

    async def save_room(self, room: Room) -> None:
        if self.fail_saves:
            raise StorageError()
        raw = self.rooms.get(room.code)
        if raw is None or json.loads(raw)["version"] != room.version:
            raise StaleRoomError()
        data = room.to_dict()
        data["version"] = room.version + 1
        self.rooms[room.code] = json.dumps(data)
        room.version += 1
        self.saves += 1

    async def delete_room(self, code: str) -> None:
        self.rooms.pop(code.upper(), None)


class FakeWebSocket:
    """Collects everything sent to it."""

    def __init__(self):
        self.sent: list[dict] = []

    async def send_json(self, data: dict) -> None:
        self.sent.append(data)

    def of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.sent if m.get("type") == msg_type]


@pytest.fixture
def store() -> InMemoryRoomStore:
    return InMemoryRoomStore()


@pytest_asyncio.fixture
async def service(store):
    """Room service whose scheduled callbacks never fire on their own."""
    svc = RoomService(store=store, ai_delay=3600, rng=random.Random(11))
    yield svc
    await svc.shutdown()


def connect(service: RoomService, connection_id: str) -> FakeWebSocket:
    ws = FakeWebSocket()
    service.connections.register(connection_id, ws)
    return ws
