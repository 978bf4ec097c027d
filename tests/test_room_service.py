"""Tests for the room service: load, mutate, persist, broadcast."""
import asyncio
import json
import random

import pytest
from unittest.mock import AsyncMock, Mock
from conftest import connect

from pokerroom.config import config
from pokerroom.game.errors import (
    AlreadyInRoomError,
    NotInRoomError,
    NotYourTurnError,
    PlayerNotFoundError,
    RoomNotFoundError,
    StorageError,
)
from pokerroom.game.room import Phase, RoomSettings
from pokerroom.protocol.handlers import MessageHandler
from pokerroom.session.room_service import RoomService


async def seat_two(service, settings=None):
    """Alice hosts, Bob joins. Returns (code, alice_ws, bob_ws, alice_id, bob_id)."""
    alice_ws = connect(service, "c1")
    created = await service.create_room("c1", "Alice", settings=settings)
    code = created["room_code"]

    bob_ws = connect(service, "c2")
    joined = await service.join_room("c2", code, "Bob")
    return code, alice_ws, bob_ws, created["player_id"], joined["player_id"]


async def start_with_ai(service):
    ws = connect(service, "c1")
    created = await service.create_room("c1", "Alice", with_ai=True)
    await service.start_game("c1")
    return created["room_code"], ws, created["player_id"]


class TestRoomSetup:
    @pytest.mark.asyncio
    async def test_create_room(self, service, store):
        connect(service, "c1")

        response = await service.create_room("c1", "Alice")

        code = response["room_code"]
        assert response["type"] == "room_created"
        assert len(code) == 6 and code == code.upper()
        assert code in store.rooms
        assert service.connections.binding("c1") == (code, response["player_id"])
        assert "deck" not in response["room"]
        assert response["room"]["players"][0]["is_host"]

    @pytest.mark.asyncio
    async def test_create_room_retries_taken_codes(self, service, store):
        connect(service, "c1")
        store.create_room = AsyncMock(side_effect=[False, False, True])

        response = await service.create_room("c1", "Alice")

        assert response["type"] == "room_created"
        assert store.create_room.await_count == 3

    @pytest.mark.asyncio
    async def test_create_room_gives_up(self, service, store):
        connect(service, "c1")
        store.create_room = AsyncMock(return_value=False)

        with pytest.raises(StorageError):
            await service.create_room("c1", "Alice")

    @pytest.mark.asyncio
    async def test_join_notifies_others(self, service, store):
        code, alice_ws, bob_ws, _, bob_id = await seat_two(service)

        assert len(alice_ws.of_type("player_joined")) == 1
        assert alice_ws.of_type("player_joined")[0]["player_id"] == bob_id
        assert bob_ws.of_type("player_joined") == []

        room = await store.get_room(code)
        assert [p.name for p in room.players] == ["Alice", "Bob"]
        assert room.version == 2

    @pytest.mark.asyncio
    async def test_join_is_case_insensitive(self, service):
        connect(service, "c1")
        created = await service.create_room("c1", "Alice")
        connect(service, "c2")

        joined = await service.join_room("c2", created["room_code"].lower(), "Bob")

        assert joined["type"] == "room_joined"
        assert joined["room_code"] == created["room_code"]

    @pytest.mark.asyncio
    async def test_join_unknown_room(self, service):
        connect(service, "c1")

        with pytest.raises(RoomNotFoundError):
            await service.join_room("c1", "ZZZZZZ", "Alice")

    @pytest.mark.asyncio
    async def test_events_need_a_seat(self, service):
        connect(service, "c1")

        with pytest.raises(NotInRoomError):
            await service.start_game("c1")

    @pytest.mark.asyncio
    async def test_unknown_codes_leave_no_locks(self, service):
        connect(service, "c1")

        for i in range(500):
            with pytest.raises(RoomNotFoundError):
                await service.join_room("c1", f"NO{i:04d}", "Alice")

        assert len(service._locks) == 0

    @pytest.mark.asyncio
    async def test_seated_connection_cannot_create_another_room(self, service, store):
        code, _, _, alice_id, _ = await seat_two(service)

        with pytest.raises(AlreadyInRoomError):
            await service.create_room("c1", "Alice")

        assert list(store.rooms) == [code]
        assert service.connections.binding("c1") == (code, alice_id)

    @pytest.mark.asyncio
    async def test_seated_connection_cannot_join_another_room(self, service, store):
        code, _, _, _, bob_id = await seat_two(service)
        connect(service, "c3")
        other = (await service.create_room("c3", "Carol"))["room_code"]
        before = store.rooms[other]

        with pytest.raises(AlreadyInRoomError):
            await service.join_room("c2", other, "Bob")

        assert store.rooms[other] == before
        assert service.connections.binding("c2") == (code, bob_id)


class TestGameEvents:
    @pytest.mark.asyncio
    async def test_start_game_sends_private_views(self, service, store):
        code, alice_ws, bob_ws, alice_id, bob_id = await seat_two(service)

        await service.start_game("c1")

        alice_view = alice_ws.of_type("game_started")[0]["room"]
        bob_view = bob_ws.of_type("game_started")[0]["room"]
        assert "hole_cards" in alice_view["players"][0]
        assert "hole_cards" not in alice_view["players"][1]
        assert "hole_cards" in bob_view["players"][1]
        assert "hole_cards" not in bob_view["players"][0]
        assert alice_view["valid_actions"] == ["fold", "call", "raise"]
        assert bob_view["valid_actions"] == []
        # Turn timeout armed for Alice
        assert service.scheduler.pending(code) is not None

    @pytest.mark.asyncio
    async def test_action_is_persisted_and_broadcast(self, service, store):
        code, alice_ws, bob_ws, alice_id, _ = await seat_two(service)
        await service.start_game("c1")

        await service.player_action("c1", "call")

        room = await store.get_room(code)
        assert room.pot == 40
        update = bob_ws.of_type("game_update")[-1]
        assert update["last_action"]["player_id"] == alice_id
        assert update["last_action"]["action"] == "call"
        assert update["room"]["pot"] == 40

    @pytest.mark.asyncio
    async def test_out_of_turn_changes_nothing(self, service, store):
        code, alice_ws, bob_ws, _, _ = await seat_two(service)
        await service.start_game("c1")
        before = store.rooms[code]
        sent = len(alice_ws.sent)

        with pytest.raises(NotYourTurnError):
            await service.player_action("c2", "call")

        assert store.rooms[code] == before
        assert len(alice_ws.sent) == sent

    @pytest.mark.asyncio
    async def test_failed_save_is_not_broadcast(self, service, store):
        code, alice_ws, bob_ws, _, _ = await seat_two(service)
        await service.start_game("c1")
        before = store.rooms[code]
        alice_ws.sent.clear()
        bob_ws.sent.clear()
        store.fail_saves = True

        with pytest.raises(StorageError):
            await service.player_action("c1", "call")

        assert store.rooms[code] == before
        assert alice_ws.sent == []
        assert bob_ws.sent == []

        # The next request sees the last persisted state
        store.fail_saves = False
        await service.player_action("c1", "call")
        assert (await store.get_room(code)).pot == 40

    @pytest.mark.asyncio
    async def test_chat(self, service, store):
        code, alice_ws, bob_ws, _, bob_id = await seat_two(service)

        await service.chat_message("c2", "hello there")

        for ws in (alice_ws, bob_ws):
            chat = ws.of_type("new_chat_message")
            assert chat[-1]["message"] == "hello there"
            assert chat[-1]["player_id"] == bob_id
        assert (await store.get_room(code)).chat_log[-1].message == "hello there"

    @pytest.mark.asyncio
    async def test_next_round_and_buy_back(self, service, store):
        settings = RoomSettings(turn_time_limit=0)
        code, alice_ws, bob_ws, alice_id, _ = await seat_two(service, settings)
        await service.start_game("c1")
        assert service.scheduler.pending(code) is None

        await service.player_action("c1", "fold")
        assert alice_ws.of_type("round_end")[0]["pot_total"] == 30

        room = await store.get_room(code)
        room.get_player(alice_id).chips = 0
        await store.save_room(room)

        response = await service.buy_back("c1")

        assert response == {
            "type": "buy_back_success",
            "player_id": alice_id,
            "amount": 1000,
            "chips": 1000,
            "buy_backs_used": 1,
        }

        await service.next_round("c2")
        room = await store.get_room(code)
        assert room.hand_number == 2
        assert room.dealer_index == 1
        assert bob_ws.of_type("game_started")[-1]["room"]["hand_number"] == 2
        assert alice_ws.of_type("game_started")[-1]["room"]["phase"] == "preflop"


class TestScheduledTurns:
    @pytest.mark.asyncio
    async def test_turn_timeout_folds(self, service, store):
        code, alice_ws, bob_ws, _, bob_id = await seat_two(service)
        await service.start_game("c1")
        token = (await store.get_room(code)).turn_token()

        await service._run_turn_timeout(code, token)

        room = await store.get_room(code)
        assert room.phase == Phase.SHOWDOWN
        assert room.get_player(bob_id).chips == 1010
        assert len(bob_ws.of_type("round_end")) == 1

    @pytest.mark.asyncio
    async def test_stale_timeout_does_nothing(self, service, store):
        code, _, _, _, _ = await seat_two(service)
        await service.start_game("c1")
        token = (await store.get_room(code)).turn_token()
        await service.player_action("c1", "call")
        before = store.rooms[code]

        await service._run_turn_timeout(code, token)

        assert store.rooms[code] == before

    @pytest.mark.asyncio
    async def test_ai_turn_is_scheduled_and_played(self, service, store):
        code, ws, _ = await start_with_ai(service)

        await service.player_action("c1", "call")
        room = await store.get_room(code)
        assert room.acting_player.is_ai
        assert service.scheduler.pending(code) is not None
        saves = store.saves

        await service._run_ai_turn(code, room.turn_token())

        after = await store.get_room(code)
        assert store.saves == saves + 1
        assert after.action_seq == room.action_seq + 1
        assert ws.of_type("game_update")[-1]["last_action"]["player_id"] == room.acting_player.player_id

    @pytest.mark.asyncio
    async def test_stale_ai_turn_does_nothing(self, service, store):
        code, _, _ = await start_with_ai(service)
        await service.player_action("c1", "call")
        token = (await store.get_room(code)).turn_token()
        await service._run_ai_turn(code, token)
        before = store.rooms[code]
        saves = store.saves

        await service._run_ai_turn(code, token)

        assert store.rooms[code] == before
        assert store.saves == saves

    @pytest.mark.asyncio
    async def test_ai_turn_for_missing_room(self, service):
        await service._run_ai_turn("GONE00", (1, 1, "x"))

    @pytest.mark.asyncio
    async def test_ai_turn_retried_after_failed_save(self, service, store):
        code, ws, _ = await start_with_ai(service)
        await service.player_action("c1", "call")
        room = await store.get_room(code)
        before = store.rooms[code]
        sent = len(ws.sent)
        service.retry_delay = 0.01
        store.fail_saves = True

        await service._run_ai_turn(code, room.turn_token())

        assert store.rooms[code] == before
        assert len(ws.sent) == sent
        retry = service.scheduler.pending(code)
        assert retry is not None

        store.fail_saves = False
        await asyncio.wait_for(retry, timeout=1)

        after = await store.get_room(code)
        assert after.action_seq == room.action_seq + 1
        assert ws.of_type("game_update")[-1]["last_action"]["player_id"] == room.acting_player.player_id

    @pytest.mark.asyncio
    async def test_turn_timeout_retried_after_stale_save(self, service, store):
        code, _, bob_ws, _, bob_id = await seat_two(service)
        await service.start_game("c1")
        token = (await store.get_room(code)).turn_token()
        service.retry_delay = 0.01

        # Another writer bumps the version between load and save
        real_get = store.get_room

        async def get_outdated(room_code):
            room = await real_get(room_code)
            room.version -= 1
            return room

        store.get_room = get_outdated
        await service._run_turn_timeout(code, token)
        store.get_room = real_get

        assert (await store.get_room(code)).phase == Phase.PREFLOP
        retry = service.scheduler.pending(code)
        assert retry is not None

        await asyncio.wait_for(retry, timeout=1)

        room = await store.get_room(code)
        assert room.phase == Phase.SHOWDOWN
        assert room.get_player(bob_id).chips == 1010

    @pytest.mark.asyncio
    async def test_retry_delay_backs_off(self, service, store):
        code, _, _ = await start_with_ai(service)
        await service.player_action("c1", "call")
        token = (await store.get_room(code)).turn_token()
        store.fail_saves = True
        service.scheduler.schedule = Mock()

        await service._run_ai_turn(code, token, attempt=2)
        await service._run_ai_turn(code, token, attempt=20)

        delays = [c.args[1] for c in service.scheduler.schedule.call_args_list]
        assert delays == [service.retry_delay * 4, config.turn_retry_max_delay_seconds]

    @pytest.mark.asyncio
    async def test_rejoin_after_restart_rearms_ai_turn(self, store):
        first = RoomService(store=store, ai_delay=3600, rng=random.Random(11))
        code, _, alice_id = await start_with_ai(first)
        await first.player_action("c1", "call")
        await first.shutdown()
        assert first.scheduler.pending(code) is None

        second = RoomService(store=store, ai_delay=3600, rng=random.Random(3))
        try:
            connect(second, "c9")
            await second.rejoin_room("c9", code, alice_id)

            assert (await store.get_room(code)).acting_player.is_ai
            assert second.scheduler.pending(code) is not None
        finally:
            await second.shutdown()

    @pytest.mark.asyncio
    async def test_chat_rearms_missing_turn_timeout(self, service, store):
        code, _, _, _, _ = await seat_two(service)
        await service.start_game("c1")
        service.scheduler.cancel(code)

        await service.chat_message("c2", "still there?")

        assert service.scheduler.pending(code) is not None

    @pytest.mark.asyncio
    async def test_rejoin_keeps_running_timer(self, service, store):
        code, _, _, _, bob_id = await seat_two(service)
        await service.start_game("c1")
        timer = service.scheduler.pending(code)
        connect(service, "c3")

        await service.rejoin_room("c3", code, bob_id)

        assert service.scheduler.pending(code) is timer


class TestConnections:
    @pytest.mark.asyncio
    async def test_disconnect_keeps_seat(self, service, store):
        code, alice_ws, _, _, bob_id = await seat_two(service)

        await service.disconnect("c2")

        room = await store.get_room(code)
        assert room.get_player(bob_id) is not None
        assert not room.get_player(bob_id).connected
        assert alice_ws.of_type("player_disconnected")[0]["player_id"] == bob_id
        assert service.connections.binding("c2") is None

    @pytest.mark.asyncio
    async def test_rejoin(self, service, store):
        code, alice_ws, _, _, bob_id = await seat_two(service)
        await service.disconnect("c2")
        connect(service, "c3")

        response = await service.rejoin_room("c3", code, bob_id)

        assert response["type"] == "room_joined"
        assert response["player_id"] == bob_id
        room = await store.get_room(code)
        assert room.get_player(bob_id).connected
        assert room.get_player(bob_id).connection_id == "c3"
        assert alice_ws.of_type("player_reconnected")[0]["player_id"] == bob_id

    @pytest.mark.asyncio
    async def test_old_socket_closing_after_rejoin(self, service, store):
        code, _, _, _, bob_id = await seat_two(service)
        connect(service, "c3")
        await service.rejoin_room("c3", code, bob_id)

        await service.disconnect("c2")

        assert (await store.get_room(code)).get_player(bob_id).connected

    @pytest.mark.asyncio
    async def test_rejoin_unknown_player(self, service):
        code, _, _, _, _ = await seat_two(service)
        connect(service, "c3")

        with pytest.raises(PlayerNotFoundError):
            await service.rejoin_room("c3", code, "not-a-player")

    @pytest.mark.asyncio
    async def test_rejoin_into_another_seat(self, service, store):
        code, _, _, alice_id, bob_id = await seat_two(service)
        before = store.rooms[code]

        with pytest.raises(AlreadyInRoomError):
            await service.rejoin_room("c1", code, bob_id)

        assert store.rooms[code] == before
        assert service.connections.binding("c1") == (code, alice_id)

    @pytest.mark.asyncio
    async def test_rejoin_own_seat_on_same_connection(self, service):
        code, _, _, alice_id, _ = await seat_two(service)

        response = await service.rejoin_room("c1", code.lower(), alice_id)

        assert response["player_id"] == alice_id

    @pytest.mark.asyncio
    async def test_spectator_state(self, service):
        code, _, _, _, _ = await seat_two(service)
        await service.start_game("c1")

        state = await service.get_room_state(code.lower())

        assert state["code"] == code
        assert all("hole_cards" not in p for p in state["players"])


class TestMessageHandler:
    @pytest.mark.asyncio
    async def test_game_error_becomes_error_message(self, service):
        connect(service, "c1")
        handler = MessageHandler(service)

        response = await handler.handle_message("c1", json.dumps({"type": "start_game"}))

        assert response["type"] == "error"
        assert response["code"] == "NOT_IN_ROOM"

    @pytest.mark.asyncio
    async def test_storage_error_becomes_error_message(self, service, store):
        handler = MessageHandler(service)
        connect(service, "c1")
        await handler.handle_message(
            "c1", json.dumps({"type": "create_room", "player_name": "Alice"})
        )
        store.fail_saves = True

        response = await handler.handle_message(
            "c1", json.dumps({"type": "chat_message", "message": "hi"})
        )

        assert response["code"] == "STORAGE_ERROR"

    @pytest.mark.asyncio
    async def test_full_flow_through_handler(self, service, store):
        handler = MessageHandler(service)
        alice_ws = connect(service, "c1")
        connect(service, "c2")

        created = await handler.handle_message("c1", json.dumps({
            "type": "create_room",
            "player_name": "Alice",
            "settings": {"small_blind": 5, "big_blind": 10},
        }))
        await handler.handle_message("c2", json.dumps({
            "type": "join_room", "room_code": created["room_code"], "player_name": "Bob",
        }))
        assert await handler.handle_message("c1", json.dumps({"type": "start_game"})) is None

        response = await handler.handle_message(
            "c1", json.dumps({"type": "player_action", "action": "raise", "amount": 50})
        )

        assert response is None
        room = await store.get_room(created["room_code"])
        assert room.current_bet == 50
        assert room.pot == 60
        assert alice_ws.of_type("game_update")[-1]["last_action"]["amount"] == 50

    @pytest.mark.asyncio
    async def test_second_room_is_rejected(self, service):
        handler = MessageHandler(service)
        connect(service, "c1")
        create = json.dumps({"type": "create_room", "player_name": "Alice"})
        await handler.handle_message("c1", create)

        response = await handler.handle_message("c1", create)

        assert response["type"] == "error"
        assert response["code"] == "ALREADY_IN_ROOM"
