#!/usr/bin/env python3
"""
Auto-play smoke test against a running server using WebSocket connections.

Usage:
    python scripts/autoplay_ws.py [--ai] [--hands N]

One client creates a room, a second joins (or the AI seat is used with
--ai), and both play simple random strategies for a number of hands.
"""
import argparse
import asyncio
import json
import random
from typing import Optional

import websockets

WS_URL = "ws://localhost:3001/ws"


class Player:
    def __init__(self, name: str):
        self.name = name
        self.player_id: Optional[str] = None
        self.room_code: Optional[str] = None
        self.ws = None
        self.room: Optional[dict] = None

    async def connect(self):
        self.ws = await websockets.connect(WS_URL)
        print(f"  ✓ {self.name} connected")

    async def send(self, message: dict):
        """Send a message."""
        await self.ws.send(json.dumps(message))

    async def recv(self, timeout: float = 5.0) -> Optional[dict]:
        """Receive a message with timeout."""
        try:
            msg = await asyncio.wait_for(self.ws.recv(), timeout)
            return json.loads(msg)
        except asyncio.TimeoutError:
            return None

    def update_state(self, msg: dict):
        """Update local state from message."""
        if msg.get("type") in ("room_created", "room_joined"):
            self.player_id = msg["player_id"]
            self.room_code = msg["room_code"]
        if "room" in msg:
            self.room = msg["room"]

    @property
    def is_my_turn(self) -> bool:
        return bool(self.room) and self.room.get("current_player") == self.player_id

    async def play_action(self) -> bool:
        """Play an action if it's our turn."""
        valid = self.room.get("valid_actions", []) if self.room else []
        if not self.is_my_turn or not valid:
            return False

        roll = random.random()
        msg = {"type": "player_action", "action": "call"}

        if roll < 0.05:
            msg["action"] = "fold"
        elif roll < 0.2 and "raise" in valid:
            msg["action"] = "raise"
            msg["amount"] = self.room["current_bet"] + self.room["settings"]["big_blind"]
        elif "check" in valid:
            msg["action"] = "check"

        await self.send(msg)
        print(f"  {self.name}: {msg['action'].upper()} {msg.get('amount', '')}")

        self.room = dict(self.room, current_player=None)
        return True


async def process_messages(player: Player, timeout: float = 0.5) -> list[dict]:
    """Process all pending messages for a player."""
    received = []
    while True:
        msg = await player.recv(timeout)
        if not msg:
            break
        player.update_state(msg)
        received.append(msg)

        msg_type = msg.get("type", "unknown")
        if msg_type == "error":
            print(f"  [{player.name}] Error {msg.get('code')}: {msg.get('message')}")
        elif msg_type in ("showdown", "round_end"):
            for w in msg.get("winners", []):
                print(f"  🏆 {w.get('name')} wins ${w.get('amount')} ({msg.get('reason')})")
        elif msg_type == "new_chat_message" and msg.get("is_taunt"):
            print(f"  💬 {msg.get('player_name')}: {msg.get('message')}")
    return received


async def main(with_ai: bool, max_hands: int):
    print("=" * 50)
    print("Poker Room Auto-Play (WebSocket)")
    print("=" * 50)

    host = Player("alice")
    players = [host]
    if not with_ai:
        players.append(Player("bob"))

    print("\n--- Connections ---")
    for player in players:
        await player.connect()

    print("\n--- Room Setup ---")
    await host.send({"type": "create_room", "player_name": host.name, "with_ai": with_ai})
    await process_messages(host)
    if not host.room_code:
        print("  ✗ Could not create room")
        return
    print(f"  ✓ Room {host.room_code} created")

    for guest in players[1:]:
        await guest.send({
            "type": "join_room",
            "room_code": host.room_code,
            "player_name": guest.name,
        })
        await process_messages(guest)
        print(f"  ✓ {guest.name} joined")

    print("\n--- Playing Hands ---")
    await host.send({"type": "start_game"})

    hands_played = 0
    while hands_played < max_hands:
        hand_over = False
        for player in players:
            for msg in await process_messages(player, 0.3):
                if msg.get("type") in ("showdown", "round_end") and player is host:
                    hand_over = True
            await player.play_action()

        if hand_over:
            hands_played += 1
            print(f"\n[Hand {hands_played} complete]")
            if hands_played < max_hands:
                await host.send({"type": "next_round"})

        await asyncio.sleep(0.1)

    print("\n" + "=" * 50)
    print(f"Completed {hands_played} hands!")
    print("=" * 50)

    if host.room:
        for p in host.room.get("players", []):
            print(f"  {p.get('name')}: ${p.get('chips')}")

    for player in players:
        await player.ws.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Drive a poker room over WebSocket")
    parser.add_argument("--ai", action="store_true", help="play against the AI seat")
    parser.add_argument("--hands", type=int, default=10, help="number of hands to play")
    args = parser.parse_args()
    asyncio.run(main(args.ai, args.hands))
