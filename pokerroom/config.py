"""Application configuration."""
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # Redis (room state, expiry)
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    room_ttl_seconds: int = int(os.getenv("ROOM_TTL_SECONDS", "7200"))

    # Rooms
    room_code_length: int = int(os.getenv("ROOM_CODE_LENGTH", "6"))
    max_players_per_room: int = int(os.getenv("MAX_PLAYERS_PER_ROOM", "8"))
    chat_log_limit: int = int(os.getenv("CHAT_LOG_LIMIT", "50"))
    chat_message_max_length: int = int(os.getenv("CHAT_MESSAGE_MAX_LENGTH", "200"))
    ai_player_name: str = os.getenv("AI_PLAYER_NAME", "Dealer")

    # Seconds an AI "thinks" before its action is applied
    ai_turn_delay_seconds: float = float(os.getenv("AI_TURN_DELAY_SECONDS", "2.0"))

    # Backoff for AI moves and turn timeouts whose save failed
    turn_retry_delay_seconds: float = float(os.getenv("TURN_RETRY_DELAY_SECONDS", "1.0"))
    turn_retry_max_delay_seconds: float = float(os.getenv("TURN_RETRY_MAX_DELAY_SECONDS", "30.0"))

    # Default room settings (can be overridden per-room)
    default_starting_chips: int = int(os.getenv("DEFAULT_STARTING_CHIPS", "1000"))
    default_small_blind: int = int(os.getenv("DEFAULT_SMALL_BLIND", "10"))
    default_big_blind: int = int(os.getenv("DEFAULT_BIG_BLIND", "20"))
    default_turn_time_seconds: int = int(os.getenv("DEFAULT_TURN_TIME", "30"))
    default_allow_buy_back: bool = os.getenv("DEFAULT_ALLOW_BUY_BACK", "true").lower() == "true"
    default_max_buy_backs: int = int(os.getenv("DEFAULT_MAX_BUY_BACKS", "3"))
    default_buy_back_amount: int = int(os.getenv("DEFAULT_BUY_BACK_AMOUNT", "1000"))

    # Server
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3001"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


config = Config()
