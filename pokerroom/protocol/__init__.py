"""Protocol module for WebSocket message handling."""
from .messages import (
    ClientMessage,
    ServerMessage,
    ErrorMessage,
    parse_client_message,
)
from .handlers import MessageHandler

__all__ = [
    "ClientMessage",
    "ServerMessage",
    "ErrorMessage",
    "parse_client_message",
    "MessageHandler",
]
