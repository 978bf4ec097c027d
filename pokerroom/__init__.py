"""Realtime multiplayer poker room server."""

__version__ = "1.0.0"
