"""Game and storage errors.

Every error carries a machine-readable ``code`` that is sent to the client
in an ``error`` message alongside the human-readable text.
"""
from typing import Optional


class GameError(ValueError):
    """A rejected request. Nothing was mutated or persisted."""

    code = "INVALID_ACTION"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotYourTurnError(GameError):
    code = "NOT_YOUR_TURN"


class InvalidActionError(GameError):
    code = "INVALID_ACTION"


class InsufficientChipsError(GameError):
    code = "INSUFFICIENT_CHIPS"


class RoomFullError(GameError):
    code = "ROOM_FULL"


class GameInProgressError(GameError):
    code = "GAME_IN_PROGRESS"


class NotHostError(GameError):
    code = "NOT_HOST"


class NotEnoughPlayersError(GameError):
    code = "NOT_ENOUGH_PLAYERS"


class BuyBackDeniedError(GameError):
    code = "BUY_BACK_DENIED"


class NotInRoomError(GameError):
    code = "NOT_IN_ROOM"


class RoomNotFoundError(GameError):
    code = "ROOM_NOT_FOUND"


class PlayerNotFoundError(GameError):
    code = "PLAYER_NOT_FOUND"


class AlreadyInRoomError(GameError):
    code = "ALREADY_IN_ROOM"


class StorageError(Exception):
    """The room store could not be read or written."""

    code = "STORAGE_ERROR"

    def __init__(self, message: str = "Room storage unavailable"):
        super().__init__(message)
        self.message = message


class StaleRoomError(StorageError):
    """The room changed in storage since it was loaded."""

    code = "STALE_ROOM"

    def __init__(self, message: str = "Room was modified concurrently, try again"):
        super().__init__(message)
