from __future__ import annotations


class GameError(Exception):
    """Validation failure reported to the originating connection only."""

    code = "game_error"
    message = "Request rejected."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_payload(self) -> dict:
        return {"error": self.code, "message": self.message}


class RoomNotFound(GameError):
    code = "room_not_found"
    message = "Room not found."


class TemplateNotFound(GameError):
    code = "template_not_found"
    message = "Unknown theme."


class RoomFull(GameError):
    code = "room_full"
    message = "Room is full."


class AlreadyStarted(GameError):
    code = "already_started"
    message = "Game already in progress."


class DuplicateConnection(GameError):
    code = "duplicate_connection"
    message = "This connection already joined a room."


class NotInRoom(GameError):
    code = "not_in_room"
    message = "You are not a player in this room."


class InvalidPhase(GameError):
    code = "invalid_phase"
    message = "Not allowed in the current phase."


class NotYourTurn(GameError):
    code = "not_your_turn"
    message = "Not your turn!"


class InvalidSelection(GameError):
    code = "invalid_selection"
    message = "Selection not allowed."


class InvalidPayload(GameError):
    code = "invalid_payload"
    message = "Malformed request."


class Forbidden(GameError):
    code = "forbidden"
    message = "Operator token required."


class NotHost(GameError):
    code = "not_host"
    message = "Only the host can do that."


class NotEnoughPlayers(GameError):
    code = "not_enough_players"
    message = "Not enough players to start."


class SymbolPoolEmpty(Exception):
    """No symbols available for a theme; the room cannot be set up."""


class ConsistencyFault(Exception):
    """Room state cannot produce a valid next round; the room must end."""
