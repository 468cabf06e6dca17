from __future__ import annotations

from typing import Any, Protocol

from flask_socketio import SocketIO


class Dispatcher(Protocol):
    def send_to_connection(self, connection_id: str, event: str, payload: dict[str, Any]) -> None: ...

    def send_to_room(self, room_id: str, event: str, payload: dict[str, Any]) -> None: ...

    def join_room_channel(self, connection_id: str, room_id: str) -> None: ...

    def leave_room_channel(self, connection_id: str, room_id: str) -> None: ...


class SocketIODispatcher:
    """Fan-out over Flask-SocketIO rooms.

    Works outside of a request context (timer callbacks), so it talks to the
    server object directly instead of using ``flask_socketio.join_room``.
    """

    def __init__(self, socketio: SocketIO, namespace: str = "/") -> None:
        self.socketio = socketio
        self.namespace = namespace

    def send_to_connection(self, connection_id: str, event: str, payload: dict[str, Any]) -> None:
        self.socketio.emit(event, payload, to=connection_id, namespace=self.namespace)

    def send_to_room(self, room_id: str, event: str, payload: dict[str, Any]) -> None:
        self.socketio.emit(event, payload, to=room_id, namespace=self.namespace)

    def join_room_channel(self, connection_id: str, room_id: str) -> None:
        self.socketio.server.enter_room(connection_id, room_id, namespace=self.namespace)

    def leave_room_channel(self, connection_id: str, room_id: str) -> None:
        self.socketio.server.leave_room(connection_id, room_id, namespace=self.namespace)
