from __future__ import annotations

import logging
import random
from threading import RLock

from .models import GameSettings, Room
from .themes import ThemeCatalog

logger = logging.getLogger(__name__)


def generate_room_id(rng: random.Random) -> str:
    return str(rng.randint(100000, 999999))


class RoomRegistry:
    """Owns every Room of the process, plus the connection -> room index."""

    def __init__(self, catalog: ThemeCatalog, settings: GameSettings | None = None, rng: random.Random | None = None) -> None:
        self.catalog = catalog
        self.settings = settings or GameSettings()
        self._rng = rng or random.Random()
        self._lock = RLock()
        self._rooms: dict[str, Room] = {}
        self._connections: dict[str, str] = {}

    def create_room(self, theme_id: str) -> Room:
        # Raises TemplateNotFound for unknown themes.
        template = self.catalog.get_template(theme_id)
        with self._lock:
            room_id = generate_room_id(self._rng)
            while room_id in self._rooms:
                room_id = generate_room_id(self._rng)

            room = Room(
                id=room_id,
                theme_id=template.id,
                max_players=template.max_players,
                mode=template.mode,
                board_size=template.board_size or self.settings.board_size,
                palette=dict(template.palette),
            )
            self._rooms[room_id] = room

        logger.info("[room-created] room=%s theme=%s mode=%s max=%d", room_id, template.id, room.mode, room.max_players)
        return room

    def find_room(self, room_id: str) -> Room | None:
        with self._lock:
            return self._rooms.get(room_id)

    def find_joinable_room(self, theme_id: str) -> Room | None:
        key = (theme_id or "").strip().upper()
        with self._lock:
            for room in self._rooms.values():
                if room.theme_id == key and room.phase == "lobby" and len(room.players) < room.max_players:
                    return room
        return None

    def delete_room(self, room_id: str) -> bool:
        with self._lock:
            room = self._rooms.pop(room_id, None)
            if room is None:
                return False
            for conn, rid in list(self._connections.items()):
                if rid == room_id:
                    del self._connections[conn]

        _cancel_room_timers(room)
        logger.info("[room-deleted] room=%s", room_id)
        return True

    def list_rooms(self) -> list[Room]:
        with self._lock:
            return list(self._rooms.values())

    def bind_connection(self, connection_id: str, room_id: str) -> None:
        with self._lock:
            self._connections[connection_id] = room_id

    def unbind_connection(self, connection_id: str) -> None:
        with self._lock:
            self._connections.pop(connection_id, None)

    def room_id_for_connection(self, connection_id: str) -> str | None:
        with self._lock:
            return self._connections.get(connection_id)

    def close(self) -> None:
        with self._lock:
            rooms = list(self._rooms.values())
            self._rooms.clear()
            self._connections.clear()
        for room in rooms:
            _cancel_room_timers(room)


def _cancel_room_timers(room: Room) -> None:
    for timer in (room.countdown_timer, room.pause_timer):
        if timer is not None:
            timer.cancel()
    room.countdown_timer = None
    room.pause_timer = None
    room.countdown_deadline = None
    for p in room.players.values():
        if p.removal_timer is not None:
            p.removal_timer.cancel()
            p.removal_timer = None
