from __future__ import annotations

import logging
import random
from typing import Any

from .errors import GameError, RoomNotFound, TemplateNotFound
from .events import (
    AssetsLoaded,
    Disconnected,
    Effect,
    Event,
    ForceActivate,
    ForceReset,
    HostAttached,
    HostCancelRequested,
    HostStartRequested,
    JoinRequested,
    LeaveRequested,
    ReadyChanged,
    SelectionMade,
)
from .machine import RoomStateMachine, room_public_state
from .models import GameSettings, Room
from .registry import RoomRegistry
from .timers import TimerDriver

logger = logging.getLogger(__name__)


class GameService:
    """Serialises events per room and hands the resulting effects to the transport."""

    def __init__(
        self,
        registry: RoomRegistry,
        dispatcher,
        timers: TimerDriver,
        settings: GameSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.registry = registry
        self.dispatcher = dispatcher
        self.timers = timers
        self.settings = settings or registry.settings
        self.machine = RoomStateMachine(registry, timers, self.settings, post=self.dispatch, rng=rng)

    # ---- core entry point ----

    def dispatch(self, room_id: str, event: Event) -> dict[str, Any]:
        origin = getattr(event, "connection_id", None)
        room = self.registry.find_room(room_id)
        if room is None:
            return self._reject(origin, RoomNotFound())

        with room.lock:
            # The room may have been deleted while we waited for the lock.
            if self.registry.find_room(room_id) is not room or room.phase == "ended":
                return self._reject(origin, RoomNotFound())
            try:
                outcome = self.machine.handle(room, event)
            except GameError as exc:
                return self._reject(origin, exc)
            except Exception:
                logger.exception("[dispatch-error] room=%s event=%s", room_id, type(event).__name__)
                outcome = self.machine.fail(room)
            self._apply(outcome.effects)
            return outcome.reply

    def _reject(self, origin: str | None, exc: GameError) -> dict[str, Any]:
        payload = exc.to_payload()
        if origin:
            self.dispatcher.send_to_connection(origin, "room:error", payload)
        return {"ok": False, **payload}

    def _apply(self, effects: list[Effect]) -> None:
        for effect in effects:
            try:
                if effect.kind == "connection":
                    self.dispatcher.send_to_connection(effect.target, effect.event, effect.payload)
                elif effect.kind == "room":
                    self.dispatcher.send_to_room(effect.target, effect.event, effect.payload)
                elif effect.kind == "subscribe":
                    self.dispatcher.join_room_channel(effect.target, effect.payload["roomId"])
                elif effect.kind == "unsubscribe":
                    self.dispatcher.leave_room_channel(effect.target, effect.payload["roomId"])
            except Exception:
                # Delivery is best-effort; a dead connection must not stall the room.
                logger.warning("[deliver-failed] %s %s -> %s", effect.kind, effect.event, effect.target, exc_info=True)

    # ---- registry-level operations ----

    def create_room(self, theme_id: str) -> Room:
        return self.registry.create_room(theme_id)

    def create_hosted_room(self, connection_id: str, theme_id: str) -> dict[str, Any]:
        try:
            room = self.registry.create_room(theme_id)
        except TemplateNotFound as exc:
            return self._reject(connection_id, exc)
        reply = self.dispatch(room.id, HostAttached(connection_id))
        if not reply.get("ok"):
            self.registry.delete_room(room.id)
        return reply

    def quick_join(self, connection_id: str, theme_id: str, name: str = "", persistent_id: str | None = None) -> dict[str, Any]:
        room = self.registry.find_joinable_room(theme_id)
        created = room is None
        if created:
            try:
                room = self.registry.create_room(theme_id)
            except TemplateNotFound as exc:
                return self._reject(connection_id, exc)
        reply = self.join(room.id, connection_id, name=name, persistent_id=persistent_id)
        if created and not reply.get("ok"):
            with room.lock:
                # Another connection may have matched into it meanwhile.
                if not room.players and room.host_connection_id is None:
                    self.registry.delete_room(room.id)
        return reply

    def join(self, room_id: str, connection_id: str, name: str = "", persistent_id: str | None = None) -> dict[str, Any]:
        return self.dispatch(room_id, JoinRequested(connection_id, name=name, persistent_id=persistent_id))

    # ---- connection-scoped operations ----

    def _dispatch_for_connection(self, connection_id: str, event: Event) -> dict[str, Any]:
        room_id = self.registry.room_id_for_connection(connection_id)
        if room_id is None:
            return self._reject(connection_id, RoomNotFound("You are not in a room."))
        return self.dispatch(room_id, event)

    def set_ready(self, connection_id: str, ready: bool) -> dict[str, Any]:
        return self._dispatch_for_connection(connection_id, ReadyChanged(connection_id, ready))

    def assets_loaded(self, connection_id: str) -> dict[str, Any]:
        return self._dispatch_for_connection(connection_id, AssetsLoaded(connection_id))

    def select(self, connection_id: str, symbol: str) -> dict[str, Any]:
        return self._dispatch_for_connection(connection_id, SelectionMade(connection_id, symbol))

    def leave(self, connection_id: str) -> dict[str, Any]:
        return self._dispatch_for_connection(connection_id, LeaveRequested(connection_id))

    def host_start(self, connection_id: str) -> dict[str, Any]:
        return self._dispatch_for_connection(connection_id, HostStartRequested(connection_id))

    def host_cancel(self, connection_id: str) -> dict[str, Any]:
        return self._dispatch_for_connection(connection_id, HostCancelRequested(connection_id))

    def disconnect(self, connection_id: str) -> None:
        room_id = self.registry.room_id_for_connection(connection_id)
        if room_id is None:
            return
        self.dispatch(room_id, Disconnected(connection_id))

    # ---- operator ----

    def force_activate(self, room_id: str) -> dict[str, Any]:
        return self.dispatch(room_id, ForceActivate())

    def force_reset(self, room_id: str) -> dict[str, Any]:
        reply = self.dispatch(room_id, ForceReset())
        if reply.get("ok"):
            reply = {"ok": True, "roomId": room_id, "phase": "ended"}
        return reply

    # ---- views ----

    def public_state(self, room_id: str) -> dict[str, Any] | None:
        room = self.registry.find_room(room_id)
        if room is None:
            return None
        with room.lock:
            return room_public_state(room)

    def list_public_states(self) -> list[dict[str, Any]]:
        out = []
        for room in self.registry.list_rooms():
            with room.lock:
                out.append(room_public_state(room))
        return out

    def shutdown(self) -> None:
        self.registry.close()

