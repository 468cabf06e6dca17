"""Room lifecycle: lobby -> countdown -> asset loading -> active -> ended.

``RoomStateMachine.handle`` applies one event to one room and returns the
outbound effects. Callers must hold ``room.lock``; the service does that.
"""

from __future__ import annotations

import logging
import random
import uuid
from typing import Any, Callable

from .errors import (
    AlreadyStarted,
    ConsistencyFault,
    DuplicateConnection,
    InvalidPhase,
    NotEnoughPlayers,
    NotHost,
    NotInRoom,
    NotYourTurn,
    RoomFull,
    SymbolPoolEmpty,
)
from .events import (
    AssetsLoaded,
    CountdownExpired,
    Disconnected,
    Event,
    ForceActivate,
    ForceReset,
    HostAttached,
    HostCancelRequested,
    HostStartRequested,
    JoinRequested,
    LeaveRequested,
    Outcome,
    PauseElapsed,
    ReadyChanged,
    RemovalExpired,
    SelectionMade,
)
from .models import AlternatingRound, EndReason, GameSettings, MatchingTurn, Player, Room
from .registry import RoomRegistry
from .resolver import (
    assign_boards,
    new_alternating_round,
    new_matching_turn,
    record_selection,
    resolve_matching_turn,
    resolve_press,
    turn_complete,
)
from .timers import TimerDriver

logger = logging.getLogger(__name__)


END_MESSAGES: dict[str, str] = {
    "victory": "All symbols matched. You win!",
    "insufficient_players": "Not enough players.",
    "admin_reset": "The room was reset by an operator.",
    "host_disconnected": "The host disconnected.",
    "host_cancelled": "The host has cancelled the game.",
    "internal_error": "Internal error. The game had to stop.",
}


def _round_view(room: Room, viewer: Player | None) -> dict[str, Any] | None:
    rnd = room.current_round
    if rnd is None:
        return None

    if isinstance(rnd, MatchingTurn):
        view: dict[str, Any] = {
            "kind": "matching",
            "turnNumber": rnd.turn_number,
            "resolved": rnd.resolved,
            "selectedCount": len(rnd.selections),
        }
        if viewer is not None:
            view["yourSelection"] = rnd.selections.get(viewer.persistent_id)
        return view

    view = {
        "kind": "alternating",
        "roundNumber": rnd.round_number,
        "bonus": rnd.bonus,
        "active": rnd.active,
        "role": "inactive",
    }
    if viewer is not None:
        if viewer.persistent_id == rnd.source_id:
            view["role"] = "source"
            view["expectedSymbol"] = rnd.expected_symbol
        elif viewer.persistent_id == rnd.target_id:
            view["role"] = "target"
            view["targetIndex"] = rnd.target_index
    return view


def roster(room: Room) -> list[dict[str, Any]]:
    return [
        {
            "id": p.persistent_id,
            "name": p.name,
            "connected": p.connected,
            "ready": p.is_ready_in_lobby,
            "assetsLoaded": p.assets_loaded,
        }
        for p in room.players.values()
    ]


def room_public_state(room: Room, viewer: Player | None = None) -> dict[str, Any]:
    # Never expose connection ids or other players' boards.
    payload: dict[str, Any] = {
        "roomId": room.id,
        "themeId": room.theme_id,
        "mode": room.mode,
        "phase": room.phase,
        "maxPlayers": room.max_players,
        "palette": dict(room.palette),
        "players": roster(room),
        "countdownDeadline": room.countdown_deadline,
        "matched": list(room.matched),
        "pieces": len(room.pieces),
        "targetMatches": room.target_matches,
        "round": _round_view(room, viewer),
    }
    if viewer is not None:
        payload["you"] = {"playerId": viewer.persistent_id, "board": list(viewer.board)}
    return payload


class RoomStateMachine:
    def __init__(
        self,
        registry: RoomRegistry,
        timers: TimerDriver,
        settings: GameSettings,
        post: Callable[[str, Event], Any],
        rng: random.Random | None = None,
    ) -> None:
        self.registry = registry
        self.timers = timers
        self.settings = settings
        self.rng = rng or random.Random()
        # Timer callbacks re-enter through ``post`` so they take the room lock.
        self._post = post
        self._handlers: dict[type, Callable[[Room, Any, Outcome], None]] = {
            JoinRequested: self._on_join,
            ReadyChanged: self._on_ready,
            AssetsLoaded: self._on_assets_loaded,
            SelectionMade: self._on_selection,
            LeaveRequested: self._on_leave,
            Disconnected: self._on_disconnect,
            HostAttached: self._on_host_attached,
            HostStartRequested: self._on_host_start,
            HostCancelRequested: self._on_host_cancel,
            ForceActivate: self._on_force_activate,
            ForceReset: self._on_force_reset,
            CountdownExpired: self._on_countdown_expired,
            RemovalExpired: self._on_removal_expired,
            PauseElapsed: self._on_pause_elapsed,
        }

    def handle(self, room: Room, event: Event) -> Outcome:
        out = Outcome()
        self._handlers[type(event)](room, event, out)
        return out

    def fail(self, room: Room) -> Outcome:
        """End a room whose state could not be advanced consistently."""
        out = Outcome(reply={"ok": False, "error": "internal_error"})
        if room.phase != "ended":
            self._end_room(room, out, "internal_error")
        return out

    # ---- helpers ----

    def _require_player(self, room: Room, connection_id: str) -> Player:
        player = room.player_by_connection(connection_id)
        if player is None:
            raise NotInRoom()
        return player

    def _broadcast_roster(self, room: Room, out: Outcome) -> None:
        out.to_room(room.id, "room:roster", {
            "roomId": room.id,
            "phase": room.phase,
            "maxPlayers": room.max_players,
            "players": roster(room),
        })

    def _start_condition(self, room: Room) -> bool:
        players = list(room.players.values())
        if self.settings.start_policy == "full":
            return len(players) >= room.max_players
        if len(players) < self.settings.min_players:
            return False
        return all(p.connected and p.is_ready_in_lobby for p in players)

    def _evaluate_start(self, room: Room, out: Outcome) -> None:
        if room.phase == "lobby" and self._start_condition(room):
            self._arm_countdown(room, out)

    def _arm_countdown(self, room: Room, out: Outcome) -> None:
        if room.countdown_timer is not None and room.countdown_timer.pending:
            return

        room_id = room.id
        delay = self.settings.countdown_sec
        room.phase = "countdown_pending"
        room.countdown_timer = self.timers.schedule(
            f"countdown:{room_id}", delay, lambda h: self._post(room_id, CountdownExpired(h))
        )
        room.countdown_deadline = room.countdown_timer.deadline
        logger.info("[countdown-set] room=%s duration=%ss", room_id, delay)
        out.to_room(room_id, "lobby:countdown", {
            "roomId": room_id,
            "seconds": delay,
            "deadline": room.countdown_deadline,
        })

    def _cancel_countdown(self, room: Room, out: Outcome, reason: str, message: str) -> None:
        if room.countdown_timer is not None:
            room.countdown_timer.cancel()
        room.countdown_timer = None
        room.countdown_deadline = None
        if room.phase != "countdown_pending":
            return
        room.phase = "lobby"
        logger.info("[countdown-cancel] room=%s reason=%s", room.id, reason)
        out.to_room(room.id, "lobby:countdown_cancelled", {"roomId": room.id, "reason": reason, "message": message})

    def _cancel_pause(self, room: Room) -> None:
        if room.pause_timer is not None:
            room.pause_timer.cancel()
        room.pause_timer = None

    def _arm_removal(self, room: Room, player: Player) -> None:
        if player.removal_timer is not None:
            player.removal_timer.cancel()
        room_id, pid = room.id, player.persistent_id
        player.removal_timer = self.timers.schedule(
            f"removal:{room_id}:{pid}",
            self.settings.reconnect_grace_sec,
            lambda h: self._post(room_id, RemovalExpired(pid, h)),
        )

    def _schedule_next_round(self, room: Room, round_number: int, delay: float) -> None:
        self._cancel_pause(room)
        room_id = room.id
        room.pause_timer = self.timers.schedule(
            f"pause:{room_id}:{round_number}", delay, lambda h: self._post(room_id, PauseElapsed(round_number, h))
        )

    # ---- phase transitions ----

    def _enter_asset_loading(self, room: Room, out: Outcome) -> None:
        if room.countdown_timer is not None:
            room.countdown_timer.cancel()
        room.countdown_timer = None
        room.countdown_deadline = None

        if room.mode == "matching":
            needed = room.board_size
        else:
            needed = self.settings.symbols_per_player * len(room.players)
        pool = self.registry.catalog.get_symbols_for_theme(room.theme_id, minimum=needed)

        try:
            assign_boards(room, pool, self.settings, self.rng)
        except SymbolPoolEmpty as exc:
            logger.error("[setup-error] room=%s %s", room.id, exc)
            room.phase = "lobby"
            for p in room.players.values():
                p.is_ready_in_lobby = False
            out.to_room(room.id, "game:error", {
                "roomId": room.id,
                "reason": "symbol_pool_empty",
                "message": "No symbols available for this theme.",
            })
            self._broadcast_roster(room, out)
            return

        room.phase = "asset_loading"
        for p in room.players.values():
            p.assets_loaded = False
            p.is_ready_in_lobby = False
            if p.connection_id:
                out.to_connection(p.connection_id, "game:assets", {
                    "roomId": room.id,
                    "themeId": room.theme_id,
                    "mode": room.mode,
                    "palette": dict(room.palette),
                    "board": list(p.board),
                })
        logger.info("[asset-loading] room=%s players=%d symbols=%d", room.id, len(room.players), len(room.symbol_pool))
        self._broadcast_roster(room, out)

    def _maybe_activate(self, room: Room, out: Outcome) -> None:
        if room.phase != "asset_loading":
            return
        connected = room.connected_players()
        if connected and all(p.assets_loaded for p in connected):
            self._enter_active(room, out)

    def _enter_active(self, room: Room, out: Outcome) -> None:
        room.phase = "active"
        logger.info("[active] room=%s", room.id)
        out.to_room(room.id, "game:active", {
            "roomId": room.id,
            "mode": room.mode,
            "targetMatches": room.target_matches,
        })
        self._start_next_round(room, out)

    def _start_next_round(self, room: Room, out: Outcome) -> None:
        self._cancel_pause(room)
        if room.phase != "active":
            return

        if len(room.players) < self.settings.min_players:
            self._end_room(room, out, "insufficient_players")
            return

        if len(room.connected_players()) < self.settings.min_players:
            # Wait for a reconnect or for the removal timer to settle it.
            room.current_round = None
            logger.info("[round-wait] room=%s connected=%d", room.id, len(room.connected_players()))
            out.to_room(room.id, "game:waiting", {"roomId": room.id, "message": "Waiting for players to reconnect."})
            return

        if room.mode == "matching":
            turn = new_matching_turn(room)
            logger.info("[turn-start] room=%s turn=%d", room.id, turn.turn_number)
            out.to_room(room.id, "game:turn", {
                "roomId": room.id,
                "turnNumber": turn.turn_number,
                "matched": list(room.matched),
            })
            return

        try:
            rnd = new_alternating_round(room, self.rng)
        except ConsistencyFault as exc:
            logger.critical("[round-fault] room=%s %s", room.id, exc)
            self._end_room(room, out, "internal_error")
            return

        logger.info(
            "[round-start] room=%s round=%d source=%s target=%s bonus=%s",
            room.id, rnd.round_number, rnd.source_id, rnd.target_id, rnd.bonus,
        )
        for p in room.players.values():
            if p.connection_id:
                out.to_connection(p.connection_id, "game:round", {"roomId": room.id, **_round_view(room, p)})
        if room.host_connection_id:
            out.to_connection(room.host_connection_id, "game:round", {
                "roomId": room.id,
                "kind": "alternating",
                "roundNumber": rnd.round_number,
                "bonus": rnd.bonus,
                "sourceId": rnd.source_id,
                "targetId": rnd.target_id,
                "expectedSymbol": rnd.expected_symbol,
            })

    def _restart_round(self, room: Room, out: Outcome) -> None:
        rnd = room.current_round
        number = rnd.turn_number if isinstance(rnd, MatchingTurn) else rnd.round_number if rnd else 0
        logger.info("[round-abandon] room=%s round=%d", room.id, number)
        out.to_room(room.id, "game:round_abandoned", {"roomId": room.id, "roundNumber": number})
        self._start_next_round(room, out)

    def _takes_part(self, room: Room, player: Player) -> bool:
        rnd = room.current_round
        if room.phase != "active" or rnd is None:
            return False
        if isinstance(rnd, MatchingTurn):
            return not rnd.resolved
        return rnd.active and player.persistent_id in (rnd.source_id, rnd.target_id)

    def _end_room(self, room: Room, out: Outcome, reason: EndReason) -> None:
        room.phase = "ended"
        room.end_reason = reason
        room.current_round = None
        logger.info("[room-ended] room=%s reason=%s", room.id, reason)
        out.to_room(room.id, "game:ended", {
            "roomId": room.id,
            "reason": reason,
            "message": END_MESSAGES.get(reason, reason),
            "matched": list(room.matched),
            "pieces": len(room.pieces),
        })
        conns = room.connection_ids()
        if room.host_connection_id:
            conns.append(room.host_connection_id)
        for conn in conns:
            out.unsubscribe(conn, room.id)
        # Cancels every timer and drops the connection bindings.
        self.registry.delete_room(room.id)
        out.room_deleted = True

    # ---- departures ----

    def _remove_player(self, room: Room, player: Player, out: Outcome) -> None:
        if player.removal_timer is not None:
            player.removal_timer.cancel()
            player.removal_timer = None
        if player.connection_id:
            out.unsubscribe(player.connection_id, room.id)
            self.registry.unbind_connection(player.connection_id)
        room.players.pop(player.persistent_id, None)
        logger.info("[player-removed] room=%s player=%s remaining=%d", room.id, player.persistent_id, len(room.players))
        out.to_room(room.id, "player:left", {
            "roomId": room.id,
            "playerId": player.persistent_id,
            "name": player.name,
            "remainingPlayers": len(room.players),
        })

    def _after_departure(self, room: Room, departed: Player, out: Outcome) -> None:
        if room.phase in ("lobby", "countdown_pending"):
            if not room.players and room.host_connection_id is None:
                self.registry.delete_room(room.id)
                room.phase = "ended"
                out.room_deleted = True
                return
            was_counting = room.phase == "countdown_pending"
            self._cancel_countdown(room, out, "player_left", f"{departed.name} left the lobby.")
            self._broadcast_roster(room, out)
            if not was_counting:
                self._evaluate_start(room, out)
            return

        if len(room.players) < self.settings.min_players:
            self._end_room(room, out, "insufficient_players")
            return

        self._broadcast_roster(room, out)
        if self._takes_part(room, departed):
            self._restart_round(room, out)
        elif room.phase == "active" and room.current_round is None and room.pause_timer is None:
            self._start_next_round(room, out)
        elif room.phase == "asset_loading":
            self._maybe_activate(room, out)

    # ---- event handlers ----

    def _on_join(self, room: Room, event: JoinRequested, out: Outcome) -> None:
        conn = event.connection_id
        bound_room = self.registry.room_id_for_connection(conn)
        pid = (event.persistent_id or "").strip()

        if pid and pid in room.players:
            player = room.players[pid]
            if bound_room is not None and bound_room != room.id:
                raise DuplicateConnection()
            # A live connection may only ever speak for one seat.
            current = room.player_by_connection(conn)
            if conn == room.host_connection_id or (current is not None and current is not player):
                raise DuplicateConnection()
            self._reconnect(room, player, conn, out)
            return

        if bound_room is not None or room.player_by_connection(conn) is not None:
            raise DuplicateConnection()
        if room.phase not in ("lobby", "countdown_pending"):
            raise AlreadyStarted()
        if len(room.players) >= room.max_players:
            raise RoomFull()

        pid = uuid.uuid4().hex
        name = (event.name or "").strip() or f"Player-{pid[:4]}"
        player = Player(persistent_id=pid, name=name, connection_id=conn)
        room.players[pid] = player
        self.registry.bind_connection(conn, room.id)
        logger.info("[player-joined] room=%s player=%s players=%d/%d", room.id, pid, len(room.players), room.max_players)

        out.subscribe(conn, room.id)
        out.to_connection(conn, "room:joined", {"roomId": room.id, "playerId": pid, "reconnected": False})
        self._broadcast_roster(room, out)
        if room.phase == "countdown_pending" and not self._start_condition(room):
            self._cancel_countdown(room, out, "player_joined", f"{name} joined the lobby.")
        self._evaluate_start(room, out)
        out.reply = {"ok": True, "roomId": room.id, "playerId": pid}

    def _reconnect(self, room: Room, player: Player, conn: str, out: Outcome) -> None:
        old = player.connection_id
        if old and old != conn:
            out.to_connection(old, "room:error", {"error": "session_replaced", "message": "Signed in elsewhere."})
            out.unsubscribe(old, room.id)
            self.registry.unbind_connection(old)

        if player.removal_timer is not None:
            player.removal_timer.cancel()
            player.removal_timer = None
        player.connection_id = conn
        player.disconnected = False
        self.registry.bind_connection(conn, room.id)
        logger.info("[player-reconnected] room=%s player=%s phase=%s", room.id, player.persistent_id, room.phase)

        out.subscribe(conn, room.id)
        out.to_connection(conn, "room:joined", {"roomId": room.id, "playerId": player.persistent_id, "reconnected": True})
        out.to_connection(conn, "room:state", room_public_state(room, viewer=player))
        out.to_room(room.id, "player:reconnected", {"roomId": room.id, "playerId": player.persistent_id, "name": player.name})
        out.reply = {"ok": True, "roomId": room.id, "playerId": player.persistent_id, "reconnected": True}

        if room.phase == "lobby":
            self._evaluate_start(room, out)
        elif room.phase == "active" and room.current_round is None and room.pause_timer is None:
            self._start_next_round(room, out)

    def _on_ready(self, room: Room, event: ReadyChanged, out: Outcome) -> None:
        player = self._require_player(room, event.connection_id)
        if room.phase not in ("lobby", "countdown_pending"):
            raise InvalidPhase()

        player.is_ready_in_lobby = bool(event.ready)
        self._broadcast_roster(room, out)
        if room.phase == "countdown_pending" and not player.is_ready_in_lobby:
            self._cancel_countdown(room, out, "player_not_ready", f"{player.name} is not ready.")
        else:
            self._evaluate_start(room, out)

    def _on_assets_loaded(self, room: Room, event: AssetsLoaded, out: Outcome) -> None:
        player = self._require_player(room, event.connection_id)
        if room.phase == "active":
            return
        if room.phase != "asset_loading":
            raise InvalidPhase()

        player.assets_loaded = True
        connected = room.connected_players()
        out.to_room(room.id, "game:loading", {
            "roomId": room.id,
            "loaded": sum(1 for p in connected if p.assets_loaded),
            "total": len(connected),
        })
        self._maybe_activate(room, out)

    def _on_selection(self, room: Room, event: SelectionMade, out: Outcome) -> None:
        player = self._require_player(room, event.connection_id)
        rnd = room.current_round
        if room.phase != "active" or rnd is None:
            raise InvalidPhase("No round in progress.")

        if isinstance(rnd, MatchingTurn):
            self._select_matching(room, rnd, player, event.symbol, out)
        else:
            self._press_alternating(room, rnd, player, event.symbol, out)

    def _select_matching(self, room: Room, turn: MatchingTurn, player: Player, symbol: str, out: Outcome) -> None:
        record_selection(room, turn, player, symbol)
        needed = len(room.connected_players())
        out.to_room(room.id, "game:selection", {
            "roomId": room.id,
            "turnNumber": turn.turn_number,
            "playerId": player.persistent_id,
            "count": len(turn.selections),
            "needed": needed,
        })
        if not turn_complete(room, turn):
            return

        result = resolve_matching_turn(room, turn)
        logger.info("[turn-resolved] room=%s turn=%d success=%s", room.id, result.turn_number, result.success)
        out.to_room(room.id, "game:turn_result", {
            "roomId": room.id,
            "turnNumber": result.turn_number,
            "success": result.success,
            "symbol": result.symbol,
            "choices": result.choices,
            "matched": list(room.matched),
        })
        if result.victory:
            self._end_room(room, out, "victory")
            return
        self._schedule_next_round(room, turn.turn_number, self.settings.turn_pause_sec)

    def _press_alternating(self, room: Room, rnd: AlternatingRound, player: Player, symbol: str, out: Outcome) -> None:
        result = resolve_press(room, rnd, player, symbol, self.settings)
        conn = player.connection_id or ""

        if result.wrong_player:
            out.to_connection(conn, "game:feedback", {"correct": False, "message": "Not your turn!"})
            if result.piece_delta:
                out.to_room(room.id, "game:pieces", {"roomId": room.id, "pieces": len(room.pieces)})
            out.reply = {"ok": False, **NotYourTurn().to_payload()}
            return

        logger.info("[round-resolved] room=%s round=%d correct=%s", room.id, result.round_number, result.correct)
        out.to_connection(conn, "game:feedback", {
            "correct": result.correct,
            "message": "Correct!" if result.correct else "Wrong Symbol!",
        })
        out.to_room(room.id, "game:round_result", {
            "roomId": room.id,
            "roundNumber": result.round_number,
            "correct": result.correct,
            "pieceDelta": result.piece_delta,
            "pieces": len(room.pieces),
        })
        if result.victory:
            self._end_room(room, out, "victory")
            return
        self._schedule_next_round(room, rnd.round_number, self.settings.round_pause_sec)

    def _on_leave(self, room: Room, event: LeaveRequested, out: Outcome) -> None:
        if event.connection_id == room.host_connection_id:
            self._end_room(room, out, "host_disconnected")
            return
        player = self._require_player(room, event.connection_id)
        self._remove_player(room, player, out)
        self._after_departure(room, player, out)

    def _on_disconnect(self, room: Room, event: Disconnected, out: Outcome) -> None:
        conn = event.connection_id
        if conn == room.host_connection_id:
            self._end_room(room, out, "host_disconnected")
            return

        self.registry.unbind_connection(conn)
        player = room.player_by_connection(conn)
        if player is None:
            return

        player.connection_id = None
        player.disconnected = True
        self._arm_removal(room, player)
        logger.info("[player-disconnected] room=%s player=%s phase=%s", room.id, player.persistent_id, room.phase)
        out.to_room(room.id, "player:disconnected", {
            "roomId": room.id,
            "playerId": player.persistent_id,
            "name": player.name,
            "graceSec": self.settings.reconnect_grace_sec,
        })

        if room.phase == "countdown_pending":
            self._cancel_countdown(room, out, "player_disconnected", f"{player.name} disconnected.")
            self._broadcast_roster(room, out)
        elif room.phase == "lobby":
            self._broadcast_roster(room, out)
        elif self._takes_part(room, player):
            self._restart_round(room, out)
        elif room.phase == "asset_loading":
            self._maybe_activate(room, out)

    def _on_removal_expired(self, room: Room, event: RemovalExpired, out: Outcome) -> None:
        player = room.players.get(event.persistent_id)
        if player is None or player.removal_timer is not event.timer or not player.disconnected:
            return
        player.removal_timer = None
        logger.info("[grace-expired] room=%s player=%s", room.id, player.persistent_id)
        self._remove_player(room, player, out)
        self._after_departure(room, player, out)

    def _on_countdown_expired(self, room: Room, event: CountdownExpired, out: Outcome) -> None:
        if room.countdown_timer is not event.timer or room.phase != "countdown_pending":
            return
        room.countdown_timer = None
        room.countdown_deadline = None
        if self._start_condition(room):
            self._enter_asset_loading(room, out)
        else:
            self._cancel_countdown(room, out, "conditions_changed", "Not all players are ready.")

    def _on_pause_elapsed(self, room: Room, event: PauseElapsed, out: Outcome) -> None:
        if room.pause_timer is not event.timer:
            return
        room.pause_timer = None
        rnd = room.current_round
        number = rnd.turn_number if isinstance(rnd, MatchingTurn) else rnd.round_number if rnd else None
        if room.phase == "active" and number == event.round_number:
            self._start_next_round(room, out)

    def _on_host_attached(self, room: Room, event: HostAttached, out: Outcome) -> None:
        conn = event.connection_id
        bound_room = self.registry.room_id_for_connection(conn)
        if bound_room is not None and bound_room != room.id:
            raise DuplicateConnection()
        room.host_connection_id = conn
        self.registry.bind_connection(conn, room.id)
        out.subscribe(conn, room.id)
        out.to_connection(conn, "room:state", room_public_state(room))
        out.reply = {"ok": True, "roomId": room.id, "host": True}

    def _require_host(self, room: Room, connection_id: str) -> None:
        if room.host_connection_id is None or connection_id != room.host_connection_id:
            raise NotHost()

    def _on_host_start(self, room: Room, event: HostStartRequested, out: Outcome) -> None:
        self._require_host(room, event.connection_id)
        if room.phase not in ("lobby", "countdown_pending"):
            raise InvalidPhase()
        if len(room.connected_players()) < self.settings.min_players:
            raise NotEnoughPlayers(f"Not enough players to start (minimum {self.settings.min_players}).")

        logger.info("[host-start] room=%s players=%d", room.id, len(room.players))
        self._enter_asset_loading(room, out)
        out.reply = {"ok": True, "roomId": room.id, "phase": room.phase}

    def _on_host_cancel(self, room: Room, event: HostCancelRequested, out: Outcome) -> None:
        self._require_host(room, event.connection_id)
        if room.phase not in ("lobby", "countdown_pending"):
            raise InvalidPhase("The game has already started.")
        self._end_room(room, out, "host_cancelled")
        out.reply = {"ok": True, "roomId": room.id, "phase": "ended"}

    def _on_force_activate(self, room: Room, event: ForceActivate, out: Outcome) -> None:
        logger.info("[admin-activate] room=%s phase=%s", room.id, room.phase)
        if room.phase in ("lobby", "countdown_pending"):
            if not room.players:
                raise InvalidPhase("Room has no players.")
            self._enter_asset_loading(room, out)
        elif room.phase == "asset_loading":
            self._enter_active(room, out)
        else:
            raise InvalidPhase()
        out.reply = {"ok": True, "roomId": room.id, "phase": room.phase}

    def _on_force_reset(self, room: Room, event: ForceReset, out: Outcome) -> None:
        self._end_room(room, out, "admin_reset")
