from __future__ import annotations

from dataclasses import dataclass, field
from threading import RLock
from typing import TYPE_CHECKING, Any, Literal, Mapping, Union

if TYPE_CHECKING:
    from .timers import TimerHandle


Phase = Literal["lobby", "countdown_pending", "asset_loading", "active", "ended"]
GameMode = Literal["matching", "alternating"]
EndReason = Literal[
    "victory",
    "insufficient_players",
    "admin_reset",
    "host_disconnected",
    "host_cancelled",
    "internal_error",
]

# Phases in which the room counts as started.
STARTED_PHASES = ("asset_loading", "active")


@dataclass
class GameSettings:
    start_policy: str = "all_ready"
    min_players: int = 2
    countdown_sec: float = 10.0
    reconnect_grace_sec: float = 20.0
    turn_pause_sec: float = 3.0
    round_pause_sec: float = 1.5
    board_size: int = 9
    symbols_per_player: int = 4
    pieces_to_win: int = 4

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "GameSettings":
        defaults = cls()
        return cls(
            start_policy=str(config.get("START_POLICY", defaults.start_policy)),
            min_players=int(config.get("MIN_PLAYERS", defaults.min_players)),
            countdown_sec=float(config.get("COUNTDOWN_SEC", defaults.countdown_sec)),
            reconnect_grace_sec=float(config.get("RECONNECT_GRACE_SEC", defaults.reconnect_grace_sec)),
            turn_pause_sec=float(config.get("TURN_PAUSE_SEC", defaults.turn_pause_sec)),
            round_pause_sec=float(config.get("ROUND_PAUSE_SEC", defaults.round_pause_sec)),
            board_size=int(config.get("BOARD_SIZE", defaults.board_size)),
            symbols_per_player=int(config.get("SYMBOLS_PER_PLAYER", defaults.symbols_per_player)),
            pieces_to_win=int(config.get("PIECES_TO_WIN", defaults.pieces_to_win)),
        )


@dataclass(frozen=True)
class ThemeTemplate:
    id: str
    display_name: str
    max_players: int
    mode: GameMode = "matching"
    board_size: int | None = None
    palette: dict[str, str] = field(default_factory=dict)
    theme_folder: str = ""
    symbols: tuple[str, ...] = ()


@dataclass
class Player:
    persistent_id: str
    name: str
    connection_id: str | None = None
    disconnected: bool = False
    is_ready_in_lobby: bool = False
    assets_loaded: bool = False
    # Matching: private permutation of the shared board. Alternating: private hand.
    board: list[str] = field(default_factory=list)
    removal_timer: TimerHandle | None = field(default=None, repr=False)

    @property
    def connected(self) -> bool:
        return not self.disconnected and self.connection_id is not None


@dataclass
class MatchingTurn:
    turn_number: int
    # persistent_id -> chosen symbol
    selections: dict[str, str] = field(default_factory=dict)
    resolved: bool = False
    kind: Literal["matching"] = "matching"


@dataclass
class AlternatingRound:
    round_number: int
    source_id: str
    target_id: str
    expected_symbol: str
    target_index: int
    bonus: bool = False
    active: bool = True
    kind: Literal["alternating"] = "alternating"


Round = Union[MatchingTurn, AlternatingRound]


@dataclass
class Room:
    id: str
    theme_id: str
    max_players: int
    mode: GameMode = "matching"
    board_size: int = 9
    palette: dict[str, str] = field(default_factory=dict)
    phase: Phase = "lobby"
    # persistent_id -> Player, insertion order is join order
    players: dict[str, Player] = field(default_factory=dict)
    host_connection_id: str | None = None
    symbol_pool: list[str] = field(default_factory=list)
    target_matches: int = 0
    matched: list[str] = field(default_factory=list)
    pieces: list[str] = field(default_factory=list)
    current_round: Round | None = None
    round_counter: int = 0
    next_target_index: int = 0
    countdown_deadline: float | None = None
    countdown_timer: TimerHandle | None = field(default=None, repr=False)
    pause_timer: TimerHandle | None = field(default=None, repr=False)
    end_reason: EndReason | None = None
    lock: RLock = field(default_factory=RLock, repr=False, compare=False)

    @property
    def started(self) -> bool:
        return self.phase in STARTED_PHASES

    def connected_players(self) -> list[Player]:
        return [p for p in self.players.values() if p.connected]

    def player_by_connection(self, connection_id: str) -> Player | None:
        for p in self.players.values():
            if p.connection_id == connection_id:
                return p
        return None

    def connection_ids(self) -> list[str]:
        return [p.connection_id for p in self.players.values() if p.connection_id]
