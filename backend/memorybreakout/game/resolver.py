"""Board assignment and round resolution for both game modes.

Matching mode: every player holds a private permutation of one shared board.
A turn collects one selection per connected player and succeeds when all of
them picked the same symbol.

Alternating mode: every player holds a private hand. Each round names a
target (round-robin) and a source (random); only the target may press, and
every third round stakes a piece.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field

from .errors import ConsistencyFault, InvalidPhase, InvalidSelection, SymbolPoolEmpty
from .models import AlternatingRound, GameSettings, MatchingTurn, Player, Room
from .themes import draw_symbols

logger = logging.getLogger(__name__)

BONUS_ROUND_EVERY = 3


def assign_boards(room: Room, pool: list[str], settings: GameSettings, rng: random.Random) -> None:
    if not pool:
        raise SymbolPoolEmpty(f"No symbols available for theme {room.theme_id}")

    players = list(room.players.values())
    if room.mode == "matching":
        shared = draw_symbols(pool, room.board_size, rng)
        room.symbol_pool = shared
        room.target_matches = len(set(shared))
        for p in players:
            board = list(shared)
            rng.shuffle(board)
            p.board = board
    else:
        per_player = settings.symbols_per_player
        drawn = draw_symbols(pool, per_player * len(players), rng)
        room.symbol_pool = drawn
        room.target_matches = settings.pieces_to_win
        for i, p in enumerate(players):
            p.board = drawn[i * per_player:(i + 1) * per_player]

    room.matched = []
    room.pieces = []
    room.current_round = None
    room.round_counter = 0
    room.next_target_index = 0


# ---- matching ----


@dataclass
class TurnResult:
    turn_number: int
    success: bool
    symbol: str | None
    # persistent_id -> symbol
    choices: dict[str, str] = field(default_factory=dict)
    victory: bool = False


def new_matching_turn(room: Room) -> MatchingTurn:
    room.round_counter += 1
    turn = MatchingTurn(turn_number=room.round_counter)
    room.current_round = turn
    return turn


def record_selection(room: Room, turn: MatchingTurn, player: Player, symbol: str) -> None:
    if turn.resolved:
        raise InvalidPhase("Turn already resolved.")
    if player.persistent_id in turn.selections:
        raise InvalidSelection("You already selected this turn.")
    if symbol not in room.symbol_pool:
        raise InvalidSelection("Symbol is not on the board.")
    if symbol in room.matched:
        raise InvalidSelection("Symbol already matched.")
    turn.selections[player.persistent_id] = symbol


def turn_complete(room: Room, turn: MatchingTurn) -> bool:
    connected = room.connected_players()
    if not connected:
        return False
    return all(p.persistent_id in turn.selections for p in connected)


def resolve_matching_turn(room: Room, turn: MatchingTurn) -> TurnResult:
    turn.resolved = True
    choices = {pid: sym for pid, sym in turn.selections.items() if pid in room.players}
    symbols = set(choices.values())

    if len(symbols) == 1:
        symbol = next(iter(symbols))
        room.matched.append(symbol)
        victory = len(room.matched) >= room.target_matches
        return TurnResult(turn.turn_number, True, symbol, choices, victory)

    return TurnResult(turn.turn_number, False, None, choices, False)


# ---- alternating ----


@dataclass
class PressResult:
    round_number: int
    correct: bool
    piece_delta: int = 0
    victory: bool = False
    wrong_player: bool = False


def pick_source_target(room: Room, rng: random.Random) -> tuple[Player, Player]:
    players = list(room.players.values())
    n = len(players)
    if n == 0:
        raise ConsistencyFault("No players to rotate over.")

    start = room.next_target_index % n
    target: Player | None = None
    for i in range(n):
        idx = (start + i) % n
        if players[idx].connected:
            target = players[idx]
            room.next_target_index = (idx + 1) % n
            break

    if target is None:
        raise ConsistencyFault("No connected player can be target.")

    sources = [p for p in room.connected_players() if p.persistent_id != target.persistent_id]
    if not sources:
        raise ConsistencyFault(f"No source available for target {target.persistent_id}.")
    return rng.choice(sources), target


def new_alternating_round(room: Room, rng: random.Random) -> AlternatingRound:
    source, target = pick_source_target(room, rng)
    if not target.board:
        raise ConsistencyFault(f"Target {target.persistent_id} holds no symbols.")

    index = rng.randrange(len(target.board))
    room.round_counter += 1
    rnd = AlternatingRound(
        round_number=room.round_counter,
        source_id=source.persistent_id,
        target_id=target.persistent_id,
        expected_symbol=target.board[index],
        target_index=index,
        bonus=room.round_counter % BONUS_ROUND_EVERY == 0,
    )
    room.current_round = rnd
    return rnd


def resolve_press(room: Room, rnd: AlternatingRound, player: Player, symbol: str, settings: GameSettings) -> PressResult:
    if not rnd.active:
        raise InvalidPhase("Round already resolved.")

    if player.persistent_id != rnd.target_id:
        # Round stays open; a wrong-player press still costs a piece in a bonus round.
        if rnd.bonus and room.pieces:
            room.pieces.pop()
            return PressResult(rnd.round_number, False, piece_delta=-1, wrong_player=True)
        return PressResult(rnd.round_number, False, wrong_player=True)

    rnd.active = False
    correct = symbol == rnd.expected_symbol
    delta = 0
    if rnd.bonus:
        if correct:
            room.pieces.append(rnd.expected_symbol)
            delta = 1
        elif room.pieces:
            room.pieces.pop()
            delta = -1

    victory = correct and len(room.pieces) >= settings.pieces_to_win
    return PressResult(rnd.round_number, correct, delta, victory)
