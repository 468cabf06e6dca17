import random
from collections import Counter

import pytest

from memorybreakout.game.errors import ConsistencyFault, InvalidPhase, InvalidSelection, SymbolPoolEmpty
from memorybreakout.game.models import AlternatingRound, GameSettings, Player, Room
from memorybreakout.game.resolver import (
    assign_boards,
    new_alternating_round,
    new_matching_turn,
    pick_source_target,
    record_selection,
    resolve_matching_turn,
    resolve_press,
    turn_complete,
)
from memorybreakout.game.themes import draw_symbols


def make_room(n, mode="matching", board_size=9):
    room = Room(id="123456", theme_id="T", max_players=n, mode=mode, board_size=board_size)
    for i in range(n):
        pid = f"p{i}"
        room.players[pid] = Player(persistent_id=pid, name=pid, connection_id=f"c{i}")
    return room


def test_matching_boards_are_permutations_of_one_shared_set():
    room = make_room(3)
    assign_boards(room, list("ABCDEFGHIJKL"), GameSettings(), random.Random(1))

    assert len(room.symbol_pool) == 9
    assert len(set(room.symbol_pool)) == 9
    assert room.target_matches == 9
    for p in room.players.values():
        assert sorted(p.board) == sorted(room.symbol_pool)


def test_small_pool_is_repeated_not_rejected():
    room = make_room(2)
    assign_boards(room, list("ABCD"), GameSettings(), random.Random(2))

    assert len(room.symbol_pool) == 9
    assert set(room.symbol_pool) == set("ABCD")
    assert room.target_matches == 4


def test_draw_symbols_keeps_every_symbol_when_repeating():
    drawn = draw_symbols(list("ABCD"), 9, random.Random(5))
    assert Counter(drawn).keys() == set("ABCD")
    assert max(Counter(drawn).values()) == 3


def test_empty_pool_is_a_setup_error():
    room = make_room(2)
    with pytest.raises(SymbolPoolEmpty):
        assign_boards(room, [], GameSettings(), random.Random(1))


def test_alternating_hands_are_private_slices():
    room = make_room(3, mode="alternating")
    assign_boards(room, [f"S{i}" for i in range(20)], GameSettings(), random.Random(1))

    hands = [p.board for p in room.players.values()]
    assert all(len(h) == 4 for h in hands)
    assert len({s for h in hands for s in h}) == 12
    assert room.target_matches == 4


def test_matching_turn_success_marks_symbol_resolved():
    room = make_room(3)
    room.symbol_pool = list("ABCDEFGHI")
    room.target_matches = 9
    turn = new_matching_turn(room)
    assert turn.turn_number == 1

    players = list(room.players.values())
    for p in players[:2]:
        record_selection(room, turn, p, "A")
    assert not turn_complete(room, turn)
    record_selection(room, turn, players[2], "A")
    assert turn_complete(room, turn)

    result = resolve_matching_turn(room, turn)
    assert result.success and result.symbol == "A"
    assert room.matched == ["A"]
    assert not result.victory

    nxt = new_matching_turn(room)
    assert nxt.turn_number == 2
    with pytest.raises(InvalidSelection):
        record_selection(room, nxt, players[0], "A")


def test_matching_turn_failure_leaves_matched_untouched():
    room = make_room(3)
    room.symbol_pool = list("ABCDEFGHI")
    room.target_matches = 9
    turn = new_matching_turn(room)
    for p, sym in zip(room.players.values(), "ABA"):
        record_selection(room, turn, p, sym)

    result = resolve_matching_turn(room, turn)
    assert not result.success
    assert result.choices == {"p0": "A", "p1": "B", "p2": "A"}
    assert room.matched == []


def test_selection_rules():
    room = make_room(2)
    room.symbol_pool = list("ABCD")
    turn = new_matching_turn(room)
    p0 = room.players["p0"]

    with pytest.raises(InvalidSelection):
        record_selection(room, turn, p0, "Z")
    record_selection(room, turn, p0, "A")
    with pytest.raises(InvalidSelection):
        record_selection(room, turn, p0, "B")

    turn.resolved = True
    with pytest.raises(InvalidPhase):
        record_selection(room, turn, room.players["p1"], "A")


def test_disconnected_players_do_not_block_turn_completion():
    room = make_room(3)
    room.symbol_pool = list("ABC")
    turn = new_matching_turn(room)
    room.players["p2"].connection_id = None
    room.players["p2"].disconnected = True

    record_selection(room, turn, room.players["p0"], "B")
    record_selection(room, turn, room.players["p1"], "B")
    assert turn_complete(room, turn)


def test_round_robin_spreads_target_duty():
    room = make_room(3, mode="alternating")
    assign_boards(room, [f"S{i}" for i in range(20)], GameSettings(), random.Random(4))
    rng = random.Random(9)

    targets = Counter()
    for expected in range(1, 11):
        rnd = new_alternating_round(room, rng)
        assert rnd.round_number == expected
        assert rnd.source_id != rnd.target_id
        assert rnd.expected_symbol == room.players[rnd.target_id].board[rnd.target_index]
        targets[rnd.target_id] += 1

    assert set(targets) == {"p0", "p1", "p2"}
    assert min(targets.values()) >= 2


def test_rotation_cursor_survives_departures():
    room = make_room(3, mode="alternating")
    room.next_target_index = 2
    del room.players["p2"]

    source, target = pick_source_target(room, random.Random(1))
    assert target.persistent_id == "p0"
    assert source.persistent_id == "p1"
    assert room.next_target_index == 1


def test_rotation_skips_disconnected_players():
    room = make_room(3, mode="alternating")
    room.players["p0"].disconnected = True
    room.players["p0"].connection_id = None

    _, target = pick_source_target(room, random.Random(1))
    assert target.persistent_id == "p1"


def test_no_source_available_is_a_consistency_fault():
    room = make_room(2, mode="alternating")
    room.players["p1"].disconnected = True
    with pytest.raises(ConsistencyFault):
        pick_source_target(room, random.Random(1))


def _round(bonus, target="p1"):
    return AlternatingRound(round_number=3 if bonus else 1, source_id="p0", target_id=target,
                            expected_symbol="X", target_index=0, bonus=bonus)


def test_press_outside_bonus_round_changes_no_pieces():
    room = make_room(2, mode="alternating")
    rnd = _round(bonus=False)
    result = resolve_press(room, rnd, room.players["p1"], "X", GameSettings())
    assert result.correct and result.piece_delta == 0
    assert not rnd.active
    with pytest.raises(InvalidPhase):
        resolve_press(room, rnd, room.players["p1"], "X", GameSettings())


def test_bonus_round_awards_and_costs_pieces():
    room = make_room(2, mode="alternating")
    settings = GameSettings()

    result = resolve_press(room, _round(bonus=True), room.players["p1"], "X", settings)
    assert result.piece_delta == 1 and room.pieces == ["X"]

    result = resolve_press(room, _round(bonus=True), room.players["p1"], "Y", settings)
    assert not result.correct and result.piece_delta == -1
    assert room.pieces == []


def test_wrong_player_press_keeps_round_open():
    room = make_room(3, mode="alternating")
    room.pieces = ["X"]
    rnd = _round(bonus=True)

    result = resolve_press(room, rnd, room.players["p2"], "X", GameSettings())
    assert result.wrong_player
    assert result.piece_delta == -1
    assert room.pieces == []
    assert rnd.active


def test_fourth_piece_is_victory():
    room = make_room(2, mode="alternating")
    room.pieces = ["a", "b", "c"]
    result = resolve_press(room, _round(bonus=True), room.players["p1"], "X", GameSettings())
    assert result.victory
