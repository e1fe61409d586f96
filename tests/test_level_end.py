"""
Tests for clean / stuck detection and the once-per-board level end.
"""

import pytest

from cubecrash.merge_core.events import EventBus, EVENT_LEVEL_END
from cubecrash.merge_core.level_end import (
    LevelEndDetector,
    LevelEndState,
    LevelState,
    any_merge_possible,
    classify,
    legal_merges,
)
from cubecrash.merge_core.tile import WILD, Board, Tile


def tiles(*values, special=None):
    return [
        Tile(uid=i + 1, col=i, row=0, value=v, locked=False, special=special)
        for i, v in enumerate(values)
    ]


def board_with(*values, ghosts=0):
    board = Board(rows=3, cols=6)
    for i, v in enumerate(values):
        board.new_tile(i, 0, value=v, locked=False)
    for i in range(ghosts):
        board.new_tile(i, 1)
    return board


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def ends(bus):
    received = []
    bus.subscribe(EVENT_LEVEL_END, lambda sender, **payload: received.append(payload))
    return received


class TestAnyMergePossible:
    """Move availability."""

    def test_summable_pair(self):
        assert any_merge_possible(tiles(2, 3))

    def test_unsummable_pair(self):
        assert not any_merge_possible(tiles(4, 5))

    def test_equal_pair(self):
        assert any_merge_possible(tiles(5, 4, 5))

    def test_wild_with_other(self):
        pieces = tiles(4, 5) + tiles(1, special=WILD)
        pieces[-1].uid = 99
        assert any_merge_possible(pieces)

    def test_two_wilds_only(self):
        assert not any_merge_possible(tiles(2, 3, special=WILD))

    def test_single_tile(self):
        assert not any_merge_possible(tiles(1))

    def test_locked_ignored(self):
        pieces = tiles(2, 3)
        pieces[1].locked = True
        assert not any_merge_possible(pieces)

    def test_legal_merges_ordered_pairs(self):
        assert len(legal_merges(tiles(2, 3))) == 2
        assert legal_merges(tiles(4, 5)) == []


class TestClassify:
    """Board states."""

    def test_playing(self):
        assert classify(board_with(2, 3)) is LevelEndState.PLAYING

    def test_stuck(self):
        assert classify(board_with(4, 5)) is LevelEndState.STUCK

    def test_stuck_with_ghosts(self):
        assert classify(board_with(4, 5, ghosts=3)) is LevelEndState.STUCK

    def test_clean_only_ghosts(self):
        assert classify(board_with(ghosts=4)) is LevelEndState.CLEAN

    def test_clean_empty(self):
        assert classify(Board(2, 2)) is LevelEndState.CLEAN

    def test_single_active_tile_is_stuck(self):
        assert classify(board_with(3, ghosts=2)) is LevelEndState.STUCK


class TestDetector:
    """Level-end notification."""

    def test_playing_does_not_fire(self, bus, ends):
        detector = LevelEndDetector(bus)
        assert detector.evaluate(board_with(2, 3)) is LevelEndState.PLAYING
        assert ends == []
        assert not detector.fired

    def test_stuck_fires_once(self, bus, ends):
        detector = LevelEndDetector(bus)
        board = board_with(4, 5)
        state = LevelState(level=3, score=120, moves=7)
        detector.evaluate(board, state)
        detector.evaluate(board, state)
        assert ends == [{"reason": "no_moves", "score": 120, "level": 3, "moves": 7}]

    def test_clean_reason(self, bus, ends):
        detector = LevelEndDetector(bus)
        assert detector.evaluate(board_with(ghosts=2)) is LevelEndState.CLEAN
        assert ends[0]["reason"] == "board_clean"

    def test_reset_rearms(self, bus, ends):
        detector = LevelEndDetector(bus)
        board = board_with(4, 5)
        detector.evaluate(board)
        detector.reset()
        assert detector.state is LevelEndState.PLAYING
        detector.evaluate(board)
        assert len(ends) == 2

    def test_terminal_state_is_frozen(self, bus, ends):
        detector = LevelEndDetector(bus)
        detector.evaluate(board_with(4, 5))
        assert detector.evaluate(board_with(2, 3)) is LevelEndState.STUCK
        assert detector.state is LevelEndState.STUCK
        assert len(ends) == 1

    def test_without_bus(self):
        detector = LevelEndDetector()
        assert detector.evaluate(board_with(4, 5)) is LevelEndState.STUCK
        assert detector.fired


class TestLevelState:
    """Level state defaults."""

    def test_mode(self):
        assert LevelState().mode == "normal"
        assert LevelState(endless=True).mode == "endless"
