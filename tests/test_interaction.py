"""
Tests for the drag/drop interaction controller.
"""

import pytest

from cubecrash.merge_core.config_loader import load_config
from cubecrash.merge_core.events import EventBus, EVENT_DRAG_SNAP_BACK
from cubecrash.merge_core.interaction import DragController
from cubecrash.merge_core.level_flow import InputLock
from cubecrash.merge_core.tile import Board


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def snaps(bus):
    received = []
    bus.subscribe(EVENT_DRAG_SNAP_BACK, lambda sender, **payload: received.append(payload))
    return received


@pytest.fixture
def board():
    return Board(rows=3, cols=3)


class Recorder:
    """Merge callback that records calls."""

    def __init__(self, result="report"):
        self.calls = []
        self.result = result

    def __call__(self, src, dst):
        self.calls.append((src, dst))
        return self.result


@pytest.fixture
def merges():
    return Recorder()


@pytest.fixture
def lock(bus):
    return InputLock(bus)


@pytest.fixture
def drag(merges, config, lock, bus):
    return DragController(merges, config, lock, bus)


def bound(drag, board, col, row, value):
    tile = board.new_tile(col, row, value=value, locked=False)
    drag.bind_draggable(tile)
    return tile


class TestBinding:
    """Drag binding bookkeeping."""

    def test_bind_unbind(self, drag, board):
        tile = bound(drag, board, 0, 0, 2)
        assert drag.is_draggable(tile)
        drag.unbind_draggable(tile)
        assert not drag.is_draggable(tile)

    def test_locked_tile_not_draggable(self, drag, board):
        ghost = board.new_tile(0, 0)
        drag.bind_draggable(ghost)
        assert not drag.is_draggable(ghost)


class TestSession:
    """Begin / overlap / release."""

    def test_unbound_rejected(self, drag, board):
        tile = board.new_tile(0, 0, value=2, locked=False)
        assert not drag.begin_drag(tile)

    def test_second_session_rejected(self, drag, board):
        a = bound(drag, board, 0, 0, 2)
        b = bound(drag, board, 1, 0, 3)
        assert drag.begin_drag(a)
        assert not drag.begin_drag(b)
        assert drag.session.tile is a

    def test_input_lock_rejects(self, drag, board, lock):
        tile = bound(drag, board, 0, 0, 2)
        lock.acquire("level_flow")
        assert not drag.begin_drag(tile)
        lock.release("level_flow")
        assert drag.begin_drag(tile)

    def test_overlap_threshold(self, drag, board, config):
        a = bound(drag, board, 0, 0, 2)
        b = bound(drag, board, 1, 0, 3)
        drag.begin_drag(a)
        threshold = config.interaction.drop_overlap_threshold
        assert not drag.update_overlap(b, threshold - 0.01)
        assert drag.update_overlap(b, threshold)

    def test_illegal_target_never_droppable(self, drag, board):
        a = bound(drag, board, 0, 0, 4)
        b = bound(drag, board, 1, 0, 5)
        drag.begin_drag(a)
        assert not drag.update_overlap(b, 1.0)

    def test_self_overlap_ignored(self, drag, board):
        a = bound(drag, board, 0, 0, 2)
        drag.begin_drag(a)
        assert not drag.update_overlap(a, 1.0)

    def test_release_merges(self, drag, board, merges):
        a = bound(drag, board, 0, 0, 2)
        b = bound(drag, board, 1, 0, 3)
        drag.begin_drag(a)
        drag.update_overlap(b, 0.8)
        assert drag.release() == "report"
        assert merges.calls == [(a, b)]
        assert not drag.dragging

    def test_release_on_target_counts_full_overlap(self, drag, board, merges):
        a = bound(drag, board, 0, 0, 1)
        b = bound(drag, board, 1, 0, 1)
        drag.begin_drag(a)
        assert drag.release(b) == "report"
        assert merges.calls == [(a, b)]

    def test_release_without_target_snaps_back(self, drag, board, merges, snaps):
        a = bound(drag, board, 0, 0, 2)
        drag.begin_drag(a)
        assert drag.release() is None
        assert merges.calls == []
        assert snaps == [{"tile": a, "reason": "no_target"}]

    def test_release_below_threshold_snaps_back(self, drag, board, merges, snaps):
        a = bound(drag, board, 0, 0, 2)
        b = bound(drag, board, 1, 0, 3)
        drag.begin_drag(a)
        drag.update_overlap(b, 0.1)
        assert drag.release() is None
        assert merges.calls == []
        assert snaps[0]["reason"] == "rejected"

    def test_rejected_merge_snaps_back(self, config, lock, bus, board, snaps):
        drag = DragController(Recorder(result=None), config, lock, bus)
        a = bound(drag, board, 0, 0, 2)
        b = bound(drag, board, 1, 0, 3)
        drag.begin_drag(a)
        drag.update_overlap(b, 1.0)
        assert drag.release() is None
        assert snaps[0]["reason"] == "invalid"

    def test_cancel(self, drag, board, snaps):
        a = bound(drag, board, 0, 0, 2)
        drag.begin_drag(a)
        drag.cancel()
        assert not drag.dragging
        assert snaps[0]["reason"] == "cancelled"

    def test_release_without_session(self, drag):
        assert drag.release() is None
