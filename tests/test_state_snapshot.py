"""
Test suite for the board snapshot arrays.

Ensures snapshots are correctly shaped and typed and that the derived
counters agree with the board.
"""

import numpy as np
import pytest

from cubecrash.merge_core.config_loader import load_config
from cubecrash.merge_core.game import CoreGame
from cubecrash.merge_core.state_snapshot import (
    CELL_ACTIVE,
    CELL_EMPTY,
    CELL_GHOST,
    SnapshotBuilder,
)
from cubecrash.merge_core.tile import Board


class TestSnapshotArrays:
    """Verify every snapshot field."""

    @pytest.fixture
    def game(self):
        g = CoreGame(seed=42)
        g.reset()
        return g

    @pytest.fixture
    def snap(self, game):
        return game.snapshot()

    # =========================================================================
    # Planes
    # =========================================================================

    def test_plane_shapes(self, snap):
        for plane in (snap.values, snap.stack_depth, snap.cell_kind, snap.wild_mask):
            assert plane.shape == (8, 5)

    def test_plane_dtypes(self, snap):
        assert snap.values.dtype == np.int8
        assert snap.stack_depth.dtype == np.int8
        assert snap.cell_kind.dtype == np.int8
        assert snap.wild_mask.dtype == bool

    def test_values_only_on_active_cells(self, snap):
        assert np.all(snap.values[~snap.active_mask] == 0)
        assert np.all((snap.values[snap.active_mask] >= 1) & (snap.values[snap.active_mask] <= 5))

    def test_values_match_board(self, game, snap):
        for tile in game.board.active_tiles():
            assert snap.values[tile.row, tile.col] == tile.value
            assert snap.cell_kind[tile.row, tile.col] == CELL_ACTIVE

    # =========================================================================
    # Counters
    # =========================================================================

    def test_counts_after_deal(self, snap):
        assert snap.active_count == 16
        assert snap.locked_count == 24
        assert snap.empty_count == 0
        assert int(snap.locked_mask.sum()) == 24

    def test_histogram(self, snap):
        assert snap.value_histogram.shape == (7,)
        assert snap.value_histogram.dtype == np.int32
        assert int(snap.value_histogram[1:].sum()) == snap.active_count

    def test_legal_move_count(self, game, snap):
        assert snap.legal_move_count == len(game.legal_merges())

    def test_empty_cell_after_merge(self, game):
        src, dst = game.legal_merges()[0]
        source = src.coords
        game.attempt_merge(src, dst)
        snap = game.snapshot()
        assert snap.cell_kind[source[1], source[0]] == CELL_EMPTY
        assert snap.empty_count == 1
        assert snap.moves == 1

    # =========================================================================
    # Dict form
    # =========================================================================

    def test_obs_dict_keys(self, snap):
        obs = snap.to_obs_dict()
        for key in (
            "level", "score", "moves", "values", "stack_depth", "cell_kind",
            "wild_mask", "active_count", "locked_count", "empty_count",
            "legal_move_count", "value_histogram",
        ):
            assert key in obs
        assert obs["score"].shape == ()
        assert obs["level"].dtype == np.int32

    def test_snapshot_is_a_copy(self, game, snap):
        snap.values[:] = 0
        assert game.snapshot().active_count == 16
        assert game.snapshot().values.any()


class TestSnapshotBuilder:
    def test_wrong_shape_rejected(self):
        builder = SnapshotBuilder(load_config())
        with pytest.raises(ValueError):
            builder.build(Board(4, 4))

    def test_ghost_and_wild_codes(self):
        config = load_config().with_board(4, 4)
        board = Board(4, 4)
        board.new_tile(0, 0)
        board.new_tile(1, 0, value=3, locked=False, special="wild")
        snap = SnapshotBuilder(config).build(board)
        assert snap.cell_kind[0, 0] == CELL_GHOST
        assert snap.wild_mask[0, 1]
        assert snap.empty_count == 14
        assert snap.legal_move_count == 0
