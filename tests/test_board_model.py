"""
Tests for the Tile / Grid / Board data model.
"""

import pytest

from cubecrash.merge_core.tile import WILD, Board, Grid, Tile


@pytest.fixture
def board():
    return Board(rows=4, cols=5)


class TestTile:
    """Tile classification."""

    def test_ghost(self):
        tile = Tile(uid=1, col=0, row=0)
        assert tile.is_ghost
        assert not tile.is_active

    def test_active(self):
        tile = Tile(uid=1, col=2, row=3, value=4, locked=False)
        assert tile.is_active
        assert tile.coords == (2, 3)

    def test_unlocked_zero_is_inert(self):
        tile = Tile(uid=1, col=0, row=0, value=0, locked=False)
        assert tile.is_inert
        assert not tile.is_active
        assert not tile.is_ghost

    def test_wild_tag(self):
        assert Tile(uid=1, col=0, row=0, value=2, locked=False, special=WILD).is_wild

    def test_identity_equality(self):
        a = Tile(uid=1, col=0, row=0, value=3, locked=False)
        b = Tile(uid=1, col=0, row=0, value=3, locked=False)
        assert a != b


class TestGrid:
    """Grid addressing."""

    def test_shape(self):
        grid = Grid(4, 5)
        assert grid.shape == (4, 5)
        assert len(grid) == 20

    def test_index_to_coords_row_major(self):
        grid = Grid(4, 5)
        assert grid.index_to_coords(0) == (0, 0)
        assert grid.index_to_coords(7) == (2, 1)
        assert grid.index_to_coords(19) == (4, 3)

    def test_out_of_bounds(self):
        grid = Grid(2, 2)
        with pytest.raises(ValueError):
            grid.get(2, 0)
        with pytest.raises(ValueError):
            grid.index_to_coords(4)

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            Grid(0, 3)


class TestBoard:
    """Board keeps grid and tile collection in sync."""

    def test_new_tile_registers_and_places(self, board):
        tile = board.new_tile(1, 2, value=3, locked=False)
        assert board.tile_at(1, 2) is tile
        assert board.get_tile(tile.uid) is tile
        assert board.tile_count == 1

    def test_uids_increase(self, board):
        a = board.new_tile(0, 0)
        b = board.new_tile(1, 0)
        assert b.uid > a.uid

    def test_occupied_cell_rejected(self, board):
        board.new_tile(0, 0)
        with pytest.raises(ValueError):
            board.new_tile(0, 0)

    def test_remove_frees_cell(self, board):
        tile = board.new_tile(3, 1, value=2, locked=False)
        board.remove_tile(tile)
        assert board.tile_at(3, 1) is None
        assert board.tile_count == 0

    def test_filters(self, board):
        board.new_tile(0, 0)
        board.new_tile(1, 0, value=2, locked=False)
        board.new_tile(2, 0, value=5, locked=False, special=WILD)
        assert len(board.locked_tiles()) == 1
        assert len(board.active_tiles()) == 2
        assert len(board.wild_tiles()) == 1

    def test_clear_returns_removed(self, board):
        board.new_tile(0, 0)
        board.new_tile(1, 1, value=1, locked=False)
        removed = board.clear()
        assert len(removed) == 2
        assert board.tile_count == 0
        assert all(t is None for _, _, t in board.grid.cells())

    def test_consistency_ok(self, board):
        for c in range(5):
            board.new_tile(c, 0, value=c, locked=c == 0)
        board.check_consistency()

    def test_consistency_detects_stray_cell(self, board):
        board.new_tile(0, 0, value=1, locked=False)
        board.grid.clear_cell(0, 0)
        with pytest.raises(ValueError):
            board.check_consistency()

    def test_consistency_detects_moved_tile(self, board):
        tile = board.new_tile(0, 0, value=1, locked=False)
        tile.col = 3
        with pytest.raises(ValueError):
            board.check_consistency()
