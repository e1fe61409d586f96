"""
Tile Model
==========

Tile, Grid and Board: the entities holding board state.

A cell is empty (None), a locked ghost (locked tile with value <= 0), or an
active tile. The Board owns both the Grid and the flat tile collection and
keeps the two consistent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

WILD = "wild"

Coords = Tuple[int, int]  # (col, row)


@dataclass(eq=False)
class Tile:
    """
    A board cell's occupant.

    Tiles compare by identity; two tiles with the same value are still
    different tiles.
    """
    uid: int
    col: int
    row: int
    value: int = 0
    locked: bool = True
    stack_depth: int = 1
    special: Optional[str] = None
    handle: Any = None           # Opaque handle from the tile factory

    @property
    def coords(self) -> Coords:
        return (self.col, self.row)

    @property
    def is_wild(self) -> bool:
        return self.special == WILD

    @property
    def is_inert(self) -> bool:
        """Value <= 0 means the tile takes no part in play, locked or not."""
        return self.value <= 0

    @property
    def is_ghost(self) -> bool:
        """Locked placeholder for an unopened cell."""
        return self.locked and self.value <= 0

    @property
    def is_active(self) -> bool:
        """Unlocked and holding a positive value."""
        return not self.locked and self.value > 0

    def __repr__(self) -> str:
        if self.is_ghost:
            return f"Tile#{self.uid}(ghost @{self.col},{self.row})"
        tag = " wild" if self.is_wild else ""
        lock = " locked" if self.locked else ""
        return (
            f"Tile#{self.uid}({self.value}x{self.stack_depth}{tag}{lock} "
            f"@{self.col},{self.row})"
        )


class Grid:
    """Rows x cols matrix of tile references."""

    def __init__(self, rows: int, cols: int):
        if rows < 1 or cols < 1:
            raise ValueError(f"Grid must be at least 1x1, got {rows}x{cols}")
        self._rows = rows
        self._cols = cols
        self._cells: List[List[Optional[Tile]]] = [[None] * cols for _ in range(rows)]

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def shape(self) -> Tuple[int, int]:
        return (self._rows, self._cols)

    def __len__(self) -> int:
        return self._rows * self._cols

    def in_bounds(self, col: int, row: int) -> bool:
        return 0 <= col < self._cols and 0 <= row < self._rows

    def _check(self, col: int, row: int) -> None:
        if not self.in_bounds(col, row):
            raise ValueError(f"Cell ({col}, {row}) outside {self._cols}x{self._rows} grid")

    def get(self, col: int, row: int) -> Optional[Tile]:
        self._check(col, row)
        return self._cells[row][col]

    def place(self, tile: Tile) -> None:
        """Put a tile into the cell named by its own coordinates."""
        self._check(tile.col, tile.row)
        self._cells[tile.row][tile.col] = tile

    def clear_cell(self, col: int, row: int) -> Optional[Tile]:
        """Empty a cell, returning its previous occupant."""
        self._check(col, row)
        previous = self._cells[row][col]
        self._cells[row][col] = None
        return previous

    def clear(self) -> None:
        for row in self._cells:
            for col in range(self._cols):
                row[col] = None

    def index_to_coords(self, index: int) -> Coords:
        """Row-major flat index to (col, row)."""
        if not 0 <= index < len(self):
            raise ValueError(f"Cell index {index} outside grid of {len(self)} cells")
        return (index % self._cols, index // self._cols)

    def cells(self) -> Iterator[Tuple[int, int, Optional[Tile]]]:
        """Iterate (col, row, tile) in row-major order."""
        for r, row in enumerate(self._cells):
            for c, tile in enumerate(row):
                yield c, r, tile


class Board:
    """
    Grid plus the flat collection of live tiles.

    Tiles are added and removed only through this class so the cell <-> tile
    link stays bidirectional.
    """

    def __init__(self, rows: int, cols: int):
        self.grid = Grid(rows, cols)
        self._tiles: Dict[int, Tile] = {}
        self._next_uid: int = 1

    @property
    def rows(self) -> int:
        return self.grid.rows

    @property
    def cols(self) -> int:
        return self.grid.cols

    @property
    def tiles(self) -> List[Tile]:
        """All live tiles in creation order."""
        return list(self._tiles.values())

    @property
    def tile_count(self) -> int:
        return len(self._tiles)

    def new_tile(
        self,
        col: int,
        row: int,
        value: int = 0,
        locked: bool = True,
        stack_depth: int = 1,
        special: Optional[str] = None
    ) -> Tile:
        """Create a tile at (col, row) and register it. The cell must be free."""
        if self.grid.get(col, row) is not None:
            raise ValueError(f"Cell ({col}, {row}) is already occupied")
        tile = Tile(
            uid=self._next_uid,
            col=col,
            row=row,
            value=value,
            locked=locked,
            stack_depth=stack_depth,
            special=special
        )
        self._next_uid += 1
        self._tiles[tile.uid] = tile
        self.grid.place(tile)
        return tile

    def remove_tile(self, tile: Tile) -> None:
        """Unregister a tile and free its cell."""
        if self._tiles.pop(tile.uid, None) is None:
            return
        if self.grid.get(tile.col, tile.row) is tile:
            self.grid.clear_cell(tile.col, tile.row)

    def clear(self) -> List[Tile]:
        """Drop every tile; returns the removed tiles."""
        removed = list(self._tiles.values())
        self._tiles.clear()
        self.grid.clear()
        return removed

    def get_tile(self, uid: int) -> Optional[Tile]:
        return self._tiles.get(uid)

    def tile_at(self, col: int, row: int) -> Optional[Tile]:
        return self.grid.get(col, row)

    def active_tiles(self) -> List[Tile]:
        return [t for t in self._tiles.values() if t.is_active]

    def locked_tiles(self) -> List[Tile]:
        return [t for t in self._tiles.values() if t.locked]

    def wild_tiles(self) -> List[Tile]:
        return [t for t in self._tiles.values() if t.is_active and t.is_wild]

    def check_consistency(self) -> None:
        """
        Verify the cell <-> tile link in both directions.

        Raises:
            ValueError: On the first broken link found.
        """
        seen = 0
        for col, row, tile in self.grid.cells():
            if tile is None:
                continue
            seen += 1
            if self._tiles.get(tile.uid) is not tile:
                raise ValueError(f"Cell ({col}, {row}) holds unregistered {tile!r}")
            if tile.coords != (col, row):
                raise ValueError(f"{tile!r} recorded in cell ({col}, {row})")
        if seen != len(self._tiles):
            raise ValueError(
                f"{len(self._tiles)} registered tiles but {seen} occupied cells"
            )
