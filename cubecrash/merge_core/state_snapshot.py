"""
State Snapshot
==============

Packs board state into fixed-size numpy arrays for agents and tooling.
Includes a few derived features (legal move count, value histogram).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import numpy as np

from cubecrash.merge_core.config_loader import GameConfig, get_config
from cubecrash.merge_core.level_end import legal_merges
from cubecrash.merge_core.tile import Board

# Cell codes in the `cell_kind` plane
CELL_EMPTY = 0
CELL_GHOST = 1
CELL_ACTIVE = 2


@dataclass
class BoardSnapshot:
    """
    Board state as (rows, cols) arrays plus scalar counters.

    Arrays are indexed [row, col].
    """
    level: int
    score: int
    moves: int

    values: np.ndarray                # (rows, cols) int8, 0 where not active
    stack_depth: np.ndarray           # (rows, cols) int8, 0 where not active
    cell_kind: np.ndarray             # (rows, cols) int8, CELL_* codes
    wild_mask: np.ndarray             # (rows, cols) bool

    active_count: int
    locked_count: int
    empty_count: int
    legal_move_count: int
    value_histogram: np.ndarray       # (max_value + 1,) int32, index = value

    @property
    def locked_mask(self) -> np.ndarray:
        return self.cell_kind == CELL_GHOST

    @property
    def active_mask(self) -> np.ndarray:
        return self.cell_kind == CELL_ACTIVE

    def to_obs_dict(self) -> Dict[str, np.ndarray]:
        """Flat dict of arrays, one entry per field."""
        return {
            "level": np.array(self.level, dtype=np.int32),
            "score": np.array(self.score, dtype=np.int64),
            "moves": np.array(self.moves, dtype=np.int32),
            "values": self.values,
            "stack_depth": self.stack_depth,
            "cell_kind": self.cell_kind,
            "wild_mask": self.wild_mask,
            "active_count": np.array(self.active_count, dtype=np.int32),
            "locked_count": np.array(self.locked_count, dtype=np.int32),
            "empty_count": np.array(self.empty_count, dtype=np.int32),
            "legal_move_count": np.array(self.legal_move_count, dtype=np.int32),
            "value_histogram": self.value_histogram,
        }


class SnapshotBuilder:
    """Builds board snapshots for one board size."""

    def __init__(self, config: Optional[GameConfig] = None):
        if config is None:
            config = get_config()

        self._config = config
        self._shape = (config.board.rows, config.board.cols)
        self._max_value = config.tiles.max_value

    def build(self, board: Board, level: int = 1, score: int = 0, moves: int = 0) -> BoardSnapshot:
        """Build a snapshot of the board's current state. Arrays are fresh copies."""
        if (board.rows, board.cols) != self._shape:
            raise ValueError(
                f"Board is {board.rows}x{board.cols}, builder expects {self._shape[0]}x{self._shape[1]}"
            )

        values = np.zeros(self._shape, dtype=np.int8)
        depth = np.zeros(self._shape, dtype=np.int8)
        kind = np.full(self._shape, CELL_EMPTY, dtype=np.int8)
        wild = np.zeros(self._shape, dtype=bool)

        for col, row, tile in board.grid.cells():
            if tile is None:
                continue
            if tile.is_active:
                kind[row, col] = CELL_ACTIVE
                values[row, col] = tile.value
                depth[row, col] = tile.stack_depth
                wild[row, col] = tile.is_wild
            elif tile.locked:
                kind[row, col] = CELL_GHOST

        active_values = values[kind == CELL_ACTIVE]
        histogram = np.bincount(
            np.clip(active_values, 0, self._max_value).astype(np.int64),
            minlength=self._max_value + 1
        ).astype(np.int32)

        return BoardSnapshot(
            level=level,
            score=score,
            moves=moves,
            values=values,
            stack_depth=depth,
            cell_kind=kind,
            wild_mask=wild,
            active_count=int(np.count_nonzero(kind == CELL_ACTIVE)),
            locked_count=int(np.count_nonzero(kind == CELL_GHOST)),
            empty_count=int(np.count_nonzero(kind == CELL_EMPTY)),
            legal_move_count=len(legal_merges(board.tiles, self._max_value)),
            value_histogram=histogram
        )
