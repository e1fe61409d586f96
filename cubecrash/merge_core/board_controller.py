"""
Board Controller
================

Owns board mutation: dealing a fresh board, opening locked cells, and
resolving legal merges including the crack at the max value.

Every mutating call runs under one re-entrant lock and leaves the board
consistent on return. Visual deal-in is tracked separately by RevealTracker.
"""

from __future__ import annotations

import functools
import logging
import math
import random
import threading
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from cubecrash.merge_core.collaborators import (
    DragBinding,
    NullDragBinding,
    RecordingTileFactory,
    TileFactory,
)
from cubecrash.merge_core.config_loader import GameConfig, get_config
from cubecrash.merge_core.events import (
    EventBus,
    EVENT_BOARD_REBUILT,
    EVENT_HALF_REVEALED,
    EVENT_MERGE_COMPLETE,
    EVENT_TILE_CRACKED,
    EVENT_TILES_OPENED,
    EVENT_WILD_METER,
)
from cubecrash.merge_core.merge_rules import MergeKind, MergeOutcome, apply_merge, merge_kind
from cubecrash.merge_core.spawn_selector import SpawnSelector
from cubecrash.merge_core.tile import WILD, Board, Coords, Tile

logger = logging.getLogger(__name__)


@dataclass
class MergeReport:
    """What a resolved merge did to the board."""
    outcome: MergeOutcome
    result: Optional[Tile]               # None when the merge cracked
    cracked: bool = False
    opened: List[Tile] = field(default_factory=list)
    wild: Optional[Tile] = None          # Wild tile granted on the first crack
    meter_wild: Optional[Tile] = None    # Wild tile opened by a full wild meter

    @property
    def kind(self) -> MergeKind:
        return self.outcome.kind

    @property
    def value(self) -> int:
        return self.outcome.value


class RevealTracker:
    """
    Half-revealed signals for the deal-in of a board.

    Two independent triggers, each firing EVENT_HALF_REVEALED at most once:
    by count, when half of the dealt tiles (rounded up) report revealed, and
    by time, when half of the expected reveal duration has elapsed.
    """

    def __init__(self, total: int, expected_duration: float, bus: Optional[EventBus] = None):
        self._total = max(0, total)
        self._needed = math.ceil(self._total / 2)
        self._half_time = max(0.0, expected_duration) / 2
        self._bus = bus
        self._revealed: int = 0
        self._elapsed: float = 0.0
        self.fired_by_count: bool = False
        self.fired_by_time: bool = False

    @property
    def revealed(self) -> int:
        return self._revealed

    @property
    def elapsed(self) -> float:
        return self._elapsed

    def _fire(self, trigger: str) -> None:
        logger.debug("Half revealed by %s", trigger)
        if self._bus is not None:
            self._bus.emit(EVENT_HALF_REVEALED, trigger=trigger)

    def tile_revealed(self, count: int = 1) -> bool:
        """Report revealed tiles. Returns True if this call fired the count signal."""
        self._revealed = min(self._total, self._revealed + max(0, count))
        if not self.fired_by_count and self._revealed >= self._needed:
            self.fired_by_count = True
            self._fire("count")
            return True
        return False

    def advance(self, seconds: float) -> bool:
        """Advance the reveal clock. Returns True if this call fired the time signal."""
        self._elapsed += max(0.0, seconds)
        if not self.fired_by_time and self._elapsed >= self._half_time:
            self.fired_by_time = True
            self._fire("time")
            return True
        return False


def _serialized(method):
    """Run a controller method under the controller's lock."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class BoardController:
    """
    Mutates one Board through the tile factory and drag binding.

    Usage:
        controller = BoardController(config, seed=7)
        controller.rebuild_board()
        report = controller.merge(src, dst)
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        seed: Optional[int] = None,
        tile_factory: Optional[TileFactory] = None,
        drag_binding: Optional[DragBinding] = None,
        bus: Optional[EventBus] = None,
        selector: Optional[SpawnSelector] = None
    ):
        """
        Initialize board controller.

        Args:
            config: Game configuration. Uses default if None.
            seed: Seed for the board rng (shuffles and spawn plans).
            tile_factory: Creates/destroys tile handles. Recording factory if None.
            drag_binding: Makes opened tiles interactive. No-op binding if None.
            bus: Event bus for board events. Private bus if None.
            selector: Spawn value selector. Built from config if None.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._rng = random.Random(seed)
        self._factory = tile_factory if tile_factory is not None else RecordingTileFactory()
        self._drag = drag_binding if drag_binding is not None else NullDragBinding()
        self._bus = bus if bus is not None else EventBus()
        self._selector = selector if selector is not None else SpawnSelector(config)
        self._board = Board(config.board.rows, config.board.cols)
        self._lock = threading.RLock()

        self._wild_granted: bool = False
        self._cracks: int = 0
        self._wild_meter: float = 0.0
        self._reveal: Optional[RevealTracker] = None

    @property
    def board(self) -> Board:
        return self._board

    @property
    def config(self) -> GameConfig:
        return self._config

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def selector(self) -> SpawnSelector:
        return self._selector

    @property
    def reveal(self) -> Optional[RevealTracker]:
        """Reveal tracker of the last rebuild."""
        return self._reveal

    @property
    def cracks(self) -> int:
        """Cracks on the current board."""
        return self._cracks

    @property
    def wild_meter(self) -> float:
        """Wild meter charge, 0..1."""
        return self._wild_meter

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def set_drag_binding(self, binding: DragBinding) -> None:
        self._drag = binding

    # ------------------------------------------------------------------
    # Tile lifecycle
    # ------------------------------------------------------------------

    def _create(
        self,
        col: int,
        row: int,
        value: int,
        locked: bool,
        stack_depth: int = 1,
        special: Optional[str] = None
    ) -> Tile:
        tile = self._board.new_tile(col, row, value, locked, stack_depth, special)
        tile.handle = self._factory.create(tile.coords, value, locked)
        if not locked:
            self._drag.bind_draggable(tile)
        return tile

    def _destroy(self, tile: Tile) -> None:
        self._board.remove_tile(tile)
        if not tile.locked:
            self._drag.unbind_draggable(tile)
        if tile.handle is not None:
            self._factory.destroy(tile.handle)
            tile.handle = None

    def _open(self, ghost: Tile, value: int, special: Optional[str] = None) -> Tile:
        """Replace a ghost by an active tile in the same cell."""
        col, row = ghost.coords
        self._destroy(ghost)
        return self._create(col, row, value, locked=False, special=special)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @_serialized
    def rebuild_board(self, seed: Optional[int] = None) -> Board:
        """
        Deal a fresh board.

        Every cell becomes a locked ghost, then a shuffled open_count of them
        are opened with spawn values.

        Args:
            seed: Reseed the board rng first. Keeps the current stream if None.

        Returns:
            The rebuilt board.
        """
        if seed is not None:
            self._rng = random.Random(seed)

        for tile in self._board.clear():
            if not tile.locked:
                self._drag.unbind_draggable(tile)
            if tile.handle is not None:
                self._factory.destroy(tile.handle)
                tile.handle = None

        self._selector.reset(self._rng.getrandbits(32))
        self._wild_granted = False
        self._cracks = 0
        self._wild_meter = 0.0

        grid = self._board.grid
        for index in range(len(grid)):
            col, row = grid.index_to_coords(index)
            self._create(col, row, 0, locked=True)

        open_count = min(len(grid), self._config.board.open_count)
        order = list(range(len(grid)))
        self._rng.shuffle(order)
        for index in order[:open_count]:
            ghost = self._board.tile_at(*grid.index_to_coords(index))
            value = self._selector.get_value(self._board.active_tiles())
            self._open(ghost, value)

        self._reveal = RevealTracker(
            self._board.tile_count,
            self._config.reveal.expected_duration,
            self._bus
        )
        logger.info(
            "Board rebuilt: %dx%d, %d open",
            grid.cols, grid.rows, len(self._board.active_tiles())
        )
        self._bus.emit(EVENT_BOARD_REBUILT, board=self._board, reveal=self._board.tiles)
        return self._board

    @_serialized
    def open_locked_tiles(
        self,
        k: int,
        exclude: Optional[Iterable[int]] = None,
        moves: int = 0,
        score: int = 0,
        reason: str = "helper"
    ) -> List[Tile]:
        """
        Open up to k random locked cells.

        Args:
            k: Number of cells to open.
            exclude: Spawn values the opened tiles must not take.
            moves: Moves so far, for the spawn phase.
            score: Current score.
            reason: Tag carried by EVENT_TILES_OPENED.

        Returns:
            The opened tiles; empty when k <= 0 or nothing is locked.
        """
        if k <= 0:
            return []
        ghosts = self._board.locked_tiles()
        if not ghosts:
            return []

        excluded = list(exclude) if exclude else []
        self._rng.shuffle(ghosts)
        opened = []
        for ghost in ghosts[:k]:
            active = self._board.active_tiles()
            if excluded:
                value = self._selector.get_value_excluding(excluded, active, moves, score)
            else:
                value = self._selector.get_value(active, moves, score)
            opened.append(self._open(ghost, value))

        logger.debug("Opened %d locked tiles (%s): %s", len(opened), reason, opened)
        self._bus.emit(EVENT_TILES_OPENED, tiles=opened, reason=reason)
        return opened

    @_serialized
    def open_at_cell(
        self,
        col: int,
        row: int,
        value: Optional[int] = None,
        wild: bool = False,
        moves: int = 0,
        score: int = 0
    ) -> Optional[Tile]:
        """
        Open one specific cell.

        Returns None if the cell already holds an active tile.

        Raises:
            ValueError: If (col, row) is outside the grid.
        """
        current = self._board.tile_at(col, row)
        if current is not None and not current.locked:
            return None
        if value is None:
            value = self._selector.get_value(self._board.active_tiles(), moves, score)
        special = WILD if wild else None
        if current is None:
            tile = self._create(col, row, value, locked=False, special=special)
        else:
            tile = self._open(current, value, special)
        self._bus.emit(EVENT_TILES_OPENED, tiles=[tile], reason="wild" if wild else "cell")
        return tile

    def is_board_clean(self) -> bool:
        """True when every tile is locked or inert."""
        with self._lock:
            return all(t.locked or t.value <= 0 for t in self._board.tiles)

    @_serialized
    def merge(self, src: Tile, dst: Tile, moves: int = 0, score: int = 0) -> Optional[MergeReport]:
        """
        Resolve dropping src onto dst.

        The source cell is left empty and the result takes the destination
        cell. A result at the max value cracks instead: the cell turns back
        into a ghost and locked tiles are refilled by combo depth.
        Small merges charge the wild meter; a crack empties it.

        Args:
            src: Dragged tile.
            dst: Target tile.
            moves: Moves so far, for refill spawns.
            score: Current score.

        Returns:
            MergeReport, or None if the merge is not legal (board untouched).
        """
        max_value = self._config.tiles.max_value
        if (
            self._board.get_tile(src.uid) is not src
            or self._board.get_tile(dst.uid) is not dst
            or merge_kind(src, dst, max_value) is None
        ):
            logger.debug("Invalid merge attempt %r -> %r", src, dst)
            return None

        merge_cfg = self._config.merge
        outcome = apply_merge(
            src,
            dst,
            wild_target=merge_cfg.wild_target_value,
            max_value=max_value,
            max_stack_depth=self._config.tiles.max_stack_depth
        )
        self._destroy(src)
        self._destroy(dst)
        col, row = outcome.coords

        if not (merge_cfg.crack_at_max_value and outcome.value >= max_value):
            result = self._create(col, row, outcome.value, locked=False, stack_depth=outcome.stack_depth)
            report = MergeReport(outcome=outcome, result=result)
            logger.debug("Merge %s -> %r", outcome.kind.value, result)
            report.meter_wild = self._charge_wild_meter(moves, score)
            self._bus.emit(EVENT_MERGE_COMPLETE, report=report)
            return report

        report = self._crack(outcome, moves, score)
        if self._wild_meter > 0:
            self._wild_meter = 0.0
            self._bus.emit(EVENT_WILD_METER, value=0.0, wild=None)
        self._bus.emit(EVENT_MERGE_COMPLETE, report=report)
        return report

    def _empty_cells(self) -> List[Coords]:
        """Cells with no tile or a locked ghost."""
        grid = self._board.grid
        cells = []
        for index in range(len(grid)):
            col, row = grid.index_to_coords(index)
            tile = self._board.tile_at(col, row)
            if tile is None or tile.locked:
                cells.append((col, row))
        return cells

    def _charge_wild_meter(self, moves: int, score: int) -> Optional[Tile]:
        """
        Add one small-merge charge to the wild meter.

        A full meter is spent on a wild tile opened in a random empty cell.
        With no empty cell the meter waits at full.
        """
        increment = self._config.merge.wild_meter_increment
        if increment <= 0:
            return None
        self._wild_meter = min(1.0, self._wild_meter + increment)

        wild = None
        if self._wild_meter >= 1.0:
            cells = self._empty_cells()
            if cells:
                col, row = self._rng.choice(cells)
                self._wild_meter = max(0.0, self._wild_meter - 1.0)
                wild = self.open_at_cell(col, row, wild=True, moves=moves, score=score)
                logger.debug("Wild meter full: wild opened at (%d, %d)", col, row)
            else:
                self._wild_meter = 1.0
        self._bus.emit(EVENT_WILD_METER, value=self._wild_meter, wild=wild)
        return wild

    def _crack(self, outcome: MergeOutcome, moves: int, score: int) -> MergeReport:
        merge_cfg = self._config.merge
        col, row = outcome.coords
        ghost = self._create(col, row, 0, locked=True)
        self._cracks += 1

        refill = merge_cfg.refill_for_depth(outcome.combo_depth)
        exclude = None
        if outcome.kind is MergeKind.WILD and outcome.wild_target is not None:
            exclude = [outcome.wild_target]

        wild = None
        if merge_cfg.guarantee_wild_on_first_crack and not self._wild_granted:
            value = self._selector.get_value(self._board.active_tiles(), moves, score)
            wild = self._open(ghost, value, special=WILD)
            self._wild_granted = True
            refill = max(0, refill - 1)

        opened = self.open_locked_tiles(refill, exclude=exclude, moves=moves, score=score, reason="crack")
        logger.debug(
            "Crack at (%d, %d), depth %d: %d opened%s",
            col, row, outcome.combo_depth, len(opened), " + wild" if wild else ""
        )
        self._bus.emit(
            EVENT_TILE_CRACKED,
            coords=(col, row),
            depth=outcome.combo_depth,
            refill=len(opened) + (1 if wild is not None else 0)
        )
        return MergeReport(outcome=outcome, result=None, cracked=True, opened=opened, wild=wild)
