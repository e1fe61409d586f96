"""
Drag Interaction
================

Turns pointer-level drag input into merge attempts.

A drop is accepted only when the dragged tile overlaps the target by at
least drop_overlap_threshold and the merge is legal; anything else snaps
the tile back to its cell.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Set, TYPE_CHECKING

from cubecrash.merge_core.config_loader import GameConfig, get_config
from cubecrash.merge_core.events import EventBus, EVENT_DRAG_SNAP_BACK
from cubecrash.merge_core.level_flow import InputLock
from cubecrash.merge_core.merge_rules import can_merge
from cubecrash.merge_core.tile import Tile

if TYPE_CHECKING:
    from cubecrash.merge_core.board_controller import MergeReport

logger = logging.getLogger(__name__)

MergeCallback = Callable[[Tile, Tile], Optional["MergeReport"]]


@dataclass
class DragSession:
    """The single drag in progress."""
    tile: Tile
    target: Optional[Tile] = None
    overlap: float = 0.0
    can_drop: bool = False


class DragController:
    """
    Drag binding plus the drag session state machine.

    Only one session exists at a time; a second begin_drag is rejected.
    """

    def __init__(
        self,
        on_merge: MergeCallback,
        config: Optional[GameConfig] = None,
        input_lock: Optional[InputLock] = None,
        bus: Optional[EventBus] = None
    ):
        if config is None:
            config = get_config()

        self._on_merge = on_merge
        self._config = config
        self._threshold = config.interaction.drop_overlap_threshold
        self._max_value = config.tiles.max_value
        self._input_lock = input_lock
        self._bus = bus
        self._bound: Set[int] = set()
        self._session: Optional[DragSession] = None

    @property
    def session(self) -> Optional[DragSession]:
        return self._session

    @property
    def dragging(self) -> bool:
        return self._session is not None

    def bind_draggable(self, tile: Tile) -> None:
        self._bound.add(tile.uid)

    def unbind_draggable(self, tile: Tile) -> None:
        self._bound.discard(tile.uid)

    def is_draggable(self, tile: Optional[Tile]) -> bool:
        return tile is not None and tile.uid in self._bound and tile.is_active

    def begin_drag(self, tile: Tile) -> bool:
        """
        Start dragging a tile.

        Returns:
            False if another drag is running, input is locked, or the tile
            is not an active bound tile.
        """
        if self._session is not None:
            logger.warning("Drag of %r rejected: %r is already being dragged", tile, self._session.tile)
            return False
        if self._input_lock is not None and self._input_lock.locked:
            logger.debug("Drag of %r rejected: input locked by %s", tile, self._input_lock.owner)
            return False
        if not self.is_draggable(tile):
            logger.debug("Drag of %r rejected: not draggable", tile)
            return False
        self._session = DragSession(tile=tile)
        return True

    def update_overlap(self, target: Optional[Tile], overlap_ratio: float) -> bool:
        """
        Report what the dragged tile currently covers.

        Args:
            target: Tile under the dragged tile, or None.
            overlap_ratio: Covered fraction of the target, 0..1.

        Returns:
            The resulting can_drop flag.
        """
        session = self._session
        if session is None:
            return False
        session.target = target
        session.overlap = max(0.0, min(1.0, overlap_ratio))
        session.can_drop = (
            target is not None
            and target is not session.tile
            and session.overlap >= self._threshold
            and can_merge(session.tile, target, self._max_value)
        )
        return session.can_drop

    def release(self, target: Optional[Tile] = None) -> Optional["MergeReport"]:
        """
        End the drag.

        Args:
            target: Tile the pointer was released over. Counts as full
                overlap. None keeps the last update_overlap result.

        Returns:
            The merge report, or None if the tile snapped back.
        """
        if self._session is None:
            return None
        if target is not None:
            self.update_overlap(target, 1.0)

        session = self._session
        self._session = None

        if not session.can_drop or session.target is None:
            self._snap_back(session.tile, "no_target" if session.target is None else "rejected")
            return None

        report = self._on_merge(session.tile, session.target)
        if report is None:
            self._snap_back(session.tile, "invalid")
        return report

    def cancel(self) -> None:
        """Abort the drag, snapping the tile back."""
        if self._session is None:
            return
        tile = self._session.tile
        self._session = None
        self._snap_back(tile, "cancelled")

    def _snap_back(self, tile: Tile, reason: str) -> None:
        logger.debug("Snap back %r (%s)", tile, reason)
        if self._bus is not None:
            self._bus.emit(EVENT_DRAG_SNAP_BACK, tile=tile, reason=reason)
