"""
Level-End Detection
===================

Decides after every board mutation whether the board is still in play,
clean (nothing left to merge) or stuck (no legal merge left).
"""

from __future__ import annotations

import enum
import itertools
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from cubecrash.merge_core.events import EventBus, EVENT_LEVEL_END
from cubecrash.merge_core.merge_rules import MAX_VALUE, can_merge
from cubecrash.merge_core.tile import Board, Tile

logger = logging.getLogger(__name__)


class LevelEndState(enum.Enum):
    PLAYING = "playing"
    CLEAN = "clean"
    STUCK = "stuck"


REASONS = {
    LevelEndState.CLEAN: "board_clean",
    LevelEndState.STUCK: "no_moves",
}


@dataclass
class LevelState:
    """Progress of the current level, owned by the game facade."""
    level: int = 1
    score: int = 0
    moves: int = 0
    board_number: int = 1
    endless: bool = False

    @property
    def mode(self) -> str:
        return "endless" if self.endless else "normal"


def legal_merges(tiles: Iterable[Tile], max_value: int = MAX_VALUE) -> List[Tuple[Tile, Tile]]:
    """Every ordered (src, dst) pair that can merge, in board order."""
    active = [t for t in tiles if t.is_active]
    return [
        (a, b) for a, b in itertools.permutations(active, 2)
        if can_merge(a, b, max_value)
    ]


def any_merge_possible(tiles: Iterable[Tile], max_value: int = MAX_VALUE) -> bool:
    """
    True if some pair of active tiles can merge.

    A wild tile next to any non-wild active tile always counts as a move.
    """
    active = [t for t in tiles if t.is_active]
    if len(active) < 2:
        return False
    if any(t.is_wild for t in active) and any(not t.is_wild for t in active):
        return True
    for a, b in itertools.combinations(active, 2):
        if can_merge(a, b, max_value) or can_merge(b, a, max_value):
            return True
    return False


def classify(board: Board, max_value: int = MAX_VALUE) -> LevelEndState:
    """Board state without any side effects."""
    tiles = board.tiles
    if all(t.locked or t.value <= 0 for t in tiles):
        return LevelEndState.CLEAN
    if not any_merge_possible(tiles, max_value):
        return LevelEndState.STUCK
    return LevelEndState.PLAYING


class LevelEndDetector:
    """
    Fires EVENT_LEVEL_END once per board.

    The guard is cleared only by reset(), which the game calls on rebuild.
    """

    def __init__(self, bus: Optional[EventBus] = None, max_value: int = MAX_VALUE):
        self._bus = bus
        self._max_value = max_value
        self._state = LevelEndState.PLAYING
        self._fired: bool = False

    @property
    def state(self) -> LevelEndState:
        return self._state

    @property
    def fired(self) -> bool:
        return self._fired

    def reset(self) -> None:
        self._state = LevelEndState.PLAYING
        self._fired = False

    def classify(self, board: Board) -> LevelEndState:
        return classify(board, self._max_value)

    def evaluate(self, board: Board, level_state: Optional[LevelState] = None) -> LevelEndState:
        """
        Classify the board and fire the level end if it just became terminal.

        Once fired the state is frozen until reset().

        Args:
            board: Board after the latest mutation.
            level_state: Level progress reported in the event payload.

        Returns:
            The current state.
        """
        if self._fired:
            return self._state
        state = classify(board, self._max_value)
        self._state = state
        if state is LevelEndState.PLAYING:
            return state

        self._fired = True
        if level_state is None:
            level_state = LevelState()
        reason = REASONS[state]
        logger.info(
            "Level %d ended: %s (score=%d, moves=%d)",
            level_state.level, reason, level_state.score, level_state.moves
        )
        if self._bus is not None:
            self._bus.emit(
                EVENT_LEVEL_END,
                reason=reason,
                score=level_state.score,
                level=level_state.level,
                moves=level_state.moves
            )
        return state
