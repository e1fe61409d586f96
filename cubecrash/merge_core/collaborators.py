"""
Collaborator Contracts
======================

Interfaces the merge core consumes from its host: the tile factory, the
drag binding, the level-end presenter, and the persistent stats store.
Concrete in-process implementations are provided for headless play and tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Set, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from cubecrash.merge_core.tile import Tile


class TileFactory(Protocol):
    """Owns every visual/representation concern of a tile."""

    def create(self, coords: Tuple[int, int], value: int, locked: bool) -> Any: ...

    def destroy(self, handle: Any) -> None: ...


class DragBinding(Protocol):
    """Registers and releases interactive tiles."""

    def bind_draggable(self, tile: "Tile") -> None: ...

    def unbind_draggable(self, tile: "Tile") -> None: ...


class Presenter(Protocol):
    """Awaitable end-of-level screens."""

    async def celebrate_clean_board(self, *, bonus: int, score: int, board_number: int) -> None: ...

    async def present_mystery_prize(self, *, level: int, score: int) -> Optional[str]: ...

    async def show_rating(
        self,
        *,
        score: int,
        stars: int,
        passed: bool,
        thresholds: Tuple[int, int, int],
        endless: bool
    ) -> "RatingDecision": ...

    def hide_grid(self) -> None: ...

    def show_grid(self) -> None: ...


class StatsStore(Protocol):
    """Increment/update side of the persistent stats collaborator."""

    def update_high_score(self, score: int) -> None: ...

    def update_highest_board(self, board_number: int) -> None: ...

    def add_cubes_cracked(self, count: int) -> None: ...

    def update_longest_combo(self, combo: int) -> None: ...

    def add_helpers_used(self, count: int) -> None: ...

    def add_time_played(self, seconds: float) -> None: ...

    def unlock_collectible(self, collectible_id: str) -> None: ...


@dataclass
class RatingDecision:
    """What the player chose on the stars screen."""
    action: str = "continue"     # 'continue' | 'restart' | 'quit'

    ACTIONS = ("continue", "restart", "quit")

    def __post_init__(self):
        if self.action not in self.ACTIONS:
            raise ValueError(f"Invalid rating action: {self.action!r}")


class RecordingTileFactory:
    """
    Tile factory that keeps no visuals, only a record of what was asked.

    Handles are sequential integers.
    """

    def __init__(self):
        self._next_handle: int = 1
        self.live: Dict[int, Tuple[Tuple[int, int], int, bool]] = {}
        self.created: int = 0
        self.destroyed: int = 0

    def create(self, coords: Tuple[int, int], value: int, locked: bool) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self.live[handle] = (coords, value, locked)
        self.created += 1
        return handle

    def destroy(self, handle: Any) -> None:
        if self.live.pop(handle, None) is not None:
            self.destroyed += 1


class NullDragBinding:
    """Drag binding for headless play; remembers what was bound."""

    def __init__(self):
        self.bound: Set[int] = set()

    def bind_draggable(self, tile: "Tile") -> None:
        self.bound.add(tile.uid)

    def unbind_draggable(self, tile: "Tile") -> None:
        self.bound.discard(tile.uid)


@dataclass
class InMemoryStatsStore:
    """Stats store kept in memory. Durability is the host's concern."""
    high_score: int = 0
    highest_board: int = 0
    cubes_cracked: int = 0
    longest_combo: int = 0
    helpers_used: int = 0
    time_played: float = 0.0
    collectibles: List[str] = field(default_factory=list)

    def update_high_score(self, score: int) -> None:
        self.high_score = max(self.high_score, score)

    def update_highest_board(self, board_number: int) -> None:
        self.highest_board = max(self.highest_board, board_number)

    def add_cubes_cracked(self, count: int) -> None:
        self.cubes_cracked += max(0, count)

    def update_longest_combo(self, combo: int) -> None:
        self.longest_combo = max(self.longest_combo, combo)

    def add_helpers_used(self, count: int) -> None:
        self.helpers_used += max(0, count)

    def add_time_played(self, seconds: float) -> None:
        self.time_played += max(0.0, seconds)

    def unlock_collectible(self, collectible_id: str) -> None:
        if collectible_id not in self.collectibles:
            self.collectibles.append(collectible_id)
