"""
Stats Recorder
==============

Forwards gameplay facts to the persistent stats collaborator.

Cracks and level ends arrive over the event bus; combo, helper, play-time
and collectible updates are pushed by the game facade and the level flow.
"""

from __future__ import annotations

import logging
from typing import Optional

from cubecrash.merge_core.collaborators import InMemoryStatsStore, StatsStore
from cubecrash.merge_core.events import (
    EventBus,
    EVENT_LEVEL_END,
    EVENT_TILE_CRACKED,
)

logger = logging.getLogger(__name__)


class StatsRecorder:
    """
    Bridge between the event bus and a StatsStore.

    Usage:
        recorder = StatsRecorder(store, bus)
        ...
        recorder.detach()
    """

    def __init__(self, store: Optional[StatsStore] = None, bus: Optional[EventBus] = None):
        self._store = store if store is not None else InMemoryStatsStore()
        self._bus = bus
        self._board_number: int = 1
        if bus is not None:
            bus.subscribe(EVENT_TILE_CRACKED, self._on_cracked)
            bus.subscribe(EVENT_LEVEL_END, self._on_level_end)

    @property
    def store(self) -> StatsStore:
        return self._store

    def set_board_number(self, board_number: int) -> None:
        """Board index reported with the next level end."""
        self._board_number = board_number

    def detach(self) -> None:
        """Stop listening to the bus."""
        if self._bus is None:
            return
        self._bus.unsubscribe(EVENT_TILE_CRACKED, self._on_cracked)
        self._bus.unsubscribe(EVENT_LEVEL_END, self._on_level_end)
        self._bus = None

    def _on_cracked(self, sender, **payload) -> None:
        self._store.add_cubes_cracked(1)

    def _on_level_end(self, sender, **payload) -> None:
        score = int(payload.get("score", 0))
        self._store.update_high_score(score)
        self._store.update_highest_board(self._board_number)
        logger.debug("Stats recorded for board %d: score=%d", self._board_number, score)

    def record_combo(self, combo: int) -> None:
        self._store.update_longest_combo(combo)

    def record_helper(self, count: int = 1) -> None:
        self._store.add_helpers_used(count)

    def record_time(self, seconds: float) -> None:
        self._store.add_time_played(seconds)

    def record_collectible(self, collectible_id: str) -> None:
        logger.info("Collectible unlocked: %s", collectible_id)
        self._store.unlock_collectible(collectible_id)
