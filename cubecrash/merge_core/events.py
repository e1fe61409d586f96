"""
Events
======

Event bus and the event names published by the merge core.

Receivers are called as fn(sender, **payload); the payload of each event
is listed next to its name.
"""

from __future__ import annotations

from typing import Dict

from blinker import Signal


class EventBus:
    """Named events carried by blinker Signal objects."""

    def __init__(self):
        self._signals: Dict[str, Signal] = {}

    def subscribe(self, name: str, fn) -> None:
        sig = self._signals.setdefault(name, Signal(name))
        # Strong reference so lambdas and bound methods of short-lived objects keep receiving.
        sig.connect(fn, weak=False)

    def unsubscribe(self, name: str, fn) -> None:
        sig = self._signals.get(name)
        if sig:
            sig.disconnect(fn)

    def emit(self, name: str, **payload) -> None:
        sig = self._signals.get(name)
        if sig:
            sig.send(self, **payload)


# ============================================================================
# BOARD LIFECYCLE
# ============================================================================
EVENT_BOARD_REBUILT = "board_rebuilt"      # payload: board, reveal=list[Tile]
EVENT_TILES_OPENED = "tiles_opened"        # payload: tiles=list[Tile], reason=str
EVENT_HALF_REVEALED = "half_revealed"      # payload: trigger="count"|"time"


# ============================================================================
# MERGING
# ============================================================================
EVENT_MERGE_COMPLETE = "merge_complete"    # payload: report=MergeReport
EVENT_TILE_CRACKED = "tile_cracked"        # payload: coords=(c,r), depth=int, refill=int
EVENT_DRAG_SNAP_BACK = "drag_snap_back"    # payload: tile=Tile, reason=str
EVENT_WILD_METER = "wild_meter"            # payload: value=float, wild=Tile|None


# ============================================================================
# LEVEL END & FLOW
# ============================================================================
EVENT_LEVEL_END = "level_end"              # payload: reason, score, level, moves
EVENT_INPUT_LOCKED = "input_locked"        # payload: owner=str
EVENT_INPUT_RELEASED = "input_released"    # payload: owner=str
EVENT_LEVEL_STARTED = "level_started"      # payload: level=int, score=int
