"""
Merge Rules
===========

Pure eligibility and effect rules for dropping one tile onto another.

Precedence when several rules could apply:
    1. wild      - either tile carries the wild tag
    2. stack     - equal values keep the value and deepen the stack
    3. sum       - values add up, as long as the sum stays within the cap

So 3 onto 3 stacks into a 3 of depth +1; it never collapses into a 6.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

from cubecrash.merge_core.tile import Tile

MAX_VALUE = 6
MAX_STACK_DEPTH = 4


class MergeKind(enum.Enum):
    WILD = "wild"
    STACK = "stack"
    SUM = "sum"


@dataclass(frozen=True)
class MergeOutcome:
    """Result tile description of a legal merge. Nothing is mutated."""
    kind: MergeKind
    value: int
    stack_depth: int
    coords: Tuple[int, int]            # Destination cell, where the result lives
    consumed: Tuple[int, int]          # (src uid, dst uid)
    source_coords: Tuple[int, int]
    combo_depth: int                   # Stack carried by the inputs, for crack scoring
    wild_target: Optional[int] = None  # Non-wild value consumed by a wild merge


def _playable(tile: Optional[Tile]) -> bool:
    return tile is not None and not tile.locked and tile.value > 0


def merge_kind(
    src: Optional[Tile],
    dst: Optional[Tile],
    max_value: int = MAX_VALUE
) -> Optional[MergeKind]:
    """Which rule would merge src onto dst, or None if none does."""
    if not _playable(src) or not _playable(dst) or src is dst:
        return None

    if src.is_wild and dst.is_wild:
        return None
    if src.is_wild or dst.is_wild:
        return MergeKind.WILD

    if src.value == dst.value:
        return MergeKind.STACK
    if src.value + dst.value <= max_value:
        return MergeKind.SUM
    return None


def can_merge(
    src: Optional[Tile],
    dst: Optional[Tile],
    max_value: int = MAX_VALUE
) -> bool:
    """
    True if src may be dropped onto dst.

    False when dst is absent, locked or inert, or when both tiles are wild.
    Symmetric for every rule: can_merge(a, b) == can_merge(b, a).
    """
    return merge_kind(src, dst, max_value) is not None


def apply_merge(
    src: Tile,
    dst: Tile,
    wild_target: Optional[int] = None,
    max_value: int = MAX_VALUE,
    max_stack_depth: int = MAX_STACK_DEPTH
) -> MergeOutcome:
    """
    Describe the tile produced by merging src onto dst.

    Args:
        src: Dragged tile.
        dst: Tile it was dropped on; the result occupies this cell.
        wild_target: Value a wild merge produces. None adopts the non-wild
            tile's value.
        max_value: Sum-cap.
        max_stack_depth: Stack depth cap.

    Returns:
        MergeOutcome for the result tile.

    Raises:
        ValueError: If the pair cannot merge.
    """
    kind = merge_kind(src, dst, max_value)
    if kind is None:
        raise ValueError(f"Cannot merge {src!r} onto {dst!r}")

    combo_depth = min(max_stack_depth, src.stack_depth + dst.stack_depth - 1)
    consumed_target = None

    if kind is MergeKind.STACK:
        value = dst.value
        depth = min(max_stack_depth, dst.stack_depth + 1)
    elif kind is MergeKind.SUM:
        value = src.value + dst.value
        depth = 1
    else:
        other = dst if src.is_wild else src
        consumed_target = other.value
        value = wild_target if wild_target is not None else other.value
        value = max(1, min(max_value, value))
        depth = 1

    return MergeOutcome(
        kind=kind,
        value=value,
        stack_depth=depth,
        coords=dst.coords,
        consumed=(src.uid, dst.uid),
        source_coords=src.coords,
        combo_depth=combo_depth,
        wild_target=consumed_target
    )
