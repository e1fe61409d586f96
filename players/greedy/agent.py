"""
Greedy Player - Always takes the merge with the biggest immediate payoff.

Reads the numpy board observation, lists every legal (src, dst) pair, and
prefers, in order:
1. merges that crack a cube (result reaches the max value)
2. deeper stacks
3. larger sums

Returns None when no merge exists, which lets the harness use a helper.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
import numpy as np

Move = Tuple[Tuple[int, int], Tuple[int, int]]

CELL_ACTIVE = 2
MAX_VALUE = 6


def legal_moves(obs: Dict[str, Any], max_value: int = MAX_VALUE) -> List[Tuple[Move, float]]:
    """Every legal move with its greedy rating."""
    values = obs["values"]
    depth = obs["stack_depth"]
    wild = obs["wild_mask"]
    rows, cols = np.nonzero(obs["cell_kind"] == CELL_ACTIVE)
    cells = list(zip(cols.tolist(), rows.tolist()))

    moves = []
    for src in cells:
        for dst in cells:
            if src == dst:
                continue
            a, b = int(values[src[1], src[0]]), int(values[dst[1], dst[0]])
            wa, wb = bool(wild[src[1], src[0]]), bool(wild[dst[1], dst[0]])
            if wa and wb:
                continue
            if wa or wb:
                rating = 100.0
            elif a == b:
                rating = 10.0 * min(4, int(depth[dst[1], dst[0]]) + 1) + a
            elif a + b <= max_value:
                rating = 50.0 + a + b if a + b == max_value else float(a + b)
            else:
                continue
            moves.append(((src, dst), rating))
    return moves


class CubeAgent:
    """Greedy merge picker with random tie-breaking."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = np.random.default_rng(seed)

    def reset(self, seed: Optional[int] = None) -> None:
        if seed is not None:
            self._rng = np.random.default_rng(seed)

    def act(self, obs: Dict[str, Any]) -> Optional[Move]:
        moves = legal_moves(obs)
        if not moves:
            return None
        ratings = np.array([r for _, r in moves])
        best = np.flatnonzero(ratings == ratings.max())
        return moves[int(self._rng.choice(best))][0]


def create_agent(**kwargs) -> CubeAgent:
    """Factory function to create an agent instance."""
    return CubeAgent(**kwargs)
