"""
Spawn Simulation
================

Draws long runs from the spawn selector and reports the value distribution
and the five-guard statistics per board plan.

Usage:
    python -m tools.simulate_spawns [--boards N] [--spawns S] [--seed X]
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import List

import numpy as np

from cubecrash.merge_core.config_loader import load_config
from cubecrash.merge_core.spawn_selector import SpawnSelector
from cubecrash.merge_core.tile import Tile


def max_run(values: List[int], target: int) -> int:
    """Longest run of `target` in a sequence."""
    best = run = 0
    for v in values:
        run = run + 1 if v == target else 0
        best = max(best, run)
    return best


def max_window_ratio(values: List[int], target: int, window: int) -> float:
    """Highest share of `target` over any full window."""
    hits = (np.asarray(values) == target).astype(np.int32)
    if len(hits) < window:
        return float(hits.mean()) if len(hits) else 0.0
    sums = np.convolve(hits, np.ones(window, dtype=np.int32), mode="valid")
    return float(sums.max()) / window


def simulate_board(selector: SpawnSelector, spawns: int, seed: int) -> dict:
    """
    Spawn into a synthetic board that keeps the last dozen values active.

    Args:
        selector: Selector to drive.
        spawns: Values to draw.
        seed: Seed for the selector reset.

    Returns:
        Dict with the drawn values and the plan.
    """
    plan = selector.reset(seed)
    active: List[Tile] = []
    values = []
    for i in range(spawns):
        value = selector.get_value(active, moves=i)
        values.append(value)
        active.append(Tile(uid=i, col=0, row=0, value=value, locked=False))
        active = active[-12:]
    return {"plan": plan, "values": values}


def run(boards: int, spawns: int, seed: int) -> int:
    config = load_config()
    selector = SpawnSelector(config, seed=seed)
    five = config.tiles.spawn_max_value

    print("=" * 60)
    print("SPAWN SELECTOR SIMULATION")
    print("=" * 60)

    start = time.perf_counter()
    all_values: List[int] = []
    violations = 0
    for b in range(boards):
        result = simulate_board(selector, spawns, seed + b)
        plan, values = result["plan"], result["values"]
        all_values.extend(values)

        run_len = max_run(values, five)
        ratio = max_window_ratio(values, five, plan.five_window_size)
        ok = run_len <= plan.five_consec_cap and ratio <= plan.five_ratio_cap + 1e-9
        violations += 0 if ok else 1
        print(
            f"  board {b:3d}: cap={plan.five_consec_cap} ratio_cap={plan.five_ratio_cap:.2f} "
            f"-> run={run_len} window={ratio:.2f} {'ok' if ok else 'VIOLATION'}"
        )

    elapsed = time.perf_counter() - start
    counts = np.bincount(np.asarray(all_values), minlength=five + 1)[1:]
    shares = counts / max(1, counts.sum())

    print()
    print("Value distribution:")
    for value, share in enumerate(shares, start=1):
        print(f"  {value}: {share:6.1%}")
    print(f"Spawns/sec: {len(all_values) / elapsed:.0f}")
    print(f"Boards violating five caps: {violations}")
    print("=" * 60)
    return 1 if violations else 0


def main():
    parser = argparse.ArgumentParser(description="Simulate spawn value runs")
    parser.add_argument("--boards", type=int, default=20, help="Board plans to simulate")
    parser.add_argument("--spawns", type=int, default=200, help="Spawns per board")
    parser.add_argument("--seed", type=int, default=42, help="Base seed")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    return run(args.boards, args.spawns, args.seed)


if __name__ == "__main__":
    sys.exit(main())
