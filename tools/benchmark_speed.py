"""
Performance Benchmark
=====================

Measures move, snapshot and rebuild throughput of the merge core.

Usage:
    python -m tools.benchmark_speed [--moves N] [--quick]
"""

from __future__ import annotations

import argparse
import sys
import time
import numpy as np

from cubecrash.merge_core.config_loader import load_config
from cubecrash.merge_core.game import CoreGame


def _random_move(game: CoreGame, rng: np.random.Generator):
    pairs = game.legal_merges()
    if not pairs:
        return None
    return pairs[int(rng.integers(len(pairs)))]


def benchmark_moves(num_moves: int = 1000, seed: int = 42) -> dict:
    """
    Play random legal moves, restarting whenever a board ends.

    Args:
        num_moves: Number of merges to play.
        seed: Random seed.

    Returns:
        Dict with timing results.
    """
    game = CoreGame(config=load_config(), seed=seed)
    rng = np.random.default_rng(seed)
    game.reset(seed=seed)

    boards = 1
    start = time.perf_counter()
    played = 0
    while played < num_moves:
        move = None if game.is_over else _random_move(game, rng)
        if move is None:
            game.reset(seed=int(rng.integers(1 << 31)))
            boards += 1
            continue
        game.attempt_merge(*move)
        played += 1

    elapsed = time.perf_counter() - start
    return {
        "mode": "moves",
        "count": num_moves,
        "boards": boards,
        "elapsed_seconds": elapsed,
        "per_second": num_moves / elapsed,
        "ms_each": (elapsed * 1000) / num_moves
    }


def benchmark_snapshots(count: int = 1000, seed: int = 42) -> dict:
    """Build board snapshots of a freshly dealt board."""
    game = CoreGame(config=load_config(), seed=seed)
    game.reset(seed=seed)

    start = time.perf_counter()
    for _ in range(count):
        game.snapshot().to_obs_dict()
    elapsed = time.perf_counter() - start

    return {
        "mode": "snapshot",
        "count": count,
        "elapsed_seconds": elapsed,
        "per_second": count / elapsed,
        "ms_each": (elapsed * 1000) / count
    }


def benchmark_rebuilds(count: int = 200, seed: int = 42) -> dict:
    """Deal new boards back to back."""
    game = CoreGame(config=load_config(), seed=seed)

    start = time.perf_counter()
    for i in range(count):
        game.reset(seed=seed + i)
    elapsed = time.perf_counter() - start

    return {
        "mode": "rebuild",
        "count": count,
        "elapsed_seconds": elapsed,
        "per_second": count / elapsed,
        "ms_each": (elapsed * 1000) / count
    }


def run_all_benchmarks(moves: int = 1000) -> list:
    """Run every benchmark and print a summary table."""
    print("=" * 60)
    print("CUBECRASH MERGE CORE BENCHMARK")
    print("=" * 60)
    print()

    results = [
        benchmark_moves(num_moves=moves),
        benchmark_snapshots(count=moves),
        benchmark_rebuilds(count=max(10, moves // 5)),
    ]

    print(f"{'Mode':<12} {'Count':>8} {'Per sec':>12} {'ms each':>10}")
    print("-" * 46)
    for r in results:
        print(f"{r['mode']:<12} {r['count']:>8} {r['per_second']:>12.1f} {r['ms_each']:>10.3f}")

    return results


def main():
    parser = argparse.ArgumentParser(description="Benchmark the CubeCrash merge core")
    parser.add_argument("--moves", type=int, default=1000, help="Merges per benchmark")
    parser.add_argument("--quick", action="store_true", help="Quick benchmark (fewer moves)")

    args = parser.parse_args()
    run_all_benchmarks(moves=100 if args.quick else args.moves)
    return 0


if __name__ == "__main__":
    sys.exit(main())
