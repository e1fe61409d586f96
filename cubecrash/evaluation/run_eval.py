"""
Evaluation Harness
==================

Auto-plays one board per seed of the fixed seed bank and summarizes scores.

Usage:
    python -m cubecrash.evaluation.run_eval --agent players/greedy
"""

from __future__ import annotations

import argparse
import importlib.util
import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
import numpy as np

from cubecrash.merge_core.config_loader import GameConfig, load_config
from cubecrash.merge_core.game import CoreGame

logger = logging.getLogger(__name__)

Move = Tuple[Tuple[int, int], Tuple[int, int]]
PlayerFn = Callable[[Dict[str, Any]], Optional[Move]]


@dataclass
class EvalResult:
    """Result for a single seed."""
    seed: int
    final_score: int
    moves: int
    cracks: int
    helpers_used: int
    end_reason: str
    elapsed_time: float
    played_moves: Optional[List[Move]] = None


@dataclass
class EvalSummary:
    """Summary of evaluation across all seeds."""
    mean_score: float
    std_score: float
    min_score: int
    max_score: int
    median_score: float
    clean_rate: float
    total_time: float
    results: List[EvalResult]


def load_seed_bank(path: Optional[str] = None) -> List[int]:
    """
    Load the evaluation seed bank.

    Args:
        path: Path to seed_bank.json. Uses default if None.

    Returns:
        List of seeds.
    """
    if path is None:
        path = os.path.join(os.path.dirname(__file__), "seed_bank.json")

    with open(path, "r") as f:
        data = json.load(f)

    return data["seeds"]


def load_agent(agent_path: str) -> PlayerFn:
    """
    Load a player from a path.

    Args:
        agent_path: Path to a player directory or agent.py file.

    Returns:
        The player's act function.
    """
    agent_path = Path(agent_path)

    if agent_path.is_dir():
        agent_file = agent_path / "agent.py"
    else:
        agent_file = agent_path

    if not agent_file.exists():
        raise FileNotFoundError(f"Agent file not found: {agent_file}")

    spec = importlib.util.spec_from_file_location("agent_module", agent_file)
    if spec is None or spec.loader is None:
        raise ImportError(f"Failed to load agent module from {agent_file}")

    module = importlib.util.module_from_spec(spec)
    sys.modules["agent_module"] = module
    spec.loader.exec_module(module)

    if hasattr(module, "CubeAgent"):
        agent_instance = getattr(module, "CubeAgent")()
        if hasattr(agent_instance, "act"):
            return agent_instance.act
        raise AttributeError("CubeAgent class must have an 'act' method")

    elif hasattr(module, "act"):
        return getattr(module, "act")

    else:
        raise AttributeError(
            "Agent module must have either 'CubeAgent' class with 'act' method "
            "or standalone 'act' function"
        )


def evaluate_single_seed(
    agent_fn: PlayerFn,
    seed: int,
    config: Optional[GameConfig] = None,
    max_helpers: int = 3,
    max_moves: int = 500,
    record_moves: bool = False
) -> EvalResult:
    """
    Play one board to its end.

    When the player passes (returns None) a helper opens one locked tile,
    up to max_helpers times; after that a pass ends the run.

    Args:
        agent_fn: Player act function (obs) -> ((col, row), (col, row)) or None.
        seed: Board seed.
        config: Game configuration. Uses default if None.
        max_helpers: Helpers the player may use.
        max_moves: Hard stop for runaway players.
        record_moves: If True, keep the played moves.

    Returns:
        EvalResult for this seed.
    """
    game = CoreGame(config=config, seed=seed)
    game.reset(seed=seed)

    played = [] if record_moves else None
    helpers = 0
    start_time = time.time()

    while not game.is_over and game.moves < max_moves:
        move = agent_fn(game.snapshot().to_obs_dict())
        if move is None:
            if helpers >= max_helpers or not game.use_helper(1):
                break
            helpers += 1
            continue

        src, dst = move
        result = game.merge_at(tuple(src), tuple(dst))
        if not result.accepted:
            logger.debug("Seed %d: rejected move %s -> %s", seed, src, dst)
            break
        if record_moves:
            played.append((tuple(src), tuple(dst)))

    elapsed = time.time() - start_time
    info = game.get_info()

    result = EvalResult(
        seed=seed,
        final_score=info["score"],
        moves=info["moves"],
        cracks=info["cracks"],
        helpers_used=helpers,
        end_reason=info["end_reason"] or "player_stopped",
        elapsed_time=elapsed,
        played_moves=played
    )
    logger.info(
        "Seed %d: score=%d, moves=%d, cracks=%d, end=%s",
        seed, result.final_score, result.moves, result.cracks, result.end_reason
    )
    return result


def evaluate_player(
    agent_fn: PlayerFn,
    seeds: Optional[List[int]] = None,
    config: Optional[GameConfig] = None,
    max_helpers: int = 3,
    record_moves: bool = False,
    verbose: bool = True
) -> EvalSummary:
    """
    Evaluate a player on all seeds in the seed bank.

    Args:
        agent_fn: Player act function.
        seeds: List of seeds. Uses seed_bank.json if None.
        config: Game configuration. Uses default if None.
        max_helpers: Helpers allowed per board.
        record_moves: If True, record moves for replay.
        verbose: If True, print the summary.

    Returns:
        EvalSummary with aggregate statistics.
    """
    if seeds is None:
        seeds = load_seed_bank()
    if not seeds:
        raise ValueError("No seeds to evaluate")

    results: List[EvalResult] = []
    total_start = time.time()

    for seed in seeds:
        results.append(
            evaluate_single_seed(
                agent_fn,
                seed,
                config=config,
                max_helpers=max_helpers,
                record_moves=record_moves
            )
        )

    total_time = time.time() - total_start
    scores = np.array([r.final_score for r in results])

    summary = EvalSummary(
        mean_score=float(np.mean(scores)),
        std_score=float(np.std(scores)),
        min_score=int(scores.min()),
        max_score=int(scores.max()),
        median_score=float(np.median(scores)),
        clean_rate=float(np.mean([r.end_reason == "board_clean" for r in results])),
        total_time=total_time,
        results=results
    )

    if verbose:
        print()
        print("=" * 50)
        print("EVALUATION SUMMARY")
        print("=" * 50)
        print(f"Seeds evaluated: {len(seeds)}")
        print(f"Mean score:      {summary.mean_score:.2f}")
        print(f"Std deviation:   {summary.std_score:.2f}")
        print(f"Min score:       {summary.min_score}")
        print(f"Max score:       {summary.max_score}")
        print(f"Median score:    {summary.median_score:.2f}")
        print(f"Clean boards:    {summary.clean_rate:.0%}")
        print(f"Total time:      {total_time:.2f}s")
        print("=" * 50)

    return summary


def save_results(summary: EvalSummary, agent_name: str, output_path: str) -> None:
    """Save evaluation results to JSON."""
    data = {
        "agent": agent_name,
        "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
        "mean_score": summary.mean_score,
        "std_score": summary.std_score,
        "min_score": summary.min_score,
        "max_score": summary.max_score,
        "median_score": summary.median_score,
        "clean_rate": summary.clean_rate,
        "total_time": summary.total_time,
        "results": [
            {
                "seed": r.seed,
                "final_score": r.final_score,
                "moves": r.moves,
                "cracks": r.cracks,
                "helpers_used": r.helpers_used,
                "end_reason": r.end_reason,
                "elapsed_time": r.elapsed_time
            }
            for r in summary.results
        ]
    }

    with open(output_path, "w") as f:
        json.dump(data, f, indent=2)

    print(f"Results saved to {output_path}")


def main():
    parser = argparse.ArgumentParser(description="Evaluate a CubeCrash player")
    parser.add_argument(
        "--agent",
        type=str,
        default="players/greedy",
        help="Path to player directory or agent.py file"
    )
    parser.add_argument(
        "--seeds",
        type=str,
        default=None,
        help="Path to seed bank JSON (uses default if not specified)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to board_config.yaml (uses default if not specified)"
    )
    parser.add_argument(
        "--helpers",
        type=int,
        default=3,
        help="Helpers allowed per board"
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Path to save results JSON"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every board"
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    print(f"Loading agent from {args.agent}...")
    try:
        agent_fn = load_agent(args.agent)
    except (FileNotFoundError, ImportError, AttributeError) as e:
        print(f"Error loading agent: {e}")
        return 1

    seeds = load_seed_bank(args.seeds) if args.seeds else None
    config = load_config(args.config) if args.config else None

    summary = evaluate_player(
        agent_fn,
        seeds=seeds,
        config=config,
        max_helpers=args.helpers
    )

    if args.output:
        save_results(summary, Path(args.agent).name, args.output)

    return 0


if __name__ == "__main__":
    sys.exit(main())
