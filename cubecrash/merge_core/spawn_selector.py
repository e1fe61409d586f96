"""
Spawn Value Selector
====================

Self-tuning weighted-random generator for new tile values.

Each board gets a randomized TuningPlan (burst cadence, five caps, spice
amplitude). On top of phase-based weight tables the selector applies an
anti-flood correction, a spice ramp for 3/4, low-bias bursts, a pity rule
after high spawns, merge-seeking picks that complement existing tiles, and a
five-guard that caps how often 5 may appear.
"""

from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Union

from cubecrash.merge_core.config_loader import GameConfig, SpawnConfig, get_config
from cubecrash.merge_core.tile import Tile

logger = logging.getLogger(__name__)

Weights = Dict[int, float]


@dataclass(frozen=True)
class TuningPlan:
    """Per-board randomized tuning, regenerated on every reset."""
    burst_every: int             # A low-bias burst starts every N spawns
    burst_len: int               # ...and lasts this many spawns
    five_consec_cap: int         # Max 5s in a row
    five_window_size: int
    five_ratio_cap: float        # Max share of 5s in any full window
    spice_amp: float             # How much 3/4 ramps up through the board


def make_plan(seed: Union[int, random.Random, None], config: SpawnConfig) -> TuningPlan:
    """
    Build the tuning plan for one board.

    Pure given the seed: the same integer seed always yields the same plan.

    Args:
        seed: Integer seed, or a Random instance to draw from.
        config: Spawn configuration holding the plan ranges.

    Returns:
        A new TuningPlan.
    """
    rng = seed if isinstance(seed, random.Random) else random.Random(seed)
    mode = rng.random()
    return TuningPlan(
        burst_every=rng.randint(config.burst_every_min, config.burst_every_max),
        burst_len=rng.randint(config.burst_len_min, config.burst_len_max),
        five_consec_cap=rng.randint(config.five_consec_cap_min, config.five_consec_cap_max),
        five_window_size=config.five_window_size,
        five_ratio_cap=rng.uniform(config.five_ratio_min, config.five_ratio_max),
        spice_amp=config.spice_amp_low if mode < 0.5 else config.spice_amp_high
    )


@dataclass
class SpawnMemory:
    """Rolling record of what has been spawned on the current board."""
    history_size: int = 20
    window_size: int = 12
    spawn_index: int = 0
    high_streak: int = 0
    consec_fives: int = 0
    history: Deque[int] = field(default_factory=deque)
    five_window: Deque[bool] = field(default_factory=deque)

    def __post_init__(self):
        self.history = deque(self.history, maxlen=self.history_size)
        self.five_window = deque(self.five_window, maxlen=self.window_size)

    def update(self, value: int, high_value: int = 4, five_value: int = 5) -> None:
        """Record a spawned value. Called exactly once per returned value."""
        self.spawn_index += 1
        self.history.append(value)

        if value >= high_value:
            self.high_streak += 1
        else:
            self.high_streak = 0

        if value == five_value:
            self.consec_fives += 1
        else:
            self.consec_fives = 0
        self.five_window.append(value == five_value)

    def last_n_all_at_least(self, n: int, threshold: int) -> bool:
        if len(self.history) < n:
            return False
        return all(v >= threshold for v in list(self.history)[-n:])

    @property
    def five_ratio(self) -> float:
        if not self.five_window:
            return 0.0
        return sum(self.five_window) / len(self.five_window)

    def clear(self) -> None:
        self.spawn_index = 0
        self.high_streak = 0
        self.consec_fives = 0
        self.history.clear()
        self.five_window.clear()


def pick_weighted(
    weights: Weights,
    rng: random.Random,
    fallback_values: Sequence[int] = (1, 2, 3, 4, 5)
) -> int:
    """
    Draw a key proportionally to its weight.

    Negative weights count as zero. If nothing has positive weight the draw
    is uniform over fallback_values.
    """
    total = sum(max(0.0, w) for w in weights.values())
    if total <= 0:
        logger.debug("Degenerate spawn weights %s, drawing uniformly", weights)
        return rng.choice(list(fallback_values))

    r = rng.random() * total
    for value in sorted(weights):
        r -= max(0.0, weights[value])
        if r <= 0:
            return value
    return max(v for v, w in weights.items() if w > 0)


def _scale(weights: Weights, keys: Iterable[int], mul: float) -> None:
    for k in keys:
        weights[k] = max(0.0, weights.get(k, 0.0) * mul)


def _add(weights: Weights, key: int, amount: float) -> None:
    weights[key] = max(0.0, weights.get(key, 0.0) + amount)


def five_allowed(memory: SpawnMemory, plan: TuningPlan) -> bool:
    """
    True if one more 5 keeps both five caps.

    The window check is prospective: the newest window including this spawn
    must not exceed the ratio cap.
    """
    if memory.consec_fives >= plan.five_consec_cap:
        return False
    kept = list(memory.five_window)[-(plan.five_window_size - 1):] if plan.five_window_size > 1 else []
    prospective = (sum(kept) + 1) / plan.five_window_size
    return prospective <= plan.five_ratio_cap


def five_guard(
    candidate: int,
    weights: Weights,
    memory: SpawnMemory,
    plan: TuningPlan,
    rng: random.Random,
    config: SpawnConfig,
    five_value: int = 5
) -> int:
    """
    Cap how often 5 may spawn.

    Non-5 candidates pass unchanged. A 5 that would break a cap is rerolled
    once against a table with 5 cut down and 1/2 boosted; a reroll that
    still lands on 5 is demoted to 4. Does not touch memory.
    """
    if candidate != five_value:
        return candidate
    if five_allowed(memory, plan):
        return candidate

    reroll_weights = dict(weights)
    reroll_weights[five_value] = max(0.0, round(reroll_weights.get(five_value, 0.0) * config.reroll_mul_5))
    _add(reroll_weights, 1, config.reroll_add_1)
    _add(reroll_weights, 2, config.reroll_add_2)

    reroll = pick_weighted(reroll_weights, rng, tuple(sorted(reroll_weights)))
    return five_value - 1 if reroll == five_value else reroll


class SpawnSelector:
    """
    Stateful spawn value generator for one board.

    Usage:
        selector = SpawnSelector(config, seed=42)
        value = selector.get_value(board.active_tiles(), moves, score)
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        seed: Optional[int] = None
    ):
        """
        Initialize spawn selector.

        Args:
            config: Game configuration. Uses default if None.
            seed: Random seed for reproducibility. Random if None.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._spawn = config.spawn
        self._values = config.tiles.spawn_values
        self._five = config.tiles.spawn_max_value
        self._rng = random.Random(seed)
        self._plan = make_plan(self._rng, self._spawn)
        self._memory = SpawnMemory(
            history_size=self._spawn.history_size,
            window_size=self._plan.five_window_size
        )

    @property
    def plan(self) -> TuningPlan:
        return self._plan

    @property
    def memory(self) -> SpawnMemory:
        return self._memory

    @property
    def rng(self) -> random.Random:
        return self._rng

    def reset(self, seed: Optional[int] = None) -> TuningPlan:
        """
        Start a new board: new plan, empty memory.

        Args:
            seed: New random seed. Keeps the current stream if None.

        Returns:
            The new plan.
        """
        if seed is not None:
            self._rng = random.Random(seed)
        self._plan = make_plan(self._rng, self._spawn)
        self._memory = SpawnMemory(
            history_size=self._spawn.history_size,
            window_size=self._plan.five_window_size
        )
        logger.debug("Spawn plan reset: %s", self._plan)
        return self._plan

    def progress(self) -> float:
        """Position through the board in [0, 1], by spawn count."""
        horizon = max(1, self._spawn.progress_horizon)
        return max(0.0, min(1.0, self._memory.spawn_index / horizon))

    def in_burst(self) -> bool:
        return (self._memory.spawn_index % self._plan.burst_every) < self._plan.burst_len

    def compute_weights(self, active_tiles: Sequence[Tile], moves: int = 0) -> Weights:
        """
        Weight table after phase selection, anti-flood, spice and burst.

        Args:
            active_tiles: Tiles currently in play.
            moves: Moves made so far on this level.

        Returns:
            Fresh dict of value -> weight.
        """
        cfg = self._spawn
        weights: Weights = {v: float(w) for v, w in zip(self._values, cfg.phase_weights(moves))}
        high = cfg.flood_high_value

        if active_tiles:
            ratio_high = sum(1 for t in active_tiles if t.value >= high) / len(active_tiles)
        else:
            ratio_high = 0.0
        if ratio_high > cfg.flood_ratio:
            _scale(weights, [high], cfg.flood_mul_4)
            _scale(weights, [self._five], cfg.flood_mul_5)
            _add(weights, 1, cfg.flood_add_1)
            _add(weights, 2, cfg.flood_add_2)

        # Spice grows until mid-board, then holds
        p = self.progress()
        spice = self._plan.spice_amp * (p * 2 if p < 0.5 else 1.0)
        _add(weights, 3, round(cfg.spice_add_3 * spice))
        _add(weights, 4, round(cfg.spice_add_4 * spice))

        if self.in_burst():
            _scale(weights, [1, 2], cfg.burst_mul_low)
            _scale(weights, [self._five], cfg.burst_mul_5)

        return weights

    def _pity_due(self) -> bool:
        high = self._spawn.flood_high_value
        return self._memory.last_n_all_at_least(2, high) or self._memory.high_streak >= 2

    def _draw(self, active_tiles: Sequence[Tile], moves: int) -> tuple:
        """One selection without recording it. Returns (value, weights)."""
        cfg = self._spawn
        weights = self.compute_weights(active_tiles, moves)

        if self._pity_due():
            value = 1 if self._rng.random() < cfg.pity_one_chance else 2
            logger.debug("Pity spawn %d after %s", value, list(self._memory.history)[-2:])
            return value, weights

        if active_tiles and self._rng.random() < cfg.merge_seek_chance:
            pick = self._rng.choice(list(active_tiles))
            a = max(1, min(self._five, pick.value))
            # Small partners keep a + b <= 5, except for a 5: its only partner
            # is the 1 that takes it to the max value and cracks it.
            if self._rng.random() < cfg.merge_seek_small_chance:
                max_b = max(1, self._five - a)
                b = 1 + self._rng.randrange(max_b)
            else:
                b = max(1, min(self._five, self._config.tiles.max_value - a))
            value = five_guard(b, weights, self._memory, self._plan, self._rng, cfg, self._five)
            return value, weights

        value = pick_weighted(weights, self._rng, self._values)
        value = five_guard(value, weights, self._memory, self._plan, self._rng, cfg, self._five)
        return value, weights

    def _remember(self, value: int) -> int:
        self._memory.update(value, self._spawn.flood_high_value, self._five)
        return value

    def get_value(
        self,
        active_tiles: Sequence[Tile],
        moves: int = 0,
        score: int = 0
    ) -> int:
        """
        Choose the value for one newly opened tile.

        Args:
            active_tiles: Tiles currently in play.
            moves: Moves made so far on this level.
            score: Current score. Not used by the current tuning.

        Returns:
            Value in 1..spawn_max_value.
        """
        value, _ = self._draw(active_tiles, moves)
        return self._remember(value)

    def get_value_excluding(
        self,
        exclude: Iterable[int],
        active_tiles: Sequence[Tile],
        moves: int = 0,
        score: int = 0
    ) -> int:
        """
        Like get_value, but never returns a value in `exclude`.

        An excluded draw is replaced by a uniform pick from the remaining
        values; 5 is only offered when the five caps allow it.
        """
        excluded = set(exclude)
        value, _ = self._draw(active_tiles, moves)
        if value in excluded:
            pool = [v for v in self._values if v not in excluded]
            if not five_allowed(self._memory, self._plan):
                pool = [v for v in pool if v != self._five]
            if not pool:
                pool = [v for v in self._values if v != self._five]
            value = self._rng.choice(pool)
        return self._remember(value)

    def sample(self, count: int, active_tiles: Sequence[Tile] = (), moves: int = 0) -> List[int]:
        """Draw `count` values in a row against a fixed board (tooling)."""
        return [self.get_value(active_tiles, moves) for _ in range(count)]
