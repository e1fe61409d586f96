"""
Configuration Loader
====================

Loads and validates board_config.yaml, providing typed access to all parameters.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml


@dataclass(frozen=True)
class BoardConfig:
    """Board geometry."""
    rows: int
    cols: int
    open_ratio: float            # Fraction of cells opened on rebuild

    @property
    def cell_count(self) -> int:
        return self.rows * self.cols

    @property
    def open_count(self) -> int:
        """Number of cells dealt as active tiles on rebuild."""
        return max(1, round(self.cell_count * self.open_ratio))


@dataclass(frozen=True)
class TileConfig:
    """Tile value limits."""
    max_value: int               # Sum-cap, also the crack value
    max_stack_depth: int
    spawn_max_value: int

    @property
    def spawn_values(self) -> Tuple[int, ...]:
        return tuple(range(1, self.spawn_max_value + 1))


@dataclass(frozen=True)
class SpawnConfig:
    """Adaptive spawn selector tuning."""
    history_size: int
    early_moves: int
    mid_moves: int
    early_weights: Tuple[float, ...]
    mid_weights: Tuple[float, ...]
    late_weights: Tuple[float, ...]

    flood_ratio: float
    flood_high_value: int
    flood_mul_4: float
    flood_mul_5: float
    flood_add_1: float
    flood_add_2: float

    progress_horizon: int
    spice_amp_low: float
    spice_amp_high: float
    spice_add_3: float
    spice_add_4: float

    burst_every_min: int
    burst_every_max: int
    burst_len_min: int
    burst_len_max: int
    burst_mul_low: float
    burst_mul_5: float

    five_consec_cap_min: int
    five_consec_cap_max: int
    five_window_size: int
    five_ratio_min: float
    five_ratio_max: float
    reroll_mul_5: float
    reroll_add_1: float
    reroll_add_2: float

    pity_one_chance: float
    merge_seek_chance: float
    merge_seek_small_chance: float

    def phase_weights(self, moves: int) -> Tuple[float, ...]:
        """Base weight table for the current move phase."""
        if moves < self.early_moves:
            return self.early_weights
        if moves < self.mid_moves:
            return self.mid_weights
        return self.late_weights


@dataclass(frozen=True)
class MergeConfig:
    """Merge resolution parameters."""
    wild_target_value: Optional[int]
    crack_at_max_value: bool
    refill_on_crack_by_depth: Tuple[int, ...]
    guarantee_wild_on_first_crack: bool
    wild_meter_increment: float  # Meter gain per small merge, 0 disables

    def refill_for_depth(self, depth: int) -> int:
        """Locked tiles to open after a crack of the given stack depth."""
        idx = max(1, min(len(self.refill_on_crack_by_depth), depth)) - 1
        return self.refill_on_crack_by_depth[idx]


@dataclass(frozen=True)
class ScoringConfig:
    """Scoring parameters."""
    score_cap: int
    crack_multiplier_cap: int
    clean_board_bonus_per_board: int
    clean_board_bonus_min: int
    star_thresholds: Tuple[int, int, int]
    combo_cap: int
    combo_idle_reset: float      # Seconds without a merge before the combo drops to zero


@dataclass(frozen=True)
class FlowConfig:
    """Level flow parameters."""
    endless: bool


@dataclass(frozen=True)
class InteractionConfig:
    """Drag/drop parameters."""
    drop_overlap_threshold: float


@dataclass(frozen=True)
class RevealConfig:
    """Deal-in reveal parameters."""
    expected_duration: float


@dataclass(frozen=True)
class GameConfig:
    """
    Complete board configuration loaded from YAML.

    All values are immutable to prevent accidental modification during runtime.
    """
    board: BoardConfig
    tiles: TileConfig
    spawn: SpawnConfig
    merge: MergeConfig
    scoring: ScoringConfig
    flow: FlowConfig
    interaction: InteractionConfig
    reveal: RevealConfig

    def with_board(self, rows: int, cols: int) -> "GameConfig":
        """Copy of this config with a different board size."""
        board = BoardConfig(rows=rows, cols=cols, open_ratio=self.board.open_ratio)
        return GameConfig(
            board=board,
            tiles=self.tiles,
            spawn=self.spawn,
            merge=self.merge,
            scoring=self.scoring,
            flow=self.flow,
            interaction=self.interaction,
            reveal=self.reveal
        )


def _parse_weights(data: List, name: str) -> Tuple[float, ...]:
    """Parse a weight table from YAML."""
    if not isinstance(data, list):
        raise ValueError(f"spawn.weights.{name} must be a list, got {data!r}")
    return tuple(float(w) for w in data)


def _parse_spawn(spawn_data: Dict) -> SpawnConfig:
    """Parse the spawn section."""
    weights = spawn_data["weights"]
    return SpawnConfig(
        history_size=int(spawn_data.get("history_size", 20)),
        early_moves=int(spawn_data.get("early_moves", 16)),
        mid_moves=int(spawn_data.get("mid_moves", 36)),
        early_weights=_parse_weights(weights["early"], "early"),
        mid_weights=_parse_weights(weights["mid"], "mid"),
        late_weights=_parse_weights(weights["late"], "late"),
        flood_ratio=float(spawn_data.get("flood_ratio", 0.28)),
        flood_high_value=int(spawn_data.get("flood_high_value", 4)),
        flood_mul_4=float(spawn_data.get("flood_mul_4", 0.5)),
        flood_mul_5=float(spawn_data.get("flood_mul_5", 0.35)),
        flood_add_1=float(spawn_data.get("flood_add_1", 10)),
        flood_add_2=float(spawn_data.get("flood_add_2", 8)),
        progress_horizon=int(spawn_data.get("progress_horizon", 36)),
        spice_amp_low=float(spawn_data.get("spice_amp_low", 0.12)),
        spice_amp_high=float(spawn_data.get("spice_amp_high", 0.22)),
        spice_add_3=float(spawn_data.get("spice_add_3", 10)),
        spice_add_4=float(spawn_data.get("spice_add_4", 8)),
        burst_every_min=int(spawn_data.get("burst_every_min", 6)),
        burst_every_max=int(spawn_data.get("burst_every_max", 10)),
        burst_len_min=int(spawn_data.get("burst_len_min", 2)),
        burst_len_max=int(spawn_data.get("burst_len_max", 3)),
        burst_mul_low=float(spawn_data.get("burst_mul_low", 1.25)),
        burst_mul_5=float(spawn_data.get("burst_mul_5", 0.55)),
        five_consec_cap_min=int(spawn_data.get("five_consec_cap_min", 1)),
        five_consec_cap_max=int(spawn_data.get("five_consec_cap_max", 2)),
        five_window_size=int(spawn_data.get("five_window_size", 12)),
        five_ratio_min=float(spawn_data.get("five_ratio_min", 0.30)),
        five_ratio_max=float(spawn_data.get("five_ratio_max", 0.37)),
        reroll_mul_5=float(spawn_data.get("reroll_mul_5", 0.2)),
        reroll_add_1=float(spawn_data.get("reroll_add_1", 12)),
        reroll_add_2=float(spawn_data.get("reroll_add_2", 10)),
        pity_one_chance=float(spawn_data.get("pity_one_chance", 0.6)),
        merge_seek_chance=float(spawn_data.get("merge_seek_chance", 0.6)),
        merge_seek_small_chance=float(spawn_data.get("merge_seek_small_chance", 0.8))
    )


def _validate_config(config: GameConfig) -> None:
    """Validate configuration consistency."""
    if config.board.rows < 1 or config.board.cols < 1:
        raise ValueError(
            f"Board must be at least 1x1, got {config.board.rows}x{config.board.cols}"
        )

    if not 0.0 < config.board.open_ratio <= 1.0:
        raise ValueError(f"open_ratio must be in (0, 1], got {config.board.open_ratio}")

    if not 1 <= config.tiles.spawn_max_value < config.tiles.max_value:
        raise ValueError(
            f"spawn_max_value ({config.tiles.spawn_max_value}) must be in "
            f"1..max_value-1 ({config.tiles.max_value - 1})"
        )

    # Every weight table covers exactly the spawnable values
    for name in ("early_weights", "mid_weights", "late_weights"):
        table = getattr(config.spawn, name)
        if len(table) != config.tiles.spawn_max_value:
            raise ValueError(
                f"spawn.{name} length ({len(table)}) must match "
                f"spawn_max_value ({config.tiles.spawn_max_value})"
            )

    if config.spawn.early_moves > config.spawn.mid_moves:
        raise ValueError("spawn.early_moves must not exceed spawn.mid_moves")

    if config.spawn.burst_every_min > config.spawn.burst_every_max:
        raise ValueError("burst_every_min must not exceed burst_every_max")

    if config.spawn.five_window_size < 1:
        raise ValueError("five_window_size must be positive")

    if not 0.0 < config.spawn.five_ratio_min <= config.spawn.five_ratio_max <= 1.0:
        raise ValueError("five ratio caps must satisfy 0 < min <= max <= 1")

    if len(config.merge.refill_on_crack_by_depth) != config.tiles.max_stack_depth:
        raise ValueError(
            f"refill_on_crack_by_depth length ({len(config.merge.refill_on_crack_by_depth)}) "
            f"must match max_stack_depth ({config.tiles.max_stack_depth})"
        )

    target = config.merge.wild_target_value
    if target is not None and not 1 <= target <= config.tiles.max_value:
        raise ValueError(f"wild_target_value must be in 1..{config.tiles.max_value}, got {target}")

    if not 0.0 <= config.merge.wild_meter_increment <= 1.0:
        raise ValueError(
            f"wild_meter_increment must be in [0, 1], got {config.merge.wild_meter_increment}"
        )

    if config.scoring.combo_cap < 1:
        raise ValueError("combo_cap must be positive")

    if config.scoring.combo_idle_reset <= 0:
        raise ValueError("combo_idle_reset must be positive")

    thresholds = config.scoring.star_thresholds
    if list(thresholds) != sorted(thresholds):
        raise ValueError(f"star_thresholds must be ascending, got {thresholds}")

    if not 0.0 <= config.interaction.drop_overlap_threshold <= 1.0:
        raise ValueError("drop_overlap_threshold must be in [0, 1]")


def load_config(config_path: Optional[str] = None) -> GameConfig:
    """
    Load and validate board configuration from YAML.

    Args:
        config_path: Path to board_config.yaml. If None, uses default location.

    Returns:
        Validated GameConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config validation fails.
    """
    if config_path is None:
        config_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "board_config.yaml"
        )

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        raw = yaml.safe_load(f)

    board_data = raw["board"]
    board = BoardConfig(
        rows=int(board_data["rows"]),
        cols=int(board_data["cols"]),
        open_ratio=float(board_data.get("open_ratio", 0.40))
    )

    tiles_data = raw.get("tiles", {})
    tiles = TileConfig(
        max_value=int(tiles_data.get("max_value", 6)),
        max_stack_depth=int(tiles_data.get("max_stack_depth", 4)),
        spawn_max_value=int(tiles_data.get("spawn_max_value", 5))
    )

    spawn = _parse_spawn(raw["spawn"])

    merge_data = raw.get("merge", {})
    wild_target = merge_data.get("wild_target_value", 6)
    merge = MergeConfig(
        wild_target_value=None if wild_target is None else int(wild_target),
        crack_at_max_value=bool(merge_data.get("crack_at_max_value", True)),
        refill_on_crack_by_depth=tuple(
            int(n) for n in merge_data.get("refill_on_crack_by_depth", [1, 1, 2, 3])
        ),
        guarantee_wild_on_first_crack=bool(merge_data.get("guarantee_wild_on_first_crack", True)),
        wild_meter_increment=float(merge_data.get("wild_meter_increment", 0.25))
    )

    scoring_data = raw.get("scoring", {})
    thresholds = scoring_data.get("star_thresholds", [200, 300, 360])
    if len(thresholds) != 3:
        raise ValueError(f"star_thresholds must have 3 values, got {thresholds}")
    scoring = ScoringConfig(
        score_cap=int(scoring_data.get("score_cap", 999999)),
        crack_multiplier_cap=int(scoring_data.get("crack_multiplier_cap", 3)),
        clean_board_bonus_per_board=int(scoring_data.get("clean_board_bonus_per_board", 500)),
        clean_board_bonus_min=int(scoring_data.get("clean_board_bonus_min", 500)),
        star_thresholds=(int(thresholds[0]), int(thresholds[1]), int(thresholds[2])),
        combo_cap=int(scoring_data.get("combo_cap", 99)),
        combo_idle_reset=float(scoring_data.get("combo_idle_reset", 2.0))
    )

    flow_data = raw.get("flow", {})
    flow = FlowConfig(endless=bool(flow_data.get("endless", False)))

    interaction_data = raw.get("interaction", {})
    interaction = InteractionConfig(
        drop_overlap_threshold=float(interaction_data.get("drop_overlap_threshold", 0.35))
    )

    reveal_data = raw.get("reveal", {})
    reveal = RevealConfig(expected_duration=float(reveal_data.get("expected_duration", 1.2)))

    config = GameConfig(
        board=board,
        tiles=tiles,
        spawn=spawn,
        merge=merge,
        scoring=scoring,
        flow=flow,
        interaction=interaction,
        reveal=reveal
    )

    _validate_config(config)
    return config


# Module-level singleton for convenience
_cached_config: Optional[GameConfig] = None


def get_config() -> GameConfig:
    """Get the cached board configuration, loading if necessary."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reload_config(config_path: Optional[str] = None) -> GameConfig:
    """Reload the configuration (useful for testing)."""
    global _cached_config
    _cached_config = load_config(config_path)
    return _cached_config
