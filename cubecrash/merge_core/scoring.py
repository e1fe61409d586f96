"""
Scoring System
==============

Applies merge, crack and end-of-board scores based on board configuration.

The combo counts merges made in quick succession. It is capped, decays to
zero once the player has been idle for combo_idle_reset seconds, and
multiplies the score of a crack.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cubecrash.merge_core.config_loader import GameConfig, get_config
from cubecrash.merge_core.merge_rules import MergeKind


@dataclass
class ScoreEvent:
    """Record of a scoring event."""
    points: int
    kind: str                    # 'merge' | 'stack' | 'crack' | 'pair_bonus' | 'clean_bonus'
    multiplier: int = 1          # Stack depth multiplier of a crack
    combo: int = 1               # Combo multiplier of a crack

    def __repr__(self) -> str:
        if self.multiplier > 1 or self.combo > 1:
            return f"ScoreEvent({self.kind}={self.points}, x{self.multiplier}, combo x{self.combo})"
        return f"ScoreEvent({self.kind}={self.points})"


def clean_board_bonus(config: GameConfig, board_number: int) -> int:
    """Bonus for clearing a board: board * per_board, at least the minimum, at most the score cap."""
    scoring = config.scoring
    bonus = max(scoring.clean_board_bonus_min, max(1, board_number) * scoring.clean_board_bonus_per_board)
    return min(scoring.score_cap, bonus)


def stars_for(config: GameConfig, score: int) -> int:
    """Stars earned by a score against the configured thresholds."""
    return sum(1 for t in config.scoring.star_thresholds if score >= t)


class ScoreTracker:
    """
    Tracks level score, merge count and the merge combo.

    Small merges score their result value. A crack scores the max value
    times the combo depth of the inputs (capped at crack_multiplier_cap)
    times the current combo.
    """

    def __init__(self, config: Optional[GameConfig] = None):
        """
        Initialize score tracker.

        Args:
            config: Game configuration. Uses default if None.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._score: int = 0
        self._merges: int = 0
        self._combo: int = 0
        self._best_combo: int = 0
        self._idle: float = 0.0

    @property
    def score(self) -> int:
        """Current total score."""
        return self._score

    @score.setter
    def score(self, value: int) -> None:
        self._score = max(0, min(self._config.scoring.score_cap, int(value)))

    @property
    def merges(self) -> int:
        """Total number of merges performed."""
        return self._merges

    @property
    def combo(self) -> int:
        return self._combo

    @property
    def best_combo(self) -> int:
        """Longest combo reached since the last reset."""
        return self._best_combo

    @property
    def idle(self) -> float:
        """Seconds since the last merge."""
        return self._idle

    def _add(self, points: int) -> None:
        self.score = self._score + points

    def apply_merge(self, kind: MergeKind, value: int) -> ScoreEvent:
        """Score a merge that did not crack."""
        self._merges += 1
        self._bump_combo()
        self._add(value)
        return ScoreEvent(points=value, kind="stack" if kind is MergeKind.STACK else "merge")

    def apply_crack(self, combo_depth: int) -> ScoreEvent:
        """
        Score a merge that reached the max value.

        The crack itself counts toward the combo before it is scored.

        Args:
            combo_depth: Stack depth carried by the merged tiles (1..4).
        """
        multiplier = max(1, min(self._config.scoring.crack_multiplier_cap, combo_depth))
        self._merges += 1
        self._bump_combo()
        combo = max(1, self._combo)
        points = self._config.tiles.max_value * multiplier * combo
        self._add(points)
        return ScoreEvent(points=points, kind="crack", multiplier=multiplier, combo=combo)

    def apply_pair_bonus(self, first: int, second: int) -> ScoreEvent:
        """Bonus when a board ends stuck with exactly two tiles left."""
        points = max(0, first + second)
        self._add(points)
        return ScoreEvent(points=points, kind="pair_bonus")

    def _bump_combo(self) -> None:
        self._combo = min(self._config.scoring.combo_cap, self._combo + 1)
        self._best_combo = max(self._best_combo, self._combo)
        self._idle = 0.0

    def tick(self, seconds: float) -> bool:
        """
        Advance the idle clock.

        Returns:
            True if this call decayed the combo to zero.
        """
        self._idle += max(0.0, seconds)
        if self._combo > 0 and self._idle >= self._config.scoring.combo_idle_reset:
            self._combo = 0
            return True
        return False

    def reset(self, keep_score: bool = False) -> None:
        """Reset for a new level."""
        if not keep_score:
            self._score = 0
        self._merges = 0
        self._combo = 0
        self._best_combo = 0
        self._idle = 0.0
