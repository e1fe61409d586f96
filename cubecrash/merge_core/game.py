"""
Core Game
=========

Main game facade combining the board controller, spawn selector, scoring,
level-end detection, drag interaction and the end-of-level flow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from cubecrash.merge_core.board_controller import BoardController, MergeReport
from cubecrash.merge_core.collaborators import Presenter, StatsStore, TileFactory
from cubecrash.merge_core.config_loader import GameConfig, get_config
from cubecrash.merge_core.events import EventBus, EVENT_LEVEL_STARTED
from cubecrash.merge_core.interaction import DragController
from cubecrash.merge_core.level_end import (
    REASONS,
    LevelEndDetector,
    LevelEndState,
    LevelState,
    legal_merges,
)
from cubecrash.merge_core.level_flow import FlowOutcome, InputLock, LevelFlowOrchestrator
from cubecrash.merge_core.scoring import ScoreEvent, ScoreTracker
from cubecrash.merge_core.spawn_selector import SpawnSelector
from cubecrash.merge_core.state_snapshot import BoardSnapshot, SnapshotBuilder
from cubecrash.merge_core.stats import StatsRecorder
from cubecrash.merge_core.tile import Board, Coords, Tile

logger = logging.getLogger(__name__)


@dataclass
class MoveResult:
    """Result of a single merge attempt."""
    report: Optional[MergeReport]
    delta_score: int
    state: LevelEndState
    score_events: List[ScoreEvent] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.report is not None

    @property
    def level_ended(self) -> bool:
        return self.state is not LevelEndState.PLAYING


class CoreGame:
    """
    Main game simulation class.

    Orchestrates:
    - Board controller (deal, open, merge)
    - Spawn value selector
    - Scoring and stats
    - Level-end detection
    - Drag interaction and the end-of-level flow

    One move = one merge attempt, then a level-end check.
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        seed: Optional[int] = None,
        tile_factory: Optional[TileFactory] = None,
        stats_store: Optional[StatsStore] = None,
        bus: Optional[EventBus] = None,
        endless: Optional[bool] = None
    ):
        """
        Initialize game.

        Args:
            config: Game configuration. Uses default if None.
            seed: Random seed for reproducibility.
            tile_factory: Tile handle factory for the host's visuals.
            stats_store: Persistent stats collaborator. In-memory if None.
            bus: Event bus. A private bus is created if None.
            endless: Endless mode. Uses config.flow.endless if None.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._seed = seed
        self._bus = bus if bus is not None else EventBus()

        # Initialize subsystems
        self._input_lock = InputLock(self._bus)
        self._drag = DragController(self._on_drop, config, self._input_lock, self._bus)
        self._selector = SpawnSelector(config, seed)
        self._controller = BoardController(
            config=config,
            seed=seed,
            tile_factory=tile_factory,
            drag_binding=self._drag,
            bus=self._bus,
            selector=self._selector
        )
        self._scorer = ScoreTracker(config)
        self._detector = LevelEndDetector(self._bus, config.tiles.max_value)
        self._stats = StatsRecorder(stats_store, self._bus)
        self._snapshot_builder = SnapshotBuilder(config)

        # Level state
        self._level = LevelState(endless=config.flow.endless if endless is None else endless)

    @property
    def config(self) -> GameConfig:
        """Game configuration."""
        return self._config

    @property
    def board(self) -> Board:
        return self._controller.board

    @property
    def controller(self) -> BoardController:
        return self._controller

    @property
    def drag(self) -> DragController:
        """Drag controller; also the drag binding of the board."""
        return self._drag

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def input_lock(self) -> InputLock:
        return self._input_lock

    @property
    def stats(self) -> StatsRecorder:
        return self._stats

    @property
    def scorer(self) -> ScoreTracker:
        return self._scorer

    @property
    def level_state(self) -> LevelState:
        """Current level progress; score mirrors the score tracker."""
        self._level.score = self._scorer.score
        return self._level

    @property
    def score(self) -> int:
        """Current score."""
        return self._scorer.score

    @property
    def moves(self) -> int:
        return self._level.moves

    @property
    def state(self) -> LevelEndState:
        return self._detector.state

    @property
    def is_over(self) -> bool:
        """True once the current board has ended."""
        return self._detector.fired

    @property
    def end_reason(self) -> str:
        """'board_clean', 'no_moves', or empty string while playing."""
        return REASONS.get(self._detector.state, "") if self._detector.fired else ""

    def reset(self, seed: Optional[int] = None) -> BoardSnapshot:
        """
        Start over at level 1 with a zero score.

        Args:
            seed: New random seed. Uses previous if None.

        Returns:
            Initial board snapshot.
        """
        if seed is not None:
            self._seed = seed
        self.start_level(1, reset_score=True, seed=self._seed)
        return self.snapshot()

    def start_level(self, level: int, reset_score: bool = False, seed: Optional[int] = None) -> None:
        """
        Deal the board for a level.

        Args:
            level: Level number; also the board number used for bonuses.
            reset_score: Zero the score first.
            seed: Reseed the board rng. Continues the current stream if None.
        """
        self._scorer.reset(keep_score=not reset_score)
        self._level.level = level
        self._level.board_number = level
        self._level.moves = 0
        self._level.score = self._scorer.score

        self._controller.rebuild_board(seed)
        self._detector.reset()
        self._stats.set_board_number(level)

        logger.info("Level %d started (%s, score=%d)", level, self._level.mode, self._scorer.score)
        self._bus.emit(EVENT_LEVEL_STARTED, level=level, score=self._scorer.score)
        self._check_level_end()

    def add_score(self, points: int) -> int:
        """Add points, clamped to the score cap. Returns the new score."""
        self._scorer.score = self._scorer.score + points
        self._level.score = self._scorer.score
        return self._scorer.score

    def attempt_merge(self, src: Tile, dst: Tile) -> MoveResult:
        """
        Merge src onto dst if legal, score it, and check for a level end.

        Args:
            src: Dragged tile.
            dst: Target tile.

        Returns:
            MoveResult; report is None when the attempt was rejected.
        """
        if self.is_over:
            return MoveResult(report=None, delta_score=0, state=self._detector.state)

        score_before = self._scorer.score
        report = self._controller.merge(src, dst, self._level.moves, score_before)
        if report is None:
            return MoveResult(report=None, delta_score=0, state=self._detector.state)

        self._level.moves += 1
        if report.cracked:
            events = [self._scorer.apply_crack(report.outcome.combo_depth)]
        else:
            events = [self._scorer.apply_merge(report.kind, report.value)]
        self._stats.record_combo(self._scorer.combo)

        events.extend(self._check_level_end())
        return MoveResult(
            report=report,
            delta_score=self._scorer.score - score_before,
            state=self._detector.state,
            score_events=events
        )

    def merge_at(self, src: Coords, dst: Coords) -> MoveResult:
        """attempt_merge by cell coordinates."""
        src_tile = self.board.tile_at(*src)
        dst_tile = self.board.tile_at(*dst)
        if src_tile is None or dst_tile is None:
            return MoveResult(report=None, delta_score=0, state=self._detector.state)
        return self.attempt_merge(src_tile, dst_tile)

    def use_helper(self, count: int = 1) -> List[Tile]:
        """
        Player helper: open locked tiles.

        Returns:
            Opened tiles; empty if nothing could be opened or the board
            has already ended.
        """
        if self.is_over:
            return []
        opened = self._controller.open_locked_tiles(
            count,
            moves=self._level.moves,
            score=self._scorer.score
        )
        if opened:
            self._stats.record_helper(1)
            self._check_level_end()
        return opened

    def legal_merges(self) -> List[Tuple[Tile, Tile]]:
        return legal_merges(self.board.tiles, self._config.tiles.max_value)

    def tick(self, seconds: float) -> None:
        """
        Advance game clocks by elapsed wall time.

        Decays the combo after the configured idle time and drives the
        time trigger of the board reveal.
        """
        if self._scorer.tick(seconds):
            logger.debug("Combo reset after %.2fs idle", self._scorer.idle)
        reveal = self._controller.reveal
        if reveal is not None:
            reveal.advance(seconds)

    def record_play_time(self, seconds: float) -> None:
        self._stats.record_time(seconds)

    def _check_level_end(self) -> List[ScoreEvent]:
        """Apply the stuck-pair bonus if due, then let the detector decide."""
        events = []
        if not self._detector.fired and self._detector.classify(self.board) is LevelEndState.STUCK:
            active = self.board.active_tiles()
            if len(active) == 2:
                events.append(self._scorer.apply_pair_bonus(active[0].value, active[1].value))
        self._detector.evaluate(self.board, self.level_state)
        return events

    async def run_level_end(self, presenter: Presenter) -> FlowOutcome:
        """
        Run the end-of-level flow for the board that just ended.

        Raises:
            RuntimeError: If the board has not ended.
        """
        if not self.is_over:
            raise RuntimeError("Level has not ended")
        orchestrator = LevelFlowOrchestrator(
            presenter,
            self,
            self._config,
            self._input_lock,
            self._stats
        )
        return await orchestrator.run(self.end_reason)

    def _on_drop(self, src: Tile, dst: Tile) -> Optional[MergeReport]:
        return self.attempt_merge(src, dst).report

    def snapshot(self) -> BoardSnapshot:
        """Build current board snapshot."""
        return self._snapshot_builder.build(
            self.board,
            level=self._level.level,
            score=self._scorer.score,
            moves=self._level.moves
        )

    def get_info(self) -> Dict[str, Any]:
        """Summary dict for tooling and logs."""
        return {
            "level": self._level.level,
            "score": self._scorer.score,
            "moves": self._level.moves,
            "merges": self._scorer.merges,
            "best_combo": self._scorer.best_combo,
            "cracks": self._controller.cracks,
            "active": len(self.board.active_tiles()),
            "locked": len(self.board.locked_tiles()),
            "state": self._detector.state.value,
            "end_reason": self.end_reason,
        }
