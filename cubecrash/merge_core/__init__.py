"""
Merge Core - The heart of the puzzle engine.

This module provides the board model, merge rules, adaptive spawn selector,
level-end detection and the end-of-level flow, plus the CoreGame facade that
ties them together.

Main exports:
- CoreGame: Game facade (deal, merge, helpers, level end)
- BoardController: Board mutation under a single lock
- SpawnSelector: Self-tuning spawn value generator
- LevelFlowOrchestrator: Async end-of-level sequence
- GameConfig: Configuration loaded from board_config.yaml
"""

from cubecrash.merge_core.config_loader import GameConfig, load_config, get_config
from cubecrash.merge_core.tile import Tile, Grid, Board, WILD
from cubecrash.merge_core.events import EventBus
from cubecrash.merge_core.merge_rules import MergeKind, MergeOutcome, can_merge, apply_merge
from cubecrash.merge_core.spawn_selector import SpawnSelector, TuningPlan, make_plan
from cubecrash.merge_core.board_controller import BoardController, MergeReport, RevealTracker
from cubecrash.merge_core.level_end import (
    LevelEndDetector,
    LevelEndState,
    LevelState,
    any_merge_possible,
)
from cubecrash.merge_core.level_flow import (
    FlowOutcome,
    InputLock,
    LevelFlowOrchestrator,
    OrchestratorStepFailure,
)
from cubecrash.merge_core.interaction import DragController
from cubecrash.merge_core.game import CoreGame, MoveResult

__all__ = [
    "GameConfig",
    "load_config",
    "get_config",
    "Tile",
    "Grid",
    "Board",
    "WILD",
    "EventBus",
    "MergeKind",
    "MergeOutcome",
    "can_merge",
    "apply_merge",
    "SpawnSelector",
    "TuningPlan",
    "make_plan",
    "BoardController",
    "MergeReport",
    "RevealTracker",
    "LevelEndDetector",
    "LevelEndState",
    "LevelState",
    "any_merge_possible",
    "FlowOutcome",
    "InputLock",
    "LevelFlowOrchestrator",
    "OrchestratorStepFailure",
    "DragController",
    "CoreGame",
    "MoveResult",
]
