"""
Level Flow
==========

Sequential end-of-level flow, run once per level end:

    1. clean-board celebration (bonus added to the score)
    2. mystery prize
    3. stars rating, returning the player's decision
    4. transition to the next, the same, or no level

Input stays locked and the grid hidden for the whole sequence. A failing
step is logged and the flow falls back to starting the next level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from cubecrash.merge_core.collaborators import Presenter, RatingDecision
from cubecrash.merge_core.config_loader import GameConfig, get_config
from cubecrash.merge_core.events import EventBus, EVENT_INPUT_LOCKED, EVENT_INPUT_RELEASED
from cubecrash.merge_core.level_end import LevelState
from cubecrash.merge_core.scoring import clean_board_bonus, stars_for
from cubecrash.merge_core.stats import StatsRecorder

logger = logging.getLogger(__name__)

REASON_CLEAN = "board_clean"
REASON_STUCK = "no_moves"


class OrchestratorStepFailure(Exception):
    """A level-flow step raised; carries the step name."""

    def __init__(self, step: str, message: str = ""):
        self.step = step
        super().__init__(f"Level flow step '{step}' failed" + (f": {message}" if message else ""))


class InputLock:
    """
    Exclusive input lock.

    Usage:
        async with lock.hold("level_flow"):
            ...
    """

    def __init__(self, bus: Optional[EventBus] = None):
        self._bus = bus
        self._owner: Optional[str] = None

    @property
    def locked(self) -> bool:
        return self._owner is not None

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    def acquire(self, owner: str) -> bool:
        """Take the lock. False if someone else holds it."""
        if self._owner is not None:
            return False
        self._owner = owner
        if self._bus is not None:
            self._bus.emit(EVENT_INPUT_LOCKED, owner=owner)
        return True

    def release(self, owner: str) -> None:
        if self._owner != owner:
            return
        self._owner = None
        if self._bus is not None:
            self._bus.emit(EVENT_INPUT_RELEASED, owner=owner)

    def hold(self, owner: str) -> "_HeldInput":
        return _HeldInput(self, owner)


class _HeldInput:
    """Async context manager returned by InputLock.hold."""

    def __init__(self, lock: InputLock, owner: str):
        self._lock = lock
        self._owner = owner

    async def __aenter__(self) -> InputLock:
        if not self._lock.acquire(self._owner):
            raise RuntimeError(
                f"Input already locked by {self._lock.owner!r}, cannot lock for {self._owner!r}"
            )
        return self._lock

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._lock.release(self._owner)


class LevelFlowHost(Protocol):
    """What the flow needs from the game that owns the level."""

    @property
    def level_state(self) -> LevelState: ...

    def add_score(self, points: int) -> int: ...

    def start_level(self, level: int, reset_score: bool = False) -> None: ...


@dataclass
class FlowOutcome:
    """Summary of one end-of-level flow."""
    reason: str
    level: int
    score: int = 0
    bonus: int = 0
    stars: int = 0
    passed: bool = False
    action: str = "continue"             # RatingDecision action, or 'fallback'
    next_level: Optional[int] = None     # None when the player quit
    collectible: Optional[str] = None
    failed_step: Optional[str] = None


class LevelFlowOrchestrator:
    """
    Runs the end-of-level steps in a fixed order.

    Steps never overlap; each one is awaited before the next starts.
    """

    def __init__(
        self,
        presenter: Presenter,
        host: LevelFlowHost,
        config: Optional[GameConfig] = None,
        input_lock: Optional[InputLock] = None,
        stats: Optional[StatsRecorder] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            presenter: End-of-level screens.
            host: Game owning the level state.
            config: Game configuration. Uses default if None.
            input_lock: Lock shared with the drag controller.
            stats: Recorder for unlocked collectibles.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._presenter = presenter
        self._host = host
        self._input_lock = input_lock if input_lock is not None else InputLock()
        self._stats = stats

    @property
    def input_lock(self) -> InputLock:
        return self._input_lock

    async def run(self, reason: str) -> FlowOutcome:
        """
        Run the full flow for one level end.

        Args:
            reason: 'board_clean' or 'no_moves'.

        Returns:
            FlowOutcome describing what happened.
        """
        state = self._host.level_state
        outcome = FlowOutcome(reason=reason, level=state.level, score=state.score)

        async with self._input_lock.hold("level_flow"):
            try:
                try:
                    self._hide_grid()
                    await self._celebrate(outcome)
                    await self._mystery_prize(outcome)
                    decision = await self._rating(outcome)
                    self._transition(decision, outcome)
                except OrchestratorStepFailure as exc:
                    logger.exception("Level flow aborted at step %s; advancing", exc.step)
                    outcome.failed_step = exc.step
                    outcome.action = "fallback"
                    self._fallback(outcome)
            finally:
                self._show_grid()

        logger.info(
            "Level %d flow done: %s -> %s (score=%d, stars=%d)",
            outcome.level, reason, outcome.next_level, outcome.score, outcome.stars
        )
        return outcome

    def _hide_grid(self) -> None:
        try:
            self._presenter.hide_grid()
        except Exception as exc:
            raise OrchestratorStepFailure("hide_grid", str(exc)) from exc

    def _show_grid(self) -> None:
        try:
            self._presenter.show_grid()
        except Exception:
            logger.exception("Could not show the grid after the level flow")

    def _fallback(self, outcome: FlowOutcome) -> None:
        """Start the next level after a failed step. Leaves next_level None if that fails too."""
        next_level = outcome.level + 1
        try:
            self._host.start_level(next_level, reset_score=False)
        except Exception:
            logger.exception("Fallback start of level %d failed", next_level)
            outcome.next_level = None
            return
        outcome.next_level = next_level

    async def _celebrate(self, outcome: FlowOutcome) -> None:
        if outcome.reason != REASON_CLEAN:
            return
        state = self._host.level_state
        bonus = clean_board_bonus(self._config, state.board_number)
        try:
            outcome.score = self._host.add_score(bonus)
            outcome.bonus = bonus
            await self._presenter.celebrate_clean_board(
                bonus=bonus,
                score=outcome.score,
                board_number=state.board_number
            )
        except Exception as exc:
            raise OrchestratorStepFailure("celebrate", str(exc)) from exc

    async def _mystery_prize(self, outcome: FlowOutcome) -> None:
        try:
            collectible = await self._presenter.present_mystery_prize(
                level=outcome.level,
                score=outcome.score
            )
        except Exception as exc:
            raise OrchestratorStepFailure("mystery_prize", str(exc)) from exc
        if collectible:
            outcome.collectible = collectible
            if self._stats is not None:
                self._stats.record_collectible(collectible)

    async def _rating(self, outcome: FlowOutcome) -> RatingDecision:
        outcome.stars = stars_for(self._config, outcome.score)
        outcome.passed = outcome.stars >= 1
        try:
            decision = await self._presenter.show_rating(
                score=outcome.score,
                stars=outcome.stars,
                passed=outcome.passed,
                thresholds=self._config.scoring.star_thresholds,
                endless=self._host.level_state.endless
            )
        except Exception as exc:
            raise OrchestratorStepFailure("rating", str(exc)) from exc
        if decision is None:
            decision = RatingDecision()
        return decision

    def _transition(self, decision: RatingDecision, outcome: FlowOutcome) -> None:
        outcome.action = decision.action
        endless = self._host.level_state.endless

        if decision.action == "quit":
            outcome.next_level = None
            return

        if decision.action == "continue" and outcome.passed:
            next_level, reset_score = outcome.level + 1, False
        else:
            # Retry; endless keeps the running score
            next_level, reset_score = outcome.level, not endless

        outcome.next_level = next_level
        try:
            self._host.start_level(next_level, reset_score=reset_score)
        except Exception as exc:
            raise OrchestratorStepFailure("transition", str(exc)) from exc
