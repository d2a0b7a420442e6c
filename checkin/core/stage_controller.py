"""
Stage Controller - State machine for the check-in interview stages.

Tracks the current stage and the number of completed exchanges in it, and
decides after each exchange whether the interview moves on. Stages whose
data prerequisite is missing from the user context are skipped.
"""

import logging
import math
from typing import Callable

from checkin.models.context import UserContext
from checkin.models.stage import Stage

logger = logging.getLogger(__name__)


# Completed exchanges required before a stage is left
STAGE_THRESHOLDS: dict[Stage, float] = {
    Stage.MOOD: 2,
    Stage.GOALS: 3,
    Stage.CHALLENGES: 2,
    Stage.HABITS: 2,
    Stage.GENERAL: 2,
    Stage.OPEN: math.inf,
}


def threshold(stage: Stage) -> float:
    """Exchange count at which a stage is considered done."""
    return STAGE_THRESHOLDS[stage]


class StageController:
    """
    Finite state machine over the fixed stage order.

    Local progression only moves forward:
        mood → goals → challenges → habits → general → open

    A stage signal from the responder is authoritative and may jump to any
    stage; it is applied without re-checking prerequisites.
    """

    def __init__(
        self,
        context: UserContext | None = None,
        initial_stage: Stage = Stage.MOOD,
        on_stage_change: Callable[[Stage, Stage], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ):
        """
        Args:
            context: User context snapshot used for prerequisite checks
            initial_stage: Stage the interview starts in
            on_stage_change: Called with (old, new) on every stage change
            on_complete: Called once, when the interview first reaches open
        """
        self.context = context or UserContext()
        self.stage = initial_stage
        self.exchange_count = 0
        self.interview_complete = False

        self._on_stage_change = on_stage_change
        self._on_complete = on_complete

        if initial_stage.is_terminal:
            self._mark_complete()

    # =========================================================================
    # TRANSITION LOGIC
    # =========================================================================

    def is_eligible(self, stage: Stage) -> bool:
        """Whether the user context satisfies a stage's prerequisite."""
        if stage == Stage.GOALS:
            return self.context.has_active_goal
        if stage == Stage.CHALLENGES:
            return self.context.has_challenges
        if stage == Stage.HABITS:
            return self.context.has_habits
        return True

    def next_eligible(self, after: Stage) -> Stage:
        """First stage following `after` whose prerequisite is met."""
        for candidate in after.following():
            if self.is_eligible(candidate):
                return candidate
        return Stage.OPEN

    def advance(self, current_stage: Stage, exchange_count: int) -> Stage | None:
        """
        Decide where the interview goes after an exchange.

        Args:
            current_stage: Stage the exchange happened in
            exchange_count: Completed exchanges in that stage

        Returns:
            The next stage, or None if the interview stays where it is
        """
        if current_stage.is_terminal:
            return None
        if exchange_count < threshold(current_stage):
            return None
        return self.next_eligible(current_stage)

    def next_stage_hint(self) -> Stage | None:
        """
        Stage the next exchange will lead to, if it will meet the threshold.

        Sent to the responder so it can steer toward the upcoming topic.
        """
        return self.advance(self.stage, self.exchange_count + 1)

    # =========================================================================
    # STATE UPDATES
    # =========================================================================

    def record_exchange(self, stage_signaled: bool = False) -> Stage | None:
        """
        Account for one completed user exchange.

        Args:
            stage_signaled: The responder already moved the stage this turn

        Returns:
            The stage entered by local fallback, or None
        """
        if stage_signaled:
            # Signal already reset the counter for the new stage
            return None
        if self.stage.is_terminal:
            return None

        self.exchange_count += 1
        next_stage = self.advance(self.stage, self.exchange_count)
        if next_stage is not None:
            logger.info(
                f"Stage threshold reached in {self.stage.value} "
                f"after {self.exchange_count} exchanges"
            )
            self._enter(next_stage)
        return next_stage

    def apply_signal(self, stage: Stage) -> None:
        """Apply a responder stage signal: jump and reset the counter."""
        logger.info(f"Responder signaled stage: {stage.value}")
        self._enter(stage)

    def _enter(self, stage: Stage) -> None:
        old_stage = self.stage
        self.stage = stage
        self.exchange_count = 0

        if old_stage != stage:
            logger.info(f"Stage: {old_stage.value} → {stage.value}")
            if self._on_stage_change:
                self._on_stage_change(old_stage, stage)

        if stage.is_terminal:
            self._mark_complete()

    def _mark_complete(self) -> None:
        if self.interview_complete:
            return
        self.interview_complete = True
        logger.info("Interview complete, switching to open conversation")
        if self._on_complete:
            self._on_complete()
