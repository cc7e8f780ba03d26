"""Single-pass verify -> feedback -> regenerate refinement.

Control-flow model:
    IDLE -> VERIFYING -> NOT_NEEDED -> IDLE
                      -> IMPROVING -> REGENERATING -> IDLE
                                                   -> FAILED -> IDLE
    Any unexpected failure while verifying or improving also lands in FAILED.

Bounding:
    Exactly one regeneration attempt per refinement; no retries, no iterative
    convergence. A failed regeneration leaves the base artifact untouched.

Mutual exclusion:
    `refine` is a no-op while a refinement for the same session is running.
    This is independent of the base-capture single-flight in `engine`.

Verification:
    Pluggable through `VerificationStrategy`. The default
    `RandomVerificationStrategy` is a placeholder decision, not image analysis.

Side effects:
    Mutates the owning session's `SessionState` (progress, `is_refining`,
    `last_image_url`, `last_refinement`, `error_message`, stats) and schedules
    the post-refinement progress reset.
"""

from __future__ import annotations

import enum
import logging
import random
from typing import Protocol

from scene_composer.core.errors import GenerationError, RefinementError
from scene_composer.core.scheduler import Scheduler
from scene_composer.core.types import (
    RefinementAttempt,
    SceneContext,
    SessionState,
    VerificationResult,
)
from scene_composer.prompting.prompt_builder import build_feedback, build_refined_prompt


logger = logging.getLogger(__name__)

REFINEMENT_START_DELAY_SECONDS = 2.0
PROGRESS_RESET_DELAY_SECONDS = 3.0


class VerificationStrategy(Protocol):
    """Decide whether a generated artifact needs another pass."""

    async def verify(self, image_url: str, context: SceneContext) -> VerificationResult:
        ...


class RandomVerificationStrategy:
    """Placeholder verifier: flags improvement when a random draw exceeds `threshold`."""

    DEFAULT_ISSUES = (
        "Character positioning could be improved",
        "Lighting needs enhancement",
    )

    def __init__(self, threshold: float = 0.7, rng: random.Random | None = None) -> None:
        self.threshold = threshold
        self.rng = rng or random.Random()

    async def verify(self, image_url: str, context: SceneContext) -> VerificationResult:
        if self.rng.random() > self.threshold:
            return VerificationResult(needs_improvement=True, issues=self.DEFAULT_ISSUES)
        return VerificationResult(needs_improvement=False)


class RefinementPhase(enum.Enum):
    IDLE = "idle"
    VERIFYING = "verifying"
    NOT_NEEDED = "not_needed"
    IMPROVING = "improving"
    REGENERATING = "regenerating"
    FAILED = "failed"


_TRANSITIONS = {
    RefinementPhase.IDLE: {RefinementPhase.VERIFYING},
    RefinementPhase.VERIFYING: {
        RefinementPhase.NOT_NEEDED,
        RefinementPhase.IMPROVING,
        RefinementPhase.FAILED,
    },
    RefinementPhase.NOT_NEEDED: {RefinementPhase.IDLE},
    RefinementPhase.IMPROVING: {RefinementPhase.REGENERATING, RefinementPhase.FAILED},
    RefinementPhase.REGENERATING: {RefinementPhase.IDLE, RefinementPhase.FAILED},
    RefinementPhase.FAILED: {RefinementPhase.IDLE},
}


class RefinementController:
    """Runs at most one refinement pass at a time for one session."""

    def __init__(
        self,
        job_client,
        state: SessionState,
        scheduler: Scheduler,
        style: str,
        verifier: VerificationStrategy | None = None,
        start_delay: float = REFINEMENT_START_DELAY_SECONDS,
        reset_delay: float = PROGRESS_RESET_DELAY_SECONDS,
    ) -> None:
        self.job_client = job_client
        self.state = state
        self.scheduler = scheduler
        self.style = style
        self.verifier = verifier or RandomVerificationStrategy()
        self.start_delay = start_delay
        self.reset_delay = reset_delay
        self.phase = RefinementPhase.IDLE
        self.history: list[RefinementPhase] = [RefinementPhase.IDLE]

    def schedule(self, base_image_url: str, context: SceneContext) -> None:
        """Defer one refinement pass; fire-and-forget for the caller."""

        async def run() -> None:
            await self.refine(base_image_url, context)

        logger.info("Scheduling refinement in %.1fs", self.start_delay)
        self.scheduler.call_later(self.start_delay, run)

    async def refine(self, base_image_url: str, context: SceneContext) -> str | None:
        """Run verify -> feedback -> regenerate once.

        Args:
            base_image_url: Completed base artifact; used as the img2img reference.
            context: Scene context of the base capture.

        Returns:
            The refined artifact URL, or `None` when refinement was skipped, not
            needed, or failed.
        """
        if self.state.is_refining:
            logger.warning("Refinement already running; skipping new request")
            return None

        self.state.is_refining = True
        self.state.progress = "Starting refinement process..."

        try:
            return await self._run(base_image_url, context)
        except RefinementError as exc:
            logger.error("Refinement failed: %s", exc)
            self._fail(exc)
            return None
        except Exception as exc:
            logger.exception("Refinement process error")
            self._fail(RefinementError(str(exc)))
            return None
        finally:
            if self.phase is not RefinementPhase.IDLE:
                self._transition(RefinementPhase.IDLE)
            self.state.is_refining = False
            self.scheduler.call_later(self.reset_delay, self._reset_progress)

    async def _run(self, base_image_url: str, context: SceneContext) -> str | None:
        self._transition(RefinementPhase.VERIFYING)
        verification = await self.verifier.verify(base_image_url, context)
        attempt = RefinementAttempt(source_image_url=base_image_url, verification=verification)
        self.state.last_refinement = attempt

        if not verification.needs_improvement:
            self._transition(RefinementPhase.NOT_NEEDED)
            logger.info("Verification passed; no refinement needed")
            self.state.progress = "Image quality verified - no refinement needed"
            return None

        self._transition(RefinementPhase.IMPROVING)
        attempt.feedback = build_feedback(verification.issues, context.mood)
        attempt.refined_prompt = build_refined_prompt(context, self.style, attempt.feedback)
        logger.info("Refining image: %s", attempt.feedback)

        self._transition(RefinementPhase.REGENERATING)
        self.state.progress = "Refining image..."

        try:
            job = await self.job_client.submit(
                attempt.refined_prompt,
                base_image_url,
                on_progress=self._on_progress,
            )
        except GenerationError as exc:
            raise RefinementError(exc.user_message()) from exc

        attempt.outcome = job.result_url
        self.state.last_image_url = job.result_url
        self.state.stats.refined_invocations += 1
        self.state.progress = "Refinement complete!"
        return job.result_url

    def _fail(self, error: RefinementError) -> None:
        self._transition(RefinementPhase.FAILED)
        self.state.progress = "Refinement failed"
        self.state.error_message = error.user_message()

    def _on_progress(self, attempt: int, max_attempts: int) -> None:
        self.state.progress = f"Generating... {attempt}/{max_attempts}"

    def _transition(self, phase: RefinementPhase) -> None:
        if phase not in _TRANSITIONS[self.phase]:
            raise RuntimeError(f"Invalid refinement transition {self.phase.value} -> {phase.value}")
        self.phase = phase
        self.history.append(phase)

    async def _reset_progress(self) -> None:
        self.state.reset_progress_if_idle()
