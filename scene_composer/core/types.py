"""Data contracts shared by the scene-capture pipeline.

Architectural role:
    Defines the records passed between extraction, reference resolution, prompt
    composition, the generation job client, refinement, and the orchestrator.

Ownership:
    - `SceneContext` is produced by `nlp.scene_extractor` and treated as a value.
    - `CharacterReference` lists are owned by the resolver result and read-only
      for downstream consumers.
    - `GenerationJob` lives only for the duration of one submission.
    - `SessionState` is owned by exactly one orchestrator per conversation and is
      the only record observers read.

Determinism:
    Purely structural. The only behavior here is lifecycle enforcement on
    `GenerationJob.advance` and serialization in `SessionState.snapshot`.
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field


IDLE_PROGRESS = "Ready"


@dataclass(frozen=True)
class SceneContext:
    """Structured scene description derived from chat text.

    Attributes:
        characters: Ordered, unique character names (first detected first kept).
        location: Canonical location phrase.
        actions: Canonical action phrase.
        mood: Canonical mood phrase.
        time_of_day: Canonical lighting/time phrase.
    """

    characters: list[str]
    location: str
    actions: str
    mood: str
    time_of_day: str


@dataclass(frozen=True)
class CharacterReference:
    """Known image references for one character."""

    character_id: str
    name: str
    avatar_url: str
    gallery_images: tuple[str, ...] = ()
    description: str = ""


class JobStatus(enum.Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.TIMED_OUT)


# Forward-only ordering; terminal statuses share the last rank.
_STATUS_RANK = {
    JobStatus.SUBMITTED: 0,
    JobStatus.POLLING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
    JobStatus.TIMED_OUT: 2,
}


@dataclass
class GenerationJob:
    """One submission to the remote generation service.

    Lifecycle:
        Created as `SUBMITTED`, may move to `POLLING`, and ends in exactly one
        terminal status. `advance` rejects any regression and any transition out
        of a terminal status.
    """

    id: str
    prompt: str
    reference_image_url: str | None = None
    status: JobStatus = JobStatus.SUBMITTED
    result_url: str | None = None
    attempt: int = 0

    def advance(self, status: JobStatus) -> None:
        """Move the job forward to `status`.

        Raises:
            ValueError: If the job is already terminal or `status` would regress.
        """
        if status is self.status:
            return
        if self.status.is_terminal:
            raise ValueError(
                f"Job {self.id} is already {self.status.value}; cannot move to {status.value}"
            )
        if _STATUS_RANK[status] < _STATUS_RANK[self.status]:
            raise ValueError(
                f"Job {self.id} cannot regress from {self.status.value} to {status.value}"
            )
        self.status = status


class PollOutcome(enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PollResult:
    """Canonical result of one status response, whatever the provider shape."""

    outcome: PollOutcome
    url: str | None = None

    @classmethod
    def pending(cls) -> "PollResult":
        return cls(PollOutcome.PENDING)

    @classmethod
    def completed(cls, url: str) -> "PollResult":
        return cls(PollOutcome.COMPLETED, url)

    @classmethod
    def failed(cls) -> "PollResult":
        return cls(PollOutcome.FAILED)


@dataclass(frozen=True)
class VerificationResult:
    needs_improvement: bool
    issues: tuple[str, ...] = ()


@dataclass
class RefinementAttempt:
    """Record of the single refinement cycle of one capture."""

    source_image_url: str
    verification: VerificationResult
    feedback: str = ""
    refined_prompt: str = ""
    outcome: str | None = None


@dataclass
class GenerationStats:
    """Process-lifetime counters owned by the orchestrator."""

    total_invocations: int = 0
    successful_invocations: int = 0
    refined_invocations: int = 0
    last_error: str | None = None

    @property
    def failed_invocations(self) -> int:
        return self.total_invocations - self.successful_invocations


@dataclass
class SessionState:
    """The single observable record of one conversation's scene capture.

    Attributes:
        progress: Human-readable progress label.
        in_flight: A base capture is currently executing.
        is_refining: A refinement pass is currently executing.
        last_image_url: Most recent generated (or refined) artifact.
        error_message: Last user-facing error, cleared at capture start.
        scene_context: Context used by the latest capture.
        available_characters: References resolved by the latest capture.
        last_refinement: Record of the latest refinement attempt, if any.
        last_generation_time: Epoch seconds of the latest capture start.
        stats: Invocation counters.
    """

    progress: str = IDLE_PROGRESS
    in_flight: bool = False
    is_refining: bool = False
    last_image_url: str | None = None
    error_message: str | None = None
    scene_context: SceneContext | None = None
    available_characters: list[CharacterReference] = field(default_factory=list)
    last_refinement: RefinementAttempt | None = None
    last_generation_time: float | None = None
    stats: GenerationStats = field(default_factory=GenerationStats)

    def reset_progress_if_idle(self) -> bool:
        """Return to the idle label unless a capture or refinement is running."""
        if self.in_flight or self.is_refining:
            return False
        self.progress = IDLE_PROGRESS
        return True

    def summary(self) -> str:
        return (
            f"Generations: {self.stats.successful_invocations}/"
            f"{self.stats.total_invocations} successful"
        )

    def snapshot(self) -> dict:
        """Return a JSON-serialisable view for host persistence/display."""
        refinement = None
        if self.last_refinement is not None:
            refinement = asdict(self.last_refinement)
            refinement["verification"]["issues"] = list(
                self.last_refinement.verification.issues
            )

        return {
            "progress": self.progress,
            "in_flight": self.in_flight,
            "is_refining": self.is_refining,
            "last_image_url": self.last_image_url,
            "error_message": self.error_message,
            "scene_context": asdict(self.scene_context) if self.scene_context else None,
            "available_characters": [
                {**asdict(ref), "gallery_images": list(ref.gallery_images)}
                for ref in self.available_characters
            ],
            "last_refinement": refinement,
            "last_generation_time": self.last_generation_time,
            "stats": {
                "total_invocations": self.stats.total_invocations,
                "successful_invocations": self.stats.successful_invocations,
                "refined_invocations": self.stats.refined_invocations,
                "last_error": self.stats.last_error,
            },
            "summary": self.summary(),
        }
