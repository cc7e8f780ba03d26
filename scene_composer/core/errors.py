"""Error taxonomy for the scene-capture pipeline.

Propagation policy:
    Lower layers (job client, refinement) raise these exceptions. The
    orchestrator in `scene_composer.core.engine` is the only place that catches
    them, and it converts each one into `SessionState.error_message` plus a
    stats update. Nothing here crosses the orchestrator boundary.

Classification:
    - `ConfigurationError`: missing credential or invalid option; raised before
      any network call.
    - `GenerationError(kind=NETWORK)`: submit could not be sent or timed out.
    - `GenerationError(kind=REMOTE_FAILURE)`: service rejected the job or
      reported an explicit failure.
    - `GenerationError(kind=TIMEOUT)`: poll attempts exhausted.
    - `RefinementError`: the optional refinement pass failed; the base artifact
      is unaffected.
"""

from __future__ import annotations

import enum

from scene_composer.core.types import GenerationJob


class SceneComposerError(RuntimeError):
    """Base error for the package."""

    def user_message(self) -> str:
        return str(self) or self.__class__.__name__


class ConfigurationError(SceneComposerError):
    """Raised when configuration is missing or invalid."""


class GenerationErrorKind(enum.Enum):
    NETWORK = "network"
    REMOTE_FAILURE = "remote_failure"
    TIMEOUT = "timeout"


_KIND_MESSAGES = {
    GenerationErrorKind.NETWORK: "Image generation failed - check API connection",
    GenerationErrorKind.REMOTE_FAILURE: "Image generation failed - the service rejected the job",
    GenerationErrorKind.TIMEOUT: "Image generation timed out",
}


class GenerationError(SceneComposerError):
    """Fatal failure of one generation job.

    Attributes:
        kind: Failure class.
        job: The job in its terminal status, when one was created.
    """

    def __init__(
        self,
        kind: GenerationErrorKind,
        detail: str = "",
        job: GenerationJob | None = None,
    ) -> None:
        super().__init__(detail or _KIND_MESSAGES[kind])
        self.kind = kind
        self.detail = detail
        self.job = job

    def user_message(self) -> str:
        return _KIND_MESSAGES[self.kind]


class RefinementError(SceneComposerError):
    """Raised when the refinement pass cannot produce a new artifact."""

    def user_message(self) -> str:
        return f"Refinement error: {self}"
