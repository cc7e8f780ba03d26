from __future__ import annotations

import dataclasses
import json

import pytest

from scene_composer.core.errors import (
    ConfigurationError,
    GenerationError,
    GenerationErrorKind,
    RefinementError,
)
from scene_composer.core.types import (
    IDLE_PROGRESS,
    CharacterReference,
    GenerationJob,
    JobStatus,
    RefinementAttempt,
    SceneContext,
    SessionState,
    VerificationResult,
)


def test_job_moves_forward_to_a_terminal_status() -> None:
    job = GenerationJob(id="gen-1", prompt="p")

    job.advance(JobStatus.POLLING)
    job.advance(JobStatus.POLLING)
    job.advance(JobStatus.COMPLETED)

    assert job.status is JobStatus.COMPLETED
    assert job.status.is_terminal


def test_job_can_finish_without_polling() -> None:
    job = GenerationJob(id="gen-1", prompt="p")

    job.advance(JobStatus.FAILED)

    assert job.status is JobStatus.FAILED


@pytest.mark.parametrize(
    "path, target",
    [
        ((JobStatus.POLLING,), JobStatus.SUBMITTED),
        ((JobStatus.COMPLETED,), JobStatus.FAILED),
        ((JobStatus.POLLING, JobStatus.TIMED_OUT), JobStatus.POLLING),
        ((JobStatus.FAILED,), JobStatus.COMPLETED),
    ],
)
def test_job_rejects_regressions_and_leaving_terminal(path, target) -> None:
    job = GenerationJob(id="gen-1", prompt="p")
    for status in path:
        job.advance(status)

    with pytest.raises(ValueError):
        job.advance(target)


def test_progress_reset_only_when_idle() -> None:
    state = SessionState(progress="Scene captured successfully!")

    state.in_flight = True
    assert state.reset_progress_if_idle() is False
    state.in_flight = False
    state.is_refining = True
    assert state.reset_progress_if_idle() is False
    assert state.progress == "Scene captured successfully!"

    state.is_refining = False
    assert state.reset_progress_if_idle() is True
    assert state.progress == IDLE_PROGRESS


def test_snapshot_is_json_serialisable() -> None:
    state = SessionState(
        last_image_url="https://img.example/base.png",
        scene_context=SceneContext(["Smith"], "library", "reading", "calm", "night"),
        available_characters=[
            CharacterReference("smith", "Smith", "https://img/a.png", ("https://img/g.png",))
        ],
        last_refinement=RefinementAttempt(
            "https://img.example/base.png",
            VerificationResult(True, ("Lighting needs enhancement",)),
        ),
    )
    state.stats.total_invocations = 2
    state.stats.successful_invocations = 1

    snapshot = json.loads(json.dumps(state.snapshot()))

    assert snapshot["scene_context"]["characters"] == ["Smith"]
    assert snapshot["available_characters"][0]["gallery_images"] == ["https://img/g.png"]
    assert snapshot["last_refinement"]["verification"]["issues"] == [
        "Lighting needs enhancement"
    ]
    assert snapshot["stats"]["total_invocations"] == 2
    assert snapshot["summary"] == "Generations: 1/2 successful"
    assert state.stats.failed_invocations == 1


def test_error_messages() -> None:
    assert str(GenerationError(GenerationErrorKind.TIMEOUT)) == "Image generation timed out"
    detailed = GenerationError(GenerationErrorKind.NETWORK, "connection refused")
    assert str(detailed) == "connection refused"
    assert detailed.user_message() == "Image generation failed - check API connection"
    assert RefinementError("bad").user_message() == "Refinement error: bad"
    assert ConfigurationError("No key").user_message() == "No key"


def test_scene_context_is_immutable() -> None:
    context = SceneContext(["Smith"], "library", "reading", "calm", "night")

    with pytest.raises(dataclasses.FrozenInstanceError):
        context.location = "garden"
