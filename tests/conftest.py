"""Shared fixtures for the test suite."""
from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from scene_composer.core.settings import ComposerConfig
from scene_composer.core.types import GenerationJob, JobStatus
from scene_composer.memory.message_buffer import RecentMessageBuffer

ENV_VARS = {
    "CHUB_API_KEY",
    "POE_FLUX_API_KEY",
}


@pytest.fixture(autouse=True)
def _clear_key_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Ensure credentials from the developer environment never leak into tests."""

    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Key files are resolved relative to the working directory.
    monkeypatch.chdir(tmp_path)


class ManualScheduler:
    """Virtual clock: sleeps return immediately, follow-ups run on demand."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []
        self.scheduled: list[float] = []
        self._pending: list[tuple[float, int, Any]] = []
        self._seq = 0

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)

    def call_later(self, delay: float, follow_up) -> None:
        self.scheduled.append(delay)
        self._seq += 1
        self._pending.append((self.now + delay, self._seq, follow_up))

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def run_next(self) -> None:
        item = min(self._pending, key=lambda entry: (entry[0], entry[1]))
        self._pending.remove(item)
        self.now = max(self.now, item[0])
        await item[2]()

    async def run_all(self, limit: int = 100) -> None:
        for _ in range(limit):
            if not self._pending:
                return
            await self.run_next()
        raise AssertionError("Scheduled follow-ups did not settle")


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


class FakeJobApi:
    """`httpx.MockTransport` handler emulating the submit/check job API."""

    def __init__(
        self,
        submit_body: dict | None = None,
        submit_status: int = 200,
        poll_bodies: list[Any] | None = None,
    ) -> None:
        self.submit_body = submit_body if submit_body is not None else {"generation_uuid": "gen-1"}
        self.submit_status = submit_status
        self.poll_bodies = list(poll_bodies or [{"is_done": False}])
        self.submits: list[httpx.Request] = []
        self.checks: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/images/"):
            self.submits.append(request)
            if isinstance(self.submit_body, Exception):
                raise self.submit_body
            return httpx.Response(self.submit_status, json=self.submit_body)

        if request.url.path == "/check":
            self.checks.append(request)
            index = min(len(self.checks), len(self.poll_bodies)) - 1
            body = self.poll_bodies[index]
            if isinstance(body, Exception):
                raise body
            if isinstance(body, httpx.Response):
                return body
            return httpx.Response(200, json=body)

        return httpx.Response(404, json={"error": "not found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def submit_payload(self, index: int = 0) -> dict:
        return json.loads(self.submits[index].content)


class FakeJobClient:
    """Stand-in for `GenerationJobClient` recording every submission."""

    def __init__(
        self,
        urls: list[str] | None = None,
        errors: dict[int, Exception] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.urls = urls or ["https://img.example/base.png", "https://img.example/refined.png"]
        self.errors = errors or {}
        self.gate = gate
        self.calls: list[dict[str, Any]] = []

    async def submit(self, prompt, reference_image_url=None, on_progress=None):
        self.calls.append({"prompt": prompt, "reference": reference_image_url})
        number = len(self.calls)
        if on_progress is not None:
            on_progress(1, 60)
        if self.gate is not None:
            await self.gate.wait()
        if number in self.errors:
            raise self.errors[number]

        job = GenerationJob(id=f"job-{number}", prompt=prompt, reference_image_url=reference_image_url)
        job.result_url = self.urls[min(number, len(self.urls)) - 1]
        job.advance(JobStatus.COMPLETED)
        return job


class FixedVerifier:
    """Verification strategy with a predetermined answer."""

    def __init__(self, needs_improvement: bool, issues=("Lighting needs enhancement",)) -> None:
        self.needs_improvement = needs_improvement
        self.issues = tuple(issues) if needs_improvement else ()
        self.calls = 0

    async def verify(self, image_url, context):
        from scene_composer.core.types import VerificationResult

        self.calls += 1
        return VerificationResult(self.needs_improvement, self.issues)


@pytest.fixture
def config() -> ComposerConfig:
    return ComposerConfig(
        image_api_provider="chub",
        image_quality="standard",
        max_characters=3,
        scene_style="cinematic",
        enable_refinement=False,
        api_key="test-key",
    )


@pytest.fixture
def messages() -> RecentMessageBuffer:
    buffer = RecentMessageBuffer()
    buffer.record_user("Professor Smith said hello in the library at sunset.")
    buffer.record_bot("A romantic mood fills the room.")
    return buffer
