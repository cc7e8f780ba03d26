"""Asynchronous generation-job client.

Processing flow:
    1. Build submission payload from prompt + quality-derived steps (+ optional
       img2img reference).
    2. Submit the job (`text2img` or `img2img` endpoint).
    3. Short-circuit when the submit response already carries a finished result.
    4. Poll the status endpoint with a fixed interval, up to a fixed number of
       attempts, normalizing each response through `image.status`.
    5. Return the job in `COMPLETED` status, or raise `GenerationError`.

Error handling strategy:
    - Submit transport failure/timeout -> `GenerationError(NETWORK)`.
    - Submit HTTP error status, undecodable body, or missing job id ->
      `GenerationError(REMOTE_FAILURE)`.
    - Explicit failed status (submit or poll) -> `GenerationError(REMOTE_FAILURE)`.
    - A single poll attempt that fails (transport, status, JSON) is logged and
      counted as pending; it never aborts the loop.
    - Exhausting all poll attempts -> `GenerationError(TIMEOUT)`.

Determinism:
    - Request construction and polling policy are deterministic apart from the
      per-request `uuid` field.
    - Completion timing and generated output are non-deterministic externally.

Security considerations:
    - The API key is sent only as a request header and never logged.

Performance characteristics:
    - Non-blocking `httpx.AsyncClient` requests; waits go through the injected
      `Scheduler`, bounded by `max_poll_attempts * poll_interval_seconds` plus
      per-request timeouts.
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from scene_composer.core.errors import GenerationError, GenerationErrorKind
from scene_composer.core.scheduler import AsyncioScheduler, Scheduler
from scene_composer.core.types import GenerationJob, JobStatus, PollOutcome, PollResult
from scene_composer.image.provider_config import provider_endpoints
from scene_composer.image.status import normalize_status


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

JOB_ID_FIELDS = ("generation_uuid", "job_id", "id")


@dataclass(frozen=True)
class JobClientSettings:
    """Fixed request and polling parameters.

    Relevant environment variables:
        - `SCENE_IMAGE_WIDTH`, `SCENE_IMAGE_HEIGHT`
        - `SCENE_SUBMIT_TIMEOUT_SECONDS`, `SCENE_POLL_TIMEOUT_SECONDS`
        - `SCENE_POLL_INTERVAL_SECONDS`, `SCENE_MAX_POLL_ATTEMPTS`
    """

    width: int = int(os.getenv("SCENE_IMAGE_WIDTH", "1024"))
    height: int = int(os.getenv("SCENE_IMAGE_HEIGHT", "1024"))
    standard_steps: int = 30
    high_steps: int = 50
    guidance_scale: float = 3.5
    img2img_strength: float = 0.7
    submit_timeout_seconds: float = float(os.getenv("SCENE_SUBMIT_TIMEOUT_SECONDS", "60"))
    poll_timeout_seconds: float = float(os.getenv("SCENE_POLL_TIMEOUT_SECONDS", "5"))
    poll_interval_seconds: float = float(os.getenv("SCENE_POLL_INTERVAL_SECONDS", "2"))
    max_poll_attempts: int = int(os.getenv("SCENE_MAX_POLL_ATTEMPTS", "60"))
    extension_source: str = "Visual Scene Composer"
    chat_id: str = "stage"


class GenerationJobClient:
    """Submit prompts to the job API and wait for a terminal status."""

    def __init__(
        self,
        api_key: str,
        provider: str = "chub",
        quality: str = "standard",
        settings: JobClientSettings | None = None,
        scheduler: Scheduler | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Provider credential sent in the provider's key header.
            provider: Key into `provider_config.IMAGE_PROVIDERS`.
            quality: `standard` or `high`; selects the step count.
            settings: Request/polling parameters.
            scheduler: Clock used for poll delays.
            transport: Optional httpx transport (tests use `httpx.MockTransport`).
        """
        self.endpoints = provider_endpoints(provider)
        self.provider = provider
        self.api_key = api_key
        self.quality = quality
        self.settings = settings or JobClientSettings()
        self.scheduler = scheduler or AsyncioScheduler()
        self._transport = transport

    @property
    def steps(self) -> int:
        if self.quality == "high":
            return self.settings.high_steps
        return self.settings.standard_steps

    def build_payload(self, prompt: str, reference_image_url: str | None = None) -> dict[str, Any]:
        """Build the submit body; img2img adds `init_image` and `strength`."""
        payload: dict[str, Any] = {
            "prompt": prompt,
            "width": self.settings.width,
            "height": self.settings.height,
            "num_inference_steps": self.steps,
            "guidance_scale": self.settings.guidance_scale,
            "seed": 0,
            "extension_source": self.settings.extension_source,
            "chat_id": self.settings.chat_id,
            "uuid": str(uuid.uuid4()),
            "mode": "standard",
            "sub_mode": "default",
            "parent_image": "",
            "item_id": "",
        }

        if reference_image_url:
            payload["init_image"] = reference_image_url
            payload["strength"] = self.settings.img2img_strength

        return payload

    async def submit(
        self,
        prompt: str,
        reference_image_url: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationJob:
        """Submit one job and wait for its terminal status.

        Args:
            prompt: Generation prompt.
            reference_image_url: Optional img2img reference.
            on_progress: Called with `(attempt, max_attempts)` before each poll.

        Returns:
            The job in `COMPLETED` status with `result_url` set.

        Raises:
            GenerationError: For network, remote-failure, and timeout outcomes.
        """
        data = await self._submit_request(prompt, reference_image_url)

        job_id = next((str(data[f]) for f in JOB_ID_FIELDS if data.get(f)), None)
        if not job_id:
            logger.error("No generation id received from %s", self.provider)
            raise GenerationError(
                GenerationErrorKind.REMOTE_FAILURE, "No generation id received"
            )

        job = GenerationJob(id=job_id, prompt=prompt, reference_image_url=reference_image_url)
        logger.info("Submitted generation job %s (img2img=%s)", job.id, bool(reference_image_url))

        immediate = normalize_status(data)
        if immediate.outcome is not PollOutcome.PENDING:
            return self._finish(job, immediate)

        job.advance(JobStatus.POLLING)
        max_attempts = self.settings.max_poll_attempts

        for attempt in range(1, max_attempts + 1):
            job.attempt = attempt
            if on_progress is not None:
                on_progress(attempt, max_attempts)

            await self.scheduler.sleep(self.settings.poll_interval_seconds)

            result = await self._check_status(job)
            if result.outcome is not PollOutcome.PENDING:
                return self._finish(job, result)

        job.advance(JobStatus.TIMED_OUT)
        logger.error("Generation job %s timed out after %d attempts", job.id, max_attempts)
        raise GenerationError(
            GenerationErrorKind.TIMEOUT,
            f"Generation timed out after {max_attempts} attempts",
            job=job,
        )

    def _finish(self, job: GenerationJob, result: PollResult) -> GenerationJob:
        if result.outcome is PollOutcome.COMPLETED:
            job.result_url = result.url
            job.advance(JobStatus.COMPLETED)
            logger.info("Generation job %s completed after %d polls", job.id, job.attempt)
            return job

        job.advance(JobStatus.FAILED)
        logger.error("Generation job %s reported failure", job.id)
        raise GenerationError(
            GenerationErrorKind.REMOTE_FAILURE, "Generation reported failure", job=job
        )

    def _client(self, timeout: float) -> httpx.AsyncClient:
        headers = {
            self.endpoints["key_header"]: self.api_key,
            "Content-Type": "application/json",
        }
        return httpx.AsyncClient(timeout=timeout, headers=headers, transport=self._transport)

    async def _submit_request(self, prompt: str, reference_image_url: str | None) -> dict[str, Any]:
        path_key = "img2img_path" if reference_image_url else "text2img_path"
        url = f"{self.endpoints['base_url']}{self.endpoints[path_key]}"
        payload = self.build_payload(prompt, reference_image_url)
        logger.debug("Sending image generation request to %s: %s", url, payload)

        try:
            async with self._client(self.settings.submit_timeout_seconds) as client:
                response = await client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise GenerationError(
                GenerationErrorKind.REMOTE_FAILURE,
                f"Submit rejected with status {exc.response.status_code}",
            ) from exc
        except httpx.RequestError as exc:
            raise GenerationError(
                GenerationErrorKind.NETWORK, f"Submit request failed: {exc}"
            ) from exc
        except ValueError as exc:
            raise GenerationError(
                GenerationErrorKind.REMOTE_FAILURE, "Submit response was not valid JSON"
            ) from exc

        if not isinstance(data, dict):
            raise GenerationError(
                GenerationErrorKind.REMOTE_FAILURE, "Submit response was not a JSON object"
            )
        return data

    async def _check_status(self, job: GenerationJob) -> PollResult:
        url = f"{self.endpoints['base_url']}{self.endpoints['check_path']}"
        body = {"generation_uuid": job.id, "request_type": "image"}

        try:
            async with self._client(self.settings.poll_timeout_seconds) as client:
                response = await client.post(url, json=body)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Poll attempt %d for job %s failed: %s", job.attempt, job.id, exc)
            return PollResult.pending()

        logger.debug("Poll attempt %d for job %s: %s", job.attempt, job.id, data)
        return normalize_status(data)
