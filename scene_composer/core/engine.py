"""Scene-capture orchestration: chat text in, generated scene image out.

Architectural role:
    Public entry point used by the API/CLI adapters. One `GenerationOrchestrator`
    owns one `SessionState` for one conversation and is the only writer of it
    (refinement writes through the controller it owns).

Control-flow model (one `capture` call):
    1. Single-flight guard: return immediately if a capture is in flight.
    2. Resolve the provider credential; abort without any network call if absent.
    3. Extract a `SceneContext` from the recent message window.
    4. Resolve character references and pick the best img2img reference.
    5. Compose the prompt and submit the job; progress follows each poll.
    6. On success record the artifact and optionally schedule one refinement.
    7. Schedule the idle progress reset after a grace delay.

Error handling strategy:
    No exception crosses `capture`. `SceneComposerError` subclasses map to
    user-facing messages; anything else is logged with traceback and reported
    as a generic error. A failed capture leaves the session usable.

Concurrency:
    Cooperative, single event loop. The in-flight check and flag update happen
    without an intervening suspension point, so the guard needs no lock.

Determinism:
    Extraction, reference ranking and prompt assembly are deterministic for a
    fixed message window. Generation, timing and the default verification
    strategy are not.
"""

import logging
import time
from dataclasses import replace
from typing import Callable

from scene_composer.core.errors import ConfigurationError, GenerationError, SceneComposerError
from scene_composer.core.refinement import (
    PROGRESS_RESET_DELAY_SECONDS,
    RefinementController,
    VerificationStrategy,
)
from scene_composer.core.scheduler import AsyncioScheduler, Scheduler
from scene_composer.core.settings import ComposerConfig
from scene_composer.core.types import SessionState
from scene_composer.image.job_client import GenerationJobClient, JobClientSettings
from scene_composer.memory.message_buffer import (
    RECENT_MESSAGE_COUNT,
    MessageSource,
    RecentMessageBuffer,
    combine_messages,
)
from scene_composer.nlp.scene_extractor import extract_scene_context
from scene_composer.prompting.prompt_builder import build_scene_prompt
from scene_composer.retrieval.character_refs import (
    CharacterLookup,
    CharacterReferenceResolver,
    select_reference_image,
)


logger = logging.getLogger(__name__)


class GenerationOrchestrator:
    """Runs scene captures for one conversation session."""

    def __init__(
        self,
        config: ComposerConfig,
        messages: MessageSource | None = None,
        job_client: GenerationJobClient | None = None,
        lookup: CharacterLookup | None = None,
        verifier: VerificationStrategy | None = None,
        scheduler: Scheduler | None = None,
        job_settings: JobClientSettings | None = None,
        clock: Callable[[], float] = time.time,
        reset_delay: float = PROGRESS_RESET_DELAY_SECONDS,
    ) -> None:
        self.config = config
        self.messages = messages if messages is not None else RecentMessageBuffer()
        self.scheduler = scheduler or AsyncioScheduler()
        self.resolver = CharacterReferenceResolver(lookup)
        self.job_settings = job_settings
        self.job_client = job_client
        self.clock = clock
        self.reset_delay = reset_delay
        self.state = SessionState()
        self._capture_scheduled = False
        self.refinement = RefinementController(
            job_client,
            self.state,
            self.scheduler,
            style=config.scene_style,
            verifier=verifier,
            reset_delay=reset_delay,
        )

    async def capture(self) -> None:
        """Capture the current scene; observe the result through `self.state`."""
        state = self.state
        # Any run queued by `start_capture` has now started.
        self._capture_scheduled = False

        if state.in_flight:
            logger.warning("Scene capture already in flight; ignoring request")
            return

        state.in_flight = True
        state.error_message = None
        state.progress = "Analyzing scene context..."
        state.stats.total_invocations += 1
        state.last_generation_time = self.clock()
        logger.info("Scene capture #%d started", state.stats.total_invocations)

        try:
            await self._run_capture()
        except SceneComposerError as exc:
            self._record_failure(exc)
        except Exception as exc:
            logger.exception("Scene capture error")
            state.progress = "Error occurred"
            state.error_message = str(exc) or "Unknown error occurred"
            state.stats.last_error = state.error_message
        finally:
            state.in_flight = False
            self.scheduler.call_later(self.reset_delay, self._reset_progress)

    def start_capture(self) -> bool:
        """Schedule `capture` without waiting.

        Returns `False` when a capture is already in flight or already
        scheduled but not yet started.
        """
        if self.state.in_flight or self._capture_scheduled:
            return False
        self._capture_scheduled = True
        self.scheduler.call_later(0, self.capture)
        return True

    async def _run_capture(self) -> None:
        state = self.state

        api_key = self.config.resolve_api_key()
        if not api_key:
            raise ConfigurationError(f"No {self.config.image_api_provider} API key configured")
        job_client = self._ensure_job_client(api_key)

        text = combine_messages(self.messages.recent(RECENT_MESSAGE_COUNT))
        context = extract_scene_context(text, self.config.max_characters)

        state.progress = "Fetching character references..."
        names, references = await self.resolver.resolve(context.characters)
        state.available_characters = references
        context = replace(context, characters=names)
        state.scene_context = context

        prompt = build_scene_prompt(context, self.config.scene_style)
        reference_url = select_reference_image(references)

        state.progress = "Generating scene image..."
        job = await job_client.submit(prompt, reference_url, on_progress=self._on_progress)

        state.last_image_url = job.result_url
        state.progress = "Scene captured successfully!"
        state.stats.successful_invocations += 1
        logger.info("Scene captured: %s", job.result_url)

        if self.config.enable_refinement and not state.is_refining:
            self.refinement.schedule(job.result_url, context)

    def _ensure_job_client(self, api_key: str) -> GenerationJobClient:
        if self.job_client is None:
            self.job_client = GenerationJobClient(
                api_key,
                provider=self.config.image_api_provider,
                quality=self.config.image_quality,
                settings=self.job_settings,
                scheduler=self.scheduler,
            )
        self.refinement.job_client = self.job_client
        return self.job_client

    def _record_failure(self, exc: SceneComposerError) -> None:
        state = self.state
        state.progress = "Generation failed"
        state.error_message = exc.user_message()
        if isinstance(exc, GenerationError):
            state.stats.last_error = f"{exc.kind.value}: {exc}"
        else:
            state.stats.last_error = str(exc)
        logger.error("Scene capture failed: %s", state.stats.last_error)

    def _on_progress(self, attempt: int, max_attempts: int) -> None:
        self.state.progress = f"Generating... {attempt}/{max_attempts}"

    async def _reset_progress(self) -> None:
        self.state.reset_progress_if_idle()


def build_orchestrator(
    raw_config=None,
    messages: MessageSource | None = None,
    lookup: CharacterLookup | None = None,
    **kwargs,
) -> GenerationOrchestrator:
    """Create an orchestrator from the host's configuration bundle."""
    config = ComposerConfig.from_mapping(raw_config)
    return GenerationOrchestrator(config, messages=messages, lookup=lookup, **kwargs)
