"""
Interactive CLI adapter for the scene composer.

Architectural role:
- Lets an operator play both sides of a chat and trigger scene captures.
- Delegates all capture work to `scene_composer.core.engine`.

Request lifecycle (per input line):
1. Read stdin (off the event loop, so scheduled follow-ups keep running).
2. Handle local commands (`exit`/`quit`, `/bot`, `/capture`, `/state`, `/wait`).
3. Record any other text as a user message.

Error handling strategy:
- Configuration errors abort startup with a message.
- EOF and keyboard interrupts terminate the loop without traceback output.

Side effects:
- Loads `.env` and configures logging from `SCENE_LOG_LEVEL`.
- Writes to stdout for operator feedback.
"""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import json
import logging
import os

from scene_composer.core.engine import GenerationOrchestrator, build_orchestrator
from scene_composer.core.errors import ConfigurationError
from scene_composer.core.scheduler import AsyncioScheduler


HELP_TEXT = (
    "Commands:\n"
    " <text>         record a user message\n"
    " /bot <text>    record a bot message\n"
    " /capture       capture the current scene\n"
    " /state         print the session snapshot\n"
    " /wait          wait for scheduled follow-ups (refinement, progress reset)\n"
    " exit | quit    leave\n"
)


def configure_logging() -> None:
    level = os.getenv("SCENE_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def print_status(orchestrator: GenerationOrchestrator) -> None:
    state = orchestrator.state
    print(f"Status: {state.progress}")
    if state.error_message:
        print(f"Error: {state.error_message}")
    if state.last_image_url:
        print(f"Image: {state.last_image_url}")
    if state.scene_context:
        context = state.scene_context
        print(f"Scene: {', '.join(context.characters)} | {context.location} | {context.mood}")
    if state.stats.total_invocations:
        suffix = " | Refinement enabled" if orchestrator.config.enable_refinement else ""
        print(f"{state.summary()}{suffix}")


async def run_repl(orchestrator: GenerationOrchestrator) -> None:
    """Read commands until exit; captures run on the same event loop."""
    print("Scene composer started. (Type 'exit' to quit, '/help' for commands)")
    print(
        f"{orchestrator.config.scene_style} | {orchestrator.config.image_api_provider}"
        f" | {orchestrator.config.image_quality}"
    )
    print("-" * 60)

    while True:
        try:
            line = (await asyncio.to_thread(input, "> ")).strip()
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("\nOperation cancelled by user.")
            break

        if not line:
            continue

        lowered = line.lower()

        if lowered in ("exit", "quit"):
            break

        if lowered == "/help":
            print(HELP_TEXT)
            continue

        if lowered.startswith("/bot "):
            orchestrator.messages.record_bot(line[len("/bot "):].strip())
            continue

        if lowered == "/capture":
            await orchestrator.capture()
            print_status(orchestrator)
            continue

        if lowered == "/state":
            print(json.dumps(orchestrator.state.snapshot(), indent=2))
            continue

        if lowered == "/wait":
            if isinstance(orchestrator.scheduler, AsyncioScheduler):
                await orchestrator.scheduler.drain()
            print_status(orchestrator)
            continue

        orchestrator.messages.record_user(line)


def main():
    """Run the CLI loop."""
    configure_logging()

    try:
        orchestrator = build_orchestrator()
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return

    try:
        asyncio.run(run_repl(orchestrator))
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")


if __name__ == "__main__":
    main()
