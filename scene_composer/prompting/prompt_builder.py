"""Prompt assembly for the image-generation service.

This module is intentionally narrow: it only builds prompt strings from an
already extracted `SceneContext`. Extraction, reference resolution, and
submission happen outside this module.

Design constraints:
    - Deterministic construction for identical inputs.
    - Fixed ordering of prompt components.
    - No hidden side effects (no I/O, no global state mutation).

Prompt component order (base prompt):
    1) style + "scene:"
    2) characters joined by " and "
    3) actions, "at" location
    4) mood, lighting (time of day)
    5) fixed quality suffix
"""

from typing import Sequence

from scene_composer.core.types import SceneContext


QUALITY_SUFFIX = "high quality, detailed"
REFINEMENT_COMPOSITION = "improved composition"
REFINEMENT_QUALITY_BOOST = "masterpiece quality"


def build_scene_prompt(context: SceneContext, style: str) -> str:
    """Render a scene context into the base generation prompt.

    Args:
        context: Extracted (and possibly enriched) scene context.
        style: Configured scene style, e.g. "cinematic".

    Returns:
        Prompt string.

    Edge cases:
        Inputs are guaranteed non-empty upstream; no validation is applied.
    """
    characters = " and ".join(context.characters)
    return (
        f"{style} scene: {characters} {context.actions} at {context.location}, "
        f"{context.mood} mood, {context.time_of_day} lighting, {QUALITY_SUFFIX}"
    )


def build_feedback(issues: Sequence[str], mood: str) -> str:
    """Join verification issues into one sentence grounded on the scene mood."""
    return ", ".join(issues) + f". Focus on {mood} atmosphere."


def build_refined_prompt(context: SceneContext, style: str, feedback: str) -> str:
    """Build the regeneration prompt: base prompt + feedback + quality boost."""
    base_prompt = build_scene_prompt(context, style)
    return f"{base_prompt}, {REFINEMENT_COMPOSITION}, {feedback}, {REFINEMENT_QUALITY_BOOST}"
