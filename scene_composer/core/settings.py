"""Configuration bundle for one scene-capture session.

Architectural role:
    Translates the host's configuration options (or environment defaults) into a
    validated, immutable `ComposerConfig` consumed by the orchestrator.

Relevant environment variables:
    - `SCENE_IMAGE_PROVIDER` (`chub` | `poe-flux`)
    - `SCENE_IMAGE_QUALITY` (`standard` | `high`)
    - `SCENE_MAX_CHARACTERS`
    - `SCENE_STYLE`
    - `SCENE_ENABLE_REFINEMENT` (`true` | `false`)
    - `CHUB_API_KEY` / `POE_FLUX_API_KEY` (via `provider_config.load_key`)

Failure behavior:
    `from_mapping` and `validate` raise `ConfigurationError` for unknown
    provider/quality values or a non-positive character cap. A missing API key
    is not a validation error here; it is reported when a capture starts.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Mapping

from dotenv import load_dotenv

from scene_composer.core.errors import ConfigurationError
from scene_composer.image.provider_config import IMAGE_PROVIDERS, IMAGE_QUALITIES, load_key

load_dotenv()


@dataclass(frozen=True)
class ComposerConfig:
    """Runtime configuration for `GenerationOrchestrator`.

    Fields default to environment variables read at import time.
    """

    image_api_provider: str = os.getenv("SCENE_IMAGE_PROVIDER", "chub").strip().lower()
    image_quality: str = os.getenv("SCENE_IMAGE_QUALITY", "standard").strip().lower()
    max_characters: int = int(os.getenv("SCENE_MAX_CHARACTERS", "3"))
    scene_style: str = os.getenv("SCENE_STYLE", "cinematic").strip()
    enable_refinement: bool = os.getenv("SCENE_ENABLE_REFINEMENT", "false").strip().lower() == "true"
    api_key: str = ""

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "ComposerConfig":
        """Build a config from the host's option bundle.

        Recognized keys:
            `image_api_provider`, `image_quality`, `max_characters`,
            `scene_style`, `enable_refinement`, and `chub_api_key` or `api_key`.

        Falsy or missing values keep the environment default.
        """
        base = cls()
        raw = raw or {}
        overrides: dict[str, Any] = {}

        if raw.get("image_api_provider"):
            overrides["image_api_provider"] = str(raw["image_api_provider"]).strip().lower()
        if raw.get("image_quality"):
            overrides["image_quality"] = str(raw["image_quality"]).strip().lower()
        if raw.get("max_characters"):
            try:
                overrides["max_characters"] = int(raw["max_characters"])
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(
                    f"max_characters must be an integer, got {raw['max_characters']!r}"
                ) from exc
        if raw.get("scene_style"):
            overrides["scene_style"] = str(raw["scene_style"]).strip()
        if "enable_refinement" in raw and raw["enable_refinement"] is not None:
            overrides["enable_refinement"] = _as_bool(raw["enable_refinement"])

        api_key = raw.get("chub_api_key") or raw.get("api_key")
        if api_key:
            overrides["api_key"] = str(api_key).strip()

        return replace(base, **overrides).validate()

    def validate(self) -> "ComposerConfig":
        if self.image_api_provider not in IMAGE_PROVIDERS:
            raise ConfigurationError(f"Unsupported image_api_provider: {self.image_api_provider}")
        if self.image_quality not in IMAGE_QUALITIES:
            raise ConfigurationError(f"Unsupported image_quality: {self.image_quality}")
        if self.max_characters < 1:
            raise ConfigurationError("max_characters must be at least 1")
        return self

    def resolve_api_key(self) -> str | None:
        """Return the explicit key, else the provider's env/key-file credential."""
        if self.api_key:
            return self.api_key
        return load_key(IMAGE_PROVIDERS[self.image_api_provider]["key_file"])


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)
