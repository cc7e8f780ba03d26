"""Character reference resolution for scene prompts.

Architectural role:
    Enriches extracted character names with known image references so the job
    client can run image-to-image generation against a character likeness.

Retrieval strategy:
    1. Look up each extracted name through a `CharacterLookup` collaborator.
    2. Keep the resolved display name when a reference is found, otherwise pass
       the original name through unchanged.
    3. Rank reference images: first gallery image, else first avatar, else none.

Failure model:
    A lookup that raises or returns nothing is a degraded-enrichment outcome,
    not an error. It is logged and the name passes through.

Determinism:
    Deterministic for a deterministic lookup. Name order is preserved.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Protocol, Sequence

from scene_composer.core.types import CharacterReference


logger = logging.getLogger(__name__)


class CharacterLookup(Protocol):
    """Async lookup of one character by display name."""

    async def lookup(self, name: str) -> CharacterReference | None:
        ...


class DisabledCharacterLookup:
    """Lookup used when no gallery collaborator is available."""

    async def lookup(self, name: str) -> CharacterReference | None:
        logger.debug("Skipping character reference fetch for: %s", name)
        return None


class StaticCharacterLookup:
    """In-memory lookup keyed by case-insensitive character name or alias."""

    def __init__(
        self,
        references: Iterable[CharacterReference],
        aliases: Mapping[str, CharacterReference] | None = None,
    ) -> None:
        self._by_name = {ref.name.lower(): ref for ref in references}
        for alias, ref in (aliases or {}).items():
            self._by_name[alias.lower()] = ref

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Mapping]) -> "StaticCharacterLookup":
        """Build from `{detected_name: {name, character_id, avatar_url, gallery_images, description}}`.

        The mapping key is the name as it appears in chat; `name` is the display
        name substituted into prompts and defaults to the key.
        """
        aliases = {}
        for key, item in raw.items():
            aliases[key] = CharacterReference(
                character_id=str(item.get("character_id") or key),
                name=str(item.get("name") or key),
                avatar_url=str(item.get("avatar_url") or ""),
                gallery_images=tuple(item.get("gallery_images") or ()),
                description=str(item.get("description") or ""),
            )
        return cls(aliases.values(), aliases)

    async def lookup(self, name: str) -> CharacterReference | None:
        return self._by_name.get(name.lower())


class CharacterReferenceResolver:
    """Resolve character names to `CharacterReference` records."""

    def __init__(self, lookup: CharacterLookup | None = None) -> None:
        self.lookup = lookup or DisabledCharacterLookup()

    async def resolve(
        self, character_names: Sequence[str]
    ) -> tuple[list[str], list[CharacterReference]]:
        """Look up every name in order.

        Args:
            character_names: Names from the extracted `SceneContext`.

        Returns:
            `(enriched_names, references)`: `enriched_names` has the same length
            and order as the input; `references` holds only successful lookups.
        """
        enriched: list[str] = []
        references: list[CharacterReference] = []

        for name in character_names:
            try:
                reference = await self.lookup.lookup(name)
            except Exception as exc:
                logger.warning("Character lookup failed for %r: %s", name, exc)
                reference = None

            if reference is None:
                enriched.append(name)
                continue

            references.append(reference)
            enriched.append(reference.name or name)

        return enriched, references


def select_reference_image(references: Sequence[CharacterReference]) -> str | None:
    """Pick the best img2img reference across all resolved characters.

    Ranking:
        1. First non-empty gallery image, in character order.
        2. First non-empty avatar URL, in character order.
        3. `None`.
    """
    for reference in references:
        for image in reference.gallery_images:
            if image:
                return image

    for reference in references:
        if reference.avatar_url:
            return reference.avatar_url

    return None
