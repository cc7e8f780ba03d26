"""Rule-based scene-context extractor for recent chat text.

Parsing rules:
- Characters: ordered regex patterns ("Name said", "Name walked", "Name's",
  titled names such as "Professor X" / "Dr. X"). Patterns are applied in table
  order, matches in input order; the captured name is kept case-sensitive and
  duplicates are suppressed (first occurrence wins).
- Location / actions / mood / time of day: ordered `(keyword, phrase)` tables.
  The first keyword (in table order, not input order) found as a substring of
  the lower-cased text wins.

Normalization steps:
- Character patterns run against the original text so capitalization can mark
  proper names; keyword tables run against the lower-cased text.

Determinism:
- Fully deterministic given identical input and static tables.

Edge cases:
- Empty input yields the default for every field.
- The character list is capped at `max_characters`; when nothing matches a
  single placeholder character is emitted.
- Every returned field is non-empty.
"""

import re
from dataclasses import dataclass

from scene_composer.core.types import SceneContext


# =========================================================
# CHARACTER PATTERNS
# =========================================================
# Applied in order. Group 1 is always the captured name. Titles match in any
# case; the name after them must still be capitalized.

CHARACTER_PATTERNS = (
    re.compile(r"\b([A-Z][a-z]+)\s+(?:said|says|asked|replied|whispered|shouted)\b"),
    re.compile(r"\b([A-Z][a-z]+)\s+(?:walked|ran|smiled|frowned|looked|turned)\b"),
    re.compile(r"\b([A-Z][a-z]+)'s\s+"),
    re.compile(r"\b(?i:professor)\s+([A-Z][a-z]+)"),
    re.compile(r"\b(?i:dr)\.?\s+([A-Z][a-z]+)"),
    re.compile(r"\b(?i:mr)\.?\s+([A-Z][a-z]+)"),
    re.compile(r"\b(?i:ms)\.?\s+([A-Z][a-z]+)"),
)

MIN_NAME_LENGTH = 3

# Capitalized sentence starters that the verb patterns would otherwise
# mistake for names ("She said", "Then turned").
NON_NAME_WORDS = {
    "she", "they", "the", "then", "this", "that", "these", "those",
    "his", "her", "hers", "its", "our", "their", "you", "your",
    "and", "but", "when", "what", "where", "who", "why", "how",
    "everyone", "someone", "nobody", "somebody", "everybody",
}


# ---------------------------------------------------------
# Keyword tables (order is the tie-break)
# ---------------------------------------------------------

LOCATION_KEYWORDS = (
    ("classroom", "classroom"),
    ("library", "library"),
    ("cafeteria", "cafeteria"),
    ("dormitory", "dormitory"),
    ("dorm", "dormitory"),
    ("office", "office"),
    ("campus", "university campus"),
    ("courtyard", "courtyard"),
    ("auditorium", "auditorium"),
    ("laboratory", "laboratory"),
    ("lab", "laboratory"),
    ("garden", "garden"),
    ("hallway", "hallway"),
    ("corridor", "corridor"),
    ("rooftop", "rooftop"),
    ("parking", "parking lot"),
    ("field", "sports field"),
    ("gym", "gymnasium"),
)

ACTION_KEYWORDS = (
    ("studying", "studying"),
    ("reading", "reading"),
    ("writing", "writing"),
    ("walking", "walking"),
    ("running", "running"),
    ("sitting", "sitting"),
    ("standing", "standing"),
    ("talking", "having a conversation"),
    ("discussing", "discussing"),
    ("arguing", "arguing"),
    ("laughing", "laughing"),
    ("crying", "crying"),
    ("eating", "eating"),
    ("drinking", "drinking"),
    ("meeting", "meeting"),
    ("presentation", "giving presentation"),
    ("lecture", "attending lecture"),
    ("exam", "taking exam"),
    ("test", "taking test"),
)

MOOD_KEYWORDS = (
    ("happy", "joyful"),
    ("sad", "melancholic"),
    ("angry", "tense"),
    ("excited", "energetic"),
    ("nervous", "anxious"),
    ("calm", "peaceful"),
    ("worried", "concerned"),
    ("surprised", "surprised"),
    ("confused", "puzzled"),
    ("romantic", "romantic"),
    ("serious", "serious"),
    ("playful", "playful"),
    ("dramatic", "dramatic"),
    ("intense", "intense"),
)

TIME_OF_DAY_KEYWORDS = (
    ("morning", "morning"),
    ("dawn", "dawn"),
    ("sunrise", "sunrise"),
    ("afternoon", "afternoon"),
    ("noon", "midday"),
    ("evening", "evening"),
    ("sunset", "sunset"),
    ("night", "night"),
    ("midnight", "midnight"),
    ("dusk", "dusk"),
    ("twilight", "twilight"),
)


@dataclass(frozen=True)
class SceneDefaults:
    """Fallback values substituted when no signal is found."""

    character: str = "main character"
    location: str = "university campus"
    actions: str = "conversation"
    mood: str = "neutral"
    time_of_day: str = "day"


DEFAULTS = SceneDefaults()


def extract_characters(text: str, max_characters: int) -> list[str]:
    """Return unique character names in pattern-then-input order, capped.

    Args:
        text: Original-case chat text.
        max_characters: Upper bound on the returned list length.

    Returns:
        Possibly empty list of names; never longer than `max_characters`.
    """
    characters: list[str] = []

    for pattern in CHARACTER_PATTERNS:
        for match in pattern.finditer(text):
            name = match.group(1)
            if len(name) < MIN_NAME_LENGTH or name.lower() in NON_NAME_WORDS:
                continue
            if name not in characters:
                characters.append(name)

    return characters[:max(0, max_characters)]


def match_keyword(lowered: str, table) -> str | None:
    """Return the phrase of the first table keyword present in `lowered`."""
    for keyword, phrase in table:
        if keyword in lowered:
            return phrase
    return None


def extract_scene_context(
    text: str,
    max_characters: int,
    defaults: SceneDefaults = DEFAULTS,
) -> SceneContext:
    """Derive a `SceneContext` from combined recent-message text.

    Args:
        text: Recent chat messages joined into one string.
        max_characters: Character cap (values below 1 are treated as 1).
        defaults: Substitutions for fields with no keyword signal.

    Returns:
        `SceneContext` with every field non-empty.

    Determinism:
        Identical `text`, cap, and defaults always yield an identical result.
    """
    text = text or ""
    lowered = text.lower()
    cap = max(1, max_characters)

    characters = extract_characters(text, cap) or [defaults.character]

    return SceneContext(
        characters=characters,
        location=match_keyword(lowered, LOCATION_KEYWORDS) or defaults.location,
        actions=match_keyword(lowered, ACTION_KEYWORDS) or defaults.actions,
        mood=match_keyword(lowered, MOOD_KEYWORDS) or defaults.mood,
        time_of_day=match_keyword(lowered, TIME_OF_DAY_KEYWORDS) or defaults.time_of_day,
    )
