"""Normalization of provider job-status responses.

Processing flow:
    1. Detect explicit completion through any known completion field.
    2. Pull the result URL from any known URL field, else from the first item of
       an `images` array.
    3. Detect explicit failure through any known failure field.
    4. Everything else is still pending.

Provider variance:
    The job API does not guarantee a stable response shape. Known variants:
        - completion: `is_done` truthy, `status == "completed"`, `state == "completed"`
        - failure: `is_failed` truthy, `status`/`state` in {"failed", "error"}
        - result: `primary_image_path`, `image_url`, `url`, or `images[0]`
          (a URL string or an object carrying one of the URL fields)
    New variants are added here, never at call sites.

Edge cases:
    - Completion without any URL is pending unless a failure flag is also
      set: the service sometimes flips the flag before the artifact path is
      written.
    - Non-dict payloads are pending.
"""

from typing import Any

from scene_composer.core.types import PollResult


COMPLETED_VALUES = {"completed", "complete", "done", "succeeded", "success"}
FAILED_VALUES = {"failed", "error", "errored", "cancelled"}
URL_FIELDS = ("primary_image_path", "image_url", "url")


def _text(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def _is_completed(data: dict) -> bool:
    return bool(data.get("is_done")) or (
        _text(data.get("status")) in COMPLETED_VALUES
        or _text(data.get("state")) in COMPLETED_VALUES
    )


def _is_failed(data: dict) -> bool:
    return bool(data.get("is_failed")) or (
        _text(data.get("status")) in FAILED_VALUES
        or _text(data.get("state")) in FAILED_VALUES
    )


def _url_from(item: Any) -> str | None:
    if isinstance(item, str):
        return item or None
    if isinstance(item, dict):
        for field in URL_FIELDS:
            value = item.get(field)
            if isinstance(value, str) and value:
                return value
    return None


def extract_result_url(data: dict) -> str | None:
    """Return the artifact URL from any known field, or `None`."""
    url = _url_from(data)
    if url:
        return url

    images = data.get("images")
    if isinstance(images, list) and images:
        return _url_from(images[0])

    return None


def normalize_status(data: Any) -> PollResult:
    """Map one provider response onto `PollResult`.

    Args:
        data: Decoded JSON body of a submit or status-check response.

    Returns:
        `PollResult.completed(url)`, `PollResult.failed()`, or
        `PollResult.pending()`.
    """
    if not isinstance(data, dict):
        return PollResult.pending()

    if _is_completed(data):
        url = extract_result_url(data)
        if url:
            return PollResult.completed(url)

    if _is_failed(data):
        return PollResult.failed()

    return PollResult.pending()
