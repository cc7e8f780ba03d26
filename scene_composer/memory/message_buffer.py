"""Short-term recent-message window for scene extraction.

Purpose of this abstraction:
    The host platform owns chat transport and storage. It hands each user and
    bot message to this buffer, and the orchestrator reads the latest window
    when a capture starts.

Short-term only:
    Messages live in process memory and are bounded by `max_messages`. Nothing
    is persisted; the host is responsible for its own message history.

Thread safety:
    Access is guarded by a lock so synchronous adapter threads (for example
    FastAPI sync endpoints) and the event loop can share one buffer.
"""

import logging
import threading
from collections import deque
from typing import Protocol


logger = logging.getLogger(__name__)

RECENT_MESSAGE_COUNT = 10
MAX_BUFFERED_MESSAGES = 200


class MessageSource(Protocol):
    """Minimal interface required by the orchestrator."""

    def recent(self, count: int = RECENT_MESSAGE_COUNT) -> list[dict]:
        """Return the latest `count` messages as `{"role", "content"}` dicts, oldest first."""
        ...


class RecentMessageBuffer:
    """Bounded, ordered buffer of `{role, content}` chat messages."""

    def __init__(self, max_messages: int = MAX_BUFFERED_MESSAGES) -> None:
        self._messages: deque[dict] = deque(maxlen=max_messages)
        self._lock = threading.Lock()

    def record(self, role: str, content: str) -> None:
        """Append one message; empty content is ignored."""
        if not content or not str(content).strip():
            return
        with self._lock:
            self._messages.append({"role": role, "content": str(content)})
        logger.debug("Recorded %s message (%d buffered)", role, len(self._messages))

    def record_user(self, content: str) -> None:
        self.record("user", content)

    def record_bot(self, content: str) -> None:
        self.record("assistant", content)

    def recent(self, count: int = RECENT_MESSAGE_COUNT) -> list[dict]:
        if count <= 0:
            return []
        with self._lock:
            return list(self._messages)[-count:]

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)


def combine_messages(messages) -> str:
    """Join message `content` fields with single spaces, in order."""
    return " ".join(str(message.get("content", "")) for message in messages)
