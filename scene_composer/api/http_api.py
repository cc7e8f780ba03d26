"""
HTTP API adapter for the scene composer.

Architectural role:
- Expose a small JSON interface a host platform can call.
- Enforce adapter-level input validation.
- Delegate capture work to `scene_composer.core.engine.GenerationOrchestrator`.
- Return the orchestrator's state snapshot as the only response payload.

Endpoint responsibilities:
- `POST /v1/messages`: record one chat message in the recent-message window.
- `POST /v1/scene/capture`: start a capture in the background.
- `GET /v1/scene/state`: return the current session snapshot.

Input validation behavior:
- Blank message content -> HTTP 400.
- Invalid environment configuration -> HTTP 400 on first use.

Error handling strategy:
- Capture failures never surface as HTTP errors; they are visible in the
  snapshot (`error_message`, `stats.last_error`).
- A capture request while one is in flight returns `accepted: false`.

Side effects:
- Loads environment variables at import time via `load_dotenv()`.
- Holds one orchestrator (one session) per process; it can be replaced with
  `set_orchestrator`.
"""

from dotenv import load_dotenv

load_dotenv()

import logging
import threading

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from scene_composer.core.engine import GenerationOrchestrator, build_orchestrator
from scene_composer.core.errors import ConfigurationError


logger = logging.getLogger(__name__)

app = FastAPI()

_ORCHESTRATOR: GenerationOrchestrator | None = None
_ORCHESTRATOR_LOCK = threading.Lock()


def set_orchestrator(orchestrator: GenerationOrchestrator | None) -> None:
    """Override or clear the process-wide orchestrator used by the endpoints."""
    global _ORCHESTRATOR
    with _ORCHESTRATOR_LOCK:
        _ORCHESTRATOR = orchestrator


def get_orchestrator() -> GenerationOrchestrator:
    """Return the process-wide orchestrator, building it from env on first use.

    Sync endpoints run in the threadpool, so the first build is guarded.
    """
    global _ORCHESTRATOR
    with _ORCHESTRATOR_LOCK:
        if _ORCHESTRATOR is None:
            _ORCHESTRATOR = build_orchestrator()
        return _ORCHESTRATOR


# ============================================================
# Request / Response Schemas
# ============================================================

class MessageRequest(BaseModel):
    role: str = "user"
    content: str


class CaptureResponse(BaseModel):
    accepted: bool
    state: dict


# ============================================================
# Messages
# ============================================================

@app.post("/v1/messages")
def record_message(request: MessageRequest):
    """Record one chat message for later scene extraction."""
    if not request.content.strip():
        return JSONResponse(status_code=400, content={"error": "Empty message content"})

    try:
        orchestrator = get_orchestrator()
    except ConfigurationError as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    orchestrator.messages.record(request.role, request.content)
    return {"buffered": len(orchestrator.messages)}


# ============================================================
# Scene Capture
# ============================================================

@app.post("/v1/scene/capture", response_model=CaptureResponse)
async def capture_scene():
    """
    Start a capture without waiting for it to finish.

    Response formatting:
    - `accepted`: whether a new capture was scheduled.
    - `state`: snapshot taken right after scheduling.
    """
    try:
        orchestrator = get_orchestrator()
    except ConfigurationError as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    accepted = orchestrator.start_capture()
    if not accepted:
        logger.info("Capture request rejected: capture already in flight")

    return CaptureResponse(accepted=accepted, state=orchestrator.state.snapshot())


@app.get("/v1/scene/state")
def scene_state():
    """Return the current session snapshot."""
    try:
        orchestrator = get_orchestrator()
    except ConfigurationError as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    return orchestrator.state.snapshot()
