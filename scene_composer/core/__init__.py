"""Core orchestration package.

Architectural role:
    Exposes the capture-orchestration layer that sits between API/CLI entrypoints
    and lower-level subsystems (extraction, reference resolution, prompting and
    the generation job client).

Composition:
    - `engine`: `GenerationOrchestrator`, the single-flight capture pipeline.
    - `refinement`: one-pass verify/feedback/regenerate controller.
    - `types`: shared data contracts and the observable `SessionState`.
    - `errors`: error taxonomy converted to state at the engine boundary.
    - `settings`: configuration bundle.
    - `scheduler`: clock/executor abstraction for delays and follow-ups.

Determinism and side effects:
    Package import itself is side-effect free apart from `.env` loading in
    `settings`. Runtime side effects are performed by `engine` during captures.
"""
