"""NLP utilities for scene extraction.

Module scope:
- Keyword/pattern based scene-context extraction (`scene_extractor`).

Determinism profile:
- Fully deterministic rule logic; no model-backed scoring.
"""
