"""Scene composer: turn recent chat text into a generated scene image.

Package layout:
    - `nlp`: rule-based scene-context extraction.
    - `retrieval`: character reference resolution.
    - `prompting`: generation prompt assembly.
    - `image`: provider configuration, status normalization, job client.
    - `core`: data contracts, errors, settings, scheduling, refinement and the
      orchestration engine.
    - `memory`: recent chat message window supplied by the host.
    - `api`: HTTP and CLI adapters.
"""
