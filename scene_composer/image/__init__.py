"""Image generation adapter package.

Scope:
    Provides provider endpoint configuration, a normalizer for provider status
    responses, and the asynchronous submit/poll job client used by core
    orchestration.

Non-goals:
    - No image download, decoding, or storage.
    - No image quality analysis.
"""
