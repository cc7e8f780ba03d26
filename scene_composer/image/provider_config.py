"""Provider/runtime configuration for the image-generation layer.

Architectural role:
    Centralizes endpoint selection and credential lookup for
    `scene_composer.image.job_client`.

Provider model:
    Every supported provider speaks the same asynchronous job protocol
    (submit -> check until done). Providers differ only in base URL and in the
    environment variable / key file that holds their credential.

Determinism:
    Deterministic for a fixed process environment and key files. Endpoint
    values are resolved at import time; credentials are read on demand by
    `load_key`.

Failure behavior:
    Missing key material is represented as `None`; callers decide whether that
    is fatal (the orchestrator raises `ConfigurationError`).
"""

import os
from dotenv import load_dotenv

load_dotenv()

# Endpoint map consumed by `job_client.GenerationJobClient`.
IMAGE_PROVIDERS = {

    "chub": {
        "base_url": os.getenv("CHUB_API_BASE_URL", "https://api.chub.ai"),
        "text2img_path": "/images/text2img",
        "img2img_path": "/images/img2img",
        "check_path": "/check",
        "key_header": "CH-API-KEY",
        "key_file": "config/chub.key",
    },

    # Flux generations are brokered through the same job API.
    "poe-flux": {
        "base_url": os.getenv("POE_FLUX_API_BASE_URL", "https://api.chub.ai"),
        "text2img_path": "/images/text2img",
        "img2img_path": "/images/img2img",
        "check_path": "/check",
        "key_header": "CH-API-KEY",
        "key_file": "config/poe_flux.key",
    },

}

IMAGE_QUALITIES = ("standard", "high")


def load_key(path):
    """Load API key from environment override or key file.

    Resolution order:
        1. Environment variable inferred from file stem (for example
           `config/chub.key` -> `CHUB_API_KEY`).
        2. Raw file contents at `path`.

    Args:
        path: Configured key file path or `None`.

    Returns:
        Key string or `None` when not available.

    Edge cases:
        - `None` path returns `None`.
        - Missing file returns `None`.
        - Whitespace-only file contents return `None`.
    """
    if not path:
        return None
    key_name = os.path.splitext(os.path.basename(path))[0].upper() + "_API_KEY"
    env_value = os.getenv(key_name)
    if env_value:
        return env_value
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return f.read().strip() or None


def provider_endpoints(provider: str) -> dict:
    """Return the endpoint map for `provider`, or raise `KeyError`."""
    return IMAGE_PROVIDERS[provider]
