"""
Configuration constants for the purchases backend layer.
"""

import os

from dotenv import load_dotenv

# Environment variable holding the public SDK API key
API_KEY_ENV_VAR = "PURCHASES_API_KEY"

# Optional override for the serializer's worker thread name
WORKER_NAME_ENV_VAR = "PURCHASES_WORKER_NAME"
DEFAULT_WORKER_NAME = "purchases-backend"

# Backend paths
SUBSCRIBERS_PATH = "/subscribers"
RECEIPTS_PATH = "/receipts"
OFFERS_PATH = "/offers"
IDENTIFY_PATH = "/subscribers/identify"


def load_environment() -> None:
    """Load a ``.env`` file (if present) into ``os.environ``.

    Existing environment variables win over values from the file.
    """
    load_dotenv(override=False)


def resolve_api_key(explicit_key: str | None = None) -> str:
    """Get the backend API key.

    Priority:
        1. ``explicit_key`` if provided.
        2. The ``PURCHASES_API_KEY`` environment variable.

    Raises ValueError if no key is found.
    """
    if explicit_key and explicit_key.strip():
        return explicit_key.strip()

    key = os.environ.get(API_KEY_ENV_VAR, "").strip()
    if key:
        return key

    raise ValueError(
        f"No API key configured. Pass api_key or set the {API_KEY_ENV_VAR} environment variable."
    )


def build_auth_headers(api_key: str) -> dict[str, str]:
    """Headers attached to every backend request."""
    return {"Authorization": f"Bearer {api_key}"}


def worker_name() -> str:
    raw = os.environ.get(WORKER_NAME_ENV_VAR, "").strip()
    return raw or DEFAULT_WORKER_NAME
