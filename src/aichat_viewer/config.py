"""Environment-driven settings for aichat-viewer."""

import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_BACKEND_URL = "http://127.0.0.1:8765"
DEFAULT_PAGE_SIZE = 50
DEFAULT_SEARCH_LIMIT = 50
DEFAULT_TOOL = "claude"


def get_backend_url() -> str:
    """Return the base URL of the backend query service."""
    return os.environ.get("AICHAT_VIEWER_BACKEND_URL") or DEFAULT_BACKEND_URL


def get_page_size() -> int:
    """Return how many messages to request per page."""
    return _positive_int("AICHAT_VIEWER_PAGE_SIZE", DEFAULT_PAGE_SIZE)


def get_search_limit() -> int:
    """Return the maximum number of search hits to request."""
    return _positive_int("AICHAT_VIEWER_SEARCH_LIMIT", DEFAULT_SEARCH_LIMIT)


def get_request_timeout() -> float | None:
    """Return the backend request timeout in seconds.

    Unset means no timeout: a hung backend call stays pending until the user
    navigates elsewhere.
    """
    env = os.environ.get("AICHAT_VIEWER_TIMEOUT")
    if not env:
        return None
    try:
        value = float(env)
    except ValueError:
        logger.warning("Ignoring invalid AICHAT_VIEWER_TIMEOUT=%r", env)
        return None
    return value if value > 0 else None


def get_default_tool() -> str:
    """Return the tool that is active when the store starts."""
    return os.environ.get("AICHAT_VIEWER_TOOL") or DEFAULT_TOOL


def _positive_int(name: str, default: int) -> int:
    env = os.environ.get(name)
    if not env:
        return default
    try:
        value = int(env)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", name, env)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%d", name, value)
        return default
    return value
