"""Direct REST calls for operations the connection's clients don't cover."""
from typing import Optional

import httpx

from .config import get_settings


def create_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """HTTP client for one direct call; use as an async context manager."""
    if timeout is None:
        timeout = get_settings().request_timeout
    return httpx.AsyncClient(timeout=timeout)


def error_text(response: httpx.Response) -> str:
    return response.text or response.reason_phrase
