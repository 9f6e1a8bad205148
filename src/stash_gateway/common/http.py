"""Thin httpx helpers shared by the provider adapters.

Each provider call is a single request/response round trip: no retries,
no caching. Callers may pass their own ``httpx.Client`` (connection
pooling, proxies, test transports); otherwise a short-lived client is
opened for the call and closed afterwards.
"""

import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import httpx

from stash_gateway.common.config import get_settings

logger = logging.getLogger(__name__)


@contextmanager
def open_client(http: Optional[httpx.Client] = None) -> Iterator[httpx.Client]:
    """Yield the caller's client, or a fresh one that is closed on exit."""
    if http is not None:
        yield http
        return
    with httpx.Client(timeout=get_settings().http_timeout) as client:
        yield client


def parse_json_body(response: httpx.Response) -> Any:
    """Decode a JSON response body, returning None when it is not JSON."""
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def send_json(
    method: str,
    url: str,
    http: Optional[httpx.Client] = None,
    **kwargs: Any,
) -> tuple[httpx.Response, Any]:
    """Send one request and return ``(response, parsed_json_or_None)``."""
    with open_client(http) as client:
        response = client.request(method, url, **kwargs)
    logger.debug("%s %s%s -> %s", method, response.url.host, response.url.path, response.status_code)
    return response, parse_json_body(response)


def reason_phrase(response: httpx.Response) -> str:
    return response.reason_phrase or f"HTTP {response.status_code}"
