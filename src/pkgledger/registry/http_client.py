"""Shared HTTP client utilities for repository sync and artifact download.

Provides thin wrappers around ``httpx`` with standardised timeouts,
user-agent headers and error handling, so that every network call pkgledger
makes behaves the same way and is easy to patch in tests.

``fetch_json`` never raises: network failures, non-2xx responses and
invalid JSON are logged and reported as an empty dict, which repository
sync treats as a per-repository failure. ``download_file`` raises, because
a failed download must fail the package being applied.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from pkgledger import __version__

logger = logging.getLogger(__name__)

# Timeout for all repository HTTP requests (seconds).
DEFAULT_TIMEOUT: float = 30.0

# User-Agent sent with every request.
USER_AGENT: str = f"pkgledger/{__version__}"

# Streaming chunk size for artifact downloads.
_CHUNK_SIZE = 64 * 1024


async def fetch_json(
    url: str,
    *,
    params: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, Any] | list[Any]:
    """Fetch a URL and parse the response as JSON.

    Args:
        url: The URL to fetch.
        params: Optional query parameters.
        timeout: Request timeout in seconds.

    Returns:
        Parsed JSON response (dict or list). Empty dict on any error.
    """
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        ) as client:
            resp = await client.get(url, params=params)
            resp.raise_for_status()
            return resp.json()
    except httpx.TimeoutException:
        logger.warning("Timeout fetching %s", url)
        return {}
    except httpx.HTTPStatusError as exc:
        logger.warning("HTTP %d from %s", exc.response.status_code, url)
        return {}
    except (httpx.RequestError, ValueError) as exc:
        logger.warning("Request error for %s: %s", url, exc)
        return {}


def download_file(
    url: str,
    dest: Path,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> Path:
    """Stream ``url`` into ``dest``.

    A partially written file is removed before the error propagates.

    Args:
        url: The URL to download.
        dest: Destination file path; parent directories are created.
        timeout: Request timeout in seconds.

    Returns:
        ``dest``.

    Raises:
        httpx.HTTPError: On transport errors, timeouts or non-2xx responses.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        with httpx.Client(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        ) as client:
            with client.stream("GET", url) as resp:
                resp.raise_for_status()
                with dest.open("wb") as fh:
                    for chunk in resp.iter_bytes(_CHUNK_SIZE):
                        fh.write(chunk)
    except httpx.HTTPError:
        dest.unlink(missing_ok=True)
        raise
    logger.debug("Downloaded %s -> %s", url, dest)
    return dest
