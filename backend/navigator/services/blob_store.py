"""Fetch raw patient bundles from the public blob bucket."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from navigator.errors import BlobFetchError

logger = logging.getLogger(__name__)


async def fetch_bundle(
    file: str,
    *,
    base_url: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
) -> dict[str, Any]:
    """GET ``{base_url}/{file}`` and return the decoded bundle."""
    url = f"{base_url.rstrip('/')}/{file.lstrip('/')}"
    logger.debug("Fetching bundle %s", url)
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as owned:
                resp = await owned.get(url)
        else:
            resp = await client.get(url)
    except httpx.HTTPError as e:
        raise BlobFetchError(f"Failed to fetch {file}: {e}") from e

    if not resp.is_success:
        raise BlobFetchError(
            f"Failed to fetch file from blob store: {resp.reason_phrase}",
            status_code=resp.status_code,
        )
    try:
        return resp.json()
    except ValueError as e:
        raise BlobFetchError(f"Blob {file} is not valid JSON") from e
