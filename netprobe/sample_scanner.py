"""Minimal scanner: one HTTP GET, reporting the status code."""

from __future__ import annotations

import httpx


async def run(target: str) -> int:
    """GET ``http://<target>`` and return the status code.

    Raises ``ConnectionError`` when the request cannot be sent.
    """
    print(f"[*] Running sample_scanner on: {target}")
    url = f"http://{target}"
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise ConnectionError(f"Failed to send request: {exc}") from exc
    print(f"[*] Status code: {response.status_code} {response.reason_phrase}".rstrip())
    return response.status_code