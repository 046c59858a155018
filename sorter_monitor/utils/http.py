"""
HTTP helper with a whole-request deadline.

httpx timeouts apply to each connect / read / write step on its own, so a
server that trickles a body one byte at a time never trips them.  Requests
made through ``request_with_deadline()`` stream the body and give up once
``timeout_s`` has elapsed since the request started.
"""

from __future__ import annotations

import time
from typing import Any

import httpx


def request_with_deadline(
    client: httpx.Client,
    method: str,
    url: str,
    timeout_s: float,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request and read the full body within ``timeout_s`` seconds.

    Returns:
        A fully read ``httpx.Response`` (``.text`` / ``.json()`` usable).

    Raises:
        httpx.TimeoutException: If the deadline passes before the body is
            complete (also any per-step timeout).
        httpx.HTTPError: On any other transport failure.
    """
    deadline = time.monotonic() + timeout_s
    with client.stream(method, url, timeout=timeout_s, **kwargs) as resp:
        chunks: list[bytes] = []
        for chunk in resp.iter_raw():
            chunks.append(chunk)
            if time.monotonic() > deadline:
                raise httpx.ReadTimeout(
                    f"response not complete within {timeout_s}s",
                    request=resp.request,
                )
        return httpx.Response(
            status_code=resp.status_code,
            headers=resp.headers,
            content=b"".join(chunks),
            request=resp.request,
        )
