"""
HTTP fetch utilities: browser-like headers, TLS context and bounded GETs.
"""

from __future__ import annotations

import asyncio
import ssl
from dataclasses import dataclass
from typing import Any, Optional

import certifi
import httpx

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "it-IT,it;q=0.9,en-US;q=0.8,en;q=0.7",
    "Cache-Control": "no-cache",
}


@dataclass
class FetchedPage:
    """A successfully fetched page; ``url`` is the final URL after redirects."""

    url: str
    status_code: int
    text: str


def create_ssl_context() -> ssl.SSLContext:
    """Default TLS context backed by the certifi CA bundle."""
    return ssl.create_default_context(cafile=certifi.where())


def open_client(
    verify: bool = True,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    headers: Optional[dict[str, str]] = None,
) -> httpx.AsyncClient:
    """
    Build an AsyncClient for outbound calls.

    ``verify=False`` disables certificate validation; only site overrides
    for hosts with a broken chain should ask for it.
    """
    return httpx.AsyncClient(
        follow_redirects=True,
        verify=create_ssl_context() if verify else False,
        headers=headers if headers is not None else BROWSER_HEADERS,
        transport=transport,
    )


async def get_with_deadline(
    client: httpx.AsyncClient,
    url: str,
    timeout: float,
    params: Optional[dict[str, Any]] = None,
) -> httpx.Response:
    """
    GET bounded by a total deadline.

    The in-flight request is cancelled when ``timeout`` elapses and
    ``asyncio.TimeoutError`` is raised.
    """
    return await asyncio.wait_for(
        client.get(url, params=params, timeout=timeout), timeout=timeout
    )


async def fetch_page(client: httpx.AsyncClient, url: str, timeout: float) -> FetchedPage:
    """Fetch an HTML page; raises httpx.HTTPStatusError on non-2xx."""
    response = await get_with_deadline(client, url, timeout)
    response.raise_for_status()
    return FetchedPage(url=str(response.url), status_code=response.status_code, text=response.text)
