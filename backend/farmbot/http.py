import logging
from typing import Optional

import httpx

log = logging.getLogger("farmbot.http")

USER_AGENT = "FarmBot/1.0 (+https://farmbot.example.in)"

# data.gov.in answers cold queries slowly; everything else is fast
PROVIDER_TIMEOUT = httpx.Timeout(connect=10.0, read=20.0, write=10.0, pool=30.0)

# Shared by market sources, weather and geocoding
client: Optional[httpx.AsyncClient] = None


def build_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    The one client every outbound provider call goes through.
    Pass a transport (e.g. httpx.MockTransport) to keep tests off the network.
    """
    return httpx.AsyncClient(
        timeout=PROVIDER_TIMEOUT,
        transport=transport,
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=50, keepalive_expiry=30),
        headers={"Accept-Encoding": "gzip, deflate", "User-Agent": USER_AGENT},
    )


async def init_http(transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
    global client
    if client is None:
        client = build_client(transport)
        log.info("HTTP client ready (read timeout %.0fs)", PROVIDER_TIMEOUT.read)


async def close_http() -> None:
    global client
    if client is not None:
        await client.aclose()
        client = None
        log.info("HTTP client closed")


def get_http_client() -> httpx.AsyncClient:
    if client is None:
        raise RuntimeError("HTTP client not initialized. Call init_http() first.")
    return client
