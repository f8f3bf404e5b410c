"""HTTP transports used by the fetch strategies.

Both helpers return a FetchResponse and never raise on an HTTP status;
only transport failures (DNS, TLS, reset, timeout) become an
AcquisitionError, with ``status_code`` left as None.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field

import httpx
from curl_cffi.requests import AsyncSession, RequestsError

from pagesift.config import settings
from pagesift.core.exceptions import AcquisitionError

logger = logging.getLogger(__name__)

DEFAULT_IMPERSONATE_PROFILE = "chrome124"


@dataclass(frozen=True)
class FetchResponse:
    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


async def jitter_delay(min_ms: int, max_ms: int) -> None:
    """Sleep a random interval to break up request timing patterns."""
    await asyncio.sleep(random.uniform(min_ms, max_ms) / 1000)


async def fetch_httpx(
    url: str,
    headers: dict[str, str],
    proxy_url: str | None = None,
    timeout: float | None = None,
    strategy: str = "fetch",
) -> FetchResponse:
    timeout_seconds = timeout or settings.HTTP_TIMEOUT_SECONDS
    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout_seconds,
            headers=headers,
            http2=True,
            proxy=proxy_url,
        ) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        raise AcquisitionError(strategy, f"transport error: {e!r}") from e

    resp_headers = {k.lower(): v for k, v in response.headers.items()}
    return FetchResponse(response.status_code, response.text, resp_headers)


async def fetch_impersonated(
    url: str,
    headers: dict[str, str],
    proxy_url: str | None = None,
    timeout: float | None = None,
    profile: str = DEFAULT_IMPERSONATE_PROFILE,
    strategy: str = "fetch-headers",
) -> FetchResponse:
    """GET with a browser TLS fingerprint via curl_cffi."""
    timeout_seconds = timeout or settings.HTTP_TIMEOUT_SECONDS
    try:
        async with AsyncSession(impersonate=profile) as session:
            response = await session.get(
                url,
                headers=headers,
                timeout=timeout_seconds,
                allow_redirects=True,
                proxy=proxy_url,
            )
    except RequestsError as e:
        raise AcquisitionError(strategy, f"transport error: {e!r}") from e

    resp_headers = {k.lower(): v for k, v in response.headers.items()}
    return FetchResponse(response.status_code, response.text or "", resp_headers)
