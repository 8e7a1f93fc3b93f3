"""Proxy credential providers.

The migration layer asks for exactly one credential per migration attempt
through the ``ProxyProvider`` protocol. Pool management lives behind the
provider.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable
from urllib.parse import unquote, urlsplit

import aiohttp
from pydantic import ValidationError

from ..core.config import MigrationSettings
from ..core.types import ProxyCredential
from .errors import ConfigurationError, ProxyExhaustedError

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443, "socks5": 1080}


@runtime_checkable
class ProxyProvider(Protocol):
    """Supplies one fresh proxy credential per call."""

    async def acquire(self) -> ProxyCredential:
        """Return a credential or raise ``ProxyExhaustedError``."""
        ...


def parse_proxy_url(url: str) -> ProxyCredential:
    """Parse ``scheme://[user:pass@]host[:port]`` into a credential.

    Raises:
        ValueError: If the URL has no host
    """
    parts = urlsplit(url if "://" in url else f"http://{url}")
    if not parts.hostname:
        raise ValueError(f"Proxy URL has no host: {url!r}")

    scheme = parts.scheme or "http"
    return ProxyCredential(
        host=parts.hostname,
        port=parts.port or _DEFAULT_PORTS.get(scheme, 80),
        username=unquote(parts.username) if parts.username else None,
        password=unquote(parts.password) if parts.password else None,
        scheme=scheme,
    )


class StaticProxyProvider:
    """Hand out each configured proxy once, in order."""

    def __init__(self, proxies: Iterable[str | ProxyCredential]):
        self._queue: deque[ProxyCredential] = deque(
            p if isinstance(p, ProxyCredential) else parse_proxy_url(p) for p in proxies
        )
        logger.info("StaticProxyProvider: %d proxies available", len(self._queue))

    @property
    def remaining(self) -> int:
        return len(self._queue)

    async def acquire(self) -> ProxyCredential:
        if not self._queue:
            raise ProxyExhaustedError("Static proxy list exhausted")
        return self._queue.popleft()


class HttpProxyProvider:
    """Fetch credentials from a proxy service over HTTP.

    The endpoint is called with ``Authorization: Bearer <api_key>`` and must
    answer with ``{"host": ..., "port": ..., "username": ..., "password": ...}``.
    """

    def __init__(self, api_url: str, api_key: str, timeout: float = 10.0):
        """Initialize provider.

        Args:
            api_url: Endpoint that returns one proxy credential per request
            api_key: Proxy service access key
            timeout: Request timeout in seconds
        """
        self.api_url = api_url
        self.timeout = timeout
        self._api_key = api_key

    async def acquire(self) -> ProxyCredential:
        headers = {"Authorization": f"Bearer {self._api_key}", "Accept": "application/json"}

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.api_url, headers=headers) as response:
                    if response.status != 200:
                        raise ProxyExhaustedError(
                            f"Proxy service returned status {response.status}"
                        )
                    payload: Any = await response.json()
        except asyncio.TimeoutError as e:
            raise ProxyExhaustedError(f"Timeout requesting proxy from {self.api_url}") from e
        except aiohttp.ClientError as e:
            raise ProxyExhaustedError(f"Proxy service unreachable: {e}") from e

        if isinstance(payload, dict) and isinstance(payload.get("proxy"), dict):
            payload = payload["proxy"]

        try:
            credential = ProxyCredential.model_validate(payload)
        except ValidationError as e:
            raise ProxyExhaustedError(f"Malformed proxy payload: {e}") from e

        logger.debug(f"Acquired proxy {credential.redacted()}")
        return credential


def create_proxy_provider(settings: MigrationSettings) -> ProxyProvider:
    """Create a provider from settings.

    A configured ``proxy_list`` wins over ``proxy_api_url``.

    Raises:
        ConfigurationError: If neither source is configured
    """
    if settings.proxy_list:
        return StaticProxyProvider(settings.proxy_list)

    if settings.proxy_api_url:
        return HttpProxyProvider(
            api_url=settings.proxy_api_url,
            api_key=settings.api_key.get_secret_value(),
        )

    raise ConfigurationError(
        "No proxy source configured: set ALUVIA_PROXY_LIST or ALUVIA_PROXY_API_URL"
    )
