"""
Readiness Probes

Checks whether a hashring member is ready to receive traffic.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from hashring_watcher.state import parse_endpoint

READINESS_PATH = "/-/ready"
READY_BODY = b"OK"


@dataclass
class ProbeResult:
    """Result of a readiness probe."""
    endpoint: str
    ready: bool
    url: Optional[str] = None
    status_code: Optional[int] = None
    message: Optional[str] = None
    latency_ms: float = 0.0


def readiness_url(endpoint: str, scheme: str = "http", port_offset: int = 0) -> str:
    """Build the readiness URL for a member address."""
    host, port = parse_endpoint(endpoint)
    return f"{scheme}://{host}:{port + port_offset}{READINESS_PATH}"


class ReadinessProber:
    """Issues readiness requests against hashring members."""

    def __init__(
        self,
        scheme: str = "http",
        timeout: float = 5.0,
        port_offset: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.scheme = scheme
        self.timeout = timeout
        self.port_offset = port_offset
        self.logger = logger or logging.getLogger(__name__)
        # Every member of every hashring may be probed at once.
        self.http_client = httpx.AsyncClient(
            follow_redirects=True,
            limits=httpx.Limits(max_connections=None, max_keepalive_connections=None),
            transport=transport,
        )

    async def close(self) -> None:
        """Close HTTP client."""
        await self.http_client.aclose()

    async def __aenter__(self) -> "ReadinessProber":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def probe(self, endpoint: str) -> ProbeResult:
        """Probe one member. Never raises; failures come back as not ready."""
        start = time.monotonic()

        try:
            url = readiness_url(endpoint, self.scheme, self.port_offset)
        except ValueError as e:
            self.logger.error("Error Occurred. %s", e)
            return ProbeResult(endpoint=endpoint, ready=False, message=str(e))

        try:
            # The client timeout is per phase, wait_for bounds the whole request.
            response = await asyncio.wait_for(
                self.http_client.get(url, timeout=self.timeout),
                timeout=self.timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            self.logger.error("Error sending request to endpoint %s: timeout after %ss", url, self.timeout)
            return ProbeResult(
                endpoint=endpoint,
                ready=False,
                url=url,
                message="Timeout",
                latency_ms=self.timeout * 1000,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self.logger.error("Error sending request to endpoint %s: %r", url, e)
            return ProbeResult(
                endpoint=endpoint,
                ready=False,
                url=url,
                message=str(e) or type(e).__name__,
                latency_ms=(time.monotonic() - start) * 1000,
            )

        latency = (time.monotonic() - start) * 1000
        body = response.content

        if response.status_code == 200 and body == READY_BODY:
            self.logger.debug("Endpoint %s is ready.", endpoint)
            return ProbeResult(
                endpoint=endpoint,
                ready=True,
                url=url,
                status_code=response.status_code,
                latency_ms=latency,
            )

        text = body.decode("utf-8", errors="replace")
        self.logger.error(
            "Endpoint is not ready: Getting %d from %s: %s", response.status_code, url, text
        )
        return ProbeResult(
            endpoint=endpoint,
            ready=False,
            url=url,
            status_code=response.status_code,
            message=f"HTTP {response.status_code}: {text}",
            latency_ms=latency,
        )
