"""
Pytest configuration and fixtures for hashring watcher tests
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

# Add src to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


class MemberTransport(httpx.MockTransport):
    """Mock transport answering readiness requests per member host.

    ``members`` maps a host to True (ready), False (connection refused), or a
    ``(status_code, body)`` tuple. Unknown hosts are refused.
    """

    def __init__(self, members: Dict[str, Any], delays: Optional[Dict[str, float]] = None):
        self.members = members
        self.delays = delays or {}
        self.requests: List[httpx.Request] = []
        super().__init__(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        delay = self.delays.get(host, 0)
        if delay:
            await asyncio.sleep(delay)

        state = self.members.get(host, False)
        if state is True:
            return httpx.Response(200, content=b"OK")
        if state is False:
            raise httpx.ConnectError("Connection refused", request=request)
        status_code, body = state
        return httpx.Response(status_code, content=body)


@pytest.fixture
def member_transport() -> Callable[..., MemberTransport]:
    """Factory for mocked member readiness endpoints."""
    return MemberTransport


@pytest.fixture
def write_hashrings(tmp_path) -> Callable[..., Path]:
    """Factory writing a source hashring file and returning its path."""

    def _write(hashrings: Any, name: str = "hashrings.json") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(hashrings, (str, bytes)):
            content = hashrings.encode() if isinstance(hashrings, str) else hashrings
            path.write_bytes(content)
        else:
            path.write_text(json.dumps(hashrings, indent=2))
        return path

    return _write


@pytest.fixture
def sample_hashrings():
    """Two hashrings in the shape receivers consume."""
    return [
        {
            "hashring": "default",
            "endpoints": ["receive-0:10901", "receive-1:10901", "receive-2:10901"],
        },
        {
            "hashring": "tenant-a",
            "tenants": ["team-a", "team-b"],
            "endpoints": ["receive-3:10901", "receive-4:10901"],
        },
    ]


# Markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
