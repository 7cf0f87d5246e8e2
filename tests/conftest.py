"""
Shared fixtures for the wafdetect test suite
"""

from typing import Dict, Optional

import httpx
import pytest

from wafdetect.core.errors import TransportError
from wafdetect.core.model import ProbeResult, ProbeType


def build_probe(probe_type: ProbeType = ProbeType.NORMAL,
                status: int = 200,
                body: str = "",
                headers: Optional[Dict[str, str]] = None,
                cookies=(),
                error=None) -> ProbeResult:
    raw_headers = list((headers or {}).items())
    raw_headers.extend(("Set-Cookie", cookie) for cookie in cookies)
    return ProbeResult(
        probe_type=probe_type,
        status_code=status,
        headers=httpx.Headers(raw_headers),
        body=body,
        body_length=len(body.encode()),
        error=error,
        url="https://example.com/",
    )


@pytest.fixture
def make_probe():
    """Factory for a single ProbeResult."""
    return build_probe


@pytest.fixture
def make_probes():
    """Factory for a full ProbeSet.

    The baseline gets `normal`; each adversarial probe gets `blocked` when its
    type is listed in `blocked_types`, otherwise it mirrors the baseline.
    """

    def _make(normal: Optional[dict] = None,
              blocked: Optional[dict] = None,
              blocked_types=tuple(ProbeType.adversarial())) -> Dict[ProbeType, ProbeResult]:
        normal = normal or {"status": 200, "body": "ok"}
        blocked = blocked or {"status": 403, "body": "Request blocked by Firewall"}
        probes = {ProbeType.NORMAL: build_probe(ProbeType.NORMAL, **normal)}
        for probe_type in ProbeType.adversarial():
            spec = blocked if probe_type in blocked_types else normal
            probes[probe_type] = build_probe(probe_type, **spec)
        return probes

    return _make


@pytest.fixture
def failed_probe():
    def _make(probe_type: ProbeType) -> ProbeResult:
        return build_probe(probe_type, status=0, error=TransportError("https://example.com/"))
    return _make
